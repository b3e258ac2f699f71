"""
ZK Age Credential - Privacy-Preserving Age Eligibility Credentials

Issues and verifies verifiable credentials that attest a subject's age exceeds
a threshold, backed by a zero-knowledge proof instead of the raw birth date.

The package couples a single-predicate arithmetic circuit to a credential
envelope: the private birth year stays on the issuer side of the secrecy
boundary, and only the public statement (the issuance year) travels with the
credential.
"""

__version__ = "1.0.0"
__author__ = "ZK Age Credential Team"
