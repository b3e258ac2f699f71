"""
Constants and protocol parameters for the ZK age credential system.

This module centralizes every fixed parameter of the age predicate circuit and
the credential envelope, so that the circuit schema, the issuer and the
verifier all agree on the same values.
"""

from typing import Final, FrozenSet, Tuple

# =============================================================================
# Circuit Schema
# =============================================================================

# Stable identifier of the age predicate circuit
CIRCUIT_ID: Final[str] = "zk.age_over_threshold"

# Circuit schema version; bump on any change to the constraint layout
CIRCUIT_VERSION: Final[str] = "1.0.0"

# Name of the private circuit input
BIRTH_YEAR_VARIABLE: Final[str] = "birthYear"

# Name of the public circuit input
CURRENT_YEAR_VARIABLE: Final[str] = "currentYear"

# Minimum age the predicate asserts (age >= threshold)
AGE_THRESHOLD: Final[int] = 18

# Bit width of the age range check; ages at or above 2**16 fail the predicate
AGE_BIT_WIDTH: Final[int] = 16

# Value the comparison gate must equal for the predicate to hold
PREDICATE_SUCCESS_CODE: Final[int] = 1

# BN254 scalar field order (Fr)
BN254_SCALAR_FIELD: Final[int] = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)

# =============================================================================
# Proof Parameters
# =============================================================================

# Proof system name reported by the bundled backend
SIMULATED_PROOF_SYSTEM: Final[str] = "simulated-groth16"

# Proof encoding version byte
PROOF_FORMAT_VERSION: Final[int] = 1

# Random blinding nonce carried in every proof (bytes)
PROOF_NONCE_LENGTH: Final[int] = 16

# Ed25519 signature length (bytes)
PROOF_SIGNATURE_LENGTH: Final[int] = 64

# Domain separation tag for the proof transcript
PROOF_DOMAIN_TAG: Final[bytes] = b"zk-age-credential/proof/v1"

# Proof size limit in bytes
MAX_PROOF_SIZE: Final[int] = 1024

# =============================================================================
# Credential Envelope
# =============================================================================

# Mandatory credential type tags, in wire order
CREDENTIAL_TYPES: Final[Tuple[str, ...]] = (
    "VerifiableCredential",
    "AgeEligibilityCredential",
)

# Default issuing authority
DEFAULT_ISSUER_ID: Final[str] = "did:example:issuer123"

# Subject claim holding the private birth date
BIRTH_DATE_CLAIM: Final[str] = "birthDate"

# Accepted birth date format (strptime)
BIRTH_DATE_FORMAT: Final[str] = "%Y-%m-%d"

# Strict shape of the birth date claim; strptime alone accepts "1984-1-1"
BIRTH_DATE_PATTERN: Final[str] = r"^\d{4}-\d{2}-\d{2}$"

# Claims that must never appear in a persisted credential subject
PRIVATE_CLAIMS: Final[FrozenSet[str]] = frozenset(
    {"birthDate", "birthYear", "birth_date", "birth_year"}
)

# Event keys scrubbed from every log line
REDACTED_LOG_KEYS: Final[FrozenSet[str]] = PRIVATE_CLAIMS

# Prefix for generated credential identifiers
CREDENTIAL_ID_PREFIX: Final[str] = "urn:uuid:"

# =============================================================================
# Runtime Defaults
# =============================================================================

# Timeout for a single proof generation in the worker pool (seconds)
DEFAULT_PROOF_TIMEOUT: Final[float] = 30.0
