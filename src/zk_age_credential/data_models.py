"""
Data models for the ZK age credential system.

This module defines the values that flow through the credential protocol:
the transient circuit assignment, the opaque proof blob, the credential
envelope with its embedded proof reference, and the verification outcome.

The credential is immutable once issued and never carries the private birth
data: the proof asserts the predicate, the subject map only holds the
non-sensitive claims.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .constants import (
    BIRTH_YEAR_VARIABLE,
    BN254_SCALAR_FIELD,
    CURRENT_YEAR_VARIABLE,
    PRIVATE_CLAIMS,
)
from .exceptions import CredentialFormatError, VerificationError
from .utils import b64url_decode, b64url_encode, hash_data

SCALAR_TYPES = (str, int, float, bool, type(None))


def _is_int(value: Any) -> bool:
    # bool is a subclass of int and is not a valid year
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_timestamp(value: Any, field_name: str) -> datetime:
    if not isinstance(value, str):
        raise CredentialFormatError(
            "Timestamp must be an ISO-8601 string", field_name=field_name
        )
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise CredentialFormatError(
            "Timestamp is not valid ISO-8601", field_name=field_name
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: datetime) -> str:
    # Naive values are UTC, as in _parse_timestamp
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Assignment:
    """
    Concrete values for the circuit's variables.

    Created per issuance or verification call and never persisted. The birth
    year is excluded from ``repr`` so it cannot leak through logs or
    tracebacks.

    Parameters
    ----------
    current_year : int
        Public input: the year the statement is made for.
    birth_year : Optional[int], default=None
        Private input; None for verification-side (public only) assignments.
    """

    current_year: int
    birth_year: Optional[int] = field(default=None, repr=False)

    @classmethod
    def public_only(cls, current_year: int) -> "Assignment":
        """Build the assignment a verifier reconstructs from a public statement."""
        return cls(current_year=current_year)

    @property
    def has_private(self) -> bool:
        return self.birth_year is not None

    def values(self) -> Dict[str, Optional[int]]:
        """Values keyed by circuit variable name."""
        return {
            CURRENT_YEAR_VARIABLE: self.current_year,
            BIRTH_YEAR_VARIABLE: self.birth_year,
        }


@dataclass(frozen=True)
class Proof:
    """
    Opaque proof produced by a proving backend.

    Only the backend interprets the bytes; everything else treats the proof
    as an immutable blob.
    """

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            raise TypeError("Proof data must be bytes")

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return f"Proof(size={len(self.data)}, digest={hash_data(self.data)[:16]})"

    def to_hex(self) -> str:
        return self.data.hex()


@dataclass(frozen=True)
class CredentialProof:
    """
    Proof embedded in a credential, with the key material it must be checked
    against.

    Parameters
    ----------
    proof : Proof
        Backend proof blob.
    schema_version : str
        Circuit schema version the proof was produced under.
    key_id : str
        Identifier of the key pair (setup run) the proof was produced with.
    proof_type : str
        Name of the proof system that produced the proof.
    created : datetime
        Time the proof was generated.
    """

    proof: Proof
    schema_version: str
    key_id: str
    proof_type: str
    created: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.proof_type,
            "created": _format_timestamp(self.created),
            "schemaVersion": self.schema_version,
            "keyId": self.key_id,
            "proofValue": b64url_encode(self.proof.data),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CredentialProof":
        if not isinstance(data, Mapping):
            raise CredentialFormatError("Proof must be an object", field_name="proof")

        for name in ("type", "created", "schemaVersion", "keyId", "proofValue"):
            if not isinstance(data.get(name), str):
                raise CredentialFormatError(
                    "Proof field missing or not a string", field_name=f"proof.{name}"
                )

        try:
            proof_bytes = b64url_decode(data["proofValue"])
        except ValueError as e:
            raise CredentialFormatError(
                "Proof value is not valid base64url", field_name="proof.proofValue"
            ) from e

        return cls(
            proof=Proof(proof_bytes),
            schema_version=data["schemaVersion"],
            key_id=data["keyId"],
            proof_type=data["type"],
            created=_parse_timestamp(data["created"], "proof.created"),
        )


@dataclass(frozen=True)
class Credential:
    """
    Age eligibility verifiable credential.

    The credential asserts the predicate through its proof; the subject map
    holds only non-sensitive claims. Instances are immutable: the subject is
    exposed as a read-only mapping and the type tags as a tuple.

    Parameters
    ----------
    id : str
        Unique credential identifier.
    types : Tuple[str, ...]
        Credential type tags, in wire order.
    issuer : str
        Identifier of the issuing authority.
    issuance_date : datetime
        Time the credential was created.
    subject : Mapping[str, Any]
        Claim name to scalar claim value; never contains private birth data.
    public_statement : int
        Public input the proof is bound to (the issuance year).
    proof : CredentialProof
        Proof and the key reference it must be verified against.

    Raises
    ------
    CredentialFormatError
        If the subject carries private claims or non-scalar values, or the
        public statement is not an integer in the scalar field.
    """

    id: str
    types: Tuple[str, ...]
    issuer: str
    issuance_date: datetime
    subject: Mapping[str, Any]
    public_statement: int
    proof: CredentialProof

    def __post_init__(self) -> None:
        leaked = PRIVATE_CLAIMS.intersection(self.subject)
        if leaked:
            raise CredentialFormatError(
                "Credential subject must not contain private claims",
                field_name="subject",
                context={"claims": sorted(leaked)},
            )

        for name, value in self.subject.items():
            if not isinstance(name, str) or not isinstance(value, SCALAR_TYPES):
                raise CredentialFormatError(
                    "Credential subject values must be scalars",
                    field_name=f"subject.{name}",
                )

        if not _is_int(self.public_statement):
            raise CredentialFormatError(
                "Public statement must be an integer", field_name="publicStatement"
            )
        if not 0 <= self.public_statement < BN254_SCALAR_FIELD:
            raise CredentialFormatError(
                "Public statement is outside the scalar field",
                field_name="publicStatement",
            )

        object.__setattr__(self, "types", tuple(self.types))
        object.__setattr__(self, "subject", MappingProxyType(dict(self.subject)))

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the credential to its wire record.

        Returns
        -------
        Dict[str, Any]
            JSON-compatible record with the wire field names.
        """
        return {
            "id": self.id,
            "type": list(self.types),
            "issuer": self.issuer,
            "issuanceDate": _format_timestamp(self.issuance_date),
            "subject": dict(self.subject),
            "publicStatement": self.public_statement,
            "proof": self.proof.to_dict(),
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Credential":
        """
        Rebuild a credential from its wire record.

        Parameters
        ----------
        data : Mapping[str, Any]
            Record as produced by ``to_dict``.

        Returns
        -------
        Credential
            The parsed credential.

        Raises
        ------
        CredentialFormatError
            If any field is missing or has the wrong shape.
        """
        if not isinstance(data, Mapping):
            raise CredentialFormatError("Credential record must be an object")

        for name in ("id", "issuer"):
            if not isinstance(data.get(name), str) or not data[name]:
                raise CredentialFormatError(
                    "Field missing or not a non-empty string", field_name=name
                )

        types = data.get("type")
        if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
            raise CredentialFormatError(
                "Type must be a list of strings", field_name="type"
            )

        subject = data.get("subject")
        if not isinstance(subject, Mapping):
            raise CredentialFormatError("Subject must be an object", field_name="subject")

        return cls(
            id=data["id"],
            types=tuple(types),
            issuer=data["issuer"],
            issuance_date=_parse_timestamp(data.get("issuanceDate"), "issuanceDate"),
            subject=subject,
            public_statement=data.get("publicStatement"),
            proof=CredentialProof.from_dict(data.get("proof")),
        )

    @classmethod
    def from_json(cls, text: str) -> "Credential":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CredentialFormatError("Credential is not valid JSON") from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of a credential verification.

    Truthy only when the backend affirmed the proof. On failure ``error``
    carries the cause, so callers can tell a cryptographically invalid proof
    from a key mismatch or malformed input.
    """

    valid: bool
    error: Optional[VerificationError] = None

    def __bool__(self) -> bool:
        return self.valid

    @property
    def code(self) -> Optional[str]:
        """Non-sensitive diagnostic code of the failure, if any."""
        return self.error.error_code if self.error is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "code": self.code,
            "error": self.error.to_dict() if self.error is not None else None,
        }
