"""
Credential issuance for the ZK age credential system.

The issuer turns a subject's claims into an age eligibility credential:
it extracts the private birth year, builds the circuit assignment, asks the
proving backend for a proof under the registry's keys and assembles the
credential envelope. The birth date stays on this side of the secrecy
boundary; it is not copied into the credential, logged, or put in any error.
"""

import re
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional
import structlog

from . import config
from .constants import (
    BIRTH_DATE_CLAIM,
    BIRTH_DATE_FORMAT,
    BIRTH_DATE_PATTERN,
    CREDENTIAL_TYPES,
    PRIVATE_CLAIMS,
)
from .data_models import SCALAR_TYPES, Assignment, Credential, CredentialProof
from .exceptions import (
    IssuanceError,
    MalformedClaimError,
    MissingClaimError,
    SetupError,
    WitnessError,
)
from .key_registry import KeyPair, KeyRegistry
from .utils import generate_credential_id

# Initialize structured logger
logger = structlog.get_logger(__name__)

_BIRTH_DATE_RE = re.compile(BIRTH_DATE_PATTERN)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def extract_birth_year(subject_claims: Mapping[str, Any]) -> int:
    """
    Extract the birth year from the ``birthDate`` claim.

    Parameters
    ----------
    subject_claims : Mapping[str, Any]
        Subject claims supplied by the caller.

    Returns
    -------
    int
        Birth year of a valid ``YYYY-MM-DD`` calendar date.

    Raises
    ------
    MissingClaimError
        If ``birthDate`` is absent.
    MalformedClaimError
        If ``birthDate`` is not a string in ``YYYY-MM-DD`` form or not a
        real calendar date.
    """
    if BIRTH_DATE_CLAIM not in subject_claims:
        raise MissingClaimError(BIRTH_DATE_CLAIM)

    raw = subject_claims[BIRTH_DATE_CLAIM]
    if not isinstance(raw, str):
        raise MalformedClaimError(BIRTH_DATE_CLAIM, "expected a YYYY-MM-DD string")
    if not _BIRTH_DATE_RE.match(raw):
        raise MalformedClaimError(BIRTH_DATE_CLAIM, "expected YYYY-MM-DD format")

    try:
        return datetime.strptime(raw, BIRTH_DATE_FORMAT).year
    except ValueError:
        # The ValueError text echoes the date
        raise MalformedClaimError(BIRTH_DATE_CLAIM, "not a valid calendar date") from None


class CredentialIssuer:
    """
    Issues age eligibility credentials backed by zero-knowledge proofs.

    Parameters
    ----------
    registry : KeyRegistry
        Initialized key registry; supplies the backend and default keys.
    issuer_id : Optional[str], default=None
        Identifier of the issuing authority. Defaults to ``config.ISSUER_ID``.
    clock : Optional[Callable[[], datetime]], default=None
        Source of the current time (timezone-aware). Defaults to UTC now.
    extra_types : Iterable[str], default=()
        Additional credential type tags appended after the mandatory ones.

    Examples
    --------
    >>> registry = KeyRegistry()
    >>> _ = registry.initialize()
    >>> issuer = CredentialIssuer(registry)
    >>> credential = issuer.issue({"id": "did:example:user123",
    ...                            "birthDate": "1984-01-01"})
    >>> "birthDate" in credential.subject
    False
    """

    def __init__(
        self,
        registry: KeyRegistry,
        issuer_id: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        extra_types: Iterable[str] = (),
    ) -> None:
        self.registry = registry
        self.issuer_id = issuer_id or config.ISSUER_ID
        self.clock = clock or _utc_now
        self.types = CREDENTIAL_TYPES + tuple(
            t for t in extra_types if t not in CREDENTIAL_TYPES
        )

        logger.info(
            "CredentialIssuer initialized",
            issuer_id=self.issuer_id,
            credential_types=list(self.types),
        )

    def _public_subject(self, subject_claims: Mapping[str, Any]) -> dict:
        subject = {}
        for name, value in subject_claims.items():
            if name in PRIVATE_CLAIMS:
                continue
            if not isinstance(name, str):
                raise MalformedClaimError(str(name), "claim names must be strings")
            if not isinstance(value, SCALAR_TYPES):
                raise MalformedClaimError(name, "claim values must be scalars")
            subject[name] = value
        return subject

    def issue(
        self,
        subject_claims: Mapping[str, Any],
        key_pair: Optional[KeyPair] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Credential:
        """
        Issue a credential for the given subject claims.

        Parameters
        ----------
        subject_claims : Mapping[str, Any]
            Claims about the subject; must include ``birthDate``.
        key_pair : Optional[KeyPair], default=None
            Keys to prove with. Defaults to the registry's key pair.
        cancel_event : Optional[threading.Event], default=None
            Set to abandon an in-flight proof generation.

        Returns
        -------
        Credential
            New credential; the caller is responsible for storing it.

        Raises
        ------
        MissingClaimError, MalformedClaimError
            If the claims are incomplete or malformed.
        PredicateNotSatisfied
            If the subject does not meet the age threshold.
        BackendFault
            If the proving backend malfunctions.
        IssuanceError
            ``ISSUE_001`` if the registry is not ready and no key pair is
            given; ``ISSUE_002`` if the backend rejects the keys or witness.
        """
        if not isinstance(subject_claims, Mapping):
            raise IssuanceError(
                "Subject claims must be a mapping",
                step="extract_claims",
                error_code="CLAIM_002",
            )

        birth_year = extract_birth_year(subject_claims)
        subject = self._public_subject(subject_claims)

        if key_pair is None:
            try:
                key_pair = self.registry.key_pair
            except SetupError as e:
                logger.warning(
                    "Credential issuance rejected",
                    issuer_id=self.issuer_id,
                    error_code=e.error_code,
                )
                raise IssuanceError(
                    "Issuance keys are unavailable",
                    step="load_keys",
                    context={"cause_code": e.error_code},
                    error_code="ISSUE_001",
                ) from e

        backend = self.registry.backend
        constraint_system = key_pair.constraint_system

        now = self.clock()
        current_year = now.year

        log = logger.bind(
            issuer_id=self.issuer_id,
            subject_id=subject.get("id"),
            public_statement=current_year,
        )

        try:
            witness = backend.derive_witness(
                constraint_system,
                Assignment(current_year=current_year, birth_year=birth_year),
                full=True,
            )
            proof = backend.prove(
                key_pair.proving_key, constraint_system, witness, cancel_event
            )
        except IssuanceError as e:
            log.warning("Credential issuance rejected", error_code=e.error_code)
            raise
        except (SetupError, WitnessError) as e:
            log.warning("Credential issuance rejected", error_code=e.error_code)
            raise IssuanceError(
                f"Proof inputs rejected: {type(e).__name__}",
                step="proof_generation",
                context={"cause_code": e.error_code},
                error_code="ISSUE_002",
            ) from e

        credential = Credential(
            id=generate_credential_id(),
            types=self.types,
            issuer=self.issuer_id,
            issuance_date=now,
            subject=subject,
            public_statement=current_year,
            proof=CredentialProof(
                proof=proof,
                schema_version=key_pair.schema_version,
                key_id=key_pair.key_id,
                proof_type=backend.proof_system,
                created=now,
            ),
        )

        log.info("Credential issued", credential_id=credential.id, key_id=key_pair.key_id)
        return credential
