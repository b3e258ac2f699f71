"""
Credential verification for the ZK age credential system.

The verifier checks a credential's embedded proof against its public
statement. It rebuilds the public assignment from ``publicStatement`` alone
(never from the subject claims, never from the verifier's own clock), checks
that the proof was produced under the key it holds, and asks the backend to
verify.

Verification never raises for cryptographic or input failures: the outcome
is a ``VerificationResult`` that is false and carries the cause.
"""

from typing import Iterable, List, Optional
import structlog

from .data_models import Assignment, Credential, VerificationResult
from .exceptions import KeyMismatchError, VerificationError, ZkCredentialError
from .key_registry import KeyRegistry
from .zk_backend import VerifyingKey

# Initialize structured logger
logger = structlog.get_logger(__name__)


class CredentialVerifier:
    """
    Verifies age eligibility credentials.

    Verification is pure and repeatable: the same credential and verifying
    key always give the same result.

    Parameters
    ----------
    registry : KeyRegistry
        Initialized key registry; supplies the backend, the constraint
        system and the default verifying key.

    Examples
    --------
    >>> verifier = CredentialVerifier(registry)
    >>> result = verifier.verify(credential)
    >>> bool(result)
    True
    """

    def __init__(self, registry: KeyRegistry) -> None:
        self.registry = registry

    def _check_key(self, credential: Credential, verifying_key: VerifyingKey) -> None:
        proof = credential.proof
        if proof.schema_version != verifying_key.schema_version:
            raise KeyMismatchError(
                expected=verifying_key.schema_version,
                actual=proof.schema_version,
                field_name="schema_version",
            )
        if proof.key_id != verifying_key.key_id:
            raise KeyMismatchError(
                expected=verifying_key.key_id, actual=proof.key_id, field_name="key_id"
            )

    def verify(
        self, credential: Credential, verifying_key: Optional[VerifyingKey] = None
    ) -> VerificationResult:
        """
        Verify a credential's proof against its public statement.

        Parameters
        ----------
        credential : Credential
            Credential to verify.
        verifying_key : Optional[VerifyingKey], default=None
            Key to verify with. Defaults to the registry's verifying key.

        Returns
        -------
        VerificationResult
            True only if the backend affirmed the proof. On failure ``error``
            is a ``KeyMismatchError``, ``InvalidProofError``,
            ``WitnessError``-derived ``VerificationError`` or a wrapped
            backend fault.
        """
        log = logger.bind(credential_id=getattr(credential, "id", None))

        try:
            verifying_key = verifying_key or self.registry.verifying_key
            backend = self.registry.backend

            self._check_key(credential, verifying_key)

            public_witness = backend.derive_witness(
                self.registry.constraint_system,
                Assignment.public_only(credential.public_statement),
                full=False,
            )
            backend.verify(verifying_key, credential.proof.proof, public_witness)

        except VerificationError as e:
            log.info("Credential verification failed", error_code=e.error_code)
            return VerificationResult(valid=False, error=e)
        except ZkCredentialError as e:
            error = VerificationError(
                f"Verification aborted: {type(e).__name__}",
                cause=e,
                context={"cause_code": e.error_code},
            )
            log.info("Credential verification failed", error_code=error.error_code)
            return VerificationResult(valid=False, error=error)
        except Exception as e:
            error = VerificationError(
                f"Unexpected error during verification: {type(e).__name__}",
                cause=e,
            )
            log.error("Credential verification faulted", error_type=type(e).__name__)
            return VerificationResult(valid=False, error=error)

        log.info("Credential verified", key_id=verifying_key.key_id)
        return VerificationResult(valid=True)

    def verify_many(
        self,
        credentials: Iterable[Credential],
        verifying_key: Optional[VerifyingKey] = None,
    ) -> List[VerificationResult]:
        """Verify credentials in order; one result per credential."""
        return [self.verify(c, verifying_key) for c in credentials]
