"""
Custom exception classes for the ZK age credential system.

This module defines the error taxonomy of the credential protocol. Errors are
grouped by the lifecycle phase that raises them (circuit compilation, key
setup, issuance, verification) so that callers can tell a caller-input problem
from a cryptographic outcome or a backend malfunction.

Context dictionaries carry only non-sensitive values (step names, claim names,
constraint ids, schema versions, key ids). The private birth data never
appears in a message or in a context value.
"""

from typing import Optional, Dict, Any


class ZkCredentialError(Exception):
    """
    Base exception class for all ZK age credential errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    context : dict, optional
        Additional non-sensitive context about the error.
    error_code : str, optional
        Unique error code for programmatic handling.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.error_code = error_code
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return a formatted string representation of the error."""
        parts = [self.message]

        if self.error_code:
            parts.append(f"[Error Code: {self.error_code}]")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[Context: {context_str}]")

        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging.

        Returns
        -------
        dict
            Dictionary representation of the exception.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


# =============================================================================
# Startup (fatal)
# =============================================================================


class CircuitCompilationError(ZkCredentialError):
    """
    Exception raised when the predicate circuit cannot be compiled.

    Fatal at startup: the relation cannot be expressed with the given
    parameters (e.g. the field is too small for the range check).
    """

    def __init__(self, message: str, circuit_id: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if circuit_id:
            context["circuit_id"] = circuit_id

        super().__init__(message, context, kwargs.get("error_code", "CIRCUIT_001"))


class SetupError(ZkCredentialError):
    """
    Exception raised when key generation or the key registry lifecycle fails.

    Fatal at startup: the process must not continue with a partially
    initialized registry.
    """

    def __init__(self, message: str, state: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if state:
            context["registry_state"] = state

        super().__init__(message, context, kwargs.get("error_code", "SETUP_001"))


# =============================================================================
# Witness derivation
# =============================================================================


class WitnessError(ZkCredentialError):
    """Exception raised when an assignment does not fit the circuit's inputs."""

    def __init__(self, message: str, variable: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if variable:
            context["variable"] = variable

        super().__init__(message, context, kwargs.get("error_code", "WITNESS_001"))


# =============================================================================
# Issuance
# =============================================================================


class IssuanceError(ZkCredentialError):
    """
    Base class for errors raised while issuing a credential.

    The issuer stays usable after any of these; only the current request is
    rejected.
    """

    def __init__(self, message: str, step: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if step:
            context["issuance_step"] = step

        super().__init__(message, context, kwargs.get("error_code"))


class MissingClaimError(IssuanceError):
    """Exception raised when a required subject claim is absent."""

    def __init__(self, claim: str) -> None:
        super().__init__(
            f"Required claim is missing: {claim}",
            step="extract_claims",
            context={"claim": claim},
            error_code="CLAIM_001",
        )
        self.claim = claim


class MalformedClaimError(IssuanceError):
    """Exception raised when a subject claim cannot be parsed or is not a scalar."""

    def __init__(self, claim: str, reason: str) -> None:
        super().__init__(
            f"Claim is malformed: {claim} ({reason})",
            step="extract_claims",
            context={"claim": claim},
            error_code="CLAIM_002",
        )
        self.claim = claim
        self.reason = reason


class ProofGenerationError(IssuanceError):
    """
    Exception raised when the backend does not produce a proof.

    Never raised directly by the backend; one of the two subtypes tells the
    caller whether the predicate is false or the backend malfunctioned.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        proof_system: str = "unknown",
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        context["proof_system"] = proof_system
        super().__init__(
            message,
            step="proof_generation",
            context=context,
            error_code=kwargs.get("error_code"),
        )


class PredicateNotSatisfied(ProofGenerationError):
    """
    The private input does not satisfy the circuit's predicate.

    An expected business outcome (e.g. the subject is under the age
    threshold), not a fault. Retrying cannot change the result.
    """

    retryable = False

    def __init__(self, constraint_id: str, proof_system: str = "unknown") -> None:
        super().__init__(
            "Predicate not satisfied by the supplied claims",
            proof_system=proof_system,
            context={"constraint_id": constraint_id},
            error_code="PROOF_001",
        )
        self.constraint_id = constraint_id


class BackendFault(ProofGenerationError):
    """
    The proving backend failed for infrastructural reasons.

    Distinct from a false predicate; callers may retry.
    """

    retryable = True

    def __init__(self, message: str, proof_system: str = "unknown", **kwargs) -> None:
        super().__init__(
            message,
            proof_system=proof_system,
            context=kwargs.get("context", {}),
            error_code=kwargs.get("error_code", "PROOF_002"),
        )


class ProofCancelledError(BackendFault):
    """Exception raised when an in-flight proof generation is abandoned."""

    def __init__(self, proof_system: str = "unknown") -> None:
        super().__init__(
            "Proof generation cancelled",
            proof_system=proof_system,
            error_code="PROOF_003",
        )


class ProofTimeoutError(BackendFault):
    """Exception raised when proof generation exceeds the caller's timeout."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Proof generation timed out after {timeout_seconds:.2f}s",
            context={"timeout_seconds": timeout_seconds},
            error_code="PROOF_004",
        )
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Verification
# =============================================================================


class VerificationError(ZkCredentialError):
    """
    Base class for verification-time errors.

    Always recoverable: the verifier reports them inside a failed
    ``VerificationResult`` rather than raising.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if cause is not None:
            context["cause"] = type(cause).__name__

        super().__init__(message, context, kwargs.get("error_code", "VERIFY_000"))
        self.cause = cause


class InvalidProofError(VerificationError):
    """The proof does not verify against the public statement and key."""

    def __init__(self, message: str = "Proof is cryptographically invalid", **kwargs) -> None:
        super().__init__(
            message,
            context=kwargs.get("context", {}),
            error_code="VERIFY_001",
        )


class KeyMismatchError(VerificationError):
    """
    The proof was produced under a different circuit schema or key version.

    Reported separately from an invalid proof so that a key rotation is not
    mistaken for a false predicate.
    """

    def __init__(self, expected: str, actual: str, field_name: str = "key_id") -> None:
        super().__init__(
            f"Proof {field_name} does not match the verifying key",
            context={"field": field_name, "expected": expected, "actual": actual},
            error_code="VERIFY_002",
        )


# =============================================================================
# Serialization and configuration
# =============================================================================


class CredentialFormatError(ZkCredentialError):
    """Exception raised when a serialized credential record is malformed."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if field_name:
            context["field"] = field_name

        super().__init__(message, context, kwargs.get("error_code", "FORMAT_001"))


class ConfigurationError(ZkCredentialError):
    """
    Exception raised for configuration-related errors.

    This includes invalid configuration values or missing required
    environment variables.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key
        if config_value:
            context["config_value"] = config_value

        super().__init__(message, context, kwargs.get("error_code", "CONFIG_001"))
