"""
Zero-Knowledge proving backend for the ZK age credential system.

This module defines the boundary between the credential protocol and the
proof system. ``ProvingBackend`` exposes the five operations the protocol
consumes (compile, setup, derive witness, prove, verify) so the proof system
can be swapped or mocked without touching the issuer or verifier.

``SimulatedBackend`` is the bundled implementation. It keeps the lifecycle
and failure modes of a pairing-based SNARK (per-run setup, randomized proofs
bound to the public input, key isolation between setup runs) without
implementing curve arithmetic: constraints are solved in-process over the
BN254 scalar field, and the public transcript is bound with an Ed25519 key
generated by the setup run. It is suitable for research and integration
testing, with hooks for a production ZK library behind the same interface.
"""

import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .constants import (
    BN254_SCALAR_FIELD,
    MAX_PROOF_SIZE,
    PROOF_DOMAIN_TAG,
    PROOF_FORMAT_VERSION,
    PROOF_NONCE_LENGTH,
    PROOF_SIGNATURE_LENGTH,
    SIMULATED_PROOF_SYSTEM,
)
from .data_models import Assignment, Proof
from .exceptions import (
    BackendFault,
    InvalidProofError,
    KeyMismatchError,
    PredicateNotSatisfied,
    ProofCancelledError,
    SetupError,
    VerificationError,
    WitnessError,
    ZkCredentialError,
)
from .utils import canonical_json, hash_data, timer
from .zk_circuit import CompiledConstraintSystem, PredicateCircuit

# Initialize structured logger
logger = structlog.get_logger(__name__)


# =============================================================================
# KEYS AND WITNESS
# =============================================================================


@dataclass(frozen=True)
class ProvingKey:
    """
    Proving key produced by one setup run.

    ``key_id`` is shared with the matching verifying key; ``setup_id``
    identifies the run so keys from different runs cannot be paired.
    """

    schema_version: str
    circuit_digest: str
    setup_id: str
    key_id: str
    proof_system: str
    key_data: bytes = field(repr=False)


@dataclass(frozen=True)
class VerifyingKey:
    """Verifying key produced by one setup run."""

    schema_version: str
    circuit_digest: str
    setup_id: str
    key_id: str
    proof_system: str
    key_data: bytes = field(repr=False)

    def to_dict(self) -> Dict[str, str]:
        return {
            "schema_version": self.schema_version,
            "circuit_digest": self.circuit_digest,
            "setup_id": self.setup_id,
            "key_id": self.key_id,
            "proof_system": self.proof_system,
            "key_data": self.key_data.hex(),
        }


@dataclass(frozen=True)
class Witness:
    """
    Field-encoded assignment, ordered by the constraint system's variables.

    A full witness carries the private values and is only ever handed to
    ``prove``; ``public()`` strips them for verification.
    """

    schema_version: str
    public_values: Tuple[int, ...]
    private_values: Tuple[int, ...] = field(default=(), repr=False)
    full: bool = False

    def public(self) -> "Witness":
        return Witness(self.schema_version, self.public_values)

    def public_bytes(self) -> bytes:
        """Fixed-width (32-byte big-endian) encoding of the public values."""
        return b"".join(value.to_bytes(32, "big") for value in self.public_values)


def derive_key_id(
    constraint_system: CompiledConstraintSystem, public_key_bytes: bytes
) -> str:
    """Identifier binding a verifying key to its circuit and schema version."""
    content = {
        "schema_version": constraint_system.schema_version,
        "circuit_digest": constraint_system.digest,
        "public_key": public_key_bytes.hex(),
    }
    return hash_data(canonical_json(content))[:32]


# =============================================================================
# BACKEND INTERFACE
# =============================================================================


class ProvingBackend(ABC):
    """
    Interface to the proof system consumed by the credential protocol.

    Implementations must signal an unsatisfied predicate with
    ``PredicateNotSatisfied`` and infrastructural failures with
    ``BackendFault``, so callers can tell a false statement from a
    malfunction.
    """

    proof_system: str = "abstract"

    def __init__(self, field_modulus: int = BN254_SCALAR_FIELD) -> None:
        self.field_modulus = field_modulus

    def compile(self, schema: PredicateCircuit) -> CompiledConstraintSystem:
        """
        Compile a circuit schema for this backend's field.

        Raises
        ------
        CircuitCompilationError
            If the relation cannot be expressed over the backend's field.
        """
        return schema.compile(self.field_modulus)

    @abstractmethod
    def setup(
        self, constraint_system: CompiledConstraintSystem
    ) -> Tuple[ProvingKey, VerifyingKey]:
        """Run key generation once for a compiled constraint system."""

    def derive_witness(
        self,
        constraint_system: CompiledConstraintSystem,
        assignment: Assignment,
        full: bool = True,
    ) -> Witness:
        """
        Encode an assignment as field elements in the system's variable order.

        Parameters
        ----------
        constraint_system : CompiledConstraintSystem
            System defining the variable order.
        assignment : Assignment
            Values to encode.
        full : bool, default=True
            Include the private values (proving) or only the public ones
            (verifying).

        Returns
        -------
        Witness
            Field-encoded witness.

        Raises
        ------
        WitnessError
            If a required variable is missing, is not an integer or lies
            outside the scalar field.
        """
        values = assignment.values()

        def encode(prefixed_name: str) -> int:
            name = prefixed_name.split("_", 1)[1]
            if name not in values:
                raise WitnessError(
                    "Assignment has no value for circuit variable", variable=name
                )
            value = values[name]
            if value is None:
                raise WitnessError("Circuit variable is unassigned", variable=name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise WitnessError("Circuit variable must be an integer", variable=name)
            # No reduction: v and v + p must not encode to the same element
            if not 0 <= value < constraint_system.field_modulus:
                raise WitnessError(
                    "Circuit variable is outside the scalar field", variable=name
                )
            return value

        public_values = tuple(encode(n) for n in constraint_system.public_inputs)
        if not full:
            return Witness(constraint_system.schema_version, public_values)

        private_values = tuple(encode(n) for n in constraint_system.private_inputs)
        return Witness(
            constraint_system.schema_version, public_values, private_values, full=True
        )

    @abstractmethod
    def prove(
        self,
        proving_key: ProvingKey,
        constraint_system: CompiledConstraintSystem,
        witness: Witness,
        cancel_event: Optional[threading.Event] = None,
    ) -> Proof:
        """Generate a proof that ``witness`` satisfies the constraint system."""

    @abstractmethod
    def verify(
        self, verifying_key: VerifyingKey, proof: Proof, public_witness: Witness
    ) -> None:
        """Return normally if the proof is valid; raise otherwise."""


# =============================================================================
# SIMULATED BACKEND
# =============================================================================


class SimulatedBackend(ProvingBackend):
    """
    In-process proving backend with SNARK-shaped behaviour.

    Setup draws a fresh Ed25519 key pair per run, so keys from two runs over
    the same circuit are incompatible. Proving solves every constraint over
    the scalar field and refuses to emit a proof for an unsatisfied system.
    The proof binds the circuit digest, key id and public witness with a
    random nonce; it contains nothing derived from the private input.

    Parameters
    ----------
    field_modulus : int, default=BN254_SCALAR_FIELD
        Order of the scalar field constraints are solved over.

    Examples
    --------
    >>> backend = SimulatedBackend()
    >>> cs = backend.compile(PredicateCircuit())
    >>> pk, vk = backend.setup(cs)
    >>> witness = backend.derive_witness(cs, Assignment(2024, birth_year=1984))
    >>> proof = backend.prove(pk, cs, witness)
    >>> backend.verify(vk, proof, witness.public())
    """

    proof_system = SIMULATED_PROOF_SYSTEM

    def __init__(self, field_modulus: int = BN254_SCALAR_FIELD) -> None:
        super().__init__(field_modulus)
        logger.info(
            "SimulatedBackend initialized",
            proof_system=self.proof_system,
            field_bits=field_modulus.bit_length(),
        )

    def setup(
        self, constraint_system: CompiledConstraintSystem
    ) -> Tuple[ProvingKey, VerifyingKey]:
        """
        Generate a proving/verifying key pair for the constraint system.

        Returns
        -------
        Tuple[ProvingKey, VerifyingKey]
            Keys sharing a fresh ``setup_id`` and ``key_id``.

        Raises
        ------
        SetupError
            If key generation fails.
        """
        logger.info(
            "Running key setup", schema_version=constraint_system.schema_version
        )

        try:
            signing_key = Ed25519PrivateKey.generate()
            private_bytes = signing_key.private_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PrivateFormat.Raw,
                encryption_algorithm=serialization.NoEncryption(),
            )
            public_bytes = signing_key.public_key().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        except Exception as e:
            raise SetupError(f"Key generation failed: {type(e).__name__}") from e

        setup_id = secrets.token_hex(16)
        key_id = derive_key_id(constraint_system, public_bytes)
        common = {
            "schema_version": constraint_system.schema_version,
            "circuit_digest": constraint_system.digest,
            "setup_id": setup_id,
            "key_id": key_id,
            "proof_system": self.proof_system,
        }

        logger.info("Key setup completed", key_id=key_id, setup_id=setup_id)

        return (
            ProvingKey(key_data=private_bytes, **common),
            VerifyingKey(key_data=public_bytes, **common),
        )

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProofCancelledError(proof_system=self.proof_system)

    def _solve(
        self,
        constraint_system: CompiledConstraintSystem,
        witness: Witness,
        cancel_event: Optional[threading.Event],
    ) -> Optional[str]:
        """
        Evaluate every constraint over the scalar field.

        Returns
        -------
        Optional[str]
            Id of the first violated constraint, or None if all hold.
        """
        modulus = constraint_system.field_modulus
        values: Dict[str, int] = dict(
            zip(constraint_system.public_inputs, witness.public_values)
        )
        values.update(zip(constraint_system.private_inputs, witness.private_values))

        for constraint in constraint_system.constraints:
            self._check_cancelled(cancel_event)

            if constraint.type == "sub":
                left, right = (values[name] for name in constraint.inputs)
                values[constraint.outputs[0]] = (left - right) % modulus

            elif constraint.type == "cmp_ge":
                age = values[constraint.inputs[0]]
                in_range = age < 2 ** constraint.param("bits")
                values[constraint.outputs[0]] = int(
                    in_range and age >= constraint.param("threshold")
                )

            elif constraint.type == "assert_equal":
                if values[constraint.inputs[0]] != constraint.param("constant"):
                    return constraint.id

            else:
                raise BackendFault(
                    f"Unsupported constraint type: {constraint.type}",
                    proof_system=self.proof_system,
                )

        return None

    def _transcript(
        self, circuit_digest: str, key_id: str, public_witness: Witness, nonce: bytes
    ) -> bytes:
        public_bytes = public_witness.public_bytes()
        return b"".join(
            [
                PROOF_DOMAIN_TAG,
                bytes.fromhex(circuit_digest),
                key_id.encode("ascii"),
                len(public_bytes).to_bytes(4, "big"),
                public_bytes,
                nonce,
            ]
        )

    @timer
    def prove(
        self,
        proving_key: ProvingKey,
        constraint_system: CompiledConstraintSystem,
        witness: Witness,
        cancel_event: Optional[threading.Event] = None,
    ) -> Proof:
        """
        Generate a proof for a full witness.

        Parameters
        ----------
        proving_key : ProvingKey
            Proving key from the setup run for ``constraint_system``.
        constraint_system : CompiledConstraintSystem
            Compiled circuit.
        witness : Witness
            Full witness (public and private values).
        cancel_event : Optional[threading.Event], default=None
            Set by the caller to abandon the proof at the next checkpoint.

        Returns
        -------
        Proof
            Randomized proof bound to the public witness and key.

        Raises
        ------
        PredicateNotSatisfied
            If any constraint is violated.
        ProofCancelledError
            If ``cancel_event`` is set before the proof is complete.
        BackendFault
            On any unexpected internal failure.
        """
        logger.info(
            "Starting proof generation",
            schema_version=constraint_system.schema_version,
            key_id=proving_key.key_id,
        )

        try:
            if not witness.full:
                raise WitnessError("Proof generation requires a full witness")
            if witness.schema_version != constraint_system.schema_version:
                raise WitnessError("Witness was derived for a different circuit schema")
            if proving_key.circuit_digest != constraint_system.digest:
                raise SetupError("Proving key was not generated for this constraint system")

            self._check_cancelled(cancel_event)
            violated = self._solve(constraint_system, witness, cancel_event)
            if violated is not None:
                logger.info("Predicate not satisfied", constraint_id=violated)
                raise PredicateNotSatisfied(violated, proof_system=self.proof_system)

            self._check_cancelled(cancel_event)
            nonce = secrets.token_bytes(PROOF_NONCE_LENGTH)
            transcript = self._transcript(
                constraint_system.digest, proving_key.key_id, witness.public(), nonce
            )
            signature = Ed25519PrivateKey.from_private_bytes(
                proving_key.key_data
            ).sign(transcript)

            proof = Proof(bytes([PROOF_FORMAT_VERSION]) + nonce + signature)

            logger.info("Proof generation completed", proof_size_bytes=len(proof))
            return proof

        except ZkCredentialError:
            raise
        except Exception as e:
            # Type only: internal messages may echo witness values
            raise BackendFault(
                f"Unexpected error during proof generation: {type(e).__name__}",
                proof_system=self.proof_system,
            ) from e

    def _parse_proof(self, proof: Proof) -> Tuple[bytes, bytes]:
        """
        Split proof bytes into (nonce, signature).

        Raises
        ------
        InvalidProofError
            If the proof has the wrong size or version.
        """
        expected_size = 1 + PROOF_NONCE_LENGTH + PROOF_SIGNATURE_LENGTH
        data = proof.data

        if len(data) > MAX_PROOF_SIZE or len(data) != expected_size:
            raise InvalidProofError(
                "Proof has an unexpected size",
                context={"proof_size_bytes": len(data)},
            )
        if data[0] != PROOF_FORMAT_VERSION:
            raise InvalidProofError("Unsupported proof format version")

        return data[1 : 1 + PROOF_NONCE_LENGTH], data[1 + PROOF_NONCE_LENGTH :]

    @timer
    def verify(
        self, verifying_key: VerifyingKey, proof: Proof, public_witness: Witness
    ) -> None:
        """
        Verify a proof against a public witness.

        Parameters
        ----------
        verifying_key : VerifyingKey
            Verifying key from the setup run the proof claims.
        proof : Proof
            Proof to check.
        public_witness : Witness
            Public-only witness reconstructed by the verifier.

        Raises
        ------
        InvalidProofError
            If the proof is malformed or does not verify.
        KeyMismatchError
            If the witness schema differs from the key's schema.
        WitnessError
            If a full witness is supplied.
        VerificationError
            On any unexpected internal failure.
        """
        logger.debug("Starting proof verification", key_id=verifying_key.key_id)

        try:
            if public_witness.full:
                raise WitnessError("Verification accepts only a public witness")
            if public_witness.schema_version != verifying_key.schema_version:
                raise KeyMismatchError(
                    expected=verifying_key.schema_version,
                    actual=public_witness.schema_version,
                    field_name="schema_version",
                )

            nonce, signature = self._parse_proof(proof)
            transcript = self._transcript(
                verifying_key.circuit_digest, verifying_key.key_id, public_witness, nonce
            )

            try:
                Ed25519PublicKey.from_public_bytes(verifying_key.key_data).verify(
                    signature, transcript
                )
            except InvalidSignature as e:
                raise InvalidProofError() from e

            logger.debug("Proof verification succeeded", key_id=verifying_key.key_id)

        except ZkCredentialError:
            raise
        except Exception as e:
            raise VerificationError(
                f"Unexpected error during proof verification: {type(e).__name__}",
                cause=e,
            ) from e
