"""
Key lifecycle management for the ZK age credential system.

The key registry owns the (proving key, verifying key, constraint system)
triple of one circuit schema. It is built once at process start, before any
issuer or verifier runs, and then shared read-only for the lifetime of the
process.

Setup is never re-run for a schema that is already ready: a second setup run
produces a different key pair that cannot verify proofs made under the first.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
import structlog

from .exceptions import SetupError, ZkCredentialError
from .zk_backend import ProvingBackend, ProvingKey, SimulatedBackend, VerifyingKey
from .zk_circuit import CompiledConstraintSystem, PredicateCircuit

# Initialize structured logger
logger = structlog.get_logger(__name__)


class RegistryState(Enum):
    """Lifecycle states of a ``KeyRegistry``; READY and FAILED are terminal."""

    UNINITIALIZED = "uninitialized"
    COMPILING = "compiling"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class KeyPair:
    """
    Keys and compiled constraint system of one setup run.

    Raises
    ------
    SetupError
        If the two keys come from different setup runs or do not match the
        constraint system.
    """

    proving_key: ProvingKey
    verifying_key: VerifyingKey
    constraint_system: CompiledConstraintSystem

    def __post_init__(self) -> None:
        if self.proving_key.setup_id != self.verifying_key.setup_id:
            raise SetupError("Proving and verifying keys come from different setup runs")
        if self.proving_key.key_id != self.verifying_key.key_id:
            raise SetupError("Proving and verifying keys have different key ids")

        digest = self.constraint_system.digest
        if not (
            self.proving_key.circuit_digest == digest
            and self.verifying_key.circuit_digest == digest
        ):
            raise SetupError("Keys were not generated for this constraint system")

    @property
    def key_id(self) -> str:
        return self.verifying_key.key_id

    @property
    def schema_version(self) -> str:
        return self.constraint_system.schema_version


class KeyRegistry:
    """
    Process-wide owner of the key pair for one circuit schema.

    Construct it at startup, call ``initialize`` once before spawning
    workers, then pass it to issuers and verifiers.

    Parameters
    ----------
    backend : Optional[ProvingBackend], default=None
        Proof system to compile and set up with. Defaults to
        ``SimulatedBackend``.

    Examples
    --------
    >>> registry = KeyRegistry()
    >>> key_pair = registry.initialize(PredicateCircuit())
    >>> registry.state
    <RegistryState.READY: 'ready'>
    >>> registry.initialize(PredicateCircuit()) is key_pair
    True
    """

    def __init__(self, backend: Optional[ProvingBackend] = None) -> None:
        self._backend = backend or SimulatedBackend()
        self._state = RegistryState.UNINITIALIZED
        self._key_pair: Optional[KeyPair] = None
        self._lock = threading.Lock()

    @property
    def backend(self) -> ProvingBackend:
        return self._backend

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is RegistryState.READY

    def initialize(self, schema: Optional[PredicateCircuit] = None) -> KeyPair:
        """
        Compile the circuit and run key setup once.

        Calling this again on a READY registry with the same schema returns
        the cached key pair without re-running setup. A different schema is
        rejected. A FAILED registry stays failed.

        Parameters
        ----------
        schema : Optional[PredicateCircuit], default=None
            Circuit schema; defaults to the standard age circuit.

        Returns
        -------
        KeyPair
            The registry's key pair.

        Raises
        ------
        CircuitCompilationError
            If the schema cannot be compiled (registry becomes FAILED).
        SetupError
            If key generation fails (registry becomes FAILED), the registry
            already failed, or it is ready with a different schema.
        """
        schema = schema or PredicateCircuit()

        with self._lock:
            if self._state is RegistryState.READY:
                return self._cached_for(schema)

            if self._state is RegistryState.FAILED:
                raise SetupError(
                    "Key registry failed to initialize", state=self._state.value
                )

            self._state = RegistryState.COMPILING
            logger.info("Initializing key registry", circuit_id=schema.circuit_id)

            try:
                constraint_system = self._backend.compile(schema)
                proving_key, verifying_key = self._backend.setup(constraint_system)
                key_pair = KeyPair(proving_key, verifying_key, constraint_system)
            except ZkCredentialError as e:
                self._state = RegistryState.FAILED
                logger.error("Key registry initialization failed", **e.to_dict())
                raise
            except Exception as e:
                self._state = RegistryState.FAILED
                logger.error(
                    "Key registry initialization failed", error_type=type(e).__name__
                )
                raise SetupError(
                    f"Unexpected error during setup: {type(e).__name__}",
                    state=self._state.value,
                ) from e

            self._key_pair = key_pair
            self._state = RegistryState.READY

            logger.info(
                "Key registry ready",
                schema_version=key_pair.schema_version,
                key_id=key_pair.key_id,
                constraint_count=constraint_system.constraint_count,
            )
            return key_pair

    def _cached_for(self, schema: PredicateCircuit) -> KeyPair:
        assert self._key_pair is not None
        digest = self._backend.compile(schema).digest
        if digest != self._key_pair.constraint_system.digest:
            raise SetupError(
                "Key registry is already initialized with a different circuit schema",
                state=self._state.value,
            )
        return self._key_pair

    @property
    def key_pair(self) -> KeyPair:
        """
        The registry's key pair.

        Raises
        ------
        SetupError
            If the registry is not READY.
        """
        if self._state is not RegistryState.READY or self._key_pair is None:
            raise SetupError("Key registry is not ready", state=self._state.value)
        return self._key_pair

    @property
    def verifying_key(self) -> VerifyingKey:
        return self.key_pair.verifying_key

    @property
    def constraint_system(self) -> CompiledConstraintSystem:
        return self.key_pair.constraint_system

    def get_registry_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the registry state.

        Returns
        -------
        Dict[str, Any]
            State, proof system and, once ready, the key and circuit identity.
        """
        summary: Dict[str, Any] = {
            "state": self._state.value,
            "proof_system": self._backend.proof_system,
        }
        if self._key_pair is not None:
            summary.update(
                {
                    "schema_version": self._key_pair.schema_version,
                    "key_id": self._key_pair.key_id,
                    "circuit": self._key_pair.constraint_system.summary(),
                }
            )
        return summary
