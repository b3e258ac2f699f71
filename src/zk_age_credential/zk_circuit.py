"""
Zero-Knowledge circuit definition for the ZK age credential system.

This module defines the arithmetic relation behind the age eligibility
credential: given a private birth year and a public current year, the prover
shows that ``currentYear - birthYear >= threshold`` without revealing the
birth year or the age itself.

The circuit is an immutable schema. Compiling it lays out a small, fixed
constraint system whose canonical encoding (and therefore digest) depends
only on the schema, so that identical schemas always yield compatible keys.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple
import structlog

from .constants import (
    AGE_BIT_WIDTH,
    AGE_THRESHOLD,
    BIRTH_YEAR_VARIABLE,
    BN254_SCALAR_FIELD,
    CIRCUIT_ID,
    CIRCUIT_VERSION,
    CURRENT_YEAR_VARIABLE,
    PREDICATE_SUCCESS_CODE,
)
from .exceptions import CircuitCompilationError
from .utils import canonical_json, hash_data

# Initialize structured logger
logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Constraint:
    """
    A single gate of the compiled constraint system.

    Parameters
    ----------
    id : str
        Position-derived identifier (``constraint_<n>``).
    type : str
        Gate type: ``sub``, ``cmp_ge`` or ``assert_equal``.
    inputs : Tuple[str, ...]
        Variable names read by the gate.
    outputs : Tuple[str, ...]
        Variable names written by the gate.
    parameters : Tuple[Tuple[str, int], ...]
        Constant gate parameters, sorted by name.
    """

    id: str
    type: str
    inputs: Tuple[str, ...]
    outputs: Tuple[str, ...]
    parameters: Tuple[Tuple[str, int], ...] = ()

    def param(self, name: str) -> int:
        return dict(self.parameters)[name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True)
class CompiledConstraintSystem:
    """
    Deterministic constraint system compiled from a ``PredicateCircuit``.

    Treated as an opaque handle by the issuer and verifier; only the proving
    backend evaluates its constraints.
    """

    circuit_id: str
    version: str
    field_modulus: int
    public_inputs: Tuple[str, ...]
    private_inputs: Tuple[str, ...]
    intermediate_variables: Tuple[str, ...]
    constraints: Tuple[Constraint, ...]

    @property
    def schema_version(self) -> str:
        """Version tag every proof produced under this system must carry."""
        return f"{self.circuit_id}/{self.version}"

    @property
    def constraint_count(self) -> int:
        return len(self.constraints)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "circuit_id": self.circuit_id,
            "version": self.version,
            "field_modulus": str(self.field_modulus),
            "public_inputs": list(self.public_inputs),
            "private_inputs": list(self.private_inputs),
            "intermediate_variables": list(self.intermediate_variables),
            "constraints": [c.to_dict() for c in self.constraints],
        }

    def to_bytes(self) -> bytes:
        """Canonical byte encoding; byte-identical for identical schemas."""
        return canonical_json(self.to_dict())

    @property
    def digest(self) -> str:
        """Content-addressed identifier of the constraint system."""
        return hash_data(self.to_bytes())

    def summary(self) -> Dict[str, Any]:
        """
        Generate a summary of the compiled circuit.

        Returns
        -------
        Dict[str, Any]
            Constraint statistics, input names and digest. Never values.
        """
        constraint_types: Dict[str, int] = {}
        for constraint in self.constraints:
            constraint_types[constraint.type] = (
                constraint_types.get(constraint.type, 0) + 1
            )

        return {
            "circuit_id": self.circuit_id,
            "schema_version": self.schema_version,
            "digest": self.digest,
            "total_constraints": self.constraint_count,
            "constraint_types": constraint_types,
            "public_inputs": list(self.public_inputs),
            "private_inputs": list(self.private_inputs),
            "field_bits": self.field_modulus.bit_length(),
        }


@dataclass(frozen=True)
class PredicateCircuit:
    """
    Schema of the age predicate circuit.

    Declares one private variable (the birth year), one public variable (the
    current year) and a constant threshold. The relation asserted is::

        age      = currentYear - birthYear          (mod p)
        eligible = 1 if age < 2**age_bit_width and age >= threshold else 0
        eligible == 1

    The bit-width bound makes a negative age, which wraps around to a value
    close to the field modulus, evaluate to "not satisfied" rather than pass
    the comparison.

    Parameters
    ----------
    threshold : int, default=AGE_THRESHOLD
        Minimum age the credential asserts.
    age_bit_width : int, default=AGE_BIT_WIDTH
        Bit width of the range check applied to the age.
    private_variable : str, default=BIRTH_YEAR_VARIABLE
        Name of the private input.
    public_variable : str, default=CURRENT_YEAR_VARIABLE
        Name of the public input.
    circuit_id : str, default=CIRCUIT_ID
        Stable circuit identifier.
    version : str, default=CIRCUIT_VERSION
        Schema version.

    Examples
    --------
    >>> circuit = PredicateCircuit()
    >>> compiled = circuit.compile()
    >>> compiled.constraint_count
    3
    """

    threshold: int = AGE_THRESHOLD
    age_bit_width: int = AGE_BIT_WIDTH
    private_variable: str = BIRTH_YEAR_VARIABLE
    public_variable: str = CURRENT_YEAR_VARIABLE
    circuit_id: str = CIRCUIT_ID
    version: str = CIRCUIT_VERSION

    def _check_expressible(self, field_modulus: int) -> None:
        errors = []

        if self.age_bit_width < 1:
            errors.append("age_bit_width must be at least 1")
        elif 2 ** (self.age_bit_width + 1) >= field_modulus:
            errors.append(
                f"field of {field_modulus.bit_length()} bits cannot hold a "
                f"{self.age_bit_width}-bit range check"
            )

        if self.threshold < 0:
            errors.append("threshold cannot be negative")
        elif self.age_bit_width >= 1 and self.threshold >= 2**self.age_bit_width:
            errors.append("threshold does not fit the age range check")

        if self.private_variable == self.public_variable:
            errors.append("private and public variables must have distinct names")

        if errors:
            raise CircuitCompilationError(
                "Circuit cannot be expressed: " + "; ".join(errors),
                circuit_id=self.circuit_id,
            )

    def compile(self, field_modulus: int = BN254_SCALAR_FIELD) -> CompiledConstraintSystem:
        """
        Compile the schema into a constraint system.

        Parameters
        ----------
        field_modulus : int, default=BN254_SCALAR_FIELD
            Order of the backend's scalar field.

        Returns
        -------
        CompiledConstraintSystem
            Deterministic compiled system; a pure function of the schema.

        Raises
        ------
        CircuitCompilationError
            If the relation cannot be expressed over the given field.
        """
        self._check_expressible(field_modulus)

        constraints: List[Constraint] = []

        def add_constraint(
            constraint_type: str,
            inputs: List[str],
            outputs: List[str],
            parameters: Dict[str, int],
        ) -> None:
            constraints.append(
                Constraint(
                    id=f"constraint_{len(constraints)}",
                    type=constraint_type,
                    inputs=tuple(inputs),
                    outputs=tuple(outputs),
                    parameters=tuple(sorted(parameters.items())),
                )
            )

        public_var = f"public_{self.public_variable}"
        private_var = f"private_{self.private_variable}"
        age_var = "intermediate_age"
        eligible_var = "intermediate_eligible"

        add_constraint("sub", [public_var, private_var], [age_var], {})
        add_constraint(
            "cmp_ge",
            [age_var],
            [eligible_var],
            {"threshold": self.threshold, "bits": self.age_bit_width},
        )
        add_constraint(
            "assert_equal", [eligible_var], [], {"constant": PREDICATE_SUCCESS_CODE}
        )

        compiled = CompiledConstraintSystem(
            circuit_id=self.circuit_id,
            version=self.version,
            field_modulus=field_modulus,
            public_inputs=(public_var,),
            private_inputs=(private_var,),
            intermediate_variables=(age_var, eligible_var),
            constraints=tuple(constraints),
        )

        logger.info(
            "Predicate circuit compiled",
            circuit_id=self.circuit_id,
            schema_version=compiled.schema_version,
            constraint_count=compiled.constraint_count,
            digest=compiled.digest,
        )

        return compiled


def create_age_circuit(threshold: int = AGE_THRESHOLD) -> PredicateCircuit:
    """
    Convenience function to create the age predicate circuit.

    Parameters
    ----------
    threshold : int, default=AGE_THRESHOLD
        Minimum age to assert.

    Returns
    -------
    PredicateCircuit
        Circuit schema with the default variable names and version.
    """
    return PredicateCircuit(threshold=threshold)
