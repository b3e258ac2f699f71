import pytest

from zk_age_credential.constants import BN254_SCALAR_FIELD
from zk_age_credential.exceptions import CircuitCompilationError
from zk_age_credential.zk_circuit import PredicateCircuit, create_age_circuit


def test_compile_is_deterministic():
    first = PredicateCircuit().compile()
    second = PredicateCircuit().compile()

    assert first == second
    assert first.to_bytes() == second.to_bytes()
    assert first.digest == second.digest


def test_compiled_layout():
    compiled = PredicateCircuit().compile()

    assert compiled.constraint_count == 3
    assert [c.type for c in compiled.constraints] == ["sub", "cmp_ge", "assert_equal"]
    assert [c.id for c in compiled.constraints] == [
        "constraint_0",
        "constraint_1",
        "constraint_2",
    ]
    assert compiled.public_inputs == ("public_currentYear",)
    assert compiled.private_inputs == ("private_birthYear",)
    assert compiled.constraints[1].param("threshold") == 18
    assert compiled.constraints[1].param("bits") == 16
    assert compiled.constraints[2].param("constant") == 1
    assert compiled.field_modulus == BN254_SCALAR_FIELD


def test_schema_version_tag():
    compiled = PredicateCircuit().compile()
    assert compiled.schema_version == "zk.age_over_threshold/1.0.0"

    bumped = PredicateCircuit(version="2.0.0").compile()
    assert bumped.schema_version == "zk.age_over_threshold/2.0.0"


def test_different_threshold_changes_digest():
    assert PredicateCircuit().compile().digest != create_age_circuit(21).compile().digest


def test_create_age_circuit():
    circuit = create_age_circuit(21)
    assert circuit.threshold == 21
    assert circuit.private_variable == "birthYear"
    assert circuit.public_variable == "currentYear"


@pytest.mark.parametrize(
    "circuit",
    [
        PredicateCircuit(threshold=-1),
        PredicateCircuit(threshold=2**16),
        PredicateCircuit(age_bit_width=0),
        PredicateCircuit(private_variable="year", public_variable="year"),
    ],
)
def test_inexpressible_schema_is_rejected(circuit):
    with pytest.raises(CircuitCompilationError) as exc_info:
        circuit.compile()

    assert exc_info.value.error_code == "CIRCUIT_001"
    assert exc_info.value.context["circuit_id"] == "zk.age_over_threshold"


def test_field_too_small_for_range_check():
    with pytest.raises(CircuitCompilationError, match="cannot hold"):
        PredicateCircuit().compile(field_modulus=2**16 + 1)


def test_summary_has_no_values():
    summary = PredicateCircuit().compile().summary()

    assert summary["total_constraints"] == 3
    assert summary["constraint_types"] == {"sub": 1, "cmp_ge": 1, "assert_equal": 1}
    assert summary["field_bits"] == BN254_SCALAR_FIELD.bit_length()
    assert set(summary) == {
        "circuit_id",
        "schema_version",
        "digest",
        "total_constraints",
        "constraint_types",
        "public_inputs",
        "private_inputs",
        "field_bits",
    }
