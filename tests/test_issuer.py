from datetime import datetime

import pytest
from structlog.testing import capture_logs

from zk_age_credential import config
from zk_age_credential.data_models import Credential
from zk_age_credential.exceptions import (
    BackendFault,
    IssuanceError,
    MalformedClaimError,
    MissingClaimError,
    PredicateNotSatisfied,
    SetupError,
)
from zk_age_credential.issuer import CredentialIssuer, extract_birth_year
from zk_age_credential.key_registry import KeyRegistry
from zk_age_credential.zk_backend import SimulatedBackend


def test_issue_adult_credential(issuer, adult_claims, registry, clock):
    credential = issuer.issue(adult_claims)

    assert credential.id.startswith("urn:uuid:")
    assert credential.types == ("VerifiableCredential", "AgeEligibilityCredential")
    assert credential.issuer == "did:example:issuer123"
    assert credential.issuance_date == clock()
    assert credential.public_statement == 2024
    assert credential.proof.key_id == registry.key_pair.key_id
    assert credential.proof.schema_version == "zk.age_over_threshold/1.0.0"
    assert credential.proof.proof_type == "simulated-groth16"
    assert credential.proof.created == clock()


def test_subject_excludes_private_claims(issuer, adult_claims):
    credential = issuer.issue(dict(adult_claims, birthYear=1984))

    assert "birthDate" not in credential.subject
    assert "birthYear" not in credential.subject
    assert dict(credential.subject) == {
        "id": "did:example:user123",
        "givenName": "Adrien",
        "familyName": "Smith",
        "nationality": "FR",
    }


def test_issue_does_not_mutate_claims(issuer, adult_claims):
    before = dict(adult_claims)
    issuer.issue(adult_claims)
    assert adult_claims == before


def test_credential_ids_are_unique(issuer, adult_claims):
    ids = {issuer.issue(adult_claims).id for _ in range(20)}
    assert len(ids) == 20


def test_extra_types_follow_mandatory_ones(registry, clock, adult_claims):
    issuer = CredentialIssuer(
        registry,
        clock=clock,
        extra_types=["eIDASIdentityCredential", "VerifiableCredential"],
    )
    credential = issuer.issue(adult_claims)

    assert credential.types == (
        "VerifiableCredential",
        "AgeEligibilityCredential",
        "eIDASIdentityCredential",
    )


def test_issuer_id_defaults_to_config(registry):
    assert CredentialIssuer(registry).issuer_id == config.ISSUER_ID


def test_under_age_subject_is_rejected(issuer, minor_claims):
    with pytest.raises(PredicateNotSatisfied) as exc_info:
        issuer.issue(minor_claims)

    error = exc_info.value
    assert isinstance(error, IssuanceError)
    assert error.error_code == "PROOF_001"
    assert error.context["issuance_step"] == "proof_generation"
    assert "2010" not in str(error)


def test_issuer_stays_usable_after_rejection(issuer, minor_claims, adult_claims):
    with pytest.raises(PredicateNotSatisfied):
        issuer.issue(minor_claims)
    assert issuer.issue(adult_claims).public_statement == 2024


def test_missing_birth_date(issuer, adult_claims):
    del adult_claims["birthDate"]

    with pytest.raises(MissingClaimError) as exc_info:
        issuer.issue(adult_claims)
    assert exc_info.value.error_code == "CLAIM_001"
    assert exc_info.value.claim == "birthDate"


@pytest.mark.parametrize(
    "value",
    ["not-a-date", "1984-02-30", "1984-1-1", "01-01-1984", "1984-01-01T00:00:00", 19840101, None],
)
def test_malformed_birth_date(issuer, adult_claims, value):
    adult_claims["birthDate"] = value

    with pytest.raises(MalformedClaimError) as exc_info:
        issuer.issue(adult_claims)

    error = exc_info.value
    assert error.error_code == "CLAIM_002"
    assert error.__cause__ is None
    if isinstance(value, str):
        assert value not in str(error)


def test_non_scalar_claim_is_rejected(issuer, adult_claims):
    adult_claims["address"] = {"city": "Paris"}

    with pytest.raises(MalformedClaimError) as exc_info:
        issuer.issue(adult_claims)
    assert exc_info.value.claim == "address"


def test_claims_must_be_a_mapping(issuer):
    with pytest.raises(IssuanceError) as exc_info:
        issuer.issue([("birthDate", "1984-01-01")])
    assert exc_info.value.error_code == "CLAIM_002"


def test_issue_requires_ready_registry(clock, adult_claims):
    issuer = CredentialIssuer(KeyRegistry(), clock=clock)

    with capture_logs() as logs:
        with pytest.raises(IssuanceError) as exc_info:
            issuer.issue(adult_claims)

    error = exc_info.value
    assert error.error_code == "ISSUE_001"
    assert error.context["issuance_step"] == "load_keys"
    assert error.context["cause_code"] == "SETUP_001"
    assert isinstance(error.__cause__, SetupError)
    assert any(entry.get("error_code") == "SETUP_001" for entry in logs)


def test_backend_key_rejection_is_an_issuance_error(clock, adult_claims):
    class KeyRejectingBackend(SimulatedBackend):
        def prove(self, proving_key, constraint_system, witness, cancel_event=None):
            raise SetupError("Proving key was not generated for this constraint system")

    registry = KeyRegistry(KeyRejectingBackend())
    registry.initialize()
    issuer = CredentialIssuer(registry, clock=clock)

    with capture_logs() as logs:
        with pytest.raises(IssuanceError) as exc_info:
            issuer.issue(adult_claims)

    error = exc_info.value
    assert error.error_code == "ISSUE_002"
    assert error.context["issuance_step"] == "proof_generation"
    assert isinstance(error.__cause__, SetupError)
    assert any(entry.get("error_code") == "SETUP_001" for entry in logs)


@pytest.mark.parametrize("claim", ["birth_date", "birth_year", "birthYear"])
def test_private_claim_spellings_are_dropped(issuer, adult_claims, claim):
    credential = issuer.issue(dict(adult_claims, **{claim: "1984-01-01"}))

    assert claim not in credential.subject
    assert "1984-01-01" not in credential.to_json()


def test_naive_clock_is_read_as_utc(registry, adult_claims):
    issuer = CredentialIssuer(registry, clock=lambda: datetime(2024, 6, 1, 12, 0, 0))
    credential = issuer.issue(adult_claims)

    data = credential.to_dict()
    assert data["issuanceDate"] == "2024-06-01T12:00:00Z"
    assert data["proof"]["created"] == "2024-06-01T12:00:00Z"
    assert Credential.from_dict(data).to_dict() == data


def test_issue_with_explicit_key_pair(issuer, adult_claims, other_registry):
    credential = issuer.issue(adult_claims, key_pair=other_registry.key_pair)
    assert credential.proof.key_id == other_registry.key_pair.key_id


def test_backend_fault_is_distinct_from_false_predicate(clock, adult_claims):
    class FlakyBackend(SimulatedBackend):
        def prove(self, proving_key, constraint_system, witness, cancel_event=None):
            raise BackendFault("prover process crashed", proof_system=self.proof_system)

    registry = KeyRegistry(FlakyBackend())
    registry.initialize()
    issuer = CredentialIssuer(registry, clock=clock)

    with pytest.raises(BackendFault) as exc_info:
        issuer.issue(adult_claims)
    assert exc_info.value.retryable is True
    assert not isinstance(exc_info.value, PredicateNotSatisfied)


def test_logs_never_carry_birth_data(issuer, adult_claims, minor_claims):
    with capture_logs() as logs:
        issuer.issue(adult_claims)
        with pytest.raises(PredicateNotSatisfied):
            issuer.issue(minor_claims)

    assert any(entry["event"] == "Credential issued" for entry in logs)
    assert any(entry.get("error_code") == "PROOF_001" for entry in logs)
    for entry in logs:
        rendered = repr(entry)
        assert "1984-01-01" not in rendered
        assert "2010-01-01" not in rendered
        assert "birth_year" not in entry
        assert 1984 not in entry.values()
        assert 2010 not in entry.values()


@pytest.mark.parametrize(
    "claims, expected",
    [
        ({"birthDate": "1984-01-01"}, 1984),
        ({"birthDate": "2000-02-29"}, 2000),
    ],
)
def test_extract_birth_year(claims, expected):
    assert extract_birth_year(claims) == expected
