from datetime import datetime, timezone

import pytest
import structlog

from zk_age_credential.issuer import CredentialIssuer
from zk_age_credential.key_registry import KeyRegistry
from zk_age_credential.verifier import CredentialVerifier
from zk_age_credential.zk_backend import SimulatedBackend
from zk_age_credential.zk_circuit import PredicateCircuit


FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture(scope="session")
def registry() -> KeyRegistry:
    """A READY registry shared by the whole session (setup runs once)."""
    reg = KeyRegistry(SimulatedBackend())
    reg.initialize(PredicateCircuit())
    return reg


@pytest.fixture(scope="session")
def other_registry() -> KeyRegistry:
    """A second READY registry for the same schema, from a different setup run."""
    reg = KeyRegistry(SimulatedBackend())
    reg.initialize(PredicateCircuit())
    return reg


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def issuer(registry, clock) -> CredentialIssuer:
    return CredentialIssuer(registry, issuer_id="did:example:issuer123", clock=clock)


@pytest.fixture
def verifier(registry) -> CredentialVerifier:
    return CredentialVerifier(registry)


@pytest.fixture
def adult_claims() -> dict:
    return {
        "id": "did:example:user123",
        "givenName": "Adrien",
        "familyName": "Smith",
        "birthDate": "1984-01-01",
        "nationality": "FR",
    }


@pytest.fixture
def minor_claims(adult_claims) -> dict:
    return dict(adult_claims, birthDate="2010-01-01")


@pytest.fixture
def credential(issuer, adult_claims):
    return issuer.issue(adult_claims)


@pytest.fixture
def reset_structlog():
    yield
    structlog.reset_defaults()
