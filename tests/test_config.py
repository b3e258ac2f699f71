import pytest

from zk_age_credential import config
from zk_age_credential.exceptions import ConfigurationError


def test_defaults_are_valid():
    assert config.validate_configuration() is True


@pytest.mark.parametrize(
    "name, value, fragment",
    [
        ("ISSUER_ID", "  ", "ISSUER_ID"),
        ("MAX_WORKERS", 0, "MAX_WORKERS"),
        ("PROOF_TIMEOUT_SECONDS", 0.0, "PROOF_TIMEOUT_SECONDS"),
        ("LOG_LEVEL", "VERBOSE", "LOG_LEVEL"),
    ],
)
def test_invalid_values_are_reported(monkeypatch, name, value, fragment):
    monkeypatch.setattr(config, name, value)

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_configuration()

    assert fragment in exc_info.value.message
    assert exc_info.value.error_code == "CONFIG_001"


def test_all_errors_are_listed(monkeypatch):
    monkeypatch.setattr(config, "MAX_WORKERS", 0)
    monkeypatch.setattr(config, "PROOF_TIMEOUT_SECONDS", -1.0)

    with pytest.raises(ConfigurationError) as exc_info:
        config.validate_configuration()

    assert "MAX_WORKERS" in exc_info.value.message
    assert "PROOF_TIMEOUT_SECONDS" in exc_info.value.message


def test_config_summary():
    summary = config.get_config_summary()

    assert summary["issuer"]["issuer_id"] == config.ISSUER_ID
    assert summary["processing"]["max_workers"] == config.MAX_WORKERS
    assert summary["logging"]["level"] == config.LOG_LEVEL
    assert summary["debug_mode"] is config.DEBUG_MODE
