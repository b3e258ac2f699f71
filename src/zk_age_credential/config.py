"""
Configuration management for the ZK age credential system.

This module handles all configuration loading from environment variables
and .env files, so the issuer identity, logging and worker pool sizing can
be changed per deployment without touching code.
"""

import os
from typing import Any, Dict
from dotenv import load_dotenv

from .constants import DEFAULT_ISSUER_ID, DEFAULT_PROOF_TIMEOUT
from .exceptions import ConfigurationError

# Load environment variables from .env file if it exists
load_dotenv()

# =============================================================================
# Issuer Configuration
# =============================================================================
# Identifier of the issuing authority stamped into every credential
ISSUER_ID: str = os.getenv("ISSUER_ID", DEFAULT_ISSUER_ID)

# =============================================================================
# Logging Configuration
# =============================================================================
# Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Render log events as JSON instead of console key/value pairs
STRUCTURED_LOGGING: bool = os.getenv("STRUCTURED_LOGGING", "true").lower() == "true"

# =============================================================================
# Performance Configuration
# =============================================================================
# Maximum number of concurrent issue/verify workers
MAX_WORKERS: int = int(os.getenv("MAX_WORKERS", str(os.cpu_count() or 4)))

# Seconds before an in-flight proof generation is abandoned
PROOF_TIMEOUT_SECONDS: float = float(
    os.getenv("PROOF_TIMEOUT_SECONDS", str(DEFAULT_PROOF_TIMEOUT))
)

# =============================================================================
# Development and Debugging Configuration
# =============================================================================
# Enable debug mode (skips validation on import)
DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "false").lower() == "true"


# =============================================================================
# Configuration Validation
# =============================================================================
def validate_configuration() -> bool:
    """
    Validate the current configuration settings.

    Returns
    -------
    bool
        True if configuration is valid.

    Raises
    ------
    ConfigurationError
        If any configuration parameter is invalid.
    """
    errors = []

    if not ISSUER_ID.strip():
        errors.append("ISSUER_ID cannot be empty")

    if MAX_WORKERS < 1:
        errors.append("MAX_WORKERS must be at least 1")

    if PROOF_TIMEOUT_SECONDS <= 0:
        errors.append("PROOF_TIMEOUT_SECONDS must be positive")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if LOG_LEVEL not in valid_log_levels:
        errors.append(f"LOG_LEVEL must be one of {valid_log_levels}")

    if errors:
        raise ConfigurationError(
            "Configuration validation failed:\n"
            + "\n".join(f"- {error}" for error in errors)
        )

    return True


def get_config_summary() -> Dict[str, Any]:
    """
    Get a summary of the current configuration.

    Returns
    -------
    dict
        Dictionary containing key configuration parameters.
    """
    return {
        "issuer": {"issuer_id": ISSUER_ID},
        "processing": {
            "max_workers": MAX_WORKERS,
            "proof_timeout_seconds": PROOF_TIMEOUT_SECONDS,
        },
        "logging": {
            "level": LOG_LEVEL,
            "structured": STRUCTURED_LOGGING,
        },
        "debug_mode": DEBUG_MODE,
    }


# Validate configuration on import
if not DEBUG_MODE:
    validate_configuration()
