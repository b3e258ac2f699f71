"""
Utility functions and decorators for the ZK age credential system.

This module provides the helpers shared across the protocol: logging setup
with redaction of private data, a timing decorator for the heavy proving
and verifying calls, credential identifier generation, canonical JSON and
base64url encoding.
"""

import base64
import binascii
import functools
import hashlib
import json
import logging
import sys
import time
import uuid
from typing import Any, Callable, MutableMapping, TypeVar, Union

import structlog

from .constants import CREDENTIAL_ID_PREFIX, REDACTED_LOG_KEYS

# Initialize structured logger
logger = structlog.get_logger(__name__)

# Type variable for generic decorators
F = TypeVar("F", bound=Callable[..., Any])

REDACTED = "[REDACTED]"


def redact_private_fields(
    _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """
    structlog processor that scrubs private birth data from log events.

    Any event key naming the birth date or birth year is replaced by a
    placeholder before rendering, whatever module emitted it.
    """
    for key in REDACTED_LOG_KEYS:
        if key in event_dict:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: str = "INFO", structured: bool = True) -> None:
    """
    Configure structlog for the whole process.

    Events are written to stderr; stdout is left to command output.

    Parameters
    ----------
    level : str, default="INFO"
        Minimum log level name.
    structured : bool, default=True
        Render JSON lines when True, human-readable console output otherwise.
    """
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if structured
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_private_fields,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def timer(func: F) -> F:
    """
    Decorator to measure and log function execution time.

    Parameters
    ----------
    func : Callable
        Function to be timed.

    Returns
    -------
    Callable
        Wrapped function with timing capability.

    Examples
    --------
    >>> @timer
    ... def slow_function():
    ...     time.sleep(1)
    ...     return "done"
    >>> result = slow_function()  # Logs execution time
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()

        try:
            result = func(*args, **kwargs)
            execution_time = (time.perf_counter() - start_time) * 1000

            logger.debug(
                "Function execution completed",
                function_name=func.__name__,
                module=func.__module__,
                execution_time_ms=execution_time,
                success=True,
            )

            return result

        except Exception as e:
            execution_time = (time.perf_counter() - start_time) * 1000

            # Only the error type: messages may be long and are logged by callers
            logger.debug(
                "Function execution failed",
                function_name=func.__name__,
                module=func.__module__,
                execution_time_ms=execution_time,
                error_type=type(e).__name__,
                success=False,
            )

            raise

    return wrapper  # type: ignore[return-value]


def generate_credential_id() -> str:
    """
    Generate a collision-resistant credential identifier.

    Returns
    -------
    str
        A ``urn:uuid:`` URN backed by 122 random bits.

    Examples
    --------
    >>> generate_credential_id()  # doctest: +SKIP
    'urn:uuid:3f1c0d6e-8f0b-4c53-9b43-0b8e8c1f2d7a'
    """
    return f"{CREDENTIAL_ID_PREFIX}{uuid.uuid4()}"


def canonical_json(data: Any) -> bytes:
    """Return canonical JSON bytes (sorted keys, no whitespace, UTF-8)."""
    return json.dumps(
        data, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def hash_data(data: Union[str, bytes], algorithm: str = "sha256") -> str:
    """
    Generate a hex digest of data.

    Parameters
    ----------
    data : Union[str, bytes]
        Data to hash.
    algorithm : str, default="sha256"
        Hashing algorithm to use.

    Returns
    -------
    str
        Hexadecimal hash string.

    Raises
    ------
    ValueError
        If algorithm is not supported.
    """
    if algorithm not in hashlib.algorithms_available:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    if isinstance(data, str):
        data = data.encode("utf-8")

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    """
    Decode unpadded base64url text.

    Raises
    ------
    ValueError
        If the text is not valid base64url.
    """
    padding = "=" * ((4 - len(text) % 4) % 4)
    try:
        return base64.b64decode(
            (text + padding).encode("ascii"), altchars=b"-_", validate=True
        )
    except (UnicodeEncodeError, binascii.Error) as e:
        raise ValueError(f"Invalid base64url data: {e}") from e


