"""
Bounded worker pool for issuance and verification.

Proving is CPU-bound and independent issue/verify calls are embarrassingly
parallel, so they are scheduled on a fixed-size thread pool. A proof that
exceeds its timeout is abandoned: its cancel event is set, so the backend
stops at its next checkpoint instead of finishing work nobody will read.

Cryptographic outcomes are never retried here; a false predicate or an
invalid proof is a deterministic function of the inputs.
"""

import concurrent.futures
import threading
from typing import Any, List, Mapping, Optional, Sequence
import structlog

from . import config
from .data_models import Credential, VerificationResult
from .exceptions import ProofTimeoutError
from .issuer import CredentialIssuer
from .verifier import CredentialVerifier

# Initialize structured logger
logger = structlog.get_logger(__name__)


class ProofWorkerPool:
    """
    Thread pool running issuance and verification with timeouts.

    The issuer and verifier must share a registry that is already READY;
    the registry is read-only from here on, so no further locking is needed.

    Parameters
    ----------
    issuer : CredentialIssuer
        Issuer used for ``issue`` calls.
    verifier : CredentialVerifier
        Verifier used for ``verify_many`` calls.
    max_workers : Optional[int], default=None
        Pool size. Defaults to ``config.MAX_WORKERS``.
    timeout : Optional[float], default=None
        Default proof timeout in seconds. Defaults to
        ``config.PROOF_TIMEOUT_SECONDS``.

    Examples
    --------
    >>> with ProofWorkerPool(issuer, verifier, max_workers=4) as pool:
    ...     credential = pool.issue({"birthDate": "1984-01-01"})
    ...     results = pool.verify_many([credential])
    """

    def __init__(
        self,
        issuer: CredentialIssuer,
        verifier: CredentialVerifier,
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.issuer = issuer
        self.verifier = verifier
        self.max_workers = max_workers or config.MAX_WORKERS
        self.timeout = timeout if timeout is not None else config.PROOF_TIMEOUT_SECONDS
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="zk-proof"
        )

        logger.info(
            "ProofWorkerPool initialized",
            max_workers=self.max_workers,
            timeout_seconds=self.timeout,
        )

    def issue(
        self, subject_claims: Mapping[str, Any], timeout: Optional[float] = None
    ) -> Credential:
        """
        Issue a credential on the pool, abandoning it after ``timeout``.

        Raises
        ------
        ProofTimeoutError
            If the proof is not ready in time; the in-flight work is cancelled.
        IssuanceError
            Any issuance error raised by the issuer, unchanged.
        """
        timeout = timeout if timeout is not None else self.timeout
        cancel_event = threading.Event()
        future = self._executor.submit(
            self.issuer.issue, subject_claims, None, cancel_event
        )

        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            cancel_event.set()
            future.cancel()
            logger.warning("Proof generation abandoned", timeout_seconds=timeout)
            raise ProofTimeoutError(timeout) from None

    def verify_many(self, credentials: Sequence[Credential]) -> List[VerificationResult]:
        """Verify credentials concurrently; results are in input order."""
        futures = [self._executor.submit(self.verifier.verify, c) for c in credentials]
        return [future.result() for future in futures]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "ProofWorkerPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
