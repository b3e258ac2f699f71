"""
In-memory credential wallet for the ZK age credential system.

A wallet is the append-only, insertion-ordered collection of credentials
held by one subject. Appends are serialized by a lock so a wallet can be
shared between worker threads.
"""

import threading
from typing import Any, Dict, Iterator, List, Tuple
import structlog

from .data_models import Credential

# Initialize structured logger
logger = structlog.get_logger(__name__)


class Wallet:
    """
    Append-only sequence of credentials owned by one subject.

    Parameters
    ----------
    owner : str
        Identifier of the subject or agent holding the wallet.
    """

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._credentials: List[Credential] = []
        self._lock = threading.Lock()

    def append(self, credential: Credential) -> None:
        """Store a credential after all previously appended ones."""
        with self._lock:
            self._credentials.append(credential)
            count = len(self._credentials)

        logger.debug(
            "Credential stored", owner=self.owner, credential_id=credential.id, count=count
        )

    @property
    def credentials(self) -> Tuple[Credential, ...]:
        """Snapshot of the stored credentials in insertion order."""
        with self._lock:
            return tuple(self._credentials)

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self.credentials)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "credentials": [c.to_dict() for c in self.credentials],
        }
