from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging
import threading
import uuid

from onboarding.core.exceptions import WaitlistFullError
from onboarding.services.identity import Identity

logger = logging.getLogger(__name__)


@dataclass
class WaitlistEntry:
    entry_id: str
    position: int
    identity: Identity
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AdmissionResult:
    entry_id: str
    position: int
    already_existed: bool


class WaitlistStore(ABC):
    """Owner of the waitlist queue, the identity index and the entry records.

    Implementations must run enqueue_or_lookup as one indivisible unit: two
    callers racing on the same identity never both append, and two callers
    racing on the last free slot never both get past capacity. Positions are
    1-based, dense and never change once assigned.
    """

    @abstractmethod
    def enqueue_or_lookup(
        self, identity: Identity, metadata: Optional[Dict[str, Any]], capacity: int
    ) -> AdmissionResult:
        """Admit identity, or return its existing entry and overwrite its metadata.

        Raises WaitlistFullError when identity is new and the queue holds
        capacity entries already.
        """

    @abstractmethod
    def position_of(self, identity: Identity) -> int:
        """Return the 1-based position of identity, or 0 when absent."""

    @abstractmethod
    def exists(self, identity: Identity) -> bool:
        ...

    @abstractmethod
    def position_of_entry(self, entry_id: str) -> int:
        """Return the 1-based position of entry_id, or 0 when absent."""


class InMemoryWaitlistStore(WaitlistStore):
    """Process-local store; a single lock serialises every operation."""

    def __init__(self):
        self._lock = threading.Lock()
        self._queue: List[str] = []
        self._index: Dict[Identity, str] = {}
        self._entries: Dict[str, WaitlistEntry] = {}

    def enqueue_or_lookup(self, identity, metadata, capacity):
        metadata = dict(metadata or {})
        with self._lock:
            existing_id = self._index.get(identity)
            if existing_id is not None:
                entry = self._entries[existing_id]
                entry.metadata = metadata
                return AdmissionResult(entry.entry_id, entry.position, True)

            if len(self._queue) >= capacity:
                raise WaitlistFullError(capacity)

            entry_id = str(uuid.uuid4())
            self._queue.append(entry_id)
            entry = WaitlistEntry(entry_id, len(self._queue), identity, metadata)
            self._entries[entry_id] = entry
            self._index[identity] = entry_id
        logger.debug(f"Admitted {identity.kind.value} entry {entry_id} at position {entry.position}")
        return AdmissionResult(entry.entry_id, entry.position, False)

    def position_of(self, identity):
        with self._lock:
            entry_id = self._index.get(identity)
            if entry_id is None:
                return 0
            return self._entries[entry_id].position

    def exists(self, identity):
        with self._lock:
            return identity in self._index

    def position_of_entry(self, entry_id):
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.position if entry else 0

    def get_entry(self, entry_id: str) -> Optional[WaitlistEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                return None
            return WaitlistEntry(entry.entry_id, entry.position, entry.identity, dict(entry.metadata))

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)
