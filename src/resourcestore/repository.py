"""Resource repository contract and an in-memory implementation.

Persistence of resource records belongs to the application. Storages and
targets only need the two queries of ResourceRepository.
"""

import threading
from typing import Dict, List, Protocol, runtime_checkable

from .models import StoredObject


@runtime_checkable
class ResourceRepository(Protocol):
    """Queries the storage layer runs against the application's records."""

    def find_by_collection(self, collection_name: str) -> List[StoredObject]:
        """All records belonging to a collection."""
        ...

    def find_similar_resources(self, obj: StoredObject) -> List[StoredObject]:
        """All records sharing obj's content hash, obj itself included."""
        ...


@runtime_checkable
class MutableResourceRepository(ResourceRepository, Protocol):
    """Repository the ResourceManager can record imports in."""

    def add(self, obj: StoredObject) -> None:
        ...

    def remove(self, obj: StoredObject) -> bool:
        ...


class InMemoryResourceRepository:
    """Thread-safe dict-backed repository, keyed by resource_id."""

    def __init__(self):
        self._records: Dict[str, StoredObject] = {}
        self._lock = threading.Lock()

    def add(self, obj: StoredObject) -> None:
        with self._lock:
            self._records[obj.resource_id] = obj

    def remove(self, obj: StoredObject) -> bool:
        """Drop a record. Returns False if it was not present."""
        with self._lock:
            return self._records.pop(obj.resource_id, None) is not None

    def find_by_collection(self, collection_name: str) -> List[StoredObject]:
        with self._lock:
            return [r for r in self._records.values() if r.collection_name == collection_name]

    def find_similar_resources(self, obj: StoredObject) -> List[StoredObject]:
        with self._lock:
            return [r for r in self._records.values() if r.content_hash == obj.content_hash]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, obj: StoredObject) -> bool:
        return obj.resource_id in self._records
