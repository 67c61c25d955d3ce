"""Resource manager wiring storages, targets and collections together."""

import logging
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Union

from .backends.factory import ConnectionFactory
from .config import ResourceSettings
from .errors import ConfigurationError
from .models import PublishedEntry, StoredObject, UploadDescriptor
from .repository import InMemoryResourceRepository, MutableResourceRepository
from .storage import WritableStorage
from .target import Target

logger = logging.getLogger(__name__)


class ResourceManager:
    """
    Builds every configured storage and target over one connection factory
    and runs the import / publish / delete lifecycle of resources.

    Storages and targets are created eagerly, so configuration errors
    surface when the manager is built rather than on first use.
    """

    def __init__(
        self,
        settings: ResourceSettings,
        repository: Optional[MutableResourceRepository] = None,
        staging_dir: Optional[Path] = None,
        factory: Optional[ConnectionFactory] = None,
    ):
        self.settings = settings
        self.repository = repository if repository is not None else InMemoryResourceRepository()
        self.factory = factory or ConnectionFactory()
        staging = staging_dir or settings.staging_dir

        self.storages: Dict[str, WritableStorage] = {
            name: WritableStorage(
                name,
                cfg.model_dump(),
                self.factory,
                repository=self.repository,
                staging_dir=staging,
            )
            for name, cfg in settings.storages.items()
        }
        self.targets: Dict[str, Target] = {
            name: Target(name, cfg.model_dump(exclude_none=True), self.factory, repository=self.repository)
            for name, cfg in settings.targets.items()
        }

    # ---- Lookup ------------------------------------------------------------

    def get_storage(self, collection_name: str) -> WritableStorage:
        return self.storages[self._collection(collection_name).storage]

    def get_target(self, collection_name: str) -> Target:
        return self.targets[self._collection(collection_name).target]

    def _collection(self, collection_name: str):
        collection = self.settings.collections.get(collection_name)
        if collection is None:
            raise ConfigurationError(f"Unknown resource collection: {collection_name!r}")
        return collection

    # ---- Import ------------------------------------------------------------

    def import_resource(self, source: Union[str, Path, BinaryIO], collection_name: str) -> StoredObject:
        """Import a local file or stream, record it and publish it."""
        obj = self.get_storage(collection_name).import_resource(source, collection_name)
        return self._register(obj)

    def import_resource_from_content(self, content: bytes, filename: str, collection_name: str) -> StoredObject:
        """Import in-memory content, record it and publish it."""
        obj = self.get_storage(collection_name).import_from_content(content, collection_name, filename)
        return self._register(obj)

    def import_uploaded_resource(self, upload: UploadDescriptor, collection_name: str) -> StoredObject:
        """Import a materialized upload, record it and publish it."""
        obj = self.get_storage(collection_name).import_from_upload(upload, collection_name)
        return self._register(obj)

    def _register(self, obj: StoredObject) -> StoredObject:
        self.repository.add(obj)
        self.publish(obj)
        return obj

    # ---- Publish -----------------------------------------------------------

    def publish(self, obj: StoredObject) -> PublishedEntry:
        """Publish obj to its collection's target."""
        return self.get_target(obj.collection_name).publish(obj, self.get_storage(obj.collection_name))

    def publish_collection(self, collection_name: str) -> List[PublishedEntry]:
        """Publish every recorded member of a collection (best effort)."""
        storage = self.get_storage(collection_name)
        members = storage.list_objects_in_collection(collection_name)
        return self.get_target(collection_name).publish_collection(members, storage)

    def get_public_uri(self, obj: StoredObject) -> Optional[str]:
        return self.get_target(obj.collection_name).get_public_persistent_resource_uri(obj)

    # ---- Delete ------------------------------------------------------------

    def delete_resource(self, obj: StoredObject, unpublish: bool = True) -> bool:
        """
        Forget a resource and clean up its published file and blob.

        Both the published file and the stored blob are kept while another
        record shares the content hash. Best effort: returns False if any
        cleanup step failed, never raises for backend failures.
        """
        ok = True
        if unpublish:
            ok = self.get_target(obj.collection_name).unpublish(obj)
        self.repository.remove(obj)

        if self.repository.find_similar_resources(obj):
            logger.debug("Keeping blob %s, still referenced", obj.content_hash)
            return ok
        return self.get_storage(obj.collection_name).delete(obj) and ok

    def close(self) -> None:
        """Tear down all cached backend connections."""
        self.factory.close()

    def __enter__(self) -> "ResourceManager":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
