"""Writable, content-addressed resource storage.

Every import follows the same protocol:

1. Drain the source into a local staging file
2. Compute SHA-1, MD5 and size over the staged copy (never the live stream)
3. Derive the storage path from the SHA-1
4. Write-if-absent: under a per-hash lock, skip the write when the backend
   already has the path (deduplication), otherwise create the parent
   directories and write the staged bytes
5. Return a StoredObject, whether or not bytes were written

Backend connections write atomically, so a failed import never leaves a
truncated blob at the canonical path.
"""

import contextlib
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Union
from urllib.parse import unquote, urlparse

import portalocker

from .addressing import derive_path, parent_path
from .backends.base import BackendConnection
from .backends.factory import ConnectionFactory
from .errors import BackendUnavailable, ConfigurationError, ResourceImportError
from .hashing import compute_file_digests, is_content_hash
from .models import StoredObject, UploadDescriptor
from .repository import ResourceRepository

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 300


def _default_staging_dir() -> Path:
    return Path(tempfile.gettempdir()) / "resourcestore"


def _local_source_path(source: str) -> Path:
    """Accept plain paths as well as file:// URIs."""
    parsed = urlparse(source)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return Path(source)


class WritableStorage:
    """
    A named resource storage on top of one backend connection.

    Options:
        driver: Backend driver name ("local", "ftp", "s3")
        driver_options: Mapping passed to the connection factory
        subdivide_hash_path_segment: Shard storage paths (default True)

    Attributes:
        name: Storage name from the settings
        connection: The backend connection this storage owns
    """

    def __init__(
        self,
        name: str,
        options: dict,
        factory: ConnectionFactory,
        repository: Optional[ResourceRepository] = None,
        staging_dir: Optional[Path] = None,
    ):
        """
        Initialize storage and open its connection.

        Raises:
            ConfigurationError: If driver or driver_options are missing
        """
        self.name = name
        self.options = dict(options)
        driver = self.options.get("driver")
        driver_options = self.options.get("driver_options")
        if not driver or not isinstance(driver_options, dict):
            raise ConfigurationError(
                f'The storage "{name}" needs a "driver" and "driver_options" set to be initialized'
            )
        self.driver = driver
        self.subdivide = bool(self.options.get("subdivide_hash_path_segment", True))
        self.repository = repository
        self.staging_dir = Path(staging_dir) if staging_dir else _default_staging_dir()
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.connection: BackendConnection = factory.create(driver, driver_options)

    def storage_path(self, content_hash: str) -> str:
        """Canonical backend path for a content hash."""
        return derive_path(content_hash, self.subdivide)

    # ---- Import ------------------------------------------------------------

    def import_resource(
        self,
        source: Union[str, Path, BinaryIO],
        collection_name: str,
    ) -> StoredObject:
        """
        Import from a local path / file:// URI or from a binary stream.

        For a path the basename becomes the display name; streams carry no name.

        Raises:
            ResourceImportError: If staging or the backend write fails
        """
        if isinstance(source, (str, Path)):
            src = _local_source_path(str(source))
            staged = self._staging_file()
            try:
                shutil.copyfile(src, staged)
            except OSError as e:
                with contextlib.suppress(OSError):
                    staged.unlink()
                raise ResourceImportError(
                    f'Could not copy the file from "{src}" to temporary file "{staged}".'
                ) from e
            return self._import_staged(staged, collection_name, src.name)
        return self.import_from_stream(source, collection_name)

    def import_from_stream(
        self,
        reader: BinaryIO,
        collection_name: str,
        display_name: str = "",
    ) -> StoredObject:
        """
        Import the full content of a readable binary stream.

        Raises:
            ResourceImportError: If staging or the backend write fails
        """
        staged = self._staging_file()
        try:
            with staged.open("wb") as f:
                shutil.copyfileobj(reader, f)
        except (OSError, ValueError, TypeError) as e:
            with contextlib.suppress(OSError):
                staged.unlink()
            raise ResourceImportError(
                f'Could not import the content stream to temporary file "{staged}".'
            ) from e
        return self._import_staged(staged, collection_name, display_name)

    def import_from_content(
        self,
        content: bytes,
        collection_name: str,
        display_name: str,
    ) -> StoredObject:
        """
        Import in-memory content.

        The display name is what users see; its extension decides the media type.

        Raises:
            ResourceImportError: If staging or the backend write fails
        """
        staged = self._staging_file()
        try:
            staged.write_bytes(content)
        except OSError as e:
            with contextlib.suppress(OSError):
                staged.unlink()
            raise ResourceImportError(
                f'Could not import the content to temporary file "{staged}".'
            ) from e
        return self._import_staged(staged, collection_name, display_name)

    def import_from_upload(
        self,
        descriptor: UploadDescriptor,
        collection_name: str,
    ) -> StoredObject:
        """
        Import an upload that is already materialized as a temporary file.

        The temporary file belongs to the caller and is left in place.

        Raises:
            ResourceImportError: If the temporary file no longer exists or the
                backend write fails
        """
        upload = Path(descriptor.tmp_name)
        if not upload.is_file():
            raise ResourceImportError(
                f'The temporary file "{upload}" of the file upload does not exist (anymore).'
            )
        return self._import_file(upload, collection_name, Path(descriptor.name).name)

    def _staging_file(self) -> Path:
        return self.staging_dir / f"ResourceImport_{uuid.uuid4().hex}"

    def _import_staged(self, staged: Path, collection_name: str, display_name: str) -> StoredObject:
        try:
            return self._import_file(staged, collection_name, display_name)
        finally:
            with contextlib.suppress(OSError):
                staged.unlink()

    def _import_file(self, local: Path, collection_name: str, display_name: str) -> StoredObject:
        try:
            digests = compute_file_digests(local)
        except OSError as e:
            raise ResourceImportError(f'Could not read staged file "{local}": {e}') from e

        self._move_to_storage(local, digests.sha1)
        obj = StoredObject(
            content_hash=digests.sha1,
            size_bytes=digests.size,
            secondary_hash=digests.md5,
            display_name=display_name,
            collection_name=collection_name,
        )
        logger.debug("Imported %s into storage %s (%d bytes)", obj.content_hash, self.name, obj.size_bytes)
        return obj

    @contextlib.contextmanager
    def _hash_lock(self, content_hash: str) -> Iterator[None]:
        """Serialize writers of one hash across threads and processes."""
        lock_dir = self.staging_dir / "locks"
        lock_dir.mkdir(parents=True, exist_ok=True)
        lock_path = lock_dir / f"{self.name}-{content_hash}.lock"
        try:
            lock = portalocker.Lock(str(lock_path), "w", timeout=LOCK_TIMEOUT)
            lock.acquire()
        except portalocker.LockException as e:
            raise ResourceImportError(f"Timed out waiting for import lock of {content_hash}") from e
        try:
            yield
        finally:
            lock.release()

    def _move_to_storage(self, local: Path, content_hash: str) -> str:
        """Write a local file to its canonical path unless already present."""
        path = self.storage_path(content_hash)
        with self._hash_lock(content_hash):
            try:
                # Re-check under the lock
                if self.connection.exists(path):
                    logger.debug("Content %s already in storage %s, skipping write", content_hash, self.name)
                    return path
                self.connection.create_dir(parent_path(path))
                with local.open("rb") as f:
                    written = self.connection.write_stream(path, f)
            except (BackendUnavailable, OSError) as e:
                raise ResourceImportError(
                    f'The temporary file could not be moved to the final target "{path}": {e}'
                ) from e
        if not written:
            raise ResourceImportError(
                f'The temporary file could not be moved to the final target "{path}".'
            )
        logger.debug("Stored %s in storage %s at %s", content_hash, self.name, path)
        return path

    # ---- Delete / read -----------------------------------------------------

    def delete(self, obj: StoredObject) -> bool:
        """
        Remove the backend blob of obj.

        Best effort: returns False instead of raising on any backend failure.
        Callers decide whether the blob is still referenced.
        """
        path = self.storage_path(obj.content_hash)
        try:
            removed = self.connection.delete(path)
        except Exception as e:
            logger.warning("Could not delete %s from storage %s: %s", path, self.name, e)
            return False
        logger.debug("Deleted %s from storage %s: %s", path, self.name, removed)
        return removed

    def get_stream(self, obj: StoredObject) -> Optional[BinaryIO]:
        """Readable stream of obj's content, or None if the blob is missing."""
        return self.connection.read_stream(self.storage_path(obj.content_hash))

    def get_stream_by_path(self, relative_path: str) -> Optional[BinaryIO]:
        """Readable stream of a path relative to the storage root, or None."""
        return self.connection.read_stream(relative_path)

    # ---- Enumeration -------------------------------------------------------

    def list_objects(self) -> List[StoredObject]:
        """
        Every blob in the backend, rebuilt from the backend listing.

        Walks the whole tree, so expect this to be slow on large object stores.
        Only file leaves named by a content hash are reported.
        """
        objects = []
        for entry in self.connection.list("", recursive=True):
            if entry.type != "file":
                continue
            leaf = entry.path.rsplit("/", 1)[-1]
            if not is_content_hash(leaf):
                logger.debug("Skipping non-addressed entry %s in storage %s", entry.path, self.name)
                continue
            objects.append(StoredObject(
                content_hash=leaf,
                size_bytes=entry.size_bytes,
                display_name=leaf,
                collection_name="",
                data_uri=entry.path,
            ))
        return objects

    def list_objects_in_collection(self, collection_name: str) -> List[StoredObject]:
        """
        Objects of a collection, as recorded by the repository.

        Raises:
            ConfigurationError: If the storage was built without a repository
        """
        if self.repository is None:
            raise ConfigurationError(f'The storage "{self.name}" has no resource repository')
        return [
            obj.model_copy(update={"data_uri": self.storage_path(obj.content_hash)})
            for obj in self.repository.find_by_collection(collection_name)
        ]
