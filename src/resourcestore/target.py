"""Publishing targets.

A target copies stored resources into a public area of its own backend
connection and knows how to build URIs for them. Paths are derived by the
content address scheme, so a publication path is unique per content and
publishing is write-if-absent.

The way URIs are built differs per backend family and is chosen from the
target's "kind" when it is constructed:

- filesystem (default): base_uri + relative path
- s3: object URL from the S3 connection; publication root is the bucket prefix
"""

import logging
from typing import BinaryIO, List, Optional, Protocol, Sequence, Tuple

from .addressing import check_relative_path, join_path, parent_path, publication_path
from .backends.base import BackendConnection
from .backends.factory import ConnectionFactory
from .errors import (
    BackendUnavailable,
    CollectionPublishError,
    ConfigurationError,
    InvalidPathError,
    PublishError,
)
from .models import PublishedEntry, StoredObject
from .repository import ResourceRepository

logger = logging.getLogger(__name__)

KINDS = ("filesystem", "s3")


class ResourceSource(Protocol):
    """Anything that can hand out the content of a stored object."""

    def get_stream(self, obj: StoredObject) -> Optional[BinaryIO]:
        ...


class UriBuilder(Protocol):
    """Builds caller facing URIs for published paths."""

    def static_uri(self, relative_path: str) -> Optional[str]:
        ...

    def persistent_uri(self, relative_path: str) -> Optional[str]:
        ...


class BaseUriBuilder:
    """URIs relative to a configured public base URI.

    Without a base URI there is nothing meaningful to return, so both
    methods return None.
    """

    def __init__(self, base_uri: str = ""):
        self.base_uri = base_uri

    def _build(self, relative_path: str) -> Optional[str]:
        if not self.base_uri:
            return None
        return f"{self.base_uri.rstrip('/')}/{relative_path.lstrip('/')}"

    def static_uri(self, relative_path: str) -> Optional[str]:
        return self._build(relative_path)

    def persistent_uri(self, relative_path: str) -> Optional[str]:
        return self._build(relative_path)


class ObjectStoreUriBuilder:
    """URIs handed out by an object store connection."""

    def __init__(self, connection, presign_ttl: Optional[int] = None):
        if not hasattr(connection, "object_url"):
            raise ConfigurationError(
                "The s3 target kind needs a connection that provides object URLs"
            )
        self.connection = connection
        self.presign_ttl = presign_ttl

    def static_uri(self, relative_path: str) -> Optional[str]:
        return self.connection.object_url(relative_path, expires_in=self.presign_ttl)

    def persistent_uri(self, relative_path: str) -> Optional[str]:
        return self.connection.object_url(relative_path, expires_in=self.presign_ttl)


class Target:
    """
    A named publishing target on top of one backend connection.

    Options:
        driver: Backend driver name
        driver_options: Mapping passed to the connection factory
        kind: "filesystem" (default) or "s3"
        path: Publication root inside the backend (ignored for s3)
        base_uri: Public URI of the publication root (filesystem kind)
        subdivide_hash_path_segment: Shard publication paths
            (default True, False for the s3 kind)
        presign_ttl: Presigned URL lifetime in seconds (s3 kind)
    """

    def __init__(
        self,
        name: str,
        options: dict,
        factory: ConnectionFactory,
        repository: Optional[ResourceRepository] = None,
    ):
        """
        Initialize target, open its connection and create the publication root.

        Raises:
            ConfigurationError: If driver, driver_options or kind are invalid
        """
        self.name = name
        self.options = dict(options)
        driver = self.options.get("driver")
        driver_options = self.options.get("driver_options")
        kind = self.options.get("kind", "filesystem")
        if kind not in KINDS:
            raise ConfigurationError(f'The target "{name}" has unknown kind "{kind}"')
        if kind == "s3" and not driver:
            driver = "s3"
        if not driver or not isinstance(driver_options, dict):
            raise ConfigurationError(
                f'The target "{name}", needs a "driver" and "driverOptions" set to be initialized'
            )

        self.kind = kind
        self.driver = driver
        self.repository = repository
        if kind == "s3":
            # S3 does not support a "path"
            self._path = ""
            self._subdivide = bool(self.options.get("subdivide_hash_path_segment", False))
        else:
            self._path = (self.options.get("path") or "").strip("/")
            self._subdivide = bool(self.options.get("subdivide_hash_path_segment", True))

        self.connection: BackendConnection = factory.create(driver, driver_options)
        try:
            self.connection.create_dir(self._path)
        except BackendUnavailable as e:
            raise ConfigurationError(f'The target "{name}" cannot create its root: {e}') from e

        if kind == "s3":
            self.uri_builder: UriBuilder = ObjectStoreUriBuilder(
                self.connection, self.options.get("presign_ttl")
            )
        else:
            self.uri_builder = BaseUriBuilder(self.options.get("base_uri", ""))

    @property
    def path(self) -> str:
        return self._path

    @property
    def subdivide(self) -> bool:
        return self._subdivide

    def relative_publication_path(self, obj: StoredObject) -> str:
        """Public path of obj relative to the publication root."""
        return publication_path(obj, self._subdivide)

    def _target_path(self, relative_path: str) -> str:
        check_relative_path(relative_path)
        return join_path(self._path, relative_path)

    # ---- Publish -----------------------------------------------------------

    def publish(self, obj: StoredObject, source: ResourceSource) -> PublishedEntry:
        """
        Publish obj, copying its bytes from source if not already published.

        Raises:
            PublishError: If the content cannot be read or written
        """
        try:
            relative = self.relative_publication_path(obj)
        except InvalidPathError as e:
            raise PublishError(f'Could not publish {obj.content_hash} to target "{self.name}": {e}') from e
        try:
            stream = source.get_stream(obj)
        except BackendUnavailable as e:
            raise PublishError(f"Could not read {obj.content_hash} for publishing: {e}") from e
        if stream is None:
            raise PublishError(
                f'Could not publish "{obj.display_name}" ({obj.content_hash}) '
                f'to target "{self.name}": the stored content is missing'
            )
        try:
            self._publish_stream(stream, relative)
        finally:
            stream.close()
        return PublishedEntry(
            relative_public_path=relative,
            source_content_hash=obj.content_hash,
            public_uri_override=obj.relative_publication_path or None,
        )

    def publish_file(self, stream: BinaryIO, relative_path: str) -> PublishedEntry:
        """
        Publish a static, non-hash-addressed file under relative_path.

        Raises:
            PublishError: If the write fails
        """
        self._publish_stream(stream, relative_path)
        return PublishedEntry(relative_public_path=relative_path)

    def publish_collection(
        self,
        members: Sequence[StoredObject],
        source: ResourceSource,
    ) -> List[PublishedEntry]:
        """
        Publish every member, continuing past failures.

        Raises:
            CollectionPublishError: After all members were attempted, if any failed
        """
        published = []
        failures: List[Tuple[StoredObject, Exception]] = []
        for obj in members:
            try:
                published.append(self.publish(obj, source))
            except PublishError as e:
                logger.warning("Target %s: failed to publish %s: %s", self.name, obj.content_hash, e)
                failures.append((obj, e))
        if failures:
            raise CollectionPublishError(failures)
        return published

    def _publish_stream(self, stream: BinaryIO, relative_path: str) -> None:
        try:
            target_path = self._target_path(relative_path)
            if self.connection.exists(target_path):
                return
            self.connection.create_dir(parent_path(target_path))
            written = self.connection.write_stream(target_path, stream)
        except (BackendUnavailable, OSError, ValueError) as e:
            raise PublishError(f'Could not publish "{relative_path}" to target "{self.name}": {e}') from e
        if not written:
            raise PublishError(f'Could not publish "{relative_path}" to target "{self.name}"')
        logger.debug("Target %s: published file (file: %s)", self.name, relative_path)

    # ---- Unpublish ---------------------------------------------------------

    def unpublish(self, obj: StoredObject) -> bool:
        """
        Remove the published file of obj unless other records still use it.

        The repository returns every record with obj's hash; obj itself is
        left out, and any remaining record keeps the file published.

        Returns:
            False if the backend failed to delete, True otherwise
        """
        if self.repository is not None:
            others = [
                r for r in self.repository.find_similar_resources(obj)
                if r.resource_id != obj.resource_id
            ]
            if others:
                logger.debug(
                    "Target %s: keeping %s, still used by %d other resource(s)",
                    self.name, obj.content_hash, len(others),
                )
                return True
        try:
            relative = self.relative_publication_path(obj)
        except InvalidPathError as e:
            logger.warning("Target %s: cannot unpublish %s: %s", self.name, obj.content_hash, e)
            return False
        return self.unpublish_file(relative)

    def unpublish_file(self, relative_path: str) -> bool:
        """
        Delete a published file. Missing files count as unpublished.

        Empty parent directories are left behind.
        """
        try:
            target_path = self._target_path(relative_path)
            if not self.connection.exists(target_path):
                return True
            removed = self.connection.delete(target_path)
        except Exception as e:
            logger.warning("Target %s: could not unpublish %s: %s", self.name, relative_path, e)
            return False
        logger.debug("Target %s: unpublished file (file: %s)", self.name, relative_path)
        return removed

    # ---- URIs --------------------------------------------------------------

    def get_public_static_resource_uri(self, relative_path: str) -> Optional[str]:
        """Public URI of a static file published under relative_path."""
        return self.uri_builder.static_uri(relative_path)

    def get_public_persistent_resource_uri(self, obj: StoredObject) -> Optional[str]:
        """Public URI of a published stored object."""
        return self.uri_builder.persistent_uri(self.relative_publication_path(obj))
