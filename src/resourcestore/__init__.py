"""Content-addressed resource storage with publishing targets."""

from .errors import (
    BackendUnavailable,
    CollectionPublishError,
    ConfigurationError,
    PublishError,
    ResourceImportError,
)
from .manager import ResourceManager
from .models import PublishedEntry, StoredObject, UploadDescriptor
from .storage import WritableStorage
from .target import Target

__version__ = "0.1.0"

__all__ = [
    "BackendUnavailable",
    "CollectionPublishError",
    "ConfigurationError",
    "PublishError",
    "PublishedEntry",
    "ResourceImportError",
    "ResourceManager",
    "StoredObject",
    "Target",
    "UploadDescriptor",
    "WritableStorage",
]
