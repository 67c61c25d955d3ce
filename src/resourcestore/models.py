"""Data models shared by storages, targets and repositories.

StoredObject is the value passed between a storage and a target; neither keeps
a reference to the other.
"""

import uuid
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .hashing import validate_content_hash


def _new_resource_id() -> str:
    return uuid.uuid4().hex


class StoredObject(BaseModel):
    """One blob imported into a storage. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    resource_id: str = Field(default_factory=_new_resource_id)
    content_hash: str                    # sha1 hex
    size_bytes: int = Field(ge=0)
    secondary_hash: Optional[str] = None  # md5 hex
    display_name: str = ""
    collection_name: str = "persistent"
    relative_publication_path: str = ""  # set for static resources only
    data_uri: Optional[str] = None       # storage path, filled by collection listings

    @field_validator("content_hash")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        """Reject anything that cannot safely be turned into a path."""
        return validate_content_hash(v)


class UploadDescriptor(BaseModel):
    """An upload already materialized as a temporary file."""
    name: str        # client supplied filename
    tmp_name: str    # path of the temporary file


class BackendEntry(BaseModel):
    """One item returned by BackendConnection.list()."""
    path: str
    type: Literal["file", "dir"] = "file"
    size_bytes: int = 0
    mime_type: Optional[str] = None
    timestamp: Optional[float] = None


class PublishedEntry(BaseModel):
    """Where a stored object (or static file) was published on a target."""
    relative_public_path: str
    source_content_hash: Optional[str] = None   # None for static files
    public_uri_override: Optional[str] = None   # explicit relative publication path
