"""Resource settings loaded from YAML.

Example::

    staging_dir: /var/tmp/resourcestore
    storages:
      persistent:
        driver: local
        driver_options:
          path: /srv/data/persistent
    targets:
      web:
        driver: local
        driver_options:
          path: /srv/www
        path: _Resources/Persistent
        base_uri: https://example.com/_Resources/Persistent/
      cdn:
        kind: s3
        driver_options:
          s3key: ${AWS_ACCESS_KEY_ID}
          s3secret: ${AWS_SECRET_ACCESS_KEY}
          s3region: eu-central-1
          s3bucket: assets
          s3prefix: resources
    collections:
      persistent:
        storage: persistent
        target: web

String values may reference environment variables as ${NAME}.
"""

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigurationError

CONFIG_ENV_VAR = "RESOURCESTORE_CONFIG"
DEFAULT_CONFIG_FILE = "resources.yaml"


class StorageSettings(BaseModel):
    """Settings of one storage."""
    driver: str
    driver_options: Dict[str, Any] = Field(default_factory=dict)
    subdivide_hash_path_segment: bool = True


class TargetSettings(BaseModel):
    """Settings of one publishing target."""
    kind: Literal["filesystem", "s3"] = "filesystem"
    driver: Optional[str] = None
    driver_options: Dict[str, Any] = Field(default_factory=dict)
    path: str = ""
    base_uri: str = ""
    subdivide_hash_path_segment: Optional[bool] = None  # kind decides when unset
    presign_ttl: Optional[int] = None

    @model_validator(mode="after")
    def validate_driver(self):
        """Filesystem targets must name their driver, s3 targets imply it."""
        if self.kind == "filesystem" and not self.driver:
            raise ValueError("driver is required for filesystem targets")
        return self


class CollectionSettings(BaseModel):
    """A collection ties a storage to the target its resources are published on."""
    storage: str
    target: str


class ResourceSettings(BaseModel):
    """All storages, targets and collections of an application."""
    staging_dir: Optional[Path] = None
    storages: Dict[str, StorageSettings] = Field(default_factory=dict)
    targets: Dict[str, TargetSettings] = Field(default_factory=dict)
    collections: Dict[str, CollectionSettings] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_collections(self):
        """Every collection must reference a configured storage and target."""
        for name, collection in self.collections.items():
            if collection.storage not in self.storages:
                raise ValueError(f"collection '{name}' references unknown storage '{collection.storage}'")
            if collection.target not in self.targets:
                raise ValueError(f"collection '{name}' references unknown target '{collection.target}'")
        return self


def _expand_env(value):
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def parse_settings(data: dict) -> ResourceSettings:
    """
    Validate a settings mapping.

    Raises:
        ConfigurationError: If the mapping is not valid settings
    """
    try:
        return ResourceSettings.model_validate(_expand_env(data or {}))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid resource settings:\n{e}") from e


def load_settings(path: Optional[Path] = None) -> ResourceSettings:
    """
    Load settings from a YAML file.

    Resolution order: explicit path > $RESOURCESTORE_CONFIG > ./resources.yaml

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    if path is None:
        path = Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE))
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Resource settings not found: {path}")
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Cannot parse {path}: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping")
    return parse_settings(data)
