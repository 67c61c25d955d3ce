"""Tests for resource settings loading."""

import pytest

from resourcestore.config import (
    ResourceSettings,
    TargetSettings,
    load_settings,
    parse_settings,
)
from resourcestore.errors import ConfigurationError

SETTINGS_YAML = """\
staging_dir: {tmp}/staging
storages:
  persistent:
    driver: local
    driver_options:
      path: {tmp}/data
targets:
  web:
    driver: local
    driver_options:
      path: {tmp}/www
    path: _Resources/Persistent
    base_uri: https://example.com/_Resources/Persistent/
  cdn:
    kind: s3
    driver_options:
      s3key: ${{TEST_S3_KEY}}
collections:
  persistent:
    storage: persistent
    target: web
"""


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "resources.yaml"
    path.write_text(SETTINGS_YAML.format(tmp=tmp_path))
    return path


class TestLoadSettings:
    """Test YAML loading and file resolution."""

    def test_load(self, settings_file, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_S3_KEY", "AKIA123")

        settings = load_settings(settings_file)

        assert settings.staging_dir == tmp_path / "staging"
        assert settings.storages["persistent"].driver == "local"
        assert settings.storages["persistent"].subdivide_hash_path_segment is True
        assert settings.targets["web"].path == "_Resources/Persistent"
        assert settings.targets["cdn"].kind == "s3"
        assert settings.targets["cdn"].driver_options["s3key"] == "AKIA123"
        assert settings.collections["persistent"].target == "web"

    def test_env_var_location(self, settings_file, monkeypatch):
        monkeypatch.setenv("RESOURCESTORE_CONFIG", str(settings_file))
        assert "persistent" in load_settings().storages

    def test_default_location(self, settings_file, monkeypatch):
        monkeypatch.delenv("RESOURCESTORE_CONFIG", raising=False)
        monkeypatch.chdir(settings_file.parent)
        assert "web" in load_settings().targets

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("storages: [unclosed")
        with pytest.raises(ConfigurationError, match="Cannot parse"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_settings(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == ResourceSettings()


class TestValidation:
    """Test settings validators."""

    def test_collection_unknown_storage(self):
        with pytest.raises(ConfigurationError, match="unknown storage"):
            parse_settings({
                "targets": {"web": {"driver": "local"}},
                "collections": {"c": {"storage": "missing", "target": "web"}},
            })

    def test_collection_unknown_target(self):
        with pytest.raises(ConfigurationError, match="unknown target"):
            parse_settings({
                "storages": {"s": {"driver": "local"}},
                "collections": {"c": {"storage": "s", "target": "missing"}},
            })

    def test_filesystem_target_needs_driver(self):
        with pytest.raises(ValueError, match="driver is required"):
            TargetSettings(kind="filesystem")

    def test_s3_target_implies_driver(self):
        settings = TargetSettings(kind="s3")
        assert settings.driver is None
        assert settings.subdivide_hash_path_segment is None

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"targets": {"t": {"kind": "dropbox", "driver": "local"}}})

    def test_storage_needs_driver(self):
        with pytest.raises(ConfigurationError):
            parse_settings({"storages": {"s": {"driver_options": {}}}})
