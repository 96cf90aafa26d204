"""Unit tests for configuration loading."""

import json
from pathlib import Path

import pytest

from dropsync.config import SyncConfig, load_config
from dropsync.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Make sure credentials from the environment do not leak into tests."""
    for name in (
        "DROPSYNC_ACCESS_KEY_ID",
        "DROPSYNC_SECRET_ACCESS_KEY",
        "DROPSYNC_BUCKET",
        "DROPSYNC_SYNC_DIR",
        "DROPSYNC_ENDPOINT_URL",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


def write_config(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestSyncConfigFromDict:
    """Tests for SyncConfig.from_dict."""

    def test_legacy_layout(self, tmp_path):
        """The s3_info section with sync_dir is accepted."""
        config = SyncConfig.from_dict(
            {
                "s3_info": {
                    "access_key_id": "AKIA",
                    "secret_access_key": "secret",
                    "bucket": "bucket",
                    "sync_dir": "Dropbox",
                }
            },
            base_dir=tmp_path,
        )

        assert config.access_key_id == "AKIA"
        assert config.bucket == "bucket"
        assert config.local_root == tmp_path / "Dropbox"

    def test_flat_layout_with_options(self, tmp_path):
        config = SyncConfig.from_dict(
            {
                "access_key_id": "AKIA",
                "secret_access_key": "secret",
                "bucket": "bucket",
                "local_root": str(tmp_path),
                "prefix": "/backup/",
                "local_interval": 1,
                "remote_interval": "30",
                "ignore": ["*.tmp"],
            }
        )

        assert config.prefix == "backup"
        assert config.local_interval == 1.0
        assert config.remote_interval == 30.0
        assert config.ignore == ["*.tmp"]

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DROPSYNC_BUCKET", "from-env")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "aws-secret")
        config = SyncConfig.from_dict(
            {"bucket": "from-file", "access_key_id": "AKIA", "sync_dir": str(tmp_path)}
        )

        assert config.bucket == "from-env"
        assert config.secret_access_key == "aws-secret"

    def test_missing_sync_dir(self):
        with pytest.raises(ConfigError, match="sync_dir"):
            SyncConfig.from_dict({"bucket": "b"})

    def test_not_an_object(self):
        with pytest.raises(ConfigError):
            SyncConfig.from_dict(["bucket"])

    def test_unknown_keys_ignored(self, tmp_path):
        config = SyncConfig.from_dict({"sync_dir": str(tmp_path), "colour": "blue"})
        assert not hasattr(config, "colour")


class TestValidate:
    """Tests for SyncConfig.validate."""

    def _config(self, root: Path, **kwargs) -> SyncConfig:
        values = {
            "access_key_id": "AKIA",
            "secret_access_key": "secret",
            "bucket": "bucket",
            "local_root": root,
        }
        values.update(kwargs)
        return SyncConfig(**values)

    def test_valid(self, tmp_path):
        self._config(tmp_path).validate()

    def test_missing_credentials(self, tmp_path):
        with pytest.raises(ConfigError, match="secret_access_key"):
            self._config(tmp_path, secret_access_key="").validate()

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            self._config(tmp_path / "nope").validate()

    def test_directory_is_file(self, tmp_path):
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")
        with pytest.raises(ConfigError, match="not a directory"):
            self._config(file_path).validate()

    def test_interval_must_be_positive(self, tmp_path):
        with pytest.raises(ConfigError, match="intervals"):
            self._config(tmp_path, remote_interval=0).validate()


class TestLoadConfig:
    """Tests for load_config."""

    def test_load(self, tmp_path):
        (tmp_path / "Dropbox").mkdir()
        path = write_config(
            tmp_path / "config.json",
            {
                "s3_info": {
                    "access_key_id": "AKIA",
                    "secret_access_key": "secret",
                    "bucket": "bucket",
                    "sync_dir": "Dropbox",
                }
            },
        )

        config = load_config(path)

        assert config.local_root == tmp_path / "Dropbox"

    def test_file_not_found(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(path)

    def test_validation_runs(self, tmp_path):
        path = write_config(tmp_path / "config.json", {"sync_dir": str(tmp_path)})
        with pytest.raises(ConfigError, match="Missing configuration"):
            load_config(path)

    def test_load_yaml_in_s3_info_layout(self, tmp_path):
        (tmp_path / "Dropbox").mkdir()
        path = tmp_path / "config.yaml"
        path.write_text(
            "s3_info:\n"
            "  access_key_id: AKIA\n"
            "  secret_access_key: secret\n"
            "  bucket: my-bucket\n"
            "  sync_dir: Dropbox\n"
            "remote_interval: 30\n",
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.access_key_id == "AKIA"
        assert config.bucket == "my-bucket"
        assert config.local_root == tmp_path / "Dropbox"
        assert config.remote_interval == 30.0

    def test_yml_suffix(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(f"sync_dir: {tmp_path}\nbucket: b\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Missing configuration value"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("s3_info: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(path)
