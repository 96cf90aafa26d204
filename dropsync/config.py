"""Configuration loading for dropsync.

Configuration is a JSON or YAML file. Both the flat layout and the legacy
``s3_info`` layout (the ``config.yaml`` of earlier releases) are accepted::

    {
        "s3_info": {
            "access_key_id": "AKIA...",
            "secret_access_key": "...",
            "bucket": "my-bucket",
            "sync_dir": "Dropbox"
        },
        "local_interval": 2,
        "remote_interval": 10
    }

Credentials and paths can be overridden from the environment, which keeps
secrets out of the file.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigError
from .utils import DEFAULT_ECHO_TTL, DEFAULT_LOCAL_INTERVAL, DEFAULT_REMOTE_INTERVAL

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "dropsync" / "config.json"
YAML_SUFFIXES = (".yaml", ".yml")

# Environment variable -> config key, first match wins
ENV_OVERRIDES: dict[str, tuple[str, ...]] = {
    "access_key_id": ("DROPSYNC_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    "secret_access_key": ("DROPSYNC_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
    "bucket": ("DROPSYNC_BUCKET",),
    "local_root": ("DROPSYNC_SYNC_DIR",),
    "endpoint_url": ("DROPSYNC_ENDPOINT_URL",),
}


@dataclass
class SyncConfig:
    """Everything the sync engine needs to run.

    Passed explicitly into :class:`~dropsync.sync.engine.SyncEngine`;
    nothing is read from module-level state.
    """

    access_key_id: str
    """Access key of the credential pair"""

    secret_access_key: str
    """Secret key of the credential pair"""

    bucket: str
    """Name of the remote bucket"""

    local_root: Path
    """Local directory that mirrors the bucket"""

    prefix: str = ""
    """Key prefix inside the bucket (no leading or trailing slash)"""

    local_interval: float = DEFAULT_LOCAL_INTERVAL
    """Seconds between local polls"""

    remote_interval: float = DEFAULT_REMOTE_INTERVAL
    """Seconds between remote polls"""

    endpoint_url: Optional[str] = None
    """Custom endpoint for S3-compatible stores"""

    region_name: Optional[str] = None
    """Region of the bucket"""

    ignore: list[str] = field(default_factory=list)
    """Glob patterns excluded from the local scan"""

    exclude_dot_files: bool = False
    """Skip files and folders starting with a dot"""

    use_trash: bool = True
    """Move locally removed files to the trash instead of unlinking"""

    retry_failed: bool = True
    """Re-propose actions whose write failed on the next cycle"""

    echo_ttl: int = DEFAULT_ECHO_TTL
    """Polls an echo expectation is kept before it expires"""

    def __post_init__(self) -> None:
        if isinstance(self.local_root, str):
            self.local_root = Path(self.local_root)
        self.local_root = self.local_root.expanduser()
        self.prefix = (self.prefix or "").strip("/")
        self.local_interval = float(self.local_interval)
        self.remote_interval = float(self.remote_interval)

    def validate(self) -> None:
        """Check that the configuration is complete.

        Raises:
            ConfigError: If a required value is missing or out of range
        """
        missing = [
            key
            for key in ("access_key_id", "secret_access_key", "bucket")
            if not getattr(self, key)
        ]
        if missing:
            raise ConfigError(f"Missing configuration value(s): {', '.join(missing)}")
        if not self.local_root.exists():
            raise ConfigError(f"Local directory does not exist: {self.local_root}")
        if not self.local_root.is_dir():
            raise ConfigError(f"Local path is not a directory: {self.local_root}")
        if self.local_interval <= 0 or self.remote_interval <= 0:
            raise ConfigError("Poll intervals must be positive")
        if self.echo_ttl < 1:
            raise ConfigError("echo_ttl must be at least 1")

    @classmethod
    def from_dict(cls, data: dict[str, Any], base_dir: Optional[Path] = None) -> "SyncConfig":
        """Create a SyncConfig from a parsed configuration dictionary.

        Args:
            data: Configuration dictionary (flat or ``s3_info`` layout)
            base_dir: Directory relative ``sync_dir`` values resolve against

        Returns:
            SyncConfig instance

        Raises:
            ConfigError: If the dictionary is malformed
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")

        merged: dict[str, Any] = {}
        s3_info = data.get("s3_info", {})
        if not isinstance(s3_info, dict):
            raise ConfigError("'s3_info' must be an object")
        merged.update(s3_info)
        merged.update({k: v for k, v in data.items() if k != "s3_info"})

        # Legacy name for the local directory
        if "sync_dir" in merged and "local_root" not in merged:
            merged["local_root"] = merged.pop("sync_dir")
        merged.pop("sync_dir", None)

        for key, env_names in ENV_OVERRIDES.items():
            for env_name in env_names:
                value = os.environ.get(env_name)
                if value:
                    merged[key] = value
                    break

        local_root = merged.get("local_root")
        if not local_root:
            raise ConfigError("Missing configuration value: sync_dir")
        local_path = Path(local_root).expanduser()
        if not local_path.is_absolute() and base_dir is not None:
            local_path = base_dir / local_path
        merged["local_root"] = local_path

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(merged) - known)
        if unknown:
            logger.warning(f"Ignoring unknown configuration key(s): {', '.join(unknown)}")

        kwargs = {k: v for k, v in merged.items() if k in known}
        kwargs.setdefault("access_key_id", "")
        kwargs.setdefault("secret_access_key", "")
        kwargs.setdefault("bucket", "")
        try:
            return cls(**kwargs)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def _parse(path: Path, text: str) -> Any:
    if path.suffix.lower() in YAML_SUFFIXES:
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e


def load_config(path: Optional[Path] = None) -> SyncConfig:
    """Load and validate the configuration file.

    Files ending in ``.yaml`` or ``.yml`` are parsed as YAML, anything
    else as JSON.

    Args:
        path: Path to the configuration file (defaults to
              ~/.config/dropsync/config.json)

    Returns:
        Validated SyncConfig

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    path = Path(path).expanduser()

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    data = _parse(path, text)
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    config = SyncConfig.from_dict(data, base_dir=path.parent)
    config.validate()
    logger.debug(f"Loaded configuration from {path} (bucket={config.bucket})")
    return config
