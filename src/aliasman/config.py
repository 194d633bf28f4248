"""Configuration stored in a YAML file."""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

CONFIG_DIR_ENV = "ALIASMAN_CONFIG_DIR"
CONFIG_FILE = "config.yaml"


def default_config_dir() -> Path:
    """~/.config/aliasman, unless ALIASMAN_CONFIG_DIR is set."""
    env_dir = os.environ.get(CONFIG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".config" / "aliasman"


@dataclass
class AliasmanConfig:
    """Top-level aliasman configuration.

    Keys are flat so they map one-to-one onto the YAML file.
    """
    email_type: str = ""
    storage_type: str = ""
    default_domain: str = ""
    default_addresses: list[str] = field(default_factory=list)

    # files
    files_path: str = ""
    # sqlite3
    sqlite3_db_path: str = ""
    # s3
    s3_region: str = ""
    s3_access_key: str = ""
    s3_secret_key: str = ""
    s3_bucket: str = ""
    s3_concurrent_heads: int = 25
    s3_channel_depth: int = 50
    s3_page_size: int = 1000
    s3_connect_timeout: float = 5
    s3_read_timeout: float = 30
    s3_max_attempts: int = 3
    s3_scan_timeout: float | None = None
    # gsuite
    gsuite_credentials: str = ""
    gsuite_token: str = ""
    # rackspace
    rackspace_api_user_key: str = ""
    rackspace_api_secret_key: str = ""
    rackspace_throttle: float = 0.7

    # Directory the config was loaded from; not persisted
    config_dir: Path = field(default_factory=default_config_dir, repr=False)

    def path_or_default(self, value: str, default: str) -> Path:
        """Expand a configured path, falling back to one inside the config dir."""
        if value:
            return Path(value).expanduser()
        return self.config_dir / default


_PERSISTED = [f for f in fields(AliasmanConfig) if f.name != "config_dir"]


def load_config(path: Path) -> AliasmanConfig:
    """Load config from a YAML file. A missing file yields defaults."""
    config = AliasmanConfig(config_dir=path.parent)
    if not path.exists():
        return config

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    for fld in _PERSISTED:
        if data.get(fld.name) is None:
            continue
        value = data[fld.name]
        if fld.name == "default_addresses" and isinstance(value, str):
            value = [a.strip() for a in value.split(",") if a.strip()]
        setattr(config, fld.name, value)
    return config


def save_config(config: AliasmanConfig, path: Path) -> None:
    """Save config to a YAML file, omitting keys left at their defaults."""
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    defaults = AliasmanConfig()
    data = {}
    for fld in _PERSISTED:
        value = getattr(config, fld.name)
        if value != getattr(defaults, fld.name):
            data[fld.name] = value

    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    path.chmod(0o600)
