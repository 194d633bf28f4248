"""Provider factories, looked up by name.

The registry is built once by default_registry() and handed to the CLI
through the click context object, so tests can swap in their own.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from .config import AliasmanConfig
from .email.base import EmailProvider
from .errors import ProviderConfigError
from .storage.base import StorageProvider

# prompt(text, default) -> answer
Prompter = Callable[[str, str], str]


@dataclass
class ProviderFactory:
    """How to build and interactively configure one provider."""
    name: str
    description: str
    new: Callable[[AliasmanConfig], object]
    configure: Callable[[AliasmanConfig, Prompter], None]


@dataclass
class ProviderRegistry:
    storage: dict[str, ProviderFactory] = field(default_factory=dict)
    email: dict[str, ProviderFactory] = field(default_factory=dict)

    def storage_provider(self, name: str, config: AliasmanConfig) -> StorageProvider:
        if name not in self.storage:
            raise ProviderConfigError(f"unknown storage provider: {name!r}")
        return self.storage[name].new(config)

    def email_provider(self, name: str, config: AliasmanConfig) -> EmailProvider:
        if name not in self.email:
            raise ProviderConfigError(f"unknown email provider: {name!r}")
        return self.email[name].new(config)

    def storage_names(self) -> list[str]:
        return sorted(self.storage)

    def email_names(self) -> list[str]:
        return sorted(self.email)


# =============================================================================
# Storage factories
# =============================================================================

def _new_files(config: AliasmanConfig):
    from .storage.files import FilesStorage
    return FilesStorage(config.path_or_default(config.files_path, "files"))


def _configure_files(config: AliasmanConfig, prompt: Prompter) -> None:
    default = str(config.path_or_default(config.files_path, "files"))
    config.files_path = prompt("Files storage directory", default)


def _new_sqlite(config: AliasmanConfig):
    from .storage.sqlite import SqliteStorage
    return SqliteStorage(config.path_or_default(config.sqlite3_db_path, "aliasman.sqlite"))


def _configure_sqlite(config: AliasmanConfig, prompt: Prompter) -> None:
    default = str(config.path_or_default(config.sqlite3_db_path, "aliasman.sqlite"))
    config.sqlite3_db_path = prompt("SQLite3 database path", default)


def _new_s3(config: AliasmanConfig):
    from .storage.s3 import S3Storage, s3_client
    if not config.s3_bucket:
        raise ProviderConfigError("s3_bucket is not set")
    client = s3_client(
        region=config.s3_region,
        access_key=config.s3_access_key,
        secret_key=config.s3_secret_key,
        connect_timeout=config.s3_connect_timeout,
        read_timeout=config.s3_read_timeout,
        max_attempts=config.s3_max_attempts,
    )
    return S3Storage(
        client,
        config.s3_bucket,
        concurrent_heads=config.s3_concurrent_heads,
        channel_depth=config.s3_channel_depth,
        page_size=config.s3_page_size,
        scan_timeout=config.s3_scan_timeout,
    )


def _configure_s3(config: AliasmanConfig, prompt: Prompter) -> None:
    config.s3_region = prompt("S3 region", config.s3_region)
    config.s3_access_key = prompt("S3 access key", config.s3_access_key)
    config.s3_secret_key = prompt("S3 secret key", config.s3_secret_key)
    config.s3_bucket = prompt("S3 bucket", config.s3_bucket)


# =============================================================================
# Email factories
# =============================================================================

def _new_gsuite(config: AliasmanConfig):
    from .email.gsuite import GSuiteEmail
    return GSuiteEmail.from_token(config.path_or_default(config.gsuite_token, "gsuite_token.json"))


def _configure_gsuite(config: AliasmanConfig, prompt: Prompter) -> None:
    from .email.gsuite import authorize
    credentials = prompt(
        "GSuite OAuth client credentials file",
        str(config.path_or_default(config.gsuite_credentials, "gsuite_credentials.json")),
    )
    token = prompt(
        "GSuite token file",
        str(config.path_or_default(config.gsuite_token, "gsuite_token.json")),
    )
    config.gsuite_credentials = credentials
    config.gsuite_token = token
    if Path(credentials).expanduser().exists() and not Path(token).expanduser().exists():
        authorize(Path(credentials).expanduser(), Path(token).expanduser())


def _new_rackspace(config: AliasmanConfig):
    from .email.rackspace import RackspaceEmail
    return RackspaceEmail(
        config.rackspace_api_user_key,
        config.rackspace_api_secret_key,
        throttle=config.rackspace_throttle,
    )


def _configure_rackspace(config: AliasmanConfig, prompt: Prompter) -> None:
    config.rackspace_api_user_key = prompt("Rackspace API user key", config.rackspace_api_user_key)
    config.rackspace_api_secret_key = prompt("Rackspace API secret key", config.rackspace_api_secret_key)


def default_registry() -> ProviderRegistry:
    """Registry of every built-in provider."""
    return ProviderRegistry(
        storage={
            "files": ProviderFactory(
                "files", "Files-based backed alias storage", _new_files, _configure_files
            ),
            "sqlite3": ProviderFactory(
                "sqlite3", "SQLite3 backed alias storage", _new_sqlite, _configure_sqlite
            ),
            "s3": ProviderFactory("s3", "S3 backed alias storage", _new_s3, _configure_s3),
        },
        email={
            "gsuite": ProviderFactory(
                "gsuite", "GSuite backed alias configuration", _new_gsuite, _configure_gsuite
            ),
            "rackspace_email_api": ProviderFactory(
                "rackspace_email_api",
                "Rackspace Email backed alias configuration",
                _new_rackspace,
                _configure_rackspace,
            ),
        },
    )
