"""Storage provider protocol."""

from typing import Protocol, runtime_checkable

from ..alias import Alias, Aliases, Filter


@runtime_checkable
class StorageProvider(Protocol):
    """Protocol for alias metadata stores.

    Implementations:
    - FilesStorage: one JSON document per alias in a directory
    - SqliteStorage: rows in a SQLite database
    - S3Storage: one object per alias plus a JSON index object

    Mutating calls on a provider opened read-only raise ReadOnlyError
    before touching the backend.
    """

    @property
    def type(self) -> str:
        """Short provider name, as used in config files and on the command line."""
        ...

    @property
    def description(self) -> str:
        ...

    def open(self, read_only: bool = False) -> None:
        """Connect to the backend and load whatever state it needs."""
        ...

    def close(self) -> None:
        """Flush pending state and release the backend."""
        ...

    def get(self, alias: str, domain: str) -> Alias | None:
        """Fetch one alias, or None if it is not stored."""
        ...

    def put(self, a: Alias, update_modified: bool = False) -> None:
        """Store a new alias. Stamps created_ts when it is zero."""
        ...

    def update(self, a: Alias, update_modified: bool = False) -> None:
        """Overwrite an existing alias."""
        ...

    def search(self, criteria: Filter, match_any: bool = False) -> Aliases:
        """Aliases matching the filter, sorted by (domain, alias)."""
        ...

    def suspend(self, alias: str, domain: str) -> None:
        ...

    def unsuspend(self, alias: str, domain: str) -> None:
        ...

    def delete(self, alias: str, domain: str) -> None:
        ...


def alias_key(alias: str, domain: str) -> str:
    return f"{alias}@{domain}"
