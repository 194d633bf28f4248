"""Email provider protocol and address helpers."""

from typing import Protocol, runtime_checkable

from ..alias import Aliases


@runtime_checkable
class EmailProvider(Protocol):
    """Protocol for live mail systems that route aliases.

    Implementations:
    - GSuiteEmail: Google Workspace Admin Directory user aliases
    - RackspaceEmail: Rackspace Email REST API
    """

    @property
    def type(self) -> str:
        ...

    @property
    def description(self) -> str:
        ...

    def alias_create(self, alias: str, domain: str, *addresses: str) -> None:
        """Create an alias delivering to the given addresses."""
        ...

    def alias_delete(self, alias: str, domain: str, *addresses: str) -> None:
        """Remove an alias. Addresses are a hint for providers that need the owner."""
        ...

    def alias_list(self, domain: str, *addresses: str) -> Aliases:
        """Aliases of a domain, optionally restricted to those delivering to addresses.

        Only alias, domain and email_addresses are populated.
        """
        ...


def full_alias(alias: str, domain: str) -> str:
    return f"{alias}@{domain}"


def split_alias(address: str) -> tuple[str, str]:
    """Split "alias@domain" into its parts."""
    parts = address.split("@")
    if len(parts) != 2:
        raise ValueError(f"{address!r} is not a valid alias address")
    return parts[0], parts[1]
