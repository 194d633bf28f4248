"""Serialized forms of an alias in S3: index records and object metadata."""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Iterable

from ..alias import Alias, Aliases
from ..timestamps import ZERO_TIME, Clock, format_rfc3339, parse_rfc3339

INDEX_KEY = "index"
ALIAS_PREFIX = "alias-"


def object_key(alias: str, domain: str) -> str:
    return f"{ALIAS_PREFIX}{alias}@{domain}"


def _parse_or_zero(value: str) -> datetime:
    try:
        return parse_rfc3339(value)
    except ValueError:
        return ZERO_TIME


@dataclass
class IndexAlias:
    """One entry of the JSON index object.

    Timestamps are kept as RFC3339 strings, so a round trip through the
    index preserves them to the second and drops any sub-second part.
    """
    alias: str
    domain: str
    email_addresses: list[str] = field(default_factory=list)
    description: str = ""
    suspended: bool = False
    created_ts: str = ""
    modified_ts: str = ""
    suspended_ts: str = ""

    @classmethod
    def from_alias(cls, a: Alias) -> "IndexAlias":
        return cls(
            alias=a.alias,
            domain=a.domain,
            email_addresses=list(a.email_addresses),
            description=a.description,
            suspended=a.suspended,
            created_ts=format_rfc3339(a.created_ts),
            modified_ts=format_rfc3339(a.modified_ts),
            suspended_ts=format_rfc3339(a.suspended_ts),
        )

    def to_alias(self) -> Alias:
        """Convert back. Undecodable timestamps become the zero time."""
        return Alias(
            alias=self.alias,
            domain=self.domain,
            email_addresses=list(self.email_addresses),
            description=self.description,
            suspended=self.suspended,
            created_ts=_parse_or_zero(self.created_ts),
            modified_ts=_parse_or_zero(self.modified_ts),
            suspended_ts=_parse_or_zero(self.suspended_ts),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "IndexAlias":
        return cls(
            alias=data["alias"],
            domain=data["domain"],
            email_addresses=list(data.get("email_addresses") or []),
            description=data.get("description", ""),
            suspended=bool(data.get("suspended", False)),
            created_ts=data.get("created_ts", ""),
            modified_ts=data.get("modified_ts", ""),
            suspended_ts=data.get("suspended_ts", ""),
        )


def encode_index(aliases: Iterable[Alias]) -> bytes:
    """Serialize aliases, sorted by (domain, alias), as an indented JSON array."""
    records = [IndexAlias.from_alias(a).to_dict() for a in Aliases(aliases).sorted()]
    return json.dumps(records, indent=2).encode()


def decode_index(body: bytes) -> Aliases:
    """Parse an index object. Raises ValueError on malformed content."""
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValueError(f"index is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ValueError("index is not a JSON array")
    try:
        return Aliases(IndexAlias.from_dict(d).to_alias() for d in data)
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"malformed index record: {e}") from e


# =============================================================================
# Per-alias object metadata
# =============================================================================

def alias_to_metadata(a: Alias) -> dict[str, str]:
    return {
        "alias": a.alias,
        "domain": a.domain,
        "description": a.description,
        "email_addresses": ",".join(a.email_addresses),
        "suspended": "true" if a.suspended else "false",
        "created_ts": format_rfc3339(a.created_ts),
        "modified_ts": format_rfc3339(a.modified_ts),
        "suspended_ts": format_rfc3339(a.suspended_ts),
    }


def alias_from_metadata(metadata: dict[str, str], clock: Clock) -> Alias:
    """Build an alias from HEAD metadata.

    Missing or unparseable timestamps are replaced by the current time.
    Raises ValueError if the alias or domain is missing.
    """
    # boto3 returns user metadata keys lower-cased
    meta = {k.lower(): v for k, v in metadata.items()}
    if not meta.get("alias") or not meta.get("domain"):
        raise ValueError("object metadata has no alias/domain")

    def ts(key: str) -> datetime:
        try:
            return parse_rfc3339(meta.get(key, ""))
        except ValueError:
            return clock()

    addresses = meta.get("email_addresses", "")
    return Alias(
        alias=meta["alias"],
        domain=meta["domain"],
        email_addresses=[e for e in addresses.split(",") if e],
        description=meta.get("description", ""),
        suspended=meta.get("suspended") == "true",
        created_ts=ts("created_ts"),
        modified_ts=ts("modified_ts"),
        suspended_ts=ts("suspended_ts"),
    )
