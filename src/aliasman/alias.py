"""Alias record model, collections, filtering and diffs."""

import base64
import difflib
import hashlib
import os
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from operator import attrgetter
from typing import Any, Callable, Iterable

from .errors import DuplicateAliasError, InvalidPatternError, UnknownFieldError
from .timestamps import ZERO_TIME, format_precise, is_zero


@dataclass
class Alias:
    """An email alias and the metadata kept about it."""
    alias: str = ""
    domain: str = ""
    email_addresses: list[str] = field(default_factory=list)
    description: str = ""
    suspended: bool = False
    created_ts: datetime = ZERO_TIME
    modified_ts: datetime = ZERO_TIME
    suspended_ts: datetime = ZERO_TIME

    def key(self) -> str:
        return f"{self.alias}@{self.domain}"

    def sort_key(self) -> tuple[str, str]:
        return (self.domain, self.alias)

    def copy(self) -> "Alias":
        return replace(self, email_addresses=list(self.email_addresses))

    def equal(self, other: "Alias | None") -> bool:
        """True iff every field matches exactly (address order matters)."""
        if other is None:
            return False
        return all(f.get(self) == f.get(other) for f in FIELDS.values())

    def matches(self, criteria: "Filter", match_any: bool = False) -> bool:
        """Test this alias against a filter.

        With match_any, any one of the four patterns matching is enough;
        otherwise all of them must. The suspended/enabled exclusions are
        always applied.
        """
        if criteria.exclude_suspended and self.suspended:
            return False
        if criteria.exclude_enabled and not self.suspended:
            return False

        results = [
            _search(criteria.alias, self.alias),
            _search(criteria.domain, self.domain),
            _search_any(criteria.email_address, self.email_addresses),
            _search(criteria.description, self.description),
        ]
        if match_any:
            return any(results)
        return all(results)

    def strip_data(self, fields: Iterable[str]) -> "Alias":
        """Return a copy holding only the named fields; the rest are zeroed."""
        names = list(fields)
        for name in names:
            if name not in FIELDS:
                raise UnknownFieldError(name)

        stripped = Alias()
        for name in names:
            desc = FIELDS[name]
            value = desc.get(self)
            if isinstance(value, list):
                value = list(value)
            setattr(stripped, name, value)
        return stripped

    def dump(self) -> str:
        """Stable multi-line rendering used for diffs."""
        lines = []
        for name, desc in FIELDS.items():
            value = desc.get(self)
            if isinstance(value, datetime):
                value = "" if is_zero(value) else format_precise(value)
            lines.append(f"{name}: {value!r}")
        return "\n".join(lines) + "\n"

    def unified_diff(self, other: "Alias") -> str:
        """Unified diff of self (expected) against other (actual)."""
        diff = difflib.unified_diff(
            self.dump().splitlines(keepends=True),
            other.dump().splitlines(keepends=True),
            fromfile="Expected",
            tofile="Actual",
            n=1,
        )
        return "".join(diff)


# =============================================================================
# Field descriptor table
# =============================================================================

@dataclass(frozen=True)
class AliasField:
    """Describes one field of the alias record."""
    name: str
    column: str
    get: Callable[[Alias], Any]
    zero: Callable[[], Any]


def _field(name: str, column: str, zero: Callable[[], Any]) -> tuple[str, AliasField]:
    return name, AliasField(name=name, column=column, get=attrgetter(name), zero=zero)


FIELDS: dict[str, AliasField] = dict([
    _field("alias", "Alias", str),
    _field("domain", "Domain", str),
    _field("email_addresses", "Email Address(es)", list),
    _field("description", "Description", str),
    _field("suspended", "Suspended", bool),
    _field("created_ts", "Created Time", lambda: ZERO_TIME),
    _field("modified_ts", "Modified Time", lambda: ZERO_TIME),
    _field("suspended_ts", "Suspended Time", lambda: ZERO_TIME),
])


def field_names() -> list[str]:
    """All alias field names in declaration order."""
    return list(FIELDS)


def parse_fields(value: str | Iterable[str]) -> list[str]:
    """Parse a comma-separated (or repeated) field list, validating names."""
    if isinstance(value, str):
        value = [value]
    names = []
    for part in value:
        for name in part.split(","):
            name = name.strip()
            if not name:
                continue
            if name not in FIELDS:
                raise UnknownFieldError(name)
            names.append(name)
    return names


# =============================================================================
# Filter
# =============================================================================

@dataclass
class Filter:
    """Search criteria; unset patterns match everything."""
    alias: re.Pattern | None = None
    domain: re.Pattern | None = None
    email_address: re.Pattern | None = None
    description: re.Pattern | None = None
    exclude_suspended: bool = False
    exclude_enabled: bool = False

    @classmethod
    def compile(
        cls,
        alias: str | None = None,
        domain: str | None = None,
        email_address: str | None = None,
        description: str | None = None,
        exclude_suspended: bool = False,
        exclude_enabled: bool = False,
    ) -> "Filter":
        """Build a filter from case-insensitive regular expression strings."""
        return cls(
            alias=_compile(alias),
            domain=_compile(domain),
            email_address=_compile(email_address),
            description=_compile(description),
            exclude_suspended=exclude_suspended,
            exclude_enabled=exclude_enabled,
        )

    @classmethod
    def everything(cls) -> "Filter":
        return cls()


def _compile(pattern: str | None) -> re.Pattern | None:
    if pattern is None:
        return None
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise InvalidPatternError(f"Invalid regular expression {pattern!r}: {e}") from e


def _search(pattern: re.Pattern | None, value: str) -> bool:
    if pattern is None:
        return True
    return pattern.search(value) is not None


def _search_any(pattern: re.Pattern | None, values: list[str]) -> bool:
    if pattern is None:
        return True
    return any(pattern.search(v) for v in values)


# =============================================================================
# Collections
# =============================================================================

class Aliases(list):
    """An ordered collection of aliases."""

    def sort(self, **kwargs) -> None:
        """Sort in place by (domain, alias)."""
        kwargs.setdefault("key", Alias.sort_key)
        super().sort(**kwargs)

    def sorted(self) -> "Aliases":
        return Aliases(sorted(self, key=Alias.sort_key))

    def to_map(self) -> "AliasesMap":
        m = AliasesMap()
        for a in self:
            m.add(a)
        return m

    @classmethod
    def from_map(cls, m: "AliasesMap") -> "Aliases":
        return m.to_aliases()

    def diff(self, other: "Aliases") -> "Aliases":
        """Aliases in self that are missing from other or differ from it.

        Asymmetric: entries only present in other are not reported.
        """
        theirs = Aliases(other).to_map()
        result = Aliases(a for a in self if not a.equal(theirs.get(a.key())))
        result.sort()
        return result

    def equal(self, other: "Aliases | None") -> bool:
        if other is None or len(self) != len(other):
            return False
        return all(a.equal(b) for a, b in zip(self, other))

    def strip_data(self, fields: Iterable[str]) -> "Aliases":
        names = list(fields)
        for name in names:
            if name not in FIELDS:
                raise UnknownFieldError(name)
        return Aliases(a.strip_data(names) for a in self)

    def filter(self, criteria: Filter, match_any: bool = False) -> "Aliases":
        result = Aliases(a for a in self if a.matches(criteria, match_any))
        result.sort()
        return result


class AliasesMap(dict):
    """Aliases keyed by "alias@domain".

    A key may be added only once; replacing an entry means deleting it
    first.
    """

    def add(self, a: Alias) -> None:
        key = a.key()
        if key in self:
            raise DuplicateAliasError(key)
        self[key] = a

    def delete(self, a: Alias) -> None:
        self.pop(a.key(), None)

    def replace(self, a: Alias) -> None:
        self.delete(a)
        self.add(a)

    def to_aliases(self) -> Aliases:
        result = Aliases(a.copy() for a in self.values())
        result.sort()
        return result

    def search(self, criteria: Filter, match_any: bool = False) -> Aliases:
        result = Aliases(a.copy() for a in self.values() if a.matches(criteria, match_any))
        result.sort()
        return result


# =============================================================================
# Random alias names
# =============================================================================

MAX_RANDOM_LENGTH = 32
_STD_B64 = b"ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
# Lower-case letters and digits only, so the result is a valid local part
_ALIAS_B64 = b"abcdefghijklmnopqrstuvwxyz0123456789abcdefghijklmnopqrstuvwxyz01"
_B64_TABLE = bytes.maketrans(_STD_B64, _ALIAS_B64)


def random_alias(
    length: int = 16,
    use_base64: bool = False,
    randbytes: Callable[[int], bytes] = os.urandom,
) -> str:
    """Generate a random alias from 256 random bytes.

    The bytes are hashed with MD5 (hex digest) or, with use_base64,
    encoded with a lower-case alphanumeric base64 alphabet. The result is
    truncated to length characters.
    """
    if not 1 <= length <= MAX_RANDOM_LENGTH:
        raise ValueError(f"random alias length must be between 1 and {MAX_RANDOM_LENGTH}")
    data = randbytes(256)
    if use_base64:
        encoded = base64.b64encode(data).rstrip(b"=").translate(_B64_TABLE).decode()
    else:
        encoded = hashlib.md5(data).hexdigest()
    return encoded[:length]
