"""Directory-of-JSON-files alias storage."""

import json
import logging
from pathlib import Path

from ..alias import Alias, Aliases, AliasesMap, Filter
from ..errors import AliasNotFoundError, DuplicateAliasError, ReadOnlyError, StorageError
from ..timestamps import ZERO_TIME, Clock, format_precise, is_zero, parse_rfc3339, utc_now
from .base import alias_key

logger = logging.getLogger(__name__)


def alias_filename(alias: str, domain: str) -> str:
    return f"alias-{alias}-{domain}"


def alias_to_json(a: Alias) -> dict:
    return {
        "alias": a.alias,
        "domain": a.domain,
        "email_addresses": list(a.email_addresses),
        "description": a.description,
        "suspended": a.suspended,
        "created_ts": format_precise(a.created_ts),
        "modified_ts": format_precise(a.modified_ts),
        "suspended_ts": format_precise(a.suspended_ts),
    }


def alias_from_json(data: dict) -> Alias:
    def ts(key: str):
        value = data.get(key)
        return parse_rfc3339(value) if value else ZERO_TIME

    return Alias(
        alias=data["alias"],
        domain=data["domain"],
        email_addresses=list(data.get("email_addresses") or []),
        description=data.get("description", ""),
        suspended=bool(data.get("suspended", False)),
        created_ts=ts("created_ts"),
        modified_ts=ts("modified_ts"),
        suspended_ts=ts("suspended_ts"),
    )


class FilesStorage:
    """Store each alias as a JSON document in a directory.

    Files are named alias-<alias>-<domain>. Everything is loaded into
    memory on open(); searches run against that copy.
    """

    type = "files"
    description = "Files-based backed alias storage"

    def __init__(self, path: Path, clock: Clock = utc_now):
        self._path = Path(path)
        self._clock = clock
        self._read_only = False
        self._aliases = AliasesMap()

    @property
    def path(self) -> Path:
        return self._path

    def open(self, read_only: bool = False) -> None:
        """Load every alias file from the directory."""
        self._read_only = read_only

        if not self._path.exists():
            if read_only:
                raise StorageError(
                    f"files opened read-only and files path does not exist: {self._path}"
                )
            self._path.mkdir(mode=0o700, parents=True)
        if not self._path.is_dir():
            raise StorageError(f"{self._path} is a file and not a directory")

        self._aliases = AliasesMap()
        for file in sorted(self._path.iterdir()):
            if not file.is_file():
                continue
            self._aliases.add(self._read(file))
        logger.debug("loaded %d aliases from %s", len(self._aliases), self._path)

    def close(self) -> None:
        pass

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()

    def _check_writable(self) -> None:
        if self._read_only:
            raise ReadOnlyError("files provider opened readonly")

    def _file(self, alias: str, domain: str) -> Path:
        return self._path / alias_filename(alias, domain)

    def _read(self, file: Path) -> Alias:
        try:
            return alias_from_json(json.loads(file.read_text()))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            raise StorageError(f"cannot decode alias file {file}: {e}") from e

    def _write(self, a: Alias) -> None:
        file = self._file(a.alias, a.domain)
        try:
            file.write_text(json.dumps(alias_to_json(a), indent=1))
        except OSError as e:
            raise StorageError(f"error writing file {file}: {e}") from e

    def _stamp(self, a: Alias, update_modified: bool) -> Alias:
        a = a.copy()
        now = self._clock()
        if is_zero(a.created_ts):
            a.created_ts = now
        if update_modified:
            a.modified_ts = now
        return a

    def get(self, alias: str, domain: str) -> Alias | None:
        file = self._file(alias, domain)
        if not file.exists():
            return None
        return self._read(file)

    def put(self, a: Alias, update_modified: bool = False) -> None:
        self._check_writable()
        if a.key() in self._aliases:
            raise DuplicateAliasError(a.key())
        a = self._stamp(a, update_modified)
        self._write(a)
        self._aliases.add(a)

    def update(self, a: Alias, update_modified: bool = False) -> None:
        self._check_writable()
        a = self._stamp(a, update_modified)
        self._write(a)
        self._aliases.replace(a)

    def search(self, criteria: Filter, match_any: bool = False) -> Aliases:
        return self._aliases.search(criteria, match_any)

    def _suspension(self, alias: str, domain: str, suspending: bool) -> None:
        self._check_writable()
        a = self.get(alias, domain)
        if a is None:
            raise AliasNotFoundError(alias_key(alias, domain))
        a.suspended = suspending
        a.suspended_ts = self._clock() if suspending else ZERO_TIME
        self.update(a, update_modified=True)

    def suspend(self, alias: str, domain: str) -> None:
        self._suspension(alias, domain, True)

    def unsuspend(self, alias: str, domain: str) -> None:
        self._suspension(alias, domain, False)

    def delete(self, alias: str, domain: str) -> None:
        self._check_writable()
        file = self._file(alias, domain)
        if not file.exists():
            raise AliasNotFoundError(alias_key(alias, domain))
        try:
            file.unlink()
        except OSError as e:
            raise StorageError(f"error removing file {file}: {e}") from e
        self._aliases.delete(Alias(alias=alias, domain=domain))
