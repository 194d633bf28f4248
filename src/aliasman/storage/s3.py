"""S3-backed alias storage.

Each alias is an empty object named ``alias-<alias>@<domain>`` whose user
metadata holds the alias fields. A JSON ``index`` object caches the whole
collection so that opening the store does not need one HEAD per alias.

On open the bucket is listed and sorted newest first. The index is only
trusted when it is newer than every alias object and holds exactly as many
records as there are alias objects; otherwise every alias object is HEADed
by a bounded pool of workers. On close the index is rewritten if its
content changed.
"""

import enum
import hashlib
import logging
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..alias import Alias, Aliases, AliasesMap, Filter
from ..errors import AliasNotFoundError, DuplicateAliasError, ReadOnlyError, StorageError
from ..timestamps import ZERO_TIME, Clock, format_rfc3339, is_zero, utc_now
from .base import alias_key
from .s3_index import (
    ALIAS_PREFIX,
    INDEX_KEY,
    alias_from_metadata,
    alias_to_metadata,
    decode_index,
    encode_index,
    object_key,
)

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENT_HEADS = 25
DEFAULT_CHANNEL_DEPTH = 50
DEFAULT_PAGE_SIZE = 1000

_DONE = object()


class S3State(enum.Enum):
    UNOPENED = "unopened"
    LISTING = "listing"
    INDEX_LOADED = "index_loaded"
    FULL_SCAN = "full_scan"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class S3Object:
    """A listed object key and its last-modified time."""
    key: str
    last_modified: datetime


def s3_client(
    region: str | None = None,
    access_key: str | None = None,
    secret_key: str | None = None,
    connect_timeout: float = 5,
    read_timeout: float = 30,
    max_attempts: int = 3,
):
    """Create an S3 client with bounded timeouts and retries."""
    config = BotoConfig(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )
    kwargs = {"config": config}
    if region:
        kwargs["region_name"] = region
    if access_key and secret_key:
        kwargs["aws_access_key_id"] = access_key
        kwargs["aws_secret_access_key"] = secret_key
    return boto3.client("s3", **kwargs)


def sort_objects(objects: list[S3Object]) -> list[S3Object]:
    """Newest first; objects modified at the same time are ordered by key."""
    result = sorted(objects, key=lambda o: o.key)
    result.sort(key=lambda o: o.last_modified, reverse=True)
    return result


def index_before_alias_count(objects: list[S3Object]) -> tuple[bool, int]:
    """Whether the index precedes every alias object, and the alias object count.

    Expects objects sorted newest first.
    """
    index_first = False
    seen_alias = False
    count = 0
    for obj in objects:
        if obj.key == INDEX_KEY:
            index_first = not seen_alias
        elif obj.key.startswith(ALIAS_PREFIX):
            seen_alias = True
            count += 1
    return index_first, count


def _is_not_found(e: ClientError) -> bool:
    code = str(e.response.get("Error", {}).get("Code", ""))
    return code in ("404", "NoSuchKey", "NotFound")


@contextmanager
def _s3_errors(action: str, key: str):
    try:
        yield
    except (BotoCoreError, ClientError) as e:
        raise StorageError(f"S3 {action} {key} failed: {e}") from e


class S3Storage:
    """Store aliases as S3 object metadata with a JSON index."""

    type = "s3"
    description = "S3 backed alias storage"

    def __init__(
        self,
        client,
        bucket: str,
        clock: Clock = utc_now,
        concurrent_heads: int = DEFAULT_CONCURRENT_HEADS,
        channel_depth: int = DEFAULT_CHANNEL_DEPTH,
        page_size: int = DEFAULT_PAGE_SIZE,
        scan_timeout: float | None = None,
    ):
        """Initialize S3 storage.

        Args:
            client: boto3 S3 client (see s3_client())
            bucket: Bucket holding the alias objects
            concurrent_heads: Number of HEAD workers used by a full scan
            channel_depth: Bound on the work and result queues of a full scan
            page_size: Keys per list_objects_v2 request
            scan_timeout: Seconds after which a full scan skips the remaining keys
        """
        self._client = client
        self._bucket = bucket
        self._clock = clock
        self._concurrent_heads = max(1, concurrent_heads)
        self._channel_depth = max(1, channel_depth)
        self._page_size = page_size
        self._scan_timeout = scan_timeout
        self._read_only = False
        self._aliases = AliasesMap()
        self._index_md5 = ""
        self.index_loaded = False
        self.state = S3State.UNOPENED

    @property
    def bucket(self) -> str:
        return self._bucket

    # =========================================================================
    # Open / close
    # =========================================================================

    def list_objects(self) -> list[S3Object]:
        """List every object in the bucket, newest first."""
        paginator = self._client.get_paginator("list_objects_v2")
        objects = []
        with _s3_errors("list", self._bucket):
            pages = paginator.paginate(
                Bucket=self._bucket, PaginationConfig={"PageSize": self._page_size}
            )
            for page in pages:
                for obj in page.get("Contents", []) or []:
                    objects.append(S3Object(obj["Key"], obj["LastModified"]))
        return sort_objects(objects)

    def open(self, read_only: bool = False) -> None:
        """Load aliases from the index if it is current, otherwise from every object."""
        self._read_only = read_only
        self._aliases = AliasesMap()
        self._index_md5 = ""
        self.index_loaded = False

        self.state = S3State.LISTING
        objects = self.list_objects()
        index_first, alias_count = index_before_alias_count(objects)

        if index_first and self._load_index(alias_count):
            self.state = S3State.INDEX_LOADED
            self.index_loaded = True
            logger.info("loaded %d aliases from s3://%s/%s", alias_count, self._bucket, INDEX_KEY)
        else:
            if not index_first:
                logger.info("index missing or older than alias objects, scanning %d objects", alias_count)
            self.state = S3State.FULL_SCAN
            keys = [o.key for o in objects if o.key.startswith(ALIAS_PREFIX)]
            self._aliases = self._full_scan(keys)
        self.state = S3State.READY

    def _load_index(self, expected: int) -> bool:
        """Populate the map from the index object. False means fall back to a scan."""
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=INDEX_KEY)
        except ClientError as e:
            if _is_not_found(e):
                logger.info("index object not found")
                return False
            raise StorageError(f"S3 get {INDEX_KEY} failed: {e}") from e

        body = resp["Body"].read()
        try:
            aliases = decode_index(body)
        except ValueError as e:
            logger.warning("cannot decode index, falling back to full scan: %s", e)
            return False
        if len(aliases) != expected:
            logger.info(
                "index holds %d records but there are %d alias objects", len(aliases), expected
            )
            return False

        self._aliases = aliases.to_map()
        self._index_md5 = resp.get("ETag", "").strip('"')
        return True

    def _full_scan(self, keys: list[str]) -> AliasesMap:
        """HEAD every key with a bounded worker pool.

        Keys flow through a bounded work queue to the workers; records flow
        through a bounded result queue to a single collector, which is the
        only writer of the map. Failed HEADs are logged and omitted.
        """
        work: queue.Queue = queue.Queue(maxsize=self._channel_depth)
        results: queue.Queue = queue.Queue(maxsize=self._channel_depth)
        deadline = time.monotonic() + self._scan_timeout if self._scan_timeout else None
        aliases = AliasesMap()
        duplicates: list[DuplicateAliasError] = []

        def worker():
            while True:
                key = work.get()
                if key is _DONE:
                    return
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("scan timed out, skipping %s", key)
                    continue
                try:
                    a = self._head(key)
                except Exception as e:
                    logger.warning("HEAD %s failed, omitting: %s", key, e)
                    continue
                if a is None:
                    logger.warning("%s disappeared during scan", key)
                    continue
                results.put(a)

        def collector():
            while True:
                a = results.get()
                if a is _DONE:
                    return
                try:
                    aliases.add(a)
                except DuplicateAliasError as e:
                    # Keep draining so workers never block on a full queue
                    duplicates.append(e)

        with ThreadPoolExecutor(
            max_workers=self._concurrent_heads + 1, thread_name_prefix="s3-scan"
        ) as pool:
            collecting = pool.submit(collector)
            workers = [pool.submit(worker) for _ in range(self._concurrent_heads)]
            for key in keys:
                work.put(key)
            for _ in workers:
                work.put(_DONE)
            for w in workers:
                w.result()
            results.put(_DONE)
            collecting.result()

        if duplicates:
            raise duplicates[0]
        logger.info("scanned %d of %d alias objects", len(aliases), len(keys))
        return aliases

    def close(self) -> None:
        """Rewrite the index if it no longer matches the loaded aliases."""
        if self.state is not S3State.READY:
            return
        body = encode_index(self._aliases.values())
        md5 = hashlib.md5(body).hexdigest()
        if md5 == self._index_md5:
            logger.debug("index unchanged")
        elif self._read_only:
            logger.debug("index out of date but storage is read-only, not rewriting")
        else:
            with _s3_errors("put", INDEX_KEY):
                self._client.put_object(
                    Bucket=self._bucket,
                    Key=INDEX_KEY,
                    Body=body,
                    ContentType="application/json",
                    Metadata={"creation_ts": format_rfc3339(self._clock())},
                )
            self._index_md5 = md5
            logger.info("wrote index of %d aliases", len(self._aliases))
        self.state = S3State.CLOSED

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *args):
        self.close()

    # =========================================================================
    # Alias operations
    # =========================================================================

    def _check_writable(self) -> None:
        if self._read_only:
            raise ReadOnlyError("S3 opened readonly")

    def _require_ready(self) -> None:
        if self.state is not S3State.READY:
            raise RuntimeError("Not connected. Call open() first.")

    def _head(self, key: str) -> Alias | None:
        try:
            resp = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                return None
            raise
        return alias_from_metadata(resp.get("Metadata", {}), self._clock)

    def _write(self, a: Alias, update_modified: bool) -> Alias:
        """Write the alias object and return the record as stored."""
        a = a.copy()
        now = self._clock()
        if is_zero(a.created_ts):
            a.created_ts = now
        if update_modified:
            a.modified_ts = now
        key = object_key(a.alias, a.domain)
        with _s3_errors("put", key):
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=b"", Metadata=alias_to_metadata(a)
            )
        return a

    def get(self, alias: str, domain: str) -> Alias | None:
        key = object_key(alias, domain)
        with _s3_errors("head", key):
            try:
                return self._head(key)
            except ValueError as e:
                raise StorageError(f"object {key} has bad metadata: {e}") from e

    def put(self, a: Alias, update_modified: bool = False) -> None:
        self._check_writable()
        self._require_ready()
        if a.key() in self._aliases:
            raise DuplicateAliasError(a.key())
        self._aliases.add(self._write(a, update_modified))

    def update(self, a: Alias, update_modified: bool = False) -> None:
        self._check_writable()
        self._require_ready()
        self._aliases.replace(self._write(a, update_modified))

    def search(self, criteria: Filter, match_any: bool = False) -> Aliases:
        self._require_ready()
        return self._aliases.search(criteria, match_any)

    def _suspension(self, alias: str, domain: str, suspending: bool) -> None:
        self._check_writable()
        self._require_ready()
        key = alias_key(alias, domain)
        if key not in self._aliases:
            raise AliasNotFoundError(key)
        a = self._aliases[key].copy()
        a.suspended = suspending
        a.suspended_ts = self._clock() if suspending else ZERO_TIME
        self._aliases.replace(self._write(a, update_modified=True))

    def suspend(self, alias: str, domain: str) -> None:
        self._suspension(alias, domain, True)

    def unsuspend(self, alias: str, domain: str) -> None:
        self._suspension(alias, domain, False)

    def delete(self, alias: str, domain: str) -> None:
        self._check_writable()
        self._require_ready()
        key = alias_key(alias, domain)
        if key not in self._aliases:
            raise AliasNotFoundError(key)
        obj = object_key(alias, domain)
        with _s3_errors("delete", obj):
            self._client.delete_object(Bucket=self._bucket, Key=obj)
        del self._aliases[key]
