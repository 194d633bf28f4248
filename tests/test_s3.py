"""Tests for the S3 storage backend and its index reconciliation."""

import logging
from datetime import datetime, timezone

import pytest

from aliasman.alias import Filter
from aliasman.errors import AliasNotFoundError, DuplicateAliasError, ReadOnlyError
from aliasman.storage.s3 import (
    S3Object,
    S3State,
    S3Storage,
    index_before_alias_count,
    sort_objects,
)
from aliasman.storage.s3_index import (
    INDEX_KEY,
    IndexAlias,
    alias_from_metadata,
    alias_to_metadata,
    decode_index,
    encode_index,
    object_key,
)
from aliasman.timestamps import ZERO_TIME

from conftest import FIXED_NOW, make_alias

T0 = datetime(2021, 1, 1, tzinfo=timezone.utc)
T1 = datetime(2021, 1, 2, tzinfo=timezone.utc)
T2 = datetime(2021, 1, 3, tzinfo=timezone.utc)


@pytest.fixture
def storage(s3_client, clock):
    return S3Storage(s3_client, "bucket", clock=clock, concurrent_heads=4, channel_depth=2)


@pytest.fixture
def populated(s3_client, clock):
    """A bucket holding three aliases and a current index."""
    s = S3Storage(s3_client, "bucket", clock=clock)
    s.open()
    s.put(make_alias("a", "one.com"))
    s.put(make_alias("b", "one.com"))
    s.put(make_alias("c", "two.com"))
    s.close()
    s3_client.calls.clear()
    return s3_client


def reopen(s3_client, clock, **kwargs) -> S3Storage:
    s = S3Storage(s3_client, "bucket", clock=clock, **kwargs)
    s.open()
    return s


class TestListing:
    def test_sort_newest_first_ties_by_key(self):
        objects = [
            S3Object("alias-b@x", T1),
            S3Object("alias-a@x", T1),
            S3Object("index", T2),
            S3Object("alias-c@x", T0),
        ]
        assert [o.key for o in sort_objects(objects)] == ["index", "alias-a@x", "alias-b@x", "alias-c@x"]

    def test_index_written_in_same_second_as_alias_is_stale(self):
        objects = [S3Object("index", T1), S3Object("alias-a@x", T1)]
        assert index_before_alias_count(sort_objects(objects)) == (False, 1)

    def test_index_before_alias_objects(self):
        objects = [S3Object("index", T2), S3Object("alias-a@x", T1), S3Object("alias-b@x", T0)]
        assert index_before_alias_count(objects) == (True, 2)

    def test_index_after_alias_object(self):
        objects = [S3Object("alias-a@x", T2), S3Object("index", T1), S3Object("alias-b@x", T0)]
        assert index_before_alias_count(objects) == (False, 2)

    def test_no_index(self):
        assert index_before_alias_count([S3Object("alias-a@x", T0)]) == (False, 1)

    def test_other_keys_ignored(self):
        objects = [S3Object("README", T2), S3Object("index", T1), S3Object("alias-a@x", T0)]
        assert index_before_alias_count(objects) == (True, 1)

    def test_pagination(self, s3_client, clock):
        for i in range(7):
            s3_client.put_object(Bucket="bucket", Key=f"alias-{i}@x.com")
        s = S3Storage(s3_client, "bucket", clock=clock, page_size=3)
        assert len(s.list_objects()) == 7


class TestIndexRecords:
    def test_round_trip_truncates_subseconds(self):
        a = make_alias(
            created_ts=datetime(2020, 1, 2, 3, 4, 5, 999999, tzinfo=timezone.utc),
            modified_ts=datetime(2020, 1, 2, 3, 4, 6, 1, tzinfo=timezone.utc),
        )
        back = IndexAlias.from_alias(a).to_alias()
        assert back.created_ts == datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert back.modified_ts == datetime(2020, 1, 2, 3, 4, 6, tzinfo=timezone.utc)
        assert back.suspended_ts == ZERO_TIME
        assert back.strip_data(["alias", "domain", "email_addresses", "description", "suspended"]) == \
            a.strip_data(["alias", "domain", "email_addresses", "description", "suspended"])

    def test_whole_second_round_trip_is_exact(self):
        a = make_alias(suspended=True, suspended_ts=T1)
        assert IndexAlias.from_alias(a).to_alias() == a

    def test_bad_timestamp_decodes_to_zero(self):
        record = IndexAlias.from_alias(make_alias())
        record.created_ts = "not a time"
        assert record.to_alias().created_ts == ZERO_TIME

    def test_index_json_is_sorted_and_indented(self):
        body = encode_index([make_alias("b", "two.com"), make_alias("a", "one.com")])
        assert body.startswith(b'[\n  {\n    "alias": "a"')
        assert [a.key() for a in decode_index(body)] == ["a@one.com", "b@two.com"]

    @pytest.mark.parametrize("body", [b"not json", b'{"alias": "a"}', b'[{"domain": "x"}]'])
    def test_decode_rejects_malformed(self, body):
        with pytest.raises(ValueError):
            decode_index(body)


class TestMetadata:
    def test_round_trip(self, clock):
        a = make_alias(email_addresses=["a@x.com", "b@x.com"], suspended=True, suspended_ts=T1)
        meta = alias_to_metadata(a)
        assert meta["email_addresses"] == "a@x.com,b@x.com"
        assert meta["suspended"] == "true"
        assert meta["suspended_ts"] == "2021-01-02T00:00:00Z"
        assert alias_from_metadata(meta, clock) == a

    def test_missing_or_bad_timestamps_become_now(self, clock):
        meta = {"alias": "a", "domain": "x.com", "created_ts": "garbage"}
        a = alias_from_metadata(meta, clock)
        assert a.created_ts == FIXED_NOW
        assert a.modified_ts == FIXED_NOW
        assert a.suspended_ts == FIXED_NOW
        assert a.email_addresses == []
        assert a.suspended is False

    def test_metadata_keys_are_case_insensitive(self, clock):
        a = alias_from_metadata({"Alias": "a", "Domain": "x.com", "Suspended": "true"}, clock)
        assert a.key() == "a@x.com"
        assert a.suspended

    def test_missing_alias_rejected(self, clock):
        with pytest.raises(ValueError):
            alias_from_metadata({"domain": "x.com"}, clock)


class TestOpen:
    def test_empty_bucket(self, storage):
        storage.open()
        assert storage.state is S3State.READY
        assert storage.search(Filter.everything()) == []

    def test_trusted_index_issues_no_heads(self, populated, clock):
        s = reopen(populated, clock)
        assert s.index_loaded
        assert populated.count("head") == 0
        assert [a.key() for a in s.search(Filter.everything())] == ["a@one.com", "b@one.com", "c@two.com"]

    def test_alias_newer_than_index_forces_full_scan(self, populated, clock):
        meta = alias_to_metadata(make_alias("d", "two.com"))
        populated.put_object(Bucket="bucket", Key=object_key("d", "two.com"), Metadata=meta)
        populated.calls.clear()

        s = reopen(populated, clock)
        assert not s.index_loaded
        assert populated.count("get", INDEX_KEY) == 0
        assert populated.count("head") == 4
        assert len(s.search(Filter.everything())) == 4

    def test_count_mismatch_forces_full_scan(self, populated, clock):
        del populated.objects[object_key("b", "one.com")]
        s = reopen(populated, clock)
        assert not s.index_loaded
        assert populated.count("head") == 2
        assert [a.alias for a in s.search(Filter.everything())] == ["a", "c"]

    def test_undecodable_index_forces_full_scan(self, populated, clock):
        populated.objects[INDEX_KEY].body = b"{broken"
        s = reopen(populated, clock)
        assert not s.index_loaded
        assert len(s.search(Filter.everything())) == 3

    def test_full_scan_matches_index(self, populated, clock):
        from_index = reopen(populated, clock).search(Filter.everything())
        populated.objects[INDEX_KEY].last_modified = T0
        from_scan = reopen(populated, clock).search(Filter.everything())
        assert from_scan.equal(from_index)

    def test_failed_head_is_logged_and_omitted(self, populated, clock, caplog):
        populated.objects[INDEX_KEY].last_modified = T0
        populated.fail_heads.add(object_key("b", "one.com"))
        with caplog.at_level(logging.WARNING, logger="aliasman.storage.s3"):
            s = reopen(populated, clock)
        assert [a.alias for a in s.search(Filter.everything())] == ["a", "c"]
        assert "alias-b@one.com" in caplog.text

    def test_scan_with_small_queues(self, s3_client, clock):
        for i in range(60):
            meta = alias_to_metadata(make_alias(f"a{i:02d}", "x.com"))
            s3_client.put_object(Bucket="bucket", Key=object_key(f"a{i:02d}", "x.com"), Metadata=meta)
        s = reopen(s3_client, clock, concurrent_heads=3, channel_depth=1)
        assert len(s.search(Filter.everything())) == 60

    def test_duplicate_metadata_is_fatal(self, s3_client, clock):
        meta = alias_to_metadata(make_alias("a", "x.com"))
        s3_client.put_object(Bucket="bucket", Key="alias-a@x.com", Metadata=meta)
        s3_client.put_object(Bucket="bucket", Key="alias-copy@x.com", Metadata=meta)
        with pytest.raises(DuplicateAliasError):
            reopen(s3_client, clock)


class TestClose:
    def test_unchanged_index_is_not_rewritten(self, populated, clock):
        s = reopen(populated, clock)
        s.close()
        assert populated.count("put", INDEX_KEY) == 0
        assert s.state is S3State.CLOSED

    def test_full_scan_rewrites_index(self, populated, clock):
        populated.objects[INDEX_KEY].last_modified = T0
        s = reopen(populated, clock)
        populated.objects[INDEX_KEY].body = b"[]"
        s.close()
        assert populated.count("put", INDEX_KEY) == 1
        assert populated.objects[INDEX_KEY].metadata["creation_ts"] == "2021-05-04T12:30:15Z"
        assert len(decode_index(populated.objects[INDEX_KEY].body)) == 3

    def test_read_only_never_writes_index(self, populated, clock):
        populated.objects[INDEX_KEY].body = b"{broken"
        s = S3Storage(populated, "bucket", clock=clock)
        s.open(read_only=True)
        s.close()
        assert populated.count("put") == 0


class TestMutations:
    def test_put_stamps_timestamps(self, storage, s3_client):
        storage.open()
        storage.put(make_alias("a", created_ts=ZERO_TIME), update_modified=True)
        stored = storage.get("a", "example.com")
        assert stored.created_ts == FIXED_NOW
        assert stored.modified_ts == FIXED_NOW
        assert storage.search(Filter.everything())[0].created_ts == FIXED_NOW

    def test_put_existing_key_is_fatal(self, storage):
        storage.open()
        storage.put(make_alias("a"))
        with pytest.raises(DuplicateAliasError):
            storage.put(make_alias("a"))

    def test_read_only_rejects_mutations_before_io(self, populated, clock):
        s = S3Storage(populated, "bucket", clock=clock)
        s.open(read_only=True)
        populated.calls.clear()
        with pytest.raises(ReadOnlyError, match="S3 opened readonly"):
            s.put(make_alias("new"))
        with pytest.raises(ReadOnlyError):
            s.update(make_alias("a", "one.com"))
        with pytest.raises(ReadOnlyError):
            s.suspend("a", "one.com")
        with pytest.raises(ReadOnlyError):
            s.unsuspend("a", "one.com")
        with pytest.raises(ReadOnlyError):
            s.delete("a", "one.com")
        assert populated.calls == []

    def test_update_replaces_entry(self, populated, clock):
        s = reopen(populated, clock)
        s.update(make_alias("a", "one.com", description="changed"))
        assert s.search(Filter.compile(alias="^a$"))[0].description == "changed"
        assert s.get("a", "one.com").description == "changed"

    def test_suspend_and_unsuspend(self, populated, clock):
        s = reopen(populated, clock)
        s.suspend("a", "one.com")
        a = s.get("a", "one.com")
        assert a.suspended
        assert a.suspended_ts == FIXED_NOW
        assert a.modified_ts == FIXED_NOW
        assert s.search(Filter(exclude_enabled=True))[0].key() == "a@one.com"

        s.unsuspend("a", "one.com")
        a = s.get("a", "one.com")
        assert not a.suspended
        assert a.suspended_ts == ZERO_TIME

    def test_suspend_missing(self, populated, clock):
        with pytest.raises(AliasNotFoundError, match="nope@one.com"):
            reopen(populated, clock).suspend("nope", "one.com")

    def test_delete_removes_object_and_entry(self, populated, clock):
        s = reopen(populated, clock)
        s.delete("a", "one.com")
        assert s.get("a", "one.com") is None
        assert [a.alias for a in s.search(Filter.everything())] == ["b", "c"]
        s.close()
        assert reopen(populated, clock).index_loaded

    def test_get_missing_returns_none(self, storage):
        storage.open()
        assert storage.get("nope", "example.com") is None

    def test_search_sorted_across_domains(self, storage):
        storage.open()
        storage.put(make_alias("z", "b.com"))
        storage.put(make_alias("y", "a.com"))
        storage.put(make_alias("x", "b.com"))
        assert [a.key() for a in storage.search(Filter.everything())] == ["y@a.com", "x@b.com", "z@b.com"]

    def test_search_any_alias(self, populated, clock):
        s = reopen(populated, clock)
        result = s.search(Filter.compile(alias=".*"))
        assert [a.key() for a in result] == [a.key() for a in s.search(Filter.everything())]
        assert len(result) == 3
