"""Shared fixtures and in-memory fakes for the aliasman tests."""

import hashlib
import io
from datetime import datetime, timedelta, timezone

import pytest
from botocore.exceptions import ClientError

from aliasman.alias import Alias, Aliases

FIXED_NOW = datetime(2021, 5, 4, 12, 30, 15, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


def make_alias(alias="shop", domain="example.com", **kwargs) -> Alias:
    kwargs.setdefault("email_addresses", ["me@example.com"])
    kwargs.setdefault("description", f"{alias} alias")
    kwargs.setdefault("created_ts", datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
    kwargs.setdefault("modified_ts", datetime(2020, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
    return Alias(alias=alias, domain=domain, **kwargs)


# =============================================================================
# Fake S3
# =============================================================================

def client_error(code: str, op: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class FakeObject:
    def __init__(self, body: bytes, metadata: dict, last_modified: datetime):
        self.body = body
        self.metadata = metadata
        self.last_modified = last_modified
        self.etag = f'"{hashlib.md5(body).hexdigest()}"'


class FakePaginator:
    def __init__(self, client):
        self._client = client

    def paginate(self, Bucket, PaginationConfig=None):
        size = (PaginationConfig or {}).get("PageSize", 1000)
        items = [
            {"Key": key, "LastModified": obj.last_modified}
            for key, obj in sorted(self._client.objects.items())
        ]
        for i in range(0, len(items), size):
            yield {"Contents": items[i:i + size]}
        if not items:
            yield {"KeyCount": 0}


class FakeS3Client:
    """Just enough of the boto3 S3 client for S3Storage."""

    def __init__(self):
        self.objects: dict[str, FakeObject] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_heads: set[str] = set()
        self._now = datetime(2021, 1, 1, tzinfo=timezone.utc)

    def tick(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        return FakePaginator(self)

    def head_object(self, Bucket, Key):
        self.calls.append(("head", Key))
        if Key in self.fail_heads:
            raise client_error("500")
        if Key not in self.objects:
            raise client_error("404")
        obj = self.objects[Key]
        return {"Metadata": dict(obj.metadata), "ETag": obj.etag}

    def get_object(self, Bucket, Key):
        self.calls.append(("get", Key))
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        obj = self.objects[Key]
        return {"Body": io.BytesIO(obj.body), "ETag": obj.etag, "Metadata": dict(obj.metadata)}

    def put_object(self, Bucket, Key, Body=b"", Metadata=None, ContentType=None):
        self.calls.append(("put", Key))
        self.objects[Key] = FakeObject(Body, dict(Metadata or {}), self.tick())
        return {"ETag": self.objects[Key].etag}

    def delete_object(self, Bucket, Key):
        self.calls.append(("delete", Key))
        self.objects.pop(Key, None)
        return {}

    def count(self, op: str, key: str | None = None) -> int:
        return sum(1 for o, k in self.calls if o == op and (key is None or k == key))


@pytest.fixture
def s3_client():
    return FakeS3Client()


# =============================================================================
# Fake email provider
# =============================================================================

class FakeEmail:
    """In-memory email provider."""

    type = "fake"
    description = "In-memory email provider"

    def __init__(self):
        self.aliases: dict[str, list[str]] = {}
        self.calls: list[tuple] = []

    def alias_create(self, alias, domain, *addresses):
        self.calls.append(("create", alias, domain, addresses))
        self.aliases[f"{alias}@{domain}"] = list(addresses)

    def alias_delete(self, alias, domain, *addresses):
        self.calls.append(("delete", alias, domain, addresses))
        self.aliases.pop(f"{alias}@{domain}", None)

    def alias_list(self, domain, *addresses):
        result = Aliases()
        for key, targets in self.aliases.items():
            name, alias_domain = key.split("@")
            if alias_domain == domain:
                result.append(Alias(alias=name, domain=alias_domain, email_addresses=list(targets)))
        result.sort()
        return result


@pytest.fixture
def fake_email():
    return FakeEmail()
