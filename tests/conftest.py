from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from uploadflow.models import (
    FIELD_EMAIL,
    FIELD_PAID_ASSETS,
    FIELD_TEST_ASSETS,
    OrderPhase,
    OrderRecord,
    Submission,
    UploadedAsset,
)
from uploadflow.notify import BrevoNotifier
from uploadflow.orders import UploadCommitHandler

FROZEN_NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_record(
    record_id: str,
    email: str = "a@x.com",
    test: Optional[List[str]] = None,
    paid: Optional[List[str]] = None,
    created: Optional[datetime] = None,
    **extra_fields: Any,
) -> OrderRecord:
    fields: Dict[str, Any] = {FIELD_EMAIL: email, **extra_fields}
    if test is not None:
        fields[FIELD_TEST_ASSETS] = [{"url": f"https://blob.test/{name}", "filename": name} for name in test]
    if paid is not None:
        fields[FIELD_PAID_ASSETS] = [{"url": f"https://blob.test/{name}", "filename": name} for name in paid]
    data = {"id": record_id, "fields": fields}
    if created is not None:
        data["createdTime"] = created.isoformat().replace("+00:00", "Z")
    return OrderRecord.from_airtable(data)


def make_submission(phase: OrderPhase = OrderPhase.PAID, filenames=("img.jpg",), **kwargs) -> Submission:
    assets = [UploadedAsset(filename=name, content=b"\xff\xd8data") for name in filenames]
    return Submission(phase=phase, assets=assets, **kwargs)


class FakeRecordStore:
    """In-memory record store. `records` are the lookup results, newest first."""

    def __init__(self, records=None, lookup_error: Optional[Exception] = None,
                 write_error: Optional[Exception] = None):
        self.records = list(records or [])
        self.lookup_error = lookup_error
        self.write_error = write_error
        self.queries: List[Dict[str, Any]] = []
        self.created: List[Dict[str, Any]] = []
        self.updated: List[tuple] = []

    @property
    def write_count(self) -> int:
        return len(self.created) + len(self.updated)

    async def query(self, formula, sort_field, direction="desc", limit=10):
        self.queries.append({"formula": formula, "sort_field": sort_field,
                             "direction": direction, "limit": limit})
        if self.lookup_error:
            raise self.lookup_error
        return self.records[:limit]

    async def create(self, fields):
        if self.write_error:
            raise self.write_error
        self.created.append(fields)
        return OrderRecord.from_airtable(
            {"id": f"recNEW{len(self.created)}", "createdTime": "2025-03-01T12:00:00.000Z", "fields": fields}
        )

    async def update(self, record_id, fields):
        if self.write_error:
            raise self.write_error
        self.updated.append((record_id, fields))
        existing = next((r for r in self.records if r.id == record_id), None)
        merged = {**(existing.fields if existing else {}), **fields}
        return OrderRecord.from_airtable({"id": record_id, "fields": merged})


class FakeBlobStore:
    def __init__(self, fail_on: Optional[int] = None):
        self.fail_on = fail_on
        self.keys: List[str] = []
        self.attempts = 0

    async def put(self, key, content):
        self.attempts += 1
        if self.fail_on is not None and self.attempts == self.fail_on:
            raise RuntimeError("bucket unavailable")
        self.keys.append(key)
        return f"https://blob.test/{key}"


class FakeNotifier:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.sent: List[tuple] = []

    async def send(self, subject, body):
        if self.error:
            raise self.error
        self.sent.append((subject, body))


class StepClock:
    """Returns FROZEN_NOW, advancing by `step` on every call."""

    def __init__(self, step: timedelta = timedelta(0)):
        self.current = FROZEN_NOW
        self.step = step

    def __call__(self):
        now = self.current
        self.current = self.current + self.step
        return now


@pytest.fixture
def records():
    return FakeRecordStore()


@pytest.fixture
def blobs():
    return FakeBlobStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def handler(records, blobs, notifier):
    return UploadCommitHandler(records=records, blobs=blobs, notifier=notifier, clock=StepClock())


@pytest.fixture
def disabled_notifier():
    return BrevoNotifier(api_key="", sender="", recipient="")
