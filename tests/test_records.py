"""Tests for the Airtable record store client."""

import json

import httpx
import pytest

from uploadflow.errors import RecordLookupError, RecordStoreFailure
from uploadflow.records import AirtableRecordStore, email_filter, formula_literal


def make_store(handler):
    return AirtableRecordStore(
        api_key="key123",
        base_id="appBASE",
        table_name="Uploads",
        api_url="https://airtable.test/v0/",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestFormula:

    def test_plain_email(self):
        assert email_filter("a@x.com") == "LOWER({Email}) = 'a@x.com'"

    def test_email_compare_ignores_stored_case(self):
        assert email_filter("A@X.com") == "LOWER({Email}) = 'a@x.com'"

    def test_quotes_are_escaped(self):
        assert formula_literal("o'brien@x.com") == "'o\\'brien@x.com'"
        assert formula_literal("a\\b") == "'a\\\\b'"


class TestQuery:

    @pytest.mark.asyncio
    async def test_sends_filter_sort_and_limit(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["request"] = request
            return httpx.Response(200, json={"records": [
                {"id": "rec1", "createdTime": "2025-03-01T12:00:00.000Z",
                 "fields": {"Email": "a@x.com", "Image_Upload": [{"url": "u"}]}},
            ]})

        records = await make_store(handler).query("{Email} = 'a@x.com'", sort_field="Created", limit=10)

        request = seen["request"]
        assert request.method == "GET"
        assert request.url.path == "/v0/appBASE/Uploads"
        assert request.headers["Authorization"] == "Bearer key123"
        assert request.url.params["filterByFormula"] == "{Email} = 'a@x.com'"
        assert request.url.params["maxRecords"] == "10"
        assert request.url.params["sort[0][field]"] == "Created"
        assert request.url.params["sort[0][direction]"] == "desc"
        assert [r.id for r in records] == ["rec1"]
        assert records[0].is_pending

    @pytest.mark.asyncio
    async def test_missing_records_key_is_empty(self):
        records = await make_store(lambda request: httpx.Response(200, json={})).query("x", "Created")
        assert records == []

    @pytest.mark.asyncio
    async def test_error_status_raises_lookup_error(self):
        store = make_store(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(RecordLookupError, match="503"):
            await store.query("x", "Created")

    @pytest.mark.asyncio
    async def test_unparseable_body_raises_lookup_error(self):
        store = make_store(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(RecordLookupError):
            await store.query("x", "Created")

    @pytest.mark.asyncio
    async def test_transport_error_raises_lookup_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RecordLookupError):
            await make_store(handler).query("x", "Created")


class TestWrites:

    @pytest.mark.asyncio
    async def test_create_posts_fields(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "recNEW", "createdTime": "2025-03-01T12:00:00.000Z",
                                             "fields": seen["body"]["fields"]})

        record = await make_store(handler).create({"User": "Ada"})

        assert seen["method"] == "POST"
        assert seen["path"] == "/v0/appBASE/Uploads"
        assert seen["body"] == {"fields": {"User": "Ada"}}
        assert record.id == "recNEW"
        assert record.raw["fields"] == {"User": "Ada"}

    @pytest.mark.asyncio
    async def test_update_patches_record(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            return httpx.Response(200, json={"id": "recA", "fields": {"User": "Ada"}})

        record = await make_store(handler).update("recA", {"User": "Ada"})

        assert seen["method"] == "PATCH"
        assert seen["path"] == "/v0/appBASE/Uploads/recA"
        assert record.id == "recA"

    @pytest.mark.asyncio
    async def test_upstream_error_carries_status_and_detail(self):
        body = {"error": {"type": "INVALID_MULTIPLE_CHOICE_OPTIONS", "message": "Insufficient permissions"}}
        store = make_store(lambda request: httpx.Response(422, json=body))

        with pytest.raises(RecordStoreFailure) as exc_info:
            await store.create({"User": "Ada"})

        error = exc_info.value
        assert error.status_code == 422
        assert error.to_response() == {
            "error": "Insufficient permissions",
            "type": "INVALID_MULTIPLE_CHOICE_OPTIONS",
            "details": body,
        }

    @pytest.mark.asyncio
    async def test_string_error_body(self):
        store = make_store(lambda request: httpx.Response(404, json={"error": "NOT_FOUND"}))

        with pytest.raises(RecordStoreFailure) as exc_info:
            await store.update("recMissing", {})

        assert exc_info.value.status_code == 404
        assert exc_info.value.error_type == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unparseable_error_body_keeps_raw_text(self):
        store = make_store(lambda request: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(RecordStoreFailure) as exc_info:
            await store.create({})

        error = exc_info.value
        assert error.status_code == 502
        assert error.message == "Unknown Airtable Error"
        assert error.error_type == "UNKNOWN_TYPE"
        assert error.details == {"error": "Failed to parse Airtable response", "body": "Bad Gateway"}
