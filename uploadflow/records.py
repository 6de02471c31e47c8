# records.py
"""
Airtable record store client.

Thin async wrapper over the Airtable REST API: a filtered, sorted lookup
plus create and update of single records. No retries; every failure is
surfaced to the caller. Lookups raise RecordLookupError, writes raise
RecordStoreFailure carrying the upstream status and error detail.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from uploadflow.errors import RecordLookupError, RecordStoreFailure
from uploadflow.models import FIELD_EMAIL, OrderRecord
from uploadflow.settings import settings

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)


def formula_literal(value: str) -> str:
    """Quotes a value as an Airtable formula string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def email_filter(email: str) -> str:
    return f"LOWER({{{FIELD_EMAIL}}}) = {formula_literal(email.lower())}"


def _write_failure(status: int, data: Any, parsed: bool) -> RecordStoreFailure:
    """Builds the caller-facing error from an Airtable error body."""
    message, error_type = "Unknown Airtable Error", "UNKNOWN_TYPE"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        message = error.get("message") or message
        error_type = error.get("type") or error_type
    elif isinstance(error, str) and parsed:
        # e.g. {"error": "NOT_FOUND"}
        message = error_type = error
    return RecordStoreFailure(status, message, error_type=error_type, details=data)


class AirtableRecordStore:
    """Record store client for a single Airtable table."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_id: Optional[str] = None,
        table_name: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.AIRTABLE_API_KEY
        self.base_id = base_id if base_id is not None else settings.AIRTABLE_BASE_ID
        self.table_name = table_name if table_name is not None else settings.AIRTABLE_TABLE_NAME
        self.api_url = (api_url or settings.AIRTABLE_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.RECORD_STORE_TIMEOUT
        self.transport = transport

    @property
    def table_url(self) -> str:
        return f"{self.api_url}/{self.base_id}/{self.table_name}"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    # ===================================================================
    # Lookup
    # ===================================================================

    async def query(
        self,
        formula: str,
        sort_field: str,
        direction: str = "desc",
        limit: int = 10,
    ) -> List[OrderRecord]:
        """Returns up to `limit` records matching `formula`, in store order."""
        params = {
            "filterByFormula": formula,
            "maxRecords": str(limit),
            "sort[0][field]": sort_field,
            "sort[0][direction]": direction,
        }
        try:
            async with self._client() as client:
                response = await client.get(self.table_url, headers=self._headers(), params=params)
        except httpx.HTTPError as e:
            raise RecordLookupError(f"Airtable lookup failed: {e}") from e

        if response.is_error:
            raise RecordLookupError(
                f"Airtable lookup returned {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
            return [OrderRecord.from_airtable(item) for item in data.get("records", [])]
        except (ValueError, AttributeError, TypeError, ValidationError) as e:
            raise RecordLookupError(f"Unreadable Airtable lookup response: {e}") from e

    # ===================================================================
    # Writes
    # ===================================================================

    async def create(self, fields: Dict[str, Any]) -> OrderRecord:
        return await self._write("POST", self.table_url, fields)

    async def update(self, record_id: str, fields: Dict[str, Any]) -> OrderRecord:
        return await self._write("PATCH", f"{self.table_url}/{record_id}", fields)

    async def _write(self, method: str, url: str, fields: Dict[str, Any]) -> OrderRecord:
        async with self._client() as client:
            response = await client.request(
                method, url, headers=self._headers(), json={"fields": fields}
            )

        body = response.text
        logger.info(f"Airtable {method} responded {response.status_code}")

        parsed = True
        try:
            data = response.json()
        except ValueError:
            parsed = False
            data = {"error": "Failed to parse Airtable response", "body": body}

        if response.is_error:
            logger.error(f"Airtable API error on {method} {url}: {data}")
            raise _write_failure(response.status_code, data, parsed)

        try:
            return OrderRecord.from_airtable(data)
        except (ValidationError, TypeError) as e:
            logger.error(f"Airtable {method} returned an unexpected body: {data}")
            raise RecordStoreFailure(
                502, f"Unexpected Airtable response: {e}", error_type="INVALID_RESPONSE", details=data
            ) from e
