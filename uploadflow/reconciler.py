# reconciler.py
"""
Order reconciliation: decides whether a submission continues a pending
order or starts a new one.

A record is pending when it holds test-phase assets but no paid-phase
assets. The lookup is bounded to the newest PENDING_LOOKUP_LIMIT records
for the customer's email, so a customer with a longer history may have a
pending record that goes undetected. The store has no uniqueness
constraint or compare-and-swap, so two concurrent submissions can still
race; detection is best effort.
"""

import logging
from datetime import datetime
from typing import List, Optional

import httpx

from uploadflow.errors import RecordLookupError
from uploadflow.models import (
    FIELD_CREATED,
    CommitDecision,
    CommitOperation,
    OrderPhase,
    OrderRecord,
    Submission,
    normalize_email,
)
from uploadflow.records import email_filter
from uploadflow.settings import settings

logger = logging.getLogger(__name__)

BLOCKED_REASON = "pending test package exists"
BLOCKED_MESSAGE = "You have a pending test package. Please upload your final images to complete the cycle."


def _parse_created(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _sort_stamp(record: OrderRecord) -> Optional[str]:
    # The lookup sorts by the Created column; createdTime only stands in when it is absent
    value = record.fields.get(FIELD_CREATED)
    if isinstance(value, str) and value:
        return value
    return record.created_time


def is_newest_first(records: List[OrderRecord]) -> bool:
    """
    Checks the store's ordering against the value the lookup sorted by.
    Records carrying neither a Created value nor a creation time are
    taken in the order given.
    """
    stamps = [_sort_stamp(r) for r in records]
    if any(stamp is None for stamp in stamps):
        return True
    try:
        parsed = [_parse_created(stamp) for stamp in stamps]
        return all(a >= b for a, b in zip(parsed, parsed[1:]))
    except (ValueError, TypeError):
        return False


class OrderReconciler:
    """Request-scoped; every decision is re-derived from the record store."""

    def __init__(self, records, lookup_limit: Optional[int] = None):
        self.records = records
        self.lookup_limit = lookup_limit if lookup_limit is not None else settings.PENDING_LOOKUP_LIMIT

    async def find_pending_record(self, identity: Optional[str]) -> Optional[str]:
        """Returns the id of the newest pending record for `identity`, if any."""
        identity = normalize_email(identity)
        if not identity:
            return None

        try:
            candidates = await self.records.query(
                email_filter(identity),
                sort_field=FIELD_CREATED,
                direction="desc",
                limit=self.lookup_limit,
            )
        except (RecordLookupError, httpx.HTTPError) as e:
            # A degraded duplicate check must not fail the submission
            logger.error(f"Pending record lookup failed for {identity}, proceeding as new order: {e}")
            return None

        logger.info(f"Records found for {identity}: {len(candidates)}")
        if not is_newest_first(candidates):
            logger.warning(f"Record store ordering unavailable for {identity}; treating as no pending record.")
            return None

        for record in candidates:
            if record.is_pending:
                logger.info(f"Found pending record {record.id} for {identity}")
                return record.id

        logger.info(f"No pending record for {identity}")
        return None

    def decide_operation(self, phase: OrderPhase, pending_record_id: Optional[str]) -> CommitDecision:
        if phase is OrderPhase.TEST:
            if pending_record_id:
                return CommitDecision(
                    operation=CommitOperation.CREATE,
                    record_id=pending_record_id,
                    blocked_reason=BLOCKED_REASON,
                )
            return CommitDecision(operation=CommitOperation.CREATE)

        if pending_record_id:
            return CommitDecision(operation=CommitOperation.UPDATE, record_id=pending_record_id)
        return CommitDecision(operation=CommitOperation.CREATE)

    async def reconcile(self, submission: Submission) -> CommitDecision:
        pending_record_id = await self.find_pending_record(submission.email)
        return self.decide_operation(submission.phase, pending_record_id)
