# orders.py
"""
Upload commit orchestration.

One submission becomes one commit:
1.  Validate the submission (nothing external is touched on failure).
2.  Ask the reconciler whether to create, update, or refuse.
3.  Store every asset, one at a time, in the object store.
4.  Assemble the field set and create or update the Airtable record.
5.  Send the upload notification (best effort, never fails the commit).

Assets stored before a failure stay behind as orphaned blobs; no record is
written unless every asset was stored. Nothing is retried.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi import BackgroundTasks

from uploadflow.errors import CommitError, InvalidSubmission, Rejected, StorageFailure
from uploadflow.models import (
    ANONYMOUS_NAME,
    AssetReference,
    CommitDecision,
    CommitOperation,
    CommitResult,
    OrderFields,
    OrderPhase,
    OrderRecord,
    Submission,
)
from uploadflow.packages import get_package
from uploadflow.reconciler import BLOCKED_MESSAGE, OrderReconciler

logger = logging.getLogger(__name__)

ANONYMOUS_FOLDER = "anonymous"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def asset_folder(identity: Optional[str]) -> str:
    """Folder name for a customer's assets: the email with non-alphanumerics replaced."""
    if not identity:
        return ANONYMOUS_FOLDER
    return re.sub(r"[^a-zA-Z0-9]", "_", identity)


def asset_key(identity: Optional[str], stamp_ms: int, filename: str) -> str:
    basename = os.path.basename(filename.replace("\\", "/")) or "upload"
    return f"{asset_folder(identity)}/{stamp_ms}_{basename}"


def build_order_fields(
    submission: Submission, moment: datetime, assets: List[AssetReference]
) -> OrderFields:
    fields = OrderFields(
        user=submission.name or ANONYMOUS_NAME,
        timestamp=iso_timestamp(moment),
        email=submission.email,
        note=submission.note,
        package=submission.package,
    )
    # Only the submission's own phase column is ever written
    if assets:
        if submission.phase is OrderPhase.TEST:
            fields.test_assets = list(assets)
        else:
            fields.paid_assets = list(assets)
    return fields


def notification_message(
    submission: Submission, decision: CommitDecision, asset_count: int, timestamp: str
):
    package = submission.package or "default"
    action = "Updated existing record" if decision.operation is CommitOperation.UPDATE else "Created new record"
    lines = [
        "New Image Upload Notification",
        "",
        f"Package Type: {package}",
        f"User Name: {submission.name or ANONYMOUS_NAME}",
        f"User Email: {submission.email or 'Not provided'}",
        f"Number of Images: {asset_count}",
        f"Upload Column: {submission.phase.column} ({submission.phase.value})",
        f"Timestamp: {timestamp}",
    ]
    if submission.note:
        lines.append(f"Notes: {submission.note}")
    lines.append(f"Action: {action}")
    return f"New Upload: {package}", "\n".join(lines)


class UploadCommitHandler:
    """Commits one submission against the object store and record store."""

    def __init__(
        self,
        records,
        blobs,
        notifier,
        reconciler: Optional[OrderReconciler] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.records = records
        self.blobs = blobs
        self.notifier = notifier
        self.reconciler = reconciler or OrderReconciler(records)
        self.clock = clock

    # --- Step 1: validation ---
    def validate(self, submission: Submission) -> None:
        if not submission.has_content():
            raise InvalidSubmission("Submission must include at least one image, a name or a note.")

        # Only exact catalog keys are enforced; anything else is a free-form package
        package = get_package(submission.package)
        if package is None:
            return
        if len(submission.assets) > package.limit:
            raise InvalidSubmission(
                f"You can only upload a maximum of {package.limit} images for the {package.title}."
            )
        if package.phase is not submission.phase:
            raise InvalidSubmission(
                f"The {package.title} expects {package.phase.value} uploads, not {submission.phase.value}."
            )

    # --- Step 3: asset storage ---
    async def store_assets(self, submission: Submission) -> List[AssetReference]:
        stored: List[AssetReference] = []
        last_stamp = 0
        for asset in submission.assets:
            # Strictly increasing within a commit so equal filenames never collide
            stamp = max(int(self.clock().timestamp() * 1000), last_stamp + 1)
            last_stamp = stamp
            key = asset_key(submission.email, stamp, asset.filename)
            try:
                url = await self.blobs.put(key, asset.content)
            except StorageFailure:
                raise
            except Exception as e:
                logger.error(f"Object store write failed for '{key}': {e}")
                raise StorageFailure(f"Could not store asset '{key}': {e}", key=key) from e
            stored.append(AssetReference(url=url, filename=asset.filename))
        return stored

    # --- Step 4: record write ---
    async def write_record(self, decision: CommitDecision, fields: OrderFields) -> OrderRecord:
        payload = fields.to_airtable()
        if decision.operation is CommitOperation.UPDATE:
            logger.info(f"Updating pending record {decision.record_id}")
            return await self.records.update(decision.record_id, payload)
        logger.info("Creating new order record")
        return await self.records.create(payload)

    # --- Step 5: notification ---
    async def notify_safely(self, subject: str, body: str) -> None:
        try:
            await self.notifier.send(subject, body)
        except Exception as e:
            logger.error(f"Upload notification failed (upload already committed): {e}")

    async def commit(
        self, submission: Submission, background_tasks: Optional[BackgroundTasks] = None
    ) -> CommitResult:
        self.validate(submission)

        decision = await self.reconciler.reconcile(submission)
        if decision.blocked:
            logger.info(f"Blocked {submission.phase.value} submission for {submission.email}: {decision.blocked_reason}")
            raise Rejected(decision.blocked_reason, BLOCKED_MESSAGE)

        assets = await self.store_assets(submission)
        logger.info(f"Stored {len(assets)} asset(s) for {submission.email or ANONYMOUS_FOLDER}")

        moment = self.clock()
        fields = build_order_fields(submission, moment, assets)
        try:
            record = await self.write_record(decision, fields)
        except CommitError as e:
            logger.error(f"Record store {decision.operation.value} failed: {e.message}")
            raise

        subject, body = notification_message(submission, decision, len(assets), fields.timestamp)
        if background_tasks is not None:
            background_tasks.add_task(self.notify_safely, subject, body)
        else:
            await self.notify_safely(subject, body)

        return CommitResult(record=record, decision=decision, assets=assets)
