# models.py
"""
Domain models for the upload flow.

This file defines the order phases, the inbound submission, the Airtable
order record and the explicit field set written back to it. Airtable column
names live here as well, so the rest of the code never spells them out.
"""

import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from uploadflow.errors import InvalidSubmission

# --- Airtable columns ---
FIELD_EMAIL = "Email"
FIELD_USER = "User"
FIELD_TIMESTAMP = "Timestamp"
FIELD_NOTE = "Prompt"
FIELD_PACKAGE = "Order_Package"
FIELD_TEST_ASSETS = "Image_Upload"
FIELD_PAID_ASSETS = "Image_Upload2"
FIELD_CREATED = "Created"

ANONYMOUS_NAME = "Anonymous"


class OrderPhase(str, enum.Enum):
    TEST = "test"
    PAID = "paid"

    @property
    def column(self) -> str:
        """The Airtable attachment column holding this phase's assets."""
        return FIELD_TEST_ASSETS if self is OrderPhase.TEST else FIELD_PAID_ASSETS

    @classmethod
    def from_column(cls, column: Optional[str]) -> "OrderPhase":
        """Maps the frontend's `uploadColumn` value to a phase (default: paid)."""
        if not column:
            return cls.PAID
        for phase in cls:
            if phase.column == column:
                return phase
        raise InvalidSubmission(f"Unknown upload column '{column}'.")


class CommitOperation(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"


def normalize_email(value: Optional[str]) -> Optional[str]:
    """Returns the correlation key for an email, or None when it is blank."""
    if value is None:
        return None
    normalized = value.strip().lower()
    return normalized or None


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _asset_list(value: Any) -> List[Dict[str, Any]]:
    return value if isinstance(value, list) else []


# ===================================================================
# Assets
# ===================================================================

class UploadedAsset(BaseModel):
    """A binary received from the client, not yet stored."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


class AssetReference(BaseModel):
    """A stored asset: public URL plus the originating filename."""
    model_config = ConfigDict(frozen=True)

    url: str
    filename: str

    def to_airtable(self) -> Dict[str, str]:
        return {"url": self.url, "filename": self.filename}


# ===================================================================
# Submission
# ===================================================================

class Submission(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    note: Optional[str] = None
    package: Optional[str] = None
    phase: OrderPhase = OrderPhase.PAID
    assets: List[UploadedAsset] = Field(default_factory=list)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value):
        return normalize_email(value)

    @field_validator("name", "note", "package", mode="before")
    @classmethod
    def _drop_blank(cls, value):
        return _blank_to_none(value)

    def has_content(self) -> bool:
        return bool(self.assets or self.note or self.name)


# ===================================================================
# Airtable records
# ===================================================================

class OrderRecord(BaseModel):
    """An order row as returned by Airtable."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    created_time: Optional[str] = Field(None, alias="createdTime")
    fields: Dict[str, Any] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_airtable(cls, data: Dict[str, Any]) -> "OrderRecord":
        record = cls.model_validate(data)
        record.raw = data
        return record

    @property
    def email(self) -> Optional[str]:
        return normalize_email(self.fields.get(FIELD_EMAIL))

    @property
    def test_assets(self) -> List[Dict[str, Any]]:
        return _asset_list(self.fields.get(FIELD_TEST_ASSETS))

    @property
    def paid_assets(self) -> List[Dict[str, Any]]:
        return _asset_list(self.fields.get(FIELD_PAID_ASSETS))

    @property
    def is_pending(self) -> bool:
        """Test assets uploaded, paid assets still missing."""
        return bool(self.test_assets) and not self.paid_assets


class OrderFields(BaseModel):
    """
    The field set written by one commit. Only populated optionals are
    serialized, so an update never clears columns it does not own.
    """
    user: str = ANONYMOUS_NAME
    timestamp: str
    email: Optional[str] = None
    note: Optional[str] = None
    package: Optional[str] = None
    test_assets: Optional[List[AssetReference]] = None
    paid_assets: Optional[List[AssetReference]] = None

    def to_airtable(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            FIELD_USER: self.user,
            FIELD_TIMESTAMP: self.timestamp,
        }
        if self.email:
            fields[FIELD_EMAIL] = self.email
        if self.package:
            fields[FIELD_PACKAGE] = self.package
        if self.note:
            fields[FIELD_NOTE] = self.note
        if self.test_assets:
            fields[FIELD_TEST_ASSETS] = [a.to_airtable() for a in self.test_assets]
        if self.paid_assets:
            fields[FIELD_PAID_ASSETS] = [a.to_airtable() for a in self.paid_assets]
        return fields


# ===================================================================
# Commit decision & result
# ===================================================================

class CommitDecision(BaseModel):
    operation: CommitOperation = CommitOperation.CREATE
    record_id: Optional[str] = None
    blocked_reason: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return self.blocked_reason is not None


class CommitResult(BaseModel):
    record: OrderRecord
    decision: CommitDecision
    assets: List[AssetReference] = Field(default_factory=list)
