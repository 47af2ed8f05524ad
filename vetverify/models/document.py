"""
Verification documents and the upload results they are created from.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from .base import BaseEntity, new_id
from .enums import DocumentType, VerificationStatus


def as_local_time(value: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes become naive local time, the same clock as datetime.now()."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


class UploadedDocument(BaseModel):
    """
    What the caller hands to submit_profile for each file.

    progress/error mirror the document store's final report so the engine
    can refuse a submission while uploads are unfinished or failed.
    """
    document_type: DocumentType
    document_url: Optional[str] = None
    filename: Optional[str] = None
    progress: int = Field(default=100, ge=0, le=100)
    error: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def _local_expiry(cls, value):
        return as_local_time(value)

    @property
    def is_complete(self) -> bool:
        return self.progress >= 100 and self.error is None and bool(self.document_url)


class VerificationDocument(BaseEntity):
    """A stored document belonging to exactly one account."""
    id: str = Field(default_factory=lambda: new_id("doc"))
    account_id: str
    document_type: DocumentType
    document_url: str
    verification_status: VerificationStatus = VerificationStatus.PENDING
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    uploaded_at: datetime = Field(default_factory=datetime.now)

    @field_validator("expires_at", "verified_at")
    @classmethod
    def _local_times(cls, value):
        return as_local_time(value)

    @classmethod
    def from_upload(cls, account_id: str, upload: UploadedDocument) -> "VerificationDocument":
        return cls(
            account_id=account_id,
            document_type=upload.document_type,
            document_url=upload.document_url,
            expires_at=upload.expires_at,
        )

    def mark(self, status: VerificationStatus, admin_id: Optional[str], when: datetime,
             reason: Optional[str] = None) -> None:
        """Record the admin's verdict on this document."""
        self.verification_status = status
        self.verified_by = admin_id
        self.verified_at = when
        self.rejection_reason = reason if status is VerificationStatus.REJECTED else None
        self.touch(when)

    def expires_within(self, now: datetime, days: int) -> bool:
        if self.expires_at is None:
            return False
        return (self.expires_at - now).days <= days
