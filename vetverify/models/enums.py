"""
Enumerations shared by every model.

Values match the columns of the hosted database.
"""

from enum import Enum


class UserRole(str, Enum):
    PET_PARENT = "pet_parent"
    VETERINARIAN = "veterinarian"
    VENDOR = "vendor"
    PHARMACY = "pharmacy"
    ADMIN = "admin"

    @property
    def is_professional(self) -> bool:
        """Only veterinarians and vendors go through verification."""
        return self in (UserRole.VETERINARIAN, UserRole.VENDOR)


class ProfessionalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class VerificationStatus(str, Enum):
    """Per-document verification status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DocumentType(str, Enum):
    LICENSE = "license"
    DEGREE = "degree"
    EXPERIENCE_CERTIFICATE = "experience_certificate"
    CLINIC_REGISTRATION = "clinic_registration"
    GST_CERTIFICATE = "gst_certificate"
    BUSINESS_LICENSE = "business_license"
    PHARMACY_LICENSE = "pharmacy_license"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class BusinessType(str, Enum):
    PET_SHOP = "pet_shop"
    PHARMACY = "pharmacy"
    GROOMING = "grooming"
    BOARDING = "boarding"
    TRAINING = "training"
    OTHER = "other"


class NotificationType(str, Enum):
    STATUS_APPROVED = "status_approved"
    STATUS_REJECTED = "status_rejected"
    STATUS_SUSPENDED = "status_suspended"
    NEW_APPLICANT = "new_applicant"
    DOCUMENT_REMINDER = "document_reminder"

    @property
    def preference_key(self) -> str:
        """Which preference toggle governs this type."""
        if self is NotificationType.NEW_APPLICANT:
            return "new_applicants"
        return "status_changes"


class RejectionReason(str, Enum):
    """Structured reasons an admin picks when rejecting an application."""
    INCOMPLETE_PROFILE = "Incomplete Profile Information"
    INVALID_LICENSE = "Invalid License Number"
    UNREADABLE_DOCUMENTS = "Unreadable Documents"
    DOCUMENT_MISMATCH = "Documents Do Not Match Profile"
    EXPIRED_DOCUMENTS = "Expired Documents"
    OTHER = "Other"
