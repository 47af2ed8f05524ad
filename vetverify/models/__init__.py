"""
Domain models - single source of truth for all entities.

Design principles:
- Every entity defined once
- Validation at the boundary
- Backend-agnostic (repository handles persistence)
"""

from .base import BaseEntity, new_id
from .enums import (
    UserRole,
    ProfessionalStatus,
    VerificationStatus,
    DocumentType,
    BusinessType,
    NotificationType,
    RejectionReason,
)
from .account import ProfessionalAccount, NotificationPreferences, ChannelPreferences
from .profile import (
    Clinic,
    WorkingHours,
    VeterinarianDetails,
    VendorDetails,
    VeterinarianProfile,
    VendorProfile,
    ProfessionalProfile,
    DETAILS_BY_ROLE,
    PROFILE_BY_ROLE,
    build_profile,
    parse_profile,
)
from .document import VerificationDocument, UploadedDocument
from .decision import ReviewDecision, DecisionDetails
from .notification import Notification

__all__ = [
    # Base
    "BaseEntity",
    "new_id",
    # Enums
    "UserRole",
    "ProfessionalStatus",
    "VerificationStatus",
    "DocumentType",
    "BusinessType",
    "NotificationType",
    "RejectionReason",
    # Account
    "ProfessionalAccount",
    "NotificationPreferences",
    "ChannelPreferences",
    # Profile
    "Clinic",
    "WorkingHours",
    "VeterinarianDetails",
    "VendorDetails",
    "VeterinarianProfile",
    "VendorProfile",
    "ProfessionalProfile",
    "DETAILS_BY_ROLE",
    "PROFILE_BY_ROLE",
    "build_profile",
    "parse_profile",
    # Documents
    "VerificationDocument",
    "UploadedDocument",
    # Decisions
    "ReviewDecision",
    "DecisionDetails",
    # Notifications
    "Notification",
]
