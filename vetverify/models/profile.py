"""
Professional profiles - one variant per verifiable role.

The union is discriminated by `role`; never populate both on one account.
Details classes hold the fields the professional fills in and carry the
onboarding rules; the *Profile classes add the stored record fields.
"""

import re
from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, TypeAdapter, field_validator

from .base import BaseEntity, new_id
from .enums import UserRole, ProfessionalStatus, BusinessType

PHONE_DIGITS = re.compile(r"^[0-9]{10,12}$")
GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


def normalize_phone(value: str) -> str:
    """Drop spaces and dashes, then require 10-12 digits."""
    digits = re.sub(r"[\s\-()]", "", str(value or ""))
    if not PHONE_DIGITS.match(digits):
        raise ValueError("must be a phone number of 10-12 digits")
    return digits


class WorkingHours(BaseModel):
    start: str = "09:00"
    end: str = "18:00"
    closed: bool = False


class Clinic(BaseModel):
    """A clinic a veterinarian practices at."""
    model_config = ConfigDict(str_strip_whitespace=True)

    clinic_name: str = Field(min_length=1)
    clinic_address: str = Field(min_length=10)
    clinic_phone: str
    google_place_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    working_hours: dict[str, WorkingHours] = Field(default_factory=dict)

    @field_validator("clinic_phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        return normalize_phone(value)

    @property
    def is_verified_location(self) -> bool:
        return bool(self.google_place_id)


class VeterinarianDetails(BaseModel):
    """Fields a veterinarian submits during onboarding."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    full_name: str = Field(min_length=3)
    license_number: str = Field(min_length=5)
    specializations: list[str] = Field(default_factory=lambda: ["General"])
    experience_years: int = Field(default=0, ge=0)
    clinics: list[Clinic] = Field(min_length=1)
    emergency_available: bool = False
    consultation_fee: float = Field(default=0, ge=0)
    services_offered: list[str] = Field(default_factory=list)
    languages_spoken: list[str] = Field(default_factory=list)
    profile_image_url: Optional[str] = None
    clinic_images: list[str] = Field(default_factory=list)
    bio: str = ""

    @property
    def display_name(self) -> str:
        return self.full_name


class VendorDetails(BaseModel):
    """Fields a vendor submits during onboarding."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    business_name: str = Field(min_length=3)
    business_type: BusinessType = BusinessType.PET_SHOP
    license_number: str = Field(min_length=5)
    gst_number: Optional[str] = None
    business_address: str = Field(min_length=10)
    business_phone: str
    operating_hours: dict[str, WorkingHours] = Field(default_factory=dict)
    delivery_available: bool = False
    delivery_radius_km: Optional[float] = Field(default=None, ge=0)
    minimum_order_amount: Optional[float] = Field(default=None, ge=0)
    business_images: list[str] = Field(default_factory=list)
    description: str = ""
    services_offered: list[str] = Field(default_factory=list)

    @field_validator("business_phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        return normalize_phone(value)

    @field_validator("gst_number", mode="before")
    @classmethod
    def _check_gst(cls, value):
        if value is None or str(value).strip() == "":
            return None
        gst = str(value).strip().upper()
        if not GSTIN_PATTERN.match(gst):
            raise ValueError("must be a valid 15 character GSTIN (e.g. 27AAPFU0939F1ZV)")
        return gst

    @property
    def display_name(self) -> str:
        return self.business_name


class ProfileRecord(BaseEntity):
    """Stored-record fields shared by both profile variants."""
    id: str = Field(default_factory=lambda: new_id("profile"))
    account_id: str
    status: ProfessionalStatus = ProfessionalStatus.PENDING
    version: int = 1
    submitted_at: datetime = Field(default_factory=datetime.now)
    # Sequence of the latest decision when this version was submitted.
    # Later decisions apply to it; earlier ones were superseded by it.
    decision_baseline: int = 0


class VeterinarianProfile(ProfileRecord, VeterinarianDetails):
    role: Literal[UserRole.VETERINARIAN] = UserRole.VETERINARIAN


class VendorProfile(ProfileRecord, VendorDetails):
    role: Literal[UserRole.VENDOR] = UserRole.VENDOR


ProfessionalProfile = Annotated[
    Union[VeterinarianProfile, VendorProfile],
    Field(discriminator="role"),
]

_profile_adapter = TypeAdapter(ProfessionalProfile)

DETAILS_BY_ROLE: dict[UserRole, type[BaseModel]] = {
    UserRole.VETERINARIAN: VeterinarianDetails,
    UserRole.VENDOR: VendorDetails,
}

PROFILE_BY_ROLE: dict[UserRole, type[BaseModel]] = {
    UserRole.VETERINARIAN: VeterinarianProfile,
    UserRole.VENDOR: VendorProfile,
}


def parse_profile(data: dict) -> Union[VeterinarianProfile, VendorProfile]:
    """Load a stored profile, picking the variant from its role tag."""
    return _profile_adapter.validate_python(data)


def build_profile(role: UserRole, account_id: str, details: BaseModel, **record) -> Union[VeterinarianProfile, VendorProfile]:
    """Create the stored profile for validated details."""
    profile_cls = PROFILE_BY_ROLE.get(role)
    if profile_cls is None:
        raise ValueError(f"Role {role.value} has no professional profile")
    return profile_cls(account_id=account_id, **details.model_dump(), **record)
