"""
ProfessionalAccount - the user row every other record hangs off.
"""

from pydantic import BaseModel, Field

from .base import BaseEntity
from .enums import UserRole, ProfessionalStatus, NotificationType


class ChannelPreferences(BaseModel):
    """Toggles for one delivery channel."""
    status_changes: bool = True
    new_applicants: bool = True

    def allows(self, notification_type: NotificationType) -> bool:
        return bool(getattr(self, notification_type.preference_key))


class NotificationPreferences(BaseModel):
    """Per-account delivery preferences."""
    in_app: ChannelPreferences = Field(default_factory=ChannelPreferences)
    email: ChannelPreferences = Field(
        default_factory=lambda: ChannelPreferences(status_changes=True, new_applicants=False)
    )


class ProfessionalAccount(BaseEntity):
    """
    An account handed to us by the identity provider.

    professional_status is owned by the workflow engine; nothing else
    should assign it.
    """
    id: str
    email: str
    role: UserRole
    professional_status: ProfessionalStatus = ProfessionalStatus.PENDING
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

    @property
    def is_professional(self) -> bool:
        return self.role.is_professional

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN
