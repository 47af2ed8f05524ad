"""
Notification - in-app feed entry.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .base import new_id
from .enums import NotificationType


class Notification(BaseModel):
    """A message for one user. Only is_read ever changes."""
    id: str = Field(default_factory=lambda: new_id("notif"))
    user_id: str
    message: str
    type: NotificationType
    is_read: bool = False
    link: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    def mark_read(self) -> bool:
        """Mark as read. Returns True if it was unread."""
        if self.is_read:
            return False
        self.is_read = True
        return True

    def to_dict(self) -> dict:
        """Export for API responses."""
        return self.model_dump(mode="json")
