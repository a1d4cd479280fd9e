"""
Shapes exchanged with the notification backend (the OS notification layer)
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class AppState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


class NotificationData(BaseModel):
    """Payload carried by every plan reminder; field names are the wire format"""
    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field(..., alias="planId")
    original_time: str = Field(..., alias="originalTime")
    scheduled_for: str = Field(..., alias="scheduledFor")
    is_next_day: Optional[bool] = Field(default=None, alias="isNextDay")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class NotificationContent(BaseModel):
    title: str
    body: str
    sound: Optional[str] = "default"
    data: NotificationData


class NotificationRequest(BaseModel):
    """A one-shot, date-triggered reminder registered under ``identifier``"""
    identifier: str
    content: NotificationContent
    trigger_at: datetime


class NotificationChannel(BaseModel):
    id: str
    name: str
    importance: str = "max"
    vibration_pattern: List[int] = Field(default_factory=list)
    light_color: Optional[str] = None


class NotificationPresentation(BaseModel):
    show_alert: bool = True
    play_sound: bool = True
    set_badge: bool = False


class NotificationResponse(BaseModel):
    """User interaction with a delivered reminder"""
    request: NotificationRequest
    action: str = "default"
    received_at: datetime

    @property
    def identifier(self) -> str:
        return self.request.identifier

    @property
    def data(self) -> NotificationData:
        return self.request.content.data
