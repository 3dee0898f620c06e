from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class PushErrorKind(str, Enum):
    TOKEN_INVALID = "token_invalid"
    TOKEN_UNREGISTERED = "token_unregistered"
    OTHER = "other"


class DispatchOutcome(str, Enum):
    SKIPPED = "skipped"
    NO_TOKEN = "no_token"
    SENT = "sent"
    FAILED = "failed"
    ERROR = "error"


class OutboxRecord(BaseModel):
    """A queued notification as stored in the outbox collection.

    Older producers write ``user_id``/``fcm_token``; both spellings are read.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    recipient_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("recipient_id", "user_id")
    )
    device_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("device_token", "fcm_token")
    )
    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, str] = Field(default_factory=dict)
    sent: bool = False

    @field_validator("data", mode="before")
    @classmethod
    def stringify_data(cls, value: Any) -> Dict[str, str]:
        # FCM only accepts string values in the data payload
        if not isinstance(value, dict):
            return {}
        return {str(k): str(v) for k, v in value.items() if v is not None}


class AndroidHints(BaseModel):
    priority: str = "high"
    sound: str = "default"
    channel_id: str
    click_action: str


class ApnsHints(BaseModel):
    sound: str = "default"
    badge: int = 1


class PushMessage(BaseModel):
    """Provider-neutral description of one push addressed to a single device."""
    title: str
    body: str
    data: Dict[str, str]
    token: str
    android: AndroidHints
    apns: ApnsHints


class PushResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[PushErrorKind] = None

    @property
    def is_permanent_token_failure(self) -> bool:
        return self.error_kind in (PushErrorKind.TOKEN_INVALID, PushErrorKind.TOKEN_UNREGISTERED)


class EnqueueRequest(BaseModel):
    """Body of the manual test-notification endpoint"""
    model_config = ConfigDict(extra="ignore")

    userId: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
