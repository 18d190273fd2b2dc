from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Notification(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    alert: str | None = None
    badge: int | None = None
    message_from: str | None = None
    icon: str | None = None
    sound: str | None = None
    tag: str | None = None
    color: str | None = None
    click_action: str | None = None
    data_only: bool | None = None

    collapse_key: str | None = None
    delay_while_idle: bool | None = None
    expiration_interval: int | None = Field(default=None, ge=0)
    expiration_time: datetime | None = None

    # Bookkeeping of the stored record; declared so they never fall into the
    # custom fields forwarded as data.
    id: int | None = None
    device_type: str | None = None
    device_token: str | None = None
    category: str | None = None
    content_available: bool | None = None
    mutable_content: bool | None = None
    url_args: list[str] | None = None
    scheduled_time: datetime | None = None
    status: str | None = None
    created: datetime | None = None
    modified: datetime | None = None

    def custom_fields(self) -> dict[str, Any]:
        return {key: value for key, value in (self.model_extra or {}).items() if value is not None}


class DeviceRegistration(BaseModel):
    app_id: str = "default"
    user_id: str | None = None
    device_type: str = Field(default="android", pattern="^(android|ios)$")
    device_token: str = Field(min_length=1)


class InstallationItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    app_id: str
    user_id: str | None = None
    device_type: str
    device_token: str
    status: str
    created_at: datetime
    modified_at: datetime


class PushQuery(BaseModel):
    app_id: str | None = None
    user_id: str | None = None
    device_type: str | None = None


class PushRequest(BaseModel):
    notification: dict[str, Any]
    query: PushQuery = Field(default_factory=PushQuery)


class TokenErrorItem(BaseModel):
    device_token: str
    error_code: str


class PushResponse(BaseModel):
    device_type: str
    outcome: str
    tokens: list[str] = Field(default_factory=list)
    gone: list[str] = Field(default_factory=list)
    errors: list[TokenErrorItem] = Field(default_factory=list)
    error: str | None = None
