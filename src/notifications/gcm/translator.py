"""Translate a generic ``Notification`` into a GCM message.

The gateway has no reserved top-level parameters for ``alert`` and ``badge``,
so both always travel in ``data``. The remaining decoration fields go into the
``notification`` block, or are flattened into ``data`` for data-only messages.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.models.notification import Notification
from src.utils.time import as_utc, utc_now


class GcmNotificationBlock(BaseModel):
    title: str | None = None
    body: str | None = None
    icon: str | None = None
    sound: str | None = None
    badge: int | None = None
    tag: str | None = None
    color: str | None = None
    click_action: str | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class GcmMessageParams(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    notification: GcmNotificationBlock | None = None
    collapse_key: str | None = None
    delay_while_idle: bool | None = None
    time_to_live: int | None = None


class GcmMessage(BaseModel):
    params: GcmMessageParams = Field(default_factory=GcmMessageParams)

    def to_wire(self, tokens: list[str]) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if len(tokens) == 1:
            body["to"] = tokens[0]
        else:
            body["registration_ids"] = list(tokens)
        body["data"] = dict(self.params.data)
        if self.params.notification is not None:
            body["notification"] = self.params.notification.model_dump(exclude_none=True)
        for key in ("collapse_key", "delay_while_idle", "time_to_live"):
            value = getattr(self.params, key)
            if value is not None:
                body[key] = value
        return body


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def time_to_live_seconds(notification: Notification, now: datetime | None = None) -> int | None:
    if notification.expiration_interval is not None:
        return notification.expiration_interval
    if notification.expiration_time is None:
        return None
    current = as_utc(now or utc_now())
    remaining = (as_utc(notification.expiration_time) - current).total_seconds()
    return max(0, _round_half_up(remaining))


def _decoration(notification: Notification) -> dict[str, Any]:
    return _present(
        title=notification.message_from,
        body=notification.alert,
        icon=notification.icon,
        sound=notification.sound,
        badge=notification.badge,
        tag=notification.tag,
        color=notification.color,
        click_action=notification.click_action,
    )


def translate(notification: Notification, *, now: datetime | None = None) -> GcmMessage:
    data: dict[str, Any] = {}
    block: GcmNotificationBlock | None = None

    if notification.data_only:
        data.update(_present(messageFrom=notification.message_from, alert=notification.alert))
        data.update(_decoration(notification))
        data["dataOnly"] = True
    else:
        data.update(_present(alert=notification.alert, badge=notification.badge))
        candidate = GcmNotificationBlock(**_decoration(notification))
        if not candidate.is_empty():
            block = candidate

    for key, value in notification.custom_fields().items():
        data.setdefault(key, value)

    params = GcmMessageParams(
        data=data,
        notification=block,
        collapse_key=notification.collapse_key,
        delay_while_idle=notification.delay_while_idle,
        time_to_live=time_to_live_seconds(notification, now),
    )
    return GcmMessage(params=params)
