from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy.orm import Session

from src.config import get_settings
from src.models.notification import DeviceRegistration, Notification
from src.models.tables import Installation
from src.notifications.gcm.provider import GcmProvider
from src.notifications.gcm.results import (
    DispatchOutcome,
    PartialFailure,
    ProtocolViolation,
    TransportFailure,
)
from src.notifications.providers import BasePushProvider
from src.storage.repository import InstallationRepository

logger = logging.getLogger(__name__)


class InstallationNotFoundError(LookupError):
    pass


class UnsupportedDeviceTypeError(ValueError):
    pass


@lru_cache(maxsize=1)
def default_providers() -> dict[str, BasePushProvider]:
    return {"android": GcmProvider.from_settings(get_settings())}


def summarize(device_type: str, tokens: list[str], outcome: DispatchOutcome | None) -> dict:
    summary: dict = {
        "device_type": device_type,
        "outcome": outcome.kind if outcome is not None else "pending",
        "tokens": tokens,
        "gone": [],
        "errors": [],
        "error": None,
    }
    if isinstance(outcome, PartialFailure):
        summary["gone"] = list(outcome.gone)
        summary["errors"] = [
            {"device_token": item.device_token, "error_code": item.error_code} for item in outcome.errors
        ]
    elif isinstance(outcome, (TransportFailure, ProtocolViolation)):
        summary["error"] = str(outcome.error)
    return summary


class NotificationService:
    def __init__(self, db: Session, providers: dict[str, BasePushProvider] | None = None) -> None:
        self.repository = InstallationRepository(db)
        self._providers = providers

    @property
    def providers(self) -> dict[str, BasePushProvider]:
        if self._providers is None:
            self._providers = default_providers()
        return self._providers

    def register_device(self, registration: DeviceRegistration) -> Installation:
        return self.repository.register(
            device_type=registration.device_type,
            device_token=registration.device_token,
            app_id=registration.app_id,
            user_id=registration.user_id,
        )

    def unregister_device(self, installation_id: int) -> None:
        if not self.repository.remove(installation_id):
            raise InstallationNotFoundError(f"Installation {installation_id} not found")

    def notify_by_id(self, installation_id: int, notification: Notification) -> dict:
        installation = self.repository.get(installation_id)
        if installation is None:
            raise InstallationNotFoundError(f"Installation {installation_id} not found")
        return self.notify_many(installation.device_type, [installation.device_token], notification)

    def notify_by_query(
        self,
        notification: Notification,
        app_id: str | None = None,
        user_id: str | None = None,
        device_type: str | None = None,
    ) -> list[dict]:
        tokens_by_type: dict[str, list[str]] = {}
        for row in self.repository.find(app_id=app_id, user_id=user_id, device_type=device_type):
            tokens_by_type.setdefault(row.device_type, []).append(row.device_token)

        summaries = []
        for kind, tokens in tokens_by_type.items():
            if kind not in self.providers:
                logger.warning("Skipping installations without a push provider", extra={"device_type": kind})
                continue
            summaries.append(self.notify_many(kind, tokens, notification))
        return summaries

    def notify_many(self, device_type: str, tokens: list[str], notification: Notification) -> dict:
        provider = self.providers.get(device_type)
        if provider is None:
            raise UnsupportedDeviceTypeError(f"No push provider for device type: {device_type}")

        outcomes: list[DispatchOutcome] = []
        provider.push_notification(notification, tokens, outcomes.append)
        outcome = outcomes[0] if outcomes else None

        if isinstance(outcome, PartialFailure) and outcome.gone:
            purged = self.repository.remove_tokens(device_type, outcome.gone)
            logger.info(
                "Purged installations for gone devices",
                extra={"device_type": device_type, "purged": purged},
            )
        return summarize(device_type, list(tokens), outcome)
