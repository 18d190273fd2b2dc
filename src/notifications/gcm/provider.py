from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from src.config import Settings
from src.models.notification import Notification
from src.notifications.gcm.results import (
    DEFAULT_GONE_ERROR_CODES,
    Delivered,
    DispatchOutcome,
    GatewayResult,
    PartialFailure,
    ProtocolViolation,
    TransportFailure,
    correlate,
)
from src.notifications.gcm.translator import GcmMessage, translate
from src.notifications.gcm.transport import GcmHttpTransport, GcmTransport
from src.notifications.providers import (
    DEVICES_GONE_EVENT,
    ERROR_EVENT,
    BasePushProvider,
    PushConfigurationError,
)
from src.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[DispatchOutcome], None]


class GcmProvider(BasePushProvider):
    name = "gcm"

    def __init__(
        self,
        server_key: str,
        *,
        transport: GcmTransport | None = None,
        clock: Clock | None = None,
        gone_error_codes: Iterable[str] = DEFAULT_GONE_ERROR_CODES,
    ) -> None:
        super().__init__()
        if not server_key:
            raise PushConfigurationError("GCM server key is required")
        self.server_key = server_key
        self.transport = transport or GcmHttpTransport(server_key)
        self.clock = clock or utc_now
        self.gone_error_codes = tuple(gone_error_codes)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> GcmProvider:
        if not settings.gcm_server_key:
            raise PushConfigurationError("GCM server key is required")
        transport = overrides.pop("transport", None) or GcmHttpTransport(
            settings.gcm_server_key,
            endpoint=settings.gcm_endpoint,
            timeout_seconds=settings.gcm_timeout_seconds,
            max_retries=settings.gcm_max_retries,
            backoff_seconds=settings.gcm_backoff_seconds,
        )
        overrides.setdefault("gone_error_codes", settings.gcm_gone_error_codes)
        return cls(settings.gcm_server_key, transport=transport, **overrides)

    def create_message(self, notification: Notification) -> GcmMessage:
        return translate(notification, now=self.clock())

    def push_notification(
        self,
        notification: Notification,
        token_or_tokens: str | Sequence[str],
        callback: OutcomeCallback | None = None,
    ) -> None:
        tokens = self.normalize_tokens(token_or_tokens)
        if not tokens:
            if callback is not None:
                callback(Delivered(tokens=[]))
            return
        message = self.create_message(notification)

        def on_done(transport_error: Exception | None, gateway_result: GatewayResult | None) -> None:
            outcome = self._outcome(tokens, transport_error, gateway_result)
            self._report(outcome)
            if callback is not None:
                callback(outcome)

        self.transport.send(message, tokens, on_done)

    def _outcome(
        self,
        tokens: list[str],
        transport_error: Exception | None,
        gateway_result: GatewayResult | None,
    ) -> DispatchOutcome:
        if transport_error is not None:
            return TransportFailure(error=transport_error)
        if gateway_result is None:
            return ProtocolViolation(expected=len(tokens), received=0)
        return correlate(tokens, gateway_result, self.gone_error_codes)

    def _report(self, outcome: DispatchOutcome) -> None:
        if isinstance(outcome, TransportFailure):
            logger.warning("GCM send failed", extra={"error": str(outcome.error)})
            self.emit(ERROR_EVENT, outcome.error)
            return

        if isinstance(outcome, ProtocolViolation):
            logger.error(
                "GCM result count does not match device tokens",
                extra={"expected": outcome.expected, "received": outcome.received},
            )
            self.emit(ERROR_EVENT, outcome.error)
            return

        if isinstance(outcome, PartialFailure):
            if outcome.gone:
                logger.info("GCM reported devices gone", extra={"count": len(outcome.gone)})
                self.emit(DEVICES_GONE_EVENT, list(outcome.gone))
            gateway_error = outcome.gateway_error()
            if gateway_error is not None:
                self.emit(ERROR_EVENT, gateway_error)
