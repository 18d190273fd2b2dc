from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Protocol

import httpx

from src.config import DEFAULT_GCM_ENDPOINT
from src.notifications.gcm.results import GatewayResult
from src.notifications.gcm.translator import GcmMessage

logger = logging.getLogger(__name__)

SendCallback = Callable[[Exception | None, GatewayResult | None], None]


class GcmTransportError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GcmTransport(Protocol):
    def send(self, message: GcmMessage, tokens: list[str], callback: SendCallback) -> None: ...


class GcmHttpTransport:
    """Post messages to the GCM HTTP endpoint.

    Network errors and 5xx responses are retried with exponential backoff;
    4xx responses (bad key, malformed body) are reported at once.
    """

    def __init__(
        self,
        server_key: str,
        endpoint: str = DEFAULT_GCM_ENDPOINT,
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        client: httpx.Client | None = None,
    ) -> None:
        self.server_key = server_key
        self.endpoint = endpoint
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = max(0.0, backoff_seconds)
        self._client = client or httpx.Client(timeout=timeout_seconds)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"key={self.server_key}",
            "Content-Type": "application/json",
        }

    def _encode(self, message: GcmMessage, tokens: list[str]) -> str:
        try:
            return json.dumps(message.to_wire(tokens))
        except (TypeError, ValueError) as exc:
            raise GcmTransportError(f"GCM message cannot be encoded: {exc}") from exc

    def _post(self, content: str) -> GatewayResult:
        last_error = GcmTransportError("GCM send was not attempted")

        for attempt in range(self.max_retries + 1):
            if attempt:
                logger.warning(
                    "GCM send failed, retrying",
                    extra={"attempt": attempt, "error": str(last_error)},
                )
                time.sleep(self.backoff_seconds * (2 ** (attempt - 1)))

            try:
                response = self._client.post(self.endpoint, content=content, headers=self._headers())
            except httpx.InvalidURL as exc:
                raise GcmTransportError(f"GCM endpoint is invalid: {exc}") from exc
            except httpx.HTTPError as exc:
                last_error = GcmTransportError(f"GCM request failed: {exc}")
                continue

            if response.status_code < 400:
                try:
                    return GatewayResult.model_validate(response.json())
                except ValueError as exc:
                    raise GcmTransportError(
                        f"GCM returned an unreadable body: {exc}", status_code=response.status_code
                    ) from exc
            last_error = GcmTransportError(
                f"GCM responded with {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
            if response.status_code < 500:
                raise last_error

        raise last_error

    def send(self, message: GcmMessage, tokens: list[str], callback: SendCallback) -> None:
        try:
            result = self._post(self._encode(message, tokens))
        except GcmTransportError as exc:
            callback(exc, None)
            return
        callback(None, result)

    def close(self) -> None:
        self._client.close()
