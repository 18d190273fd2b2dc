"""Per-token correlation of a GCM multicast response.

``results[i]`` answers for ``tokens[i]`` of the same send call. Nothing in a
result entry names its token, so the two sequences are walked in lock-step and
a length mismatch is reported as a protocol violation rather than guessed at.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

NOT_REGISTERED = "NotRegistered"
DEFAULT_GONE_ERROR_CODES: tuple[str, ...] = (NOT_REGISTERED,)


class GcmGatewayError(RuntimeError):
    def __init__(self, failures: list[TokenFailure]) -> None:
        super().__init__(
            "\n".join(f"GCM error code: {item.error_code}, deviceToken: {item.device_token}" for item in failures)
        )
        self.failures = failures


class GatewayProtocolError(RuntimeError):
    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"GCM returned {received} results for {expected} device tokens")
        self.expected = expected
        self.received = received


class ResultEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    message_id: str | None = None
    registration_id: str | None = None
    error: str | None = None


class GatewayResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    multicast_id: int | None = None
    success: int = 0
    failure: int = 0
    canonical_ids: int = 0
    results: list[ResultEntry] = Field(default_factory=list)


@dataclass(frozen=True)
class TokenFailure:
    device_token: str
    error_code: str


@dataclass(frozen=True)
class Delivered:
    tokens: list[str]
    kind: Literal["delivered"] = "delivered"


@dataclass(frozen=True)
class TransportFailure:
    error: Exception
    kind: Literal["transport_failure"] = "transport_failure"


@dataclass(frozen=True)
class PartialFailure:
    delivered: list[str] = field(default_factory=list)
    gone: list[str] = field(default_factory=list)
    errors: list[TokenFailure] = field(default_factory=list)
    kind: Literal["partial_failure"] = "partial_failure"

    def gateway_error(self) -> GcmGatewayError | None:
        if not self.errors:
            return None
        return GcmGatewayError(self.errors)


@dataclass(frozen=True)
class ProtocolViolation:
    expected: int
    received: int
    kind: Literal["protocol_violation"] = "protocol_violation"

    @property
    def error(self) -> GatewayProtocolError:
        return GatewayProtocolError(self.expected, self.received)


DispatchOutcome = Delivered | TransportFailure | PartialFailure | ProtocolViolation


def _as_gateway_result(raw: GatewayResult | Mapping[str, Any]) -> GatewayResult:
    if isinstance(raw, GatewayResult):
        return raw
    return GatewayResult.model_validate(raw)


def correlate(
    tokens: list[str],
    gateway_result: GatewayResult | Mapping[str, Any],
    gone_error_codes: Iterable[str] = DEFAULT_GONE_ERROR_CODES,
) -> DispatchOutcome:
    result = _as_gateway_result(gateway_result)
    if len(result.results) != len(tokens):
        return ProtocolViolation(expected=len(tokens), received=len(result.results))

    gone_codes = frozenset(gone_error_codes)
    delivered: list[str] = []
    gone: list[str] = []
    errors: list[TokenFailure] = []

    for token, entry in zip(tokens, result.results):
        if entry.error is None:
            delivered.append(token)
        elif entry.error in gone_codes:
            gone.append(token)
        else:
            errors.append(TokenFailure(device_token=token, error_code=entry.error))

    if not gone and not errors:
        return Delivered(tokens=delivered)
    return PartialFailure(delivered=delivered, gone=gone, errors=errors)
