from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable, Sequence
from typing import Any

from src.models.notification import Notification

logger = logging.getLogger(__name__)

ERROR_EVENT = "error"
DEVICES_GONE_EVENT = "devicesGone"

Listener = Callable[..., Any]


class PushConfigurationError(ValueError):
    pass


class BasePushProvider(ABC):
    """A push gateway backend that reports results through events.

    ``error`` receives an exception, ``devicesGone`` the tokens the gateway no
    longer accepts. An ``error`` nobody listens to is logged.
    """

    name: str = "base"

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> None:
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *args: Any) -> bool:
        listeners = list(self._listeners.get(event, []))
        if not listeners:
            if event == ERROR_EVENT:
                logger.error("Unhandled push provider error", extra={"provider": self.name, "error": str(args[0])})
            return False
        for listener in listeners:
            listener(*args)
        return True

    @staticmethod
    def normalize_tokens(token_or_tokens: str | Sequence[str]) -> list[str]:
        if isinstance(token_or_tokens, str):
            return [token_or_tokens]
        return list(token_or_tokens)

    @abstractmethod
    def push_notification(self, notification: Notification, token_or_tokens: str | Sequence[str], callback=None) -> None:
        raise NotImplementedError
