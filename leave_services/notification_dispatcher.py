"""
Notification dispatchers.

Implementations of ``leave_kernel.domain.dtos.NotificationDispatcher``.
The engine calls ``dispatch`` once per committed status change; delivery,
retries and de-duplication (by ``event.dedupe_key``) belong here.

- ``InMemoryNotificationDispatcher``: keeps events, drops repeats of a
  dedupe key.  Used by tests and the demo.
- ``LoggingNotificationDispatcher``: writes each event to the log.
- ``FanOutNotificationDispatcher``: hands each event to every registered
  channel (in-app, email, push ...) and reports the channels that failed.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Protocol

from leave_kernel.domain.dtos import NotificationEvent
from leave_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


class NotificationChannel(Protocol):
    """One delivery transport."""

    def send(self, event: NotificationEvent) -> None:
        ...


class NotificationDeliveryError(Exception):
    """One or more channels failed to deliver an event."""

    code: str = "NOTIFICATION_DELIVERY_FAILED"

    def __init__(self, dedupe_key: str, failed_channels: tuple[str, ...]):
        self.dedupe_key = dedupe_key
        self.failed_channels = failed_channels
        super().__init__(
            f"Delivery of {dedupe_key} failed on: {', '.join(failed_channels)}"
        )


class InMemoryNotificationDispatcher:
    """Collects events; a repeated dedupe key is ignored."""

    def __init__(self) -> None:
        self._events: list[NotificationEvent] = []
        self._keys: set[str] = set()
        self._lock = threading.Lock()

    def dispatch(self, event: NotificationEvent) -> None:
        with self._lock:
            if event.dedupe_key in self._keys:
                logger.debug("notification_duplicate_dropped", extra={"dedupe_key": event.dedupe_key})
                return
            self._keys.add(event.dedupe_key)
            self._events.append(event)

    @property
    def events(self) -> tuple[NotificationEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
            self._keys.clear()


class LoggingNotificationDispatcher:
    """Writes every event as a structured log line."""

    def dispatch(self, event: NotificationEvent) -> None:
        logger.info(
            "notification_emitted",
            extra={
                "notified_request_id": str(event.request_id),
                "new_status": event.new_status.value,
                "notified_actor_id": str(event.actor_id),
                "occurred_at": event.occurred_at.isoformat(),
                "dedupe_key": event.dedupe_key,
            },
        )


class FanOutNotificationDispatcher:
    """Sends each event to every channel; one channel failing does not stop the rest."""

    def __init__(self, channels: Mapping[str, NotificationChannel]) -> None:
        self._channels = dict(channels)

    def dispatch(self, event: NotificationEvent) -> None:
        failed: list[str] = []
        for name, channel in self._channels.items():
            try:
                channel.send(event)
            except Exception:
                logger.warning(
                    "notification_channel_failed",
                    exc_info=True,
                    extra={"channel": name, "dedupe_key": event.dedupe_key},
                )
                failed.append(name)
        if failed:
            raise NotificationDeliveryError(event.dedupe_key, tuple(failed))
