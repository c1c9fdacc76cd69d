"""Reference implementations of the engine's external collaborators."""

from leave_services.actor_provider import StaticActorProvider
from leave_services.intake import RequestIntake, RequestIntakeError
from leave_services.notification_dispatcher import (
    FanOutNotificationDispatcher,
    InMemoryNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationChannel,
    NotificationDeliveryError,
)

__all__ = [
    "FanOutNotificationDispatcher",
    "InMemoryNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "NotificationChannel",
    "NotificationDeliveryError",
    "RequestIntake",
    "RequestIntakeError",
    "StaticActorProvider",
]
