import logging
from typing import Protocol

from src.core.firm_offers.models import NotificationIntent

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def notify(self, intent: NotificationIntent) -> None: ...


class LoggingNotificationDispatcher:
    """Records notification intents in the structured log stream.

    Rendering and delivery belong to the mail service that consumes these
    log events; only the intent leaves this process.
    """

    def notify(self, intent: NotificationIntent) -> None:
        logger.info(
            "firm_offer.notification",
            extra={"extra_fields": intent.model_dump(mode="json", exclude_none=True)},
        )


class RecordingNotificationDispatcher:
    def __init__(self) -> None:
        self.intents: list[NotificationIntent] = []

    def notify(self, intent: NotificationIntent) -> None:
        self.intents.append(intent)
