from typing import Protocol

from bucket_client.logger import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    """
    User-visible notifications (toasts in a UI).
    """

    def success(self, title: str, message: str) -> None:
        ...

    def error(self, title: str, message: str) -> None:
        ...


class LoggingNotifier:
    def success(self, title: str, message: str) -> None:
        logger.info(message, extra={"title": title})

    def error(self, title: str, message: str) -> None:
        logger.error(message, extra={"title": title})
