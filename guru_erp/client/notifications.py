"""User-facing notifications raised by the client coordinator."""
import logging
from typing import Protocol


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Anything that can show a short message to the user (toast, status bar)."""

    def notify(self, message: str, level: str = "info") -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes notifications to the log."""

    LEVELS = {
        "success": logging.INFO,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def notify(self, message: str, level: str = "info") -> None:
        logger.log(self.LEVELS.get(level, logging.INFO), message)
