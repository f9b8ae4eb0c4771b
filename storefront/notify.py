# storefront/notify.py
import logging

logger = logging.getLogger(__name__)

LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


# User-facing messages; UIs subclass and override notify()
class Notifier:
    def notify(self, level: str, message: str):
        logger.log(LEVELS.get(level, logging.INFO), "[%s] %s", level, message)

    def info(self, message: str):
        self.notify("info", message)

    def success(self, message: str):
        self.notify("success", message)

    def warning(self, message: str):
        self.notify("warning", message)

    def error(self, message: str):
        self.notify("error", message)
