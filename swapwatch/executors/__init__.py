from .logger import LoggerExecutor
from .telegram import TelegramAlertExecutor

__all__ = ["TelegramAlertExecutor", "LoggerExecutor"]
