"""Trade message rendering and Telegram delivery."""

from .message_formatter import FormattedMessage, escape_markdown, format_mcap, format_trade
from .telegram_notifier import TelegramDeliveryError, TelegramNotifier

__all__ = [
    "FormattedMessage",
    "TelegramDeliveryError",
    "TelegramNotifier",
    "escape_markdown",
    "format_mcap",
    "format_trade",
]
