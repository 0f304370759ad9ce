"""
Telegram delivery through the Bot API.

Delivery is at-most-once: every recipient gets one sendMessage call, failures
are logged and never retried, and one failing chat does not affect the rest.
"""

import asyncio
from typing import Optional

import aiohttp

from swapwatch.notifications.message_formatter import FormattedMessage
from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


class TelegramDeliveryError(Exception):
    """sendMessage was rejected by Telegram or did not reach it."""


class TelegramNotifier:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        bot_token: str,
        recipients: list[str],
        api_url: str = TELEGRAM_API_URL,
        timeout: float = 10.0,
    ):
        self._session = session
        self.bot_token = bot_token
        self.recipients = [r for r in recipients if r]
        self.api_url = api_url
        self.timeout = timeout
        self.sent = 0
        self.failed = 0
        self.suppressed = 0

    @property
    def _send_url(self) -> str:
        return f"{self.api_url}/bot{self.bot_token}/sendMessage"

    def build_payload(self, chat_id: str, message: FormattedMessage) -> dict:
        return {
            "chat_id": chat_id,
            "text": message.text,
            "parse_mode": "MarkdownV2",
            "link_preview_options": {"is_disabled": True},
            "reply_markup": {
                "inline_keyboard": [[{"text": "Trade On Jupiter", "url": message.url}]]
            },
        }

    async def deliver(self, message: FormattedMessage) -> int:
        """Send `message` to every recipient. Returns the number of successful sends."""
        if not message.is_trade:
            self.suppressed += 1
            return 0
        if not self.recipients:
            logger.warning("[TELEGRAM] No recipients configured, message dropped")
            return 0

        results = await asyncio.gather(
            *(self._send(self.build_payload(chat_id, message)) for chat_id in self.recipients),
            return_exceptions=True,
        )
        delivered = 0
        for chat_id, result in zip(self.recipients, results):
            if isinstance(result, BaseException):
                self.failed += 1
                logger.warning(f"[TELEGRAM] Delivery to {chat_id} failed: {result}")
            else:
                delivered += 1
        self.sent += delivered
        return delivered

    async def send_alert(self, message: str, title: str = "swapwatch alert") -> None:
        """Plain-text operator alert to every recipient."""
        results = await asyncio.gather(
            *(
                self._send({"chat_id": chat_id, "text": f"🚨 {title}\n\n{message}"})
                for chat_id in self.recipients
            ),
            return_exceptions=True,
        )
        for chat_id, result in zip(self.recipients, results):
            if isinstance(result, BaseException):
                logger.warning(f"[TELEGRAM] Alert to {chat_id} failed: {result}")

    async def _send(self, payload: dict) -> None:
        try:
            async with self._session.post(
                self._send_url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if resp.status != 200:
                    raise TelegramDeliveryError(f"HTTP {resp.status}: {await resp.text()}")
                data: Optional[dict] = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TelegramDeliveryError(str(e)) from e
        if not data or not data.get("ok"):
            raise TelegramDeliveryError(f"Telegram rejected message: {data}")

    def get_stats(self) -> dict:
        return {
            "recipients": len(self.recipients),
            "sent": self.sent,
            "failed": self.failed,
            "suppressed": self.suppressed,
        }
