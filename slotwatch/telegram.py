"""
@file telegram.py
@brief Telegram Bot API alert channel.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .actionlogger import ACTION_LOGGER
from .exceptions import AlertDeliveryError
from .interfaces import INotifier

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
SEND_TIMEOUT_SECONDS = 10


class TelegramNotifier(INotifier):
    """
    Sends plain-text messages to one chat through a bot.

    A notifier without token or chat id is disabled: send() logs and returns.
    """

    def __init__(self, bot_token: Optional[str], chat_id: Optional[str], timeout: float = SEND_TIMEOUT_SECONDS):
        self.bot_token = (bot_token or "").strip()
        self.chat_id = (str(chat_id) if chat_id is not None else "").strip()
        self.timeout = timeout
        if not self.enabled:
            logger.warning("Telegram settings not configured, alerts disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    @property
    def url(self) -> str:
        return f"{API_BASE}/bot{self.bot_token}/sendMessage"

    def send(self, text: str) -> None:
        if not self.enabled:
            logger.debug("Telegram send skipped: not configured")
            return

        try:
            response = requests.post(
                self.url,
                json={"chat_id": self.chat_id, "text": text},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AlertDeliveryError("telegram", f"request failed: {e}") from e

        if not response.ok:
            body = response.text[:200] if response.text else ""
            raise AlertDeliveryError("telegram", f"error response: {body}", status_code=response.status_code)

        ACTION_LOGGER.log(action="alert", status="sent", metadata={"text": text, "chat_id": self.chat_id})
        logger.debug("Telegram message sent successfully")
