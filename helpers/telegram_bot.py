"""
Minimal Telegram Bot API client used for grid alerts.
"""

from __future__ import annotations

import requests

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramBot:
    """Sends plain-text messages to a single chat."""

    def __init__(self, token: str, chat_id: str, *, timeout: float = 10.0) -> None:
        self.token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.api_url = f"{TELEGRAM_API_BASE}/bot{token}"

    def send_text(self, text: str) -> None:
        """
        Post ``text`` to the configured chat.

        Raises:
            requests.HTTPError: If Telegram rejects the request.
        """
        response = requests.post(
            f"{self.api_url}/sendMessage",
            json={"chat_id": self.chat_id, "text": text},
            timeout=self.timeout,
        )
        response.raise_for_status()
