"""
Grid engine event notifier.

Every structured event the engine emits is appended to a JSONL journal for
post-trade analysis; WARNING and above are also pushed to Telegram when
alert credentials are configured.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Set

from helpers.telegram_bot import TelegramBot
from helpers.unified_logger import get_core_logger, resolve_logs_dir

ALERT_LEVELS = frozenset({"WARNING", "ERROR", "CRITICAL"})


class GridEventNotifier:
    """
    Journal and alert dispatcher for grid engine events.

    - Persist every event as JSONL (``grid_events.jsonl`` in the logs dir)
    - Forward alert-level events to Telegram if
      ``GRID_ALERT_TELEGRAM_TOKEN`` and ``GRID_ALERT_TELEGRAM_CHAT_ID`` are set
    """

    def __init__(
        self,
        strategy: str,
        venue: str,
        pair: str,
        *,
        history_path: Optional[Path] = None,
        telegram_bot: Optional[TelegramBot] = None,
    ) -> None:
        self.strategy = strategy
        self.venue = venue
        self.pair = pair
        self.history_path = Path(history_path) if history_path else resolve_logs_dir() / "grid_events.jsonl"
        self.history_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = get_core_logger("event_notifier")
        self._pending_alerts: Set[asyncio.Future] = set()

        self._telegram_bot = telegram_bot
        if self._telegram_bot is None:
            token = os.getenv("GRID_ALERT_TELEGRAM_TOKEN")
            chat_id = os.getenv("GRID_ALERT_TELEGRAM_CHAT_ID")
            if token and chat_id:
                self._telegram_bot = TelegramBot(token=token, chat_id=chat_id)

    def notify(
        self,
        *,
        event_type: str,
        level: str,
        message: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Persist and optionally forward an event; returns the stored record."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "strategy": self.strategy,
            "venue": self.venue,
            "pair": self.pair,
            "level": level,
            "event_type": event_type,
            "message": message,
            "payload": payload,
        }

        self._write_history(record)

        if self._telegram_bot and level in ALERT_LEVELS:
            self._send_telegram(record)
        return record

    def _write_history(self, record: Dict[str, Any]) -> None:
        try:
            with self.history_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(record, ensure_ascii=False, default=str))
                handle.write("\n")
        except OSError as exc:
            # The journal must never interrupt a pass
            self.logger.log(f"Failed to write event history: {exc}", "ERROR")

    def _send_telegram(self, record: Dict[str, Any]) -> None:
        """Send the alert off the event loop when one is running."""
        lines = [
            f"[GRID {record['level']}] {record['event_type']}",
            f"Venue: {record['venue']}",
            f"Pair: {record['pair']}",
            f"Message: {record['message']}",
            "",
        ]
        lines.extend(f"{key}: {value}" for key, value in sorted((record.get("payload") or {}).items()))
        text = "\n".join(lines).strip()

        def _send() -> None:
            try:
                self._telegram_bot.send_text(text)
            except Exception as exc:
                self.logger.log(f"Telegram alert failed: {exc}", "WARNING")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            _send()
            return
        future = loop.run_in_executor(None, _send)
        self._pending_alerts.add(future)
        future.add_done_callback(self._pending_alerts.discard)

    async def wait_pending(self) -> None:
        """Wait for alerts still being sent from the executor."""
        if self._pending_alerts:
            results = await asyncio.gather(*self._pending_alerts, return_exceptions=True)
            for outcome in results:
                if isinstance(outcome, BaseException):
                    self.logger.log(f"Telegram alert did not complete: {outcome!r}", "WARNING")
