import json

import pytest
import requests

from helpers.event_notifier import GridEventNotifier
from helpers.telegram_bot import TelegramBot


class RecordingBot:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send_text(self, text):
        if self.fail:
            raise requests.ConnectionError("telegram unreachable")
        self.sent.append(text)


def make_notifier(tmp_path, bot=None):
    return GridEventNotifier(
        strategy="grid",
        venue="simulated",
        pair="WETH/USDC",
        history_path=tmp_path / "events.jsonl",
        telegram_bot=bot,
    )


def read_journal(tmp_path):
    lines = (tmp_path / "events.jsonl").read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


def test_every_event_is_journaled(tmp_path):
    notifier = make_notifier(tmp_path)

    notifier.notify(event_type="deposit", level="INFO", message="Deposited", payload={"amount": "5"})
    notifier.notify(event_type="grid_paused", level="WARNING", message="Grid paused", payload={})

    journal = read_journal(tmp_path)
    assert [entry["event_type"] for entry in journal] == ["deposit", "grid_paused"]
    assert journal[0]["pair"] == "WETH/USDC"
    assert journal[0]["payload"] == {"amount": "5"}


def test_only_alert_levels_reach_telegram(tmp_path):
    bot = RecordingBot()
    notifier = make_notifier(tmp_path, bot)

    notifier.notify(event_type="deposit", level="INFO", message="Deposited", payload={})
    notifier.notify(
        event_type="slippage_violation",
        level="CRITICAL",
        message="Pass aborted",
        payload={"level_index": 5},
    )

    assert len(bot.sent) == 1
    assert bot.sent[0].startswith("[GRID CRITICAL] slippage_violation")
    assert "level_index: 5" in bot.sent[0]


def test_telegram_failure_is_contained(tmp_path):
    notifier = make_notifier(tmp_path, RecordingBot(fail=True))

    record = notifier.notify(event_type="venue_failures", level="WARNING", message="failed", payload={})

    assert record["level"] == "WARNING"
    assert len(read_journal(tmp_path)) == 1


def test_credentials_enable_telegram(tmp_path, monkeypatch):
    monkeypatch.setenv("GRID_ALERT_TELEGRAM_TOKEN", "123:abc")
    monkeypatch.setenv("GRID_ALERT_TELEGRAM_CHAT_ID", "42")

    notifier = make_notifier(tmp_path)

    assert isinstance(notifier._telegram_bot, TelegramBot)
    assert notifier._telegram_bot.chat_id == "42"


def test_telegram_bot_posts_message(monkeypatch):
    calls = []

    class Response:
        def raise_for_status(self):
            return None

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return Response()

    monkeypatch.setattr(requests, "post", fake_post)

    TelegramBot("123:abc", "42", timeout=3).send_text("hello")

    assert calls == [
        ("https://api.telegram.org/bot123:abc/sendMessage", {"chat_id": "42", "text": "hello"}, 3)
    ]


def test_telegram_bot_raises_on_rejection(monkeypatch):
    class Response:
        def raise_for_status(self):
            raise requests.HTTPError("401 Unauthorized")

    monkeypatch.setattr(requests, "post", lambda url, json, timeout: Response())

    with pytest.raises(requests.HTTPError):
        TelegramBot("bad", "42").send_text("hello")


@pytest.mark.asyncio
async def test_alerts_sent_from_executor_are_awaited(tmp_path):
    bot = RecordingBot()
    notifier = make_notifier(tmp_path, bot)

    notifier.notify(event_type="grid_paused", level="WARNING", message="Grid paused", payload={})
    await notifier.wait_pending()

    assert len(bot.sent) == 1
    assert not notifier._pending_alerts


@pytest.mark.asyncio
async def test_failed_executor_alert_does_not_raise(tmp_path):
    notifier = make_notifier(tmp_path, RecordingBot(fail=True))

    notifier.notify(event_type="venue_failures", level="ERROR", message="failed", payload={})
    await notifier.wait_pending()

    assert not notifier._pending_alerts
