"""Tests for Telegram delivery"""
import aiohttp
import pytest
from unittest.mock import AsyncMock, MagicMock

from swapwatch.notifications.message_formatter import NOT_A_TRADE, FormattedMessage
from swapwatch.notifications.telegram_notifier import TelegramNotifier

MESSAGE = FormattedMessage(text="🟢 swapped", url="https://jup.ag/swap/A-B")


def test_payload_format(mock_session):
    notifier = TelegramNotifier(mock_session, "TOKEN", ["111"])

    payload = notifier.build_payload("111", MESSAGE)

    assert payload["chat_id"] == "111"
    assert payload["parse_mode"] == "MarkdownV2"
    assert payload["link_preview_options"] == {"is_disabled": True}
    assert payload["reply_markup"] == {
        "inline_keyboard": [[{"text": "Trade On Jupiter", "url": "https://jup.ag/swap/A-B"}]]
    }


@pytest.mark.asyncio
async def test_deliver_to_every_recipient(mock_session):
    notifier = TelegramNotifier(mock_session, "TOKEN", ["111", "222"])

    delivered = await notifier.deliver(MESSAGE)

    assert delivered == 2
    assert mock_session.post.call_count == 2
    url = mock_session.post.call_args.args[0]
    assert url == "https://api.telegram.org/botTOKEN/sendMessage"
    chats = sorted(call.kwargs["json"]["chat_id"] for call in mock_session.post.call_args_list)
    assert chats == ["111", "222"]


@pytest.mark.asyncio
async def test_one_failed_recipient_does_not_block_others(mock_session, http_response):
    """Test: failures are logged and counted, never retried"""
    mock_session.post = MagicMock(side_effect=[
        aiohttp.ClientConnectionError("down"),
        http_response(json_data={"ok": True}),
    ])
    notifier = TelegramNotifier(mock_session, "TOKEN", ["111", "222"])

    delivered = await notifier.deliver(MESSAGE)

    assert delivered == 1
    assert mock_session.post.call_count == 2
    assert notifier.get_stats()["failed"] == 1


@pytest.mark.asyncio
async def test_rejected_message_counts_as_failure(mock_session, http_response):
    mock_session.post = MagicMock(return_value=http_response(
        status=400, json_data={"ok": False}, text="Bad Request: can't parse entities",
    ))
    notifier = TelegramNotifier(mock_session, "TOKEN", ["111"])

    assert await notifier.deliver(MESSAGE) == 0
    assert notifier.failed == 1


@pytest.mark.asyncio
async def test_non_trade_message_suppressed(mock_session):
    notifier = TelegramNotifier(mock_session, "TOKEN", ["111"])

    assert await notifier.deliver(NOT_A_TRADE) == 0
    mock_session.post.assert_not_called()
    assert notifier.suppressed == 1


@pytest.mark.asyncio
async def test_send_alert_swallows_failures(mock_session):
    mock_session.post = MagicMock(side_effect=aiohttp.ClientConnectionError("down"))
    notifier = TelegramNotifier(mock_session, "TOKEN", ["111", ""])

    await notifier.send_alert("subscription stopped")

    assert notifier.recipients == ["111"]
    text = mock_session.post.call_args.kwargs["json"]["text"]
    assert "subscription stopped" in text
