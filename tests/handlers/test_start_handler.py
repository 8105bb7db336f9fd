"""
Tests for /start and /getchatid
"""
from unittest.mock import patch, AsyncMock

import pytest

from app.handlers.user.start import cmd_start, cmd_getchatid
TARGET_GROUP_ID = -1001234567890


@pytest.mark.asyncio
async def test_start_unverified_gets_button(fake_store, message_factory):
    fake_store.referrals[42] = {"user_id": 42, "verified": False, "verification_date": None}
    message = message_factory(user_id=42, first_name="Bob")

    await cmd_start(message)

    args, kwargs = message.answer.call_args
    assert "Bob" in args[0]
    markup = kwargs["reply_markup"]
    assert markup.inline_keyboard[0][0].callback_data == "verify_42"


@pytest.mark.asyncio
async def test_start_verified(fake_store, message_factory, fixed_now):
    fake_store.referrals[42] = {"user_id": 42, "verified": True, "verification_date": fixed_now}
    message = message_factory(user_id=42, first_name="Bob")

    await cmd_start(message)

    assert message.answer.call_args[0][0] == "Hi Bob! Welcome back. You are already verified."


@pytest.mark.asyncio
async def test_start_without_referral(fake_store, message_factory):
    message = message_factory(user_id=42, first_name="<Bob>")

    await cmd_start(message)

    assert message.answer.call_args[0][0] == "Hi &lt;Bob&gt;! Welcome to the KOL Referral Bot."


@pytest.mark.asyncio
async def test_start_ignored_in_group(fake_store, message_factory):
    message = message_factory(user_id=42, chat_type="supergroup", chat_id=TARGET_GROUP_ID)

    await cmd_start(message)

    message.answer.assert_not_awaited()


@pytest.mark.asyncio
async def test_start_database_error(message_factory):
    message = message_factory(user_id=42)

    with patch("app.services.referrals.service.database") as mock_db:
        mock_db.get_referral = AsyncMock(side_effect=ConnectionError("db down"))
        await cmd_start(message)

    assert message.answer.call_args[0][0] == "Sorry, there was an error checking your status."


@pytest.mark.asyncio
async def test_getchatid_in_group(message_factory):
    message = message_factory(user_id=42, chat_type="supergroup", chat_id=TARGET_GROUP_ID, chat_title="Alpha & Co")

    await cmd_getchatid(message)

    text = message.answer.call_args[0][0]
    assert f"<code>{TARGET_GROUP_ID}</code>" in text
    assert "Alpha &amp; Co" in text
    assert "<code>supergroup</code>" in text
