"""
Tests for the chat_member handler: joins create records and prompts, leaves delete.
"""
from unittest.mock import patch, AsyncMock

import pytest
from aiogram.types import InlineKeyboardMarkup

from app.handlers.group.membership import on_chat_member_updated

ALICE_LINK = "https://t.me/+AliceLink"


@pytest.mark.asyncio
async def test_join_via_tracked_link_records_and_prompts(fake_store, mock_bot, bot_config,
                                                         chat_member_factory, user_factory):
    fake_store.links[ALICE_LINK] = "Alice"
    event = chat_member_factory(user_factory(42, first_name="Bob"), "left", "member", ALICE_LINK)

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert fake_store.referrals[42]["referred_by_kol_name"] == "Alice"
    assert fake_store.referrals[42]["user_name"] == "Bob"
    mock_bot.send_message.assert_awaited_once()
    args, kwargs = mock_bot.send_message.call_args
    assert args[0] == bot_config.target_group_id
    assert 'href="tg://user?id=42"' in args[1]
    assert "Alice" in args[1]
    assert kwargs["parse_mode"] == "HTML"
    markup = kwargs["reply_markup"]
    assert isinstance(markup, InlineKeyboardMarkup)
    assert markup.inline_keyboard[0][0].callback_data == "verify_42"


@pytest.mark.asyncio
async def test_prompt_escapes_names(fake_store, mock_bot, bot_config, chat_member_factory, user_factory):
    fake_store.links[ALICE_LINK] = "A&B <KOL>"
    event = chat_member_factory(user_factory(42, first_name="<script>"), "left", "member", ALICE_LINK)

    await on_chat_member_updated(event, mock_bot, bot_config)

    text = mock_bot.send_message.call_args[0][1]
    assert "<script>" not in text
    assert "&lt;script&gt;" in text
    assert "A&amp;B &lt;KOL&gt;" in text
    # stored raw
    assert fake_store.referrals[42]["user_name"] == "<script>"


@pytest.mark.asyncio
async def test_display_name_fallbacks(fake_store, mock_bot, bot_config, chat_member_factory, user_factory):
    fake_store.links[ALICE_LINK] = "Alice"

    await on_chat_member_updated(
        chat_member_factory(user_factory(1, first_name=None, username="bobby"), "left", "member", ALICE_LINK),
        mock_bot, bot_config,
    )
    await on_chat_member_updated(
        chat_member_factory(user_factory(2, first_name=None), "kicked", "member", ALICE_LINK),
        mock_bot, bot_config,
    )

    assert fake_store.referrals[1]["user_name"] == "bobby"
    assert fake_store.referrals[2]["user_name"] == "User 2"


@pytest.mark.asyncio
async def test_join_without_link_ignored(fake_store, mock_bot, bot_config, chat_member_factory, user_factory):
    event = chat_member_factory(user_factory(42), "left", "member", None)

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert fake_store.referrals == {}
    mock_bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_join_via_unknown_link_ignored(fake_store, mock_bot, bot_config, chat_member_factory, user_factory):
    event = chat_member_factory(user_factory(42), "left", "member", "https://t.me/+Untracked")

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert fake_store.referrals == {}
    mock_bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_other_chat_ignored(fake_store, mock_bot, bot_config, chat_member_factory, user_factory):
    fake_store.links[ALICE_LINK] = "Alice"
    event = chat_member_factory(user_factory(42), "left", "member", ALICE_LINK, chat_id=-100999)

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert fake_store.referrals == {}
    mock_bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("new_status", ["left", "kicked"])
async def test_leave_deletes_record(fake_store, mock_bot, bot_config, chat_member_factory,
                                    user_factory, fixed_now, new_status):
    fake_store.referrals[42] = {"user_id": 42, "verified": True, "verification_date": fixed_now}
    event = chat_member_factory(user_factory(42), "member", new_status)

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert 42 not in fake_store.referrals
    mock_bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_promotion_ignored(fake_store, mock_bot, bot_config, chat_member_factory, user_factory, fixed_now):
    fake_store.referrals[42] = {"user_id": 42, "verified": False, "verification_date": None}
    event = chat_member_factory(user_factory(42), "member", "administrator")

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert 42 in fake_store.referrals
    mock_bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_prompt_send_failure_keeps_record(fake_store, mock_bot, bot_config,
                                                chat_member_factory, user_factory):
    fake_store.links[ALICE_LINK] = "Alice"
    mock_bot.send_message = AsyncMock(side_effect=RuntimeError("network"))
    event = chat_member_factory(user_factory(42), "left", "member", ALICE_LINK)

    await on_chat_member_updated(event, mock_bot, bot_config)

    assert fake_store.referrals[42]["verified"] is False


@pytest.mark.asyncio
async def test_store_failure_sends_no_prompt(mock_bot, bot_config, chat_member_factory, user_factory):
    event = chat_member_factory(user_factory(42), "left", "member", ALICE_LINK)

    with patch("app.services.referrals.service.database") as mock_db:
        mock_db.find_kol_link = AsyncMock(return_value={"link_url": ALICE_LINK, "kol_name": "Alice"})
        mock_db.upsert_referral = AsyncMock(side_effect=ConnectionError("db down"))

        await on_chat_member_updated(event, mock_bot, bot_config)

    mock_bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_unexpected_error_does_not_escape(mock_bot, bot_config, chat_member_factory, user_factory):
    event = chat_member_factory(user_factory(42), "member", "left")

    with patch("app.handlers.group.membership.register_leave", AsyncMock(side_effect=RuntimeError("boom"))):
        await on_chat_member_updated(event, mock_bot, bot_config)
