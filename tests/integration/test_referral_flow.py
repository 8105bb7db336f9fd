"""
End-to-end referral flow through the handlers, backed by the in-memory store:
link creation -> join -> verification -> counts -> leave.
"""
from types import SimpleNamespace

import pytest
from aiogram.filters import CommandObject

from app.handlers.admin.kol import cmd_createlink, cmd_refcount
from app.handlers.callbacks.verification import callback_verify
from app.handlers.group.membership import on_chat_member_updated


def _last_reply(message):
    return message.answer.call_args[0][0]


@pytest.mark.asyncio
async def test_alice_referral_lifecycle(fake_store, mock_bot, bot_config, message_factory,
                                        callback_factory, chat_member_factory, user_factory):
    # Admin issues a link for Alice
    mock_bot.create_chat_invite_link.return_value = SimpleNamespace(invite_link="https://t.me/+AliceLink")
    admin_message = message_factory(text="/createlink Alice")
    await cmd_createlink(admin_message, CommandObject(command="createlink", args="Alice"), mock_bot, bot_config)
    assert fake_store.links == {"https://t.me/+AliceLink": "Alice"}

    # Bob joins through it and gets a prompt
    bob = user_factory(42, first_name="Bob")
    await on_chat_member_updated(
        chat_member_factory(bob, "left", "member", "https://t.me/+AliceLink"), mock_bot, bot_config
    )
    assert fake_store.referrals[42]["verified"] is False
    mock_bot.send_message.assert_awaited_once()

    # Unverified referrals are not counted
    message = message_factory()
    await cmd_refcount(message, CommandObject(command="refcount", args="Alice"), bot_config)
    assert _last_reply(message) == "📊 Verified referral count for KOL <b>Alice</b>: 0"

    # Someone else presses Bob's button
    intruder = callback_factory(7, "verify_42", query_id="cq-intruder")
    await callback_verify(intruder)
    assert fake_store.referrals[42]["verified"] is False

    # Bob verifies
    callback = callback_factory(42, "verify_42")
    await callback_verify(callback)
    assert fake_store.referrals[42]["verified"] is True

    message = message_factory()
    await cmd_refcount(message, CommandObject(command="refcount", args="ALICE"), bot_config)
    assert _last_reply(message) == "📊 Verified referral count for KOL <b>ALICE</b>: 1"

    message = message_factory()
    await cmd_refcount(message, CommandObject(command="refcount"), bot_config)
    assert _last_reply(message) == "📈 Total verified referrals across all KOLs: 1"

    message = message_factory()
    await cmd_refcount(message, CommandObject(command="refcount", args="Nonexistent"), bot_config)
    assert _last_reply(message) == '❓ No referrals found associated with KOL "<b>Nonexistent</b>".'

    # Bob leaves: the record and the count go away
    await on_chat_member_updated(chat_member_factory(bob, "member", "left"), mock_bot, bot_config)
    assert fake_store.referrals == {}

    message = message_factory()
    await cmd_refcount(message, CommandObject(command="refcount"), bot_config)
    assert _last_reply(message) == "📈 Total verified referrals across all KOLs: 0"


@pytest.mark.asyncio
async def test_rejoin_requires_new_verification(fake_store, mock_bot, bot_config,
                                                callback_factory, chat_member_factory, user_factory):
    fake_store.links["https://t.me/+AliceLink"] = "Alice"
    bob = user_factory(42, first_name="Bob")

    await on_chat_member_updated(
        chat_member_factory(bob, "left", "member", "https://t.me/+AliceLink"), mock_bot, bot_config
    )
    await callback_verify(callback_factory(42, "verify_42"))
    assert fake_store.referrals[42]["verified"] is True

    # Re-join without leaving first (missed leave update)
    await on_chat_member_updated(
        chat_member_factory(bob, "kicked", "member", "https://t.me/+AliceLink"), mock_bot, bot_config
    )
    assert fake_store.referrals[42]["verified"] is False
    assert fake_store.referrals[42]["verification_date"] is None
    assert mock_bot.send_message.await_count == 2
