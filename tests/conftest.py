"""
Pytest configuration and shared fixtures.
"""
import asyncio
import copy
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from config import BotConfig

TARGET_GROUP_ID = -1001234567890
ADMIN_ID = 111


class FakeReferralStore:
    """
    In-memory stand-in for the database module's referral and link functions.

    mark_referral_verified yields to the event loop before its compare-and-set,
    so concurrent callers really interleave, but the check and the write happen
    without a suspension point in between, like a single-row UPDATE ... WHERE.
    """

    def __init__(self):
        self.links: Dict[str, str] = {}
        self.referrals: Dict[int, Dict[str, Any]] = {}
        self.update_calls = 0

    async def find_kol_link(self, link_url: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        if link_url in self.links:
            return {"link_url": link_url, "kol_name": self.links[link_url]}
        return None

    async def insert_kol_link(self, link_url: str, kol_name: str) -> None:
        await asyncio.sleep(0)
        if link_url in self.links:
            raise ValueError("duplicate key value violates unique constraint")
        self.links[link_url] = kol_name

    async def list_kol_links(self) -> List[Dict[str, Any]]:
        rows = [{"link_url": url, "kol_name": name} for url, name in self.links.items()]
        return sorted(rows, key=lambda r: r["kol_name"])

    async def upsert_referral(self, user_id, kol_name, user_name, join_date):
        await asyncio.sleep(0)
        self.referrals[user_id] = {
            "user_id": user_id,
            "referred_by_kol_name": kol_name,
            "user_name": user_name,
            "join_date": join_date,
            "verified": False,
            "verification_date": None,
        }
        return copy.deepcopy(self.referrals[user_id])

    async def mark_referral_verified(self, user_id, verified_at):
        await asyncio.sleep(0)
        self.update_calls += 1
        row = self.referrals.get(user_id)
        if row is None or row["verified"]:
            return None
        row["verified"] = True
        row["verification_date"] = verified_at
        return copy.deepcopy(row)

    async def get_referral(self, user_id):
        await asyncio.sleep(0)
        row = self.referrals.get(user_id)
        return copy.deepcopy(row) if row else None

    async def delete_referral(self, user_id):
        await asyncio.sleep(0)
        row = self.referrals.pop(user_id, None)
        return [row] if row else []

    async def count_referrals(self, kol_name=None, verified_only=True):
        count = 0
        for row in self.referrals.values():
            if verified_only and not row["verified"]:
                continue
            if kol_name is not None:
                stored = row["referred_by_kol_name"] or ""
                # ILIKE on an escaped name: case-insensitive equality
                if stored.lower() != kol_name.lower():
                    continue
            count += 1
        return count


@pytest.fixture
def fake_store():
    """FakeReferralStore patched over the database module functions"""
    store = FakeReferralStore()
    with patch.multiple(
        "database",
        find_kol_link=store.find_kol_link,
        insert_kol_link=store.insert_kol_link,
        list_kol_links=store.list_kol_links,
        upsert_referral=store.upsert_referral,
        mark_referral_verified=store.mark_referral_verified,
        get_referral=store.get_referral,
        delete_referral=store.delete_referral,
        count_referrals=store.count_referrals,
    ):
        yield store


@pytest.fixture
def bot_config():
    return BotConfig(
        app_env="local",
        bot_token="123456:TEST-TOKEN",
        target_group_id=TARGET_GROUP_ID,
        database_url="postgresql://localhost/referrals",
        database_password="secret",
        admin_user_ids=(ADMIN_ID,),
    )


@pytest.fixture
def fixed_now():
    """Fixed datetime for deterministic tests"""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def mock_bot():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.create_chat_invite_link = AsyncMock()
    return bot


def make_user(user_id: int, first_name: Optional[str] = "Alex", username: Optional[str] = None):
    return SimpleNamespace(id=user_id, first_name=first_name, username=username)


def make_message(user_id: int = ADMIN_ID, chat_type: str = "private", chat_id: Optional[int] = None,
                 text: str = "", chat_title: Optional[str] = None, first_name: str = "Admin"):
    message = MagicMock()
    message.from_user = make_user(user_id, first_name=first_name)
    message.chat = SimpleNamespace(id=chat_id if chat_id is not None else user_id, type=chat_type, title=chat_title)
    message.text = text
    message.answer = AsyncMock()
    return message


def make_callback(acting_user_id: int, data: str, query_id: str = "cq-1"):
    callback = MagicMock()
    callback.id = query_id
    callback.from_user = make_user(acting_user_id)
    callback.data = data
    callback.answer = AsyncMock()
    callback.message = MagicMock()
    callback.message.chat = SimpleNamespace(id=TARGET_GROUP_ID, type="supergroup")
    callback.message.edit_text = AsyncMock()
    return callback


def make_chat_member_update(user, old_status: Optional[str], new_status: str,
                            invite_link_url: Optional[str] = None, chat_id: int = TARGET_GROUP_ID):
    event = MagicMock()
    event.chat = SimpleNamespace(id=chat_id, title="Target Group")
    event.new_chat_member = SimpleNamespace(user=user, status=new_status)
    event.old_chat_member = SimpleNamespace(user=user, status=old_status) if old_status else None
    event.invite_link = SimpleNamespace(invite_link=invite_link_url) if invite_link_url else None
    return event


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def callback_factory():
    return make_callback


@pytest.fixture
def chat_member_factory():
    return make_chat_member_update


@pytest.fixture
def user_factory():
    return make_user
