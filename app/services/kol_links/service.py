"""
KOL Link Service

Registry of issued invite links (link URL -> KOL name) and the counts reported
to admins. No aiogram imports: creating the link itself is a Telegram call made
by the handler, this module only records and reads.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

import database
from app.services.kol_links.exceptions import InvalidKolNameError

logger = logging.getLogger(__name__)

# Telegram limit for ChatInviteLink.name
MAX_INVITE_LINK_NAME_LENGTH = 32

INVITE_LINK_NAME_PREFIX = "KOL_"


@dataclass(frozen=True)
class ReferralCount:
    """
    Verified referral count.

    kol_known is None for the unfiltered total. For a filtered count it tells
    whether any record (verified or not) was ever attributed to the KOL.
    """
    count: int
    kol_known: Optional[bool] = None


def normalize_kol_name(raw: Optional[str]) -> str:
    """
    Trim a KOL name from command arguments.

    Raises:
        InvalidKolNameError: nothing left after trimming
    """
    name = (raw or "").strip()
    if not name:
        raise InvalidKolNameError("KOL name is empty")
    return name


def build_invite_link_name(kol_name: str, timestamp_ms: int) -> str:
    """
    Name shown for the invite link in the group's link list.

    Format KOL_<name>_<unix ms>; the name part is shortened so the result fits
    Telegram's 32 character limit while the timestamp suffix stays intact.
    """
    suffix = f"_{timestamp_ms}"
    head = f"{INVITE_LINK_NAME_PREFIX}{kol_name}"
    room = MAX_INVITE_LINK_NAME_LENGTH - len(suffix)
    return head[:max(room, 0)] + suffix


async def register_kol_link(link_url: str, kol_name: str) -> None:
    """
    Persist an issued invite link.

    Raises:
        Database errors are propagated: the caller must warn that the link
        exists on Telegram but is not tracked.
    """
    await database.insert_kol_link(link_url, kol_name)
    logger.info(f"KOL_LINK_REGISTERED [kol={kol_name}, link={link_url}]")


async def get_kol_directory() -> Dict[str, List[str]]:
    """
    All tracked links grouped by KOL name, in KOL name order.

    Raises:
        Database errors are propagated
    """
    rows = await database.list_kol_links()
    directory: Dict[str, List[str]] = OrderedDict()
    for row in rows:
        directory.setdefault(row["kol_name"], []).append(row["link_url"])
    return directory


async def count_verified_referrals(kol_name: Optional[str] = None) -> ReferralCount:
    """
    Count verified referrals, optionally for one KOL (case-insensitive).

    With a KOL filter and a zero count, a second unfiltered-by-verification count
    tells "unknown KOL" apart from "known KOL, nobody verified yet". A failing
    secondary count is logged and reported as unknown.

    Raises:
        Database errors from the primary count are propagated
    """
    count = await database.count_referrals(kol_name=kol_name, verified_only=True)
    if kol_name is None:
        return ReferralCount(count=count)

    if count > 0:
        return ReferralCount(count=count, kol_known=True)

    try:
        total = await database.count_referrals(kol_name=kol_name, verified_only=False)
    except Exception as e:
        logger.error(f"REFCOUNT_KOL_CHECK_FAILED [kol={kol_name}]: {type(e).__name__}: {e}")
        total = 0

    return ReferralCount(count=count, kol_known=total > 0)
