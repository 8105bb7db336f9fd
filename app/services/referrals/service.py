"""
Referral Service - referral record lifecycle

Business logic for the (user, KOL, verification) record:
- join via a tracked invite link -> record upserted, verification reset
- leave / kick -> record deleted
- self-verification -> verified flips FALSE -> TRUE at most once

Pure business logic: no aiogram imports, no Telegram calls. Handlers translate
Telegram updates into these calls and perform the visible side effects.

Concurrency: no locks. At-most-once verification relies on the conditional
UPDATE in database.mark_referral_verified.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
import logging

import database
from app.services.referrals.tokens import VerifyAction

logger = logging.getLogger(__name__)

STATUS_MEMBER = "member"
STATUS_LEFT = "left"
STATUS_KICKED = "kicked"
# Previous status when the update carries no previous member object
STATUS_NONE = "none"

JOIN_FROM_STATUSES = frozenset({STATUS_LEFT, STATUS_KICKED, STATUS_NONE})
LEAVE_STATUSES = frozenset({STATUS_LEFT, STATUS_KICKED})


class MembershipTransition(Enum):
    """Outcome of classifying a chat member status change"""
    JOINED = "joined"
    LEFT = "left"
    IGNORED = "ignored"


class JoinStatus(Enum):
    RECORDED = "recorded"
    NO_INVITE_LINK = "no_invite_link"
    UNKNOWN_LINK = "unknown_link"
    LINK_LOOKUP_FAILED = "link_lookup_failed"
    STORE_FAILED = "store_failed"


class LeaveStatus(Enum):
    REMOVED = "removed"
    NOT_FOUND = "not_found"
    FAILED = "failed"


class VerificationStatus(Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    CHECK_FAILED = "check_failed"
    UPDATE_FAILED = "update_failed"


class ReferralState(Enum):
    """Referral state of a user as seen from /start"""
    NONE = "none"
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


@dataclass(frozen=True)
class JoinResult:
    status: JoinStatus
    kol_name: Optional[str] = None

    @property
    def should_prompt(self) -> bool:
        """A verification prompt is sent only when a record was written"""
        return self.status is JoinStatus.RECORDED


@dataclass(frozen=True)
class VerificationResult:
    status: VerificationStatus
    record: Optional[Dict[str, Any]] = None


def _status_value(status: Any) -> str:
    """Plain string for a status that may be a str-Enum (aiogram ChatMemberStatus)"""
    if status is None:
        return STATUS_NONE
    return str(getattr(status, "value", status))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def classify_membership_change(old_status: Any, new_status: Any) -> MembershipTransition:
    """
    Classify a status change.

    JOINED: new status is member and the user was previously absent
            (left, kicked, or no previous member object).
    LEFT:   new status is left or kicked, whatever came before.
    Everything else (promotions, restrictions, member -> member) is IGNORED.
    """
    old = _status_value(old_status)
    new = _status_value(new_status)

    if new == STATUS_MEMBER and old in JOIN_FROM_STATUSES:
        return MembershipTransition.JOINED
    if new in LEAVE_STATUSES:
        return MembershipTransition.LEFT
    return MembershipTransition.IGNORED


async def register_join(
    user_id: int,
    user_name: str,
    invite_link_url: Optional[str],
    now: Optional[datetime] = None,
) -> JoinResult:
    """
    Record a join into the target group.

    Only joins through a registered KOL link are tracked. The record is upserted
    with verified = FALSE, so a re-join resets a previous verification.

    Args:
        user_id: Telegram ID of the new member
        user_name: Raw (unescaped) display name snapshot
        invite_link_url: Invite link used, if Telegram reported one
        now: Join timestamp (aware UTC), defaults to current time

    Returns:
        JoinResult; RECORDED is the only status after which a prompt is sent
    """
    if not invite_link_url:
        logger.info(f"REFERRAL_JOIN_UNTRACKED [user={user_id}, reason=no_invite_link]")
        return JoinResult(status=JoinStatus.NO_INVITE_LINK)

    try:
        link = await database.find_kol_link(invite_link_url)
    except Exception as e:
        logger.error(
            f"REFERRAL_LINK_LOOKUP_FAILED [user={user_id}, link={invite_link_url}]: "
            f"{type(e).__name__}: {e}"
        )
        return JoinResult(status=JoinStatus.LINK_LOOKUP_FAILED)

    if not link:
        logger.info(f"REFERRAL_JOIN_UNTRACKED [user={user_id}, reason=unknown_link, link={invite_link_url}]")
        return JoinResult(status=JoinStatus.UNKNOWN_LINK)

    kol_name = link["kol_name"]
    try:
        await database.upsert_referral(
            user_id=user_id,
            kol_name=kol_name,
            user_name=user_name,
            join_date=now or _utcnow(),
        )
    except Exception as e:
        logger.error(f"REFERRAL_UPSERT_FAILED [user={user_id}, kol={kol_name}]: {type(e).__name__}: {e}")
        return JoinResult(status=JoinStatus.STORE_FAILED, kol_name=kol_name)

    logger.info(f"REFERRAL_RECORDED [user={user_id}, kol={kol_name}]")
    return JoinResult(status=JoinStatus.RECORDED, kol_name=kol_name)


async def register_leave(user_id: int) -> LeaveStatus:
    """
    Remove the referral record of a user who left or was kicked.

    Idempotent: a missing record is reported as NOT_FOUND, not as an error.
    """
    try:
        deleted = await database.delete_referral(user_id)
    except Exception as e:
        logger.error(f"REFERRAL_DELETE_FAILED [user={user_id}]: {type(e).__name__}: {e}")
        return LeaveStatus.FAILED

    if deleted:
        logger.info(f"REFERRAL_REMOVED [user={user_id}]")
        return LeaveStatus.REMOVED

    logger.info(f"REFERRAL_REMOVE_NOT_FOUND [user={user_id}]")
    return LeaveStatus.NOT_FOUND


async def verify_referral(
    acting_user_id: int,
    action: VerifyAction,
    now: Optional[datetime] = None,
) -> VerificationResult:
    """
    Verify the referral record named by action on behalf of acting_user_id.

    Rules:
    - Only the referred user may verify themselves; a mismatch never touches the DB
    - The FALSE -> TRUE flip is a conditional update; among concurrent duplicates
      exactly one caller gets VERIFIED
    - When the update matches nothing, the record is re-read to tell
      ALREADY_VERIFIED from NOT_FOUND

    Returns:
        VerificationResult with the stored record where one is known
    """
    target_user_id = action.target_user_id

    if acting_user_id != target_user_id:
        logger.warning(
            f"VERIFY_FORBIDDEN [acting_user={acting_user_id}, target_user={target_user_id}]"
        )
        return VerificationResult(status=VerificationStatus.FORBIDDEN)

    try:
        updated = await database.mark_referral_verified(target_user_id, now or _utcnow())
    except Exception as e:
        logger.error(f"VERIFY_UPDATE_FAILED [user={target_user_id}]: {type(e).__name__}: {e}")
        return VerificationResult(status=VerificationStatus.UPDATE_FAILED)

    if updated:
        logger.info(f"VERIFY_SUCCESS [user={target_user_id}]")
        return VerificationResult(status=VerificationStatus.VERIFIED, record=updated)

    try:
        current = await database.get_referral(target_user_id)
    except Exception as e:
        logger.error(f"VERIFY_CHECK_FAILED [user={target_user_id}]: {type(e).__name__}: {e}")
        return VerificationResult(status=VerificationStatus.CHECK_FAILED)

    if current and current.get("verified"):
        logger.info(f"VERIFY_ALREADY_VERIFIED [user={target_user_id}]")
        return VerificationResult(status=VerificationStatus.ALREADY_VERIFIED, record=current)

    if current:
        # Unverified row that the conditional update did not match: it was
        # replaced by a re-join between the two queries. Treat as a stale button.
        logger.warning(f"VERIFY_RECORD_CHANGED [user={target_user_id}]")
        return VerificationResult(status=VerificationStatus.CHECK_FAILED, record=current)

    logger.warning(f"VERIFY_RECORD_NOT_FOUND [user={target_user_id}]")
    return VerificationResult(status=VerificationStatus.NOT_FOUND)


async def get_referral_state(user_id: int) -> ReferralState:
    """
    Referral state for the /start self-service check.

    Raises:
        Database errors are propagated to the caller
    """
    record = await database.get_referral(user_id)
    if not record:
        return ReferralState.NONE
    if record.get("verified"):
        return ReferralState.VERIFIED
    return ReferralState.UNVERIFIED
