"""
Referral Service Layer

Referral record lifecycle: join tracking, leave cleanup, at-most-once verification.
"""

from app.services.referrals.service import (
    classify_membership_change,
    register_join,
    register_leave,
    verify_referral,
    get_referral_state,
    MembershipTransition,
    JoinStatus,
    JoinResult,
    LeaveStatus,
    VerificationStatus,
    VerificationResult,
    ReferralState,
)
from app.services.referrals.tokens import VerifyAction
from app.services.referrals.exceptions import (
    ReferralServiceError,
    InvalidActionTokenError,
)

__all__ = [
    "classify_membership_change",
    "register_join",
    "register_leave",
    "verify_referral",
    "get_referral_state",
    "MembershipTransition",
    "JoinStatus",
    "JoinResult",
    "LeaveStatus",
    "VerificationStatus",
    "VerificationResult",
    "ReferralState",
    "VerifyAction",
    "ReferralServiceError",
    "InvalidActionTokenError",
]
