"""
Callback action tokens.

Inline buttons carry `verify_<telegram_id>` as callback data. VerifyAction is the
typed form; encode() and parse() are the only places that know the wire format.
"""
from dataclasses import dataclass

from app.services.referrals.exceptions import InvalidActionTokenError

VERIFY_PREFIX = "verify_"

# Telegram limit for callback_data
MAX_CALLBACK_DATA_LENGTH = 64


@dataclass(frozen=True)
class VerifyAction:
    """Request to verify the referral record of target_user_id"""
    target_user_id: int

    def encode(self) -> str:
        return f"{VERIFY_PREFIX}{self.target_user_id}"

    @classmethod
    def matches(cls, data: str) -> bool:
        """True if data is meant for this action (well-formed or not)"""
        return bool(data) and data.startswith(VERIFY_PREFIX)

    @classmethod
    def parse(cls, data: str) -> "VerifyAction":
        """
        Parse callback data.

        Raises:
            InvalidActionTokenError: wrong prefix, oversized, or non-numeric id
        """
        if not cls.matches(data):
            raise InvalidActionTokenError(f"Not a verify action: {data!r}")
        if len(data) > MAX_CALLBACK_DATA_LENGTH:
            raise InvalidActionTokenError("Callback data too long")
        raw_id = data[len(VERIFY_PREFIX):]
        if not (raw_id.isascii() and raw_id.isdigit()):
            raise InvalidActionTokenError(f"Invalid user id in verify action: {raw_id!r}")
        return cls(target_user_id=int(raw_id))
