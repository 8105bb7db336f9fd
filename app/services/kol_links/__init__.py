"""
KOL Link Service Layer

Link registry and aggregate referral counts for the admin commands.
"""

from app.services.kol_links.service import (
    build_invite_link_name,
    normalize_kol_name,
    register_kol_link,
    get_kol_directory,
    count_verified_referrals,
    ReferralCount,
)
from app.services.kol_links.exceptions import (
    KolLinkServiceError,
    InvalidKolNameError,
)

__all__ = [
    "build_invite_link_name",
    "normalize_kol_name",
    "register_kol_link",
    "get_kol_directory",
    "count_verified_referrals",
    "ReferralCount",
    "KolLinkServiceError",
    "InvalidKolNameError",
]
