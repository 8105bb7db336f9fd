"""
Referral Service Domain Exceptions
"""


class ReferralServiceError(Exception):
    """Base exception for referral service errors"""
    pass


class InvalidActionTokenError(ReferralServiceError):
    """Raised when callback data is not a well-formed action token"""
    pass
