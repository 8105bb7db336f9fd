"""
KOL Link Service Domain Exceptions
"""


class KolLinkServiceError(Exception):
    """Base exception for KOL link service errors"""
    pass


class InvalidKolNameError(KolLinkServiceError):
    """Raised when a KOL name is empty after trimming"""
    pass
