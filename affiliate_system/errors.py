"""
Error taxonomy for the affiliate engine.

Every error carries a stable ``code`` so the calling layer can map
kinds to external responses without string matching on messages.
"""
from typing import Optional, Union


class AffiliateSystemError(Exception):
    """Base class for affiliate engine errors."""
    code = "affiliate_system_error"


class ReferrerNotFound(AffiliateSystemError):
    """Direct referrer does not resolve to an affiliate. Nothing was written."""
    code = "referrer_not_found"

    def __init__(self, affiliate_id: Optional[Union[int, str]]):
        # id, or referral code when resolved by code
        self.affiliate_id = affiliate_id
        super().__init__(f"Referrer affiliate {affiliate_id} not found")


class DuplicateOrder(AffiliateSystemError):
    """Commissions for the order were already distributed."""
    code = "duplicate_order"

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} already distributed")


class OrderNotCompleted(AffiliateSystemError):
    code = "order_not_completed"

    def __init__(self, order_id: int, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is not completed (status: {status})")


class AffiliateNotFound(AffiliateSystemError):
    """Unknown affiliate on a query. Queries turn this into a None result."""
    code = "affiliate_not_found"

    def __init__(self, affiliate_id: int):
        self.affiliate_id = affiliate_id
        super().__init__(f"Affiliate {affiliate_id} not found")


class CycleDetected(AffiliateSystemError):
    """
    Referral graph loops back on itself.

    Traversals never raise this; they log it and truncate.
    """
    code = "cycle_detected"

    def __init__(self, affiliate_id: int):
        self.affiliate_id = affiliate_id
        super().__init__(f"Cycle detected at affiliate {affiliate_id}")


class InvalidReferralLink(AffiliateSystemError):
    """Linking would make an affiliate its own ancestor."""
    code = "invalid_referral_link"

    def __init__(self, affiliate_id: int, referrer_id: Optional[int]):
        self.affiliate_id = affiliate_id
        self.referrer_id = referrer_id
        super().__init__(f"Affiliate {affiliate_id} cannot be referred by {referrer_id}")
