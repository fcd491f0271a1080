# affiliate_system/services/affiliate_service.py
"""
Affiliate lifecycle: registration, activation, referral links.
Affiliates are never deleted, only deactivated.
"""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session
import logging

from models.affiliate import Affiliate, AffiliateStatus
from affiliate_system.errors import AffiliateNotFound, InvalidReferralLink, ReferrerNotFound
from affiliate_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)


def generate_affiliate_code(user_id: int, name: Optional[str]) -> str:
    """AFF + zero-padded user id + first three letters of the name, e.g. AFF007JOH."""
    prefix = (name or "USR")[:3].upper()
    return f"AFF{user_id:03d}{prefix}"


class AffiliateService:
    """Service for creating and linking affiliates."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_code(self, code: str) -> Optional[Affiliate]:
        return self.session.query(Affiliate).filter_by(code=code).first()

    def get_by_user(self, user_id: int) -> Optional[Affiliate]:
        return self.session.query(Affiliate).filter_by(userID=user_id).first()

    def register(
            self,
            user_id: int,
            display_name: Optional[str] = None,
            email: Optional[str] = None,
            referral_code: Optional[str] = None,
            code: Optional[str] = None,
            status: AffiliateStatus = AffiliateStatus.PENDING
    ) -> Affiliate:
        """
        Create the affiliate profile for a user, or return the existing one.

        Args:
            user_id: Owning user
            display_name: Name shown in reports
            email: Contact email
            referral_code: Code of the affiliate whose link was used
            code: Explicit referral code (generated if omitted)
            status: Initial status

        Raises:
            ReferrerNotFound: referral_code does not match any affiliate
        """
        existing = self.get_by_user(user_id)
        if existing:
            logger.debug(f"User {user_id} already has affiliate {existing.code}")
            return existing

        referrer = None
        if referral_code:
            referrer = self.get_by_code(referral_code)
            if referrer is None:
                logger.warning(f"Referral code {referral_code} not found for user {user_id}")
                raise ReferrerNotFound(referral_code)

        affiliate = Affiliate(
            userID=user_id,
            displayName=display_name,
            email=email,
            code=code or generate_affiliate_code(user_id, display_name),
            status=status.value,
            referredByID=referrer.affiliateID if referrer else None,
            activatedAt=datetime.now(timezone.utc) if status == AffiliateStatus.ACTIVE else None,
        )
        self.session.add(affiliate)
        self.session.flush()

        logger.info(
            f"Registered affiliate {affiliate.code} (user {user_id}), "
            f"referred by {referrer.code if referrer else 'nobody'}"
        )
        return affiliate

    def set_status(self, affiliate_id: int, status: AffiliateStatus) -> Affiliate:
        affiliate = self.session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise AffiliateNotFound(affiliate_id)

        affiliate.status = status.value
        if status == AffiliateStatus.ACTIVE and affiliate.activatedAt is None:
            affiliate.activatedAt = datetime.now(timezone.utc)

        self.session.flush()
        logger.info(f"Affiliate {affiliate.code} status -> {status.value}")
        return affiliate

    def set_referrer(self, affiliate_id: int, referrer_id: Optional[int]) -> Affiliate:
        """
        Re-link an affiliate under a new referrer.

        Raises:
            AffiliateNotFound: affiliate does not exist
            ReferrerNotFound: referrer does not exist
            InvalidReferralLink: the link would make the affiliate its own ancestor
        """
        affiliate = self.session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise AffiliateNotFound(affiliate_id)

        if referrer_id is not None and self.session.get(Affiliate, referrer_id) is None:
            raise ReferrerNotFound(referrer_id)

        if ChainWalker(self.session).would_create_cycle(affiliate_id, referrer_id):
            logger.warning(f"Refusing to link affiliate {affiliate_id} under {referrer_id}: cycle")
            raise InvalidReferralLink(affiliate_id, referrer_id)

        affiliate.referredByID = referrer_id
        self.session.flush()
        return affiliate
