# tests/test_affiliate_service.py
"""
Tests for AffiliateService - registration and referral links.
"""
import pytest

from models import AffiliateStatus
from affiliate_system.errors import AffiliateNotFound, InvalidReferralLink, ReferrerNotFound
from affiliate_system.services.affiliate_service import AffiliateService, generate_affiliate_code


class TestRegister:

    def test_generate_code(self):
        assert generate_affiliate_code(7, "john") == "AFF007JOH"
        assert generate_affiliate_code(1234, None) == "AFF1234USR"

    def test_register_with_referral_code(self, session, make_affiliate):
        sponsor = make_affiliate("Sponsor")
        service = AffiliateService(session)

        affiliate = service.register(42, "Alice", "alice@example.com", referral_code=sponsor.code)

        assert affiliate.code == "AFF042ALI"
        assert affiliate.referredByID == sponsor.affiliateID
        assert affiliate.status == AffiliateStatus.PENDING.value
        assert affiliate.activatedAt is None

    def test_register_is_idempotent_per_user(self, session):
        service = AffiliateService(session)

        first = service.register(42, "Alice")
        second = service.register(42, "Someone Else")

        assert first.affiliateID == second.affiliateID

    def test_unknown_referral_code(self, session):
        with pytest.raises(ReferrerNotFound):
            AffiliateService(session).register(42, "Alice", referral_code="AFF999XXX")

    def test_register_active(self, session):
        affiliate = AffiliateService(session).register(5, "Bob", status=AffiliateStatus.ACTIVE)

        assert affiliate.isActive
        assert affiliate.activatedAt is not None


class TestLinks:

    def test_set_status(self, session, make_affiliate):
        affiliate = make_affiliate("Sleeper", status=AffiliateStatus.PENDING)

        updated = AffiliateService(session).set_status(affiliate.affiliateID, AffiliateStatus.ACTIVE)

        assert updated.isActive
        assert updated.activatedAt is not None

    def test_set_referrer(self, session, make_affiliate):
        a = make_affiliate("A")
        b = make_affiliate("B")

        AffiliateService(session).set_referrer(b.affiliateID, a.affiliateID)

        assert b.referredByID == a.affiliateID

    def test_set_referrer_rejects_cycle(self, session, make_chain):
        chain = make_chain(3)
        service = AffiliateService(session)

        with pytest.raises(InvalidReferralLink):
            service.set_referrer(chain[2].affiliateID, chain[0].affiliateID)
        with pytest.raises(InvalidReferralLink):
            service.set_referrer(chain[0].affiliateID, chain[0].affiliateID)

    def test_set_referrer_unknown(self, session, make_affiliate):
        a = make_affiliate("A")
        service = AffiliateService(session)

        with pytest.raises(AffiliateNotFound):
            service.set_referrer(424242, a.affiliateID)
        with pytest.raises(ReferrerNotFound):
            service.set_referrer(a.affiliateID, 424242)
