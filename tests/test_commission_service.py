# tests/test_commission_service.py
"""
Tests for CommissionService - per-level distribution.

Run:
    pytest tests/test_commission_service.py -v
"""
from decimal import Decimal

import pytest

from models import Affiliate, AffiliateStatus, Order, Commission, CommissionState, CommissionStatus, OrderStatus
from affiliate_system.config.schedule import CommissionSchedule
from affiliate_system.errors import DuplicateOrder, OrderNotCompleted, ReferrerNotFound
from affiliate_system.services.commission_service import CommissionService


def commissions_for(session, order_id):
    return session.query(Commission).filter_by(orderID=order_id).order_by(Commission.level).all()


class TestDistribution:
    """Commission amounts and beneficiaries."""

    def test_three_level_schedule_on_four_level_chain(self, session, schedule, make_chain, make_order):
        """
        TEST: L1=75000, L2=12500, L3=12500; the 4th upline gets nothing.
        """
        chain = make_chain(4)
        ids = [a.affiliateID for a in chain]
        order = make_order(amount=500000, referrer=chain[0])

        result = CommissionService(session, schedule).distribute(order)

        rows = commissions_for(session, order.orderID)
        assert [(c.affiliateID, c.level, c.amount) for c in rows] == [
            (ids[0], 1, Decimal("75000")),
            (ids[1], 2, Decimal("12500")),
            (ids[2], 3, Decimal("12500")),
        ]
        assert all(c.status == CommissionStatus.UNPAID.value for c in rows)
        assert result.summary["levelsPaid"] == 3
        assert result.summary["totalDistributed"] == Decimal("100000")

        fourth = session.get(Affiliate, ids[3])
        assert fourth.totalEarnings == Decimal("0")

    def test_accumulators_incremented(self, session, schedule, make_chain, make_order):
        chain = make_chain(2)
        ids = [a.affiliateID for a in chain]

        CommissionService(session, schedule).distribute(make_order(referrer=chain[0]))
        CommissionService(session, schedule).distribute(make_order(referrer=chain[0]))

        direct = session.get(Affiliate, ids[0])
        assert direct.unpaidEarnings == Decimal("150000")
        assert direct.totalEarnings == Decimal("150000")
        assert session.get(Affiliate, ids[1]).totalEarnings == Decimal("25000")

    def test_short_chain_pays_existing_levels_only(self, session, schedule, make_chain, make_order):
        chain = make_chain(1)
        order = make_order(referrer=chain[0])

        result = CommissionService(session, schedule).distribute(order)

        assert result.summary["levelsPaid"] == 1
        assert len(commissions_for(session, order.orderID)) == 1

    def test_explicit_referrer_overrides_order(self, session, schedule, make_chain, make_affiliate, make_order):
        chain = make_chain(2)
        other = make_affiliate("Other")
        other_id = other.affiliateID
        order = make_order(referrer=chain[0])

        CommissionService(session, schedule).distribute(order, directReferrerId=other_id)

        rows = commissions_for(session, order.orderID)
        assert [c.affiliateID for c in rows] == [other_id]
        assert session.get(Order, order.orderID).referredByID == other_id

    def test_percentage_schedule(self, session, make_chain, make_order):
        chain = make_chain(2)
        order = make_order(amount=200000, referrer=chain[0])

        CommissionService(session, CommissionSchedule({1: "10%", 2: "1%"})).distribute(order)

        amounts = [c.amount for c in commissions_for(session, order.orderID)]
        assert amounts == [Decimal("20000.00"), Decimal("2000.00")]

    def test_zero_level_is_skipped(self, session, make_chain, make_order):
        chain = make_chain(3)
        order = make_order(referrer=chain[0])

        CommissionService(session, CommissionSchedule({1: 100, 2: 0, 3: 50})).distribute(order)

        assert [c.level for c in commissions_for(session, order.orderID)] == [1, 3]

    def test_cycle_in_upline_pays_each_affiliate_once(self, session, schedule, make_chain, make_order):
        """
        TEST: A corrupted chain that loops back still terminates.
        """
        chain = make_chain(2)
        chain[1].referredByID = chain[0].affiliateID
        session.commit()
        order = make_order(referrer=chain[0])

        result = CommissionService(session, schedule).distribute(order)

        rows = commissions_for(session, order.orderID)
        assert result.summary["levelsPaid"] == 2
        assert len({c.affiliateID for c in rows}) == 2

    def test_require_active_truncates_chain(self, session, schedule, make_affiliate, make_order):
        top = make_affiliate("Top")
        middle = make_affiliate("Middle", referrer=top, status=AffiliateStatus.INACTIVE)
        direct = make_affiliate("Direct", referrer=middle)
        order = make_order(referrer=direct)

        result = CommissionService(session, schedule, require_active=True).distribute(order)

        assert result.summary["levelsPaid"] == 1


class TestIdempotence:

    def test_second_distribution_is_rejected(self, session, schedule, make_chain, make_order):
        """
        TEST: Re-running an order raises DuplicateOrder and writes nothing.
        """
        chain = make_chain(3)
        direct_id = chain[0].affiliateID
        order = make_order(referrer=chain[0])
        service = CommissionService(session, schedule)

        service.distribute(order)
        with pytest.raises(DuplicateOrder):
            service.distribute(order)

        assert len(commissions_for(session, order.orderID)) == 3
        assert session.get(Affiliate, direct_id).totalEarnings == Decimal("75000")
        assert service.isDistributed(order.orderID) is True

    def test_unique_constraint_maps_to_duplicate(self, session, schedule, make_chain, make_order, make_commission):
        """
        TEST: A pre-existing row for (order, affiliate) surfaces as DuplicateOrder.
        """
        chain = make_chain(2)
        order = make_order(referrer=chain[0])
        order_id = order.orderID
        make_commission(chain[0], 1, status=CommissionStatus.UNPAID, order=order)

        with pytest.raises(DuplicateOrder):
            CommissionService(session, schedule).distribute(order)

        assert len(commissions_for(session, order_id)) == 1
        assert session.get(Order, order_id).commissionStatus == CommissionState.PENDING.value


class TestFailures:

    def test_missing_referrer(self, session, schedule, make_order):
        order = make_order()
        order_id = order.orderID

        with pytest.raises(ReferrerNotFound):
            CommissionService(session, schedule).distribute(order)

        with pytest.raises(ReferrerNotFound):
            CommissionService(session, schedule).distribute(order, directReferrerId=424242)

        assert commissions_for(session, order_id) == []
        assert session.get(Order, order_id).commissionStatus == CommissionState.PENDING.value

    def test_pending_caller_work_is_not_discarded(self, session, schedule, make_chain, make_order):
        """
        TEST: Uncommitted caller changes are refused before any write, and kept.
        """
        chain = make_chain(1)
        order = make_order(referrer=chain[0])
        order_id = order.orderID
        newcomer = Affiliate(userID=9001, displayName="Newcomer", code="AFF9001NEW",
                             status=AffiliateStatus.PENDING.value)
        session.add(newcomer)

        with pytest.raises(ValueError):
            CommissionService(session, schedule).distribute(order)

        assert newcomer in session.new
        session.commit()
        assert session.query(Affiliate).filter_by(userID=9001).count() == 1
        assert session.get(Order, order_id).commissionStatus == CommissionState.PENDING.value
        assert commissions_for(session, order_id) == []

    def test_order_not_completed(self, session, schedule, make_chain, make_order):
        chain = make_chain(1)
        order = make_order(referrer=chain[0], status=OrderStatus.REFUNDED)

        with pytest.raises(OrderNotCompleted):
            CommissionService(session, schedule).distribute(order)

        assert commissions_for(session, order.orderID) == []

    def test_failure_mid_run_rolls_back_everything(self, session, schedule, make_chain, make_order, monkeypatch):
        """
        TEST: An error while saving level 2 leaves no level 1 row and no balance change.
        """
        chain = make_chain(3)
        direct_id = chain[0].affiliateID
        order = make_order(referrer=chain[0])
        order_id = order.orderID

        service = CommissionService(session, schedule)
        original = service._saveCommission

        def failing(order, affiliateId, level, amount):
            if level == 2:
                raise RuntimeError("storage failure")
            return original(order, affiliateId, level, amount)

        monkeypatch.setattr(service, "_saveCommission", failing)

        with pytest.raises(RuntimeError):
            service.distribute(order)

        assert commissions_for(session, order_id) == []
        assert session.get(Affiliate, direct_id).totalEarnings == Decimal("0")
        assert session.get(Affiliate, direct_id).unpaidEarnings == Decimal("0")
        assert session.get(Order, order_id).commissionStatus == CommissionState.PENDING.value

        monkeypatch.undo()
        result = CommissionService(session, schedule).distribute(session.get(Order, order_id))
        assert result.summary["levelsPaid"] == 3
