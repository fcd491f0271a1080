# affiliate_system/services/commission_service.py
"""
Commission distribution service - pays fixed per-level commissions up the upline.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Dict, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from config import Config
from models.affiliate import Affiliate
from models.order import Order, CommissionState
from models.commission import Commission, CommissionStatus
from affiliate_system.config.schedule import CommissionSchedule
from affiliate_system.errors import DuplicateOrder, OrderNotCompleted, ReferrerNotFound
from affiliate_system.utils.chain_walker import ChainWalker

logger = logging.getLogger(__name__)


@dataclass
class DistributionResult:
    """Outcome of one distribution run."""
    order: Order
    commissions: List[Commission] = field(default_factory=list)
    summary: Dict = field(default_factory=dict)


class CommissionService:
    """Service for distributing per-level commissions for completed orders."""

    def __init__(
            self,
            session: Session,
            schedule: Optional[CommissionSchedule] = None,
            require_active: Optional[bool] = None
    ):
        self.session = session
        # Snapshot once; later config changes never touch records already created
        self.schedule = schedule or CommissionSchedule.from_config()
        if require_active is None:
            require_active = bool(Config.get(Config.REQUIRE_ACTIVE_UPLINE, False))
        self.require_active = require_active

    def distribute(self, order: Order, directReferrerId: Optional[int] = None) -> DistributionResult:
        """
        Create commission records for a completed order.

        All commission rows, accumulator increments and the order claim are
        committed together; any failure rolls the whole run back.

        distribute owns the session's transaction: it commits or rolls back
        everything the session holds. Callers commit their own work first;
        unflushed changes are refused up front so a rollback never discards
        them silently.

        Args:
            order: Completed order
            directReferrerId: Affiliate whose link was used. Defaults to order.referredByID.

        Returns:
            DistributionResult with created commissions and summary

        Raises:
            OrderNotCompleted: order.status is not completed
            ReferrerNotFound: directReferrerId does not resolve
            DuplicateOrder: order was already distributed
            ValueError: session has uncommitted pending changes
        """
        if self.session.new or self.session.dirty or self.session.deleted:
            raise ValueError(
                "distribute needs a session without pending changes; commit them first"
            )

        if directReferrerId is None:
            directReferrerId = order.referredByID

        orderId = order.orderID
        reference = order.reference
        orderTotal = Decimal(str(order.amount))

        if not order.isCompleted:
            raise OrderNotCompleted(orderId, order.status)

        if directReferrerId is None or self.session.get(Affiliate, directReferrerId) is None:
            logger.warning(f"Order {reference}: referrer {directReferrerId} not found")
            raise ReferrerNotFound(directReferrerId)

        commissions = []
        totalDistributed = Decimal("0")

        try:
            self._claimOrder(order, directReferrerId)

            for entry in self._resolveChain(directReferrerId):
                amount = self.schedule.amount_for(entry.level, orderTotal)
                if amount <= 0:
                    continue
                commissions.append(
                    self._saveCommission(order, entry.affiliateId, entry.level, amount)
                )
                totalDistributed += amount

            self.session.flush()
            self.session.commit()

        except DuplicateOrder:
            self.session.rollback()
            raise
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Order {reference}: uniqueness violation, treating as duplicate ({e.orig})")
            raise DuplicateOrder(orderId)
        except Exception as e:
            self.session.rollback()
            logger.error(f"Distribution failed for order {reference}: {e}")
            raise

        result = DistributionResult(
            order=order,
            commissions=commissions,
            summary={
                "orderTotal": orderTotal,
                "totalDistributed": totalDistributed,
                "levelsPaid": len(commissions),
            }
        )

        logger.info(
            f"Distributed order {reference}: "
            f"{len(commissions)} levels, total {totalDistributed}"
        )

        return result

    def isDistributed(self, orderId: int) -> bool:
        order = self.session.get(Order, orderId)
        return order is not None and order.commissionStatus == CommissionState.DISTRIBUTED.value

    def _resolveChain(self, directReferrerId: int):
        walker = ChainWalker(self.session)
        max_levels = self.schedule.max_level
        hard_cap = Config.get(Config.MAX_UPLINE_LEVELS)
        if hard_cap:
            max_levels = min(max_levels, int(hard_cap))
        return walker.resolve_upline(directReferrerId, max_levels, self.require_active)

    def _claimOrder(self, order: Order, directReferrerId: int) -> None:
        """
        Exclusive claim: flip commissionStatus pending -> distributed.
        Zero rows updated means another run already owns the order.
        """
        claimed = self.session.query(Order).filter(
            Order.orderID == order.orderID,
            Order.commissionStatus == CommissionState.PENDING.value
        ).update(
            {
                Order.commissionStatus: CommissionState.DISTRIBUTED.value,
                Order.referredByID: directReferrerId,
            },
            synchronize_session=False
        )

        if claimed == 0:
            logger.info(f"Order {order.reference} already distributed, skipping")
            raise DuplicateOrder(order.orderID)

    def _saveCommission(self, order: Order, affiliateId: int, level: int, amount: Decimal) -> Commission:
        """Insert commission row and increment the beneficiary's accumulators in SQL."""
        commission = Commission(
            affiliateID=affiliateId,
            orderID=order.orderID,
            sourceAffiliateID=order.buyerAffiliateID,
            level=level,
            amount=amount,
            status=CommissionStatus.UNPAID.value,
            reference=f"{order.reference}-L{level}"
        )
        self.session.add(commission)

        # Atomic increment, no read-modify-write
        self.session.query(Affiliate).filter(
            Affiliate.affiliateID == affiliateId
        ).update(
            {
                Affiliate.unpaidEarnings: Affiliate.unpaidEarnings + amount,
                Affiliate.totalEarnings: Affiliate.totalEarnings + amount,
            },
            synchronize_session=False
        )

        logger.debug(f"Commission L{level}: affiliate {affiliateId} +{amount} ({commission.reference})")
        return commission
