# affiliate_system/services/order_service.py
"""
Order intake - turns "order completed" events from the external shop
into Order rows and commission distributions.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional
from sqlalchemy.orm import Session
import logging

from config import Config
from models.affiliate import Affiliate, AffiliateStatus
from models.order import Order, OrderStatus, CommissionState
from affiliate_system.errors import AffiliateSystemError, DuplicateOrder
from affiliate_system.services.commission_service import CommissionService

logger = logging.getLogger(__name__)


class PurchaseFactProvider(ABC):
    """
    Black-box source of purchase facts (shop / CMS).

    The engine only consumes this contract; shops plug in their own.
    """

    @abstractmethod
    def has_completed_purchase(self, buyer_user_id: int) -> bool:
        """Has this user completed a qualifying purchase?"""

    @abstractmethod
    def resolve_referrer(self, buyer_user_id: Optional[int], referral_code: Optional[str] = None) -> Optional[int]:
        """Direct referrer affiliate id for this buyer, or None."""


class DatabasePurchaseFacts(PurchaseFactProvider):
    """PurchaseFactProvider backed by the local orders/affiliates tables."""

    def __init__(self, session: Session):
        self.session = session

    def has_completed_purchase(self, buyer_user_id: int) -> bool:
        return self.session.query(Order.orderID).filter(
            Order.buyerUserID == buyer_user_id,
            Order.status == OrderStatus.COMPLETED.value
        ).first() is not None

    def resolve_referrer(self, buyer_user_id: Optional[int], referral_code: Optional[str] = None) -> Optional[int]:
        if referral_code:
            referrer = self.session.query(Affiliate).filter_by(code=referral_code).first()
            if referrer:
                return referrer.affiliateID
            logger.warning(f"Referral code {referral_code} not found, falling back to buyer's referrer")

        if buyer_user_id is None:
            return None

        buyer = self.session.query(Affiliate).filter_by(userID=buyer_user_id).first()
        return buyer.referredByID if buyer else None


class OrderService:
    """Service for recording completed orders and triggering distribution."""

    def __init__(
            self,
            session: Session,
            facts: Optional[PurchaseFactProvider] = None,
            commission_service: Optional[CommissionService] = None
    ):
        self.session = session
        self.facts = facts or DatabasePurchaseFacts(session)
        self._commission_service = commission_service

    @property
    def commission_service(self) -> CommissionService:
        if self._commission_service is None:
            self._commission_service = CommissionService(self.session)
        return self._commission_service

    @staticmethod
    def make_reference(external_order_id) -> str:
        prefix = Config.get(Config.ORDER_REFERENCE_PREFIX, "WC")
        return f"{prefix}-{external_order_id}"

    def record_completed_order(self, payload: Dict) -> Dict:
        """
        Process one "order completed" event.

        Expected payload:
            {"order_id": 1042, "email": "buyer@x.com", "order_total": 500000,
             "status": "completed", "affiliate_id": 7 | None, "referral_code": "AFF007JOH" | None}

        Returns:
            {"processed": bool, "message": str, "data": dict | None}
        """
        order_id = payload.get("order_id")
        email = payload.get("email")
        status = (payload.get("status") or OrderStatus.COMPLETED.value).lower()

        accepted = Config.get(Config.ACCEPTED_ORDER_STATUSES) or [
            OrderStatus.COMPLETED.value, OrderStatus.PROCESSING.value
        ]
        if status not in accepted:
            message = f"Order {order_id} skipped - status: {status}"
            logger.info(message)
            return {"processed": False, "message": message, "data": None}

        if order_id is None:
            return {"processed": False, "message": "Missing order_id in payload", "data": None}

        if not email:
            logger.warning(f"Order {order_id}: missing email in payload")
            return {"processed": False, "message": "Missing email in payload", "data": None}

        try:
            amount = Decimal(str(payload.get("order_total", 0)))
        except InvalidOperation:
            amount = None

        # NaN / Infinity parse fine but cannot be stored or quantized
        if amount is None or not amount.is_finite():
            logger.warning(f"Order {order_id}: invalid order_total {payload.get('order_total')!r}")
            return {"processed": False, "message": f"Invalid order_total: {payload.get('order_total')}", "data": None}

        buyer = self.session.query(Affiliate).filter_by(email=email).first()
        order = self._get_or_create_order(order_id, email, amount, buyer)

        if buyer is None:
            logger.warning(f"Order {order.reference}: buyer {email} not found, recorded without commission")
            return {
                "processed": True,
                "message": "Order recorded but buyer not found",
                "data": {"reference": order.reference, "email": email},
            }

        self._activate_if_qualified(buyer)

        if order.commissionStatus != CommissionState.PENDING.value:
            logger.info(f"Order {order.reference} already processed ({order.commissionStatus})")
            return {
                "processed": False,
                "message": f"Order {order.reference} already processed",
                "data": {"reference": order.reference, "code": DuplicateOrder.code},
            }

        referrer_id = payload.get("affiliate_id") or order.referredByID or self.facts.resolve_referrer(
            buyer.userID, payload.get("referral_code")
        )

        if referrer_id is None or amount <= 0:
            order.commissionStatus = CommissionState.NONE.value
            self.session.commit()
            logger.info(f"Order {order.reference}: no referrer or zero amount, skipping commission")
            return {
                "processed": True,
                "message": "Order recorded, no commission due",
                "data": {"reference": order.reference},
            }

        try:
            referrer_id = int(referrer_id)
        except (TypeError, ValueError):
            return {"processed": False, "message": f"Invalid affiliate_id: {referrer_id}", "data": None}

        try:
            result = self.commission_service.distribute(order, referrer_id)
        except DuplicateOrder as e:
            logger.info(f"{e}, nothing to do")
            return {
                "processed": False,
                "message": str(e),
                "data": {"reference": order.reference, "code": e.code},
            }
        except AffiliateSystemError as e:
            return {
                "processed": False,
                "message": str(e),
                "data": {"reference": order.reference, "code": e.code},
            }

        return {
            "processed": True,
            "message": "Order processed successfully",
            "data": {
                "reference": order.reference,
                "levelsPaid": result.summary["levelsPaid"],
                "totalDistributed": result.summary["totalDistributed"],
            },
        }

    def _activate_if_qualified(self, buyer: Affiliate) -> None:
        """A PENDING affiliate becomes ACTIVE once the shop confirms a qualifying purchase."""
        if buyer.status != AffiliateStatus.PENDING.value:
            return
        if not self.facts.has_completed_purchase(buyer.userID):
            return

        buyer.status = AffiliateStatus.ACTIVE.value
        buyer.activatedAt = datetime.now(timezone.utc)
        self.session.commit()
        logger.info(f"Affiliate {buyer.code} activated after qualifying purchase")

    def _get_or_create_order(self, external_order_id, email: str, amount: Decimal, buyer: Optional[Affiliate]) -> Order:
        """Orders are unique by reference; re-delivered events reuse the row."""
        reference = self.make_reference(external_order_id)

        existing = self.session.query(Order).filter_by(reference=reference).first()
        if existing:
            logger.info(f"Order {reference} already exists")
            return existing

        order = Order(
            reference=reference,
            buyerUserID=buyer.userID if buyer else None,
            buyerEmail=email,
            buyerAffiliateID=buyer.affiliateID if buyer else None,
            amount=amount,
            status=OrderStatus.COMPLETED.value if buyer else OrderStatus.USER_NOT_FOUND.value,
            commissionStatus=CommissionState.PENDING.value if buyer else CommissionState.NONE.value,
        )
        self.session.add(order)
        # Commit before distribution so a failed run never loses the order itself
        self.session.commit()

        logger.info(f"Order saved: {reference} (buyer: {email}, amount: {amount})")
        return order
