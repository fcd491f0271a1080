"""
Order model - one completed purchase reported by the external shop.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey
from models.base import Base, AuditMixin


class OrderStatus(Enum):
    COMPLETED = "completed"
    PROCESSING = "processing"
    REFUNDED = "refunded"
    USER_NOT_FOUND = "user_not_found"


class CommissionState(Enum):
    """Whether commissions were already distributed for the order."""
    PENDING = "pending"
    DISTRIBUTED = "distributed"
    NONE = "none"  # nothing to distribute (no referrer)


class Order(Base, AuditMixin):
    __tablename__ = 'orders'

    orderID = Column(Integer, primary_key=True, autoincrement=True)

    # External reference, e.g. WC-1042. Unique so intake is idempotent.
    reference = Column(String, nullable=False, unique=True)

    # Buyer
    buyerUserID = Column(Integer, nullable=True, index=True)
    buyerEmail = Column(String, nullable=True)
    buyerAffiliateID = Column(Integer, ForeignKey('affiliates.affiliateID'), nullable=True)

    # Direct affiliate whose link was used (level 1 of the upline)
    referredByID = Column(Integer, ForeignKey('affiliates.affiliateID'), nullable=True)

    amount = Column(DECIMAL(18, 2), nullable=False)
    status = Column(String, nullable=False, default=OrderStatus.COMPLETED.value)

    commissionStatus = Column(String, nullable=False, default=CommissionState.PENDING.value)

    @property
    def isCompleted(self) -> bool:
        return self.status == OrderStatus.COMPLETED.value

    def __repr__(self):
        return f"<Order(orderID={self.orderID}, reference={self.reference}, amount={self.amount})>"
