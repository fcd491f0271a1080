"""
Commission model - append-only record of one level payout for one order.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DECIMAL, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class CommissionStatus(Enum):
    UNPAID = "UNPAID"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    PAID = "PAID"


class Commission(Base, AuditMixin):
    __tablename__ = 'commissions'
    __table_args__ = (
        # At most one commission per (order, beneficiary)
        UniqueConstraint('orderID', 'affiliateID', name='uq_commission_order_affiliate'),
    )

    commissionID = Column(Integer, primary_key=True, autoincrement=True)

    # Beneficiary
    affiliateID = Column(Integer, ForeignKey('affiliates.affiliateID'), nullable=False, index=True)

    # Source
    orderID = Column(Integer, ForeignKey('orders.orderID'), nullable=False, index=True)
    sourceAffiliateID = Column(Integer, ForeignKey('affiliates.affiliateID'), nullable=True)

    level = Column(Integer, nullable=False)  # 1 = buyer's direct referrer
    amount = Column(DECIMAL(18, 2), nullable=False)
    status = Column(String, nullable=False, default=CommissionStatus.UNPAID.value, index=True)

    reference = Column(String, nullable=False)  # WC-1042-L2

    # Relationships
    affiliate = relationship('Affiliate', foreign_keys=[affiliateID], backref='commissions')
    sourceAffiliate = relationship('Affiliate', foreign_keys=[sourceAffiliateID])
    order = relationship('Order', backref='commissions')

    def __repr__(self):
        return f"<Commission(commissionID={self.commissionID}, affiliateID={self.affiliateID}, level={self.level}, amount={self.amount})>"
