"""
Withdrawal model - payout requests against approved commissions.
Only read by the balance aggregation here.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class WithdrawalStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


class Withdrawal(Base, AuditMixin):
    __tablename__ = 'withdrawals'

    withdrawalID = Column(Integer, primary_key=True, autoincrement=True)
    affiliateID = Column(Integer, ForeignKey('affiliates.affiliateID'), nullable=False, index=True)

    amount = Column(DECIMAL(18, 2), nullable=False)
    status = Column(String, nullable=False, default=WithdrawalStatus.PENDING.value, index=True)

    completedAt = Column(DateTime, nullable=True)
    notes = Column(String, nullable=True)

    affiliate = relationship('Affiliate', backref='withdrawals')

    def __repr__(self):
        return f"<Withdrawal(withdrawalID={self.withdrawalID}, amount={self.amount}, status={self.status})>"
