"""
Affiliate model - a network participant who earns commissions and recruits others.
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class AffiliateStatus(Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING = "PENDING"


class Affiliate(Base, AuditMixin):
    __tablename__ = 'affiliates'

    # Primary key
    affiliateID = Column(Integer, primary_key=True, autoincrement=True)

    # Owning user (auth lives outside this engine)
    userID = Column(Integer, nullable=False, unique=True, index=True)

    # Denormalized user info for reports
    displayName = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)

    code = Column(String, nullable=False, unique=True)  # Referral code, e.g. AFF012JOH
    status = Column(String, nullable=False, default=AffiliateStatus.PENDING.value)

    # Who recruited this affiliate. Forms a forest; may contain cycles in bad data.
    referredByID = Column(Integer, ForeignKey('affiliates.affiliateID'), nullable=True, index=True)

    # Running totals, incremented atomically in SQL
    totalEarnings = Column(DECIMAL(18, 2), nullable=False, default=0)
    unpaidEarnings = Column(DECIMAL(18, 2), nullable=False, default=0)
    totalPaid = Column(DECIMAL(18, 2), nullable=False, default=0)

    activatedAt = Column(DateTime, nullable=True)

    # Note: createdAt (registration), updatedAt - от AuditMixin

    # Relationships
    referredBy = relationship('Affiliate', remote_side=[affiliateID], backref='referrals')

    @property
    def isActive(self) -> bool:
        return self.status == AffiliateStatus.ACTIVE.value

    def __repr__(self):
        return f"<Affiliate(affiliateID={self.affiliateID}, code={self.code}, referredByID={self.referredByID})>"
