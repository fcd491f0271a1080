"""
Database models for the affiliate network engine.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.affiliate import Affiliate, AffiliateStatus
from models.order import Order, OrderStatus, CommissionState
from models.commission import Commission, CommissionStatus
from models.withdrawal import Withdrawal, WithdrawalStatus

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'Affiliate',
    'Order',
    'Commission',
    'Withdrawal',

    # Statuses
    'AffiliateStatus',
    'OrderStatus',
    'CommissionState',
    'CommissionStatus',
    'WithdrawalStatus',
]
