"""
Affiliate system - multi-level commission distribution and network reports.
"""

# Services
from affiliate_system.services.commission_service import CommissionService, DistributionResult
from affiliate_system.services.hierarchy_service import HierarchyService, TreeNode
from affiliate_system.services.balance_service import BalanceService, BalanceSummary
from affiliate_system.services.affiliate_service import AffiliateService
from affiliate_system.services.order_service import OrderService, PurchaseFactProvider, DatabasePurchaseFacts

# Configuration
from affiliate_system.config.schedule import CommissionSchedule

# Utilities
from affiliate_system.utils.chain_walker import ChainWalker, UplineEntry

# Errors
from affiliate_system.errors import (
    AffiliateSystemError,
    ReferrerNotFound,
    DuplicateOrder,
    OrderNotCompleted,
    AffiliateNotFound,
    CycleDetected,
    InvalidReferralLink,
)

__all__ = [
    # Services
    'CommissionService',
    'DistributionResult',
    'HierarchyService',
    'TreeNode',
    'BalanceService',
    'BalanceSummary',
    'AffiliateService',
    'OrderService',
    'PurchaseFactProvider',
    'DatabasePurchaseFacts',

    # Config
    'CommissionSchedule',

    # Utils
    'ChainWalker',
    'UplineEntry',

    # Errors
    'AffiliateSystemError',
    'ReferrerNotFound',
    'DuplicateOrder',
    'OrderNotCompleted',
    'AffiliateNotFound',
    'CycleDetected',
    'InvalidReferralLink',
]
