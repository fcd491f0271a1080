# affiliate_system/services/balance_service.py
"""
Balance and earnings reports.

All sums come from grouped SQL aggregates (GROUP BY status), so the
cost is O(groups) rather than O(rows).
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Dict, List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from models.affiliate import Affiliate
from models.commission import Commission, CommissionStatus
from models.withdrawal import Withdrawal, WithdrawalStatus
from affiliate_system.config.schedule import CommissionSchedule
from affiliate_system.errors import AffiliateNotFound

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class BalanceSummary:
    totalEarned: Decimal
    approvedCommission: Decimal
    pendingWithdrawal: Decimal
    completedWithdrawal: Decimal
    availableForWithdrawal: Decimal

    def to_dict(self) -> Dict:
        return asdict(self)


class BalanceService:
    """Read-only earnings aggregation for one affiliate."""

    def __init__(self, session: Session):
        self.session = session

    def _require_affiliate(self, affiliateId: int) -> Affiliate:
        affiliate = self.session.get(Affiliate, affiliateId)
        if affiliate is None:
            raise AffiliateNotFound(affiliateId)
        return affiliate

    def _sum_by_status(self, model, affiliateId: int) -> Dict[str, Decimal]:
        rows = self.session.query(
            model.status,
            func.coalesce(func.sum(model.amount), 0)
        ).filter(
            model.affiliateID == affiliateId
        ).group_by(model.status).all()

        return {status: Decimal(str(total)) for status, total in rows}

    def available_balance(self, affiliateId: int) -> Optional[BalanceSummary]:
        """
        Compute withdrawable balance.

        available = max(0, approved commissions - pending/approved withdrawals)
        totalEarned = approved commissions + completed withdrawals

        Args:
            affiliateId: Affiliate to report on

        Returns:
            BalanceSummary, or None if the affiliate does not exist
        """
        try:
            self._require_affiliate(affiliateId)
        except AffiliateNotFound as e:
            logger.warning(f"available_balance: {e}")
            return None

        commission_sums = self._sum_by_status(Commission, affiliateId)
        withdrawal_sums = self._sum_by_status(Withdrawal, affiliateId)

        approved = commission_sums.get(CommissionStatus.APPROVED.value, ZERO)
        pending_withdrawal = (
            withdrawal_sums.get(WithdrawalStatus.PENDING.value, ZERO)
            + withdrawal_sums.get(WithdrawalStatus.APPROVED.value, ZERO)
        )
        completed_withdrawal = withdrawal_sums.get(WithdrawalStatus.COMPLETED.value, ZERO)

        return BalanceSummary(
            totalEarned=approved + completed_withdrawal,
            approvedCommission=approved,
            pendingWithdrawal=pending_withdrawal,
            completedWithdrawal=completed_withdrawal,
            availableForWithdrawal=max(ZERO, approved - pending_withdrawal),
        )

    def commission_breakdown(
            self,
            affiliateId: int,
            schedule: Optional[CommissionSchedule] = None
    ) -> Optional[Dict]:
        """
        Per-level commission breakdown from one grouped read (level, status).

        Returns:
            {"byLevel": {"level_1": {...}, ...}, "summary": {"total", "pending", "approved"}}
            or None if the affiliate does not exist
        """
        try:
            self._require_affiliate(affiliateId)
        except AffiliateNotFound as e:
            logger.warning(f"commission_breakdown: {e}")
            return None

        schedule = schedule or CommissionSchedule.from_config()

        rows = self.session.query(
            Commission.level,
            Commission.status,
            func.count(Commission.commissionID),
            func.coalesce(func.sum(Commission.amount), 0)
        ).filter(
            Commission.affiliateID == affiliateId
        ).group_by(Commission.level, Commission.status).all()

        max_level = max([schedule.max_level] + [row[0] for row in rows])
        by_level = {}
        for level in range(1, max_level + 1):
            by_level[level] = {
                "count": 0,
                "total": ZERO,
                "unpaid": ZERO,
                "pending": ZERO,
                "approved": ZERO,
                "paid": ZERO,
                "scheduledAmount": schedule.levels[level].fixed if level in schedule else ZERO,
            }

        for level, status, count, total in rows:
            entry = by_level[level]
            total = Decimal(str(total))
            entry["count"] += count
            entry["total"] += total
            key = status.lower()
            if key in entry:
                entry[key] += total

        summary = {
            "total": sum((e["total"] for e in by_level.values()), ZERO),
            "pending": sum((e["pending"] for e in by_level.values()), ZERO),
            "approved": sum((e["approved"] for e in by_level.values()), ZERO),
        }

        return {
            "byLevel": {f"level_{level}": entry for level, entry in by_level.items()},
            "summary": summary,
        }

    def recent_commissions(self, affiliateId: int, limit: int = 10) -> Optional[List[Dict]]:
        """Latest commissions received by the affiliate, newest first."""
        try:
            self._require_affiliate(affiliateId)
        except AffiliateNotFound as e:
            logger.warning(f"recent_commissions: {e}")
            return None

        commissions = self.session.query(Commission).filter(
            Commission.affiliateID == affiliateId
        ).order_by(Commission.createdAt.desc(), Commission.commissionID.desc()).limit(limit).all()

        return [
            {
                "id": c.commissionID,
                "level": c.level,
                "amount": Decimal(str(c.amount)),
                "status": c.status,
                "reference": c.reference,
                "from": (c.sourceAffiliate.displayName if c.sourceAffiliate else None) or "Unknown",
                "date": c.createdAt,
            }
            for c in commissions
        ]
