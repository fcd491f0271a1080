# affiliate_system/services/hierarchy_service.py
"""
Downline hierarchy service.

Loads the whole affiliate set and the whole commission set in a fixed
number of bulk reads, then assembles trees and network reports in memory.
Never issues one query per tree node.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from config import Config
from models.affiliate import Affiliate, AffiliateStatus
from models.commission import Commission, CommissionStatus
from affiliate_system.errors import AffiliateNotFound, CycleDetected

logger = logging.getLogger(__name__)


@dataclass
class TreeNode:
    """One affiliate in a materialized downline tree."""
    affiliateId: int
    level: int  # hops from the queried root, root = 0
    name: str
    code: str
    status: str
    totalEarnings: Decimal
    commissions: List[Dict] = field(default_factory=list)
    children: List["TreeNode"] = field(default_factory=list)

    def _fields(self) -> Dict:
        return {
            "affiliateId": self.affiliateId,
            "level": self.level,
            "name": self.name,
            "code": self.code,
            "status": self.status,
            "totalEarnings": self.totalEarnings,
            "commissions": list(self.commissions),
            "children": [],
        }

    def to_dict(self) -> Dict:
        data = self._fields()
        stack = [(self, data)]
        while stack:
            node, node_data = stack.pop()
            for child in node.children:
                child_data = child._fields()
                node_data["children"].append(child_data)
                stack.append((child, child_data))
        return data

    def iter_nodes(self):
        """Pre-order traversal of this subtree."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class AffiliateSnapshot:
    """
    Transient in-memory arena of affiliates keyed by id, with a
    parent -> children index. Built per request, never cached.
    """

    def __init__(self, rows: Iterable):
        self.affiliates: Dict[int, object] = {}
        self.children: Dict[Optional[int], List[int]] = defaultdict(list)

        for row in rows:
            self.affiliates[row.affiliateID] = row
            self.children[row.referredByID].append(row.affiliateID)

    @classmethod
    def load(cls, session: Session) -> "AffiliateSnapshot":
        """Single bulk read of every affiliate."""
        rows = session.query(
            Affiliate.affiliateID,
            Affiliate.referredByID,
            Affiliate.displayName,
            Affiliate.email,
            Affiliate.code,
            Affiliate.status,
            Affiliate.totalEarnings,
        ).order_by(Affiliate.affiliateID).all()
        return cls(rows)

    def __contains__(self, affiliate_id: int) -> bool:
        return affiliate_id in self.affiliates

    def get(self, affiliate_id: int):
        row = self.affiliates.get(affiliate_id)
        if row is None:
            raise AffiliateNotFound(affiliate_id)
        return row

    def count_downline(self, root_id: int, max_depth: int) -> Dict[int, Dict[str, int]]:
        """
        Breadth-first per-level counts below root_id.

        Returns:
            {level: {"total": n, "active": n, "inactive": n}}
        """
        by_level: Dict[int, Dict[str, int]] = {}
        visited: Set[int] = {root_id}
        current = [root_id]
        level = 1

        while current and level <= max_depth:
            next_ids = []
            for parent_id in current:
                for child_id in self.children.get(parent_id, []):
                    if child_id in visited:
                        logger.error(f"{CycleDetected(child_id)} (counting downline of {root_id})")
                        continue
                    visited.add(child_id)
                    next_ids.append(child_id)

            if not next_ids:
                break

            active = sum(
                1 for cid in next_ids
                if self.affiliates[cid].status == AffiliateStatus.ACTIVE.value
            )
            by_level[level] = {
                "total": len(next_ids),
                "active": active,
                "inactive": len(next_ids) - active,
            }
            current = next_ids
            level += 1

        return by_level


class HierarchyService:
    """Service for downline trees and network reports."""

    def __init__(self, session: Session):
        self.session = session

    # ═══════════════════════════════════════════════════════════════════════
    # TREE
    # ═══════════════════════════════════════════════════════════════════════

    def build_tree(self, rootAffiliateId: int) -> Optional[TreeNode]:
        """
        Materialize the full downline of an affiliate.

        Two bulk reads (affiliates, commissions) regardless of tree size.
        Each node embeds its own raw commission records; rolling them up
        across the tree is left to the caller.

        Args:
            rootAffiliateId: Root of the tree

        Returns:
            Root TreeNode (level 0), or None if the affiliate does not exist
        """
        snapshot = AffiliateSnapshot.load(self.session)

        try:
            snapshot.get(rootAffiliateId)
        except AffiliateNotFound as e:
            logger.warning(f"build_tree: {e}")
            return None

        commissions_by_beneficiary = self._load_commissions()
        visited: Set[int] = set()
        root: Optional[TreeNode] = None

        # Iterative: referral chains may be deeper than the recursion limit
        stack = [(rootAffiliateId, 0, None)]
        while stack:
            affiliate_id, level, parent = stack.pop()
            if affiliate_id in visited:
                logger.error(f"{CycleDetected(affiliate_id)} (building tree of {rootAffiliateId}), skipping subtree")
                continue
            visited.add(affiliate_id)

            row = snapshot.affiliates[affiliate_id]
            node = TreeNode(
                affiliateId=affiliate_id,
                level=level,
                name=row.displayName or "Unknown",
                code=row.code,
                status=row.status,
                totalEarnings=Decimal(str(row.totalEarnings or 0)),
                commissions=commissions_by_beneficiary.get(affiliate_id, []),
            )

            if parent is None:
                root = node
            else:
                parent.children.append(node)

            # Reversed so children pop in id order
            for child_id in reversed(snapshot.children.get(affiliate_id, [])):
                stack.append((child_id, level + 1, node))

        return root

    def _load_commissions(self) -> Dict[int, List[Dict]]:
        """Single bulk read of every commission, indexed by beneficiary."""
        rows = self.session.query(
            Commission.affiliateID,
            Commission.commissionID,
            Commission.level,
            Commission.amount,
            Commission.status,
        ).order_by(Commission.commissionID).all()

        by_beneficiary: Dict[int, List[Dict]] = defaultdict(list)
        for row in rows:
            by_beneficiary[row.affiliateID].append({
                "commissionId": row.commissionID,
                "level": row.level,
                "amount": Decimal(str(row.amount)),
                "status": row.status,
            })
        return by_beneficiary

    # ═══════════════════════════════════════════════════════════════════════
    # NETWORK REPORTS
    # ═══════════════════════════════════════════════════════════════════════

    def network_counts(self, affiliateIds: List[int], max_depth: Optional[int] = None) -> Dict[int, int]:
        """
        Downline size for several roots from one snapshot.

        Args:
            affiliateIds: Roots to count
            max_depth: Depth bound (defaults to Config.TREE_MAX_DEPTH)

        Returns:
            {affiliateId: members below it}; unknown ids map to 0
        """
        if not affiliateIds:
            return {}

        max_depth = max_depth or int(Config.get(Config.TREE_MAX_DEPTH, 10))
        snapshot = AffiliateSnapshot.load(self.session)

        result = {}
        for root_id in affiliateIds:
            if root_id not in snapshot:
                result[root_id] = 0
                continue
            by_level = snapshot.count_downline(root_id, max_depth)
            result[root_id] = sum(stats["total"] for stats in by_level.values())
        return result

    def members_by_level(self, affiliateId: int, max_depth: Optional[int] = None) -> Optional[Dict]:
        """
        Network summary for one affiliate.

        Returns:
            {"totalNetworkMembers": n, "membersByLevel": {"level_1": {...}, ...}}
            or None if the affiliate does not exist
        """
        max_depth = max_depth or int(Config.get(Config.TREE_MAX_DEPTH, 10))
        snapshot = AffiliateSnapshot.load(self.session)

        if affiliateId not in snapshot:
            logger.warning(f"members_by_level: {AffiliateNotFound(affiliateId)}")
            return None

        by_level = snapshot.count_downline(affiliateId, max_depth)
        return {
            "totalNetworkMembers": sum(stats["total"] for stats in by_level.values()),
            "membersByLevel": {f"level_{level}": stats for level, stats in by_level.items()},
        }

    def direct_referrals(self, affiliateId: int, limit: int = 50) -> Optional[List[Dict]]:
        """
        Direct referrals with their own commission stats.

        One read for the referrals, one grouped read over their commissions,
        one grouped read for their sub-referral counts.

        Returns:
            List of referral dicts (newest first), or None if the affiliate does not exist
        """
        if self.session.get(Affiliate, affiliateId) is None:
            logger.warning(f"direct_referrals: {AffiliateNotFound(affiliateId)}")
            return None

        referrals = self.session.query(Affiliate).filter(
            Affiliate.referredByID == affiliateId
        ).order_by(Affiliate.createdAt.desc(), Affiliate.affiliateID.desc()).limit(limit).all()

        referral_ids = [r.affiliateID for r in referrals]
        if not referral_ids:
            return []

        stats_rows = self.session.query(
            Commission.affiliateID,
            Commission.status,
            func.coalesce(func.sum(Commission.amount), 0).label("total"),
        ).filter(
            Commission.affiliateID.in_(referral_ids)
        ).group_by(Commission.affiliateID, Commission.status).all()

        sub_counts = dict(
            self.session.query(
                Affiliate.referredByID,
                func.count(Affiliate.affiliateID)
            ).filter(
                Affiliate.referredByID.in_(referral_ids)
            ).group_by(Affiliate.referredByID).all()
        )

        stats: Dict[int, Dict[str, Decimal]] = defaultdict(
            lambda: {"total": Decimal("0"), "pending": Decimal("0"), "approved": Decimal("0")}
        )
        for row in stats_rows:
            amount = Decimal(str(row.total))
            entry = stats[row.affiliateID]
            entry["total"] += amount
            if row.status == CommissionStatus.PENDING.value:
                entry["pending"] += amount
            elif row.status == CommissionStatus.APPROVED.value:
                entry["approved"] += amount

        result = []
        for ref in referrals:
            ref_stats = stats[ref.affiliateID]
            result.append({
                "id": ref.affiliateID,
                "code": ref.code,
                "name": ref.displayName or "Unknown",
                "email": ref.email,
                "status": ref.status,
                "joinDate": ref.createdAt,
                "activatedAt": ref.activatedAt,
                "subReferralsCount": sub_counts.get(ref.affiliateID, 0),
                "totalEarnings": ref_stats["total"],
                "pendingEarnings": ref_stats["pending"],
                "approvedEarnings": ref_stats["approved"],
            })

        return result
