# affiliate_system/utils/chain_walker.py
"""
Safe upline chain walking utilities.
Prevents infinite loops on malformed referral graphs.
"""
from dataclasses import dataclass
from typing import Optional, Callable, List, Set
from sqlalchemy.orm import Session
import logging

from models.affiliate import Affiliate
from affiliate_system.errors import CycleDetected

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UplineEntry:
    """One hop of an upline chain."""
    level: int
    affiliateId: int
    userId: int
    displayName: Optional[str]
    status: str


class ChainWalker:
    """
    Safe utilities for walking affiliate upline chains.
    Never trusts the data to be acyclic.
    """

    def __init__(self, session: Session):
        self.session = session

    def walk_upline(
            self,
            start_affiliate_id: int,
            callback: Callable[[Affiliate, int], bool],
            max_depth: int = 10
    ) -> int:
        """
        Walk up the chain starting AT start_affiliate_id (level 1),
        calling callback for each affiliate.

        Stops when the chain ends, max_depth is reached, the next id was
        already visited, or callback returns False.

        Args:
            start_affiliate_id: First affiliate of the chain (level 1)
            callback: Function(affiliate, level) -> continue_walking (bool)
            max_depth: Maximum number of levels

        Returns:
            Number of affiliates processed

        Example:
            def process_upline(affiliate, level):
                print(f"Level {level}: {affiliate.code}")
                return True  # Continue walking

            walker.walk_upline(referrer_id, process_upline)
        """
        current_id = start_affiliate_id
        level = 1
        processed = 0
        visited: Set[int] = set()

        while current_id is not None and level <= max_depth:
            # Check for cycles
            if current_id in visited:
                logger.error(
                    f"{CycleDetected(current_id)} "
                    f"(walking upline from {start_affiliate_id}), truncating at level {level}"
                )
                break

            visited.add(current_id)

            affiliate = self.session.get(Affiliate, current_id)
            if affiliate is None:
                logger.warning(
                    f"Upline not found: affiliateID={current_id} "
                    f"at level {level} (walking from {start_affiliate_id})"
                )
                break

            logger.debug(f"Upline level {level}: {affiliate.code} (affiliateID={affiliate.affiliateID})")

            should_continue = callback(affiliate, level)
            processed += 1

            if not should_continue:
                break

            current_id = affiliate.referredByID
            level += 1

        return processed

    def resolve_upline(
            self,
            start_affiliate_id: int,
            max_levels: int,
            require_active: bool = False
    ) -> List[UplineEntry]:
        """
        Ordered upline chain: direct referrer first.

        Args:
            start_affiliate_id: Direct referrer of the purchase (level 1)
            max_levels: Maximum chain length
            require_active: Stop at the first affiliate that is not ACTIVE

        Returns:
            List of UplineEntry, at most max_levels long, no repeated ids
        """
        chain: List[UplineEntry] = []

        def collect(affiliate: Affiliate, level: int) -> bool:
            if require_active and not affiliate.isActive:
                logger.debug(
                    f"Upline {affiliate.code} is {affiliate.status}, stopping chain at level {level}"
                )
                return False

            chain.append(UplineEntry(
                level=level,
                affiliateId=affiliate.affiliateID,
                userId=affiliate.userID,
                displayName=affiliate.displayName,
                status=affiliate.status,
            ))
            return True

        self.walk_upline(start_affiliate_id, collect, max_levels)
        return chain

    def would_create_cycle(self, affiliate_id: int, new_referrer_id: Optional[int], max_depth: int = 1000) -> bool:
        """
        Check whether setting affiliate.referredByID = new_referrer_id
        would make the affiliate its own ancestor.

        Args:
            affiliate_id: Affiliate being linked
            new_referrer_id: Proposed referrer
            max_depth: Safety limit for the walk

        Returns:
            True if the link would close a cycle
        """
        if new_referrer_id is None:
            return False
        if new_referrer_id == affiliate_id:
            return True

        found = [False]

        def check(affiliate: Affiliate, level: int) -> bool:
            if affiliate.referredByID == affiliate_id:
                found[0] = True
                return False
            return True

        self.walk_upline(new_referrer_id, check, max_depth)
        return found[0]
