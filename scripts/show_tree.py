#!/usr/bin/env python3
"""
Display an affiliate's downline tree.

Shows the hierarchy with status, earnings and commission counts.

Usage:
    python scripts/show_tree.py --root-id AFFILIATE_ID [--max-depth DEPTH]
    python scripts/show_tree.py --code AFF007JOH --balance
"""

import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_db_session_ctx
from models.affiliate import Affiliate
from affiliate_system.services.hierarchy_service import HierarchyService
from affiliate_system.services.balance_service import BalanceService

import logging

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def print_tree(root_node, max_depth=None):
    """Print ASCII tree of the structure."""

    def print_node(node, prefix, is_last):
        connector = "└─ " if is_last else "├─ "
        active_marker = "✅" if node.status == "ACTIVE" else "❌"
        earnings_display = f"{node.totalEarnings}" if node.totalEarnings > 0 else ""
        commissions_display = f"({len(node.commissions)} comm.)" if node.commissions else ""

        print(
            f"{prefix}{connector}{node.name} [{node.code}] L{node.level} "
            f"{active_marker} {earnings_display} {commissions_display}".rstrip()
        )

    def walk(root):
        stack = [(root, "", True)]
        while stack:
            node, prefix, is_last = stack.pop()
            if max_depth is not None and node.level > max_depth:
                continue

            print_node(node, prefix, is_last)

            new_prefix = prefix + ("    " if is_last else "│   ")
            last_index = len(node.children) - 1
            for i in range(last_index, -1, -1):
                stack.append((node.children[i], new_prefix, i == last_index))

    print("\n" + "=" * 80)
    print("AFFILIATE DOWNLINE TREE")
    print("=" * 80)
    print("\nLegend:")
    print("  ✅ = Active affiliate")
    print("  ❌ = Inactive / pending affiliate")
    print("  L<n> = Level below the root")
    print("\n" + "=" * 80 + "\n")
    walk(root_node)

    total = sum(1 for _ in root_node.iter_nodes()) - 1
    print(f"\nTotal downline members: {total}")
    print("\n" + "=" * 80 + "\n")


def print_balance(session, affiliate_id):
    """Print balance summary for the root affiliate."""
    balance = BalanceService(session).available_balance(affiliate_id)
    if balance is None:
        return

    print("BALANCE")
    print("=" * 80)
    for key, value in balance.to_dict().items():
        print(f"  {key:24} {value}")
    print("\n" + "=" * 80 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Display affiliate downline tree')
    parser.add_argument('--root-id', type=int, help='Affiliate ID of the root')
    parser.add_argument('--code', help='Referral code of the root')
    parser.add_argument('--max-depth', type=int, help='Maximum depth to display')
    parser.add_argument('--balance', action='store_true', help='Also show available balance')
    args = parser.parse_args()

    # Initialize config
    Config.initialize_from_env()

    with get_db_session_ctx() as session:
        root_id = args.root_id
        if root_id is None and args.code:
            root = session.query(Affiliate).filter_by(code=args.code).first()
            root_id = root.affiliateID if root else None

        if root_id is None:
            print("❌ Specify --root-id or a valid --code")
            return

        tree = HierarchyService(session).build_tree(root_id)
        if tree is None:
            print(f"❌ Affiliate {root_id} not found!")
            return

        print_tree(tree, args.max_depth)

        if args.balance:
            print_balance(session, root_id)


if __name__ == "__main__":
    main()
