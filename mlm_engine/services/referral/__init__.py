"""
Referral graph package.

Read-only traversal over participant parent links:
- ancestor chain (upward, lazy)
- direct children
- descendant lines (downward root-to-leaf paths, lazy)
"""

from mlm_engine.services.referral.graph import Line, ReferralGraph


__all__ = [
    "Line",
    "ReferralGraph",
]
