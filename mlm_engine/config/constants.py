"""
Business constants.

Single source of truth for engine-wide defaults. Runtime overrides come
from ``mlm_engine.config.settings``.
"""

from decimal import Decimal

# Maximum number of hops for every referral tree walk (up or down).
# Parent links are not structurally guaranteed to be acyclic.
MAX_TREE_DEPTH = 10

# Validity window assigned to a participant's package on approval
PACKAGE_VALIDITY_DAYS = 365

# Budget for the atomic approval attempt. The dominant cost is the
# downline walk of rank qualification, not the writes.
APPROVAL_TIMEOUT_SECONDS = 300

ZERO = Decimal("0")

# Earnings descriptions
DIRECT_COMMISSION_DESCRIPTION = "Direct commission from package approval"
INDIRECT_COMMISSION_DESCRIPTION = "Indirect commission: {tier}"
INDIRECT_COMMISSION_FOLDED_DESCRIPTION = (
    "Indirect commission: {tier} (combined - includes {folded})"
)
