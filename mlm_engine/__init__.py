"""
MLM commission and rank-qualification engine.

Approves package purchases: propagates reward points up the referral
chain, pays direct and indirect commissions and recomputes ranks.
"""

__version__ = "1.0.0"
