"""
Engine services.

Business logic over the repositories: referral graph traversal, points
propagation, rank qualification, commission distribution, earnings
ledger and approval orchestration.
"""
