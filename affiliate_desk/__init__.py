"""Affiliate Desk: affiliate, referral and commission management."""

__version__ = "1.0.0"
