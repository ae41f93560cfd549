"""Structural verification chain for a single candidate design."""

from .chain import CHECK_ORDER, VerificationResults, verify_all

__all__ = ["CHECK_ORDER", "VerificationResults", "verify_all"]
