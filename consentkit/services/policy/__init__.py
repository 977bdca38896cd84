"""
Policy Service

Banner decision and effective category resolution.
"""

from .engine import ConsentPolicyEngine

__all__ = ["ConsentPolicyEngine"]
