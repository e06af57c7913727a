"""
Actions - approval gating and dispatch of planned actions.
"""

from .approval_policies import DEFAULT_RULES, ApprovalDecision, ApprovalPolicy, ApprovalRule
from .dispatcher import ActionDispatcher, DispatchResult, DispatchStatus

__all__ = [
    "DEFAULT_RULES",
    "ApprovalDecision",
    "ApprovalPolicy",
    "ApprovalRule",
    "ActionDispatcher",
    "DispatchResult",
    "DispatchStatus",
]
