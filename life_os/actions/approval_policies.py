"""
Approval Policies - keyword rules that decide which actions need a human.

An action whose text matches any gated keyword is never dispatched
automatically. Matching is case-insensitive on word boundaries, so
"buy" gates "Buy more VTI" but not "buyer's guide".
"""

import logging
import re
from dataclasses import dataclass, field

from ..models import Action

logger = logging.getLogger(__name__)


@dataclass
class ApprovalRule:
    """Single approval rule: a category and the keywords that trigger it."""

    category: str
    keywords: tuple[str, ...]
    _pattern: re.Pattern = field(init=False, repr=False)

    def __post_init__(self):
        alternatives = [re.escape(k).replace(r"\ ", r"\s+") for k in self.keywords]
        self._pattern = re.compile(r"\b(" + "|".join(alternatives) + r")\b", re.IGNORECASE)

    def match(self, text: str) -> str | None:
        """Return the matched keyword (lowercased) or None."""
        if not text:
            return None
        m = self._pattern.search(text)
        if m is None:
            return None
        return " ".join(m.group(1).lower().split())


@dataclass
class ApprovalDecision:
    requires_approval: bool
    category: str | None = None
    keyword: str | None = None

    @property
    def reason(self) -> str:
        if not self.requires_approval:
            return "auto-approved"
        if self.keyword:
            return f"{self.category}: matched '{self.keyword}'"
        return f"{self.category}: flagged by planner"


DEFAULT_RULES = [
    ApprovalRule(
        "financial_transaction",
        ("buy", "sell", "purchase", "pay", "transfer", "trade", "invest", "withdraw", "deposit"),
    ),
    ApprovalRule(
        "external_communication",
        ("send email", "send message", "reply to", "contact", "reach out", "call"),
    ),
    ApprovalRule(
        "account_modification",
        (
            "create account",
            "delete account",
            "password",
            "sign up",
            "cancel subscription",
            "close account",
        ),
    ),
    ApprovalRule("public_publishing", ("post", "publish", "tweet", "share publicly")),
    ApprovalRule(
        "system_modification",
        ("install", "uninstall", "delete", "modify system", "shutdown", "update settings"),
    ),
]


class ApprovalPolicy:
    """Evaluates approval rules against planned actions."""

    def __init__(self, rules: list[ApprovalRule] | None = None):
        self.rules = list(rules) if rules is not None else list(DEFAULT_RULES)

    def evaluate(self, action: Action) -> ApprovalDecision:
        for rule in self.rules:
            keyword = rule.match(action.action_text)
            if keyword is not None:
                return ApprovalDecision(True, rule.category, keyword)
        if action.requires_approval:
            return ApprovalDecision(True, "explicit")
        return ApprovalDecision(False)
