"""
semantics.py – Derived risk labels, account roles and explanations.

Risk is always the numeric 0–100 score; the level (low / medium / high) and
the role are labels derived from it and from the detected patterns. Neither
feeds back into scoring.
"""
from __future__ import annotations

import math
from typing import Iterable, List

from .config import RISK_HIGH_MIN, RISK_LOW_MAX


def risk_level(score: float) -> str:
    """Map a numeric score to ``low`` (0-39), ``medium`` (40-69) or ``high`` (70+)."""
    if score is None or not math.isfinite(score):
        return "low"
    if score >= RISK_HIGH_MIN:
        return "high"
    if score >= RISK_LOW_MAX + 1:
        return "medium"
    return "low"


# Checked in order; the first matching rule wins.
_ROLE_RULES = (
    ("balance_manipulator", {"balance_discrepancy", "account_drain"}),
    ("shell_account", {"shell"}),
    ("layering_node", {"cycle"}),
    ("collection_hub", {"fan_in"}),
    ("distribution_hub", {"fan_out"}),
)


def classify_role(patterns: Iterable[str]) -> str:
    """
    Infer the role an account plays from its pattern tags.
    Roles are classifications, never substitutes for the account ID.
    """
    tags = set(patterns)
    for role, triggers in _ROLE_RULES:
        if tags & triggers:
            return role
    return "unknown"


_PATTERN_EXPLANATIONS = {
    "cycle_length_3": "Participates in a 3-node circular fund routing cycle",
    "cycle_length_4": "Participates in a 4-node circular fund routing cycle",
    "cycle_length_5": "Participates in a 5-node circular fund routing cycle",
    "fan_in": "Collects funds from many distinct senders (fan-in hub)",
    "fan_out": "Distributes funds to many distinct receivers (fan-out hub)",
    "shell": "Part of a chain routed through low-activity pass-through accounts",
    "balance_discrepancy": "Post-transaction balances do not reconcile with amounts",
    "account_drain": "Balance driven to zero by an outgoing transfer",
    "zero_dest_balance": "Receives funds into a previously empty account",
    "statistical_anomaly": "Transaction amount deviates 2σ+ from the account's mean",
    "structuring": "Majority of transactions use suspiciously round amounts",
    "burst_activity": "Repeated transactions within minutes of each other",
    "minimal_history": "Very short transaction history (2 or fewer transactions)",
    "similar_amounts": "Repeated near-identical transaction amounts",
}

_FACTOR_EXPLANATIONS = {
    "high_velocity": "Unusually high transaction rate (>5 tx/hour)",
    "high_risk_tx_type": "Mostly TRANSFER / CASH_OUT transactions",
}


def build_risk_explanation(patterns: List[str], risk_factors: List[str]) -> str:
    """Build a human-readable risk explanation for an account."""
    parts = [
        _PATTERN_EXPLANATIONS[p] for p in patterns if p in _PATTERN_EXPLANATIONS
    ]
    parts += [
        _FACTOR_EXPLANATIONS[f] for f in risk_factors if f in _FACTOR_EXPLANATIONS
    ]
    return ". ".join(parts) + "." if parts else ""
