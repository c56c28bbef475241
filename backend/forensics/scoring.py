"""
scoring.py – Suspicion scoring engine.

Scoring model
-------------
1. Structural   – cycle membership (weighted by the account's shortest
                  cycle), fan-in hub, fan-out hub, shell chain member.
                  Capped at STRUCTURAL_MAX.
2. Behavioural  – velocity, balance / transaction-type signals (only when
                  the dataset carries them) and universal amount / timing
                  signals.  Capped at BEHAVIORAL_MAX.
3. Network      – starts at 0; raised only by ring formation (rings.py).

total = min(100, structural + behavioural + network).

Every call builds fresh score objects from the store and detector results,
so rescoring the same inputs always gives identical output.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from .config import (
    AMOUNT_CLUSTER_MIN,
    AMOUNT_SIMILARITY_PCT,
    AMOUNT_ZSCORE_THRESHOLD,
    BALANCE_ANOMALY_RATIO,
    BEHAVIORAL_MAX,
    HIGH_RISK_TX_RATIO,
    HIGH_VELOCITY_TX_PER_HOUR,
    ROUND_AMOUNT_RATIO,
    SCORE_ACCOUNT_DRAINING,
    SCORE_AMOUNT_CLUSTERING,
    SCORE_AMOUNT_OUTLIER,
    SCORE_BALANCE_ANOMALY,
    SCORE_CYCLE,
    SCORE_FAN_IN,
    SCORE_FAN_OUT,
    SCORE_HIGH_RISK_TX_TYPE,
    SCORE_HIGH_VELOCITY,
    SCORE_ROUND_AMOUNT,
    SCORE_SHELL,
    SCORE_SINGLETON_ACCOUNT,
    SCORE_TEMPORAL_BURST,
    SCORE_ZERO_DEST_BALANCE,
    SINGLETON_TX_MAX,
    STRUCTURAL_MAX,
    TEMPORAL_BURST_MIN_EVENTS,
    ZERO_DEST_RATIO,
)
from .cycle_detector import CycleResult
from .fan_detector import FanResult
from .graph_builder import GraphStore
from .models import NodeData, ScoreDetails, SuspicionScore, SuspiciousNode
from .shell_detector import ShellResult

log = logging.getLogger(__name__)


def _shortest_cycles(cycles: CycleResult) -> Dict[str, int]:
    shortest: Dict[str, int] = {}
    for inst in cycles.instances:
        for node_id in inst.nodes:
            if inst.length < shortest.get(node_id, inst.length + 1):
                shortest[node_id] = inst.length
    return shortest


def _peer_counts(fans: FanResult) -> Tuple[Dict[str, int], Dict[str, int]]:
    fan_in: Dict[str, int] = {}
    fan_out: Dict[str, int] = {}
    for inst in fans.instances:
        target = fan_in if inst.direction == "in" else fan_out
        target[inst.hub] = len(inst.peers)
    return fan_in, fan_out


def _cycle_weight(length: int) -> float:
    if length in SCORE_CYCLE:
        return SCORE_CYCLE[length]
    # Lengths outside the table fall back to the weakest configured weight.
    return min(SCORE_CYCLE.values())


def _behavioral(
    store: GraphStore,
    node: NodeData,
    patterns: List[str],
    factors: List[str],
) -> float:
    """Behavioural contribution for one account; appends tags as a side effect."""
    score = 0.0
    node_id = node.id
    tx_count = node.total_degree

    if node.velocity > HIGH_VELOCITY_TX_PER_HOUR:
        score += SCORE_HIGH_VELOCITY
        factors.append("high_velocity")

    if store.has_balance_data:
        denom = max(tx_count, 1)

        anomalies = store.balance_anomalies.get(node_id, 0)
        if anomalies > 0:
            if anomalies / denom >= BALANCE_ANOMALY_RATIO:
                score += SCORE_BALANCE_ANOMALY
            else:
                score += SCORE_BALANCE_ANOMALY // 2
            factors.append("balance_anomaly")
            patterns.append("balance_discrepancy")

        if store.account_drains.get(node_id, 0) > 0:
            score += SCORE_ACCOUNT_DRAINING
            factors.append("account_draining")
            patterns.append("account_drain")

        zero_dest = store.zero_dest_balances.get(node_id, 0)
        if zero_dest > 0:
            if zero_dest / denom >= ZERO_DEST_RATIO:
                score += SCORE_ZERO_DEST_BALANCE
            else:
                score += SCORE_ZERO_DEST_BALANCE // 2
            factors.append("zero_balance_destination")
            patterns.append("zero_dest_balance")

        high_risk = store.high_risk_tx.get(node_id, 0)
        if high_risk > 0 and high_risk / denom >= HIGH_RISK_TX_RATIO:
            score += SCORE_HIGH_RISK_TX_TYPE
            factors.append("high_risk_tx_type")

    profile = store.amount_profiles.get(node_id)

    if profile is not None and profile.has_outlier(AMOUNT_ZSCORE_THRESHOLD):
        score += SCORE_AMOUNT_OUTLIER
        factors.append("amount_outlier")
        patterns.append("statistical_anomaly")

    round_count = store.round_amounts.get(node_id, 0)
    if round_count > 0 and tx_count > 0 and round_count / tx_count > ROUND_AMOUNT_RATIO:
        score += SCORE_ROUND_AMOUNT
        factors.append("round_amounts")
        patterns.append("structuring")

    if store.temporal_bursts.get(node_id, 0) >= TEMPORAL_BURST_MIN_EVENTS:
        score += SCORE_TEMPORAL_BURST
        factors.append("temporal_burst")
        patterns.append("burst_activity")

    if tx_count <= SINGLETON_TX_MAX:
        score += SCORE_SINGLETON_ACCOUNT
        factors.append("singleton_account")
        patterns.append("minimal_history")

    if (
        profile is not None
        and len(profile.sample) >= AMOUNT_CLUSTER_MIN
        and profile.similar_pairs(AMOUNT_SIMILARITY_PCT, AMOUNT_CLUSTER_MIN) >= AMOUNT_CLUSTER_MIN
    ):
        score += SCORE_AMOUNT_CLUSTERING
        factors.append("amount_clustering")
        patterns.append("similar_amounts")

    return score


def calculate_scores(
    store: GraphStore,
    cycles: CycleResult,
    fans: FanResult,
    shells: ShellResult,
) -> List[SuspiciousNode]:
    """
    Score every account and keep those with a positive total or any pattern.

    Returns
    -------
    List of SuspiciousNode in node insertion order.
    """
    shortest = _shortest_cycles(cycles)
    fan_in_peers, fan_out_peers = _peer_counts(fans)
    results: List[SuspiciousNode] = []

    for node_id, node in store.nodes.items():
        patterns: List[str] = []
        factors: List[str] = []
        structural = 0.0

        if node_id in cycles.flagged:
            length = shortest.get(node_id, max(SCORE_CYCLE))
            structural += _cycle_weight(length)
            patterns += ["cycle", f"cycle_length_{length}"]
        if node_id in fans.fan_in:
            structural += SCORE_FAN_IN
            patterns.append("fan_in")
            factors.append(f"fan_in_{fan_in_peers.get(node_id, 0)}_sources")
        if node_id in fans.fan_out:
            structural += SCORE_FAN_OUT
            patterns.append("fan_out")
            factors.append(f"fan_out_{fan_out_peers.get(node_id, 0)}_destinations")
        if node_id in shells.flagged:
            structural += SCORE_SHELL
            patterns.append("shell")

        behavioral = _behavioral(store, node, patterns, factors)

        structural = min(structural, STRUCTURAL_MAX)
        behavioral = min(behavioral, BEHAVIORAL_MAX)
        network = 0.0
        total = min(100.0, structural + behavioral + network)

        if total > 0 or patterns:
            results.append(SuspiciousNode(
                id=node_id,
                score=SuspicionScore(
                    structural=structural,
                    behavioral=behavioral,
                    network=network,
                    total=total,
                    details=ScoreDetails(patterns=patterns, risk_factors=factors),
                ),
            ))

    log.info("Scoring: %d of %d accounts scored as suspicious", len(results), len(store.nodes))
    return results
