"""
ground_truth.py – Evaluate detections against labelled fraud data.

Evaluation is node-level: an account is predicted positive when its final
suspicion total is above zero, and actually positive when it took part in at
least one transaction labelled ``isFraud``.  Every known account is counted,
scored or not.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from .graph_builder import GraphStore
from .models import GroundTruthMetrics, SuspiciousNode, TypeBreakdown

log = logging.getLogger(__name__)


def _ratio(num: float, denom: float) -> float:
    return num / denom if denom > 0 else 0.0


def evaluate_ground_truth(
    store: GraphStore,
    suspicious: List[SuspiciousNode],
) -> Optional[GroundTruthMetrics]:
    """Return None unless some ingested transaction carried a fraud label."""
    if not store.has_ground_truth:
        return None

    totals = {n.id: n.score.total for n in suspicious}
    tp = fp = tn = fn = 0
    fraud_scores: List[float] = []
    legit_scores: List[float] = []

    for node_id in store.nodes:
        score = totals.get(node_id, 0.0)
        flagged = score > 0
        if node_id in store.fraudulent_nodes:
            fraud_scores.append(score)
            if flagged:
                tp += 1
            else:
                fn += 1
        else:
            legit_scores.append(score)
            if flagged:
                fp += 1
            else:
                tn += 1

    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)
    f1 = _ratio(2 * precision * recall, precision + recall)
    accuracy = _ratio(tp + tn, tp + fp + tn + fn)

    metrics = GroundTruthMetrics(
        total_fraud_tx=store.fraud_tx_count,
        total_legit_tx=store.legit_tx_count,
        true_positives=tp,
        false_positives=fp,
        true_negatives=tn,
        false_negatives=fn,
        precision=round(precision, 4),
        recall=round(recall, 4),
        f1_score=round(f1, 4),
        accuracy=round(accuracy, 4),
        fraud_by_type={
            tx_type: TypeBreakdown(**stats)
            for tx_type, stats in store.fraud_by_type.items()
        },
        avg_score_fraud_nodes=round(_ratio(sum(fraud_scores), len(fraud_scores)), 2),
        avg_score_legit_nodes=round(_ratio(sum(legit_scores), len(legit_scores)), 2),
    )
    log.info(
        "Ground truth: precision=%.4f recall=%.4f f1=%.4f (tp=%d fp=%d tn=%d fn=%d)",
        metrics.precision, metrics.recall, metrics.f1_score, tp, fp, tn, fn,
    )
    return metrics
