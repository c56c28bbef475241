"""
Unit tests for suspicion scoring, ring formation and risk semantics.
"""
import copy
import math
from datetime import datetime, timedelta

import pytest

from forensics.cycle_detector import CycleResult, detect_cycles
from forensics.errors import RingIntegrityError
from forensics.fan_detector import FanResult, detect_fan_patterns
from forensics.graph_builder import GraphStore
from forensics.metrics import finalize_metrics
from forensics.models import CycleInstance, Ring
from forensics.rings import _check_integrity, form_rings
from forensics.scoring import calculate_scores
from forensics.semantics import build_risk_explanation, classify_role, risk_level
from forensics.shell_detector import ShellResult, detect_shell_chains

BASE = datetime(2024, 1, 10, 0, 0, 0)


def _tx(sender, receiver, amount, hours=0.0, **extra):
    row = {
        "sender": sender,
        "receiver": receiver,
        "amount": amount,
        "timestamp": (BASE + timedelta(hours=hours)).isoformat(),
    }
    row.update(extra)
    return row


def _cycle_data():
    return [
        _tx("ACC_001", "ACC_002", 1000.0, 0),
        _tx("ACC_002", "ACC_003", 1010.0, 1),
        _tx("ACC_003", "ACC_001", 990.0, 2),
    ]


def _fan_in_data(n_senders):
    # Amounts 12% apart: no clustering, no round amounts, no outlier at the hub.
    return [_tx(f"SENDER_{i:02d}", "AGGREGATOR", 101.37 * 1.12 ** i, i) for i in range(n_senders)]


def _drain_data():
    return [_tx(
        "ACC_A", "ACC_B", 1000.0, 0,
        txType="TRANSFER",
        oldBalanceOrig=1000.0, newBalanceOrig=0.0,
        oldBalanceDest=0.0, newBalanceDest=1000.0,
    )]


def _detect(rows):
    store = GraphStore()
    store.add_chunk(rows)
    finalize_metrics(store)
    cycles = detect_cycles(store)
    fans = detect_fan_patterns(store)
    shells = detect_shell_chains(store)
    return store, cycles, fans, shells


def _scores(rows):
    store, cycles, fans, shells = _detect(rows)
    return {n.id: n for n in calculate_scores(store, cycles, fans, shells)}


_NO_CYCLES = CycleResult(set(), [])
_NO_FANS = FanResult(set(), set(), [])
_NO_SHELLS = ShellResult(set(), [])


# ── Scoring Tests ─────────────────────────────────────────────────────


class TestScoring:
    def test_cycle_score(self):
        s = _scores(_cycle_data())["ACC_001"].score
        # A triangle of 2-transaction accounts is also a shell chain.
        assert s.structural == 40 + 20
        assert s.behavioral == 10
        assert s.network == 0
        assert s.total == 70
        assert s.details.patterns == ["cycle", "cycle_length_3", "shell", "minimal_history"]
        assert s.details.risk_factors == ["singleton_account"]

    def test_fan_in_factor_names_peer_count(self):
        s = _scores(_fan_in_data(10))["AGGREGATOR"].score
        assert s.structural == 30
        assert s.behavioral == 0
        assert s.details.patterns == ["fan_in"]
        assert s.details.risk_factors == ["fan_in_10_sources"]

    def test_balance_signals_and_cap(self):
        scores = _scores(_drain_data())
        a = scores["ACC_A"].score
        b = scores["ACC_B"].score
        # drain 18 + high-risk type 8 + round 8 + singleton 10 = 44, capped
        assert a.behavioral == 40
        assert "account_drain" in a.details.patterns
        assert "high_risk_tx_type" in a.details.risk_factors
        # zero-destination 12 + high-risk type 8 + round 8 + singleton 10
        assert b.behavioral == 38
        assert "zero_dest_balance" in b.details.patterns

    def test_balance_signals_skipped_without_data(self):
        rows = [_tx("ACC_A", "ACC_B", 1000.0, 0)]
        s = _scores(rows)["ACC_A"].score
        assert "account_drain" not in s.details.patterns
        assert s.behavioral == 8 + 10

    def test_high_velocity_and_burst(self):
        rows = [_tx("ACC_A", f"R{i}", 101.37 * 1.12 ** i, i / 12) for i in range(8)]
        s = _scores(rows)["ACC_A"].score
        assert "high_velocity" in s.details.risk_factors
        assert "burst_activity" in s.details.patterns

    def test_amount_clustering(self):
        rows = [_tx("ACC_A", f"R{i}", 500.5 + i, i * 5) for i in range(4)]
        s = _scores(rows)["ACC_A"].score
        assert "similar_amounts" in s.details.patterns

    def test_quiet_accounts_are_dropped(self):
        rows = [
            _tx("ACC_A", "ACC_B", 101.37, 0),
            _tx("ACC_A", "ACC_B", 113.53, 5),
            _tx("ACC_A", "ACC_B", 127.16, 10),
        ]
        assert _scores(rows) == {}

    def test_rescoring_is_idempotent(self):
        store, cycles, fans, shells = _detect(_cycle_data() + _fan_in_data(10))
        first = calculate_scores(store, cycles, fans, shells)
        second = calculate_scores(store, cycles, fans, shells)
        assert [n.model_dump() for n in first] == [n.model_dump() for n in second]


# ── Ring Tests ────────────────────────────────────────────────────────


class TestRingFormation:
    def test_triangle_forms_cycle_and_shell_rings(self):
        store, cycles, fans, shells = _detect(_cycle_data())
        suspicious = calculate_scores(store, cycles, fans, shells)
        rings = form_rings(suspicious, cycles, fans, shells)

        assert [r.patterns for r in rings] == [["cycle_length_3"], ["shell_account_chain"]]
        cycle_ring = rings[0]
        assert cycle_ring.id == "RING_001"
        assert cycle_ring.nodes == ["ACC_001", "ACC_002", "ACC_003"]
        assert cycle_ring.average_suspicion == 85.0
        assert cycle_ring.risk_score == pytest.approx(round(85 * 0.6 + math.log(4) * 10 + 15, 2))
        assert rings[1].risk_score == pytest.approx(round(85 * 0.5 + math.log(4) * 7 + 8, 2))
        for node in suspicious:
            assert node.score.network == 15
            assert node.score.total == 85

    def test_fan_ring_at_threshold(self):
        store, cycles, fans, shells = _detect(_fan_in_data(10))
        suspicious = calculate_scores(store, cycles, fans, shells)
        rings = form_rings(suspicious, cycles, fans, shells)

        assert len(rings) == 1
        ring = rings[0]
        assert ring.patterns == ["hub_spoke_fan_in"]
        assert ring.central_hub == "AGGREGATOR"
        assert len(ring.nodes) == 11
        assert ring.nodes[0] == "AGGREGATOR"
        assert ring.risk_score == pytest.approx(round(42 * 0.7 + math.log(11) * 10 + 15, 2))

    def test_no_fan_ring_below_threshold(self):
        store, cycles, fans, shells = _detect(_fan_in_data(9))
        suspicious = calculate_scores(store, cycles, fans, shells)
        assert form_rings(suspicious, cycles, fans, shells) == []

    def test_duplicate_instances_form_one_ring(self):
        store, _, fans, shells = _detect(_cycle_data())
        cycles = CycleResult(
            {"ACC_001", "ACC_002", "ACC_003"},
            [
                CycleInstance(nodes=["ACC_001", "ACC_002", "ACC_003"], length=3),
                CycleInstance(nodes=["ACC_002", "ACC_003", "ACC_001"], length=3),
            ],
        )
        suspicious = calculate_scores(store, cycles, _NO_FANS, _NO_SHELLS)
        rings = form_rings(suspicious, cycles, _NO_FANS, _NO_SHELLS)
        assert len(rings) == 1

    def test_instance_without_suspicious_members_is_skipped(self):
        cycles = CycleResult({"X", "Y", "Z"}, [CycleInstance(nodes=["X", "Y", "Z"], length=3)])
        assert form_rings([], cycles, _NO_FANS, _NO_SHELLS) == []

    def test_network_scores_only_rise(self):
        store, cycles, fans, shells = _detect(_cycle_data() + _fan_in_data(10))
        suspicious = calculate_scores(store, cycles, fans, shells)
        before = {n.id: copy.deepcopy(n.score) for n in suspicious}
        form_rings(suspicious, cycles, fans, shells)

        for node in suspicious:
            assert node.score.network >= before[node.id].network
            assert node.score.total >= before[node.id].total
            assert node.score.total <= 100

    def test_every_ring_has_one_pattern_and_sorted_risk(self):
        rows = _cycle_data() + _fan_in_data(10) + [_tx("AGGREGATOR", "ACC_001", 77.7, 30)]
        store, cycles, fans, shells = _detect(rows)
        suspicious = calculate_scores(store, cycles, fans, shells)
        rings = form_rings(suspicious, cycles, fans, shells)

        assert rings
        assert all(len(r.patterns) == 1 for r in rings)
        risks = [r.risk_score for r in rings]
        assert risks == sorted(risks, reverse=True)
        assert len({r.id for r in rings}) == len(rings)

    def test_mixed_pattern_ring_is_fatal(self):
        merged = Ring(
            id="RING_001",
            nodes=["ACC_001", "ACC_002", "ACC_003"],
            risk_score=80.0,
            patterns=["cycle_length_3", "shell_account_chain"],
            average_suspicion=85.0,
        )
        with pytest.raises(RingIntegrityError, match="RING_001"):
            _check_integrity([merged])

    def test_patternless_ring_is_fatal(self):
        empty = Ring(id="RING_002", nodes=["X"], risk_score=10.0, patterns=[], average_suspicion=10.0)
        with pytest.raises(RingIntegrityError):
            _check_integrity([empty])


# ── Semantics Tests ───────────────────────────────────────────────────


class TestSemantics:
    @pytest.mark.parametrize("score,level", [
        (0, "low"), (39, "low"), (39.5, "low"), (40, "medium"), (69.9, "medium"),
        (70, "high"), (100, "high"), (float("nan"), "low"),
    ])
    def test_risk_level(self, score, level):
        assert risk_level(score) == level

    def test_role_priority(self):
        assert classify_role(["cycle", "shell"]) == "shell_account"
        assert classify_role(["fan_in", "account_drain"]) == "balance_manipulator"
        assert classify_role(["cycle"]) == "layering_node"
        assert classify_role(["fan_out"]) == "distribution_hub"
        assert classify_role(["minimal_history"]) == "unknown"

    def test_explanation(self):
        text = build_risk_explanation(["cycle_length_3"], ["high_velocity"])
        assert text.startswith("Participates in a 3-node")
        assert text.endswith("(>5 tx/hour).")
        assert build_risk_explanation([], []) == ""
