"""
rings.py – Form deduplicated, pattern-typed fraud rings.

One ring per distinct pattern instance, never merged across patterns:

  cycle_length_<n>     – suspicious members of a cycle, in cycle order
  hub_spoke_fan_in     – hub plus suspicious senders
  hub_spoke_fan_out    – hub plus suspicious receivers
  shell_account_chain  – suspicious members of a shell chain

Deduplication key is "<pattern>::<sorted ids>" over the instance's full member
list, so the same structure reported twice yields one ring.

Creating a ring raises each suspicious member's network score to the ring's
bonus (never lowers it) and recomputes its total.  Ring risk is then computed
from the updated totals.  Scores are mutated in place; rescore first if the
same results are formed into rings twice.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional

from .config import (
    CYCLE_RING_LENGTH_BONUS,
    FAN_RING_COORDINATION_BONUS,
    FAN_RING_MIN_SPOKES,
    NETWORK_BONUS_CYCLE,
    NETWORK_BONUS_FAN,
    NETWORK_BONUS_SHELL,
    NETWORK_MAX,
    SHELL_RING_BONUS,
)
from .cycle_detector import CycleResult
from .errors import RingIntegrityError
from .fan_detector import FanResult
from .models import Ring, SuspiciousNode
from .shell_detector import ShellResult
from .utils import format_ring_id, ring_signature

log = logging.getLogger(__name__)


def _apply_network_bonus(members: List[SuspiciousNode], bonus: float) -> None:
    bonus = min(NETWORK_MAX, bonus)
    for m in members:
        s = m.score
        s.network = max(s.network, bonus)
        s.total = min(100.0, s.structural + s.behavioral + s.network)


def _average(members: List[SuspiciousNode]) -> float:
    return sum(m.score.total for m in members) / len(members)


def _clamp(risk: float) -> float:
    return round(min(100.0, max(0.0, risk)), 2)


def _check_integrity(rings: List[Ring]) -> None:
    """Raise RingIntegrityError unless every ring carries exactly one pattern."""
    for ring in rings:
        if len(ring.patterns) != 1:
            raise RingIntegrityError(
                f"Ring {ring.id} carries {len(ring.patterns)} pattern types "
                f"({', '.join(ring.patterns)}); rings must never be merged across patterns."
            )


class _RingBook:
    """Assigns ring IDs in creation order and drops repeated signatures."""

    def __init__(self) -> None:
        self.rings: List[Ring] = []
        self._seen: set = set()

    def claim(self, pattern: str, nodes: List[str]) -> Optional[str]:
        sig = ring_signature(pattern, nodes)
        if sig in self._seen:
            return None
        self._seen.add(sig)
        return format_ring_id(len(self.rings) + 1)


def form_rings(
    suspicious: List[SuspiciousNode],
    cycles: CycleResult,
    fans: FanResult,
    shells: ShellResult,
) -> List[Ring]:
    """
    Build rings from detector instances, raising member network scores.

    Returns
    -------
    List of Ring sorted by descending risk_score (stable for ties).

    Raises
    ------
    RingIntegrityError
        If any ring carries other than exactly one pattern tag.
    """
    by_id: Dict[str, SuspiciousNode] = {n.id: n for n in suspicious}
    book = _RingBook()

    # ── Cycles ────────────────────────────────────────────────────────────────
    for inst in cycles.instances:
        members = [by_id[n] for n in inst.nodes if n in by_id]
        if not members:
            continue
        pattern = f"cycle_length_{inst.length}"
        ring_id = book.claim(pattern, inst.nodes)
        if ring_id is None:
            continue

        _apply_network_bonus(members, NETWORK_BONUS_CYCLE)
        avg = _average(members)
        risk = (
            avg * 0.6
            + math.log(len(members) + 1) * 10
            + CYCLE_RING_LENGTH_BONUS.get(inst.length, 0.0)
        )
        book.rings.append(Ring(
            id=ring_id,
            nodes=[m.id for m in members],
            risk_score=_clamp(risk),
            patterns=[pattern],
            average_suspicion=round(avg, 2),
        ))

    # ── Fans (all fan-in first, then fan-out) ─────────────────────────────────
    for direction in ("in", "out"):
        pattern = f"hub_spoke_fan_{direction}"
        for inst in fans.instances:
            if inst.direction != direction:
                continue
            hub = by_id.get(inst.hub)
            if hub is None or len(inst.peers) < FAN_RING_MIN_SPOKES:
                continue
            all_nodes = [inst.hub] + inst.peers
            ring_id = book.claim(pattern, all_nodes)
            if ring_id is None:
                continue

            members = [by_id[n] for n in all_nodes if n in by_id]
            _apply_network_bonus(members, NETWORK_BONUS_FAN)
            hub_total = hub.score.total
            avg = _average(members) if members else hub_total
            risk = (
                hub_total * 0.7
                + math.log(len(inst.peers) + 1) * 10
                + FAN_RING_COORDINATION_BONUS
            )
            book.rings.append(Ring(
                id=ring_id,
                nodes=[m.id for m in members],
                risk_score=_clamp(risk),
                patterns=[pattern],
                average_suspicion=round(avg, 2),
                central_hub=inst.hub,
            ))

    # ── Shell chains ──────────────────────────────────────────────────────────
    for inst in shells.instances:
        members = [by_id[n] for n in inst.nodes if n in by_id]
        if not members:
            continue
        pattern = "shell_account_chain"
        ring_id = book.claim(pattern, inst.nodes)
        if ring_id is None:
            continue

        _apply_network_bonus(members, NETWORK_BONUS_SHELL)
        avg = _average(members)
        risk = avg * 0.5 + math.log(len(members) + 1) * 7 + SHELL_RING_BONUS
        book.rings.append(Ring(
            id=ring_id,
            nodes=[m.id for m in members],
            risk_score=_clamp(risk),
            patterns=[pattern],
            average_suspicion=round(avg, 2),
        ))

    _check_integrity(book.rings)
    rings = sorted(book.rings, key=lambda r: r.risk_score, reverse=True)
    log.info("Ring formation: %d rings", len(rings))
    return rings
