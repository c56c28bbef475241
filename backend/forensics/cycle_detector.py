"""
cycle_detector.py – Detect circular fund routing (money-mule rings).

Strategy
--------
Iterative DFS from every account that both sends and receives.  Each stack
frame is (current, depth, path); expansion uses the uncapped successor index
so neighbour discovery is exact even when the edge list is capped.

A neighbour equal to the start node closes a cycle when the path length is
within [CYCLE_MIN_LEN, CYCLE_MAX_LEN].  Canonical deduplication: [A,B,C] and
[B,C,A] are the same ring, keyed by the sorted member tuple.

Performance
-----------
• Depth limit CYCLE_DEPTH_LIMIT per frame.
• Iteration budget CYCLE_MAX_ITERATIONS stack pops per start node.  Hitting
  it truncates that start node quietly; only the aggregate is logged.
"""
from __future__ import annotations

import logging
from typing import List, NamedTuple, Set

from .config import (
    CYCLE_DEPTH_LIMIT,
    CYCLE_MAX_ITERATIONS,
    CYCLE_MAX_LEN,
    CYCLE_MIN_LEN,
)
from .graph_builder import GraphStore
from .models import CycleInstance
from .utils import canonical_key

log = logging.getLogger(__name__)


class CycleResult(NamedTuple):
    flagged: Set[str]
    instances: List[CycleInstance]


def detect_cycles(
    store: GraphStore,
    *,
    min_len: int = CYCLE_MIN_LEN,
    max_len: int = CYCLE_MAX_LEN,
    depth_limit: int = CYCLE_DEPTH_LIMIT,
    max_iterations: int = CYCLE_MAX_ITERATIONS,
) -> CycleResult:
    """
    Find simple directed cycles of ``min_len`` to ``max_len`` accounts.

    Returns
    -------
    CycleResult
        flagged   : every account on at least one recorded cycle path
        instances : one CycleInstance per distinct member set, in discovery order
    """
    flagged: Set[str] = set()
    instances: List[CycleInstance] = []
    seen: set = set()
    truncated = 0

    for start, node in store.nodes.items():
        if node.in_degree == 0 or node.out_degree == 0:
            continue

        stack = [(start, 1, [start])]
        iterations = 0

        while stack:
            iterations += 1
            if iterations > max_iterations:
                truncated += 1
                break

            current, depth, path = stack.pop()
            if depth > depth_limit:
                continue

            for nbr in store.successors(current):
                if nbr == start:
                    if min_len <= len(path) <= max_len:
                        flagged.update(path)
                        key = canonical_key(path)
                        if key not in seen:
                            seen.add(key)
                            instances.append(CycleInstance(nodes=list(path), length=len(path)))
                elif nbr not in path and len(path) < max_len:
                    stack.append((nbr, depth + 1, path + [nbr]))

    if truncated:
        log.debug("Cycle detection: iteration budget exhausted for %d start nodes", truncated)
    log.info(
        "Cycle detection: %d distinct cycles, %d accounts flagged",
        len(instances), len(flagged),
    )
    return CycleResult(flagged, instances)
