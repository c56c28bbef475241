"""
shell_detector.py – Detect layered shell account chains.

Definition
----------
A shell chain is a directed path of at least SHELL_MIN_CHAIN accounts where
every intermediate account (everything except source and destination) is a
"shell": an account with SHELL_TX_MIN to SHELL_TX_MAX transactions in total,
i.e. a disposable pass-through layer.

Source and destination have no activity requirement; they are simply the ends
of the discovered path.  All accounts on a qualifying path are flagged.

Algorithm
---------
BFS (deque of (current, path) frames) from every account that sends money.
A path is not extended past SHELL_DEPTH_LIMIT accounts, and never through a
non-shell account, since that account would become an invalid interior.
Budget: SHELL_MAX_ITERATIONS pops per start node, truncated quietly.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import List, NamedTuple, Set

from .config import (
    SHELL_DEPTH_LIMIT,
    SHELL_MAX_ITERATIONS,
    SHELL_MIN_CHAIN,
    SHELL_TX_MAX,
    SHELL_TX_MIN,
)
from .graph_builder import GraphStore
from .models import ShellChainInstance
from .utils import canonical_key

log = logging.getLogger(__name__)


class ShellResult(NamedTuple):
    flagged: Set[str]
    instances: List[ShellChainInstance]


def detect_shell_chains(
    store: GraphStore,
    *,
    tx_min: int = SHELL_TX_MIN,
    tx_max: int = SHELL_TX_MAX,
    min_chain: int = SHELL_MIN_CHAIN,
    depth_limit: int = SHELL_DEPTH_LIMIT,
    max_iterations: int = SHELL_MAX_ITERATIONS,
) -> ShellResult:
    flagged: Set[str] = set()
    instances: List[ShellChainInstance] = []
    seen: set = set()
    truncated = 0

    shells = {
        node_id for node_id, node in store.nodes.items()
        if tx_min <= node.total_degree <= tx_max
    }
    log.info(
        "Shell detection: %d shell candidates / %d total nodes",
        len(shells), len(store.nodes),
    )

    for start, node in store.nodes.items():
        if node.out_degree == 0:
            continue

        queue = deque([(start, [start])])
        iterations = 0

        while queue:
            iterations += 1
            if iterations > max_iterations:
                truncated += 1
                break

            current, path = queue.popleft()

            if len(path) >= min_chain and all(n in shells for n in path[1:-1]):
                flagged.update(path)
                key = canonical_key(path)
                if key not in seen:
                    seen.add(key)
                    instances.append(ShellChainInstance(nodes=list(path)))

            if len(path) >= depth_limit:
                continue
            if len(path) > 1 and current not in shells:
                continue

            for nbr in store.successors(current):
                if nbr not in path:
                    queue.append((nbr, path + [nbr]))

    if truncated:
        log.debug("Shell detection: iteration budget exhausted for %d start nodes", truncated)
    log.info(
        "Shell detection: %d distinct chains, %d accounts flagged",
        len(instances), len(flagged),
    )
    return ShellResult(flagged, instances)
