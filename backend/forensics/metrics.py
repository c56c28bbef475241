"""
metrics.py – Derived per-account metrics, computed once after ingestion.
"""
from __future__ import annotations

import logging

from .graph_builder import GraphStore
from .utils import MS_PER_DAY, MS_PER_HOUR

log = logging.getLogger(__name__)


def finalize_metrics(store: GraphStore) -> None:
    """
    Fill in active_days, velocity, unique_counterparties and flow_through for
    every node, then drop the running flow totals and index successors.
    Peer references stay in place for the detectors.
    """
    for node_id, node in store.nodes.items():
        span = 0
        if node.first_seen is not None and node.last_seen is not None:
            span = node.last_seen - node.first_seen

        node.active_days = max(1.0, span / MS_PER_DAY)
        node.velocity = node.total_degree / max(1.0, span / MS_PER_HOUR)

        peers = {peer for peer, _ in store.incoming(node_id)}
        peers.update(peer for peer, _ in store.outgoing(node_id))
        node.unique_counterparties = len(peers)

        inflow = store.total_in.get(node_id, 0.0)
        outflow = store.total_out.get(node_id, 0.0)
        high = max(inflow, outflow)
        node.flow_through = min(inflow, outflow) / high if high > 0 else 0.0

    store.release_flow_totals()
    store.index_successors()
    log.info(
        "Metrics finalised: %d nodes, %d transactions, %d stored edges",
        len(store.nodes), store.transaction_count, len(store.edges),
    )
