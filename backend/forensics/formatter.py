"""
formatter.py – Assemble the final analysis result.

Result contract
---------------
{
  "nodes":            {id: NodeData},       // every account, display samples capped
  "edges":            [EdgeData],           // first MAX_STORED_EDGES transfers
  "rings":            [Ring],               // descending risk_score
  "suspicious_nodes": [{id, score, role}],
  "metadata":         {total_transactions, total_volume, processed_at,
                       processing_time_seconds,
                       network_statistics: {total_nodes, total_edges,
                                            graph_density,
                                            weakly_connected_components,
                                            avg_degree}},
  "ground_truth":     GroundTruthMetrics | null
}

Network statistics are computed from the uncapped peer references, so they
must be taken before the store releases them.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

import networkx as nx

from .graph_builder import GraphStore
from .models import (
    AnalysisMetadata,
    GraphAnalysisResult,
    GroundTruthMetrics,
    NetworkStatistics,
    Ring,
    SuspiciousNode,
)

log = logging.getLogger(__name__)


def _network_statistics(store: GraphStore) -> NetworkStatistics:
    """Graph-level statistics over distinct directed account pairs."""
    G = nx.DiGraph()
    G.add_nodes_from(store.nodes)
    G.add_edges_from(store.peer_pairs())

    n_nodes = G.number_of_nodes()
    n_edges = G.number_of_edges()
    return NetworkStatistics(
        total_nodes=n_nodes,
        total_edges=n_edges,
        graph_density=round(nx.density(G), 6) if n_nodes > 0 else 0.0,
        weakly_connected_components=nx.number_weakly_connected_components(G) if n_nodes > 0 else 0,
        avg_degree=round((2 * n_edges) / n_nodes, 2) if n_nodes > 0 else 0.0,
    )


def format_output(
    store: GraphStore,
    suspicious: List[SuspiciousNode],
    rings: List[Ring],
    ground_truth: Optional[GroundTruthMetrics] = None,
    processing_time: float = 0.0,
) -> GraphAnalysisResult:
    """
    Build the complete GraphAnalysisResult.

    Parameters
    ----------
    store           : fully ingested GraphStore (peer refs not yet released)
    suspicious      : scored accounts, network scores already raised by rings
    rings           : output of rings.form_rings()
    ground_truth    : output of ground_truth.evaluate_ground_truth()
    processing_time : elapsed wall-clock seconds
    """
    metadata = AnalysisMetadata(
        total_transactions=store.transaction_count,
        total_volume=round(store.total_volume, 2),
        processed_at=datetime.now(timezone.utc).isoformat(),
        processing_time_seconds=round(processing_time, 3),
        network_statistics=_network_statistics(store),
    )
    result = GraphAnalysisResult(
        nodes=store.nodes,
        edges=store.edges,
        rings=rings,
        suspicious_nodes=suspicious,
        metadata=metadata,
        ground_truth=ground_truth,
    )
    log.info(
        "Format complete: %d nodes, %d suspicious accounts, %d rings",
        len(result.nodes), len(suspicious), len(rings),
    )
    return result
