"""
graph_builder.py – Incremental, memory-bounded transaction graph.

Transactions arrive in chunks and are folded into per-node accumulators as
they stream in.  Analysis never goes back to the raw transaction list.

Node state (NodeData)
---------------------
in_degree, out_degree, total_degree  : int    – exact
first_seen, last_seen                : int    – epoch ms, exact
transactions_in / transactions_out   : list   – display sample, capped

Store-side accumulators
-----------------------
incoming / outgoing peer refs        : (peer, ts) pairs, uncapped – used for
                                       neighbour discovery and fan windows
total_in / total_out                 : running volume, released after
                                       metrics finalisation
balance / label counters             : only populated when the optional
                                       fields are present
amount profiles                      : running mean/variance + capped sample

Edges
-----
Kept only up to MAX_STORED_EDGES for rendering.  No detector reads them.
"""
from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

import pandas as pd

from .config import (
    BALANCE_EPSILON,
    CHUNK_SIZE,
    HIGH_RISK_TX_TYPES,
    MAX_AMOUNT_SAMPLE_PER_NODE,
    MAX_DISPLAY_TX_PER_NODE,
    MAX_STORED_EDGES,
    ROUND_AMOUNT_UNIT,
    TEMPORAL_BURST_MINUTES,
)
from .models import EdgeData, NodeData, Transaction
from .utils import iter_chunks, to_epoch_ms, unique_in_order

log = logging.getLogger(__name__)

PeerRef = Tuple[str, int]
TransactionLike = Union[Transaction, dict]


class AmountProfile:
    """Running amount statistics for one account plus a capped sample."""

    __slots__ = ("count", "mean", "m2", "minimum", "maximum", "sample")

    def __init__(self) -> None:
        self.count = 0
        self.mean = 0.0
        self.m2 = 0.0
        self.minimum = math.inf
        self.maximum = -math.inf
        self.sample: List[float] = []

    def add(self, amount: float, sample_cap: int) -> None:
        # Welford's update keeps variance stable over unbounded volume.
        self.count += 1
        delta = amount - self.mean
        self.mean += delta / self.count
        self.m2 += delta * (amount - self.mean)
        self.minimum = min(self.minimum, amount)
        self.maximum = max(self.maximum, amount)
        if len(self.sample) < sample_cap:
            self.sample.append(amount)

    @property
    def std(self) -> float:
        """Population standard deviation; 0.0 below two observations."""
        if self.count < 2:
            return 0.0
        return math.sqrt(max(self.m2, 0.0) / self.count)

    def has_outlier(self, z_threshold: float) -> bool:
        """True if any observed amount lies ``z_threshold`` std devs from the mean."""
        std = self.std
        if self.count < 2 or not (std > 0 and math.isfinite(std)):
            return False
        # The largest |z| is always attained at the minimum or maximum.
        worst = max(self.maximum - self.mean, self.mean - self.minimum)
        return worst / std >= z_threshold

    def similar_pairs(self, tolerance: float, needed: int) -> int:
        """
        Count pairs of sampled amounts whose difference is within
        ``tolerance`` of the pair mean, stopping once ``needed`` are found.
        """
        amounts = sorted(self.sample)
        found = 0
        for i, low in enumerate(amounts):
            for j in range(i + 1, len(amounts)):
                high = amounts[j]
                avg = (low + high) / 2
                if avg <= 0:
                    continue
                # Relative gap only grows with ``high`` once sorted.
                if (high - low) / avg > tolerance:
                    break
                found += 1
                if found >= needed:
                    return found
        return found


class GraphStore:
    """
    Node table, capped edge list and compact peer references for one run.
    Build one per analysis and discard it afterwards.
    """

    def __init__(
        self,
        *,
        max_edges: int = MAX_STORED_EDGES,
        max_display_tx: int = MAX_DISPLAY_TX_PER_NODE,
        amount_sample_cap: int = MAX_AMOUNT_SAMPLE_PER_NODE,
    ) -> None:
        self.max_edges = max_edges
        self.max_display_tx = max_display_tx
        self.amount_sample_cap = amount_sample_cap

        self.nodes: Dict[str, NodeData] = {}
        self.edges: List[EdgeData] = []
        self.transaction_count = 0
        self.total_volume = 0.0

        self._incoming: Dict[str, List[PeerRef]] = defaultdict(list)
        self._outgoing: Dict[str, List[PeerRef]] = defaultdict(list)
        self._successors: Optional[Dict[str, Tuple[str, ...]]] = None
        self.total_in: Dict[str, float] = defaultdict(float)
        self.total_out: Dict[str, float] = defaultdict(float)

        # Balance / transaction-type signals
        self.has_balance_data = False
        self.balance_anomalies: Counter = Counter()
        self.account_drains: Counter = Counter()
        self.zero_dest_balances: Counter = Counter()
        self.high_risk_tx: Counter = Counter()

        # Universal anomaly signals
        self.round_amounts: Counter = Counter()
        self.temporal_bursts: Counter = Counter()
        self.amount_profiles: Dict[str, AmountProfile] = {}

        # Ground truth
        self.has_ground_truth = False
        self.fraudulent_nodes: Set[str] = set()
        self.fraud_tx_count = 0
        self.legit_tx_count = 0
        self.fraud_by_type: Dict[str, Dict[str, int]] = {}

    # ── Ingestion ──────────────────────────────────────────────────────────────

    def add_chunk(self, transactions: Iterable[TransactionLike]) -> None:
        for tx in transactions:
            self.add_transaction(tx)

    def add_frame(self, df: pd.DataFrame, chunk_size: int = CHUNK_SIZE) -> None:
        """Ingest a DataFrame whose columns use the transaction wire names."""
        records = frame_to_records(df)
        for chunk in iter_chunks(records, chunk_size):
            self.add_chunk(chunk)

    def add_transaction(self, tx: TransactionLike) -> None:
        if not isinstance(tx, Transaction):
            tx = Transaction.model_validate(tx)

        ts = to_epoch_ms(tx.timestamp)
        sender = self._node(tx.sender)
        receiver = self._node(tx.receiver)

        # Burst detection compares against activity *before* this transaction.
        self._track_burst(sender, ts)
        self._track_burst(receiver, ts)

        sender.out_degree += 1
        sender.total_degree += 1
        receiver.in_degree += 1
        receiver.total_degree += 1

        if len(sender.transactions_out) < self.max_display_tx:
            sender.transactions_out.append(tx)
        if len(receiver.transactions_in) < self.max_display_tx:
            receiver.transactions_in.append(tx)

        self.total_out[tx.sender] += tx.amount
        self.total_in[tx.receiver] += tx.amount
        self._outgoing[tx.sender].append((tx.receiver, ts))
        self._incoming[tx.receiver].append((tx.sender, ts))

        if len(self.edges) < self.max_edges:
            self.edges.append(EdgeData(
                id=f"e-{len(self.edges)}",
                source=tx.sender,
                target=tx.receiver,
                amount=tx.amount,
                timestamp=ts,
            ))
        elif len(self.edges) == self.max_edges and self.transaction_count == self.max_edges:
            log.warning(
                "Edge cap (%d) reached; further edges are not stored for rendering.",
                self.max_edges,
            )

        _touch(sender, ts)
        _touch(receiver, ts)
        self.transaction_count += 1
        self.total_volume += tx.amount

        self._track_labels(tx)
        self._track_balances(tx)
        self._track_amounts(tx)

    def _node(self, node_id: str) -> NodeData:
        node = self.nodes.get(node_id)
        if node is None:
            node = self.nodes[node_id] = NodeData(id=node_id)
        return node

    def _track_burst(self, node: NodeData, ts: int) -> None:
        if node.last_seen is None:
            return
        gap = ts - node.last_seen
        if 0 < gap < TEMPORAL_BURST_MINUTES * 60 * 1000:
            self.temporal_bursts[node.id] += 1

    def _track_labels(self, tx: Transaction) -> None:
        if tx.is_fraud is not None:
            self.has_ground_truth = True
            if tx.is_fraud:
                self.fraud_tx_count += 1
                self.fraudulent_nodes.add(tx.sender)
                self.fraudulent_nodes.add(tx.receiver)
            else:
                self.legit_tx_count += 1

        if tx.tx_type:
            self.has_balance_data = True
            stats = self.fraud_by_type.setdefault(tx.tx_type, {"total": 0, "fraud": 0})
            stats["total"] += 1
            if tx.is_fraud:
                stats["fraud"] += 1
            if tx.tx_type.upper() in HIGH_RISK_TX_TYPES:
                self.high_risk_tx[tx.sender] += 1
                self.high_risk_tx[tx.receiver] += 1

    def _track_balances(self, tx: Transaction) -> None:
        if tx.old_balance_orig is not None and tx.new_balance_orig is not None:
            self.has_balance_data = True
            expected = tx.old_balance_orig - tx.amount
            if abs(expected - tx.new_balance_orig) > BALANCE_EPSILON:
                self.balance_anomalies[tx.sender] += 1
            if tx.new_balance_orig < BALANCE_EPSILON and tx.old_balance_orig > 0 and tx.amount > 0:
                self.account_drains[tx.sender] += 1

        if tx.old_balance_dest is not None and tx.new_balance_dest is not None:
            self.has_balance_data = True
            if tx.old_balance_dest < BALANCE_EPSILON and tx.amount > 0:
                self.zero_dest_balances[tx.receiver] += 1
            expected = tx.old_balance_dest + tx.amount
            if abs(expected - tx.new_balance_dest) > BALANCE_EPSILON:
                self.balance_anomalies[tx.receiver] += 1

    def _track_amounts(self, tx: Transaction) -> None:
        if tx.amount > 0 and tx.amount % ROUND_AMOUNT_UNIT == 0:
            self.round_amounts[tx.sender] += 1
            self.round_amounts[tx.receiver] += 1
        for node_id in (tx.sender, tx.receiver):
            profile = self.amount_profiles.get(node_id)
            if profile is None:
                profile = self.amount_profiles[node_id] = AmountProfile()
            profile.add(tx.amount, self.amount_sample_cap)

    # ── Read access for detectors ──────────────────────────────────────────────

    def incoming(self, node_id: str) -> List[PeerRef]:
        return self._incoming.get(node_id, [])

    def outgoing(self, node_id: str) -> List[PeerRef]:
        return self._outgoing.get(node_id, [])

    def successors(self, node_id: str) -> Tuple[str, ...]:
        """Distinct outgoing peers in first-seen order (uncapped)."""
        if self._successors is not None:
            return self._successors.get(node_id, ())
        return tuple(unique_in_order(peer for peer, _ in self.outgoing(node_id)))

    def index_successors(self) -> None:
        self._successors = {
            node_id: tuple(unique_in_order(peer for peer, _ in refs))
            for node_id, refs in self._outgoing.items()
        }

    def peer_pairs(self) -> Iterable[Tuple[str, str]]:
        """Distinct directed (sender, receiver) pairs over every transaction."""
        for node_id in self._outgoing:
            for peer in self.successors(node_id):
                yield node_id, peer

    def latest_timestamp(self) -> Optional[int]:
        seen = [n.last_seen for n in self.nodes.values() if n.last_seen is not None]
        return max(seen) if seen else None

    # ── Release ────────────────────────────────────────────────────────────────

    def release_flow_totals(self) -> None:
        self.total_in.clear()
        self.total_out.clear()

    def release_compact_refs(self) -> None:
        self._incoming.clear()
        self._outgoing.clear()
        self._successors = None

    def release_signal_counters(self) -> None:
        for counter in (
            self.balance_anomalies, self.account_drains, self.zero_dest_balances,
            self.high_risk_tx, self.round_amounts, self.temporal_bursts,
        ):
            counter.clear()
        self.amount_profiles.clear()


def _touch(node: NodeData, ts: int) -> None:
    if node.first_seen is None or ts < node.first_seen:
        node.first_seen = ts
    if node.last_seen is None or ts > node.last_seen:
        node.last_seen = ts


def frame_to_records(df: pd.DataFrame) -> List[dict]:
    """DataFrame rows as transaction dicts, with missing cells as None."""
    if df.empty:
        return []
    cleaned = df.astype(object).where(df.notna(), None)
    return cleaned.to_dict("records")
