"""
models.py – Pydantic data contracts.
Defines the transaction input record, the per-account / per-ring analysis
structures and the exact JSON contract a completed analysis returns.
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .semantics import build_risk_explanation, classify_role, risk_level


class Transaction(BaseModel):
    """
    One money transfer as handed over by the upstream parser.

    Wire names are camelCase (``txType``, ``isFraud``, ``oldBalanceOrig`` …);
    both the alias and the snake_case attribute name are accepted on input.
    The balance and label fields are optional and, when absent, simply
    disable the behavioural signals that depend on them.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    sender: str = Field(..., min_length=1)
    receiver: str = Field(..., min_length=1)
    amount: float
    timestamp: datetime
    id: Optional[str] = None
    tx_type: Optional[str] = Field(None, alias="txType")
    is_fraud: Optional[bool] = Field(None, alias="isFraud")
    is_flagged_fraud: Optional[bool] = Field(None, alias="isFlaggedFraud")
    old_balance_orig: Optional[float] = Field(None, alias="oldBalanceOrig")
    new_balance_orig: Optional[float] = Field(None, alias="newBalanceOrig")
    old_balance_dest: Optional[float] = Field(None, alias="oldBalanceDest")
    new_balance_dest: Optional[float] = Field(None, alias="newBalanceDest")


class NodeData(BaseModel):
    """
    Account node. Counters are exact over every ingested transaction;
    ``transactions_in`` / ``transactions_out`` are a capped display sample.
    ``first_seen`` / ``last_seen`` are epoch milliseconds.
    """
    id: str
    in_degree: int = 0
    out_degree: int = 0
    total_degree: int = 0
    first_seen: Optional[int] = None
    last_seen: Optional[int] = None
    active_days: float = 0.0
    velocity: float = 0.0
    unique_counterparties: int = 0
    flow_through: float = 0.0
    transactions_in: List[Transaction] = Field(default_factory=list)
    transactions_out: List[Transaction] = Field(default_factory=list)


class EdgeData(BaseModel):
    id: str
    source: str
    target: str
    amount: float
    timestamp: int


# ── Pattern instances ──────────────────────────────────────────────────────────

class CycleInstance(BaseModel):
    nodes: List[str]
    length: int


class FanInstance(BaseModel):
    hub: str
    direction: Literal["in", "out"]
    peers: List[str]


class ShellChainInstance(BaseModel):
    nodes: List[str]


# ── Scores & rings ─────────────────────────────────────────────────────────────

class ScoreDetails(BaseModel):
    patterns: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)


class SuspicionScore(BaseModel):
    """
    Per-account score. ``network`` stays 0 until ring formation raises it;
    ``total`` is always min(100, structural + behavioral + network).
    """
    structural: float = 0.0
    behavioral: float = 0.0
    network: float = 0.0
    total: float = Field(0.0, ge=0.0, le=100.0)
    details: ScoreDetails = Field(default_factory=ScoreDetails)

    @computed_field
    @property
    def risk_level(self) -> str:
        return risk_level(self.total)

    @computed_field
    @property
    def risk_explanation(self) -> str:
        return build_risk_explanation(self.details.patterns, self.details.risk_factors)


class SuspiciousNode(BaseModel):
    id: str
    score: SuspicionScore

    @computed_field
    @property
    def role(self) -> str:
        return classify_role(self.score.details.patterns)


class Ring(BaseModel):
    """
    Mandatory fields: id, nodes, risk_score, patterns, average_suspicion.
    ``patterns`` always holds exactly one pattern tag.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    nodes: List[str]
    risk_score: float = Field(..., ge=0.0, le=100.0)
    patterns: List[str]
    average_suspicion: float
    central_hub: Optional[str] = None

    @computed_field
    @property
    def risk_level(self) -> str:
        return risk_level(self.risk_score)


# ── Ground truth ───────────────────────────────────────────────────────────────

class TypeBreakdown(BaseModel):
    total: int = 0
    fraud: int = 0


class GroundTruthMetrics(BaseModel):
    available: bool = True
    total_fraud_tx: int
    total_legit_tx: int
    true_positives: int
    false_positives: int
    true_negatives: int
    false_negatives: int
    precision: float
    recall: float
    f1_score: float
    accuracy: float
    fraud_by_type: Dict[str, TypeBreakdown] = Field(default_factory=dict)
    avg_score_fraud_nodes: float
    avg_score_legit_nodes: float


# ── Result & progress ──────────────────────────────────────────────────────────

class NetworkStatistics(BaseModel):
    total_nodes: int
    total_edges: int
    graph_density: float
    weakly_connected_components: int
    avg_degree: float


class AnalysisMetadata(BaseModel):
    total_transactions: int
    total_volume: float
    processed_at: str
    processing_time_seconds: float = 0.0
    network_statistics: Optional[NetworkStatistics] = None


class GraphAnalysisResult(BaseModel):
    nodes: Dict[str, NodeData]
    edges: List[EdgeData]
    rings: List[Ring]
    suspicious_nodes: List[SuspiciousNode]
    metadata: AnalysisMetadata
    ground_truth: Optional[GroundTruthMetrics] = None


class AnalysisProgress(BaseModel):
    status: Literal["uploading", "processing", "completed", "failed"]
    percent: int = Field(..., ge=0, le=100)
    message: str
    chunks_processed: Optional[int] = None
    total_chunks: Optional[int] = None


class AnalyzeRequest(BaseModel):
    transactions: List[Transaction]
