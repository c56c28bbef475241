"""
config.py – Centralised configuration via environment variables.
All tunable thresholds live here so nothing is scattered across modules.
"""
import os


# ── Ingestion & memory caps ────────────────────────────────────────────────────
CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "2000"))
MAX_STORED_EDGES: int = int(os.getenv("MAX_STORED_EDGES", "10000"))
MAX_DISPLAY_TX_PER_NODE: int = int(os.getenv("MAX_DISPLAY_TX_PER_NODE", "50"))
# Per-node amount sample used only for near-identical amount clustering.
MAX_AMOUNT_SAMPLE_PER_NODE: int = int(os.getenv("MAX_AMOUNT_SAMPLE_PER_NODE", "500"))

# ── Cycle detection ────────────────────────────────────────────────────────────
CYCLE_MIN_LEN: int = int(os.getenv("CYCLE_MIN_LEN", "3"))
CYCLE_MAX_LEN: int = int(os.getenv("CYCLE_MAX_LEN", "5"))
CYCLE_DEPTH_LIMIT: int = int(os.getenv("CYCLE_DEPTH_LIMIT", "6"))
CYCLE_MAX_ITERATIONS: int = int(os.getenv("CYCLE_MAX_ITERATIONS", "800"))

# ── Fan-in / fan-out detection ─────────────────────────────────────────────────
FAN_THRESHOLD: int = int(os.getenv("FAN_THRESHOLD", "10"))
FAN_WINDOW_HOURS: float = float(os.getenv("FAN_WINDOW_HOURS", "72"))
# Windowed peer set is used when it holds at least this share of all-time peers.
FAN_WINDOW_MIN_SHARE: float = float(os.getenv("FAN_WINDOW_MIN_SHARE", "0.5"))

# ── Shell chain detection ──────────────────────────────────────────────────────
SHELL_TX_MIN: int = int(os.getenv("SHELL_TX_MIN", "2"))
SHELL_TX_MAX: int = int(os.getenv("SHELL_TX_MAX", "3"))
SHELL_MIN_CHAIN: int = int(os.getenv("SHELL_MIN_CHAIN", "3"))
SHELL_DEPTH_LIMIT: int = int(os.getenv("SHELL_DEPTH_LIMIT", "6"))
SHELL_MAX_ITERATIONS: int = int(os.getenv("SHELL_MAX_ITERATIONS", "400"))

# ── Scoring ────────────────────────────────────────────────────────────────────
# Structural pattern contributions
SCORE_CYCLE: dict = {3: 40.0, 4: 35.0, 5: 30.0}
SCORE_FAN_IN: float = 30.0
SCORE_FAN_OUT: float = 30.0
SCORE_SHELL: float = 20.0
STRUCTURAL_MAX: float = float(os.getenv("STRUCTURAL_MAX", "100"))

# Behavioural contributions
SCORE_HIGH_VELOCITY: float = 10.0
SCORE_BALANCE_ANOMALY: float = 20.0
SCORE_ACCOUNT_DRAINING: float = 18.0
SCORE_ZERO_DEST_BALANCE: float = 12.0
SCORE_HIGH_RISK_TX_TYPE: float = 8.0
SCORE_AMOUNT_OUTLIER: float = 15.0
SCORE_ROUND_AMOUNT: float = 8.0
SCORE_TEMPORAL_BURST: float = 12.0
SCORE_SINGLETON_ACCOUNT: float = 10.0
SCORE_AMOUNT_CLUSTERING: float = 10.0
BEHAVIORAL_MAX: float = float(os.getenv("BEHAVIORAL_MAX", "40"))

# Network contributions (ring membership only)
NETWORK_BONUS_CYCLE: float = 15.0
NETWORK_BONUS_FAN: float = 12.0
NETWORK_BONUS_SHELL: float = 10.0
NETWORK_MAX: float = float(os.getenv("NETWORK_MAX", "35"))

# ── Behavioural thresholds ─────────────────────────────────────────────────────
HIGH_VELOCITY_TX_PER_HOUR: float = float(os.getenv("HIGH_VELOCITY_TX_PER_HOUR", "5"))
BALANCE_EPSILON: float = float(os.getenv("BALANCE_EPSILON", "1.0"))
BALANCE_ANOMALY_RATIO: float = 0.3
ZERO_DEST_RATIO: float = 0.3
HIGH_RISK_TX_RATIO: float = 0.6
HIGH_RISK_TX_TYPES: frozenset = frozenset(
    t.strip().upper()
    for t in os.getenv("HIGH_RISK_TX_TYPES", "TRANSFER,CASH_OUT").split(",")
    if t.strip()
)
AMOUNT_ZSCORE_THRESHOLD: float = float(os.getenv("AMOUNT_ZSCORE_THRESHOLD", "2.0"))
ROUND_AMOUNT_UNIT: float = float(os.getenv("ROUND_AMOUNT_UNIT", "100"))
ROUND_AMOUNT_RATIO: float = 0.5
TEMPORAL_BURST_MINUTES: float = float(os.getenv("TEMPORAL_BURST_MINUTES", "30"))
TEMPORAL_BURST_MIN_EVENTS: int = 2
SINGLETON_TX_MAX: int = int(os.getenv("SINGLETON_TX_MAX", "2"))
AMOUNT_SIMILARITY_PCT: float = float(os.getenv("AMOUNT_SIMILARITY_PCT", "0.05"))
AMOUNT_CLUSTER_MIN: int = int(os.getenv("AMOUNT_CLUSTER_MIN", "3"))

# ── Ring formation ─────────────────────────────────────────────────────────────
FAN_RING_MIN_SPOKES: int = 3
CYCLE_RING_LENGTH_BONUS: dict = {3: 15.0, 4: 10.0, 5: 5.0}
FAN_RING_COORDINATION_BONUS: float = 15.0
SHELL_RING_BONUS: float = 8.0

# ── Risk levels (derived labels, never scores) ─────────────────────────────────
RISK_LOW_MAX: float = 39.0
RISK_HIGH_MIN: float = 70.0

# ── Service ────────────────────────────────────────────────────────────────────
ANALYSIS_TIMEOUT_SECONDS: float = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "120"))
MAX_TRANSACTIONS: int = int(os.getenv("MAX_TRANSACTIONS", "1000000"))
