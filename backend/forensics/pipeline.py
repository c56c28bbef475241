"""
pipeline.py – End-to-end analysis driver.

Stages
------
 0–75%  chunked ingestion into a GraphStore
   76%  metrics finalisation
   80%  cycle, fan and shell detection (sequential, read-only on the store)
   90%  scoring and ring formation
  100%  ground-truth evaluation and result assembly

Cancellation is cooperative: a threading.Event is checked at every chunk
boundary and between stages.  A timeout arms a threading.Timer that sets a
private event checked at the same boundaries; the caller's event is never set.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Sequence, Union

import pandas as pd

from .config import CHUNK_SIZE
from .cycle_detector import detect_cycles
from .errors import AnalysisCancelled, AnalysisTimeout, EmptyDatasetError
from .fan_detector import detect_fan_patterns
from .formatter import format_output
from .graph_builder import GraphStore, TransactionLike, frame_to_records
from .ground_truth import evaluate_ground_truth
from .metrics import finalize_metrics
from .models import AnalysisProgress, GraphAnalysisResult
from .rings import form_rings
from .scoring import calculate_scores
from .shell_detector import detect_shell_chains
from .utils import iter_chunks

log = logging.getLogger(__name__)

ProgressCallback = Callable[[AnalysisProgress], None]

INGEST_SHARE = 75


def analyze(
    transactions: Union[Sequence[TransactionLike], pd.DataFrame],
    on_progress: Optional[ProgressCallback] = None,
    *,
    chunk_size: int = CHUNK_SIZE,
    cancel_event: Optional[threading.Event] = None,
    timeout: Optional[float] = None,
) -> GraphAnalysisResult:
    """
    Run the full forensic analysis over ``transactions``.

    Raises
    ------
    EmptyDatasetError
        No transactions were supplied.
    AnalysisCancelled
        ``cancel_event`` was set (AnalysisTimeout when ``timeout`` expired).
    """
    if isinstance(transactions, pd.DataFrame):
        transactions = frame_to_records(transactions)

    def report(status: str, percent: int, message: str, **extra) -> None:
        if on_progress is not None:
            on_progress(AnalysisProgress(status=status, percent=percent, message=message, **extra))

    if not transactions:
        report("failed", 0, "No transactions available for analysis. Upload a dataset first.")
        raise EmptyDatasetError("No transactions available for analysis")

    expired = threading.Event()
    timer: Optional[threading.Timer] = None
    if timeout is not None:
        timer = threading.Timer(timeout, expired.set)
        timer.daemon = True
        timer.start()

    def checkpoint(stage: str) -> None:
        if expired.is_set():
            raise AnalysisTimeout(f"Analysis exceeded {timeout:.1f}s during {stage}")
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled(f"Analysis cancelled during {stage}")

    start_time = time.perf_counter()
    store = GraphStore()
    try:
        # ---- 1. Ingest ----
        total_chunks = (len(transactions) + chunk_size - 1) // chunk_size
        for done, chunk in enumerate(iter_chunks(transactions, chunk_size), start=1):
            checkpoint("ingestion")
            store.add_chunk(chunk)
            report(
                "processing",
                round(done / total_chunks * INGEST_SHARE),
                f"Processed chunk {done} of {total_chunks}",
                chunks_processed=done,
                total_chunks=total_chunks,
            )
        log.info(
            "Ingested %d transactions into %d accounts (%d chunks)",
            store.transaction_count, len(store.nodes), total_chunks,
        )

        # ---- 2. Metrics ----
        checkpoint("metrics")
        report("processing", 76, "Finalising node metrics")
        finalize_metrics(store)

        # ---- 3. Detect ----
        checkpoint("detection")
        report("processing", 80, "Detecting fraud patterns")
        cycles = detect_cycles(store)
        checkpoint("detection")
        fans = detect_fan_patterns(store)
        checkpoint("detection")
        shells = detect_shell_chains(store)

        # ---- 4. Score & form rings ----
        checkpoint("scoring")
        report("processing", 90, "Scoring accounts and forming rings")
        suspicious = calculate_scores(store, cycles, fans, shells)
        rings = form_rings(suspicious, cycles, fans, shells)

        # ---- 5. Evaluate & assemble ----
        checkpoint("assembly")
        ground_truth = evaluate_ground_truth(store, suspicious)
        result = format_output(
            store, suspicious, rings, ground_truth,
            processing_time=time.perf_counter() - start_time,
        )
    except AnalysisCancelled as exc:
        report("failed", 0, str(exc))
        log.warning("%s", exc)
        raise
    except Exception as exc:
        report("failed", 0, f"Analysis failed: {exc}")
        log.exception("Analysis failed")
        raise
    finally:
        if timer is not None:
            timer.cancel()
        store.release_compact_refs()
        store.release_signal_counters()

    report("completed", 100, "Analysis complete")
    log.info(
        "Analysis complete in %.2fs: %d suspicious accounts, %d rings",
        result.metadata.processing_time_seconds, len(result.suspicious_nodes), len(result.rings),
    )
    return result
