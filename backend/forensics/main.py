"""
main.py – FastAPI application entry point.

Endpoints
---------
GET  /          – service info
GET  /health    – liveness / readiness probe with version info
POST /analyze   – submit transactions as JSON, run the forensics pipeline

Production concerns addressed
------------------------------
- Structured logging (INFO level, JSON-friendly format)
- Transaction-count guard before the pipeline starts
- Analysis runs in the threadpool with a hard timeout
- Request-ID header injected into every response for traceability
- lifespan context manager
- CORS locked to env-configurable origins
"""
from __future__ import annotations

import logging
import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ANALYSIS_TIMEOUT_SECONDS, MAX_STORED_EDGES, MAX_TRANSACTIONS
from .errors import AnalysisTimeout, EmptyDatasetError
from .models import AnalyzeRequest
from .pipeline import analyze

__version__ = "2.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s │ %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("Graph Forensics Engine v%s starting up", __version__)
    yield
    log.info("Graph Forensics Engine shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
ALLOWED_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

app = FastAPI(
    title="Graph Forensics Engine",
    description="Score accounts and detect fraud rings in money-transfer graphs",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/", include_in_schema=False)
def root():
    return {"status": "ok", "service": "Graph Forensics Engine", "version": __version__}


@app.get("/health")
def health():
    """Liveness / readiness probe."""
    return {
        "status": "healthy",
        "version": __version__,
        "max_transactions": MAX_TRANSACTIONS,
        "max_stored_edges": MAX_STORED_EDGES,
        "analysis_timeout_seconds": ANALYSIS_TIMEOUT_SECONDS,
    }


@app.post("/analyze")
async def analyze_transactions(body: AnalyzeRequest, detail: bool = True):
    """
    Run a forensic analysis over the submitted transactions.

    Set ``detail=false`` to drop per-node display samples and the edge list
    from the response.
    """
    n_tx = len(body.transactions)
    if n_tx > MAX_TRANSACTIONS:
        raise HTTPException(
            status_code=413,
            detail=f"Too many transactions. Maximum is {MAX_TRANSACTIONS}.",
        )

    try:
        result = await run_in_threadpool(
            analyze, body.transactions, timeout=ANALYSIS_TIMEOUT_SECONDS
        )
    except EmptyDatasetError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except AnalysisTimeout as exc:
        raise HTTPException(status_code=504, detail=str(exc))

    payload = result.model_dump(mode="json", by_alias=True)
    if not detail:
        for node in payload["nodes"].values():
            node["transactions_in"] = []
            node["transactions_out"] = []
        payload["edges"] = []

    log.info(
        "Analysis complete for %d transactions in %.2fs: %d rings, %d flagged accounts",
        n_tx,
        result.metadata.processing_time_seconds,
        len(result.rings),
        len(result.suspicious_nodes),
    )
    return JSONResponse(content=payload)
