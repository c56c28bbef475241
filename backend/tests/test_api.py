"""
HTTP tests for the FastAPI surface.
"""
import time

import pytest
from fastapi.testclient import TestClient

import forensics.main
from forensics.main import app

_CYCLE = [
    {"sender": "ACC_001", "receiver": "ACC_002", "amount": 1000.0, "timestamp": "2024-01-10T00:00:00Z",
     "txType": "TRANSFER"},
    {"sender": "ACC_002", "receiver": "ACC_003", "amount": 1010.0, "timestamp": "2024-01-10T01:00:00Z"},
    {"sender": "ACC_003", "receiver": "ACC_001", "amount": 990.0, "timestamp": "2024-01-10T02:00:00Z"},
]


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


class TestEndpoints:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_request_id_echoed(self, client):
        resp = client.get("/", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_analyze(self, client):
        resp = client.post("/analyze", json={"transactions": _CYCLE})
        assert resp.status_code == 200

        body = resp.json()
        assert set(body) >= {"nodes", "edges", "rings", "suspicious_nodes", "metadata", "ground_truth"}
        assert body["metadata"]["total_transactions"] == 3
        assert len(body["edges"]) == 3
        assert body["nodes"]["ACC_001"]["transactions_out"][0]["txType"] == "TRANSFER"
        assert any(r["patterns"] == ["cycle_length_3"] for r in body["rings"])
        assert all("role" in n for n in body["suspicious_nodes"])

    def test_summary_mode_drops_detail(self, client):
        resp = client.post("/analyze", params={"detail": "false"}, json={"transactions": _CYCLE})
        assert resp.status_code == 200

        body = resp.json()
        assert body["edges"] == []
        assert body["nodes"]["ACC_001"]["transactions_out"] == []
        assert body["nodes"]["ACC_001"]["out_degree"] == 1

    def test_empty_input_rejected(self, client):
        resp = client.post("/analyze", json={"transactions": []})
        assert resp.status_code == 422

    def test_invalid_record_rejected(self, client):
        resp = client.post(
            "/analyze",
            json={"transactions": [{"receiver": "ACC_002", "amount": 5.0, "timestamp": "2024-01-10T00:00:00Z"}]},
        )
        assert resp.status_code == 422

    def test_bad_timestamp_rejected(self, client):
        bad = dict(_CYCLE[0], timestamp="not-a-date")
        resp = client.post("/analyze", json={"transactions": [bad]})
        assert resp.status_code == 422

    def test_too_many_transactions(self, client, monkeypatch):
        monkeypatch.setattr(forensics.main, "MAX_TRANSACTIONS", 2)
        resp = client.post("/analyze", json={"transactions": _CYCLE})
        assert resp.status_code == 413

    def test_timeout_maps_to_gateway_timeout(self, client, monkeypatch):
        real_analyze = forensics.main.analyze

        def slow_analyze(transactions, timeout):
            def slow_progress(event):
                if event.chunks_processed == 1:
                    time.sleep(0.3)

            return real_analyze(transactions, slow_progress, chunk_size=1, timeout=timeout)

        monkeypatch.setattr(forensics.main, "ANALYSIS_TIMEOUT_SECONDS", 0.05)
        monkeypatch.setattr(forensics.main, "analyze", slow_analyze)
        resp = client.post("/analyze", json={"transactions": _CYCLE})
        assert resp.status_code == 504
