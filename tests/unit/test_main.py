"""
Unit tests for the FastAPI entrypoint.

The orchestrator dependency is overridden with one backed by in-memory
stores and canned adapters.
"""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from sportscast.ingestion.errors import PersistenceFailure, SourceUnavailable
from sportscast.ingestion.orchestrator import IngestionOrchestrator
from sportscast.ingestion.persist import InMemoryChannelDirectory, InMemoryEventStore
from sportscast.main import app, get_orchestrator

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_orchestrator():
    def _use(orchestrator):
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return orchestrator

    return _use


# =============================================================================
# TEST CLASSES
# =============================================================================


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestIngestEndpoint:
    """Tests for POST /companies/{company_id}/ingest."""

    def test_ingest(self, client, use_orchestrator, create_adapter, candidate, channels):
        """A run should return counts, events and per-source statuses."""
        use_orchestrator(
            IngestionOrchestrator(
                [
                    create_adapter("llm", error=SourceUnavailable("llm", "HTTP 529")),
                    create_adapter("api", candidates=[candidate()]),
                ],
                InMemoryEventStore(),
                channel_directory=InMemoryChannelDirectory(channels),
            )
        )

        response = client.post("/companies/co1/ingest")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["count"] == 1
        assert body["skipped"] == 0
        assert body["events"][0]["title"] == "Arsenal vs Chelsea"
        assert body["events"][0]["channel_id"] == "c1"
        assert body["sources"] == {"llm": "unavailable", "api": "ok"}
        assert body["sport_breakdown"] == {"football": 1}
        assert body["errors"][0]["source_id"] == "llm"

    def test_second_run_inserts_nothing(self, client, use_orchestrator, create_adapter, candidate, channels):
        use_orchestrator(
            IngestionOrchestrator(
                [create_adapter("api", candidates=[candidate()])],
                InMemoryEventStore(),
                channel_directory=InMemoryChannelDirectory(channels),
            )
        )

        client.post("/companies/co1/ingest")
        body = client.post("/companies/co1/ingest").json()

        assert body["count"] == 0
        assert body["skipped"] == 1

    def test_company_without_channels(self, client, use_orchestrator, create_adapter):
        """No active channels should be a 422."""
        use_orchestrator(
            IngestionOrchestrator(
                [create_adapter("api")],
                InMemoryEventStore(),
                channel_directory=InMemoryChannelDirectory([]),
            )
        )

        response = client.post("/companies/co1/ingest")
        assert response.status_code == 422
        assert "no active channels" in response.json()["detail"]

    def test_store_failure(self, client, use_orchestrator, create_adapter, candidate, channels):
        """A failed insert should be a 503."""
        store = MagicMock()
        store.query_by_tenant_and_window.return_value = []
        store.insert_many.side_effect = PersistenceFailure("connection reset", attempted=1)
        use_orchestrator(
            IngestionOrchestrator(
                [create_adapter("api", candidates=[candidate()])],
                store,
                channel_directory=InMemoryChannelDirectory(channels),
            )
        )

        response = client.post("/companies/co1/ingest")
        assert response.status_code == 503

    def test_store_not_ready_at_startup(self, client):
        """A store whose schema cannot be applied should be a 503, not a 500."""
        failure = PersistenceFailure("could not connect")
        with patch("sportscast.main.build_orchestrator", side_effect=failure):
            response = client.post("/companies/co1/ingest")

        assert response.status_code == 503
        assert "Event store unavailable" in response.json()["detail"]

    def test_directory_failure(self, client, use_orchestrator, create_adapter, candidate):
        """An unreachable channel directory should be a 503."""
        directory = MagicMock()
        directory.list_active_channels.side_effect = PersistenceFailure("Query of channels failed")
        use_orchestrator(
            IngestionOrchestrator(
                [create_adapter("api", candidates=[candidate()])],
                InMemoryEventStore(),
                channel_directory=directory,
            )
        )

        response = client.post("/companies/co1/ingest")
        assert response.status_code == 503
