"""
Unit tests for the API endpoints.
Service functions are replaced with fakes; the database dependency is overridden.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from tournament.api.main import app
from tournament.database import store
from tournament.database.db import get_db_session
from tournament.services import (
    aggregation_service,
    match_service,
    phase_service,
    player_service,
    validation_service,
)
from tournament.services.errors import ConflictError, NotFoundError, PersistenceError


# ============================================================================
# Test Fixtures and Helpers
# ============================================================================

async def fake_db_session():
    yield None


@pytest.fixture
def client():
    app.dependency_overrides[get_db_session] = fake_db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


PLAYER = {"id": "alice", "playerId": "alice", "name": "Alice", "points": 3, "winRatio": "100.0"}

LEADERBOARD_ENTRY = {
    "rank": 1,
    "playerId": "alice",
    "name": "Alice",
    "avatar": "",
    "points": 3,
    "wins": 1,
    "matches": 1,
    "winRatio": "100.0",
}


# ============================================================================
# Health
# ============================================================================

def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "OK"
    assert body["uptime"] >= 0
    assert body["environment"] == "test"


# ============================================================================
# Players
# ============================================================================

class TestPlayerEndpoints:
    """Tests for /api/players."""

    def test_list_players_with_pagination(self, client, monkeypatch):
        captured = {}

        async def fake_list_players(session, status, sort_by, order, limit, page):
            captured.update(status=status, sort_by=sort_by, order=order, limit=limit, page=page)
            return [PLAYER], 101

        monkeypatch.setattr(player_service, "list_players", fake_list_players, raising=True)

        response = client.get("/api/players", params={"sortBy": "wins", "limit": 50, "page": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == [PLAYER]
        assert body["pagination"] == {"page": 2, "limit": 50, "total": 101, "pages": 3}
        assert captured == {"status": None, "sort_by": "wins", "order": "desc", "limit": 50, "page": 2}

    def test_get_player_not_found(self, client, monkeypatch):
        async def fake_get_player(session, player_id):
            raise NotFoundError(f"Player '{player_id}' not found", {"playerId": player_id})

        monkeypatch.setattr(player_service, "get_player", fake_get_player, raising=True)

        response = client.get("/api/players/ghost")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "error": "not_found",
            "detail": "Player 'ghost' not found",
            "playerId": "ghost",
        }

    def test_create_player(self, client, monkeypatch):
        async def fake_create_player(session, request):
            assert request.id == "alice"
            return PLAYER

        monkeypatch.setattr(player_service, "create_player", fake_create_player, raising=True)

        response = client.post("/api/players", json={"playerId": "alice", "name": "Alice"})
        assert response.status_code == 201
        assert response.json()["data"] == PLAYER

    def test_create_player_conflict(self, client, monkeypatch):
        async def fake_create_player(session, request):
            raise ConflictError("A player with id 'alice' already exists", {"playerId": "alice"})

        monkeypatch.setattr(player_service, "create_player", fake_create_player, raising=True)

        response = client.post("/api/players", json={"playerId": "alice", "name": "Alice"})
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_create_player_schema_error_is_422(self, client):
        response = client.post("/api/players", json={"playerId": "a!", "name": "Alice"})
        assert response.status_code == 422

    def test_ranking_route_not_shadowed_by_player_id(self, client, monkeypatch):
        captured = {}

        async def fake_get_leaderboard(session, limit):
            captured["limit"] = limit
            return [LEADERBOARD_ENTRY]

        monkeypatch.setattr(aggregation_service, "get_leaderboard", fake_get_leaderboard, raising=True)

        response = client.get("/api/players/leaderboard/ranking")
        assert response.status_code == 200
        assert response.json()["data"] == [LEADERBOARD_ENTRY]
        assert captured["limit"] == 10

    def test_player_stats(self, client, monkeypatch):
        async def fake_get_player_stats(session, player_id):
            return {"basic": {"matches": 1}, "bestMatch": None}

        monkeypatch.setattr(player_service, "get_player_stats", fake_get_player_stats, raising=True)

        response = client.get("/api/players/alice/stats")
        assert response.status_code == 200
        assert response.json()["data"]["basic"]["matches"] == 1

    def test_unexpected_error_is_500(self, client, monkeypatch):
        async def fake_delete_player(session, player_id):
            raise RuntimeError("boom")

        monkeypatch.setattr(player_service, "delete_player", fake_delete_player, raising=True)

        response = client.delete("/api/players/alice")
        assert response.status_code == 500
        assert "boom" in response.json()["detail"]


# ============================================================================
# Matches
# ============================================================================

class TestMatchEndpoints:
    """Tests for /api/matches."""

    def test_create_match_passes_body_to_service(self, client, monkeypatch):
        captured = {}

        async def fake_create_match(session, submission):
            captured["submission"] = submission
            return {"match": {"id": "m1"}, "playerUpdates": []}

        monkeypatch.setattr(match_service, "create_match", fake_create_match, raising=True)

        payload = {"map": "Arabia", "duration": 40, "players": []}
        response = client.post("/api/matches", json=payload)
        assert response.status_code == 201
        assert response.json()["data"]["match"]["id"] == "m1"
        assert captured["submission"] == payload

    def test_create_match_rejection_is_400(self, client, monkeypatch):
        async def fake_create_match(session, submission):
            validation_service.validate_match_submission(submission)

        monkeypatch.setattr(match_service, "create_match", fake_create_match, raising=True)

        players = [
            {
                "playerId": pid,
                "playerName": pid.capitalize(),
                "scores": {"military": 10, "economy": 10, "technology": 10, "society": 10},
                "totalScore": 40,
                "finalPosition": position,
            }
            for pid, position in (("alice", 1), ("bob", 1), ("carol", 3), ("dave", 4))
        ]
        payload = {"date": "2025-02-10T20:00:00Z", "duration": 45, "map": "Arabia", "players": players}

        response = client.post("/api/matches", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["field"] == "players.finalPosition"

    def test_create_match_persistence_error_reports_progress(self, client, monkeypatch):
        async def fake_create_match(session, submission):
            raise PersistenceError(
                "Could not record match",
                stage="player_update",
                progress={"matchId": "m1", "playersUpdated": ["alice"]},
            )

        monkeypatch.setattr(match_service, "create_match", fake_create_match, raising=True)

        response = client.post("/api/matches", json={})
        assert response.status_code == 500
        body = response.json()
        assert body["stage"] == "player_update"
        assert body["progress"]["playersUpdated"] == ["alice"]

    def test_list_matches_query_params(self, client, monkeypatch):
        captured = {}

        async def fake_list_matches(session, **kwargs):
            captured.update(kwargs)
            return [], 0

        monkeypatch.setattr(match_service, "list_matches", fake_list_matches, raising=True)

        response = client.get("/api/matches", params={"map": "arab", "playerId": "bob"})
        assert response.status_code == 200
        assert response.json()["pagination"] == {"page": 1, "limit": 20, "total": 0, "pages": 0}
        assert captured["map_name"] == "arab"
        assert captured["player_id"] == "bob"
        assert captured["status"] == "completed"
        assert captured["sort_by"] == "date"

    def test_player_matches_unknown_player(self, client, monkeypatch):
        async def fake_get_player_model(session, player_id):
            raise NotFoundError(f"Player '{player_id}' not found")

        monkeypatch.setattr(player_service, "get_player_model", fake_get_player_model, raising=True)

        response = client.get("/api/matches/player/ghost")
        assert response.status_code == 404

    def test_update_match(self, client, monkeypatch):
        async def fake_update_match(session, match_id, request):
            return {"id": match_id, "status": request.status.value}

        monkeypatch.setattr(match_service, "update_match", fake_update_match, raising=True)

        response = client.put("/api/matches/m1", json={"status": "disputed"})
        assert response.status_code == 200
        assert response.json()["data"] == {"id": "m1", "status": "disputed"}

    def test_delete_match(self, client, monkeypatch):
        async def fake_delete_match(session, match_id):
            return {"matchId": match_id, "recomputedPlayers": ["alice"]}

        monkeypatch.setattr(match_service, "delete_match", fake_delete_match, raising=True)

        response = client.delete("/api/matches/m1")
        assert response.status_code == 200
        assert response.json()["data"]["recomputedPlayers"] == ["alice"]


# ============================================================================
# Phases and stats
# ============================================================================

class TestPhaseAndStatsEndpoints:
    """Tests for /api/phases and /api/stats."""

    def test_phase_leaderboard(self, client, monkeypatch):
        captured = {}
        entry = {
            "rank": 1,
            "playerId": "alice",
            "playerName": "Alice",
            "matches": 2,
            "wins": 1,
            "points": 5,
            "totalScore": 240,
            "winRatio": "50.0",
            "avgScore": 120,
        }

        async def fake_get_phase_leaderboard(session, phase_id, limit):
            captured.update(phase_id=phase_id, limit=limit)
            return [{**entry, "internal": "dropped"}]

        monkeypatch.setattr(aggregation_service, "get_phase_leaderboard", fake_get_phase_leaderboard, raising=True)

        response = client.get("/api/phases/fase2/leaderboard", params={"limit": 5})
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": [entry]}
        assert captured == {"phase_id": "fase2", "limit": 5}

    def test_create_phase_invalid_dates_is_422(self, client):
        response = client.post(
            "/api/phases",
            json={"phaseId": "x", "name": "X", "startDate": "2025-03-01", "endDate": "2025-02-01"},
        )
        assert response.status_code == 422

    def test_get_phase(self, client, monkeypatch):
        async def fake_get_phase(session, phase_id):
            return {"phaseId": phase_id, "stats": {"totalMatches": 2, "totalPlayers": 4}}

        monkeypatch.setattr(phase_service, "get_phase", fake_get_phase, raising=True)

        response = client.get("/api/phases/fase1")
        assert response.status_code == 200
        assert response.json()["data"]["stats"]["totalMatches"] == 2

    def test_tournament_summary(self, client, monkeypatch):
        async def fake_summary(session):
            return {"totalPlayers": 4, "totalMatches": 2, "leader": None}

        monkeypatch.setattr(aggregation_service, "get_tournament_summary", fake_summary, raising=True)

        response = client.get("/api/stats/tournament")
        assert response.status_code == 200
        assert response.json()["data"]["totalPlayers"] == 4

    def test_map_stats_and_recent_activity(self, client, monkeypatch):
        async def fake_map_stats(session):
            return [{"map": "Arabia", "totalMatches": 3, "avgDuration": 40, "avgScore": 100}]

        async def fake_recent_activity(session, limit):
            return [{"type": "match", "limit": limit}]

        monkeypatch.setattr(aggregation_service, "get_map_stats", fake_map_stats, raising=True)
        monkeypatch.setattr(aggregation_service, "get_recent_activity", fake_recent_activity, raising=True)

        assert client.get("/api/stats/maps").json()["data"][0]["map"] == "Arabia"
        assert client.get("/api/stats/recent-activity").json()["data"] == [{"type": "match", "limit": 10}]

    def test_detailed_leaderboard(self, client, monkeypatch):
        captured = {}
        entry = {
            **LEADERBOARD_ENTRY,
            "losses": 0,
            "totalAverage": 40.0,
            "categoryAverages": {"military": 40.0, "economy": 40.0, "technology": 40.0, "society": 40.0},
        }

        async def fake_detailed(session, limit):
            captured["limit"] = limit
            return [entry]

        monkeypatch.setattr(aggregation_service, "get_detailed_leaderboard", fake_detailed, raising=True)

        response = client.get("/api/stats/leaderboard")
        assert response.status_code == 200
        assert response.json()["data"] == [entry]
        assert captured["limit"] == 50

    def test_store_failure_is_persistence_error(self, client, monkeypatch):
        async def failing_find_many(session, model, *args, **kwargs):
            raise OperationalError("SELECT matches", {}, Exception("connection reset"))

        monkeypatch.setattr(store, "find_many", failing_find_many, raising=True)

        response = client.get("/api/stats/maps")
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "persistence_error"
        assert body["stage"] == "map_stats"
