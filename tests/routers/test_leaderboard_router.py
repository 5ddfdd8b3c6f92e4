import inspect
from datetime import datetime
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from league_manager.models import Leaderboard, StandingEntry
from league_manager.routers.leaderboard_router import get_leaderboard_service, router
from league_manager.services.leaderboard_service import LeaderboardNotFoundError
from league_manager.services.standings_engine import InvalidInputError

app = FastAPI()
app.include_router(router)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def mock_leaderboard_service():
    service = Mock()
    app.dependency_overrides[get_leaderboard_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def hawks():
    return StandingEntry(
        team_name="Thunder Hawks", played=3, won=2, drawn=1, lost=0, goals_for=7, goals_against=2
    )


@pytest.fixture
def sample_leaderboard(hawks):
    now = datetime(2024, 9, 1, 12, 0, 0)
    return Leaderboard(
        id=1,
        division_id=2,
        season=None,
        tournament_id=3,
        cup_id=None,
        standings=[hawks],
        last_updated=now,
        created_at=now,
        updated_at=now,
    )


class TestLeaderboardRouter:
    def test_get_leaderboards(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.list_leaderboards.return_value = {
            "items": [sample_leaderboard],
            "total": 1,
            "limit": 20,
            "offset": 0,
        }

        response = client.get("/leaderboards", params={"division_id": 2, "tournament_id": 3})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["is_tournament_leaderboard"] is True
        mock_leaderboard_service.list_leaderboards.assert_called_once_with(
            division_id=2, season=None, tournament_id=3, cup_id=None, limit=None, offset=0
        )

    def test_get_leaderboards_bad_pagination(self, client, mock_leaderboard_service):
        mock_leaderboard_service.list_leaderboards.side_effect = ValueError("limit must be between 1 and 100")

        response = client.get("/leaderboards", params={"limit": 500})

        assert response.status_code == 400
        assert response.json() == {"detail": "limit must be between 1 and 100"}

    def test_get_leaderboard(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.get_leaderboard.return_value = sample_leaderboard

        response = client.get("/leaderboards/1")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 1
        assert body["team_count"] == 1
        assert body["top_team"]["teamName"] == "Thunder Hawks"
        assert body["standings"][0] == {
            "teamName": "Thunder Hawks",
            "played": 3,
            "won": 2,
            "drawn": 1,
            "lost": 0,
            "goalsFor": 7,
            "goalsAgainst": 2,
            "goalDifference": 5,
            "points": 7,
        }
        mock_leaderboard_service.get_leaderboard.assert_called_once_with(1)

    def test_get_leaderboard_not_found(self, client, mock_leaderboard_service):
        mock_leaderboard_service.get_leaderboard.side_effect = LeaderboardNotFoundError(9)

        response = client.get("/leaderboards/9")

        assert response.status_code == 404
        assert response.json() == {"detail": "Leaderboard with ID 9 not found"}

    def test_create_leaderboard(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.create_leaderboard.return_value = sample_leaderboard

        response = client.post("/leaderboards", json={"division_id": 2, "tournament_id": 3, "standings": []})

        assert response.status_code == 200
        assert response.json()["tournament_id"] == 3
        mock_leaderboard_service.create_leaderboard.assert_called_once()

    def test_create_leaderboard_with_tournament_and_cup(self, client, mock_leaderboard_service):
        response = client.post("/leaderboards", json={"division_id": 2, "tournament_id": 3, "cup_id": 4})

        assert response.status_code == 422
        mock_leaderboard_service.create_leaderboard.assert_not_called()

    def test_create_leaderboard_duplicate(self, client, mock_leaderboard_service):
        mock_leaderboard_service.create_leaderboard.side_effect = ValueError(
            "Leaderboard already exists for this scope"
        )

        response = client.post("/leaderboards", json={"division_id": 2, "season": "2024-2025"})

        assert response.status_code == 400
        assert response.json() == {"detail": "Leaderboard already exists for this scope"}

    def test_submit_match_result(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.submit_match_result.return_value = sample_leaderboard

        response = client.post(
            "/leaderboards/1/results",
            json={"home_team": "Thunder Hawks", "away_team": "Storm Eagles", "home_score": 3, "away_score": 1},
        )

        assert response.status_code == 200
        leaderboard_id, result = mock_leaderboard_service.submit_match_result.call_args.args
        assert leaderboard_id == 1
        assert result.home_score == 3
        assert result.away_team == "Storm Eagles"

    @pytest.mark.parametrize(
        "payload",
        [
            {"home_team": "Hawks", "away_team": "Eagles", "home_score": -1, "away_score": 0},
            {"home_team": "Hawks", "away_team": "hawks", "home_score": 1, "away_score": 0},
            {"home_team": "Hawks", "away_team": " Hawks ", "home_score": 1, "away_score": 0},
            {"home_team": "Hawks", "away_team": "Eagles", "home_score": "two", "away_score": 0},
            {"home_team": "Hawks", "away_team": "Eagles", "home_score": 1},
        ],
    )
    def test_submit_match_result_invalid_payload(self, client, mock_leaderboard_service, payload):
        response = client.post("/leaderboards/1/results", json=payload)

        assert response.status_code == 422
        mock_leaderboard_service.submit_match_result.assert_not_called()

    def test_submit_match_result_corrupt_standings(self, client, mock_leaderboard_service):
        mock_leaderboard_service.submit_match_result.side_effect = InvalidInputError("Standings must be an array")

        response = client.post(
            "/leaderboards/1/results",
            json={"home_team": "Hawks", "away_team": "Eagles", "home_score": 1, "away_score": 0},
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Standings must be an array"}

    def test_submit_match_result_not_found(self, client, mock_leaderboard_service):
        mock_leaderboard_service.submit_match_result.side_effect = LeaderboardNotFoundError(1)

        response = client.post(
            "/leaderboards/1/results",
            json={"home_team": "Hawks", "away_team": "Eagles", "home_score": 1, "away_score": 0},
        )

        assert response.status_code == 404

    def test_replace_standings(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.replace_standings.return_value = sample_leaderboard

        response = client.put("/leaderboards/1/standings", json={"standings": [{"teamName": "Thunder Hawks"}]})

        assert response.status_code == 200
        mock_leaderboard_service.replace_standings.assert_called_once()

    def test_replace_standings_invalid(self, client, mock_leaderboard_service):
        mock_leaderboard_service.replace_standings.side_effect = InvalidInputError("Standings must be an array")

        response = client.put("/leaderboards/1/standings", json={"standings": "nope"})

        assert response.status_code == 400

    def test_get_team_standing(self, client, mock_leaderboard_service, hawks):
        mock_leaderboard_service.get_team_standing.return_value = hawks

        response = client.get("/leaderboards/1/teams/thunder hawks")

        assert response.status_code == 200
        assert response.json()["points"] == 7
        mock_leaderboard_service.get_team_standing.assert_called_once_with(1, "thunder hawks")

    def test_get_team_standing_missing_team(self, client, mock_leaderboard_service):
        mock_leaderboard_service.get_team_standing.return_value = None

        response = client.get("/leaderboards/1/teams/Nobody")

        assert response.status_code == 404
        assert response.json() == {"detail": "Team 'Nobody' not found in standings"}

    def test_remove_team(self, client, mock_leaderboard_service):
        mock_leaderboard_service.remove_team.return_value = True

        response = client.delete("/leaderboards/1/teams/Thunder Hawks")

        assert response.status_code == 200
        assert response.json() == {"removed": True, "team_name": "Thunder Hawks"}

    def test_remove_missing_team(self, client, mock_leaderboard_service):
        mock_leaderboard_service.remove_team.return_value = False

        response = client.delete("/leaderboards/1/teams/Nobody")

        assert response.status_code == 404

    def test_get_top_teams(self, client, mock_leaderboard_service, hawks):
        mock_leaderboard_service.get_top_teams.return_value = [hawks]

        response = client.get("/leaderboards/1/top", params={"n": 1})

        assert response.status_code == 200
        assert [entry["teamName"] for entry in response.json()] == ["Thunder Hawks"]
        mock_leaderboard_service.get_top_teams.assert_called_once_with(1, 1)

    def test_get_top_teams_zero(self, client, mock_leaderboard_service):
        mock_leaderboard_service.get_top_teams.return_value = []

        response = client.get("/leaderboards/1/top", params={"n": 0})

        assert response.status_code == 200
        assert response.json() == []

    def test_refresh_timestamp(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.refresh_timestamp.return_value = sample_leaderboard

        response = client.post("/leaderboards/1/refresh")

        assert response.status_code == 200
        mock_leaderboard_service.refresh_timestamp.assert_called_once_with(1)

    def test_delete_leaderboard(self, client, mock_leaderboard_service, sample_leaderboard):
        mock_leaderboard_service.delete_leaderboard.return_value = sample_leaderboard

        response = client.delete("/leaderboards/1")

        assert response.status_code == 200
        assert response.json()["id"] == 1
        mock_leaderboard_service.delete_leaderboard.assert_called_once_with(1)

    def test_delete_leaderboard_not_found(self, client, mock_leaderboard_service):
        mock_leaderboard_service.delete_leaderboard.side_effect = LeaderboardNotFoundError(1)

        response = client.delete("/leaderboards/1")

        assert response.status_code == 404


def test_routes_run_in_threadpool():
    # Blocking psycopg2 calls must not run on the event loop
    endpoints = [route.endpoint for route in router.routes]

    assert endpoints
    assert not any(inspect.iscoroutinefunction(endpoint) for endpoint in endpoints)
