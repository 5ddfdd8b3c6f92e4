import logging
from typing import Dict, List, Optional

from league_manager.config import settings
from league_manager.models import (
    Leaderboard,
    LeaderboardCreate,
    LeaderboardPage,
    MatchResult,
    StandingEntry,
    StandingsUpdate,
)
from league_manager.repositories.leaderboard_repository import LeaderboardRepository
from league_manager.services import standings_engine

logger = logging.getLogger(__name__)


class LeaderboardNotFoundError(LookupError):
    def __init__(self, leaderboard_id: int):
        super().__init__(f"Leaderboard with ID {leaderboard_id} not found")
        self.leaderboard_id = leaderboard_id


class TeamNotFoundError(LookupError):
    def __init__(self, team_name: str):
        super().__init__(f"Team '{team_name}' not found in standings")
        self.team_name = team_name


def _dump_standings(table: List[StandingEntry]) -> List[Dict]:
    return [entry.model_dump(by_alias=True) for entry in table]


# Synchronous: the routes are plain `def`, so FastAPI runs these blocking psycopg2
# calls in its threadpool.
class LeaderboardService:
    def __init__(self, repository: Optional[LeaderboardRepository] = None):
        self.repository = repository or LeaderboardRepository()

    def _to_model(self, row: Dict) -> Leaderboard:
        return Leaderboard.model_validate(dict(row))

    def list_leaderboards(
        self,
        division_id: Optional[int] = None,
        season: Optional[str] = None,
        tournament_id: Optional[int] = None,
        cup_id: Optional[int] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> LeaderboardPage:
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        if limit < 1 or limit > settings.MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {settings.MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValueError("offset cannot be negative")

        filters = dict(division_id=division_id, season=season, tournament_id=tournament_id, cup_id=cup_id)
        rows = self.repository.get_leaderboards(**filters, limit=limit, offset=offset)
        total = self.repository.count_leaderboards(**filters)
        return LeaderboardPage(
            items=[self._to_model(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    def get_leaderboard(self, leaderboard_id: int) -> Leaderboard:
        row = self.repository.get_leaderboard_by_id(leaderboard_id)
        if not row:
            raise LeaderboardNotFoundError(leaderboard_id)
        return self._to_model(row)

    def create_leaderboard(self, data: LeaderboardCreate) -> Leaderboard:
        table = standings_engine.sort_table(standings_engine.validate_standings(data.standings))
        row = self.repository.create_leaderboard(data, _dump_standings(table))
        logger.info(f"Created leaderboard {row['id']} for division {data.division_id} with {len(table)} teams")
        return self._to_model(row)

    def submit_match_result(self, leaderboard_id: int, result: MatchResult) -> Leaderboard:
        def apply(raw_standings):
            table = standings_engine.validate_standings(raw_standings)
            standings_engine.apply_match_result(
                table, result.home_team, result.away_team, result.home_score, result.away_score
            )
            return _dump_standings(table), None

        updated = self.repository.update_standings(leaderboard_id, apply)
        if updated is None:
            raise LeaderboardNotFoundError(leaderboard_id)

        row, _ = updated
        logger.info(
            f"Leaderboard {leaderboard_id}: applied {result.home_team} {result.home_score}-"
            f"{result.away_score} {result.away_team}"
        )
        return self._to_model(row)

    def replace_standings(self, leaderboard_id: int, update: StandingsUpdate) -> Leaderboard:
        table = standings_engine.sort_table(standings_engine.validate_standings(update.standings))
        row = self.repository.replace_standings(leaderboard_id, _dump_standings(table))
        if not row:
            raise LeaderboardNotFoundError(leaderboard_id)
        logger.info(f"Leaderboard {leaderboard_id}: standings replaced with {len(table)} teams")
        return self._to_model(row)

    def get_team_standing(self, leaderboard_id: int, team_name: str) -> Optional[StandingEntry]:
        leaderboard = self.get_leaderboard(leaderboard_id)
        return standings_engine.get_standing(leaderboard.standings, team_name)

    def get_top_teams(self, leaderboard_id: int, n: int) -> List[StandingEntry]:
        leaderboard = self.get_leaderboard(leaderboard_id)
        return standings_engine.get_top_n(leaderboard.standings, n)

    def remove_team(self, leaderboard_id: int, team_name: str) -> bool:
        def remove(raw_standings):
            table = standings_engine.validate_standings(raw_standings)
            if not standings_engine.remove_team(table, team_name):
                # Aborts the transaction so the row is left untouched
                raise TeamNotFoundError(team_name)
            return _dump_standings(table), True

        try:
            updated = self.repository.update_standings(leaderboard_id, remove)
        except TeamNotFoundError:
            return False

        if updated is None:
            raise LeaderboardNotFoundError(leaderboard_id)
        logger.info(f"Leaderboard {leaderboard_id}: removed team '{team_name}'")
        return True

    def refresh_timestamp(self, leaderboard_id: int) -> Leaderboard:
        row = self.repository.refresh_timestamp(leaderboard_id)
        if not row:
            raise LeaderboardNotFoundError(leaderboard_id)
        return self._to_model(row)

    def delete_leaderboard(self, leaderboard_id: int) -> Leaderboard:
        row = self.repository.delete_leaderboard(leaderboard_id)
        if not row:
            raise LeaderboardNotFoundError(leaderboard_id)
        return self._to_model(row)
