import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from psycopg2 import errors
from psycopg2.extras import Json, RealDictCursor

from league_manager.database import get_connection
from league_manager.models import LeaderboardScope

logger = logging.getLogger(__name__)


def _build_filters(
    division_id: Optional[int],
    season: Optional[str],
    tournament_id: Optional[int],
    cup_id: Optional[int],
) -> Tuple[str, list]:
    clauses = []
    params = []
    for column, value in (
        ("division_id", division_id),
        ("season", season),
        ("tournament_id", tournament_id),
        ("cup_id", cup_id),
    ):
        if value is not None:
            clauses.append(f"{column} = %s")
            params.append(value)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class LeaderboardRepository:
    def get_leaderboards(
        self,
        division_id: Optional[int] = None,
        season: Optional[str] = None,
        tournament_id: Optional[int] = None,
        cup_id: Optional[int] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dict]:
        where, params = _build_filters(division_id, season, tournament_id, cup_id)
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(
                f"""
                SELECT *
                FROM leaderboards
                {where}
                ORDER BY last_updated DESC, id DESC
                LIMIT %s OFFSET %s
            """,
                (*params, limit, offset),
            )
            return cur.fetchall()
        finally:
            cur.close()
            conn.close()

    def count_leaderboards(
        self,
        division_id: Optional[int] = None,
        season: Optional[str] = None,
        tournament_id: Optional[int] = None,
        cup_id: Optional[int] = None,
    ) -> int:
        where, params = _build_filters(division_id, season, tournament_id, cup_id)
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(f"SELECT COUNT(*) AS total FROM leaderboards {where}", params)
            return cur.fetchone()["total"]
        finally:
            cur.close()
            conn.close()

    def get_leaderboard_by_id(self, leaderboard_id: int) -> Optional[Dict]:
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute("SELECT * FROM leaderboards WHERE id = %s", (leaderboard_id,))
            return cur.fetchone()
        finally:
            cur.close()
            conn.close()

    def create_leaderboard(self, scope: LeaderboardScope, standings: List[Dict]) -> Dict:
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(
                """
                INSERT INTO leaderboards (
                    division_id, season, tournament_id, cup_id, standings
                ) VALUES (%s, %s, %s, %s, %s)
                RETURNING *
            """,
                (scope.division_id, scope.season, scope.tournament_id, scope.cup_id, Json(standings)),
            )
            new_leaderboard = cur.fetchone()
            conn.commit()
            return new_leaderboard
        except errors.UniqueViolation as e:
            conn.rollback()
            raise ValueError("Leaderboard already exists for this scope") from e
        except errors.ForeignKeyViolation as e:
            conn.rollback()
            raise ValueError("Invalid reference. The specified division, tournament or cup does not exist") from e
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            cur.close()
            conn.close()

    def update_standings(
        self, leaderboard_id: int, mutate: Callable[[Any], Tuple[List[Dict], Any]]
    ) -> Optional[Tuple[Dict, Any]]:
        """Read-modify-write the standings of one leaderboard inside a single transaction.

        The row stays locked while ``mutate`` runs, so concurrent result submissions
        for the same leaderboard are applied one after the other.
        """
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute("SELECT standings FROM leaderboards WHERE id = %s FOR UPDATE", (leaderboard_id,))
            row = cur.fetchone()
            if not row:
                conn.rollback()
                return None

            standings, result = mutate(row["standings"])

            cur.execute(
                """
                UPDATE leaderboards
                SET standings = %s,
                    last_updated = CURRENT_TIMESTAMP,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING *
            """,
                (Json(standings), leaderboard_id),
            )
            updated_leaderboard = cur.fetchone()
            conn.commit()
            return updated_leaderboard, result
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            cur.close()
            conn.close()

    def replace_standings(self, leaderboard_id: int, standings: List[Dict]) -> Optional[Dict]:
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(
                """
                UPDATE leaderboards
                SET standings = %s,
                    last_updated = CURRENT_TIMESTAMP,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING *
            """,
                (Json(standings), leaderboard_id),
            )
            updated_leaderboard = cur.fetchone()
            conn.commit()
            return updated_leaderboard
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            cur.close()
            conn.close()

    def refresh_timestamp(self, leaderboard_id: int) -> Optional[Dict]:
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(
                """
                UPDATE leaderboards
                SET last_updated = CURRENT_TIMESTAMP,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING *
            """,
                (leaderboard_id,),
            )
            updated_leaderboard = cur.fetchone()
            conn.commit()
            return updated_leaderboard
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            cur.close()
            conn.close()

    def delete_leaderboard(self, leaderboard_id: int) -> Optional[Dict]:
        conn = get_connection()
        cur = conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute("DELETE FROM leaderboards WHERE id = %s RETURNING *", (leaderboard_id,))
            deleted_leaderboard = cur.fetchone()
            conn.commit()
            if deleted_leaderboard:
                logger.info(f"Deleted leaderboard {leaderboard_id}")
            return deleted_leaderboard
        except Exception as e:
            conn.rollback()
            raise e
        finally:
            cur.close()
            conn.close()
