import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from league_manager.models import (
    Leaderboard,
    LeaderboardCreate,
    LeaderboardPage,
    MatchResult,
    StandingEntry,
    StandingsUpdate,
)
from league_manager.services.leaderboard_service import LeaderboardNotFoundError, LeaderboardService

logger = logging.getLogger(__name__)

# Routes are plain `def`: the service makes blocking psycopg2 calls, which FastAPI
# dispatches to its threadpool.
router = APIRouter(prefix="/leaderboards", tags=["leaderboards"])


def get_leaderboard_service():
    return LeaderboardService()


def _bad_request(e: ValueError) -> HTTPException:
    logger.warning(f"Rejected leaderboard request: {e}")
    return HTTPException(status_code=400, detail=str(e))


@router.get("", response_model=LeaderboardPage)
def get_leaderboards(
    division_id: Optional[int] = None,
    season: Optional[str] = None,
    tournament_id: Optional[int] = None,
    cup_id: Optional[int] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
):
    try:
        return leaderboard_service.list_leaderboards(
            division_id=division_id,
            season=season,
            tournament_id=tournament_id,
            cup_id=cup_id,
            limit=limit,
            offset=offset,
        )
    except ValueError as e:
        raise _bad_request(e)


@router.post("", response_model=Leaderboard)
def create_leaderboard(
    leaderboard: LeaderboardCreate, leaderboard_service: LeaderboardService = Depends(get_leaderboard_service)
):
    try:
        return leaderboard_service.create_leaderboard(leaderboard)
    except ValueError as e:
        raise _bad_request(e)


@router.get("/{leaderboard_id}", response_model=Leaderboard)
def get_leaderboard(leaderboard_id: int, leaderboard_service: LeaderboardService = Depends(get_leaderboard_service)):
    try:
        return leaderboard_service.get_leaderboard(leaderboard_id)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{leaderboard_id}/standings", response_model=Leaderboard)
def replace_standings(
    leaderboard_id: int,
    update: StandingsUpdate,
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
):
    try:
        return leaderboard_service.replace_standings(leaderboard_id, update)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise _bad_request(e)


@router.post("/{leaderboard_id}/results", response_model=Leaderboard)
def submit_match_result(
    leaderboard_id: int,
    result: MatchResult,
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
):
    try:
        return leaderboard_service.submit_match_result(leaderboard_id, result)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise _bad_request(e)


@router.get("/{leaderboard_id}/teams/{team_name}", response_model=StandingEntry)
def get_team_standing(
    leaderboard_id: int, team_name: str, leaderboard_service: LeaderboardService = Depends(get_leaderboard_service)
):
    try:
        standing = leaderboard_service.get_team_standing(leaderboard_id, team_name)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if standing is None:
        raise HTTPException(status_code=404, detail=f"Team '{team_name}' not found in standings")
    return standing


@router.delete("/{leaderboard_id}/teams/{team_name}")
def remove_team(
    leaderboard_id: int, team_name: str, leaderboard_service: LeaderboardService = Depends(get_leaderboard_service)
):
    try:
        removed = leaderboard_service.remove_team(leaderboard_id, team_name)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail=f"Team '{team_name}' not found in standings")
    return {"removed": True, "team_name": team_name}


@router.get("/{leaderboard_id}/top", response_model=List[StandingEntry])
def get_top_teams(
    leaderboard_id: int,
    n: int = Query(10),
    leaderboard_service: LeaderboardService = Depends(get_leaderboard_service),
):
    try:
        return leaderboard_service.get_top_teams(leaderboard_id, n)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/{leaderboard_id}/refresh", response_model=Leaderboard)
def refresh_timestamp(leaderboard_id: int, leaderboard_service: LeaderboardService = Depends(get_leaderboard_service)):
    try:
        return leaderboard_service.refresh_timestamp(leaderboard_id)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{leaderboard_id}", response_model=Leaderboard)
def delete_leaderboard(leaderboard_id: int, leaderboard_service: LeaderboardService = Depends(get_leaderboard_service)):
    try:
        return leaderboard_service.delete_leaderboard(leaderboard_id)
    except LeaderboardNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
