"""
Standings computation for a single competition table.

A table is a plain list of StandingEntry models; lists of raw persisted rows are
parsed with validate_standings on the way in, so malformed data surfaces as
InvalidInputError. Every function here works on the list it is given and
performs no I/O; persisting the result is left to the caller.

Team names match case-insensitively, ignoring surrounding whitespace, and sort
in collation order.
"""

import logging
import unicodedata
from typing import Any, List, Optional

from pydantic import ValidationError

from league_manager.models import StandingEntry

logger = logging.getLogger(__name__)

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1


class InvalidInputError(ValueError):
    pass


def _normalize_name(name: str) -> str:
    return name.strip().lower()


def _same_team(a: str, b: str) -> bool:
    return _normalize_name(a) == _normalize_name(b)


def _find_index(table: List[StandingEntry], team_name: str) -> int:
    for index, entry in enumerate(table):
        if _same_team(entry.team_name, team_name):
            return index
    return -1


def strip_accents(text: str) -> str:
    return "".join(c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn")


def _collation_key(name: str):
    # Base letters first, then accents, then case; the raw name keeps the order total
    return (strip_accents(name).casefold(), unicodedata.normalize("NFD", name).casefold(), name)


def _ranking_key(entry: StandingEntry):
    return (
        -entry.points,
        -entry.goal_difference,
        -entry.goals_for,
        *_collation_key(entry.team_name),
    )


def _as_table(table: Any) -> List[StandingEntry]:
    """Return ``table`` itself when every item is a StandingEntry, otherwise a parsed copy."""
    if isinstance(table, list) and all(isinstance(item, StandingEntry) for item in table):
        return table
    return validate_standings(table)


def _validate_score(score: Any, side: str) -> None:
    if isinstance(score, bool) or not isinstance(score, int):
        raise InvalidInputError(f"{side} score must be an integer")
    if score < 0:
        raise InvalidInputError("Scores cannot be negative")


def _validate_team_name(team_name: Any, side: str) -> None:
    if not isinstance(team_name, str) or not team_name.strip():
        raise InvalidInputError(f"{side} team name is required and must be a string")


def validate_standings(raw: Any) -> List[StandingEntry]:
    """Parse persisted standings JSON into a table.

    Raises InvalidInputError when the value is not a list, when an entry is
    malformed, or when two entries share a team name.
    """
    if not isinstance(raw, list):
        raise InvalidInputError("Standings must be an array")

    table = []
    for index, item in enumerate(raw):
        if isinstance(item, StandingEntry):
            entry = item
        else:
            try:
                entry = StandingEntry.model_validate(item)
            except ValidationError as e:
                details = "; ".join(
                    f"{'.'.join(str(loc) for loc in error['loc']) or 'entry'}: {error['msg']}" for error in e.errors()
                )
                raise InvalidInputError(f"Entry {index}: {details}") from e

        if _find_index(table, entry.team_name) >= 0:
            raise InvalidInputError(f"Entry {index}: duplicate teamName '{entry.team_name}'")
        table.append(entry)

    return table


def sort_table(table: List[StandingEntry]) -> List[StandingEntry]:
    """Return a new list ranked by points, goal difference, goals for, then team name."""
    return sorted(_as_table(table), key=_ranking_key)


def create_entry_from_match(
    team_name: str,
    existing_entry: Optional[StandingEntry],
    is_home: bool,
    home_score: int,
    away_score: int,
) -> StandingEntry:
    if existing_entry is not None:
        entry = existing_entry.model_copy()
    else:
        entry = StandingEntry(team_name=team_name)

    team_score = home_score if is_home else away_score
    opponent_score = away_score if is_home else home_score

    entry.played += 1
    entry.goals_for += team_score
    entry.goals_against += opponent_score
    entry.goal_difference = entry.goals_for - entry.goals_against

    if team_score > opponent_score:
        entry.won += 1
        entry.points += POINTS_FOR_WIN
    elif team_score == opponent_score:
        entry.drawn += 1
        entry.points += POINTS_FOR_DRAW
    else:
        entry.lost += 1

    return entry


def add_or_update_team(table: List[StandingEntry], entry: StandingEntry) -> List[StandingEntry]:
    """Replace the entry with the same name (case-insensitive) or append it, then re-sort in place."""
    if not isinstance(entry, StandingEntry):
        raise InvalidInputError("entry must be a StandingEntry")
    parsed = _as_table(table)

    index = _find_index(parsed, entry.team_name)
    if index >= 0:
        parsed[index] = entry
    else:
        parsed.append(entry)

    table[:] = sort_table(parsed)
    return table


def apply_match_result(
    table: List[StandingEntry],
    home_team: str,
    away_team: str,
    home_score: int,
    away_score: int,
) -> List[StandingEntry]:
    """Credit one completed match to both teams and re-sort the table in place.

    Raw persisted rows (dicts) in ``table`` are parsed first and replaced by
    StandingEntry models. No deduplication happens here: applying the same
    result twice counts it twice.
    """
    parsed = _as_table(table)
    _validate_team_name(home_team, "Home")
    _validate_team_name(away_team, "Away")
    if _same_team(home_team, away_team):
        raise InvalidInputError("A team cannot play against itself")
    _validate_score(home_score, "Home")
    _validate_score(away_score, "Away")
    home_team = home_team.strip()
    away_team = away_team.strip()

    home_entry = create_entry_from_match(home_team, get_standing(parsed, home_team), True, home_score, away_score)
    away_entry = create_entry_from_match(away_team, get_standing(parsed, away_team), False, home_score, away_score)

    add_or_update_team(parsed, home_entry)
    add_or_update_team(parsed, away_entry)
    table[:] = parsed

    logger.debug(f"Applied {home_team} {home_score}-{away_score} {away_team} to table of {len(table)} teams")
    return table


def get_standing(table: List[StandingEntry], team_name: str) -> Optional[StandingEntry]:
    parsed = _as_table(table)
    index = _find_index(parsed, team_name)
    return parsed[index] if index >= 0 else None


def remove_team(table: List[StandingEntry], team_name: str) -> bool:
    # Opponents keep the results they recorded against the removed team
    parsed = _as_table(table)
    index = _find_index(parsed, team_name)
    if index < 0:
        return False

    del parsed[index]
    table[:] = parsed
    return True


def get_top_n(table: List[StandingEntry], n: int) -> List[StandingEntry]:
    if n <= 0 or not table:
        return []
    return table[:n]
