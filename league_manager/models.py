from datetime import datetime
from typing import Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    computed_field,
    field_validator,
    model_validator,
)


# Standings models
class StandingEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_name: StrictStr = Field(alias="teamName", min_length=1)
    played: StrictInt = Field(default=0, ge=0)
    won: StrictInt = Field(default=0, ge=0)
    drawn: StrictInt = Field(default=0, ge=0)
    lost: StrictInt = Field(default=0, ge=0)
    goals_for: StrictInt = Field(default=0, alias="goalsFor", ge=0)
    goals_against: StrictInt = Field(default=0, alias="goalsAgainst", ge=0)
    goal_difference: Optional[StrictInt] = Field(default=None, alias="goalDifference")
    points: Optional[StrictInt] = Field(default=None, ge=0)

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v):
        if not v.strip():
            raise ValueError("teamName must not be blank")
        return v

    @model_validator(mode="after")
    def check_derived_fields(self):
        if self.won + self.drawn + self.lost != self.played:
            raise ValueError("won + drawn + lost must equal played")

        goal_difference = self.goals_for - self.goals_against
        if self.goal_difference is None:
            self.goal_difference = goal_difference
        elif self.goal_difference != goal_difference:
            raise ValueError("goalDifference must equal goalsFor - goalsAgainst")

        points = 3 * self.won + self.drawn
        if self.points is None:
            self.points = points
        elif self.points != points:
            raise ValueError("points must equal 3 * won + drawn")
        return self


# Match result submitted once a match is completed
class MatchResult(BaseModel):
    home_team: str = Field(min_length=1)
    away_team: str = Field(min_length=1)
    home_score: StrictInt
    away_score: StrictInt

    @field_validator("home_score", "away_score")
    @classmethod
    def validate_scores(cls, v):
        if v < 0:
            raise ValueError("Scores cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_distinct_teams(self):
        if self.home_team.strip().lower() == self.away_team.strip().lower():
            raise ValueError("A team cannot play against itself")
        return self


# Leaderboard models
class LeaderboardScope(BaseModel):
    division_id: int = Field(gt=0)
    season: Optional[str] = Field(default=None, max_length=20)
    tournament_id: Optional[int] = Field(default=None, gt=0)
    cup_id: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def validate_single_scope(self):
        if self.tournament_id is not None and self.cup_id is not None:
            raise ValueError("Leaderboard cannot belong to both tournament and cup")
        return self


class LeaderboardCreate(LeaderboardScope):
    standings: Any = Field(default_factory=list)


class StandingsUpdate(BaseModel):
    standings: Any


class Leaderboard(LeaderboardScope):
    model_config = ConfigDict(from_attributes=True)

    id: int
    standings: List[StandingEntry]
    last_updated: datetime
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def is_division_leaderboard(self) -> bool:
        return self.tournament_id is None and self.cup_id is None

    @computed_field
    @property
    def is_tournament_leaderboard(self) -> bool:
        return self.tournament_id is not None

    @computed_field
    @property
    def is_cup_leaderboard(self) -> bool:
        return self.cup_id is not None

    @computed_field
    @property
    def team_count(self) -> int:
        return len(self.standings)

    @computed_field
    @property
    def top_team(self) -> Optional[StandingEntry]:
        # Standings are stored sorted
        if not self.standings:
            return None
        return self.standings[0]


class LeaderboardPage(BaseModel):
    items: List[Leaderboard]
    total: int
    limit: int
    offset: int
