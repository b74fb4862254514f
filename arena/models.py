"""Data models for debates, votes and ratings."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


DEFAULT_RATING = 1500


def new_id() -> str:
    """Random hex identifier for debates, turns and votes."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


class Outcome(str, Enum):
    """Result of a single vote on a debate.

    A double loss scores like a tie but is tallied separately, so it is kept
    as its own variant.
    """

    A_WINS = "llm1"
    B_WINS = "llm2"
    TIE = "tie"
    DOUBLE_LOSS = "bothBad"

    @classmethod
    def resolve(cls, label: "Outcome | str", name_a: str, name_b: str) -> "Outcome":
        """Resolve a winner label to an outcome.

        Accepts an Outcome, its wire value, or the name of either competitor.
        Anything else resolves to a tie.
        """
        if isinstance(label, cls):
            return label
        try:
            return cls(label)
        except ValueError:
            pass
        if label == name_a:
            return cls.A_WINS
        if label == name_b:
            return cls.B_WINS
        return cls.TIE

    def results(self) -> tuple["Result", "Result"]:
        """Per-competitor results as (result_a, result_b)."""
        if self is Outcome.A_WINS:
            return (Result.WIN, Result.LOSS)
        if self is Outcome.B_WINS:
            return (Result.LOSS, Result.WIN)
        return (Result.TIE, Result.TIE)


class Result(str, Enum):
    """Result of a contest from one competitor's point of view."""

    WIN = "win"
    LOSS = "loss"
    TIE = "tie"


class Position(str, Enum):
    """Side a model argues in a debate."""

    PRO = "pro"
    CON = "con"


class DebateStatus(str, Enum):
    """Lifecycle of a debate: created, then in progress, then completed."""

    CREATED = "created"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CompetitorRating(BaseModel):
    """Current rating and record of one competitor."""

    model_config = ConfigDict(extra="ignore")

    name: str
    rating: int = DEFAULT_RATING
    wins: int = Field(default=0, ge=0)
    losses: int = Field(default=0, ge=0)
    ties: int = Field(default=0, ge=0)
    total_games: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_total_games(self) -> "CompetitorRating":
        if self.total_games != self.wins + self.losses + self.ties:
            raise ValueError(
                f"total_games for {self.name} must equal wins + losses + ties"
            )
        return self

    def record(self, rating: int, result: Result) -> "CompetitorRating":
        """Return a copy with the new rating and one more game counted."""
        counter = {
            Result.WIN: "wins",
            Result.LOSS: "losses",
            Result.TIE: "ties",
        }[result]
        return self.model_copy(
            update={
                "rating": rating,
                counter: getattr(self, counter) + 1,
                "total_games": self.total_games + 1,
            }
        )


class RatingDelta(BaseModel):
    """Rating change of one competitor caused by one vote."""

    model_config = ConfigDict(extra="ignore")

    name: str
    opponent: str
    debate_id: str
    rating_before: int
    rating_after: int
    rating_change: int
    result: Result
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def check_change(self) -> "RatingDelta":
        if self.rating_after - self.rating_before != self.rating_change:
            raise ValueError("rating_change must equal rating_after - rating_before")
        return self


class Turn(BaseModel):
    """A single message in a debate."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    debate_id: str
    llm_name: str
    message: str
    turn_number: int = Field(ge=1)
    created_at: datetime = Field(default_factory=utcnow)


class Vote(BaseModel):
    """A judge's verdict on a completed debate."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    debate_id: str
    judge_id: str
    winner: Outcome
    reasoning: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Debate(BaseModel):
    """A debate between two models on a topic."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=new_id)
    topic: str
    llm1_name: str
    llm2_name: str
    llm1_position: Position
    llm2_position: Position
    status: DebateStatus = DebateStatus.CREATED
    turns: list[Turn] = []
    created_at: datetime = Field(default_factory=utcnow)

    def speaker_for(self, turn_number: int) -> tuple[str, Position, Position]:
        """Speaker name, position and opponent position for a turn number.

        Odd turns belong to the first model, even turns to the second.
        """
        if turn_number % 2 == 1:
            return (self.llm1_name, self.llm1_position, self.llm2_position)
        return (self.llm2_name, self.llm2_position, self.llm1_position)
