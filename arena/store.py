"""Debate, vote and rating storage."""

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from .models import CompetitorRating, Debate, RatingDelta, Turn, Vote


logger = logging.getLogger("arena:store")


class DebateStore(Protocol):
    """Storage used by debate and vote handling.

    Implementations serialize everything done inside transaction() so a
    vote never reads a rating another vote is about to replace.
    """

    def transaction(self) -> Any: ...

    def get_debate(self, debate_id: str) -> Debate | None: ...

    def save_debate(self, debate: Debate) -> None: ...

    def add_turn(self, turn: Turn) -> None: ...

    def delete_turns(self, debate_id: str) -> None: ...

    def add_vote(self, vote: Vote) -> None: ...

    def get_votes(self, debate_id: str) -> list[Vote]: ...

    def find_vote(self, debate_id: str, judge_id: str) -> Vote | None: ...

    def delete_votes(self, debate_id: str) -> None: ...

    def get_or_create_rating(self, name: str) -> CompetitorRating: ...

    def apply_rating_update(
        self,
        ratings: list[CompetitorRating],
        deltas: list[RatingDelta],
        vote: Vote | None = None,
    ) -> None: ...

    def list_ratings(self) -> list[CompetitorRating]: ...

    def recent_changes(self, limit: int = 10) -> list[RatingDelta]: ...


class JsonDebateStore:
    """Store kept in memory and persisted to a single JSON file.

    Every write rewrites the whole document through a temporary file, so a
    failed write leaves both the file and the in-memory state untouched.
    With no path the store is memory only.
    """

    def __init__(self, path: Path | None = None):
        """Initialize the store, loading existing data from path if present.

        Args:
            path: JSON file to persist to, or None for memory only
        """
        self.path = path
        self._lock = threading.RLock()
        self._debates: dict[str, Debate] = {}
        self._votes: list[Vote] = []
        self._ratings: dict[str, CompetitorRating] = {}
        self._history: list[RatingDelta] = []

        if path is not None and path.exists():
            self._load(json.loads(path.read_text()))

    def _load(self, data: dict[str, Any]) -> None:
        """Replace the in-memory state with a loaded document."""
        self._debates = {
            item["id"]: Debate.model_validate(item)
            for item in data.get("debates", [])
        }
        self._votes = [Vote.model_validate(item) for item in data.get("votes", [])]
        self._ratings = {
            item["name"]: CompetitorRating.model_validate(item)
            for item in data.get("ratings", [])
        }
        self._history = [
            RatingDelta.model_validate(item) for item in data.get("history", [])
        ]
        logger.debug(
            f"Loaded {len(self._debates)} debates and {len(self._ratings)} ratings"
        )

    def _write(
        self,
        debates: dict[str, Debate] | None = None,
        votes: list[Vote] | None = None,
        ratings: dict[str, CompetitorRating] | None = None,
        history: list[RatingDelta] | None = None,
    ) -> None:
        """Persist the given state, falling back to the current state per part."""
        if self.path is None:
            return

        document = {
            "debates": [
                d.model_dump(mode="json")
                for d in (self._debates if debates is None else debates).values()
            ],
            "votes": [
                v.model_dump(mode="json")
                for v in (self._votes if votes is None else votes)
            ],
            "ratings": [
                r.model_dump(mode="json")
                for r in (self._ratings if ratings is None else ratings).values()
            ],
            "history": [
                h.model_dump(mode="json")
                for h in (self._history if history is None else history)
            ],
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(document, indent=2))
        tmp_path.replace(self.path)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Hold the store lock for a read-compute-write sequence."""
        with self._lock:
            yield

    def get_debate(self, debate_id: str) -> Debate | None:
        """Get a copy of a debate, or None if the id is unknown."""
        with self._lock:
            debate = self._debates.get(debate_id)
            return debate.model_copy(deep=True) if debate else None

    def save_debate(self, debate: Debate) -> None:
        """Insert or replace a debate, turns included."""
        with self._lock:
            debates = {**self._debates, debate.id: debate.model_copy(deep=True)}
            self._write(debates=debates)
            self._debates = debates

    def add_turn(self, turn: Turn) -> None:
        """Append a turn to its debate."""
        with self._lock:
            debate = self._debates[turn.debate_id]
            updated = debate.model_copy(update={"turns": [*debate.turns, turn]})
            self._write(debates={**self._debates, debate.id: updated})
            self._debates[debate.id] = updated

    def delete_turns(self, debate_id: str) -> None:
        """Remove every turn of a debate."""
        with self._lock:
            debate = self._debates[debate_id]
            updated = debate.model_copy(update={"turns": []})
            self._write(debates={**self._debates, debate_id: updated})
            self._debates[debate_id] = updated

    def add_vote(self, vote: Vote) -> None:
        """Store a vote on its own, without touching ratings."""
        with self._lock:
            votes = [*self._votes, vote]
            self._write(votes=votes)
            self._votes = votes

    def get_votes(self, debate_id: str) -> list[Vote]:
        """All votes cast on a debate, oldest first."""
        with self._lock:
            return [v for v in self._votes if v.debate_id == debate_id]

    def find_vote(self, debate_id: str, judge_id: str) -> Vote | None:
        """The vote a judge cast on a debate, if any."""
        with self._lock:
            for vote in self._votes:
                if vote.debate_id == debate_id and vote.judge_id == judge_id:
                    return vote
            return None

    def delete_votes(self, debate_id: str) -> None:
        """Remove every vote cast on a debate."""
        with self._lock:
            votes = [v for v in self._votes if v.debate_id != debate_id]
            self._write(votes=votes)
            self._votes = votes

    def get_or_create_rating(self, name: str) -> CompetitorRating:
        """Get the rating record for name, creating a default one if missing."""
        with self._lock:
            rating = self._ratings.get(name)
            if rating is None:
                logger.info(f"Creating rating record for {name}")
                rating = CompetitorRating(name=name)
                ratings = {**self._ratings, name: rating}
                self._write(ratings=ratings)
                self._ratings = ratings
            return rating

    def apply_rating_update(
        self,
        ratings: list[CompetitorRating],
        deltas: list[RatingDelta],
        vote: Vote | None = None,
    ) -> None:
        """Write updated rating records, their deltas and the vote together.

        Everything goes out in a single write, so if it fails none of it is
        stored.

        Args:
            ratings: Updated rating records
            deltas: Rating change records for the same contest
            vote: Vote that caused the update, if any
        """
        with self._lock:
            new_ratings = {**self._ratings, **{r.name: r for r in ratings}}
            new_history = [*self._history, *deltas]
            new_votes = [*self._votes, vote] if vote is not None else self._votes
            self._write(votes=new_votes, ratings=new_ratings, history=new_history)
            self._votes = new_votes
            self._ratings = new_ratings
            self._history = new_history

    def list_ratings(self) -> list[CompetitorRating]:
        """All rating records, highest rating first."""
        with self._lock:
            return sorted(self._ratings.values(), key=lambda r: r.rating, reverse=True)

    def recent_changes(self, limit: int = 10) -> list[RatingDelta]:
        """The latest rating deltas, newest first.

        Args:
            limit: Maximum number of deltas to return

        Returns:
            List of rating deltas
        """
        with self._lock:
            ordered = sorted(self._history, key=lambda h: h.created_at, reverse=True)
            return ordered[:limit]
