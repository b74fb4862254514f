"""Tests for the JSON debate store."""

import json
from pathlib import Path

import pytest

from arena.models import (
    CompetitorRating,
    Debate,
    Outcome,
    Position,
    RatingDelta,
    Result,
    Turn,
    Vote,
)
from arena.store import JsonDebateStore


def make_debate(**kwargs) -> Debate:
    fields = {
        "topic": "Remote work is better than office work",
        "llm1_name": "gpt",
        "llm2_name": "claude",
        "llm1_position": Position.PRO,
        "llm2_position": Position.CON,
    }
    fields.update(kwargs)
    return Debate(**fields)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "arena.json"


@pytest.fixture
def store(store_path: Path) -> JsonDebateStore:
    return JsonDebateStore(store_path)


class TestDebates:
    """Tests for debate and turn storage."""

    def test_missing_debate_returns_none(self, store: JsonDebateStore) -> None:
        """Test that unknown ids return None."""
        assert store.get_debate("missing") is None

    def test_save_and_get(self, store: JsonDebateStore) -> None:
        """Test that a saved debate can be read back."""
        debate = make_debate()
        store.save_debate(debate)

        loaded = store.get_debate(debate.id)

        assert loaded.model_dump() == debate.model_dump()

    def test_get_returns_copy(self, store: JsonDebateStore) -> None:
        """Test that changing a returned debate does not change the store."""
        debate = make_debate()
        store.save_debate(debate)

        loaded = store.get_debate(debate.id)
        assert loaded is not None
        loaded.topic = "Changed"

        assert store.get_debate(debate.id).topic == debate.topic

    def test_add_and_delete_turns(self, store: JsonDebateStore) -> None:
        """Test that turns are appended in order and can be cleared."""
        debate = make_debate()
        store.save_debate(debate)

        for number, name in [(1, "gpt"), (2, "claude")]:
            store.add_turn(
                Turn(debate_id=debate.id, llm_name=name, message="...", turn_number=number)
            )

        turns = store.get_debate(debate.id).turns
        assert [t.turn_number for t in turns] == [1, 2]

        store.delete_turns(debate.id)
        assert store.get_debate(debate.id).turns == []


class TestVotes:
    """Tests for vote storage."""

    def test_find_vote(self, store: JsonDebateStore) -> None:
        """Test looking up a vote by debate and judge."""
        vote = Vote(debate_id="d1", judge_id="alice", winner=Outcome.TIE)
        store.add_vote(vote)

        assert store.find_vote("d1", "alice") == vote
        assert store.find_vote("d1", "bob") is None
        assert store.find_vote("d2", "alice") is None

    def test_votes_are_per_debate(self, store: JsonDebateStore) -> None:
        """Test that votes are filtered and deleted per debate."""
        store.add_vote(Vote(debate_id="d1", judge_id="alice", winner=Outcome.A_WINS))
        store.add_vote(Vote(debate_id="d1", judge_id="bob", winner=Outcome.B_WINS))
        store.add_vote(Vote(debate_id="d2", judge_id="alice", winner=Outcome.TIE))

        assert len(store.get_votes("d1")) == 2

        store.delete_votes("d1")

        assert store.get_votes("d1") == []
        assert len(store.get_votes("d2")) == 1


class TestRatings:
    """Tests for rating storage."""

    def test_get_or_create_defaults(self, store: JsonDebateStore) -> None:
        """Test that a new competitor starts at 1500 with no games."""
        rating = store.get_or_create_rating("gpt")

        assert rating.model_dump() == {
            "name": "gpt",
            "rating": 1500,
            "wins": 0,
            "losses": 0,
            "ties": 0,
            "total_games": 0,
        }
        assert store.list_ratings() == [rating]

    def test_get_or_create_returns_existing(self, store: JsonDebateStore) -> None:
        """Test that an existing record is not reset."""
        store.apply_rating_update(
            [CompetitorRating(name="gpt", rating=1516, wins=1, total_games=1)], []
        )

        assert store.get_or_create_rating("gpt").rating == 1516

    def test_apply_rating_update(self, store: JsonDebateStore, store_path: Path) -> None:
        """Test that ratings, deltas and the vote are written together."""
        ratings = [
            CompetitorRating(name="gpt", rating=1516, wins=1, total_games=1),
            CompetitorRating(name="claude", rating=1484, losses=1, total_games=1),
        ]
        deltas = [
            RatingDelta(
                name="gpt",
                opponent="claude",
                debate_id="d1",
                rating_before=1500,
                rating_after=1516,
                rating_change=16,
                result=Result.WIN,
            ),
            RatingDelta(
                name="claude",
                opponent="gpt",
                debate_id="d1",
                rating_before=1500,
                rating_after=1484,
                rating_change=-16,
                result=Result.LOSS,
            ),
        ]

        vote = Vote(debate_id="d1", judge_id="alice", winner=Outcome.A_WINS)

        store.apply_rating_update(ratings, deltas, vote=vote)

        assert [r.name for r in store.list_ratings()] == ["gpt", "claude"]
        assert len(store.recent_changes()) == 2
        assert store.find_vote("d1", "alice") == vote

        reloaded = JsonDebateStore(store_path)
        assert reloaded.find_vote("d1", "alice").winner is Outcome.A_WINS
        assert reloaded.get_or_create_rating("gpt").rating == 1516

    def test_failed_write_changes_nothing(
        self,
        store: JsonDebateStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test that a failing write leaves votes, ratings and history untouched."""
        store.get_or_create_rating("gpt")

        def fail(**kwargs) -> None:
            raise OSError("disk full")

        monkeypatch.setattr(store, "_write", fail)

        with pytest.raises(OSError):
            store.apply_rating_update(
                [CompetitorRating(name="gpt", rating=1600, wins=1, total_games=1)],
                [
                    RatingDelta(
                        name="gpt",
                        opponent="claude",
                        debate_id="d1",
                        rating_before=1500,
                        rating_after=1600,
                        rating_change=100,
                        result=Result.WIN,
                    )
                ],
                vote=Vote(debate_id="d1", judge_id="alice", winner=Outcome.A_WINS),
            )

        assert store.get_or_create_rating("gpt").rating == 1500
        assert store.recent_changes() == []
        assert store.find_vote("d1", "alice") is None

    def test_recent_changes_limit(self, store: JsonDebateStore) -> None:
        """Test that recent changes are capped at the limit."""
        deltas = [
            RatingDelta(
                name="gpt",
                opponent="claude",
                debate_id=f"d{i}",
                rating_before=1500,
                rating_after=1500,
                rating_change=0,
                result=Result.TIE,
            )
            for i in range(5)
        ]
        store.apply_rating_update([], deltas)

        assert len(store.recent_changes(3)) == 3


class TestPersistence:
    """Tests for writing to and reading from disk."""

    def test_reload(self, store: JsonDebateStore, store_path: Path) -> None:
        """Test that a new store sees everything written by the previous one."""
        debate = make_debate()
        store.save_debate(debate)
        store.add_vote(Vote(debate_id=debate.id, judge_id="alice", winner=Outcome.DOUBLE_LOSS))
        store.get_or_create_rating("gpt")

        reloaded = JsonDebateStore(store_path)

        assert reloaded.get_debate(debate.id).model_dump() == debate.model_dump()
        assert reloaded.find_vote(debate.id, "alice").winner is Outcome.DOUBLE_LOSS
        assert reloaded.get_or_create_rating("gpt").rating == 1500

    def test_file_is_json(self, store: JsonDebateStore, store_path: Path) -> None:
        """Test that the store file holds all sections."""
        store.get_or_create_rating("gpt")

        data = json.loads(store_path.read_text())

        assert set(data) == {"debates", "votes", "ratings", "history"}
        assert data["ratings"][0]["name"] == "gpt"
        assert not store_path.with_name("arena.json.tmp").exists()

    def test_memory_only(self, tmp_path: Path) -> None:
        """Test that a store without a path writes nothing."""
        store = JsonDebateStore()
        store.get_or_create_rating("gpt")

        assert store.list_ratings()[0].name == "gpt"
        assert list(tmp_path.iterdir()) == []
