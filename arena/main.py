"""Main debate arena application logic."""

import argparse
import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from .channel import LocalChannel, NotificationChannel, TurnEvent, turn_event
from .elo import EloRating
from .exceptions import ArenaError, DebateNotFound, DuplicateVote, InvalidDebate
from .generation import (
    DebateContext,
    MockResponseGenerator,
    PreviousTurn,
    ResponseGenerator,
    fallback_message,
)
from .models import (
    Debate,
    DebateStatus,
    Outcome,
    Position,
    RatingDelta,
    Result,
    Turn,
    Vote,
)
from .store import DebateStore, JsonDebateStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(name)s: %(message)s'
)
logger = logging.getLogger("arena:main")


# Constants
MAX_TURNS = 6
MIN_TOPIC_LENGTH = 10
MAX_TOPIC_LENGTH = 200
RECENT_CHANGES = 10
PREFS_PATH = Path(".arena.json")

PERFORMANCE_TIERS = [
    (2000, "Grandmaster"),
    (1800, "Master"),
    (1600, "Expert"),
    (1400, "Intermediate"),
    (1200, "Beginner"),
]


class Prefs:
    """Preferences for the arena."""

    def __init__(self, data: dict[str, Any] | None = None):
        """Initialize preferences from dictionary."""
        data = data or {}
        self.store: Path = Path(data.get("store", "arena.json"))
        self.max_turns: int = int(data.get("maxTurns", MAX_TURNS))


def load_prefs(path: Path = PREFS_PATH) -> Prefs:
    """Load preferences from path, using defaults when it does not exist."""
    if not path.exists():
        logger.debug(f"{path} not found, using default preferences")
        return Prefs()
    return Prefs(json.loads(path.read_text()))


class TurnResult(BaseModel):
    """Outcome of starting or continuing a debate."""

    debate_id: str
    turn: Turn | None = None
    turns: list[Turn] = []
    is_complete: bool = False
    used_fallback: bool = False
    message: str = ""


class RatingChange(BaseModel):
    """Rating of one competitor before and after a vote."""

    before: int
    after: int
    change: int


class VoteResult(BaseModel):
    """Recorded vote with current tallies and the rating changes it caused."""

    vote: Vote
    vote_count: dict[str, int]
    rating_changes: dict[str, RatingChange]


class LeaderboardEntry(BaseModel):
    """One ranked row of the leaderboard."""

    rank: int
    name: str
    rating: int
    wins: int
    losses: int
    ties: int
    total_games: int
    win_rate: str
    performance: str


class RecentChange(BaseModel):
    """A rating change with the topic of the debate it came from."""

    name: str
    opponent: str
    change: int
    result: Result
    topic: str | None
    date: str


class Leaderboard(BaseModel):
    """Ranked entries plus the latest rating changes."""

    entries: list[LeaderboardEntry]
    recent_changes: list[RecentChange]


def get_debate(store: DebateStore, debate_id: str) -> Debate:
    """Get a debate or raise DebateNotFound."""
    debate = store.get_debate(debate_id)
    if debate is None:
        raise DebateNotFound(debate_id)
    return debate


def create_debate(
    store: DebateStore,
    topic: str,
    llm1: str,
    llm2: str,
    rng: random.Random | None = None,
) -> Debate:
    """Create a debate with randomly assigned positions.

    Args:
        store: Debate store
        topic: Debate topic
        llm1: Name of the model speaking first
        llm2: Name of the model speaking second
        rng: Random source for position assignment

    Returns:
        The created debate
    """
    if not topic or not llm1 or not llm2:
        raise InvalidDebate("Missing required fields: topic, llm1 and llm2")
    if len(topic.strip()) < MIN_TOPIC_LENGTH:
        raise InvalidDebate(f"Topic must be at least {MIN_TOPIC_LENGTH} characters long")
    if len(topic) > MAX_TOPIC_LENGTH:
        raise InvalidDebate(f"Topic must be less than {MAX_TOPIC_LENGTH} characters")
    if llm1 == llm2:
        raise InvalidDebate("Please select two different models")

    positions = [Position.PRO, Position.CON]
    (rng or random).shuffle(positions)

    debate = Debate(
        topic=topic,
        llm1_name=llm1,
        llm2_name=llm2,
        llm1_position=positions[0],
        llm2_position=positions[1],
    )
    store.save_debate(debate)
    logger.info(
        f"Created debate {debate.id}: {llm1} ({positions[0].value}) vs "
        f"{llm2} ({positions[1].value})"
    )
    return debate


async def generate_turn(
    store: DebateStore,
    generator: ResponseGenerator,
    channel: NotificationChannel,
    debate: Debate,
    max_turns: int = MAX_TURNS,
) -> TurnResult:
    """Generate, persist and publish the next turn of a debate.

    A generator error is not fatal: a fixed fallback turn is recorded instead.

    Args:
        store: Debate store
        generator: Response generator
        channel: Notification channel
        debate: Debate to add a turn to
        max_turns: Number of turns after which the debate is complete

    Returns:
        TurnResult for the new turn
    """
    turn_number = len(debate.turns) + 1
    speaker, position, opponent_position = debate.speaker_for(turn_number)
    context = DebateContext(
        topic=debate.topic,
        position=position,
        opponent_position=opponent_position,
        previous_turns=[
            PreviousTurn(speaker=t.llm_name, message=t.message) for t in debate.turns
        ],
    )

    used_fallback = False
    try:
        response = await generator.generate(speaker, context)
        message = response.content
    except Exception as error:
        logger.warning(f"Turn {turn_number} generation failed for {speaker}: {error}")
        message = fallback_message(position, debate.topic, opening=turn_number == 1)
        used_fallback = True

    turn = Turn(
        debate_id=debate.id,
        llm_name=speaker,
        message=message,
        turn_number=turn_number,
    )
    store.add_turn(turn)
    debate.turns.append(turn)
    logger.info(f"Debate {debate.id}: turn {turn_number} by {speaker}")

    is_complete = turn_number >= max_turns
    if is_complete:
        debate.status = DebateStatus.COMPLETED
        store.save_debate(debate)
        logger.info(f"Debate {debate.id} completed")

    channel.publish(
        turn_event(debate.id),
        TurnEvent(debate_id=debate.id, turn=turn, is_complete=is_complete).model_dump(
            mode="json"
        ),
    )

    return TurnResult(
        debate_id=debate.id,
        turn=turn,
        turns=list(debate.turns),
        is_complete=is_complete,
        used_fallback=used_fallback,
        message="API error occurred, using fallback response" if used_fallback else "",
    )


async def start_debate(
    store: DebateStore,
    generator: ResponseGenerator,
    channel: NotificationChannel,
    debate_id: str,
    max_turns: int = MAX_TURNS,
) -> TurnResult:
    """Start a debate by generating the first model's opening turn.

    A debate that already has turns is returned as is.
    """
    debate = get_debate(store, debate_id)

    if debate.status == DebateStatus.COMPLETED:
        raise InvalidDebate("Debate already completed")

    if debate.turns:
        return TurnResult(
            debate_id=debate.id,
            turns=list(debate.turns),
            message="Debate already in progress",
        )

    debate.status = DebateStatus.IN_PROGRESS
    store.save_debate(debate)
    logger.info(f"Starting debate {debate.id} on {debate.topic!r}")

    return await generate_turn(store, generator, channel, debate, max_turns)


async def continue_debate(
    store: DebateStore,
    generator: ResponseGenerator,
    channel: NotificationChannel,
    debate_id: str,
    max_turns: int = MAX_TURNS,
) -> TurnResult:
    """Generate the next turn of a debate in progress."""
    debate = get_debate(store, debate_id)

    if debate.status != DebateStatus.IN_PROGRESS:
        raise InvalidDebate("Debate is not in progress")

    if len(debate.turns) >= max_turns:
        debate.status = DebateStatus.COMPLETED
        store.save_debate(debate)
        raise InvalidDebate("Debate already completed")

    return await generate_turn(store, generator, channel, debate, max_turns)


async def run_debate(
    store: DebateStore,
    generator: ResponseGenerator,
    channel: NotificationChannel,
    debate_id: str,
    max_turns: int = MAX_TURNS,
) -> list[Turn]:
    """Start a debate and continue it until it is complete.

    Returns:
        All turns of the debate
    """
    result = await start_debate(store, generator, channel, debate_id, max_turns)
    while not result.is_complete:
        result = await continue_debate(store, generator, channel, debate_id, max_turns)
    return result.turns


def reset_debate(store: DebateStore, debate_id: str) -> Debate:
    """Delete a debate's turns and votes and put it back in the created state."""
    with store.transaction():
        debate = get_debate(store, debate_id)
        store.delete_turns(debate_id)
        store.delete_votes(debate_id)

        debate = debate.model_copy(
            update={"status": DebateStatus.CREATED, "turns": []}
        )
        store.save_debate(debate)

    logger.info(f"Reset debate {debate_id}")
    return debate


def record_vote(
    store: DebateStore,
    debate_id: str,
    winner: Outcome | str,
    judge_id: str,
    reasoning: str | None = None,
) -> VoteResult:
    """Record a judge's vote on a completed debate and update both ratings.

    Args:
        store: Debate store
        debate_id: Debate being judged
        winner: Outcome, its wire value, or the winning model's name
        judge_id: Identity of the judge
        reasoning: Optional free text from the judge

    Returns:
        VoteResult with tallies and rating changes
    """
    if not winner or not judge_id:
        raise InvalidDebate("Winner and judge_id are required")

    elo = EloRating()

    with store.transaction():
        debate = get_debate(store, debate_id)

        if debate.status != DebateStatus.COMPLETED:
            raise InvalidDebate("Debate is not completed yet")

        if store.find_vote(debate_id, judge_id) is not None:
            raise DuplicateVote(debate_id, judge_id)

        name_a, name_b = debate.llm1_name, debate.llm2_name
        outcome = Outcome.resolve(winner, name_a, name_b)
        if outcome is Outcome.TIE and winner != Outcome.TIE:
            logger.warning(f"Unrecognized winner {winner!r}, counting as a tie")

        vote = Vote(
            debate_id=debate_id,
            judge_id=judge_id,
            winner=outcome,
            reasoning=reasoning,
        )

        rating_a = store.get_or_create_rating(name_a)
        rating_b = store.get_or_create_rating(name_b)

        score_a, _ = elo.get_scores(outcome, name_a, name_b)
        update = elo.update_ratings(rating_a.rating, rating_b.rating, score_a)
        result_a, result_b = outcome.results()

        deltas = [
            RatingDelta(
                name=name_a,
                opponent=name_b,
                debate_id=debate_id,
                rating_before=rating_a.rating,
                rating_after=update.new_rating_a,
                rating_change=update.change_a,
                result=result_a,
            ),
            RatingDelta(
                name=name_b,
                opponent=name_a,
                debate_id=debate_id,
                rating_before=rating_b.rating,
                rating_after=update.new_rating_b,
                rating_change=update.change_b,
                result=result_b,
            ),
        ]

        store.apply_rating_update(
            [
                rating_a.record(update.new_rating_a, result_a),
                rating_b.record(update.new_rating_b, result_b),
            ],
            deltas,
            vote=vote,
        )

        votes = store.get_votes(debate_id)

    logger.info(
        f"Vote on {debate_id} by {judge_id}: {outcome.value}, "
        f"{name_a} {update.change_a:+d}, {name_b} {update.change_b:+d}"
    )

    vote_count = {o.value: 0 for o in Outcome}
    for v in votes:
        vote_count[v.winner.value] += 1

    return VoteResult(
        vote=vote,
        vote_count=vote_count,
        rating_changes={
            delta.name: RatingChange(
                before=delta.rating_before,
                after=delta.rating_after,
                change=delta.rating_change,
            )
            for delta in deltas
        },
    )


def rating_performance(rating: int) -> str:
    """Performance tier name for a rating."""
    for threshold, name in PERFORMANCE_TIERS:
        if rating >= threshold:
            return name
    return "Novice"


def build_leaderboard(store: DebateStore, recent: int = RECENT_CHANGES) -> Leaderboard:
    """Build the ranked leaderboard and the latest rating changes.

    Args:
        store: Debate store
        recent: Number of recent rating changes to include

    Returns:
        Leaderboard
    """
    entries = [
        LeaderboardEntry(
            rank=index + 1,
            name=rating.name,
            rating=rating.rating,
            wins=rating.wins,
            losses=rating.losses,
            ties=rating.ties,
            total_games=rating.total_games,
            win_rate=(
                f"{rating.wins / rating.total_games * 100:.1f}"
                if rating.total_games > 0
                else "0.0"
            ),
            performance=rating_performance(rating.rating),
        )
        for index, rating in enumerate(store.list_ratings())
    ]

    recent_changes = []
    for change in store.recent_changes(recent):
        debate = store.get_debate(change.debate_id)
        recent_changes.append(
            RecentChange(
                name=change.name,
                opponent=change.opponent,
                change=change.rating_change,
                result=change.result,
                topic=debate.topic if debate else None,
                date=change.created_at.isoformat(),
            )
        )

    return Leaderboard(entries=entries, recent_changes=recent_changes)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="arena", description="Run debates between models and rank them"
    )
    parser.add_argument(
        "--prefs", type=Path, default=PREFS_PATH, help="Preferences file"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    create = commands.add_parser("create", help="Create a debate")
    create.add_argument("topic")
    create.add_argument("llm1")
    create.add_argument("llm2")

    for name, help_text in [
        ("start", "Generate the opening turn"),
        ("continue", "Generate the next turn"),
        ("run", "Run a debate to completion"),
        ("reset", "Delete turns and votes of a debate"),
    ]:
        command = commands.add_parser(name, help=help_text)
        command.add_argument("debate_id")

    vote = commands.add_parser("vote", help="Vote on a completed debate")
    vote.add_argument("debate_id")
    vote.add_argument("winner", help="llm1, llm2, tie, bothBad or a model name")
    vote.add_argument("judge_id")
    vote.add_argument("reasoning", nargs="?")

    commands.add_parser("leaderboard", help="Show ratings")
    return parser


def print_json(model: BaseModel | list[BaseModel]) -> None:
    """Print one model or a list of models as indented JSON."""
    if isinstance(model, list):
        data: Any = [m.model_dump(mode="json") for m in model]
    else:
        data = model.model_dump(mode="json")
    print(json.dumps(data, indent=2))


async def run_command(
    args: argparse.Namespace,
    store: DebateStore,
    generator: ResponseGenerator,
    channel: LocalChannel,
    prefs: Prefs,
) -> None:
    """Dispatch a parsed command line."""
    if args.command == "create":
        print_json(create_debate(store, args.topic, args.llm1, args.llm2))
        return

    if args.command == "leaderboard":
        print_json(build_leaderboard(store))
        return

    if args.command == "reset":
        print_json(reset_debate(store, args.debate_id))
        return

    if args.command == "vote":
        print_json(
            record_vote(store, args.debate_id, args.winner, args.judge_id, args.reasoning)
        )
        return

    channel.subscribe(
        turn_event(args.debate_id),
        lambda payload: logger.info(
            f"Turn {payload['turn']['turn_number']} from {payload['turn']['llm_name']}"
        ),
    )

    if args.command == "start":
        result = await start_debate(
            store, generator, channel, args.debate_id, prefs.max_turns
        )
        print_json(result)
    elif args.command == "continue":
        result = await continue_debate(
            store, generator, channel, args.debate_id, prefs.max_turns
        )
        print_json(result)
    elif args.command == "run":
        turns = await run_debate(
            store, generator, channel, args.debate_id, prefs.max_turns
        )
        print_json(turns)


async def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    prefs = load_prefs(args.prefs)

    store = JsonDebateStore(prefs.store)
    generator = MockResponseGenerator()
    channel = LocalChannel()

    try:
        await run_command(args, store, generator, channel, prefs)
    except ArenaError as error:
        logger.error(f"Error: {error}")
        sys.exit(1)


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
