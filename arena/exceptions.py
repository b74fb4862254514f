"""Exceptions raised by debate and vote handling."""


class ArenaError(Exception):
    """Base exception for arena errors."""


class DebateNotFound(ArenaError):
    """Raised when a debate id does not exist."""

    def __init__(self, debate_id: str) -> None:
        self.debate_id = debate_id
        super().__init__(f"Debate '{debate_id}' not found")


class InvalidDebate(ArenaError):
    """Raised for invalid input or an operation not allowed in the debate's state."""


class DuplicateVote(ArenaError):
    """Raised when a judge votes twice on the same debate."""

    def __init__(self, debate_id: str, judge_id: str) -> None:
        self.debate_id = debate_id
        self.judge_id = judge_id
        super().__init__(f"Judge '{judge_id}' has already voted on debate '{debate_id}'")
