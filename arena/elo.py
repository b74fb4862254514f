"""ELO rating engine for debate outcomes."""

import math
from dataclasses import dataclass

from .models import DEFAULT_RATING, Outcome


K_FACTOR = 32


@dataclass(frozen=True)
class RatingUpdate:
    """Ratings after a single contest and the changes applied."""

    new_rating_a: int
    new_rating_b: int
    change_a: int
    change_b: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity."""
    return math.floor(value + 0.5)


class EloRating:
    """ELO rating system with a fixed K-factor."""

    k_factor = K_FACTOR

    def get_expected(self, rating_a: float, rating_b: float) -> float:
        """Get expected score for competitor A against competitor B.

        Args:
            rating_a: Rating of competitor A
            rating_b: Rating of competitor B

        Returns:
            Expected score (0-1)
        """
        return 1 / (1 + 10 ** ((rating_b - rating_a) / 400))

    def get_scores(
        self,
        outcome: Outcome | str,
        name_a: str,
        name_b: str,
    ) -> tuple[float, float]:
        """Map a contest outcome to the actual scores of both sides.

        Unrecognized labels score as a tie.

        Args:
            outcome: Outcome, its wire value, or a competitor name
            name_a: Name of competitor A
            name_b: Name of competitor B

        Returns:
            Tuple of (score_a, score_b), always summing to 1
        """
        resolved = Outcome.resolve(outcome, name_a, name_b)
        if resolved is Outcome.A_WINS:
            return (1.0, 0.0)
        if resolved is Outcome.B_WINS:
            return (0.0, 1.0)
        return (0.5, 0.5)

    def update_ratings(
        self,
        rating_a: int,
        rating_b: int,
        score_a: float,
    ) -> RatingUpdate:
        """Compute new ratings for both sides of a contest.

        Each side's change is rounded on its own, so the two changes are not
        always exact negatives of each other.

        Args:
            rating_a: Current rating of competitor A
            rating_b: Current rating of competitor B
            score_a: Actual score of competitor A (0, 0.5 or 1)

        Returns:
            RatingUpdate with new ratings and changes
        """
        expected_a = self.get_expected(rating_a, rating_b)
        expected_b = 1 - expected_a
        score_b = 1 - score_a

        change_a = round_half_up(self.k_factor * (score_a - expected_a))
        change_b = round_half_up(self.k_factor * (score_b - expected_b))

        return RatingUpdate(
            new_rating_a=rating_a + change_a,
            new_rating_b=rating_b + change_b,
            change_a=change_a,
            change_b=change_b,
        )
