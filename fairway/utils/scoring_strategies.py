"""
Scoring Strategy Pattern for Multi-Round Series Standings

This module implements the Strategy pattern for the ways a series folds its
round results into one total per player, keeping the standings calculator
independent of the selected mode.

Supported modes:
- cumulative: net scores summed across rounds played
- best_of: single best (lowest) net score across rounds played
- points: externally supplied points summed, higher is better
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional
import logging

from fairway.utils.pipeline_exceptions import InvalidScoringModeError

logger = logging.getLogger(__name__)

class ScoringStrategy(ABC):
    """
    Abstract base class for series scoring strategies.

    Each strategy turns the scores of the rounds a player actually played
    into one comparable total and states which direction sorts best-first.
    """

    #: True when a larger total is better
    higher_is_better = False

    @abstractmethod
    def calculate_total(self, scores: List[float]) -> float:
        """
        Calculate a player's total from the rounds they played.

        Args:
            scores: Non-empty list of per-round values (unplayed rounds removed)

        Returns:
            The player's total under this strategy
        """
        pass

    @abstractmethod
    def get_strategy_name(self) -> str:
        """Get human-readable name of this strategy"""
        pass

    def sort_key(self, total: float) -> float:
        """Key that orders totals best-first when sorted ascending"""
        return -total if self.higher_is_better else total

class CumulativeStrategy(ScoringStrategy):
    """Sums net score across every round played (lowest total wins)."""

    def calculate_total(self, scores: List[float]) -> float:
        return sum(scores)

    def get_strategy_name(self) -> str:
        return "Cumulative"

class BestOfStrategy(ScoringStrategy):
    """Keeps the single best net score across rounds played."""

    def calculate_total(self, scores: List[float]) -> float:
        return min(scores)

    def get_strategy_name(self) -> str:
        return "Best Of"

class PointsStrategy(ScoringStrategy):
    """
    Sums externally supplied points per round.

    Sorted descending: the player with the most points leads.
    """

    higher_is_better = True

    def calculate_total(self, scores: List[float]) -> float:
        return sum(scores)

    def get_strategy_name(self) -> str:
        return "Points"

class ScoringStrategyFactory:
    """Factory for creating scoring strategies based on series configuration"""

    _STRATEGIES = {
        "cumulative": CumulativeStrategy,
        "best_of": BestOfStrategy,
        "points": PointsStrategy,
    }

    @staticmethod
    def create_strategy(scoring_mode: str) -> ScoringStrategy:
        """
        Create appropriate scoring strategy based on mode.

        Args:
            scoring_mode: One of "cumulative", "best_of", "points"

        Returns:
            Configured ScoringStrategy instance

        Raises:
            InvalidScoringModeError: If the mode is unknown
        """
        strategy_class = ScoringStrategyFactory._STRATEGIES.get((scoring_mode or "").lower())
        if strategy_class is None:
            raise InvalidScoringModeError(scoring_mode)
        return strategy_class()

    @staticmethod
    def get_available_strategies() -> List[str]:
        """Get list of available scoring modes"""
        return list(ScoringStrategyFactory._STRATEGIES.keys())

def points_from_positions(positions: Dict[str, int], points_table: List[float]) -> Dict[str, float]:
    """
    Convert leaderboard positions into points using a points table.

    Tied players share the points of their shared position. Positions past
    the end of the table earn nothing.

    Args:
        positions: player_id -> 1-based leaderboard position
        points_table: Points for position 1, 2, 3, ...

    Returns:
        player_id -> points
    """
    awarded = {}
    for player_id, position in positions.items():
        if position is None or position < 1 or position > len(points_table):
            awarded[player_id] = 0
        else:
            awarded[player_id] = points_table[position - 1]
    logger.debug(f"Awarded points for {len(awarded)} positions using a {len(points_table)}-place table")
    return awarded

DEFAULT_POINTS_TABLE = [100, 75, 60, 50, 45, 40, 36, 32, 29, 26, 24, 22, 20, 18, 16, 14, 12, 10, 8, 6]
