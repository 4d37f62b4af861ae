"""
Shared ranking utilities

Provides the competition ranking used by both the outing leaderboard and the
series standings table, so tie handling stays identical between the two.
"""

from typing import Callable, List, Sequence, TypeVar, Any

T = TypeVar('T')


class RankingUtility:
    """Shared ranking logic for consistent tie handling."""

    @staticmethod
    def competition_ranks(items: Sequence[T], tie_key: Callable[[T], Any]) -> List[int]:
        """
        Assign 1-based competition ranks to an already sorted sequence.

        An item shares its predecessor's rank when tie_key is exactly equal;
        otherwise it takes its own 1-based position, so the value after a tie
        skips ahead ("1, 2, 2, 4").

        Args:
            items: Items sorted best-first
            tie_key: Value compared between neighbours to detect ties

        Returns:
            List of ranks aligned with items
        """
        ranks: List[int] = []
        for index, item in enumerate(items):
            if index > 0 and tie_key(item) == tie_key(items[index - 1]):
                ranks.append(ranks[-1])
            else:
                ranks.append(index + 1)
        return ranks
