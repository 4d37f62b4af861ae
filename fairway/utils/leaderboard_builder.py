"""
Outing leaderboard construction.

Pure functions only: given the scored slots of every completed group, build
one ranked leaderboard. No persistence access happens here so finalization
can be tested without a database.
"""

import logging
from typing import Iterable, List, Dict, Any

from fairway.constants import LeaderboardConstants
from fairway.data_models.leaderboard import GroupResult, LeaderboardEntry, PlayerSlot
from fairway.utils.ranking import RankingUtility

logger = logging.getLogger(__name__)


class LeaderboardBuilder:
    """Builds ranked outing leaderboards from group results"""

    @staticmethod
    def total_par(group: GroupResult) -> int:
        """Sum of par over the round's holes, defaulting missing pars"""
        total = 0
        for hole in range(group.hole_count):
            par = group.hole_pars[hole] if hole < len(group.hole_pars) else 0
            total += par or LeaderboardConstants.DEFAULT_HOLE_PAR
        return total

    @staticmethod
    def score_slot(slot: PlayerSlot, group: GroupResult, total_par: int) -> Dict[str, Any]:
        """Gross, net, to-par and holes completed for one player slot"""
        played = [strokes for strokes in slot.strokes[:group.hole_count] if strokes and strokes > 0]
        gross = sum(played)
        return {
            'gross_score': gross,
            'net_score': gross - (slot.course_handicap or 0),
            'score_to_par': gross - total_par,
            'holes_completed': len(played),
        }

    @staticmethod
    def build(groups: Iterable[GroupResult]) -> List[LeaderboardEntry]:
        """
        Build the ranked leaderboard for a completed outing.

        Sorted by net score ascending with gross score as tiebreak. Ranks are
        shared on equal net scores and the next distinct net score takes its
        1-based position. Ghost players are ranked like everyone else.

        Args:
            groups: Results for every group of the outing

        Returns:
            LeaderboardEntry list, best first
        """
        rows = []
        for group in groups:
            par = LeaderboardBuilder.total_par(group)
            for slot in group.players:
                scores = LeaderboardBuilder.score_slot(slot, group, par)
                rows.append((slot, group, scores))

        # Stable sort keeps group/slot order for complete ties
        rows.sort(key=lambda row: (row[2]['net_score'], row[2]['gross_score']))
        ranks = RankingUtility.competition_ranks(rows, lambda row: row[2]['net_score'])

        entries = [
            LeaderboardEntry(
                rank=rank,
                player_id=slot.player_id,
                display_name=slot.display_name,
                is_ghost=slot.is_ghost,
                group_key=group.group_key,
                group_name=group.group_name,
                course_handicap=slot.course_handicap or 0,
                avatar=slot.avatar,
                **scores
            )
            for rank, (slot, group, scores) in zip(ranks, rows)
        ]

        logger.debug(f"Built leaderboard with {len(entries)} entries")
        return entries

    @staticmethod
    def on_platform(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
        """Entries eligible for rivalry and notification processing"""
        return [entry for entry in entries if not entry.is_ghost and entry.player_id]

    @staticmethod
    def serialize(entries: Iterable[LeaderboardEntry]) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in entries]

    @staticmethod
    def deserialize(data: Iterable[Dict[str, Any]]) -> List[LeaderboardEntry]:
        return [LeaderboardEntry.from_dict(item) for item in data or []]
