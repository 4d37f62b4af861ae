"""
Series standings calculation.

The table is a derived view: every call rebuilds it from the complete round
history instead of patching a previous table.
"""

from typing import Dict, List, Optional, Sequence

from fairway.data_models.standings import RosterEntry, Standing
from fairway.utils.ranking import RankingUtility
from fairway.utils.scoring_strategies import ScoringStrategyFactory
from fairway.utils.logger import setup_logger

logger = setup_logger(__name__)


class StandingsCalculator:
    """Pure series standings rebuild"""

    @staticmethod
    def calculate(roster: Sequence[RosterEntry],
                  round_scores: Sequence[Dict[str, float]],
                  scoring_mode: str,
                  round_count: Optional[int] = None) -> List[Standing]:
        """
        Recompute every participant's total and rank from scratch.

        Args:
            roster: Participants in original roster order
            round_scores: One mapping per round (index 0 = round 1) of
                player_id -> net score, or points in points mode. Players
                missing from a round did not play it.
            scoring_mode: "cumulative", "best_of" or "points"
            round_count: Total rounds in the series; pads round_scores arrays

        Returns:
            Standing list: ranked players best-first, then players who have
            not played yet in roster order with rank None
        """
        strategy = ScoringStrategyFactory.create_strategy(scoring_mode)
        width = max(round_count or 0, len(round_scores))

        # Anyone who scored but is missing from the roster still gets a row
        participants = list(roster)
        known = {entry.player_id for entry in participants}
        for scores in round_scores:
            for player_id in scores:
                if player_id not in known:
                    logger.warning(f"Player {player_id} has scores but is not on the series roster")
                    participants.append(RosterEntry(player_id=player_id, display_name=player_id))
                    known.add(player_id)

        padded = list(round_scores) + [{}] * (width - len(round_scores))

        played = []
        unplayed = []
        for entry in participants:
            per_round: List[Optional[float]] = [scores.get(entry.player_id) for scores in padded]
            counted = [score for score in per_round if score is not None]
            if counted:
                played.append((entry, per_round, counted, strategy.calculate_total(counted)))
            else:
                unplayed.append((entry, per_round))

        # Stable sort keeps roster order among equal totals
        played.sort(key=lambda row: strategy.sort_key(row[3]))
        ranks = RankingUtility.competition_ranks(played, lambda row: row[3])

        standings = [
            Standing(
                player_id=entry.player_id,
                display_name=entry.display_name,
                round_scores=per_round,
                rounds_played=len(counted),
                total=total,
                rank=rank,
            )
            for rank, (entry, per_round, counted, total) in zip(ranks, played)
        ]
        standings.extend(
            Standing(
                player_id=entry.player_id,
                display_name=entry.display_name,
                round_scores=per_round,
                rounds_played=0,
                total=None,
                rank=None,
            )
            for entry, per_round in unplayed
        )

        logger.debug(
            f"{strategy.get_strategy_name()} standings rebuilt: "
            f"{len(played)} ranked, {len(unplayed)} yet to play"
        )
        return standings
