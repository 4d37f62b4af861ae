"""
Series standings service.

Loads the full round history of a series, rebuilds the table with
StandingsCalculator and replaces the stored snapshot.
"""

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from fairway.data_models.standings import RosterEntry, Standing, StandingsTable
from fairway.database.models import Series, SeriesRound, SeriesStandingsSnapshot
from fairway.services.base import BaseService
from fairway.utils.leaderboard_builder import LeaderboardBuilder
from fairway.utils.logger import setup_logger
from fairway.utils.pipeline_exceptions import SeriesNotFoundError
from fairway.utils.scoring_strategies import DEFAULT_POINTS_TABLE, points_from_positions
from fairway.utils.standings import StandingsCalculator

logger = setup_logger(__name__)


class StandingsService(BaseService):
    """Recomputes and stores multi-round series standings"""

    async def recompute(self, series_id: int, round_index: int) -> StandingsTable:
        """
        Rebuild a series table after one of its rounds finalized.

        Args:
            series_id: Series to rebuild
            round_index: 1-based round that triggered the rebuild

        Returns:
            The new StandingsTable

        Raises:
            SeriesNotFoundError: If the series does not exist
        """
        async def _recompute() -> StandingsTable:
            async with self.get_session() as session:
                series = (await session.execute(
                    select(Series)
                    .options(
                        selectinload(Series.participants),
                        selectinload(Series.rounds).selectinload(SeriesRound.outing),
                    )
                    .where(Series.id == series_id)
                )).scalar_one_or_none()
                if series is None:
                    raise SeriesNotFoundError(series_id)

                roster = [RosterEntry(p.player_id, p.display_name) for p in series.participants]
                round_scores = self._round_scores(series)
                standings = StandingsCalculator.calculate(
                    roster, round_scores, series.scoring_mode, series.round_count
                )

                snapshot = await session.get(SeriesStandingsSnapshot, series_id)
                if snapshot is None:
                    snapshot = SeriesStandingsSnapshot(series_id=series_id)
                    session.add(snapshot)
                snapshot.round_index = round_index
                snapshot.scoring_mode = series.scoring_mode
                snapshot.standings = [standing.to_dict() for standing in standings]

                return StandingsTable(
                    series_id=series_id,
                    round_index=round_index,
                    scoring_mode=series.scoring_mode,
                    standings=standings,
                )

        table = await self.execute_with_retry(_recompute, operation=f"standings for series {series_id}")
        logger.info(
            f"Series {series_id} standings rebuilt after round {round_index}: "
            f"{len(table.ranked())}/{len(table.standings)} players ranked"
        )
        return table

    def _round_scores(self, series: Series) -> List[Dict[str, float]]:
        """One player_id -> value mapping per round; unfinalized rounds are empty"""
        width = max([series.round_count or 0] + [r.round_index for r in series.rounds])
        round_scores: List[Dict[str, float]] = [{} for _ in range(width)]

        for series_round in series.rounds:
            outing = series_round.outing
            entries = []
            if outing is not None and outing.is_complete:
                entries = LeaderboardBuilder.on_platform(outing.leaderboard_entries())

            if series.scoring_mode == "points":
                if series_round.points:
                    scores = dict(series_round.points)
                elif entries:
                    scores = points_from_positions(
                        {entry.player_id: entry.rank for entry in entries},
                        series.points_table or DEFAULT_POINTS_TABLE,
                    )
                else:
                    scores = {}
            else:
                scores = {entry.player_id: entry.net_score for entry in entries}

            round_scores[series_round.round_index - 1] = scores

        return round_scores

    async def get_standings(self, series_id: int) -> Optional[StandingsTable]:
        """Last stored table without recomputing; None before the first rebuild"""
        async with self.get_session() as session:
            snapshot = await session.get(SeriesStandingsSnapshot, series_id)
            if snapshot is None:
                return None
            return StandingsTable(
                series_id=series_id,
                round_index=snapshot.round_index,
                scoring_mode=snapshot.scoring_mode,
                standings=[Standing.from_dict(item) for item in snapshot.standings],
            )
