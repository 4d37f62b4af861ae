"""
Series Operations Module

Creates multi-round series, links outings to their rounds and stores
externally supplied points for points-mode series.
"""

from contextlib import asynccontextmanager
from typing import List, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fairway.data_models.standings import RosterEntry
from fairway.database.models import Outing, Series, SeriesParticipant, SeriesRound
from fairway.utils.logger import setup_logger
from fairway.utils.pipeline_exceptions import (
    InvalidScoringModeError, OutingNotFoundError, OutingValidationError, SeriesNotFoundError
)
from fairway.utils.scoring_strategies import ScoringStrategyFactory

logger = setup_logger(__name__)


class SeriesOperations:
    """Setup operations for multi-round series"""

    def __init__(self, database):
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        if session:
            yield session
        else:
            async with self.db.get_session() as new_session:
                yield new_session

    async def create_series(self, name: str, roster: List[RosterEntry], scoring_mode: str = "cumulative",
                            round_count: int = 1, points_table: List[float] = None,
                            session: Optional[AsyncSession] = None) -> Series:
        """
        Create a series with its roster in the given order.

        Raises:
            InvalidScoringModeError: If scoring_mode is unknown
            OutingValidationError: If round_count is below 1
        """
        if scoring_mode not in ScoringStrategyFactory.get_available_strategies():
            raise InvalidScoringModeError(scoring_mode)
        if round_count < 1:
            raise OutingValidationError(f"A series needs at least one round, got {round_count}")

        async with self._get_session_context(session) as s:
            series = Series(
                name=name,
                scoring_mode=scoring_mode,
                round_count=round_count,
                points_table=list(points_table) if points_table else None,
            )
            series.participants = [
                SeriesParticipant(player_id=entry.player_id, display_name=entry.display_name, roster_order=order)
                for order, entry in enumerate(roster)
            ]
            s.add(series)
            await s.flush()
            if not session:
                await s.commit()
            series_id = series.id

        self.logger.info(f"Created {scoring_mode} series {series_id} '{name}' ({round_count} rounds, {len(roster)} players)")
        return series

    async def attach_outing(self, series_id: int, round_index: int, outing_id: int,
                            session: Optional[AsyncSession] = None) -> SeriesRound:
        """
        Make an outing the given round of a series.

        Raises:
            SeriesNotFoundError / OutingNotFoundError: If either record is missing
            OutingValidationError: If round_index is outside the series
        """
        async with self._get_session_context(session) as s:
            series = await self._load_series(s, series_id)
            if not 1 <= round_index <= series.round_count:
                raise OutingValidationError(
                    f"Round {round_index} is outside series {series_id} (1-{series.round_count})"
                )
            outing = await s.get(Outing, outing_id)
            if outing is None:
                raise OutingNotFoundError(outing_id)

            series_round = self._find_round(series, round_index)
            if series_round is None:
                series_round = SeriesRound(series_id=series_id, round_index=round_index)
                series.rounds.append(series_round)
            series_round.outing_id = outing_id
            outing.series_id = series_id
            outing.series_round_index = round_index

            await s.flush()
            if not session:
                await s.commit()

        self.logger.info(f"Outing {outing_id} attached as round {round_index} of series {series_id}")
        return series_round

    async def set_round_points(self, series_id: int, round_index: int, points: Dict[str, float],
                               session: Optional[AsyncSession] = None) -> SeriesRound:
        """Store supplied points (player_id -> points) for one series round"""
        async with self._get_session_context(session) as s:
            series = await self._load_series(s, series_id)
            series_round = self._find_round(series, round_index)
            if series_round is None:
                series_round = SeriesRound(series_id=series_id, round_index=round_index)
                series.rounds.append(series_round)
            series_round.points = dict(points)

            await s.flush()
            if not session:
                await s.commit()

        return series_round

    async def _load_series(self, session: AsyncSession, series_id: int) -> Series:
        series = (await session.execute(
            select(Series).options(selectinload(Series.rounds)).where(Series.id == series_id)
        )).scalar_one_or_none()
        if series is None:
            raise SeriesNotFoundError(series_id)
        return series

    @staticmethod
    def _find_round(series: Series, round_index: int) -> Optional[SeriesRound]:
        return next((r for r in series.rounds if r.round_index == round_index), None)
