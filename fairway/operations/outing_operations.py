"""
Outing Operations Module

Setup and ingest side of the pipeline: creating outings with their groups
and backing rounds, recording scored player slots, completing rounds, and
loading finished rounds back as GroupResult objects for the leaderboard.

Score entry itself happens elsewhere; these operations are the seam where
already-scored slots arrive.
"""

from contextlib import asynccontextmanager
from datetime import date
from typing import List, Dict, Optional, Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fairway.constants import LeaderboardConstants
from fairway.data_models.leaderboard import GroupResult, PlayerSlot
from fairway.database.models import (
    Outing, OutingGroup, Player, Round, RoundPlayer, RoundStatus, utcnow
)
from fairway.utils.logger import setup_logger
from fairway.utils.pipeline_exceptions import (
    OutingNotFoundError, OutingValidationError, RoundLockedError, RoundNotFoundError
)

logger = setup_logger(__name__)

DEFAULT_GROUP_SIZE = 4


class OutingOperations:
    """
    Creates outings and rounds and ingests scored rounds.

    Every write method accepts an optional session so several operations can
    share one Database.transaction(); without one, the method commits itself.
    """

    def __init__(self, database):
        self.db = database
        self.logger = logger

    @asynccontextmanager
    async def _get_session_context(self, session: Optional[AsyncSession] = None):
        """Use the caller's session if given, otherwise open and manage one"""
        if session:
            yield session
        else:
            async with self.db.get_session() as new_session:
                yield new_session

    @staticmethod
    def auto_assign_groups(roster: List[PlayerSlot], group_size: int = DEFAULT_GROUP_SIZE,
                           shotgun: bool = False,
                           hole_count: int = LeaderboardConstants.DEFAULT_HOLE_COUNT) -> List[Dict[str, Any]]:
        """
        Split a roster into groups of group_size in roster order.

        The first on-platform player of each group becomes its marker. With
        shotgun starts group N begins on hole N, wrapping past the last hole.
        """
        if group_size < 1:
            raise OutingValidationError(f"Group size must be at least 1, got {group_size}")

        groups = []
        for index, start in enumerate(range(0, len(roster), group_size), start=1):
            chunk = roster[start:start + group_size]
            marker = next((slot for slot in chunk if not slot.is_ghost), chunk[0])
            groups.append({
                'group_key': f"group_{index}",
                'name': f"Group {index}",
                'players': chunk,
                'marker_id': marker.player_id,
                'starting_hole': ((index - 1) % hole_count) + 1 if shotgun else 1,
            })
        return groups

    async def create_outing(self, name: str, course_name: str, roster: List[PlayerSlot],
                            course_id: int = None, hole_count: int = LeaderboardConstants.DEFAULT_HOLE_COUNT,
                            hole_pars: List[int] = None, group_size: int = DEFAULT_GROUP_SIZE,
                            organizer_id: str = None, region_key: str = None,
                            played_on: date = None, shotgun: bool = False,
                            session: Optional[AsyncSession] = None) -> Outing:
        """
        Create an outing, its groups and one live round per group.

        Args:
            roster: Players in the order they should be grouped
            group_size: Players per group (last group may be smaller)

        Returns:
            The new Outing with groups loaded

        Raises:
            OutingValidationError: If the roster is empty or repeats a player
        """
        if not roster:
            raise OutingValidationError("An outing needs at least one player")
        player_ids = [slot.player_id for slot in roster]
        if len(set(player_ids)) != len(player_ids):
            raise OutingValidationError("A player can only appear once in an outing roster")

        groups = self.auto_assign_groups(roster, group_size, shotgun, hole_count)

        async with self._get_session_context(session) as s:
            await self._ensure_players(s, roster)

            outing = Outing(
                name=name,
                organizer_id=organizer_id,
                course_id=course_id,
                course_name=course_name,
                region_key=region_key,
                hole_count=hole_count,
                played_on=played_on,
                total_groups=len(groups),
                completed_groups=0,
            )
            s.add(outing)
            await s.flush()  # Outing id for groups and rounds

            for group in groups:
                round_ = self._new_round(course_name, group['players'], course_id, hole_count,
                                         hole_pars, outing_id=outing.id, group_key=group['group_key'])
                s.add(round_)
                await s.flush()
                s.add(OutingGroup(
                    outing_id=outing.id,
                    group_key=group['group_key'],
                    name=group['name'],
                    player_ids=[slot.player_id for slot in group['players']],
                    marker_id=group['marker_id'],
                    starting_hole=group['starting_hole'],
                    round_id=round_.id,
                ))

            if not session:
                await s.commit()
            outing_id = outing.id

        self.logger.info(f"Created outing {outing_id} '{name}' with {len(groups)} groups of up to {group_size}")
        return await self.get_outing(outing_id, session=session)

    async def create_round(self, course_name: str, slots: List[PlayerSlot], course_id: int = None,
                           hole_count: int = LeaderboardConstants.DEFAULT_HOLE_COUNT,
                           hole_pars: List[int] = None,
                           session: Optional[AsyncSession] = None) -> Round:
        """Create a standalone live round not tied to any outing"""
        if not slots:
            raise OutingValidationError("A round needs at least one player")

        async with self._get_session_context(session) as s:
            await self._ensure_players(s, slots)
            round_ = self._new_round(course_name, slots, course_id, hole_count, hole_pars)
            s.add(round_)
            await s.flush()
            if not session:
                await s.commit()
            round_id = round_.id

        self.logger.info(f"Created standalone round {round_id} at {course_name} for {len(slots)} players")
        return round_

    async def record_round_scores(self, round_id: int, slots: List[PlayerSlot],
                                  session: Optional[AsyncSession] = None) -> Round:
        """
        Store already-scored strokes and handicaps for players of a live round.

        Slots for players not yet in the round are appended.

        Raises:
            RoundNotFoundError: If the round does not exist
            RoundLockedError: If the round is complete or abandoned
        """
        async with self._get_session_context(session) as s:
            round_ = await self._load_round(s, round_id)
            if round_.status != RoundStatus.LIVE.value:
                raise RoundLockedError(round_id, round_.status)

            existing = {player.player_id: player for player in round_.players}
            for slot in slots:
                player = existing.get(slot.player_id)
                if player is None:
                    await self._ensure_players(s, [slot])
                    player = self._round_player(slot, len(round_.players))
                    round_.players.append(player)
                    existing[slot.player_id] = player
                player.display_name = slot.display_name
                player.avatar = slot.avatar
                player.is_ghost = slot.is_ghost
                player.course_handicap = slot.course_handicap or 0
                player.strokes = list(slot.strokes)

            if not session:
                await s.commit()

        self.logger.debug(f"Recorded scores for {len(slots)} players in round {round_id}")
        return round_

    async def complete_round(self, round_id: int, session: Optional[AsyncSession] = None) -> bool:
        """
        Lock a live round as complete.

        Returns:
            True if this call completed it, False if it already was complete

        Raises:
            RoundNotFoundError: If the round does not exist
            RoundLockedError: If the round was abandoned
        """
        return await self._finish_round(round_id, RoundStatus.COMPLETE, session)

    async def abandon_round(self, round_id: int, session: Optional[AsyncSession] = None) -> bool:
        return await self._finish_round(round_id, RoundStatus.ABANDONED, session)

    async def _finish_round(self, round_id: int, status: RoundStatus,
                            session: Optional[AsyncSession]) -> bool:
        async with self._get_session_context(session) as s:
            finished = await s.execute(
                update(Round)
                .where(Round.id == round_id, Round.status == RoundStatus.LIVE.value)
                .values(status=status.value, completed_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if finished.rowcount == 1:
                if not session:
                    await s.commit()
                self.logger.info(f"Round {round_id} marked {status.value}")
                return True

            current = (await s.execute(select(Round.status).where(Round.id == round_id))).scalar_one_or_none()
            if current is None:
                raise RoundNotFoundError(round_id)
            if current != status.value:
                raise RoundLockedError(round_id, current)
            return False

    async def get_outing(self, outing_id: int, session: Optional[AsyncSession] = None) -> Outing:
        async with self._get_session_context(session) as s:
            outing = (await s.execute(
                select(Outing)
                .options(selectinload(Outing.groups))
                .where(Outing.id == outing_id)
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if outing is None:
                raise OutingNotFoundError(outing_id)
            return outing

    async def get_round(self, round_id: int, session: Optional[AsyncSession] = None) -> Round:
        async with self._get_session_context(session) as s:
            return await self._load_round(s, round_id)

    async def load_group_results(self, outing_id: int,
                                 session: Optional[AsyncSession] = None) -> List[GroupResult]:
        """
        Scored results of every group of an outing, in group order.

        Groups without a backing round contribute nothing.

        Raises:
            OutingNotFoundError: If the outing does not exist
        """
        async with self._get_session_context(session) as s:
            outing = await self.get_outing(outing_id, session=s)
            round_ids = [group.round_id for group in outing.groups if group.round_id]
            rounds = {}
            if round_ids:
                result = await s.execute(
                    select(Round).options(selectinload(Round.players)).where(Round.id.in_(round_ids))
                )
                rounds = {round_.id: round_ for round_ in result.scalars().all()}

            results = []
            for group in outing.groups:
                round_ = rounds.get(group.round_id)
                if round_ is None:
                    self.logger.warning(f"Outing {outing_id}: group {group.group_key} has no round")
                    continue
                results.append(self.to_group_result(round_, group.group_key, group.name))
            return results

    @staticmethod
    def to_group_result(round_: Round, group_key: str = None, group_name: str = None) -> GroupResult:
        """Convert a persisted round into leaderboard input"""
        return GroupResult(
            group_key=group_key or round_.group_key or f"round_{round_.id}",
            group_name=group_name or "Round",
            players=[
                PlayerSlot(
                    player_id=player.player_id,
                    display_name=player.display_name,
                    is_ghost=player.is_ghost,
                    course_handicap=player.course_handicap or 0,
                    strokes=list(player.strokes or []),
                    avatar=player.avatar,
                )
                for player in round_.players
            ],
            hole_pars=list(round_.hole_pars or []),
            hole_count=round_.hole_count or LeaderboardConstants.DEFAULT_HOLE_COUNT,
            round_id=round_.id,
        )

    async def _load_round(self, session: AsyncSession, round_id: int) -> Round:
        round_ = (await session.execute(
            select(Round).options(selectinload(Round.players)).where(Round.id == round_id)
        )).scalar_one_or_none()
        if round_ is None:
            raise RoundNotFoundError(round_id)
        return round_

    async def _ensure_players(self, session: AsyncSession, slots: List[PlayerSlot]):
        """Create missing player rows and refresh display identity of known ones"""
        ids = [slot.player_id for slot in slots]
        result = await session.execute(select(Player).where(Player.id.in_(ids)))
        known = {player.id: player for player in result.scalars().all()}
        for slot in slots:
            player = known.get(slot.player_id)
            if player is None:
                session.add(Player(id=slot.player_id, display_name=slot.display_name,
                                   avatar=slot.avatar, is_ghost=slot.is_ghost))
            else:
                player.display_name = slot.display_name
                player.avatar = slot.avatar or player.avatar
        await session.flush()

    def _new_round(self, course_name: str, slots: List[PlayerSlot], course_id: Optional[int],
                   hole_count: int, hole_pars: Optional[List[int]],
                   outing_id: int = None, group_key: str = None) -> Round:
        round_ = Round(
            outing_id=outing_id,
            group_key=group_key,
            course_id=course_id,
            course_name=course_name,
            hole_count=hole_count,
            hole_pars=list(hole_pars or []),
            status=RoundStatus.LIVE.value,
        )
        round_.players = [self._round_player(slot, index) for index, slot in enumerate(slots)]
        return round_

    @staticmethod
    def _round_player(slot: PlayerSlot, index: int) -> RoundPlayer:
        return RoundPlayer(
            slot=index,
            player_id=slot.player_id,
            display_name=slot.display_name,
            avatar=slot.avatar,
            is_ghost=slot.is_ghost,
            course_handicap=slot.course_handicap or 0,
            strokes=list(slot.strokes),
        )
