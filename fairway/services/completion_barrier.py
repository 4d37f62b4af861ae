"""
Completion barrier for multi-group outings.

Every state transition here is a single conditional UPDATE, so concurrent
deliveries for different groups of the same outing serialize on the outing
row instead of racing a read-then-write in Python.
"""

from typing import List

from sqlalchemy import select, update

from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.pipeline import BarrierResult
from fairway.database.models import Outing, OutingGroup, OutingStatus, GroupStatus, utcnow
from fairway.services.base import BaseService
from fairway.utils.leaderboard_builder import LeaderboardBuilder
from fairway.utils.logger import setup_logger
from fairway.utils.pipeline_exceptions import OutingNotFoundError, GroupNotFoundError

logger = setup_logger(__name__)


class CompletionBarrierService(BaseService):
    """Counts finished groups and hands out the one-time finalization claim."""

    async def mark_group_complete(self, outing_id: int, group_key: str) -> BarrierResult:
        """
        Mark a group complete and count it toward its outing exactly once.

        Duplicate signals for an already complete group are a no-op and
        report newly_completed=False.

        Raises:
            OutingNotFoundError: If the outing does not exist
            GroupNotFoundError: If the group is not part of the outing
        """
        async def _mark() -> BarrierResult:
            async with self.get_session() as session:
                if await session.get(Outing, outing_id) is None:
                    raise OutingNotFoundError(outing_id)

                marked = await session.execute(
                    update(OutingGroup)
                    .where(
                        OutingGroup.outing_id == outing_id,
                        OutingGroup.group_key == group_key,
                        OutingGroup.status != GroupStatus.COMPLETE.value,
                    )
                    .values(status=GroupStatus.COMPLETE.value, completed_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
                newly_completed = marked.rowcount == 1

                if newly_completed:
                    await session.execute(
                        update(Outing)
                        .where(Outing.id == outing_id, Outing.completed_groups < Outing.total_groups)
                        .values(completed_groups=Outing.completed_groups + 1)
                        .execution_options(synchronize_session=False)
                    )
                else:
                    exists = await session.execute(
                        select(OutingGroup.id).where(
                            OutingGroup.outing_id == outing_id,
                            OutingGroup.group_key == group_key,
                        )
                    )
                    if exists.scalar_one_or_none() is None:
                        raise GroupNotFoundError(outing_id, group_key)

                counts = await session.execute(
                    select(Outing.completed_groups, Outing.total_groups).where(Outing.id == outing_id)
                )
                completed_groups, total_groups = counts.one()

            return BarrierResult(
                outing_id=outing_id,
                group_key=group_key,
                newly_completed=newly_completed,
                completed_groups=completed_groups,
                total_groups=total_groups,
            )

        result = await self.execute_with_retry(_mark, operation=f"mark group {group_key} of outing {outing_id}")
        if result.newly_completed:
            logger.info(
                f"Outing {outing_id}: group {group_key} complete "
                f"({result.completed_groups}/{result.total_groups})"
            )
        else:
            logger.info(f"Outing {outing_id}: duplicate completion for group {group_key} ignored")
        return result

    async def claim_finalization(self, outing_id: int, leaderboard: List[LeaderboardEntry]) -> bool:
        """
        Move the outing from pending to complete and store its leaderboard.

        Only one caller ever gets True; that caller owns finalization.
        """
        async def _claim() -> bool:
            async with self.get_session() as session:
                claimed = await session.execute(
                    update(Outing)
                    .where(
                        Outing.id == outing_id,
                        Outing.status == OutingStatus.PENDING.value,
                        Outing.completed_groups == Outing.total_groups,
                    )
                    .values(
                        status=OutingStatus.COMPLETE.value,
                        final_leaderboard=LeaderboardBuilder.serialize(leaderboard),
                        completed_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount == 1:
                    return True
                if await session.get(Outing, outing_id) is None:
                    raise OutingNotFoundError(outing_id)
                return False

        claimed = await self.execute_with_retry(_claim, operation=f"finalize outing {outing_id}")
        if claimed:
            logger.info(f"Outing {outing_id} finalized with {len(leaderboard)} leaderboard entries")
        else:
            logger.info(f"Outing {outing_id} already finalized by another delivery")
        return claimed

    async def mark_rivalries_processed(self, outing_id: int) -> bool:
        """Record that every rivalry pair of the outing has been applied"""
        return await self._stamp_once(outing_id, Outing.rivalries_processed_at, "rivalries processed")

    async def claim_announcement(self, outing_id: int) -> bool:
        """Claim the right to publish the outing-complete announcement (at most once)"""
        return await self._stamp_once(outing_id, Outing.announced_at, "announcement")

    async def _stamp_once(self, outing_id: int, column, label: str) -> bool:
        async def _stamp() -> bool:
            async with self.get_session() as session:
                stamped = await session.execute(
                    update(Outing)
                    .where(
                        Outing.id == outing_id,
                        Outing.status == OutingStatus.COMPLETE.value,
                        column.is_(None),
                    )
                    .values({column.key: utcnow()})
                    .execution_options(synchronize_session=False)
                )
                return stamped.rowcount == 1

        stamped = await self.execute_with_retry(_stamp, operation=f"{label} for outing {outing_id}")
        logger.debug(f"Outing {outing_id}: {label} claim {'won' if stamped else 'already taken'}")
        return stamped
