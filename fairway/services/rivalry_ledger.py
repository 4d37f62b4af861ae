"""
Rivalry Ledger Service

Applies one finished outing (or standalone round) to the persisted
head-to-head record of every on-platform pair that played it.

Each pair is its own transaction:

1. skip if the pair was already applied for this outing/round
2. bump the shared-round counter in both directions
3. below the threshold with no rivalry yet: stop
4. create the rivalry (rivalry_formed) or fold the result in and diff

The rivalry row carries a version column, so a concurrent writer to the same
pair fails with StaleDataError and the whole pair is retried from fresh state.
A pair that keeps failing is logged and skipped; it never blocks the rest.
"""

from itertools import combinations, islice
from typing import List, Optional

from sqlalchemy import select, update, or_

from fairway.config import Config
from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.rivalry import PlayerRef, RivalryChange, RivalryContext, RivalryState
from fairway.database.models import ProcessedPairing, Rivalry, SharedRoundCount
from fairway.services.base import BaseService
from fairway.utils.leaderboard_builder import LeaderboardBuilder
from fairway.utils.logger import setup_logger
from fairway.utils.rivalry import RivalryCalculator

logger = setup_logger(__name__)


class RivalryLedgerService(BaseService):
    """Maintains persisted rivalries between repeat opponents"""

    def __init__(self, session_factory, threshold: int = None, max_pairs: int = None,
                 max_retries: int = None):
        super().__init__(session_factory, max_retries)
        self.threshold = threshold if threshold is not None else Config.RIVALRY_THRESHOLD
        self.max_pairs = max_pairs if max_pairs is not None else Config.MAX_RIVALRY_PAIRS

    async def process_players(self, entries: List[LeaderboardEntry],
                              context: RivalryContext) -> List[RivalryChange]:
        """
        Update rivalries for every unordered pair of on-platform players.

        Pairs are taken in leaderboard order and capped at max_pairs; pairs
        past the cap are skipped for this outing.

        Returns:
            Every RivalryChange produced, in pair order
        """
        players = LeaderboardBuilder.on_platform(entries)
        if len(players) < 2:
            logger.info(f"Skipping rivalry processing for {context.source_key}: fewer than 2 on-platform players")
            return []

        pair_count = len(players) * (len(players) - 1) // 2
        if pair_count > self.max_pairs:
            logger.warning(
                f"{context.source_key}: {pair_count} player pairs exceeds cap of {self.max_pairs}, "
                f"skipping {pair_count - self.max_pairs}"
            )
        else:
            logger.info(f"{context.source_key}: processing {pair_count} player pairs for rivalries")

        all_changes: List[RivalryChange] = []
        for first, second in islice(combinations(players, 2), self.max_pairs):
            try:
                all_changes.extend(await self.process_pair(first, second, context))
            except Exception as e:
                logger.error(
                    f"Rivalry processing failed for {first.display_name} vs {second.display_name} "
                    f"({context.source_key}): {e}",
                    exc_info=True
                )

        logger.info(f"{context.source_key}: {len(all_changes)} rivalry changes detected")
        return all_changes

    async def process_pair(self, first: LeaderboardEntry, second: LeaderboardEntry,
                           context: RivalryContext) -> List[RivalryChange]:
        """
        Apply one shared result to a pair, retrying on write conflicts.

        Returns:
            Changes for this pair; empty when not yet eligible or already applied
        """
        player_a, player_b = RivalryCalculator.canonical_pair(first, second)
        pair_key = RivalryCalculator.pair_key(player_a.player_id, player_b.player_id)
        winner_id = RivalryCalculator.determine_winner(player_a, player_b)
        result = RivalryCalculator.result_entry(player_a, player_b, winner_id, context)
        ref_a = PlayerRef(player_a.player_id, player_a.display_name, player_a.avatar)
        ref_b = PlayerRef(player_b.player_id, player_b.display_name, player_b.avatar)

        async def _apply() -> List[RivalryChange]:
            async with self.get_session() as session:
                already = await session.execute(
                    select(ProcessedPairing.id).where(
                        ProcessedPairing.pair_key == pair_key,
                        ProcessedPairing.source_key == context.source_key,
                    )
                )
                if already.scalar_one_or_none() is not None:
                    logger.debug(f"Pair {pair_key} already applied for {context.source_key}")
                    return []

                session.add(ProcessedPairing(pair_key=pair_key, source_key=context.source_key))
                await session.flush()

                shared = max(
                    await self._increment_shared(session, ref_a.player_id, ref_b.player_id),
                    await self._increment_shared(session, ref_b.player_id, ref_a.player_id),
                )

                rivalry = (await session.execute(
                    select(Rivalry).where(Rivalry.pair_key == pair_key)
                )).scalar_one_or_none()

                if rivalry is None:
                    if shared < self.threshold:
                        logger.debug(f"Pair {pair_key}: {shared}/{self.threshold} shared rounds, no rivalry yet")
                        return []
                    state = RivalryCalculator.seed_state(ref_a, ref_b, result)
                    rivalry = Rivalry(first_match_at=context.played_at, last_match_at=context.played_at)
                    rivalry.apply_state(state)
                    session.add(rivalry)
                    await session.flush()
                    logger.info(f"Rivalry formed: {pair_key} after {shared} shared rounds")
                    return [RivalryCalculator.formed_change(state, shared)]

                before = rivalry.to_state()
                after = RivalryCalculator.apply_result(before, result, ref_a, ref_b)
                rivalry.apply_state(after)
                rivalry.last_match_at = context.played_at
                await session.flush()
                return RivalryCalculator.detect_changes(before, after, winner_id)

        return await self.execute_with_retry(_apply, operation=f"rivalry pair {pair_key}")

    async def _increment_shared(self, session, player_id: str, opponent_id: str) -> int:
        """Bump one direction of the shared-round counter and return the new value"""
        bumped = await session.execute(
            update(SharedRoundCount)
            .where(SharedRoundCount.player_id == player_id, SharedRoundCount.opponent_id == opponent_id)
            .values(rounds_shared=SharedRoundCount.rounds_shared + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            # First shared round; a concurrent insert fails the unique key and retries the pair
            session.add(SharedRoundCount(player_id=player_id, opponent_id=opponent_id, rounds_shared=1))
            await session.flush()
            return 1

        count = await session.execute(
            select(SharedRoundCount.rounds_shared).where(
                SharedRoundCount.player_id == player_id,
                SharedRoundCount.opponent_id == opponent_id,
            )
        )
        return count.scalar_one()

    async def get_rivalry(self, player_one_id: str, player_two_id: str) -> Optional[RivalryState]:
        """Rivalry between two players in either order, if one has formed"""
        pair_key = RivalryCalculator.pair_key(player_one_id, player_two_id)
        async with self.get_session() as session:
            rivalry = (await session.execute(
                select(Rivalry).where(Rivalry.pair_key == pair_key)
            )).scalar_one_or_none()
            return rivalry.to_state() if rivalry else None

    async def get_rivalries_for_player(self, player_id: str) -> List[RivalryState]:
        """All rivalries a player is part of, most recently played first"""
        async with self.get_session() as session:
            result = await session.execute(
                select(Rivalry)
                .where(or_(Rivalry.player_a_id == player_id, Rivalry.player_b_id == player_id))
                .order_by(Rivalry.last_match_at.desc(), Rivalry.id)
            )
            return [rivalry.to_state() for rivalry in result.scalars().all()]

    async def get_shared_round_count(self, player_one_id: str, player_two_id: str) -> int:
        async with self.get_session() as session:
            result = await session.execute(
                select(SharedRoundCount.rounds_shared).where(
                    or_(
                        (SharedRoundCount.player_id == player_one_id) & (SharedRoundCount.opponent_id == player_two_id),
                        (SharedRoundCount.player_id == player_two_id) & (SharedRoundCount.opponent_id == player_one_id),
                    )
                )
            )
            return max(result.scalars().all(), default=0)
