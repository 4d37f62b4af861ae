"""
Outing Pipeline

Handles one "round finished" delivery end to end:

    round finished
      -> completion barrier (count the group once)
      -> all groups in? build leaderboard, claim finalization (one winner)
      -> rivalry ledger, and independently series standings
      -> announcements to the NotificationSink

Deliveries may repeat and arrive concurrently. Every step is either claimed
through a conditional update or idempotent per pair, so a repeated delivery
either does nothing or picks up work a crashed delivery left unfinished.
"""

from typing import List, Optional

from fairway.data_models.announcements import OutingSummary
from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.pipeline import DeliveryOutcome, DeliveryStatus
from fairway.data_models.rivalry import RivalryChange, RivalryContext
from fairway.data_models.standings import StandingsTable
from fairway.database.models import Outing, Round, RoundStatus, utcnow
from fairway.operations.outing_operations import OutingOperations
from fairway.services.announcements import AnnouncementPlanner, LoggingNotificationSink, NotificationSink
from fairway.services.completion_barrier import CompletionBarrierService
from fairway.services.delivery_guard import DeliveryGuard
from fairway.services.rivalry_ledger import RivalryLedgerService
from fairway.services.standings_service import StandingsService
from fairway.utils.leaderboard_builder import LeaderboardBuilder
from fairway.utils.logger import setup_logger
from fairway.utils.pipeline_exceptions import MissingRecordError

logger = setup_logger(__name__)


class OutingPipeline:
    """Entry point for round and group completion deliveries"""

    def __init__(self, database, sink: NotificationSink = None, guard: DeliveryGuard = None,
                 rivalry_threshold: int = None, max_rivalry_pairs: int = None,
                 max_cards_per_recipient: int = None):
        self.db = database
        self.sink = sink or LoggingNotificationSink()
        self.guard = guard or DeliveryGuard()
        session_factory = database.async_session
        self.barrier = CompletionBarrierService(session_factory)
        self.ledger = RivalryLedgerService(session_factory, rivalry_threshold, max_rivalry_pairs)
        self.standings = StandingsService(session_factory)
        self.planner = AnnouncementPlanner(max_cards_per_recipient)
        self.outing_ops = OutingOperations(database)

    async def handle_round_completed(self, round_id: int) -> DeliveryOutcome:
        """
        Process a "round finished" signal.

        Outing rounds go through the completion barrier; standalone rounds
        update rivalries directly. Never raises for a missing record: the
        delivery is discarded so the caller does not redeliver it forever.
        """
        key = DeliveryGuard.delivery_key("round", round_id)
        if await self.guard.seen(key):
            logger.info(f"Round {round_id} delivery already processed, skipping")
            return DeliveryOutcome(DeliveryStatus.DUPLICATE, reason="delivery already processed")

        try:
            round_ = await self.outing_ops.get_round(round_id)
            if round_.status != RoundStatus.COMPLETE.value:
                logger.info(f"Round {round_id} is {round_.status}, nothing to process")
                return DeliveryOutcome(DeliveryStatus.IGNORED, outing_id=round_.outing_id,
                                       reason=f"round is {round_.status}")

            if round_.outing_id is None:
                outcome = await self._process_standalone_round(round_)
            elif not round_.group_key:
                logger.warning(f"Round {round_id} belongs to outing {round_.outing_id} but has no group")
                return DeliveryOutcome(DeliveryStatus.IGNORED, outing_id=round_.outing_id,
                                       reason="round has no group")
            else:
                outcome = await self._process_group(round_.outing_id, round_.group_key)
        except MissingRecordError as e:
            logger.error(f"Discarding round {round_id} delivery: {e}")
            return DeliveryOutcome(DeliveryStatus.DISCARDED, reason=str(e))

        await self.guard.remember(key)
        return outcome

    async def handle_group_completed(self, outing_id: int, group_key: str) -> DeliveryOutcome:
        """Process a completion signal that names the outing group directly"""
        key = DeliveryGuard.delivery_key("group", f"{outing_id}:{group_key}")
        if await self.guard.seen(key):
            logger.info(f"Outing {outing_id} group {group_key} delivery already processed, skipping")
            return DeliveryOutcome(DeliveryStatus.DUPLICATE, outing_id=outing_id,
                                   reason="delivery already processed")

        try:
            round_status = await self._group_round_status(outing_id, group_key)
            if round_status is not None and round_status != RoundStatus.COMPLETE.value:
                logger.info(f"Outing {outing_id} group {group_key} round is {round_status}, nothing to process")
                return DeliveryOutcome(DeliveryStatus.IGNORED, outing_id=outing_id,
                                       reason=f"round is {round_status}")
            outcome = await self._process_group(outing_id, group_key)
        except MissingRecordError as e:
            logger.error(f"Discarding outing {outing_id} group {group_key} delivery: {e}")
            return DeliveryOutcome(DeliveryStatus.DISCARDED, outing_id=outing_id, reason=str(e))

        await self.guard.remember(key)
        return outcome

    async def _group_round_status(self, outing_id: int, group_key: str) -> Optional[str]:
        """Status of the round a group plays; None when the group has no round or is unknown"""
        outing = await self.outing_ops.get_outing(outing_id)
        group = next((g for g in outing.groups if g.group_key == group_key), None)
        if group is None or group.round_id is None:
            return None
        round_ = await self.outing_ops.get_round(group.round_id)
        return round_.status

    async def _process_group(self, outing_id: int, group_key: str) -> DeliveryOutcome:
        barrier = await self.barrier.mark_group_complete(outing_id, group_key)
        if not barrier.is_complete:
            return DeliveryOutcome(DeliveryStatus.PROGRESS, outing_id=outing_id, barrier=barrier)

        groups = await self.outing_ops.load_group_results(outing_id)
        leaderboard = LeaderboardBuilder.build(groups)
        claimed = await self.barrier.claim_finalization(outing_id, leaderboard)
        outing = await self.outing_ops.get_outing(outing_id)

        if claimed:
            status = DeliveryStatus.FINALIZED
        elif outing.rivalries_processed_at is None or outing.announced_at is None:
            # Finalized by an earlier delivery that did not get to the end
            logger.info(f"Outing {outing_id}: resuming unfinished finalization work")
            status = DeliveryStatus.RESUMED
            leaderboard = outing.leaderboard_entries()
        else:
            return DeliveryOutcome(DeliveryStatus.DUPLICATE, outing_id=outing_id, barrier=barrier,
                                   leaderboard=outing.leaderboard_entries(),
                                   reason="outing already finalized")

        changes, standings = await self._run_downstream(outing, leaderboard)
        return DeliveryOutcome(status, outing_id=outing_id, barrier=barrier, leaderboard=leaderboard,
                               rivalry_changes=changes, standings=standings)

    async def _run_downstream(self, outing: Outing, leaderboard: List[LeaderboardEntry]):
        context = RivalryContext(
            course_id=outing.course_id,
            course_name=outing.course_name,
            played_at=outing.completed_at or utcnow(),
            region_key=outing.region_key,
            outing_id=outing.id,
        )

        changes: List[RivalryChange] = []
        if outing.rivalries_processed_at is None:
            changes = await self.ledger.process_players(leaderboard, context)
            await self.barrier.mark_rivalries_processed(outing.id)

        standings = await self._recompute_standings(outing)

        if await self.barrier.claim_announcement(outing.id):
            batch = self.planner.plan_outing_complete(self._summary(outing), leaderboard)
            await self._publish(self.sink.publish_outing_complete(
                outing.id, leaderboard, batch.notifications, batch.feed_cards
            ), f"outing {outing.id} complete")
        await self._publish_rivalry_changes(changes, context)
        if standings is not None:
            await self._publish(self.sink.publish_standings(standings),
                                f"series {standings.series_id} standings")

        return changes, standings

    async def _process_standalone_round(self, round_: Round) -> DeliveryOutcome:
        leaderboard = LeaderboardBuilder.build([OutingOperations.to_group_result(round_)])
        context = RivalryContext(
            course_id=round_.course_id,
            course_name=round_.course_name,
            played_at=round_.completed_at or utcnow(),
            round_id=round_.id,
        )
        changes = await self.ledger.process_players(leaderboard, context)
        await self._publish_rivalry_changes(changes, context)
        return DeliveryOutcome(DeliveryStatus.FINALIZED, leaderboard=leaderboard, rivalry_changes=changes)

    async def _recompute_standings(self, outing: Outing) -> Optional[StandingsTable]:
        if not outing.series_id:
            return None
        try:
            return await self.standings.recompute(outing.series_id, outing.series_round_index or 1)
        except Exception as e:
            logger.error(f"Standings recompute failed for series {outing.series_id} "
                         f"after outing {outing.id}: {e}", exc_info=True)
            return None

    async def _publish_rivalry_changes(self, changes: List[RivalryChange], context: RivalryContext):
        if not changes:
            return
        batch = self.planner.plan_rivalry_changes(changes, context)
        await self._publish(self.sink.publish_rivalry_changes(batch.notifications, batch.feed_cards),
                            f"rivalry updates for {context.source_key}")

    async def _publish(self, publication, label: str):
        """Await one sink call; failures are logged, never raised"""
        try:
            await publication
        except Exception as e:
            logger.error(f"Publishing {label} failed: {e}", exc_info=True)

    @staticmethod
    def _summary(outing: Outing) -> OutingSummary:
        player_rounds = {
            player_id: group.round_id
            for group in outing.groups if group.round_id
            for player_id in group.player_ids or []
        }
        return OutingSummary(
            outing_id=outing.id,
            course_name=outing.course_name,
            course_id=outing.course_id,
            hole_count=outing.hole_count,
            group_count=len(outing.groups),
            organizer_id=outing.organizer_id,
            region_key=outing.region_key,
            player_rounds=player_rounds,
        )
