"""End-to-end tests for the outing pipeline."""

import asyncio

import pytest

from fairway.data_models.pipeline import DeliveryStatus
from fairway.data_models.rivalry import RivalryChangeType
from fairway.data_models.standings import RosterEntry
from fairway.services.announcements import NotificationSink
from fairway.services.outing_pipeline import OutingPipeline
from fairway.utils.leaderboard_builder import LeaderboardBuilder


class FailingSink(NotificationSink):
    async def publish_outing_complete(self, outing_id, leaderboard, notifications, feed_cards):
        raise RuntimeError("feed service unavailable")

    async def publish_rivalry_changes(self, notifications, feed_cards):
        pass

    async def publish_standings(self, table):
        pass


async def setup_outing(outing_ops, make_slot, grosses=(70, 71, 72, 73), group_size=2, complete=False, **kwargs):
    """Create an outing and return it with its round ids in group order"""
    roster = [make_slot(f"p{i}", gross=gross) for i, gross in enumerate(grosses)]
    outing = await outing_ops.create_outing("Spring Scramble", "Pebble Creek", roster,
                                            group_size=group_size, **kwargs)
    rounds = [group.round_id for group in outing.groups]
    if complete:
        for round_id in rounds:
            await outing_ops.complete_round(round_id)
    return outing, rounds


class TestOutingFinalization:

    @pytest.mark.asyncio
    async def test_two_groups_finalize_on_second_round(self, db, pipeline, sink, outing_ops, make_slot):
        outing, (first, second) = await setup_outing(outing_ops, make_slot)

        await outing_ops.complete_round(first)
        progress = await pipeline.handle_round_completed(first)
        assert progress.status == DeliveryStatus.PROGRESS
        assert (progress.barrier.completed_groups, progress.barrier.total_groups) == (1, 2)
        assert sink.outings == []

        await outing_ops.complete_round(second)
        final = await pipeline.handle_round_completed(second)

        assert final.status == DeliveryStatus.FINALIZED
        assert [e.player_id for e in final.leaderboard] == ["p0", "p1", "p2", "p3"]
        assert {e.group_key for e in final.leaderboard} == {"group_1", "group_2"}

        stored = await db.get_outing(outing.id)
        assert stored.is_complete
        assert stored.leaderboard_entries() == final.leaderboard
        assert stored.rivalries_processed_at is not None
        assert stored.announced_at is not None

        assert len(sink.outings) == 1
        outing_id, leaderboard, notifications, feed_cards = sink.outings[0]
        assert outing_id == outing.id
        assert len(notifications) == 4
        assert notifications[0].message == "You won the outing at Pebble Creek! Net 70 🏆"
        assert {n.round_id for n in notifications} == {first, second}

    @pytest.mark.asyncio
    async def test_redelivery_after_finalization_is_duplicate(self, pipeline, sink, outing_ops, make_slot):
        _, rounds = await setup_outing(outing_ops, make_slot)
        for round_id in rounds:
            await outing_ops.complete_round(round_id)
            await pipeline.handle_round_completed(round_id)

        again = await pipeline.handle_round_completed(rounds[-1])

        assert again.status == DeliveryStatus.DUPLICATE
        assert len(again.leaderboard) == 4
        assert len(sink.outings) == 1

    @pytest.mark.asyncio
    async def test_concurrent_deliveries_finalize_once(self, db, pipeline, sink, outing_ops, make_slot):
        outing, rounds = await setup_outing(outing_ops, make_slot, grosses=range(70, 78))
        for round_id in rounds:
            await outing_ops.complete_round(round_id)

        outcomes = await asyncio.gather(*(pipeline.handle_round_completed(r) for r in rounds + rounds))

        statuses = [o.status for o in outcomes]
        assert statuses.count(DeliveryStatus.FINALIZED) == 1
        assert len(sink.outings) == 1
        stored = await db.get_outing(outing.id)
        assert stored.completed_groups == 4

    @pytest.mark.asyncio
    async def test_group_signal_entry_point(self, pipeline, outing_ops, make_slot):
        outing, _ = await setup_outing(outing_ops, make_slot, grosses=(70, 72), complete=True)

        outcome = await pipeline.handle_group_completed(outing.id, "group_1")

        assert outcome.status == DeliveryStatus.FINALIZED
        assert [e.player_id for e in outcome.leaderboard] == ["p0", "p1"]


class TestResume:

    @pytest.mark.asyncio
    async def test_crash_after_finalization_is_resumed(self, db, pipeline, sink, outing_ops, make_slot):
        outing, rounds = await setup_outing(outing_ops, make_slot)
        for round_id in rounds:
            await outing_ops.complete_round(round_id)
        # A delivery that finalized and then died before any downstream work
        for group in outing.groups:
            await pipeline.barrier.mark_group_complete(outing.id, group.group_key)
        board = LeaderboardBuilder.build(await outing_ops.load_group_results(outing.id))
        assert await pipeline.barrier.claim_finalization(outing.id, board)

        resumed = await pipeline.handle_round_completed(rounds[0])

        assert resumed.status == DeliveryStatus.RESUMED
        assert resumed.leaderboard == board
        assert len(sink.outings) == 1
        stored = await db.get_outing(outing.id)
        assert stored.rivalries_processed_at is not None

        assert (await pipeline.handle_round_completed(rounds[0])).status == DeliveryStatus.DUPLICATE

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_fail_delivery(self, db, outing_ops, make_slot):
        sink = FailingSink()
        pipeline = OutingPipeline(db, sink=sink)
        outing, _ = await setup_outing(outing_ops, make_slot, grosses=(70, 72), complete=True)

        outcome = await pipeline.handle_group_completed(outing.id, "group_1")

        assert outcome.status == DeliveryStatus.FINALIZED
        stored = await db.get_outing(outing.id)
        assert stored.announced_at is not None


class TestDiscardAndIgnore:

    @pytest.mark.asyncio
    async def test_missing_round_is_discarded(self, pipeline):
        outcome = await pipeline.handle_round_completed(999)
        assert outcome.status == DeliveryStatus.DISCARDED
        assert "999" in outcome.reason

    @pytest.mark.asyncio
    async def test_missing_group_is_discarded(self, pipeline, outing_ops, make_slot):
        outing, _ = await setup_outing(outing_ops, make_slot)
        outcome = await pipeline.handle_group_completed(outing.id, "group_7")
        assert outcome.status == DeliveryStatus.DISCARDED

    @pytest.mark.asyncio
    async def test_live_round_is_ignored(self, pipeline, sink, outing_ops, make_slot):
        _, rounds = await setup_outing(outing_ops, make_slot)

        outcome = await pipeline.handle_round_completed(rounds[0])

        assert outcome.status == DeliveryStatus.IGNORED
        assert sink.outings == []

    @pytest.mark.asyncio
    async def test_group_signal_for_live_round_is_ignored(self, db, pipeline, sink, outing_ops, make_slot):
        outing, _ = await setup_outing(outing_ops, make_slot, grosses=(70, 72))

        outcome = await pipeline.handle_group_completed(outing.id, "group_1")

        assert outcome.status == DeliveryStatus.IGNORED
        assert outcome.reason == "round is live"
        stored = await db.get_outing(outing.id)
        assert stored.completed_groups == 0
        assert not stored.is_complete
        assert sink.outings == []

        await outing_ops.complete_round(outing.groups[0].round_id)
        again = await pipeline.handle_group_completed(outing.id, "group_1")
        assert again.status == DeliveryStatus.FINALIZED


class TestDownstream:

    @pytest.mark.asyncio
    async def test_rivalry_changes_published(self, db, sink, outing_ops, make_slot):
        pipeline = OutingPipeline(db, sink=sink, rivalry_threshold=1)
        outing, _ = await setup_outing(outing_ops, make_slot, grosses=(70, 72), complete=True)

        outcome = await pipeline.handle_group_completed(outing.id, "group_1")

        assert [c.change_type for c in outcome.rivalry_changes] == [RivalryChangeType.RIVALRY_FORMED]
        assert len(sink.rivalry_batches) == 1
        notifications, feed_cards = sink.rivalry_batches[0]
        assert [n.recipient_id for n in notifications] == ["p0", "p1"]
        assert all(n.navigation_target == "profile" for n in notifications)

    @pytest.mark.asyncio
    async def test_series_standings_published(self, db, pipeline, sink, outing_ops, series_ops, make_slot):
        roster = [RosterEntry("p0", "P0"), RosterEntry("p1", "P1"), RosterEntry("p9", "P9")]
        series = await series_ops.create_series("Summer League", roster, round_count=3)
        outing, _ = await setup_outing(outing_ops, make_slot, grosses=(72, 70), complete=True)
        await series_ops.attach_outing(series.id, 1, outing.id)

        outcome = await pipeline.handle_group_completed(outing.id, "group_1")

        table = outcome.standings
        assert table.series_id == series.id
        assert table.round_index == 1
        assert [(s.player_id, s.rank) for s in table.standings] == [("p1", 1), ("p0", 2), ("p9", None)]
        assert sink.standings == [table]

    @pytest.mark.asyncio
    async def test_outing_without_series_has_no_standings(self, pipeline, sink, outing_ops, make_slot):
        outing, _ = await setup_outing(outing_ops, make_slot, grosses=(70, 72), complete=True)
        outcome = await pipeline.handle_group_completed(outing.id, "group_1")
        assert outcome.standings is None
        assert sink.standings == []

    @pytest.mark.asyncio
    async def test_standalone_round_updates_rivalries(self, db, sink, outing_ops, make_slot):
        pipeline = OutingPipeline(db, sink=sink, rivalry_threshold=1)
        round_ = await outing_ops.create_round("Links", [make_slot("amy", 80), make_slot("bob", 78)])
        await outing_ops.complete_round(round_.id)

        outcome = await pipeline.handle_round_completed(round_.id)

        assert outcome.status == DeliveryStatus.FINALIZED
        assert outcome.outing_id is None
        assert [e.player_id for e in outcome.leaderboard] == ["bob", "amy"]
        assert [c.pair_key for c in outcome.rivalry_changes] == ["amy_bob"]
        assert sink.outings == []

        again = await pipeline.handle_round_completed(round_.id)
        assert again.rivalry_changes == []
        assert (await pipeline.ledger.get_rivalry("amy", "bob")).total_matches == 1
