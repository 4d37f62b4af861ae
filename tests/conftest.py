"""pytest configuration and fixtures."""

import os
import tempfile

# Keep test logs out of the working tree; must run before fairway.config is imported
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "fairway-test-logs"))

from datetime import datetime, timedelta  # noqa: E402
from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from fairway.data_models.leaderboard import LeaderboardEntry, PlayerSlot  # noqa: E402
from fairway.data_models.rivalry import RivalryContext  # noqa: E402
from fairway.database.database import Database  # noqa: E402
from fairway.operations.outing_operations import OutingOperations  # noqa: E402
from fairway.operations.series_operations import SeriesOperations  # noqa: E402
from fairway.services.announcements import NotificationSink  # noqa: E402
from fairway.services.outing_pipeline import OutingPipeline  # noqa: E402


def strokes_for(total: int, holes: int = 18) -> List[int]:
    """Spread a gross total over the holes, extra strokes on the first holes"""
    base, extra = divmod(total, holes)
    return [base + (1 if hole < extra else 0) for hole in range(holes)]


class RecordingSink(NotificationSink):
    """Collects everything the pipeline publishes."""

    def __init__(self):
        self.outings = []
        self.rivalry_batches = []
        self.standings = []

    async def publish_outing_complete(self, outing_id, leaderboard, notifications, feed_cards):
        self.outings.append((outing_id, leaderboard, notifications, feed_cards))

    async def publish_rivalry_changes(self, notifications, feed_cards):
        self.rivalry_batches.append((notifications, feed_cards))

    async def publish_standings(self, table):
        self.standings.append(table)


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'fairway_test.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def pipeline(db, sink):
    return OutingPipeline(db, sink=sink)


@pytest.fixture
def outing_ops(db):
    return OutingOperations(db)


@pytest.fixture
def series_ops(db):
    return SeriesOperations(db)


@pytest.fixture
def make_slot():
    def _make(player_id: str, gross: int = 0, handicap: int = 0, ghost: bool = False,
              name: Optional[str] = None, holes: int = 18) -> PlayerSlot:
        return PlayerSlot(
            player_id=player_id,
            display_name=name or player_id.title(),
            is_ghost=ghost,
            course_handicap=handicap,
            strokes=strokes_for(gross, holes) if gross else [],
        )
    return _make


@pytest.fixture
def make_entry():
    def _make(player_id: str, net: int, gross: Optional[int] = None, rank: int = 1,
              ghost: bool = False, name: Optional[str] = None) -> LeaderboardEntry:
        gross = net if gross is None else gross
        return LeaderboardEntry(
            rank=rank,
            player_id=player_id,
            display_name=name or player_id.title(),
            is_ghost=ghost,
            group_key="group_1",
            group_name="Group 1",
            gross_score=gross,
            net_score=net,
            score_to_par=gross - 72,
            course_handicap=gross - net,
            holes_completed=18,
        )
    return _make


@pytest.fixture
def make_context():
    counter = {'outing': 0}

    def _make(outing_id: Optional[int] = None, course_name: str = "Pebble Creek") -> RivalryContext:
        if outing_id is None:
            counter['outing'] += 1
            outing_id = counter['outing']
        return RivalryContext(
            course_id=7,
            course_name=course_name,
            played_at=datetime(2026, 5, 1, 12, 0) + timedelta(days=outing_id),
            outing_id=outing_id,
        )
    return _make
