"""
Result objects returned by the completion barrier and the outing pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.rivalry import RivalryChange
from fairway.data_models.standings import StandingsTable


@dataclass(frozen=True)
class BarrierResult:
    """Outcome of marking one group complete."""
    outing_id: int
    group_key: str
    newly_completed: bool
    completed_groups: int
    total_groups: int

    @property
    def is_complete(self) -> bool:
        return self.completed_groups == self.total_groups


class DeliveryStatus(Enum):
    PROGRESS = "progress"      # group recorded, outing still waiting on others
    FINALIZED = "finalized"    # this delivery finalized the outing
    RESUMED = "resumed"        # unfinished rivalry processing picked up again
    DUPLICATE = "duplicate"    # already applied, nothing to do
    DISCARDED = "discarded"    # referenced record missing, delivery dropped
    IGNORED = "ignored"        # round (or the signalled group's round) not complete, or no group


@dataclass
class DeliveryOutcome:
    """What one "round finished" delivery did."""
    status: DeliveryStatus
    outing_id: Optional[int] = None
    barrier: Optional[BarrierResult] = None
    leaderboard: List[LeaderboardEntry] = field(default_factory=list)
    rivalry_changes: List[RivalryChange] = field(default_factory=list)
    standings: Optional[StandingsTable] = None
    reason: Optional[str] = None
