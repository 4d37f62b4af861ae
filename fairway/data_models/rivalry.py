"""
Rivalry data models.

Immutable snapshots of a rivalry's state plus the change descriptors emitted
when a new result moves that state. The record is always kept from player A's
perspective (A is the lower of the two sorted ids).
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple


class RivalryChangeType(Enum):
    LEAD_CHANGE = "lead_change"
    STREAK_BROKEN = "streak_broken"
    STREAK_EXTENDED = "streak_extended"
    RIVALRY_FORMED = "rivalry_formed"
    BELT_CLAIMED = "belt_claimed"
    TIED_UP = "tied_up"
    MILESTONE = "milestone"

    @property
    def priority(self) -> int:
        """Announcement priority (lower = more important)"""
        return CHANGE_PRIORITIES[self]

    @property
    def is_notifiable(self) -> bool:
        """Whether this change warrants a push-style alert"""
        return self in NOTIFIABLE_CHANGES


CHANGE_PRIORITIES = {
    RivalryChangeType.LEAD_CHANGE: 1,
    RivalryChangeType.STREAK_BROKEN: 2,
    RivalryChangeType.BELT_CLAIMED: 2,
    RivalryChangeType.TIED_UP: 3,
    RivalryChangeType.RIVALRY_FORMED: 4,
    RivalryChangeType.STREAK_EXTENDED: 5,
    RivalryChangeType.MILESTONE: 6,
}

NOTIFIABLE_CHANGES = frozenset({
    RivalryChangeType.LEAD_CHANGE,
    RivalryChangeType.BELT_CLAIMED,
    RivalryChangeType.STREAK_BROKEN,
    RivalryChangeType.RIVALRY_FORMED,
})


@dataclass(frozen=True)
class PlayerRef:
    """Identity of one side of a rivalry."""
    player_id: str
    display_name: str
    avatar: Optional[str] = None


@dataclass(frozen=True)
class RivalryRecord:
    """Won/lost/tied totals from player A's perspective."""
    wins: int = 0
    losses: int = 0
    ties: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class Streak:
    """Consecutive wins by one player; player_id is None when nobody holds one."""
    player_id: Optional[str] = None
    count: int = 0


@dataclass(frozen=True)
class RivalryContext:
    """Where and when the shared round was played."""
    course_id: Optional[int]
    course_name: str
    played_at: datetime
    region_key: Optional[str] = None
    outing_id: Optional[int] = None
    round_id: Optional[int] = None

    @property
    def source_key(self) -> str:
        """Identifies the outing or round a pair update is applied for"""
        if self.outing_id is not None:
            return f"outing:{self.outing_id}"
        return f"round:{self.round_id}"


@dataclass(frozen=True)
class RivalryResultEntry:
    """One match in a rivalry's recent results ring buffer."""
    winner_id: str  # player id or RivalryConstants.TIE
    played_at: str  # ISO-8601
    course_id: Optional[int]
    course_name: str
    player_a_net: int
    player_b_net: int
    margin: int
    outing_id: Optional[int] = None
    round_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RivalryResultEntry":
        return cls(**data)


@dataclass(frozen=True)
class RivalryState:
    """Full persisted state of one rivalry."""
    pair_key: str
    player_a: PlayerRef
    player_b: PlayerRef
    record: RivalryRecord = field(default_factory=RivalryRecord)
    recent_results: Tuple[RivalryResultEntry, ...] = ()
    current_streak: Streak = field(default_factory=Streak)
    longest_streak: Streak = field(default_factory=Streak)
    belt_holder: Optional[str] = None
    total_matches: int = 0

    def name_of(self, player_id: str) -> str:
        if player_id == self.player_a.player_id:
            return self.player_a.display_name
        return self.player_b.display_name


@dataclass(frozen=True)
class RivalryChange:
    """One detected rivalry state transition, ready for announcement."""
    change_type: RivalryChangeType
    pair_key: str
    player_a: PlayerRef
    player_b: PlayerRef
    triggered_by: str
    message: str
    record: RivalryRecord

    @property
    def priority(self) -> int:
        return self.change_type.priority

    @property
    def player_ids(self) -> List[str]:
        return [self.player_a.player_id, self.player_b.player_id]
