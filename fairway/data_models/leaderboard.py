"""
Leaderboard data models for outing finalization.

Provides immutable data transfer objects for the scored player slots delivered
by the round-scoring collaborator and the ranked rows built from them.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any


@dataclass(frozen=True)
class PlayerSlot:
    """One player's scored slot in a round, as delivered upstream."""
    player_id: str
    display_name: str
    is_ghost: bool = False
    course_handicap: int = 0
    strokes: List[Optional[int]] = field(default_factory=list)  # index 0 = hole 1
    avatar: Optional[str] = None


@dataclass(frozen=True)
class GroupResult:
    """All scored slots for one completed group of an outing."""
    group_key: str
    group_name: str
    players: List[PlayerSlot]
    hole_pars: List[int] = field(default_factory=list)
    hole_count: int = 18
    round_id: Optional[int] = None


@dataclass(frozen=True)
class LeaderboardEntry:
    """Single leaderboard row."""
    rank: int
    player_id: str
    display_name: str
    is_ghost: bool
    group_key: str
    group_name: str
    gross_score: int
    net_score: int
    score_to_par: int
    course_handicap: int
    holes_completed: int
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LeaderboardEntry":
        return cls(**data)
