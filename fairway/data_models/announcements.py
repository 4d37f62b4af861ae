"""
Announcement payloads handed to the notification/feed collaborator.

Nothing here is delivered by the pipeline itself; these are structured
descriptions of what should be sent.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any


@dataclass(frozen=True)
class OutingSummary:
    """Outing context needed to word the outing-complete announcement."""
    outing_id: int
    course_name: str
    course_id: Optional[int] = None
    hole_count: int = 18
    group_count: int = 1
    organizer_id: Optional[str] = None
    region_key: Optional[str] = None
    player_rounds: Dict[str, int] = field(default_factory=dict)  # player_id -> round_id

    @property
    def first_round_id(self) -> Optional[int]:
        return min(self.player_rounds.values(), default=None)


@dataclass(frozen=True)
class Notification:
    """A push-style alert for one recipient."""
    recipient_id: str
    kind: str  # "outing_complete" or "rivalry_update"
    message: str
    outing_id: Optional[int] = None
    round_id: Optional[int] = None
    pair_key: Optional[str] = None
    change_type: Optional[str] = None
    navigation_target: str = "round"


@dataclass(frozen=True)
class FeedCard:
    """A feed activity card for one recipient."""
    recipient_id: str
    activity_type: str  # "outing_complete" or "rivalry_update"
    message: str
    priority: int = 0
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AnnouncementBatch:
    """Notifications and feed cards planned for one pipeline pass."""
    notifications: List[Notification] = field(default_factory=list)
    feed_cards: List[FeedCard] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.notifications and not self.feed_cards
