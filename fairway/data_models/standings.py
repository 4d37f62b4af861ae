"""
Standings data models for multi-round series.
"""

from dataclasses import dataclass, asdict
from typing import List, Optional, Dict, Any


@dataclass(frozen=True)
class RosterEntry:
    """A series participant in original roster order."""
    player_id: str
    display_name: str


@dataclass(frozen=True)
class Standing:
    """One player's row in a series table.

    rank and total are None until the player has played a round.
    """
    player_id: str
    display_name: str
    round_scores: List[Optional[float]]
    rounds_played: int
    total: Optional[float]
    rank: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Standing":
        return cls(**data)


@dataclass(frozen=True)
class StandingsTable:
    """Recomputed series table handed to tournament presentation."""
    series_id: int
    round_index: int
    scoring_mode: str
    standings: List[Standing]

    def ranked(self) -> List[Standing]:
        return [s for s in self.standings if s.rank is not None]
