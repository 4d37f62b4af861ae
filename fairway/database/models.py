from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Date, JSON,
    ForeignKey, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.rivalry import (
    PlayerRef, RivalryRecord, RivalryResultEntry, RivalryState, Streak
)

Base = declarative_base()

def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class OutingStatus(Enum):
    PENDING = "pending"
    COMPLETE = "complete"

class GroupStatus(Enum):
    PENDING = "pending"
    COMPLETE = "complete"

class RoundStatus(Enum):
    LIVE = "live"
    COMPLETE = "complete"
    ABANDONED = "abandoned"

class Player(Base):
    __tablename__ = 'players'

    id = Column(String(128), primary_key=True)  # Platform user id, or generated id for ghosts
    display_name = Column(String(100), nullable=False)
    avatar = Column(String(500), nullable=True)
    is_ghost = Column(Boolean, default=False, nullable=False)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<Player(id='{self.id}', name='{self.display_name}', ghost={self.is_ghost})>"

class Series(Base):
    """A multi-round tournament whose standings are rebuilt after each round."""
    __tablename__ = 'series'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    scoring_mode = Column(String(20), nullable=False, default="cumulative")  # cumulative, best_of, points
    round_count = Column(Integer, nullable=False, default=1)
    points_table = Column(JSON, nullable=True)  # Used by points mode when rounds carry no explicit points

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    participants = relationship("SeriesParticipant", back_populates="series",
                                cascade="all, delete-orphan", order_by="SeriesParticipant.roster_order")
    rounds = relationship("SeriesRound", back_populates="series",
                          cascade="all, delete-orphan", order_by="SeriesRound.round_index")

    __table_args__ = (
        CheckConstraint("scoring_mode IN ('cumulative', 'best_of', 'points')", name='ck_series_scoring_mode'),
    )

    def __repr__(self):
        return f"<Series(id={self.id}, name='{self.name}', mode='{self.scoring_mode}')>"

class SeriesParticipant(Base):
    __tablename__ = 'series_participants'

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey('series.id'), nullable=False, index=True)
    player_id = Column(String(128), nullable=False)
    display_name = Column(String(100), nullable=False)
    roster_order = Column(Integer, nullable=False)

    series = relationship("Series", back_populates="participants")

    __table_args__ = (UniqueConstraint('series_id', 'player_id'),)

class SeriesRound(Base):
    __tablename__ = 'series_rounds'

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey('series.id'), nullable=False, index=True)
    round_index = Column(Integer, nullable=False)  # 1-based
    outing_id = Column(Integer, ForeignKey('outings.id'), nullable=True)
    points = Column(JSON, nullable=True)  # player_id -> points, supplied for points mode

    series = relationship("Series", back_populates="rounds")
    outing = relationship("Outing")

    __table_args__ = (UniqueConstraint('series_id', 'round_index'),)

class SeriesStandingsSnapshot(Base):
    """Latest rebuilt standings table for a series; replaced wholesale."""
    __tablename__ = 'series_standings'

    series_id = Column(Integer, ForeignKey('series.id'), primary_key=True)
    round_index = Column(Integer, nullable=False)
    scoring_mode = Column(String(20), nullable=False)
    standings = Column(JSON, nullable=False, default=list)
    computed_at = Column(DateTime, default=func.now(), onupdate=func.now())

class Outing(Base):
    """One occasion played as one or more groups (the Event)."""
    __tablename__ = 'outings'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    organizer_id = Column(String(128), nullable=True)

    # Course context
    course_id = Column(Integer, nullable=True)
    course_name = Column(String(200), nullable=False)
    region_key = Column(String(100), nullable=True)
    hole_count = Column(Integer, default=18)
    played_on = Column(Date, nullable=True)

    # Series membership
    series_id = Column(Integer, ForeignKey('series.id'), nullable=True, index=True)
    series_round_index = Column(Integer, nullable=True)

    # Completion barrier state
    total_groups = Column(Integer, nullable=False, default=0)
    completed_groups = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=OutingStatus.PENDING.value)
    final_leaderboard = Column(JSON, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Downstream progress markers
    rivalries_processed_at = Column(DateTime, nullable=True)
    announced_at = Column(DateTime, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    groups = relationship("OutingGroup", back_populates="outing",
                          cascade="all, delete-orphan", order_by="OutingGroup.id")

    __table_args__ = (
        CheckConstraint('completed_groups <= total_groups', name='ck_outing_completed_groups'),
        CheckConstraint("status IN ('pending', 'complete')", name='ck_outing_status'),
    )

    @property
    def is_complete(self) -> bool:
        return self.status == OutingStatus.COMPLETE.value

    def leaderboard_entries(self) -> List[LeaderboardEntry]:
        return [LeaderboardEntry.from_dict(item) for item in self.final_leaderboard or []]

    def __repr__(self):
        return (f"<Outing(id={self.id}, name='{self.name}', "
                f"groups={self.completed_groups}/{self.total_groups}, status='{self.status}')>")

class OutingGroup(Base):
    __tablename__ = 'outing_groups'

    id = Column(Integer, primary_key=True)
    outing_id = Column(Integer, ForeignKey('outings.id'), nullable=False, index=True)
    group_key = Column(String(50), nullable=False)  # Stable identifier, e.g. "group_1"
    name = Column(String(100), nullable=False)
    player_ids = Column(JSON, nullable=False, default=list)
    marker_id = Column(String(128), nullable=True)  # Player entering scores for the group
    starting_hole = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default=GroupStatus.PENDING.value)
    round_id = Column(Integer, ForeignKey('rounds.id'), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    outing = relationship("Outing", back_populates="groups")

    __table_args__ = (UniqueConstraint('outing_id', 'group_key'),)

    def __repr__(self):
        return f"<OutingGroup(outing={self.outing_id}, key='{self.group_key}', status='{self.status}')>"

class Round(Base):
    """One scored group of players at a course."""
    __tablename__ = 'rounds'

    id = Column(Integer, primary_key=True)
    outing_id = Column(Integer, ForeignKey('outings.id'), nullable=True, index=True)
    group_key = Column(String(50), nullable=True)

    course_id = Column(Integer, nullable=True)
    course_name = Column(String(200), nullable=False)
    hole_count = Column(Integer, default=18)
    hole_pars = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default=RoundStatus.LIVE.value)
    started_at = Column(DateTime, default=func.now())
    completed_at = Column(DateTime, nullable=True)

    players = relationship("RoundPlayer", back_populates="round",
                           cascade="all, delete-orphan", order_by="RoundPlayer.slot")

    def __repr__(self):
        return f"<Round(id={self.id}, outing={self.outing_id}, group='{self.group_key}', status='{self.status}')>"

class RoundPlayer(Base):
    __tablename__ = 'round_players'

    id = Column(Integer, primary_key=True)
    round_id = Column(Integer, ForeignKey('rounds.id'), nullable=False, index=True)
    slot = Column(Integer, nullable=False)  # Order within the round
    player_id = Column(String(128), nullable=False)
    display_name = Column(String(100), nullable=False)
    avatar = Column(String(500), nullable=True)
    is_ghost = Column(Boolean, default=False, nullable=False)
    course_handicap = Column(Integer, default=0)
    strokes = Column(JSON, nullable=False, default=list)  # Per hole, 0/None = not played

    round = relationship("Round", back_populates="players")

    __table_args__ = (UniqueConstraint('round_id', 'player_id'),)

class SharedRoundCount(Base):
    """How many rounds a player has shared with one opponent (one row per direction)."""
    __tablename__ = 'shared_round_counts'

    id = Column(Integer, primary_key=True)
    player_id = Column(String(128), nullable=False)
    opponent_id = Column(String(128), nullable=False)
    rounds_shared = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('player_id', 'opponent_id'),
        Index('ix_shared_round_counts_player', 'player_id'),
    )

class ProcessedPairing(Base):
    """Marks that a pair was already applied for one outing or round."""
    __tablename__ = 'processed_pairings'

    id = Column(Integer, primary_key=True)
    pair_key = Column(String(260), nullable=False)
    source_key = Column(String(64), nullable=False)  # "outing:<id>" or "round:<id>"
    processed_at = Column(DateTime, default=func.now())

    __table_args__ = (UniqueConstraint('pair_key', 'source_key'),)

class Rivalry(Base):
    """Head-to-head record between two on-platform players.

    wins/losses are from player A's perspective; A is the lower sorted id.
    """
    __tablename__ = 'rivalries'

    id = Column(Integer, primary_key=True)
    pair_key = Column(String(260), nullable=False, unique=True, index=True)

    player_a_id = Column(String(128), nullable=False, index=True)
    player_a_name = Column(String(100), nullable=False)
    player_a_avatar = Column(String(500), nullable=True)
    player_b_id = Column(String(128), nullable=False, index=True)
    player_b_name = Column(String(100), nullable=False)
    player_b_avatar = Column(String(500), nullable=True)

    # Record
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    ties = Column(Integer, nullable=False, default=0)
    total_matches = Column(Integer, nullable=False, default=0)
    recent_results = Column(JSON, nullable=False, default=list)  # Most recent first, capped

    # Streaks and belt
    current_streak_player_id = Column(String(128), nullable=True)
    current_streak_count = Column(Integer, nullable=False, default=0)
    longest_streak_player_id = Column(String(128), nullable=True)
    longest_streak_count = Column(Integer, nullable=False, default=0)
    belt_holder_id = Column(String(128), nullable=True)

    # Metadata
    first_match_at = Column(DateTime, nullable=True)
    last_match_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_state(self) -> RivalryState:
        """Immutable snapshot of this row"""
        return RivalryState(
            pair_key=self.pair_key,
            player_a=PlayerRef(self.player_a_id, self.player_a_name, self.player_a_avatar),
            player_b=PlayerRef(self.player_b_id, self.player_b_name, self.player_b_avatar),
            record=RivalryRecord(self.wins, self.losses, self.ties),
            recent_results=tuple(RivalryResultEntry.from_dict(r) for r in self.recent_results or []),
            current_streak=Streak(self.current_streak_player_id, self.current_streak_count),
            longest_streak=Streak(self.longest_streak_player_id, self.longest_streak_count),
            belt_holder=self.belt_holder_id,
            total_matches=self.total_matches,
        )

    def apply_state(self, state: RivalryState):
        """Copy a computed snapshot onto this row"""
        self.pair_key = state.pair_key
        self.player_a_id = state.player_a.player_id
        self.player_a_name = state.player_a.display_name
        self.player_a_avatar = state.player_a.avatar
        self.player_b_id = state.player_b.player_id
        self.player_b_name = state.player_b.display_name
        self.player_b_avatar = state.player_b.avatar
        self.wins = state.record.wins
        self.losses = state.record.losses
        self.ties = state.record.ties
        self.total_matches = state.total_matches
        # Assign a new list so the JSON column is flagged dirty
        self.recent_results = [result.to_dict() for result in state.recent_results]
        self.current_streak_player_id = state.current_streak.player_id
        self.current_streak_count = state.current_streak.count
        self.longest_streak_player_id = state.longest_streak.player_id
        self.longest_streak_count = state.longest_streak.count
        self.belt_holder_id = state.belt_holder

    def __repr__(self):
        return (f"<Rivalry(key='{self.pair_key}', record={self.wins}-{self.losses}-{self.ties}, "
                f"belt='{self.belt_holder_id}')>")
