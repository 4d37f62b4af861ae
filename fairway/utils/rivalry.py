"""
Rivalry rules: pair identity, match winner, state transitions and change detection.

Everything in this module is pure. The ledger service loads a RivalryState,
asks RivalryCalculator for the next state and the changes between the two,
and persists the result; nothing here touches the database.
"""

from dataclasses import replace
from typing import List, Optional, Tuple

from fairway.constants import RivalryConstants
from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.rivalry import (
    PlayerRef, RivalryChange, RivalryChangeType, RivalryContext,
    RivalryRecord, RivalryResultEntry, RivalryState, Streak
)

TIE = RivalryConstants.TIE

# Leader labels from player A's perspective
LEADER_A = "A"
LEADER_B = "B"
LEADER_TIED = "tied"


class RivalryCalculator:
    """Handles head-to-head rivalry calculations"""

    @staticmethod
    def pair_key(player_one_id: str, player_two_id: str) -> str:
        """
        Deterministic key for an unordered pair of players.

        Either argument order yields the same key.
        """
        low, high = sorted((player_one_id, player_two_id))
        return f"{low}{RivalryConstants.PAIR_KEY_SEPARATOR}{high}"

    @staticmethod
    def canonical_pair(first: LeaderboardEntry, second: LeaderboardEntry) -> Tuple[LeaderboardEntry, LeaderboardEntry]:
        """Order two entries as (player A, player B) by sorted player id"""
        if first.player_id < second.player_id:
            return first, second
        return second, first

    @staticmethod
    def determine_winner(player_a: LeaderboardEntry, player_b: LeaderboardEntry) -> str:
        """
        Winner of a shared round: lower net wins, then lower gross, else a tie.

        Returns:
            Winning player id, or TIE
        """
        if player_a.net_score != player_b.net_score:
            return player_a.player_id if player_a.net_score < player_b.net_score else player_b.player_id
        if player_a.gross_score != player_b.gross_score:
            return player_a.player_id if player_a.gross_score < player_b.gross_score else player_b.player_id
        return TIE

    @staticmethod
    def result_entry(player_a: LeaderboardEntry, player_b: LeaderboardEntry,
                     winner_id: str, context: RivalryContext) -> RivalryResultEntry:
        """Build the ring buffer entry for one shared round"""
        return RivalryResultEntry(
            winner_id=winner_id,
            played_at=context.played_at.isoformat(),
            course_id=context.course_id,
            course_name=context.course_name,
            player_a_net=player_a.net_score,
            player_b_net=player_b.net_score,
            margin=abs(player_a.net_score - player_b.net_score),
            outing_id=context.outing_id,
            round_id=context.round_id,
        )

    @staticmethod
    def record_after(record: RivalryRecord, winner_id: str, player_a_id: str) -> RivalryRecord:
        if winner_id == TIE:
            return replace(record, ties=record.ties + 1)
        if winner_id == player_a_id:
            return replace(record, wins=record.wins + 1)
        return replace(record, losses=record.losses + 1)

    @staticmethod
    def streak_after(streak: Streak, winner_id: str) -> Streak:
        """Ties leave the streak untouched; a new winner restarts it at 1"""
        if winner_id == TIE:
            return streak
        if winner_id == streak.player_id:
            return Streak(winner_id, streak.count + 1)
        return Streak(winner_id, 1)

    @staticmethod
    def belt_holder(recent_results, player_a_id: str, player_b_id: str,
                    previous_holder: Optional[str]) -> Optional[str]:
        """
        Player with more wins in the belt window; an even window keeps the holder.
        """
        window = recent_results[:RivalryConstants.BELT_WINDOW]
        a_wins = sum(1 for result in window if result.winner_id == player_a_id)
        b_wins = sum(1 for result in window if result.winner_id == player_b_id)
        if a_wins > b_wins:
            return player_a_id
        if b_wins > a_wins:
            return player_b_id
        return previous_holder

    @staticmethod
    def leader(record: RivalryRecord) -> str:
        """Who leads overall, from player A's perspective"""
        if record.wins > record.losses:
            return LEADER_A
        if record.losses > record.wins:
            return LEADER_B
        return LEADER_TIED

    @staticmethod
    def seed_state(player_a: PlayerRef, player_b: PlayerRef,
                   result: RivalryResultEntry) -> RivalryState:
        """State of a brand new rivalry, seeded by the match that created it"""
        winner_id = result.winner_id
        streak = Streak(winner_id, 1) if winner_id != TIE else Streak()
        return RivalryState(
            pair_key=RivalryCalculator.pair_key(player_a.player_id, player_b.player_id),
            player_a=player_a,
            player_b=player_b,
            record=RivalryCalculator.record_after(RivalryRecord(), winner_id, player_a.player_id),
            recent_results=(result,),
            current_streak=streak,
            longest_streak=streak,
            belt_holder=winner_id if winner_id != TIE else None,
            total_matches=1,
        )

    @staticmethod
    def apply_result(before: RivalryState, result: RivalryResultEntry,
                     player_a: Optional[PlayerRef] = None,
                     player_b: Optional[PlayerRef] = None) -> RivalryState:
        """
        Fold one new match into an existing rivalry.

        Args:
            before: Current persisted state
            result: The new match, most recent
            player_a/player_b: Fresh display identities, if any

        Returns:
            The next RivalryState
        """
        player_a = player_a or before.player_a
        player_b = player_b or before.player_b
        winner_id = result.winner_id

        recent = ((result,) + tuple(before.recent_results))[:RivalryConstants.MAX_RECENT_RESULTS]
        streak = RivalryCalculator.streak_after(before.current_streak, winner_id)
        longest = streak if streak.count > before.longest_streak.count else before.longest_streak

        return replace(
            before,
            player_a=player_a,
            player_b=player_b,
            record=RivalryCalculator.record_after(before.record, winner_id, player_a.player_id),
            recent_results=recent,
            current_streak=streak,
            longest_streak=longest,
            belt_holder=RivalryCalculator.belt_holder(
                recent, player_a.player_id, player_b.player_id, before.belt_holder
            ),
            total_matches=before.total_matches + 1,
        )

    @staticmethod
    def formed_change(state: RivalryState, shared_rounds: int) -> RivalryChange:
        """Change emitted when a rivalry record is first created"""
        winner_id = state.recent_results[0].winner_id if state.recent_results else TIE
        return RivalryChange(
            change_type=RivalryChangeType.RIVALRY_FORMED,
            pair_key=state.pair_key,
            player_a=state.player_a,
            player_b=state.player_b,
            triggered_by=winner_id if winner_id != TIE else state.player_a.player_id,
            message=(
                f"New rivalry: {state.player_a.display_name} vs {state.player_b.display_name} "
                f"({shared_rounds} rounds together)"
            ),
            record=state.record,
        )

    @staticmethod
    def detect_changes(before: RivalryState, after: RivalryState, winner_id: str) -> List[RivalryChange]:
        """
        Compare two snapshots of the same rivalry and describe what changed.

        Args:
            before: State prior to the new match
            after: State including the new match
            winner_id: Winner of the new match, or TIE

        Returns:
            RivalryChange list ordered by priority
        """
        changes: List[RivalryChange] = []

        def change(change_type: RivalryChangeType, triggered_by: str, message: str):
            changes.append(RivalryChange(
                change_type=change_type,
                pair_key=after.pair_key,
                player_a=after.player_a,
                player_b=after.player_b,
                triggered_by=triggered_by,
                message=message,
                record=after.record,
            ))

        a_id = after.player_a.player_id
        b_id = after.player_b.player_id
        record = after.record
        before_lead = RivalryCalculator.leader(before.record)
        after_lead = RivalryCalculator.leader(record)

        if before_lead != after_lead and after_lead != LEADER_TIED and winner_id != TIE:
            leader_id, trailer_id = (a_id, b_id) if after_lead == LEADER_A else (b_id, a_id)
            leader_wins, trailer_wins = (
                (record.wins, record.losses) if after_lead == LEADER_A else (record.losses, record.wins)
            )
            change(
                RivalryChangeType.LEAD_CHANGE, leader_id,
                f"{after.name_of(leader_id)} takes the lead over {after.name_of(trailer_id)} "
                f"({leader_wins}-{trailer_wins})"
            )

        if before_lead != LEADER_TIED and after_lead == LEADER_TIED:
            tied_by = winner_id if winner_id != TIE else a_id
            other_id = b_id if tied_by == a_id else a_id
            change(
                RivalryChangeType.TIED_UP, tied_by,
                f"{after.name_of(tied_by)} ties it up with {after.name_of(other_id)} "
                f"({record.wins}-{record.losses})"
            )

        old_streak = before.current_streak
        if (old_streak.count >= RivalryConstants.STREAK_BROKEN_MIN
                and winner_id != TIE and winner_id != old_streak.player_id):
            change(
                RivalryChangeType.STREAK_BROKEN, winner_id,
                f"{after.name_of(winner_id)} snaps {after.name_of(old_streak.player_id)}'s "
                f"{old_streak.count}-match streak"
            )

        new_streak = after.current_streak
        if (new_streak.count >= RivalryConstants.STREAK_EXTENDED_MIN
                and new_streak.player_id == old_streak.player_id
                and new_streak.count > old_streak.count):
            change(
                RivalryChangeType.STREAK_EXTENDED, new_streak.player_id,
                f"{after.name_of(new_streak.player_id)} extends winning streak to {new_streak.count}"
            )

        if after.belt_holder and before.belt_holder and after.belt_holder != before.belt_holder:
            change(
                RivalryChangeType.BELT_CLAIMED, after.belt_holder,
                f"{after.name_of(after.belt_holder)} claims the belt from {after.name_of(before.belt_holder)}"
            )

        if after.total_matches % RivalryConstants.MILESTONE_INTERVAL == 0:
            change(
                RivalryChangeType.MILESTONE, winner_id if winner_id != TIE else a_id,
                f"{after.player_a.display_name} vs {after.player_b.display_name} "
                f"reaches {after.total_matches} matches!"
            )

        # sorted() is stable, so equal priorities keep detection order
        return sorted(changes, key=lambda c: c.priority)
