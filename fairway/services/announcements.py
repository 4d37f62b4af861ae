"""
Announcement planning and the notification sink interface.

AnnouncementPlanner turns a finalized leaderboard or a list of rivalry
changes into notifications and feed cards. Delivery belongs to whatever
NotificationSink the pipeline is given.
"""

from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List

from fairway.config import Config
from fairway.constants import FeedConstants
from fairway.data_models.announcements import AnnouncementBatch, FeedCard, Notification, OutingSummary
from fairway.data_models.leaderboard import LeaderboardEntry
from fairway.data_models.rivalry import RivalryChange, RivalryContext
from fairway.data_models.standings import StandingsTable
from fairway.utils.leaderboard_builder import LeaderboardBuilder
from fairway.utils.logger import setup_logger

logger = setup_logger(__name__)

OUTING_COMPLETE = "outing_complete"
RIVALRY_UPDATE = "rivalry_update"


def ordinal(n: int) -> str:
    """1 -> '1st', 12 -> '12th', 23 -> '23rd'"""
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _leaderboard_row(entry: LeaderboardEntry) -> Dict:
    return {
        'position': entry.rank,
        'player_id': entry.player_id,
        'display_name': entry.display_name,
        'avatar': entry.avatar,
        'gross_score': entry.gross_score,
        'net_score': entry.net_score,
        'score_to_par': entry.score_to_par,
        'group_name': entry.group_name,
    }


class AnnouncementPlanner:
    """Decides who hears about what"""

    def __init__(self, max_cards_per_recipient: int = None):
        if max_cards_per_recipient is None:
            max_cards_per_recipient = Config.MAX_RIVALRY_CARDS_PER_EVENT
        self.max_cards_per_recipient = max_cards_per_recipient

    def plan_outing_complete(self, summary: OutingSummary,
                             leaderboard: List[LeaderboardEntry]) -> AnnouncementBatch:
        """
        One notification and one feed card per on-platform finisher.

        A spectating organizer (not on the leaderboard) also gets a
        notification naming the winner.
        """
        if not leaderboard:
            return AnnouncementBatch()

        course = summary.course_name
        player_count = len(leaderboard)
        winner = leaderboard[0]
        top_finishers = [_leaderboard_row(e) for e in leaderboard[:FeedConstants.TOP_FINISHERS]]
        full_board = [_leaderboard_row(e) for e in leaderboard]
        trophy = FeedConstants.TROPHY_EMOJI

        notifications: List[Notification] = []
        feed_cards: List[FeedCard] = []
        for entry in LeaderboardBuilder.on_platform(leaderboard):
            if entry.rank == 1:
                message = f"You won the outing at {course}! Net {entry.net_score} {trophy}"
            elif entry.rank <= FeedConstants.PODIUM_POSITIONS:
                message = f"You finished {ordinal(entry.rank)} at the {course} outing — Net {entry.net_score}"
            else:
                message = f"Outing at {course} complete — you finished {ordinal(entry.rank)} of {player_count}"

            round_id = summary.player_rounds.get(entry.player_id)
            notifications.append(Notification(
                recipient_id=entry.player_id,
                kind=OUTING_COMPLETE,
                message=message,
                outing_id=summary.outing_id,
                round_id=round_id,
            ))
            feed_cards.append(FeedCard(
                recipient_id=entry.player_id,
                activity_type=OUTING_COMPLETE,
                message=message,
                payload={
                    'outing_id': summary.outing_id,
                    'round_id': round_id,
                    'course_id': summary.course_id,
                    'course_name': course,
                    'hole_count': summary.hole_count,
                    'player_count': player_count,
                    'group_count': summary.group_count,
                    'region_key': summary.region_key,
                    'winner': _leaderboard_row(winner),
                    'my_position': entry.rank,
                    'my_gross': entry.gross_score,
                    'my_net': entry.net_score,
                    'top_finishers': top_finishers,
                    'final_leaderboard': full_board,
                    'ttl_days': FeedConstants.FEED_CARD_TTL_DAYS,
                },
            ))

        organizer_id = summary.organizer_id
        if organizer_id and all(e.player_id != organizer_id for e in leaderboard):
            notifications.append(Notification(
                recipient_id=organizer_id,
                kind=OUTING_COMPLETE,
                message=(
                    f"Your outing at {course} is complete! {winner.display_name} wins "
                    f"with Net {winner.net_score} {trophy}"
                ),
                outing_id=summary.outing_id,
                round_id=summary.first_round_id,
            ))

        return AnnouncementBatch(notifications=notifications, feed_cards=feed_cards)

    def plan_rivalry_changes(self, changes: List[RivalryChange],
                             context: RivalryContext) -> AnnouncementBatch:
        """
        Notifications for notifiable changes, feed cards for all of them.

        Each change notifies both players. Feed cards are written most
        important first and capped per recipient, so the lowest priority
        cards are the ones dropped.
        """
        notifications = [
            Notification(
                recipient_id=player_id,
                kind=RIVALRY_UPDATE,
                message=change.message,
                outing_id=context.outing_id,
                round_id=context.round_id,
                pair_key=change.pair_key,
                change_type=change.change_type.value,
                navigation_target="profile",
            )
            for change in changes if change.change_type.is_notifiable
            for player_id in change.player_ids
        ]

        cards_per_recipient: Dict[str, int] = defaultdict(int)
        feed_cards: List[FeedCard] = []
        dropped = 0
        for change in sorted(changes, key=lambda c: c.priority):
            for player in (change.player_a, change.player_b):
                if cards_per_recipient[player.player_id] >= self.max_cards_per_recipient:
                    dropped += 1
                    continue
                cards_per_recipient[player.player_id] += 1
                feed_cards.append(FeedCard(
                    recipient_id=player.player_id,
                    activity_type=RIVALRY_UPDATE,
                    message=change.message,
                    priority=change.priority,
                    payload={
                        'pair_key': change.pair_key,
                        'change_type': change.change_type.value,
                        'display_name': player.display_name,
                        'avatar': player.avatar,
                        'player_a': {'player_id': change.player_a.player_id,
                                     'display_name': change.player_a.display_name},
                        'player_b': {'player_id': change.player_b.player_id,
                                     'display_name': change.player_b.display_name},
                        'record': change.record.to_dict(),
                        'outing_id': context.outing_id,
                        'round_id': context.round_id,
                        'course_id': context.course_id,
                        'course_name': context.course_name,
                        'region_key': context.region_key,
                        'ttl_days': FeedConstants.FEED_CARD_TTL_DAYS,
                    },
                ))

        if dropped:
            logger.debug(f"{context.source_key}: dropped {dropped} rivalry feed cards over the per-player cap")
        return AnnouncementBatch(notifications=notifications, feed_cards=feed_cards)


class NotificationSink(ABC):
    """Downstream notification/feed and tournament presentation collaborator"""

    @abstractmethod
    async def publish_outing_complete(self, outing_id: int, leaderboard: List[LeaderboardEntry],
                                      notifications: List[Notification], feed_cards: List[FeedCard]):
        pass

    @abstractmethod
    async def publish_rivalry_changes(self, notifications: List[Notification], feed_cards: List[FeedCard]):
        pass

    @abstractmethod
    async def publish_standings(self, table: StandingsTable):
        pass


class LoggingNotificationSink(NotificationSink):
    """Logs what would be delivered; used when no transport is wired in"""

    async def publish_outing_complete(self, outing_id, leaderboard, notifications, feed_cards):
        logger.info(
            f"Outing {outing_id} complete: {len(leaderboard)} finishers, "
            f"{len(notifications)} notifications, {len(feed_cards)} feed cards"
        )
        for notification in notifications:
            logger.debug(f"  -> {notification.recipient_id}: {notification.message}")

    async def publish_rivalry_changes(self, notifications, feed_cards):
        logger.info(f"Rivalry updates: {len(notifications)} notifications, {len(feed_cards)} feed cards")
        for card in feed_cards:
            logger.debug(f"  -> {card.recipient_id} [{card.payload.get('change_type')}]: {card.message}")

    async def publish_standings(self, table):
        leader = table.ranked()[0].display_name if table.ranked() else "nobody"
        logger.info(
            f"Series {table.series_id} standings after round {table.round_index} "
            f"({table.scoring_mode}): {leader} leads"
        )
