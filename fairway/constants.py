"""
Pipeline-wide constants for the Fairway outing results pipeline.

This module contains the fixed rule numbers used by the leaderboard,
rivalry and feed logic. Deployment-tunable caps live in Config.
"""

class LeaderboardConstants:
    """Constants related to leaderboard construction."""
    
    # Par assumed for a hole when the round carries no par data
    DEFAULT_HOLE_PAR = 4
    
    # Default round length
    DEFAULT_HOLE_COUNT = 18

class RivalryConstants:
    """Constants related to rivalry state tracking."""
    
    # Size of the recent results ring buffer stored on each rivalry
    MAX_RECENT_RESULTS = 10
    
    # Number of most recent results considered for the belt
    BELT_WINDOW = 5
    
    # A streak of at least this length is announced when it is snapped
    STREAK_BROKEN_MIN = 3
    
    # A streak is announced when it grows to at least this length
    STREAK_EXTENDED_MIN = 4
    
    # Total matches interval for milestone announcements
    MILESTONE_INTERVAL = 10
    
    # Marker stored as winner id for a tied match
    TIE = "tie"
    
    # Separator used in deterministic pair keys
    PAIR_KEY_SEPARATOR = "_"

class FeedConstants:
    """Constants for downstream feed and notification payloads."""
    
    # Players included in the outing-complete feed snapshot
    TOP_FINISHERS = 5
    
    # Feed cards expire after this many days
    FEED_CARD_TTL_DAYS = 30
    
    # Positions announced as a podium finish
    PODIUM_POSITIONS = 3
    
    # Emoji for announcements
    TROPHY_EMOJI = "🏆"
