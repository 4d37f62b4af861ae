"""
Services package for the outing results pipeline.
"""

from .base import BaseService
from .completion_barrier import CompletionBarrierService
from .rivalry_ledger import RivalryLedgerService
from .standings_service import StandingsService
from .announcements import AnnouncementPlanner, NotificationSink, LoggingNotificationSink
from .delivery_guard import DeliveryGuard
from .outing_pipeline import OutingPipeline

__all__ = [
    'BaseService', 'CompletionBarrierService', 'RivalryLedgerService', 'StandingsService',
    'AnnouncementPlanner', 'NotificationSink', 'LoggingNotificationSink',
    'DeliveryGuard', 'OutingPipeline',
]
