from .database_service import DatabaseService
from .redis_service import RedisService
from .logger import get_logger
from .event_bus import EventBus
from .lock_service import LockService
from .transaction_logger import TransactionLogger
from .tier_catalog import TierCatalog
from .rank_title_service import RankTitleResolver
from .score_ledger import ScoreLedger
from .points_aggregator import PointsAggregator
from .ranking_service import RankingService
from .player_service import PlayerService
from .placement_service import PlacementService
from .bulk_submission_service import BulkSubmissionService

__all__ = [
    "DatabaseService",
    "RedisService",
    "get_logger",
    "EventBus",
    "LockService",
    "TransactionLogger",
    "TierCatalog",
    "RankTitleResolver",
    "ScoreLedger",
    "PointsAggregator",
    "RankingService",
    "PlayerService",
    "PlacementService",
    "BulkSubmissionService",
]
