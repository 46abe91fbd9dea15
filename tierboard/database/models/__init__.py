from .timestamps import utc_now
from .player import Player
from .gamemode_score import GamemodeScore
from .transaction_log import TransactionLog

__all__ = [
    "Player",
    "GamemodeScore",
    "TransactionLog",
    "utc_now",
]
