from typing import Optional, Dict, Any
from sqlmodel import SQLModel, Field, Column
from sqlalchemy import Index, JSON, Text
from datetime import datetime

from .timestamps import timestamp_field


class TransactionLog(SQLModel, table=True):
    """
    Audit trail for placement changes, player deletions and batch runs.

    Attributes:
        player_id: Player ID (None for batch-level records)
        transaction_type: Type of transaction (placement_assigned, batch_submitted, ...)
        details: Structured JSON data about the transaction
        context: Where the transaction originated (command, batch, system)
        timestamp: When the transaction occurred

    Indexes:
        - (player_id, timestamp) for player history queries
        - transaction_type for aggregate queries
        - timestamp for cleanup of old logs
    """

    __tablename__ = "transaction_logs"
    __table_args__ = (
        Index("ix_transaction_logs_player_time", "player_id", "timestamp"),
        Index("ix_transaction_logs_type", "transaction_type"),
        Index("ix_transaction_logs_timestamp", "timestamp"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: Optional[int] = Field(default=None)

    transaction_type: str = Field(max_length=100, nullable=False)
    details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    context: str = Field(default="unknown", sa_column=Column(Text, nullable=False))

    timestamp: datetime = timestamp_field()

    def __repr__(self) -> str:
        return (
            f"<TransactionLog(id={self.id}, player={self.player_id}, "
            f"type='{self.transaction_type}', time={self.timestamp})>"
        )
