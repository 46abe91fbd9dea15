from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Index
from datetime import datetime

from .timestamps import timestamp_field, utc_now


class Player(SQLModel, table=True):
    """
    A ranked player and their denormalized point total.

    global_points is a cache of the sum of the player's ranked ledger entries.
    Only PointsAggregator writes it; everything else reads it.

    Attributes:
        id: Surrogate key, also the ranking tie-break (lower id ranks first)
        ign: In-game name, unique and case-sensitive (1-16 chars, [A-Za-z0-9_])
        java_username: Optional secondary name used for avatar lookup
        region: Optional region code (NA/EU/ASIA/OCE/SA/AF)
        device: Optional device category (Mobile/PC/Console)
        global_points: Sum of current ranked placements

    Indexes:
        - ign (unique)
        - global_points + id composite for the global leaderboard
    """

    __tablename__ = "players"
    __table_args__ = (
        Index("ix_players_ign", "ign", unique=True),
        Index("ix_players_points_id", "global_points", "id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    ign: str = Field(max_length=16, nullable=False)
    java_username: Optional[str] = Field(default=None, max_length=32)
    region: Optional[str] = Field(default=None, max_length=8)
    device: Optional[str] = Field(default=None, max_length=16)

    global_points: int = Field(default=0, ge=0, nullable=False)

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()

    def touch(self) -> None:
        """Update updated_at timestamp to current time."""
        self.updated_at = utc_now()

    def __repr__(self) -> str:
        return (
            f"<Player(id={self.id}, ign='{self.ign}', "
            f"points={self.global_points})>"
        )
