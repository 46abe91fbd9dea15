from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Index, UniqueConstraint
from datetime import datetime

from .timestamps import timestamp_field


class GamemodeScore(SQLModel, table=True):
    """
    Current placement of one player in one gamemode (a score ledger entry).

    A new placement for the same (player, gamemode) overwrites this row.
    score is copied from the tier catalog at write time and is not
    recomputed if the catalog later changes.

    Attributes:
        player_id: Owner's player ID
        gamemode: Lowercase gamemode key (crystal, sword, smp, ...)
        internal_tier: Tier code (HT1..LT5, Retired, Not Ranked)
        display_tier: Display label at write time (TIER 1..TIER 5, ...)
        score: Points at write time

    Unique Constraint:
        (player_id, gamemode) - one current placement per pair

    Indexes:
        - player_id
        - (gamemode, score) for per-gamemode leaderboards
    """

    __tablename__ = "gamemode_scores"
    __table_args__ = (
        UniqueConstraint("player_id", "gamemode", name="uq_player_gamemode"),
        Index("ix_gamemode_scores_player_id", "player_id"),
        Index("ix_gamemode_scores_gamemode_score", "gamemode", "score"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: int = Field(foreign_key="players.id", nullable=False)
    gamemode: str = Field(max_length=16, nullable=False)

    internal_tier: str = Field(max_length=16, nullable=False)
    display_tier: str = Field(max_length=16, nullable=False)
    score: int = Field(default=0, ge=0, nullable=False)

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()

    def __repr__(self) -> str:
        return (
            f"<GamemodeScore(player={self.player_id}, gamemode='{self.gamemode}', "
            f"tier='{self.internal_tier}', score={self.score})>"
        )
