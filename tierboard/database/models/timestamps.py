from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlmodel import Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. Every stored timestamp uses this."""
    return datetime.now(timezone.utc)


def timestamp_field():
    return Field(default_factory=utc_now, sa_type=DateTime(timezone=True), nullable=False)
