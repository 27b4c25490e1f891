from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class SequenceCounter(SQLModel, table=True):
    """One row per (scope, period). Written only by the atomic upsert-increment."""

    __tablename__ = "sequence_counters"
    scope: str = Field(primary_key=True)
    period_key: str = Field(default="", primary_key=True)  # "" when the scope never resets
    last_value: int = 0
    updated_at: datetime = Field(default_factory=_utc_naive_now)
