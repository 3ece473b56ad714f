from datetime import UTC, datetime
from enum import Enum

from sqlmodel import Field, SQLModel, UniqueConstraint


class HourCategory(str, Enum):
    DIRECT = "direct"
    INDIRECT = "indirect"
    SUPERVISION = "supervision"


# Descriptive fields each category may carry, besides the hours themselves
CATEGORY_FIELDS = {
    HourCategory.DIRECT: ("modality", "population", "setting", "diagnosis", "client_concerns"),
    HourCategory.INDIRECT: ("notes",),
    HourCategory.SUPERVISION: (
        "modality",
        "population",
        "setting",
        "diagnosis",
        "supervisor_name",
        "topics_discussed",
        "client_concerns",
    ),
}


class HourEntry(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("user_id", "date", "hour_type", name="uniq_hourentry_user_date_type"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    date: str = Field(index=True)  # YYYY-MM-DD format
    hour_type: str = Field(index=True)
    hours: float = Field(default=0.0)
    modality: str | None = Field(default=None)
    population: str | None = Field(default=None)
    setting: str | None = Field(default=None)
    diagnosis: str | None = Field(default=None)
    client_concerns: str | None = Field(default=None)
    supervisor_name: str | None = Field(default=None)
    topics_discussed: str | None = Field(default=None)
    notes: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = Field(default=None)


class UserTotals(SQLModel, table=True):
    user_id: str = Field(primary_key=True)
    total_direct_hours: float = Field(default=0.0)
    total_indirect_hours: float = Field(default=0.0)
    total_supervision_hours: float = Field(default=0.0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = Field(default=None)

    def total_for(self, category: HourCategory) -> float:
        return getattr(self, total_column(category))


def total_column(category: HourCategory) -> str:
    """Name of the UserTotals column holding the running sum for a category."""
    return f"total_{HourCategory(category).value}_hours"
