from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from sqlmodel import SQLModel

from models import CATEGORY_FIELDS, HourCategory, HourEntry, UserTotals
from progress import REQUIRED_HOURS, remaining_hours

MODALITIES = ("In-person", "Telehealth", "Phone")
POPULATIONS = ("Adults", "Children", "Adolescents", "Elderly")
SETTINGS = ("Private Practice", "Hospital", "Community Center", "School")
DIAGNOSES = ("Depression", "Anxiety", "PTSD", "Substance Abuse", "Other")


def _one_of(value, options, label):
    if value is not None and value not in options:
        raise ValueError(f"{label} must be one of: {', '.join(options)}")
    return value


class HourSubmission(BaseModel):
    hours: float = Field(ge=0, allow_inf_nan=False)
    modality: str | None = None
    population: str | None = None
    setting: str | None = None
    diagnosis: str | None = None
    client_concerns: str | None = None
    supervisor_name: str | None = None
    topics_discussed: str | None = None
    notes: str | None = None

    @field_validator("modality")
    @classmethod
    def validate_modality(cls, v):
        return _one_of(v, MODALITIES, "Modality")

    @field_validator("population")
    @classmethod
    def validate_population(cls, v):
        return _one_of(v, POPULATIONS, "Population")

    @field_validator("setting")
    @classmethod
    def validate_setting(cls, v):
        return _one_of(v, SETTINGS, "Setting")

    @field_validator("diagnosis")
    @classmethod
    def validate_diagnosis(cls, v):
        return _one_of(v, DIAGNOSES, "Diagnosis")

    @field_validator("client_concerns", "supervisor_name", "topics_discussed", "notes")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    def extra_fields(self) -> dict:
        """Descriptive fields the caller actually sent; unsent ones keep their stored value."""
        return self.model_dump(exclude_unset=True, exclude={"hours"})


class HourEntryResponse(SQLModel):
    id: int
    user_id: str
    date: str
    hour_type: str
    hours: float
    modality: str | None = None
    population: str | None = None
    setting: str | None = None
    diagnosis: str | None = None
    client_concerns: str | None = None
    supervisor_name: str | None = None
    topics_discussed: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entry(cls, entry: HourEntry) -> "HourEntryResponse":
        return cls(**entry.model_dump())


class TotalsResponse(BaseModel):
    user_id: str
    total_direct_hours: float
    total_indirect_hours: float
    total_supervision_hours: float
    remaining_direct_hours: float
    remaining_indirect_hours: float
    remaining_supervision_hours: float
    updated_at: datetime | None = None

    @classmethod
    def from_totals(cls, totals: UserTotals) -> "TotalsResponse":
        remaining = remaining_hours(totals)
        return cls(
            user_id=totals.user_id,
            total_direct_hours=totals.total_direct_hours,
            total_indirect_hours=totals.total_indirect_hours,
            total_supervision_hours=totals.total_supervision_hours,
            remaining_direct_hours=remaining[HourCategory.DIRECT],
            remaining_indirect_hours=remaining[HourCategory.INDIRECT],
            remaining_supervision_hours=remaining[HourCategory.SUPERVISION],
            updated_at=totals.updated_at,
        )


class SubmitResponse(BaseModel):
    ok: bool
    entry: HourEntryResponse
    previous_hours: float | None = None  # None when nothing was logged for this key before
    delta: float
    totals: TotalsResponse


class DateHoursResponse(BaseModel):
    date: str
    hours: dict[str, HourEntryResponse]


class InconsistencyRow(BaseModel):
    user_id: str
    hour_type: str
    stored: float | None = None
    expected: float


class ConsistencyResponse(BaseModel):
    ok: bool
    inconsistencies: list[InconsistencyRow]


class OptionsResponse(BaseModel):
    hour_types: list[str]
    modalities: list[str]
    populations: list[str]
    settings: list[str]
    diagnoses: list[str]
    category_fields: dict[str, list[str]]
    required_hours: dict[str, float]

    @classmethod
    def current(cls) -> "OptionsResponse":
        return cls(
            hour_types=[c.value for c in HourCategory],
            modalities=list(MODALITIES),
            populations=list(POPULATIONS),
            settings=list(SETTINGS),
            diagnoses=list(DIAGNOSES),
            category_fields={c.value: list(names) for c, names in CATEGORY_FIELDS.items()},
            required_hours={c.value: v for c, v in REQUIRED_HOURS.items()},
        )
