"""Hour logging form as an explicit state value.

Each function takes a FormState and returns a new one; nothing is mutated
in place. A session holds one FormState and replaces it after every
user action.
"""
from dataclasses import dataclass, field, replace

from errors import InvalidSubmission
from models import CATEGORY_FIELDS, HourCategory, HourEntry
from reconcile import parse_category, to_date_key
from schemas import HourSubmission


@dataclass(frozen=True)
class FormState:
    user_id: str
    selected_date: str | None = None
    hour_type: HourCategory | None = None
    values: dict[str, str] = field(default_factory=dict)
    # Stored entries for the selected date: category -> {"hours": ..., field: ...}
    entries: dict[HourCategory, dict] = field(default_factory=dict)


def _snapshot(entry: HourEntry) -> dict:
    category = HourCategory(entry.hour_type)
    return entry.model_dump(include={"hours", *CATEGORY_FIELDS[category]})


def select_date(state: FormState, day, entries: dict[HourCategory, HourEntry]) -> FormState:
    """Switch to another date, keeping the entries already stored for it."""
    return replace(
        state,
        selected_date=to_date_key(day),
        hour_type=None,
        values={},
        entries={category: _snapshot(entry) for category, entry in entries.items()},
    )


def choose_category(state: FormState, category) -> FormState:
    """Open the form for one category, pre-filled with what is stored for the date."""
    if state.selected_date is None:
        raise InvalidSubmission("Select a date before choosing an hour type")
    category = parse_category(category)
    stored = state.entries.get(category, {})
    values = {name: str(value) for name, value in stored.items() if value is not None}
    return replace(state, hour_type=category, values=values)


def update_field(state: FormState, name: str, value: str) -> FormState:
    if state.hour_type is None:
        raise InvalidSubmission("Choose an hour type before editing fields")
    if name != "hours" and name not in CATEGORY_FIELDS[state.hour_type]:
        raise InvalidSubmission(f"{name} is not recorded for {state.hour_type.value} hours")
    return replace(state, values={**state.values, name: value})


def clear_category(state: FormState) -> FormState:
    return replace(state, hour_type=None, values={})


def previous_hours(state: FormState) -> float | None:
    """Hours already stored for the chosen category and date, if any."""
    if state.hour_type is None or state.hour_type not in state.entries:
        return None
    return state.entries[state.hour_type]["hours"]


def build_submission(state: FormState) -> HourSubmission:
    """Turn the form into a submission; blank hours count as zero, blank fields are left out."""
    if state.selected_date is None or state.hour_type is None:
        raise InvalidSubmission("Select a date and an hour type before submitting")

    raw_hours = (state.values.get("hours") or "").strip()
    try:
        hours = float(raw_hours) if raw_hours else 0.0
    except ValueError as e:
        raise InvalidSubmission(f"Hours must be a number (got {raw_hours!r})") from e

    payload = {
        name: value
        for name, value in state.values.items()
        if name != "hours" and value is not None and value.strip()
    }
    return HourSubmission(hours=hours, **payload)
