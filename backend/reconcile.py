"""Hour log reconciliation.

Keeps the per-date hour entries and each user's running totals in step. A
submission replaces the stored hours for one (user, date, category) key and
moves the user's total for that category by the difference, so the totals
always equal the sum of the latest hours across all dates.

Both writes share one transaction: the entry is flushed first, the totals
second, and a failure in either rolls back both.
"""
import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from errors import (
    AggregateWriteFailure,
    EntryWriteFailure,
    InvalidCategory,
    InvalidDate,
    InvalidSubmission,
    LookupFailure,
)
from models import CATEGORY_FIELDS, HourCategory, HourEntry, UserTotals, total_column

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriorHours:
    """Hours stored for a key before a submission, or the absence of an entry."""

    present: bool
    hours: float = 0.0

    @classmethod
    def absent(cls) -> "PriorHours":
        return cls(present=False)

    @classmethod
    def of(cls, hours: float) -> "PriorHours":
        return cls(present=True, hours=float(hours or 0.0))

    def as_optional(self) -> float | None:
        return self.hours if self.present else None


@dataclass(frozen=True)
class SubmitResult:
    entry: HourEntry
    totals: UserTotals
    previous: PriorHours
    delta: float


@dataclass(frozen=True)
class Inconsistency:
    user_id: str
    category: HourCategory
    stored: float | None  # None when the user has no totals row at all
    expected: float


def parse_category(value) -> HourCategory:
    try:
        return HourCategory(value)
    except ValueError as e:
        raise InvalidCategory(value) from e


def to_date_key(value) -> str:
    """Render a calendar day as YYYY-MM-DD, dropping any time component."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date().isoformat()
    except ValueError as e:
        raise InvalidDate(value) from e


def normalize_user_id(user_id) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise InvalidSubmission("User id must not be empty")
    return user_id


def check_fields(category: HourCategory, extra_fields: dict | None) -> dict:
    """Return the descriptive fields to merge, rejecting ones the category doesn't record."""
    extra_fields = dict(extra_fields or {})
    unknown = sorted(set(extra_fields) - set(CATEGORY_FIELDS[category]))
    if unknown:
        raise InvalidSubmission(
            f"Fields not recorded for {category.value} hours: {', '.join(unknown)}"
        )
    return extra_fields


def compute_delta(new_hours: float, previous: PriorHours) -> float:
    if not previous.present:
        return new_hours
    return new_hours - previous.hours


def _find_entry(session: Session, user_id: str, date_key: str, category: HourCategory) -> HourEntry | None:
    return session.exec(
        select(HourEntry)
        .where(HourEntry.user_id == user_id)
        .where(HourEntry.date == date_key)
        .where(HourEntry.hour_type == category.value)
    ).first()


def _find_totals(session: Session, user_id: str) -> UserTotals | None:
    # FOR UPDATE is dropped by dialects without row locks (SQLite)
    return session.exec(
        select(UserTotals).where(UserTotals.user_id == user_id).with_for_update()
    ).first()


def _upsert_entry(
    session: Session,
    entry: HourEntry | None,
    user_id: str,
    date_key: str,
    category: HourCategory,
    hours: float,
    fields: dict,
    now: datetime,
) -> HourEntry:
    if entry is None:
        entry = HourEntry(
            user_id=user_id,
            date=date_key,
            hour_type=category.value,
            hours=hours,
            created_at=now,
            updated_at=now,
            **fields,
        )
    else:
        # Merge: only supplied fields overwrite what is stored
        entry.hours = hours
        for name, value in fields.items():
            setattr(entry, name, value)
        entry.updated_at = now
    session.add(entry)
    session.flush()
    return entry


def _apply_delta(
    session: Session,
    totals: UserTotals | None,
    user_id: str,
    category: HourCategory,
    delta: float,
    now: datetime,
) -> None:
    if totals is None:
        values = {total_column(c): 0.0 for c in HourCategory}
        values[total_column(category)] = delta
        session.add(UserTotals(user_id=user_id, created_at=now, updated_at=now, **values))
        session.flush()
        return

    # Increment in the database rather than writing back an absolute value
    name = total_column(category)
    column = getattr(UserTotals, name)
    session.execute(
        update(UserTotals)
        .where(UserTotals.user_id == user_id)
        .values({name: column + delta, "updated_at": now})
    )


def submit(
    session: Session,
    user_id: str,
    day,
    category,
    hours: float,
    extra_fields: dict | None = None,
) -> SubmitResult:
    """Record hours for one (user, date, category) key and adjust the user's totals.

    Args:
        session: Open database session; committed on success, rolled back on failure
        user_id: Externally authenticated user identifier
        day: date, datetime or YYYY-MM-DD string
        category: One of direct, indirect, supervision
        hours: New hours for the key; replaces what was stored
        extra_fields: Descriptive fields to merge into the entry

    Raises:
        InvalidSubmission: Bad user, date, category or fields; nothing is read or written
        LookupFailure: Reading the entry or totals failed
        EntryWriteFailure: Writing the entry failed; totals untouched
        AggregateWriteFailure: Updating totals failed; the entry write is rolled back
    """
    user_id = normalize_user_id(user_id)
    category = parse_category(category)
    date_key = to_date_key(day)
    fields = check_fields(category, extra_fields)
    try:
        hours = float(hours)
    except (TypeError, ValueError) as e:
        raise InvalidSubmission(f"Hours must be a number (got {hours!r})") from e
    if not math.isfinite(hours):
        raise InvalidSubmission(f"Hours must be a finite number (got {hours!r})")

    try:
        existing = _find_entry(session, user_id, date_key, category)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Lookup of {category.value} hours for {user_id} on {date_key} failed: {e}")
        raise LookupFailure(f"Could not read existing {category.value} hours for {date_key}") from e

    previous = PriorHours.of(existing.hours) if existing is not None else PriorHours.absent()
    delta = compute_delta(hours, previous)
    now = datetime.now(UTC)

    try:
        entry = _upsert_entry(session, existing, user_id, date_key, category, hours, fields, now)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Writing {category.value} hours for {user_id} on {date_key} failed: {e}")
        raise EntryWriteFailure(f"Could not save {category.value} hours for {date_key}") from e

    try:
        totals = _find_totals(session, user_id)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Lookup of totals for {user_id} failed, entry write rolled back: {e}")
        raise LookupFailure(f"Could not read hour totals for {user_id}") from e

    try:
        _apply_delta(session, totals, user_id, category, delta, now)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Updating totals for {user_id} failed, entry write rolled back: {e}")
        raise AggregateWriteFailure(f"Could not update hour totals for {user_id}") from e

    session.refresh(entry)
    totals = session.get(UserTotals, user_id)
    logger.info(
        f"Recorded {hours} {category.value} hours for {user_id} on {date_key} "
        f"(previous={previous.as_optional()}, delta={delta})"
    )
    return SubmitResult(entry=entry, totals=totals, previous=previous, delta=delta)


def get_entries_for_date(session: Session, user_id: str, day) -> dict[HourCategory, HourEntry]:
    """Stored entries for one date keyed by category; categories without an entry are left out."""
    user_id = normalize_user_id(user_id)
    date_key = to_date_key(day)
    try:
        entries = session.exec(
            select(HourEntry)
            .where(HourEntry.user_id == user_id)
            .where(HourEntry.date == date_key)
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Lookup of hours for {user_id} on {date_key} failed: {e}")
        raise LookupFailure(f"Could not read hours for {date_key}") from e
    return {HourCategory(entry.hour_type): entry for entry in entries}


def list_entries(session: Session, user_id: str, date_from=None, date_to=None) -> list[HourEntry]:
    user_id = normalize_user_id(user_id)
    stmt = select(HourEntry).where(HourEntry.user_id == user_id)
    if date_from:
        stmt = stmt.where(HourEntry.date >= to_date_key(date_from))
    if date_to:
        stmt = stmt.where(HourEntry.date <= to_date_key(date_to))
    stmt = stmt.order_by(HourEntry.date, HourEntry.hour_type)
    try:
        return list(session.exec(stmt).all())
    except SQLAlchemyError as e:
        logger.error(f"Listing hours for {user_id} failed: {e}")
        raise LookupFailure(f"Could not list hours for {user_id}") from e


def get_totals(session: Session, user_id: str) -> UserTotals | None:
    user_id = normalize_user_id(user_id)
    try:
        return session.get(UserTotals, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Lookup of totals for {user_id} failed: {e}")
        raise LookupFailure(f"Could not read hour totals for {user_id}") from e


def _summed_hours(session: Session, user_id: str | None = None) -> dict[str, dict[HourCategory, float]]:
    stmt = select(HourEntry.user_id, HourEntry.hour_type, func.sum(HourEntry.hours)).group_by(
        HourEntry.user_id, HourEntry.hour_type
    )
    if user_id is not None:
        stmt = stmt.where(HourEntry.user_id == user_id)
    sums: dict[str, dict[HourCategory, float]] = {}
    for owner, hour_type, total in session.execute(stmt).all():
        per_user = sums.setdefault(owner, {c: 0.0 for c in HourCategory})
        per_user[HourCategory(hour_type)] = float(total or 0.0)
    return sums


def expected_totals(session: Session, user_id: str) -> dict[HourCategory, float]:
    """Per-category sums recomputed from the stored entries."""
    user_id = normalize_user_id(user_id)
    try:
        sums = _summed_hours(session, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Summing hours for {user_id} failed: {e}")
        raise LookupFailure(f"Could not sum hours for {user_id}") from e
    return sums.get(user_id, {c: 0.0 for c in HourCategory})


def recompute_totals(session: Session, user_id: str) -> UserTotals | None:
    """Overwrite a user's totals with the sums of their entries.

    Returns None when the user has neither entries nor totals.
    """
    user_id = normalize_user_id(user_id)
    now = datetime.now(UTC)
    try:
        sums = _summed_hours(session, user_id)
        totals = _find_totals(session, user_id)
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Reading hours for {user_id} failed: {e}")
        raise LookupFailure(f"Could not read hours for {user_id}") from e

    if totals is None and user_id not in sums:
        return None
    expected = sums.get(user_id, {c: 0.0 for c in HourCategory})

    try:
        if totals is None:
            totals = UserTotals(user_id=user_id, created_at=now)
        for category, value in expected.items():
            setattr(totals, total_column(category), value)
        totals.updated_at = now
        session.add(totals)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Recomputing totals for {user_id} failed: {e}")
        raise AggregateWriteFailure(f"Could not rewrite hour totals for {user_id}") from e

    session.refresh(totals)
    summary = ", ".join(f"{c.value}={v}" for c, v in expected.items())
    logger.info(f"Recomputed totals for {user_id}: {summary}")
    return totals


def find_inconsistencies(session: Session, abs_tol: float = 1e-6) -> list[Inconsistency]:
    """Every (user, category) whose stored total differs from the sum of its entries."""
    try:
        sums = _summed_hours(session)
        stored = {t.user_id: t for t in session.exec(select(UserTotals)).all()}
    except SQLAlchemyError as e:
        logger.error(f"Consistency check failed: {e}")
        raise LookupFailure("Could not read hours for consistency check") from e

    found = []
    for user_id in sorted(set(sums) | set(stored)):
        expected = sums.get(user_id, {c: 0.0 for c in HourCategory})
        totals = stored.get(user_id)
        for category in HourCategory:
            if totals is None:
                # Entries without a totals row
                found.append(Inconsistency(user_id, category, None, expected[category]))
                continue
            current = totals.total_for(category)
            if not math.isclose(current, expected[category], abs_tol=abs_tol):
                found.append(Inconsistency(user_id, category, current, expected[category]))

    for item in found:
        logger.warning(
            f"Totals out of step for {item.user_id}/{item.category.value}: "
            f"stored={item.stored} expected={item.expected}"
        )
    return found
