import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

import reconcile
from db import create_db_and_tables, get_session
from errors import InvalidDate, InvalidSubmission, LookupFailure, WriteFailure
from schemas import (
    ConsistencyResponse,
    DateHoursResponse,
    HourEntryResponse,
    HourSubmission,
    InconsistencyRow,
    OptionsResponse,
    SubmitResponse,
    TotalsResponse,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    create_db_and_tables()
    logger.info("Database initialized")
    yield


app = FastAPI(title="Clinical Hour Tracker API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins in development
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def to_http_error(e: Exception) -> HTTPException:
    """Map a failure onto the HTTP status the client sees; anything unexpected is a 500."""
    if isinstance(e, InvalidDate):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, InvalidSubmission):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, (LookupFailure, WriteFailure)):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@app.put(
    "/users/{user_id}/dates/{date}/hours/{hour_type}",
    response_model=SubmitResponse,
)
def submit_hours(
    user_id: str,
    date: str,
    hour_type: str,
    request: HourSubmission,
    session: Session = Depends(get_session),
):
    """Log hours of one type for a date, replacing what was logged before and adjusting totals."""
    logger.info(f"Submit request: user={user_id} date={date} hour_type={hour_type} hours={request.hours}")

    try:
        result = reconcile.submit(
            session,
            user_id,
            date,
            hour_type,
            request.hours,
            request.extra_fields(),
        )
    except Exception as e:
        session.rollback()
        logger.error(f"Error submitting hours: {str(e)}")
        raise to_http_error(e) from e

    return SubmitResponse(
        ok=True,
        entry=HourEntryResponse.from_entry(result.entry),
        previous_hours=result.previous.as_optional(),
        delta=result.delta,
        totals=TotalsResponse.from_totals(result.totals),
    )


@app.get("/users/{user_id}/dates/{date}/hours", response_model=DateHoursResponse)
def get_hours_for_date(
    user_id: str,
    date: str,
    session: Session = Depends(get_session),
):
    """Get every hour type logged for a date; types with nothing logged are omitted."""
    logger.info(f"Date hours request: user={user_id} date={date}")

    try:
        date_key = reconcile.to_date_key(date)
        entries = reconcile.get_entries_for_date(session, user_id, date_key)
    except Exception as e:
        logger.error(f"Error getting hours for date: {str(e)}")
        raise to_http_error(e) from e

    return DateHoursResponse(
        date=date_key,
        hours={category.value: HourEntryResponse.from_entry(entry) for category, entry in entries.items()},
    )


@app.get("/users/{user_id}/entries", response_model=list[HourEntryResponse])
def get_entries(
    user_id: str,
    date_from: str = Query(None, description="Start date filter (YYYY-MM-DD)"),
    date_to: str = Query(None, description="End date filter (YYYY-MM-DD)"),
    session: Session = Depends(get_session),
):
    """Get a user's entries with optional date filtering."""
    logger.info(f"Entries request - user: {user_id}, from: {date_from}, to: {date_to}")

    try:
        entries = reconcile.list_entries(session, user_id, date_from, date_to)
    except Exception as e:
        logger.error(f"Error getting entries: {str(e)}")
        raise to_http_error(e) from e

    return [HourEntryResponse.from_entry(entry) for entry in entries]


@app.get("/users/{user_id}/totals", response_model=TotalsResponse)
def get_totals(user_id: str, session: Session = Depends(get_session)):
    """Get running totals and hours remaining toward licensure."""
    try:
        totals = reconcile.get_totals(session, user_id)
    except Exception as e:
        logger.error(f"Error getting totals: {str(e)}")
        raise to_http_error(e) from e

    if totals is None:
        raise HTTPException(status_code=404, detail="No hours logged for this user")
    return TotalsResponse.from_totals(totals)


@app.get("/admin/consistency", response_model=ConsistencyResponse)
def check_consistency(session: Session = Depends(get_session)):
    """Compare stored totals against the sums of logged entries."""
    try:
        found = reconcile.find_inconsistencies(session)
    except Exception as e:
        logger.error(f"Error checking consistency: {str(e)}")
        raise to_http_error(e) from e

    return ConsistencyResponse(
        ok=not found,
        inconsistencies=[
            InconsistencyRow(
                user_id=item.user_id,
                hour_type=item.category.value,
                stored=item.stored,
                expected=item.expected,
            )
            for item in found
        ],
    )


@app.post("/admin/users/{user_id}/recompute-totals", response_model=TotalsResponse)
def recompute_totals(user_id: str, session: Session = Depends(get_session)):
    """Rebuild a user's totals from their logged entries."""
    logger.info(f"Recompute totals request for user: {user_id}")

    try:
        totals = reconcile.recompute_totals(session, user_id)
    except Exception as e:
        logger.error(f"Error recomputing totals: {str(e)}")
        raise to_http_error(e) from e

    if totals is None:
        raise HTTPException(status_code=404, detail="No hours logged for this user")
    return TotalsResponse.from_totals(totals)


@app.get("/options", response_model=OptionsResponse)
def get_options():
    """Dropdown choices, per-type fields and licensure requirements for the form."""
    return OptionsResponse.current()


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Clinical Hour Tracker API", "docs": "/docs"}
