"""Failures raised by the hour log.

Validation problems are raised before anything is read or written. Store
failures carry the stage that failed so callers can tell a stale aggregate
from a rejected entry.
"""


class HourLogError(Exception):
    """Base class for all hour log failures."""


class InvalidSubmission(HourLogError, ValueError):
    """Submission rejected before touching the store."""


class InvalidCategory(InvalidSubmission):
    def __init__(self, category):
        self.category = category
        super().__init__(
            f"Hour type must be one of: direct, indirect, supervision (got {category!r})"
        )


class InvalidDate(InvalidSubmission):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid date {value!r}. Use YYYY-MM-DD")


class LookupFailure(HourLogError):
    """Reading the prior entry or the user's totals failed."""


class WriteFailure(HourLogError):
    stage = "write"


class EntryWriteFailure(WriteFailure):
    stage = "entry"


class AggregateWriteFailure(WriteFailure):
    stage = "aggregate"
