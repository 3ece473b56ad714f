"""Licensure requirements and hours still to be logged."""
import os

from models import HourCategory, UserTotals

REQUIRED_HOURS = {
    HourCategory.DIRECT: float(os.getenv("REQUIRED_DIRECT_HOURS", "3000")),
    HourCategory.INDIRECT: float(os.getenv("REQUIRED_INDIRECT_HOURS", "500")),
    HourCategory.SUPERVISION: float(os.getenv("REQUIRED_SUPERVISION_HOURS", "100")),
}


def remaining_hours(totals: UserTotals | None) -> dict[HourCategory, float]:
    """Hours left per category, never below zero."""
    if totals is None:
        return dict(REQUIRED_HOURS)
    return {
        category: max(0.0, required - totals.total_for(category))
        for category, required in REQUIRED_HOURS.items()
    }
