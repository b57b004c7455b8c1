# checkout_portal/classifier.py
"""
Overdue / due-soon classification of approved requests.

A "day" is a fixed 24 hour window measured between UTC instants, which is
what the backend's ``/overdue-returns`` and ``/due-returns`` compute too.
Date-only return dates are midnight UTC (see ``models.parse_timestamp``).
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import CheckoutRequest, RequestStatus

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
DUE_SOON_DAYS = 7


def utc_now(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def days_overdue(return_date: Optional[datetime], now: datetime) -> int:
    if return_date is None or return_date >= now:
        return 0
    return math.floor((now - return_date) / DAY)


def days_until_due(return_date: Optional[datetime], now: datetime) -> int:
    if return_date is None or return_date <= now:
        return 0
    return math.ceil((return_date - now) / DAY)


def is_overdue(request: CheckoutRequest, now: Optional[datetime] = None) -> bool:
    now = utc_now(now)
    return (
        request.status is RequestStatus.APPROVED
        and request.return_date is not None
        and request.return_date < now
    )


def is_due_soon(request: CheckoutRequest, now: Optional[datetime] = None,
                window_days: int = DUE_SOON_DAYS) -> bool:
    now = utc_now(now)
    return (
        request.status is RequestStatus.APPROVED
        and request.return_date is not None
        and now <= request.return_date <= now + timedelta(days=window_days)
    )


def overdue_severity(days: int) -> str:
    if days >= 7:
        return "high"
    if days >= 3:
        return "medium"
    return "low"


def due_severity(days: int) -> str:
    if days <= 1:
        return "high"
    if days <= 3:
        return "medium"
    return "low"


def days_text(days: int, overdue: bool = False) -> str:
    if days == 1:
        return "1 day overdue" if overdue else "due in 1 day"
    return f"{days} days overdue" if overdue else f"due in {days} days"


@dataclass(frozen=True)
class Classification:
    is_overdue: bool
    days_overdue: int
    days_until_due: int

    @property
    def severity(self) -> Optional[str]:
        if self.is_overdue:
            return overdue_severity(self.days_overdue)
        if self.days_until_due > 0:
            return due_severity(self.days_until_due)
        return None

    def to_dict(self):
        return {
            "isOverdue": self.is_overdue,
            "daysOverdue": self.days_overdue,
            "daysUntilDue": self.days_until_due,
            "severity": self.severity,
        }


def classify(request: CheckoutRequest, now: Optional[datetime] = None) -> Classification:
    now = utc_now(now)
    overdue = is_overdue(request, now)
    approved = request.status is RequestStatus.APPROVED
    return Classification(
        is_overdue=overdue,
        days_overdue=days_overdue(request.return_date, now) if overdue else 0,
        days_until_due=days_until_due(request.return_date, now) if approved else 0,
    )


def annotate(items, now: Optional[datetime] = None, overdue: bool = True):
    """
    Attach day counts to a server-supplied overdue (or due) list.

    The backend already sends ``daysOverdue``/``daysUntilDue``; we recompute
    them from ``returnDate`` and keep ours. A mismatch is logged.
    """
    now = utc_now(now)
    out = []
    for item in items or []:
        req = CheckoutRequest.from_dict(item)
        if overdue:
            field_name, days = "daysOverdue", days_overdue(req.return_date, now)
            severity = overdue_severity(days)
        else:
            field_name, days = "daysUntilDue", days_until_due(req.return_date, now)
            severity = due_severity(days)

        server_days = item.get(field_name)
        if server_days is not None and server_days != days:
            logger.debug(
                "Request %s: backend says %s=%s, computed %s", req.id, field_name, server_days, days
            )

        row = dict(item)
        row[field_name] = days
        row["severity"] = severity
        row["daysText"] = days_text(days, overdue)
        out.append(row)
    return out
