# checkout_portal/ordering.py
"""Filtering and ordering of the request list shown on the Requests page."""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .classifier import DUE_SOON_DAYS, is_due_soon, is_overdue, utc_now
from .models import CheckoutRequest, RequestStatus, Role

DEFAULT_PRIORITY_SCORE = 5

STATUS_FILTERS = tuple(s.value for s in RequestStatus)
FILTER_KEYS = ("all",) + STATUS_FILTERS + ("overdue", "due")


def matches_filter(request: CheckoutRequest, filter_key: str, now: datetime,
                   due_window_days: int = DUE_SOON_DAYS) -> bool:
    if filter_key == "all":
        return True
    if filter_key == "overdue":
        return is_overdue(request, now)
    if filter_key == "due":
        return is_due_soon(request, now, due_window_days)
    if filter_key in STATUS_FILTERS:
        return request.status is not None and request.status.value == filter_key
    raise ValueError(f"Unknown request filter: {filter_key!r}")


def _created_ts(request: CheckoutRequest) -> float:
    if request.created_at is None:
        return float("-inf")
    return request.created_at.timestamp()


def _admin_key(request: CheckoutRequest):
    # pending first, then lowest priority score, then newest
    if request.status is RequestStatus.PENDING:
        score = request.priority_score
        if score is None:
            score = DEFAULT_PRIORITY_SCORE
        return (0, score, -_created_ts(request))
    return (1, 0, -_created_ts(request))


def _newest_first_key(request: CheckoutRequest):
    return -_created_ts(request)


def filter_and_sort(requests: Iterable[CheckoutRequest], filter_key: str = "all",
                    viewer_role=None, now: Optional[datetime] = None,
                    due_window_days: int = DUE_SOON_DAYS) -> List[CheckoutRequest]:
    """
    Return the requests matching ``filter_key``, ordered for ``viewer_role``.

    Admins see pending requests first (by ascending priority score, absent
    scores count as 5), everyone else sees newest first. The input is not
    modified.
    """
    now = utc_now(now)
    filtered = [r for r in requests if matches_filter(r, filter_key, now, due_window_days)]
    if Role.parse(viewer_role) is Role.ADMIN:
        return sorted(filtered, key=_admin_key)
    return sorted(filtered, key=_newest_first_key)


def filter_counts(requests: Iterable[CheckoutRequest], now: Optional[datetime] = None,
                  due_window_days: int = DUE_SOON_DAYS) -> Dict[str, int]:
    now = utc_now(now)
    requests = list(requests)
    return {
        key: sum(1 for r in requests if matches_filter(r, key, now, due_window_days))
        for key in FILTER_KEYS
    }
