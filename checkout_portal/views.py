# checkout_portal/views.py
"""Page-level summaries built from already-fetched backend collections."""
from typing import Dict, List

from .classifier import classify, is_overdue, utc_now
from .models import CheckoutRequest, RequestStatus, Role

RECENT_REQUESTS = 4


# ----------------- dashboard -----------------

def dashboard_stats(viewer_role, resources, requests, due_returns, overdue_returns, now=None):
    """
    Headline numbers for the dashboard.

    Admins get the backend's overdue list count; other users get the count
    of their own approved requests that are past their return date.
    """
    now = utc_now(now)
    is_admin = Role.parse(viewer_role) is Role.ADMIN

    if is_admin:
        overdue = len(overdue_returns or [])
    else:
        overdue = sum(1 for r in requests if is_overdue(r, now))

    return {
        "totalResources": len(resources),
        "myRequests": len(requests),
        "pendingRequests": sum(1 for r in requests if r.status is RequestStatus.PENDING),
        "approvedRequests": sum(1 for r in requests if r.status is RequestStatus.APPROVED),
        "overdueReturns": overdue,
        "dueReturns": len(due_returns or []),
    }


def recent_requests(requests: List[CheckoutRequest], limit=RECENT_REQUESTS):
    return [r.to_dict() for r in requests[:limit]]


# ----------------- requests -----------------

def request_row(request: CheckoutRequest, viewer_role, now=None) -> dict:
    row = request.to_dict()
    row.update(classify(request, now).to_dict())
    # priority badges only matter to admins reviewing faculty requests
    if (
        request.priority is not None
        and request.requester_role is Role.FACULTY
        and Role.parse(viewer_role) is Role.ADMIN
    ):
        row["priorityLabel"] = request.priority.label
    return row


# ----------------- resources -----------------

def filter_resources(resources, search="", status="all", category="all"):
    filtered = list(resources)
    if search:
        term = search.lower()
        filtered = [
            r for r in filtered
            if term in r.name.lower()
            or term in r.description.lower()
            or term in r.category.lower()
        ]
    if status and status != "all":
        filtered = [r for r in filtered if r.status == status]
    if category and category != "all":
        filtered = [r for r in filtered if r.category == category]
    return filtered


def resource_categories(resources) -> List[str]:
    return sorted({r.category for r in resources if r.category})


# ----------------- users -----------------

def user_request_stats(requests) -> Dict[str, dict]:
    stats = {}
    for req in requests:
        user_id = req.requester_id
        if user_id is None:
            continue
        entry = stats.setdefault(
            str(user_id),
            {"requestCount": 0, "approvedCount": 0, "pendingCount": 0, "lastRequest": None},
        )
        entry["requestCount"] += 1
        if req.status is RequestStatus.APPROVED:
            entry["approvedCount"] += 1
        elif req.status is RequestStatus.PENDING:
            entry["pendingCount"] += 1
        if req.created_at is not None and (
            entry["lastRequest"] is None or req.created_at > entry["lastRequest"]
        ):
            entry["lastRequest"] = req.created_at

    for entry in stats.values():
        if entry["lastRequest"] is not None:
            entry["lastRequest"] = entry["lastRequest"].isoformat()
    return stats


def user_overview(users, requests) -> dict:
    return {
        "total": len(users),
        "students": sum(1 for u in users if u.role is Role.STUDENT),
        "faculty": sum(1 for u in users if u.role is Role.FACULTY),
        "admins": sum(1 for u in users if u.role is Role.ADMIN),
        "individual": user_request_stats(requests),
    }


def filter_users(users, search="", role="all"):
    filtered = list(users)
    if search:
        term = search.lower()
        filtered = [u for u in filtered if term in u.name.lower() or term in u.email.lower()]
    if role and role != "all":
        filtered = [u for u in filtered if u.role is not None and u.role.value == role]
    return filtered
