# checkout_portal/validation.py
"""Client-side checks run before a request or denial is sent to the backend.

These are advisory: the backend enforces the same limits on its side.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Optional

from .models import Role

MAX_NOTES_LENGTH = 500
MIN_DENIAL_REASON_LENGTH = 10


@dataclass
class ValidationResult:
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self):
        return {"valid": self.valid, "errors": dict(self.errors)}


def _whole(value) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _who(role) -> str:
    parsed = Role.parse(role)
    if parsed is not None:
        return parsed.value.capitalize()
    return str(role).capitalize() if role else "User"


def validate_request(draft, policy, resource, role=None) -> ValidationResult:
    """
    Check a draft ``{"quantity", "duration", "priority"}`` against the
    resolved policy and the resource's availability.

    Only the first failed bound is reported per field.
    """
    result = ValidationResult()
    quantity = _whole(draft.get("quantity"))
    duration = _whole(draft.get("duration"))
    available = resource.available_quantity if resource is not None else None

    if quantity is None or quantity < 1:
        result.errors["quantity"] = "Quantity must be at least 1"
    elif available is not None and quantity > available:
        result.errors["quantity"] = f"Only {available} units available"
    elif policy.max_quantity is not None and quantity > policy.max_quantity:
        result.errors["quantity"] = f"{_who(role)} can request maximum {policy.max_quantity} units"

    if duration is None or duration < 1:
        result.errors["duration"] = "Duration must be at least 1 day"
    elif duration > policy.max_duration:
        result.errors["duration"] = f"{_who(role)} can checkout for maximum {policy.max_duration} days"

    priority = draft.get("priority")
    if priority and priority not in policy.allowed_priorities:
        result.errors["priority"] = f"{_who(role)} cannot request {priority} priority"

    return result


def compute_return_date(duration, submitted=None) -> date:
    """Submission date plus ``duration`` calendar days."""
    if submitted is None:
        submitted = datetime.now(timezone.utc)
    if isinstance(submitted, datetime):
        submitted = submitted.date()
    return submitted + timedelta(days=int(duration))


def build_request_payload(draft, resource, policy, role=None, submitted=None) -> dict:
    """Body for ``POST /requests``. Call only after ``validate_request`` passed."""
    duration = _whole(draft.get("duration"))
    parsed = Role.parse(role)
    return {
        "resourceId": resource.id,
        "quantity": _whole(draft.get("quantity")),
        "duration": duration,
        "returnDate": compute_return_date(duration, submitted).isoformat(),
        "notes": (draft.get("notes") or "").strip()[:MAX_NOTES_LENGTH],
        "priority": draft.get("priority") or policy.default_priority,
        "userRole": parsed.value if parsed else role,
    }


def validate_denial_reason(reason) -> Optional[str]:
    """Return an error message, or None when the reason is acceptable."""
    text = (reason or "").strip()
    if not text:
        return "Please provide a reason for denial"
    if len(text) < MIN_DENIAL_REASON_LENGTH:
        return f"Denial reason must be at least {MIN_DENIAL_REASON_LENGTH} characters"
    return None
