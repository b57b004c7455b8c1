# checkout_portal/models.py
"""
Client-side copies of the checkout backend's entities.

The backend owns every record; the portal only holds what it fetched last.
Each dataclass is built from the backend's camelCase JSON with ``from_dict``
and keeps the original payload in ``raw`` so views can pass it back out
without losing fields we don't model.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class Role(str, Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value) -> Optional["Role"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    RETURN_REQUESTED = "return_requested"
    RETURNED = "returned"

    @classmethod
    def parse(cls, value) -> Optional["RequestStatus"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


class Priority(str, Enum):
    URGENT = "urgent"
    RESEARCH = "research"
    STANDARD = "standard"

    @property
    def label(self) -> str:
        return PRIORITY_LABELS[self]

    @classmethod
    def parse(cls, value) -> Optional["Priority"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


PRIORITY_LABELS = {
    Priority.URGENT: "Urgent Research",
    Priority.RESEARCH: "Research Priority",
    Priority.STANDARD: "Standard Priority",
}


class ResourceStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    MAINTENANCE = "maintenance"


class NotificationKind(str, Enum):
    REQUEST_APPROVED = "request_approved"
    REQUEST_DENIED = "request_denied"
    RETURN_REQUEST = "return_request"
    RETURN_CONFIRMED = "return_confirmed"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    OTHER = "other"

    @classmethod
    def from_title(cls, title: Optional[str]) -> "NotificationKind":
        """Map a legacy notification title to its kind.

        Only used when the backend doesn't send a ``kind`` field itself.
        """
        return _TITLE_KINDS.get((title or "").strip(), cls.OTHER)


_TITLE_KINDS = {
    "Request Approved": NotificationKind.REQUEST_APPROVED,
    "Request Denied": NotificationKind.REQUEST_DENIED,
    "Return Request": NotificationKind.RETURN_REQUEST,
    "Return Confirmed": NotificationKind.RETURN_CONFIRMED,
    "Overdue Return": NotificationKind.OVERDUE,
    "Overdue Alert": NotificationKind.OVERDUE,
    "Return Due Soon": NotificationKind.DUE_SOON,
}


# pending -> approved | denied -> (approved) return_requested -> returned
ALLOWED_TRANSITIONS = {
    RequestStatus.PENDING: {RequestStatus.APPROVED, RequestStatus.DENIED},
    RequestStatus.APPROVED: {RequestStatus.RETURN_REQUESTED},
    RequestStatus.RETURN_REQUESTED: {RequestStatus.RETURNED},
    RequestStatus.DENIED: set(),
    RequestStatus.RETURNED: set(),
}


def can_transition(current, target) -> bool:
    current = RequestStatus.parse(current)
    target = RequestStatus.parse(target)
    if current is None or target is None:
        return False
    return target in ALLOWED_TRANSITIONS[current]


# ---------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------

def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 value from the backend into an aware UTC datetime.

    Values without an offset (including bare dates like "2024-01-03")
    are taken as UTC. Unparseable values are logged and read as missing.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Ignoring malformed timestamp %r", value)
            return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _as_int(value, default=None):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _record_id(data: Dict[str, Any]):
    return data.get("_id", data.get("id"))


# ---------------------------------------------------------
# Entities
# ---------------------------------------------------------

@dataclass
class Resource:
    id: Any
    name: str
    description: str = ""
    category: str = ""
    quantity: int = 0
    available_quantity: Optional[int] = None
    status: str = ResourceStatus.AVAILABLE.value
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Resource":
        return cls(
            id=_record_id(data),
            name=data.get("name") or "",
            description=data.get("description") or "",
            category=data.get("category") or "",
            quantity=_as_int(data.get("quantity"), 0),
            available_quantity=_as_int(data.get("availableQuantity")),
            status=data.get("status") or ResourceStatus.AVAILABLE.value,
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.raw)
        out.setdefault("_id", self.id)
        out.update(
            {
                "name": self.name,
                "description": self.description,
                "category": self.category,
                "quantity": self.quantity,
                "availableQuantity": self.available_quantity,
                "status": self.status,
            }
        )
        return out


@dataclass
class User:
    id: Any
    name: str
    email: str
    role: Optional[Role]
    created_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=_record_id(data),
            name=data.get("name") or "",
            email=data.get("email") or "",
            role=Role.parse(data.get("role")),
            created_at=parse_timestamp(data.get("createdAt")),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw)


@dataclass
class CheckoutRequest:
    """
    One checkout request as returned by ``GET /requests``.

    ``resource`` and ``user`` are the embedded summaries the backend resolves
    for us (name, role, ...); they stay plain dicts.
    """

    id: Any
    status: Optional[RequestStatus]
    quantity: int = 1
    duration: Optional[int] = None
    priority: Optional[Priority] = None
    priority_score: Optional[float] = None
    created_at: Optional[datetime] = None
    return_date: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    return_requested_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    denial_reason: Optional[str] = None
    notes: str = ""
    resource: Dict[str, Any] = field(default_factory=dict)
    user: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutRequest":
        resource = data.get("resource")
        user = data.get("user")
        return cls(
            id=_record_id(data),
            status=RequestStatus.parse(data.get("status")),
            quantity=_as_int(data.get("quantity"), 1),
            duration=_as_int(data.get("duration")),
            priority=Priority.parse(data.get("priority")),
            priority_score=_as_float(data.get("priorityScore")),
            created_at=parse_timestamp(data.get("createdAt") or data.get("requestedAt")),
            return_date=parse_timestamp(data.get("returnDate")),
            approved_at=parse_timestamp(data.get("approvedAt")),
            return_requested_at=parse_timestamp(data.get("returnRequestedAt")),
            returned_at=parse_timestamp(data.get("returnedAt")),
            denial_reason=data.get("denialReason"),
            notes=data.get("notes") or "",
            resource=resource if isinstance(resource, dict) else {},
            user=user if isinstance(user, dict) else {},
            raw=dict(data),
        )

    @property
    def requester_role(self) -> Optional[Role]:
        return Role.parse(self.user.get("role"))

    @property
    def requester_id(self):
        return _record_id(self.user) if self.user else self.raw.get("userId")

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.raw)


@dataclass
class Notification:
    id: Any
    title: str
    message: str
    read: bool
    kind: NotificationKind
    created_at: Optional[datetime] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        try:
            kind = NotificationKind(data["kind"])
        except (KeyError, ValueError):
            kind = NotificationKind.from_title(data.get("title"))
        return cls(
            id=_record_id(data),
            title=data.get("title") or "",
            message=data.get("message") or "",
            read=bool(data.get("read", False)),
            kind=kind,
            created_at=parse_timestamp(data.get("createdAt")),
            raw=dict(data),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.raw)
        out["kind"] = self.kind.value
        return out
