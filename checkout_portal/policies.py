# checkout_portal/policies.py
"""
Role-based checkout policies.

The backend keeps the authoritative policy table (``GET
/stakeholder-policies``), keyed by role::

    {"faculty": {"maxDuration": 90, "maxQuantity": 10,
                 "priorityAccess": true,
                 "allowedPriorities": ["urgent", "research", "standard"]},
     "student": {...}, "admin": {...}}

``resolve_policy`` turns that table (or the built-in defaults when it
couldn't be fetched) into the concrete limits for one user and, optionally,
one resource.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .api_client import ApiError
from .models import Priority, Role

logger = logging.getLogger(__name__)

ALL_PRIORITIES = (Priority.URGENT.value, Priority.RESEARCH.value, Priority.STANDARD.value)
STANDARD_ONLY = (Priority.STANDARD.value,)

# Admin policies at or above this quantity are shown as "Unlimited"
UNLIMITED_QUANTITY = 999999


@dataclass(frozen=True)
class PolicyLimits:
    max_duration: int
    max_quantity: Optional[int]  # None = unbounded
    priority_access: bool
    allowed_priorities: Tuple[str, ...]


@dataclass(frozen=True)
class ResolvedPolicy:
    max_duration: int
    default_duration: int
    max_quantity: Optional[int]
    priority_access: bool
    allowed_priorities: Tuple[str, ...]
    can_reserve: bool
    from_server: bool = False

    @property
    def default_priority(self) -> str:
        return self.allowed_priorities[0] if self.allowed_priorities else Priority.STANDARD.value

    def to_dict(self):
        return {
            "maxDuration": self.max_duration,
            "defaultDuration": self.default_duration,
            "maxQuantity": self.max_quantity,
            "priorityAccess": self.priority_access,
            "allowedPriorities": list(self.allowed_priorities),
            "canReserve": self.can_reserve,
            "fromServer": self.from_server,
        }


DEFAULT_POLICIES = {
    Role.FACULTY: PolicyLimits(90, 10, True, ALL_PRIORITIES),
    Role.STUDENT: PolicyLimits(30, 3, False, STANDARD_ONLY),
    Role.ADMIN: PolicyLimits(365, None, True, ALL_PRIORITIES),
}

UNKNOWN_ROLE_POLICY = PolicyLimits(7, 1, False, STANDARD_ONLY)

_missing = set(Role) - set(DEFAULT_POLICIES)
if _missing:
    raise RuntimeError(f"No default policy for roles: {sorted(r.value for r in _missing)}")

# Bounds enforced when an admin edits the table
POLICY_EDIT_BOUNDS = {
    Role.FACULTY: {"maxDuration": 365, "maxQuantity": 100},
    Role.STUDENT: {"maxDuration": 90, "maxQuantity": 20},
    Role.ADMIN: {"maxDuration": 999, "maxQuantity": UNLIMITED_QUANTITY},
}


def _available(resource) -> int:
    # A resource with no (or zero) availability still clamps to 1 unit
    return (getattr(resource, "available_quantity", None) or 1)


def _clamp(limit: Optional[int], resource) -> Optional[int]:
    if resource is None:
        return limit
    if limit is None:
        return _available(resource)
    return min(limit, _available(resource))


def _server_entry(role: Optional[Role], raw_role, server_policies):
    if not server_policies:
        return None
    key = role.value if role else raw_role
    entry = server_policies.get(key) if isinstance(key, str) else None
    return entry or None


def resolve_policy(role, server_policies=None, resource=None) -> ResolvedPolicy:
    """
    Concrete limits for ``role``.

    ``server_policies`` is the table from the backend (or None when it is
    unavailable); ``resource`` is a ``Resource`` whose availability caps
    the quantity. Without a resource ``max_quantity`` is only the
    role's upper bound (None for admins), not a usable cap.
    """
    parsed = Role.parse(role)
    default_duration = 14 if parsed is Role.FACULTY else 7
    can_reserve = parsed is not None and parsed is not Role.STUDENT

    entry = _server_entry(parsed, role, server_policies)
    if entry is not None:
        return ResolvedPolicy(
            max_duration=int(entry.get("maxDuration") or 7),
            default_duration=default_duration,
            max_quantity=_clamp(int(entry.get("maxQuantity") or 1), resource),
            priority_access=bool(entry.get("priorityAccess", False)),
            allowed_priorities=tuple(entry.get("allowedPriorities") or STANDARD_ONLY),
            can_reserve=can_reserve,
            from_server=True,
        )

    limits = DEFAULT_POLICIES[parsed] if parsed is not None else UNKNOWN_ROLE_POLICY
    return ResolvedPolicy(
        max_duration=limits.max_duration,
        default_duration=default_duration,
        max_quantity=_clamp(limits.max_quantity, resource),
        priority_access=limits.priority_access,
        allowed_priorities=limits.allowed_priorities,
        can_reserve=can_reserve,
    )


def default_policy_table() -> dict:
    """Built-in defaults in the backend's table shape (admin quantity as 999999)."""
    return {
        role.value: {
            "maxDuration": limits.max_duration,
            "maxQuantity": limits.max_quantity if limits.max_quantity is not None else UNLIMITED_QUANTITY,
            "priorityAccess": limits.priority_access,
            "allowedPriorities": list(limits.allowed_priorities),
        }
        for role, limits in DEFAULT_POLICIES.items()
    }


def describe_max_quantity(limit: Optional[int]) -> str:
    if limit is None or limit >= UNLIMITED_QUANTITY:
        return "Unlimited"
    return f"{limit} units"


def validate_policy_table(table) -> dict:
    """
    Check an edited policy table before it is sent back to the backend.

    Returns a dict of ``{role: {field: message}}``; empty when the table is
    acceptable.
    """
    errors = {}
    if not isinstance(table, dict):
        return {"_table": {"policies": "Policy table must be an object keyed by role"}}

    for role, bounds in POLICY_EDIT_BOUNDS.items():
        entry = table.get(role.value)
        role_errors = {}
        if not isinstance(entry, dict):
            errors[role.value] = {"policy": f"Missing {role.value} policy"}
            continue

        for field_name in ("maxDuration", "maxQuantity"):
            value = entry.get(field_name)
            upper = bounds[field_name]
            if isinstance(value, bool) or not isinstance(value, int):
                role_errors[field_name] = f"{field_name} must be a whole number"
            elif value < 1 or value > upper:
                role_errors[field_name] = f"{field_name} must be between 1 and {upper}"

        if not isinstance(entry.get("priorityAccess"), bool):
            role_errors["priorityAccess"] = "priorityAccess must be true or false"

        allowed = entry.get("allowedPriorities")
        if not isinstance(allowed, list) or not allowed:
            role_errors["allowedPriorities"] = "At least one priority level is required"
        elif any(Priority.parse(p) is None for p in allowed):
            role_errors["allowedPriorities"] = (
                "Priority levels must be one of: " + ", ".join(ALL_PRIORITIES)
            )

        if role_errors:
            errors[role.value] = role_errors

    return errors


class PolicyStore:
    """Last policy table fetched from the backend.

    When a refresh fails the cached table is dropped and resolution falls
    back to ``DEFAULT_POLICIES``.
    """

    def __init__(self):
        self.policies = None
        self.error = None

    def refresh(self, client):
        try:
            data = client.get_stakeholder_policies()
        except ApiError as e:
            logger.warning("Could not load stakeholder policies, using defaults: %s", e.message)
            self.policies = None
            self.error = e.message
            return None

        self.policies = data if isinstance(data, dict) else None
        self.error = None
        return self.policies

    @property
    def is_live(self) -> bool:
        return self.policies is not None

    def resolve(self, role, resource=None) -> ResolvedPolicy:
        return resolve_policy(role, self.policies, resource)
