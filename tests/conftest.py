import time
from datetime import datetime, timezone

import jwt
import pytest

from checkout_portal.api_client import ApiError
from checkout_portal.models import CheckoutRequest, Resource

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def request_dict(id, status="pending", created=None, return_date=None,
                 priority_score=None, role="student", user_id="u1", **extra):
    data = {
        "_id": id,
        "status": status,
        "quantity": 1,
        "duration": 7,
        "user": {"_id": user_id, "name": f"User {user_id}", "role": role},
        "resource": {"_id": "res-1", "name": "Oscilloscope"},
    }
    if created is not None:
        data["createdAt"] = created
    if return_date is not None:
        data["returnDate"] = return_date
    if priority_score is not None:
        data["priorityScore"] = priority_score
    data.update(extra)
    return data


def mint_token(role="student", expires_in=3600, **claims):
    payload = {
        "userId": claims.pop("userId", f"{role}-1"),
        "email": claims.pop("email", f"{role}@eduresource.com"),
        "name": claims.pop("name", role.capitalize()),
        "role": role,
        "exp": int(time.time()) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, "backend-secret", algorithm="HS256")


@pytest.fixture
def make_request():
    def _make(*args, **kwargs):
        return CheckoutRequest.from_dict(request_dict(*args, **kwargs))

    return _make


@pytest.fixture
def make_resource():
    def _make(available=5, quantity=10, id="res-1", **extra):
        data = {
            "_id": id,
            "name": "Oscilloscope",
            "description": "Bench scope",
            "category": "Lab Equipment",
            "quantity": quantity,
            "availableQuantity": available,
            "status": "available",
        }
        data.update(extra)
        return Resource.from_dict(data)

    return _make


class FakeBackend:
    """Stands in for ApiClient; records every mutating call."""

    def __init__(self):
        self.token = None
        self.resources = []
        self.requests = []
        self.users = []
        self.notifications = []
        self.overdue = []
        self.due = []
        self.policies = None
        self.analytics = {"totalRequests": 0}
        self.fail = {}
        self.calls = []

    def _maybe_fail(self, name):
        if name in self.fail:
            raise self.fail[name]

    def signup(self, data):
        self.calls.append(("signup", data))
        return {"message": "ok"}

    def login(self, credentials):
        self._maybe_fail("login")
        return {"token": self.token}

    def get_resources(self):
        self._maybe_fail("get_resources")
        return list(self.resources)

    def create_resource(self, data):
        self.calls.append(("create_resource", data))
        return dict(data, _id="new-res")

    def update_resource(self, resource_id, data):
        self.calls.append(("update_resource", resource_id, data))
        return dict(data, _id=resource_id)

    def delete_resource(self, resource_id):
        self.calls.append(("delete_resource", resource_id))
        return {"message": "deleted"}

    def get_requests(self):
        self._maybe_fail("get_requests")
        return list(self.requests)

    def create_request(self, data):
        self.calls.append(("create_request", data))
        return dict(data, _id="new-req", status="pending")

    def update_request(self, request_id, data):
        self.calls.append(("update_request", request_id, data))
        for req in self.requests:
            if req["_id"] == request_id:
                req.update(data)
        return {"message": "updated"}

    def get_notifications(self):
        self._maybe_fail("get_notifications")
        return list(self.notifications)

    def mark_notification_read(self, notification_id):
        self.calls.append(("mark_read", notification_id))
        for n in self.notifications:
            if n["_id"] == notification_id:
                n["read"] = True

    def mark_all_notifications_read(self):
        self.calls.append(("mark_all_read",))
        for n in self.notifications:
            n["read"] = True

    def get_users(self):
        return list(self.users)

    def get_overdue_returns(self):
        return list(self.overdue)

    def get_due_returns(self):
        return list(self.due)

    def check_overdue(self):
        self.calls.append(("check_overdue",))
        return {"overdueCount": len(self.overdue), "dueCount": len(self.due)}

    def get_stakeholder_policies(self):
        if self.policies is None:
            raise ApiError("Not found", status=404)
        return self.policies

    def update_stakeholder_policies(self, policies):
        self.calls.append(("update_policies", policies))
        self.policies = policies
        return policies

    def get_stakeholder_analytics(self):
        return self.analytics


@pytest.fixture
def backend():
    return FakeBackend()
