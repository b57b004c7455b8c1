from datetime import datetime, timezone, timedelta

import pytest

from checkout_portal.models import (
    CheckoutRequest,
    Notification,
    NotificationKind,
    Priority,
    RequestStatus,
    Resource,
    Role,
    User,
    can_transition,
    parse_timestamp,
)


def test_parse_timestamp_variants():
    utc = timezone.utc
    assert parse_timestamp("2024-01-03") == datetime(2024, 1, 3, tzinfo=utc)
    assert parse_timestamp("2024-01-03T10:15:00Z") == datetime(2024, 1, 3, 10, 15, tzinfo=utc)
    assert parse_timestamp("2024-01-03T12:00:00+02:00") == datetime(2024, 1, 3, 10, 0, tzinfo=utc)
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None


def test_malformed_timestamp_reads_as_missing():
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp("2024-13-45") is None

    req = CheckoutRequest.from_dict({"_id": "r1", "status": "approved", "createdAt": "not-a-date",
                                     "returnDate": "soon"})
    assert req.created_at is None
    assert req.return_date is None


def test_parse_timestamp_normalises_offsets_to_utc():
    value = datetime(2024, 5, 1, 8, 0, tzinfo=timezone(timedelta(hours=-4)))
    assert parse_timestamp(value).tzinfo == timezone.utc


def test_role_parse():
    assert Role.parse("faculty") is Role.FACULTY
    assert Role.parse(Role.ADMIN) is Role.ADMIN
    assert Role.parse("janitor") is None
    assert Role.parse(None) is None


def test_request_from_backend_payload():
    req = CheckoutRequest.from_dict(
        {
            "_id": "64a",
            "status": "approved",
            "quantity": "2",
            "priority": "research",
            "priorityScore": 2,
            "requestedAt": "2024-01-02T08:00:00Z",
            "returnDate": "2024-01-09",
            "user": {"_id": "u9", "name": "Dr. Ada", "role": "faculty"},
            "resource": {"_id": "r1", "name": "Microscope"},
        }
    )

    assert req.id == "64a"
    assert req.status is RequestStatus.APPROVED
    assert req.quantity == 2
    assert req.priority is Priority.RESEARCH
    assert req.priority.label == "Research Priority"
    assert req.priority_score == 2.0
    assert req.created_at == datetime(2024, 1, 2, 8, tzinfo=timezone.utc)
    assert req.requester_role is Role.FACULTY
    assert req.requester_id == "u9"
    assert req.to_dict()["resource"]["name"] == "Microscope"


def test_request_tolerates_unknown_values():
    req = CheckoutRequest.from_dict({"id": 3, "status": "archived", "priority": "vip", "user": None})

    assert req.id == 3
    assert req.status is None
    assert req.priority is None
    assert req.user == {}


def test_resource_round_trip_keeps_extra_fields():
    resource = Resource.from_dict({"_id": "r1", "name": "Projector", "availableQuantity": 2, "location": "B12"})

    assert resource.available_quantity == 2
    assert resource.to_dict()["location"] == "B12"


def test_user_from_dict():
    user = User.from_dict({"_id": "u1", "name": "Sam", "email": "sam@uni.edu", "role": "student"})
    assert user.role is Role.STUDENT


@pytest.mark.parametrize(
    "title, kind",
    [
        ("Request Approved", NotificationKind.REQUEST_APPROVED),
        ("Request Denied", NotificationKind.REQUEST_DENIED),
        ("Return Request", NotificationKind.RETURN_REQUEST),
        ("Return Confirmed", NotificationKind.RETURN_CONFIRMED),
        ("Overdue Return", NotificationKind.OVERDUE),
        ("Overdue Alert", NotificationKind.OVERDUE),
        ("Return Due Soon", NotificationKind.DUE_SOON),
        ("Welcome", NotificationKind.OTHER),
    ],
)
def test_notification_kind_from_title(title, kind):
    assert Notification.from_dict({"_id": "n", "title": title}).kind is kind


def test_notification_prefers_server_kind():
    n = Notification.from_dict({"_id": "n", "title": "Request Approved", "kind": "due_soon"})
    assert n.kind is NotificationKind.DUE_SOON
    assert n.to_dict()["kind"] == "due_soon"


def test_status_transitions():
    assert can_transition("pending", "approved")
    assert can_transition("pending", "denied")
    assert can_transition("approved", "return_requested")
    assert can_transition("return_requested", "returned")

    assert not can_transition("pending", "returned")
    assert not can_transition("approved", "returned")
    assert not can_transition("denied", "approved")
    assert not can_transition("returned", "pending")
    assert not can_transition(None, "approved")
