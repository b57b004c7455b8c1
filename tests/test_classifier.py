from datetime import datetime, timezone

import pytest

from checkout_portal.classifier import (
    annotate,
    classify,
    days_text,
    due_severity,
    overdue_severity,
)


def at(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_due_soon_example(make_request):
    req = make_request("r", "approved", return_date="2024-01-03")
    result = classify(req, now=at(2024, 1, 1))

    assert result.is_overdue is False
    assert result.days_until_due == 2
    assert result.days_overdue == 0
    assert result.severity == "medium"


def test_overdue_example(make_request):
    req = make_request("r", "approved", return_date="2024-01-01")
    result = classify(req, now=at(2024, 1, 10))

    assert result.is_overdue is True
    assert result.days_overdue == 9
    assert result.days_until_due == 0
    assert result.severity == "high"


def test_partial_days_floor_and_ceil(make_request):
    req = make_request("r", "approved", return_date="2024-01-01T00:00:00Z")

    late = classify(req, now=at(2024, 1, 2, 23, 0))
    early = classify(req, now=at(2023, 12, 31, 1, 0))

    assert late.days_overdue == 1
    assert early.days_until_due == 1


@pytest.mark.parametrize("status", ["pending", "denied", "return_requested", "returned"])
def test_only_approved_requests_can_be_overdue(make_request, status):
    req = make_request("r", status, return_date="2023-06-01")
    result = classify(req, now=at(2024, 1, 10))

    assert result.is_overdue is False
    assert result.days_overdue == 0


def test_missing_return_date(make_request):
    result = classify(make_request("r", "approved"), now=at(2024, 1, 10))
    assert result.to_dict() == {
        "isOverdue": False,
        "daysOverdue": 0,
        "daysUntilDue": 0,
        "severity": None,
    }


def test_naive_now_is_utc(make_request):
    req = make_request("r", "approved", return_date="2024-01-01")
    assert classify(req, now=datetime(2024, 1, 4)).days_overdue == 3


@pytest.mark.parametrize("days, expected", [(0, "low"), (2, "low"), (3, "medium"), (6, "medium"), (7, "high"), (30, "high")])
def test_overdue_severity(days, expected):
    assert overdue_severity(days) == expected


@pytest.mark.parametrize("days, expected", [(1, "high"), (2, "medium"), (3, "medium"), (4, "low"), (7, "low")])
def test_due_severity(days, expected):
    assert due_severity(days) == expected


def test_days_text():
    assert days_text(1, overdue=True) == "1 day overdue"
    assert days_text(4, overdue=True) == "4 days overdue"
    assert days_text(1) == "due in 1 day"
    assert days_text(5) == "due in 5 days"


def test_annotate_recomputes_server_days():
    items = [
        {"_id": "a", "status": "approved", "returnDate": "2024-01-01", "daysOverdue": 8},
        {"_id": "b", "status": "approved", "returnDate": "2024-01-08", "daysOverdue": 2},
    ]
    rows = annotate(items, now=at(2024, 1, 10), overdue=True)

    assert [r["daysOverdue"] for r in rows] == [9, 2]
    assert [r["severity"] for r in rows] == ["high", "low"]
    assert rows[0]["daysText"] == "9 days overdue"
    assert "daysOverdue" in items[0] and items[0]["daysOverdue"] == 8


def test_annotate_due_list():
    rows = annotate([{"_id": "a", "status": "approved", "returnDate": "2024-01-11"}],
                    now=at(2024, 1, 10), overdue=False)
    assert rows[0]["daysUntilDue"] == 1
    assert rows[0]["severity"] == "high"
    assert rows[0]["daysText"] == "due in 1 day"


def test_return_date_equal_to_now_is_not_overdue(make_request):
    req = make_request("r", "approved", return_date="2024-01-10T12:00:00Z")
    result = classify(req, now=at(2024, 1, 10, 12, 0))

    assert result.is_overdue is False
    assert result.days_overdue == 0
    assert result.days_until_due == 0
    assert result.severity is None


@pytest.mark.parametrize("status", ["pending", "denied", "return_requested", "returned"])
def test_future_return_date_counts_only_when_approved(make_request, status):
    req = make_request("r", status, return_date="2024-01-12")
    result = classify(req, now=at(2024, 1, 10))

    assert result.days_until_due == 0
    assert result.severity is None
