import pytest

import portal_cli
from checkout_portal.api_client import ApiError
from conftest import mint_token, request_dict


@pytest.fixture
def cli_backend(backend, monkeypatch):
    monkeypatch.setattr(portal_cli, "ApiClient", lambda base_url, timeout=None: backend)
    return backend


def run(*argv):
    return portal_cli.main(["--email", "a@x", "--password", "pw", *argv])


def test_overdue_listing_for_admin(cli_backend, capsys):
    cli_backend.token = mint_token("admin")
    cli_backend.overdue = [request_dict("late", "approved", return_date="2000-01-01")]
    cli_backend.due = []

    assert run("overdue", "--check") == 0

    out = capsys.readouterr().out
    assert "Overdue check completed: 1 overdue, 0 due soon" in out
    assert "[HIGH  ] Oscilloscope - User u1" in out
    assert ("check_overdue",) in cli_backend.calls


def test_check_refused_for_students(cli_backend, capsys):
    cli_backend.token = mint_token("student")

    assert run("overdue", "--check") == 1
    assert "Only admins" in capsys.readouterr().out
    assert cli_backend.calls == []


def test_expired_login(cli_backend, capsys):
    cli_backend.token = mint_token("student", expires_in=-5)

    assert run("overdue") == 1
    assert "Session expired" in capsys.readouterr().out


def test_backend_failure(cli_backend, capsys):
    cli_backend.fail["login"] = ApiError("Invalid credentials", status=401)

    assert run("overdue") == 1
    assert "Backend call failed: Invalid credentials" in capsys.readouterr().out
