from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from tierboard.cogs.admin_cog import AdminCog
from tierboard.config import Config
from tierboard.exceptions import AuthorizationError
from tierboard.utils.admin_session import AdminSession

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_issue_sets_expiry():
    session = AdminSession.issue(ttl_seconds=600, now=NOW)
    assert session.role == "admin"
    assert session.issued_at == NOW
    assert session.expires_at == NOW + timedelta(minutes=10)


def test_expiry():
    session = AdminSession.issue(ttl_seconds=60, now=NOW)
    assert not session.is_expired(NOW + timedelta(seconds=59))
    assert session.is_expired(NOW + timedelta(seconds=60))

    session.require(now=NOW)
    with pytest.raises(AuthorizationError):
        session.require(now=NOW + timedelta(hours=1))


def test_wrong_role():
    session = AdminSession(role="viewer", issued_at=NOW, expires_at=NOW + timedelta(hours=1))
    with pytest.raises(AuthorizationError):
        session.require(now=NOW)


def test_from_role_ids():
    session = AdminSession.from_role_ids([111, 222], admin_role_ids=[222], now=NOW)
    assert session.role == "admin"

    with pytest.raises(AuthorizationError):
        AdminSession.from_role_ids([111], admin_role_ids=[222], now=NOW)
    with pytest.raises(AuthorizationError):
        AdminSession.from_role_ids([111], admin_role_ids=[], now=NOW)


def test_default_clock_is_utc():
    session = AdminSession.issue(ttl_seconds=60)
    assert session.issued_at.tzinfo is not None
    assert session.issued_at.utcoffset() == timedelta(0)
    assert not session.is_expired()


def test_refresh_keeps_live_session():
    session = AdminSession.issue(ttl_seconds=600, now=NOW)
    assert session.refresh([222], admin_role_ids=[222], now=NOW + timedelta(minutes=5)) is session


def test_refresh_refuses_removed_role_before_expiry():
    session = AdminSession.issue(ttl_seconds=600, now=NOW)
    with pytest.raises(AuthorizationError):
        session.refresh([111], admin_role_ids=[222], now=NOW + timedelta(seconds=1))


def test_refresh_reissues_after_expiry():
    session = AdminSession.issue(ttl_seconds=60, now=NOW)
    later = NOW + timedelta(hours=2)

    renewed = session.refresh([222], admin_role_ids=[222], now=later)

    assert renewed is not session
    assert renewed.issued_at == later
    renewed.require(now=later)


def _ctx(*role_ids):
    author = SimpleNamespace(id=99, roles=[SimpleNamespace(id=role_id) for role_id in role_ids])
    return SimpleNamespace(author=author)


def test_cog_rechecks_roles_on_every_command(monkeypatch):
    monkeypatch.setattr(Config, "ADMIN_ROLE_IDS", [222])
    cog = AdminCog(bot=None)

    first = cog._admin_session(_ctx(111, 222))
    assert cog._admin_session(_ctx(222)) is first

    with pytest.raises(AuthorizationError):
        cog._admin_session(_ctx(111))
    assert cog._sessions == {}
