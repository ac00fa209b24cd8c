import pytest

from unitsync.core.config import settings
from unitsync.core.db import get_connection, init_db
from unitsync.core.errors import LeaseHeld
from unitsync.repo.run_lease import acquire_lease, hold_lease, release_lease


@pytest.fixture
def conn(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "test.db"))
    init_db()
    c = get_connection()
    try:
        yield c
    finally:
        c.close()


def test_acquire_and_release(conn):
    assert acquire_lease(conn, "units", "one", 600) == (True, None)
    assert acquire_lease(conn, "units", "two", 600) == (False, "one")
    # same holder may refresh its own lease
    assert acquire_lease(conn, "units", "one", 600) == (True, None)
    # other keys are independent
    assert acquire_lease(conn, "personnel", "two", 600) == (True, None)

    assert release_lease(conn, "units", "two") is False
    assert release_lease(conn, "units", "one") is True
    assert acquire_lease(conn, "units", "two", 600) == (True, None)


def test_expired_lease_is_replaced(conn):
    assert acquire_lease(conn, "units", "crashed", -1)[0]
    assert acquire_lease(conn, "units", "fresh", 600) == (True, None)


def test_hold_lease_context_manager(conn):
    with hold_lease(conn, "units", 600, holder="runner") as holder:
        assert holder == "runner"
        with pytest.raises(LeaseHeld):
            with hold_lease(conn, "units", 600, holder="other"):
                pass
    # released on exit
    assert acquire_lease(conn, "units", "other", 600) == (True, None)
