import threading
from datetime import timedelta

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from patent_search.core.errors import RateLimitExceeded
from patent_search.db.base import Base
from patent_search.models import UsageLedger
from patent_search.services.usage_ledger import (
    LedgerIdentity,
    consume,
    get_usage_status,
    transfer_anonymous_usage,
)
from patent_search.utils.datetime import utc_now


def _row(db, identity):
    return (
        db.query(UsageLedger)
        .filter(
            UsageLedger.identity_type == identity.identity_type,
            UsageLedger.identity_id == identity.identity_id,
        )
        .populate_existing()
        .one_or_none()
    )


def test_status_without_usage(db):
    status = get_usage_status(db, LedgerIdentity.anonymous("anon-1"), "anonymous")

    assert status.limit == 5
    assert status.used == 0
    assert status.remaining == 5
    assert status.reset_at is None
    assert status.is_unlimited is False


def test_consume_counts_and_anchors_window(db):
    now = utc_now()
    identity = LedgerIdentity.anonymous("anon-1")

    status = consume(db, identity, "anonymous", now=now)

    assert status.used == 1
    assert status.remaining == 4
    assert status.reset_at == now + timedelta(hours=24)
    # Later requests don't move the window
    status = consume(db, identity, "anonymous", now=now + timedelta(hours=2))
    assert status.used == 2
    assert status.reset_at == now + timedelta(hours=24)


def test_consume_rejects_past_limit_without_incrementing(db):
    now = utc_now()
    identity = LedgerIdentity.anonymous("anon-1")
    for _ in range(5):
        consume(db, identity, "anonymous", now=now)

    with pytest.raises(RateLimitExceeded) as exc_info:
        consume(db, identity, "anonymous", now=now)

    assert exc_info.value.limit == 5
    assert exc_info.value.reset_at == now + timedelta(hours=24)
    assert exc_info.value.status_code == 429
    assert _row(db, identity).usage_count == 5
    status = get_usage_status(db, identity, "anonymous", now=now)
    assert status.remaining == 0


def test_expired_window_resets_on_next_consume(db):
    start = utc_now()
    identity = LedgerIdentity.user("user-1")
    for _ in range(10):
        consume(db, identity, "free", now=start)

    later = start + timedelta(hours=24, seconds=1)
    assert get_usage_status(db, identity, "free", now=later).used == 0

    status = consume(db, identity, "free", now=later)

    assert status.used == 1
    assert status.reset_at == later + timedelta(hours=24)


def test_unlimited_tier_never_blocks(db):
    identity = LedgerIdentity.user("user-1")
    for _ in range(25):
        status = consume(db, identity, "unlimited")

    assert status.is_unlimited is True
    assert status.remaining == -1
    assert status.used == 25


def test_unknown_tier_uses_free_limit(db):
    status = get_usage_status(db, LedgerIdentity.user("user-1"), "enterprise")
    assert status.limit == 10


def test_transfer_four_of_five_anonymous_requests(db):
    now = utc_now()
    anon = LedgerIdentity.anonymous("anon-1")
    for _ in range(4):
        consume(db, anon, "anonymous", now=now)

    result = transfer_anonymous_usage(db, "anon-1", "user-1", "free", now=now)

    assert result.transferred is True
    assert result.transferred_count == 4
    assert result.status.used == 4
    assert result.status.remaining == 6
    assert _row(db, anon) is None
    # A first-time user inherits the anonymous window
    assert result.status.reset_at == now + timedelta(hours=24)


def test_transfer_is_idempotent(db):
    now = utc_now()
    for _ in range(3):
        consume(db, LedgerIdentity.anonymous("anon-1"), "anonymous", now=now)

    first = transfer_anonymous_usage(db, "anon-1", "user-1", "free", now=now)
    second = transfer_anonymous_usage(db, "anon-1", "user-1", "free", now=now)

    assert first.transferred_count == 3
    assert second.transferred is False
    assert second.transferred_count == 0
    assert second.status.used == 3


def test_transfer_is_capped_at_tier_limit(db):
    now = utc_now()
    user = LedgerIdentity.user("user-1")
    for _ in range(8):
        consume(db, user, "free", now=now)
    for _ in range(5):
        consume(db, LedgerIdentity.anonymous("anon-1"), "anonymous", now=now)

    result = transfer_anonymous_usage(db, "anon-1", "user-1", "free", now=now)

    assert result.transferred_count == 5
    assert result.status.used == 10
    assert result.status.remaining == 0


def test_transfer_adds_to_existing_user_window(db):
    start = utc_now()
    user = LedgerIdentity.user("user-1")
    consume(db, user, "free", now=start)
    consume(db, LedgerIdentity.anonymous("anon-1"), "anonymous", now=start + timedelta(hours=1))

    result = transfer_anonymous_usage(db, "anon-1", "user-1", "free", now=start + timedelta(hours=2))

    assert result.status.used == 2
    assert result.status.reset_at == start + timedelta(hours=24)


def test_transfer_of_expired_anonymous_window_counts_nothing(db):
    start = utc_now()
    for _ in range(4):
        consume(db, LedgerIdentity.anonymous("anon-1"), "anonymous", now=start)

    later = start + timedelta(hours=25)
    result = transfer_anonymous_usage(db, "anon-1", "user-1", "free", now=later)

    assert result.transferred is True
    assert result.transferred_count == 0
    assert result.status.used == 0
    assert _row(db, LedgerIdentity.anonymous("anon-1")) is None


def test_transfer_without_anonymous_usage_is_noop(db):
    result = transfer_anonymous_usage(db, "never-seen", "user-1", "free")

    assert result.transferred is False
    assert result.status.used == 0
    assert db.query(UsageLedger).count() == 0


def test_identities_are_independent(db):
    now = utc_now()
    consume(db, LedgerIdentity.anonymous("shared-id"), "anonymous", now=now)

    status = get_usage_status(db, LedgerIdentity.user("shared-id"), "free", now=now)

    assert status.used == 0


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        # Writers queue on the database lock instead of failing on upgrade
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


def test_concurrent_transfers_claim_anonymous_usage_once(file_engine):
    Session = sessionmaker(bind=file_engine, autoflush=False)
    now = utc_now()
    with Session() as setup:
        for _ in range(4):
            consume(setup, LedgerIdentity.anonymous("anon-1"), "anonymous", now=now)

    barrier = threading.Barrier(2)
    results = []
    errors = []

    def sign_in():
        with Session() as session:
            barrier.wait()
            try:
                results.append(transfer_anonymous_usage(session, "anon-1", "user-1", "free", now=now))
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=sign_in) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(r.transferred for r in results) == [False, True]
    assert sum(r.transferred_count for r in results) == 4
    assert [r.status.used for r in results] == [4, 4]
    with Session() as check:
        assert get_usage_status(check, LedgerIdentity.user("user-1"), "free", now=now).used == 4
        assert check.query(UsageLedger).filter(UsageLedger.identity_type == "anonymous").count() == 0
