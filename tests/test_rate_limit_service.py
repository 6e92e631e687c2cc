import threading

from hoho.services import rate_limit_service


def _check(fake_db, fake_firestore, now_ts, limit=2, firestore_enabled=True, events=None):
    return rate_limit_service.check_rate_limit(
        "speech:1.2.3.4",
        limit,
        60,
        now_ts,
        db=fake_db,
        firestore_module=fake_firestore,
        firestore_enabled=firestore_enabled,
        events={} if events is None else events,
        lock=threading.Lock(),
    )


def test_firestore_window_counts_hits(fake_db, fake_firestore):
    assert _check(fake_db, fake_firestore, 1000.0) == (True, 0)
    assert _check(fake_db, fake_firestore, 1001.0) == (True, 0)

    allowed, retry_after = _check(fake_db, fake_firestore, 1010.0)

    assert allowed is False
    assert retry_after == 10
    counters = list(fake_db.collections["rate_limit_counters"].values())
    assert counters[0]["count"] == 2


def test_firestore_window_resets(fake_db, fake_firestore):
    _check(fake_db, fake_firestore, 1000.0, limit=1)

    assert _check(fake_db, fake_firestore, 1021.0, limit=1) == (True, 0)


def test_falls_back_to_memory_when_firestore_fails(fake_db, fake_firestore):
    fake_db.fail_reads = True
    events = {}

    assert _check(fake_db, fake_firestore, 1000.0, limit=1, events=events) == (True, 0)
    allowed, _retry_after = _check(fake_db, fake_firestore, 1001.0, limit=1, events=events)

    assert allowed is False
    assert "speech:1.2.3.4" in events


def test_in_memory_window_slides():
    events = {}
    lock = threading.Lock()

    assert rate_limit_service.check_rate_limit_in_memory("k", 1, 60, 0.0, events=events, lock=lock) == (True, 0)
    assert rate_limit_service.check_rate_limit_in_memory("k", 1, 60, 30.0, events=events, lock=lock) == (False, 30)
    assert rate_limit_service.check_rate_limit_in_memory("k", 1, 60, 61.0, events=events, lock=lock) == (True, 0)


def test_normalize_key_part_strips_unsafe_characters():
    assert rate_limit_service.normalize_key_part(" user/../1 ") == "user..1"
    assert rate_limit_service.normalize_key_part("") == "anon"
