"""Fixed-window rate limiting, counted in Firestore with an in-process fallback."""

import hashlib

from hoho.repositories import rate_limit_repo


def window_counter_id(key, window_seconds, window_start):
    raw = f"{key}|{window_seconds}|{int(window_start)}".encode('utf-8')
    return hashlib.sha256(raw).hexdigest()


def normalize_key_part(value, fallback='anon', max_len=120):
    cleaned = ''.join(ch for ch in str(value or '').strip() if ch.isalnum() or ch in '-_.:@')
    return cleaned[:max_len] or fallback


def check_rate_limit_firestore(key, limit, window_seconds, now_ts, *, db, firestore_module):
    """Count one hit in Firestore. Returns ``(allowed, retry_after)`` or None when Firestore is unusable."""
    if db is None:
        return None
    window_start = int(now_ts // window_seconds) * int(window_seconds)
    retry_after = max(1, int((window_start + window_seconds) - now_ts))
    counter_ref = rate_limit_repo.counter_doc_ref(db, window_counter_id(key, window_seconds, window_start))

    @firestore_module.transactional
    def _txn(transaction):
        snapshot = counter_ref.get(transaction=transaction)
        count = int((snapshot.to_dict() or {}).get('count', 0) or 0) if snapshot.exists else 0
        if count >= limit:
            return False, retry_after
        transaction.set(counter_ref, {
            'key': key,
            'count': count + 1,
            'window_start': window_start,
            'window_seconds': int(window_seconds),
            'updated_at': now_ts,
            'expires_at': window_start + (window_seconds * 3),
        }, merge=True)
        return True, 0

    try:
        return _txn(db.transaction())
    except Exception:
        return None


def check_rate_limit_in_memory(key, limit, window_seconds, now_ts, *, events, lock):
    with lock:
        cutoff = now_ts - window_seconds
        kept = [ts for ts in events.get(key, []) if ts >= cutoff]
        if len(kept) >= limit:
            events[key] = kept
            return False, max(1, int((kept[0] + window_seconds) - now_ts))
        kept.append(now_ts)
        events[key] = kept
    return True, 0


def check_rate_limit(key, limit, window_seconds, now_ts, *, db, firestore_module, firestore_enabled, events, lock):
    if firestore_enabled:
        result = check_rate_limit_firestore(
            key,
            limit,
            window_seconds,
            now_ts,
            db=db,
            firestore_module=firestore_module,
        )
        if result is not None:
            return result
    return check_rate_limit_in_memory(key, limit, window_seconds, now_ts, events=events, lock=lock)
