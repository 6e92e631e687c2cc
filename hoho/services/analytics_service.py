"""Analytics event sanitization and persistence helpers."""

import re

from hoho.repositories import analytics_repo

NAME_RE = re.compile(r'^[a-z0-9_]{2,64}$')
SESSION_ID_RE = re.compile(r'^[A-Za-z0-9_-]{6,80}$')

FRONTEND_EVENTS = {
    'page_view',
    'audio_play',
    'customization',
    'share',
    'purchase_intent',
    'download',
    'client_error',
}
BACKEND_EVENTS = {
    'payment_confirmed_backend',
    'message_generated_backend',
    'video_generated_backend',
}
ALLOWED_EVENTS = FRONTEND_EVENTS | BACKEND_EVENTS
RATE_LIMIT_NAMES = {'checkout', 'speech', 'analytics'}


def sanitize_event_name(raw_name, *, source='frontend'):
    name = str(raw_name or '').strip().lower()
    if not NAME_RE.match(name):
        return ''
    allowed = BACKEND_EVENTS if source == 'backend' else FRONTEND_EVENTS
    return name if name in allowed else ''


def sanitize_session_id(raw_session_id):
    session_id = str(raw_session_id or '').strip()
    return session_id if SESSION_ID_RE.match(session_id) else ''


def sanitize_properties(raw_props):
    if not isinstance(raw_props, dict):
        return {}
    cleaned = {}
    for raw_key, raw_value in raw_props.items():
        key = str(raw_key or '').strip().lower().replace('-', '_').replace(' ', '_')
        if not key or not NAME_RE.match(key):
            continue
        if isinstance(raw_value, bool):
            cleaned[key] = raw_value
        elif isinstance(raw_value, (int, float)):
            cleaned[key] = round(float(raw_value), 4)
        elif isinstance(raw_value, str):
            cleaned[key] = raw_value.strip()[:200]
    return cleaned


def log_analytics_event(event_name, *, db, logger, now_ts, source='frontend', uid='', session_id='', properties=None):
    safe_source = 'backend' if source == 'backend' else 'frontend'
    safe_name = sanitize_event_name(event_name, source=safe_source)
    if not safe_name or db is None:
        return False
    payload = {
        'event': safe_name,
        'source': safe_source,
        'uid': str(uid or '')[:128],
        'session_id': sanitize_session_id(session_id),
        'properties': sanitize_properties(properties or {}),
        'created_at': now_ts,
    }
    try:
        analytics_repo.add_event(db, payload)
        return True
    except Exception as exc:
        if logger is not None:
            logger.info(f"⚠️ Could not store analytics event {safe_name}: {exc}")
        return False


def log_rate_limit_hit(limit_name, retry_after, *, db, logger, now_ts):
    safe_name = str(limit_name or '').strip().lower()
    if safe_name not in RATE_LIMIT_NAMES or db is None:
        return False
    try:
        analytics_repo.add_rate_limit_log(db, {
            'limit_name': safe_name,
            'retry_after': max(0, int(retry_after or 0)),
            'created_at': now_ts,
        })
        return True
    except Exception as exc:
        if logger is not None:
            logger.info(f"⚠️ Could not store rate-limit log for {safe_name}: {exc}")
        return False
