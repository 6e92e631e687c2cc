"""Firestore accessors for analytics events and rate-limit hit logs."""

ANALYTICS_EVENTS_COLLECTION = 'analytics_events'
RATE_LIMIT_LOGS_COLLECTION = 'rate_limit_logs'


def add_event(db, payload):
    return db.collection(ANALYTICS_EVENTS_COLLECTION).add(payload)


def add_rate_limit_log(db, payload):
    return db.collection(RATE_LIMIT_LOGS_COLLECTION).add(payload)
