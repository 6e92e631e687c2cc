"""Firestore accessors for rate limit counters."""

RATE_LIMIT_COUNTER_COLLECTION = 'rate_limit_counters'


def counter_doc_ref(db, counter_id, collection_name=RATE_LIMIT_COUNTER_COLLECTION):
    return db.collection(collection_name).document(counter_id)
