"""Firestore accessors for fulfilled purchases.

A purchase document is keyed by the Stripe payment id (checkout session or
payment intent) and doubles as the webhook deduplication marker.
"""

PURCHASES_COLLECTION = 'purchases'


def doc_ref(db, payment_id):
    return db.collection(PURCHASES_COLLECTION).document(payment_id)


def get_doc(db, payment_id):
    return doc_ref(db, payment_id).get()
