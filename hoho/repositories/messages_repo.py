"""Firestore accessors for shared Santa messages."""

from .query_utils import apply_order_desc, apply_where

MESSAGES_COLLECTION = 'sharedMessages'


def doc_ref(db, message_id):
    return db.collection(MESSAGES_COLLECTION).document(message_id)


def get_doc(db, message_id):
    return doc_ref(db, message_id).get()


def create_doc(db, message_id, data):
    return doc_ref(db, message_id).set(data)


def update_doc(db, message_id, updates):
    return doc_ref(db, message_id).update(updates)


def list_by_uid_recent(db, uid, limit, firestore_module):
    query = apply_where(db.collection(MESSAGES_COLLECTION), 'userId', '==', uid)
    query = apply_order_desc(query, 'createdAt', firestore_module).limit(limit)
    return list(query.stream())
