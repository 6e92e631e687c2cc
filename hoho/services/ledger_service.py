"""Credit ledger: per-user customization allowance vs. usage.

Mutations that depend on the current balance run inside a Firestore
transaction so concurrent requests for the same user cannot spend past
``customizationsAllowed``.
"""

import logging
from datetime import datetime, timezone

from hoho.repositories import users_repo

logger = logging.getLogger('hoho.ledger')

ALLOWED_FIELD = 'customizationsAllowed'
USED_FIELD = 'customizationsUsed'
GOOGLE_SIGNUP_BONUS = 3


def _utcnow():
    return datetime.now(timezone.utc)


def _as_count(value):
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(0, value)


def build_default_user_data(now=None):
    """Return the canonical document for a freshly authenticated user."""
    return {
        ALLOWED_FIELD: 0,
        USED_FIELD: 0,
        'hasListenedToDefault': False,
        'isGoogleUser': False,
        'createdAt': now or _utcnow(),
    }


def normalize_user_data(data):
    normalized = dict(data or {})
    normalized[ALLOWED_FIELD] = _as_count(normalized.get(ALLOWED_FIELD))
    normalized[USED_FIELD] = _as_count(normalized.get(USED_FIELD))
    normalized['hasListenedToDefault'] = bool(normalized.get('hasListenedToDefault', False))
    normalized['isGoogleUser'] = bool(normalized.get('isGoogleUser', False))
    return normalized


def remaining(user_data):
    data = normalize_user_data(user_data)
    return max(0, data[ALLOWED_FIELD] - data[USED_FIELD])


def validate_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Grant amount must be an integer, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Grant amount must be >= 0, got {amount}")
    return amount


def get_or_create(db, uid, *, firestore_module):
    """Get a user's ledger record, creating it with zero allowance if missing."""
    user_ref = users_repo.doc_ref(db, uid)

    @firestore_module.transactional
    def _txn(transaction):
        snapshot = user_ref.get(transaction=transaction)
        if snapshot.exists:
            return normalize_user_data(snapshot.to_dict())
        user_data = build_default_user_data()
        transaction.set(user_ref, user_data)
        logger.info(f"New user ledger created: {uid}")
        return normalize_user_data(user_data)

    return _txn(db.transaction())


def can_consume(db, uid, *, firestore_module):
    user_data = get_or_create(db, uid, firestore_module=firestore_module)
    return user_data[USED_FIELD] < user_data[ALLOWED_FIELD]


def consume_one(db, uid, *, firestore_module):
    """Spend one credit. Returns False, without writing, when none is left."""
    user_ref = users_repo.doc_ref(db, uid)

    @firestore_module.transactional
    def _txn(transaction):
        snapshot = user_ref.get(transaction=transaction)
        if not snapshot.exists:
            return False
        user_data = normalize_user_data(snapshot.to_dict())
        if user_data[USED_FIELD] >= user_data[ALLOWED_FIELD]:
            return False
        transaction.update(user_ref, {
            USED_FIELD: firestore_module.Increment(1),
            'lastCustomizationAt': _utcnow(),
        })
        return True

    return _txn(db.transaction())


def refund_one(db, uid, *, firestore_module):
    """Give back a credit consumed by a generation that later failed."""
    user_ref = users_repo.doc_ref(db, uid)

    @firestore_module.transactional
    def _txn(transaction):
        snapshot = user_ref.get(transaction=transaction)
        if not snapshot.exists:
            return False
        if normalize_user_data(snapshot.to_dict())[USED_FIELD] <= 0:
            return False
        transaction.update(user_ref, {USED_FIELD: firestore_module.Increment(-1)})
        return True

    try:
        refunded = _txn(db.transaction())
    except Exception as exc:
        logger.error(f"❌ Failed to refund customization to user {uid}: {exc}")
        return False
    if refunded:
        logger.info(f"✅ Refunded 1 customization to user {uid}.")
    return refunded


def grant_in_transaction(transaction, user_ref, snapshot, amount, *, firestore_module):
    """Stage a grant of ``amount`` credits on an already-read user snapshot.

    Callers must have performed every transactional read before calling this.
    Returns the resulting allowance.
    """
    if snapshot.exists:
        current = normalize_user_data(snapshot.to_dict())[ALLOWED_FIELD]
        if amount:
            transaction.update(user_ref, {ALLOWED_FIELD: firestore_module.Increment(amount)})
        return current + amount
    user_data = build_default_user_data()
    user_data[ALLOWED_FIELD] = amount
    transaction.set(user_ref, user_data)
    return amount


def grant(db, uid, amount, *, firestore_module):
    validate_amount(amount)
    user_ref = users_repo.doc_ref(db, uid)

    @firestore_module.transactional
    def _txn(transaction):
        snapshot = user_ref.get(transaction=transaction)
        return grant_in_transaction(transaction, user_ref, snapshot, amount, firestore_module=firestore_module)

    allowed = _txn(db.transaction())
    logger.info(f"Granted {amount} customizations to user {uid} (allowed={allowed}).")
    return allowed


def mark_default_listened(db, uid):
    users_repo.set_doc(db, uid, {'hasListenedToDefault': True}, merge=True)


def apply_google_signup_bonus(db, uid, *, firestore_module, anonymous_uid=None, bonus=GOOGLE_SIGNUP_BONUS):
    """Grant the one-time bonus for upgrading to a Google account.

    When the Google account has no record yet, usage from the visitor's
    anonymous record is moved over once: the anonymous record is closed
    (allowance capped at its usage) and stamped with ``mergedInto``, so its
    credits can be spent from one account only.
    Returns True when the bonus was applied.
    """
    user_ref = users_repo.doc_ref(db, uid)
    anonymous_ref = None
    if anonymous_uid and anonymous_uid != uid:
        anonymous_ref = users_repo.doc_ref(db, anonymous_uid)

    @firestore_module.transactional
    def _txn(transaction):
        snapshot = user_ref.get(transaction=transaction)
        anonymous_snapshot = anonymous_ref.get(transaction=transaction) if anonymous_ref is not None else None

        if snapshot.exists:
            if normalize_user_data(snapshot.to_dict())['isGoogleUser']:
                return False
            transaction.update(user_ref, {
                ALLOWED_FIELD: firestore_module.Increment(bonus),
                'isGoogleUser': True,
            })
            return True

        user_data = build_default_user_data()
        if anonymous_snapshot is not None and anonymous_snapshot.exists:
            anonymous_data = normalize_user_data(anonymous_snapshot.to_dict())
            if not anonymous_data.get('mergedInto'):
                user_data[ALLOWED_FIELD] = anonymous_data[ALLOWED_FIELD]
                user_data[USED_FIELD] = anonymous_data[USED_FIELD]
                user_data['hasListenedToDefault'] = anonymous_data['hasListenedToDefault']
                transaction.update(anonymous_ref, {
                    'mergedInto': uid,
                    ALLOWED_FIELD: anonymous_data[USED_FIELD],
                })
        user_data[ALLOWED_FIELD] += bonus
        user_data['isGoogleUser'] = True
        transaction.set(user_ref, user_data)
        return True

    applied = _txn(db.transaction())
    if applied:
        logger.info(f"🎁 Google signup bonus of {bonus} applied to user {uid}.")
    return applied
