"""Stripe purchase fulfilment: resolve what was bought and credit it once."""

import logging
import time
from collections import namedtuple

from hoho.logging_config import log_event
from hoho.repositories import purchases_repo, users_repo
from hoho.services import ledger_service

logger = logging.getLogger('hoho.fulfillment')

PAID_STATUSES = {'paid', 'no_payment_required'}

STATUS_GRANTED = 'granted'
STATUS_ALREADY_PROCESSED = 'already_processed'
STATUS_MISSING_USER = 'missing_user'
STATUS_NOT_PAID = 'not_paid'
STATUS_UNRESOLVED = 'unresolved'
STATUS_IGNORED = 'ignored'

SOURCE_PAYMENT_LINK = 'payment_link'
SOURCE_PRICE = 'price'
SOURCE_AMOUNT = 'amount'
SOURCE_METADATA = 'metadata'

FulfillmentResult = namedtuple('FulfillmentResult', ['ok', 'status', 'uid', 'quantity'])


def get_field(obj, name, default=None):
    """Read ``name`` from a plain dict or a Stripe object."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def _positive_int(value):
    if isinstance(value, bool):
        return 0
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return 0
    return parsed if parsed > 0 else 0


def resolve_customizations(session, catalog, *, list_line_items):
    """Return ``(quantity, source)`` for a completed checkout session.

    Preference order: payment-link id, then each line item's price id (times
    its quantity), then the line item's paid amount in minor units.
    ``quantity`` is 0 when nothing resolves.
    """
    payment_link = get_field(session, 'payment_link')
    if isinstance(payment_link, str) and catalog.payment_link_customizations.get(payment_link):
        return catalog.payment_link_customizations[payment_link], SOURCE_PAYMENT_LINK

    session_id = get_field(session, 'id', '')
    line_items = list_line_items(session_id)
    total = 0
    sources = []
    for item in get_field(line_items, 'data', None) or []:
        price_id = get_field(get_field(item, 'price'), 'id')
        amount = _positive_int(get_field(item, 'amount_total'))
        if price_id and catalog.price_customizations.get(price_id):
            quantity = _positive_int(get_field(item, 'quantity')) or 1
            total += catalog.price_customizations[price_id] * quantity
            sources.append(SOURCE_PRICE)
        elif amount and catalog.amount_customizations.get(amount):
            total += catalog.amount_customizations[amount]
            sources.append(SOURCE_AMOUNT)
        else:
            logger.warning(f"Unknown line item in session {session_id}: price={price_id} amount={amount}")
    return total, ','.join(sorted(set(sources)))


def record_fulfillment(db, payment_id, uid, quantity, details, *, firestore_module):
    """Grant ``quantity`` credits and write the purchase marker atomically.

    Returns ``already_processed`` without writing when a marker exists.
    """
    purchase_ref = purchases_repo.doc_ref(db, payment_id)
    user_ref = users_repo.doc_ref(db, uid)

    @firestore_module.transactional
    def _txn(transaction):
        purchase_snapshot = purchase_ref.get(transaction=transaction)
        if purchase_snapshot.exists:
            return STATUS_ALREADY_PROCESSED
        user_snapshot = user_ref.get(transaction=transaction)
        ledger_service.grant_in_transaction(
            transaction,
            user_ref,
            user_snapshot,
            quantity,
            firestore_module=firestore_module,
        )
        record = {
            'uid': uid,
            'customizations': quantity,
            'created_at': time.time(),
        }
        record.update(details or {})
        transaction.set(purchase_ref, record)
        return STATUS_GRANTED

    status = _txn(db.transaction())
    log_event(logger, logging.INFO, 'purchase_fulfillment', payment_id=payment_id, uid=uid, quantity=quantity, status=status)
    return status


def process_checkout_session(db, session, *, event, catalog, list_line_items, firestore_module):
    session_id = get_field(session, 'id', '')
    metadata = get_field(session, 'metadata') or {}
    uid = get_field(session, 'client_reference_id') or get_field(metadata, 'userId')
    if not uid:
        return FulfillmentResult(False, STATUS_MISSING_USER, '', 0)

    payment_status = str(get_field(session, 'payment_status') or '').lower()
    if payment_status and payment_status not in PAID_STATUSES:
        return FulfillmentResult(True, STATUS_NOT_PAID, uid, 0)

    if session_id and purchases_repo.get_doc(db, session_id).exists:
        return FulfillmentResult(True, STATUS_ALREADY_PROCESSED, uid, 0)

    quantity, source = resolve_customizations(session, catalog, list_line_items=list_line_items)
    if quantity <= 0:
        return FulfillmentResult(False, STATUS_UNRESOLVED, uid, 0)

    status = record_fulfillment(
        db,
        session_id,
        uid,
        quantity,
        {
            'source': source,
            'stripe_session_id': session_id,
            'stripe_event_id': get_field(event, 'id', ''),
            'stripe_event_type': get_field(event, 'type', ''),
            'amount_total': _positive_int(get_field(session, 'amount_total')),
            'currency': str(get_field(session, 'currency') or ''),
        },
        firestore_module=firestore_module,
    )
    return FulfillmentResult(True, status, uid, quantity if status == STATUS_GRANTED else 0)


def process_payment_intent(db, payment_intent, *, event, firestore_module):
    metadata = get_field(payment_intent, 'metadata') or {}
    uid = get_field(metadata, 'userId')
    quantity = _positive_int(get_field(metadata, 'customizations'))
    if not uid or not quantity:
        return FulfillmentResult(True, STATUS_IGNORED, uid or '', 0)

    payment_intent_id = get_field(payment_intent, 'id', '')
    status = record_fulfillment(
        db,
        payment_intent_id,
        uid,
        quantity,
        {
            'source': SOURCE_METADATA,
            'stripe_payment_intent_id': payment_intent_id,
            'stripe_event_id': get_field(event, 'id', ''),
            'stripe_event_type': get_field(event, 'type', ''),
            'amount_total': _positive_int(get_field(payment_intent, 'amount_received')),
            'currency': str(get_field(payment_intent, 'currency') or ''),
        },
        firestore_module=firestore_module,
    )
    return FulfillmentResult(True, status, uid, quantity if status == STATUS_GRANTED else 0)
