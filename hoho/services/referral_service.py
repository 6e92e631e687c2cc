"""One-time referral bonus for the user who shared the invite link."""

import logging

from hoho.repositories import users_repo
from hoho.services import ledger_service

logger = logging.getLogger('hoho.referrals')

REFERRAL_BONUS = 5

STATUS_AWARDED = 'awarded'
STATUS_REFERRER_NOT_FOUND = 'referrer_not_found'
STATUS_SELF_REFERRAL = 'self_referral'
STATUS_ALREADY_REFERRED = 'already_referred'


def award_referral_bonus(db, referrer_id, referred_id, *, firestore_module, bonus=REFERRAL_BONUS):
    """Credit ``bonus`` to the referrer once per referred user.

    The ``referredBy`` stamp on the referred user is the idempotency guard and
    is written in the same transaction as the grant.
    """
    if not referrer_id or not referred_id:
        raise ValueError('referrer_id and referred_id are required')
    if referrer_id == referred_id:
        return STATUS_SELF_REFERRAL

    referrer_ref = users_repo.doc_ref(db, referrer_id)
    referred_ref = users_repo.doc_ref(db, referred_id)

    @firestore_module.transactional
    def _txn(transaction):
        referrer_snapshot = referrer_ref.get(transaction=transaction)
        referred_snapshot = referred_ref.get(transaction=transaction)
        if not referrer_snapshot.exists:
            return STATUS_REFERRER_NOT_FOUND
        if referred_snapshot.exists and (referred_snapshot.to_dict() or {}).get('referredBy'):
            return STATUS_ALREADY_REFERRED

        ledger_service.grant_in_transaction(
            transaction,
            referrer_ref,
            referrer_snapshot,
            bonus,
            firestore_module=firestore_module,
        )
        if referred_snapshot.exists:
            transaction.update(referred_ref, {'referredBy': referrer_id})
        else:
            referred_data = ledger_service.build_default_user_data()
            referred_data['referredBy'] = referrer_id
            transaction.set(referred_ref, referred_data)
        return STATUS_AWARDED

    status = _txn(db.transaction())
    if status == STATUS_AWARDED:
        logger.info(f"🎄 Referral bonus of {bonus} awarded to {referrer_id} for {referred_id}.")
    elif status == STATUS_REFERRER_NOT_FOUND:
        logger.warning(f"Referrer user not found: {referrer_id}")
    return status
