"""Business logic handlers for account, signup bonus and referral APIs."""

from hoho.services import auth_service, ledger_service, referral_service


def _serialize_user(uid, user_data, decoded_token):
    return {
        'userId': uid,
        'isAnonymous': auth_service.is_anonymous(decoded_token),
        'customizationsAllowed': user_data[ledger_service.ALLOWED_FIELD],
        'customizationsUsed': user_data[ledger_service.USED_FIELD],
        'customizationsRemaining': ledger_service.remaining(user_data),
        'hasListenedToDefault': user_data['hasListenedToDefault'],
        'isGoogleUser': user_data['isGoogleUser'],
    }


def get_user(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']
    try:
        user_data = ledger_service.get_or_create(app_ctx.db, uid, firestore_module=app_ctx.firestore)
    except Exception as exc:
        app_ctx.logger.error(f"Error loading user {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Could not load user'}), 500
    return app_ctx.jsonify(_serialize_user(uid, user_data, decoded_token))


def mark_default_listened(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    ledger_service.mark_default_listened(app_ctx.db, decoded_token['uid'])
    return app_ctx.jsonify({'ok': True})


def google_upgrade(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    if auth_service.sign_in_provider(decoded_token) != auth_service.PROVIDER_GOOGLE:
        return app_ctx.jsonify({'error': 'Google sign-in required'}), 403
    uid = decoded_token['uid']

    data = request.get_json(silent=True) or {}
    anonymous_uid = None
    anonymous_token = str(data.get('anonymousIdToken') or '').strip()
    if anonymous_token:
        anonymous_decoded = app_ctx.verify_id_token(anonymous_token)
        if not anonymous_decoded or not auth_service.is_anonymous(anonymous_decoded):
            return app_ctx.jsonify({'error': 'Invalid anonymous session'}), 400
        anonymous_uid = anonymous_decoded['uid']

    try:
        is_new_user = ledger_service.apply_google_signup_bonus(
            app_ctx.db,
            uid,
            firestore_module=app_ctx.firestore,
            anonymous_uid=anonymous_uid,
        )
    except Exception as exc:
        app_ctx.logger.error(f"❌ Error applying Google signup bonus for {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Could not complete sign-in'}), 500
    return app_ctx.jsonify({'userId': uid, 'isNewUser': is_new_user})


def claim_referral(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    data = request.get_json(silent=True) or {}
    referrer_id = str(data.get('referrerId') or '').strip()
    if not referrer_id:
        return app_ctx.jsonify({'error': 'Missing referrerId'}), 400

    try:
        status = referral_service.award_referral_bonus(
            app_ctx.db,
            referrer_id,
            decoded_token['uid'],
            firestore_module=app_ctx.firestore,
        )
    except Exception as exc:
        app_ctx.logger.error(f"Error awarding referral bonus: {exc}")
        return app_ctx.jsonify({'error': 'Could not apply referral'}), 500

    if status == referral_service.STATUS_REFERRER_NOT_FOUND:
        return app_ctx.jsonify({'error': 'Referrer not found', 'status': status}), 404
    if status == referral_service.STATUS_SELF_REFERRAL:
        return app_ctx.jsonify({'error': 'You cannot refer yourself', 'status': status}), 400
    return app_ctx.jsonify({'ok': True, 'status': status, 'awarded': status == referral_service.STATUS_AWARDED})
