"""Business logic handlers for payment APIs."""

import hmac
from urllib.parse import urlencode

from hoho.services import fulfillment_service, ledger_service

EVENT_CHECKOUT_COMPLETED = 'checkout.session.completed'
EVENT_ASYNC_PAYMENT_SUCCEEDED = 'checkout.session.async_payment_succeeded'
EVENT_PAYMENT_INTENT_SUCCEEDED = 'payment_intent.succeeded'
CHECKOUT_SESSION_EVENTS = {EVENT_CHECKOUT_COMPLETED, EVENT_ASYNC_PAYMENT_SUCCEEDED}


def _parse_package_size(raw_value):
    """Package sizes are whole numbers; floats and bools never match a package."""
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, str) and raw_value.strip().isdigit():
        return int(raw_value.strip())
    return None


def create_checkout(app_ctx, request):
    data = request.get_json(silent=True) or {}
    customizations = data.get('customizations')
    user_id = str(data.get('userId') or '').strip()
    if not customizations or not user_id:
        return app_ctx.jsonify({'error': 'Missing customizations or userId'}), 400

    decoded_token = app_ctx.verify_firebase_token(request)
    if decoded_token and decoded_token.get('uid') != user_id:
        return app_ctx.jsonify({'error': 'Forbidden'}), 403

    package_size = _parse_package_size(customizations)
    payment_link = app_ctx.config.catalog.payment_links.get(package_size)
    if not payment_link:
        return app_ctx.jsonify({'error': 'Invalid customization amount'}), 400

    allowed, retry_after = app_ctx.check_rate_limit(
        f"checkout:{user_id}",
        app_ctx.config.checkout_rate_limit_max_requests,
        app_ctx.config.checkout_rate_limit_window_seconds,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('checkout', retry_after)
        return app_ctx.build_rate_limited_response(
            'Too many checkout attempts. Please wait before starting another checkout.',
            retry_after,
        )

    query = urlencode({'client_reference_id': user_id, 'prefilled_email': ''})
    return app_ctx.jsonify({'url': f"{payment_link}?{query}"})


def _verify_webhook(app_ctx, payload, sig_header):
    """Return ``(event, error_response)``; exactly one of them is None."""
    stripe = app_ctx.stripe
    try:
        event = stripe.Webhook.construct_event(payload, sig_header, app_ctx.config.stripe_webhook_secret)
        return event, None
    except stripe.SignatureVerificationError as exc:
        app_ctx.logger.warning(f"Stripe webhook signature verification failed: {exc}")
        return None, (app_ctx.jsonify({'error': 'Webhook signature verification failed'}), 400)
    except ValueError:
        app_ctx.logger.warning("Stripe webhook: Invalid payload")
        return None, (app_ctx.jsonify({'error': 'Invalid payload'}), 400)


def _list_line_items(app_ctx):
    def _list(session_id):
        return app_ctx.stripe.checkout.Session.list_line_items(session_id, limit=100)
    return _list


def stripe_webhook(app_ctx, request):
    if not app_ctx.config.stripe_webhook_secret:
        app_ctx.logger.warning("⚠️ Stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not configured")
        return app_ctx.jsonify({'error': 'Webhook not configured'}), 500

    sig_header = request.headers.get('Stripe-Signature', '')
    if not sig_header:
        return app_ctx.jsonify({'error': 'Missing stripe-signature header'}), 400

    event, error_response = _verify_webhook(app_ctx, request.get_data(), sig_header)
    if error_response is not None:
        return error_response

    get_field = fulfillment_service.get_field
    event_type = get_field(event, 'type')
    event_object = get_field(get_field(event, 'data'), 'object') or {}
    try:
        if event_type in CHECKOUT_SESSION_EVENTS:
            result = fulfillment_service.process_checkout_session(
                app_ctx.db,
                event_object,
                event=event,
                catalog=app_ctx.config.catalog,
                list_line_items=_list_line_items(app_ctx),
                firestore_module=app_ctx.firestore,
            )
        elif event_type == EVENT_PAYMENT_INTENT_SUCCEEDED:
            result = fulfillment_service.process_payment_intent(
                app_ctx.db,
                event_object,
                event=event,
                firestore_module=app_ctx.firestore,
            )
        else:
            return app_ctx.jsonify({'received': True})
    except Exception as exc:
        app_ctx.logger.error(f"❌ Webhook handler failed for event {get_field(event, 'id', '')}: {exc}")
        return app_ctx.jsonify({'error': 'Webhook handler failed'}), 500

    payment_id = get_field(event_object, 'id', '')
    if result.status == fulfillment_service.STATUS_MISSING_USER:
        app_ctx.logger.error(f"❌ Cannot process payment {payment_id} without userId")
        return app_ctx.jsonify({
            'error': 'No userId in session - payment succeeded but customizations not added. '
                     f"Contact support with session ID: {payment_id}",
        }), 400
    if result.status == fulfillment_service.STATUS_UNRESOLVED:
        app_ctx.logger.error(f"No customizations resolved for payment {payment_id}")
        return app_ctx.jsonify({'error': 'Could not determine customizations amount'}), 400
    if result.status == fulfillment_service.STATUS_GRANTED:
        app_ctx.logger.info(f"✅ Payment {payment_id}: added {result.quantity} customizations to user {result.uid}")
        app_ctx.log_analytics_event(
            'payment_confirmed_backend',
            uid=result.uid,
            properties={'customizations': result.quantity, 'event_type': event_type},
        )
        return app_ctx.jsonify({
            'success': True,
            'message': f"Added {result.quantity} customizations to user {result.uid}",
        })
    if result.status == fulfillment_service.STATUS_ALREADY_PROCESSED:
        app_ctx.logger.info(f"ℹ️ Payment {payment_id} already processed.")
    return app_ctx.jsonify({'received': True, 'status': result.status})


def add_customizations(app_ctx, request):
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('userId') or '').strip()
    amount = data.get('amount')
    if not user_id or not amount:
        return app_ctx.jsonify({'error': 'Missing required fields: userId and amount'}), 400

    expected_secret = app_ctx.config.manual_grant_secret
    provided_secret = str(data.get('secret') or '')
    if not expected_secret or not hmac.compare_digest(provided_secret.encode('utf-8'), expected_secret.encode('utf-8')):
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        return app_ctx.jsonify({'error': 'Amount must be a positive number'}), 400

    try:
        ledger_service.grant(app_ctx.db, user_id, amount, firestore_module=app_ctx.firestore)
    except Exception as exc:
        app_ctx.logger.error(f"Error adding customizations: {exc}")
        return app_ctx.jsonify({'error': 'Internal server error'}), 500
    return app_ctx.jsonify({
        'success': True,
        'message': f"Successfully added {amount} customizations to user {user_id}",
    })
