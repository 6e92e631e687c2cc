"""Business logic handlers for public site APIs (countdown, analytics)."""

from datetime import datetime
from zoneinfo import ZoneInfo

from hoho.services import analytics_service, countdown_service, rate_limit_service


def get_countdown(app_ctx, now=None):
    tz = ZoneInfo(app_ctx.config.countdown_timezone)
    current = now.astimezone(tz) if now is not None else datetime.now(tz)
    return app_ctx.jsonify(countdown_service.build_countdown(current))


def ingest_analytics_event(app_ctx, request):
    data = request.get_json(silent=True) or {}
    event_name = analytics_service.sanitize_event_name(data.get('event'))
    if not event_name:
        return app_ctx.jsonify({'error': 'Invalid analytics event'}), 400

    decoded_token = app_ctx.verify_firebase_token(request)
    uid = decoded_token.get('uid', '') if decoded_token else ''
    session_id = analytics_service.sanitize_session_id(data.get('session_id', ''))
    actor = uid or session_id or request.headers.get('X-Forwarded-For', request.remote_addr or '')
    allowed, retry_after = app_ctx.check_rate_limit(
        f"analytics:{rate_limit_service.normalize_key_part(actor)}",
        app_ctx.config.analytics_rate_limit_max_requests,
        app_ctx.config.analytics_rate_limit_window_seconds,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('analytics', retry_after)
        return app_ctx.build_rate_limited_response(
            'Too many analytics events from this client. Please retry shortly.',
            retry_after,
        )

    stored = app_ctx.log_analytics_event(
        event_name,
        source='frontend',
        uid=uid,
        session_id=session_id,
        properties=data.get('properties'),
    )
    return app_ctx.jsonify({'ok': True, 'stored': stored}), 202
