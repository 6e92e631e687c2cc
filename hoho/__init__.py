import uuid

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging

MAX_REQUEST_BYTES = 1024 * 1024


def _register_request_hooks(app, app_ctx):
    allowed_origins = app_ctx.config.cors_allowed_origins

    def apply_cors_headers(response):
        origin = str(request.headers.get('Origin', '') or '').strip()
        if not origin or not request.path.startswith('/api/'):
            return response
        if origin.lower() not in allowed_origins:
            return response
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Vary'] = 'Origin'
        response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
        return response

    @app.before_request
    def handle_api_options_preflight():
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return apply_cors_headers(app.make_default_options_response())

    @app.before_request
    def attach_request_context():
        request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
        g.request_id = request_id
        if app_ctx.sentry_sdk is None:
            return
        app_ctx.sentry_sdk.set_tag('request.id', request_id)
        app_ctx.sentry_sdk.set_tag('route.path', request.path)
        app_ctx.sentry_sdk.set_tag('route.method', request.method)

    @app.after_request
    def attach_response_context(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return apply_cors_headers(response)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_entity_too_large(_error):
        return jsonify({'error': 'Request body is too large'}), 413


def create_app(config=None, app_ctx=None):
    """Build the Flask app.

    ``config`` defaults to the environment; tests pass a prebuilt ``app_ctx``
    so no Firebase, Stripe or Gemini client is created.
    """
    if config is None:
        load_dotenv()
        config = load_config()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.secret_key = config.flask_secret_key or None
    app.config['MAX_CONTENT_LENGTH'] = MAX_REQUEST_BYTES
    app_ctx = init_extensions(app, config, app_ctx=app_ctx)
    _register_request_hooks(app, app_ctx)

    from .blueprints import account_bp, lipsync_bp, messages_bp, payments_bp, site_bp

    for blueprint in (payments_bp, messages_bp, lipsync_bp, account_bp, site_bp):
        app.register_blueprint(blueprint)
    return app
