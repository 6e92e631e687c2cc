import atexit
import json
import logging
import os

import firebase_admin
import requests
import sentry_sdk
import stripe
from firebase_admin import auth, credentials, firestore, storage
from flask import current_app
from google import genai
from sentry_sdk.integrations.flask import FlaskIntegration

from .context import AppContext
from .services.lipsync_service import LipsyncClient

EXTENSION_KEY = 'hoho'

logger = logging.getLogger('hoho')


def _load_firebase_credentials(config):
    if os.path.exists(config.firebase_credentials_path):
        return credentials.Certificate(config.firebase_credentials_path)
    if not config.firebase_credentials:
        raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
    return credentials.Certificate(json.loads(config.firebase_credentials))


def init_firebase(config):
    """Return ``(db, bucket)``; both are None when Firebase cannot be initialized."""
    try:
        cred = _load_firebase_credentials(config)
        if not firebase_admin._apps:
            options = {}
            if config.firebase_storage_bucket:
                options['storageBucket'] = config.firebase_storage_bucket
            firebase_admin.initialize_app(cred, options or None)
        db = firestore.client()
    except Exception as exc:
        logger.info(f"⚠️ Firebase initialization skipped: {exc}")
        return None, None
    bucket = None
    if config.firebase_storage_bucket:
        try:
            bucket = storage.bucket(config.firebase_storage_bucket)
        except Exception as exc:
            logger.info(f"⚠️ Firebase Storage disabled: {exc}")
    return db, bucket


def init_genai(config):
    if not config.gemini_api_key:
        logger.info("⚠️ GEMINI_API_KEY not set; speech synthesis is disabled.")
        return None
    try:
        return genai.Client(api_key=config.gemini_api_key)
    except Exception as exc:
        logger.info(f"⚠️ Gemini client disabled: {exc}")
        return None


def init_sentry(config):
    if not config.sentry_dsn:
        return
    sentry_sdk.init(
        dsn=config.sentry_dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=config.sentry_traces_sample_rate,
        send_default_pii=False,
        environment=config.environment,
        release=config.sentry_release,
    )


def build_app_context(config):
    init_sentry(config)
    db, bucket = init_firebase(config)
    stripe.api_key = config.stripe_secret_key or None
    if not config.wavespeed_api_key:
        logger.info("⚠️ WAVESPEED_API_KEY not set; lip-sync video generation is disabled.")
    lipsync = LipsyncClient(
        config.wavespeed_api_key,
        session=requests.Session(),
        base_url=config.wavespeed_base_url,
        poll_interval_seconds=config.wavespeed_poll_interval_seconds,
        timeout_seconds=config.wavespeed_timeout_seconds,
    )
    app_ctx = AppContext(
        config,
        db=db,
        bucket=bucket,
        auth=auth,
        firestore=firestore,
        stripe=stripe,
        genai_client=init_genai(config),
        lipsync=lipsync,
        sentry_sdk=sentry_sdk if config.sentry_dsn else None,
        logger=logger,
    )
    atexit.register(app_ctx.shutdown_event.set)
    return app_ctx


def init_extensions(app, config, app_ctx=None) -> AppContext:
    """Attach the runtime context to ``app``; a prebuilt one (tests) is used as-is."""
    if app_ctx is None:
        app_ctx = build_app_context(config)
    app.extensions[EXTENSION_KEY] = app_ctx
    return app_ctx


def get_app_ctx() -> AppContext:
    return current_app.extensions[EXTENSION_KEY]
