"""Runtime context handed to the API handlers.

Everything that talks to an external service is constructed once by
``hoho.extensions`` and carried here, so handlers and tests never reach for
module-level singletons.
"""

import logging
import threading
import time

from flask import jsonify

from hoho.services import analytics_service, auth_service, rate_limit_service, speech_service


class AppContext:
    def __init__(self, config, *, db=None, bucket=None, auth=None, firestore=None, stripe=None,
                 genai_client=None, lipsync=None, sentry_sdk=None, logger=None, time_module=time):
        self.config = config
        self.db = db
        self.bucket = bucket
        self.auth = auth
        self.firestore = firestore
        self.stripe = stripe
        self.genai_client = genai_client
        self.lipsync = lipsync
        self.sentry_sdk = sentry_sdk
        self.logger = logger or logging.getLogger('hoho')
        self.time = time_module
        self.jsonify = jsonify
        self.rate_limit_events = {}
        self.rate_limit_lock = threading.Lock()
        # Set on interpreter shutdown; stops in-flight lip-sync polling.
        self.shutdown_event = threading.Event()

    # --- auth ---

    def verify_firebase_token(self, request):
        return auth_service.verify_firebase_token(request, auth_module=self.auth, logger=self.logger)

    def verify_id_token(self, token):
        return auth_service.verify_id_token(token, auth_module=self.auth, logger=self.logger)

    # --- rate limiting ---

    def check_rate_limit(self, key, limit, window_seconds):
        return rate_limit_service.check_rate_limit(
            key,
            limit,
            window_seconds,
            self.time.time(),
            db=self.db,
            firestore_module=self.firestore,
            firestore_enabled=self.config.rate_limit_firestore_enabled,
            events=self.rate_limit_events,
            lock=self.rate_limit_lock,
        )

    def build_rate_limited_response(self, message, retry_after):
        retry_after = max(1, int(retry_after or 1))
        response = self.jsonify({'error': message, 'retry_after_seconds': retry_after})
        response.status_code = 429
        response.headers['Retry-After'] = str(retry_after)
        return response

    # --- analytics ---

    def log_analytics_event(self, event_name, source='backend', uid='', session_id='', properties=None):
        return analytics_service.log_analytics_event(
            event_name,
            db=self.db,
            logger=self.logger,
            now_ts=self.time.time(),
            source=source,
            uid=uid,
            session_id=session_id,
            properties=properties,
        )

    def log_rate_limit_hit(self, limit_name, retry_after=0):
        return analytics_service.log_rate_limit_hit(
            limit_name,
            retry_after,
            db=self.db,
            logger=self.logger,
            now_ts=self.time.time(),
        )

    # --- speech ---

    def synthesize_speech(self, text):
        return speech_service.synthesize(
            self.genai_client,
            text,
            model=self.config.gemini_tts_model,
            voice=self.config.gemini_tts_voice,
        )
