import json
import os
from dataclasses import dataclass, field

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}

# Stripe catalog of the live site. Payment links are shared by package size;
# the webhook resolves purchases from the link id first, then price id, then amount.
DEFAULT_PAYMENT_LINKS = {
    1: 'https://buy.stripe.com/8x2aEQ7Dg1A176u1Z3a7C00',
    3: 'https://buy.stripe.com/eVq00c4r4diJ4YmdHLa7C01',
    10: 'https://buy.stripe.com/6oU3cobTw3I9gH4avza7C02',
}
DEFAULT_PAYMENT_LINK_CUSTOMIZATIONS = {
    'plink_1SUBEk2KjEFg0ZKw36nBXRk4': 1,
    'plink_1SUBJt2KjEFg0ZKwm0xmmUUY': 3,
    'plink_1SUBfv2KjEFg0ZKw4L0zcrln': 10,
}
DEFAULT_PRICE_CUSTOMIZATIONS = {}
# Minor units (stotinki): 1 лв, 2 лв, 3 лв.
DEFAULT_AMOUNT_CUSTOMIZATIONS = {
    100: 1,
    200: 3,
    300: 10,
}


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0, minimum=0.0, maximum=1.0):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, minimum), maximum)


def _env_str(name, default=''):
    return (os.getenv(name, default) or default).strip()


def _json_int_map_env(name, default, key_type=str):
    """Parse a JSON object of ``{key: positive int}`` from the environment.

    Malformed values fall back to ``default`` so a typo never empties the catalog.
    """
    raw = _env_str(name)
    if not raw:
        return dict(default)
    try:
        parsed = json.loads(raw)
        result = {key_type(key): int(value) for key, value in parsed.items()}
    except (ValueError, TypeError, AttributeError):
        return dict(default)
    return {key: value for key, value in result.items() if value > 0}


def _json_url_map_env(name, default):
    raw = _env_str(name)
    if not raw:
        return dict(default)
    try:
        parsed = json.loads(raw)
        return {int(key): str(value).strip() for key, value in parsed.items() if str(value).strip()}
    except (ValueError, TypeError, AttributeError):
        return dict(default)


@dataclass(frozen=True)
class CreditCatalog:
    """Maps Stripe payment artifacts to customization quantities."""

    payment_links: dict = field(default_factory=lambda: dict(DEFAULT_PAYMENT_LINKS))
    payment_link_customizations: dict = field(default_factory=lambda: dict(DEFAULT_PAYMENT_LINK_CUSTOMIZATIONS))
    price_customizations: dict = field(default_factory=lambda: dict(DEFAULT_PRICE_CUSTOMIZATIONS))
    amount_customizations: dict = field(default_factory=lambda: dict(DEFAULT_AMOUNT_CUSTOMIZATIONS))


@dataclass(frozen=True)
class AppConfig:
    """Central config object, built from the process environment by ``load_config``."""

    flask_secret_key: str = ''
    log_level: str = 'INFO'
    environment: str = 'production'
    sentry_dsn: str = ''
    sentry_release: str = 'hoho'
    sentry_traces_sample_rate: float = 0.0
    firebase_credentials: str = ''
    firebase_credentials_path: str = 'firebase-credentials.json'
    firebase_storage_bucket: str = ''
    stripe_secret_key: str = ''
    stripe_webhook_secret: str = ''
    manual_grant_secret: str = ''
    wavespeed_api_key: str = ''
    wavespeed_base_url: str = 'https://api.wavespeed.ai/api/v3'
    wavespeed_poll_interval_seconds: float = 1.0
    wavespeed_timeout_seconds: int = 300
    gemini_api_key: str = ''
    gemini_tts_model: str = 'gemini-2.5-flash-preview-tts'
    gemini_tts_voice: str = 'Charon'
    santa_image_url: str = 'https://hoho.bg/santa.png'
    public_base_url: str = 'https://hoho.bg'
    countdown_timezone: str = 'Europe/Sofia'
    checkout_rate_limit_max_requests: int = 6
    checkout_rate_limit_window_seconds: int = 600
    speech_rate_limit_max_requests: int = 20
    speech_rate_limit_window_seconds: int = 600
    analytics_rate_limit_max_requests: int = 240
    analytics_rate_limit_window_seconds: int = 60
    rate_limit_firestore_enabled: bool = True
    cors_allowed_origins: frozenset = frozenset({
        'http://localhost:3000',
        'http://127.0.0.1:3000',
        'https://hoho.bg',
        'https://www.hoho.bg',
    })
    catalog: CreditCatalog = field(default_factory=CreditCatalog)

    @property
    def is_dev_like(self):
        return self.environment in DEV_ENV_NAMES


def resolve_runtime_env():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


def parse_cors_allowed_origins(default):
    raw = _env_str('CORS_ALLOWED_ORIGINS')
    if not raw:
        return default
    return frozenset(part.strip().lower() for part in raw.split(',') if part.strip())


def load_catalog() -> CreditCatalog:
    return CreditCatalog(
        payment_links=_json_url_map_env('HOHO_PAYMENT_LINKS', DEFAULT_PAYMENT_LINKS),
        payment_link_customizations=_json_int_map_env('HOHO_PAYMENT_LINK_CUSTOMIZATIONS', DEFAULT_PAYMENT_LINK_CUSTOMIZATIONS),
        price_customizations=_json_int_map_env('HOHO_PRICE_CUSTOMIZATIONS', DEFAULT_PRICE_CUSTOMIZATIONS),
        amount_customizations=_json_int_map_env('HOHO_AMOUNT_CUSTOMIZATIONS', DEFAULT_AMOUNT_CUSTOMIZATIONS, key_type=int),
    )


def load_config() -> AppConfig:
    runtime_env = resolve_runtime_env()
    defaults = AppConfig()
    config = AppConfig(
        flask_secret_key=_env_str('FLASK_SECRET_KEY'),
        log_level=_env_str('LOG_LEVEL', 'INFO').upper(),
        environment=runtime_env,
        sentry_dsn=_env_str('SENTRY_DSN_BACKEND'),
        sentry_release=_env_str('SENTRY_RELEASE', 'hoho'),
        sentry_traces_sample_rate=safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0),
        firebase_credentials=_env_str('FIREBASE_CREDENTIALS'),
        firebase_credentials_path=_env_str('FIREBASE_CREDENTIALS_PATH', defaults.firebase_credentials_path),
        firebase_storage_bucket=_env_str('FIREBASE_STORAGE_BUCKET'),
        stripe_secret_key=_env_str('STRIPE_SECRET_KEY'),
        stripe_webhook_secret=_env_str('STRIPE_WEBHOOK_SECRET'),
        manual_grant_secret=_env_str('WEBHOOK_SECRET'),
        wavespeed_api_key=_env_str('WAVESPEED_API_KEY'),
        wavespeed_base_url=_env_str('WAVESPEED_BASE_URL', defaults.wavespeed_base_url).rstrip('/'),
        wavespeed_poll_interval_seconds=safe_float_env('WAVESPEED_POLL_INTERVAL_SECONDS', 1.0, minimum=0.1, maximum=30.0),
        wavespeed_timeout_seconds=safe_int_env('WAVESPEED_TIMEOUT_SECONDS', 300, minimum=10, maximum=1800),
        gemini_api_key=_env_str('GEMINI_API_KEY'),
        gemini_tts_model=_env_str('GEMINI_TTS_MODEL', defaults.gemini_tts_model),
        gemini_tts_voice=_env_str('GEMINI_TTS_VOICE', defaults.gemini_tts_voice),
        santa_image_url=_env_str('SANTA_IMAGE_URL', defaults.santa_image_url),
        public_base_url=_env_str('PUBLIC_BASE_URL', defaults.public_base_url).rstrip('/'),
        countdown_timezone=_env_str('COUNTDOWN_TIMEZONE', defaults.countdown_timezone),
        checkout_rate_limit_max_requests=safe_int_env('CHECKOUT_RATE_LIMIT_MAX_REQUESTS', 6, minimum=1, maximum=100),
        checkout_rate_limit_window_seconds=safe_int_env('CHECKOUT_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400),
        speech_rate_limit_max_requests=safe_int_env('SPEECH_RATE_LIMIT_MAX_REQUESTS', 20, minimum=1, maximum=1000),
        speech_rate_limit_window_seconds=safe_int_env('SPEECH_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400),
        analytics_rate_limit_max_requests=safe_int_env('ANALYTICS_RATE_LIMIT_MAX_REQUESTS', 240, minimum=10, maximum=5000),
        analytics_rate_limit_window_seconds=safe_int_env('ANALYTICS_RATE_LIMIT_WINDOW_SECONDS', 60, minimum=10, maximum=3600),
        rate_limit_firestore_enabled=_env_str('RATE_LIMIT_FIRESTORE_ENABLED', '1').lower() in {'1', 'true', 'yes', 'on'},
        cors_allowed_origins=parse_cors_allowed_origins(defaults.cors_allowed_origins),
        catalog=load_catalog(),
    )
    if not config.is_dev_like and not config.flask_secret_key:
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config
