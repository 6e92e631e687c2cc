"""Firebase ID token helpers."""

PROVIDER_ANONYMOUS = 'anonymous'
PROVIDER_GOOGLE = 'google.com'


def extract_bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return ''
    return auth_header.split('Bearer ', 1)[1].strip()


def verify_id_token(token, auth_module, logger):
    """Return the decoded Firebase token dict, or None when invalid/missing."""
    if not token or auth_module is None:
        return None
    try:
        return auth_module.verify_id_token(token)
    except Exception as exc:
        if logger is not None:
            logger.info(f"Token verification failed: {exc}")
        return None


def verify_firebase_token(request, auth_module, logger):
    return verify_id_token(extract_bearer_token(request), auth_module, logger)


def sign_in_provider(decoded_token):
    firebase_claims = (decoded_token or {}).get('firebase') or {}
    return str(firebase_claims.get('sign_in_provider') or '')


def is_anonymous(decoded_token):
    return sign_in_provider(decoded_token) == PROVIDER_ANONYMOUS
