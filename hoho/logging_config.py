import json
import logging

NOISY_LOGGERS = ('urllib3', 'google', 'httpx')


def configure_logging(level: str = 'INFO') -> None:
    """Idempotent logging setup for app-factory flow."""
    root = logging.getLogger()
    if root.handlers:
        return
    numeric_level = getattr(logging, str(level or 'INFO').upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def log_event(logger, level, event, **fields):
    """Emit ``event`` and ``fields`` as a single JSON log line."""
    payload = {'event': event}
    payload.update({str(key): value for key, value in fields.items()})
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
