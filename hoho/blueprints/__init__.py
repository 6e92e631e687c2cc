from .account import account_bp
from .lipsync import lipsync_bp
from .messages import messages_bp
from .payments import payments_bp
from .site import site_bp

__all__ = ['account_bp', 'lipsync_bp', 'messages_bp', 'payments_bp', 'site_bp']
