from flask import Blueprint, request

from hoho.extensions import get_app_ctx
from hoho.services import lipsync_api_service

lipsync_bp = Blueprint('lipsync_api', __name__)


@lipsync_bp.route('/api/wavespeed-lipsync', methods=['POST'])
def wavespeed_lipsync():
    return lipsync_api_service.wavespeed_lipsync(get_app_ctx(), request)
