from flask import Blueprint, jsonify, request

from hoho.extensions import get_app_ctx
from hoho.services import site_api_service

site_bp = Blueprint('site_api', __name__)


@site_bp.route('/api/countdown', methods=['GET'])
def get_countdown():
    return site_api_service.get_countdown(get_app_ctx())


@site_bp.route('/api/analytics/event', methods=['POST'])
def ingest_analytics_event():
    return site_api_service.ingest_analytics_event(get_app_ctx(), request)


@site_bp.route('/healthz')
def healthz():
    return jsonify({'status': 'ok'}), 200
