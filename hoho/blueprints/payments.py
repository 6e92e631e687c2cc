from flask import Blueprint, request

from hoho.extensions import get_app_ctx
from hoho.services import payments_api_service

payments_bp = Blueprint('payments_api', __name__)


@payments_bp.route('/api/create-checkout', methods=['POST'])
def create_checkout():
    return payments_api_service.create_checkout(get_app_ctx(), request)


@payments_bp.route('/api/stripe-webhook', methods=['POST'])
def stripe_webhook():
    return payments_api_service.stripe_webhook(get_app_ctx(), request)


@payments_bp.route('/api/add-customizations', methods=['POST'])
def add_customizations():
    return payments_api_service.add_customizations(get_app_ctx(), request)


@payments_bp.after_request
def disable_webhook_caching(response):
    if request.path == '/api/stripe-webhook':
        response.headers['Cache-Control'] = 'no-store'
    return response
