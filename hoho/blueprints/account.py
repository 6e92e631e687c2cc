from flask import Blueprint, request

from hoho.extensions import get_app_ctx
from hoho.services import account_api_service

account_bp = Blueprint('account_api', __name__)


@account_bp.route('/api/auth/user', methods=['GET'])
def get_user():
    return account_api_service.get_user(get_app_ctx(), request)


@account_bp.route('/api/auth/listened-default', methods=['POST'])
def mark_default_listened():
    return account_api_service.mark_default_listened(get_app_ctx(), request)


@account_bp.route('/api/auth/google-upgrade', methods=['POST'])
def google_upgrade():
    return account_api_service.google_upgrade(get_app_ctx(), request)


@account_bp.route('/api/referrals/claim', methods=['POST'])
def claim_referral():
    return account_api_service.claim_referral(get_app_ctx(), request)
