from flask import Blueprint, request

from hoho.extensions import get_app_ctx
from hoho.services import messages_api_service

messages_bp = Blueprint('messages_api', __name__)


@messages_bp.route('/api/text-to-speech', methods=['POST'])
def text_to_speech():
    return messages_api_service.text_to_speech(get_app_ctx(), request)


@messages_bp.route('/api/messages', methods=['POST'])
def create_message():
    return messages_api_service.create_message(get_app_ctx(), request)


@messages_bp.route('/api/messages', methods=['GET'])
def list_user_videos():
    return messages_api_service.list_user_videos(get_app_ctx(), request)


@messages_bp.route('/api/messages/<message_id>', methods=['GET'])
def get_shared_message(message_id):
    return messages_api_service.get_shared_message(get_app_ctx(), message_id)


@messages_bp.route('/api/messages/<message_id>/video', methods=['POST'])
def generate_message_video(message_id):
    return messages_api_service.generate_message_video(get_app_ctx(), request, message_id)
