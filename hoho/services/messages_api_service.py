"""Business logic handlers for speech, shared message and video APIs."""

from flask import Response

from hoho.services import ledger_service, message_service, speech_service
from hoho.services.lipsync_service import LipsyncError
from hoho.services.message_service import NoCreditsError
from hoho.services.storage_service import StorageError

USER_VIDEOS_LIMIT = 20
INVALID_TEXT_ERROR = f"Text is required and must be at most {speech_service.MAX_MESSAGE_CHARS} characters"


def _client_key(request):
    forwarded = request.headers.get('X-Forwarded-For', '')
    return (forwarded.split(',', 1)[0].strip() if forwarded else '') or request.remote_addr or 'unknown'


def text_to_speech(app_ctx, request):
    data = request.get_json(silent=True) or {}
    text = speech_service.normalize_message_text(data.get('text'))
    if not text:
        return app_ctx.jsonify({'error': INVALID_TEXT_ERROR}), 400

    allowed, retry_after = app_ctx.check_rate_limit(
        f"speech:{_client_key(request)}",
        app_ctx.config.speech_rate_limit_max_requests,
        app_ctx.config.speech_rate_limit_window_seconds,
    )
    if not allowed:
        app_ctx.log_rate_limit_hit('speech', retry_after)
        return app_ctx.build_rate_limited_response('Too many speech requests. Please wait a moment.', retry_after)

    try:
        audio_bytes = app_ctx.synthesize_speech(text)
    except speech_service.SpeechError as exc:
        app_ctx.logger.error(f"Text-to-speech error: {exc}")
        return app_ctx.jsonify({'error': 'Failed to generate speech'}), 500
    return Response(audio_bytes, mimetype=speech_service.AUDIO_MIME_TYPE)


def create_message(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    uid = decoded_token['uid']

    data = request.get_json(silent=True) or {}
    text = speech_service.normalize_message_text(data.get('text'))
    if not text:
        return app_ctx.jsonify({'error': INVALID_TEXT_ERROR}), 400

    try:
        message = message_service.generate_message(
            uid,
            text,
            db=app_ctx.db,
            bucket=app_ctx.bucket,
            synthesize=app_ctx.synthesize_speech,
            firestore_module=app_ctx.firestore,
            public_base_url=app_ctx.config.public_base_url,
        )
    except NoCreditsError:
        return app_ctx.jsonify({'error': 'No customizations left', 'customizationsRemaining': 0}), 402
    except (speech_service.SpeechError, StorageError) as exc:
        app_ctx.logger.error(f"Message generation failed for user {uid}: {exc}")
        return app_ctx.jsonify({'error': 'Failed to generate message'}), 500

    user_data = ledger_service.get_or_create(app_ctx.db, uid, firestore_module=app_ctx.firestore)
    message['customizationsRemaining'] = ledger_service.remaining(user_data)
    app_ctx.log_analytics_event(
        'message_generated_backend',
        uid=uid,
        properties={'characters_used': len(text)},
    )
    return app_ctx.jsonify(message), 201


def get_shared_message(app_ctx, message_id):
    message = message_service.get_message(app_ctx.db, message_id)
    if message is None:
        return app_ctx.jsonify({'error': 'Message not found'}), 404
    return app_ctx.jsonify(message_service.serialize_message(message_id, message))


def list_user_videos(app_ctx, request):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401
    try:
        videos = message_service.list_user_videos(
            app_ctx.db,
            decoded_token['uid'],
            USER_VIDEOS_LIMIT,
            firestore_module=app_ctx.firestore,
        )
    except Exception as exc:
        app_ctx.logger.error(f"Error fetching user videos: {exc}")
        return app_ctx.jsonify({'videos': []})
    return app_ctx.jsonify({'videos': videos})


def generate_message_video(app_ctx, request, message_id):
    decoded_token = app_ctx.verify_firebase_token(request)
    if not decoded_token:
        return app_ctx.jsonify({'error': 'Unauthorized'}), 401

    message = message_service.get_message(app_ctx.db, message_id)
    if message is None:
        return app_ctx.jsonify({'error': 'Message not found'}), 404
    if message.get('userId') != decoded_token['uid']:
        return app_ctx.jsonify({'error': 'Forbidden'}), 403
    if message.get('videoUrl'):
        return app_ctx.jsonify({'success': True, 'videoUrl': message['videoUrl']})
    if not app_ctx.lipsync.is_configured:
        return app_ctx.jsonify({'error': 'Video generation is not configured'}), 500

    try:
        video_url, request_id = app_ctx.lipsync.generate(
            message.get('audioUrl', ''),
            app_ctx.config.santa_image_url,
            cancel_event=app_ctx.shutdown_event,
        )
    except LipsyncError as exc:
        app_ctx.logger.error(f"Video generation failed for message {message_id}: {exc}")
        return app_ctx.jsonify({'error': str(exc), 'details': exc.details}), exc.status_code

    message_service.attach_video(app_ctx.db, message_id, video_url)
    app_ctx.log_analytics_event(
        'video_generated_backend',
        uid=decoded_token['uid'],
        properties={'request_id': request_id},
    )
    return app_ctx.jsonify({'success': True, 'videoUrl': video_url, 'requestId': request_id})
