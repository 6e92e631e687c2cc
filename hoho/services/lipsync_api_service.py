"""Business logic handler for the standalone lip-sync API."""

from hoho.services.lipsync_service import LipsyncError


def wavespeed_lipsync(app_ctx, request):
    data = request.get_json(silent=True) or {}
    audio_url = str(data.get('audioUrl') or '').strip()
    image_url = str(data.get('imageUrl') or '').strip()
    if not audio_url or not image_url:
        return app_ctx.jsonify({'error': 'audioUrl and imageUrl are required'}), 400

    if app_ctx.lipsync is None or not app_ctx.lipsync.is_configured:
        return app_ctx.jsonify({'error': 'WaveSpeedAI API key not configured. Please set WAVESPEED_API_KEY'}), 500

    try:
        video_url, request_id = app_ctx.lipsync.generate(
            audio_url,
            image_url,
            cancel_event=app_ctx.shutdown_event,
        )
    except LipsyncError as exc:
        app_ctx.logger.error(f"Error in wavespeed-lipsync API: {exc}")
        return app_ctx.jsonify({'error': str(exc), 'details': exc.details}), exc.status_code
    except Exception as exc:
        app_ctx.logger.error(f"Unexpected error in wavespeed-lipsync API: {exc}")
        return app_ctx.jsonify({'error': 'Internal server error', 'details': str(exc)}), 500

    return app_ctx.jsonify({'success': True, 'videoUrl': video_url, 'requestId': request_id})
