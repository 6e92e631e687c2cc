"""Personalised Santa messages: spend a credit, voice the text, share it."""

import logging
import secrets
import string
import time

from hoho.repositories import messages_repo
from hoho.services import ledger_service, speech_service, storage_service

logger = logging.getLogger('hoho.messages')

SPEECH_FOLDER = 'speech'
ID_ALPHABET = string.ascii_lowercase + string.digits
ID_SUFFIX_LEN = 7


class NoCreditsError(Exception):
    pass


def new_message_id(now_ms=None):
    now_ms = int(time.time() * 1000) if now_ms is None else int(now_ms)
    suffix = ''.join(secrets.choice(ID_ALPHABET) for _ in range(ID_SUFFIX_LEN))
    return f"{now_ms}-{suffix}"


def share_url(public_base_url, message_id):
    return f"{public_base_url.rstrip('/')}/share/{message_id}"


def serialize_message(message_id, data):
    payload = {
        'id': message_id,
        'text': data.get('text', ''),
        'audioUrl': data.get('audioUrl', ''),
        'createdAt': data.get('createdAt', 0),
    }
    if data.get('videoUrl'):
        payload['videoUrl'] = data['videoUrl']
    return payload


def generate_message(uid, text, *, db, bucket, synthesize, firestore_module, public_base_url):
    """Create a shared message for ``uid``; the credit is refunded if any step fails.

    ``synthesize`` turns text into WAV bytes. Raises NoCreditsError when the
    user has nothing left to spend.
    """
    if not ledger_service.consume_one(db, uid, firestore_module=firestore_module):
        raise NoCreditsError(uid)

    try:
        audio_bytes = synthesize(text)
        created_at = int(time.time() * 1000)
        message_id = new_message_id(created_at)
        audio_url = storage_service.upload_bytes(
            bucket,
            f"{SPEECH_FOLDER}/{message_id}.{speech_service.AUDIO_EXTENSION}",
            audio_bytes,
            speech_service.AUDIO_MIME_TYPE,
        )
        message = {
            'text': text,
            'audioUrl': audio_url,
            'createdAt': created_at,
            'userId': uid,
        }
        messages_repo.create_doc(db, message_id, message)
    except Exception:
        ledger_service.refund_one(db, uid, firestore_module=firestore_module)
        raise

    logger.info(f"🎅 Message {message_id} generated for user {uid}")
    result = serialize_message(message_id, message)
    result['shareUrl'] = share_url(public_base_url, message_id)
    return result


def get_message(db, message_id):
    snapshot = messages_repo.get_doc(db, message_id)
    if not snapshot.exists:
        return None
    return snapshot.to_dict() or {}


def attach_video(db, message_id, video_url):
    messages_repo.update_doc(db, message_id, {'videoUrl': video_url})


def list_user_videos(db, uid, limit, *, firestore_module):
    videos = []
    for doc in messages_repo.list_by_uid_recent(db, uid, limit, firestore_module):
        data = doc.to_dict() or {}
        if data.get('videoUrl'):
            videos.append(serialize_message(doc.id, data))
    return videos
