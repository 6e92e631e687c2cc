"""Firebase Storage uploads for generated audio."""

import uuid
from urllib.parse import quote


class StorageError(RuntimeError):
    pass


def build_download_url(bucket_name, object_path, token):
    """Token-based download URL in the format the Firebase web SDK hands out."""
    return (
        f"https://firebasestorage.googleapis.com/v0/b/{bucket_name}/o/"
        f"{quote(object_path, safe='')}?alt=media&token={token}"
    )


def upload_bytes(bucket, object_path, data, content_type):
    if bucket is None:
        raise StorageError('Firebase Storage is not configured.')
    token = uuid.uuid4().hex
    try:
        blob = bucket.blob(object_path)
        blob.metadata = {'firebaseStorageDownloadTokens': token}
        blob.upload_from_string(data, content_type=content_type)
    except Exception as exc:
        raise StorageError(f"Upload of {object_path} failed: {exc}") from exc
    return build_download_url(bucket.name, object_path, token)
