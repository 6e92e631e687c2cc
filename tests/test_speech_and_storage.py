import io
import wave
from types import SimpleNamespace

import pytest

from hoho.services import analytics_service, speech_service, storage_service


class _Models:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _genai_response(data):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type="audio/L16;rate=24000"))
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


def test_normalize_message_text_limits():
    assert speech_service.normalize_message_text("  Хо  ") == "Хо"
    assert speech_service.normalize_message_text("   ") == ""
    assert speech_service.normalize_message_text(None) == ""
    assert speech_service.normalize_message_text("я" * 100) == "я" * 100
    assert speech_service.normalize_message_text("я" * 101) == ""


def test_synthesize_wraps_pcm_into_wav():
    models = _Models(response=_genai_response(b"\x00\x01" * 2400))
    client = SimpleNamespace(models=models)

    audio = speech_service.synthesize(client, "Весела Коледа", model="tts-model", voice="Charon")

    with wave.open(io.BytesIO(audio), "rb") as wav_file:
        assert wav_file.getframerate() == 24000
        assert wav_file.getnchannels() == 1
        assert wav_file.getnframes() == 2400
    assert models.calls[0]["model"] == "tts-model"
    assert "Весела Коледа" in models.calls[0]["contents"]


def test_synthesize_without_audio_fails():
    client = SimpleNamespace(models=_Models(response=SimpleNamespace(candidates=[])))

    with pytest.raises(speech_service.SpeechError):
        speech_service.synthesize(client, "Хо", model="m", voice="v")


def test_synthesize_wraps_client_errors():
    client = SimpleNamespace(models=_Models(error=RuntimeError("quota")))

    with pytest.raises(speech_service.SpeechError):
        speech_service.synthesize(client, "Хо", model="m", voice="v")


def test_synthesize_requires_client():
    with pytest.raises(speech_service.SpeechError):
        speech_service.synthesize(None, "Хо", model="m", voice="v")


def test_build_download_url_quotes_path():
    url = storage_service.build_download_url("bucket.appspot.com", "speech/1-abc.wav", "tok")

    assert url == "https://firebasestorage.googleapis.com/v0/b/bucket.appspot.com/o/speech%2F1-abc.wav?alt=media&token=tok"


def test_upload_without_bucket_fails():
    with pytest.raises(storage_service.StorageError):
        storage_service.upload_bytes(None, "speech/x.wav", b"", "audio/wav")


def test_sanitize_event_name_respects_source():
    assert analytics_service.sanitize_event_name("Page_View") == "page_view"
    assert analytics_service.sanitize_event_name("payment_confirmed_backend") == ""
    assert analytics_service.sanitize_event_name("payment_confirmed_backend", source="backend") == "payment_confirmed_backend"
    assert analytics_service.sanitize_event_name("drop table;") == ""


def test_sanitize_properties_drops_unsupported_values():
    cleaned = analytics_service.sanitize_properties({"ok": 1, "nested": {"a": 1}, "note": "y" * 300, "!!": "bad"})

    assert cleaned["ok"] == 1.0
    assert "nested" not in cleaned
    assert "!!" not in cleaned
    assert len(cleaned["note"]) == 200
