"""Santa's voice: text-to-speech through the Gemini speech models."""

import io
import wave

from google.genai import types

MAX_MESSAGE_CHARS = 100
PCM_SAMPLE_RATE = 24000
PCM_SAMPLE_WIDTH = 2
PCM_CHANNELS = 1
AUDIO_MIME_TYPE = 'audio/wav'
AUDIO_EXTENSION = 'wav'

SANTA_STYLE_PROMPT = (
    "Say in Bulgarian, in the warm, deep and jolly voice of Santa Claus "
    "(Дядо Коледа), slowly and cheerfully: {text}"
)


class SpeechError(RuntimeError):
    pass


def normalize_message_text(raw_text):
    """Return the trimmed message text, or '' when it is empty or too long."""
    text = str(raw_text or '').strip()
    if not text or len(text) > MAX_MESSAGE_CHARS:
        return ''
    return text


def pcm_to_wav(pcm_bytes, sample_rate=PCM_SAMPLE_RATE):
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav_file:
        wav_file.setnchannels(PCM_CHANNELS)
        wav_file.setsampwidth(PCM_SAMPLE_WIDTH)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(pcm_bytes)
    return buffer.getvalue()


def _extract_audio_bytes(response):
    for candidate in getattr(response, 'candidates', None) or []:
        content = getattr(candidate, 'content', None)
        for part in getattr(content, 'parts', None) or []:
            inline_data = getattr(part, 'inline_data', None)
            data = getattr(inline_data, 'data', None)
            if data:
                return data
    return b''


def synthesize(client, text, *, model, voice):
    """Synthesize ``text`` and return WAV bytes.

    Raises SpeechError when the client is not configured or returns no audio.
    """
    if client is None:
        raise SpeechError('Speech synthesis is not configured.')
    config = types.GenerateContentConfig(
        response_modalities=['AUDIO'],
        speech_config=types.SpeechConfig(
            voice_config=types.VoiceConfig(
                prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice),
            ),
        ),
    )
    try:
        response = client.models.generate_content(
            model=model,
            contents=SANTA_STYLE_PROMPT.format(text=text),
            config=config,
        )
    except Exception as exc:
        raise SpeechError(f"Speech synthesis request failed: {exc}") from exc
    pcm_bytes = _extract_audio_bytes(response)
    if not pcm_bytes:
        raise SpeechError('Speech synthesis returned no audio.')
    return pcm_to_wav(pcm_bytes)
