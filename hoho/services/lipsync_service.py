"""WaveSpeedAI InfiniteTalk lip-sync video generation.

A job is submitted once and then polled until it reaches a terminal status.
Polling is bounded by ``timeout_seconds`` and can be stopped early through a
``threading.Event``.
"""

import logging
import time

import requests

logger = logging.getLogger('hoho.lipsync')

SUBMIT_PATH = '/wavespeed-ai/infinitetalk'
RESULT_PATH = '/predictions/{request_id}/result'
DEFAULT_RESOLUTION = '480p'
TERMINAL_COMPLETED = 'completed'
TERMINAL_FAILED = 'failed'
REQUEST_TIMEOUT_SECONDS = 30


class LipsyncError(RuntimeError):
    def __init__(self, message, status_code=500, details=None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class LipsyncTimeout(LipsyncError):
    def __init__(self, request_id, waited_seconds):
        super().__init__(
            f"Video generation {request_id} did not finish within {waited_seconds:.0f}s",
            status_code=504,
            details={'requestId': request_id},
        )
        self.request_id = request_id


class LipsyncCancelled(LipsyncError):
    def __init__(self, request_id):
        super().__init__(f"Video generation {request_id} was cancelled", status_code=499, details={'requestId': request_id})
        self.request_id = request_id


def _response_details(response):
    try:
        return response.json()
    except ValueError:
        return response.text


class LipsyncClient:
    def __init__(self, api_key, *, session=None, base_url='https://api.wavespeed.ai/api/v3',
                 poll_interval_seconds=1.0, timeout_seconds=300, clock=time.monotonic):
        self.api_key = (api_key or '').strip()
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip('/')
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self.clock = clock

    @property
    def is_configured(self):
        return bool(self.api_key)

    def _headers(self, with_json=False):
        headers = {'Authorization': f"Bearer {self.api_key}"}
        if with_json:
            headers['Content-Type'] = 'application/json'
        return headers

    def submit(self, audio_url, image_url, resolution=DEFAULT_RESOLUTION):
        """Submit a job and return its request id."""
        if not self.is_configured:
            raise LipsyncError('WaveSpeedAI API key not configured.')
        try:
            response = self.session.post(
                f"{self.base_url}{SUBMIT_PATH}",
                json={'audio': audio_url, 'image': image_url, 'resolution': resolution, 'seed': -1},
                headers=self._headers(with_json=True),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise LipsyncError(f"Failed to submit video generation task: {exc}", status_code=502) from exc

        if not response.ok:
            details = _response_details(response)
            logger.error(f"WaveSpeedAI submit error {response.status_code}: {details}")
            raise LipsyncError('Failed to submit video generation task', status_code=response.status_code, details=details)

        payload = response.json() or {}
        request_id = payload.get('requestId') or (payload.get('data') or {}).get('id')
        if not request_id:
            logger.error(f"No request id in WaveSpeedAI response: {payload}")
            raise LipsyncError('Invalid response from WaveSpeedAI - no request ID found')
        return request_id

    def fetch_result(self, request_id):
        """Return the ``data`` block of a job's current result."""
        try:
            response = self.session.get(
                f"{self.base_url}{RESULT_PATH.format(request_id=request_id)}",
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise LipsyncError(f"Failed to fetch result: {exc}", status_code=502) from exc
        if not response.ok:
            details = _response_details(response)
            logger.error(f"WaveSpeedAI result error {response.status_code}: {details}")
            raise LipsyncError('Failed to fetch result', status_code=response.status_code, details=details)
        return (response.json() or {}).get('data') or {}

    def wait_for_video(self, request_id, cancel_event=None):
        started = self.clock()
        while True:
            data = self.fetch_result(request_id)
            status = str(data.get('status') or '').lower()
            if status == TERMINAL_COMPLETED:
                outputs = data.get('outputs') or []
                if not outputs:
                    raise LipsyncError('Video generation completed without output', details={'requestId': request_id})
                return outputs[0]
            if status == TERMINAL_FAILED:
                logger.error(f"Task {request_id} failed: {data.get('error')}")
                raise LipsyncError('Video generation failed', details=data.get('error') or 'Unknown error')

            waited = self.clock() - started
            if waited >= self.timeout_seconds:
                raise LipsyncTimeout(request_id, waited)
            sleep_for = min(self.poll_interval_seconds, max(0.0, self.timeout_seconds - waited))
            if cancel_event is not None:
                if cancel_event.wait(sleep_for):
                    raise LipsyncCancelled(request_id)
            elif sleep_for:
                time.sleep(sleep_for)

    def generate(self, audio_url, image_url, cancel_event=None):
        """Submit and wait. Returns ``(video_url, request_id)``."""
        request_id = self.submit(audio_url, image_url)
        logger.info(f"🎬 Lip-sync task submitted: {request_id}")
        video_url = self.wait_for_video(request_id, cancel_event=cancel_event)
        return video_url, request_id
