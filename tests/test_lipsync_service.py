import threading

import pytest
import requests

from hoho.services.lipsync_service import LipsyncCancelled, LipsyncClient, LipsyncError, LipsyncTimeout


class _Response:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _Session:
    def __init__(self, post_response=None, results=None):
        self.post_response = post_response or _Response(200, {"data": {"id": "req-1"}})
        self.results = list(results or [])
        self.posts = []
        self.gets = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append((url, json, headers))
        if isinstance(self.post_response, Exception):
            raise self.post_response
        return self.post_response

    def get(self, url, headers=None, timeout=None):
        self.gets.append(url)
        return self.results.pop(0)


def _result(status, **extra):
    data = {"status": status}
    data.update(extra)
    return _Response(200, {"data": data})


def _ticking_clock(step):
    state = {"now": 0.0}

    def _clock():
        current = state["now"]
        state["now"] += step
        return current
    return _clock


def _client(session, **kwargs):
    kwargs.setdefault("poll_interval_seconds", 0)
    return LipsyncClient("ws-key", session=session, base_url="https://ws.example/api/v3", **kwargs)


def test_submit_posts_job_and_reads_request_id():
    session = _Session()

    request_id = _client(session).submit("https://a/x.wav", "https://i/santa.png")

    assert request_id == "req-1"
    url, body, headers = session.posts[0]
    assert url == "https://ws.example/api/v3/wavespeed-ai/infinitetalk"
    assert body == {"audio": "https://a/x.wav", "image": "https://i/santa.png", "resolution": "480p", "seed": -1}
    assert headers["Authorization"] == "Bearer ws-key"


def test_submit_accepts_top_level_request_id():
    session = _Session(post_response=_Response(200, {"requestId": "req-top"}))

    assert _client(session).submit("a", "b") == "req-top"


def test_submit_mirrors_upstream_error_status():
    session = _Session(post_response=_Response(401, {"message": "invalid key"}))

    with pytest.raises(LipsyncError) as exc_info:
        _client(session).submit("a", "b")

    assert exc_info.value.status_code == 401
    assert exc_info.value.details == {"message": "invalid key"}


def test_submit_network_failure_is_bad_gateway():
    session = _Session(post_response=requests.ConnectionError("down"))

    with pytest.raises(LipsyncError) as exc_info:
        _client(session).submit("a", "b")

    assert exc_info.value.status_code == 502


def test_submit_without_request_id_fails():
    session = _Session(post_response=_Response(200, {"data": {}}))

    with pytest.raises(LipsyncError):
        _client(session).submit("a", "b")


def test_unconfigured_client_refuses_to_submit():
    client = LipsyncClient("", session=_Session())

    assert client.is_configured is False
    with pytest.raises(LipsyncError):
        client.submit("a", "b")


def test_generate_polls_until_completed():
    session = _Session(results=[
        _result("created"),
        _result("processing"),
        _result("completed", outputs=["https://cdn/video.mp4"]),
    ])

    video_url, request_id = _client(session).generate("a", "b")

    assert (video_url, request_id) == ("https://cdn/video.mp4", "req-1")
    assert len(session.gets) == 3
    assert session.gets[0] == "https://ws.example/api/v3/predictions/req-1/result"


def test_failed_job_raises_with_upstream_error():
    session = _Session(results=[_result("failed", error="face not detected")])

    with pytest.raises(LipsyncError) as exc_info:
        _client(session).wait_for_video("req-1")

    assert exc_info.value.details == "face not detected"


def test_completed_job_without_output_fails():
    session = _Session(results=[_result("completed", outputs=[])])

    with pytest.raises(LipsyncError):
        _client(session).wait_for_video("req-1")


def test_wait_for_video_is_bounded_by_timeout():
    session = _Session(results=[_result("processing") for _ in range(5)])
    client = _client(session, timeout_seconds=10, clock=_ticking_clock(6))

    with pytest.raises(LipsyncTimeout) as exc_info:
        client.wait_for_video("req-1")

    assert exc_info.value.status_code == 504
    assert len(session.gets) == 2


def test_wait_for_video_stops_when_cancelled():
    session = _Session(results=[_result("processing")])
    cancel_event = threading.Event()
    cancel_event.set()
    client = _client(session, poll_interval_seconds=5)

    with pytest.raises(LipsyncCancelled):
        client.wait_for_video("req-1", cancel_event=cancel_event)

    assert len(session.gets) == 1
