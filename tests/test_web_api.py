import http.client
import json
import socket
import threading
from urllib.parse import urlsplit

import pytest

from simreports.web_api import WebApi, WebApiError


@pytest.fixture
def api():
    web_api = WebApi()
    web_api.start(0)
    yield web_api
    web_api.stop()


def _request(url, method, path, body=None):
    parts = urlsplit(url)
    conn = http.client.HTTPConnection(parts.hostname, parts.port, timeout=10)
    try:
        headers = {"Content-Type": "application/json"} if body is not None else {}
        conn.request(method, parts.path + path, body=body, headers=headers)
        response = conn.getresponse()
        data = response.read()
        return response.status, dict(response.getheaders()), data
    finally:
        conn.close()


def post(url, cmd, payload):
    status, _, data = _request(url, "POST", f"cmd/{cmd}", json.dumps(payload))
    return status, json.loads(data) if data else None


def post_text(url, cmd, text):
    status, _, data = _request(url, "POST", f"cmd/{cmd}", text)
    return status, json.loads(data) if data else None


def serve_in_thread(web_api, state):
    result = {}

    def run():
        result["value"] = web_api.serve_requests(state)

    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread, result


def test_web_api_session(api):
    state = {"people": [{"Age": 1}, {"Age": 2}], "time": 0.0}
    api.add_handler("population", lambda s, _: {"population": len(s["people"])})
    api.add_handler("time", lambda s, _: {"time": s["time"]})
    api.add_handler("external", lambda _s, args: args)

    thread, result = serve_in_thread(api, state)
    assert post(api.url, "population", {}) == (200, {"population": 2})
    assert post(api.url, "time", {}) == (200, {"time": 0.0})
    assert post(api.url, "external", {"External": [1]}) == (200, {"External": [1]})

    status, _ = post_text(api.url, "next", '{"Next": {"next_time" : "invalid"}}')
    assert status == 400
    status, _ = post_text(api.url, "next", "{]")
    assert status == 400

    assert post(api.url, "next", {"Next": {"next_time": 1.0}}) == (200, {})
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert result["value"] == 1.0

    thread, result = serve_in_thread(api, state)
    assert post(api.url, "external", {"External": [2]}) == (200, {"External": [2]})
    assert post(api.url, "continue", {}) == (200, {})
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert result["value"] is None


def test_unknown_command_is_not_found(api):
    thread, _ = serve_in_thread(api, None)
    assert post(api.url, "nope", {}) == (404, {"error": "No command nope"})
    post(api.url, "continue", {})
    thread.join(timeout=10)
    assert not thread.is_alive()


def test_handler_error_is_bad_request(api):
    def failing(_state, _args):
        raise ValueError("broken handler")

    api.add_handler("fail", failing)
    thread, _ = serve_in_thread(api, None)
    assert post(api.url, "fail", {}) == (400, {"error": "broken handler"})
    post(api.url, "continue", {})
    thread.join(timeout=10)
    assert not thread.is_alive()


def test_handler_mutates_state(api):
    state = {"count": 0}

    def bump(s, args):
        s["count"] += args["by"]
        return {"count": s["count"]}

    api.add_handler("bump", bump)
    thread, _ = serve_in_thread(api, state)
    assert post(api.url, "bump", {"by": 3}) == (200, {"count": 3})
    post(api.url, "continue", {})
    thread.join(timeout=10)
    assert state["count"] == 3


def test_root_redirects_to_index(api):
    status, headers, _ = _request(api.url, "GET", "")
    prefix = urlsplit(api.url).path
    assert status == 307
    assert headers["Location"] == f"{prefix}static/index.html"


def test_url_shape(api):
    parts = urlsplit(api.url)
    assert parts.scheme == "http"
    assert parts.hostname == "127.0.0.1"
    assert parts.path.endswith("/")
    assert len(parts.path.strip("/")) == 36


def test_add_handler_before_start():
    with pytest.raises(WebApiError, match="Web API not yet set up"):
        WebApi().add_handler("x", lambda s, a: a)


def test_serve_requests_before_start():
    with pytest.raises(WebApiError, match="Web API not yet set up"):
        WebApi().serve_requests(None)


def test_start_twice(api):
    with pytest.raises(WebApiError, match="HTTP API already initialized"):
        api.start(0)


def test_port_in_use():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        web_api = WebApi()
        with pytest.raises(WebApiError, match=f"Could not bind to {port}"):
            web_api.start(port)
        with pytest.raises(WebApiError, match="Web API not yet set up"):
            web_api.add_handler("x", lambda s, a: a)
    finally:
        blocker.close()


def test_stop_releases_serve_requests():
    web_api = WebApi()
    web_api.start(0)
    thread, result = serve_in_thread(web_api, None)
    web_api.stop()
    thread.join(timeout=10)
    assert not thread.is_alive()
    assert result["value"] is None
    assert web_api.url is None