import socket
import threading
import time

import pytest

from srtlive.http_client import (
    CallbackStage,
    HttpClient,
    ParsedUrl,
    ResponseInfo,
    build_request_header,
    parse_url,
)

RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 5\r\n\r\nhello"


class _Server:
    """Accepts connections, records each request and optionally replies."""

    def __init__(self, response=RESPONSE):
        self.response = response
        self.received = []
        self._srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._srv.bind(("127.0.0.1", 0))
        self._srv.listen(4)
        self.port = self._srv.getsockname()[1]
        self._conns = []
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self):
        while True:
            try:
                conn, _ = self._srv.accept()
            except OSError:
                return
            self._conns.append(conn)
            conn.settimeout(5)
            data = b""
            try:
                while b"\r\n\r\n" not in data:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    data += chunk
                head, _, body = data.partition(b"\r\n\r\n")
                length = 0
                for line in head.split(b"\r\n")[1:]:
                    name, _, value = line.partition(b":")
                    if name.strip().lower() == b"content-length":
                        length = int(value)
                while len(body) < length:
                    body += conn.recv(4096)
                self.received.append((head, body))
                if self.response is not None:
                    conn.sendall(self.response)
            except OSError:
                return

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *exc):
        self._srv.close()
        for conn in self._conns:
            conn.close()
        self._thread.join(timeout=5)


def _run_until_finished(client, seconds=5.0):
    deadline = time.monotonic() + seconds
    while not client.check_finished() and time.monotonic() < deadline:
        client.handler()


def test_parse_url_with_port_and_path():
    assert parse_url("http://localhost:8080/sls?method=stat") == ParsedUrl(
        host="localhost", port=8080, uri="/sls?method=stat"
    )


def test_parse_url_default_port():
    parsed = parse_url("http://example.com/sls/on_event")
    assert parsed.host == "example.com"
    assert parsed.port == 80
    assert parsed.uri == "/sls/on_event"


def test_parse_url_colon_in_query_does_not_confuse_port():
    parsed = parse_url("http://example.com:8000/sls?srt_url=srt://a:1/b")
    assert parsed.port == 8000
    assert parsed.uri == "/sls?srt_url=srt://a:1/b"


@pytest.mark.parametrize("url", ["", "no-colon-here", "https://example.com/", "ftp://x/"])
def test_parse_url_rejects(url):
    with pytest.raises(ValueError):
        parse_url(url)


def test_build_request_header_post_with_body():
    header = build_request_header("POST", "/sls?method=stat", "localhost:8080", 15)
    assert header == (
        "POST /sls?method=stat HTTP/1.1\r\n"
        "Accept: text/html, */*\r\n"
        "User-Agent: srt-live-server\r\n"
        "Content-Type: application/x-www-form-urlencoded\r\n"
        "Host: localhost:8080\r\n"
        "Content-Length: 15\r\n"
        "Connection: Keep-Alive\r\n"
        "Cache-Control: no-cache\r\n"
        "\r\n"
    )


def test_build_request_header_without_body_has_no_length():
    header = build_request_header("GET", "/", "example.com", 0)
    assert header.startswith("GET / HTTP/1.1\r\n")
    assert "Content-Length" not in header
    assert header.endswith("\r\n\r\n")


def test_build_request_header_rejects_method():
    with pytest.raises(ValueError):
        build_request_header("PUT", "/", "example.com", 0)


def test_feed_response_single_chunk():
    client = HttpClient()
    events = []
    client.set_stage_callback(lambda c, stage, value: events.append(stage))
    assert client.feed_response(RESPONSE) is True
    assert client.response.code == "200"
    assert client.response.content_length == 5
    assert client.response.content == b"hello"
    assert client.response.text == "hello"
    assert client.check_finished() is True
    assert events == [CallbackStage.RESPONSE_END]
    assert client.end_tm_ms > 0


def test_response_info_reset():
    info = ResponseInfo(header=["a"], code="200", content=b"x", content_length=1)
    info.reset()
    assert info == ResponseInfo()


def test_check_repeat():
    client = HttpClient()
    client.begin_tm_ms = 1000
    assert client.check_repeat(10_000_000) is False
    client.interval = 2
    assert client.check_repeat(1000 + 2 * 1000 - 1) is False
    assert client.check_repeat(1000 + 2 * 1000) is True


def test_check_timeout_and_finished_without_socket():
    client = HttpClient()
    assert client.check_timeout() is True
    assert client.check_finished() is True


def test_open_rejects_bad_urls_and_reports_open():
    client = HttpClient()
    events = []
    client.set_stage_callback(lambda c, stage, value: events.append((stage, value)))
    with pytest.raises(ValueError):
        client.open("")
    with pytest.raises(ValueError):
        client.open("ftp://example.com/")
    assert [stage for stage, _ in events] == [CallbackStage.OPEN, CallbackStage.OPEN]
    assert all(isinstance(value, ValueError) for _, value in events)


def test_open_sends_request_and_reads_response():
    body = "method=stat"
    events = []

    def callback(client, stage, value):
        events.append(stage)
        if stage is CallbackStage.REQUEST_CONTENT:
            return body
        return None

    with _Server() as server:
        client = HttpClient()
        client.set_stage_callback(callback)
        client.open(f"http://127.0.0.1:{server.port}/sls?method=stat")
        _run_until_finished(client)
        assert client.response.content == b"hello"
        assert client.response.code == "200"
        client.close()

    head, received_body = server.received[0]
    lines = head.decode("latin-1").split("\r\n")
    assert lines[0] == "POST /sls?method=stat HTTP/1.1"
    assert f"Host: 127.0.0.1" in lines
    assert f"Content-Length: {len(body)}" in lines
    assert received_body == body.encode()
    assert events == [
        CallbackStage.REQUEST_CONTENT,
        CallbackStage.OPEN,
        CallbackStage.RESPONSE_END,
        CallbackStage.CLOSE,
    ]


def test_close_resets_response():
    with _Server() as server:
        client = HttpClient()
        client.open(f"http://127.0.0.1:{server.port}/", "GET")
        _run_until_finished(client)
        assert client.response.content == b"hello"
        client.close()
    assert client.response.content == b""
    assert client.response.content_length == -1
    assert client.is_open is False
    assert client.check_finished() is True


def test_reopen_repeats_request():
    with _Server() as server:
        client = HttpClient()
        client.open(f"http://127.0.0.1:{server.port}/stat", "GET", 3)
        _run_until_finished(client)
        client.reopen()
        _run_until_finished(client)
        assert client.response.content == b"hello"
        assert client.interval == 3
        assert client.method == "GET"
        client.close()
    assert len(server.received) == 2
    assert all(head.startswith(b"GET /stat HTTP/1.1") for head, _ in server.received)


def test_check_timeout_on_silent_server():
    with _Server(response=None) as server:
        client = HttpClient(timeout=2)
        events = []
        client.set_stage_callback(lambda c, stage, value: events.append(stage))
        client.open(f"http://127.0.0.1:{server.port}/")
        assert client.check_timeout(client.begin_tm_ms + 1) is False
        assert client.check_timeout(client.begin_tm_ms + 2 * 1000) is True
        assert client.end_tm_ms == client.begin_tm_ms + 2 * 1000
        assert events[-1] is CallbackStage.RESPONSE_END
        assert client.check_finished() is False
        client.close()


def test_open_with_unsupported_method_raises():
    with _Server(response=None) as server:
        client = HttpClient()
        with pytest.raises(ValueError):
            client.open(f"http://127.0.0.1:{server.port}/", "PUT")
        client.close()
    assert client.is_open is False