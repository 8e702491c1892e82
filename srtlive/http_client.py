"""A small non-blocking HTTP/1.1 client for posting events and statistics."""

from __future__ import annotations

import enum
import re
import select
import socket
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from srtlive.log import LogLevel, log
from srtlive.ring_buffer import RingBuffer

HTTP_DATA_SIZE = 4096
INVALID_CLIENT_ID = 0
HTTP_RESPONSE_CODE_200 = "200"
DEFAULT_PORT = 80
ALLOWED_METHODS = ("GET", "POST")

_HEADER_END = b"\r\n\r\n"
_SELECT_TIMEOUT_S = 0.01


class CallbackStage(enum.IntEnum):
    """Points in a request's life at which the stage callback is invoked."""

    OPEN = 0
    CLOSE = 1
    RESPONSE_END = 2
    REQUEST_CONTENT = 3


StageCallback = Callable[["HttpClient", CallbackStage, Any], Any]


@dataclass
class ResponseInfo:
    """What has been received of the current response."""

    header: list[str] = field(default_factory=list)
    code: str = ""
    content: bytes = b""
    content_length: int = -1

    @property
    def text(self) -> str:
        """The body decoded as UTF-8."""
        return self.content.decode("utf-8", errors="replace")

    def reset(self) -> None:
        self.header = []
        self.code = ""
        self.content = b""
        self.content_length = -1


@dataclass(frozen=True)
class ParsedUrl:
    """Host, port and request target of an ``http://`` URL."""

    host: str
    port: int
    uri: str


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def parse_url(url: str) -> ParsedUrl:
    """Split ``http://host[:port]/path`` into its parts; raise ValueError if it is not one."""
    if not url:
        raise ValueError("empty url")
    scheme, sep, rest = url.partition(":")
    if not sep:
        raise ValueError(f"no ':' in url {url!r}")
    if scheme != "http":
        raise ValueError(f"not an 'http' url: {url!r}")
    rest = rest[2:]  # skip the '//' after the scheme

    authority, slash, path = rest.partition("/")
    uri = slash + path if slash else "/"
    host, colon, port_text = authority.partition(":")
    port = _atoi(port_text) if colon else DEFAULT_PORT
    return ParsedUrl(host=host, port=port, uri=uri)


def build_request_header(method: str, uri: str, host: str, data_len: int) -> str:
    """Return the request line and headers, ending with the blank line."""
    if method not in ALLOWED_METHODS:
        raise ValueError(f"unsupported http method {method!r}")
    lines = [
        f"{method} {uri} HTTP/1.1",
        "Accept: text/html, */*",
        "User-Agent: srt-live-server",
        "Content-Type: application/x-www-form-urlencoded",
        f"Host: {host}",
    ]
    if data_len > 0:
        lines.append(f"Content-Length: {data_len}")
    lines.append("Connection: Keep-Alive")
    lines.append("Cache-Control: no-cache")
    return "\r\n".join(lines) + "\r\n\r\n"


class HttpClient:
    """Sends one request over a non-blocking TCP socket and collects the response."""

    def __init__(self, timeout: int = 5) -> None:
        self.timeout = timeout  # seconds
        self.interval = 0  # seconds; > 0 means the request repeats
        self.id = INVALID_CLIENT_ID
        self.url = ""
        self.method = "POST"
        self.host = ""
        self.port = DEFAULT_PORT
        self.uri = ""
        self.begin_tm_ms = 0
        self.end_tm_ms = 0
        self.response = ResponseInfo()
        self._callback: Optional[StageCallback] = None
        self._sock: Optional[socket.socket] = None
        self._out = RingBuffer()
        self._pending = b""
        self._head = b""

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def set_stage_callback(self, callback: Optional[StageCallback]) -> None:
        """Install ``callback(client, stage, value)``; for REQUEST_CONTENT it returns the body."""
        self._callback = callback

    def _notify(self, stage: CallbackStage, value: Any) -> Any:
        if self._callback is None:
            return None
        return self._callback(self, stage, value)

    def _reset_exchange(self) -> None:
        self.response.reset()
        self._head = b""
        self.end_tm_ms = 0
        self._out.clear()
        self._pending = b""

    def open(self, url: str, method: Optional[str] = None, interval: int = 0) -> None:
        """Connect to ``url``, queue the request and start sending it."""
        self.begin_tm_ms = _now_ms()
        self.url = url
        try:
            if not url:
                raise ValueError("empty url")
            if method:
                self.method = method
            self.interval = interval
            parsed = parse_url(url)
            self.host, self.port, self.uri = parsed.host, parsed.port, parsed.uri
            address = socket.gethostbyname(self.host)
            self._connect(address)
            self._reset_exchange()
            self._generate_request()
            self.handler()
        except (OSError, ValueError) as exc:
            log(LogLevel.INFO, f"HttpClient.open failed, url='{url}': {exc}")
            self._notify(CallbackStage.OPEN, exc)
            raise
        self._notify(CallbackStage.OPEN, None)

    def _connect(self, address: str) -> None:
        self._close_socket()
        timeout = self.timeout if self.timeout > 0 else None
        sock = socket.create_connection((address, self.port), timeout=timeout)
        sock.setblocking(False)
        self._sock = sock

    def _close_socket(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def _generate_request(self) -> None:
        body = self._notify(CallbackStage.REQUEST_CONTENT, None) or ""
        payload = body.encode("utf-8") if isinstance(body, str) else bytes(body)
        header = build_request_header(self.method, self.uri, self.host, len(payload))
        self._out.put(header.encode("latin-1"))
        if payload:
            self._out.put(payload)
        log(
            LogLevel.INFO,
            f"HttpClient request queued, url='{self.url}', content len={len(payload)}.",
        )

    def close(self) -> None:
        """Close the connection and forget the current exchange."""
        log(
            LogLevel.TRACE,
            f"HttpClient.close, url='{self.url}', "
            f"content_length={self.response.content_length}.",
        )
        self._close_socket()
        self._notify(CallbackStage.CLOSE, None)
        self._reset_exchange()

    def reopen(self) -> None:
        """Close and send the same request again."""
        self.close()
        self.open(self.url, self.method, self.interval)

    def send(self) -> int:
        """Write as much queued request data as the socket accepts; return bytes written."""
        if self._sock is None:
            return 0
        total = 0
        while True:
            if not self._pending:
                if len(self._out) == 0:
                    break
                self._pending = self._out.get(HTTP_DATA_SIZE)
                if not self._pending:
                    break
            try:
                n = self._sock.send(self._pending)
            except (BlockingIOError, InterruptedError):
                break
            if n <= 0:
                break
            total += n
            self._pending = self._pending[n:]
            if self._pending:
                break  # the socket is busy; keep the rest for later
        return total

    def recv(self) -> int:
        """Read everything available and feed it to the parser; return bytes read."""
        if self._sock is None:
            return 0
        chunks = []
        while True:
            try:
                chunk = self._sock.recv(HTTP_DATA_SIZE)
            except (BlockingIOError, InterruptedError, ConnectionError):
                break
            if not chunk:
                break
            chunks.append(chunk)
        data = b"".join(chunks)
        if data:
            self.feed_response(data)
            if self.check_finished():
                log(LogLevel.INFO, f"HttpClient.recv finished, url='{self.url}'.")
        return len(data)

    def handler(self) -> bool:
        """Wait briefly for the socket, then send and receive what is ready."""
        if self._sock is None:
            return False
        readable, writable, _ = select.select(
            [self._sock], [self._sock], [], _SELECT_TIMEOUT_S
        )
        if writable:
            self.send()
        if readable and self._sock is not None:
            self.recv()
        return True

    def _finish_if_complete(self) -> None:
        if self.response.content_length == len(self.response.content):
            self.end_tm_ms = _now_ms()
            self._notify(CallbackStage.RESPONSE_END, self.response)
            log(
                LogLevel.INFO,
                f"HttpClient response finished, url='{self.url}', "
                f"method='{self.method}', content_len={len(self.response.content)}.",
            )

    def feed_response(self, data: bytes) -> bool:
        """Parse received bytes; return True once the headers are complete."""
        if self.response.header:
            self.response.content += data
            self._finish_if_complete()
            return True

        self._head += data
        index = self._head.find(_HEADER_END)
        if index < 0:
            return False
        head = self._head[:index]
        body = self._head[index + len(_HEADER_END):]
        self._head = b""

        headers = head.decode("latin-1").split("\r\n")
        self.response.header = headers
        parts = headers[0].split(" ", 2)
        if len(parts) == 3:
            self.response.code = parts[1]
        for line in headers[1:]:
            name, colon, value = line.partition(":")
            if colon and name.strip().lower() == "content-length":
                self.response.content_length = _atoi(value)
                break

        self.response.content = body
        self._finish_if_complete()
        return True

    def check_timeout(self, cur_tm_ms: int = 0) -> bool:
        """Return True when the exchange is over by timeout or no longer live."""
        if self._sock is None:
            return True
        if self.end_tm_ms > 0:
            return self.response.content_length != len(self.response.content)
        cur = cur_tm_ms or _now_ms()
        if cur - self.begin_tm_ms < self.timeout * 1000:
            return False
        self.end_tm_ms = cur
        self._notify(CallbackStage.RESPONSE_END, self.response)
        log(
            LogLevel.INFO,
            f"HttpClient timed out, url='{self.url}', method='{self.method}', "
            f"content_len={len(self.response.content)}, "
            f"content_length={self.response.content_length}.",
        )
        return True

    def check_repeat(self, cur_tm_ms: int = 0) -> bool:
        """Return True when a repeating request is due again."""
        if self.interval <= 0:
            return False
        cur = cur_tm_ms or _now_ms()
        return cur - self.begin_tm_ms >= self.interval * 1000

    def check_finished(self) -> bool:
        """Return True when the whole body has arrived or the socket is closed."""
        if self.response.content_length == len(self.response.content):
            return True
        return self._sock is None