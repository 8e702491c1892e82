"""A thread-safe FIFO of HTTP clients waiting to be serviced."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Optional

from srtlive.http_client import HttpClient
from srtlive.log import LogLevel, log


class HttpRoleList:
    """Queue of :class:`HttpClient` objects shared between threads."""

    def __init__(self) -> None:
        self._roles: Deque[HttpClient] = deque()
        self._lock = threading.Lock()

    def push(self, role: Optional[HttpClient]) -> None:
        """Append ``role`` to the back; ``None`` is ignored."""
        if role is None:
            return
        with self._lock:
            self._roles.append(role)

    def pop(self) -> Optional[HttpClient]:
        """Remove and return the front client, or ``None`` when empty."""
        with self._lock:
            return self._roles.popleft() if self._roles else None

    def erase(self) -> None:
        """Close every queued client and empty the list."""
        with self._lock:
            log(LogLevel.TRACE, f"HttpRoleList.erase, count={len(self._roles)}")
            roles = list(self._roles)
            self._roles.clear()
        for role in roles:
            role.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._roles)