"""A worker that polls a set of roles and services them until told to stop."""

from __future__ import annotations

import enum
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from srtlive.log import LogLevel, log

POLLING_TIME_MS = 1
DEFAULT_WORKER_CONNECTIONS = 100
DEFAULT_STAT_POST_INTERVAL = 5  # seconds


class RoleState(enum.IntEnum):
    """Life-cycle states a role reports through ``get_state``."""

    UNINIT = 0
    INIT = 1
    WORKING = 2
    INVALID = 3


class Poller(Protocol):
    """Readiness source the group waits on."""

    def wait(self, timeout_ms: int) -> Optional[Tuple[Sequence[int], Sequence[int]]]:
        """Return ``(readable_fds, writable_fds)``, or ``None`` when nothing is ready."""


class RoleSource(Protocol):
    """Queue of new roles handed to the group."""

    def pop(self) -> Optional[Any]:
        """Return the next role, or ``None`` when the queue is empty."""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class RoleGroup:
    """Services the roles whose sockets are ready and retires the dead ones.

    A role is expected to provide ``fd``, ``role_name``, ``add_to_poller(poller)``,
    ``handler()``, ``invalid_srt()``, ``uninit()``, ``get_state(cur_ms)``,
    ``get_stat_info()``, ``check_http_client()``, ``is_reconnect()`` and, for
    relays, ``relay_manager`` with ``reconnect(cur_ms)``.
    """

    def __init__(
        self,
        poller: Poller,
        role_list: Optional[RoleSource] = None,
        worker_number: int = 0,
        worker_connections: int = DEFAULT_WORKER_CONNECTIONS,
        stat_post_interval: int = DEFAULT_STAT_POST_INTERVAL,
    ) -> None:
        self.poller = poller
        self.role_list = role_list
        self.worker_number = worker_number
        self.worker_connections = worker_connections
        self.stat_post_interval = stat_post_interval
        self.stat_post_last_tm_ms = _now_ms()

        self._roles: Dict[int, Any] = {}
        self._wait_http_roles: List[Any] = []
        self._reconnect_managers: List[Any] = []
        self._reload = False
        self._exit = False
        self._thread: Optional[threading.Thread] = None
        self._stat_lock = threading.Lock()
        self._stat_info = ""

    def __len__(self) -> int:
        return len(self._roles)

    @property
    def waiting_http_roles(self) -> List[Any]:
        """Roles that are finished but still waiting for an HTTP notification."""
        return list(self._wait_http_roles)

    @property
    def reconnect_managers(self) -> List[Any]:
        """Relay managers waiting to reconnect."""
        return list(self._reconnect_managers)

    def _log(self, level: LogLevel, message: str) -> None:
        log(level, f"RoleGroup[{self.worker_number}] {message}")

    def start(self) -> None:
        """Run the service loop on a background thread."""
        self._log(LogLevel.INFO, "start.")
        if self._thread is not None and self._thread.is_alive():
            return
        self._exit = False
        self._thread = threading.Thread(
            target=self.run, name=f"role-group-{self.worker_number}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the loop, wait for it, and release roles still waiting on HTTP."""
        self._log(LogLevel.INFO, "stop.")
        self._exit = True
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None
        waiting, self._wait_http_roles = self._wait_http_roles, []
        for role in waiting:
            role.uninit()
        self._log(LogLevel.INFO, "stop, wait_http_roles cleared.")

    def reload(self) -> None:
        """Exit once the group has no more roles."""
        self._reload = True

    def is_exit(self) -> bool:
        return self._exit

    def run(self) -> None:
        """Service roles until exit is requested, then release them."""
        self._log(LogLevel.INFO, "run begin.")
        while not self._exit:
            self.handler()
        self.clear()
        self._log(LogLevel.INFO, "run end.")

    def handler(self) -> int:
        """Do one round of polling; return the total the roles' handlers reported."""
        if self._reload and not self._roles:
            self._log(LogLevel.INFO, "reload requested and no roles left, exiting.")
            self._exit = True
            return 0

        events = self.poller.wait(POLLING_TIME_MS)
        if events is None:
            self.idle_check()
            return 0

        readable, writable = events
        self._log(
            LogLevel.TRACE,
            f"writable count={len(writable)}, readable count={len(readable)}.",
        )
        handled = self._dispatch(writable, "writable")
        handled += self._dispatch(readable, "readable")

        self.idle_check()
        if handled == 0:
            time.sleep(POLLING_TIME_MS / 1000)
        return handled

    def _dispatch(self, fds: Iterable[int], kind: str) -> int:
        handled = 0
        for fd in fds:
            role = self._roles.get(fd)
            if role is None:
                self._log(LogLevel.WARNING, f"no role for {kind} sock={fd}.")
                continue
            ret = role.handler()
            if ret < 0:
                self._log(
                    LogLevel.TRACE,
                    f"{kind} sock={fd} is invalid, {role.role_name}, roles={len(self._roles)}.",
                )
                role.invalid_srt()
            else:
                handled += ret
        return handled

    def idle_check(self) -> None:
        """Housekeeping run after every poll."""
        self._check_wait_http_role()
        self._check_reconnect_relay()
        self._check_invalid_sock()
        self._check_new_role()

    def _check_wait_http_role(self) -> None:
        still_waiting = []
        for role in self._wait_http_roles:
            if not role.check_http_client():
                self._log(LogLevel.INFO, f"check_wait_http_role, release {role.role_name}.")
                role.uninit()
            else:
                role.handler()
                still_waiting.append(role)
        self._wait_http_roles = still_waiting

    def _check_reconnect_relay(self) -> None:
        cur_ms = _now_ms()
        remaining = []
        for manager in self._reconnect_managers:
            if manager is None:
                self._log(LogLevel.INFO, "check_reconnect_relay, remove invalid manager.")
                continue
            if not manager.reconnect(cur_ms):
                remaining.append(manager)
        self._reconnect_managers = remaining

    def _check_invalid_sock(self) -> None:
        cur_ms = _now_ms()
        update_stat = cur_ms - self.stat_post_last_tm_ms >= self.stat_post_interval * 1000
        if update_stat:
            with self._stat_lock:
                self._stat_info = ""
            self.stat_post_last_tm_ms = cur_ms

        for fd, role in list(self._roles.items()):
            if role is None:
                del self._roles[fd]
                continue
            if update_stat:
                info = role.get_stat_info()
                with self._stat_lock:
                    self._stat_info += info

            state = role.get_state(cur_ms)
            if state not in (RoleState.INVALID, RoleState.UNINIT):
                continue

            self._log(
                LogLevel.INFO,
                f"check_invalid_sock, {role.role_name} invalid sock={fd}, "
                f"state={int(state)}, roles={len(self._roles)}.",
            )
            if role.is_reconnect():
                self._reconnect_managers.append(role.relay_manager)
                self._log(LogLevel.INFO, f"{role.role_name} needs reconnect.")

            role.uninit()
            if role.check_http_client():
                self._wait_http_roles.append(role)
                self._log(LogLevel.INFO, f"{role.role_name} waits for http client.")
            del self._roles[fd]

    def _check_new_role(self) -> None:
        if self.role_list is None:
            return
        if len(self._roles) >= self.worker_connections:
            return
        role = self.role_list.pop()
        if role is None:
            return
        fd = role.fd
        if fd == 0:
            return
        try:
            added = role.add_to_poller(self.poller)
        except OSError as exc:
            self._log(LogLevel.INFO, f"{role.role_name} add_to_poller failed, fd={fd}: {exc}")
            return
        if added is False:
            self._log(LogLevel.INFO, f"{role.role_name} add_to_poller failed, fd={fd}.")
            return
        self._roles[fd] = role
        self._log(
            LogLevel.INFO,
            f"check_new_role, {role.role_name} added fd={fd}, roles={len(self._roles)}.",
        )

    def clear(self) -> None:
        """Release every role the group holds."""
        self._log(LogLevel.INFO, f"clear, roles={len(self._roles)}.")
        roles, self._roles = self._roles, {}
        for role in roles.values():
            if role is not None:
                role.uninit()

    def get_stat_info(self) -> str:
        """Return the statistics gathered at the last collection."""
        with self._stat_lock:
            return self._stat_info