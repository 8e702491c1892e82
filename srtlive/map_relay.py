"""Relay configuration per publisher app and relay managers per stream."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from srtlive.locks import RWLock
from srtlive.log import LogLevel, log

RELAY_TYPES = ("pull", "push")


class RelayMode(enum.IntEnum):
    """How a relay picks among its upstreams."""

    LOOP = 0
    ALL = 1
    HASH = 2


@dataclass
class RelayConf:
    """A relay block as read from the configuration file."""

    type: str
    mode: str = "hash"
    upstreams: str = ""
    reconnect_interval: int = 0
    idle_streams_timeout: int = -1


@dataclass
class RelayInfo:
    """Relay settings resolved for one publisher app."""

    type: str
    mode: RelayMode
    upstreams: List[str] = field(default_factory=list)
    reconnect_interval: int = 0
    idle_streams_timeout: int = -1


ManagerFactory = Callable[[RelayInfo, str, str], Any]

_MODES = {"loop": RelayMode.LOOP, "all": RelayMode.ALL, "hash": RelayMode.HASH}


def _mode_from_name(name: str) -> RelayMode:
    mode = _MODES.get(name)
    if mode is None:
        log(LogLevel.INFO, f"RelayMap: wrong mode='{name}', using hash.")
        return RelayMode.HASH
    return mode


class RelayMap:
    """Holds relay settings per uplive app and one relay manager per stream.

    ``manager_factory(info, app_uplive, stream_name)`` builds the manager
    for a stream whose app has a ``pull`` or ``push`` relay configured.
    """

    def __init__(self, manager_factory: ManagerFactory) -> None:
        self._factory = manager_factory
        self._managers: Dict[str, Any] = {}
        self._infos: Dict[str, RelayInfo] = {}
        self._lock = RWLock()

    def add_relay_conf(self, app_uplive: str, conf: Optional[RelayConf]) -> RelayInfo:
        """Register relay settings for ``app_uplive``.

        Raises ValueError when ``conf`` is missing or the app already has settings.
        """
        if conf is None:
            raise ValueError("relay conf is missing")
        with self._lock.write_locked():
            if app_uplive in self._infos:
                log(LogLevel.INFO, f"RelayMap.add_relay_conf, exists, app_uplive={app_uplive}.")
                raise ValueError(f"relay conf already set for {app_uplive!r}")
            upstreams = conf.upstreams.split()
            if not upstreams:
                log(LogLevel.INFO, f"RelayMap.add_relay_conf, wrong upstreams='{conf.upstreams}'.")
            info = RelayInfo(
                type=conf.type,
                mode=_mode_from_name(conf.mode),
                upstreams=upstreams,
                reconnect_interval=conf.reconnect_interval,
                idle_streams_timeout=conf.idle_streams_timeout,
            )
            self._infos[app_uplive] = info
            return info

    def get_relay_conf(self, app_uplive: str) -> Optional[RelayInfo]:
        """Return the relay settings of ``app_uplive``, or ``None``."""
        with self._lock.read_locked():
            return self._infos.get(app_uplive)

    def add_relay_manager(self, app_uplive: str, stream_name: str) -> Optional[Any]:
        """Return the stream's relay manager, creating it on first request.

        Returns ``None`` when the app has no relay settings or an unknown type.
        """
        info = self.get_relay_conf(app_uplive)
        if info is None:
            log(
                LogLevel.INFO,
                f"RelayMap.add_relay_manager, no relay conf, "
                f"app_uplive={app_uplive}, stream_name={stream_name}.",
            )
            return None
        key = f"{app_uplive}/{stream_name}"
        with self._lock.write_locked():
            manager = self._managers.get(key)
            if manager is not None:
                return manager
            if info.type not in RELAY_TYPES:
                log(
                    LogLevel.INFO,
                    f"RelayMap.add_relay_manager, wrong type='{info.type}', "
                    f"app_uplive={app_uplive}, stream_name={stream_name}.",
                )
                return None
            manager = self._factory(info, app_uplive, stream_name)
            if manager is None:
                return None
            self._managers[key] = manager
            log(
                LogLevel.INFO,
                f"RelayMap.add_relay_manager ok, app_uplive={app_uplive}, "
                f"stream_name={stream_name}.",
            )
            return manager

    def clear(self) -> None:
        """Forget all managers and relay settings."""
        with self._lock.write_locked():
            log(LogLevel.INFO, "RelayMap.clear.")
            self._managers.clear()
            self._infos.clear()