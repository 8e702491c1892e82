"""Maps between player apps, publisher apps, their configs and live publishers."""

from __future__ import annotations

from typing import Any, Dict, Optional

from srtlive.locks import RWLock
from srtlive.log import LogLevel, log


class PublisherExistsError(KeyError):
    """Raised when a stream already has a publisher."""


class PublisherMap:
    """Thread-safe lookup tables for publishing.

    * ``'host/live'`` -> ``'host/uplive'``
    * ``'host/uplive'`` -> app configuration
    * ``'host/uplive/stream'`` -> publishing role
    """

    def __init__(self) -> None:
        self._live_to_uplive: Dict[str, str] = {}
        self._uplive_to_conf: Dict[str, Any] = {}
        self._publishers: Dict[str, Any] = {}
        self._lock = RWLock()

    def set_conf(self, key: str, conf: Any) -> None:
        """Associate the app configuration ``conf`` with uplive ``key``."""
        with self._lock.write_locked():
            self._uplive_to_conf[key] = conf

    def set_live_to_uplive(self, live: str, uplive: str) -> None:
        """Map a player app key to the publisher app key it plays from."""
        with self._lock.write_locked():
            self._live_to_uplive[live] = uplive

    def set_publisher(self, app_stream: str, role: Any) -> None:
        """Register ``role`` as the publisher of ``app_stream``.

        Raises :class:`PublisherExistsError` if another publisher is set.
        """
        with self._lock.write_locked():
            current = self._publishers.get(app_stream)
            if current is not None:
                log(
                    LogLevel.INFO,
                    f"PublisherMap.set_publisher failed, publisher exists, "
                    f"app_stream={app_stream}, size={len(self._publishers)}.",
                )
                raise PublisherExistsError(app_stream)
            self._publishers[app_stream] = role
            log(
                LogLevel.INFO,
                f"PublisherMap.set_publisher ok, app_stream={app_stream}, "
                f"size={len(self._publishers)}.",
            )

    def get_uplive(self, key_app: str) -> str:
        """Return the uplive key for a player app key, or ``''`` if unknown."""
        with self._lock.read_locked():
            return self._live_to_uplive.get(key_app, "")

    def get_conf(self, key_app: str) -> Optional[Any]:
        """Return the configuration for an uplive key, or ``None``."""
        with self._lock.read_locked():
            return self._uplive_to_conf.get(key_app)

    def get_publisher(self, app_stream: str) -> Optional[Any]:
        """Return the publisher for ``app_stream``, or ``None``."""
        with self._lock.read_locked():
            return self._publishers.get(app_stream)

    def remove(self, role: Any) -> bool:
        """Drop the first stream published by ``role``; return whether one was found."""
        with self._lock.write_locked():
            for key, publisher in self._publishers.items():
                if publisher is role:
                    log(LogLevel.INFO, f"PublisherMap.remove, live_key={key}.")
                    del self._publishers[key]
                    return True
        return False

    def clear(self) -> None:
        """Forget every mapping."""
        with self._lock.write_locked():
            log(LogLevel.INFO, "PublisherMap.clear.")
            self._publishers.clear()
            self._live_to_uplive.clear()
            self._uplive_to_conf.clear()