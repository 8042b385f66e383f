"""src/streamkeeper/connectivity.py

Injected "network became available" signal.

Platforms that know when connectivity returns (a desktop network monitor, a
mobile reachability API, ...) call ``notify_online()``; streams built with
this notifier then try to reconnect immediately instead of waiting out their
backoff.
"""

from typing import Any, Callable, List

from streamkeeper.utils.log import get_logger

__all__ = ["ConnectivityNotifier"]

logger = get_logger(__name__)


class ConnectivityNotifier:
    """Ordered list of callbacks fired when the platform goes online."""

    __slots__ = ("_callbacks",)

    def __init__(self) -> None:
        self._callbacks: List[Callable[[], Any]] = []

    def subscribe(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """
        Register ``callback``.

        Returns:
            A callable that removes the callback.
        """
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def notify_online(self) -> None:
        """Tell every subscriber that connectivity is back."""
        logger.debug("Connectivity regained, notifying %d listeners", len(self._callbacks))
        for callback in list(self._callbacks):
            callback()
