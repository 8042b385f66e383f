"""src/streamkeeper/transport/base.py

Abstract transport consumed by ``StreamConnection``.

A transport reports its lifecycle through handler attributes that the owner
assigns before calling ``start()``:

    on_open()            the channel is ready for ``send``
    on_message(data)     an application frame arrived
    on_heartbeat()       a transport-level liveness frame arrived
    on_error(exc)        something went wrong; a close follows
    on_close(exc)        the channel is gone; ``exc`` is None for a clean close
"""

import abc
from typing import Any, Optional, Union

__all__ = ["Transport"]


def _noop(*args: Any) -> None:
    """Handler placeholder."""


class Transport(abc.ABC):
    """
    Bidirectional frame channel.

    Attributes:
        url: Concrete endpoint this transport talks to.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.detach()

    def detach(self) -> None:
        """Replace every handler with a no-op so late events go nowhere."""
        self.on_open = _noop
        self.on_message = _noop
        self.on_heartbeat = _noop
        self.on_error = _noop
        self.on_close = _noop

    @abc.abstractmethod
    def start(self) -> None:
        """Begin opening the channel. Must not block."""

    @abc.abstractmethod
    def send(self, data: Union[str, bytes]) -> None:
        """Send one frame. Must not block."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the channel. Must not raise."""

    def _fail(self, exc: Optional[BaseException]) -> None:
        """Report an error followed by the close it caused."""
        if exc is not None:
            self.on_error(exc)
        self.on_close(exc)
