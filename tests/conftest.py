import heapq
import itertools
from typing import Any, Callable, List, Optional, Tuple, Union

import pytest

from streamkeeper.transport.base import Transport


class VirtualTimer:
    """Handle returned by ``VirtualLoop.call_later``."""

    def __init__(self, when: float) -> None:
        self.when = when
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualLoop:
    """Deterministic scheduler: time only moves when ``advance`` is called."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self._queue: List[Tuple[float, int, VirtualTimer, Callable[..., Any], tuple]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> VirtualTimer:
        timer = VirtualTimer(self.now + delay)
        heapq.heappush(self._queue, (timer.when, next(self._seq), timer, callback, args))
        return timer

    def pending(self) -> List[VirtualTimer]:
        return [entry[2] for entry in self._queue if not entry[2].cancelled]

    def advance(self, seconds: float) -> None:
        """Run every callback due within ``seconds``, in time order."""
        deadline = self.now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            when, _, timer, callback, args = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = when
            callback(*args)
        self.now = deadline


class FakeTransport(Transport):
    """
    Transport driven by the test through ``open``/``receive``/``drop``.

    With ``auto_open`` set, ``start`` reports the open synchronously.
    """

    auto_open = False

    def __init__(self, url: str) -> None:
        super().__init__(url)
        self.started = False
        self.closed = False
        self.sent: List[Union[str, bytes]] = []

    def start(self) -> None:
        self.started = True
        if self.auto_open:
            self.open()

    def send(self, data: Union[str, bytes]) -> None:
        self.sent.append(data)

    def close(self) -> None:
        self.closed = True

    # Test helpers emitting events the way a real transport would.

    def open(self) -> None:
        self.on_open()

    def receive(self, data: Union[str, bytes]) -> None:
        self.on_message(data)

    def ping(self) -> None:
        self.on_heartbeat()

    def drop(self, exc: Optional[BaseException] = None) -> None:
        self._fail(exc)


class TransportRecorder:
    """
    Transport factory remembering every transport it built.

    ``auto_open`` is copied onto each new transport.
    """

    def __init__(self) -> None:
        self.created: List[FakeTransport] = []
        self.endpoints: List[str] = []
        self.auto_open = False

    def __call__(self, endpoint: str) -> FakeTransport:
        transport = FakeTransport(endpoint)
        transport.auto_open = self.auto_open
        self.created.append(transport)
        self.endpoints.append(endpoint)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


@pytest.fixture
def loop() -> VirtualLoop:
    """Virtual clock scheduler starting at t=1000s."""
    return VirtualLoop()


@pytest.fixture
def transports() -> TransportRecorder:
    """Factory of fake transports."""
    return TransportRecorder()


@pytest.fixture
def make_stream(loop: VirtualLoop, transports: TransportRecorder):
    """Build a StreamConnection on the virtual loop with fake transports."""
    from streamkeeper.stream import StreamConnection

    def _make(url: str = "localhost:3000", **options: Any) -> StreamConnection:
        options.setdefault("loop", loop)
        options.setdefault("transport_factory", transports)
        options.setdefault("clock", loop.time)
        return StreamConnection(url, **options)

    return _make
