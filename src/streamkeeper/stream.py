"""src/streamkeeper/stream.py

Auto-reconnecting stream connection.

``StreamConnection`` owns at most one transport at a time and drives it
through the states ``connecting -> connected -> waiting -> connecting ...``,
with ``offline`` and ``failed`` reachable on request. Liveness is guarded by
two deadlines: a connect timer armed at every launch and a heartbeat timer
re-armed by every inbound frame.

Every transition completes its bookkeeping (timers, transport teardown,
status snapshot) before any observer or callback runs, so callbacks may call
back into ``send``, ``reconnect`` or ``disconnect`` and see consistent state.
"""

# pylint: disable=too-many-instance-attributes,too-many-arguments,broad-exception-caught

import asyncio
import time
from typing import Any, Callable, Optional, Union

from streamkeeper.connectivity import ConnectivityNotifier
from streamkeeper.events import CallbackHandle, EventBus
from streamkeeper.exceptions import (
    ConnectTimeout,
    ForcedReconnect,
    HeartbeatTimeout,
    PermanentDisconnect,
    StreamCondition,
    TransportClosed,
)
from streamkeeper.heartbeat import HeartbeatMonitor
from streamkeeper.status import ConnectionStatus, StatusBroadcaster, StreamState
from streamkeeper.transport.base import Transport
from streamkeeper.transport.websocket import WebSocketTransport
from streamkeeper.utils.log import get_logger
from streamkeeper.utils.retry import RetryPolicy
from streamkeeper.utils.timing import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_HEARTBEAT_TIMEOUT,
    Scheduler,
    Timeout,
    TimerHandle,
)
from streamkeeper.utils.url import to_websocket_url

__all__ = ["StreamConnection"]

logger = get_logger(__name__)

TransportFactory = Callable[[str], Transport]


class StreamConnection:
    """
    Resilient connection to a single logical address.

    The first connect attempt starts as soon as the object is built.

    Attributes:
        url: Logical address; changed by ``reconnect(url=...)``.
        retry: Whether lost connections are retried automatically.
        timeout: Connect and heartbeat deadlines.
        loop: Scheduler running every timer (an asyncio loop by default).
        transport: The live transport, or None.
        forced_to_disconnect: Set forever by a permanent disconnect.
    """

    __slots__ = (
        "url",
        "retry",
        "timeout",
        "loop",
        "transport",
        "forced_to_disconnect",
        "_transport_factory",
        "_resolve_url",
        "_clock",
        "_events",
        "_status",
        "_retry",
        "_retry_count",
        "_heartbeat",
        "_connect_timer",
        "_unsubscribe_connectivity",
        "_pending_endpoint",
    )

    def __init__(
        self,
        url: str,
        *,
        retry: bool = True,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        heartbeat_timeout: float = DEFAULT_HEARTBEAT_TIMEOUT,
        loop: Optional[Scheduler] = None,
        transport_factory: Optional[TransportFactory] = None,
        resolve_url: Callable[[str], str] = to_websocket_url,
        connectivity: Optional[ConnectivityNotifier] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Build the connection and launch the first attempt.

        Args:
            url: Logical address of the server.
            retry: Retry automatically after a drop; when False a drop is final.
            connect_timeout: Seconds allowed for the transport to open.
            heartbeat_timeout: Seconds of inbound silence tolerated.
            loop: Timer source; defaults to the running asyncio loop.
            transport_factory: Builds a transport for a resolved endpoint.
            resolve_url: Maps ``url`` to a concrete endpoint, once per attempt.
            connectivity: Optional notifier of regained connectivity.
            retry_policy: Backoff policy; one is built on ``loop`` if omitted.
            clock: Source of epoch seconds used for ``retry_time``.
        """
        self.url = url
        self.retry = retry
        self.timeout = Timeout(connect=connect_timeout, heartbeat=heartbeat_timeout)
        self.loop: Scheduler = loop if loop is not None else asyncio.get_running_loop()
        self.transport: Optional[Transport] = None
        self.forced_to_disconnect = False

        self._transport_factory = transport_factory or self._default_transport
        self._resolve_url = resolve_url
        self._clock = clock
        self._events = EventBus()
        self._status = StatusBroadcaster(ConnectionStatus(StreamState.CONNECTING))
        self._retry = retry_policy or RetryPolicy(self.loop)
        self._retry_count = 0
        self._heartbeat = HeartbeatMonitor(
            self.loop, self._heartbeat_timed_out, self.timeout.heartbeat
        )
        self._connect_timer: Optional[TimerHandle] = None
        self._unsubscribe_connectivity: Optional[Callable[[], None]] = None
        self._pending_endpoint: Optional[str] = None

        self._launch_connection()

        if connectivity is not None:
            self._unsubscribe_connectivity = connectivity.subscribe(self._online)

    def __repr__(self) -> str:
        return f"<StreamConnection {self.url!r} {self._status.current.status}>"

    def __enter__(self) -> "StreamConnection":
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def status(self) -> ConnectionStatus:
        """Return the current status snapshot."""
        return self._status.current

    def subscribe(
        self, observer: Callable[[ConnectionStatus], Any]
    ) -> Callable[[], None]:
        """Call ``observer`` with every new status snapshot. Returns an unsubscribe callable."""
        return self._status.subscribe(observer)

    def on(self, name: str, callback: Callable[..., Any]) -> CallbackHandle:
        """
        Register a callback for ``message``, ``reset`` or ``disconnect``.

        ``message`` callbacks receive the frame, ``reset`` callbacks nothing,
        ``disconnect`` callbacks the ``StreamCondition`` that caused the loss
        (None for a clean close).

        Raises:
            InvalidEventError: For any other event name.
        """
        return self._events.on(name, callback)

    def off(self, handle: CallbackHandle) -> None:
        """Remove a callback registered with ``on``."""
        self._events.off(handle)

    def send(self, data: Union[str, bytes]) -> None:
        """
        Send ``data`` if connected.

        Data sent while not connected is dropped; retransmitting lost messages
        on ``reset`` is up to the caller.
        """
        if self._status.current.connected and self.transport is not None:
            self.transport.send(data)
        else:
            logger.debug("Not connected, dropping outgoing frame")

    def reconnect(self, *, url: Optional[str] = None, force: bool = False) -> None:
        """
        Attempt a connection now, skipping any backoff wait.

        A live connection is only torn down when ``force`` is set or a new
        ``url`` is given; otherwise reconnecting while connected is a no-op.
        Manual attempts do not advance the backoff curve.

        Raises:
            ValueError: If ``url`` cannot be resolved to an endpoint. The
                stream is left untouched.
        """
        if self.forced_to_disconnect:
            logger.debug("Ignoring reconnect on a permanently closed stream")
            return

        if url:
            self._pending_endpoint = self._resolve_url(url)
            self.url = url

        if self._status.current.connected:
            if force or url:
                self._lost_connection(ForcedReconnect())
            return

        # Mid-connection or idle: stop whatever is in flight and start over.
        self._restart(None)

    def disconnect(self, *, permanent: bool = False, reason: Any = None) -> None:
        """
        Go offline, or fail for good when ``permanent`` is set.

        An offline stream stays offline until ``reconnect()``. A permanently
        disconnected stream never connects again; ``reason`` is recorded in
        its status.
        """
        if self.forced_to_disconnect:
            return

        if permanent:
            self.forced_to_disconnect = True
            if self._unsubscribe_connectivity is not None:
                self._unsubscribe_connectivity()
                self._unsubscribe_connectivity = None

        had_transport = self._teardown()
        self._retry.clear()
        self._retry_count = 0
        self._pending_endpoint = None

        if permanent:
            self._publish(StreamState.FAILED, reason=reason)
            condition: Optional[StreamCondition] = PermanentDisconnect(reason)
        else:
            self._publish(StreamState.OFFLINE)
            condition = None

        if had_transport:
            self._events.emit("disconnect", condition)

    def close(self) -> None:
        """Permanently disconnect and release every resource."""
        self.disconnect(permanent=True)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _publish(
        self,
        state: StreamState,
        retry_time: Optional[float] = None,
        reason: Any = None,
    ) -> None:
        self._status.publish(
            ConnectionStatus(
                status=state,
                retry_count=self._retry_count,
                retry_time=retry_time,
                reason=reason,
            )
        )

    def _lost_connection(self, condition: Optional[StreamCondition] = None) -> None:
        if isinstance(condition, ForcedReconnect):
            # Explicit caller intent: reconnect now even if retry is disabled.
            self._restart(condition)
            return

        had_transport = self._teardown()
        self._retry_later()
        if had_transport:
            self._events.emit("disconnect", condition)

    def _restart(self, condition: Optional[StreamCondition]) -> None:
        had_transport = self._teardown()
        self._retry.clear()
        # Manual attempts are not counted, so retry_count is left as is.
        self._publish(StreamState.CONNECTING)
        if had_transport:
            self._events.emit("disconnect", condition)
        self._launch_if_connecting()

    def _retry_later(self) -> None:
        if self.retry:
            delay = self._retry.retry_later(self._retry_count, self._retry_now)
            self._publish(StreamState.WAITING, retry_time=self._clock() + delay)
            logger.info(
                "Connection to %s lost, retrying in %.2fs", self.url, delay
            )
        else:
            self._publish(StreamState.FAILED)
            logger.info("Connection to %s lost, retry disabled", self.url)

    def _retry_now(self) -> None:
        if self.forced_to_disconnect:
            return

        self._retry_count += 1
        self._publish(StreamState.CONNECTING)
        self._launch_if_connecting()

    def _launch_if_connecting(self) -> None:
        # An observer or callback may already have moved the stream elsewhere.
        if (
            self._status.current.status is not StreamState.CONNECTING
            or self.transport is not None
        ):
            return
        self._launch_connection()

    def _launch_connection(self) -> None:
        endpoint, self._pending_endpoint = self._pending_endpoint, None
        try:
            if endpoint is None:
                endpoint = self._resolve_url(self.url)
            transport = self._transport_factory(endpoint)
        except Exception as exc:
            logger.warning("Cannot start a connection to %s: %s", self.url, exc)
            condition = TransportClosed(str(exc) or None)
            condition.__cause__ = exc
            self._lost_connection(condition)
            return

        transport.on_open = self._connected
        transport.on_message = self._message_received
        transport.on_heartbeat = self._heartbeat_received
        transport.on_error = self._transport_error
        transport.on_close = self._transport_closed
        self.transport = transport

        self._connect_timer = self.loop.call_later(
            self.timeout.connect, self._connect_timed_out
        )
        logger.debug("Connecting to %s (attempt %d)", endpoint, self._retry_count)
        transport.start()

    def _teardown(self) -> bool:
        """Cancel timers and release the transport. Returns whether one was live."""
        self._clear_timers()

        transport = self.transport
        if transport is None:
            return False

        transport.detach()
        transport.close()
        self.transport = None
        return True

    def _clear_timers(self) -> None:
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None
        self._heartbeat.cancel()

    # ------------------------------------------------------------------
    # Transport and timer handlers
    # ------------------------------------------------------------------

    def _connected(self) -> None:
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

        if self._status.current.connected:
            return

        self._retry_count = 0
        self._heartbeat.reset()
        self._publish(StreamState.CONNECTED)
        logger.info("Connected to %s", self.url)

        # Resets fire after the status change so they can call send().
        if self._status.current.connected:
            self._events.emit("reset")

    def _message_received(self, data: Union[str, bytes]) -> None:
        self._heartbeat_received()
        if self._status.current.connected:
            self._events.emit("message", data)

    def _heartbeat_received(self) -> None:
        # A permanently closed stream has no timer to re-arm.
        if self.forced_to_disconnect or self.transport is None:
            return
        self._heartbeat.reset()

    def _heartbeat_timed_out(self, condition: HeartbeatTimeout) -> None:
        if self.forced_to_disconnect:
            return
        logger.info("Connection timeout. No heartbeat received from %s", self.url)
        self._lost_connection(condition)

    def _connect_timed_out(self) -> None:
        self._connect_timer = None
        logger.info("Connection attempt to %s timed out", self.url)
        self._lost_connection(ConnectTimeout())

    def _transport_error(self, exc: BaseException) -> None:
        logger.warning("Stream error on %s: %s", self.url, exc)

    def _transport_closed(self, exc: Optional[BaseException] = None) -> None:
        condition: Optional[StreamCondition] = None
        if exc is not None:
            condition = TransportClosed(str(exc) or None)
            condition.__cause__ = exc
        self._lost_connection(condition)

    def _online(self) -> None:
        # An explicit disconnect() is not undone by the platform going online.
        if self._status.current.status is not StreamState.OFFLINE:
            self.reconnect()

    def _default_transport(self, endpoint: str) -> Transport:
        loop = self.loop if isinstance(self.loop, asyncio.AbstractEventLoop) else None
        return WebSocketTransport(endpoint, loop=loop, timeout=self.timeout.connect)
