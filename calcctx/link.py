"""Bidirectional message links over in-process channels."""

from __future__ import annotations

import logging
import pickle
import threading
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

log = logging.getLogger(__name__)

#: Default time to wait for a `recv` operation, in seconds (10 ms).
DEFAULT_TIMEOUT = 0.01

_LISTEN_POLL = 0.0001


class ChannelClosed(Exception):
    """Raised when sending to or receiving from a closed channel."""


class LinkError(Exception):
    """Raised when a link operation fails."""


class Channel:
    """Unbounded thread-safe FIFO channel that can be closed from either side.

    Closing the channel discards any pending items; both sending and
    receiving fail afterwards.
    """

    def __init__(self) -> None:
        self._items: deque[Any] = deque()
        self._cond = threading.Condition()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: Any) -> None:
        with self._cond:
            if self._closed:
                raise ChannelClosed("send on a closed channel")
            self._items.append(item)
            self._cond.notify()

    def recv(self, timeout: Optional[float] = None) -> Any:
        """Wait for an item; raise TimeoutError if none arrives within `timeout`."""
        with self._cond:
            ready = self._cond.wait_for(lambda: self._items or self._closed, timeout)
            if self._closed:
                raise ChannelClosed("receive on a closed channel")
            if not ready:
                raise TimeoutError("receive timed out")
            return self._items.popleft()

    def try_recv(self) -> Any:
        """Return the next item, or None if the channel is empty right now."""
        with self._cond:
            if self._closed:
                raise ChannelClosed("receive on a closed channel")
            if not self._items:
                return None
            return self._items.popleft()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._items.clear()
            self._cond.notify_all()


def _encode(value: Any, where: str) -> bytes:
    try:
        return pickle.dumps(value)
    except (pickle.PicklingError, TypeError, AttributeError) as err:
        raise LinkError(f"{where} | Encode error: {err}") from err


def _decode(data: bytes, where: str) -> Any:
    try:
        return pickle.loads(data)
    except Exception as err:
        raise LinkError(f"{where} | Decode error: {err}") from err


class LinkSend:
    """Sending half of a link: encodes values into bytes before sending."""

    def __init__(self, parent: str, send: Channel) -> None:
        self._name = f"{parent}/LinkSend"
        self._send = send

    def send(self, event: Any) -> None:
        where = f"{self._name}.send"
        data = _encode(event, where)
        try:
            self._send.send(data)
        except ChannelClosed as err:
            raise LinkError(f"{where} | {err}") from err


class Link:
    """Local side of a pair of channels: direct send/receive and request/reply."""

    def __init__(self, parent: str, send: Channel, recv: Channel) -> None:
        self._name = f"{parent}/Link"
        self._send = send
        self._recv: Optional[Channel] = recv
        self._recv_lock = threading.Lock()
        self.timeout = DEFAULT_TIMEOUT
        self._exit = threading.Event()

    @classmethod
    def split(cls, parent: str) -> tuple["Link", "Link"]:
        """Return a connected `(local, remote)` pair."""
        local_to_remote = Channel()
        remote_to_local = Channel()
        local = cls(parent, local_to_remote, remote_to_local)
        remote = cls(parent, remote_to_local, local_to_remote)
        return local, remote

    def name(self) -> str:
        return self._name

    def sender(self) -> LinkSend:
        return LinkSend(self._name, self._send)

    def _take_recv(self, op: str) -> Channel:
        with self._recv_lock:
            recv, self._recv = self._recv, None
        if recv is None:
            raise LinkError(f"{self._name}.{op} | Recv - not found")
        return recv

    @contextmanager
    def _receiver(self, op: str) -> Iterator[Channel]:
        recv = self._take_recv(op)
        try:
            yield recv
        finally:
            with self._recv_lock:
                self._recv = recv

    def call(self, query: Any) -> Any:
        """Send a request, wait for the reply and return it decoded."""
        where = f"{self._name}.call"
        data = _encode(query, where)
        try:
            self._send.send(data)
        except ChannelClosed as err:
            raise LinkError(f"{where} | Send request error: {err}") from err
        log.debug("%s | Sent request: %r", where, query)
        with self._receiver("call") as recv:
            try:
                reply = recv.recv()
            except ChannelClosed as err:
                raise LinkError(f"{where} | {err}") from err
        return _decode(reply, where)

    def listen(self, op: Callable[[Any], Any]) -> threading.Thread:
        """Serve incoming events in a background thread.

        `op` receives each decoded event; a non-None return value is sent
        back as the reply. The thread stops once `exit` is called.
        """
        where = f"{self._name}.listen"
        recv = self._take_recv("listen")
        send = self._send
        exit_flag = self._exit

        def serve() -> None:
            while not exit_flag.is_set():
                try:
                    data = recv.recv(_LISTEN_POLL)
                except TimeoutError:
                    continue
                except ChannelClosed as err:
                    log.debug("%s | Recv error: %s", where, err)
                    exit_flag.wait(_LISTEN_POLL)
                    continue
                try:
                    query = _decode(data, where)
                except LinkError as err:
                    log.warning("%s", err)
                    continue
                reply = op(query)
                if reply is None:
                    continue
                try:
                    send.send(_encode(reply, where))
                except LinkError as err:
                    log.warning("%s", err)
                except ChannelClosed as err:
                    log.error("%s | Send reply error: %s", where, err)
            log.debug("%s | Exit", where)

        thread = threading.Thread(target=serve, name=self._name, daemon=True)
        thread.start()
        log.debug("%s | Starting - Ok", where)
        return thread

    def try_recv(self) -> Any:
        """Return the next event, or None if there is none yet."""
        where = f"{self._name}.try_recv"
        with self._receiver("try_recv") as recv:
            try:
                data = recv.try_recv()
            except ChannelClosed as err:
                raise LinkError(f"{where} | Recv error: {err}") from err
        if data is None:
            return None
        return _decode(data, where)

    def recv_timeout(self, duration: float) -> Any:
        """Return the next event, or None if none arrives within `duration` seconds."""
        where = f"{self._name}.recv_timeout"
        with self._receiver("recv_timeout") as recv:
            try:
                data = recv.recv(duration)
            except TimeoutError:
                return None
            except ChannelClosed as err:
                raise LinkError(f"{where} | Recv error: {err}") from err
        return _decode(data, where)

    def recv(self) -> Any:
        """Block until an event arrives and return it."""
        where = f"{self._name}.recv"
        with self._receiver("recv") as recv:
            try:
                data = recv.recv()
            except ChannelClosed as err:
                raise LinkError(f"{where} | Recv error: {err}") from err
        return _decode(data, where)

    def send(self, event: Any) -> None:
        where = f"{self._name}.send"
        data = _encode(event, where)
        try:
            self._send.send(data)
        except ChannelClosed as err:
            raise LinkError(f"{where} | {err}") from err

    def exit_pair(self) -> threading.Event:
        """Return the exit signal shared with the `listen` task."""
        return self._exit

    def exit(self) -> None:
        """Signal the `listen` task to stop and close the sending channel."""
        self._exit.set()
        self._send.close()

    def __repr__(self) -> str:
        return f"Link(name={self._name!r}, timeout={self.timeout!r})"