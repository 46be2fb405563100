"""Hub combining multiple links and answering their requests."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from calcctx.link import Link, LinkError, LinkSend

log = logging.getLogger(__name__)

_RECV_TIMEOUT = 0.0001


class Hub:
    """Combines multiple links.

    - `listen` hands every incoming event to a callback together with a
      `LinkSend` for extra replies; a non-None return value is sent back.
    """

    def __init__(self, parent: str, exit: Optional[threading.Event] = None) -> None:
        self._name = f"{parent}/Hub"
        self._links: dict[str, Link] = {}
        self._lock = threading.Lock()
        self.timeout = _RECV_TIMEOUT
        self._exit = exit if exit is not None else threading.Event()

    def link(self) -> Link:
        """Return a new link connected to the hub."""
        with self._lock:
            local, remote = Link.split(f"{self._name}:{len(self._links)}")
            self._links[remote.name()] = local
        return remote

    def _snapshot(self) -> list[tuple[str, Link]]:
        with self._lock:
            return list(self._links.items())

    def _remove(self, key: str, link: Link) -> None:
        with self._lock:
            if self._links.get(key) is not link:
                return
            del self._links[key]
        link.exit()
        log.debug("%s.listen | Link '%s' - closed", self._name, key)

    def listen(self, op: Callable[[Any, LinkSend], Any]) -> threading.Thread:
        """Serve all links in a background thread until `exit` is signalled."""
        where = f"{self._name}.listen"

        def serve() -> None:
            while not self._exit.is_set():
                entries = self._snapshot()
                if not entries:
                    self._exit.wait(self.timeout)
                    continue
                closed = []
                for key, link in entries:
                    try:
                        event = link.recv_timeout(self.timeout)
                    except LinkError:
                        closed.append((key, link))
                    else:
                        if event is not None:
                            log.debug("%s | Link(%s) Received event: %r", where, key, event)
                            reply = op(event, link.sender())
                            if reply is not None:
                                try:
                                    link.send(reply)
                                except LinkError as err:
                                    log.error("%s | Link(%s) Send reply error: %s", where, key, err)
                    if self._exit.is_set():
                        break
                for key, link in closed:
                    self._remove(key, link)
            for _, link in self._snapshot():
                link.exit()
            log.debug("%s | Exit", where)

        thread = threading.Thread(target=serve, name=self._name, daemon=True)
        thread.start()
        log.debug("%s | Start - Ok", where)
        return thread

    def exit(self) -> None:
        """Signal the listening task to stop and close all links."""
        self._exit.set()
        for _, link in self._snapshot():
            link.exit()

    def __repr__(self) -> str:
        return f"Hub(name={self._name!r}, timeout={self.timeout!r})"