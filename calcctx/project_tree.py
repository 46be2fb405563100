"""ProjectTree service: collects node statuses and reports changes to the client."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from calcctx.link import Channel, ChannelClosed
from calcctx.project_nodes import ProjectNodes
from calcctx.snapshot import Event

log = logging.getLogger(__name__)

_RECV_TIMEOUT = 0.1


@dataclass(frozen=True)
class ProjectTreeConf:
    """Configuration of `ProjectTree`.

    - `wait_started` - extra time in seconds the next service waits after this one started
    """

    wait_started: Optional[float] = None


class ProjectTree:
    """Navigation graph of the project running in its own thread.

    Calculations send `(node_id, status)` pairs into `link()`; every cycle
    the service applies them to `nodes` and sends an event per changed node
    to the client.
    """

    def __init__(self, parent: str, conf: ProjectTreeConf, client: Any) -> None:
        self._name = f"{parent}/ProjectTree"
        self.conf = conf
        self._client_link: Optional[Any] = client
        self._link = Channel()
        self._link_rx: Optional[Channel] = self._link
        self.nodes = ProjectNodes(self._name)
        self._handles: list[threading.Thread] = []
        self._exit = threading.Event()
        self._lock = threading.Lock()

    def name(self) -> str:
        return self._name

    def link(self) -> Channel:
        """Return the channel calculations send node statuses into."""
        return self._link

    def _prepare_status_events(self) -> list[Event]:
        return [
            Event.from_items([(str(key), node.status.name)])
            for key, node in self.nodes.get_updated()
        ]

    def _serve(self, link_rx: Channel, client_link: Any) -> None:
        log.info("%s.run | Ready", self._name)
        while not self._exit.is_set():
            events = []
            while True:
                try:
                    events.append(link_rx.recv(_RECV_TIMEOUT))
                except TimeoutError:
                    break
                except ChannelClosed:
                    self._exit.set()
                    break
            for node_id, node_status in events:
                self.nodes.update_status(node_id, node_status)
            for event in self._prepare_status_events():
                try:
                    client_link.send(event)
                except ChannelClosed as err:
                    log.warning("%s.run | Can't send event to the client: %s", self._name, err)

    def run(self) -> None:
        """Start the service thread; a tree can be started only once."""
        with self._lock:
            if self._link_rx is None:
                raise RuntimeError(f"{self._name}.run | Can't take link_rx from self")
            if self._client_link is None:
                raise RuntimeError(f"{self._name}.run | Can't take client_link from self")
            link_rx, self._link_rx = self._link_rx, None
            client_link, self._client_link = self._client_link, None
        log.info("%s.run | Starting...", self._name)
        thread = threading.Thread(
            target=self._serve, args=(link_rx, client_link), name=self._name, daemon=True
        )
        thread.start()
        self._handles.append(thread)
        log.info("%s.run | Starting - Ok", self._name)

    def is_finished(self) -> bool:
        return all(not handle.is_alive() for handle in self._handles)

    def wait(self) -> None:
        for handle in self._handles:
            handle.join()

    def exit(self) -> None:
        self._exit.set()

    def __repr__(self) -> str:
        return f"ProjectTree(name={self._name!r})"