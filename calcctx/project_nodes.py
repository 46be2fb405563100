"""Thread-safe collection of project tree nodes with change tracking."""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Hashable

from calcctx.project_node import ProjectNode, ProjectNodeStatus

log = logging.getLogger(__name__)


class ProjectNodes:
    """Collection of project tree nodes.

    Status changes are collected until `get_updated` takes them away.
    """

    def __init__(self, parent: str) -> None:
        self._name = f"{parent}/ProjectNodes"
        self._lock = threading.Lock()
        self._nodes: dict[Hashable, ProjectNode] = {}
        self._updated: dict[Hashable, ProjectNode] = {}

    def insert(self, key: Hashable, node: ProjectNode) -> None:
        """Register `node` under `key`, replacing any previous node."""
        with self._lock:
            self._nodes[key] = node

    def update_status(self, node_id: Hashable, node_status: ProjectNodeStatus) -> None:
        """Set the status of a known node; a change is recorded as an update."""
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                log.debug("%s.update_status | Unknown node %r", self._name, node_id)
                return
            if node.status == node_status:
                return
            changed = dataclasses.replace(node, status=node_status, version=node.version + 1)
            self._nodes[node_id] = changed
            self._updated[node_id] = changed

    def get_updated(self) -> list[tuple[Hashable, ProjectNode]]:
        """Atomically take all nodes whose status changed since the last call."""
        with self._lock:
            updated, self._updated = self._updated, {}
        return list(updated.items())