"""Dispatcher that recalculates everything affected by changed values."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterable

from calcctx.calculation_graph import CalculationGraph, Calculus
from calcctx.link import ChannelClosed, LinkError
from calcctx.project_node import ProjectNodeStatus
from calcctx.snapshot import Event

log = logging.getLogger(__name__)


def _send_quietly(target: Any, item: Any, where: str) -> None:
    try:
        target.send(item)
    except (ChannelClosed, LinkError) as err:
        log.debug("%s | Send failed: %s", where, err)


class Calculations:
    """Builds the dependency graph at start and runs calculations in order.

    - `tree_link` receives `(calc_id, ProjectNodeStatus)` for every planned calculation
    """

    def __init__(self, parent: str, tree_link: Any, calculuses: Iterable[Calculus]) -> None:
        self._name = f"{parent}/Calculations"
        self._graph = CalculationGraph(self._name, calculuses)
        self._tree_link = tree_link

    def eval(self, event: Event, link: Any, changes: Iterable[str]) -> None:
        """Recalculate everything depending on the changed keys.

        A failed calculation is reported as ERROR and all calculations
        depending on it are skipped and reported as OUTDATED. The client
        gets an error reply per failure and a final OK reply.
        """
        where = f"{self._name}.eval"
        skipped: set[str] = set()
        for calc in self._graph.plan(changes):
            calc_id = calc.id()
            if calc_id in skipped:
                log.info("%s | Calculation %r skipped due to upstream failure.", where, calc_id)
                _send_quietly(self._tree_link, (calc_id, ProjectNodeStatus.OUTDATED), where)
                continue
            try:
                calc.eval()
            except Exception as err:
                log.warning("%s | Calculation %r failed: %s", where, calc_id, err)
                _send_quietly(self._tree_link, (calc_id, ProjectNodeStatus.ERROR), where)
                _send_quietly(
                    link, event.reply_err(f"Calculation {calc_id!r} failed: {err}"), where
                )
                queue = deque(self._graph.neighbors(calc_id) or ())
                while queue:
                    node = queue.popleft()
                    if node not in skipped:
                        skipped.add(node)
                        queue.extend(self._graph.neighbors(node) or ())
            else:
                _send_quietly(self._tree_link, (calc_id, ProjectNodeStatus.READY), where)
        _send_quietly(link, event.reply_ok(), where)

    def __repr__(self) -> str:
        return f"Calculations(name={self._name!r})"