"""Dependency graph of calculations and the order they run in."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

log = logging.getLogger(__name__)


class CycleError(ValueError):
    """Raised when the calculations depend on each other in a cycle."""


@dataclass
class CalculationTags:
    """Context keys a calculation reads (`inputs`) and writes (`outputs`)."""

    inputs: list[str] = field(default_factory=list)
    outputs: list[str] = field(default_factory=list)


class Calculus(ABC):
    """A calculation node of the graph."""

    @abstractmethod
    def id(self) -> str:
        """Return the unique identifier of the calculation."""

    @abstractmethod
    def tags(self) -> CalculationTags:
        """Return the context keys the calculation depends on and produces."""

    @abstractmethod
    def eval(self) -> None:
        """Run the calculation; raise on failure."""


class CalculationGraph:
    """Builds the dependency graph once and plans calculations in a valid order."""

    def __init__(self, parent: str, calculuses: Iterable[Calculus]) -> None:
        self._name = f"{parent}/CalculationGraph"
        nodes: dict[str, Calculus] = {}
        inputs_map: dict[str, list[str]] = {}
        outputs_map: dict[str, list[str]] = {}
        for calc in calculuses:
            calc_id = calc.id()
            tags = calc.tags()
            for key in tags.inputs:
                inputs_map.setdefault(key, []).append(calc_id)
            for key in tags.outputs:
                outputs_map.setdefault(calc_id, []).append(key)
            nodes[calc_id] = calc
        self._nodes = nodes
        self._inputs_map = inputs_map
        self._outputs_map = outputs_map
        self._global_order, self._adj_list = self._build_topology()

    @property
    def global_order(self) -> tuple[str, ...]:
        """All calculation ids in topological order."""
        return tuple(self._global_order)

    def neighbors(self, calc_id: str) -> Optional[list[str]]:
        """Return the calculations directly depending on `calc_id`, or None."""
        found = self._adj_list.get(calc_id)
        return None if found is None else list(found)

    def plan(self, changes: Iterable[str]) -> list[Calculus]:
        """Return the calculations affected by the changed keys, in execution order."""
        affected: set[str] = set()
        queue = deque(changes)
        while queue:
            key = queue.popleft()
            for calc_id in self._inputs_map.get(key, ()):
                if calc_id in affected:
                    continue
                affected.add(calc_id)
                queue.extend(self._outputs_map.get(calc_id, ()))
        return [self._nodes[calc_id] for calc_id in self._global_order if calc_id in affected]

    def _build_topology(self) -> tuple[list[str], dict[str, list[str]]]:
        in_degree = dict.fromkeys(self._nodes, 0)
        adj_list: dict[str, list[str]] = {}
        for calc_id in self._nodes:
            for key in self._outputs_map.get(calc_id, ()):
                for downstream in self._inputs_map.get(key, ()):
                    adj_list.setdefault(calc_id, []).append(downstream)
                    in_degree[downstream] += 1
        queue = deque(calc_id for calc_id, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for neighbor in adj_list.get(node, ()):
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)
        if len(order) != len(self._nodes):
            raise CycleError(
                f"{self._name}.build_topology | Cycle detected in the calculation graph, "
                "check the links between calculations"
            )
        return order, adj_list

    def __repr__(self) -> str:
        return f"CalculationGraph(name={self._name!r}, order={self._global_order!r})"