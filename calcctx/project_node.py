"""Nodes of the project tree and their statuses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class ProjectNodeStatus(IntEnum):
    """Status of a project tree node; a lower value has a higher priority.

    | Priority | Name              | Meaning                                              |
    | 1        | ERROR             | Blocking calculation or system error, overrides all. |
    | 2        | NO_CLASSIFICATION | Model imported but not classified, cannot calculate. |
    | 3        | NO_DATA           | Critical source data is missing.                     |
    | 4        | INCONSISTENCY     | Data is inconsistent.                                |
    | 5        | CALCULATING       | Calculation in progress.                             |
    | 6        | OUTDATED          | Data changed, recalculation needed (the default).    |
    | 7        | READY             | Everything is up to date.                            |
    """

    ERROR = 1
    NO_CLASSIFICATION = 2
    NO_DATA = 3
    INCONSISTENCY = 4
    CALCULATING = 5
    OUTDATED = 6
    READY = 7


@dataclass(frozen=True)
class ProjectNodeKind:
    """Kind of a node as stored in the database (ISO 10303)."""


@dataclass(frozen=True)
class ProjectNode:
    """A node of the project tree.

    - `project_id` - the project the node belongs to
    - `id` - identifier unique within the project
    - `parent_id` - link to the parent node
    - `order` - sort order within the parent
    - `kind` - node kind
    - `geometry_id` - link to the element of the 3D model
    - `status` - current status, `OUTDATED` by default
    - `version` - optimistic concurrency version, starts at 0
    """

    project_id: int
    id: int
    parent_id: int
    order: int
    kind: ProjectNodeKind
    geometry_id: int
    status: ProjectNodeStatus = ProjectNodeStatus.OUTDATED
    version: int = field(default=0)