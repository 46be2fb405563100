"""Application configuration read from a YAML file."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from calcctx.project_tree import ProjectTreeConf


class ConfError(Exception):
    """Raised when the configuration cannot be read or is invalid."""


def _duration(value: Any) -> Optional[float]:
    if value is None:
        return None
    if not isinstance(value, dict) or "secs" not in value or "nanos" not in value:
        raise ValueError("duration must be a mapping with 'secs' and 'nanos'")
    secs, nanos = value["secs"], value["nanos"]
    for part in (secs, nanos):
        if isinstance(part, bool) or not isinstance(part, int) or part < 0:
            raise ValueError("duration parts must be non-negative integers")
    return secs + nanos / 1_000_000_000


def _project_tree(value: Any) -> ProjectTreeConf:
    if not isinstance(value, dict):
        raise ValueError("'project-tree' must be a mapping")
    return ProjectTreeConf(wait_started=_duration(value.get("wait-started")))


def _thread_pool(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("'thread-pool' must be a non-negative integer")
    return value


@dataclass(frozen=True)
class Conf:
    """Application configuration."""

    thread_pool: Optional[int]
    project_tree: ProjectTreeConf

    @classmethod
    def read(cls, path: Union[str, Path]) -> "Conf":
        """Read the configuration from the YAML file at `path`."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as rdr:
                text = rdr.read()
        except OSError as err:
            raise ConfError(f"Conf.new | Can't open file {path}: {err}") from err
        try:
            doc = yaml.safe_load(text)
            if not isinstance(doc, dict):
                raise ValueError("configuration must be a mapping")
            if "project-tree" not in doc:
                raise ValueError("missing field 'project-tree'")
            return cls(
                thread_pool=_thread_pool(doc.get("thread-pool")),
                project_tree=_project_tree(doc["project-tree"]),
            )
        except (yaml.YAMLError, ValueError) as err:
            raise ConfError(f"Conf.new | Error in config '{path}': {err}") from err