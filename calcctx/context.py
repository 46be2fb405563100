"""Calculation context with optimistic, versioned transactions."""

from __future__ import annotations

import copy
import dataclasses
import logging
import sys
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from calcctx.link import Channel
from calcctx.snapshot import ApiClient, Properties, Snapshot

log = logging.getLogger(__name__)

_READABLE = frozenset({"initial", "apparent_frequencies", "unit_area"})
_WRITABLE = frozenset({"apparent_frequencies", "unit_area"})


class ConflictError(Exception):
    """Raised when a commit finds the context changed since the transaction began.

    The rejected transaction is kept in `transaction`, so it can be
    retried with `force_commit` or dropped with `rollback`.
    """

    def __init__(self, message: str, transaction: "ContextTransaction") -> None:
        super().__init__(message)
        self.transaction = transaction


class ContextAccessError(KeyError):
    """Raised when a context member is not open for the requested access."""


@dataclass
class InitialCtx(Properties):
    """Initial data for all calculations."""

    iec_id = "Ship.Initial"

    ship_id: str = ""
    project_id: str = ""
    #: Division into theoretical frame spacings
    bounds: Optional[Any] = None
    #: Textual data of the ship
    ship: Optional[Any] = None
    #: Type of the ship
    ship_type: Optional[Any] = None
    #: Numerical data of the ship
    ship_parameters: Optional[dict[str, float]] = None
    #: Variable load: unit cargo
    unit: Optional[list[Any]] = None


@dataclass
class RawContext:
    """Raw data of the context together with its version."""

    initial: InitialCtx = field(default_factory=InitialCtx)
    version: int = 0
    apparent_frequencies: Optional[Any] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    unit_area: Optional[Any] = None


class _Origin:
    """Shared, lock-protected reference to the current `RawContext`."""

    def __init__(self, raw: RawContext) -> None:
        self.lock = threading.Lock()
        self.raw = raw


class ContextTransaction:
    """Accumulates changes to be applied to a `Context` by `commit` or dropped by `rollback`."""

    def __init__(self, origin: _Origin, state: RawContext, snapshot: Snapshot) -> None:
        self._origin = origin
        self.state = state
        self.snapshot = snapshot
        self._finished = False

    def _ensure_open(self, op: str) -> None:
        if self._finished:
            raise RuntimeError(f"ContextTransaction.{op} | transaction already finished")

    def read(self, field: str) -> Any:
        """Return a copy of a readable context member."""
        if field not in _READABLE:
            raise ContextAccessError(f"ContextTransaction.read | '{field}' is not readable")
        return copy.deepcopy(getattr(self.state, field))

    def write(self, field: str, value: Any) -> "ContextTransaction":
        """Stage a new value of a writable context member; returns the transaction."""
        self._ensure_open("write")
        if field not in _WRITABLE:
            raise ContextAccessError(f"ContextTransaction.write | '{field}' is not writable")
        setattr(self.state, field, value)
        return self

    def commit(self) -> None:
        """Apply all changes, only if the context was not changed meanwhile."""
        self._ensure_open("commit")
        with self._origin.lock:
            origin_version = self._origin.raw.version
            if origin_version == self.state.version:
                self.state.version += 1
                self._origin.raw = self.state
                self._finished = True
                return
        raise ConflictError(
            "ContextTransaction.commit | Context already was changed, "
            f"origin ver {origin_version}, but staged was {self.state.version}",
            self,
        )

    def force_commit(self) -> None:
        """Apply all changes even if the context was changed meanwhile."""
        self._ensure_open("force_commit")
        with self._origin.lock:
            self.state.version = self._origin.raw.version + 1
            self._origin.raw = self.state
        self._finished = True

    def rollback(self) -> None:
        """Drop all changes."""
        self._ensure_open("rollback")
        self._finished = True

    def __repr__(self) -> str:
        return f"ContextTransaction(origin={self._origin.raw!r}, state={self.state!r})"


def _deep_size(obj: Any, seen: set[int]) -> int:
    if id(obj) in seen:
        return 0
    seen.add(id(obj))
    size = sys.getsizeof(obj)
    if isinstance(obj, (str, bytes, bytearray, int, float, bool)) or obj is None:
        return size
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return size + sum(
            _deep_size(getattr(obj, f.name), seen) for f in dataclasses.fields(obj)
        )
    if isinstance(obj, dict):
        return size + sum(_deep_size(k, seen) + _deep_size(v, seen) for k, v in obj.items())
    if isinstance(obj, (list, tuple, set, frozenset)):
        return size + sum(_deep_size(item, seen) for item in obj)
    if hasattr(obj, "__dict__"):
        return size + _deep_size(vars(obj), seen)
    return size


class Context:
    """Thread-safe calculation context.

    Data is reached only through transactions, which commit optimistically
    against the context version.
    """

    def __init__(self, initial: Optional[InitialCtx] = None) -> None:
        self._origin = _Origin(RawContext(initial=initial if initial is not None else InitialCtx()))

    def version(self) -> int:
        """Return the current version of the context."""
        with self._origin.lock:
            return self._origin.raw.version

    def transaction(self, link: Any, api_client: ApiClient) -> ContextTransaction:
        """Start a transaction working on a copy of the current state."""
        with self._origin.lock:
            current = self._origin.raw
        return ContextTransaction(
            self._origin, copy.deepcopy(current), Snapshot(link, api_client)
        )

    def get_size(self) -> int:
        """Return the approximate size of the context data in bytes."""
        with self._origin.lock:
            current = self._origin.raw
        return _deep_size(current, set())

    def __repr__(self) -> str:
        with self._origin.lock:
            current = self._origin.raw
        return f"Context(raw={current!r})"


class Initial:
    """Entry step of a calculation pipeline: opens a transaction on the context."""

    def __init__(self, parent: str, ctx: Context) -> None:
        self._name = f"{parent}/Initial"
        self._ctx = ctx

    def eval(self) -> ContextTransaction:
        return self._ctx.transaction(Channel(), ApiClient())

    def __repr__(self) -> str:
        return f"Initial(name={self._name!r})"