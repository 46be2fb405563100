"""Transactional snapshot of calculation results for the database and UI."""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Optional

from calcctx.link import ChannelClosed, LinkError

log = logging.getLogger(__name__)


class Properties:
    """Converts a context member into key-value properties.

    Subclasses set `iec_id`; the default `properties` yields one pair of
    that id and the member serialised as compact JSON.
    """

    iec_id: ClassVar[str]

    def properties(self) -> list[tuple[str, str]]:
        data = dataclasses.asdict(self) if dataclasses.is_dataclass(self) else vars(self)
        return [(self.iec_id, json.dumps(data, separators=(",", ":"), ensure_ascii=False))]


@dataclass(frozen=True)
class Event:
    """Event sent to the client."""

    items: tuple[tuple[str, str], ...] = ()
    error: Optional[str] = None

    def reply_ok(self) -> "Event":
        return Event()

    def reply_err(self, err: Any) -> "Event":
        return Event(error=str(err))

    @classmethod
    def from_items(cls, items: Iterable[tuple[str, str]]) -> "Event":
        return cls(items=tuple(tuple(item) for item in items))


@dataclass(frozen=True)
class Sql:
    """A database request."""

    text: str
    params: tuple[Any, ...] = ()


class ApiClient:
    """Database access client; keeps every request it was given."""

    def __init__(self) -> None:
        self.requests: list[Sql] = []

    def request(self, sql: Sql) -> None:
        self.requests.append(sql)


class Upsert:
    """Builder of an insert-or-update request."""

    def __init__(self) -> None:
        self.items: list[tuple[str, str]] = []

    def insert(self, item: tuple[str, str]) -> None:
        self.items.append(item)

    def build(self) -> Sql:
        return Sql("", tuple(self.items))


class Snapshot:
    """Accumulates calculation results for an atomic database insert and UI sync."""

    def __init__(self, link: Any, api_client: ApiClient) -> None:
        self._link = link
        self._api_client = api_client
        self.items: list[tuple[str, str]] = []
        self._finished = False

    def _ensure_open(self, op: str) -> None:
        if self._finished:
            raise RuntimeError(f"Snapshot.{op} | snapshot already finished")

    def fetch(self, keys: list[str]) -> None:
        """Read the given properties from the database, all of them if `keys` is empty."""
        if not keys:
            self._api_client.request(Sql("select all"))
        else:
            self._api_client.request(Sql(f"select where key in {json.dumps(list(keys))}"))

    def add(self, items: Properties) -> None:
        """Add a context member to the transaction."""
        self._ensure_open("add")
        self.items.extend(items.properties())

    def send(self) -> None:
        """Send the current items to the UI; failures are logged."""
        try:
            self._link.send(Event.from_items(self.items))
        except (ChannelClosed, LinkError) as err:
            log.error("Snapshot.send | Error: %s", err)

    def commit(self) -> None:
        """Apply all items to the database; a snapshot commits only once."""
        self._ensure_open("commit")
        self._finished = True
        upsert = Upsert()
        for item in self.items:
            upsert.insert(item)
        self._api_client.request(upsert.build())

    def rollback(self) -> None:
        """Discard all accumulated items."""
        self._ensure_open("rollback")
        self._finished = True
        self.items.clear()