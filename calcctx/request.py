"""Declarative requests performed over a link."""

from __future__ import annotations

import threading
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

In = TypeVar("In")
Out = TypeVar("Out")
L = TypeVar("L")


class Request(Generic[In, Out]):
    """Runs `op(val, link)` with an owned link; `op` returns `(result, link)`.

    The link is handed to `op` for the duration of a single fetch, so
    a fetch started while another is running raises RuntimeError.
    """

    def __init__(self, link: Any, op: Callable[[In, Any], tuple[Out, Any]]) -> None:
        self._link: Optional[Any] = link
        self._op = op
        self._lock = threading.Lock()

    def _take(self) -> Any:
        with self._lock:
            link, self._link = self._link, None
        if link is None:
            raise RuntimeError("Request.fetch | link is already in use")
        return link

    def _put(self, link: Any) -> None:
        with self._lock:
            self._link = link

    def fetch(self, val: In) -> Out:
        """Perform the request defined by `op`."""
        link = self._take()
        try:
            result, link = self._op(val, link)
        finally:
            self._put(link)
        return result


class AsyncRequest(Generic[In, Out]):
    """Async counterpart of `Request`: `op(val, link)` is awaited."""

    def __init__(
        self, link: Any, op: Callable[[In, Any], Awaitable[tuple[Out, Any]]]
    ) -> None:
        self._links: list[Any] = [link]
        self._op = op

    async def fetch(self, val: In) -> Out:
        """Perform the request defined by `op`."""
        if not self._links:
            raise RuntimeError("AsyncRequest.fetch | link is already in use")
        link = self._links.pop()
        try:
            result, link = await self._op(val, link)
        finally:
            self._links.append(link)
        return result