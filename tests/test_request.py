import asyncio

import pytest

from calcctx.link import Link
from calcctx.request import AsyncRequest, Request


class _Marker:
    def __init__(self, label):
        self.label = label


def test_fetch_returns_op_result():
    link = _Marker("link")
    req = Request(link, lambda val, current: ((val, current.label), current))
    assert req.fetch(3) == (3, "link")


def test_fetch_uses_returned_link_next_time():
    original = _Marker("original")
    replacement = _Marker("replacement")
    seen = []

    def op(val, current):
        seen.append(current)
        return val, replacement

    req = Request(original, op)
    assert req.fetch(1) == 1
    assert req.fetch(2) == 2
    assert seen == [original, replacement, ]


def test_reentrant_fetch_raises():
    holder = {}

    def op(val, current):
        holder["req"].fetch(val)
        return val, current

    req = Request(_Marker("link"), op)
    holder["req"] = req
    with pytest.raises(RuntimeError):
        req.fetch(1)


def test_link_restored_after_op_failure():
    original = _Marker("original")
    calls = []

    def op(val, current):
        calls.append(current)
        if val < 0:
            raise ValueError("negative")
        return val, current

    req = Request(original, op)
    with pytest.raises(ValueError):
        req.fetch(-1)
    assert req.fetch(5) == 5
    assert calls == [original, original]


def test_fetch_over_real_link():
    local, remote = Link.split("req")
    thread = remote.listen(lambda query: ("reply", query))
    try:
        req = Request(local, lambda val, link: (link.call(val), link))
        assert req.fetch(5) == ("reply", 5)
        assert req.fetch("q") == ("reply", "q")
    finally:
        remote.exit()
        thread.join(1.0)


@pytest.mark.asyncio
async def test_async_fetch_returns_result_and_swaps_link():
    original = _Marker("original")
    replacement = _Marker("replacement")
    seen = []

    async def op(val, current):
        await asyncio.sleep(0)
        seen.append(current)
        return val, replacement

    req = AsyncRequest(original, op)
    assert await req.fetch("a") == "a"
    assert await req.fetch("b") == "b"
    assert seen == [original, replacement]


@pytest.mark.asyncio
async def test_async_concurrent_fetch_raises():
    async def op(val, current):
        await asyncio.sleep(0.01)
        return val, current

    req = AsyncRequest(_Marker("link"), op)
    results = await asyncio.gather(req.fetch(1), req.fetch(2), return_exceptions=True)
    assert results[0] == 1
    assert isinstance(results[1], RuntimeError)
    assert await req.fetch(3) == 3


@pytest.mark.asyncio
async def test_async_link_restored_after_failure():
    original = _Marker("original")

    async def op(val, current):
        if val is None:
            raise KeyError("missing")
        return (val, current), current

    req = AsyncRequest(original, op)
    with pytest.raises(KeyError):
        await req.fetch(None)
    assert await req.fetch(4) == (4, original)