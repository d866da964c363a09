from __future__ import annotations

import asyncio

import pytest

from pynai.exceptions import DocumentClosedError, DocumentError
from pynai.host import AsyncioScheduler, TextDocument


def test_text_document_set_lines_replaces_half_open_range() -> None:
    document = TextDocument(["a", "b", "c"])
    version = document.version

    document.set_lines(1, 2, ["x", "y"])

    assert document.get_lines() == ["a", "x", "y", "c"]
    assert document.get_lines(1, 3) == ["x", "y"]
    assert document.version == version + 1


def test_text_document_from_text_round_trips() -> None:
    document = TextDocument.from_text("one\ntwo", document_id="scratch")

    assert document.id == "scratch"
    assert document.line_count() == 2
    assert document.text == "one\ntwo"


def test_text_document_rejects_bad_writes() -> None:
    document = TextDocument(["a"])

    with pytest.raises(DocumentError):
        document.set_lines(0, 5, [])
    with pytest.raises(DocumentError):
        document.set_lines(0, 1, "abc")  # type: ignore[arg-type]

    document.close()
    assert not document.is_valid()
    with pytest.raises(DocumentClosedError):
        document.get_lines()
    with pytest.raises(DocumentClosedError):
        document.set_lines(0, 1, ["b"])


def test_text_documents_get_distinct_ids() -> None:
    assert TextDocument().id != TextDocument().id


@pytest.mark.asyncio
async def test_repeating_timer_fires_until_cancelled() -> None:
    scheduler = AsyncioScheduler()
    ticks: list[int] = []

    timer = scheduler.call_every(0.01, lambda: ticks.append(len(ticks)))
    await asyncio.sleep(0)
    assert ticks == [0]

    await asyncio.sleep(0.05)
    timer.cancel()
    fired = len(ticks)
    await asyncio.sleep(0.03)

    assert timer.cancelled()
    assert fired >= 2
    assert len(ticks) == fired


@pytest.mark.asyncio
async def test_scheduler_spawn_and_tick() -> None:
    scheduler = AsyncioScheduler()
    order: list[str] = []

    async def _work() -> str:
        order.append("task")
        return "done"

    task = scheduler.spawn(_work())
    scheduler.call_soon(lambda: order.append("soon"))
    await scheduler.tick()

    assert order == ["task", "soon"]
    assert await task == "done"
