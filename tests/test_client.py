from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import pytest

from pynai import NaiClient, NaiConfig
from pynai.blocks.kinds import AsyncBlockKind
from pynai.blocks.models import BlockMarkers
from pynai.blocks.processor import BlockProcessor
from pynai.exceptions import NaiError
from pynai.host import TextDocument


class _GatedKind(AsyncBlockKind):
    name = "gated"
    markers = BlockMarkers(
        request=">>> gated",
        progress=">>> gating",
        completed=">>> gated-done",
        error=">>> gated-error",
    )

    def __init__(self, processor: BlockProcessor) -> None:
        super().__init__(processor)
        self.gate = asyncio.Event()

    async def execute(self, target: str, options: dict[str, Any]) -> list[str]:
        await self.gate.wait()
        return [target.upper()]


def _gated_client() -> tuple[NaiClient, _GatedKind]:
    client = NaiClient(builtin=False)
    kind = _GatedKind(client.processor)
    client.register_kind(kind)
    return client, kind


def test_builtin_kinds_are_registered() -> None:
    client = NaiClient(NaiConfig(tree_command="tree"))

    assert [kind.name for kind in client.expander.kinds] == ["snapshot", "tree", "web"]
    assert NaiClient(builtin=False).expander.kinds == ()


def test_session_required_outside_context() -> None:
    client = NaiClient()
    with pytest.raises(NaiError):
        client._require_session()


@pytest.mark.asyncio
async def test_context_manager_owns_its_session() -> None:
    async with NaiClient() as client:
        session = client._require_session()
        assert not session.closed

    assert session.closed
    with pytest.raises(NaiError):
        client._require_session()


@pytest.mark.asyncio
async def test_external_session_is_left_open() -> None:
    async with aiohttp.ClientSession() as session:
        async with NaiClient(session=session) as client:
            assert client._require_session() is session
        assert not session.closed


@pytest.mark.asyncio
async def test_web_block_outside_context_writes_error() -> None:
    messages: list[str] = []
    client = NaiClient(notify=lambda message, _level: messages.append(message))
    document = TextDocument([">>> web", "https://example.com"])

    assert await client.expand_all(document) is True
    assert await client.wait_until_idle(timeout=1) is True

    lines = document.get_lines()
    assert lines[0] == ">>> web-error"
    assert lines[3].startswith("❌ Error: Client not initialized")
    assert any(message.startswith("Error in web:") for message in messages)


@pytest.mark.asyncio
async def test_activation_and_close_document() -> None:
    client, _kind = _gated_client()
    document = TextDocument([">>> gated", "a"])

    client.activate(document)
    assert client.is_active(document)

    await client.expand_all(document)
    assert client.state.is_processing()

    assert client.close_document(document) == 1
    assert not client.is_active(document)
    assert not client.state.is_processing()
    assert document.get_lines()[0] == ">>> gating"


@pytest.mark.asyncio
async def test_wait_until_idle() -> None:
    client, kind = _gated_client()
    assert await client.wait_until_idle(timeout=0.01) is True

    document = TextDocument([">>> gated", "a"])
    await client.expand_all(document)

    assert await client.wait_until_idle(timeout=0.02) is False

    kind.gate.set()
    assert await client.wait_until_idle(timeout=1) is True
    assert document.get_lines() == [">>> gated-done", "A"]


@pytest.mark.asyncio
async def test_exit_cancels_requests_in_flight() -> None:
    client, _kind = _gated_client()
    document = TextDocument([">>> gated", "a"])

    async with client:
        report = await client.expand_report(document)
        assert report.pending == ["gated"]

    assert document.get_lines() == [">>> gated-error", "Cancelled"]
    assert not client.state.is_processing()


@pytest.mark.asyncio
async def test_cancel_single_request() -> None:
    client, _kind = _gated_client()
    document = TextDocument([">>> gated", "a"])
    await client.expand_all(document)
    (request_id,) = client.state.get_active_requests()

    assert client.cancel(request_id) is True
    assert client.cancel(request_id) is False
    assert client.cancel_all() == 0
    assert document.get_lines() == [">>> gated-error", "Cancelled"]
