from __future__ import annotations

import asyncio
import subprocess
from pathlib import Path
from typing import Any

import aiohttp
import pytest

import pynai.kinds.tree as tree_module
from pynai.blocks.processor import BlockProcessor
from pynai.config import NaiConfig
from pynai.exceptions import BlockOperationError
from pynai.host import AsyncioScheduler, TextDocument
from pynai.kinds import SnapshotKind, TreeKind, WebKind, WebPage, builtin_kinds
from pynai.kinds.snapshot import expand_pattern, fence_language, split_snapshot_lines
from pynai.kinds.tree import split_tree_lines
from pynai.kinds.web import html_to_text
from pynai.state.facade import State


class _FakeResponse:
    def __init__(self, status: int, body: str, content_type: str) -> None:
        self.status = status
        self._body = body
        self.headers = {"content-type": content_type}

    async def text(self, errors: str = "strict") -> str:
        return self._body


class _FakeRequest:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> _FakeResponse:
        if isinstance(self._outcome, BaseException):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, *exc: Any) -> bool:
        return False


class _FakeSession:
    """Stands in for ``aiohttp.ClientSession``; only ``get`` is used."""

    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> _FakeRequest:
        self.requests.append((url, kwargs))
        return _FakeRequest(self.outcome)


def _processor() -> tuple[State, BlockProcessor]:
    state = State()
    return state, BlockProcessor(state, AsyncioScheduler())


def _fake_tree(monkeypatch: pytest.MonkeyPatch, *, available: bool = True) -> list[list[str]]:
    calls: list[list[str]] = []

    def _run(args: list[str], **_kwargs: Any) -> subprocess.CompletedProcess[str]:
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout=f"{args[1]}\n└── a.py\n\n1 directory, 1 file\n", stderr="")

    monkeypatch.setattr(tree_module.shutil, "which", lambda command: f"/usr/bin/{command}" if available else None)
    monkeypatch.setattr(tree_module.subprocess, "run", _run)
    return calls


# ----------------------------------------------------------------------
# tree
# ----------------------------------------------------------------------


def test_split_tree_lines_separates_flags() -> None:
    lines = [">>> tree", "  ~/src  ", "-- -L 2", "", "--dirsfirst", "/opt"]
    assert split_tree_lines(lines) == (["~/src", "/opt"], "-L 2 --dirsfirst")


def test_tree_lists_each_directory(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls = _fake_tree(monkeypatch)
    _state, processor = _processor()
    kind = TreeKind(processor)
    missing = tmp_path / "missing"
    lines = [">>> tree", str(tmp_path), "-- -L 2", str(missing)]

    body = kind.execute(lines, kind.parse_options(lines))

    assert calls == [["tree", str(tmp_path), "-L", "2"]]
    assert body == [
        str(tmp_path),
        str(missing),
        "-- -L 2",
        "",
        f"==> {tmp_path} <==",
        str(tmp_path),
        "└── a.py",
        "1 directory, 1 file",
        "",
        f"❌ Directory not found: {missing}",
        "",
    ]


def test_tree_passes_bare_long_flags_through(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls = _fake_tree(monkeypatch)
    _state, processor = _processor()
    kind = TreeKind(processor)
    lines = [">>> tree", str(tmp_path), "--dirsfirst", "-- -a"]

    body = kind.execute(lines, kind.parse_options(lines))

    assert calls == [["tree", str(tmp_path), "--dirsfirst", "-a"]]
    assert body[1] == "-- --dirsfirst -a"
    assert split_tree_lines([">>> tree", *body[:2]]) == ([str(tmp_path)], "--dirsfirst -a")


def test_tree_reports_failed_command(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(tree_module.shutil, "which", lambda command: "/usr/bin/tree")
    monkeypatch.setattr(
        tree_module.subprocess,
        "run",
        lambda args, **_kwargs: subprocess.CompletedProcess(args, 2, stdout="", stderr="bad flag"),
    )
    _state, processor = _processor()
    kind = TreeKind(processor)

    body = kind.execute([">>> tree", str(tmp_path)], {"flags": ""})

    assert body[3:5] == ["❌ Error generating tree (exit code 2)", "bad flag"]


@pytest.mark.asyncio
async def test_tree_block_expands_in_document(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _fake_tree(monkeypatch)
    state, processor = _processor()
    kind = TreeKind(processor)
    document = TextDocument(["intro", ">>> tree", str(tmp_path), "", "<<< assistant"])

    size = await kind.expand(document, 1, 4)

    lines = document.get_lines()
    assert lines[1].startswith(">>> tree [")
    assert size == len(lines) - 2
    assert lines[-1] == "<<< assistant"
    assert not kind.has_unexpanded(document)
    assert not state.is_processing()


@pytest.mark.asyncio
async def test_tree_block_without_command_writes_error(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _fake_tree(monkeypatch, available=False)
    _state, processor = _processor()
    kind = TreeKind(processor)
    document = TextDocument([">>> tree", str(tmp_path)])

    await kind.expand(document, 0, 2)

    assert document.get_lines() == [
        ">>> tree-error",
        str(tmp_path),
        "",
        "❌ Error: 'tree' command not found. Please install the tree utility.",
        "",
    ]


@pytest.mark.asyncio
async def test_tree_block_without_directories() -> None:
    _state, processor = _processor()
    kind = TreeKind(processor)
    document = TextDocument([">>> tree", "-- -L 1"])

    await kind.expand(document, 0, 2)

    assert document.get_lines()[3] == "❌ Error: No directory paths provided"


# ----------------------------------------------------------------------
# snapshot
# ----------------------------------------------------------------------


def test_fence_language_and_split() -> None:
    assert fence_language(Path("a/b.PY")) == "python"
    assert fence_language(Path("Makefile")) == ""
    assert split_snapshot_lines([">>> snapshot", "a.py", "-- depth: 1", "", "notes", "more"]) == (
        ["a.py"],
        ["notes", "more"],
    )


def test_expand_pattern_globs_recursively(tmp_path: Path) -> None:
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "inner.py").write_text("x")
    (tmp_path / "top.py").write_text("y")

    assert expand_pattern(str(tmp_path / "**" / "*.py")) == [tmp_path / "pkg" / "inner.py", tmp_path / "top.py"]
    assert expand_pattern(str(tmp_path / "literal.txt")) == [tmp_path / "literal.txt"]


def test_snapshot_renders_files_and_keeps_notes(tmp_path: Path) -> None:
    script = tmp_path / "a.py"
    script.write_text("print(1)")
    (tmp_path / "b.toml").write_text("x = 1")
    toml_pattern = str(tmp_path / "*.toml")
    md_pattern = str(tmp_path / "*.md")
    _state, processor = _processor()
    kind = SnapshotKind(processor)

    body = kind.execute([">>> snapshot", str(script), toml_pattern, md_pattern, "", "notes"], {})

    assert body == [
        str(script),
        toml_pattern,
        md_pattern,
        "",
        f"==> {script} <==",
        "```python",
        "print(1)",
        "```",
        "",
        f"==> {tmp_path / 'b.toml'} <==",
        "```toml",
        "x = 1",
        "```",
        "",
        f"❌ No files match: {md_pattern}",
        "",
        "notes",
    ]


def test_snapshot_reports_unreadable_file(tmp_path: Path) -> None:
    missing = tmp_path / "gone.py"
    _state, processor = _processor()
    kind = SnapshotKind(processor)

    body = kind.execute([">>> snapshot", str(missing)], {})

    assert body[2] == f"==> {missing} <=="
    assert body[3].startswith("❌ Cannot read file:")


@pytest.mark.asyncio
async def test_snapshot_block_expands_in_document(tmp_path: Path) -> None:
    script = tmp_path / "a.py"
    script.write_text("print(1)")
    _state, processor = _processor()
    kind = SnapshotKind(processor)
    document = TextDocument([">>> snapshot", str(script)])

    await kind.expand(document, 0, 2)

    lines = document.get_lines()
    assert lines[0].startswith(">>> snapshotted [")
    assert lines[1:] == [str(script), "", f"==> {script} <==", "```python", "print(1)", "```", ""]


# ----------------------------------------------------------------------
# web
# ----------------------------------------------------------------------


def test_html_to_text_drops_noise() -> None:
    html = (
        "<html><head><title> Hi </title><script>track()</script></head>"
        "<body><nav>menu</nav><p>Hello</p>\n\n\n\n<p>World</p></body></html>"
    )

    title, text = html_to_text(html)

    assert title == "Hi"
    assert "Hello" in text and "World" in text
    assert "track()" not in text
    assert "menu" not in text
    assert "\n\n\n" not in text


def test_web_format_result_layout() -> None:
    _state, processor = _processor()
    kind = WebKind(processor, lambda: _FakeSession(None), max_content_length=10)  # type: ignore[arg-type, return-value]
    page = WebPage(url="https://x", status=200, title="Hi", text="a\nb", truncated=True)

    lines = kind.format_result(page, "https://x", {"timeout": 5, "raw": True})

    assert lines[0].startswith(">>> web-fetched [")
    assert lines[1:] == [
        "https://x",
        "-- timeout: 5",
        "-- raw: true",
        "",
        "==> Web: https://x - Hi <==",
        "",
        "a",
        "b",
        "",
        "[Content truncated to 10 characters]",
        "",
    ]


def test_web_validate_target() -> None:
    _state, processor = _processor()
    kind = WebKind(processor, lambda: _FakeSession(None))  # type: ignore[arg-type, return-value]

    assert kind.validate_target("https://example.com")
    assert kind.validate_target("http://example.com")
    assert not kind.validate_target("ftp://example.com")


@pytest.mark.asyncio
async def test_web_execute_parses_html_and_honours_timeout_option() -> None:
    session = _FakeSession(_FakeResponse(200, "<html><title>T</title><body><p>Body</p></body></html>", "text/html"))
    _state, processor = _processor()
    kind = WebKind(processor, lambda: session)  # type: ignore[arg-type, return-value]

    page = await kind.execute("https://x", {"timeout": 5})

    assert page.title == "T"
    assert "Body" in page.text
    assert not page.truncated
    url, kwargs = session.requests[0]
    assert url == "https://x"
    assert kwargs["timeout"].total == 5.0
    assert kwargs["headers"]["user-agent"].startswith("pynai/")


@pytest.mark.asyncio
async def test_web_execute_truncates_plain_text() -> None:
    session = _FakeSession(_FakeResponse(200, "abcdefghij", "text/plain"))
    _state, processor = _processor()
    kind = WebKind(processor, lambda: session, max_content_length=5)  # type: ignore[arg-type, return-value]

    page = await kind.execute("https://x", {})

    assert page.text == "abcde"
    assert page.truncated


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("outcome", "message"),
    [
        (_FakeResponse(404, "nope", "text/html"), "HTTP 404 from https://x: nope"),
        (asyncio.TimeoutError(), "Timed out fetching https://x"),
        (aiohttp.ClientConnectionError("refused"), "Request to https://x failed: refused"),
    ],
)
async def test_web_execute_maps_errors(outcome: Any, message: str) -> None:
    _state, processor = _processor()
    kind = WebKind(processor, lambda: _FakeSession(outcome))  # type: ignore[arg-type, return-value]

    with pytest.raises(BlockOperationError) as excinfo:
        await kind.execute("https://x", {})

    assert str(excinfo.value) == message


@pytest.mark.asyncio
async def test_web_block_settles_in_document() -> None:
    session = _FakeSession(_FakeResponse(200, "plain body", "text/plain"))
    state, processor = _processor()
    kind = WebKind(processor, lambda: session)  # type: ignore[arg-type, return-value]
    document = TextDocument([">>> web", "https://x"])

    assert await kind.expand(document, 0, 2) == 3
    assert kind.has_active_requests()
    for _ in range(20):
        if not state.is_processing():
            break
        await asyncio.sleep(0)

    lines = document.get_lines()
    assert lines[0].startswith(">>> web-fetched [")
    assert lines[1:] == ["https://x", "", "==> Web: https://x <==", "", "plain body", ""]
    assert not kind.has_active_requests()


@pytest.mark.asyncio
async def test_web_block_rejects_non_http_target() -> None:
    _state, processor = _processor()
    kind = WebKind(processor, lambda: _FakeSession(None))  # type: ignore[arg-type, return-value]
    document = TextDocument([">>> web", "ftp://x"])

    await kind.expand(document, 0, 2)

    assert document.get_lines() == [">>> web-error", "ftp://x", "", "❌ Error: Invalid target: ftp://x", ""]


def test_builtin_kinds_follow_config() -> None:
    _state, processor = _processor()
    kinds = builtin_kinds(processor, NaiConfig(tree_command="eza"), lambda: _FakeSession(None))  # type: ignore[arg-type, return-value]

    assert [kind.name for kind in kinds] == ["snapshot", "tree", "web"]
