"""``>>> web`` blocks: fetch a page and paste its readable text.

::

    >>> web
    -- timeout: 10
    https://example.com/article
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp
from bs4 import BeautifulSoup
from pydantic import BaseModel

from pynai.blocks.formatting import format_completed_header, format_error_block
from pynai.blocks.kinds import AsyncBlockKind
from pynai.blocks.models import BlockMarkers
from pynai.blocks.processor import BlockProcessor
from pynai.exceptions import BlockOperationError

_logger = logging.getLogger(__name__)

USER_AGENT = "pynai/1.0"

_NOISE_TAGS = ("script", "style", "noscript", "svg", "nav", "footer", "aside")
_BLANK_RUNS = re.compile(r"\n{3,}")


class WebPage(BaseModel):
    url: str
    status: int
    title: str = ""
    text: str = ""
    truncated: bool = False


def html_to_text(html: str) -> tuple[str, str]:
    """``(title, text)`` of an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(list(_NOISE_TAGS)):
        tag.decompose()
    title = soup.title.get_text(strip=True) if soup.title else ""
    lines = (line.strip() for line in soup.get_text(separator="\n").splitlines())
    text = "\n".join(lines)
    return title, _BLANK_RUNS.sub("\n\n", text).strip()


class WebKind(AsyncBlockKind):
    name = "web"
    markers = BlockMarkers(
        request=">>> web",
        progress=">>> web-fetching",
        completed=">>> web-fetched",
        error=">>> web-error",
    )
    missing_target_message = "No URL provided"

    def __init__(
        self,
        processor: BlockProcessor,
        session: Callable[[], aiohttp.ClientSession],
        *,
        timeout: float = 30.0,
        max_content_length: int = 100_000,
    ) -> None:
        super().__init__(processor)
        self._session = session
        self._timeout = timeout
        self._max_content_length = max_content_length

    def validate_target(self, target: str) -> bool:
        return target.startswith(("http://", "https://"))

    def spinner_message(self, target: str | None, options: Mapping[str, Any]) -> str:
        return f"Fetching {target}"

    def format_error(self, target: str | None, message: str) -> list[str]:
        return format_error_block(self.markers.error, target, message)

    def format_result(self, result: Any, target: str | None, options: Mapping[str, Any]) -> list[str]:
        page = result if isinstance(result, WebPage) else WebPage.model_validate(result)
        lines = format_completed_header(self.markers.completed, page.url, options)
        heading = f"==> Web: {page.url} - {page.title} <==" if page.title else f"==> Web: {page.url} <=="
        lines.extend([heading, ""])
        lines.extend(page.text.split("\n"))
        if page.truncated:
            lines.extend(["", f"[Content truncated to {self._max_content_length} characters]"])
        lines.append("")
        return lines

    async def execute(self, target: str, options: dict[str, Any]) -> WebPage:
        timeout = aiohttp.ClientTimeout(total=float(options.get("timeout", self._timeout)))
        headers = {"user-agent": USER_AGENT, "accept": "text/html,text/plain;q=0.9,*/*;q=0.5"}

        _logger.debug("GET %s", target)
        try:
            async with self._session().get(target, headers=headers, timeout=timeout) as resp:
                body = await resp.text(errors="replace")
                if resp.status != 200:
                    raise BlockOperationError(f"HTTP {resp.status} from {target}: {body[:200]}", target=target)
                content_type = resp.headers.get("content-type", "")
        except BlockOperationError:
            raise
        except asyncio.TimeoutError as exc:
            raise BlockOperationError(f"Timed out fetching {target}", target=target) from exc
        except aiohttp.ClientError as exc:
            raise BlockOperationError(f"Request to {target} failed: {exc}", target=target) from exc

        if "html" in content_type or body.lstrip().startswith("<"):
            title, text = html_to_text(body)
        else:
            title, text = "", body.strip()

        truncated = len(text) > self._max_content_length
        if truncated:
            text = text[: self._max_content_length]
        return WebPage(url=target, status=resp.status, title=title, text=text, truncated=truncated)
