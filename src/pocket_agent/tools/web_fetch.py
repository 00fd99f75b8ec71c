"""
Web fetch tool for reading web pages.
"""

from typing import Any

import httpx
import structlog
from bs4 import BeautifulSoup

from ..errors import ToolError
from .base import BaseTool

logger = structlog.get_logger()

MAX_CONTENT_CHARS = 10_000


class WebFetchTool(BaseTool):
    """Tool for fetching a URL and extracting its readable text."""

    def __init__(self, timeout: float = 30.0, max_chars: int = MAX_CONTENT_CHARS):
        self.timeout = timeout
        self.max_chars = max_chars

    @property
    def name(self) -> str:
        return "web_fetch"

    @property
    def description(self) -> str:
        return (
            "Fetch a web page and return its main text content. Use this to read "
            "articles, documentation, or any page the user points you to."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The http(s) URL to fetch",
                },
            },
            "required": ["url"],
        }

    async def execute(self, url: str) -> str:
        if not url.startswith(("http://", "https://")):
            raise ToolError(f"Only http(s) URLs are supported: {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": "Mozilla/5.0 (compatible; pocket-agent)"},
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Web fetch failed", url=url, error=str(e))
            raise ToolError(f"Failed to fetch {url}: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "html" not in content_type:
            return response.text[: self.max_chars]

        return self._extract_text(response.text, url)

    def _extract_text(self, html: str, url: str) -> str:
        soup = BeautifulSoup(html, "html.parser")

        for element in soup(["script", "style", "nav", "footer", "header", "aside"]):
            element.decompose()

        title = soup.title.string.strip() if soup.title and soup.title.string else "No title"

        main_content = soup.find("main") or soup.find("article") or soup.find("body") or soup
        text = main_content.get_text(separator="\n", strip=True)
        text = "\n".join(line.strip() for line in text.split("\n") if line.strip())

        if len(text) > self.max_chars:
            text = text[: self.max_chars] + "\n... [truncated]"

        return f"Title: {title}\nURL: {url}\n\n{text}"
