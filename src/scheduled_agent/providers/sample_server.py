"""Small MCP tool provider used for local runs and tests."""

from __future__ import annotations

import logging

import httpx
from bs4 import BeautifulSoup
from fastmcp import FastMCP

logger = logging.getLogger(__name__)

NOISE_TAGS = ("script", "style", "noscript", "nav", "header", "footer", "aside", "iframe", "svg")
MAX_PAGE_CHARS = 20_000

mcp = FastMCP("scrape-fast")


@mcp.tool(name="add-f")
def add(a: float, b: float) -> dict:
    """Add two numbers and return their sum."""
    return {"output": a + b}


@mcp.tool(name="scrape-f")
async def scrape(url: str) -> str:
    """Fetch a web page and return its readable text.

    Scripts, styles and navigation chrome are stripped. Failures are
    reported as text so the model can read them.
    """
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=20.0) as client:
            response = await client.get(url, headers={"User-Agent": "scrape-fast/1.0"})
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("scrape-f failed for %s: %s", url, exc)
        return f"Error fetching {url}: {exc}"
    return extract_text(response.text)


def extract_text(html: str, limit: int = MAX_PAGE_CHARS) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    lines = (line.strip() for line in soup.get_text("\n").splitlines())
    text = "\n".join(line for line in lines if line)
    return text[:limit]


def run(host: str = "127.0.0.1", port: int = 3005, path: str = "/mcp") -> None:
    mcp.run(transport="http", host=host, port=port, path=path)
