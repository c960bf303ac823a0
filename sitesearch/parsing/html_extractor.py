from __future__ import annotations

import re
from typing import List

from bs4 import BeautifulSoup, Comment

from sitesearch.errors import ParseError
from sitesearch.utils.url_utils import resolve_url

NON_CONTENT_TAGS = ["script", "style", "noscript", "iframe", "svg", "canvas"]

# Characters outside the Basic Multilingual Plane (emoji and the like)
_NON_BMP = re.compile("[\U00010000-\U0010FFFF]")
_WHITESPACE = re.compile(r"\s+")


def is_html(content_type: str | None) -> bool:
    return bool(content_type) and "text/html" in content_type.lower()


def strip_non_bmp(text: str) -> str:
    return _NON_BMP.sub("", text or "")


def extract_title(html: str) -> str:
    """Title between the first ``<title>`` and ``</title>``, else "Untitled"."""
    if not html:
        return "Untitled"

    start = html.find("<title>")
    end = html.find("</title>")
    if start != -1 and end != -1 and start < end:
        return html[start + len("<title>"):end].strip()
    return "Untitled"


def extract_text(html: str) -> str:
    """
    Plain text of a page for indexing and snippets.
    """
    soup = BeautifulSoup(html or "", "lxml")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda node: isinstance(node, Comment)):
        comment.extract()
    text = soup.get_text(separator=" ")
    text = strip_non_bmp(text)
    return _WHITESPACE.sub(" ", text).strip()


def extract_links(base_url: str, html: str) -> List[str]:
    """
    Absolute http(s) targets of every ``<a href>`` on the page, in document order.
    """
    try:
        soup = BeautifulSoup(html, "lxml")
        anchors = soup.find_all("a", href=True)
    except Exception as exc:
        raise ParseError(f"cannot parse links of {base_url}: {exc}") from exc

    links: List[str] = []
    seen: set[str] = set()
    for tag in anchors:
        full_url = resolve_url(base_url, tag["href"])
        if full_url and full_url not in seen:
            seen.add(full_url)
            links.append(full_url)
    return links
