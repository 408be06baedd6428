"""
Content Extractor
------------------
Shallow boilerplate removal: drops script/style/comment blocks and the
nav/header/footer/aside landmarks, then flattens what is left to one line of
text. No layout analysis, so some boilerplate can survive.
"""
from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment

from intentspace.utils.helpers import collapse_whitespace

_BOILERPLATE_TAGS = ["script", "style", "noscript", "template", "nav", "footer", "header", "aside"]


@dataclass(frozen=True)
class ExtractedContent:
    title: str
    text: str
    links: tuple[str, ...] = ()         # raw href values, unresolved


class ContentExtractor:
    """Turns raw HTML into a title and a whitespace-collapsed body text."""

    def __init__(self, parser: str = "html.parser") -> None:
        self.parser = parser

    def extract(self, html: str, url: str) -> ExtractedContent:
        soup = BeautifulSoup(html, self.parser)
        title = self._title(soup, url)
        # Collected before boilerplate removal: nav menus carry most site links
        links = tuple(
            a["href"].strip() for a in soup.find_all("a", href=True) if a["href"].strip()
        )

        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()
        for tag in soup.find_all(_BOILERPLATE_TAGS):
            tag.decompose()

        text = collapse_whitespace(soup.get_text(separator=" "))
        return ExtractedContent(title=title, text=text, links=links)

    @staticmethod
    def _title(soup: BeautifulSoup, url: str) -> str:
        tag = soup.find("title")
        if tag is not None:
            title = collapse_whitespace(tag.get_text())
            if title:
                return title
        return urlparse(url).path or "/"
