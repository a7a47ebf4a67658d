"""CSS-selector field extraction over rendered HTML."""
from __future__ import annotations

from typing import List, Optional, Union

from bs4 import BeautifulSoup

Markup = Union[str, BeautifulSoup]


class FieldExtractor:
    """Query HTML by selector and return text or attribute values.

    Every method accepts raw HTML or a document returned by :meth:`parse`, so a
    page is parsed once and queried many times.
    """

    def __init__(self, parser: str = "html.parser") -> None:
        self.parser = parser

    def parse(self, html: Markup) -> BeautifulSoup:
        if isinstance(html, BeautifulSoup):
            return html
        return BeautifulSoup(html or "", self.parser)

    def first_text(self, html: Markup, selector: Optional[str]) -> Optional[str]:
        """Trimmed text of the first match; None without selector, "" without match."""
        if not selector:
            return None
        node = self.parse(html).select_one(selector)
        if node is None:
            return ""
        return node.get_text(" ", strip=True)

    def attribute(self, html: Markup, selector: Optional[str], name: str) -> Optional[str]:
        if not selector:
            return None
        node = self.parse(html).select_one(selector)
        if node is None:
            return None
        value = node.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        return value.strip() if value else None

    def all(self, html: Markup, selector: Optional[str]) -> List[str]:
        """Non-empty trimmed texts of every match, in document order."""
        if not selector:
            return []
        out: List[str] = []
        for node in self.parse(html).select(selector):
            txt = node.get_text(" ", strip=True)
            if txt:
                out.append(txt)
        return out

    def all_attributes(self, html: Markup, selector: Optional[str], name: str) -> List[str]:
        if not selector:
            return []
        out: List[str] = []
        for node in self.parse(html).select(selector):
            value = node.get(name)
            if isinstance(value, str) and value.strip():
                out.append(value.strip())
        return out

    def exists(self, html: Markup, selector: Optional[str]) -> bool:
        if not selector:
            return False
        return self.parse(html).select_one(selector) is not None
