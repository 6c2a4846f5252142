from typing import Any, Protocol, runtime_checkable

from bs4 import BeautifulSoup
from bs4.element import Tag


@runtime_checkable
class QueryableDocument(Protocol):
    """What the manifest code needs from a parsed HTML page."""

    def query(self, selector: str) -> list[Any]: ...

    def attribute(self, node: Any, name: str) -> str | None: ...

    def text(self, node: Any) -> str: ...


class HtmlDocument:
    """QueryableDocument over BeautifulSoup with CSS selectors (soupsieve)."""

    def __init__(self, html: str | bytes, parser: str = "html.parser") -> None:
        if isinstance(html, (bytes, bytearray)):
            html = html.decode("utf-8", "replace")
        self.html = html or ""
        self.soup = BeautifulSoup(self.html, parser)

    def query(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def attribute(self, node: Tag, name: str) -> str | None:
        value = node.get(name)
        if isinstance(value, list):
            # multi-valued attributes like rel/class
            value = " ".join(value)
        return value

    def text(self, node: Tag) -> str:
        return node.get_text()

    def __repr__(self) -> str:
        return f"<HtmlDocument {len(self.html)} chars>"
