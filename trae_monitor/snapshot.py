"""Captured page state handed to the extractors."""

import json
from dataclasses import dataclass, field
from functools import cached_property

from bs4 import BeautifulSoup

ACCOUNT_PAGE_MARKER = "account-setting"

_SKIP_TAGS = ["script", "style", "noscript", "template", "head"]
_BLOCK_TAGS = [
    "address", "article", "aside", "blockquote", "dd", "details", "div", "dl",
    "dt", "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2",
    "h3", "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p",
    "pre", "section", "summary", "table", "tr", "td", "th", "ul",
]


def parse_json_safe(text: str | None):
    if not text:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _script_text(node) -> str:
    return node.string if node.string is not None else node.get_text()


def visible_text(html: str) -> str:
    """Approximate document.body.innerText for a static HTML string."""
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup.find_all(_SKIP_TAGS):
        tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(_BLOCK_TAGS):
        block.insert_before("\n")
        block.insert_after("\n")
    root = soup.body or soup
    return root.get_text()


@dataclass(frozen=True)
class PageSnapshot:
    url: str
    html: str
    text: str = ""
    network_jsons: tuple = field(default_factory=tuple)

    @classmethod
    def from_html(cls, url: str, html: str, network_jsons=()) -> "PageSnapshot":
        return cls(url=url, html=html, text=visible_text(html),
                   network_jsons=tuple(network_jsons))

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html or "", "html.parser")

    @cached_property
    def next_data(self):
        node = self.soup.find(id="__NEXT_DATA__")
        if node is None:
            return None
        data = parse_json_safe(_script_text(node))
        return data if isinstance(data, (dict, list)) else None

    @cached_property
    def json_scripts(self) -> list:
        out = []
        for node in self.soup.select('script[type="application/json"]'):
            if node.get("id") == "__NEXT_DATA__":
                continue
            data = parse_json_safe(_script_text(node))
            if data:
                out.append(data)
        return out

    @property
    def is_account_page(self) -> bool:
        return ACCOUNT_PAGE_MARKER in (self.url or "")

    @property
    def lines(self) -> list[str]:
        return [s.strip() for s in (self.text or "").split("\n") if s.strip()]
