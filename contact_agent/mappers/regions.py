"""Heuristics that pick the primary content panel out of a rendered page.

Each heuristic takes the page flattened into ``PageBlock`` items plus the
configured panel keywords and returns the chosen region text, or an empty
string when it finds nothing. ``select_region`` tries them in order.
"""

import html
import re
from collections.abc import Callable, Sequence

from bs4 import BeautifulSoup

from contact_agent.schemas.extraction import PageBlock

MAX_BLOCKS = 2000
MAX_BLOCK_TEXT = 20_000

_BLOCK_TAGS = ("main", "article", "section", "aside", "div", "form")
_BLOCK_ROLES = frozenset({"main", "region", "dialog", "tabpanel", "complementary"})
_BLOCK_CLASS_HINTS = ("panel", "pane", "card", "summary", "conversation")

_JSON_ESCAPE_RE = re.compile(r"\\u([0-9a-fA-F]{4})")

Heuristic = Callable[[Sequence[PageBlock], Sequence[str]], str]


def _is_block(tag) -> bool:
    if tag.name not in _BLOCK_TAGS:
        return tag.get("role") in _BLOCK_ROLES
    if tag.name not in ("div", "form"):
        return True
    if tag.get("role") in _BLOCK_ROLES:
        return True
    classes = " ".join(tag.get("class") or []).lower()
    return any(hint in classes for hint in _BLOCK_CLASS_HINTS)


def blocks_from_html(markup: str) -> list[PageBlock]:
    """Flatten rendered DOM markup into candidate content blocks."""
    if not markup:
        return []
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()

    blocks: list[PageBlock] = []
    for tag in soup.find_all(_is_block):
        text = tag.get_text(separator=" ", strip=True)
        if not text:
            continue
        blocks.append(PageBlock(tag=tag.name, role=tag.get("role"), text=text[:MAX_BLOCK_TEXT]))
        if len(blocks) >= MAX_BLOCKS:
            break
    return blocks


def keyword_block(blocks: Sequence[PageBlock], keywords: Sequence[str]) -> str:
    """Largest block whose text mentions one of the section keywords."""
    lowered = [k.lower() for k in keywords if k]
    matching = [b.text for b in blocks if any(k in b.text.lower() for k in lowered)]
    return max(matching, key=len, default="")


def landmark_block(blocks: Sequence[PageBlock], keywords: Sequence[str]) -> str:
    """Largest main-content landmark."""
    landmarks = [b.text for b in blocks if b.role == "main" or b.tag in ("main", "article")]
    return max(landmarks, key=len, default="")


REGION_HEURISTICS: tuple[Heuristic, ...] = (keyword_block, landmark_block)


def select_region(
    blocks: Sequence[PageBlock],
    keywords: Sequence[str],
    heuristics: Sequence[Heuristic] = REGION_HEURISTICS,
) -> str:
    for heuristic in heuristics:
        region = heuristic(blocks, keywords)
        if region:
            return region
    return ""


def has_marker(text: str, markers: Sequence[str]) -> bool:
    """Case-insensitive check for an explicit "field absent" statement."""
    lowered = text.lower()
    return any(m.lower() in lowered for m in markers if m)


def decode_markup(markup: str) -> str:
    """Undo HTML entities and ``\\uXXXX`` escapes so inline data is matchable."""
    decoded = _JSON_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 16)), markup or "")
    return html.unescape(decoded)
