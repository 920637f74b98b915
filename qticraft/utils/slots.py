"""Slot placeholders: ``<slot name="..."/>`` markers inside markup fields."""
import html
import re

SLOT_RE = re.compile(r'<slot\s+name="([^"]*)"\s*/>')


def find_slots(markup: str) -> list[str]:
    """Slot names in order of appearance, duplicates kept."""
    return [html.unescape(name) for name in SLOT_RE.findall(markup)]
