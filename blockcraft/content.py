"""
Content utilities for Blockcraft.

Pure helpers shared by the converter, splitter and merger: plain-text
extraction from string or rich-content blocks, list item parsing and
rendering, and construction of minimal rich-content wrappers.
"""

import re
import uuid
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import pydantic

from .models.blocks import Block, BlockType, ListItem

# Leading bullet / number marker, then an optional checkbox.
_LIST_MARKER_RE = re.compile(r"^\s*(?:[-*+•]|\d+[.)])?\s*(\[[ xX]\]|[☐☑✓✔])?\s*")

_CHECKED_MARKS = {"[x]", "[X]", "☑", "✓", "✔"}
_UNCHECKED_MARKS = {"[ ]", "☐"}

BULLET_MARKER = "•"
UNCHECKED_MARKER = "☐"
CHECKED_MARKER = "☑"


def generate_block_id(prefix: str = "block") -> str:
    """Return a fresh identifier for a block created by a transformation."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _walk_text(node: Any) -> Iterator[str]:
    if isinstance(node, list):
        for child in node:
            yield from _walk_text(child)
    elif isinstance(node, dict):
        node_type = node.get("type")
        if node_type == "text":
            text = node.get("text")
            # Leaves with non-string text carry nothing readable.
            if isinstance(text, str):
                yield text
        elif node_type == "hardBreak":
            yield "\n"
        else:
            yield from _walk_text(node.get("content") or [])


def extract_text(source: Union[Block, str, Dict[str, Any], None]) -> str:
    """
    Extract the plain text of a block or of raw block content.

    String content is returned as is. A rich-content tree is walked depth
    first and the text of every ``{"type": "text"}`` leaf is concatenated.
    Anything else yields an empty string.

    Args:
        source: A Block, or the content of one

    Returns:
        The plain text
    """
    content = source.content if isinstance(source, Block) else source

    if isinstance(content, str):
        return content

    if isinstance(content, dict):
        return "".join(_walk_text(content))

    return ""


def create_content_data(text: Optional[str]) -> Dict[str, Any]:
    """Wrap plain text in the smallest rich-content tree the editor accepts."""
    return {
        "type": "doc",
        "content": [{
            "type": "paragraph",
            "content": [{
                "type": "text",
                "text": text or ""
            }]
        }]
    }


def strip_list_marker(line: str) -> Tuple[str, Optional[bool]]:
    """
    Remove a leading bullet, number or checkbox marker from a line.

    Returns:
        The remaining text and the checkbox state (None when there was no checkbox)
    """
    match = _LIST_MARKER_RE.match(line)
    checked: Optional[bool] = None
    if match:
        mark = match.group(1)
        if mark in _CHECKED_MARKS:
            checked = True
        elif mark in _UNCHECKED_MARKS:
            checked = False
        line = line[match.end():]
    return line.strip(), checked


def _coerce_item(raw: Any, index: int) -> ListItem:
    if isinstance(raw, ListItem):
        item = raw.model_copy()
    elif isinstance(raw, dict):
        try:
            item = ListItem.model_validate(raw)
        except pydantic.ValidationError:
            # Keep the item, with its content coerced to text.
            content = raw.get("content")
            item = ListItem(content="" if content is None else str(content))
    else:
        item = ListItem(content=str(raw))
    if item.id is None:
        item.id = f"item-{index}"
    return item


def parse_list_items(block: Block) -> List[ListItem]:
    """
    Parse a block's content into an ordered list of items.

    ``metadata.items`` wins when present. Otherwise every non-blank line of
    the block's text becomes one item, with its list marker stripped.

    Args:
        block: The block to parse

    Returns:
        The list items, in order
    """
    raw_items = block.metadata.get("items")
    if isinstance(raw_items, list):
        return [_coerce_item(raw, index) for index, raw in enumerate(raw_items)]

    return parse_lines_as_items(extract_text(block))


def parse_lines_as_items(text: str) -> List[ListItem]:
    """Turn each non-blank line of ``text`` into a ListItem."""
    items = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        content, checked = strip_list_marker(line)
        items.append(ListItem(id=f"item-{len(items)}", content=content, checked=checked))
    return items


def list_marker(list_type: BlockType, index: int, checked: Optional[bool] = None) -> str:
    """Return the marker for the item at zero-based ``index`` of a list of ``list_type``."""
    if list_type == BlockType.NUMBERED_LIST:
        return f"{index + 1}."
    if list_type == BlockType.CHECK_LIST:
        return CHECKED_MARKER if checked else UNCHECKED_MARKER
    return BULLET_MARKER


def render_list(list_type: BlockType, items: Sequence[Union[ListItem, str]]) -> str:
    """Render items as marker-prefixed lines for the given list type."""
    lines = []
    for index, item in enumerate(items):
        if isinstance(item, ListItem):
            text, checked = item.content, item.checked
        else:
            text, checked = item, None
        lines.append(f"{list_marker(list_type, index, checked)} {text}")
    return "\n".join(lines)


def list_text(block: Block, separator: str = "\n") -> str:
    """The text of a list block without its markers."""
    return separator.join(item.content for item in parse_list_items(block))


def adapt_content_to_block_type(content: str, block_type: BlockType) -> str:
    """
    Reformat plain text so it reads naturally inside a block of ``block_type``.

    Lists get a marker per line, quotes a ``> `` prefix per line; code and
    every other type take the text unchanged.
    """
    lines = content.split("\n")

    if block_type == BlockType.BULLET_LIST:
        return "\n".join(f"{BULLET_MARKER} {line.strip()}" for line in lines)
    if block_type == BlockType.NUMBERED_LIST:
        return "\n".join(f"{index + 1}. {line.strip()}" for index, line in enumerate(lines))
    if block_type == BlockType.CHECK_LIST:
        return "\n".join(f"{UNCHECKED_MARKER} {line.strip()}" for line in lines)
    if block_type == BlockType.QUOTE:
        return "\n".join(f"> {line}" for line in lines)

    return content


def non_empty(texts: Iterable[str]) -> List[str]:
    """Keep only the strings with visible characters."""
    return [text for text in texts if text.strip()]
