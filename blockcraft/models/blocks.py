"""
Block data models for Blockcraft.

This module defines the block snapshot handed to the engine by the document
store, the enumeration of block types, and the typed shapes of the metadata
entries the transformation strategies read and write.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class BlockType(str, Enum):
    """Every block type the editor knows about."""

    # Basic / text blocks
    TEXT = "text"
    HEADING1 = "heading1"
    HEADING2 = "heading2"
    HEADING3 = "heading3"
    QUOTE = "quote"
    DIVIDER = "divider"
    CODE = "code"
    BULLET_LIST = "bulletList"
    NUMBERED_LIST = "numberedList"
    CHECK_LIST = "checkList"

    # Media blocks
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FILE = "file"
    COLUMN = "column"
    GALLERY = "gallery"

    # Data blocks
    TABLE = "table"
    CHART = "chart"
    TIMELINE = "timeline"
    BOARD = "board"
    PROGRESS_BAR = "progressBar"
    RATING = "rating"

    # Interactive blocks
    TOGGLE = "toggle"
    BUTTON = "button"
    POLL = "poll"
    COMMENT = "comment"
    TAG = "tag"
    ALERT = "alert"

    # Embeds
    WEB_EMBED = "webEmbed"
    PDF_EMBED = "pdfEmbed"
    MERMAID = "mermaid"
    MATH = "math"
    CUSTOM_HTML = "customHTML"
    PROFILE = "profile"

    # Pages
    PAGE = "page"

    def __str__(self) -> str:
        return self.value


ALL_BLOCK_TYPES: FrozenSet[BlockType] = frozenset(BlockType)

HEADING_TYPES: FrozenSet[BlockType] = frozenset({
    BlockType.HEADING1, BlockType.HEADING2, BlockType.HEADING3
})

TEXT_TYPES: FrozenSet[BlockType] = frozenset({
    BlockType.TEXT, BlockType.QUOTE, BlockType.CODE
}) | HEADING_TYPES

LIST_TYPES: FrozenSet[BlockType] = frozenset({
    BlockType.BULLET_LIST, BlockType.NUMBERED_LIST, BlockType.CHECK_LIST
})

CONTAINER_TYPES: FrozenSet[BlockType] = frozenset({
    BlockType.TOGGLE, BlockType.COLUMN, BlockType.PAGE
})

MEDIA_TYPES: FrozenSet[BlockType] = frozenset({
    BlockType.IMAGE, BlockType.GALLERY, BlockType.FILE, BlockType.VIDEO, BlockType.AUDIO
})


def all_types_except(*excluded: BlockType) -> FrozenSet[BlockType]:
    """Return the full type universe minus the given types."""
    return ALL_BLOCK_TYPES - frozenset(excluded)


class Block(BaseModel):
    """
    A read-only snapshot of one document block.

    The engine never modifies a Block; it only describes modifications as
    Change records for the document store to apply.
    """

    id: str = Field(
        ...,
        description="Stable identifier assigned by the document store"
    )

    type: BlockType = Field(
        ...,
        description="The block's type"
    )

    content: Union[str, Dict[str, Any], None] = Field(
        default="",
        description="Plain text or a rich-content tree whose leaves carry text"
    )

    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Type-dependent attributes (items, images, toggleContent, groupId, ...)"
    )

    @property
    def is_list(self) -> bool:
        return self.type in LIST_TYPES

    @property
    def is_heading(self) -> bool:
        return self.type in HEADING_TYPES


class ListItem(BaseModel):
    """An entry of ``metadata.items`` on list blocks."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    content: str = ""
    checked: Optional[bool] = None


class NestedBlock(BaseModel):
    """A child stored inside ``metadata.toggleContent`` or ``metadata.columnContent``."""

    type: BlockType = BlockType.TEXT
    content: Union[str, Dict[str, Any], None] = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_block(cls, block: Block) -> "NestedBlock":
        return cls(type=block.type, content=block.content, metadata=dict(block.metadata))


class GalleryImage(BaseModel):
    """An entry of ``metadata.images`` on gallery blocks."""

    id: str
    src: str = ""
    alt: str = ""
    caption: str = ""


class FileEntry(BaseModel):
    """An entry of ``metadata.files`` on file blocks."""

    id: str
    name: str = ""
    size: int = 0
    type: str = "unknown"
    url: str = ""


def dump_entries(entries: List[BaseModel]) -> List[Dict[str, Any]]:
    """Serialise typed metadata entries to the plain dicts stored on blocks."""
    return [entry.model_dump(mode="json", exclude_none=True) for entry in entries]
