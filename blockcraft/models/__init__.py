"""Data models for Blockcraft."""

from .blocks import (
    BlockType,
    Block,
    ListItem,
    NestedBlock,
    GalleryImage,
    FileEntry,
    ALL_BLOCK_TYPES,
    TEXT_TYPES,
    HEADING_TYPES,
    LIST_TYPES,
    CONTAINER_TYPES,
    MEDIA_TYPES,
)
from .changes import ChangeAction, Change, TransformResult, ValidationResult
from .interactions import (
    InteractionType,
    InteractionOutcome,
    InteractionOptions,
    InteractionRequest,
    InteractionResult,
    ConversionSuggestion,
    SplitSuggestion,
    MergeSuggestion,
)

__all__ = [
    "BlockType",
    "Block",
    "ListItem",
    "NestedBlock",
    "GalleryImage",
    "FileEntry",
    "ALL_BLOCK_TYPES",
    "TEXT_TYPES",
    "HEADING_TYPES",
    "LIST_TYPES",
    "CONTAINER_TYPES",
    "MEDIA_TYPES",
    "ChangeAction",
    "Change",
    "TransformResult",
    "ValidationResult",
    "InteractionType",
    "InteractionOutcome",
    "InteractionOptions",
    "InteractionRequest",
    "InteractionResult",
    "ConversionSuggestion",
    "SplitSuggestion",
    "MergeSuggestion",
]
