"""
Interaction models for Blockcraft.

These are the request and result records exchanged between the UI layer
and the InteractionManager, plus the suggestion records produced by the
converter, splitter and merger.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .blocks import Block, BlockType
from .changes import Change, EngineModel


class InteractionType(str, Enum):
    MERGE = "merge"
    SPLIT = "split"
    CONVERT = "convert"
    REARRANGE = "rearrange"
    GROUP = "group"
    UNGROUP = "ungroup"

    def __str__(self) -> str:
        return self.value


class InteractionOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class InteractionOptions(EngineModel):
    """
    Operation-specific options.

    Only the keys below are recognised; anything else the UI sends is
    ignored. Keys may be given in snake_case or camelCase.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    strategy: Optional[str] = None
    cursor_position: Optional[int] = None
    words_per_block: Optional[int] = None
    separator: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None
    author: Optional[str] = None
    source: Optional[str] = None
    group_type: Optional[str] = None
    target_type: Optional[str] = None
    show_line_numbers: Optional[bool] = None
    after_block_id: Optional[str] = None

    @classmethod
    def coerce(cls, options: Any) -> "InteractionOptions":
        """Accept an options model, a plain dict, or None."""
        if isinstance(options, cls):
            return options
        return cls.model_validate(options or {})


class InteractionRequest(EngineModel):
    """
    A request from the UI layer.

    ``type`` stays a plain string so that an unknown interaction type is
    reported by validation instead of failing to parse.
    """

    type: str = ""
    source_blocks: List[Block] = Field(default_factory=list)
    target_block: Optional[Block] = None
    options: InteractionOptions = Field(default_factory=InteractionOptions)

    @field_validator("options", mode="before")
    @classmethod
    def _default_options(cls, value: Any) -> Any:
        return {} if value is None else value


class InteractionResult(EngineModel):
    """The record returned by execute_interaction and kept in history."""

    id: str
    type: str = ""
    result: InteractionOutcome
    data: Dict[str, Any] = Field(default_factory=dict)
    changes: List[Change] = Field(default_factory=list)
    duration: float = Field(
        default=0.0,
        description="Wall-clock milliseconds spent handling the request"
    )
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def succeeded(self) -> bool:
        return self.result == InteractionOutcome.SUCCESS


class ConversionSuggestion(EngineModel):
    target_type: BlockType
    confidence: float
    reason: str
    preview: Optional[str] = None


class SplitSuggestion(EngineModel):
    strategy: str
    parts_count: int
    confidence: float
    description: str


class MergeSuggestion(EngineModel):
    strategy: str
    rule: str
    description: str
    preview: str
