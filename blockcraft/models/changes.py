"""
Change and result models for Blockcraft.

A transformation never touches storage. It returns an ordered list of
Change records that the document store applies in list order.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .blocks import Block, BlockType


class ChangeAction(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"

    def __str__(self) -> str:
        return self.value


class EngineModel(BaseModel):
    """Base for models exchanged with the UI layer (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_wire(self) -> Dict[str, Any]:
        """Dump with camelCase keys, dropping unset optional payload."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Change(EngineModel):
    """
    One atomic mutation intent.

    ``update`` changes carry any of the new_* payload fields; ``insert``
    changes carry the full new ``block`` and the id it must follow.
    """

    action: ChangeAction
    block_id: str

    # update payload
    old_type: Optional[BlockType] = None
    new_type: Optional[BlockType] = None
    old_content: Optional[Any] = None
    new_content: Optional[str] = None
    content_data: Optional[Dict[str, Any]] = None
    old_metadata: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None

    # insert payload
    block: Optional[Block] = None
    after_block_id: Optional[str] = None

    @classmethod
    def delete(cls, block_id: str) -> "Change":
        return cls(action=ChangeAction.DELETE, block_id=block_id)

    @classmethod
    def insert(cls, block: Block, after_block_id: Optional[str]) -> "Change":
        return cls(
            action=ChangeAction.INSERT,
            block_id=block.id,
            block=block,
            after_block_id=after_block_id
        )


class TransformResult(EngineModel):
    """Outcome of a single converter, splitter or merger call."""

    success: bool
    strategy: Optional[str] = None
    rule: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    changes: List[Change] = Field(default_factory=list)
    new_blocks: List[Block] = Field(default_factory=list)
    error: Optional[str] = None
    source_types: List[BlockType] = Field(default_factory=list)
    target_type: Optional[BlockType] = None

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "TransformResult":
        return cls(success=False, error=error, **kwargs)

    def deleted_ids(self) -> List[str]:
        return [c.block_id for c in self.changes if c.action == ChangeAction.DELETE]


class ValidationResult(EngineModel):
    """Outcome of a validate_* call."""

    is_valid: bool
    error: Optional[str] = None
    rule: Optional[str] = None
    strategy: Optional[str] = None
    source_types: List[BlockType] = Field(default_factory=list)
    target_type: Optional[BlockType] = None

    @classmethod
    def ok(cls, **kwargs: Any) -> "ValidationResult":
        return cls(is_valid=True, **kwargs)

    @classmethod
    def invalid(cls, error: str, **kwargs: Any) -> "ValidationResult":
        return cls(is_valid=False, error=error, **kwargs)
