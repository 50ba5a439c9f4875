"""
Blockcraft: a block transformation engine for block-based editors.

Merges, splits and converts document blocks, describing every effect as
an ordered list of changes for the document store to apply.
"""

__version__ = "0.1.0"
__author__ = "Blockcraft Project"

# Import main components
from .models import Block, BlockType, Change, InteractionRequest, InteractionResult
from .interactions import BlockConverter, BlockMerger, BlockSplitter, InteractionManager
from .rules import MergeRuleRegistry, ConversionRuleRegistry, TransformRule
from .errors import InteractionError, ValidationError, StrategyDefectError, ListenerError

__all__ = [
    "Block",
    "BlockType",
    "Change",
    "InteractionRequest",
    "InteractionResult",
    "BlockConverter",
    "BlockMerger",
    "BlockSplitter",
    "InteractionManager",
    "MergeRuleRegistry",
    "ConversionRuleRegistry",
    "TransformRule",
    "InteractionError",
    "ValidationError",
    "StrategyDefectError",
    "ListenerError",
]
