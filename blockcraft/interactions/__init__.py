"""Block interactions: merging, splitting, conversion and their coordination."""

from .converter import BlockConverter
from .splitter import BlockSplitter, SplitStrategy
from .merger import BlockMerger
from .manager import InteractionManager, INTERACTION_COMPLETED, INTERACTION_ERROR

__all__ = [
    "BlockConverter",
    "BlockSplitter",
    "SplitStrategy",
    "BlockMerger",
    "InteractionManager",
    "INTERACTION_COMPLETED",
    "INTERACTION_ERROR",
]
