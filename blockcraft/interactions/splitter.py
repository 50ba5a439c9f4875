"""
Block splitting for Blockcraft.

This module splits one block into several: at a cursor position, by
paragraph, sentence or word count, into one block per list item, or at
split points detected in the text ("smart" splitting).
"""

import copy
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Pattern, Sequence, Union

from ..config import config
from ..content import create_content_data, extract_text, generate_block_id, list_text, parse_list_items
from ..errors import InteractionError, StrategyDefectError, ValidationError
from ..models.blocks import HEADING_TYPES, LIST_TYPES, Block, BlockType
from ..models.changes import Change, ChangeAction, TransformResult, ValidationResult
from ..models.interactions import InteractionOptions, SplitSuggestion


class SplitStrategy(str, Enum):
    CURSOR_POSITION = "cursor_position"
    PARAGRAPH_SPLIT = "paragraph_split"
    SENTENCE_SPLIT = "sentence_split"
    LIST_ITEM_SPLIT = "list_item_split"
    WORD_SPLIT = "word_split"
    SMART_SPLIT = "smart_split"

    def __str__(self) -> str:
        return self.value


_TEXT = frozenset({BlockType.TEXT})
_QUOTE = frozenset({BlockType.QUOTE})

SUPPORTED_TYPES: Dict[SplitStrategy, FrozenSet[BlockType]] = {
    SplitStrategy.CURSOR_POSITION: _TEXT | HEADING_TYPES | _QUOTE,
    SplitStrategy.PARAGRAPH_SPLIT: _TEXT | _QUOTE,
    SplitStrategy.SENTENCE_SPLIT: _TEXT | HEADING_TYPES | _QUOTE,
    SplitStrategy.LIST_ITEM_SPLIT: LIST_TYPES,
    SplitStrategy.WORD_SPLIT: _TEXT | HEADING_TYPES,
    SplitStrategy.SMART_SPLIT: _TEXT | _QUOTE,
}

DEFAULT_STRATEGIES: Dict[BlockType, SplitStrategy] = {
    BlockType.TEXT: SplitStrategy.SMART_SPLIT,
    BlockType.HEADING1: SplitStrategy.SENTENCE_SPLIT,
    BlockType.HEADING2: SplitStrategy.SENTENCE_SPLIT,
    BlockType.HEADING3: SplitStrategy.SENTENCE_SPLIT,
    BlockType.QUOTE: SplitStrategy.PARAGRAPH_SPLIT,
    BlockType.BULLET_LIST: SplitStrategy.LIST_ITEM_SPLIT,
    BlockType.NUMBERED_LIST: SplitStrategy.LIST_ITEM_SPLIT,
    BlockType.CHECK_LIST: SplitStrategy.LIST_ITEM_SPLIT,
}


@dataclass(frozen=True)
class SplitPointPattern:
    pattern: Pattern
    priority: int
    description: str
    # Split before the match instead of after it (list markers stay with their item).
    split_before: bool = False


@dataclass(frozen=True)
class SplitPoint:
    index: int
    priority: int
    description: str


SPLIT_POINT_PATTERNS = [
    SplitPointPattern(re.compile(r"\n\n+"), 10, "Paragraph break"),
    SplitPointPattern(re.compile(r"[.!?]\s+(?=[A-Z가-힣])"), 8, "Sentence end"),
    SplitPointPattern(re.compile(r"[,;]\s+"), 5, "Clause separator"),
    SplitPointPattern(re.compile(r"\s+-\s+"), 7, "Dash separated item"),
    SplitPointPattern(re.compile(r"^\d+\.\s+", re.MULTILINE), 9, "Numbered list item", split_before=True),
]

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


def split_into_paragraphs(text: str) -> List[str]:
    return [part.strip() for part in _PARAGRAPH_BREAK.split(text) if part.strip()]


def split_into_sentences(text: str) -> List[str]:
    """Split on sentence terminators, keeping each terminator with its sentence."""
    return [part.strip() for part in _SENTENCE_BREAK.split(text) if part.strip()]


class BlockSplitter:
    """
    Splits a single block into several blocks.
    """

    def __init__(self, max_split_parts: Optional[int] = None, min_part_length: Optional[int] = None,
                 words_per_block: Optional[int] = None, smart_splitting: Optional[bool] = None,
                 proximity_window: Optional[int] = None):
        """
        Initialize the splitter. Unset arguments default to config values.

        Args:
            max_split_parts: Largest number of blocks one split may produce
            min_part_length: Parts shorter than this are folded into their predecessor
            words_per_block: Default chunk size for word splits
            smart_splitting: Whether suggest_splits offers smart splits
            proximity_window: Smart split points this close to a kept point are dropped
        """
        self.max_split_parts = max_split_parts if max_split_parts is not None else config.max_split_parts
        self.min_part_length = min_part_length if min_part_length is not None else config.min_part_length
        self.words_per_block = words_per_block if words_per_block is not None else config.words_per_block
        self.smart_splitting = smart_splitting if smart_splitting is not None else config.smart_splitting
        self.proximity_window = proximity_window if proximity_window is not None else config.proximity_window

        self._handlers: Dict[SplitStrategy, Callable[[Block, InteractionOptions], TransformResult]] = {
            SplitStrategy.CURSOR_POSITION: self._split_at_cursor,
            SplitStrategy.PARAGRAPH_SPLIT: self._split_by_paragraph,
            SplitStrategy.SENTENCE_SPLIT: self._split_by_sentence,
            SplitStrategy.LIST_ITEM_SPLIT: self._split_list_items,
            SplitStrategy.WORD_SPLIT: self._split_by_word,
            SplitStrategy.SMART_SPLIT: self._smart_split,
        }

    def split(self, source_block: Block,
              options: Union[InteractionOptions, Dict[str, Any], None] = None) -> TransformResult:
        """
        Split a block using the requested or default strategy.

        Args:
            source_block: The block to split
            options: Split options (strategy, cursor_position, words_per_block)

        Returns:
            TransformResult describing the changes; never raises
        """
        source_types = [source_block.type]

        try:
            opts = InteractionOptions.coerce(options)
            strategy = self.determine_strategy(source_block, opts)

            if not self.is_strategy_supported_for_type(strategy, source_block.type):
                return TransformResult.failure(
                    f"Strategy '{strategy}' not supported for block type '{source_block.type}'",
                    source_types=source_types
                )

            handler = self._handlers.get(SplitStrategy(strategy))
            if handler is None:
                raise StrategyDefectError("split", strategy)

            logging.debug(f"Splitting block {source_block.id} with {strategy}")
            result = handler(source_block, opts)
            result.strategy = str(strategy)
            result.source_types = source_types
            return result

        except InteractionError as e:
            logging.warning(f"Split of block {source_block.id} failed: {e}")
            return TransformResult.failure(str(e), source_types=source_types)
        except Exception as e:
            logging.error(f"Unexpected error splitting block {source_block.id}: {e}", exc_info=True)
            return TransformResult.failure(str(e), source_types=source_types)

    # ===== Strategies =====

    def _split_at_cursor(self, source_block: Block, options: InteractionOptions) -> TransformResult:
        """Split in two at a character offset into the block's text."""
        text = extract_text(source_block)
        cursor = self._check_cursor(text, options.cursor_position)

        before = text[:cursor].strip()
        after = text[cursor:].strip()
        if not before and not after:
            raise ValidationError("Block has no content to split")

        result = self.create_multiple_split_blocks(source_block, [before, after], "cursor")
        result.data["splitAt"] = cursor
        return result

    def _split_by_paragraph(self, source_block: Block, options: InteractionOptions) -> TransformResult:
        paragraphs = split_into_paragraphs(extract_text(source_block))
        if len(paragraphs) < 2:
            raise ValidationError("No paragraph breaks found for splitting")
        return self.create_multiple_split_blocks(source_block, paragraphs, "paragraph", joiner="\n\n")

    def _split_by_sentence(self, source_block: Block, options: InteractionOptions) -> TransformResult:
        sentences = split_into_sentences(extract_text(source_block))
        if len(sentences) < 2:
            raise ValidationError("No sentence breaks found for splitting")
        return self.create_multiple_split_blocks(source_block, sentences, "sentence")

    def _split_list_items(self, source_block: Block, options: InteractionOptions) -> TransformResult:
        """One text block per list item; the first item stays in the source block."""
        items = parse_list_items(source_block)
        if len(items) < 2:
            raise ValidationError("List has only one item, cannot split")

        result = self.create_multiple_split_blocks(
            source_block, [item.content for item in items], "list_item",
            new_type=BlockType.TEXT, joiner="\n"
        )
        result.data.update({
            "itemsSplit": len(items),
            "originalType": source_block.type.value,
            "newType": BlockType.TEXT.value
        })
        return result

    def _split_by_word(self, source_block: Block, options: InteractionOptions) -> TransformResult:
        words = extract_text(source_block).split()
        if options.words_per_block is not None:
            words_per_block = options.words_per_block
        else:
            words_per_block = self.words_per_block
        if words_per_block < 1:
            raise ValidationError("words_per_block must be at least 1")

        if len(words) <= words_per_block:
            raise ValidationError(
                f"Not enough words to split (minimum {words_per_block + 1} words needed)"
            )

        chunks = [
            " ".join(words[i:i + words_per_block])
            for i in range(0, len(words), words_per_block)
        ]
        return self.create_multiple_split_blocks(source_block, chunks, "word")

    def _smart_split(self, source_block: Block, options: InteractionOptions) -> TransformResult:
        text = extract_text(source_block)
        points = self.find_smart_split_points(text)
        if not points:
            raise ValidationError("No suitable split points found")

        parts = self.partition(text, points)
        if len(parts) < 2:
            raise ValidationError("Smart split resulted in single part")

        result = self.create_multiple_split_blocks(source_block, parts, "smart")
        result.data["splitPoints"] = len(points)
        return result

    # ===== Shared helpers =====

    def create_multiple_split_blocks(self, source_block: Block, parts: Sequence[str], split_type: str,
                                     new_type: Optional[BlockType] = None,
                                     joiner: str = " ") -> TransformResult:
        """
        Turn an ordered list of text parts into changes.

        The first part replaces the source block's content (the source is
        deleted when that part is empty). Every later part becomes a new
        block inserted after its predecessor. Parts shorter than
        ``min_part_length``, and parts past ``max_split_parts``, are folded
        into the preceding part instead of being dropped.

        Args:
            source_block: The block being split
            parts: Text parts in document order
            split_type: Label recorded in the result data
            new_type: Type for the updated source and the new blocks (default: unchanged)
            joiner: Separator used when folding a part into its predecessor

        Returns:
            TransformResult with the ordered changes and the new blocks
        """
        kept: List[str] = []
        folded = 0
        for raw_part in parts:
            part = raw_part.strip()
            if kept and (len(part) < self.min_part_length or len(kept) >= self.max_split_parts):
                if part:
                    kept[-1] = f"{kept[-1]}{joiner}{part}" if kept[-1] else part
                    folded += 1
                continue
            kept.append(part)

        block_type = new_type or source_block.type
        if new_type:
            new_metadata: Dict[str, Any] = {}
        else:
            new_metadata = copy.deepcopy(source_block.metadata)

        changes: List[Change] = []
        new_blocks: List[Block] = []
        first_part = kept[0] if kept else ""

        if first_part:
            update = Change(
                action=ChangeAction.UPDATE,
                block_id=source_block.id,
                old_content=source_block.content,
                new_content=first_part,
                content_data=create_content_data(first_part)
            )
            if new_type and new_type != source_block.type:
                update.old_type = source_block.type
                update.new_type = new_type
                update.old_metadata = copy.deepcopy(source_block.metadata)
                update.metadata = {}
            changes.append(update)

        previous_id = source_block.id
        for part in kept[1:]:
            new_block = Block(
                id=generate_block_id(),
                type=block_type,
                content=part,
                metadata=copy.deepcopy(new_metadata)
            )
            new_blocks.append(new_block)
            changes.append(Change.insert(new_block, after_block_id=previous_id))
            previous_id = new_block.id

        if not first_part:
            # Inserts reference the source id, so the source goes last.
            changes.append(Change.delete(source_block.id))

        if folded:
            logging.debug(f"Folded {folded} short or overflow parts while splitting {source_block.id}")

        return TransformResult(
            success=True,
            data={
                "splitType": split_type,
                "partsCreated": len(new_blocks) + (1 if first_part else 0),
                "partsFolded": folded,
                "originalLength": len(extract_text(source_block))
            },
            changes=changes,
            new_blocks=new_blocks
        )

    def find_smart_split_points(self, text: str) -> List[SplitPoint]:
        """
        Detect likely split points in free text.

        Every match of every pattern is a candidate. Candidates are ranked
        by pattern priority, then by position, and a candidate within
        ``proximity_window`` characters of an already kept point is dropped.

        Args:
            text: The text to analyse

        Returns:
            The kept split points in ranking order
        """
        candidates: List[SplitPoint] = []
        for split_pattern in SPLIT_POINT_PATTERNS:
            for match in split_pattern.pattern.finditer(text):
                index = match.start() if split_pattern.split_before else match.end()
                # A point with nothing on one side is not a split point.
                if not text[:index].strip() or not text[index:].strip():
                    continue
                candidates.append(SplitPoint(index, split_pattern.priority, split_pattern.description))

        candidates.sort(key=lambda point: (-point.priority, point.index))

        kept: List[SplitPoint] = []
        for point in candidates:
            if all(abs(point.index - other.index) > self.proximity_window for other in kept):
                kept.append(point)
        return kept

    @staticmethod
    def partition(text: str, points: Sequence[SplitPoint]) -> List[str]:
        """Cut ``text`` at the given points, in position order, dropping blank parts."""
        parts = []
        last_index = 0
        for index in sorted({point.index for point in points}):
            part = text[last_index:index].strip()
            if part:
                parts.append(part)
            last_index = index
        tail = text[last_index:].strip()
        if tail:
            parts.append(tail)
        return parts

    def _check_cursor(self, text: str, cursor: Optional[int]) -> int:
        if cursor is None or cursor <= 0 or cursor >= len(text):
            raise ValidationError("Invalid cursor position for split")
        return cursor

    def _split_text(self, block: Block) -> str:
        if block.type in LIST_TYPES:
            return list_text(block)
        return extract_text(block)

    # ===== Strategy selection and validation =====

    def determine_strategy(self, source_block: Block, options: InteractionOptions) -> str:
        """The explicit strategy if one was given, else the default for the block type."""
        if options.strategy:
            return options.strategy
        return DEFAULT_STRATEGIES.get(source_block.type, SplitStrategy.CURSOR_POSITION).value

    def is_strategy_supported_for_type(self, strategy: str, block_type: BlockType) -> bool:
        try:
            return block_type in SUPPORTED_TYPES[SplitStrategy(strategy)]
        except (KeyError, ValueError):
            return False

    def validate_split(self, source_block: Optional[Block],
                       options: Union[InteractionOptions, Dict[str, Any], None] = None) -> ValidationResult:
        """
        Check whether a split can be carried out.

        Args:
            source_block: The block to split
            options: Split options

        Returns:
            ValidationResult naming the strategy, or the reason it cannot run
        """
        if source_block is None:
            return ValidationResult.invalid("Source block is required for split operation")

        opts = InteractionOptions.coerce(options)
        strategy = self.determine_strategy(source_block, opts)
        source_types = [source_block.type]

        if strategy not in {s.value for s in SplitStrategy}:
            return ValidationResult.invalid(f"Unknown split strategy: {strategy}", source_types=source_types)

        if not self.is_strategy_supported_for_type(strategy, source_block.type):
            return ValidationResult.invalid(
                f"Strategy '{strategy}' not supported for block type '{source_block.type}'",
                source_types=source_types
            )

        text = self._split_text(source_block)
        if len(text.strip()) < self.min_part_length * 2:
            return ValidationResult.invalid(
                "Block content too short to split meaningfully",
                source_types=source_types
            )

        if strategy == SplitStrategy.CURSOR_POSITION.value:
            try:
                self._check_cursor(extract_text(source_block), opts.cursor_position)
            except ValidationError as e:
                return ValidationResult.invalid(str(e), source_types=source_types)

        return ValidationResult.ok(strategy=strategy, source_types=source_types)

    # ===== Suggestions =====

    def suggest_splits(self, source_block: Block) -> List[SplitSuggestion]:
        """
        Suggest ways to split a block, most confident first.

        Only strategies that support the block's type and would yield at
        least two parts are suggested. Nothing is modified.

        Args:
            source_block: The block to analyse

        Returns:
            Suggestions sorted by confidence, highest first
        """
        block_type = source_block.type
        text = extract_text(source_block)
        suggestions: List[SplitSuggestion] = []

        if self.is_strategy_supported_for_type(SplitStrategy.LIST_ITEM_SPLIT.value, block_type):
            items = parse_list_items(source_block)
            if len(items) > 1:
                suggestions.append(SplitSuggestion(
                    strategy=SplitStrategy.LIST_ITEM_SPLIT.value,
                    parts_count=len(items),
                    confidence=0.95,
                    description=f"Split {len(items)} items into separate blocks"
                ))

        if self.is_strategy_supported_for_type(SplitStrategy.PARAGRAPH_SPLIT.value, block_type):
            paragraphs = split_into_paragraphs(text)
            if len(paragraphs) > 1:
                suggestions.append(SplitSuggestion(
                    strategy=SplitStrategy.PARAGRAPH_SPLIT.value,
                    parts_count=len(paragraphs),
                    confidence=0.9,
                    description=f"Split into {len(paragraphs)} paragraphs"
                ))

        if self.is_strategy_supported_for_type(SplitStrategy.SENTENCE_SPLIT.value, block_type):
            sentences = split_into_sentences(text)
            if len(sentences) > 1:
                suggestions.append(SplitSuggestion(
                    strategy=SplitStrategy.SENTENCE_SPLIT.value,
                    parts_count=len(sentences),
                    confidence=0.8,
                    description=f"Split into {len(sentences)} sentences"
                ))

        if self.smart_splitting and self.is_strategy_supported_for_type(SplitStrategy.SMART_SPLIT.value, block_type):
            points = self.find_smart_split_points(text)
            parts = self.partition(text, points) if points else []
            if len(parts) > 1:
                suggestions.append(SplitSuggestion(
                    strategy=SplitStrategy.SMART_SPLIT.value,
                    parts_count=len(parts),
                    confidence=0.7,
                    description="Split at detected break points"
                ))

        return sorted(suggestions, key=lambda s: -s.confidence)
