"""
Block type conversion for Blockcraft.

This module converts one or more blocks into a different block type using
the conversion rule table: text and headings swap freely, text becomes a
list and back, lists change type, and blocks can be laid out as columns.
"""

import copy
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..config import config
from ..content import (
    create_content_data,
    extract_text,
    generate_block_id,
    parse_lines_as_items,
    parse_list_items,
    render_list,
)
from ..errors import InteractionError, StrategyDefectError
from ..models.blocks import Block, BlockType, ListItem, dump_entries
from ..models.changes import Change, ChangeAction, TransformResult, ValidationResult
from ..models.interactions import ConversionSuggestion, InteractionOptions
from ..rules.registry import ConversionRuleRegistry, ConversionStrategy, TransformRule

StrategyOutput = Tuple[Dict[str, Any], List[Change]]

# Markdown-style hints that a block's text wants a different type.
_SUGGESTION_PATTERNS = [
    (re.compile(r"^(#{1,3})\s+\S"), BlockType.HEADING1, "Markdown heading detected"),
    (re.compile(r"^[-*+]\s+\S", re.MULTILINE), BlockType.BULLET_LIST, "Bullet list detected"),
    (re.compile(r"^\d+\.\s+\S", re.MULTILINE), BlockType.NUMBERED_LIST, "Numbered list detected"),
    (re.compile(r"^- \[[ xX]\]\s+\S", re.MULTILINE), BlockType.CHECK_LIST, "Checklist detected"),
    (re.compile(r"^>\s+\S", re.MULTILINE), BlockType.QUOTE, "Quote detected"),
]

_HEADING_BY_LEVEL = {1: BlockType.HEADING1, 2: BlockType.HEADING2, 3: BlockType.HEADING3}

_DEFAULT_CONVERSIONS: Dict[BlockType, List[Tuple[BlockType, float, str]]] = {
    BlockType.TEXT: [
        (BlockType.HEADING1, 0.7, "Turn into a heading"),
        (BlockType.BULLET_LIST, 0.6, "Turn into a bullet list"),
        (BlockType.QUOTE, 0.5, "Turn into a quote"),
    ],
    BlockType.HEADING1: [
        (BlockType.TEXT, 0.8, "Turn into plain text"),
        (BlockType.HEADING2, 0.7, "Turn into heading 2"),
    ],
    BlockType.HEADING2: [
        (BlockType.TEXT, 0.8, "Turn into plain text"),
        (BlockType.HEADING1, 0.7, "Turn into heading 1"),
        (BlockType.HEADING3, 0.6, "Turn into heading 3"),
    ],
    BlockType.HEADING3: [
        (BlockType.TEXT, 0.8, "Turn into plain text"),
        (BlockType.HEADING2, 0.7, "Turn into heading 2"),
    ],
    BlockType.BULLET_LIST: [
        (BlockType.NUMBERED_LIST, 0.8, "Turn into a numbered list"),
        (BlockType.CHECK_LIST, 0.7, "Turn into a checklist"),
    ],
    BlockType.NUMBERED_LIST: [
        (BlockType.BULLET_LIST, 0.8, "Turn into a bullet list"),
        (BlockType.CHECK_LIST, 0.7, "Turn into a checklist"),
    ],
    BlockType.CHECK_LIST: [
        (BlockType.BULLET_LIST, 0.8, "Turn into a bullet list"),
        (BlockType.NUMBERED_LIST, 0.7, "Turn into a numbered list"),
    ],
    BlockType.QUOTE: [
        (BlockType.TEXT, 0.8, "Turn into plain text"),
    ],
}

# Metadata keys that only make sense on list blocks.
_LIST_ONLY_METADATA = ("items", "listType")


class BlockConverter:
    """
    Converts blocks into a different block type.
    """

    def __init__(self, rule_registry: Optional[ConversionRuleRegistry] = None,
                 max_convert_items: Optional[int] = None,
                 smart_suggestions: Optional[bool] = None):
        """
        Initialize the converter.

        Args:
            rule_registry: Conversion rules to use (defaults to the standard table)
            max_convert_items: Largest number of blocks per conversion (defaults to config value)
            smart_suggestions: Whether suggest_conversions is enabled (defaults to config value)
        """
        self.rules = rule_registry if rule_registry is not None else ConversionRuleRegistry()
        self.max_convert_items = max_convert_items if max_convert_items is not None else config.max_convert_items
        self.smart_suggestions = smart_suggestions if smart_suggestions is not None else config.smart_suggestions

        self._handlers: Dict[ConversionStrategy, Callable[..., StrategyOutput]] = {
            ConversionStrategy.PRESERVE_CONTENT: self._preserve_content,
            ConversionStrategy.CONVERT_TO_LIST_ITEM: self._convert_to_list_item,
            ConversionStrategy.EXTRACT_LIST_CONTENT: self._extract_list_content,
            ConversionStrategy.CONVERT_LIST_TYPE: self._convert_list_type,
            ConversionStrategy.CREATE_COLUMN_LAYOUT: self._create_column_layout,
        }
        missing = set(ConversionStrategy) - set(self._handlers)
        if missing:
            raise StrategyDefectError("conversion", ", ".join(sorted(s.value for s in missing)))

    def convert(self, source_blocks: Sequence[Block], target_type: Union[BlockType, str],
                options: Union[InteractionOptions, Dict[str, Any], None] = None) -> TransformResult:
        """
        Convert the source blocks to ``target_type``.

        Args:
            source_blocks: Blocks to convert
            target_type: The block type to convert to
            options: Conversion options (separator, ...)

        Returns:
            TransformResult describing the changes; never raises
        """
        source_types = [block.type for block in source_blocks]

        try:
            target = BlockType(target_type)
        except ValueError:
            return TransformResult.failure(f"Unknown block type: {target_type}", source_types=source_types)

        try:
            opts = InteractionOptions.coerce(options)

            rule = self.find_conversion_rule(source_blocks, target)
            if not rule:
                return TransformResult.failure(
                    self._no_rule_message(source_blocks, target),
                    source_types=source_types,
                    target_type=target
                )

            logging.debug(f"Converting {[t.value for t in source_types]} to {target.value} with {rule.name}")
            handler = self._handler_for(rule)
            data, changes = handler(source_blocks, target, opts)

            return TransformResult(
                success=True,
                strategy=str(rule.strategy),
                rule=rule.description,
                data=data,
                changes=changes,
                source_types=source_types,
                target_type=target
            )

        except InteractionError as e:
            logging.warning(f"Conversion to {target.value} failed: {e}")
            return TransformResult.failure(str(e), source_types=source_types, target_type=target)
        except Exception as e:
            logging.error(f"Unexpected error converting blocks to {target.value}: {e}", exc_info=True)
            return TransformResult.failure(str(e), source_types=source_types, target_type=target)

    def _handler_for(self, rule: TransformRule) -> Callable[..., StrategyOutput]:
        try:
            return self._handlers[ConversionStrategy(rule.strategy)]
        except (KeyError, ValueError):
            raise StrategyDefectError("conversion", rule.strategy)

    @staticmethod
    def _no_rule_message(source_blocks: Sequence[Block], target_type: BlockType) -> str:
        source_names = ", ".join(block.type.value for block in source_blocks) or "none"
        return f"No compatible conversion rule found (sources: {source_names}; target: {target_type.value})"

    def find_conversion_rule(self, source_blocks: Sequence[Block],
                             target_type: BlockType) -> Optional[TransformRule]:
        """
        Find the first rule accepting every source type and the target type.

        Args:
            source_blocks: Blocks to convert
            target_type: The block type to convert to

        Returns:
            The matching rule, or None
        """
        source_types = [block.type for block in source_blocks]
        for rule in self.rules.rules():
            if rule.accepts_sources(source_types) and rule.accepts_target(target_type):
                return rule
        return None

    def validate_convert(self, source_blocks: Sequence[Block],
                         target_type: Union[BlockType, str, None]) -> ValidationResult:
        """
        Check whether a conversion can be carried out.

        Args:
            source_blocks: Blocks to convert
            target_type: The block type to convert to

        Returns:
            ValidationResult naming the matching rule, or the reason it cannot run
        """
        source_types = [block.type for block in source_blocks]

        if not target_type:
            return ValidationResult.invalid("Target type is required for conversion")

        try:
            target = BlockType(target_type)
        except ValueError:
            return ValidationResult.invalid(f"Unknown block type: {target_type}", source_types=source_types)

        if not source_blocks:
            return ValidationResult.invalid("At least one source block is required")

        if len(source_blocks) > self.max_convert_items:
            return ValidationResult.invalid(f"Too many blocks to convert (max: {self.max_convert_items})")

        rule = self.find_conversion_rule(source_blocks, target)
        if not rule:
            return ValidationResult.invalid(
                self._no_rule_message(source_blocks, target),
                source_types=source_types,
                target_type=target
            )

        return ValidationResult.ok(rule=rule.description, strategy=str(rule.strategy), target_type=target)

    # ===== Strategies =====

    def _preserve_content(self, source_blocks: Sequence[Block], target_type: BlockType,
                          options: InteractionOptions) -> StrategyOutput:
        """Re-tag each block, keeping its plain text."""
        changes = []
        for block in source_blocks:
            text = extract_text(block)
            changes.append(Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_type=block.type,
                new_type=target_type,
                old_content=block.content,
                new_content=text,
                content_data=create_content_data(text)
            ))

        return {
            "blocksConverted": len(source_blocks),
            "conversions": [{"from": block.type.value, "to": target_type.value} for block in source_blocks]
        }, changes

    def _convert_to_list_item(self, source_blocks: Sequence[Block], target_type: BlockType,
                              options: InteractionOptions) -> StrategyOutput:
        """Turn each text block into a list, one item per non-blank line."""
        changes = []
        items_created = 0

        for block in source_blocks:
            items = parse_lines_as_items(extract_text(block)) or [ListItem(id="item-0", content="")]
            for item in items:
                if target_type == BlockType.CHECK_LIST:
                    item.checked = bool(item.checked)
                else:
                    item.checked = None
            items_created += len(items)

            list_content = render_list(target_type, items)
            metadata = copy.deepcopy(block.metadata)
            metadata["items"] = dump_entries(items)

            changes.append(Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_type=block.type,
                new_type=target_type,
                old_content=block.content,
                new_content=list_content,
                content_data=create_content_data(list_content),
                metadata=metadata
            ))

        return {
            "blocksConverted": len(source_blocks),
            "listType": target_type.value,
            "itemsCreated": items_created
        }, changes

    def _extract_list_content(self, source_blocks: Sequence[Block], target_type: BlockType,
                              options: InteractionOptions) -> StrategyOutput:
        """Join list items into plain text."""
        separator = options.separator if options.separator is not None else "\n"
        changes = []
        items_extracted = 0

        for block in source_blocks:
            items = parse_list_items(block)
            items_extracted += len(items)
            text = separator.join(item.content for item in items)

            metadata = {
                key: copy.deepcopy(value) for key, value in block.metadata.items()
                if key not in _LIST_ONLY_METADATA
            }

            changes.append(Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_type=block.type,
                new_type=target_type,
                old_content=block.content,
                new_content=text,
                content_data=create_content_data(text),
                metadata=metadata
            ))

        return {
            "blocksConverted": len(source_blocks),
            "itemsExtracted": items_extracted
        }, changes

    def _convert_list_type(self, source_blocks: Sequence[Block], target_type: BlockType,
                           options: InteractionOptions) -> StrategyOutput:
        """Re-render list items with the markers of another list type."""
        changes = []
        items_converted = 0

        for block in source_blocks:
            items = parse_list_items(block)
            for item in items:
                if target_type == BlockType.CHECK_LIST:
                    item.checked = bool(item.checked)
                else:
                    item.checked = None
            items_converted += len(items)

            list_content = render_list(target_type, items)
            metadata = copy.deepcopy(block.metadata)
            metadata["items"] = dump_entries(items)

            changes.append(Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_type=block.type,
                new_type=target_type,
                old_content=block.content,
                new_content=list_content,
                content_data=create_content_data(list_content),
                metadata=metadata
            ))

        return {
            "blocksConverted": len(source_blocks),
            "fromType": source_blocks[0].type.value if source_blocks else None,
            "toType": target_type.value,
            "itemsConverted": items_converted
        }, changes

    def _create_column_layout(self, source_blocks: Sequence[Block], target_type: BlockType,
                              options: InteractionOptions) -> StrategyOutput:
        """Tag every block as a member of one column group."""
        group_id = generate_block_id("column_group")
        changes = []

        for index, block in enumerate(source_blocks):
            metadata = copy.deepcopy(block.metadata)
            metadata.update({
                "isColumnBlock": True,
                "columnIndex": index,
                "totalColumns": len(source_blocks),
                "groupId": group_id
            })
            changes.append(Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_metadata=copy.deepcopy(block.metadata),
                metadata=metadata
            ))

        return {
            "groupId": group_id,
            "columnCount": len(source_blocks),
            "layoutType": "column"
        }, changes

    # ===== Suggestions =====

    def suggest_conversions(self, block: Block) -> List[ConversionSuggestion]:
        """
        Suggest type conversions for a block, most confident first.

        Markdown-style patterns found in the text score 0.9; each block type
        also has a few default suggestions. Only conversions the rule table
        can actually perform are returned, one per target type.

        Args:
            block: The block to analyse

        Returns:
            Suggestions sorted by confidence, highest first
        """
        if not self.smart_suggestions:
            return []

        text = extract_text(block)
        candidates: List[ConversionSuggestion] = []

        for pattern, target_type, reason in _SUGGESTION_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            if target_type == BlockType.HEADING1:
                target_type = _HEADING_BY_LEVEL[len(match.group(1))]
            candidates.append(ConversionSuggestion(
                target_type=target_type,
                confidence=0.9,
                reason=reason,
                preview=self.generate_conversion_preview(block, target_type)
            ))

        for target_type, confidence, reason in _DEFAULT_CONVERSIONS.get(block.type, []):
            candidates.append(ConversionSuggestion(
                target_type=target_type,
                confidence=confidence,
                reason=reason,
                preview=self.generate_conversion_preview(block, target_type)
            ))

        best: Dict[BlockType, ConversionSuggestion] = {}
        for suggestion in candidates:
            if suggestion.target_type == block.type:
                continue
            if self.find_conversion_rule([block], suggestion.target_type) is None:
                continue
            current = best.get(suggestion.target_type)
            if current is None or suggestion.confidence > current.confidence:
                best[suggestion.target_type] = suggestion

        return sorted(best.values(), key=lambda s: -s.confidence)

    def generate_conversion_preview(self, block: Block, target_type: BlockType) -> str:
        """Render a one-line preview of the block after conversion."""
        text = extract_text(block)
        previews = {
            BlockType.HEADING1: f"# {text}",
            BlockType.HEADING2: f"## {text}",
            BlockType.HEADING3: f"### {text}",
            BlockType.BULLET_LIST: f"• {text}",
            BlockType.NUMBERED_LIST: f"1. {text}",
            BlockType.CHECK_LIST: f"☐ {text}",
            BlockType.QUOTE: f"> {text}",
        }
        return previews.get(target_type, text)
