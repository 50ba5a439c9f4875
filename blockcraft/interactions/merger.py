"""
Block merging for Blockcraft.

This module merges one or more source blocks into a target block. The
merge rule table decides which strategy applies to a combination of
source and target types; each strategy describes its effect as an
ordered list of Change records.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..config import config
from ..content import (
    adapt_content_to_block_type,
    create_content_data,
    extract_text,
    generate_block_id,
    list_text,
    non_empty,
    parse_lines_as_items,
    parse_list_items,
    render_list,
)
from ..errors import InteractionError, StrategyDefectError, ValidationError
from ..models.blocks import (
    LIST_TYPES,
    Block,
    BlockType,
    FileEntry,
    GalleryImage,
    ListItem,
    NestedBlock,
    dump_entries,
)
from ..models.changes import Change, ChangeAction, TransformResult, ValidationResult
from ..models.interactions import InteractionOptions, MergeSuggestion
from ..rules.registry import MergeRuleRegistry, MergeStrategy, TransformRule

StrategyOutput = Tuple[Dict[str, Any], List[Change]]

_PREVIEW_LENGTH = 100


def _type_names(blocks: Sequence[Block]) -> str:
    return ", ".join(block.type.value for block in blocks) or "none"


def _plain_text(block: Block) -> str:
    """Block text with list markers removed."""
    if block.type in LIST_TYPES:
        return list_text(block)
    return extract_text(block)


def _delete_all(blocks: Sequence[Block]) -> List[Change]:
    return [Change.delete(block.id) for block in blocks]


class BlockMerger:
    """
    Merges source blocks into a target block.
    """

    def __init__(self, rule_registry: Optional[MergeRuleRegistry] = None,
                 max_merge_items: Optional[int] = None, separator: Optional[str] = None,
                 default_code_language: Optional[str] = None):
        """
        Initialize the merger.

        Args:
            rule_registry: Merge rules to use (defaults to the standard table)
            max_merge_items: Largest number of source blocks per merge (defaults to config value)
            separator: Default separator for text concatenation (defaults to config value)
            default_code_language: Language for code blocks that have none (defaults to config value)
        """
        self.rules = rule_registry if rule_registry is not None else MergeRuleRegistry()
        self.max_merge_items = max_merge_items if max_merge_items is not None else config.max_merge_items
        self.separator = separator if separator is not None else config.merge_separator
        self.default_code_language = default_code_language or config.default_code_language
        self.debug_mode = bool(config.get("merger.debug_mode", False))

        self._handlers: Dict[MergeStrategy, Callable[..., StrategyOutput]] = {
            MergeStrategy.CONTENT_CONCATENATE: self._concatenate_content,
            MergeStrategy.APPEND_AS_ITEM: self._append_as_item,
            MergeStrategy.MERGE_ITEMS_OR_CONVERT: self._merge_list_items,
            MergeStrategy.LEVEL_UNIFY_OR_MERGE: self._unify_heading_level,
            MergeStrategy.EXTRACT_TEXT_AND_MERGE: self._extract_and_merge_text,
            MergeStrategy.EXTRACT_LIST_CONTENT: self._extract_list_content,
            MergeStrategy.CREATE_COLUMN_GROUP: self._create_column_group,
            MergeStrategy.WRAP_IN_TOGGLE: self._wrap_in_toggle,
            MergeStrategy.WRAP_IN_CODE: self._wrap_in_code,
            MergeStrategy.WRAP_IN_QUOTE: self._wrap_in_quote,
            MergeStrategy.LIST_TO_TOGGLE: self._list_to_toggle,
            MergeStrategy.HEADING_TO_TOGGLE: self._heading_to_toggle,
            MergeStrategy.MERGE_TOGGLE_CONTENT: self._merge_toggle_content,
            MergeStrategy.MERGE_CODE_CONTENT: self._merge_code_content,
            MergeStrategy.ADD_TO_GALLERY: self._add_to_gallery,
            MergeStrategy.MERGE_FILE_LIST: self._merge_file_list,
            MergeStrategy.ADD_TO_COLUMN: self._add_to_column,
            MergeStrategy.UNIVERSAL_CONTENT_TRANSFER: self._universal_content_transfer,
        }
        missing = set(MergeStrategy) - set(self._handlers)
        if missing:
            raise StrategyDefectError("merge", ", ".join(sorted(s.value for s in missing)))

    def merge(self, source_blocks: Sequence[Block], target_block: Optional[Block],
              options: Union[InteractionOptions, Dict[str, Any], None] = None) -> TransformResult:
        """
        Merge the source blocks into the target block.

        A source block with the target's id is never consumed.

        Args:
            source_blocks: Blocks to merge
            target_block: The block that receives the content
            options: Merge options (separator, title, language, author, strategy, ...)

        Returns:
            TransformResult describing the changes; never raises
        """
        if target_block is None:
            return TransformResult.failure("Target block is required for merge operation")

        sources = [block for block in source_blocks if block.id != target_block.id]
        source_types = [block.type for block in sources]
        target_type = target_block.type

        if not sources:
            return TransformResult.failure(
                "At least one source block other than the target is required",
                target_type=target_type
            )

        try:
            opts = InteractionOptions.coerce(options)

            rule = self.find_merge_rule(sources, target_block)
            if not rule:
                return TransformResult.failure(
                    self._no_rule_message(sources, target_block),
                    source_types=source_types,
                    target_type=target_type
                )

            handler = self._handler_for(rule)
            data, changes = handler(sources, target_block, opts)

            return TransformResult(
                success=True,
                strategy=str(rule.strategy),
                rule=rule.description,
                data=data,
                changes=changes,
                source_types=source_types,
                target_type=target_type
            )

        except InteractionError as e:
            logging.warning(f"Merge into block {target_block.id} failed: {e}")
            return TransformResult.failure(str(e), source_types=source_types, target_type=target_type)
        except Exception as e:
            logging.error(f"Unexpected error merging into block {target_block.id}: {e}", exc_info=True)
            return TransformResult.failure(str(e), source_types=source_types, target_type=target_type)

    def _handler_for(self, rule: TransformRule) -> Callable[..., StrategyOutput]:
        try:
            return self._handlers[MergeStrategy(rule.strategy)]
        except (KeyError, ValueError):
            raise StrategyDefectError("merge", rule.strategy)

    @staticmethod
    def _no_rule_message(source_blocks: Sequence[Block], target_block: Block) -> str:
        return (f"No compatible merge rule found "
                f"(sources: {_type_names(source_blocks)}; target: {target_block.type.value})")

    # ===== Rule resolution =====

    def find_merge_rule(self, source_blocks: Sequence[Block],
                        target_block: Block) -> Optional[TransformRule]:
        """
        Find the merge rule for a set of sources and a target.

        Rules are tried by priority, highest first, ties in table order. A
        rule matches when its minimum source count is met, it accepts every
        source type and the target type, and no special exclusion applies.
        The result depends only on the source types, the target type and
        the number of sources.

        Args:
            source_blocks: Blocks to merge
            target_block: The block that receives the content

        Returns:
            The first matching rule, or None
        """
        source_types = [block.type for block in source_blocks]
        target_type = target_block.type

        for rule in self.rules.sorted_rules():
            if rule.min_source_count and len(source_blocks) < rule.min_source_count:
                continue
            if not rule.accepts_sources(source_types):
                continue
            if not rule.accepts_target(target_type):
                continue
            if not self._check_special_conditions(rule, source_blocks, target_block):
                continue

            message = f"Merge rule {rule.name} selected for {[t.value for t in source_types]} -> {target_type.value}"
            if self.debug_mode:
                logging.info(message)
            else:
                logging.debug(message)
            return rule

        logging.debug(f"No merge rule for {[t.value for t in source_types]} -> {target_type.value}")
        return None

    def _check_special_conditions(self, rule: TransformRule, source_blocks: Sequence[Block],
                                  target_block: Block) -> bool:
        """Exclusions that the type sets alone cannot express."""
        if rule.name == MergeRuleRegistry.COLUMN_GROUP_RULE:
            # Grouping a block with one block of its own type is not a layout.
            if len(source_blocks) == 1 and source_blocks[0].type == target_block.type:
                return False

        if rule.name == MergeRuleRegistry.FALLBACK_RULE:
            source_types = [block.type for block in source_blocks]
            for other in self.rules.rules():
                if other.name == rule.name or other.is_universal:
                    continue
                if other.accepts_sources(source_types) and other.accepts_target(target_block.type):
                    return False

        return True

    # ===== Validation and suggestions =====

    def validate_merge(self, source_blocks: Sequence[Block],
                       target_block: Optional[Block]) -> ValidationResult:
        """
        Check whether a merge can be carried out.

        Args:
            source_blocks: Blocks to merge
            target_block: The block that receives the content

        Returns:
            ValidationResult naming the matching rule, or the reason it cannot run
        """
        if target_block is None:
            return ValidationResult.invalid("Target block is required for merge operation")

        sources = [block for block in source_blocks if block.id != target_block.id]
        if not sources:
            return ValidationResult.invalid(
                "At least one source block other than the target is required",
                target_type=target_block.type
            )

        if len(sources) > self.max_merge_items:
            return ValidationResult.invalid(f"Too many blocks to merge (max: {self.max_merge_items})")

        source_types = [block.type for block in sources]
        rule = self.find_merge_rule(sources, target_block)
        if not rule:
            return ValidationResult.invalid(
                self._no_rule_message(sources, target_block),
                source_types=source_types,
                target_type=target_block.type
            )

        return ValidationResult.ok(
            rule=rule.description,
            strategy=str(rule.strategy),
            source_types=source_types,
            target_type=target_block.type
        )

    def suggest_merge(self, source_blocks: Sequence[Block],
                      target_block: Block) -> Optional[MergeSuggestion]:
        """
        Describe what merging the sources into the target would do.

        Returns:
            A MergeSuggestion with a short preview of the target's new text,
            or None when no rule applies
        """
        sources = [block for block in source_blocks if block.id != target_block.id]
        rule = self.find_merge_rule(sources, target_block) if sources else None
        if not rule:
            return None

        preview = rule.description
        result = self.merge(sources, target_block)
        for change in result.changes:
            if change.action == ChangeAction.UPDATE and change.block_id == target_block.id and change.new_content:
                preview = change.new_content[:_PREVIEW_LENGTH]
                break

        return MergeSuggestion(
            strategy=str(rule.strategy),
            rule=rule.name,
            description=rule.description,
            preview=preview
        )

    # ===== Text strategies =====

    def _concatenate_content(self, source_blocks: Sequence[Block], target_block: Block,
                             options: InteractionOptions, separator: Optional[str] = None) -> StrategyOutput:
        """Join the target's and the sources' text into the target."""
        if separator is None:
            separator = options.separator if options.separator is not None else self.separator

        target_text = extract_text(target_block)
        contents = non_empty([target_text] + [extract_text(block) for block in source_blocks])
        merged = separator.join(contents)

        changes = [Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_content=target_block.content,
            new_content=merged,
            content_data=create_content_data(merged)
        )]
        changes.extend(_delete_all(source_blocks))

        return {
            "mergedContent": merged,
            "originalLength": len(target_text),
            "newLength": len(merged),
            "blocksMerged": len(source_blocks)
        }, changes

    def _extract_and_merge_text(self, source_blocks: Sequence[Block], target_block: Block,
                                options: InteractionOptions) -> StrategyOutput:
        """Reduce every source to plain text, then concatenate."""
        text_blocks = [
            Block(id=block.id, type=BlockType.TEXT, content=_plain_text(block))
            for block in source_blocks
        ]
        return self._concatenate_content(text_blocks, target_block, options)

    def _extract_list_content(self, source_blocks: Sequence[Block], target_block: Block,
                              options: InteractionOptions) -> StrategyOutput:
        text_blocks = [
            Block(id=block.id, type=BlockType.TEXT, content=list_text(block))
            for block in source_blocks
        ]
        separator = options.separator if options.separator is not None else "\n"
        return self._concatenate_content(text_blocks, target_block, options, separator=separator)

    def _unify_heading_level(self, source_blocks: Sequence[Block], target_block: Block,
                             options: InteractionOptions) -> StrategyOutput:
        """Retype the sources to the target's level, or concatenate by default."""
        if options.strategy != "unify_level":
            return self._concatenate_content(source_blocks, target_block, options)

        changes = [
            Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_type=block.type,
                new_type=target_block.type
            )
            for block in source_blocks
        ]
        return {"levelUnified": True, "level": target_block.type.value}, changes

    # ===== List strategies =====

    def _append_as_item(self, source_blocks: Sequence[Block], target_block: Block,
                        options: InteractionOptions) -> StrategyOutput:
        """
        Append the sources to the target list as items.

        List sources contribute each of their items, any other source
        contributes its whole text as one item. Every source is deleted.
        """
        list_type = target_block.type
        items = parse_list_items(target_block)
        new_items: List[ListItem] = []

        for block in source_blocks:
            if block.type in LIST_TYPES:
                source_items = parse_list_items(block)
            else:
                source_items = [ListItem(content=extract_text(block))]

            for source_item in source_items:
                content = source_item.content.strip()
                if not content:
                    continue
                new_items.append(ListItem(
                    id=generate_block_id("item"),
                    content=content,
                    checked=bool(source_item.checked) if list_type == BlockType.CHECK_LIST else None
                ))

        all_items = items + new_items
        list_content = render_list(list_type, all_items)
        metadata = copy.deepcopy(target_block.metadata)
        metadata["items"] = dump_entries(all_items)

        changes = [Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_content=target_block.content,
            new_content=list_content,
            content_data=create_content_data(list_content),
            old_metadata=copy.deepcopy(target_block.metadata),
            metadata=metadata
        )]
        changes.extend(_delete_all(source_blocks))

        return {
            "itemsAdded": len(new_items),
            "totalItems": len(all_items),
            "listType": list_type.value,
            "newItems": dump_entries(new_items)
        }, changes

    def _merge_list_items(self, source_blocks: Sequence[Block], target_block: Block,
                          options: InteractionOptions) -> StrategyOutput:
        """Append list items, re-marking items of other list types for the target's type."""
        data, changes = self._append_as_item(source_blocks, target_block, options)
        converted = sorted({block.type.value for block in source_blocks if block.type != target_block.type})
        data["typeConverted"] = bool(converted)
        if converted:
            data["convertedFrom"] = converted
        return data, changes

    # ===== Wrapper strategies =====

    @staticmethod
    def _toggle_children(target_block: Block, new_title: str) -> List[Dict[str, Any]]:
        """
        The target's existing children, preceded by its current title when
        that title is being replaced.
        """
        children: List[Dict[str, Any]] = []
        old_title = extract_text(target_block).strip()
        if old_title and old_title != new_title:
            children.extend(dump_entries([NestedBlock(type=BlockType.TEXT, content=old_title)]))
        children.extend(copy.deepcopy(target_block.metadata.get("toggleContent") or []))
        return children

    def _toggle_update(self, target_block: Block, title: str, children: List[Dict[str, Any]],
                       is_expanded: bool, **extra_metadata: Any) -> Change:
        metadata = copy.deepcopy(target_block.metadata)
        metadata.update({"isExpanded": is_expanded, "toggleContent": children})
        metadata.update(extra_metadata)
        return Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_type=target_block.type,
            new_type=BlockType.TOGGLE,
            old_content=target_block.content,
            new_content=title,
            content_data=create_content_data(title),
            old_metadata=copy.deepcopy(target_block.metadata),
            metadata=metadata
        )

    def _wrap_in_toggle(self, source_blocks: Sequence[Block], target_block: Block,
                        options: InteractionOptions) -> StrategyOutput:
        """Nest the sources inside the target toggle."""
        existing_title = extract_text(target_block).strip()
        first_text = extract_text(source_blocks[0]).strip() if source_blocks else ""
        title = options.title or existing_title or first_text or "Toggle"

        children = self._toggle_children(target_block, title)
        children.extend(dump_entries([NestedBlock.from_block(block) for block in source_blocks]))

        changes = [self._toggle_update(target_block, title, children, is_expanded=True)]
        changes.extend(_delete_all(source_blocks))

        return {
            "toggleTitle": title,
            "itemsWrapped": len(source_blocks),
            "newType": BlockType.TOGGLE.value
        }, changes

    def _list_to_toggle(self, source_blocks: Sequence[Block], target_block: Block,
                        options: InteractionOptions) -> StrategyOutput:
        """The first list item titles the toggle; the other items become its children."""
        items = [item for block in source_blocks for item in parse_list_items(block)]
        title = items[0].content if items else "Toggle"

        children = self._toggle_children(target_block, title)
        children.extend(dump_entries([
            NestedBlock(type=BlockType.TEXT, content=item.content) for item in items[1:]
        ]))

        changes = [self._toggle_update(target_block, title, children, is_expanded=False)]
        changes.extend(_delete_all(source_blocks))

        return {
            "toggleTitle": title,
            "itemsConverted": len(items),
            "originalListType": source_blocks[0].type.value
        }, changes

    def _heading_to_toggle(self, source_blocks: Sequence[Block], target_block: Block,
                           options: InteractionOptions) -> StrategyOutput:
        """The first heading titles the toggle; further headings become its children."""
        first_heading = source_blocks[0]
        title = extract_text(first_heading).strip() or "Toggle"

        children = self._toggle_children(target_block, title)
        children.extend(dump_entries([NestedBlock.from_block(block) for block in source_blocks[1:]]))

        changes = [self._toggle_update(
            target_block, title, children, is_expanded=False,
            originalHeadingLevel=first_heading.type.value
        )]
        changes.extend(_delete_all(source_blocks))

        return {
            "toggleTitle": title,
            "originalType": first_heading.type.value
        }, changes

    def _wrap_in_code(self, source_blocks: Sequence[Block], target_block: Block,
                      options: InteractionOptions) -> StrategyOutput:
        code = "\n".join(non_empty([extract_text(target_block)] + [_plain_text(b) for b in source_blocks]))
        language = options.language or target_block.metadata.get("language") or self.default_code_language

        metadata = copy.deepcopy(target_block.metadata)
        metadata.update({
            "language": language,
            "showLineNumbers": options.show_line_numbers is not False
        })

        changes = [Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_type=target_block.type,
            new_type=BlockType.CODE,
            old_content=target_block.content,
            new_content=code,
            content_data=create_content_data(code),
            old_metadata=copy.deepcopy(target_block.metadata),
            metadata=metadata
        )]
        changes.extend(_delete_all(source_blocks))

        return {
            "language": language,
            "linesCount": len(code.split("\n")),
            "itemsWrapped": len(source_blocks)
        }, changes

    def _wrap_in_quote(self, source_blocks: Sequence[Block], target_block: Block,
                       options: InteractionOptions) -> StrategyOutput:
        quote = "\n\n".join(non_empty([extract_text(target_block)] + [extract_text(b) for b in source_blocks]))

        metadata = copy.deepcopy(target_block.metadata)
        author = options.author or metadata.get("author")
        source = options.source or metadata.get("source")
        if author:
            metadata["author"] = author
        if source:
            metadata["source"] = source

        changes = [Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_type=target_block.type,
            new_type=BlockType.QUOTE,
            old_content=target_block.content,
            new_content=quote,
            content_data=create_content_data(quote),
            old_metadata=copy.deepcopy(target_block.metadata),
            metadata=metadata
        )]
        changes.extend(_delete_all(source_blocks))

        return {
            "quoteLength": len(quote),
            "itemsWrapped": len(source_blocks)
        }, changes

    # ===== Container and media strategies =====

    def _metadata_append(self, target_block: Block, key: str,
                         entries: List[Dict[str, Any]]) -> Tuple[Change, int]:
        """Update that appends ``entries`` to the list stored under ``metadata[key]``."""
        existing = copy.deepcopy(target_block.metadata.get(key) or [])
        metadata = copy.deepcopy(target_block.metadata)
        metadata[key] = existing + entries
        change = Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_metadata=copy.deepcopy(target_block.metadata),
            metadata=metadata
        )
        return change, len(existing)

    def _merge_toggle_content(self, source_blocks: Sequence[Block], target_block: Block,
                              options: InteractionOptions) -> StrategyOutput:
        """Move the sources' children, and their titles, into the target toggle."""
        new_content: List[Dict[str, Any]] = []
        for block in source_blocks:
            children = block.metadata.get("toggleContent")
            if children:
                title = extract_text(block).strip()
                if title:
                    new_content.extend(dump_entries([NestedBlock(type=BlockType.TEXT, content=title)]))
                new_content.extend(copy.deepcopy(children))
            else:
                new_content.extend(dump_entries([NestedBlock.from_block(block)]))

        change, existing_count = self._metadata_append(target_block, "toggleContent", new_content)
        changes = [change] + _delete_all(source_blocks)

        return {
            "itemsAdded": len(new_content),
            "totalItems": existing_count + len(new_content)
        }, changes

    def _merge_code_content(self, source_blocks: Sequence[Block], target_block: Block,
                            options: InteractionOptions) -> StrategyOutput:
        separator = options.separator if options.separator is not None else "\n\n"
        data, changes = self._concatenate_content(source_blocks, target_block, options, separator=separator)
        merged = data["mergedContent"]
        return {
            "mergedLength": len(merged),
            "linesCount": len(merged.split("\n")),
            "language": target_block.metadata.get("language") or self.default_code_language
        }, changes

    def _add_to_gallery(self, source_blocks: Sequence[Block], target_block: Block,
                        options: InteractionOptions) -> StrategyOutput:
        images = [
            GalleryImage(
                id=block.id,
                src=block.metadata.get("src") or extract_text(block),
                alt=block.metadata.get("alt") or "",
                caption=block.metadata.get("caption") or ""
            )
            for block in source_blocks
        ]

        change, existing_count = self._metadata_append(target_block, "images", dump_entries(images))
        changes = [change] + _delete_all(source_blocks)

        return {
            "imagesAdded": len(images),
            "totalImages": existing_count + len(images)
        }, changes

    @staticmethod
    def _file_entry(block: Block) -> FileEntry:
        return FileEntry(
            id=block.id,
            name=block.metadata.get("fileName") or extract_text(block),
            size=block.metadata.get("fileSize") or 0,
            type=block.metadata.get("fileType") or "unknown",
            url=block.metadata.get("fileUrl") or ""
        )

    def _merge_file_list(self, source_blocks: Sequence[Block], target_block: Block,
                         options: InteractionOptions) -> StrategyOutput:
        """Collect the source files into the target's file list."""
        entries: List[FileEntry] = []
        # A single-file target becomes the first entry of its own list.
        if not target_block.metadata.get("files") and target_block.metadata.get("fileName"):
            entries.append(self._file_entry(target_block))
        entries.extend(self._file_entry(block) for block in source_blocks)

        change, existing_count = self._metadata_append(target_block, "files", dump_entries(entries))
        changes = [change] + _delete_all(source_blocks)

        return {
            "filesAdded": len(source_blocks),
            "totalFiles": existing_count + len(entries)
        }, changes

    def _add_to_column(self, source_blocks: Sequence[Block], target_block: Block,
                       options: InteractionOptions) -> StrategyOutput:
        new_content = dump_entries([NestedBlock.from_block(block) for block in source_blocks])

        change, existing_count = self._metadata_append(target_block, "columnContent", new_content)
        changes = [change] + _delete_all(source_blocks)

        return {
            "itemsAdded": len(new_content),
            "totalItems": existing_count + len(new_content)
        }, changes

    def _create_column_group(self, source_blocks: Sequence[Block], target_block: Block,
                             options: InteractionOptions) -> StrategyOutput:
        """Tag the target and every source as columns of one group. Nothing is deleted."""
        all_blocks = [target_block] + list(source_blocks)
        group_id = generate_block_id("column_group")
        changes = []

        for index, block in enumerate(all_blocks):
            metadata = copy.deepcopy(block.metadata)
            metadata.update({
                "isColumnBlock": True,
                "columnIndex": index,
                "totalColumns": len(all_blocks),
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
            "columnCount": len(all_blocks),
            "groupType": "column"
        }, changes

    # ===== Fallback =====

    def _universal_content_transfer(self, source_blocks: Sequence[Block], target_block: Block,
                                    options: InteractionOptions) -> StrategyOutput:
        """
        Append the sources' text to the target, formatted for the target's type.

        Raises:
            ValidationError: If no source has any text
        """
        source_text = "\n\n".join(non_empty(_plain_text(block).strip() for block in source_blocks))
        if not source_text:
            raise ValidationError("No transferable content found")

        target_type = target_block.type
        metadata = copy.deepcopy(target_block.metadata)
        metadata["transferredFrom"] = [block.type.value for block in source_blocks]

        if target_type in LIST_TYPES:
            items = parse_list_items(target_block) + parse_lines_as_items(source_text)
            final_content = render_list(target_type, items)
            metadata["items"] = dump_entries(items)
        else:
            adapted = adapt_content_to_block_type(source_text, target_type)
            target_text = extract_text(target_block)
            final_content = f"{target_text}\n\n{adapted}" if target_text.strip() else adapted

        changes = [Change(
            action=ChangeAction.UPDATE,
            block_id=target_block.id,
            old_content=target_block.content,
            new_content=final_content,
            content_data=create_content_data(final_content),
            old_metadata=copy.deepcopy(target_block.metadata),
            metadata=metadata
        )]
        changes.extend(_delete_all(source_blocks))

        return {
            "transferredContent": source_text,
            "targetType": target_type.value,
            "sourceTypes": [block.type.value for block in source_blocks]
        }, changes
