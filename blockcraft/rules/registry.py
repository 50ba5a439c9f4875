"""
Rule registries for Blockcraft.

This module defines the declarative rule tables that decide which
transformation strategy applies to a given combination of source and
target block types. Each merger or converter owns its own registry
instance, so rule resolution never depends on shared mutable state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Union

from ..models.blocks import (
    ALL_BLOCK_TYPES,
    HEADING_TYPES,
    LIST_TYPES,
    BlockType,
    all_types_except,
)


class MergeStrategy(str, Enum):
    """Every algorithm a merge rule can name."""

    CONTENT_CONCATENATE = "content_concatenate"
    APPEND_AS_ITEM = "append_as_item"
    MERGE_ITEMS_OR_CONVERT = "merge_items_or_convert"
    LEVEL_UNIFY_OR_MERGE = "level_unify_or_merge"
    EXTRACT_TEXT_AND_MERGE = "extract_text_and_merge"
    EXTRACT_LIST_CONTENT = "extract_list_content"
    CREATE_COLUMN_GROUP = "create_column_group"
    WRAP_IN_TOGGLE = "wrap_in_toggle"
    WRAP_IN_CODE = "wrap_in_code"
    WRAP_IN_QUOTE = "wrap_in_quote"
    LIST_TO_TOGGLE = "list_to_toggle"
    HEADING_TO_TOGGLE = "heading_to_toggle"
    MERGE_TOGGLE_CONTENT = "merge_toggle_content"
    MERGE_CODE_CONTENT = "merge_code_content"
    ADD_TO_GALLERY = "add_to_gallery"
    MERGE_FILE_LIST = "merge_file_list"
    ADD_TO_COLUMN = "add_to_column"
    UNIVERSAL_CONTENT_TRANSFER = "universal_content_transfer"

    def __str__(self) -> str:
        return self.value


class ConversionStrategy(str, Enum):
    """Every algorithm a conversion rule can name."""

    PRESERVE_CONTENT = "preserve_content"
    CONVERT_TO_LIST_ITEM = "convert_to_list_item"
    EXTRACT_LIST_CONTENT = "extract_list_content"
    CONVERT_LIST_TYPE = "convert_list_type"
    CREATE_COLUMN_LAYOUT = "create_column_layout"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TransformRule:
    """
    A declarative record of which source/target types a strategy handles.
    """
    name: str
    source_types: FrozenSet[BlockType]
    target_types: FrozenSet[BlockType]
    strategy: Union[MergeStrategy, ConversionStrategy, str]
    description: str = ""
    priority: int = 0
    min_source_count: Optional[int] = None

    @property
    def is_universal_source(self) -> bool:
        return self.source_types >= ALL_BLOCK_TYPES

    @property
    def is_universal_target(self) -> bool:
        return self.target_types >= ALL_BLOCK_TYPES

    @property
    def is_universal(self) -> bool:
        return self.is_universal_source and self.is_universal_target

    def accepts_sources(self, source_types: Iterable[BlockType]) -> bool:
        """True when every source type is contained in this rule's source set."""
        if self.is_universal_source:
            return True
        return all(source_type in self.source_types for source_type in source_types)

    def accepts_target(self, target_type: BlockType) -> bool:
        if self.is_universal_target:
            return True
        return target_type in self.target_types


def _types(*types: BlockType) -> FrozenSet[BlockType]:
    return frozenset(types)


class RuleRegistry:
    """
    Ordered registry of transformation rules.
    """

    def __init__(self, rules: Optional[Iterable[TransformRule]] = None):
        """
        Initialize the registry.

        Args:
            rules: Explicit rules to register instead of the defaults
        """
        self._rules: Dict[str, TransformRule] = {}
        if rules is None:
            self._register_default_rules()
        else:
            for rule in rules:
                self.register_rule(rule)

    def _register_default_rules(self) -> None:
        """Register the default rules. Subclasses fill their own table."""

    def register_rule(self, rule: TransformRule) -> None:
        """
        Register a rule, replacing any rule with the same name in place.

        Args:
            rule: The rule to register
        """
        self._rules[rule.name] = rule

    def get_rule(self, name: str) -> Optional[TransformRule]:
        """
        Get a rule by name.

        Args:
            name: The name of the rule

        Returns:
            The rule, or None if not found
        """
        return self._rules.get(name)

    def list_rules(self) -> List[str]:
        """
        Get the names of all registered rules in table order.

        Returns:
            List of rule names
        """
        return list(self._rules.keys())

    def rules(self) -> List[TransformRule]:
        """All rules in table order."""
        return list(self._rules.values())

    def sorted_rules(self) -> List[TransformRule]:
        """All rules by priority, highest first; ties keep table order."""
        return sorted(self._rules.values(), key=lambda rule: -rule.priority)

    def get_rules_by_strategy(self, strategy: Union[str, Enum]) -> List[str]:
        """
        Get the rules that use a specific strategy.

        Args:
            strategy: Strategy enum member or its string value

        Returns:
            List of rule names using the strategy
        """
        wanted = getattr(strategy, "value", strategy)
        return [
            name for name, rule in self._rules.items()
            if getattr(rule.strategy, "value", rule.strategy) == wanted
        ]

    def __len__(self) -> int:
        return len(self._rules)


class MergeRuleRegistry(RuleRegistry):
    """
    The merge rule table, from the most specific pairings down to the
    universal fallback.
    """

    FALLBACK_RULE = "ANY_TO_ANY"
    COLUMN_GROUP_RULE = "MULTI_TO_COLUMN_GROUP"

    def _register_default_rules(self) -> None:
        text = _types(BlockType.TEXT)

        # Text family
        self.register_rule(TransformRule(
            name="TEXT_TO_TEXT",
            source_types=text,
            target_types=text,
            strategy=MergeStrategy.CONTENT_CONCATENATE,
            description="Concatenate text blocks",
            priority=10
        ))
        self.register_rule(TransformRule(
            name="TEXT_TO_LIST",
            source_types=text,
            target_types=LIST_TYPES,
            strategy=MergeStrategy.APPEND_AS_ITEM,
            description="Append text as list items"
        ))
        self.register_rule(TransformRule(
            name="TEXT_TO_TOGGLE",
            source_types=text,
            target_types=_types(BlockType.TOGGLE),
            strategy=MergeStrategy.WRAP_IN_TOGGLE,
            description="Wrap text in a toggle"
        ))
        self.register_rule(TransformRule(
            name="TEXT_TO_CODE",
            source_types=text,
            target_types=_types(BlockType.CODE),
            strategy=MergeStrategy.WRAP_IN_CODE,
            description="Turn text into code"
        ))
        self.register_rule(TransformRule(
            name="TEXT_TO_QUOTE",
            source_types=text,
            target_types=_types(BlockType.QUOTE),
            strategy=MergeStrategy.WRAP_IN_QUOTE,
            description="Turn text into a quote"
        ))

        # List family
        self.register_rule(TransformRule(
            name="LIST_TO_LIST",
            source_types=LIST_TYPES,
            target_types=LIST_TYPES,
            strategy=MergeStrategy.MERGE_ITEMS_OR_CONVERT,
            description="Merge list items, converting the list type if needed"
        ))
        self.register_rule(TransformRule(
            name="LIST_TO_TOGGLE",
            source_types=LIST_TYPES,
            target_types=_types(BlockType.TOGGLE),
            strategy=MergeStrategy.LIST_TO_TOGGLE,
            description="Turn list items into a toggle"
        ))
        self.register_rule(TransformRule(
            name="LIST_TO_TEXT",
            source_types=LIST_TYPES,
            target_types=text,
            strategy=MergeStrategy.EXTRACT_LIST_CONTENT,
            description="Extract list items as text"
        ))

        # Heading family
        self.register_rule(TransformRule(
            name="HEADING_TO_HEADING",
            source_types=HEADING_TYPES,
            target_types=HEADING_TYPES,
            strategy=MergeStrategy.LEVEL_UNIFY_OR_MERGE,
            description="Unify heading levels or merge heading text"
        ))
        self.register_rule(TransformRule(
            name="HEADING_TO_TOGGLE",
            source_types=HEADING_TYPES,
            target_types=_types(BlockType.TOGGLE),
            strategy=MergeStrategy.HEADING_TO_TOGGLE,
            description="Use a heading as a toggle title"
        ))

        # Toggles
        self.register_rule(TransformRule(
            name="TOGGLE_TO_TOGGLE",
            source_types=_types(BlockType.TOGGLE),
            target_types=_types(BlockType.TOGGLE),
            strategy=MergeStrategy.MERGE_TOGGLE_CONTENT,
            description="Merge toggle children"
        ))
        self.register_rule(TransformRule(
            name="ANY_TO_TOGGLE",
            source_types=all_types_except(BlockType.TOGGLE),
            target_types=_types(BlockType.TOGGLE),
            strategy=MergeStrategy.WRAP_IN_TOGGLE,
            description="Wrap any block in a toggle"
        ))

        # Code and quotes
        self.register_rule(TransformRule(
            name="CODE_TO_CODE",
            source_types=_types(BlockType.CODE),
            target_types=_types(BlockType.CODE),
            strategy=MergeStrategy.MERGE_CODE_CONTENT,
            description="Merge code blocks",
            priority=10
        ))
        self.register_rule(TransformRule(
            name="QUOTE_TO_QUOTE",
            source_types=_types(BlockType.QUOTE),
            target_types=_types(BlockType.QUOTE),
            strategy=MergeStrategy.CONTENT_CONCATENATE,
            description="Concatenate quotes",
            priority=10
        ))

        # Media
        self.register_rule(TransformRule(
            name="IMAGE_TO_GALLERY",
            source_types=_types(BlockType.IMAGE),
            target_types=_types(BlockType.GALLERY),
            strategy=MergeStrategy.ADD_TO_GALLERY,
            description="Add images to a gallery"
        ))
        self.register_rule(TransformRule(
            name="FILE_TO_FILE",
            source_types=_types(BlockType.FILE),
            target_types=_types(BlockType.FILE),
            strategy=MergeStrategy.MERGE_FILE_LIST,
            description="Merge file lists"
        ))

        # Catch-alls for specific targets
        self.register_rule(TransformRule(
            name="ANY_TO_TEXT",
            source_types=all_types_except(BlockType.TEXT),
            target_types=text,
            strategy=MergeStrategy.EXTRACT_TEXT_AND_MERGE,
            description="Extract text from any block and merge it"
        ))
        self.register_rule(TransformRule(
            name="ANY_TO_COLUMN",
            source_types=all_types_except(BlockType.COLUMN),
            target_types=_types(BlockType.COLUMN),
            strategy=MergeStrategy.ADD_TO_COLUMN,
            description="Add blocks to a column"
        ))

        # Column groups
        self.register_rule(TransformRule(
            name=self.COLUMN_GROUP_RULE,
            source_types=ALL_BLOCK_TYPES,
            target_types=ALL_BLOCK_TYPES,
            strategy=MergeStrategy.CREATE_COLUMN_GROUP,
            description="Group the selected blocks into columns",
            min_source_count=2
        ))

        # Fallback, always tried last
        self.register_rule(TransformRule(
            name=self.FALLBACK_RULE,
            source_types=ALL_BLOCK_TYPES,
            target_types=ALL_BLOCK_TYPES,
            strategy=MergeStrategy.UNIVERSAL_CONTENT_TRANSFER,
            description="Move content into the target, adapting its format",
            priority=-1
        ))


class ConversionRuleRegistry(RuleRegistry):
    """
    The conversion rule table. Conversions take the first matching rule in
    table order; priorities are not used.
    """

    def _register_default_rules(self) -> None:
        text = _types(BlockType.TEXT)
        quote = _types(BlockType.QUOTE)

        self.register_rule(TransformRule(
            name="TEXT_TO_HEADING",
            source_types=text,
            target_types=HEADING_TYPES,
            strategy=ConversionStrategy.PRESERVE_CONTENT,
            description="Convert text to a heading"
        ))
        self.register_rule(TransformRule(
            name="HEADING_TO_TEXT",
            source_types=HEADING_TYPES,
            target_types=text,
            strategy=ConversionStrategy.PRESERVE_CONTENT,
            description="Convert a heading to text"
        ))
        self.register_rule(TransformRule(
            name="HEADING_TO_HEADING",
            source_types=HEADING_TYPES,
            target_types=HEADING_TYPES,
            strategy=ConversionStrategy.PRESERVE_CONTENT,
            description="Change heading level"
        ))
        self.register_rule(TransformRule(
            name="TEXT_TO_LIST",
            source_types=text,
            target_types=LIST_TYPES,
            strategy=ConversionStrategy.CONVERT_TO_LIST_ITEM,
            description="Convert text to a list"
        ))
        self.register_rule(TransformRule(
            name="LIST_TO_TEXT",
            source_types=LIST_TYPES,
            target_types=text,
            strategy=ConversionStrategy.EXTRACT_LIST_CONTENT,
            description="Convert a list to text"
        ))
        self.register_rule(TransformRule(
            name="LIST_TO_LIST",
            source_types=LIST_TYPES,
            target_types=LIST_TYPES,
            strategy=ConversionStrategy.CONVERT_LIST_TYPE,
            description="Change list type"
        ))
        self.register_rule(TransformRule(
            name="TEXT_TO_QUOTE",
            source_types=text,
            target_types=quote,
            strategy=ConversionStrategy.PRESERVE_CONTENT,
            description="Convert text to a quote"
        ))
        self.register_rule(TransformRule(
            name="QUOTE_TO_TEXT",
            source_types=quote,
            target_types=text,
            strategy=ConversionStrategy.PRESERVE_CONTENT,
            description="Convert a quote to text"
        ))
        self.register_rule(TransformRule(
            name="MULTI_TO_COLUMN",
            source_types=text | quote | HEADING_TYPES,
            target_types=_types(BlockType.COLUMN),
            strategy=ConversionStrategy.CREATE_COLUMN_LAYOUT,
            description="Lay blocks out as columns"
        ))
