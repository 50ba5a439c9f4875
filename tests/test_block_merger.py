"""
Tests for BlockMerger.

Covers rule resolution, the merge strategies, validation and
suggestions.
"""

import unittest

import pytest

from blockcraft.interactions.merger import BlockMerger
from blockcraft.models import ALL_BLOCK_TYPES, Block, BlockType, ChangeAction
from blockcraft.rules import MergeRuleRegistry, MergeStrategy, TransformRule


def block(block_id, block_type, content="", **metadata):
    return Block(id=block_id, type=block_type, content=content, metadata=metadata)


def new_merger(**kwargs):
    settings = {"max_merge_items": 50, "separator": " ", "default_code_language": "plaintext"}
    settings.update(kwargs)
    return BlockMerger(**settings)


class TestMergeScenarios(unittest.TestCase):
    """End-to-end merges of the most common block combinations."""

    def setUp(self):
        self.merger = new_merger()

    def test_text_into_text(self):
        """Merging text into text joins the contents with the default separator."""
        result = self.merger.merge([block("a", BlockType.TEXT, "Hello")], block("t", BlockType.TEXT, "World"))

        self.assertTrue(result.success)
        self.assertEqual(result.strategy, "content_concatenate")
        self.assertEqual(len(result.changes), 2)
        update, delete = result.changes
        self.assertEqual(update.action, ChangeAction.UPDATE)
        self.assertEqual(update.block_id, "t")
        self.assertEqual(update.new_content, "World Hello")
        self.assertEqual(delete.action, ChangeAction.DELETE)
        self.assertEqual(delete.block_id, "a")

    def test_text_into_image_falls_back(self):
        """A pairing without a specific rule uses universal content transfer."""
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "Caption text")],
            block("img", BlockType.IMAGE, "photo.png", src="photo.png")
        )

        self.assertTrue(result.success)
        self.assertEqual(result.strategy, "universal_content_transfer")
        update = result.changes[0]
        self.assertEqual(update.new_content, "photo.png\n\nCaption text")
        self.assertEqual(update.metadata["transferredFrom"], ["text"])
        self.assertEqual(update.metadata["src"], "photo.png")
        self.assertEqual(result.deleted_ids(), ["a"])

    def test_custom_separator(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "b"), block("c", BlockType.TEXT, "c")],
            block("t", BlockType.TEXT, "a"),
            {"separator": ", "}
        )

        self.assertEqual(result.changes[0].new_content, "a, b, c")
        self.assertEqual(result.deleted_ids(), ["a", "c"])

    def test_target_never_consumed(self):
        target = block("t", BlockType.TEXT, "World")

        result = self.merger.merge([target, block("a", BlockType.TEXT, "Hello")], target)

        self.assertTrue(result.success)
        self.assertEqual(result.deleted_ids(), ["a"])

    def test_merge_into_itself_fails(self):
        target = block("t", BlockType.TEXT, "World")

        result = self.merger.merge([target], target)

        self.assertFalse(result.success)
        self.assertEqual(result.changes, [])

    def test_target_required(self):
        result = self.merger.merge([block("a", BlockType.TEXT, "x")], None)

        self.assertFalse(result.success)
        self.assertEqual(result.error, "Target block is required for merge operation")

    def test_inputs_not_mutated(self):
        target = block("l", BlockType.BULLET_LIST, "• one", items=[{"content": "one"}])

        self.merger.merge([block("a", BlockType.TEXT, "two")], target)

        self.assertEqual(target.metadata, {"items": [{"content": "one"}]})
        self.assertEqual(target.content, "• one")


class TestRuleResolution(unittest.TestCase):

    def setUp(self):
        self.merger = new_merger()

    def test_default_table(self):
        self.assertEqual(len(self.merger.rules), 20)
        self.assertEqual(self.merger.rules.sorted_rules()[-1].name, "ANY_TO_ANY")

    def test_registry_lookups(self):
        rules = self.merger.rules

        self.assertEqual(rules.list_rules()[0], "TEXT_TO_TEXT")
        self.assertEqual(rules.list_rules()[-1], "ANY_TO_ANY")
        self.assertEqual(
            rules.get_rules_by_strategy(MergeStrategy.WRAP_IN_TOGGLE),
            ["TEXT_TO_TOGGLE", "ANY_TO_TOGGLE"]
        )
        self.assertEqual(rules.get_rules_by_strategy("content_concatenate"), ["TEXT_TO_TEXT", "QUOTE_TO_QUOTE"])
        self.assertEqual(rules.get_rules_by_strategy("teleport"), [])
        self.assertEqual(rules.get_rule("CODE_TO_CODE").priority, 10)
        self.assertIsNone(rules.get_rule("MISSING"))

    def test_register_rule_replaces_in_place(self):
        registry = MergeRuleRegistry()
        registry.register_rule(TransformRule(
            name="TEXT_TO_LIST",
            source_types=frozenset({BlockType.TEXT}),
            target_types=frozenset({BlockType.BULLET_LIST}),
            strategy="content_concatenate"
        ))

        self.assertEqual(len(registry), 20)
        self.assertEqual(registry.list_rules().index("TEXT_TO_LIST"), 1)
        self.assertEqual(registry.get_rule("TEXT_TO_LIST").strategy, "content_concatenate")

    def test_winning_rule_covers_types(self):
        combinations = [
            ([BlockType.TEXT], BlockType.BULLET_LIST, "TEXT_TO_LIST"),
            ([BlockType.BULLET_LIST, BlockType.CHECK_LIST], BlockType.NUMBERED_LIST, "LIST_TO_LIST"),
            ([BlockType.HEADING1], BlockType.HEADING2, "HEADING_TO_HEADING"),
            ([BlockType.HEADING1], BlockType.TOGGLE, "HEADING_TO_TOGGLE"),
            ([BlockType.IMAGE], BlockType.TOGGLE, "ANY_TO_TOGGLE"),
            ([BlockType.CODE], BlockType.CODE, "CODE_TO_CODE"),
            ([BlockType.QUOTE], BlockType.QUOTE, "QUOTE_TO_QUOTE"),
            ([BlockType.HEADING1, BlockType.IMAGE], BlockType.TEXT, "ANY_TO_TEXT"),
            ([BlockType.TEXT], BlockType.COLUMN, "ANY_TO_COLUMN"),
            ([BlockType.TEXT, BlockType.IMAGE], BlockType.TABLE, "MULTI_TO_COLUMN_GROUP"),
            ([BlockType.TABLE], BlockType.TABLE, "ANY_TO_ANY"),
        ]

        for source_types, target_type, expected in combinations:
            sources = [block(f"s{i}", t) for i, t in enumerate(source_types)]
            rule = self.merger.find_merge_rule(sources, block("t", target_type))

            self.assertIsNotNone(rule, f"{source_types} -> {target_type}")
            self.assertEqual(rule.name, expected)
            self.assertTrue(rule.accepts_sources(source_types))
            self.assertTrue(rule.accepts_target(target_type))

    def test_resolution_is_deterministic(self):
        sources = [block("a", BlockType.TEXT, "x")]
        target = block("t", BlockType.TOGGLE, "T")

        first = self.merger.find_merge_rule(sources, target)
        self.merger.merge([block("b", BlockType.IMAGE, "i")], block("g", BlockType.GALLERY))
        self.merger.find_merge_rule([block("c", BlockType.CODE)], block("d", BlockType.CODE))
        second = self.merger.find_merge_rule(sources, target)

        self.assertEqual(first, second)
        self.assertEqual(first.name, "TEXT_TO_TOGGLE")

    def test_each_merger_owns_its_rules(self):
        other = new_merger(rule_registry=MergeRuleRegistry(rules=[]))

        self.assertEqual(len(other.rules), 0)
        self.assertEqual(len(self.merger.rules), 20)

    def test_no_rule_echoes_types(self):
        merger = new_merger(rule_registry=MergeRuleRegistry(rules=[]))

        result = merger.merge([block("a", BlockType.TEXT, "x")], block("t", BlockType.IMAGE))

        self.assertFalse(result.success)
        self.assertIn("text", result.error)
        self.assertIn("image", result.error)

    def test_fallback_not_used_when_specific_rule_covers_pair(self):
        registry = MergeRuleRegistry(rules=[
            TransformRule(
                name="TABLE_PAIRS",
                source_types=frozenset({BlockType.TABLE}),
                target_types=frozenset({BlockType.TABLE}),
                strategy="content_concatenate",
                min_source_count=2
            ),
            TransformRule(
                name="ANY_TO_ANY",
                source_types=ALL_BLOCK_TYPES,
                target_types=ALL_BLOCK_TYPES,
                strategy="universal_content_transfer",
                priority=-1
            ),
        ])
        merger = new_merger(rule_registry=registry)
        target = block("t", BlockType.TABLE, "rows")

        self.assertIsNone(merger.find_merge_rule([block("a", BlockType.TABLE, "more")], target))

        pair = [block("a", BlockType.TABLE, "more"), block("b", BlockType.TABLE, "rows")]
        self.assertEqual(merger.find_merge_rule(pair, target).name, "TABLE_PAIRS")

        # Pairs the specific rule does not cover still fall back
        self.assertEqual(merger.find_merge_rule([block("c", BlockType.TEXT, "x")], target).name, "ANY_TO_ANY")

    def test_column_group_skips_single_same_type(self):
        registry = MergeRuleRegistry(rules=[TransformRule(
            name="MULTI_TO_COLUMN_GROUP",
            source_types=ALL_BLOCK_TYPES,
            target_types=ALL_BLOCK_TYPES,
            strategy="create_column_group"
        )])
        merger = new_merger(rule_registry=registry)

        self.assertIsNone(merger.find_merge_rule([block("a", BlockType.TABLE)], block("t", BlockType.TABLE)))
        self.assertIsNotNone(merger.find_merge_rule([block("a", BlockType.CHART)], block("t", BlockType.TABLE)))

    def test_unknown_strategy_fails_cleanly(self):
        registry = MergeRuleRegistry(rules=[TransformRule(
            name="BROKEN",
            source_types=frozenset({BlockType.TEXT}),
            target_types=frozenset({BlockType.TEXT}),
            strategy="teleport"
        )])
        merger = new_merger(rule_registry=registry)

        result = merger.merge([block("a", BlockType.TEXT, "x")], block("t", BlockType.TEXT, "y"))

        self.assertFalse(result.success)
        self.assertEqual(result.error, "Unknown merge strategy: teleport")


class TestListStrategies(unittest.TestCase):

    def setUp(self):
        self.merger = new_merger()

    def test_text_appended_as_item(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "two")],
            block("l", BlockType.BULLET_LIST, "• one")
        )

        self.assertEqual(result.strategy, "append_as_item")
        update = result.changes[0]
        self.assertEqual(update.new_content, "• one\n• two")
        self.assertEqual([item["content"] for item in update.metadata["items"]], ["one", "two"])
        self.assertEqual(result.data["itemsAdded"], 1)
        self.assertEqual(result.deleted_ids(), ["a"])

    def test_text_into_checklist_is_unchecked(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "task")],
            block("c", BlockType.CHECK_LIST, "☑ done")
        )

        self.assertEqual(result.changes[0].new_content, "☑ done\n☐ task")

    def test_lists_of_other_types_are_converted(self):
        result = self.merger.merge(
            [block("b", BlockType.BULLET_LIST, "• x\n• y")],
            block("n", BlockType.NUMBERED_LIST, "1. w")
        )

        self.assertEqual(result.strategy, "merge_items_or_convert")
        self.assertEqual(result.changes[0].new_content, "1. w\n2. x\n3. y")
        self.assertTrue(result.data["typeConverted"])
        self.assertEqual(result.data["convertedFrom"], ["bulletList"])

    def test_list_into_text(self):
        result = self.merger.merge(
            [block("b", BlockType.BULLET_LIST, "• a\n• b")],
            block("t", BlockType.TEXT, "Intro")
        )

        self.assertEqual(result.strategy, "extract_list_content")
        self.assertEqual(result.changes[0].new_content, "Intro\na\nb")
        self.assertEqual(result.deleted_ids(), ["b"])

    def test_list_into_toggle(self):
        result = self.merger.merge(
            [block("b", BlockType.BULLET_LIST, "• a\n• b\n• c")],
            block("g", BlockType.TOGGLE, "")
        )

        update = result.changes[0]
        self.assertEqual(update.new_content, "a")
        self.assertEqual([child["content"] for child in update.metadata["toggleContent"]], ["b", "c"])
        self.assertFalse(update.metadata["isExpanded"])


class TestTextStrategies(unittest.TestCase):

    def setUp(self):
        self.merger = new_merger()

    def test_heading_text_extracted_with_real_ids(self):
        result = self.merger.merge(
            [block("h", BlockType.HEADING1, "Title")],
            block("t", BlockType.TEXT, "Body")
        )

        self.assertEqual(result.strategy, "extract_text_and_merge")
        self.assertEqual(result.changes[0].new_content, "Body Title")
        self.assertEqual(result.deleted_ids(), ["h"])

    def test_heading_levels_concatenate_by_default(self):
        result = self.merger.merge(
            [block("h2", BlockType.HEADING2, "Part")],
            block("h1", BlockType.HEADING1, "Whole")
        )

        self.assertEqual(result.changes[0].new_content, "Whole Part")
        self.assertEqual(result.deleted_ids(), ["h2"])

    def test_heading_levels_unified(self):
        result = self.merger.merge(
            [block("h2", BlockType.HEADING2, "Part")],
            block("h1", BlockType.HEADING1, "Whole"),
            {"strategy": "unify_level"}
        )

        self.assertEqual(len(result.changes), 1)
        self.assertEqual(result.changes[0].block_id, "h2")
        self.assertEqual(result.changes[0].new_type, BlockType.HEADING1)
        self.assertEqual(result.deleted_ids(), [])

    def test_wrap_in_code(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "y = 2")],
            block("c", BlockType.CODE, "x = 1")
        )

        update = result.changes[0]
        self.assertEqual(result.strategy, "wrap_in_code")
        self.assertEqual(update.new_content, "x = 1\ny = 2")
        self.assertEqual(update.metadata["language"], "plaintext")
        self.assertTrue(update.metadata["showLineNumbers"])

    def test_wrap_in_code_options(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "print()")],
            block("c", BlockType.CODE, ""),
            {"language": "python", "showLineNumbers": False}
        )

        self.assertEqual(result.changes[0].metadata["language"], "python")
        self.assertFalse(result.changes[0].metadata["showLineNumbers"])

    def test_merge_code_blocks(self):
        result = self.merger.merge([block("a", BlockType.CODE, "b()")], block("c", BlockType.CODE, "a()"))

        self.assertEqual(result.strategy, "merge_code_content")
        self.assertEqual(result.changes[0].new_content, "a()\n\nb()")

    def test_wrap_in_quote(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "Second")],
            block("q", BlockType.QUOTE, "First"),
            {"author": "Ada"}
        )

        update = result.changes[0]
        self.assertEqual(result.strategy, "wrap_in_quote")
        self.assertEqual(update.new_content, "First\n\nSecond")
        self.assertEqual(update.metadata["author"], "Ada")


class TestContainerStrategies(unittest.TestCase):

    def setUp(self):
        self.merger = new_merger()

    def test_wrap_in_toggle_titles_with_first_source(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "Details")],
            block("g", BlockType.TOGGLE, "")
        )

        update = result.changes[0]
        self.assertEqual(update.new_type, BlockType.TOGGLE)
        self.assertEqual(update.new_content, "Details")
        self.assertEqual(update.metadata["toggleContent"][0]["content"], "Details")
        self.assertTrue(update.metadata["isExpanded"])
        self.assertEqual(result.deleted_ids(), ["a"])

    def test_wrap_in_toggle_keeps_replaced_title(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "Body")],
            block("g", BlockType.TOGGLE, "Old", toggleContent=[{"type": "text", "content": "kept"}]),
            {"title": "New"}
        )

        update = result.changes[0]
        self.assertEqual(update.new_content, "New")
        self.assertEqual(
            [child["content"] for child in update.metadata["toggleContent"]],
            ["Old", "kept", "Body"]
        )

    def test_heading_into_toggle(self):
        result = self.merger.merge(
            [block("h", BlockType.HEADING1, "Section")],
            block("g", BlockType.TOGGLE, "")
        )

        update = result.changes[0]
        self.assertEqual(result.strategy, "heading_to_toggle")
        self.assertEqual(update.new_content, "Section")
        self.assertEqual(update.metadata["originalHeadingLevel"], "heading1")

    def test_toggles_merge_children_and_titles(self):
        source = block("s", BlockType.TOGGLE, "Inner", toggleContent=[{"type": "text", "content": "child"}])
        target = block("t", BlockType.TOGGLE, "Outer", toggleContent=[{"type": "text", "content": "first"}])

        result = self.merger.merge([source], target)

        update = result.changes[0]
        self.assertEqual(
            [child["content"] for child in update.metadata["toggleContent"]],
            ["first", "Inner", "child"]
        )
        self.assertEqual(result.data["itemsAdded"], 2)
        self.assertEqual(result.data["totalItems"], 3)

    def test_images_into_gallery(self):
        result = self.merger.merge(
            [block("i1", BlockType.IMAGE, "", src="a.png", alt="A"), block("i2", BlockType.IMAGE, "b.png")],
            block("g", BlockType.GALLERY, "", images=[{"id": "i0", "src": "z.png"}])
        )

        images = result.changes[0].metadata["images"]
        self.assertEqual([image["src"] for image in images], ["z.png", "a.png", "b.png"])
        self.assertEqual(images[1]["alt"], "A")
        self.assertEqual(result.data["totalImages"], 3)
        self.assertEqual(result.deleted_ids(), ["i1", "i2"])

    def test_files_merged_into_list(self):
        result = self.merger.merge(
            [block("f2", BlockType.FILE, "", fileName="b.txt", fileSize=10)],
            block("f1", BlockType.FILE, "", fileName="a.pdf")
        )

        files = result.changes[0].metadata["files"]
        self.assertEqual([entry["name"] for entry in files], ["a.pdf", "b.txt"])
        self.assertEqual(files[1]["size"], 10)

    def test_block_added_to_column(self):
        result = self.merger.merge([block("a", BlockType.TEXT, "cell")], block("col", BlockType.COLUMN))

        self.assertEqual(result.strategy, "add_to_column")
        self.assertEqual(result.changes[0].metadata["columnContent"][0]["content"], "cell")

    def test_column_group_keeps_all_blocks(self):
        result = self.merger.merge(
            [block("a", BlockType.TEXT, "x"), block("b", BlockType.IMAGE, "y")],
            block("t", BlockType.TABLE)
        )

        self.assertEqual(result.strategy, "create_column_group")
        self.assertEqual([change.block_id for change in result.changes], ["t", "a", "b"])
        self.assertEqual(result.deleted_ids(), [])
        self.assertEqual(len({change.metadata["groupId"] for change in result.changes}), 1)


class TestUniversalTransfer(unittest.TestCase):

    def setUp(self):
        self.merger = new_merger()

    def test_transfer_into_list_keeps_items(self):
        result = self.merger.merge(
            [block("i", BlockType.IMAGE, "Sunset")],
            block("l", BlockType.BULLET_LIST, "• one")
        )

        update = result.changes[0]
        self.assertEqual(result.strategy, "universal_content_transfer")
        self.assertEqual(update.new_content, "• one\n• Sunset")
        self.assertEqual(len(update.metadata["items"]), 2)

    def test_nothing_to_transfer(self):
        result = self.merger.merge([block("i", BlockType.IMAGE, "")], block("t", BlockType.TABLE, "rows"))

        self.assertFalse(result.success)
        self.assertEqual(result.error, "No transferable content found")


class TestMergeValidation(unittest.TestCase):

    def test_too_many_sources(self):
        merger = new_merger(max_merge_items=1)
        sources = [block("a", BlockType.TEXT, "x"), block("b", BlockType.TEXT, "y")]

        result = merger.validate_merge(sources, block("t", BlockType.TEXT))

        self.assertFalse(result.is_valid)
        self.assertEqual(result.error, "Too many blocks to merge (max: 1)")

    def test_valid_merge_names_rule(self):
        result = new_merger().validate_merge([block("a", BlockType.TEXT, "x")], block("t", BlockType.TEXT))

        self.assertTrue(result.is_valid)
        self.assertEqual(result.strategy, "content_concatenate")


@pytest.mark.parametrize("sources, target", [
    ([("a", BlockType.TEXT, "x")], ("t", BlockType.TEXT, "y")),
    ([("a", BlockType.TEXT, "x"), ("b", BlockType.TEXT, "z")], ("t", BlockType.BULLET_LIST, "• y")),
    ([("a", BlockType.HEADING2, "x")], ("t", BlockType.TOGGLE, "")),
    ([("a", BlockType.IMAGE, "x")], ("t", BlockType.GALLERY, "")),
    ([("a", BlockType.QUOTE, "x")], ("t", BlockType.TEXT, "y")),
    ([("a", BlockType.CHART, "x")], ("t", BlockType.VIDEO, "")),
])
def test_consuming_merges_delete_each_source_once(sources, target):
    merger = new_merger()
    source_blocks = [block(*spec) for spec in sources]

    result = merger.merge(source_blocks, block(*target))

    assert result.success
    assert sorted(result.deleted_ids()) == sorted(b.id for b in source_blocks)
    assert result.changes[0].block_id == target[0]


def test_suggest_merge_previews_result():
    merger = new_merger()

    suggestion = merger.suggest_merge([block("a", BlockType.TEXT, "Hello")], block("t", BlockType.TEXT, "World"))

    assert suggestion.rule == "TEXT_TO_TEXT"
    assert suggestion.preview == "World Hello"


def test_suggest_merge_without_rule():
    merger = new_merger(rule_registry=MergeRuleRegistry(rules=[]))

    assert merger.suggest_merge([block("a", BlockType.TEXT, "x")], block("t", BlockType.TEXT)) is None
