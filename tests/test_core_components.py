"""
Unit tests for core Blockcraft components.

Tests configuration management, the data models and the content
utilities shared by the converter, splitter and merger.
"""

import os
import tempfile
import unittest
from pathlib import Path

from blockcraft.config import ConfigManager
from blockcraft.content import (
    adapt_content_to_block_type,
    create_content_data,
    extract_text,
    generate_block_id,
    list_text,
    parse_list_items,
    render_list,
    strip_list_marker,
)
from blockcraft.errors import ListenerError, StrategyDefectError
from blockcraft.models import (
    ALL_BLOCK_TYPES,
    Block,
    BlockType,
    Change,
    ChangeAction,
    InteractionOptions,
    InteractionRequest,
    ListItem,
    TransformResult,
)


class TestConfigManager(unittest.TestCase):
    """Test configuration management functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "test_config.yaml"

    def tearDown(self):
        """Clean up test fixtures."""
        if self.config_path.exists():
            self.config_path.unlink()
        os.rmdir(self.temp_dir)

    def test_config_creation_with_defaults(self):
        """Test config manager falls back to defaults when file missing."""
        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.max_merge_items, 50)
        self.assertEqual(config.merge_separator, " ")
        self.assertEqual(config.default_code_language, "plaintext")
        self.assertEqual(config.max_split_parts, 20)
        self.assertEqual(config.min_part_length, 1)
        self.assertEqual(config.words_per_block, 5)
        self.assertTrue(config.smart_splitting)
        self.assertEqual(config.proximity_window, 10)
        self.assertEqual(config.max_convert_items, 100)
        self.assertEqual(config.max_history_size, 50)

    def test_config_loading_from_file(self):
        """Test loading configuration from YAML file."""
        test_config = """
splitter:
  max_split_parts: 3
  words_per_block: 2

interactions:
  max_history_size: 5
"""
        with open(self.config_path, 'w') as f:
            f.write(test_config)

        config = ConfigManager(str(self.config_path))

        self.assertEqual(config.max_split_parts, 3)
        self.assertEqual(config.words_per_block, 2)
        self.assertEqual(config.max_history_size, 5)
        # Keys missing from the file keep their defaults
        self.assertEqual(config.min_part_length, 1)
        self.assertEqual(config.max_merge_items, 50)

    def test_dot_notation_access(self):
        """Test accessing config values with dot notation."""
        config = ConfigManager(str(self.config_path))  # Uses defaults

        self.assertEqual(config.get("merger.max_merge_items"), 50)
        self.assertEqual(config.get("converter.smart_suggestions"), True)
        self.assertEqual(config.get("nonexistent.key", "default"), "default")
        self.assertIsInstance(config.get_section("splitter"), dict)

    def test_config_reload(self):
        """Test configuration reloading."""
        with open(self.config_path, 'w') as f:
            f.write("merger:\n  separator: ' | '")

        config = ConfigManager(str(self.config_path))
        self.assertEqual(config.merge_separator, " | ")

        with open(self.config_path, 'w') as f:
            f.write("merger:\n  separator: ' + '")

        config.reload()
        self.assertEqual(config.merge_separator, " + ")

    def test_invalid_yaml_falls_back_to_defaults(self):
        """Test that an unparsable file is reported and ignored."""
        with open(self.config_path, 'w') as f:
            f.write("merger: [unclosed")

        with self.assertLogs(level="ERROR"):
            config = ConfigManager(str(self.config_path))

        self.assertEqual(config.max_merge_items, 50)

    def test_non_mapping_yaml_falls_back_to_defaults(self):
        with open(self.config_path, 'w') as f:
            f.write("- one\n- two\n")

        config = ConfigManager(str(self.config_path))
        self.assertEqual(config.max_split_parts, 20)


class TestDataModels(unittest.TestCase):
    """Test data model validation and functionality."""

    def test_block_defaults(self):
        block = Block(id="b1", type=BlockType.TEXT)

        self.assertEqual(block.content, "")
        self.assertEqual(block.metadata, {})
        self.assertFalse(block.is_list)

    def test_block_type_from_wire_value(self):
        block = Block.model_validate({"id": "b1", "type": "bulletList", "content": "• a"})

        self.assertEqual(block.type, BlockType.BULLET_LIST)
        self.assertTrue(block.is_list)
        self.assertFalse(block.is_heading)
        self.assertTrue(Block(id="h", type="heading2").is_heading)
        self.assertEqual(str(BlockType.PROGRESS_BAR), "progressBar")

    def test_block_type_universe(self):
        self.assertEqual(len(BlockType), 35)
        self.assertEqual(len(ALL_BLOCK_TYPES), 35)
        self.assertIn(BlockType.CUSTOM_HTML, ALL_BLOCK_TYPES)

    def test_change_wire_format(self):
        """Test that changes serialise with camelCase keys and no empty payload."""
        self.assertEqual(Change.delete("a").to_wire(), {"action": "delete", "blockId": "a"})

        block = Block(id="n1", type=BlockType.TEXT, content="New")
        wire = Change.insert(block, after_block_id="a").to_wire()

        self.assertEqual(wire["action"], "insert")
        self.assertEqual(wire["afterBlockId"], "a")
        self.assertEqual(wire["block"]["id"], "n1")

    def test_change_accepts_camel_case(self):
        change = Change.model_validate({"action": "update", "blockId": "t", "newContent": "x"})

        self.assertEqual(change.action, ChangeAction.UPDATE)
        self.assertEqual(change.block_id, "t")
        self.assertEqual(change.new_content, "x")

    def test_transform_result_deleted_ids(self):
        result = TransformResult(success=True, changes=[
            Change(action=ChangeAction.UPDATE, block_id="t", new_content="x"),
            Change.delete("a"),
            Change.delete("b"),
        ])

        self.assertEqual(result.deleted_ids(), ["a", "b"])

    def test_options_accept_both_key_styles(self):
        """Test that options take camelCase or snake_case and ignore unknown keys."""
        camel = InteractionOptions.coerce({"cursorPosition": 4, "groupType": "row", "animate": True})
        snake = InteractionOptions.coerce({"words_per_block": 2})

        self.assertEqual(camel.cursor_position, 4)
        self.assertEqual(camel.group_type, "row")
        self.assertFalse(hasattr(camel, "animate"))
        self.assertEqual(snake.words_per_block, 2)
        self.assertIsNone(InteractionOptions.coerce(None).strategy)

    def test_request_from_wire(self):
        request = InteractionRequest.model_validate({
            "type": "merge",
            "sourceBlocks": [{"id": "a", "type": "text", "content": "Hello"}],
            "targetBlock": {"id": "t", "type": "text", "content": "World"},
            "options": None
        })

        self.assertEqual(request.type, "merge")
        self.assertEqual(request.source_blocks[0].id, "a")
        self.assertEqual(request.target_block.id, "t")
        self.assertIsInstance(request.options, InteractionOptions)

    def test_list_item_keeps_extra_fields(self):
        item = ListItem.model_validate({"content": "a", "indent": 1})

        self.assertEqual(item.content, "a")
        self.assertEqual(item.model_dump()["indent"], 1)


class TestErrors(unittest.TestCase):

    def test_strategy_defect_message(self):
        error = StrategyDefectError("merge", "teleport")
        self.assertEqual(str(error), "Unknown merge strategy: teleport")

    def test_listener_error_keeps_original(self):
        original = RuntimeError("boom")
        error = ListenerError("interaction:completed", original)

        self.assertIs(error.original, original)
        self.assertIn("interaction:completed", str(error))


class TestContentUtilities(unittest.TestCase):
    """Test text extraction and list helpers."""

    def test_extract_text_from_string(self):
        self.assertEqual(extract_text("plain"), "plain")
        self.assertEqual(extract_text(Block(id="b", type=BlockType.TEXT, content="Hi")), "Hi")

    def test_extract_text_from_rich_content(self):
        content = {
            "type": "doc",
            "content": [{
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "Hello "},
                    {"type": "hardBreak"},
                    {"type": "text", "text": "world"}
                ]
            }]
        }

        self.assertEqual(extract_text(content), "Hello \nworld")

    def test_extract_text_skips_non_string_leaves(self):
        content = {"type": "doc", "content": [
            {"type": "text", "text": 42},
            {"type": "text", "text": "kept"},
            {"type": "text", "text": None}
        ]}

        self.assertEqual(extract_text(content), "kept")

    def test_parse_items_with_non_string_content(self):
        block = Block(
            id="l",
            type=BlockType.BULLET_LIST,
            metadata={"items": [{"content": 1}, {"content": None}, {"content": "three", "checked": True}]}
        )
        items = parse_list_items(block)

        self.assertEqual([item.content for item in items], ["1", "", "three"])
        self.assertEqual([item.id for item in items], ["item-0", "item-1", "item-2"])
        self.assertTrue(items[2].checked)

    def test_extract_text_from_nothing(self):
        self.assertEqual(extract_text(None), "")
        self.assertEqual(extract_text(Block(id="b", type=BlockType.IMAGE, content=None)), "")

    def test_content_data_wraps_text(self):
        data = create_content_data("abc")

        self.assertEqual(data["type"], "doc")
        self.assertEqual(extract_text(data), "abc")

    def test_strip_list_marker(self):
        self.assertEqual(strip_list_marker("- [x] done"), ("done", True))
        self.assertEqual(strip_list_marker("☐ todo"), ("todo", False))
        self.assertEqual(strip_list_marker("2. second"), ("second", None))
        self.assertEqual(strip_list_marker("• bullet"), ("bullet", None))
        self.assertEqual(strip_list_marker("plain"), ("plain", None))

    def test_parse_items_from_metadata(self):
        block = Block(
            id="l",
            type=BlockType.BULLET_LIST,
            metadata={"items": [{"content": "a"}, {"id": "x", "content": "b"}, "c"]}
        )
        items = parse_list_items(block)

        self.assertEqual([item.content for item in items], ["a", "b", "c"])
        self.assertEqual(items[0].id, "item-0")
        self.assertEqual(items[1].id, "x")

    def test_parse_items_from_text(self):
        block = Block(id="l", type=BlockType.NUMBERED_LIST, content="1. one\n\n2. two\n")

        self.assertEqual([item.content for item in parse_list_items(block)], ["one", "two"])
        self.assertEqual(list_text(block), "one\ntwo")

    def test_render_list(self):
        self.assertEqual(render_list(BlockType.NUMBERED_LIST, ["a", "b"]), "1. a\n2. b")
        self.assertEqual(render_list(BlockType.BULLET_LIST, ["a"]), "• a")
        self.assertEqual(
            render_list(BlockType.CHECK_LIST, [ListItem(content="x", checked=True), ListItem(content="y")]),
            "☑ x\n☐ y"
        )

    def test_adapt_content_to_block_type(self):
        self.assertEqual(adapt_content_to_block_type("a\nb", BlockType.QUOTE), "> a\n> b")
        self.assertEqual(adapt_content_to_block_type("a\nb", BlockType.BULLET_LIST), "• a\n• b")
        self.assertEqual(adapt_content_to_block_type("a\nb", BlockType.NUMBERED_LIST), "1. a\n2. b")
        self.assertEqual(adapt_content_to_block_type("x = 1", BlockType.CODE), "x = 1")

    def test_generate_block_id(self):
        first = generate_block_id("group")
        second = generate_block_id("group")

        self.assertTrue(first.startswith("group_"))
        self.assertEqual(len(first), len("group_") + 12)
        self.assertNotEqual(first, second)


if __name__ == '__main__':
    unittest.main(verbosity=2)
