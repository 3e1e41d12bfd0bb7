from __future__ import annotations

import unittest

from notion_blog.blocks import (
    Block,
    Callout,
    Code,
    Emoji,
    Heading2,
    Image,
    LinkToPage,
    Paragraph,
    SyncedBlock,
    Table,
    TableRow,
    ToDo,
    Unsupported,
    Video,
    to_dict,
)
from notion_blog.normalize import (
    BLOCK_BUILDERS,
    block_from_notion_object,
    media_from_notion_object,
    rich_text_from_notion_object,
)
from notion_blog.offline import _rt, raw_block, raw_text_block


def _all_block_classes(cls: type[Block]) -> set[type[Block]]:
    out: set[type[Block]] = set()
    for sub in cls.__subclasses__():
        out.add(sub)
        out |= _all_block_classes(sub)
    return out


class TestRichText(unittest.TestCase):
    def test_text_span_keeps_annotations_and_link(self) -> None:
        raw = _rt("hello", bold=True, color="red")
        raw["text"]["link"] = {"url": "https://example.com"}
        raw["href"] = "https://example.com"

        rt = rich_text_from_notion_object(raw)

        self.assertEqual(rt.plain_text, "hello")
        self.assertTrue(rt.annotation.bold)
        self.assertFalse(rt.annotation.italic)
        self.assertEqual(rt.annotation.color, "red")
        self.assertIsNotNone(rt.text)
        self.assertEqual(rt.text.link.url, "https://example.com")  # type: ignore[union-attr]
        self.assertIsNone(rt.equation)
        self.assertIsNone(rt.mention)

    def test_equation_span(self) -> None:
        rt = rich_text_from_notion_object(
            {"type": "equation", "equation": {"expression": "e=mc^2"}, "plain_text": "e=mc^2"}
        )
        self.assertEqual(rt.equation.expression, "e=mc^2")  # type: ignore[union-attr]
        self.assertIsNone(rt.text)

    def test_page_mention(self) -> None:
        rt = rich_text_from_notion_object(
            {
                "type": "mention",
                "mention": {"type": "page", "page": {"id": "p-1"}},
                "plain_text": "Other page",
            }
        )
        self.assertEqual(rt.mention.type, "page")  # type: ignore[union-attr]
        self.assertEqual(rt.mention.page.id, "p-1")  # type: ignore[union-attr]

    def test_missing_annotations_default(self) -> None:
        rt = rich_text_from_notion_object({"type": "text", "text": {"content": "x"}})
        self.assertEqual(rt.annotation.color, "default")
        self.assertEqual(rt.plain_text, "")


class TestMedia(unittest.TestCase):
    def test_external_media_has_only_external(self) -> None:
        media = media_from_notion_object(
            {"type": "external", "external": {"url": "https://cdn/x.png"}, "caption": [_rt("cap")]}
        )
        self.assertEqual(media.external.url, "https://cdn/x.png")  # type: ignore[union-attr]
        self.assertIsNone(media.file)
        self.assertEqual(media.url, "https://cdn/x.png")
        self.assertEqual(media.caption[0].plain_text, "cap")

    def test_hosted_file_media_keeps_expiry(self) -> None:
        media = media_from_notion_object(
            {
                "type": "file",
                "file": {"url": "https://s3/a.jpg", "expiry_time": "2024-01-01T00:00:00.000Z"},
            }
        )
        self.assertIsNone(media.external)
        self.assertEqual(media.file.url, "https://s3/a.jpg")  # type: ignore[union-attr]
        self.assertEqual(media.file.expiry_time, "2024-01-01T00:00:00.000Z")  # type: ignore[union-attr]


class TestBlockFromNotionObject(unittest.TestCase):
    def test_every_block_class_has_a_builder(self) -> None:
        tags = {cls.type for cls in _all_block_classes(Block) if cls.type != "unsupported"}
        self.assertEqual(tags - set(BLOCK_BUILDERS), set())

    def test_builders_tag_matches_discriminant(self) -> None:
        for kind in BLOCK_BUILDERS:
            with self.subTest(kind=kind):
                block = block_from_notion_object(raw_block(f"id-{kind}", kind, {"page_id": "p"}, has_children=True))
                self.assertEqual(block.type, kind)
                self.assertEqual(block.id, f"id-{kind}")
                self.assertTrue(block.has_children)

    def test_paragraph(self) -> None:
        block = block_from_notion_object(raw_text_block("p1", "paragraph", "Hello"))
        self.assertIsInstance(block, Paragraph)
        self.assertEqual(block.rich_texts[0].plain_text, "Hello")  # type: ignore[attr-defined]
        self.assertEqual(block.children, ())
        self.assertFalse(block.has_children)

    def test_heading_toggleable(self) -> None:
        block = block_from_notion_object(raw_text_block("h", "heading_2", "Title", is_toggleable=True))
        self.assertIsInstance(block, Heading2)
        self.assertTrue(block.is_toggleable)  # type: ignore[attr-defined]
        self.assertEqual(block.level, 2)  # type: ignore[attr-defined]

    def test_to_do_checked(self) -> None:
        block = block_from_notion_object(raw_text_block("td", "to_do", "Buy milk", checked=True))
        self.assertIsInstance(block, ToDo)
        self.assertTrue(block.checked)  # type: ignore[attr-defined]

    def test_code_language(self) -> None:
        block = block_from_notion_object(
            raw_block("c", "code", {"rich_text": [_rt("print(1)")], "language": "python"})
        )
        self.assertIsInstance(block, Code)
        self.assertEqual(block.language, "python")  # type: ignore[attr-defined]

    def test_callout_drops_file_icon(self) -> None:
        emoji = block_from_notion_object(
            raw_block("c1", "callout", {"rich_text": [], "icon": {"type": "emoji", "emoji": "💡"}})
        )
        hosted = block_from_notion_object(
            raw_block("c2", "callout", {"rich_text": [], "icon": {"type": "file", "file": {"url": "u"}}})
        )
        self.assertIsInstance(emoji, Callout)
        self.assertEqual(emoji.icon, Emoji(emoji="💡"))  # type: ignore[attr-defined]
        self.assertIsNone(hosted.icon)  # type: ignore[attr-defined]

    def test_synced_block_reference(self) -> None:
        original = block_from_notion_object(raw_block("s0", "synced_block", {"synced_from": None}))
        mirror = block_from_notion_object(
            raw_block("s1", "synced_block", {"synced_from": {"type": "block_id", "block_id": "s0"}})
        )
        self.assertIsInstance(original, SyncedBlock)
        self.assertIsNone(original.synced_from)  # type: ignore[attr-defined]
        self.assertEqual(mirror.synced_from.block_id, "s0")  # type: ignore[attr-defined]

    def test_table_and_row(self) -> None:
        table = block_from_notion_object(
            raw_block("t", "table", {"table_width": 3, "has_column_header": True}, has_children=True)
        )
        row = block_from_notion_object(raw_block("r", "table_row", {"cells": [[_rt("a")], [], [_rt("c")]]}))
        self.assertIsInstance(table, Table)
        self.assertEqual(table.table_width, 3)  # type: ignore[attr-defined]
        self.assertTrue(table.has_column_header)  # type: ignore[attr-defined]
        self.assertFalse(table.has_row_header)  # type: ignore[attr-defined]
        self.assertEqual(table.rows, ())  # type: ignore[attr-defined]
        self.assertIsInstance(row, TableRow)
        self.assertEqual(len(row.cells), 3)  # type: ignore[attr-defined]
        self.assertEqual(row.cells[1].rich_texts, ())  # type: ignore[attr-defined]

    def test_image_and_video_media(self) -> None:
        image = block_from_notion_object(
            raw_block("i", "image", {"type": "file", "file": {"url": "https://s3/a.png"}})
        )
        video = block_from_notion_object(
            raw_block("v", "video", {"type": "external", "external": {"url": "https://youtu.be/x"}})
        )
        self.assertIsInstance(image, Image)
        self.assertEqual(image.media.url, "https://s3/a.png")  # type: ignore[attr-defined]
        self.assertIsInstance(video, Video)
        self.assertEqual(video.media.url, "https://youtu.be/x")  # type: ignore[attr-defined]

    def test_link_to_page(self) -> None:
        ok = block_from_notion_object(raw_block("l1", "link_to_page", {"type": "page_id", "page_id": "p9"}))
        missing = block_from_notion_object(raw_block("l2", "link_to_page", {"type": "database_id"}))
        self.assertIsInstance(ok, LinkToPage)
        self.assertEqual(ok.page_id, "p9")  # type: ignore[attr-defined]
        self.assertIsInstance(missing, Unsupported)
        self.assertEqual(missing.raw_type, "link_to_page")  # type: ignore[attr-defined]

    def test_unknown_kind_is_unsupported(self) -> None:
        block = block_from_notion_object(raw_block("x", "child_database", {"title": "DB"}, has_children=True))
        self.assertIsInstance(block, Unsupported)
        self.assertEqual(block.type, "unsupported")
        self.assertEqual(block.raw_type, "child_database")  # type: ignore[attr-defined]
        self.assertEqual(block.id, "x")
        self.assertTrue(block.has_children)

    def test_missing_payload_uses_defaults(self) -> None:
        block = block_from_notion_object({"id": "p", "type": "paragraph"})
        self.assertIsInstance(block, Paragraph)
        self.assertEqual(block.rich_texts, ())  # type: ignore[attr-defined]
        self.assertEqual(block.color, "default")  # type: ignore[attr-defined]

    def test_to_dict_tags_blocks(self) -> None:
        data = to_dict(block_from_notion_object(raw_text_block("p1", "paragraph", "Hi")))
        self.assertEqual(data["type"], "paragraph")
        self.assertEqual(data["id"], "p1")
        self.assertEqual(data["rich_texts"][0]["plain_text"], "Hi")
        self.assertEqual(data["children"], [])


if __name__ == "__main__":
    unittest.main()
