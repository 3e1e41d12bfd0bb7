from __future__ import annotations

import unittest

from notion_blog.blocks import BulletedListItem, Heading1, Heading2, NumberedListItem, Paragraph, ToDo
from notion_blog.grouping import (
    BlockList,
    build_document,
    document_to_dict,
    group_list_items,
    numbered_list_style,
)


def _p(i: str) -> Paragraph:
    return Paragraph(id=i)


class TestGroupListItems(unittest.TestCase):
    def test_groups_adjacent_items_by_kind(self) -> None:
        b1, b2 = BulletedListItem(id="b1"), BulletedListItem(id="b2")
        n1 = NumberedListItem(id="n1")
        p = _p("p")

        out = group_list_items([b1, b2, p, n1])

        self.assertEqual(len(out), 3)
        self.assertIsInstance(out[0], BlockList)
        self.assertEqual(out[0].kind, "bulleted_list")  # type: ignore[union-attr]
        self.assertEqual(out[0].items, [b1, b2])  # type: ignore[union-attr]
        self.assertIs(out[1], p)
        self.assertEqual(out[2].kind, "numbered_list")  # type: ignore[union-attr]
        self.assertEqual(out[2].items, [n1])  # type: ignore[union-attr]

    def test_kind_change_starts_new_list(self) -> None:
        out = group_list_items(
            [BulletedListItem(id="b"), NumberedListItem(id="n"), ToDo(id="t"), ToDo(id="t2")]
        )
        self.assertEqual([n.type for n in out], ["bulleted_list", "numbered_list", "to_do_list"])
        self.assertEqual(len(out[2].items), 2)  # type: ignore[union-attr]

    def test_non_list_sequence_is_unchanged(self) -> None:
        blocks = [_p("a"), Heading1(id="h"), _p("b")]
        out = group_list_items(blocks)
        self.assertEqual(len(out), len(blocks))
        for got, want in zip(out, blocks):
            self.assertIs(got, want)

    def test_regrouping_is_a_noop(self) -> None:
        first = group_list_items(
            [BulletedListItem(id="b1"), BulletedListItem(id="b2"), _p("p"), BulletedListItem(id="b3")]
        )
        second = group_list_items(first)
        self.assertEqual(len(second), len(first))
        for got, want in zip(second, first):
            self.assertIs(got, want)
        self.assertEqual([b.id for b in first[0].items], ["b1", "b2"])  # type: ignore[union-attr]

    def test_empty_input(self) -> None:
        self.assertEqual(group_list_items([]), [])


class TestDocument(unittest.TestCase):
    def test_headings_are_top_level_only(self) -> None:
        nested = Heading2(id="nested")
        top1 = Heading1(id="h1")
        top2 = Heading2(id="h2")
        wrapper = _p("wrap").with_children([nested])

        doc = build_document([top1, wrapper, top2])

        self.assertEqual([h.id for h in doc.headings], ["h1", "h2"])

    def test_numbered_list_styles_rotate(self) -> None:
        self.assertEqual(numbered_list_style(1), "decimal")
        self.assertEqual(numbered_list_style(2), "lower-alpha")
        self.assertEqual(numbered_list_style(3), "lower-roman")
        self.assertEqual(numbered_list_style(4), "decimal")

    def test_document_to_dict_nests_lists(self) -> None:
        inner = NumberedListItem(id="n2")
        outer = NumberedListItem(id="n1", has_children=True).with_children([inner])
        doc = build_document([outer, _p("p")])

        data = document_to_dict(doc)

        top = data["nodes"][0]
        self.assertEqual(top["type"], "numbered_list")
        self.assertEqual(top["list_style"], "decimal")
        nested = top["items"][0]["children"][0]
        self.assertEqual(nested["type"], "numbered_list")
        self.assertEqual(nested["list_style"], "lower-alpha")
        self.assertEqual(nested["items"][0]["id"], "n2")
        self.assertEqual(data["nodes"][1]["type"], "paragraph")


if __name__ == "__main__":
    unittest.main()
