from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Sequence, Union

from .blocks import (
    Block,
    BulletedListItem,
    ColumnList,
    Heading,
    NumberedListItem,
    Table,
    ToDo,
    to_dict,
)

ListKind = Literal["bulleted_list", "numbered_list", "to_do_list"]

_LIST_KIND_BY_ITEM: dict[str, ListKind] = {
    BulletedListItem.type: "bulleted_list",
    NumberedListItem.type: "numbered_list",
    ToDo.type: "to_do_list",
}

_NUMBERED_STYLES = ("lower-roman", "decimal", "lower-alpha")


@dataclass
class BlockList:
    """Render-time run of adjacent list items of one kind; never fetched or cached."""

    kind: ListKind
    items: list[Block] = field(default_factory=list)

    @property
    def type(self) -> str:
        return self.kind


Node = Union[Block, BlockList]


@dataclass(frozen=True)
class Document:
    nodes: list[Node]
    headings: list[Heading]


def list_kind(node: Node) -> ListKind | None:
    if isinstance(node, BlockList):
        return None
    return _LIST_KIND_BY_ITEM.get(node.type)


def group_list_items(blocks: Sequence[Node]) -> list[Node]:
    """
    Coalesce adjacent same-kind list items into BlockList nodes.

    One left-to-right pass; everything that is not a list item is emitted as
    is. Existing BlockList nodes pass through untouched, so re-grouping the
    output is a no-op.
    """
    out: list[Node] = []
    current: BlockList | None = None

    for block in blocks:
        kind = list_kind(block)
        if kind is None:
            out.append(block)
            current = None
            continue

        if current is not None and current.kind == kind:
            current.items.append(block)  # type: ignore[arg-type]
            continue

        current = BlockList(kind=kind, items=[block])  # type: ignore[list-item]
        out.append(current)

    return out


def collect_headings(blocks: Sequence[Node]) -> list[Heading]:
    """Top-level headings in document order; nested ones are not searched."""
    return [b for b in blocks if isinstance(b, Heading)]


def build_document(blocks: Sequence[Block]) -> Document:
    return Document(nodes=group_list_items(blocks), headings=collect_headings(blocks))


def group_children(node: Node) -> list[Node]:
    """Children of ``node`` grouped for the next nesting level."""
    if isinstance(node, BlockList):
        return list(node.items)
    if isinstance(node, ColumnList):
        return list(node.columns)
    if isinstance(node, Table):
        return list(node.rows)
    return group_list_items(node.children)


def numbered_list_style(level: int) -> str:
    """CSS list-style-type for a numbered list; the top level is 1 (decimal)."""
    return _NUMBERED_STYLES[int(level) % 3]


def node_to_dict(node: Node, *, level: int = 1) -> dict[str, Any]:
    if isinstance(node, BlockList):
        out: dict[str, Any] = {"type": node.kind}
        if node.kind == "numbered_list":
            out["list_style"] = numbered_list_style(level)
        out["items"] = [_item_to_dict(item, level=level) for item in node.items]
        return out
    return _item_to_dict(node, level=level)


def _item_to_dict(block: Block, *, level: int) -> dict[str, Any]:
    data = to_dict(block)
    if isinstance(block, ColumnList):
        data["columns"] = [
            {**to_dict(col), "children": [node_to_dict(c, level=1) for c in group_children(col)]}
            for col in block.columns
        ]
    elif "children" in data:
        next_level = level + 1 if list_kind(block) is not None else level
        data["children"] = [node_to_dict(c, level=next_level) for c in group_children(block)]
    return data


def document_to_dict(document: Document) -> dict[str, Any]:
    return {
        "headings": [to_dict(h) for h in document.headings],
        "nodes": [node_to_dict(n) for n in document.nodes],
    }
