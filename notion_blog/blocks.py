"""
Normalized content blocks.

Every block is a frozen dataclass carrying the common envelope (``id``,
``has_children``) plus a type-specific payload; ``type`` is a class-level tag
matching the Notion discriminant. Container blocks hold their children in a
tuple that is empty when the block comes out of the normalizer; the tree
assembler returns a new, fully populated instance via ``with_children`` rather
than mutating the original.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Literal, Sequence, Union


@dataclass(frozen=True)
class Annotation:
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    color: str = "default"


@dataclass(frozen=True)
class Link:
    url: str


@dataclass(frozen=True)
class Text:
    content: str
    link: Link | None = None


@dataclass(frozen=True)
class Equation:
    expression: str


@dataclass(frozen=True)
class Reference:
    id: str


@dataclass(frozen=True)
class Mention:
    type: str
    page: Reference | None = None


@dataclass(frozen=True)
class RichText:
    """
    One span of rich text.

    At most one of ``text``, ``equation`` and ``mention`` is set.
    """

    plain_text: str
    annotation: Annotation = field(default_factory=Annotation)
    href: str | None = None
    text: Text | None = None
    equation: Equation | None = None
    mention: Mention | None = None

    def __post_init__(self) -> None:
        populated = sum(x is not None for x in (self.text, self.equation, self.mention))
        if populated > 1:
            raise ValueError("RichText carries at most one of text/equation/mention")


def plain_text(rich_texts: Sequence[RichText]) -> str:
    return "".join(rt.plain_text for rt in rich_texts)


@dataclass(frozen=True)
class External:
    url: str


@dataclass(frozen=True)
class HostedFile:
    """A Notion-hosted file; ``url`` is signed and stops working after ``expiry_time``."""

    url: str
    expiry_time: str | None = None


@dataclass(frozen=True)
class Emoji:
    emoji: str
    type: ClassVar[str] = "emoji"


@dataclass(frozen=True)
class IconUrl:
    type: Literal["external", "file"]
    url: str


Icon = Union[Emoji, IconUrl]


@dataclass(frozen=True)
class Media:
    """Payload shared by image, video and file blocks."""

    type: str
    caption: tuple[RichText, ...] = ()
    external: External | None = None
    file: HostedFile | None = None

    @property
    def url(self) -> str | None:
        if self.external is not None:
            return self.external.url
        if self.file is not None:
            return self.file.url
        return None


@dataclass(frozen=True)
class Block:
    id: str
    has_children: bool = False

    type: ClassVar[str] = "unsupported"
    container: ClassVar[bool] = False

    @property
    def children(self) -> tuple["Block", ...]:
        return ()


@dataclass(frozen=True)
class _Container(Block):
    """Block that may hold nested blocks when ``has_children`` is set."""

    children: tuple[Block, ...] = ()  # type: ignore[assignment]

    container: ClassVar[bool] = True

    def with_children(self, children: Sequence[Block]) -> "_Container":
        return replace(self, children=tuple(children))


@dataclass(frozen=True)
class Paragraph(_Container):
    rich_texts: tuple[RichText, ...] = ()
    color: str = "default"

    type: ClassVar[str] = "paragraph"


@dataclass(frozen=True)
class Heading(_Container):
    rich_texts: tuple[RichText, ...] = ()
    color: str = "default"
    is_toggleable: bool = False

    level: ClassVar[int] = 0


@dataclass(frozen=True)
class Heading1(Heading):
    type: ClassVar[str] = "heading_1"
    level: ClassVar[int] = 1


@dataclass(frozen=True)
class Heading2(Heading):
    type: ClassVar[str] = "heading_2"
    level: ClassVar[int] = 2


@dataclass(frozen=True)
class Heading3(Heading):
    type: ClassVar[str] = "heading_3"
    level: ClassVar[int] = 3


@dataclass(frozen=True)
class BulletedListItem(_Container):
    rich_texts: tuple[RichText, ...] = ()
    color: str = "default"

    type: ClassVar[str] = "bulleted_list_item"


@dataclass(frozen=True)
class NumberedListItem(_Container):
    rich_texts: tuple[RichText, ...] = ()
    color: str = "default"

    type: ClassVar[str] = "numbered_list_item"


@dataclass(frozen=True)
class ToDo(_Container):
    rich_texts: tuple[RichText, ...] = ()
    checked: bool = False
    color: str = "default"

    type: ClassVar[str] = "to_do"


@dataclass(frozen=True)
class Quote(_Container):
    rich_texts: tuple[RichText, ...] = ()
    color: str = "default"

    type: ClassVar[str] = "quote"


@dataclass(frozen=True)
class Callout(_Container):
    rich_texts: tuple[RichText, ...] = ()
    icon: Icon | None = None
    color: str = "default"

    type: ClassVar[str] = "callout"


@dataclass(frozen=True)
class Toggle(_Container):
    rich_texts: tuple[RichText, ...] = ()
    color: str = "default"

    type: ClassVar[str] = "toggle"


@dataclass(frozen=True)
class SyncedFrom:
    block_id: str


@dataclass(frozen=True)
class SyncedBlock(_Container):
    """Original synced block when ``synced_from`` is None; otherwise a mirror of another block."""

    synced_from: SyncedFrom | None = None

    type: ClassVar[str] = "synced_block"


@dataclass(frozen=True)
class Column(_Container):
    type: ClassVar[str] = "column"


@dataclass(frozen=True)
class ColumnList(Block):
    columns: tuple[Column, ...] = ()

    type: ClassVar[str] = "column_list"

    def with_columns(self, columns: Sequence[Column]) -> "ColumnList":
        return replace(self, columns=tuple(columns))


@dataclass(frozen=True)
class TableCell:
    rich_texts: tuple[RichText, ...] = ()


@dataclass(frozen=True)
class TableRow(Block):
    cells: tuple[TableCell, ...] = ()

    type: ClassVar[str] = "table_row"


@dataclass(frozen=True)
class Table(Block):
    table_width: int = 0
    has_column_header: bool = False
    has_row_header: bool = False
    rows: tuple[TableRow, ...] = ()

    type: ClassVar[str] = "table"

    def with_rows(self, rows: Sequence[TableRow]) -> "Table":
        return replace(self, rows=tuple(rows))


@dataclass(frozen=True)
class Image(Block):
    media: Media = field(default_factory=lambda: Media(type="external"))

    type: ClassVar[str] = "image"


@dataclass(frozen=True)
class Video(Block):
    media: Media = field(default_factory=lambda: Media(type="external"))

    type: ClassVar[str] = "video"


@dataclass(frozen=True)
class File(Block):
    media: Media = field(default_factory=lambda: Media(type="external"))

    type: ClassVar[str] = "file"


@dataclass(frozen=True)
class Code(Block):
    rich_texts: tuple[RichText, ...] = ()
    caption: tuple[RichText, ...] = ()
    language: str = "plain text"

    type: ClassVar[str] = "code"


@dataclass(frozen=True)
class EquationBlock(Block):
    expression: str = ""

    type: ClassVar[str] = "equation"


@dataclass(frozen=True)
class Embed(Block):
    url: str = ""

    type: ClassVar[str] = "embed"


@dataclass(frozen=True)
class Bookmark(Block):
    url: str = ""

    type: ClassVar[str] = "bookmark"


@dataclass(frozen=True)
class LinkPreview(Block):
    url: str = ""

    type: ClassVar[str] = "link_preview"


@dataclass(frozen=True)
class TableOfContents(Block):
    color: str = "default"

    type: ClassVar[str] = "table_of_contents"


@dataclass(frozen=True)
class LinkToPage(Block):
    link_type: str = "page_id"
    page_id: str = ""

    type: ClassVar[str] = "link_to_page"


@dataclass(frozen=True)
class Unsupported(Block):
    """Any block kind we do not render; ``raw_type`` keeps the original discriminant."""

    raw_type: str = "unsupported"

    type: ClassVar[str] = "unsupported"


HEADING_TYPES: dict[str, type[Heading]] = {
    Heading1.type: Heading1,
    Heading2.type: Heading2,
    Heading3.type: Heading3,
}

LIST_ITEM_TYPES: tuple[type[Block], ...] = (BulletedListItem, NumberedListItem, ToDo)


def to_dict(value: Any) -> Any:
    """
    JSON-friendly rendering of blocks, lists and payloads.

    Dataclasses become dicts; block-like objects also get their ``type`` tag.
    """
    if isinstance(value, (list, tuple)):
        return [to_dict(v) for v in value]

    if hasattr(value, "__dataclass_fields__"):
        out: dict[str, Any] = {}
        tag = getattr(type(value), "type", None)
        if isinstance(tag, str):
            out["type"] = tag
        for f in fields(value):
            out[f.name] = to_dict(getattr(value, f.name))
        return out

    return value
