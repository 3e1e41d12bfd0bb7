from __future__ import annotations

from typing import Any, Callable, Mapping

from .blocks import (
    Annotation,
    Block,
    Bookmark,
    BulletedListItem,
    Callout,
    Code,
    Column,
    ColumnList,
    Embed,
    Emoji,
    Equation,
    EquationBlock,
    External,
    File,
    Heading1,
    Heading2,
    Heading3,
    HostedFile,
    Icon,
    IconUrl,
    Image,
    Link,
    LinkPreview,
    LinkToPage,
    Media,
    Mention,
    NumberedListItem,
    Paragraph,
    Quote,
    Reference,
    RichText,
    SyncedBlock,
    SyncedFrom,
    Table,
    TableCell,
    TableOfContents,
    TableRow,
    Text,
    ToDo,
    Toggle,
    Unsupported,
    Video,
)


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _coerce_bool(value: Any) -> bool:
    return value is True


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    return 0


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _color(payload: Mapping[str, Any]) -> str:
    return _coerce_str(payload.get("color")) or "default"


def rich_text_from_notion_object(obj: Mapping[str, Any]) -> RichText:
    """
    Build a RichText span from a Notion rich text object.

    Annotations are copied verbatim. Exactly one of text/equation/mention is
    populated, chosen by the object's ``type``; unknown types give a plain span.
    """
    ann = _mapping(obj.get("annotations"))
    annotation = Annotation(
        bold=_coerce_bool(ann.get("bold")),
        italic=_coerce_bool(ann.get("italic")),
        strikethrough=_coerce_bool(ann.get("strikethrough")),
        underline=_coerce_bool(ann.get("underline")),
        code=_coerce_bool(ann.get("code")),
        color=_coerce_str(ann.get("color")) or "default",
    )

    kind = obj.get("type")
    text: Text | None = None
    equation: Equation | None = None
    mention: Mention | None = None

    if kind == "text" and isinstance(obj.get("text"), Mapping):
        raw = obj["text"]
        link_obj = raw.get("link")
        link = None
        if isinstance(link_obj, Mapping) and _coerce_str(link_obj.get("url")):
            link = Link(url=str(link_obj["url"]))
        text = Text(content=str(raw.get("content") or ""), link=link)
    elif kind == "equation" and isinstance(obj.get("equation"), Mapping):
        equation = Equation(expression=str(obj["equation"].get("expression") or ""))
    elif kind == "mention" and isinstance(obj.get("mention"), Mapping):
        raw = obj["mention"]
        mention_type = str(raw.get("type") or "")
        page = None
        if mention_type == "page" and isinstance(raw.get("page"), Mapping):
            page_id = _coerce_str(raw["page"].get("id"))
            if page_id:
                page = Reference(id=page_id)
        mention = Mention(type=mention_type, page=page)

    href = obj.get("href")
    return RichText(
        plain_text=str(obj.get("plain_text") or ""),
        annotation=annotation,
        href=href if isinstance(href, str) and href else None,
        text=text,
        equation=equation,
        mention=mention,
    )


def rich_texts(values: Any) -> tuple[RichText, ...]:
    if not isinstance(values, list):
        return ()
    return tuple(rich_text_from_notion_object(v) for v in values if isinstance(v, Mapping))


def media_from_notion_object(payload: Mapping[str, Any]) -> Media:
    kind = str(payload.get("type") or "")
    caption = rich_texts(payload.get("caption"))

    if kind == "external":
        ext = _mapping(payload.get("external"))
        url = _coerce_str(ext.get("url"))
        return Media(type=kind, caption=caption, external=External(url=url) if url else None)

    if kind == "file":
        hosted = _mapping(payload.get("file"))
        url = _coerce_str(hosted.get("url"))
        return Media(
            type=kind,
            caption=caption,
            file=HostedFile(url=url, expiry_time=_coerce_str(hosted.get("expiry_time")))
            if url
            else None,
        )

    return Media(type=kind, caption=caption)


def icon_from_notion_object(obj: Any, *, allow_file: bool = True) -> Icon | None:
    """Emoji or URL icon; file icons are dropped when ``allow_file`` is False."""
    if not isinstance(obj, Mapping):
        return None

    kind = obj.get("type")
    if kind == "emoji" and _coerce_str(obj.get("emoji")):
        return Emoji(emoji=str(obj["emoji"]))
    if kind == "external":
        return IconUrl(type="external", url=str(_mapping(obj.get("external")).get("url") or ""))
    if kind == "file" and allow_file:
        return IconUrl(type="file", url=str(_mapping(obj.get("file")).get("url") or ""))
    return None


_Envelope = dict[str, Any]
_Builder = Callable[[_Envelope, Mapping[str, Any]], Block]


def _paragraph(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Paragraph(**env, rich_texts=rich_texts(p.get("rich_text")), color=_color(p))


def _heading(cls: type[Heading1] | type[Heading2] | type[Heading3]) -> _Builder:
    def build(env: _Envelope, p: Mapping[str, Any]) -> Block:
        return cls(
            **env,
            rich_texts=rich_texts(p.get("rich_text")),
            color=_color(p),
            is_toggleable=_coerce_bool(p.get("is_toggleable")),
        )

    return build


def _bulleted(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return BulletedListItem(**env, rich_texts=rich_texts(p.get("rich_text")), color=_color(p))


def _numbered(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return NumberedListItem(**env, rich_texts=rich_texts(p.get("rich_text")), color=_color(p))


def _to_do(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return ToDo(
        **env,
        rich_texts=rich_texts(p.get("rich_text")),
        checked=_coerce_bool(p.get("checked")),
        color=_color(p),
    )


def _image(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Image(**env, media=media_from_notion_object(p))


def _video(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Video(**env, media=media_from_notion_object(p))


def _file(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return File(**env, media=media_from_notion_object(p))


def _code(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Code(
        **env,
        rich_texts=rich_texts(p.get("rich_text")),
        caption=rich_texts(p.get("caption")),
        language=_coerce_str(p.get("language")) or "plain text",
    )


def _quote(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Quote(**env, rich_texts=rich_texts(p.get("rich_text")), color=_color(p))


def _equation(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return EquationBlock(**env, expression=str(p.get("expression") or ""))


def _callout(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Callout(
        **env,
        rich_texts=rich_texts(p.get("rich_text")),
        icon=icon_from_notion_object(p.get("icon"), allow_file=False),
        color=_color(p),
    )


def _synced_block(env: _Envelope, p: Mapping[str, Any]) -> Block:
    source = _mapping(p.get("synced_from"))
    block_id = _coerce_str(source.get("block_id"))
    return SyncedBlock(**env, synced_from=SyncedFrom(block_id=block_id) if block_id else None)


def _toggle(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Toggle(**env, rich_texts=rich_texts(p.get("rich_text")), color=_color(p))


def _embed(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Embed(**env, url=str(p.get("url") or ""))


def _bookmark(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Bookmark(**env, url=str(p.get("url") or ""))


def _link_preview(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return LinkPreview(**env, url=str(p.get("url") or ""))


def _table(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Table(
        **env,
        table_width=_coerce_int(p.get("table_width")),
        has_column_header=_coerce_bool(p.get("has_column_header")),
        has_row_header=_coerce_bool(p.get("has_row_header")),
    )


def _table_row(env: _Envelope, p: Mapping[str, Any]) -> Block:
    cells = p.get("cells")
    out: list[TableCell] = []
    if isinstance(cells, list):
        out = [TableCell(rich_texts=rich_texts(cell)) for cell in cells]
    return TableRow(**env, cells=tuple(out))


def _column_list(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return ColumnList(**env)


def _column(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return Column(**env)


def _table_of_contents(env: _Envelope, p: Mapping[str, Any]) -> Block:
    return TableOfContents(**env, color=_color(p))


def _link_to_page(env: _Envelope, p: Mapping[str, Any]) -> Block:
    link_type = _coerce_str(p.get("type")) or "page_id"
    page_id = _coerce_str(p.get("page_id"))
    if not page_id:
        return Unsupported(**env, raw_type="link_to_page")
    return LinkToPage(**env, link_type=link_type, page_id=page_id)


BLOCK_BUILDERS: dict[str, _Builder] = {
    Paragraph.type: _paragraph,
    Heading1.type: _heading(Heading1),
    Heading2.type: _heading(Heading2),
    Heading3.type: _heading(Heading3),
    BulletedListItem.type: _bulleted,
    NumberedListItem.type: _numbered,
    ToDo.type: _to_do,
    Image.type: _image,
    Video.type: _video,
    File.type: _file,
    Code.type: _code,
    Quote.type: _quote,
    EquationBlock.type: _equation,
    Callout.type: _callout,
    SyncedBlock.type: _synced_block,
    Toggle.type: _toggle,
    Embed.type: _embed,
    Bookmark.type: _bookmark,
    LinkPreview.type: _link_preview,
    Table.type: _table,
    TableRow.type: _table_row,
    ColumnList.type: _column_list,
    Column.type: _column,
    TableOfContents.type: _table_of_contents,
    LinkToPage.type: _link_to_page,
}


def block_from_notion_object(obj: Mapping[str, Any]) -> Block:
    """
    Map a raw Notion block object onto the closed Block union.

    Unknown discriminants degrade to ``Unsupported``; a known discriminant with a
    missing payload is built from defaults. This never raises for a mapping input.
    """
    env: _Envelope = {
        "id": str(obj.get("id") or ""),
        "has_children": _coerce_bool(obj.get("has_children")),
    }
    kind = str(obj.get("type") or "")

    builder = BLOCK_BUILDERS.get(kind)
    if builder is None:
        return Unsupported(**env, raw_type=kind or "unsupported")

    return builder(env, _mapping(obj.get(kind)))
