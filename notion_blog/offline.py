from __future__ import annotations

import copy
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .errors import NotionError
from .transport import JSONObject, ResultPage, collect_paginated


def _rt(text: str, **annotations: Any) -> JSONObject:
    ann = {
        "bold": False,
        "italic": False,
        "strikethrough": False,
        "underline": False,
        "code": False,
        "color": "default",
    }
    ann.update(annotations)
    return {
        "type": "text",
        "text": {"content": text, "link": None},
        "annotations": ann,
        "plain_text": text,
        "href": None,
    }


def raw_block(block_id: str, kind: str, payload: Mapping[str, Any] | None = None, *, has_children: bool = False) -> JSONObject:
    return {
        "object": "block",
        "id": block_id,
        "type": kind,
        "has_children": has_children,
        kind: dict(payload or {}),
    }


def raw_text_block(block_id: str, kind: str, text: str, *, has_children: bool = False, **extra: Any) -> JSONObject:
    payload: JSONObject = {"rich_text": [_rt(text)], "color": "default"}
    payload.update(extra)
    return raw_block(block_id, kind, payload, has_children=has_children)


def raw_page(
    page_id: str,
    *,
    title: str,
    slug: str,
    date: str | None = "2024-01-01",
    tags: Sequence[str] = (),
    excerpt: str = "",
    rank: float | None = None,
    meta: bool = False,
    languages: Sequence[str] = ("ja",),
) -> JSONObject:
    return {
        "object": "page",
        "id": page_id,
        "icon": None,
        "cover": None,
        "properties": {
            "Page": {"type": "title", "title": [_rt(title)] if title else []},
            "Slug": {"type": "rich_text", "rich_text": [_rt(slug)] if slug else []},
            "Date": {"type": "date", "date": {"start": date} if date else None},
            "Tags": {
                "type": "multi_select",
                "multi_select": [{"id": f"tag-{t}", "name": t, "color": "default"} for t in tags],
            },
            "Excerpt": {"type": "rich_text", "rich_text": [_rt(excerpt)] if excerpt else []},
            "FeaturedImage": {"type": "files", "files": []},
            "Rank": {"type": "number", "number": rank},
            "Meta": {"type": "checkbox", "checkbox": meta},
            "Published": {"type": "checkbox", "checkbox": True},
            "Language": {
                "type": "multi_select",
                "multi_select": [{"name": lang} for lang in languages],
            },
        },
    }


def _page_languages(page: Mapping[str, Any]) -> set[str]:
    props = page.get("properties") or {}
    lang_prop = props.get("Language") or {}
    return {str(v.get("name")) for v in lang_prop.get("multi_select") or [] if isinstance(v, Mapping)}


def _language_from_filter(flt: Mapping[str, Any] | None) -> str | None:
    if not flt:
        return None
    for clause in flt.get("and") or []:
        if clause.get("property") == "Language":
            return (clause.get("multi_select") or {}).get("contains")
    return None


@dataclass
class OfflineNotionTransport:
    """
    Network-free stand-in for NotionTransport.

    Serves deterministic pages and block trees from memory, paginating with
    ``page_size`` so cursor handling is exercised. Ids listed in ``failures``
    raise the given error instead, which lets callers simulate inaccessible
    blocks. Only the ``Language`` clause of a database filter is honoured.
    """

    pages: list[JSONObject] = field(default_factory=list)
    blocks: dict[str, JSONObject] = field(default_factory=dict)
    children: dict[str, list[JSONObject]] = field(default_factory=dict)
    database: JSONObject = field(default_factory=dict)
    failures: dict[str, NotionError] = field(default_factory=dict)
    page_size: int = 100
    calls: Counter[str] = field(default_factory=Counter)

    def _slice(self, items: list[JSONObject], cursor: str | None) -> ResultPage:
        start = int(cursor) if cursor else 0
        end = start + max(1, int(self.page_size))
        has_more = end < len(items)
        return ResultPage(
            items=copy.deepcopy(items[start:end]),
            next_cursor=str(end) if has_more else None,
            has_more=has_more,
        )

    async def query_database(
        self, *, filter: JSONObject | None = None, sorts: list[JSONObject] | None = None
    ) -> list[JSONObject]:
        self.calls["query_database"] += 1
        lang = _language_from_filter(filter)
        matching = [p for p in self.pages if lang is None or lang in _page_languages(p)]

        async def _fetch_page(cursor: str | None) -> ResultPage:
            self.calls["query_database.page"] += 1
            return self._slice(matching, cursor)

        return await collect_paginated(_fetch_page)

    async def list_block_children(self, block_id: str) -> list[JSONObject]:
        self.calls["list_block_children"] += 1
        self.calls[f"list_block_children:{block_id}"] += 1
        if block_id in self.failures:
            raise self.failures[block_id]
        items = self.children.get(block_id, [])

        async def _fetch_page(cursor: str | None) -> ResultPage:
            return self._slice(items, cursor)

        return await collect_paginated(_fetch_page)

    async def retrieve_block(self, block_id: str) -> JSONObject:
        self.calls["retrieve_block"] += 1
        if block_id in self.failures:
            raise self.failures[block_id]
        if block_id not in self.blocks:
            raise NotionError(f"Notion request failed (notion.blocks.retrieve:{block_id}): 404")
        return copy.deepcopy(self.blocks[block_id])

    async def retrieve_database(self) -> JSONObject:
        self.calls["retrieve_database"] += 1
        return copy.deepcopy(self.database)

    async def aclose(self) -> None:
        self.calls["aclose"] += 1


def demo_transport() -> OfflineNotionTransport:
    """Small blog with one post exercising every container kind."""
    synced_source = raw_block("synced-src", "synced_block", {"synced_from": None}, has_children=True)
    return OfflineNotionTransport(
        pages=[
            raw_page(
                "page-welcome",
                title="Welcome",
                slug="welcome",
                date="2024-03-01",
                tags=["news"],
                excerpt="First post",
                rank=5,
                languages=("ja", "en"),
            ),
            raw_page("page-notes", title="Notes", slug="notes", date="2024-02-01", tags=["notes"]),
            raw_page(
                "page-meta",
                title="Demo Blog",
                slug="meta-title",
                date=None,
                excerpt="An offline demo",
                meta=True,
                languages=("ja", "en"),
            ),
        ],
        blocks={"synced-src": synced_source},
        children={
            "page-welcome": [
                raw_text_block("h1", "heading_1", "Introduction"),
                raw_text_block("p1", "paragraph", "Hello from the offline dataset."),
                raw_text_block("b1", "bulleted_list_item", "first", has_children=True),
                raw_text_block("b2", "bulleted_list_item", "second"),
                raw_text_block("n1", "numbered_list_item", "step one"),
                raw_block(
                    "t1",
                    "table",
                    {"table_width": 2, "has_column_header": True, "has_row_header": False},
                    has_children=True,
                ),
                raw_block("cl1", "column_list", {}, has_children=True),
                raw_block(
                    "s1",
                    "synced_block",
                    {"synced_from": {"type": "block_id", "block_id": "synced-src"}},
                    has_children=True,
                ),
                raw_text_block("h2", "heading_2", "Wrap up"),
                raw_text_block("tg1", "toggle", "More", has_children=True),
            ],
            "b1": [raw_text_block("b1-1", "bulleted_list_item", "nested")],
            "t1": [
                raw_block("t1-r1", "table_row", {"cells": [[_rt("key")], [_rt("value")]]}),
                raw_block("t1-r2", "table_row", {"cells": [[_rt("a")], [_rt("1")]]}),
            ],
            "cl1": [
                raw_block("col1", "column", {}, has_children=True),
                raw_block("col2", "column", {}, has_children=True),
            ],
            "col1": [raw_text_block("col1-p", "paragraph", "left")],
            "col2": [raw_text_block("col2-p", "paragraph", "right")],
            "synced-src": [raw_text_block("sync-p", "paragraph", "shared content")],
            "tg1": [raw_text_block("tg1-p", "paragraph", "hidden details")],
            "page-notes": [raw_text_block("notes-p", "paragraph", "Short note.")],
        },
        database={
            "object": "database",
            "id": "offline-db",
            "title": [_rt("Offline DB")],
            "description": [_rt("Database description")],
            "icon": {"type": "emoji", "emoji": "📝"},
            "cover": None,
        },
    )
