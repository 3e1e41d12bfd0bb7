from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence, Union

from .blocks import External, HostedFile, Icon, IconUrl
from .normalize import icon_from_notion_object

FeaturedImage = Union[External, HostedFile]


@dataclass(frozen=True)
class Tag:
    name: str
    id: str | None = None
    color: str = "default"


@dataclass(frozen=True)
class Post:
    """A page from the blog database; ``meta`` marks site-settings records."""

    page_id: str
    title: str
    slug: str
    date: str = ""
    icon: Icon | None = None
    cover: IconUrl | None = None
    tags: tuple[Tag, ...] = ()
    excerpt: str = ""
    featured_image: FeaturedImage | None = None
    rank: float = 0
    meta: bool = False
    language: str | None = None

    def has_tag(self, name: str) -> bool:
        return any(tag.name == name for tag in self.tags)


@dataclass(frozen=True)
class Database:
    title: str = ""
    description: str = ""
    icon: Icon | None = None
    cover: IconUrl | None = None


@dataclass(frozen=True)
class SiteMeta:
    title: str
    description: str
    icon: Icon | None = None
    cover: IconUrl | None = None


@dataclass(frozen=True)
class PostsAndMeta:
    posts: tuple[Post, ...]
    meta_posts: tuple[Post, ...] = ()
    title_meta: Post | None = None
    all_posts: tuple[Post, ...] = ()


def _prop(properties: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = properties.get(name)
    return value if isinstance(value, Mapping) else {}


def _joined_plain_text(values: Any) -> str:
    if not isinstance(values, list):
        return ""
    return "".join(
        str(v.get("plain_text") or "") for v in values if isinstance(v, Mapping)
    )


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def is_valid_page_object(page: Mapping[str, Any]) -> bool:
    """
    A page is usable when it has a title, a slug, and either a date or the meta flag.
    """
    props = page.get("properties")
    if not isinstance(props, Mapping):
        return False

    has_title = _non_empty_list(_prop(props, "Page").get("title"))
    has_slug = _non_empty_list(_prop(props, "Slug").get("rich_text"))
    has_date = isinstance(_prop(props, "Date").get("date"), Mapping)
    is_meta = _prop(props, "Meta").get("checkbox") is True

    return has_title and has_slug and (has_date or is_meta)


def _post_cover(obj: Any) -> IconUrl | None:
    if not isinstance(obj, Mapping):
        return None
    if obj.get("type") == "external":
        ext = obj.get("external")
        url = ext.get("url") if isinstance(ext, Mapping) else None
        return IconUrl(type="external", url=str(url or ""))
    # Hosted covers expire; posts keep only the kind.
    return IconUrl(type="file", url="")


def _database_cover(obj: Any) -> IconUrl | None:
    if not isinstance(obj, Mapping):
        return None
    kind = "external" if obj.get("type") == "external" else "file"
    inner = obj.get(kind)
    url = inner.get("url") if isinstance(inner, Mapping) else None
    return IconUrl(type=kind, url=str(url or ""))


def _featured_image(files: Any) -> FeaturedImage | None:
    if not _non_empty_list(files) or not isinstance(files[0], Mapping):
        return None

    first = files[0]
    if first.get("type") == "external" and isinstance(first.get("external"), Mapping):
        return External(url=str(first["external"].get("url") or ""))
    if isinstance(first.get("file"), Mapping):
        hosted = first["file"]
        return HostedFile(
            url=str(hosted.get("url") or ""),
            expiry_time=hosted.get("expiry_time") or None,
        )
    return None


def _tags(values: Any) -> tuple[Tag, ...]:
    if not isinstance(values, list):
        return ()
    out: list[Tag] = []
    for v in values:
        if not isinstance(v, Mapping) or not v.get("name"):
            continue
        out.append(
            Tag(name=str(v["name"]), id=v.get("id") or None, color=str(v.get("color") or "default"))
        )
    return tuple(out)


def _rank(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def post_from_page_object(page: Mapping[str, Any], *, language: str | None = None) -> Post:
    props = page.get("properties")
    props = props if isinstance(props, Mapping) else {}

    date_obj = _prop(props, "Date").get("date")
    date = str(date_obj.get("start") or "") if isinstance(date_obj, Mapping) else ""

    return Post(
        page_id=str(page.get("id") or ""),
        title=_joined_plain_text(_prop(props, "Page").get("title")),
        slug=_joined_plain_text(_prop(props, "Slug").get("rich_text")),
        date=date,
        icon=icon_from_notion_object(page.get("icon"), allow_file=False),
        cover=_post_cover(page.get("cover")),
        tags=_tags(_prop(props, "Tags").get("multi_select")),
        excerpt=_joined_plain_text(_prop(props, "Excerpt").get("rich_text")),
        featured_image=_featured_image(_prop(props, "FeaturedImage").get("files")),
        rank=_rank(_prop(props, "Rank").get("number")),
        meta=_prop(props, "Meta").get("checkbox") is True,
        language=language,
    )


def posts_from_page_objects(
    pages: Sequence[Mapping[str, Any]], *, language: str | None = None
) -> list[Post]:
    """Validate then build; invalid pages are dropped silently."""
    return [post_from_page_object(p, language=language) for p in pages if is_valid_page_object(p)]


def split_posts_and_meta(posts: Sequence[Post], *, meta_title_slug: str) -> PostsAndMeta:
    visible = tuple(p for p in posts if not p.meta)
    meta = tuple(p for p in posts if p.meta)
    title_meta = next((p for p in meta if p.slug == meta_title_slug), None)
    return PostsAndMeta(
        posts=visible, meta_posts=meta, title_meta=title_meta, all_posts=tuple(posts)
    )


def database_from_notion_object(obj: Mapping[str, Any]) -> Database:
    return Database(
        title=_joined_plain_text(obj.get("title")),
        description=_joined_plain_text(obj.get("description")),
        icon=icon_from_notion_object(obj.get("icon")),
        cover=_database_cover(obj.get("cover")),
    )


def site_meta(database: Database, title_meta: Post | None) -> SiteMeta:
    if title_meta is None:
        return SiteMeta(
            title=database.title,
            description=database.description,
            icon=database.icon,
            cover=database.cover,
        )
    return SiteMeta(
        title=title_meta.title,
        description=title_meta.excerpt,
        icon=database.icon,
        cover=database.cover,
    )


def build_language_query(lang: str, *, now: datetime | None = None) -> dict[str, Any]:
    """Published posts for ``lang`` dated up to ``now``, newest first."""
    ts = (now or datetime.now(timezone.utc)).isoformat()
    return {
        "filter": {
            "and": [
                {"property": "Published", "checkbox": {"equals": True}},
                {"property": "Date", "date": {"on_or_before": ts}},
                {"property": "Language", "multi_select": {"contains": lang}},
            ]
        },
        "sorts": [{"property": "Date", "direction": "descending"}],
    }
