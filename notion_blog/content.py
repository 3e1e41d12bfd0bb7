from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Sequence

from .assemble import BlockTreeAssembler
from .blocks import Block
from .config import RuntimeSecrets, retry_config
from .config_schema import AppConfig
from .errors import PostNotFoundError
from .grouping import Document, build_document
from .posts import (
    Database,
    Post,
    PostsAndMeta,
    SiteMeta,
    Tag,
    build_language_query,
    database_from_notion_object,
    posts_from_page_objects,
    site_meta,
    split_posts_and_meta,
)
from .retry import OnRetryFn, RetryEvent
from .run_log import RunLogger
from .singleflight import SingleFlightGroup
from .snapshot import SnapshotStore
from .transport import ContentTransport, NotionTransport

_DATABASE_KEY = "database"


def _posts_key(lang: str) -> str:
    return f"posts:{lang}"


def retry_logger(logger: RunLogger | None) -> OnRetryFn | None:
    if logger is None:
        return None

    def _on_retry(event: RetryEvent) -> None:
        logger.warning(
            "notion_retry",
            operation=event.operation,
            failure_attempt=event.failure_attempt,
            next_attempt=event.next_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
            error_type=event.error_type,
            error_message=event.error_message,
        )

    return _on_retry


class ContentService:
    """
    Build-scoped access to posts, database metadata and page content.

    One instance lives for one build. It memoizes each language's post list
    and the database metadata for its whole lifetime (no TTL, no eviction);
    concurrent first requests for the same key share a single fetch through
    the single-flight guard. Every derived accessor works on the cached list.
    """

    def __init__(
        self,
        transport: ContentTransport,
        *,
        languages: Sequence[str] = ("ja", "en"),
        posts_per_page: int = 10,
        meta_title_slug: str = "meta-title",
        snapshots: SnapshotStore | None = None,
        flight: SingleFlightGroup | None = None,
        logger: RunLogger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if posts_per_page < 1:
            raise ValueError("posts_per_page must be >= 1")

        self._transport = transport
        self._languages = tuple(languages)
        self._posts_per_page = int(posts_per_page)
        self._meta_title_slug = meta_title_slug
        self._flight = flight or SingleFlightGroup(logger=logger)
        self._logger = logger
        self._clock = clock
        self._assembler = BlockTreeAssembler(transport, snapshots=snapshots, logger=logger)

        self._posts_cache: dict[str, PostsAndMeta] = {}
        self._db_cache: Database | None = None

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        secrets: RuntimeSecrets | None = None,
        *,
        transport: ContentTransport | None = None,
        logger: RunLogger | None = None,
    ) -> "ContentService":
        if transport is None:
            if secrets is None:
                raise ValueError("secrets are required when no transport is given")
            transport = NotionTransport(
                secrets.notion_token,
                secrets.database_id,
                notion_version=config.notion.notion_version,
                timeout_ms=config.notion.request_timeout_ms,
                page_size=config.notion.query_page_size,
                retry=retry_config(config),
                on_retry=retry_logger(logger),
            )

        snapshots = SnapshotStore(config.snapshots.dir) if config.snapshots.enabled else None
        return cls(
            transport,
            languages=config.site.languages,
            posts_per_page=config.site.posts_per_page,
            meta_title_slug=config.site.meta_title_slug,
            snapshots=snapshots,
            flight=SingleFlightGroup(
                max_pending=config.lock.max_pending,
                acquire_timeout=config.lock.acquire_timeout_seconds,
                max_occupation=config.lock.max_occupation_seconds,
                logger=logger,
            ),
            logger=logger,
        )

    @property
    def languages(self) -> tuple[str, ...]:
        return self._languages

    @property
    def transport(self) -> ContentTransport:
        return self._transport

    @property
    def posts_per_page(self) -> int:
        return self._posts_per_page

    async def aclose(self) -> None:
        await self._transport.aclose()

    def _check_language(self, lang: str) -> None:
        if lang not in self._languages:
            raise ValueError(f"Unknown language {lang!r}; expected one of {list(self._languages)}")

    async def _posts_and_meta(self, lang: str) -> PostsAndMeta:
        self._check_language(lang)
        cached = self._posts_cache.get(lang)
        if cached is not None:
            return cached
        return await self._flight.run(_posts_key(lang), lambda: self._populate_posts(lang))

    async def _populate_posts(self, lang: str) -> PostsAndMeta:
        cached = self._posts_cache.get(lang)
        if cached is not None:
            return cached

        now = self._clock() if self._clock is not None else None
        pages = await self._transport.query_database(**build_language_query(lang, now=now))
        posts = posts_from_page_objects(pages, language=lang)
        entry = split_posts_and_meta(posts, meta_title_slug=self._meta_title_slug)

        self._posts_cache[lang] = entry
        if self._logger is not None:
            self._logger.info(
                "posts_cached",
                lang=lang,
                fetched=len(pages),
                posts=len(entry.posts),
                meta_posts=len(entry.meta_posts),
                dropped=len(pages) - len(posts),
            )
        return entry

    async def get_all_posts(self, lang: str, *, include_meta: bool = False) -> tuple[Post, ...]:
        """
        Every valid post for ``lang``, newest first.

        Meta records are left out by default, as the site templates expect.
        ``include_meta=True`` gives the full validated list, in which a dateless
        meta record is included. The same tuple instance is returned for the
        life of the service.
        """
        entry = await self._posts_and_meta(lang)
        return entry.all_posts if include_meta else entry.posts

    async def get_all_posts_of_all_languages(self) -> list[Post]:
        out: list[Post] = []
        for lang in self._languages:
            out.extend(await self.get_all_posts(lang))
        return out

    async def get_title_meta(self, lang: str) -> Post | None:
        return (await self._posts_and_meta(lang)).title_meta

    async def get_database(self) -> Database:
        if self._db_cache is not None:
            return self._db_cache
        return await self._flight.run(_DATABASE_KEY, self._populate_database)

    async def _populate_database(self) -> Database:
        if self._db_cache is not None:
            return self._db_cache

        database = database_from_notion_object(await self._transport.retrieve_database())
        self._db_cache = database
        if self._logger is not None:
            self._logger.info("database_cached", title=database.title)
        return database

    async def get_site_meta(self, lang: str) -> SiteMeta:
        database = await self.get_database()
        return site_meta(database, await self.get_title_meta(lang))

    async def get_posts(self, lang: str, page_size: int = 10) -> list[Post]:
        return list((await self.get_all_posts(lang))[:page_size])

    async def get_ranked_posts(self, lang: str, page_size: int = 10) -> list[Post]:
        """Posts with a non-zero rank, highest first; ties keep date order."""
        ranked = [p for p in await self.get_all_posts(lang) if p.rank]
        # sorted() is stable, including with reverse=True.
        return sorted(ranked, key=lambda p: p.rank, reverse=True)[:page_size]

    async def get_post_by_slug(self, lang: str, slug: str) -> Post | None:
        return next((p for p in await self.get_all_posts(lang) if p.slug == slug), None)

    async def require_post_by_slug(self, lang: str, slug: str) -> Post:
        post = await self.get_post_by_slug(lang, slug)
        if post is None:
            raise PostNotFoundError(f"Post not found: lang={lang} slug={slug}")
        return post

    async def get_post_by_page_id(self, lang: str, page_id: str) -> Post | None:
        return next((p for p in await self.get_all_posts(lang) if p.page_id == page_id), None)

    async def get_posts_by_tag(self, lang: str, tag_name: str, page_size: int = 10) -> list[Post]:
        if not tag_name:
            return []
        return [p for p in await self.get_all_posts(lang) if p.has_tag(tag_name)][:page_size]

    def _page_slice(self, posts: Sequence[Post], page: int) -> list[Post]:
        # Pages are 1-based.
        start = (page - 1) * self._posts_per_page
        return list(posts[start : start + self._posts_per_page])

    async def get_posts_by_page(self, lang: str, page: int) -> list[Post]:
        if page < 1:
            return []
        return self._page_slice(await self.get_all_posts(lang), page)

    async def get_posts_by_tag_and_page(self, lang: str, tag_name: str, page: int) -> list[Post]:
        if page < 1:
            return []
        posts = [p for p in await self.get_all_posts(lang) if p.has_tag(tag_name)]
        return self._page_slice(posts, page)

    def _page_count(self, total: int) -> int:
        return math.ceil(total / self._posts_per_page)

    async def get_number_of_pages(self, lang: str) -> int:
        return self._page_count(len(await self.get_all_posts(lang)))

    async def get_number_of_pages_by_tag(self, lang: str, tag_name: str) -> int:
        posts = [p for p in await self.get_all_posts(lang) if p.has_tag(tag_name)]
        return self._page_count(len(posts))

    async def get_all_tags(self, lang: str) -> list[Tag]:
        seen: set[str] = set()
        tags: list[Tag] = []
        for post in await self.get_all_posts(lang):
            for tag in post.tags:
                if tag.name in seen:
                    continue
                seen.add(tag.name)
                tags.append(tag)
        return sorted(tags, key=lambda t: (t.name.casefold(), t.name))

    async def get_all_blocks_by_block_id(self, block_id: str) -> list[Block]:
        return await self._assembler.get_all_blocks(block_id)

    async def get_block(self, block_id: str) -> Block:
        return await self._assembler.get_block(block_id)

    async def get_raw_children(self, block_id: str) -> list[dict]:
        return await self._transport.list_block_children(block_id)

    async def get_document(self, page_id: str) -> Document:
        return build_document(await self.get_all_blocks_by_block_id(page_id))

    async def get_post_document(self, lang: str, slug: str) -> tuple[Post, Document]:
        post = await self.require_post_by_slug(lang, slug)
        return post, await self.get_document(post.page_id)
