from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import httpx
from notion_client import AsyncClient
from notion_client.errors import HTTPResponseError, RequestTimeoutError

from .errors import NotionError
from .notion_retry import is_retryable_notion_exception
from .retry import OnRetryFn, RetryConfig, SleepFn, call_with_retries_async

_DEFAULT_NOTION_RETRY = RetryConfig(
    # 2 retries after the first attempt.
    max_attempts=3,
    base_delay_seconds=1.0,
    max_delay_seconds=30.0,
    jitter_ratio=0.25,
)

JSONObject = dict[str, Any]


class ContentTransport(Protocol):
    """Read-only view of the remote content service used by the build."""

    async def query_database(
        self, *, filter: JSONObject | None = None, sorts: list[JSONObject] | None = None
    ) -> list[JSONObject]: ...

    async def list_block_children(self, block_id: str) -> list[JSONObject]: ...

    async def retrieve_block(self, block_id: str) -> JSONObject: ...

    async def retrieve_database(self) -> JSONObject: ...

    async def aclose(self) -> None: ...


@dataclass(frozen=True)
class ResultPage:
    items: list[JSONObject]
    next_cursor: str | None = None
    has_more: bool = False

    @classmethod
    def from_response(cls, res: Any) -> "ResultPage":
        if not isinstance(res, dict):
            raise NotionError(f"Unexpected paginated response shape: {type(res).__name__}")
        results = res.get("results")
        return cls(
            items=[r for r in results if isinstance(r, dict)] if isinstance(results, list) else [],
            next_cursor=res.get("next_cursor") or None,
            has_more=bool(res.get("has_more")),
        )


FetchPageFn = Callable[[str | None], Awaitable[ResultPage]]


async def collect_paginated(fetch_page: FetchPageFn) -> list[JSONObject]:
    """
    Follow cursors until ``has_more`` is false, accumulating items in order.
    """
    items: list[JSONObject] = []
    cursor: str | None = None

    while True:
        page = await fetch_page(cursor)
        items.extend(page.items)
        if not page.has_more:
            return items
        if not page.next_cursor:
            raise NotionError("Paginated response has has_more=true but no next_cursor")
        cursor = page.next_cursor


class NotionTransport:
    """
    Thin wrapper around the official async Notion SDK.

    Every call goes through our retry policy: client-class failures (HTTP 4xx)
    bail immediately, everything transient is retried up to the budget.
    """

    def __init__(
        self,
        token: str,
        database_id: str,
        *,
        client: AsyncClient | None = None,
        notion_version: str = "2022-06-28",
        timeout_ms: int = 10000,
        page_size: int = 100,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        db = (database_id or "").strip()
        if not db:
            raise NotionError("database_id must be a non-empty string")

        self._database_id = db
        self._page_size = int(page_size)
        self._retry = retry or _DEFAULT_NOTION_RETRY
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn

        if client is not None:
            self._client = client
        else:
            self._client = AsyncClient(
                auth=token,
                notion_version=notion_version,
                timeout_ms=int(timeout_ms),
            )

    @property
    def database_id(self) -> str:
        return self._database_id

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "NotionTransport":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> None:
        await self.aclose()

    async def _request(
        self,
        operation: str,
        *,
        path: str,
        method: str,
        query: JSONObject | None = None,
        body: JSONObject | None = None,
    ) -> Any:
        async def _do_call() -> Any:
            return await self._client.request(path=path, method=method, query=query, body=body)

        try:
            return await call_with_retries_async(
                _do_call,
                cfg=self._retry,
                is_retryable=is_retryable_notion_exception,
                operation=operation,
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
            )
        except (HTTPResponseError, RequestTimeoutError, httpx.HTTPError) as e:
            raise NotionError(f"Notion request failed ({operation}): {e}") from e
        except Exception as e:
            raise NotionError(f"Unexpected error during Notion request ({operation}): {e}") from e

    async def query_database(
        self, *, filter: JSONObject | None = None, sorts: list[JSONObject] | None = None
    ) -> list[JSONObject]:
        operation = f"notion.databases.query:{self._database_id}"

        async def _fetch_page(cursor: str | None) -> ResultPage:
            body: JSONObject = {"page_size": self._page_size}
            if filter is not None:
                body["filter"] = filter
            if sorts is not None:
                body["sorts"] = sorts
            if cursor:
                body["start_cursor"] = cursor
            res = await self._request(
                operation,
                path=f"databases/{self._database_id}/query",
                method="POST",
                body=body,
            )
            return ResultPage.from_response(res)

        return await collect_paginated(_fetch_page)

    async def list_block_children(self, block_id: str) -> list[JSONObject]:
        bid = (block_id or "").strip()
        if not bid:
            raise NotionError("block_id must be a non-empty string")
        operation = f"notion.blocks.children.list:{bid}"

        async def _fetch_page(cursor: str | None) -> ResultPage:
            query: JSONObject = {"page_size": self._page_size}
            if cursor:
                query["start_cursor"] = cursor
            res = await self._request(
                operation,
                path=f"blocks/{bid}/children",
                method="GET",
                query=query,
            )
            return ResultPage.from_response(res)

        return await collect_paginated(_fetch_page)

    async def retrieve_block(self, block_id: str) -> JSONObject:
        bid = (block_id or "").strip()
        if not bid:
            raise NotionError("block_id must be a non-empty string")
        res = await self._request(
            f"notion.blocks.retrieve:{bid}",
            path=f"blocks/{bid}",
            method="GET",
        )
        if not isinstance(res, dict):
            raise NotionError(f"Unexpected block response for {bid}: {type(res).__name__}")
        return res

    async def retrieve_database(self) -> JSONObject:
        res = await self._request(
            f"notion.databases.retrieve:{self._database_id}",
            path=f"databases/{self._database_id}",
            method="GET",
        )
        if not isinstance(res, dict):
            raise NotionError(
                f"Unexpected database response for {self._database_id}: {type(res).__name__}"
            )
        return res
