from __future__ import annotations

import unittest
from typing import Any

from notion_blog.errors import NotionError
from notion_blog.retry import RetryConfig
from notion_blog.transport import NotionTransport, ResultPage, collect_paginated


class _StatusError(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"status {status}")
        self.status = status


class _FakeClient:
    def __init__(self, responses: list[Any]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def request(self, *, path: str, method: str, query: Any = None, body: Any = None) -> Any:
        self.calls.append({"path": path, "method": method, "query": query, "body": body})
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self) -> None:
        self.closed = True


async def _no_sleep(seconds: float) -> None:
    return None


def _transport(client: _FakeClient, **kwargs: Any) -> NotionTransport:
    return NotionTransport(
        "token",
        "db-1",
        client=client,  # type: ignore[arg-type]
        page_size=2,
        retry=RetryConfig.from_retries(2, jitter_ratio=0.0),
        sleep_fn=_no_sleep,
        **kwargs,
    )


class TestCollectPaginated(unittest.IsolatedAsyncioTestCase):
    async def test_follows_cursors_in_order(self) -> None:
        pages = {
            None: ResultPage(items=[{"id": 1}], next_cursor="c2", has_more=True),
            "c2": ResultPage(items=[{"id": 2}, {"id": 3}], next_cursor="c3", has_more=True),
            "c3": ResultPage(items=[], has_more=False),
        }
        seen: list[str | None] = []

        async def _fetch(cursor: str | None) -> ResultPage:
            seen.append(cursor)
            return pages[cursor]

        items = await collect_paginated(_fetch)

        self.assertEqual([i["id"] for i in items], [1, 2, 3])
        self.assertEqual(seen, [None, "c2", "c3"])

    async def test_missing_cursor_is_an_error(self) -> None:
        async def _fetch(cursor: str | None) -> ResultPage:
            return ResultPage(items=[], next_cursor=None, has_more=True)

        with self.assertRaises(NotionError):
            await collect_paginated(_fetch)


class TestNotionTransport(unittest.IsolatedAsyncioTestCase):
    async def test_query_database_paginates_with_body(self) -> None:
        client = _FakeClient(
            [
                {"results": [{"id": "a"}, {"id": "b"}], "has_more": True, "next_cursor": "n1"},
                {"results": [{"id": "c"}], "has_more": False, "next_cursor": None},
            ]
        )
        transport = _transport(client)

        items = await transport.query_database(filter={"property": "Published"}, sorts=[{"property": "Date"}])

        self.assertEqual([i["id"] for i in items], ["a", "b", "c"])
        self.assertEqual(client.calls[0]["path"], "databases/db-1/query")
        self.assertEqual(client.calls[0]["method"], "POST")
        self.assertEqual(client.calls[0]["body"]["page_size"], 2)
        self.assertEqual(client.calls[0]["body"]["filter"], {"property": "Published"})
        self.assertNotIn("start_cursor", client.calls[0]["body"])
        self.assertEqual(client.calls[1]["body"]["start_cursor"], "n1")

    async def test_list_block_children_uses_query_params(self) -> None:
        client = _FakeClient([{"results": [{"id": "x"}], "has_more": False}])
        items = await _transport(client).list_block_children("blk")

        self.assertEqual(items, [{"id": "x"}])
        self.assertEqual(client.calls[0]["path"], "blocks/blk/children")
        self.assertEqual(client.calls[0]["method"], "GET")
        self.assertEqual(client.calls[0]["query"], {"page_size": 2})

    async def test_server_errors_are_retried(self) -> None:
        events: list[Any] = []
        client = _FakeClient([_StatusError(502), _StatusError(503), {"id": "blk", "type": "paragraph"}])

        res = await _transport(client, on_retry=events.append).retrieve_block("blk")

        self.assertEqual(res["id"], "blk")
        self.assertEqual(len(client.calls), 3)
        self.assertEqual([e.next_attempt for e in events], [2, 3])

    async def test_retries_are_bounded(self) -> None:
        client = _FakeClient([_StatusError(500)] * 5)

        with self.assertRaises(NotionError):
            await _transport(client).retrieve_block("blk")
        self.assertEqual(len(client.calls), 3)

    async def test_client_errors_bail_immediately(self) -> None:
        client = _FakeClient([_StatusError(404), {"id": "never"}])

        with self.assertRaises(NotionError) as ctx:
            await _transport(client).retrieve_block("blk")
        self.assertEqual(len(client.calls), 1)
        self.assertIsInstance(ctx.exception.__cause__, _StatusError)

    async def test_validates_ids(self) -> None:
        with self.assertRaises(NotionError):
            NotionTransport("token", " ", client=_FakeClient([]))  # type: ignore[arg-type]
        with self.assertRaises(NotionError):
            await _transport(_FakeClient([])).list_block_children("")

    async def test_context_manager_closes_client(self) -> None:
        client = _FakeClient([])
        async with _transport(client):
            pass
        self.assertTrue(client.closed)


if __name__ == "__main__":
    unittest.main()
