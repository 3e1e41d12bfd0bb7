from __future__ import annotations

import asyncio
from typing import Any

from .blocks import (
    Block,
    BulletedListItem,
    Callout,
    Column,
    ColumnList,
    Heading,
    NumberedListItem,
    Paragraph,
    Quote,
    SyncedBlock,
    Table,
    TableRow,
    ToDo,
    Toggle,
)
from .errors import NotionError
from .normalize import block_from_notion_object
from .run_log import RunLogger
from .snapshot import SnapshotStore
from .transport import ContentTransport

# Expanded only when the envelope says the block has children.
_CHILDREN_WHEN_FLAGGED: tuple[type[Block], ...] = (
    Paragraph,
    Heading,
    BulletedListItem,
    NumberedListItem,
    ToDo,
    Quote,
    Callout,
    Toggle,
    Column,
)


class BlockTreeAssembler:
    """
    Fetch a block's children and recursively populate every container.

    Tables get their rows, column lists their columns (each column assembled
    in turn), synced blocks the children of the block they mirror. Nodes are
    rebuilt with their children rather than mutated, so every returned block
    is complete and immutable. Recursion follows the document's own nesting.
    """

    def __init__(
        self,
        transport: ContentTransport,
        *,
        snapshots: SnapshotStore | None = None,
        logger: RunLogger | None = None,
    ) -> None:
        self._transport = transport
        self._snapshots = snapshots
        self._logger = logger

    async def list_raw_children(self, block_id: str) -> list[dict[str, Any]]:
        if self._snapshots is not None:
            cached = self._snapshots.load(block_id)
            if cached is not None:
                if self._logger is not None:
                    self._logger.info("snapshot_hit", block_id=block_id, count=len(cached))
                return cached
        return await self._transport.list_block_children(block_id)

    async def get_block(self, block_id: str) -> Block:
        return block_from_notion_object(await self._transport.retrieve_block(block_id))

    async def get_all_blocks(self, block_id: str) -> list[Block]:
        raws = await self.list_raw_children(block_id)
        blocks = [block_from_notion_object(raw) for raw in raws]

        out: list[Block] = []
        for block in blocks:
            out.append(await self._expand(block))
        return out

    async def _expand(self, block: Block) -> Block:
        if isinstance(block, Table):
            return block.with_rows(await self._table_rows(block.id))
        if isinstance(block, ColumnList):
            return block.with_columns(await self._columns(block.id))
        if isinstance(block, SyncedBlock):
            return block.with_children(await self._synced_children(block))
        if isinstance(block, _CHILDREN_WHEN_FLAGGED) and block.has_children:
            return block.with_children(await self.get_all_blocks(block.id))  # type: ignore[attr-defined]
        return block

    async def _table_rows(self, table_id: str) -> list[TableRow]:
        rows: list[TableRow] = []
        for raw in await self.list_raw_children(table_id):
            row = block_from_notion_object(raw)
            if not isinstance(row, TableRow):
                row = TableRow(id=row.id, has_children=row.has_children)
            rows.append(row)
        return rows

    async def _columns(self, column_list_id: str) -> list[Column]:
        raws = await self.list_raw_children(column_list_id)

        async def _column(raw: dict[str, Any]) -> Column:
            column_id = str(raw.get("id") or "")
            children = await self.get_all_blocks(column_id)
            return Column(
                id=column_id,
                has_children=raw.get("has_children") is True,
                children=tuple(children),
            )

        return list(await asyncio.gather(*(_column(raw) for raw in raws)))

    async def _synced_children(self, block: SyncedBlock) -> list[Block]:
        source_id = block.id
        if block.synced_from is not None:
            try:
                original = await self.get_block(block.synced_from.block_id)
            except NotionError as e:
                if self._logger is not None:
                    self._logger.warning(
                        "synced_block_source_unresolved",
                        block_id=block.id,
                        synced_from=block.synced_from.block_id,
                        error=str(e),
                    )
                return []
            source_id = original.id

        return await self.get_all_blocks(source_id)
