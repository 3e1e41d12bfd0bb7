from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Sequence

from .errors import NotionError


class SnapshotStore:
    """
    Directory of pre-fetched block children, one ``<block_id>.json`` file per parent.

    Each file holds the JSON array of raw block objects the children listing
    would have returned. A present file replaces the remote call for that id.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, block_id: str) -> Path:
        bid = (block_id or "").strip()
        if not bid or "/" in bid or "\\" in bid or bid in (".", ".."):
            raise ValueError(f"invalid block id for snapshot: {block_id!r}")
        return self._dir / f"{bid}.json"

    def load(self, block_id: str) -> list[dict[str, Any]] | None:
        path = self.path_for(block_id)
        if not path.is_file():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise NotionError(f"Failed to read snapshot for block {block_id}: {path}") from e

        # Accept a saved list response as well as a bare results array.
        if isinstance(data, dict) and isinstance(data.get("results"), list):
            data = data["results"]
        if not isinstance(data, list):
            raise NotionError(f"Snapshot for block {block_id} must be a JSON array: {path}")
        return [item for item in data if isinstance(item, dict)]

    def save(self, block_id: str, results: Sequence[dict[str, Any]]) -> Path:
        path = self.path_for(block_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        payload = json.dumps(list(results), ensure_ascii=False, indent=2)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.stem}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                fp.write(payload)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        return path
