from __future__ import annotations

from .config import config_sha256, load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .content import ContentService
from .errors import ConfigError, LockError, NotionError, PostNotFoundError
from .grouping import BlockList, Document, build_document, group_list_items
from .normalize import block_from_notion_object, rich_text_from_notion_object

__all__ = [
    "AppConfig",
    "BlockList",
    "ConfigError",
    "ContentService",
    "Document",
    "LockError",
    "NotionError",
    "PostNotFoundError",
    "block_from_notion_object",
    "build_document",
    "config_sha256",
    "group_list_items",
    "load_config",
    "resolve_runtime_secrets",
    "rich_text_from_notion_object",
]
