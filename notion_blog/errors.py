from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class NotionError(RuntimeError):
    """Raised when a Notion API call fails permanently or exhausts its retries."""


class PostNotFoundError(RuntimeError):
    """Raised when a post required for page generation does not exist."""


class LockError(RuntimeError):
    """Raised when a single-flight acquisition is rejected (queue full or holder overran)."""


class AssetError(RuntimeError):
    """Raised inside the asset materializer; always caught and logged."""
