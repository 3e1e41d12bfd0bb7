"""
Asset materializer.

Downloads images and files referenced by posts into the static output tree.
JPEGs are rotated upright from their EXIF orientation and re-saved without
metadata. Nothing here fails the build: every error is logged and the asset
is skipped.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence
from urllib.parse import unquote, urlsplit

import httpx
from PIL import Image, ImageOps

from .blocks import Block, ColumnList, File, HostedFile, Image as ImageBlock, Video
from .errors import AssetError
from .posts import Post
from .run_log import RunLogger

_JPEG_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/pjpeg"}


def destination_for(url: str, output_dir: str | Path) -> Path:
    """
    ``<output_dir>/<parent path segment>/<file name>`` for a file URL.

    Notion file URLs look like ``.../<uuid>/<file name>``, so the parent
    segment keeps same-named files from different uploads apart.
    """
    try:
        path = urlsplit(url).path
    except ValueError as e:
        raise AssetError(f"Malformed URL: {url}") from e
    segments = path.split("/")
    if len(segments) < 2:
        raise AssetError(f"URL has no file path: {url}")

    parent = unquote(segments[-2])
    filename = unquote(segments[-1])
    for part in (parent, filename):
        if not part or part in (".", "..") or "/" in part or "\\" in part:
            raise AssetError(f"Cannot derive a safe destination from URL: {url}")

    return Path(output_dir) / parent / filename


def is_expired(expiry_time: str | None, *, now: datetime | None = None) -> bool:
    """True when a hosted-file URL's expiry is in the past; external URLs never expire."""
    if not expiry_time:
        return False
    try:
        expires = datetime.fromisoformat(expiry_time.replace("Z", "+00:00"))
    except ValueError:
        return False
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return expires <= (now or datetime.now(timezone.utc))


def _is_jpeg(content_type: str) -> bool:
    return content_type.split(";", 1)[0].strip().casefold() in _JPEG_CONTENT_TYPES


def normalize_jpeg(path: Path) -> None:
    """Apply EXIF orientation and rewrite the file without EXIF metadata."""
    with Image.open(path) as im:
        im.load()
        upright = ImageOps.exif_transpose(im)
        icc = im.info.get("icc_profile")

    save_kwargs = {"format": "JPEG", "quality": 95}
    if icc:
        save_kwargs["icc_profile"] = icc
    upright.save(path, **save_kwargs)


async def download_file(
    url: str,
    *,
    client: httpx.AsyncClient,
    output_dir: str | Path,
    logger: RunLogger | None = None,
) -> Path | None:
    """
    Download ``url`` into the output tree; returns the written path or None on failure.

    Bytes are streamed into a temp file beside the destination and renamed on
    success, so a failed download never leaves a partial file under the final name.
    """
    try:
        dest = destination_for(url, output_dir)
    except AssetError as e:
        if logger is not None:
            logger.warning("asset_download_failed", url=url, reason="bad_url", error=str(e))
        return None

    tmp: str | None = None
    try:
        async with client.stream("GET", url) as res:
            if res.status_code != 200:
                if logger is not None:
                    logger.warning(
                        "asset_download_failed",
                        url=url,
                        reason="http_status",
                        status=res.status_code,
                    )
                return None

            dest.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".part", dir=dest.parent)
            with os.fdopen(fd, "wb") as fp:
                async for chunk in res.aiter_bytes():
                    fp.write(chunk)

            if _is_jpeg(res.headers.get("content-type", "")):
                normalize_jpeg(Path(tmp))

        os.replace(tmp, dest)
        tmp = None
    except (httpx.HTTPError, httpx.InvalidURL, OSError, ValueError, Image.DecompressionBombError) as e:
        if logger is not None:
            logger.exception("asset_download_failed", exc=e, url=url, reason="transfer")
        return None
    finally:
        if tmp is not None:
            Path(tmp).unlink(missing_ok=True)

    if logger is not None:
        logger.info("asset_downloaded", url=url, path=str(dest))
    return dest


async def download_post_assets(
    posts: Sequence[Post],
    *,
    client: httpx.AsyncClient,
    output_dir: str | Path,
    logger: RunLogger | None = None,
    now: datetime | None = None,
) -> list[Path]:
    """Download every post's featured image concurrently; skips expired hosted URLs."""
    urls: list[str] = []
    for post in posts:
        image = post.featured_image
        if image is None or not image.url:
            continue
        if isinstance(image, HostedFile) and is_expired(image.expiry_time, now=now):
            if logger is not None:
                logger.warning(
                    "asset_url_expired",
                    url=image.url,
                    slug=post.slug,
                    expiry_time=image.expiry_time,
                )
            continue
        urls.append(image.url)

    return await download_urls(urls, client=client, output_dir=output_dir, logger=logger)


def collect_media_urls(blocks: Sequence[Block], *, now: datetime | None = None) -> list[str]:
    """Unexpired URLs of image/video/file blocks anywhere in the tree, in document order."""
    urls: list[str] = []

    def _walk(nodes: Sequence[Block]) -> None:
        for block in nodes:
            if isinstance(block, (ImageBlock, Video, File)):
                hosted = block.media.file
                if hosted is not None and is_expired(hosted.expiry_time, now=now):
                    continue
                url = block.media.url
                if url and url not in urls:
                    urls.append(url)
            elif isinstance(block, ColumnList):
                for column in block.columns:
                    _walk(column.children)
            _walk(block.children)

    _walk(blocks)
    return urls


async def download_urls(
    urls: Sequence[str],
    *,
    client: httpx.AsyncClient,
    output_dir: str | Path,
    logger: RunLogger | None = None,
) -> list[Path]:
    results = await asyncio.gather(
        *(download_file(u, client=client, output_dir=output_dir, logger=logger) for u in urls)
    )
    return [p for p in results if p is not None]
