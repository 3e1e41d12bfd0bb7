from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

import httpx

from .assets import collect_media_urls, download_post_assets, download_urls
from .blocks import to_dict
from .config import load_config, resolve_runtime_secrets
from .config_schema import AppConfig
from .content import ContentService
from .errors import ConfigError, LockError, NotionError, PostNotFoundError
from .grouping import document_to_dict
from .run_log import RunLogger
from .snapshot import SnapshotStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notion_blog")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", required=True, help="Path to YAML config file.")
    common.add_argument(
        "--offline",
        action="store_true",
        help="Use a small built-in dataset instead of the Notion API.",
    )
    common.add_argument("--log-file", help="Write JSONL logs here instead of stderr.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    posts = subparsers.add_parser(
        "posts", parents=[common], help="Print the published posts and site meta as JSON."
    )
    posts.add_argument("--lang", help="Language key (defaults to site.default_language).")
    posts.set_defaults(_handler=_cmd_posts)

    blocks = subparsers.add_parser(
        "blocks", parents=[common], help="Print a post's grouped block tree as JSON."
    )
    blocks.add_argument("--slug", required=True, help="Post slug.")
    blocks.add_argument("--lang", help="Language key (defaults to site.default_language).")
    blocks.set_defaults(_handler=_cmd_blocks)

    snapshot = subparsers.add_parser(
        "snapshot",
        parents=[common],
        help="Save a block's raw children into the snapshot directory.",
    )
    snapshot.add_argument("--block-id", required=True, help="Parent block or page id.")
    snapshot.add_argument(
        "--recursive",
        action="store_true",
        help="Also snapshot every descendant that has children.",
    )
    snapshot.set_defaults(_handler=_cmd_snapshot)

    assets = subparsers.add_parser(
        "assets", parents=[common], help="Download featured images (and block media)."
    )
    assets.add_argument("--lang", help="Language key (defaults to all languages).")
    assets.add_argument("--out", help="Output directory (defaults to assets.output_dir).")
    assets.add_argument(
        "--blocks",
        action="store_true",
        help="Also download image/video/file blocks from every post body.",
    )
    assets.set_defaults(_handler=_cmd_assets)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True))


def _open_logger(args: argparse.Namespace, default_path: Path | None = None) -> RunLogger:
    path = getattr(args, "log_file", None) or default_path
    if path:
        return RunLogger.open(path, overwrite=True)
    return RunLogger.to_stream(sys.stderr)


def _build_service(cfg: AppConfig, args: argparse.Namespace, logger: RunLogger) -> ContentService:
    if bool(getattr(args, "offline", False)):
        from .offline import demo_transport

        return ContentService.from_config(cfg, transport=demo_transport(), logger=logger)

    secrets = resolve_runtime_secrets(cfg)
    return ContentService.from_config(cfg, secrets, logger=logger)


def _lang(cfg: AppConfig, args: argparse.Namespace) -> str:
    lang = getattr(args, "lang", None) or cfg.site.default_language
    if lang not in cfg.site.languages:
        raise ConfigError(f"Unknown language {lang!r}; configured: {', '.join(cfg.site.languages)}")
    return lang


def _cmd_posts(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    lang = _lang(cfg, args)

    async def _run() -> dict[str, Any]:
        with _open_logger(args) as log:
            service = _build_service(cfg, args, log)
            try:
                posts = await service.get_all_posts(lang)
                meta = await service.get_site_meta(lang)
                return {
                    "lang": lang,
                    "site": to_dict(meta),
                    "number_of_pages": await service.get_number_of_pages(lang),
                    "tags": to_dict(await service.get_all_tags(lang)),
                    "posts": to_dict(list(posts)),
                }
            finally:
                await service.aclose()

    _print_json(asyncio.run(_run()))
    return 0


def _cmd_blocks(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    lang = _lang(cfg, args)

    async def _run() -> dict[str, Any]:
        with _open_logger(args) as log:
            service = _build_service(cfg, args, log)
            try:
                post, document = await service.get_post_document(lang, args.slug)
                return {"post": to_dict(post), "document": document_to_dict(document)}
            finally:
                await service.aclose()

    _print_json(asyncio.run(_run()))
    return 0


def _cmd_snapshot(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    store = SnapshotStore(cfg.snapshots.dir)

    async def _run() -> list[Path]:
        with _open_logger(args) as log:
            service = _build_service(cfg, args, log)
            written: list[Path] = []
            try:
                pending = [args.block_id]
                while pending:
                    block_id = pending.pop(0)
                    results = await service.get_raw_children(block_id)
                    written.append(store.save(block_id, results))
                    log.info("snapshot_saved", block_id=block_id, count=len(results))
                    if args.recursive:
                        pending.extend(
                            str(r["id"]) for r in results if r.get("has_children") and r.get("id")
                        )
            finally:
                await service.aclose()
            return written

    for path in asyncio.run(_run()):
        print(f"snapshot={path}")
    return 0


def _cmd_assets(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    out_dir = Path(args.out or cfg.assets.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    langs = [_lang(cfg, args)] if args.lang else list(cfg.site.languages)

    async def _run() -> list[Path]:
        with _open_logger(args, out_dir / "run.log") as log:
            log.info("assets_command_started", out_dir=str(out_dir), langs=langs)
            service = _build_service(cfg, args, log)
            written: list[Path] = []
            try:
                async with httpx.AsyncClient(
                    timeout=cfg.assets.timeout_seconds, follow_redirects=True
                ) as client:
                    for lang in langs:
                        lang_log = log.bind(lang=lang)
                        lang_written: list[Path] = []
                        posts = await service.get_all_posts(lang)
                        lang_written.extend(
                            await download_post_assets(
                                posts, client=client, output_dir=out_dir, logger=lang_log
                            )
                        )
                        if args.blocks:
                            for post in posts:
                                blocks = await service.get_all_blocks_by_block_id(post.page_id)
                                lang_written.extend(
                                    await download_urls(
                                        collect_media_urls(blocks),
                                        client=client,
                                        output_dir=out_dir,
                                        logger=lang_log,
                                    )
                                )
                        lang_log.info("assets_language_completed", downloaded=len(lang_written))
                        written.extend(lang_written)
            except Exception as e:
                log.exception("assets_command_failed", exc=e)
                raise
            finally:
                await service.aclose()
            log.info("assets_command_completed", downloaded=len(written))
            return written

    written = asyncio.run(_run())
    print(f"downloaded={len(written)}")
    print(f"out_dir={out_dir}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (NotionError, LockError, PostNotFoundError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
