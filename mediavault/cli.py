from __future__ import annotations

import argparse
import asyncio
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from rich.console import Console

from .catalog.aggregator import MediaCatalogAggregator
from .catalog.index import SqlMediaIndex
from .catalog.scanner import scan_directory
from .core.config import Settings, get_settings
from .core.db import create_engine, create_schema, create_session_factory
from .core.logging import configure_logging, level_from_name
from .core.storage import get_store, get_thumbnail_store
from .ingest.resources import LocalFileRef
from .ingest.results import AttachmentProcessingError, IngestSuccess
from .services.attachment_service import AttachmentService

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))

    if getattr(args, "check", False):
        _run_environment_check(settings)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    exit_code = asyncio.run(args.func(args, settings))
    if exit_code:
        sys.exit(exit_code)


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI.

    Returns:
        The argument parser.
    """
    parser = argparse.ArgumentParser(description="mediavault attachment ingest CLI")
    parser.add_argument("--check", action="store_true", help="Validate OpenCV and the private store")

    subparsers = parser.add_subparsers(dest="command")

    ingest_parser = subparsers.add_parser("ingest", help="Copy files into the private store")
    ingest_parser.add_argument("files", nargs="+", help="Paths of the media files to ingest")
    ingest_parser.add_argument(
        "--keep-going",
        action="store_true",
        help="Report per-file results instead of failing the whole batch.",
    )
    ingest_parser.add_argument("--no-retry", action="store_true", help="Do not retry failed copies.")
    ingest_parser.set_defaults(func=_cmd_ingest)

    thumb_parser = subparsers.add_parser("thumb", help="Extract a thumbnail frame from a video")
    thumb_parser.add_argument("file", help="Path to the video")
    thumb_parser.set_defaults(func=_cmd_thumb)

    scan_parser = subparsers.add_parser("scan", help="Index a directory tree of images and videos")
    scan_parser.add_argument("root", help="Directory to scan; each sub-directory becomes an album")
    scan_parser.add_argument("--replace", action="store_true", help="Clear the index before scanning.")
    scan_parser.set_defaults(func=_cmd_scan)

    recent_parser = subparsers.add_parser("recent", help="List the newest indexed media")
    recent_parser.add_argument("--limit", type=int, default=None)
    recent_parser.set_defaults(func=_cmd_recent)

    albums_parser = subparsers.add_parser("albums", help="List non-empty albums")
    albums_parser.add_argument("--album-id", type=int, default=None, help="List the media of one album instead")
    albums_parser.set_defaults(func=_cmd_albums)
    return parser


async def _cmd_ingest(args: argparse.Namespace, settings: Settings) -> int:
    """Ingest files and keep the successful copies.

    Args:
        args: The command-line arguments.
        settings: Runtime settings.
    """
    service = AttachmentService(settings, get_store(settings), retry=not args.no_retry)
    refs = [LocalFileRef(Path(item).expanduser()) for item in args.files]
    exit_code = 0
    try:
        if args.keep_going:
            results = await service.ingest_results(refs)
            rows: list[dict[str, Any]] = []
            for result in results:
                if isinstance(result, IngestSuccess):
                    rows.append({"source": result.ref.label, "file": str(result.file_id), "kind": result.kind.value})
                else:
                    rows.append({"source": result.ref.label, "error": result.reason.value, "message": result.message})
                    exit_code = 1
            service.promote([r.file_id for r in results if isinstance(r, IngestSuccess)])
            console.print_json(data=rows)
        else:
            try:
                processed = await service.ingest_batch(refs)
            except AttachmentProcessingError as exc:
                console.print(f"[red]{exc}[/]")
                return 1
            service.promote([item.file_id for item in processed])
            console.print_json(data=[{"file": str(item.file_id), "kind": item.kind.value} for item in processed])
    finally:
        await service.close()
    return exit_code


async def _cmd_thumb(args: argparse.Namespace, settings: Settings) -> int:
    service = AttachmentService(settings, get_store(settings), thumbnail_store=get_thumbnail_store(settings))
    thumbnail = await service.thumbnail(Path(args.file).expanduser())
    if thumbnail is None:
        console.print("[yellow]Thumbnail unavailable for this file[/]")
        return 2
    console.print(f"[green]Thumbnail written to {thumbnail}[/]")
    return 0


async def _cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    root = Path(args.root).expanduser().resolve()
    if not root.is_dir():
        console.print(f"[red]Not a directory: {root}[/]")
        return 2
    engine = create_engine(settings)
    try:
        await create_schema(engine)
        index = SqlMediaIndex(create_session_factory(engine))
        if args.replace:
            await index.clear()
        entries = await asyncio.to_thread(scan_directory, root)
        added = await index.add_entries(entries)
    finally:
        await engine.dispose()
    console.print(f"[green]Indexed {added} item(s) from {root}[/]")
    return 0


async def _cmd_recent(args: argparse.Namespace, settings: Settings) -> int:
    async def run(catalog: MediaCatalogAggregator) -> Any:
        items = await catalog.recent_media(args.limit)
        return [_item_row(item) for item in items]

    console.print_json(data=await _with_catalog(settings, run))
    return 0


async def _cmd_albums(args: argparse.Namespace, settings: Settings) -> int:
    async def run(catalog: MediaCatalogAggregator) -> Any:
        if args.album_id is not None:
            return [_item_row(item) for item in await catalog.media_for_album(args.album_id)]
        return [
            {
                "album_id": album.album_id,
                "name": album.name,
                "cover": album.cover_uri,
                "items": album.item_count,
                "last_updated": album.last_updated.isoformat(),
            }
            for album in await catalog.non_empty_albums()
        ]

    console.print_json(data=await _with_catalog(settings, run))
    return 0


async def _with_catalog(settings: Settings, run) -> Any:
    engine = create_engine(settings)
    try:
        await create_schema(engine)
        catalog = MediaCatalogAggregator(
            SqlMediaIndex(create_session_factory(engine)),
            default_limit=settings.recent_media_limit,
        )
        return await run(catalog)
    finally:
        await engine.dispose()


def _item_row(item) -> dict[str, Any]:
    return {
        "id": item.media_id,
        "uri": item.uri,
        "name": item.display_name,
        "kind": item.kind.value,
        "captured_at": item.captured_at.isoformat(),
        "album": item.album_name,
    }


def _run_environment_check(settings: Settings) -> None:
    """Check that OpenCV imports and the private store is usable."""
    results: dict[str, bool] = {}
    try:
        import cv2  # type: ignore  # noqa: F401

        results["opencv"] = True
    except ImportError:
        results["opencv"] = False

    store = get_store(settings)
    try:
        with tempfile.NamedTemporaryFile(dir=store.root):
            pass
        results["store writable"] = True
    except OSError:
        results["store writable"] = False

    try:
        results["free space"] = store.available_bytes() > settings.max_file_size_bytes * settings.disk_space_multiplier
    except OSError:
        results["free space"] = False

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Environment is not ready for ingestion.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
