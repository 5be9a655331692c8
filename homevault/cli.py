from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

from rich.console import Console
from rich.table import Table

from .core.config import Settings, get_settings
from .core.db import create_engine, create_session_factory
from .core.logging import configure_logging
from .core.storage import get_storage
from .ingest import IngestError, build_orchestrator, toolchain_status
from .services.media_service import MediaService

console = Console()

T = TypeVar("T")


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(level=settings.log_level)

    if getattr(args, "check", False):
        _run_environment_check(settings)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args, settings)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Homevault media archive CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/heif-convert")

    subparsers = parser.add_subparsers(dest="command")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a local file into a household archive")
    ingest_parser.add_argument("--file", required=True, help="Path to the source media file")
    ingest_parser.add_argument("--household", required=True, help="Household that owns the media")
    ingest_parser.add_argument("--type", choices=["photo", "video"], default=None, help="Media kind (default: from MIME)")
    ingest_parser.add_argument("--mime", default=None, help="MIME type (default: guessed from the file name)")
    ingest_parser.set_defaults(func=_cmd_ingest)

    backfill_parser = subparsers.add_parser("backfill-webp", help="Create missing web copies for photos")
    backfill_parser.add_argument("--limit", type=int, default=None, help="Process at most this many photos")
    backfill_parser.set_defaults(func=_cmd_backfill_webp)
    return parser


async def _with_service(settings: Settings, action: Callable[[MediaService], Awaitable[T]]) -> T:
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    orchestrator = build_orchestrator(settings)
    storage = get_storage(settings)
    try:
        async with session_factory() as session:
            return await action(MediaService(settings, orchestrator, storage, session))
    finally:
        await engine.dispose()


def _cmd_ingest(args: argparse.Namespace, settings: Settings) -> None:
    """Store, enrich and catalog one local file, then print the new record.

    Args:
        args: The command-line arguments.
        settings: Runtime configuration.
    """
    media_path = Path(args.file).expanduser().resolve()
    if not media_path.is_file():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)

    async def action(service: MediaService) -> tuple[Any, list[str]]:
        with media_path.open("rb") as handle:
            return await service.upload(
                household_id=args.household,
                stream=handle,
                filename=media_path.name,
                mime_type=args.mime,
                media_type=args.type,
            )

    try:
        item, warnings = asyncio.run(_with_service(settings, action))
    except IngestError as exc:
        console.print(f"[red]{exc.category}:[/] {exc.message}")
        sys.exit(3)

    console.print_json(
        data={
            "id": item.id,
            "path": item.path,
            "type": item.type.value,
            "mime_type": item.mime_type,
            "size_bytes": item.size_bytes,
            "sha256": item.sha256,
            "preview_path": item.preview_path,
            "thumbnail_path": item.thumbnail_path,
            "web_path": item.web_path,
            "taken_at": item.taken_at.isoformat() if item.taken_at else None,
            "warnings": warnings,
        }
    )


def _cmd_backfill_webp(args: argparse.Namespace, settings: Settings) -> None:
    report = asyncio.run(_with_service(settings, lambda service: service.backfill_web_copies(limit=args.limit)))

    table = Table(title="Web copy backfill")
    table.add_column("processed", justify="right")
    table.add_column("succeeded", justify="right", style="green")
    table.add_column("failed", justify="right", style="red")
    table.add_row(str(report.processed), str(report.succeeded), str(report.failed))
    console.print(table)

    if report.failed:
        sys.exit(1)


def _run_environment_check(settings: Settings) -> None:
    """Check for the presence of required external tools."""
    results = toolchain_status(settings)

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing tools detected. HEIC previews or video thumbnails will be skipped.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()
