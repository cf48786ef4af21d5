"""Module executed when running ``python -m shelfexport``."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

import httpx
import uvicorn

from shelf.config import RunConfig, settings
from shelf.models import ExportResult
from shelf.report import use_system_collation
from shelf.services.exporter import LibraryExporter, static_credentials

from . import __version__

logger = logging.getLogger("shelfexport")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shelfexport",
        description="Serve the export API or run a single export to a file.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="start the HTTP service (default)")

    export = commands.add_parser("export", help="run one export and write the report")
    export.add_argument("--kind", choices=("full", "basic"), default="full")
    export.add_argument("--mode", help="preview or full; defaults to EXPORT_MODE")
    export.add_argument("--concurrency", type=int, help="maximum requests in flight")
    export.add_argument(
        "-o", "--output", type=Path, default=Path("library.csv"), help="report path"
    )
    return parser


async def _export(args: argparse.Namespace) -> ExportResult:
    config = RunConfig.from_settings(
        settings, mode=args.mode, concurrency_limit=args.concurrency
    )
    async with httpx.AsyncClient(
        base_url=str(settings.api_base_url),
        timeout=httpx.Timeout(30.0, connect=10.0),
    ) as http_client:
        exporter = LibraryExporter(settings, http_client)
        credentials = static_credentials(settings.csrf_token)
        if args.kind == "basic":
            return await exporter.run_basic(config, credentials)
        return await exporter.run(config, credentials)


def main(argv: Sequence[str] | None = None) -> None:
    """Start the uvicorn server, or run one export when asked to."""

    args = _parser().parse_args(argv)

    if args.command == "export":
        logging.basicConfig(level=logging.INFO)
        use_system_collation()
        result = asyncio.run(_export(args))
        args.output.write_text(result.report, encoding="utf-8")
        logger.info("Wrote %s records to %s", result.record_count, args.output)
        return

    uvicorn.run(
        "shelf.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
