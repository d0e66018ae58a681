"""Command line entry point: serve a bucket, list a folder, or download one."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from bucket_browser.browser import StorageBrowser
from bucket_browser.client.api import BrowserAPIClient
from bucket_browser.client.archive import (
    ArchiveProgress,
    ArchiveStatus,
    CancellationToken,
    FolderArchiveBuilder,
)
from bucket_browser.client.controller import BrowserController, ViewState
from bucket_browser.client.formatting import format_bytes, format_date
from bucket_browser.config import Config
from bucket_browser.observability import configure_logging

DEFAULT_URL = "http://127.0.0.1:8080"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bucket-browser", description="Bucket storage browser")
    parser.add_argument("--config", "-c", default=None, help="YAML or JSON config file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP browser")
    serve.add_argument("--host", default=None, help="Server host")
    serve.add_argument("--port", type=int, default=None, help="Server port")
    serve.add_argument("--backend", default=None, help="Store backend (memory, local, r2)")
    serve.add_argument("--path", default=None, help="Directory for the local backend")

    ls = commands.add_parser("ls", help="List a folder of a running browser")
    ls.add_argument("prefix", nargs="?", default="", help="Folder prefix, e.g. photos/")
    ls.add_argument("--url", default=None, help="Browser base URL")
    ls.add_argument("--search", default="", help="Only show names containing this text")

    download = commands.add_parser("download-folder", help="Bundle a folder into a ZIP")
    download.add_argument("prefix", help="Folder prefix, e.g. photos/2024/")
    download.add_argument("--url", default=None, help="Browser base URL")
    download.add_argument("--output", "-o", default=".", help="Directory for the archive")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    config = Config.from_file(args.config) if args.config else Config()
    if getattr(args, "backend", None):
        config.storage.backend = args.backend
    if getattr(args, "path", None):
        config.storage.path = args.path
    return config


async def list_folder(config: Config, prefix: str, query: str, url: str | None) -> int:
    async with BrowserAPIClient(url or config.client.base_url) as api:
        controller = BrowserController(api, render_delay=config.client.render_delay)
        state = await controller.navigate(prefix)
        if state.view is ViewState.ERROR:
            print(f"Sync failed: {state.error}", file=sys.stderr)
            return 1
        if query:
            controller.search(query)

        print(" / ".join(label for label, _ in controller.breadcrumbs()))
        for name in state.visible_folders:
            print(f"  {name}")
        for obj in state.visible_files:
            name = obj.key[len(state.current_prefix):]
            print(f"  {name:<40} {format_bytes(obj.size):>10}  {format_date(obj.uploaded)}")
        print(state.status_text)
    return 0


def _print_progress(progress: ArchiveProgress) -> None:
    print(f"\r[{progress.percent:5.1f}%] {progress.stats} {progress.label[:60]:<60}", end="", file=sys.stderr)


async def download_folder(config: Config, prefix: str, output: str, url: str | None) -> int:
    token = CancellationToken()
    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        pass

    async with BrowserAPIClient(url or config.client.base_url) as api:
        builder = FolderArchiveBuilder(
            api,
            progress=_print_progress,
            default_name=config.client.archive_default_name,
        )
        result = await builder.build(prefix, token)
    print(file=sys.stderr)

    if result.status is not ArchiveStatus.COMPLETED:
        print(result.message or result.status.value, file=sys.stderr)
        return 0 if result.status is ArchiveStatus.EMPTY else 1

    path = result.save(Path(output))
    print(f"{result.file_count} files downloaded to {path}")
    for key in result.skipped:
        print(f"skipped: {key}", file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args)
    except (OSError, ValueError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    if args.debug:
        config.logging.level = "DEBUG"
    configure_logging(config.logging.level, config.logging.format)

    if args.command == "serve":
        StorageBrowser(config).serve(host=args.host, port=args.port)
        return 0
    if args.command == "ls":
        return asyncio.run(list_folder(config, args.prefix, args.search, args.url))
    return asyncio.run(download_folder(config, args.prefix, args.output, args.url))


if __name__ == "__main__":
    sys.exit(main())
