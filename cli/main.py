"""CLI entry point."""

import asyncio
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, TextIO

import httpx

from common.logging_config import setup_logging, get_logger
from cli.constants import DEFAULT_CONFIG_PATH, USAGE_TEXT
from cli.utils import ProgressPrinter, format_file_size
from uploader.config import Config
from uploader.exceptions import FileTooLargeError
from uploader.files import LocalFile
from uploader.queue_manager import UploadQueueManager
from uploader.store_client import RemoteStoreClient
from uploader.types import UploadPhase

logger = get_logger(__name__)


class ParseError(Exception):
    """Raised when command-line arguments are invalid."""

    pass


@dataclass(frozen=True)
class UploadArgs:
    """Parsed command line."""

    files: tuple[str, ...]
    config_path: str = DEFAULT_CONFIG_PATH
    debug: bool = False
    show_help: bool = False


def parse_args(argv: List[str]) -> UploadArgs:
    """
    Parse command-line arguments.

    Args:
        argv: Arguments without the program name

    Returns:
        UploadArgs

    Raises:
        ParseError: If an option is unknown or incomplete, or no file is given
    """
    files = []
    config_path = DEFAULT_CONFIG_PATH
    debug = False
    args = iter(argv)

    for arg in args:
        if arg in ('-h', '--help'):
            return UploadArgs(files=(), show_help=True)
        elif arg == '--debug':
            debug = True
        elif arg == '--config':
            config_path = next(args, None)
            if not config_path:
                raise ParseError("--config requires a path")
        elif arg.startswith('--'):
            raise ParseError(f"Unknown option: {arg}")
        else:
            files.append(arg)

    if not files:
        raise ParseError("At least one file is required")

    return UploadArgs(files=tuple(files), config_path=config_path, debug=debug)


async def run_uploads(
    paths: List[str],
    config: Config,
    out: TextIO = sys.stdout,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> int:
    """
    Upload files and print progress and a summary.

    Args:
        paths: Files to upload
        config: Loaded configuration
        out: Stream for progress and summary lines
        transport: Optional httpx transport (tests)

    Returns:
        Process exit code: 0 if every file succeeded, 1 otherwise
    """
    settings = config.get_upload_settings()
    printer = ProgressPrinter(out)
    rejected = 0

    async with RemoteStoreClient.from_config(config, transport=transport) as store:
        if not await store.ping():
            logger.warning(f"Store at {config.get_base_url()} did not answer the health check")

        async with UploadQueueManager(store, settings, on_change=printer.update) as manager:
            for path in paths:
                try:
                    manager.enqueue(LocalFile.from_path(path))
                except (FileNotFoundError, IsADirectoryError, FileTooLargeError) as e:
                    out.write(f"Error: {e}\n")
                    rejected += 1

            await manager.join()
            snapshots = manager.snapshots()
            total_bytes = manager.total_bytes_uploaded

    succeeded = sum(1 for s in snapshots if s.phase == UploadPhase.SUCCEEDED)
    instant = sum(1 for s in snapshots if s.phase == UploadPhase.SUCCEEDED and s.instant)
    failed = len(snapshots) - succeeded

    out.write(
        f"\n{succeeded} uploaded ({instant} already on store), {failed + rejected} failed, "
        f"{format_file_size(total_bytes)} sent\n"
    )
    out.flush()

    return 0 if failed + rejected == 0 else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for CLI."""
    try:
        args = parse_args(sys.argv[1:] if argv is None else argv)
    except ParseError as e:
        sys.stderr.write(f"Error: {e}\n\n{USAGE_TEXT}\n")
        return 2

    if args.show_help:
        print(USAGE_TEXT)
        return 0

    log_level = 'DEBUG' if args.debug else os.getenv('LOG_LEVEL', 'INFO')
    cli_logger = setup_logging('cli', log_level=log_level)
    setup_logging('uploader', log_level=log_level)

    if args.debug:
        cli_logger.info("Debug logging enabled")

    config = Config(Path(args.config_path).expanduser())

    try:
        return asyncio.run(run_uploads(list(args.files), config))
    except ValueError as e:
        sys.stderr.write(f"Error: {e}\n")
        return 2
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled\n")
        return 130


if __name__ == "__main__":
    sys.exit(main())
