"""CodeWeave CLI entry point."""

import argparse
import asyncio
import sys
from typing import Any

from loguru import logger

from codeweave.core.config.config import Config
from codeweave.core.config.logging_config import LoggingConfig
from codeweave.core.exceptions import ConfigurationError

from .parsers import create_main_parser, setup_subparsers

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
PERFORMANCE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {message}"


def setup_logging(verbose: bool = False, config: Any = None) -> None:
    """Configure loguru sinks.

    Args:
        verbose: Show DEBUG output on the console
        config: Config (or LoggingConfig) providing file and performance sinks
    """
    logging_config: LoggingConfig | None
    if isinstance(config, LoggingConfig):
        logging_config = config
    else:
        logging_config = getattr(config, "logging", None) if config is not None else None

    logger.remove()

    console_level = "DEBUG" if verbose else "WARNING"
    logger.add(sys.stderr, level=console_level, format=CONSOLE_FORMAT, colorize=True)

    if logging_config is None:
        return

    if logging_config.file.enabled:
        logger.add(
            logging_config.file.path,
            level=logging_config.file.level,
            rotation=logging_config.file.rotation,
            retention=logging_config.file.retention,
            format=FILE_FORMAT,
        )

    if logging_config.performance.enabled:
        logger.add(
            logging_config.performance.path,
            level="INFO",
            format=PERFORMANCE_FORMAT,
            filter=lambda record: record["extra"].get("performance", False),
        )


def create_parser() -> argparse.ArgumentParser:
    parser = create_main_parser()
    setup_subparsers(parser)
    return parser


async def async_main(args: argparse.Namespace) -> None:
    """Dispatch to the selected command."""
    try:
        config = Config.from_args(args)
    except ConfigurationError as e:
        setup_logging(getattr(args, "verbose", False))
        logger.error(str(e))
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(getattr(args, "verbose", False), config)

    if args.command == "analyze":
        from .commands.analyze import analyze_command

        await analyze_command(args, config)
    else:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CodeWeave CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "command", None):
        parser.print_help()
        sys.exit(0)

    try:
        asyncio.run(async_main(args))
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
