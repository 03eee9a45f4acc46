#!/usr/bin/env python3
"""
Admin CLI for the goal store.

Usage:
    metastore list 42
    metastore get 42 daily 3 --activation
    metastore set 42 weekly 2 9500
    metastore delete 42 weekly 2
    metastore clear --yes
"""
import argparse
import asyncio
import json
import sys

from .config_loader import Config
from .errors import StoreResult
from .kv_store import JsonFileKeyValueStore
from .logging_setup import get_logger, setup_logging
from .meta_store import MetaStore

logger = get_logger(__name__)


def _build_store(args: argparse.Namespace, config: Config) -> MetaStore:
    kv_path = args.kv_path or config.storage.kv_path
    return MetaStore(JsonFileKeyValueStore(kv_path), storage_key=config.storage.storage_key)


def _report(result: StoreResult) -> int:
    if not result.ok:
        logger.error("%s failed: %s", type(result.error).__name__, result.error)
        return 1
    return 0


async def run_command(args: argparse.Namespace, store: MetaStore) -> int:
    """Execute one parsed command against a store. Returns the exit code."""
    command = args.command

    if command == "list":
        if args.activation:
            result = await store.list_activation(args.device_id)
        else:
            result = await store.list_all(args.device_id)
        for record in result.value or []:
            print(json.dumps(record.model_dump(mode="json"), ensure_ascii=False))
        return _report(result)

    if command == "get":
        loader = store.load_activation if args.activation else store.load_value
        result = await loader(args.device_id, args.filter_type, args.period_index)
        suffix = " (default)" if result.defaulted else ""
        print(f"{result.value:g}{suffix}")
        return _report(result)

    if command == "set":
        saver = store.save_activation if args.activation else store.save_value
        result = await saver(args.device_id, args.filter_type, args.period_index, args.value)
        return _report(result)

    if command == "delete":
        deleter = store.delete_activation if args.activation else store.delete_value
        result = await deleter(args.device_id, args.filter_type, args.period_index)
        if result.ok and not result.value:
            logger.info("Nothing stored for %s/%s/%d", args.device_id, args.filter_type, args.period_index)
        return _report(result)

    if command == "clear":
        if not args.yes:
            response = input("Delete all goals for every device? [y/N]: ")
            if response.lower() != "y":
                logger.info("Clear cancelled")
                return 0
        return _report(await store.clear_all())

    raise ValueError(f"unknown command: {command}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metastore",
        description="Inspect and edit stored device goals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    metastore list 42
    metastore get 42 daily 3 --activation
    metastore set 42 weekly 2 9500
    metastore clear --yes
        """,
    )
    parser.add_argument("--config", "-c", help="Path to JSON config file")
    parser.add_argument("--kv-path", help="Override the key-value file holding the database")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    sub = parser.add_subparsers(dest="command", required=True)

    def add_key_args(p: argparse.ArgumentParser, with_period: bool = True) -> None:
        p.add_argument("device_id")
        if with_period:
            p.add_argument("filter_type", help="e.g. daily, weekly, monthly")
            p.add_argument("period_index", type=int)
        p.add_argument(
            "--activation", "-a", action="store_true",
            help="Use activation goals instead of value goals",
        )

    add_key_args(sub.add_parser("list", help="List goals of a device"), with_period=False)
    add_key_args(sub.add_parser("get", help="Show one goal (or its default)"))
    set_parser = sub.add_parser("set", help="Store a goal")
    add_key_args(set_parser)
    set_parser.add_argument("value")
    add_key_args(sub.add_parser("delete", help="Delete one goal"))

    clear_parser = sub.add_parser("clear", help="Delete all goals from both tables")
    clear_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    return parser


async def _main_async(args: argparse.Namespace, config: Config) -> int:
    store = _build_store(args, config)
    try:
        return await run_command(args, store)
    finally:
        await store.close()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    config = Config.load(args.config)
    setup_logging(
        verbose=args.verbose or config.logging.verbose,
        log_file=config.logging.log_file,
    )
    sys.exit(asyncio.run(_main_async(args, config)))


if __name__ == "__main__":
    main()
