"""CLI entry point for catalogsync."""

import argparse
import asyncio
import inspect
import json
import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .cache import NEVER
from .config import load_config
from .container import Container
from .errors import CatalogError


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(log_data, default=str)


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure logging for the catalogsync CLI.

    Warnings (failed refreshes, unreadable freshness store) show by default;
    -v or --log-level lower the threshold. httpx request lines are only shown
    at debug level.
    """
    if log_level:
        level = getattr(logging, log_level.upper())
    else:
        level = logging.DEBUG if verbose else logging.WARNING

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    logging.basicConfig(level=level, handlers=[handler])
    if level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _print_entities(entities: list[dict]) -> None:
    if not entities:
        print("No countries cached.")
        return
    for e in entities:
        print(f"{e['uuid']:>5}  {e['name'] or '?':<32} {e['region'] or ''}")


async def _run_session(args: argparse.Namespace, action: str) -> int:
    """Run one coordinator session and print the published list."""
    container = Container(load_config(args.config))
    try:
        coordinator = container.create_coordinator()
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        await container.close()
        return 1

    try:
        if action == "reset":
            await coordinator.reset_and_resync()
        else:
            await coordinator.sync(force_refresh=getattr(args, "force", False))

        snapshot = coordinator.snapshot()
    finally:
        await coordinator.close()
        await container.close()

    if args.json:
        print(json.dumps(snapshot, indent=2))
    else:
        _print_entities(snapshot["data"] or [])
        if snapshot["error"]:
            print("Error: could not refresh from the remote source", file=sys.stderr)

    return 1 if snapshot["error"] else 0


async def cmd_sync(args: argparse.Namespace) -> int:
    """Sync the catalog, serving from cache while it is fresh."""
    return await _run_session(args, "sync")


async def cmd_reset(args: argparse.Namespace) -> int:
    """Clear the cache and resync from the remote."""
    return await _run_session(args, "reset")


async def _query(config, query):
    """Run one read-only coordinator call and release everything afterwards."""
    container = Container(config)
    try:
        coordinator = container.create_coordinator()
        try:
            return await query(coordinator)
        finally:
            await coordinator.close()
    finally:
        await container.close()


async def cmd_list(args: argparse.Namespace) -> int:
    """List cached entities without touching the network."""
    try:
        cached = await _query(load_config(args.config), lambda c: c.read_cached())
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    entities = [e.to_dict() for e in cached]
    if args.json:
        print(json.dumps(entities, indent=2))
    else:
        _print_entities(entities)
    return 0


async def cmd_show(args: argparse.Namespace) -> int:
    """Show a single cached entity."""
    try:
        entity = await _query(load_config(args.config), lambda c: c.get_entity(args.uuid))
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    data = entity.to_dict()
    if args.json:
        print(json.dumps(data, indent=2))
    else:
        for key in ("name", "region", "capital", "currency", "language", "image_url"):
            print(f"{key.replace('_', ' ').title():<10} {data[key] or '-'}")
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    """Show cache and freshness status."""
    config = load_config(args.config)

    try:
        stats = await _query(config, lambda c: c.cache_status())
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    last_sync = stats.pop("last_sync_time")
    fresh = stats.pop("fresh")
    status_data = {
        "timestamp": datetime.now().isoformat(),
        "remote_url": config.remote.url,
        "cache": {"db_path": config.cache.db_path, **stats},
        "freshness": {
            "db_path": config.freshness.db_path,
            "ttl_minutes": config.freshness.ttl_minutes,
            "fresh": fresh,
            "last_sync": (
                datetime.fromtimestamp(last_sync / 1e9).isoformat()
                if last_sync != NEVER
                else None
            ),
        },
    }

    if args.json:
        print(json.dumps(status_data, indent=2))
    else:
        print("Catalog Status")
        print("==============")
        print(f"Remote: {status_data['remote_url']}")
        print()
        print(f"Cache ({config.cache.db_path}):")
        print(f"  Entities: {stats['entity_count']}")
        print(f"  Last uuid: {stats['last_uuid']}")
        print()
        print(f"Freshness (TTL {config.freshness.ttl_minutes} min):")
        print(f"  Last sync: {status_data['freshness']['last_sync'] or 'never'}")
        print(f"  Fresh: {'yes' if fresh else 'no'}")

    return 0


async def cmd_dashboard(args: argparse.Namespace) -> int:
    """Start the web dashboard."""
    config = load_config(args.config)

    try:
        from .dashboard import create_app

        import uvicorn
    except ImportError as e:
        print(f"Dashboard dependencies not installed: {e}", file=sys.stderr)
        print("Install with: pip install catalogsync[dashboard]", file=sys.stderr)
        return 1

    host = args.host or config.dashboard.host
    port = args.port or config.dashboard.port

    container = Container(config)
    coordinator = container.create_coordinator()
    app = create_app(config, coordinator)

    print("Starting Catalog Dashboard")
    print(f"URL: http://{host}:{port}")

    try:
        config_uvicorn = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="info" if args.verbose else "warning",
        )
        server = uvicorn.Server(config_uvicorn)
        await server.serve()
    finally:
        await coordinator.close()
        await container.close()

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="catalogsync",
        description="Cached country catalog browser",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["warning", "info", "debug"],
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    sync_parser = subparsers.add_parser("sync", help="Sync the catalog")
    sync_parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Refresh from the remote even if the cache is fresh",
    )
    sync_parser.set_defaults(func=cmd_sync)

    reset_parser = subparsers.add_parser("reset", help="Clear the cache and resync")
    reset_parser.set_defaults(func=cmd_reset)

    list_parser = subparsers.add_parser("list", help="List cached countries")
    list_parser.set_defaults(func=cmd_list)

    show_parser = subparsers.add_parser("show", help="Show one cached country")
    show_parser.add_argument("uuid", type=int, help="Local identifier")
    show_parser.set_defaults(func=cmd_show)

    status_parser = subparsers.add_parser("status", help="Show cache status")
    status_parser.set_defaults(func=cmd_status)

    for sub in (sync_parser, reset_parser, list_parser, show_parser, status_parser):
        sub.add_argument("--json", action="store_true", help="Output as JSON")

    dashboard_parser = subparsers.add_parser("dashboard", help="Start the web dashboard")
    dashboard_parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Port to run dashboard on (default: from config, 8080)",
    )
    dashboard_parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind dashboard to (default: from config, 127.0.0.1)",
    )
    dashboard_parser.set_defaults(func=cmd_dashboard)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    func = args.func
    if inspect.iscoroutinefunction(func):
        return asyncio.run(func(args))
    return func(args)


if __name__ == "__main__":
    sys.exit(main())
