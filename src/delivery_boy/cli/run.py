"""
Command line entry point for Delivery Boy.

    delivery-boy run        serve the ingest API and run the weekly scheduler
    delivery-boy init-db    create the entry table and exit
    delivery-boy trigger    compile and send this week's digest once, then exit
"""
import argparse
import asyncio
import logging
from typing import List, Optional, Tuple

from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from delivery_boy.api.app import create_app
from delivery_boy.core.errors import ConfigError, DeliveryBoyError
from delivery_boy.delivery.webhook import WebhookDispatcher, create_client
from delivery_boy.services.auth import AuthGate
from delivery_boy.services.config import Config, load_config
from delivery_boy.services.database import EntryStore
from delivery_boy.services.digest import DigestCompiler
from delivery_boy.services.ingest import AppContext, trigger_digest
from delivery_boy.services.logging import setup_logging
from delivery_boy.services.scheduler import Scheduler, digest_job

logger = logging.getLogger(__name__)


def build_context(config: Config) -> AppContext:
    """Wire the shared services from configuration."""
    store = EntryStore(config.database_path, tz=config.tz)
    dispatcher = WebhookDispatcher(
        config.webhook_urls,
        create_client(config.WEBHOOK_TIMEOUT),
        username=config.WEBHOOK_USERNAME,
        mode=config.DELIVERY_MODE,
    )
    return AppContext(
        auth=AuthGate(config.KEY),
        store=store,
        compiler=DigestCompiler(config.tz),
        dispatcher=dispatcher,
        clock=store.clock,
    )


def build_scheduler(config: Config, ctx: AppContext) -> Scheduler:
    scheduler = Scheduler(clock=ctx.clock, poll_interval=config.SCHEDULER_POLL_SECONDS)
    scheduler.every_week(
        "weekly-digest",
        weekday=config.schedule_weekday,
        at=config.schedule_time,
        tz=config.tz,
        job=digest_job(ctx, config.KEY),
    )
    return scheduler


async def run_server(config: Config) -> None:
    ctx = build_context(config)
    app = create_app(ctx, build_scheduler(config, ctx))

    hypercorn_config = HypercornConfig()
    hypercorn_config.bind = [f"{config.HOST}:{config.PORT}"]
    hypercorn_config.accesslog = None
    hypercorn_config.errorlog = "-"

    logger.info(f"Listening on {config.HOST}:{config.PORT}")
    await serve(app, hypercorn_config)


async def init_database(config: Config) -> int:
    store = EntryStore(config.database_path, tz=config.tz)
    await store.init_tables()
    logger.info(f"Database at {config.database_path} holds {await store.count()} entries")
    return 0


async def trigger_once(config: Config) -> int:
    ctx = build_context(config)
    try:
        await ctx.store.init_tables()
        await trigger_digest(ctx, config.KEY)
    except DeliveryBoyError as e:
        logger.error(f"Digest trigger failed: {e}")
        return 1
    finally:
        await ctx.dispatcher.aclose()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Delivery Boy: weekly feed digests for chat webhooks")
    parser.add_argument("command", nargs="?", default="run",
                        choices=["run", "init-db", "trigger"],
                        help="Command to execute")
    parser.add_argument("--config", default=None,
                        help="Path to config.yml (default: resources/config.yml if present)")
    parser.add_argument("--host", default=None,
                        help="Host to bind to (overrides HOST)")
    parser.add_argument("--port", type=int, default=None,
                        help="Port to bind to (overrides PORT)")
    parser.add_argument("--log-level", default=None,
                        help="Logging level (overrides LOG_LEVEL)")
    return parser


def _apply_overrides(config: Config, args: argparse.Namespace) -> Tuple[Config, str]:
    updates = {}
    if args.host:
        updates["HOST"] = args.host
    if args.port:
        updates["PORT"] = args.port
    if updates:
        config = config.model_copy(update=updates)
    return config, (args.log_level or config.LOG_LEVEL)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        setup_logging(logging.ERROR, "text")
        logger.error(str(e))
        return 2

    config, log_level = _apply_overrides(config, args)
    try:
        setup_logging(log_level, config.LOG_FORMAT)
    except ValueError:
        parser.error(f"Unsupported log level: {log_level}")

    if args.command == "init-db":
        return asyncio.run(init_database(config))
    if args.command == "trigger":
        return asyncio.run(trigger_once(config))

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
