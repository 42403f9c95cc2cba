"""
Quart application exposing the ingest API.

    GET  /ingest   list this week's entries (JSON)
    PUT  /ingest   submit a feed entry
    POST /ingest   compile and send the digest now

Every request must carry `Authorization: Bearer <KEY>`. The check runs before
any handler, so a rejected request has no side effects.
"""
import asyncio
import logging
from typing import Optional

from quart import Quart, Response, g, jsonify, request

from delivery_boy.core.errors import (
    DeliveryFailure,
    InvalidInput,
    PersistenceFailure,
    Unauthorized,
)
from delivery_boy.services.auth import bearer_token
from delivery_boy.services.ingest import AppContext, list_window, submit_entry, trigger_digest
from delivery_boy.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


def plain(text: str, status: int = 200) -> Response:
    return Response(text, status=status, mimetype="text/plain")


def log_task_exit(task: asyncio.Task) -> None:
    """Report a background task that stopped on its own."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Background task {task.get_name()} failed: {error}", exc_info=error)
    else:
        logger.warning(f"Background task {task.get_name()} exited")


def create_app(ctx: AppContext, scheduler: Optional[Scheduler] = None) -> Quart:
    app = Quart(__name__)
    background = dict[str, asyncio.Task]()

    # ==================== Lifecycle ====================

    @app.before_serving
    async def startup():
        """Create tables and start the scheduler loop."""
        await ctx.store.init_tables()
        if scheduler is not None:
            task = asyncio.create_task(scheduler.run_forever(), name="scheduler")
            task.add_done_callback(log_task_exit)
            background["scheduler"] = task
        logger.info("Delivery Boy started")

    @app.after_serving
    async def shutdown():
        task = background.pop("scheduler", None)
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await ctx.dispatcher.aclose()
        logger.info("Delivery Boy stopped")

    # ==================== Auth ====================

    @app.before_request
    async def require_bearer():
        # Unrouted requests fall through to the 404/405 handling.
        if request.endpoint is None:
            return None
        token = bearer_token(request.headers.get("Authorization"))
        ctx.auth.check(token)
        g.credential = token
        return None

    @app.after_request
    async def access_log(response):
        logger.info(f"{request.method} {request.path} -> {response.status_code}")
        return response

    # ==================== Routes ====================

    @app.route("/ingest", methods=["GET"])
    async def get_feed_entries():
        entries = await list_window(ctx, g.credential)
        return jsonify([entry.to_json() for entry in entries])

    @app.route("/ingest", methods=["PUT"])
    async def add_feed_entry():
        payload = await request.get_json(force=True, silent=True)
        return plain(await submit_entry(ctx, g.credential, payload))

    @app.route("/ingest", methods=["POST"])
    async def post_digest():
        return plain(await trigger_digest(ctx, g.credential))

    # ==================== Error Handlers ====================

    @app.errorhandler(Unauthorized)
    async def unauthorized(error):
        return plain("Unauthorized", 401)

    @app.errorhandler(InvalidInput)
    async def bad_request(error):
        logger.info(f"Rejected feed entry: {error}")
        return plain(f"Cannot parse feed entry: {error}", 400)

    @app.errorhandler(PersistenceFailure)
    async def persistence_failure(error):
        logger.error(f"Persistence failure: {error}")
        return plain("Internal Server Error", 500)

    @app.errorhandler(DeliveryFailure)
    async def delivery_failure(error):
        logger.error(f"Digest delivery failed at {error.destination}: {error.reason}")
        return plain("Internal Server Error", 500)

    return app
