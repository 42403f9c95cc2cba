"""
The three ingest operations: submit an entry, list the current window, trigger the digest.

Every operation receives the process-wide state as an explicit, immutable
AppContext and checks the presented credential before doing anything else.
The HTTP routes and the weekly scheduler both go through these functions.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from delivery_boy.core.entities import FeedEntry
from delivery_boy.core.errors import InvalidInput
from delivery_boy.core.schemas import EntryIngestRequest
from delivery_boy.core.window import utcnow
from delivery_boy.delivery.webhook import WebhookDispatcher
from delivery_boy.services.auth import AuthGate
from delivery_boy.services.database import EntryStore
from delivery_boy.services.digest import DigestCompiler

logger = logging.getLogger(__name__)

ENTRY_ADDED = "Added feed entry!"
DIGEST_SENT = "Done!"


@dataclass(frozen=True)
class AppContext:
    auth: AuthGate
    store: EntryStore
    compiler: DigestCompiler
    dispatcher: WebhookDispatcher
    clock: Callable[[], datetime] = utcnow


def parse_entry_request(payload: Any) -> EntryIngestRequest:
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object with link, title and feed")
    try:
        return EntryIngestRequest.model_validate(payload)
    except ValidationError as e:
        fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise InvalidInput(f"Cannot parse feed entry ({fields})") from e


async def submit_entry(ctx: AppContext, credential: Optional[str], payload: Any) -> str:
    ctx.auth.check(credential)
    request = parse_entry_request(payload)
    await ctx.store.append(str(request.link), request.title, request.feed)
    return ENTRY_ADDED


async def list_window(ctx: AppContext, credential: Optional[str]) -> List[FeedEntry]:
    ctx.auth.check(credential)
    return await ctx.store.query_window(ctx.clock())


async def trigger_digest(ctx: AppContext, credential: Optional[str]) -> str:
    """
    Compile this week's digest and send it to every destination.

    There is no delivered flag: triggering twice in one week sends the same
    entries twice.
    """
    ctx.auth.check(credential)
    now = ctx.clock()
    entries = await ctx.store.query_window(now)
    embed = ctx.compiler.compile(entries, now)
    logger.info(f"Sending digest with {len(entries)} entries to {len(ctx.dispatcher.channels)} destinations")
    await ctx.dispatcher.dispatch(embed)
    logger.info("Done with sending digest")
    return DIGEST_SENT
