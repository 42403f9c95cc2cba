"""
Discord-compatible webhook delivery.

A digest goes to every configured destination, one after another, in the
configured order. In the default all-or-nothing mode the first failure stops
the dispatch: later destinations are not attempted and the caller sees the
failure. Best-effort mode attempts every destination and reports all failures
together at the end.
"""
import logging
from typing import List, Literal, Optional, Sequence

import httpx

from delivery_boy.core.errors import DeliveryFailure
from delivery_boy.core.schemas import Embed, WebhookMessage
from delivery_boy.delivery.base import DeliveryChannel

logger = logging.getLogger(__name__)

DeliveryMode = Literal["all_or_nothing", "best_effort"]


def create_client(timeout: Optional[float] = 30.0) -> httpx.AsyncClient:
    """One client per process, shared by every destination."""
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout))


class DiscordWebhook(DeliveryChannel):
    name = "discord_webhook"

    def __init__(self, url: str, client: httpx.AsyncClient, username: str = "Delivery Boy"):
        self.url = url
        self.client = client
        self.username = username

    async def resolve(self) -> None:
        """Check that the endpoint exists before executing it."""
        try:
            url = httpx.URL(self.url)
        except httpx.InvalidURL as e:
            raise DeliveryFailure(self.url, f"invalid webhook URL: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise DeliveryFailure(self.url, "webhook URL must be an absolute http(s) URL")

        try:
            resp = await self.client.get(url)
        except httpx.HTTPError as e:
            raise DeliveryFailure(self.url, f"could not get webhook: {e}") from e
        if not resp.is_success:
            raise DeliveryFailure(self.url, f"could not get webhook: HTTP {resp.status_code}")

    async def deliver(self, *, embed: Embed) -> None:
        await self.resolve()

        message = WebhookMessage(username=self.username, embeds=[embed])
        try:
            resp = await self.client.post(self.url, json=message.model_dump(exclude_none=True))
        except httpx.HTTPError as e:
            raise DeliveryFailure(self.url, f"could not send webhook: {e}") from e
        if not resp.is_success:
            raise DeliveryFailure(
                self.url, f"could not send webhook: HTTP {resp.status_code} {resp.text[:200]}"
            )


class WebhookDispatcher:
    """
    Sends one embed to every destination, sequentially and in order.
    """

    def __init__(
        self,
        urls: Sequence[str],
        client: httpx.AsyncClient,
        *,
        username: str = "Delivery Boy",
        mode: DeliveryMode = "all_or_nothing",
    ):
        if mode not in ("all_or_nothing", "best_effort"):
            raise ValueError(f"Unknown delivery mode: {mode}")
        self.client = client
        self.mode = mode
        self.channels = [DiscordWebhook(url, client, username=username) for url in urls]

    async def dispatch(self, embed: Embed) -> None:
        """
        Raise DeliveryFailure unless every destination accepted the embed.
        """
        failures: List[DeliveryFailure] = []

        for channel in self.channels:
            try:
                await channel.deliver(embed=embed)
            except DeliveryFailure as e:
                logger.error(f"Could not send webhook to {e.destination}: {e.reason}")
                if self.mode == "all_or_nothing":
                    raise
                failures.append(e)
                continue
            logger.info(f"Sent webhook to {channel.url}")

        if failures:
            destinations = ", ".join(f.destination for f in failures)
            raise DeliveryFailure(
                destinations, f"{len(failures)} of {len(self.channels)} destinations failed"
            )

    async def aclose(self) -> None:
        await self.client.aclose()
