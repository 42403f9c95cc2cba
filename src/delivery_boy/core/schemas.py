"""
Pydantic schemas for inbound requests and outbound webhook messages
"""
from typing import List, Optional

from pydantic import AnyUrl, BaseModel, Field


class EntryIngestRequest(BaseModel):
    """
    Body of PUT /ingest. The timestamp is never client-supplied.
    """
    link: AnyUrl
    title: str
    feed: str


class EmbedFooter(BaseModel):
    text: str


class Embed(BaseModel):
    """
    Chat embed as understood by Discord-compatible webhooks.
    """
    title: str
    description: Optional[str] = None
    color: int = Field(..., ge=0, le=0xFFFFFF)
    footer: Optional[EmbedFooter] = None


class WebhookMessage(BaseModel):
    username: str
    embeds: List[Embed]
