"""
Renders the weekly digest embed from the entries of the current window.
"""
from datetime import datetime, tzinfo
from typing import Sequence

from delivery_boy.core.entities import FeedEntry
from delivery_boy.core.schemas import Embed, EmbedFooter
from delivery_boy.core.window import iso_week

ACCENT_COLOR = 0x5865F2

EMPTY_TITLE = "Nothing this week! 😅"
EMPTY_DESCRIPTION = "No articles were sent in this week. Check back next week!"
EMPTY_FOOTER = "Disclaimer: It's possible I missed some messages. Oops."

DIGEST_FOOTER = "Disclaimer: This is not sorted in any particular order of interest."


class DigestCompiler:
    def __init__(self, tz: tzinfo):
        self.tz = tz

    def compile(self, entries: Sequence[FeedEntry], now: datetime) -> Embed:
        """Exactly one embed per call: the fallback for an empty window, the numbered list otherwise."""
        if not entries:
            return self.empty_embed()

        return Embed(
            title=f"Posts for Week {iso_week(now, self.tz)}",
            description=render_entries(entries),
            color=ACCENT_COLOR,
            footer=EmbedFooter(text=DIGEST_FOOTER),
        )

    @staticmethod
    def empty_embed() -> Embed:
        return Embed(
            title=EMPTY_TITLE,
            description=EMPTY_DESCRIPTION,
            color=ACCENT_COLOR,
            footer=EmbedFooter(text=EMPTY_FOOTER),
        )


def render_entries(entries: Sequence[FeedEntry]) -> str:
    # No truncation: an oversize description is rejected by the webhook, not here.
    lines = list[str]()
    for idx, entry in enumerate(entries, 1):
        lines.append(f"**{idx}.** [{entry.title}]({entry.link})")
        lines.append(f"_Feed:_ {entry.feed}")
    return "\n".join(lines).rstrip()
