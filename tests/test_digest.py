from datetime import timedelta

from delivery_boy.core.entities import FeedEntry
from delivery_boy.services.digest import (
    ACCENT_COLOR,
    DIGEST_FOOTER,
    EMPTY_TITLE,
    DigestCompiler,
    render_entries,
)

from conftest import LA, WEDNESDAY


def make_entry(idx: int, title: str = None, feed: str = "Feed") -> FeedEntry:
    return FeedEntry(
        id=idx,
        link=f"https://example.com/{idx}",
        timestamp=WEDNESDAY - timedelta(minutes=idx),
        title=title or f"Post {idx}",
        feed=feed,
    )


def test_empty_window_gives_fallback():
    compiler = DigestCompiler(LA)

    embed = compiler.compile([], WEDNESDAY)

    assert embed.title == EMPTY_TITLE
    assert embed.color == ACCENT_COLOR
    assert embed.description
    assert embed.footer.text.startswith("Disclaimer:")


def test_fallback_is_identical_every_time():
    compiler = DigestCompiler(LA)
    first = compiler.compile([], WEDNESDAY)
    second = compiler.compile([], WEDNESDAY + timedelta(days=30))
    assert first == second


def test_digest_lists_entries_in_given_order():
    compiler = DigestCompiler(LA)
    entries = [make_entry(2, "Second", "Blog"), make_entry(1, "First", "News")]

    embed = compiler.compile(entries, WEDNESDAY)

    assert embed.title == "Posts for Week 20"
    assert embed.color == ACCENT_COLOR
    assert embed.footer.text == DIGEST_FOOTER
    assert embed.description == (
        "**1.** [Second](https://example.com/2)\n"
        "_Feed:_ Blog\n"
        "**2.** [First](https://example.com/1)\n"
        "_Feed:_ News"
    )


def test_digest_is_not_truncated():
    entries = [make_entry(i) for i in range(1, 501)]

    description = render_entries(entries)

    assert description.count("_Feed:_") == 500
    assert "**500.** [Post 500](https://example.com/500)" in description
    assert len(description) > 4096


def test_digest_description_has_no_trailing_whitespace():
    description = render_entries([make_entry(1, feed="Feed  ")])
    assert description == description.rstrip()
