import asyncio
from datetime import date, datetime, timedelta, timezone

from littlewonder.explore import (
    build_unread_pool,
    enrich_article,
    fetch_with_language_fallback,
    interleave_by_type,
    keep_reading,
    pick_unread_section,
    reading_streak,
    recently_read,
)


def test_reading_streak_breaks_at_first_gap():
    today = date(2025, 5, 10)
    completions = [
        "2025-05-10T08:00:00Z",
        "2025-05-09T23:30:00+00:00",
        "2025-05-07T12:00:00Z",
    ]
    assert reading_streak(completions, today=today) == 2


def test_reading_streak_is_zero_without_a_read_today():
    assert reading_streak(["2025-05-09T08:00:00Z"], today=date(2025, 5, 10)) == 0
    assert reading_streak([None, "garbage"], today=date(2025, 5, 10)) == 0


def test_language_fallback_uses_first_language_with_rows():
    calls = []

    async def fetch(language):
        calls.append(language)
        return [{"id": 1, "language": "en"}] if language == "en" else []

    rows, used = asyncio.run(fetch_with_language_fallback(fetch, "es"))
    assert used == "en"
    assert rows == [{"id": 1, "language": "en"}]
    assert calls == ["es", "en"]


def test_language_fallback_stops_at_requested_language_when_present():
    async def fetch(language):
        return [{"id": language}]

    rows, used = asyncio.run(fetch_with_language_fallback(fetch, "en"))
    assert used == "en"
    assert rows == [{"id": "en"}]


def test_unread_pool_hides_titles_already_finished_under_another_id():
    articles = [
        {"id": "a", "title": "Sleep science"},
        {"id": "b", "title": "Sleep science · refill-total-0-4 1 · 1735689600000"},
        {"id": "c", "title": "Language bursts · B1-1"},
        {"id": "d", "title": "Language bursts · B1-2"},
    ]
    reads = {"a": {"read_completed": True}}
    assert [row["id"] for row in build_unread_pool(articles, reads)] == ["c"]


def test_sections_never_repeat_an_article():
    pool = [{"id": i, "type": "research" if i % 2 else "article"} for i in range(6)]
    used = set()
    first, first_shortage = pick_unread_section(pool, used)
    deep, _ = pick_unread_section(pool, used, predicate=lambda row: row["type"] == "research", limit=10)
    rest, rest_shortage = pick_unread_section(pool, used)
    ids = [row["id"] for row in first + deep + rest]
    assert len(ids) == len(set(ids))
    assert first_shortage.shortage == 0
    assert rest_shortage.available_unread == len(rest)
    assert rest_shortage.shortage == 3 - len(rest)


def test_interleave_rotates_article_guide_research():
    items = [
        {"id": 1, "type": "article"},
        {"id": 2, "type": "article"},
        {"id": 3, "type": "research"},
        {"id": 4, "type": "guide"},
    ]
    assert [row["id"] for row in interleave_by_type(items)] == [1, 4, 3, 2]


def test_keep_reading_requires_five_minutes_since_open():
    now = datetime(2025, 5, 10, 12, 0, tzinfo=timezone.utc)
    articles = [{"id": "fresh"}, {"id": "stale"}, {"id": "done"}]
    reads = {
        "fresh": {"opened_at": (now - timedelta(minutes=1)).isoformat()},
        "stale": {"opened_at": (now - timedelta(hours=2)).isoformat()},
        "done": {"opened_at": (now - timedelta(hours=3)).isoformat(), "read_completed": True},
    }
    assert [row["id"] for row in keep_reading(articles, reads, now)] == ["stale"]


def test_recently_read_orders_by_completion_and_enrich_cleans_titles():
    articles = [{"id": "x", "title": "Old · v2", "body": "long"}, {"id": "y", "title": "New"}]
    reads = {
        "x": {"read_completed": True, "completed_at": "2025-01-01T00:00:00Z"},
        "y": {"read_completed": True, "completed_at": "2025-02-01T00:00:00Z"},
    }
    assert [row["id"] for row in recently_read(articles, reads)] == ["y", "x"]

    enriched = enrich_article(articles[0], reads, {"x"})
    assert enriched["title"] == "Old"
    assert enriched["is_read"] is True
    assert enriched["is_bookmarked"] is True
    assert "body" not in enriched
