import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi import HTTPException

from littlewonder.routes.explore import (
    articles_feed,
    bookmarked_articles,
    explore_feed,
    open_article,
    toggle_bookmark,
    update_article_read,
)
from littlewonder.schemas import ReadPatchPayload

from .fakes import FakeSupabase, birthdate_months_ago, make_user


def _article(title, article_type="article", language="es", **extra):
    row = {
        "id": str(uuid4()),
        "title": title,
        "type": article_type,
        "emoji": "🧠",
        "summary": "Resumen",
        "body": "Cuerpo",
        "domain": "Cognitivo",
        "read_time_minutes": 6,
        "age_min_months": 14,
        "age_max_months": 24,
        "language": language,
    }
    row.update(extra)
    return row


def _setup(articles=(), **tables):
    user_id = str(uuid4())
    db = FakeSupabase(
        {
            "children": [{"id": str(uuid4()), "user_id": user_id, "name": "Teo", "birthdate": birthdate_months_ago(18)}],
            "explore_articles": list(articles),
            **tables,
        }
    )
    return db, make_user(db, user_id)


def test_articles_feed_sections_do_not_overlap_and_hide_finished_titles():
    articles = [
        _article("Juego simbólico"),
        _article("Juego simbólico · refill-total-14-24 1 · 1735689600000"),
        _article("Decir no", "guide"),
        _article("Repetición", "research"),
        _article("Memoria", "research"),
        _article("Rabietas", "guide"),
        _article("Lenguaje"),
        _article("Sueño"),
    ]
    db, user = _setup(articles)
    db.tables["article_reads"] = [
        {
            "user_id": user.user_id,
            "article_id": articles[0]["id"],
            "read_completed": True,
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
    ]

    feed = asyncio.run(articles_feed(child_id=None, language=None, user=user))

    sections = feed["new_for_you"] + feed["deep_dives"] + feed["more_for_age"]
    ids = [row["id"] for row in sections]
    assert len(ids) == len(set(ids))
    assert articles[0]["id"] not in ids and articles[1]["id"] not in ids
    assert [row["type"] for row in feed["new_for_you"]] == ["article", "guide", "research"]
    assert all(row["type"] == "research" for row in feed["deep_dives"])
    assert feed["streak"] == 1
    assert feed["stats"] == {"total_available": 8, "total_read": 1}
    assert feed["recently_read"][0]["title"] == "Juego simbólico"
    assert feed["shortages"]["new_for_you"]["shortage"] == 0


def test_articles_feed_falls_back_to_other_language():
    db, user = _setup([_article("Pretend play", language="en")])
    feed = asyncio.run(articles_feed(child_id=None, language="es", user=user))
    assert feed["language"] == "en"
    assert feed["new_for_you"][0]["title"] == "Pretend play"
    assert feed["shortages"]["new_for_you"]["shortage"] == 2


def test_explore_feed_uses_articles_then_legacy_cards():
    db, user = _setup([_article("Juego", "article"), _article("Estudio", "research")])
    feed = asyncio.run(explore_feed(child_id=None, language=None, user=user))
    assert feed["brain_cards_source"] == "explore_articles"
    assert [card["title"] for card in feed["brain_cards"]] == ["Juego"]

    legacy = {
        "id": str(uuid4()),
        "title": "Cerebro en construcción",
        "language": "es",
        "age_range_start": 12,
        "age_range_end": 24,
        "article": {"read_time_minutes": 4},
    }
    db, user = _setup(explore_brain_cards=[legacy])
    feed = asyncio.run(explore_feed(child_id=None, language=None, user=user))
    assert feed["brain_cards_source"] == "explore_brain_cards"
    assert feed["brain_cards"][0]["read_time_minutes"] == 4


def test_explore_feed_includes_daily_tip():
    tip = {"id": str(uuid4()), "body": "Nombra lo que ves.", "language": "es", "age_min_months": 0, "age_max_months": 36}
    db, user = _setup(daily_tips=[tip])
    feed = asyncio.run(explore_feed(child_id=None, language=None, user=user))
    assert feed["brain_cards_source"] == "none"
    assert feed["daily_tip"]["article"]["tip"] == "Nombra lo que ves."


def test_bookmark_toggle_and_listing():
    article = _article("Juego")
    db, user = _setup([article])
    assert asyncio.run(toggle_bookmark(article["id"], user=user)) == {"bookmarked": True}
    listing = asyncio.run(bookmarked_articles(user=user))
    assert listing["total"] == 1
    assert listing["articles"][0]["is_bookmarked"] is True
    assert asyncio.run(toggle_bookmark(article["id"], user=user)) == {"bookmarked": False}
    assert asyncio.run(bookmarked_articles(user=user)) == {"articles": [], "total": 0}


def test_read_lifecycle_upserts_single_row():
    article = _article("Juego")
    db, user = _setup([article])
    asyncio.run(open_article(article["id"], user=user))
    asyncio.run(
        update_article_read(article["id"], payload=ReadPatchPayload(read_time_seconds=-4, read_completed=True), user=user)
    )
    rows = db.rows("article_reads")
    assert len(rows) == 1
    assert rows[0]["read_completed"] is True
    assert rows[0]["read_time_seconds"] == 0
    assert rows[0]["completed_at"]


def test_keep_reading_lists_started_articles():
    article = _article("Juego")
    db, user = _setup([article])
    opened = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    db.tables["article_reads"] = [{"user_id": user.user_id, "article_id": article["id"], "opened_at": opened}]
    feed = asyncio.run(articles_feed(child_id=None, language=None, user=user))
    assert [row["id"] for row in feed["keep_reading"]] == [article["id"]]


def test_unknown_article_is_not_found():
    db, user = _setup()
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(open_article(str(uuid4()), user=user))
    assert excinfo.value.status_code == 404
