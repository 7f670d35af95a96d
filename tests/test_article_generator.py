import asyncio

from littlewonder.age_bands import ARTICLE_DEFINITIONS
from littlewonder.article_generator import (
    article_title,
    build_article_row,
    delete_short_articles,
    estimate_read_time,
    filter_definitions,
    generate_summary,
    pick_emoji,
    run_article_generation,
    variant_label,
)

from .fakes import FakeSupabase, fast_config

BODY = "Los bebés aprenden mirando. " + "palabra " * 900


def _llm(system, prompt):
    return BODY


def test_read_time_has_a_floor_of_five_minutes():
    assert estimate_read_time("corto") == 5
    assert estimate_read_time("word " * 1800) == 10


def test_summary_is_first_sentence_capped():
    assert generate_summary("First idea. Second idea.") == "First idea."
    assert len(generate_summary("x" * 500)) == 180


def test_emoji_matches_domain_names_loosely():
    assert pick_emoji("Language") == "🗣️"
    assert pick_emoji("Early Language Skills") == "🗣️"
    assert pick_emoji("Gardening") == "✨"


def test_variant_labels():
    assert variant_label("", 1) == ""
    assert variant_label("", 2) == "· v2"
    assert variant_label("B3", 1) == "· B3-1"


def test_row_is_built_from_definition():
    definition = filter_definitions(ARTICLE_DEFINITIONS, age_min=0, age_max=4, article_type="research")[0]
    title = article_title(definition, "es", "· B1-1")
    row = build_article_row(definition, "es", BODY, title)
    assert row["title"].endswith("· B1-1")
    assert row["type"] == "research"
    assert row["language"] == "es"
    assert row["domain"] == definition.domain_es
    assert (row["age_min_months"], row["age_max_months"]) == (0, 4)
    assert row["summary"] == "Los bebés aprenden mirando."


def test_generation_skips_existing_titles_and_stops_after_a_full_cycle():
    definition = filter_definitions(ARTICLE_DEFINITIONS, age_min=0, age_max=4, article_type="guide")[0]
    db = FakeSupabase(
        {
            "explore_articles": [
                {"title": article_title(definition, "es"), "language": "es"},
                {"title": article_title(definition, "en"), "language": "en"},
            ]
        }
    )
    stats = asyncio.run(
        run_article_generation(
            db, age_min=0, age_max=4, article_type="guide", target_count=2, llm=_llm, config=fast_config()
        )
    )
    assert stats.success == 2
    assert stats.skipped == 2
    titles = sorted(row["title"] for row in db.rows("explore_articles"))
    assert any(title.endswith("· v2") for title in titles)


def test_generation_with_batch_label_allows_a_single_language():
    db = FakeSupabase()
    stats = asyncio.run(
        run_article_generation(
            db, age_min=14, age_max=24, language="en", batch_label="B2", llm=_llm, config=fast_config()
        )
    )
    assert stats.success == 3
    rows = db.rows("explore_articles")
    assert {row["language"] for row in rows} == {"en"}
    assert {row["type"] for row in rows} == {"article", "guide", "research"}
    assert all(row["title"].endswith("· B2-1") for row in rows)


def test_empty_bodies_count_as_errors_and_stop_the_run():
    db = FakeSupabase()
    stats = asyncio.run(
        run_article_generation(
            db, age_min=0, age_max=4, language="es", llm=lambda system, prompt: "  ", config=fast_config()
        )
    )
    assert stats.success == 0
    assert stats.errors == 3
    assert db.rows("explore_articles") == []


def test_delete_short_articles_removes_thin_bodies():
    db = FakeSupabase({"explore_articles": [{"id": "thin", "body": "short"}, {"id": "full", "body": "x" * 2500}]})
    assert asyncio.run(delete_short_articles(db)) == 1
    assert [row["id"] for row in db.rows("explore_articles")] == ["full"]
