import asyncio
import json
from datetime import date

from littlewonder.age_bands import AgeBand
from littlewonder.backfill import (
    active_band_key,
    build_clones,
    plan_article_clones,
    prioritize,
    refill_activities,
    refill_articles,
)
from littlewonder.shortages import evaluate_article_cell, evaluate_activity_cell
from littlewonder.titles import canonical_title_key, clean_title

from .fakes import FakeSupabase, fast_config

BAND = AgeBand(0, 4)


def _article(title, article_type="article", language="es", band=BAND):
    return {
        "title": title,
        "type": article_type,
        "language": language,
        "age_min_months": band.age_min,
        "age_max_months": band.age_max,
        "body": "Cuerpo del artículo",
        "summary": "Resumen",
        "domain": "Lenguaje",
        "emoji": "🗣️",
        "read_time_minutes": 5,
    }


def test_clones_keep_canonical_identity_with_the_seed():
    clones = build_clones([_article("Balbuceo y lenguaje")], 2, language="es", label="refill-total-0-4", now_ms=1735689600000)
    assert len(clones) == 2
    assert clones[0]["title"] == "Balbuceo y lenguaje · refill-total-0-4 1 · 1735689600000"
    assert clean_title(clones[1]["title"]) == "Balbuceo y lenguaje"
    assert canonical_title_key(clones[1]["title"]) == canonical_title_key("Balbuceo y lenguaje")
    assert "id" not in clones[0]


def test_missing_research_is_cast_from_other_rows_when_no_research_seed_exists():
    record = evaluate_article_cell([_article("Uno"), _article("Dos")], "es", BAND)
    clones = plan_article_clones(record, max_clones_per_cell=6, now_ms=1)
    assert len(clones) == 3
    assert all(clone["type"] == "research" for clone in clones)
    assert all("refill-cast-research" in clone["title"] for clone in clones)


def test_total_top_up_counts_research_clones_already_planned():
    rows = [_article("Ciencia", "research")]
    record = evaluate_article_cell(rows, "es", BAND, min_total=5, min_research=3)
    clones = plan_article_clones(record, max_clones_per_cell=10, now_ms=1)
    research = [clone for clone in clones if "refill-research" in clone["title"]]
    total = [clone for clone in clones if "refill-total" in clone["title"]]
    assert len(research) == 2
    assert len(total) == 2


def test_clone_cap_counts_existing_refill_rows():
    rows = [_article(f"Tema · refill-total-0-4 {i} · 1") for i in range(5)] + [_article("Tema")]
    record = evaluate_article_cell(rows, "es", BAND, min_total=3, min_research=3)
    clones = plan_article_clones(record, max_clones_per_cell=6, now_ms=1)
    assert len(clones) == 1

    capped = evaluate_article_cell(rows + [_article("Tema · refill-x")], "es", BAND)
    assert plan_article_clones(capped, max_clones_per_cell=6, now_ms=1) == []


def test_prioritize_puts_active_band_first_then_largest_gap():
    small = evaluate_activity_cell([{}] * 10, "es", AgeBand(0, 4))
    large = evaluate_activity_cell([], "es", AgeBand(4, 8))
    active = evaluate_activity_cell([{}] * 14, "en", AgeBand(14, 24))
    ordered = prioritize([small, active, large], "14-24")
    assert [record.band_key for record in ordered] == ["14-24", "4-8", "0-4"]
    assert [record.band_key for record in prioritize([small, large], None)] == ["4-8", "0-4"]


def test_active_band_uses_earliest_created_child():
    db = FakeSupabase(
        {
            "children": [
                {"birthdate": "2024-03-01", "created_at": "2025-01-01T00:00:00+00:00"},
                {"birthdate": "2020-01-01", "created_at": "2025-02-01T00:00:00+00:00"},
            ]
        }
    )
    bands = [AgeBand(0, 4), AgeBand(4, 8), AgeBand(8, 14), AgeBand(14, 24)]
    assert asyncio.run(active_band_key(db, bands, today=date(2025, 1, 1))) == "8-14"
    assert asyncio.run(active_band_key(FakeSupabase(), bands)) is None


def test_refill_articles_inserts_capped_clones_and_reports_totals():
    db = FakeSupabase({"explore_articles": [_article("Uno"), _article("Dos")]})
    results = asyncio.run(
        refill_articles(db, language="es", band="0-4", config=fast_config(refill_chunk_size=2))
    )
    assert results == [{"language": "es", "band": "0-4", "cloned": 3, "total": 5, "research": 3}]
    inserts = [call for call in db.calls if call[0] == "insert"]
    assert [len(call[2]) for call in inserts] == [2, 1]


def test_refill_dry_run_only_reports():
    db = FakeSupabase({"explore_articles": [_article("Uno")]})
    rows = asyncio.run(refill_articles(db, language="es", band="0-4", dry_run=True, config=fast_config()))
    assert rows and rows[0]["missing_total"] == 2
    assert len(db.rows("explore_articles")) == 1


def test_refill_activities_generates_missing_units_in_process():
    counter = {"n": 0}

    def fake_llm(system, prompt):
        counter["n"] += 1
        return json.dumps(
            {
                "emoji": "🧱",
                "title": f"Juego número {counter['n']}",
                "subtitle": "Para {child_name}",
                "schema_target": "positioning",
                "domain": "Motor",
                "materials": ["Bloques"],
                "duration_minutes": 10,
                "steps": "1. Uno\n2. Dos",
                "science_note": "Ciencia.",
            }
        )

    db = FakeSupabase()
    results = asyncio.run(
        refill_activities(
            db,
            language="es",
            band="0-4",
            threshold=2,
            top_up=1,
            llm=fake_llm,
            config=fast_config(),
        )
    )
    assert results[0]["generated"] == 3
    assert results[0]["total"] == 3
    titles = [row["title"] for row in db.rows("activities")]
    assert all(" · refill-0-4-es-" in title for title in titles)
    assert all(row["language"] == "es" and row["age_min_months"] == 0 for row in db.rows("activities"))
