import pytest

from littlewonder.titles import canonical_title_key, clean_title, dedupe_by_title_key, title_noise_score

TITLES = [
    "Torre de vasos",
    "Rolling Balls Down a Ramp!",
    "¿Qué pasa en su cerebro?",
    "Peekaboo · v3",
    "Sensory bottle · B2-7 · refill-14-24-en 2 · 1735689600000",
]


@pytest.mark.parametrize("title", TITLES)
def test_batch_suffix_is_invisible_to_identity(title):
    assert canonical_title_key(title) == canonical_title_key(title + " · B123-4")


@pytest.mark.parametrize("title", TITLES)
def test_refill_suffix_is_invisible_to_identity(title):
    assert canonical_title_key(title) == canonical_title_key(title + " · refill-0-4-es")


@pytest.mark.parametrize("title", TITLES + ["  ", "", "B1 · B2"])
def test_canonical_key_is_idempotent(title):
    key = canonical_title_key(title)
    assert canonical_title_key(key) == key


def test_clean_title_keeps_casing_and_drops_storage_noise():
    assert clean_title("Rolling Balls · B4-2") == "Rolling Balls"
    assert clean_title("Sleep Science · refill-research-0-4 1 · 1735689600000") == "Sleep Science"
    assert clean_title("Peekaboo · v2") == "Peekaboo"
    assert clean_title("Stacking Cups 1735689600000") == "Stacking Cups"
    assert clean_title("Peekaboo") == "Peekaboo"


def test_canonical_key_ignores_case_and_punctuation():
    assert canonical_title_key("Rolling  balls, down a RAMP!") == canonical_title_key("rolling balls down a ramp")


def test_noise_score_orders_refill_above_batch_above_clean():
    clean = title_noise_score("Title")
    batch = title_noise_score("Title · B1-1")
    refill = title_noise_score("Title · refill-x-1 · v2")
    assert clean < batch < refill


def test_dedupe_keeps_first_per_canonical_key():
    rows = [
        {"id": 1, "title": "Torre de vasos · B1-1"},
        {"id": 2, "title": "Torre de vasos · B2-9"},
        {"id": 3, "title": "Pintura con agua"},
    ]
    kept = dedupe_by_title_key(rows, lambda row: row["title"])
    assert [row["id"] for row in kept] == [1, 3]
