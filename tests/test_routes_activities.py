import asyncio
from uuid import uuid4

import pytest
from fastapi import HTTPException

from littlewonder.routes.activities import complete_activity, list_activities, save_activity, unsave_activity
from littlewonder.schemas import CompletePayload

from .fakes import FakeSupabase, birthdate_months_ago, make_user


def _activity(title, schema, *, featured=False, language="es", created_at="2025-01-01T00:00:00+00:00"):
    return {
        "id": str(uuid4()),
        "emoji": "🧩",
        "title": title,
        "schema_target": schema,
        "domain": "Motor",
        "materials": ["Vasos"],
        "duration_minutes": 10,
        "age_min_months": 14,
        "age_max_months": 24,
        "language": language,
        "is_featured": featured,
        "created_at": created_at,
    }


def _setup(activities, wonder_schemas=()):
    user_id = str(uuid4())
    child_id = str(uuid4())
    db = FakeSupabase(
        {
            "children": [{"id": child_id, "user_id": user_id, "name": "Lía", "birthdate": birthdate_months_ago(18)}],
            "wonders": [{"child_id": child_id, "schemas_detected": list(schemas)} for schemas in wonder_schemas],
            "activities": activities,
        }
    )
    return db, make_user(db, user_id), child_id


WONDERS = [["connecting"], ["Conexión"], ["connecting"], ["positioning"], ["positioning"], ["trajectory"]]


def test_schema_match_orders_equal_featured_flags():
    pos = _activity("Alinear bloques", "positioning")
    con = _activity("Puentes de cuerda", "connecting")
    pos_two = _activity("Apilar tapas", "positioning")
    db, user, _ = _setup([pos, con, pos_two], WONDERS)

    result = asyncio.run(list_activities(child_id=None, language=None, user=user))

    assert result["child_schemas"] == ["connecting", "positioning", "trajectory"]
    assert result["featured"]["id"] == con["id"]
    assert [row["id"] for row in result["activities"]] == [pos["id"], pos_two["id"]]
    assert result["language"] == "es"


def test_featured_flag_wins_over_schema_score():
    pos_featured = _activity("Alinear bloques", "positioning", featured=True)
    con = _activity("Puentes de cuerda", "connecting")
    db, user, _ = _setup([con, pos_featured], WONDERS)

    result = asyncio.run(list_activities(child_id=None, language=None, user=user))

    assert result["featured"]["id"] == pos_featured["id"]
    assert [row["id"] for row in result["activities"]] == [con["id"]]


def test_listing_dedupes_titles_marks_state_and_reports_shortage():
    first = _activity("Torre de vasos · B1-1", "positioning", created_at="2025-02-01T00:00:00+00:00")
    clone = _activity("Torre de vasos · refill-14-24-es-3", "positioning", created_at="2025-01-01T00:00:00+00:00")
    other = _activity("Pintura con agua · B1-2", "transforming")
    english = _activity("Water painting", "transforming", language="en")
    db, user, _ = _setup([first, clone, other, english])
    db.tables["activity_saves"] = [{"user_id": user.user_id, "activity_id": other["id"]}]
    db.tables["activity_completions"] = [{"user_id": user.user_id, "activity_id": first["id"], "rating": 5}]

    result = asyncio.run(list_activities(child_id=None, language="es", user=user))

    assert result["stats"] == {"total": 2, "saved": 1, "completed": 1}
    assert result["completed"][0]["title"] == "Torre de vasos"
    assert result["completed"][0]["rating"] == 5
    assert result["featured"]["id"] == other["id"]
    assert result["saved"][0]["is_saved"] is True
    assert result["shortages"] == {"required": 6, "available_uncompleted": 1, "returned": 1, "shortage": 5}


def test_no_child_returns_empty_payload():
    db = FakeSupabase()
    result = asyncio.run(list_activities(child_id=None, language=None, user=make_user(db)))
    assert result["featured"] is None
    assert result["shortages"]["shortage"] == 6


def test_other_users_child_is_not_found():
    db, _, child_id = _setup([])
    stranger = make_user(db)
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(list_activities(child_id=child_id, language=None, user=stranger))
    assert excinfo.value.status_code == 404


def test_caregiver_link_grants_access():
    db, _, child_id = _setup([_activity("Alinear bloques", "positioning")])
    caregiver = make_user(db)
    db.tables["child_caregivers"] = [{"child_id": child_id, "user_id": caregiver.user_id}]
    result = asyncio.run(list_activities(child_id=child_id, language=None, user=caregiver))
    assert result["stats"]["total"] == 1


def test_save_and_unsave_round_trip():
    activity = _activity("Alinear bloques", "positioning")
    db, user, _ = _setup([activity])
    asyncio.run(save_activity(activity["id"], user=user))
    asyncio.run(save_activity(activity["id"], user=user))
    assert len(db.rows("activity_saves")) == 1
    assert db.rows("users")[0]["id"] == user.user_id

    asyncio.run(unsave_activity(activity["id"], user=user))
    assert db.rows("activity_saves") == []


def test_complete_validates_rating_and_note():
    activity = _activity("Alinear bloques", "positioning")
    db, user, _ = _setup([activity])
    for payload in (CompletePayload(rating=0), CompletePayload(rating=6), CompletePayload(note="x" * 1001)):
        with pytest.raises(HTTPException) as excinfo:
            asyncio.run(complete_activity(activity["id"], payload=payload, user=user))
        assert excinfo.value.status_code == 400


def test_complete_upserts_one_row_per_user_and_activity():
    activity = _activity("Alinear bloques", "positioning")
    db, user, _ = _setup([activity])
    asyncio.run(complete_activity(activity["id"], payload=CompletePayload(rating=3), user=user))
    result = asyncio.run(complete_activity(activity["id"], payload=CompletePayload(rating=5, note="  bien "), user=user))
    assert result["ok"] is True
    rows = db.rows("activity_completions")
    assert len(rows) == 1
    assert rows[0]["rating"] == 5
    assert rows[0]["note"] == "bien"


def test_unknown_or_malformed_activity_ids():
    db, user, _ = _setup([])
    with pytest.raises(HTTPException) as missing:
        asyncio.run(complete_activity(str(uuid4()), payload=None, user=user))
    assert missing.value.status_code == 404
    with pytest.raises(HTTPException) as malformed:
        asyncio.run(save_activity("not-a-uuid", user=user))
    assert malformed.value.status_code == 400
