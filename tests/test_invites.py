import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.responses import JSONResponse

from littlewonder.routes.invites import claim_invite, create_invite, fetch_invite
from littlewonder.schemas import InviteCreatePayload

from .fakes import FakeSupabase, fast_config, make_user


def _setup():
    owner_id = str(uuid4())
    child_id = str(uuid4())
    db = FakeSupabase({"children": [{"id": child_id, "user_id": owner_id, "name": "Mila", "birthdate": "2024-01-01"}]})
    return db, make_user(db, owner_id), child_id


def _create(user, config=None):
    return asyncio.run(create_invite(payload=None, user=user, config=config or fast_config()))


def test_create_reuses_the_open_invite():
    db, owner, child_id = _setup()
    config = fast_config(invite_base_url="https://example.test/join/")
    first = _create(owner, config)
    second = _create(owner, config)
    assert first["token"] == second["token"]
    assert first["url"] == f"https://example.test/join/{first['token']}"
    assert len(db.rows("caregiver_invites")) == 1
    invite = db.rows("caregiver_invites")[0]
    assert invite["child_id"] == child_id
    expires = datetime.fromisoformat(invite["expires_at"])
    assert timedelta(days=13) < expires - datetime.now(timezone.utc) <= timedelta(days=14)


def test_create_without_child_is_rejected():
    db = FakeSupabase()
    with pytest.raises(HTTPException) as excinfo:
        _create(make_user(db))
    assert excinfo.value.status_code == 400


def test_create_for_someone_elses_child_is_not_found():
    db, _, child_id = _setup()
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(
            create_invite(payload=InviteCreatePayload(childId=child_id), user=make_user(db), config=fast_config())
        )
    assert excinfo.value.status_code == 404


def test_fetch_reports_state_and_child():
    db, owner, child_id = _setup()
    token = _create(owner)["token"]
    info = asyncio.run(fetch_invite(token, db=db))
    assert info["valid"] is True
    assert info["claimed"] is False
    assert info["child"] == {"id": child_id, "name": "Mila"}

    missing = asyncio.run(fetch_invite("nope", db=db))
    assert isinstance(missing, JSONResponse)
    assert missing.status_code == 404


def test_claim_links_caregiver_once_and_blocks_other_claimers():
    db, owner, child_id = _setup()
    token = _create(owner)["token"]
    caregiver = make_user(db)

    assert asyncio.run(claim_invite(token, user=caregiver)) == {"ok": True, "child_id": child_id}
    assert asyncio.run(claim_invite(token, user=caregiver)) == {"ok": True, "child_id": child_id}
    links = db.rows("child_caregivers")
    assert len(links) == 1
    assert links[0]["user_id"] == caregiver.user_id
    assert links[0]["role"] == "caregiver"
    assert db.rows("caregiver_invites")[0]["claimed_by_user_id"] == caregiver.user_id

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(claim_invite(token, user=make_user(db)))
    assert excinfo.value.status_code == 409


def test_creator_claim_does_not_add_a_caregiver_row():
    db, owner, _ = _setup()
    token = _create(owner)["token"]
    asyncio.run(claim_invite(token, user=owner))
    assert db.rows("child_caregivers") == []


@pytest.mark.parametrize("field", ["revoked_at", "expires_at"])
def test_revoked_or_expired_invites_are_gone(field):
    db, owner, _ = _setup()
    token = _create(owner)["token"]
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    db.rows("caregiver_invites")[0][field] = past
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(claim_invite(token, user=make_user(db)))
    assert excinfo.value.status_code == 410
    assert asyncio.run(fetch_invite(token, db=db))["valid"] is False


def test_unknown_token_cannot_be_claimed():
    db, owner, _ = _setup()
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(claim_invite("missing", user=owner))
    assert excinfo.value.status_code == 404
