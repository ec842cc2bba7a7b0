import pytest


def _register(client, email, role):
    resp = client.post(
        "/register",
        json={
            "email": email,
            "name": email.split("@")[0],
            "password": "secret123",
            "is_donor": role == "donor",
            "is_rider": role == "rider",
        },
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


@pytest.fixture
def donor(make_client):
    client = make_client()
    client.user_id = _register(client, "donor@handoff.org", "donor")
    return client


@pytest.fixture
def rider(make_client):
    client = make_client()
    client.user_id = _register(client, "rider@handoff.org", "rider")
    return client


@pytest.fixture
def other_rider(make_client):
    client = make_client()
    client.user_id = _register(client, "rider2@handoff.org", "rider")
    return client


def _create_food(donor, **overrides):
    body = {"food_type": "rice", "quantity": 10, "location": "Market Rd"}
    body.update(overrides)
    resp = donor.post("/donations/food", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(make_client):
    assert make_client().get("/health").json() == {"status": "ok"}


def test_me_and_login(make_client, donor):
    me = donor.get("/me").json()
    assert me["role"] == "donor"
    assert me["email"] == "donor@handoff.org"

    fresh = make_client()
    assert fresh.get("/me").status_code == 401
    resp = fresh.post(
        "/login",
        json={"email": "donor@handoff.org", "password": "secret123", "role": "donor"},
    )
    assert resp.status_code == 200
    assert fresh.get("/me").json()["id"] == donor.user_id

    bad = make_client().post(
        "/login",
        json={"email": "donor@handoff.org", "password": "secret123", "role": "rider"},
    )
    assert bad.status_code == 400


def test_duplicate_registration(make_client, donor):
    resp = make_client().post(
        "/register",
        json={
            "email": "donor@handoff.org",
            "name": "again",
            "password": "secret123",
            "is_donor": True,
        },
    )
    assert resp.status_code == 400


def test_full_handoff(donor, rider, other_rider):
    created = _create_food(donor)
    donation_id = created["id"]
    assert created["kind"] == "food"

    pending = donor.get("/donations/pending").json()
    assert [d["id"] for d in pending] == [donation_id]
    assert "otp" not in pending[0]

    claim = rider.post(f"/donations/{donation_id}/claim")
    assert claim.status_code == 200
    assert claim.json() == {"otp": created["otp"]}

    lost = other_rider.post(f"/donations/{donation_id}/claim")
    assert lost.status_code == 409
    assert lost.json()["code"] == "already_claimed"

    intruder = other_rider.post(f"/donations/{donation_id}/verify", json={"code": created["otp"]})
    assert intruder.status_code == 403
    assert intruder.json()["code"] == "not_allowed"

    wrong = rider.post(f"/donations/{donation_id}/verify", json={"code": "wrong1"})
    assert wrong.status_code == 400
    assert wrong.json()["code"] == "invalid"

    ok = rider.post(f"/donations/{donation_id}/verify", json={"code": created["otp"]})
    assert ok.status_code == 200
    assert ok.json() == {"kind": "food"}

    status = donor.get(f"/donations/{donation_id}/status").json()
    assert status == {"id": donation_id, "status": "completed"}

    again = rider.post(f"/donations/{donation_id}/verify", json={"code": created["otp"]})
    assert again.status_code == 403

    assert donor.get("/donations/pending").json() == []
    assert [d["id"] for d in donor.get("/donations/mine").json()] == [donation_id]
    assert [d["id"] for d in rider.get("/donations/mine").json()] == [donation_id]


def test_clothes_donation_and_kind_filter(donor):
    food = _create_food(donor)
    resp = donor.post(
        "/donations/clothes",
        json={"cloth_type": "jacket", "quantity": 2, "condition": "worn"},
    )
    assert resp.status_code == 201
    clothes = resp.json()

    only_clothes = donor.get("/donations/pending", params={"kind": "clothes"}).json()
    assert [d["id"] for d in only_clothes] == [clothes["id"]]
    both = {d["id"] for d in donor.get("/donations/pending").json()}
    assert both == {food["id"], clothes["id"]}

    detail = donor.get(f"/donations/{clothes['id']}").json()
    assert detail["kind"] == "clothes"
    assert detail["cloth_type"] == "jacket"


def test_create_requires_donor_and_valid_fields(donor, rider):
    assert rider.post("/donations/food", json={"food_type": "rice", "quantity": 1}).status_code == 403
    assert donor.post("/donations/food", json={"quantity": 1}).status_code == 422
    assert donor.post("/donations/food", json={"food_type": "rice", "quantity": 0}).status_code == 422


def test_claim_requires_rider(donor):
    created = _create_food(donor)
    assert donor.post(f"/donations/{created['id']}/claim").status_code == 403


def test_unknown_ids(donor, rider):
    assert donor.get("/donations/999").status_code == 404
    status = donor.get("/donations/999/status")
    assert status.status_code == 404
    assert status.json()["code"] == "not_found"
    assert rider.post("/donations/999/claim").status_code == 404
    assert rider.post("/donations/999/verify", json={"code": "ABCDEF"}).status_code == 404


def test_reject_by_donor_then_again(donor, rider):
    created = _create_food(donor)
    resp = donor.post(f"/donations/{created['id']}/reject", json={"reason": "spoiled"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["rejection_reason"] == "spoiled"

    again = donor.post(f"/donations/{created['id']}/reject", json={"reason": "again"})
    assert again.status_code == 409
    assert again.json()["code"] == "already_terminal"

    assert rider.post(f"/donations/{created['id']}/claim").status_code == 409


def test_reject_by_claimant_and_not_by_strangers(donor, rider, other_rider):
    created = _create_food(donor)
    rider.post(f"/donations/{created['id']}/claim")

    stranger = other_rider.post(f"/donations/{created['id']}/reject", json={"reason": "nope"})
    assert stranger.status_code == 403

    resp = rider.post(f"/donations/{created['id']}/reject", json={"reason": "address closed"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"


def test_resend_otp_cooldown(donor, rider):
    created = _create_food(donor)
    resp = donor.post(f"/donations/{created['id']}/resend-otp")
    assert resp.status_code == 429
    assert resp.json()["code"] == "too_soon"
    assert int(resp.headers["Retry-After"]) > 0

    assert rider.post(f"/donations/{created['id']}/resend-otp").status_code == 403


def test_users_listing(donor, rider):
    users = donor.get("/users/").json()
    assert {u["id"] for u in users} == {donor.user_id, rider.user_id}
    assert "password_hash" not in users[0]
    assert donor.get("/users/999").status_code == 404


def test_users_require_login(make_client, donor):
    anonymous = make_client()
    assert anonymous.get("/users/").status_code == 401
    assert anonymous.get(f"/users/{donor.user_id}").status_code == 401
    assert donor.get(f"/users/{donor.user_id}").json()["email"] == "donor@handoff.org"


def test_reject_with_blank_reason(donor):
    created = _create_food(donor)
    resp = donor.post(f"/donations/{created['id']}/reject", json={"reason": "   "})
    assert resp.status_code == 422
    assert donor.get(f"/donations/{created['id']}/status").json()["status"] == "pending"


def test_created_timestamps_carry_utc_offset(donor):
    created = _create_food(donor)
    assert created["otp_expiry"].endswith(("Z", "+00:00"))
    detail = donor.get(f"/donations/{created['id']}").json()
    assert detail["created_at"].endswith(("Z", "+00:00"))
