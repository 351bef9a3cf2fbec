import os

from conftest import auth_headers, get_user, register, submit_proof


def test_list_challenges_is_localized(client):
    arabic = client.get("/api/challenges").json()
    english = client.get("/api/challenges", headers={"Accept-Language": "en-US"}).json()

    assert arabic[0]["name"] == "المشي ١٠ آلاف خطوة"
    assert english[0]["name"] == "Walk 10,000 steps"
    assert english[0]["reward"] == 100


def test_rewards_and_faq_are_localized(client):
    rewards = client.get("/api/rewards", headers={"Accept-Language": "en"}).json()
    faq = client.get("/api/faq", headers={"Accept-Language": "fr"}).json()

    assert [r["name"] for r in rewards] == ["Coffee", "Sticker"]
    assert faq[0]["question"] == "سؤال"


def test_join_by_body_sets_active_challenge(client, store):
    token, user = register(client)

    response = client.post(
        "/api/challenges/join",
        json={"challengeId": "walk-10k"},
        headers=auth_headers(token, **{"Accept-Language": "en"}),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["activeChallenge"]["id"] == "walk-10k"
    assert payload["activeChallenge"]["name"] == "Walk 10,000 steps"
    assert payload["activeChallenge"]["startedAt"]
    assert payload["user"]["activeChallenge"]["name"] == "Walk 10,000 steps"

    stored = get_user(store, user["id"])["activeChallenge"]
    assert stored["name"] == {"ar": "المشي ١٠ آلاف خطوة", "en": "Walk 10,000 steps"}
    assert stored["reward"] == 100


def test_start_by_path(client, store):
    token, user = register(client)

    response = client.post("/api/challenges/water-8/start", headers=auth_headers(token))

    assert response.status_code == 200
    assert response.json()["activeChallenge"]["name"] == "اشرب الماء"
    assert get_user(store, user["id"])["activeChallenge"]["id"] == "water-8"


def test_join_unknown_challenge(client):
    token, _ = register(client)
    assert client.post("/api/challenges/missing/start", headers=auth_headers(token)).status_code == 404
    assert client.post("/api/challenges/join", json={}, headers=auth_headers(token)).status_code == 400


def test_join_requires_token(client):
    assert client.post("/api/challenges/walk-10k/start").status_code == 401


def test_join_while_active_is_conflict_and_keeps_first(client, store):
    token, user = register(client)
    first = client.post("/api/challenges/walk-10k/start", headers=auth_headers(token))
    started_at = first.json()["activeChallenge"]["startedAt"]

    for path, body in (
        ("/api/challenges/water-8/start", None),
        ("/api/challenges/walk-10k/start", None),
        ("/api/challenges/join", {"challengeId": "water-8"}),
    ):
        response = client.post(path, json=body, headers=auth_headers(token))
        assert response.status_code == 409

    active = get_user(store, user["id"])["activeChallenge"]
    assert active["id"] == "walk-10k"
    assert active["startedAt"] == started_at


def test_join_after_cancel_and_after_submit(client, store):
    token, user = register(client)

    client.post("/api/challenges/walk-10k/start", headers=auth_headers(token))
    assert client.post("/api/challenges/cancel", headers=auth_headers(token)).status_code == 200
    assert client.post("/api/challenges/water-8/start", headers=auth_headers(token)).status_code == 200
    assert submit_proof(client, token).status_code == 200
    assert client.post("/api/challenges/walk-10k/start", headers=auth_headers(token)).status_code == 200

    assert get_user(store, user["id"])["activeChallenge"]["id"] == "walk-10k"


def test_cancel_without_active_challenge(client):
    token, _ = register(client)
    response = client.post("/api/challenges/cancel", headers=auth_headers(token))
    assert response.status_code == 400


def test_submit_creates_pending_submission(client, store, settings):
    token, user = register(client)
    client.post("/api/challenges/walk-10k/start", headers=auth_headers(token))

    response = submit_proof(client, token, challenge_id="walk-10k")

    assert response.status_code == 200
    submission = response.json()["submission"]
    assert submission["status"] == "pending"
    assert submission["userId"] == user["id"]
    assert submission["username"] == user["username"]
    assert submission["challenge"]["id"] == "walk-10k"
    assert submission["challengeName"] == "المشي ١٠ آلاف خطوة"
    assert submission["imageUrl"].startswith("http://testserver/uploads/completionImage-")

    filename = submission["imageUrl"].rsplit("/", 1)[1]
    assert os.path.exists(os.path.join(settings.uploads_dir, filename))
    assert get_user(store, user["id"])["activeChallenge"] is None
    assert len(store.load()["submissions"]) == 1


def test_submit_without_active_challenge_leaves_no_upload(client, store, settings):
    token, _ = register(client)

    response = submit_proof(client, token)

    assert response.status_code == 400
    assert store.load()["submissions"] == []
    assert not os.listdir(settings.uploads_dir)


def test_submit_for_other_challenge_is_rejected(client, store):
    token, user = register(client)
    client.post("/api/challenges/walk-10k/start", headers=auth_headers(token))

    assert submit_proof(client, token, challenge_id="water-8").status_code == 400
    assert get_user(store, user["id"])["activeChallenge"]["id"] == "walk-10k"


def test_submit_requires_image(client):
    token, _ = register(client)
    client.post("/api/challenges/walk-10k/start", headers=auth_headers(token))

    missing = client.post("/api/challenges/submit", headers=auth_headers(token), data={"challengeId": "walk-10k"})
    not_image = client.post(
        "/api/challenges/submit",
        headers=auth_headers(token),
        files={"completionImage": ("notes.txt", b"hello", "text/plain")},
    )

    assert missing.status_code == 400
    assert not_image.status_code == 400


def test_submit_rejects_oversized_image(client, settings):
    token, _ = register(client)
    client.post("/api/challenges/walk-10k/start", headers=auth_headers(token))
    settings.max_upload_bytes = 16

    response = submit_proof(client, token)

    assert response.status_code == 400
