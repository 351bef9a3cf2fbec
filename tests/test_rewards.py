from concurrent.futures import ThreadPoolExecutor

import auth
import services
from conftest import auth_headers, get_user, register, set_points


def test_redeem_debits_points_and_records_code(client, store):
    token, user = register(client)
    set_points(store, user["id"], 150)

    response = client.post("/api/rewards/coffee/redeem", headers=auth_headers(token))

    assert response.status_code == 200
    payload = response.json()
    assert payload["remainingPoints"] == 50
    assert payload["qrCode"].startswith(f"REWARD-coffee-USER-{user['id']}-")

    stored = get_user(store, user["id"])
    assert stored["points"] == 50
    assert stored["redeemedRewards"] == [payload["redemption"]]
    assert stored["redeemedRewards"][0]["id"] == "coffee"
    assert stored["redeemedRewards"][0]["qrCodeData"] == payload["qrCode"]


def test_redeem_by_body(client, store):
    token, user = register(client)
    set_points(store, user["id"], 30)

    response = client.post("/api/rewards/redeem", json={"rewardId": "sticker"}, headers=auth_headers(token))

    assert response.status_code == 200
    assert response.json()["remainingPoints"] == 0


def test_redeem_with_insufficient_balance(client, store):
    token, user = register(client)
    set_points(store, user["id"], 50)

    response = client.post("/api/rewards/coffee/redeem", headers=auth_headers(token))

    assert response.status_code == 400
    stored = get_user(store, user["id"])
    assert stored["points"] == 50
    assert stored["redeemedRewards"] == []


def test_redeem_unknown_reward(client):
    token, _ = register(client)
    assert client.post("/api/rewards/nope/redeem", headers=auth_headers(token)).status_code == 404
    assert client.post("/api/rewards/redeem", json={}, headers=auth_headers(token)).status_code == 400


def test_redeem_requires_token(client):
    assert client.post("/api/rewards/coffee/redeem").status_code == 401


def test_redemptions_keep_order(client, store):
    token, user = register(client)
    set_points(store, user["id"], 200)

    client.post("/api/rewards/sticker/redeem", headers=auth_headers(token))
    client.post("/api/rewards/coffee/redeem", headers=auth_headers(token))

    stored = get_user(store, user["id"])
    assert [r["id"] for r in stored["redeemedRewards"]] == ["sticker", "coffee"]
    assert stored["points"] == 70


def test_concurrent_redemptions_debit_every_time(store, settings):
    user, _ = auth.register(store, settings, "sara", "sara@fitmail.com", "secret123")
    set_points(store, user["id"], 3000)

    with ThreadPoolExecutor(max_workers=20) as pool:
        results = list(pool.map(lambda _: services.redeem_reward(store, user["id"], "sticker"), range(20)))

    stored = get_user(store, user["id"])
    assert stored["points"] == 3000 - 20 * 30
    assert len(stored["redeemedRewards"]) == 20
    assert sorted(r["remainingPoints"] for r in results) == list(range(2400, 3000, 30))
