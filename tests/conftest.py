import os

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient

from config import Settings
from database import JsonStore
from main import app

CHALLENGES = [
    {
        "id": "walk-10k",
        "name": {"ar": "المشي ١٠ آلاف خطوة", "en": "Walk 10,000 steps"},
        "description": {"ar": "امشِ ١٠ آلاف خطوة", "en": "Walk 10,000 steps today"},
        "reward": 100,
    },
    {
        "id": "water-8",
        "name": {"ar": "اشرب الماء", "en": "Drink water"},
        "description": {"ar": "٨ أكواب", "en": "8 glasses"},
        "reward": 40,
    },
]

REWARDS = [
    {"id": "coffee", "name": {"ar": "قهوة", "en": "Coffee"}, "cost": 100},
    {"id": "sticker", "name": {"ar": "ملصق", "en": "Sticker"}, "cost": 30},
]

FAQ = [
    {"id": "faq-1", "question": {"ar": "سؤال", "en": "Question"}, "answer": {"ar": "جواب", "en": "Answer"}},
]

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        data_file=str(tmp_path / "data.json"),
        uploads_dir=str(tmp_path / "uploads"),
        base_url="http://testserver",
        secret_key="test-secret-key",
    )


@pytest.fixture()
def store(settings):
    store = JsonStore(settings.data_file)
    store.initialize()
    with store.mutate() as document:
        document["challenges"] = [dict(c) for c in CHALLENGES]
        document["rewards"] = [dict(r) for r in REWARDS]
        document["faq"] = [dict(f) for f in FAQ]
    return store


@pytest.fixture()
def client(settings, store):
    previous = (app.state.settings, app.state.store)
    app.state.settings = settings
    app.state.store = store
    with TestClient(app) as test_client:
        yield test_client
    app.state.settings, app.state.store = previous


def register(client, username="sara", email=None, password="secret123"):
    response = client.post(
        "/api/register",
        json={"username": username, "email": email or f"{username}@fitmail.com", "password": password},
    )
    assert response.status_code == 201, response.text
    payload = response.json()
    return payload["token"], payload["user"]


def auth_headers(token, **extra):
    headers = {"Authorization": f"Bearer {token}"}
    headers.update(extra)
    return headers


def set_points(store, user_id, points):
    with store.mutate() as document:
        for user in document["users"]:
            if user["id"] == user_id:
                user["points"] = points


def get_user(store, user_id):
    return next(u for u in store.load()["users"] if u["id"] == user_id)


def submit_proof(client, token, challenge_id=None):
    data = {"challengeId": challenge_id} if challenge_id else {}
    return client.post(
        "/api/challenges/submit",
        headers=auth_headers(token),
        data=data,
        files={"completionImage": ("proof.png", PNG_BYTES, "image/png")},
    )
