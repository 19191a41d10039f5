"""Tests for Idempotency-Key handling on consent request creation."""

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.api.schemas.consent_requests import ConsentRequestCreate
from app.services.consent_requests import create_consent_request_idempotent
from app.utils import idempotency
from app.utils.hashutils import canonical_sha256
from conftest import user_headers


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the idempotency store."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, nx=False, ex=None):
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True


class DownRedis:
    async def get(self, key):
        raise RedisConnectionError("redis unavailable")

    async def set(self, key, value, nx=False, ex=None):
        raise RedisConnectionError("redis unavailable")


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(idempotency, "get_redis", lambda: fake)
    return fake


@pytest.fixture
def request_body(make_user, make_identity):
    owner = make_user("owner")
    requester = make_user("requester")
    identity = make_identity(owner)
    body = {
        "identity_id": str(identity.id),
        "target_user_id": str(owner.id),
        "requested_scopes": ["profile:label"],
        "context_description": "Add you to the guest list",
    }
    return requester, body


def test_canonical_hash_ignores_key_order():
    assert canonical_sha256({"a": 1, "b": [1, 2]}) == canonical_sha256({"b": [1, 2], "a": 1})
    assert canonical_sha256({"a": 1}) != canonical_sha256({"a": 2})


class TestCreateWithIdempotencyKey:

    def test_replay_returns_original_response(self, client, fake_redis, request_body):
        requester, body = request_body
        headers = {**user_headers(requester.id), "Idempotency-Key": "k-1"}

        first = client.post("/consent-requests", json=body, headers=headers)
        assert first.status_code == 201

        replay = client.post("/consent-requests", json=body, headers=headers)
        assert replay.status_code == 200
        assert replay.headers["Idempotency-Replayed"] == "true"
        assert replay.json() == first.json()

    def test_same_key_different_body_conflicts(self, client, fake_redis, request_body):
        requester, body = request_body
        headers = {**user_headers(requester.id), "Idempotency-Key": "k-2"}
        assert client.post("/consent-requests", json=body, headers=headers).status_code == 201

        changed = {**body, "context_description": "Something else"}
        resp = client.post("/consent-requests", json=changed, headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "idempotency_conflict"

    def test_keys_are_scoped_per_user(self, client, fake_redis, request_body):
        requester, body = request_body
        assert client.post(
            "/consent-requests", json=body, headers={**user_headers(requester.id), "Idempotency-Key": "shared"}
        ).status_code == 201
        assert any(key.startswith(f"idem:{requester.id}:") for key in fake_redis.data)

    def test_redis_down_still_creates(self, client, monkeypatch, request_body):
        monkeypatch.setattr(idempotency, "get_redis", lambda: DownRedis())
        requester, body = request_body
        headers = {**user_headers(requester.id), "Idempotency-Key": "k-3"}
        assert client.post("/consent-requests", json=body, headers=headers).status_code == 201
        # Without replay protection the pending-duplicate rule still holds
        assert client.post("/consent-requests", json=body, headers=headers).status_code == 409


class TestServiceLevel:

    @pytest.mark.asyncio
    async def test_without_key_skips_the_store(self, db, monkeypatch, request_body):
        monkeypatch.setattr(idempotency, "get_redis", lambda: pytest.fail("store should not be touched"))
        requester, body = request_body
        result, replayed = await create_consent_request_idempotent(
            db, requesting_user_id=requester.id, payload=ConsentRequestCreate(**body), idempotency_key=None
        )
        assert not replayed
        assert result["status"] == "PENDING"

    @pytest.mark.asyncio
    async def test_in_flight_lock_falls_through_to_duplicate_check(self, db, fake_redis, request_body):
        requester, body = request_body
        payload = ConsentRequestCreate(**body)
        sha = canonical_sha256(payload.model_dump(mode="json"))
        await idempotency.try_lock(str(requester.id), "k-lock", sha)

        result, replayed = await create_consent_request_idempotent(
            db, requesting_user_id=requester.id, payload=payload, idempotency_key="k-lock"
        )
        assert not replayed
        assert result["target_user_id"] == body["target_user_id"]
