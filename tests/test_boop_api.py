from __future__ import annotations

import asyncio

import fakeredis
from fastapi.testclient import TestClient

from boop.api import routes
from boop.lock import pair_lock_key


def _register(client: TestClient, name: str) -> int:
    resp = client.post("/identities", json={"display_name": name})
    assert resp.status_code == 201
    return resp.json()["identity_id"]


def test_healthcheck_and_info(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    assert client.get("/healthcheck").json() == {"status": "ok"}
    assert client.get("/info").json()["name"] == "boop-engine"


def test_identity_endpoints(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    a = _register(client, "Alice")

    data = client.get(f"/identities/{a}").json()
    assert data["display_name"] == "Alice"
    assert data["sent_score"] == 0

    assert client.post("/identities", json={"display_name": "alice"}).status_code == 409
    assert client.post("/identities", json={"display_name": ""}).status_code == 422
    assert client.get("/identities/999").status_code == 404

    # Registered moments ago: too early to rename.
    resp = client.patch(f"/identities/{a}/name", json={"display_name": "Alicia"})
    assert resp.status_code == 422
    assert "days" in resp.json()["detail"]


def test_boop_flow_statuses(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    a = _register(client, "Alice")
    b = _register(client, "Bob")

    resp = client.post(f"/identities/{a}/boop/{b}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "success"
    assert isinstance(body["initiator_value"], int)
    assert body["timestamp"] is not None

    resp = client.post(f"/identities/{a}/boop/{b}")
    assert resp.status_code == 429
    assert resp.json()["status"] == "cooldown_active"

    resp = client.post(f"/identities/{b}/boop/{a}")
    assert resp.status_code == 200

    resp = client.post(f"/identities/{a}/boop/{a}")
    assert resp.status_code == 422
    assert resp.json()["reason"] == "self_interaction"

    resp = client.post(f"/identities/{a}/boop/999")
    assert resp.status_code == 404
    assert resp.json()["reason"] == "unknown_identity"


def test_boop_busy_is_conflict(client_and_redis: tuple[TestClient, fakeredis.FakeRedis], monkeypatch) -> None:  # type: ignore[no-untyped-def]
    client, r = client_and_redis
    monkeypatch.setenv("BOOP_LOCK_WAIT_MS", "0")
    a = _register(client, "Alice")
    b = _register(client, "Bob")
    r.set(pair_lock_key(a, b), "held", px=60_000)

    resp = client.post(f"/identities/{a}/boop/{b}")
    assert resp.status_code == 409
    assert resp.json()["reason"] == "busy"


def test_inventory_endpoints(client_and_redis: tuple[TestClient, fakeredis.FakeRedis], monkeypatch) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    # Keep loot out of the inventory assertions.
    monkeypatch.setattr("boop.boop_engine.draw_reward", lambda **_: None)
    a = _register(client, "Alice")
    b = _register(client, "Bob")

    resp = client.post(f"/identities/{a}/inventory", json={"elixir_id": 3, "quantity": 2})
    assert resp.status_code == 200
    assert resp.json()["items"] == [
        {
            "elixir_id": 3,
            "quantity": 2,
            "active": False,
            "name": "Glove Cleaner",
            "description": "Does 5 damage to both sides.",
            "family": "poison",
            "tier": 1,
        }
    ]

    assert client.post(f"/identities/{a}/inventory", json={"elixir_id": 999}).status_code == 422
    assert client.post(f"/identities/{a}/inventory", json={"elixir_id": 3, "quantity": 0}).status_code == 422
    assert client.put(f"/identities/{a}/inventory/4/active", json={"active": True}).status_code == 422

    resp = client.put(f"/identities/{a}/inventory/3/active", json={"active": True})
    assert resp.status_code == 200
    assert resp.json()["items"][0]["active"] is True

    body = client.post(f"/identities/{a}/boop/{b}").json()
    assert (body["initiator_value"], body["target_value"]) == (-4, -4)
    assert body["initiator_elixirs_used"] == ["Glove Cleaner"]

    items = client.get(f"/identities/{a}/inventory").json()["items"]
    glove = next(i for i in items if i["elixir_id"] == 3)
    assert glove["quantity"] == 1

    assert client.get("/identities/999/inventory").status_code == 404


def test_history_endpoints(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    a = _register(client, "Alice")
    b = _register(client, "Bob")
    client.post(f"/identities/{a}/inventory", json={"elixir_id": 3})
    client.put(f"/identities/{a}/inventory/3/active", json={"active": True})
    client.post(f"/identities/{a}/boop/{b}")

    entries = client.get(f"/identities/{b}/history").json()["entries"]
    assert [(e["elixir_name"], e["side"]) for e in entries] == [("Glove Cleaner", "initiator")]

    resp = client.post(f"/identities/{b}/history/checked")
    assert resp.status_code == 200
    assert client.get(f"/identities/{b}/history").json()["entries"] == []


def test_friend_and_location_endpoints(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    a = _register(client, "Alice")
    b = _register(client, "Bob")

    assert client.post(f"/identities/{a}/friends/{b}").status_code == 201
    assert client.post(f"/identities/{a}/friends/{b}").status_code == 422
    assert [f["identity_id"] for f in client.get(f"/identities/{b}/friends/requests").json()["friends"]] == [a]
    assert [f["identity_id"] for f in client.get(f"/identities/{a}/friends/pending").json()["friends"]] == [b]

    assert client.post(f"/identities/{b}/friends/{a}").status_code == 201
    assert [f["display_name"] for f in client.get(f"/identities/{a}/friends").json()["friends"]] == ["Bob"]

    assert client.delete(f"/identities/{a}/friends/{b}").status_code == 204
    assert client.get(f"/identities/{a}/friends").json()["friends"] == []

    assert client.get(f"/identities/{a}/nearby").status_code == 422
    assert client.put(f"/identities/{a}/location", json={"latitude": 40.7128, "longitude": -74.006}).status_code == 204
    assert client.put(f"/identities/{b}/location", json={"latitude": 40.7306, "longitude": -73.9352}).status_code == 204
    assert client.put(f"/identities/{b}/location", json={"latitude": 95, "longitude": 0}).status_code == 422

    nearby = client.get(f"/identities/{a}/nearby").json()["nearby"]
    assert [n["identity_id"] for n in nearby] == [b]

    assert client.delete(f"/identities/{b}/location").status_code == 204
    assert client.get(f"/identities/{a}/nearby").json()["nearby"] == []


def test_mailbox_endpoint_returns_messages(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    a = _register(client, "Alice")
    b = _register(client, "Bob")
    client.post(f"/identities/{a}/boop/{b}")

    data = client.get(f"/identities/{b}/mailbox?count=50").json()
    assert data["stream"] == f"mailbox:{b}"
    assert any(m["fields"].get("type") == "booped" for m in data["messages"])

    assert client.get(f"/identities/{b}/mailbox?count=0").status_code == 422


def test_info_reports_catalog(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    body = client.get("/info").json()
    assert body["elixir_count"] == 38
    assert body["catalog_source"].endswith("elixirs.csv")


def test_activities_endpoint(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> None:
    client, _ = client_and_redis
    a = _register(client, "Alice")
    b = _register(client, "Bob")
    c = _register(client, "Carol")
    client.post(f"/identities/{a}/boop/{b}")
    client.post(f"/identities/{c}/boop/{a}")

    sent = client.get(f"/identities/{a}/activities").json()
    assert sent["direction"] == "sent"
    assert [(x["initiator_id"], x["target_id"]) for x in sent["activities"]] == [(a, b)]

    received = client.get(f"/identities/{a}/activities?direction=received").json()
    assert [(x["initiator_id"], x["target_id"]) for x in received["activities"]] == [(c, a)]

    assert client.get(f"/identities/{a}/activities?direction=sideways").status_code == 422
    assert client.get("/identities/999/activities").status_code == 404


def test_boop_resolves_off_the_event_loop(
    client_and_redis: tuple[TestClient, fakeredis.FakeRedis], monkeypatch
) -> None:  # type: ignore[no-untyped-def]
    client, _ = client_and_redis
    a = _register(client, "Alice")
    b = _register(client, "Bob")
    seen: list[bool] = []
    real_resolve = routes.resolve_boop

    def _recording_resolve(**kwargs):  # type: ignore[no-untyped-def]
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            seen.append(False)
        else:
            seen.append(True)
        return real_resolve(**kwargs)

    monkeypatch.setattr(routes, "resolve_boop", _recording_resolve)

    assert client.post(f"/identities/{a}/boop/{b}").status_code == 200
    # A worker thread has no running loop.
    assert seen == [False]
