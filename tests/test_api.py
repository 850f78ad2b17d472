"""HTTP API of the signal map."""

import json

from conftest import make_record
from errors import SignalStoreError


def seed(store):
    return {
        "prague": store.insert(make_record()),
        "prague_near": store.insert(make_record(lat=50.0756, lon=14.4379, type="dmr", frequency=438.5)),
        "brno": store.insert(make_record(city="Brno", lat=49.1951, lon=16.6068, type="nfm", frequency=145.0)),
        "nowhere": store.insert(make_record(city="", lat=0, lon=0, type="ČTÚ", frequency=70.0)),
    }


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_legend(client):
    assert client.get("/legend").get_json()[0]["color"] == "blue"


def test_signals_feature_collection(client, store):
    ids = seed(store)
    data = client.get("/signals").get_json()

    assert data["type"] == "FeatureCollection"
    assert [f["id"] for f in data["features"]] == list(ids.values())

    first = data["features"][0]
    assert first["geometry"] == {"type": "Point", "coordinates": [14.4378, 50.0755]}
    assert first["properties"]["color"] == "red"
    assert first["properties"]["votes"] == {"up": 0, "down": 0}

    unpositioned = data["features"][3]
    assert unpositioned["geometry"] is None
    assert unpositioned["properties"]["color"] == "violet"


def test_signals_filter_and_sort(client, store):
    ids = seed(store)

    data = client.get("/signals?city=prague").get_json()
    assert [f["id"] for f in data["features"]] == [ids["prague"], ids["prague_near"]]

    data = client.get("/signals?sort=frequency&order=desc").get_json()
    assert [f["properties"]["frequency"] for f in data["features"]] == [438.5, 145.5, 145.0, 70.0]


def test_signals_bad_sort(client):
    assert client.get("/signals?sort=password").status_code == 400
    assert client.get("/signals?sort=city&order=sideways").status_code == 400


def test_groups(client, store):
    ids = seed(store)
    groups = client.get("/signals/groups").get_json()["groups"]

    assert [g["count"] for g in groups] == [2, 1, 1]
    assert groups[0]["position"] == [50.0755, 14.4378]
    assert groups[0]["color"] == "red"
    assert [f["id"] for f in groups[0]["signals"]] == [ids["prague"], ids["prague_near"]]
    assert groups[2]["position"] is None


def test_groups_respect_filters(client, store):
    seed(store)
    groups = client.get("/signals/groups?type=nfm").get_json()["groups"]
    assert len(groups) == 1
    assert groups[0]["color"] == "blue"


def test_new_signal_draft(client):
    res = client.get("/signals/new?lat=50.1&lon=14.2")
    assert res.get_json()["lat"] == 50.1
    assert client.get("/signals/new?lat=50.1").status_code == 400


def test_create_signal(client, store):
    res = client.post("/signals", json={
        "frequency": "145.500",
        "city": "Kladno",
        "type": "FM",
        "lat": 50.14,
        "lon": 14.10,
        "radius_km": 200,
    })
    assert res.status_code == 201
    feature = res.get_json()
    assert feature["properties"]["color"] == "blue"
    assert feature["properties"]["radius_km"] == 80

    stored = store.snapshot()[feature["id"]]
    assert stored["city"] == "Kladno"
    assert "votes" not in stored


def test_create_signal_invalid(client, store):
    res = client.post("/signals", json={"city": "Kladno"})
    assert res.status_code == 400
    assert res.get_json()["field"] == "frequency"
    assert client.post("/signals", data="not json").status_code == 400
    assert store.snapshot() == {}


def test_vote_and_cooldown(client, store, clock, app):
    signal_id = store.insert(make_record())

    res = client.post(f"/signals/{signal_id}/vote", json={"direction": "up"})
    assert res.status_code == 200
    assert res.get_json()["votes"] == {"up": 1, "down": 0}

    clock.advance(10)
    res = client.post(f"/signals/{signal_id}/vote", json={"direction": "down"})
    assert res.status_code == 429
    assert res.get_json()["retry_after"] == 20

    # другое устройство (без cookie) не ограничено
    other = app.test_client()
    assert other.post(f"/signals/{signal_id}/vote", json={"direction": "down"}).status_code == 200

    clock.advance(20)
    res = client.post(f"/signals/{signal_id}/vote", json={"direction": "up"})
    assert res.get_json()["votes"] == {"up": 2, "down": 1}


def test_vote_bad_direction(client, store):
    signal_id = store.insert(make_record())
    assert client.post(f"/signals/{signal_id}/vote", json={"direction": "left"}).status_code == 400


def test_vote_unknown_signal(client):
    assert client.post("/signals/nope/vote", json={"direction": "up"}).status_code == 404


def test_store_failure_is_503(client, store, monkeypatch):
    def broken():
        raise SignalStoreError("database is locked")

    monkeypatch.setattr(store, "snapshot", broken)
    res = client.get("/signals")
    assert res.status_code == 503


def test_stream_sends_current_snapshot(client, store):
    signal_id = store.insert(make_record())
    res = client.get("/signals/stream")
    assert res.mimetype == "text/event-stream"

    chunk = next(iter(res.response))
    if isinstance(chunk, bytes):
        chunk = chunk.decode("utf-8")
    assert chunk.startswith("data: ")
    payload = json.loads(chunk[len("data: "):])
    assert [f["id"] for f in payload["features"]] == [signal_id]
    res.close()


def test_vote_body_must_be_an_object(client, store):
    signal_id = store.insert(make_record())
    assert client.post(f"/signals/{signal_id}/vote", json=["up"]).status_code == 400
    assert client.post(f"/signals/{signal_id}/vote", data="up").status_code == 400
    assert store.snapshot()[signal_id].get("votes") is None


def test_cooldown_cookie_keeps_only_live_entries(client, store, clock):
    ids = [store.insert(make_record(city=f"City {i}")) for i in range(5)]
    for signal_id in ids:
        assert client.post(f"/signals/{signal_id}/vote", json={"direction": "up"}).status_code == 200
        clock.advance(20)

    with client.session_transaction() as sess:
        marks = sorted(k for k in sess if k.startswith("last_vote:"))
    assert marks == [f"last_vote:{ids[3]}", f"last_vote:{ids[4]}"]


def test_draft_rejects_out_of_range_position(client):
    assert client.get("/signals/new?lat=999&lon=0").status_code == 400
    assert client.get("/signals/new?lat=50&lon=-181").status_code == 400
