"""인벤토리 API 통합 테스트

TestClient + in-memory SQLite + LocalRelay.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event as sa_event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.health import router as health_router
from src.api.inventory import router as inventory_router
from src.config import settings
from src.core.event_bus import EventBus
from src.db.database import get_db
from src.db.models import Base
from src.services.inventory_service import InventoryService
from src.services.relay import LocalRelay


GM_KEY = "gm-secret"
GM_HEADERS = {"X-GM-Key": GM_KEY}


def _build_client(enforce_mode="block"):
    db_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @sa_event.listens_for(db_engine, "connect")
    def _set_fk(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(db_engine)
    session_factory = sessionmaker(bind=db_engine)
    db = session_factory()

    bus = EventBus()
    relay = LocalRelay(bus)
    service = InventoryService(
        db,
        bus,
        relay,
        enforce_mode=enforce_mode,
        include_nested=True,
        coins_per_weight_unit=50.0,
        metric=False,
        exceed_message_text="",
        gm_only_config=True,
    )

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app = FastAPI()
    app.include_router(health_router)
    app.include_router(inventory_router)
    app.dependency_overrides[get_db] = _get_test_db
    app.state.inventory_service = service
    app.state.notice_relay = relay
    app.state.event_bus = bus
    return TestClient(app), db


@pytest.fixture()
def client(monkeypatch):
    """액터 a1 + 가방(용량 50, 감소율 50%)이 준비된 TestClient"""
    monkeypatch.setattr(settings, "GM_API_KEY", GM_KEY)
    test_client, db = _build_client()
    test_client.post("/inventory/actors", json={"actor_id": "a1", "name": "Hero", "encumbrance_max": 100})
    test_client.post(
        "/inventory/actors/a1/items",
        json={
            "item_id": "bag",
            "name": "Bag of Holding",
            "kind": "container",
            "weight": {"value": 5, "units": "lb"},
            "capacity": {"value": 50, "units": "lb"},
        },
    )
    test_client.put(
        "/inventory/actors/a1/containers/bag/reduction",
        json={"reduction_pct": 50},
        headers=GM_HEADERS,
    )
    yield test_client
    db.close()


# ── actors ───────────────────────────────────────────────────


class TestActors:
    def test_get_actor(self, client):
        resp = client.get("/inventory/actors/a1")
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Hero"
        assert data["items"][0]["reduction_pct"] == 50
        assert data["encumbrance"]["value"] == pytest.approx(5.0)
        assert data["encumbrance"]["unit"] == "lb"

    def test_get_missing_actor(self, client):
        assert client.get("/inventory/actors/nobody").status_code == 404

    def test_duplicate_actor(self, client):
        resp = client.post("/inventory/actors", json={"actor_id": "a1"})
        assert resp.status_code == 400

    def test_currency(self, client):
        resp = client.put("/inventory/actors/a1/currency", json={"currency": {"gp": 250}})
        assert resp.status_code == 200
        assert resp.json()["encumbrance"]["value"] == pytest.approx(10.0)

    def test_currency_missing_actor(self, client):
        resp = client.put("/inventory/actors/nobody/currency", json={"currency": {"gp": 1}})
        assert resp.status_code == 404


# ── items ────────────────────────────────────────────────────


class TestItems:
    def test_create_in_container(self, client):
        resp = client.post(
            "/inventory/actors/a1/items",
            json={"name": "Statue", "weight": {"value": 60}, "container_id": "bag"},
        )
        assert resp.status_code == 201
        assert resp.json()["weight"]["value"] == 60.0
        enc = client.get("/inventory/actors/a1/encumbrance").json()
        assert enc["value"] == pytest.approx(35.0)

    def test_create_over_capacity_is_conflict(self, client):
        client.post(
            "/inventory/actors/a1/items",
            json={"name": "Ore", "weight": {"value": 80}, "container_id": "bag"},
        )
        resp = client.post(
            "/inventory/actors/a1/items",
            json={"name": "Statue", "weight": {"value": 30}, "container_id": "bag"},
        )
        assert resp.status_code == 409
        detail = resp.json()["detail"]
        assert detail["container_id"] == "bag"
        assert detail["current"] == pytest.approx(40.0)
        assert detail["delta"] == pytest.approx(15.0)
        assert "capacity exceeded" in detail["message"]

    def test_create_invalid_kind(self, client):
        resp = client.post("/inventory/actors/a1/items", json={"kind": "dragon"})
        assert resp.status_code == 400

    def test_update_quantity(self, client):
        client.post(
            "/inventory/actors/a1/items",
            json={"item_id": "arrows", "weight": {"value": 0.1}, "quantity": 20, "container_id": "bag"},
        )
        resp = client.patch("/inventory/actors/a1/items/arrows", json={"quantity": 40})
        assert resp.status_code == 200
        assert resp.json()["quantity"] == 40

    def test_move_over_capacity(self, client):
        client.post("/inventory/actors/a1/items", json={"item_id": "crate", "weight": {"value": 120}})
        resp = client.patch("/inventory/actors/a1/items/crate", json={"container_id": "bag"})
        assert resp.status_code == 409
        assert resp.json()["detail"]["kind"] == "move"

    def test_move_out_with_empty_string(self, client):
        client.post(
            "/inventory/actors/a1/items",
            json={"item_id": "rope", "weight": {"value": 10}, "container_id": "bag"},
        )
        resp = client.patch("/inventory/actors/a1/items/rope", json={"container_id": ""})
        assert resp.status_code == 200
        assert resp.json()["container_id"] is None

    def test_move_into_own_contents_rejected(self, client):
        client.post(
            "/inventory/actors/a1/items",
            json={"item_id": "pouch", "kind": "container", "weight": {"value": 1}, "container_id": "bag"},
        )
        resp = client.patch("/inventory/actors/a1/items/bag", json={"container_id": "pouch"})
        assert resp.status_code == 400
        items = {i["item_id"]: i for i in client.get("/inventory/actors/a1").json()["items"]}
        assert items["bag"]["container_id"] is None
        enc = client.get("/inventory/actors/a1/encumbrance").json()
        assert enc["value"] == pytest.approx(5.5)

    def test_patch_units_only_keeps_value(self, client):
        client.post("/inventory/actors/a1/items", json={"item_id": "rock", "weight": {"value": 3}})
        resp = client.patch("/inventory/actors/a1/items/rock", json={"weight": {"units": "kg"}})
        assert resp.status_code == 200
        assert resp.json()["weight"] == {"value": 3.0, "units": "kg"}

    def test_update_missing_item(self, client):
        resp = client.patch("/inventory/actors/a1/items/nope", json={"quantity": 2})
        assert resp.status_code == 404

    def test_delete(self, client):
        client.post("/inventory/actors/a1/items", json={"item_id": "rock", "weight": {"value": 1}})
        assert client.delete("/inventory/actors/a1/items/rock").status_code == 200
        assert client.delete("/inventory/actors/a1/items/rock").status_code == 404


# ── containers ───────────────────────────────────────────────


class TestContainers:
    def test_report(self, client):
        client.post(
            "/inventory/actors/a1/items",
            json={"name": "Rope", "weight": {"value": 10}, "container_id": "bag"},
        )
        resp = client.get("/inventory/actors/a1/containers/bag")
        assert resp.status_code == 200
        data = resp.json()
        assert data["load"] == pytest.approx(5.0)
        assert data["capacity"] == pytest.approx(50.0)
        assert data["tier"] == "rare"
        assert data["trace"][0]["kind"] == "item"

    def test_report_missing(self, client):
        assert client.get("/inventory/actors/a1/containers/nope").status_code == 404

    def test_reduction_requires_gm(self, client):
        resp = client.put(
            "/inventory/actors/a1/containers/bag/reduction",
            json={"reduction_pct": 90},
        )
        assert resp.status_code == 403

    def test_gm_flag_in_body_is_ignored(self, client):
        resp = client.put(
            "/inventory/actors/a1/containers/bag/reduction",
            json={"reduction_pct": 90, "is_gm": True},
        )
        assert resp.status_code == 403
        assert client.get("/inventory/actors/a1/containers/bag").json()["reduction_pct"] == 50

    def test_wrong_gm_key(self, client):
        resp = client.put(
            "/inventory/actors/a1/containers/bag/reduction",
            json={"reduction_pct": 90},
            headers={"X-GM-Key": "guess"},
        )
        assert resp.status_code == 403

    def test_no_gm_key_configured(self, client, monkeypatch):
        monkeypatch.setattr(settings, "GM_API_KEY", "")
        resp = client.put(
            "/inventory/actors/a1/containers/bag/reduction",
            json={"reduction_pct": 90},
            headers={"X-GM-Key": ""},
        )
        assert resp.status_code == 403

    def test_reduction_clamped(self, client):
        resp = client.put(
            "/inventory/actors/a1/containers/bag/reduction",
            json={"reduction_pct": 250},
            headers=GM_HEADERS,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["reduction_pct"] == 100
        assert data["container"]["tier"] == "artifact"

    def test_diagnostics(self, client):
        resp = client.get("/inventory/actors/a1/diagnostics")
        assert resp.status_code == 200
        data = resp.json()
        assert [c["container_id"] for c in data["containers"]] == ["bag"]
        assert isinstance(data["logs"], list)

    def test_notices(self, client):
        client.post(
            "/inventory/actors/a1/items",
            json={"name": "Anvil", "weight": {"value": 300}, "container_id": "bag"},
        )
        notices = client.get("/inventory/notices").json()
        kinds = [n["kind"] for n in notices]
        assert kinds == ["reduction_set", "capacity_exceeded"]


class TestWarnMode:
    def test_over_capacity_allowed(self):
        test_client, db = _build_client(enforce_mode="warn")
        test_client.post("/inventory/actors", json={"actor_id": "a1"})
        test_client.post(
            "/inventory/actors/a1/items",
            json={"item_id": "box", "kind": "container", "capacity": {"value": 1}},
        )
        resp = test_client.post(
            "/inventory/actors/a1/items",
            json={"name": "Anvil", "weight": {"value": 300}, "container_id": "box"},
        )
        assert resp.status_code == 201
        notices = test_client.get("/inventory/notices").json()
        assert notices[-1]["kind"] == "capacity_exceeded"
        db.close()


class TestHealth:
    def test_policy_reported(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["enforce_mode"] == "block"
        assert data["relay"] == "local"
        assert data["unit"] == "lb"


class TestErrorSchema:
    def test_error_responses_documented(self, client):
        schema = client.get("/openapi.json").json()
        get_actor = schema["paths"]["/inventory/actors/{actor_id}"]["get"]
        assert "ErrorResponse" in get_actor["responses"]["404"]["content"]["application/json"]["schema"]["$ref"]
        patch_item = schema["paths"]["/inventory/actors/{actor_id}/items/{item_id}"]["patch"]
        assert {"400", "404", "409"} <= set(patch_item["responses"])

    def test_not_found_body_matches_schema(self, client):
        body = client.get("/inventory/actors/nobody").json()
        assert set(body) == {"detail"}
        assert isinstance(body["detail"], str)
