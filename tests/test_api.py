import time

from fastapi.testclient import TestClient

from catalog_sync.config import settings
from catalog_sync.main_app import app

AUTH = (settings.ADMIN_USER, settings.ADMIN_PASS)

CSV_BODY = (
    "sku,name,product_type,price,qty,status,configurable_variations\n"
    'TS-1,Tee,configurable,20,0,1,"sku=TS-1-S,size=S|sku=TS-1-M,size=M"\n'
    "TS-1-S,Tee S,simple,,5,1,\n"
    "MUG-1,Mug,simple,8.5,10,2,\n"
)

TEE_PAYLOAD = {
    "sku": "TS-9",
    "name": "Tee 9",
    "kind": "configurable",
    "price": 15,
    "status": "enabled",
    "children": [{"sku": "TS-9-S", "name": "Tee 9 S", "quantity": 2}],
}


def test_home():
    with TestClient(app) as client:
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["status"] == "running"


def test_write_routes_require_auth():
    with TestClient(app) as client:
        assert client.post("/api/products", json=TEE_PAYLOAD).status_code == 401
        r = client.post("/api/products", json=TEE_PAYLOAD, auth=("admin", "wrong-password"))
        assert r.status_code == 401


def test_create_load_update_delete():
    with TestClient(app) as client:
        r = client.post("/api/products", json=TEE_PAYLOAD, auth=AUTH)
        assert r.status_code == 201
        created = r.json()["node"]
        assert created["id"]
        assert created["children"][0]["parent_ref"] == created["id"]

        loaded = client.get("/api/products").json()
        assert [p["sku"] for p in loaded["forest"]] == ["TS-9"]
        assert client.get("/api/grid").json()["count"] == 1

        r = client.put(f"/api/products/{created['id']}", json={**created, "name": "Tee nine"}, auth=AUTH)
        assert r.status_code == 200
        assert r.json()["written"] == 2

        r = client.delete(f"/api/products/{created['id']}", auth=AUTH)
        assert r.status_code == 200
        assert r.json()["written"] == 2
        assert client.get("/api/products").json()["forest"] == []

        r = client.delete(f"/api/products/{created['id']}", auth=AUTH)
        assert r.status_code == 502


def test_import_persist_and_export():
    with TestClient(app) as client:
        r = client.post(
            "/api/import?persist=true",
            content=CSV_BODY,
            headers={"Content-Type": "text/csv"},
            auth=AUTH,
        )
        assert r.status_code == 200
        body = r.json()
        assert [p["sku"] for p in body["products"]] == ["TS-1", "MUG-1"]
        assert body["bulk"]["committed"] == 3
        assert "child_not_found" in [w["code"] for w in body["report"]["warnings"]]

        r = client.get("/api/export")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        assert "sku=TS-1-S,size=S" in r.text

        loaded = client.get("/api/products").json()
        assert [p["sku"] for p in loaded["forest"]] == ["TS-1", "MUG-1"]
        assert loaded["records"] == 3


def test_import_rejects_unknown_csv():
    with TestClient(app) as client:
        r = client.post("/api/import", content="title,cost\nA,1\n", auth=AUTH)
        assert r.status_code == 400
        r = client.post("/api/import", content="", auth=AUTH)
        assert r.status_code == 400


def test_mass_actions_and_bulk_sync():
    with TestClient(app) as client:
        client.post("/api/import", content=CSV_BODY, auth=AUTH)
        r = client.post("/api/sync/bulk", auth=AUTH)
        assert r.status_code == 200
        assert r.json()["committed"] == 3

        ids = [p["id"] for p in client.get("/api/products").json()["forest"]]
        r = client.post("/api/products/mass", json={"action": "enable", "ids": ids}, auth=AUTH)
        assert r.status_code == 200
        statuses = {p["status"] for p in client.get("/api/products").json()["forest"]}
        assert statuses == {"enabled"}

        r = client.post("/api/products/mass", json={"action": "delete", "ids": ids[:1]}, auth=AUTH)
        assert r.status_code == 200
        assert [p["sku"] for p in client.get("/api/products").json()["forest"]] == ["MUG-1"]

        assert client.post("/api/products/mass", json={"action": "enable", "ids": []}, auth=AUTH).status_code == 400


def test_row_change_events_are_queued_and_synced():
    with TestClient(app) as client:
        r = client.post(
            "/api/events",
            json={"kind": "row_added", "row": {"sku": "EV-1", "name": "From grid", "price": 3}},
            auth=AUTH,
        )
        assert r.status_code == 202
        assert r.json()["queued"] is True

        r = client.post(
            "/api/events",
            json={"kind": "cell_edited", "row": {"id": "x", "sku": "EV-1", "name": "n"}, "field": "sku", "value": "bad sku"},
            auth=AUTH,
        )
        assert r.json()["queued"] is False

        skus = []
        for _ in range(50):
            skus = [p["sku"] for p in client.get("/api/products").json()["forest"]]
            if skus:
                break
            time.sleep(0.1)
        assert skus == ["EV-1"]

        entries = client.get("/api/audit").json()["entries"]
        assert any(e["action"] == "Row Sync: create" for e in entries)


def test_deleted_product_stays_gone_after_bulk_sync():
    with TestClient(app) as client:
        keep = client.post("/api/products", json={"sku": "KEEP", "name": "Keep"}, auth=AUTH).json()["node"]
        gone = client.post("/api/products", json={"sku": "GONE", "name": "Gone"}, auth=AUTH).json()["node"]
        assert client.get("/api/grid").json()["count"] == 2

        assert client.delete(f"/api/products/{gone['id']}", auth=AUTH).status_code == 200
        grid = client.get("/api/grid").json()
        assert [p["sku"] for p in grid["products"]] == ["KEEP"]

        r = client.post("/api/sync/bulk", auth=AUTH)
        assert r.status_code == 200
        assert [p["sku"] for p in client.get("/api/products").json()["forest"]] == ["KEEP"]
        assert "GONE" not in client.get("/api/export").text
        assert keep["id"]


def test_grid_follows_updates_and_mass_actions():
    with TestClient(app) as client:
        created = client.post("/api/products", json=TEE_PAYLOAD, auth=AUTH).json()["node"]
        child = created["children"][0]

        # a child edited on its own keeps its parent
        r = client.put(f"/api/products/{child['id']}", json={"sku": child["sku"], "name": "Small"}, auth=AUTH)
        assert r.status_code == 200
        grid = client.get("/api/grid").json()["products"]
        assert [p["sku"] for p in grid] == ["TS-9"]
        assert grid[0]["children"][0]["name"] == "Small"

        client.post("/api/products/mass", json={"action": "disable", "ids": [created["id"]]}, auth=AUTH)
        assert client.get("/api/grid").json()["products"][0]["status"] == "disabled"
