"""Tests for service routes and seeding."""

from seed import SAMPLE_PRODUCTS, seed


class TestServiceRoutes:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "Storefront API"}

    def test_health(self, client):
        assert client.get("/api/health").json()["status"] == "ok"

    def test_database_report(self, client, make_product):
        make_product()
        data = client.get("/test").json()
        assert data["connection_status"] == "Connected"
        assert "product" in data["collections"]

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json()["success"] is False


class TestSeed:
    def test_seed_empty_database(self, db):
        created = seed(db)
        assert created == {"users": 1, "products": len(SAMPLE_PRODUCTS)}
        admin = db["user"].find_one({"role": "admin"})
        assert all(p["created_by"] == str(admin["_id"]) for p in db["product"].find())

    def test_seed_is_idempotent(self, db):
        seed(db)
        assert seed(db) == {"users": 0, "products": 0}
