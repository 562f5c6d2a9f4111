"""Tests for registration, login and bearer-token checks."""

from datetime import timedelta

from bson import ObjectId

from auth import create_access_token, verify_password


class TestRegister:
    def test_register_success(self, client, db):
        response = client.post(
            "/api/auth/register",
            json={"name": "Sam Lee", "email": "Sam@Example.com", "password": "password123"},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["token"]
        assert data["user"]["email"] == "sam@example.com"
        assert data["user"]["role"] == "user"
        assert "password_hash" not in data["user"]

        stored = db["user"].find_one({"email": "sam@example.com"})
        assert verify_password("password123", stored["password_hash"])

    def test_register_duplicate(self, client, customer):
        response = client.post(
            "/api/auth/register",
            json={"name": "Jane", "email": "jane@example.com", "password": "password123"},
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Email already registered"}

    def test_register_invalid_email(self, client):
        response = client.post(
            "/api/auth/register",
            json={"name": "Bad", "email": "not-an-email", "password": "password123"},
        )
        assert response.status_code == 400


class TestLogin:
    def test_login_success(self, client, customer):
        response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret123"})
        assert response.status_code == 200
        token = response.json()["data"]["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "jane@example.com"

    def test_login_wrong_password(self, client, customer):
        response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "nope12345"})
        assert response.status_code == 401
        assert response.json()["success"] is False


class TestBearerAuth:
    def test_missing_header(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    def test_expired_token(self, client, customer):
        token = create_access_token({"sub": str(customer["_id"])}, expires_delta=timedelta(minutes=-1))
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_deleted_user(self, client):
        token = create_access_token({"sub": str(ObjectId())})
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "User not found"

    def test_role_claim_in_token_is_ignored(self, client, customer):
        token = create_access_token({"sub": str(customer["_id"]), "role": "admin"})
        response = client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403
