import pytest

import main
from schemas import AuthUser


@pytest.fixture
def admin_user(mock_db):
    user = AuthUser(email="admin@example.com", name="Admin", password_hash=main.hash_password("s3cret!"), role="admin")
    mock_db["authuser"].insert_one(user.model_dump())
    return user


def test_root(anon_client):
    assert anon_client.get("/").status_code == 200


def test_routes_require_token(anon_client):
    assert anon_client.get("/categories").status_code == 401
    assert anon_client.get("/users", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_login_and_use_token(anon_client, admin_user):
    res = anon_client.post("/auth/login", data={"email": "admin@example.com", "password": "s3cret!"})
    assert res.status_code == 200
    token = res.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert anon_client.get("/me", headers=headers).json()["email"] == "admin@example.com"
    assert anon_client.get("/categories", headers=headers).status_code == 200


def test_login_wrong_password(anon_client, admin_user):
    res = anon_client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"})
    assert res.status_code == 401


def test_non_admin_forbidden(anon_client, mock_db):
    mock_db["authuser"].insert_one({"email": "user@example.com", "password_hash": "x", "role": "user"})
    token = main.create_access_token({"sub": "user@example.com", "role": "user"})
    res = anon_client.get("/orders", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 403


def test_stats(client, mock_db):
    client.post("/categories", json={"name": "Telecom"})
    client.post("/recharge-codes", json={"amount": 1000, "count": 2})
    mock_db["profiles"].insert_one({"full_name": "Ali"})
    assert client.get("/stats").json() == {
        "categories": 1,
        "products": 0,
        "orders": 0,
        "users": 1,
        "rechargeCodes": 2,
    }


def test_database_unavailable(client, monkeypatch):
    monkeypatch.setattr(main, "db", None)
    res = client.get("/categories")
    assert res.status_code == 500
