from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId
from pymongo.errors import PyMongoError

import main
from schemas import Profile

FIXTURES = [
    ("Ali Hassan", "07701234567", "ali@example.com"),
    ("Sara Ahmed", "07809876543", "sara@example.com"),
    ("Omar Khalil", "07701119999", "omar@example.com"),
    ("Noor ALI", "07505550000", None),
    ("Mustafa", "+9647712223333", "mustafa@example.com"),
]


@pytest.fixture
def users(mock_db):
    ids = {}
    for i, (name, phone, email) in enumerate(FIXTURES):
        doc = Profile(full_name=name, phone=phone, wallet_balance=1000 * i).model_dump()
        doc["created_at"] = datetime.now(timezone.utc) - timedelta(days=i)
        oid = mock_db["profiles"].insert_one(doc).inserted_id
        if email:
            mock_db["authuser"].insert_one({"_id": oid, "email": email, "password_hash": "x", "role": "user"})
        ids[name] = str(oid)
    return ids


def test_list_users_enriched_with_email(client, users):
    res = client.get("/users").json()
    assert res["total"] == len(FIXTURES)
    assert res["page"] == 1
    assert res["limit"] == 20
    by_name = {u["full_name"]: u for u in res["data"]}
    assert by_name["Ali Hassan"]["email"] == "ali@example.com"
    assert by_name["Noor ALI"]["email"] == ""
    assert by_name["Ali Hassan"]["is_blocked"] is False
    assert res["data"][0]["full_name"] == "Ali Hassan"


def test_search_by_phone_substring(client, users):
    res = client.get("/users", params={"search": "0770"}).json()
    names = {u["full_name"] for u in res["data"]}
    assert names == {"Ali Hassan", "Omar Khalil"}
    total = client.get("/users").json()["total"]
    non_matching = [f for f in FIXTURES if "0770" not in f[1] and "0770" not in f[0].lower()]
    assert total - res["total"] == len(non_matching)


def test_search_name_case_insensitive(client, users):
    res = client.get("/users", params={"search": "ali"}).json()
    assert {u["full_name"] for u in res["data"]} == {"Ali Hassan", "Omar Khalil", "Noor ALI"}


def test_search_is_literal(client, users):
    res = client.get("/users", params={"search": " +964 "}).json()
    assert [u["full_name"] for u in res["data"]] == ["Mustafa"]


def test_email_lookup_failure_does_not_fail_listing(client, users, monkeypatch):
    def broken(user_ids):
        raise PyMongoError("identity store down")

    monkeypatch.setattr(main, "list_identity_emails", broken)
    res = client.get("/users")
    assert res.status_code == 200
    assert all(u["email"] == "" for u in res.json()["data"])


def test_block_and_unblock(client, mock_db, users):
    uid = users["Sara Ahmed"]
    res = client.patch("/users", json={"id": uid, "is_blocked": True})
    assert res.status_code == 200
    assert res.json() == {"id": uid, "full_name": "Sara Ahmed", "is_blocked": True}
    assert mock_db["profiles"].find_one({"_id": ObjectId(uid)})["is_blocked"] is True

    res = client.patch("/users", json={"id": uid, "is_blocked": False})
    assert res.json()["is_blocked"] is False


@pytest.mark.parametrize("payload", [
    {"is_blocked": True},
    {"id": "x", "is_blocked": "true"},
    {"id": "x", "is_blocked": 1},
    {"id": "x"},
])
def test_block_validation(client, users, payload):
    if payload.get("id") == "x":
        payload["id"] = users["Ali Hassan"]
    assert client.patch("/users", json=payload).status_code == 400


def test_block_missing_user(client, users):
    assert client.patch("/users", json={"id": str(ObjectId()), "is_blocked": True}).status_code == 404


def test_user_count(client, users):
    assert client.get("/users/count").json() == {"count": len(FIXTURES)}
