import os
import tempfile

# Must be set before main is imported; main mounts the uploads directory at import time
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="recharge-admin-uploads-"))

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main


@pytest.fixture
def mock_db(monkeypatch):
    mock = mongomock.MongoClient()["recharge_store_test"]
    monkeypatch.setattr(database, "db", mock)
    monkeypatch.setattr(main, "db", mock)
    return mock


@pytest.fixture
def client(mock_db):
    main.app.dependency_overrides[main.get_current_admin] = lambda: {"email": "admin@example.com", "role": "admin"}
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture
def anon_client(mock_db):
    with TestClient(main.app) as c:
        yield c
