from pathlib import Path

from fastapi.testclient import TestClient

from charwizard.main import app
from tests.support.db_runtime import prepare_sqlite_db


def test_health_on_migrated_database(tmp_path: Path) -> None:
    prepare_sqlite_db(tmp_path, "health.db")
    client = TestClient(app)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}

    usage = client.get("/api/v1/chat/usage", headers={"X-User-Id": "h-1"})
    assert usage.status_code == 200
    assert usage.json()["usage"]["used"] == 0
