from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.api.deps import Settings, get_settings
from src.api.main import app

RULES_PATH = Path(__file__).parent.parent.parent.parent / "rules.yaml"
API_TOKEN = "test-token"


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", rules_path=RULES_PATH, api_token=API_TOKEN)


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    # Entering the client runs the lifespan: migrations + blob container
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {API_TOKEN}"})
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def article(client):
    resp = client.post("/api/articles", json={"title": "Fixture article", "content": "Body"})
    assert resp.status_code == 201
    return resp.json()
