"""Integration tests for instance API endpoints using FastAPI TestClient."""

import os
import uuid
from unittest.mock import patch

import pytest
from PIL import Image

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from donk.utils.image_utils import decode_image


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def client(data_dir, source_path):
    """FastAPI test client with a temporary data directory."""
    with patch.dict(os.environ, {
        "DONK_DATA_DIR": str(data_dir),
        "DONK_DEFAULT_SOURCE_IMAGE": str(source_path),
    }):
        # Reset the global config so it picks up our env vars
        import donk.config as config_module
        config_module._config = None

        from donk.api.main import app
        with TestClient(app) as c:
            yield c

        config_module._config = None


@pytest.fixture
def created(client, source_path):
    response = client.post("/v1/instances", json={
        "source_image": str(source_path),
        "step_count_x": 4,
        "step_count_y": 4,
    })
    assert response.status_code == 201
    return response.json()


class TestHealth:
    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_config(self, client, data_dir):
        data = client.get("/api/config").json()
        assert data["data_dir"] == str(data_dir)
        assert data["default_step_count_x"] == 6


class TestCreateInstance:
    def test_create(self, created):
        assert created["source_image_width"] == 1200
        assert created["step_size_x"] == 300
        assert created["step_size_y"] == 200
        assert created["tile_count"] == 16
        assert created["has_remainder"] is False
        assert created["composite_image_url"] == f"/v1/instances/{created['id']}/composite"

    def test_create_with_defaults(self, client):
        response = client.post("/v1/instances", json={})
        assert response.status_code == 201
        data = response.json()
        assert data["step_count_x"] == 6
        assert data["step_size_y"] == 133
        assert data["has_remainder"] is True

    def test_unreadable_source(self, client, tmp_path):
        response = client.post("/v1/instances", json={"source_image": str(tmp_path / "missing.jpg")})
        assert response.status_code == 422

    def test_oversized_source(self, client, source_path, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
        response = client.post("/v1/instances", json={"source_image": str(source_path)})
        assert response.status_code == 422

    def test_zero_steps_rejected(self, client, source_path):
        response = client.post("/v1/instances", json={"source_image": str(source_path), "step_count_x": 0})
        assert response.status_code == 422

    def test_too_many_steps(self, client, source_path):
        response = client.post("/v1/instances", json={"source_image": str(source_path), "step_count_x": 5000})
        assert response.status_code == 400


class TestGetInstance:
    def test_get(self, client, created):
        response = client.get(f"/v1/instances/{created['id']}")
        assert response.status_code == 200
        assert response.json() == created

    def test_not_found(self, client):
        response = client.get(f"/v1/instances/{uuid.uuid4()}")
        assert response.status_code == 404

    def test_malformed_id(self, client):
        response = client.get("/v1/instances/not-a-uuid")
        assert response.status_code == 404

    def test_list(self, client, created):
        response = client.get("/v1/instances")
        assert response.status_code == 200
        assert response.json() == [created["id"]]


class TestTiles:
    def test_grid(self, client, created):
        response = client.get(f"/v1/instances/{created['id']}/tiles")
        assert response.status_code == 200
        data = response.json()
        assert data["cols"] == 4
        assert data["rows"] == 4
        assert len(data["tiles"]) == 16
        assert data["tiles"][5] == {"x": 1, "y": 1, "x_offset": 300, "y_offset": 200, "has_override": False}


class TestComposite:
    def test_composite_built_on_create(self, client, created):
        response = client.get(created["composite_image_url"])
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert decode_image(response.content).size == (1200, 800)

    def test_rebuild(self, client, created):
        before = client.get(created["composite_image_url"]).content
        response = client.post(f"/v1/instances/{created['id']}/composite/rebuild")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get(created["composite_image_url"]).content == before

    def test_rebuild_missing_source(self, client, created, source_path):
        source_path.unlink()
        response = client.post(f"/v1/instances/{created['id']}/composite/rebuild")
        assert response.status_code == 422
        assert client.get(created["composite_image_url"]).status_code == 200

    def test_composite_not_found(self, client):
        response = client.get(f"/v1/instances/{uuid.uuid4()}/composite")
        assert response.status_code == 404
