"""Tests for the FastAPI decode/encode service."""

from __future__ import annotations

import gzip
import io

import pytest
from fastapi.testclient import TestClient

from conftest import HELLO_WORLD, HELLO_WORLD_UNNAMED
from dovetail import __version__
from dovetail.config import ACCEPTED_EXTENSIONS
from dovetail.server.app import app


@pytest.fixture
def client():
    return TestClient(app)


def _upload(data: bytes, name: str = "hello_world.nbt"):
    return {"file": (name, io.BytesIO(data), "application/octet-stream")}


class TestDecodeEndpoint:
    def test_decode(self, client):
        response = client.post("/documents/decode", files=_upload(HELLO_WORLD))
        assert response.status_code == 200
        body = response.json()
        assert body["filename"] == "hello_world.nbt"
        assert "Bananrama" in body["snbt"]
        assert body["relaxed"] is False
        assert body["format"] == {
            "root_name": "hello world",
            "endian": "big",
            "compression": None,
            "bedrock_level": None,
        }

    def test_unnamed_root_is_null(self, client):
        response = client.post("/documents/decode", files=_upload(HELLO_WORLD_UNNAMED))
        assert response.status_code == 200
        assert response.json()["format"]["root_name"] is None

    def test_gzip_detected(self, client):
        response = client.post("/documents/decode", files=_upload(gzip.compress(HELLO_WORLD)))
        assert response.json()["format"]["compression"] == "gzip"

    def test_trailing_data_strict_is_409(self, client):
        response = client.post("/documents/decode", files=_upload(HELLO_WORLD + b"\x01\x02\x03"))
        assert response.status_code == 409
        assert "3 unread bytes remaining" in response.json()["detail"]

    def test_trailing_data_relaxed(self, client):
        response = client.post(
            "/documents/decode",
            files=_upload(HELLO_WORLD + b"\x01\x02\x03"),
            data={"strict": "false"},
        )
        assert response.status_code == 200
        assert response.json()["relaxed"] is True

    def test_corrupt_is_422(self, client):
        response = client.post(
            "/documents/decode",
            files=_upload(b"\xff\xff\xff\xff"),
            data={"strict": "false"},
        )
        assert response.status_code == 422
        assert "detail" in response.json()


class TestEncodeEndpoint:
    def test_encode_round_trip(self, client):
        decoded = client.post("/documents/decode", files=_upload(HELLO_WORLD)).json()
        response = client.post(
            "/documents/encode",
            json={"filename": "hello_world.nbt", "snbt": decoded["snbt"], "format": decoded["format"]},
        )
        assert response.status_code == 200
        assert response.content == HELLO_WORLD
        assert response.headers["content-disposition"] == 'attachment; filename="hello_world.nbt"'

    def test_encode_with_compression(self, client):
        response = client.post(
            "/documents/encode",
            json={
                "snbt": '{name: "Bananrama"}',
                "format": {"root_name": "hello world", "endian": "big", "compression": "gzip"},
            },
        )
        assert response.status_code == 200
        assert gzip.decompress(response.content) == HELLO_WORLD

    def test_malformed_snbt_is_422(self, client):
        response = client.post("/documents/encode", json={"snbt": "{name: "})
        assert response.status_code == 422

    def test_bedrock_level_out_of_range_is_422(self, client):
        response = client.post(
            "/documents/encode",
            json={"snbt": "{}", "format": {"bedrock_level": 4294967296}},
        )
        assert response.status_code == 422


class TestInfoEndpoints:
    def test_extensions(self, client):
        response = client.get("/extensions")
        assert response.json() == {"extensions": list(ACCEPTED_EXTENSIONS)}

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}
