"""
Tests for the upload relay REST API.

Coverage:
- Health check endpoint
- Bearer token enforcement
- Upload forwarding and error mapping
- Request size cap
"""

import io

import pytest

from api.server import create_app
from fakes import FakeHTTP, FakeResponse
from pinning import ContentStoreClient

TOKEN = "relay-token"


def pinata(http):
    return ContentStoreClient.for_pinata("key", "secret", session=http)


@pytest.fixture
def http():
    return FakeHTTP(FakeResponse(200, {"IpfsHash": "QmRelayed"}))


@pytest.fixture
def client(http):
    """Flask test client."""
    app = create_app(pinata(http), relay_token=TOKEN)
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def upload(client, data=b"%PDF-1.7 scan", token=TOKEN, filename="scan.pdf"):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return client.post(
        "/api/upload",
        data={"file": (io.BytesIO(data), filename, "application/pdf")},
        headers=headers,
        content_type="multipart/form-data",
    )


class TestHealthEndpoint:
    def test_health_check_json_structure(self, client):
        response = client.get("/api/health")
        data = response.get_json()

        assert response.status_code == 200
        assert data["status"] == "healthy"
        assert "version" in data
        assert "timestamp" in data


class TestUpload:
    def test_upload_returns_cid(self, client, http):
        response = upload(client)

        assert response.status_code == 200
        assert response.get_json() == {"cid": "QmRelayed"}
        name, payload, mime = http.posts[0]["files"]["file"]
        assert (name, payload, mime) == ("scan.pdf", b"%PDF-1.7 scan", "application/pdf")
        assert http.posts[0]["headers"]["pinata_api_key"] == "key"

    def test_missing_token_is_unauthorized(self, client, http):
        response = upload(client, token=None)
        assert response.status_code == 401
        assert http.posts == []

    def test_wrong_token_is_unauthorized(self, client, http):
        assert upload(client, token="guess").status_code == 401
        assert http.posts == []

    def test_open_relay_without_token(self, http):
        app = create_app(pinata(http), relay_token="")
        with app.test_client() as c:
            assert upload(c, token=None).status_code == 200

    def test_no_file_field(self, client):
        response = client.post(
            "/api/upload", data={}, headers={"Authorization": f"Bearer {TOKEN}"}
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "No file provided"

    def test_empty_file(self, client, http):
        response = upload(client, data=b"")
        assert response.status_code == 400
        assert response.get_json()["kind"] == "invalid-input"
        assert http.posts == []

    def test_upstream_failure_is_bad_gateway(self, http, client):
        http.response = FakeResponse(401, text="invalid key")
        response = upload(client)
        data = response.get_json()

        assert response.status_code == 502
        assert data["kind"] == "upload-failure"
        assert data["upstream_status"] == 401

    def test_too_large(self, http):
        app = create_app(pinata(http), relay_token="", max_upload_bytes=16)
        with app.test_client() as c:
            response = upload(c, data=b"x" * 1024, token=None)
        assert response.status_code == 413
        assert http.posts == []

    def test_unconfigured_relay(self, monkeypatch):
        monkeypatch.delenv("PINATA_API_KEY", raising=False)
        monkeypatch.delenv("PINATA_SECRET_API_KEY", raising=False)
        app = create_app(relay_token="")
        with app.test_client() as c:
            response = upload(c, token=None)
        assert response.status_code == 500
        assert response.get_json()["kind"] == "configuration"
