"""
Integration tests for API endpoints.
"""

import pytest

from labelscan.errors import EngineUnavailable

pytestmark = pytest.mark.asyncio


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    async def test_health_check(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["engine_state"] == "uninitialized"
        assert data["products"] == 3

    async def test_request_id_header(self, client):
        response = await client.get("/api/v1/products", headers={"X-Request-ID": "abc123"})
        assert response.headers["X-Request-ID"] == "abc123"


class TestProductEndpoints:
    async def test_list_products_in_order(self, client):
        response = await client.get("/api/v1/products")

        assert response.status_code == 200
        ids = [p["id"] for p in response.json()]
        assert ids == ["sian_maksa", "sian_etupaarusto", "silava"]

    async def test_get_product(self, client):
        response = await client.get("/api/v1/products/silava")
        assert response.status_code == 200
        assert response.json()["keywords"] == ["SILAVA"]

    async def test_get_missing_product(self, client):
        response = await client.get("/api/v1/products/ghost")

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert "timestamp" in data


class TestMatchEndpoints:
    async def test_keyword_match(self, client):
        response = await client.post("/api/v1/match", json={"text": "Sian maksa\n1,25 kg"})

        assert response.status_code == 200
        data = response.json()
        assert data["product_id"] == "sian_maksa"
        assert data["product_name"] == "Sian maksa"
        assert data["method"] == "keyword"
        assert data["kg"] == pytest.approx(1.25)

    async def test_no_match(self, client):
        response = await client.post("/api/v1/match", json={"text": "some F0O label"})

        data = response.json()
        assert data["product_id"] == ""
        assert data["method"] == "none"
        assert data["kg"] is None

    async def test_missing_text(self, client):
        response = await client.post("/api/v1/match", json={})

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestOCREndpoints:
    async def test_recognize_upload(self, client, sample_label_png, api_backend):
        response = await client.post(
            "/api/v1/ocr",
            files={"image": ("label.png", sample_label_png, "image/png")},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["text"] == "SIAN MAKSA\n1,25 KG"
        assert data["usage"] == {"prompt_tokens": 1}
        assert api_backend.recognize_calls == 1

    async def test_engine_initialized_once(self, client, sample_label_png, api_backend):
        for _ in range(3):
            await client.post(
                "/api/v1/ocr",
                files={"image": ("label.png", sample_label_png, "image/png")},
            )
        assert api_backend.init_calls == 1

        health = await client.get("/health")
        assert health.json()["engine_state"] == "ready"

    async def test_rejects_non_image(self, client):
        response = await client.post(
            "/api/v1/ocr",
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400

    async def test_rejects_large_image(self, client, services, sample_label_png):
        services.settings.max_ocr_upload_bytes = 100

        response = await client.post(
            "/api/v1/ocr",
            files={"image": ("label.png", sample_label_png, "image/png")},
        )

        assert response.status_code == 413
        assert response.json()["code"] == "PAYLOAD_TOO_LARGE"

    async def test_undecodable_image(self, client):
        response = await client.post(
            "/api/v1/ocr",
            files={"image": ("label.png", b"\x89PNG broken", "image/png")},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "ENCODE_FAILED"

    async def test_missing_field(self, client):
        response = await client.post("/api/v1/ocr", files={"other": ("x.png", b"x", "image/png")})
        assert response.status_code == 422

    async def test_engine_unavailable(self, client, sample_label_png, api_backend):
        api_backend.init_failures = 1

        response = await client.post(
            "/api/v1/ocr",
            files={"image": ("label.png", sample_label_png, "image/png")},
        )

        assert response.status_code == 503
        data = response.json()
        assert data["code"] == "ENGINE_UNAVAILABLE"
        assert data["error"] == EngineUnavailable().message
