"""
Integration tests for OpenAPI documentation.

Verifies OpenAPI schema is correctly generated for all endpoints.
Needs no database: the schema is built without the lifespan.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app


@pytest.fixture(autouse=True)
def clean_database() -> None:
    """Schema tests never touch the database."""


@pytest.fixture
def client() -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


@pytest.fixture
def schema(client: TestClient) -> dict:
    response = client.get("/openapi.json")
    assert response.status_code == 200
    return response.json()


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_title_and_version(self, schema: dict) -> None:
        assert schema["info"]["title"] == "leafledger"
        assert "student discounts" in schema["info"]["description"]
        assert schema["info"]["version"] == "0.1.0"

    @pytest.mark.parametrize(
        ("path", "method"),
        [
            ("/v1/ebooks", "get"),
            ("/v1/ebooks", "post"),
            ("/v1/ebooks/{ebook_id}", "get"),
            ("/v1/ebooks/{ebook_id}/submit", "post"),
            ("/v1/ebooks/{ebook_id}/purchase", "post"),
            ("/v1/ebooks/{ebook_id}/download", "get"),
            ("/v1/payments/webhook", "post"),
            ("/v1/register/student", "post"),
            ("/v1/location", "get"),
            ("/v1/admin/students/pending", "get"),
            ("/v1/admin/students/{student_id}/verify", "put"),
            ("/v1/admin/students/{student_id}/extend", "post"),
            ("/v1/admin/students/{student_id}/graduate", "post"),
            ("/v1/admin/students/{student_id}/convert", "post"),
            ("/v1/admin/students/run-conversion", "post"),
            ("/v1/admin/students/eligible-conversion", "get"),
            ("/v1/admin/students/stats", "get"),
            ("/v1/admin/scheduler", "get"),
            ("/v1/admin/ebooks/{ebook_id}/review", "put"),
            ("/v1/admin/ebooks/{ebook_id}/recompute", "post"),
            ("/v1/admin/settings", "get"),
            ("/v1/admin/settings/{key}", "put"),
        ],
    )
    def test_endpoint_documented(self, schema: dict, path: str, method: str) -> None:
        assert method in schema["paths"][path]

    def test_admin_endpoints_use_basic_auth(self, schema: dict) -> None:
        schemes = schema["components"]["securitySchemes"]
        assert schemes["HTTPBasic"]["scheme"] == "basic"
        verify = schema["paths"]["/v1/admin/students/{student_id}/verify"]["put"]
        assert {"HTTPBasic": []} in verify["security"]

    def test_public_endpoints_are_unauthenticated(self, schema: dict) -> None:
        assert "security" not in schema["paths"]["/v1/ebooks/{ebook_id}/purchase"]["post"]

    def test_registration_is_multipart(self, schema: dict) -> None:
        body = schema["paths"]["/v1/register/student"]["post"]["requestBody"]
        assert "multipart/form-data" in body["content"]

    def test_tags(self, schema: dict) -> None:
        tag_names = [t["name"] for t in schema.get("tags", [])]
        assert tag_names == ["ebooks", "students", "location", "admin"]

    def test_pricing_schema(self, schema: dict) -> None:
        props = schema["components"]["schemas"]["PricingResponse"]["properties"]
        assert set(props) == {
            "original_price",
            "discount",
            "platform_fee",
            "author_earnings",
            "final_price",
        }


class TestSwaggerUI:
    """Tests for Swagger UI availability."""

    def test_docs_endpoint_accessible(self, client: TestClient) -> None:
        response = client.get("/docs")
        assert response.status_code == 200
        assert "swagger" in response.text.lower()

    def test_redoc_endpoint_accessible(self, client: TestClient) -> None:
        response = client.get("/redoc")
        assert response.status_code == 200
        assert "redoc" in response.text.lower()
