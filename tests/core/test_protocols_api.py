"""Tests for /api/v1/protocols endpoints."""

from httpx import AsyncClient

from codema.core.auth.models import User


class TestProtocolEndpoints:
    """Issuing and inspecting numbers over HTTP."""

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/protocols/types")
        assert response.status_code == 401

    async def test_list_types(self, client: AsyncClient, citizen: User, auth_headers):
        response = await client.get("/api/v1/protocols/types", headers=await auth_headers(citizen))
        assert response.status_code == 200
        codes = {item["code"] for item in response.json()["data"]}
        assert {"PROC", "RES", "OUV", "REU", "ATA", "CONV", "DOC", "PROJ", "REL", "NOT"} == codes

    async def test_generate_as_secretary(self, client: AsyncClient, secretary: User, auth_headers):
        headers = await auth_headers(secretary)
        first = await client.post(
            "/api/v1/protocols/generate", json={"protocol_type": "PROC"}, headers=headers
        )
        second = await client.post(
            "/api/v1/protocols/generate", json={"protocol_type": "PROC"}, headers=headers
        )

        assert first.status_code == 201
        assert first.json()["data"]["sequence"] == 1
        assert second.json()["data"]["sequence"] == 2
        assert second.json()["data"]["degraded"] is False

    async def test_generate_forbidden_for_citizen(
        self, client: AsyncClient, citizen: User, auth_headers
    ):
        response = await client.post(
            "/api/v1/protocols/generate",
            json={"protocol_type": "PROC"},
            headers=await auth_headers(citizen),
        )
        assert response.status_code == 403

    async def test_generate_unknown_type(self, client: AsyncClient, admin: User, auth_headers):
        response = await client.post(
            "/api/v1/protocols/generate",
            json={"protocol_type": "XYZ"},
            headers=await auth_headers(admin),
        )
        assert response.status_code == 422

    async def test_generate_many(self, client: AsyncClient, admin: User, auth_headers):
        response = await client.post(
            "/api/v1/protocols/generate-many",
            json={"protocol_type": "RES", "quantity": 3},
            headers=await auth_headers(admin),
        )
        assert response.status_code == 201
        assert [item["sequence"] for item in response.json()["data"]] == [1, 2, 3]

    async def test_validate_and_parse(self, client: AsyncClient, citizen: User, auth_headers):
        headers = await auth_headers(citizen)

        valid = await client.get(
            "/api/v1/protocols/validate", params={"number": "XYZ-001/2025"}, headers=headers
        )
        assert valid.json()["data"] == {
            "number": "XYZ-001/2025",
            "valid_format": True,
            "recognized": False,
        }

        parsed = await client.get(
            "/api/v1/protocols/parse", params={"number": "RES-042/2025"}, headers=headers
        )
        data = parsed.json()["data"]
        assert data["protocol_type"] == "RES"
        assert data["sequence"] == 42
        assert data["year"] == 2025

    async def test_reset_super_admin_only(
        self, client: AsyncClient, admin: User, super_admin: User, auth_headers
    ):
        admin_headers = await auth_headers(admin)
        await client.post(
            "/api/v1/protocols/generate", json={"protocol_type": "DOC"}, headers=admin_headers
        )
        body = {"protocol_type": "DOC", "reason": "Renumeração autorizada"}

        forbidden = await client.post("/api/v1/protocols/reset", json=body, headers=admin_headers)
        assert forbidden.status_code == 403

        response = await client.post(
            "/api/v1/protocols/reset", json=body, headers=await auth_headers(super_admin)
        )
        assert response.status_code == 200
        assert response.json()["data"]["last_sequence"] == 0
        assert response.json()["data"]["total_issued"] == 1

    async def test_reset_missing_counter(
        self, client: AsyncClient, super_admin: User, auth_headers
    ):
        response = await client.post(
            "/api/v1/protocols/reset",
            json={"protocol_type": "PROJ", "year": 2019, "reason": "Correção manual"},
            headers=await auth_headers(super_admin),
        )
        assert response.status_code == 404
