"""Request id, rate limit, CORS and error body middleware."""

from httpx import AsyncClient


class TestRequestId:
    async def test_generated_when_missing(self, client: AsyncClient):
        response = await client.get("/api/v1/apps")
        assert len(response.headers["X-Request-Id"]) == 36

    async def test_echoed_when_given(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})
        assert response.headers["X-Request-Id"] == "req-123"


class TestRateLimit:
    async def test_no_headers_without_redis(self, client: AsyncClient):
        response = await client.get("/api/v1/apps")
        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers


class TestCors:
    async def test_preflight_for_storefront_origin(self, client: AsyncClient):
        response = await client.options(
            "/api/v1/cart",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    async def test_unknown_origin(self, client: AsyncClient):
        response = await client.get("/health", headers={"Origin": "http://evil.example"})
        assert "access-control-allow-origin" not in response.headers


class TestErrorBodies:
    async def test_validation_error(self, authed_client: AsyncClient):
        response = await authed_client.post("/api/v1/cart/add", json={"app_id": "not-a-number"})
        assert response.status_code == 422
        data = response.json()
        assert data["detail"] == "Validation error"
        assert data["errors"]

    async def test_unknown_route(self, client: AsyncClient):
        response = await client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found"}

    async def test_domain_error(self, client: AsyncClient):
        response = await client.get("/api/v1/apps/99999")
        assert response.status_code == 404
        assert set(response.json()) == {"detail"}
