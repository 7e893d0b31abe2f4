"""
Smart Mobility Backend - API Tests
===================================

What:  End-to-end tests of the HTTP surface through httpx's ASGITransport.
Why:   Status codes, camelCase field names and the error body shape are the
       contract with the mobile app; the service tests cannot see them.
How:   The `test_client` fixture talks to an app built by create_app() with
       its database session pointed at the in-memory test database.

What we test:
    1. Health and banner
    2. Auth endpoints, token strategy and session strategy
    3. Frequent route endpoints: 201 vs 200, 404 on a second delete,
       ownership, history and stats
    4. Profile endpoints
    5. Error mapping: 400, 401, 403, 404, 409, 422, 500
"""

import uuid
from unittest.mock import AsyncMock

import pytest

from smart_mobility.config import Settings
from smart_mobility.dependencies import get_route_service
from smart_mobility.exceptions import StorageError
from smart_mobility.services.route_service import RouteService

from factories import TEST_PASSWORD, place_json

HOME = place_json(10.0, 20.0, name="Home")
WORK = place_json(30.0, 40.0, name="Work")


async def save_route(client, headers, origin=HOME, destination=WORK, **extra):
    return await client.post(
        "/api/routes/frequent",
        json={"origin": origin, "destination": destination, **extra},
        headers=headers,
    )


# ══════════════════════════════════════════════════════════════════════════
# Health
# ══════════════════════════════════════════════════════════════════════════


class TestHealth:

    @pytest.mark.asyncio
    async def test_banner(self, test_client):
        response = await test_client.get("/")
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["message"] == "Smart Mobility API"
        assert body["environment"] == "development"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/health", "/api/health"])
    async def test_health(self, test_client, path):
        response = await test_client.get(path)
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["google_sign_in"] == "disabled"
        assert body["auth_strategy"] == "token"


# ══════════════════════════════════════════════════════════════════════════
# Auth (token strategy)
# ══════════════════════════════════════════════════════════════════════════


class TestAuthEndpoints:

    @pytest.mark.asyncio
    async def test_register_returns_token_and_user(self, registered):
        assert registered["token"]
        assert set(registered["user"]) == {"id", "name", "email"}
        assert registered["user"]["email"] == "ana@example.com"

    @pytest.mark.asyncio
    async def test_duplicate_registration_is_409(self, test_client, registered):
        response = await test_client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "ANA@example.com", "password": "x"},
        )
        body = response.json()

        assert response.status_code == 409
        assert body["success"] is False
        assert body["error"] == "conflict"
        assert body["request_id"]

    @pytest.mark.asyncio
    async def test_register_missing_fields_is_400(self, test_client):
        response = await test_client.post("/api/auth/register", json={"email": "a@b.c"})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_login(self, test_client, registered):
        response = await test_client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": TEST_PASSWORD}
        )
        body = response.json()

        assert response.status_code == 200
        assert body["message"] == "Login successful"
        assert body["user"]["id"] == registered["user"]["id"]

    @pytest.mark.asyncio
    async def test_login_wrong_password_is_401(self, test_client, registered):
        response = await test_client.post(
            "/api/auth/login", json={"email": "ana@example.com", "password": "nope"}
        )
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["message"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_verify_and_me(self, test_client, registered):
        verify = await test_client.get("/api/auth/verify", headers=registered["headers"])
        me = await test_client.get("/api/auth/me", headers=registered["headers"])

        assert verify.status_code == 200
        assert verify.json()["user"]["id"] == registered["user"]["id"]
        assert me.status_code == 200
        user = me.json()["user"]
        assert user["frequentRoutes"] == []
        assert user["activeRouteCount"] == 0
        assert user["totalTrips"] == 0
        assert "passwordHash" not in user

    @pytest.mark.asyncio
    async def test_protected_endpoint_without_token_is_401(self, test_client):
        response = await test_client.get("/api/auth/verify")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, test_client):
        response = await test_client.get(
            "/api/auth/verify", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_google_disabled_is_403(self, test_client):
        response = await test_client.post("/api/auth/google", json={"credential": "x"})
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_test_account_in_development(self, test_client):
        first = await test_client.post("/api/auth/test-account")
        second = await test_client.post("/api/auth/test-account")

        assert first.status_code == 200
        assert first.json()["credentials"]["email"] == "test@smartmobility.com"
        assert first.json()["user"]["id"] == second.json()["user"]["id"]

    @pytest.mark.asyncio
    async def test_logout(self, test_client):
        response = await test_client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged out"}


class TestAuthOutsideDevelopment:

    @pytest.fixture
    def app_settings(self):
        return Settings(
            environment="production",
            auth_strategy="token",
            jwt_secret="production-like-secret-0123456789abcdef",
            google_client_id="",
        )

    @pytest.mark.asyncio
    async def test_test_account_is_forbidden(self, test_client):
        response = await test_client.post("/api/auth/test-account")
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestSessionStrategy:
    """The same endpoints with the signed-cookie strategy."""

    @pytest.fixture
    def app_settings(self):
        return Settings(
            environment="development",
            auth_strategy="session",
            session_secret="session-test-secret",
            google_client_id="",
        )

    @pytest.mark.asyncio
    async def test_cookie_session_lifecycle(self, test_client):
        register = await test_client.post(
            "/api/auth/register",
            json={"name": "Ana", "email": "ana@example.com", "password": TEST_PASSWORD},
        )
        assert register.status_code == 201
        assert "smart_mobility_session" in register.headers.get("set-cookie", "")

        # No Authorization header: the cookie identifies the caller
        verify = await test_client.get("/api/auth/verify")
        assert verify.status_code == 200
        assert verify.json()["user"]["id"] == register.json()["user"]["id"]

        saved = await save_route(test_client, headers={})
        assert saved.status_code == 201

        await test_client.post("/api/auth/logout")
        after = await test_client.get("/api/auth/verify")
        assert after.status_code == 401

    @pytest.mark.asyncio
    async def test_bearer_header_is_ignored(self, test_client, app):
        response = await test_client.get(
            "/api/auth/verify", headers={"Authorization": "Bearer anything"}
        )
        assert response.status_code == 401
        assert app.state.auth_strategy.name == "session"


# ══════════════════════════════════════════════════════════════════════════
# Frequent routes
# ══════════════════════════════════════════════════════════════════════════


class TestFrequentRouteEndpoints:

    @pytest.mark.asyncio
    async def test_save_then_reuse(self, test_client, registered):
        headers = registered["headers"]

        created = await save_route(test_client, headers, routeInfo={"distanceKm": 12.5})
        reused = await save_route(
            test_client,
            headers,
            origin=place_json(10.003, 19.998),
            destination=place_json(30.001, 40.004),
        )

        assert created.status_code == 201
        assert reused.status_code == 200
        created_body, reused_body = created.json(), reused.json()
        assert created_body["isNew"] is True
        assert created_body["message"] == "New route saved"
        assert reused_body["isNew"] is False
        assert reused_body["route"]["id"] == created_body["route"]["id"]
        assert reused_body["route"]["timesUsed"] == 2
        assert reused_body["route"]["routeInfo"] == {"distanceKm": 12.5}

    @pytest.mark.asyncio
    async def test_route_fields_are_camel_case(self, test_client, registered):
        response = await save_route(test_client, registered["headers"])
        route = response.json()["route"]

        for key in (
            "id", "userId", "routeName", "originName", "originLatitude",
            "originLongitude", "destinationName", "destinationLatitude",
            "destinationLongitude", "timesUsed", "lastUsed", "isActive", "createdAt",
        ):
            assert key in route
        assert route["routeName"] == "Home → Work"
        assert route["userId"] == registered["user"]["id"]

    @pytest.mark.asyncio
    async def test_missing_coordinates_is_400(self, test_client, registered):
        response = await save_route(
            test_client, registered["headers"], destination={"name": "Work"}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_out_of_range_coordinates_is_400(self, test_client, registered):
        response = await save_route(
            test_client, registered["headers"], origin=place_json(91.0, 20.0)
        )
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "origin.coordinates.latitude"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("latitude", [True, "10.0", "north", [10.0]])
    async def test_non_numeric_latitude_is_400_and_nothing_saved(
        self, test_client, registered, latitude
    ):
        headers = registered["headers"]
        origin = {"name": "Home", "coordinates": {"latitude": latitude, "longitude": 20.0}}

        response = await save_route(test_client, headers, origin=origin)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["details"]["field"] == "origin.coordinates.latitude"
        listed = await test_client.get("/api/routes/frequent", headers=headers)
        assert listed.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_use_delete_and_history(self, test_client, registered):
        headers = registered["headers"]
        route_id = (await save_route(test_client, headers)).json()["route"]["id"]

        used = await test_client.post(f"/api/routes/frequent/{route_id}/use", headers=headers)
        assert used.status_code == 200
        assert used.json()["route"]["timesUsed"] == 2

        deleted = await test_client.delete(f"/api/routes/frequent/{route_id}", headers=headers)
        deleted_again = await test_client.delete(f"/api/routes/frequent/{route_id}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json()["message"] == "Route deleted"
        assert deleted_again.status_code == 404

        use_deleted = await test_client.post(
            f"/api/routes/frequent/{route_id}/use", headers=headers
        )
        assert use_deleted.status_code == 404

        listed = (await test_client.get("/api/routes/frequent", headers=headers)).json()
        assert listed["count"] == 0

        history = (await test_client.get("/api/routes/history", headers=headers)).json()
        assert [r["id"] for r in history["routes"]] == [route_id]
        assert history["routes"][0]["isActive"] is False
        assert history["pagination"] == {"page": 1, "limit": 20, "total": 1, "pages": 1}

    @pytest.mark.asyncio
    async def test_use_with_route_info_body(self, test_client, registered):
        headers = registered["headers"]
        route_id = (await save_route(test_client, headers)).json()["route"]["id"]

        used = await test_client.post(
            f"/api/routes/frequent/{route_id}/use",
            json={"routeInfo": {"mode": "train"}},
            headers=headers,
        )

        assert used.json()["route"]["routeInfo"] == {"mode": "train"}

    @pytest.mark.asyncio
    async def test_other_users_route_is_404(self, test_client, registered):
        route_id = (await save_route(test_client, registered["headers"])).json()["route"]["id"]
        other = await test_client.post(
            "/api/auth/register",
            json={"name": "Bo", "email": "bo@example.com", "password": TEST_PASSWORD},
        )
        other_headers = {"Authorization": f"Bearer {other.json()['token']}"}

        delete = await test_client.delete(f"/api/routes/frequent/{route_id}", headers=other_headers)
        use = await test_client.post(f"/api/routes/frequent/{route_id}/use", headers=other_headers)
        listed = await test_client.get("/api/routes/frequent", headers=other_headers)

        assert delete.status_code == 404
        assert use.status_code == 404
        assert listed.json()["count"] == 0

    @pytest.mark.asyncio
    async def test_unknown_route_is_404(self, test_client, registered):
        response = await test_client.delete(
            f"/api/routes/frequent/{uuid.uuid4()}", headers=registered["headers"]
        )
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_route_id_is_422(self, test_client, registered):
        response = await test_client.delete(
            "/api/routes/frequent/not-a-uuid", headers=registered["headers"]
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_sort_and_limit(self, test_client, registered):
        headers = registered["headers"]
        first = (await save_route(test_client, headers)).json()["route"]["id"]
        second = (
            await save_route(test_client, headers, origin=place_json(1.0, 1.0))
        ).json()["route"]["id"]
        await test_client.post(f"/api/routes/frequent/{first}/use", headers=headers)

        by_usage = await test_client.get(
            "/api/routes/frequent", params={"sortBy": "timesUsed"}, headers=headers
        )
        by_created = await test_client.get(
            "/api/routes/frequent", params={"sortBy": "createdAt", "limit": 1}, headers=headers
        )

        assert [r["id"] for r in by_usage.json()["routes"]] == [first, second]
        assert [r["id"] for r in by_created.json()["routes"]] == [second]

    @pytest.mark.asyncio
    async def test_invalid_pagination_is_400(self, test_client, registered):
        response = await test_client.get(
            "/api/routes/history", params={"page": 0}, headers=registered["headers"]
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_stats(self, test_client, registered):
        headers = registered["headers"]
        await save_route(test_client, headers)
        await save_route(test_client, headers)
        await save_route(test_client, headers, origin=place_json(1.0, 1.0))

        response = await test_client.get("/api/routes/stats", headers=headers)
        stats = response.json()["stats"]

        assert response.status_code == 200
        assert stats["totalRoutes"] == 2
        assert stats["totalUsage"] == 3
        assert stats["avgUsagePerRoute"] == 2
        assert [r["timesUsed"] for r in stats["topRoutes"]] == [2, 1]


# ══════════════════════════════════════════════════════════════════════════
# Profile
# ══════════════════════════════════════════════════════════════════════════


class TestUserEndpoints:

    @pytest.mark.asyncio
    async def test_profile_reflects_trips(self, test_client, registered):
        headers = registered["headers"]
        await save_route(test_client, headers)
        await save_route(test_client, headers)

        profile = (await test_client.get("/api/users/profile", headers=headers)).json()["user"]

        assert profile["totalTrips"] == 2
        assert profile["activeRouteCount"] == 1
        assert profile["frequentRoutes"][0]["timesUsed"] == 2

    @pytest.mark.asyncio
    async def test_update_profile(self, test_client, registered):
        response = await test_client.put(
            "/api/users/profile",
            json={"name": "Ana B", "preferences": {"units": "mi"}},
            headers=registered["headers"],
        )
        body = response.json()

        assert response.status_code == 200
        assert body["user"]["name"] == "Ana B"
        assert body["user"]["preferences"] == {"units": "mi"}

    @pytest.mark.asyncio
    async def test_blank_name_is_400(self, test_client, registered):
        response = await test_client.put(
            "/api/users/profile", json={"name": "  "}, headers=registered["headers"]
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_user_stats(self, test_client, registered):
        headers = registered["headers"]
        await save_route(test_client, headers)

        stats = (await test_client.get("/api/users/stats", headers=headers)).json()["stats"]

        assert stats["user"]["totalTrips"] == 1
        assert stats["routes"]["totalRoutes"] == 1


# ══════════════════════════════════════════════════════════════════════════
# Error mapping
# ══════════════════════════════════════════════════════════════════════════


class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_storage_error_is_generic_500(self, app, test_client, registered):
        service = AsyncMock(spec=RouteService)
        service.get_stats.side_effect = StorageError(
            context={"operation": "routes.usage_summary", "error_type": "OperationalError"}
        )
        app.dependency_overrides[get_route_service] = lambda: service

        response = await test_client.get("/api/routes/stats", headers=registered["headers"])
        body = response.json()

        assert response.status_code == 500
        assert body["error"] == "server_error"
        assert "OperationalError" not in response.text
        assert "details" not in body
