"""
MailTrack Backend: API Integration Tests
==========================================

What:  End-to-end requests through the FastAPI app: authentication,
       role gates, multipart letter uploads, the error body shape and the
       auxiliary routes (health, files, /api alias).
How:   HTTPX AsyncClient over ASGITransport. Seeding fixtures commit before
       the first request; each request gets its own session on the same
       in-memory database.
"""

import logging
from unittest.mock import patch

import pytest

from mailtrack.services.file_service import file_service

from conftest import TEST_PASSWORD, auth_headers


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_versioned_health_and_root(self, client):
        assert (await client.get("/api/v1/health")).status_code == 200
        root = (await client.get("/")).json()
        assert root["message"] == "MailTrack API"
        assert root["available_versions"] == ["v1"]

    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "trace-42"})
        assert response.headers["X-Request-ID"] == "trace-42"


class TestAuthApi:

    @pytest.mark.asyncio
    async def test_login_and_me(self, client, super_admin):
        login = await client.post("/api/v1/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
        assert login.status_code == 200
        tokens = login.json()
        assert tokens["success"] is True
        assert tokens["user"]["role"] == "super_admin"

        me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['accessToken']}"})
        assert me.status_code == 200
        assert me.json()["username"] == "admin"

    @pytest.mark.asyncio
    async def test_refresh(self, client, super_admin):
        login = (await client.post("/api/v1/auth/login", json={"username": "admin", "password": TEST_PASSWORD})).json()

        refreshed = await client.post("/api/v1/auth/refresh", json={"refreshToken": login["refreshToken"]})
        assert refreshed.status_code == 200

        wrong_type = await client.post("/api/v1/auth/refresh", json={"refreshToken": login["accessToken"]})
        assert wrong_type.status_code == 401
        assert wrong_type.json()["message"] == "Invalid token type"

    @pytest.mark.asyncio
    async def test_bad_credentials_error_body(self, client, super_admin):
        response = await client.post("/api/v1/auth/login", json={"username": "admin", "password": "Nope1234"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["message"] == "Invalid username or password"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_schema_violation_is_400(self, client):
        response = await client.post("/api/v1/auth/signup", json={"username": "x", "password": "short", "role": "boss"})
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert len(body["details"]) >= 2

    @pytest.mark.asyncio
    async def test_signup(self, client):
        response = await client.post(
            "/api/v1/auth/signup",
            json={"username": "clerk_one", "password": "Clerk123", "role": "rd_department"},
        )
        assert response.status_code == 201
        assert response.json()["user"]["username"] == "clerk_one"

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/incoming")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["error"] == "authentication_error"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get("/api/v1/incoming", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"


class TestAccessLog:

    @pytest.mark.asyncio
    async def test_names_the_authenticated_user(self, client, super_admin, caplog):
        caplog.set_level(logging.INFO, logger="mailtrack.access")
        await client.get("/api/v1/auth/me", headers=auth_headers(super_admin))

        record = next(r for r in caplog.records if r.name == "mailtrack.access")
        assert record.username == "admin"
        assert record.status == 200
        assert record.levelno == logging.INFO

    @pytest.mark.asyncio
    async def test_anonymous_failure_is_a_warning(self, client, caplog):
        caplog.set_level(logging.INFO, logger="mailtrack.access")
        await client.get("/api/v1/incoming")

        record = next(r for r in caplog.records if r.name == "mailtrack.access")
        assert record.username == "-"
        assert record.status == 401
        assert record.levelno == logging.WARNING

    @pytest.mark.asyncio
    async def test_health_not_logged(self, client, caplog):
        caplog.set_level(logging.INFO, logger="mailtrack.access")
        await client.get("/health")
        assert not [r for r in caplog.records if r.name == "mailtrack.access"]


class TestRoleGates:

    @pytest.mark.asyncio
    async def test_department_create_needs_super_admin(self, client, rd_user):
        response = await client.post(
            "/api/v1/departments/create",
            headers=auth_headers(rd_user),
            json={
                "name": "Legal Cell", "code": "LEG", "head": "Meera Iyer",
                "contact": "+1 555 0199", "username": "legal", "password": TEST_PASSWORD,
            },
        )
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    @pytest.mark.asyncio
    async def test_super_admin_manages_departments(self, client, super_admin):
        headers = auth_headers(super_admin)
        created = await client.post(
            "/api/v1/departments/create",
            headers=headers,
            json={
                "name": "Legal Cell", "code": "LEG", "head": "Meera Iyer",
                "contact": "+1 555 0199", "username": "legal", "password": TEST_PASSWORD,
            },
        )
        assert created.status_code == 201
        department_id = created.json()["department"]["id"]

        listing = (await client.get("/api/v1/departments", headers=headers)).json()
        assert listing["total"] == 1

        duplicate = await client.post(
            "/api/v1/departments/create",
            headers=headers,
            json={
                "name": "Legal Two", "code": "LEG", "head": "Someone Else",
                "contact": "+1 555 0100", "username": "legal_two", "password": TEST_PASSWORD,
            },
        )
        assert duplicate.status_code == 400
        assert duplicate.json()["message"] == "Department code already exists. Please use a unique code."

        deleted = await client.delete(f"/api/v1/departments/{department_id}", headers=headers)
        assert deleted.json()["message"] == "Department deleted successfully"
        missing = await client.get(f"/api/v1/departments/{department_id}", headers=headers)
        assert missing.status_code == 404


class TestLetterApi:

    @pytest.mark.asyncio
    async def test_incoming_multipart_with_image(self, client, super_admin, records_dept, jpeg_bytes):
        with patch.object(file_service, "validate_mime_type", return_value="image/jpeg"):
            response = await client.post(
                "/api/v1/incoming",
                headers=auth_headers(super_admin),
                data={
                    "qrCode": "IN-API-1",
                    "from": "High Court",
                    "to": str(records_dept.id),
                    "priority": "high",
                    "subject": "Summons",
                },
                files={"image": ("scan.jpg", jpeg_bytes, "image/jpeg")},
            )

        assert response.status_code == 201
        letter = response.json()["incoming"]
        assert letter["from"] == "High Court"
        assert letter["to"] == str(records_dept.id)
        assert letter["status"] == "RECEIVED"
        assert letter["department"]["code"] == "REC"

        image = await client.get(letter["image"])
        assert image.status_code == 200
        assert image.content == jpeg_bytes

    @pytest.mark.asyncio
    async def test_incoming_missing_fields(self, client, super_admin):
        response = await client.post(
            "/api/v1/incoming", headers=auth_headers(super_admin), data={"qrCode": "IN-API-2"}
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert {tuple(d["loc"]) for d in body["details"]} >= {("from",), ("to",), ("priority",)}

    @pytest.mark.asyncio
    async def test_department_sees_and_scans_own_letter(self, client, super_admin, records_dept, finance_dept):
        await client.post(
            "/api/v1/incoming",
            headers=auth_headers(super_admin),
            data={"qrCode": "IN-API-3", "from": "Treasury", "to": str(records_dept.id), "priority": "low"},
        )

        records_headers = auth_headers(records_dept.user)
        assert (await client.get("/api/v1/incoming", headers=records_headers)).json()["total"] == 1
        assert (await client.get("/api/v1/incoming", headers=auth_headers(finance_dept.user))).json()["total"] == 0

        unread = await client.get("/api/v1/notifications/unread-count", headers=records_headers)
        assert unread.json()["data"]["unreadCount"] == 1

        first = await client.patch(
            "/api/v1/incoming/qr/IN-API-3/status", headers=records_headers, json={"status": "COLLECTED"}
        )
        assert first.json()["message"] == "Status updated to COLLECTED"
        assert first.json()["statusChanged"] is True
        assert first.json()["updated"]["collectedDate"] is not None

        again = await client.patch(
            "/api/v1/incoming/qr/IN-API-3/status", headers=records_headers, json={"status": "COLLECTED"}
        )
        assert again.json()["message"] == "Status is already COLLECTED"
        assert again.json()["statusChanged"] is False

    @pytest.mark.asyncio
    async def test_outgoing_envelope_and_dispatch(self, client, super_admin, records_dept, courier):
        headers = auth_headers(super_admin)
        created = await client.post(
            "/api/v1/outgoing",
            headers=headers,
            data={
                "qrCode": "OUT-API-1",
                "from": str(records_dept.id),
                "to": "State Audit Office",
                "priority": "medium",
                "courierServiceId": str(courier.id),
            },
        )
        assert created.status_code == 201
        body = created.json()
        assert body["message"] == "Outgoing letter created successfully"
        assert body["data"]["courier"]["code"] == "BD"
        letter_id = body["data"]["id"]

        dispatched = await client.patch(
            f"/api/v1/outgoing/{letter_id}/status", headers=headers, json={"status": "DISPATCHED"}
        )
        assert dispatched.json()["data"]["dispatchedDate"] is not None

        stats = (await client.get("/api/v1/outgoing/stats/overview", headers=headers)).json()
        assert stats["data"]["dispatched"] == 1

        for path in ("/api/v1/outgoing", "/api/v1/outgoing/courier/tracking"):
            listing = (await client.get(path, headers=headers)).json()["data"]
            assert "pagination" not in listing
            assert listing["total"] == 1
            assert listing["hasMore"] is False
            assert listing["currentPage"] == 1
            assert listing["totalPages"] == 1
            assert listing["records"][0]["id"] == letter_id

        detached = await client.put(
            f"/api/v1/outgoing/{letter_id}", headers=headers, data={"courierServiceId": "", "subject": "Returns"}
        )
        assert detached.status_code == 200
        assert detached.json()["data"]["courierServiceId"] is None
        assert detached.json()["data"]["subject"] == "Returns"

        duplicate = await client.post(
            "/api/v1/outgoing",
            headers=headers,
            data={"qrCode": "OUT-API-1", "from": str(records_dept.id), "to": "Elsewhere", "priority": "low"},
        )
        assert duplicate.status_code == 400


class TestTrackingApi:

    @pytest.mark.asyncio
    async def test_label_update_through_legacy_prefix(self, client, super_admin, records_dept):
        headers = auth_headers(super_admin)
        created = await client.post(
            "/api/incoming",
            headers=headers,
            data={"qrCode": "IN-TRK-1", "from": "Treasury", "to": str(records_dept.id), "priority": "high"},
        )
        letter_id = created.json()["incoming"]["id"]

        updated = await client.put(
            "/api/tracking/status",
            headers=headers,
            json={"recordId": letter_id, "recordType": "incoming", "newStatus": "In Progress"},
        )
        assert updated.status_code == 200
        assert updated.json()["message"] == "Status updated to In Progress"

        listing = (await client.get("/api/v1/tracking", headers=headers, params={"type": "incoming"})).json()
        assert [r["status"] for r in listing["records"]] == ["In Progress"]

    @pytest.mark.asyncio
    async def test_unknown_label_is_400(self, client, super_admin):
        response = await client.get("/api/v1/tracking", headers=auth_headers(super_admin), params={"status": "Lost"})
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "status"


class TestFilesApi:

    @pytest.mark.asyncio
    async def test_missing_file(self, client):
        response = await client.get("/api/v1/files/2024/01/01/nothing.jpg")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
