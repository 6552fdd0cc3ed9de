"""
Tests for the /message endpoints.

Tests cover:
- Create, read, update, soft delete against a real SQLite database
- Partial update semantics
- Classified error responses (404 / 500, plain-text error code)
- Malformed id / body rejected with 400
- Unhandled errors recovered into 500
- Health, readiness and metrics endpoints
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.errors import ERROR_NAMESPACE
from app.main import app, get_message_repository, get_message_service
from app.models import Message, MessageStatus
from app.storage import SessionLocal


NOT_FOUND_CODE = f"error.{ERROR_NAMESPACE}.message-not-found"
UNEXPECTED_CODE = f"error.{ERROR_NAMESPACE}.unexpected-error"


def create_message(client, text: str) -> dict:
    """Helper to create a message via the API."""
    response = client.post("/message", json={"text": text})
    assert response.status_code == 201
    return response.json()


class FailingRepository:
    """Repository whose every call fails with a connectivity error."""

    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    save = update = get = _fail


class BrokenService:
    """Service raising an error nobody classifies."""

    def get_message_by_id(self, ctx, message_id):
        raise ZeroDivisionError("division by zero")


class TestCreateMessage:

    def test_create_returns_201(self, client):
        response = client.post("/message", json={"text": "X"})

        assert response.status_code == 201
        assert response.headers["content-type"].startswith("application/json")
        data = response.json()
        assert isinstance(data["id"], int)
        assert data["text"] == "X"
        assert data["status"] == "CREATED"

    def test_create_ignores_client_id_and_status(self, client):
        response = client.post("/message", json={"id": 500, "text": "X", "status": "DELETED"})

        assert response.status_code == 201
        data = response.json()
        assert data["id"] != 500
        assert data["status"] == "CREATED"

    def test_ids_are_assigned_by_store(self, client):
        first = create_message(client, "one")
        second = create_message(client, "two")

        assert second["id"] > first["id"]

    def test_timestamps_are_not_exposed(self, client):
        data = create_message(client, "X")

        assert set(data) == {"id", "text", "status"}

    def test_create_persists_row(self, client):
        data = create_message(client, "persisted")

        with SessionLocal() as db:
            row = db.get(Message, data["id"])
            assert row.text == "persisted"
            assert row.status == MessageStatus.CREATED
            assert row.created_at is not None


class TestGetMessage:

    def test_get_existing(self, client):
        created = create_message(client, "hello")

        response = client.get(f"/message/{created['id']}")

        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing_is_404(self, client):
        response = client.get("/message/999")

        assert response.status_code == 404
        assert response.text == NOT_FOUND_CODE

    def test_get_invalid_id_is_400(self, client):
        response = client.get("/message/abc")

        assert response.status_code == 400
        assert response.text

    def test_store_failure_is_500(self, client):
        app.dependency_overrides[get_message_repository] = FailingRepository

        response = client.get("/message/1")

        assert response.status_code == 500
        assert response.text == UNEXPECTED_CODE
        assert "connection refused" not in response.text


class TestUpdateMessage:

    def test_update_text(self, client):
        created = create_message(client, "A")

        response = client.put(f"/message/{created['id']}", json={"text": "B"})

        assert response.status_code == 200
        assert response.json() == {"id": created["id"], "text": "B", "status": "CREATED"}
        assert client.get(f"/message/{created['id']}").json()["text"] == "B"

    @pytest.mark.parametrize("body", [{"text": ""}, {}])
    def test_update_without_text_is_noop(self, client, body):
        created = create_message(client, "A")

        response = client.put(f"/message/{created['id']}", json=body)

        assert response.status_code == 200
        assert response.json() == {"id": created["id"], "text": "A", "status": "CREATED"}

    def test_update_refreshes_timestamp(self, client):
        created = create_message(client, "A")
        with SessionLocal() as db:
            before = db.get(Message, created["id"]).updated_at

        client.put(f"/message/{created['id']}", json={"text": "B"})

        with SessionLocal() as db:
            after = db.get(Message, created["id"]).updated_at
        assert after >= before

    def test_update_missing_is_404(self, client):
        response = client.put("/message/999", json={"text": "B"})

        assert response.status_code == 404
        assert response.text == NOT_FOUND_CODE

    def test_update_invalid_id_is_400(self, client):
        response = client.put("/message/abc", json={"text": "B"})

        assert response.status_code == 400

    def test_update_invalid_body_is_400(self, client):
        created = create_message(client, "A")

        response = client.put(f"/message/{created['id']}", json="INVALID_DATA")

        assert response.status_code == 400
        assert response.text

    def test_update_store_failure_is_500(self, client):
        app.dependency_overrides[get_message_repository] = FailingRepository

        response = client.put("/message/1", json={"text": "B"})

        assert response.status_code == 500
        assert response.text == UNEXPECTED_CODE


class TestDeleteMessage:

    def test_delete_is_soft(self, client):
        created = create_message(client, "A")

        response = client.delete(f"/message/{created['id']}")

        assert response.status_code == 200
        assert response.content == b""
        fetched = client.get(f"/message/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json() == {"id": created["id"], "text": "A", "status": "DELETED"}

    def test_delete_missing_is_404(self, client):
        response = client.delete("/message/999")

        assert response.status_code == 404
        assert response.text == NOT_FOUND_CODE

    def test_delete_invalid_id_is_400(self, client):
        response = client.delete("/message/abc")

        assert response.status_code == 400


MALFORMED_IDS = [
    "99999999999999999999",
    "9223372036854775808",
    "-9223372036854775809",
    "1.0",
    "1e3",
    " 1",
]


class TestMalformedId:

    @pytest.mark.parametrize("raw_id", MALFORMED_IDS)
    def test_get_rejects_id(self, client, raw_id):
        create_message(client, "A")

        response = client.get(f"/message/{raw_id}")

        assert response.status_code == 400
        assert response.text != NOT_FOUND_CODE

    @pytest.mark.parametrize("raw_id", MALFORMED_IDS)
    def test_put_rejects_id(self, client, raw_id):
        create_message(client, "A")

        response = client.put(f"/message/{raw_id}", json={"text": "B"})

        assert response.status_code == 400
        assert client.get("/message/1").json()["text"] == "A"

    @pytest.mark.parametrize("raw_id", MALFORMED_IDS)
    def test_delete_rejects_id(self, client, raw_id):
        create_message(client, "A")

        response = client.delete(f"/message/{raw_id}")

        assert response.status_code == 400
        assert client.get("/message/1").json()["status"] == "CREATED"

    def test_id_never_reaches_service(self, client):
        service = MagicMock()
        app.dependency_overrides[get_message_service] = lambda: service

        response = client.get("/message/99999999999999999999")

        assert response.status_code == 400
        service.get_message_by_id.assert_not_called()

    def test_out_of_range_message(self, client):
        response = client.get("/message/9223372036854775808")

        assert "64-bit" in response.text

    @pytest.mark.parametrize("raw_id,expected", [
        ("9223372036854775807", 9223372036854775807),
        ("+7", 7),
        ("-1", -1),
    ])
    def test_boundary_ids_reach_service(self, client, raw_id, expected):
        service = MagicMock()
        service.get_message_by_id.return_value = Message(id=expected, text="A", status=MessageStatus.CREATED)
        app.dependency_overrides[get_message_service] = lambda: service

        response = client.get(f"/message/{raw_id}")

        assert response.status_code == 200
        assert service.get_message_by_id.call_args.args[1] == expected


class TestMalformedBody:

    def test_invalid_json_is_400(self, client):
        response = client.post(
            "/message",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.text

    def test_non_object_body_is_400(self, client):
        response = client.post("/message", json="INVALID_DATA")

        assert response.status_code == 400

    def test_non_string_text_is_400(self, client):
        response = client.post("/message", json={"text": ["a", "b"]})

        assert response.status_code == 400

    def test_create_store_failure_is_500(self, client):
        app.dependency_overrides[get_message_repository] = FailingRepository

        response = client.post("/message", json={"text": "X"})

        assert response.status_code == 500
        assert response.text == UNEXPECTED_CODE


class TestRecovery:

    def test_unhandled_error_becomes_500(self, client):
        app.dependency_overrides[get_message_service] = BrokenService

        with TestClient(app, raise_server_exceptions=False) as recovering_client:
            response = recovering_client.get("/message/1")

        assert response.status_code == 500
        assert response.text == UNEXPECTED_CODE
        assert "division" not in response.text


class TestOperationalEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.content == b""

    def test_readiness(self, client):
        response = client.get("/readiness")

        assert response.status_code == 200
        assert response.content == b""

    def test_metrics_count_message_operations(self, client):
        create_message(client, "X")
        client.get("/message/999")

        response = client.get("/metrics")

        assert response.status_code == 200
        body = response.text
        assert 'message_operations_total{operation="save_message",result="ok"}' in body
        assert 'message_operations_total{operation="get_message_by_id",result="message-not-found"}' in body
