"""Tests for the HTTP surface: health, notifications router and problem details."""

from __future__ import annotations

from unittest.mock import AsyncMock
from uuid import uuid4

from fastapi.testclient import TestClient
import pytest

from dispatch_service.app.main import create_app
from dispatch_service.core.exceptions import QueueDisabledError
from dispatch_service.features.notifications import (
    Channel,
    ChannelOutcome,
    DispatchOutcome,
    DispatchStatus,
    get_notification_dispatch_service,
)
from dispatch_service.workers.notifications import BulkEnqueueResult, get_notification_queue

TRIGGER = {
    "type": "STOCK_LOW",
    "title": "Low stock",
    "message": "Widget is at 3 units",
    "channels": ["IN_APP", "EMAIL"],
}


@pytest.fixture
def service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def queue() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client(service: AsyncMock, queue: AsyncMock) -> TestClient:
    """Client without the lifespan, so no database or broker is touched."""
    app = create_app()
    app.dependency_overrides[get_notification_dispatch_service] = lambda: service
    app.dependency_overrides[get_notification_queue] = lambda: queue
    return TestClient(app, raise_server_exceptions=False)


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestDispatchEndpoints:
    def test_dispatch_to_user(self, client: TestClient, service: AsyncMock) -> None:
        notification_id = uuid4()
        service.send_to_user.return_value = DispatchOutcome(
            status=DispatchStatus.DELIVERED,
            user_id="u-1",
            notification_id=notification_id,
            channels=(
                ChannelOutcome.sent(Channel.IN_APP, str(notification_id)),
                ChannelOutcome.failed(Channel.EMAIL, "SMTP error"),
            ),
        )

        response = client.post("/api/v1/notifications/dispatch/user/u-1", json=TRIGGER)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "delivered"
        assert body["notification_id"] == str(notification_id)
        assert [(c["channel"], c["status"]) for c in body["channels"]] == [
            ("IN_APP", "sent"),
            ("EMAIL", "failed"),
        ]
        user_id, trigger = service.send_to_user.await_args.args
        assert user_id == "u-1"
        assert trigger.channels == [Channel.IN_APP, Channel.EMAIL]

    def test_dispatch_requires_a_channel(self, client: TestClient, service: AsyncMock) -> None:
        response = client.post(
            "/api/v1/notifications/dispatch/user/u-1", json={**TRIGGER, "channels": []}
        )

        assert response.status_code == 422
        service.send_to_user.assert_not_called()

    def test_dispatch_to_role(self, client: TestClient, service: AsyncMock) -> None:
        service.send_to_role.return_value = [
            DispatchOutcome(status=DispatchStatus.SUPPRESSED, user_id="u-2", reason=None),
        ]

        response = client.post("/api/v1/notifications/dispatch/role/admin", json=TRIGGER)

        assert response.status_code == 200
        assert response.json()[0]["status"] == "suppressed"
        assert service.send_to_role.await_args.args[0] == "ADMIN"

    def test_mark_read_not_found(self, client: TestClient, service: AsyncMock) -> None:
        service.mark_as_read.return_value = False

        response = client.post(f"/api/v1/notifications/{uuid4()}/mark-read")

        assert response.status_code == 404

    def test_mark_read(self, client: TestClient, service: AsyncMock) -> None:
        service.mark_as_read.return_value = True

        response = client.post(f"/api/v1/notifications/{uuid4()}/mark-read")

        assert response.status_code == 204


class TestQueueEndpoints:
    def test_bulk_sms_accepted(self, client: TestClient, queue: AsyncMock) -> None:
        queue.enqueue_bulk_sms.return_value = BulkEnqueueResult(
            job_id="bulk-sms-1",
            channel="sms",
            total_batches=1,
            total_recipients=2,
            batch_task_ids=["t-1"],
        )

        response = client.post(
            "/api/v1/notifications/queue/sms/bulk",
            json={"recipients": ["0241234567", "0241234568"], "message": "Sale", "distributor_id": "d-1"},
        )

        assert response.status_code == 202
        assert response.json()["batch_task_ids"] == ["t-1"]
        assert queue.enqueue_bulk_sms.await_args.kwargs["distributor_id"] == "d-1"

    def test_disabled_queue_is_problem_json_503(self, client: TestClient, queue: AsyncMock) -> None:
        queue.enqueue_bulk_email.side_effect = QueueDisabledError("email")

        response = client.post(
            "/api/v1/notifications/queue/email/bulk",
            json={"recipients": ["a@example.com"], "subject": "S", "message": "M"},
        )

        assert response.status_code == 503
        assert response.headers["content-type"].startswith("application/problem+json")
        problem = response.json()
        assert problem["type"] == "queue-disabled"
        assert problem["detail"] == "email queue is disabled"
        assert problem["channel"] == "email"

    def test_unexpected_error_is_problem_json_500(self, client: TestClient, queue: AsyncMock) -> None:
        queue.get_worker_status.side_effect = RuntimeError("boom")

        response = client.get("/api/v1/notifications/queue/status")

        assert response.status_code == 500
        assert response.json()["type"] == "internal-error"

    def test_bulk_job_progress(self, client: TestClient, queue: AsyncMock) -> None:
        queue.get_bulk_job_progress.return_value = {"job_id": "bulk-email-1", "state": "queued", "sent": 0}

        response = client.get("/api/v1/notifications/queue/jobs/bulk-email-1/progress", params={"total": 25})

        assert response.status_code == 200
        assert response.json()["state"] == "queued"
        queue.get_bulk_job_progress.assert_awaited_once_with("bulk-email-1", 25)

    def test_bulk_email_forwards_attachments(self, client: TestClient, queue: AsyncMock) -> None:
        queue.enqueue_bulk_email.return_value = BulkEnqueueResult(
            job_id="bulk-email-2", channel="email", total_batches=1, total_recipients=1
        )

        response = client.post(
            "/api/v1/notifications/queue/email/bulk",
            json={
                "recipients": ["a@example.com"],
                "subject": "Invoice",
                "message": "Attached",
                "attachments": [{"filename": "inv.pdf", "url": "https://files.example.com/inv.pdf"}],
            },
        )

        assert response.status_code == 202
        [attachment] = queue.enqueue_bulk_email.await_args.kwargs["attachments"]
        assert (attachment.filename, attachment.url) == ("inv.pdf", "https://files.example.com/inv.pdf")


def test_metrics_endpoint_exposes_dispatch_counters(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "notification_dispatch_total" in response.text
    assert "provider_send_duration_seconds" in response.text
