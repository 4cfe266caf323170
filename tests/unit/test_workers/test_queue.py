"""Tests for the delivery job enqueue facade."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from dispatch_service.core.exceptions import PersistenceError, QueueDisabledError
from dispatch_service.features.messaging import BulkJobProgress
from dispatch_service.workers.notifications import (
    EmailJob,
    JobAttachment,
    NotificationQueue,
    batch_delays,
    chunk_recipients,
)
from dispatch_service.workers.notifications.jobs import (
    SEND_BULK_EMAIL_TASK,
    SEND_BULK_SMS_TASK,
    SEND_EMAIL_TASK,
    SEND_SMS_TASK,
)


@dataclass
class Handle:
    task_id: str


@dataclass
class FakeTask:
    """Records payloads and labels the way a taskiq kicker would send them."""

    name: str
    sent: list[tuple[dict[str, Any], dict[str, Any]]] = field(default_factory=list)
    _labels: dict[str, Any] = field(default_factory=dict)

    def kicker(self) -> FakeTask:
        self._labels = {}
        return self

    def with_labels(self, **labels: Any) -> FakeTask:
        self._labels.update(labels)
        return self

    async def kiq(self, payload: dict[str, Any]) -> Handle:
        self.sent.append((payload, dict(self._labels)))
        self._labels = {}
        return Handle(task_id=f"{self.name}-{len(self.sent)}")


class FakeBroker:
    def __init__(self, *task_names: str) -> None:
        self.tasks = {name: FakeTask(name) for name in task_names}

    def find_task(self, name: str) -> FakeTask | None:
        return self.tasks.get(name)


@pytest.fixture
def brokers() -> dict[str, FakeBroker]:
    return {
        "email": FakeBroker(SEND_EMAIL_TASK, SEND_BULK_EMAIL_TASK),
        "sms": FakeBroker(SEND_SMS_TASK, SEND_BULK_SMS_TASK),
    }


@pytest.fixture
def queue(settings_reader, settings_values, brokers) -> NotificationQueue:
    settings_values.update({"QUEUE_EMAIL_ENABLED": "true", "QUEUE_SMS_ENABLED": "true"})
    return NotificationQueue(settings_reader, broker_getter=brokers.get)


class TestBatching:
    def test_chunk_recipients(self) -> None:
        batches = chunk_recipients([str(i) for i in range(25)], 10)

        assert [len(batch) for batch in batches] == [10, 10, 5]
        assert batches[2] == ["20", "21", "22", "23", "24"]

    def test_batch_delays_are_staggered(self) -> None:
        assert batch_delays(3, 1000) == [0, 1000, 2000]

    def test_empty_recipient_list_has_no_batches(self) -> None:
        assert chunk_recipients([], 10) == []


class TestNotificationQueue:
    """Enqueueing through fake per-channel brokers."""

    async def test_bulk_email_splits_and_staggers(self, queue, brokers) -> None:
        recipients = [f"user{i}@example.com" for i in range(25)]

        result = await queue.enqueue_bulk_email(recipients, "Sale", "Everything 20% off", campaign_id="spring")

        task = brokers["email"].tasks[SEND_BULK_EMAIL_TASK]
        assert result.total_batches == 3
        assert result.total_recipients == 25
        assert result.channel == "email"
        assert result.job_id.startswith("bulk-email-")
        assert result.batch_task_ids == [f"{SEND_BULK_EMAIL_TASK}-{i}" for i in (1, 2, 3)]
        assert [labels["delay"] for _, labels in task.sent] == [0, 1, 2]
        assert {labels["bulk_job_id"] for _, labels in task.sent} == {result.job_id}
        payloads = [payload for payload, _ in task.sent]
        assert [len(p["recipients"]) for p in payloads] == [10, 10, 5]
        assert [(p["batch_number"], p["total_batches"]) for p in payloads] == [(1, 3), (2, 3), (3, 3)]
        assert all(p["campaign_id"] == "spring" for p in payloads)

    async def test_bulk_sms_uses_settings_batch_size_and_delay(
        self, queue, brokers, settings_values
    ) -> None:
        settings_values.update({"QUEUE_SMS_BATCH_SIZE": "2", "QUEUE_SMS_DELAY_MS": "500"})

        result = await queue.enqueue_bulk_sms(
            ["0241234561", "0241234562", "0241234563"], "Sale", distributor_id="d-4"
        )

        task = brokers["sms"].tasks[SEND_BULK_SMS_TASK]
        assert result.total_batches == 2
        assert [labels["delay"] for _, labels in task.sent] == [0, 0.5]
        assert all(payload["distributor_id"] == "d-4" for payload, _ in task.sent)

    async def test_single_email(self, queue, brokers) -> None:
        task_id = await queue.enqueue_email(EmailJob(to="a@example.com", subject="Hi", message="Hello"))

        assert task_id == f"{SEND_EMAIL_TASK}-1"
        payload, labels = brokers["email"].tasks[SEND_EMAIL_TASK].sent[0]
        assert payload["to"] == "a@example.com"
        assert labels == {}

    async def test_disabled_queue_raises(self, queue, settings_values, brokers) -> None:
        settings_values["QUEUE_SMS_ENABLED"] = "false"

        with pytest.raises(QueueDisabledError) as exc_info:
            await queue.enqueue_bulk_sms(["0241234567"], "Sale")

        assert exc_info.value.status_code == 503
        assert brokers["sms"].tasks[SEND_BULK_SMS_TASK].sent == []

    async def test_missing_broker_raises(self, settings_reader, settings_values) -> None:
        settings_values["QUEUE_EMAIL_ENABLED"] = "true"
        queue = NotificationQueue(settings_reader, broker_getter=lambda channel: None)

        assert await queue.is_queue_available("email") is False
        with pytest.raises(QueueDisabledError):
            await queue.enqueue_bulk_email(["a@example.com"], "S", "M")

    async def test_is_queue_available(self, queue, settings_values) -> None:
        assert await queue.is_queue_available("sms") is True

        settings_values["QUEUE_SMS_ENABLED"] = "no"
        assert await queue.is_queue_available("sms") is False

    async def test_worker_status(self, queue) -> None:
        status = await queue.get_worker_status()

        assert set(status) == {"email", "sms"}
        assert status["email"]["queue"].endswith("email-jobs")
        assert status["sms"]["broker_available"] is True
        assert status["sms"]["enabled"] is True

    async def test_job_status_without_broker(self, settings_reader) -> None:
        queue = NotificationQueue(settings_reader, broker_getter=lambda channel: None)

        assert await queue.get_job_status("t-1", "email") == {"task_id": "t-1", "state": "unavailable"}

    async def test_job_status_with_untracked_results(self, settings_reader) -> None:
        from taskiq.result_backends.dummy import DummyResultBackend

        broker = FakeBroker()
        broker.result_backend = DummyResultBackend()
        queue = NotificationQueue(settings_reader, broker_getter=lambda channel: broker)

        assert (await queue.get_job_status("t-1", "sms"))["state"] == "untracked"

    async def test_queues_enabled_when_no_switch_is_stored(self, settings_reader, brokers) -> None:
        queue = NotificationQueue(settings_reader, broker_getter=brokers.get)

        assert await queue.is_queue_available("email") is True
        assert await queue.is_queue_available("sms") is True

    async def test_bulk_payloads_carry_job_id_and_attachments(self, queue, brokers) -> None:
        attachment = JobAttachment(filename="list.pdf", url="https://files.example.com/list.pdf")

        result = await queue.enqueue_bulk_email(
            ["a@example.com", "b@example.com"], "Prices", "Attached", attachments=[attachment]
        )

        [(payload, _)] = brokers["email"].tasks[SEND_BULK_EMAIL_TASK].sent
        assert payload["bulk_job_id"] == result.job_id
        assert payload["attachments"] == [
            {
                "filename": "list.pdf",
                "url": "https://files.example.com/list.pdf",
                "content_type": "application/octet-stream",
            }
        ]


class FakeProgressLedger:
    def __init__(self, progress: BulkJobProgress | None = None, error: PersistenceError | None = None) -> None:
        self.progress = progress
        self.error = error
        self.requested: list[str] = []

    async def bulk_job_progress(self, bulk_job_id: str) -> BulkJobProgress:
        self.requested.append(bulk_job_id)
        if self.error is not None:
            raise self.error
        assert self.progress is not None
        return self.progress


class TestBulkJobProgress:
    """Progress of a bulk campaign from its ledger rows."""

    @pytest.mark.parametrize(
        ("sent", "failed", "total", "state", "progress"),
        [
            (0, 0, 10, "queued", 0),
            (3, 1, 10, "in_progress", 40),
            (8, 2, 10, "completed", 100),
            (5, 0, None, "in_progress", None),
        ],
    )
    async def test_reports_counts_and_state(
        self,
        settings_reader,
        sent: int,
        failed: int,
        total: int | None,
        state: str,
        progress: int | None,
    ) -> None:
        ledger = FakeProgressLedger(BulkJobProgress(bulk_job_id="bulk-sms-1", sent=sent, failed=failed))
        queue = NotificationQueue(settings_reader, broker_getter=lambda channel: None, ledger=ledger)

        report = await queue.get_bulk_job_progress("bulk-sms-1", total)

        assert ledger.requested == ["bulk-sms-1"]
        assert report == {
            "job_id": "bulk-sms-1",
            "state": state,
            "sent": sent,
            "failed": failed,
            "processed": sent + failed,
            "total": total,
            "progress": progress,
        }

    async def test_unreadable_ledger_reports_unknown(self, settings_reader) -> None:
        ledger = FakeProgressLedger(error=PersistenceError("Failed to read bulk job progress: locked"))
        queue = NotificationQueue(settings_reader, broker_getter=lambda channel: None, ledger=ledger)

        report = await queue.get_bulk_job_progress("bulk-email-9", 20)

        assert report == {
            "job_id": "bulk-email-9",
            "state": "unknown",
            "error": "Failed to read bulk job progress: locked",
        }
