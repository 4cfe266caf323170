"""API router for the notifications feature.

Dispatch Endpoints:
- POST /notifications/dispatch/user/{user_id} - Send a trigger to one user
- POST /notifications/dispatch/role/{role} - Send a trigger to every user with a role
- POST /notifications/dispatch/email - Send a trigger to a bare email address
- POST /notifications/dispatch/template/{user_id} - Send a stored template to one user

Record Endpoints:
- GET /notifications/pending - PENDING records that are due
- POST /notifications/{notification_id}/mark-read - Mark as read

Queue Endpoints:
- POST /notifications/queue/email/bulk - Queue a bulk email campaign
- POST /notifications/queue/sms/bulk - Queue a bulk SMS campaign
- GET /notifications/queue/status - Worker and queue status
- GET /notifications/queue/jobs/{job_id}/progress - Delivery progress of a bulk campaign
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from dispatch_service.features.notifications.dependencies import (
    DispatchServiceDep,
    NotificationQueueDep,
)
from dispatch_service.features.notifications.schemas import (
    BulkEmailRequest,
    BulkEnqueueResponse,
    BulkSmsRequest,
    DispatchOutcomeResponse,
    EmailDispatchRequest,
    NotificationResponse,
    TemplateDispatchRequest,
    TriggerRequest,
)
from dispatch_service.workers.notifications.jobs import JobAttachment

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)


# ============================================================================
# Dispatch Endpoints
# ============================================================================


@router.post(
    "/dispatch/user/{user_id}",
    response_model=DispatchOutcomeResponse,
    summary="Dispatch to a user",
    description="""
Run a trigger through the user's preferences and deliver it on every allowed channel.

A suppressed trigger is not an error: the response has status `suppressed` and a `reason`.
""",
)
async def dispatch_to_user(
    user_id: str,
    body: TriggerRequest,
    service: DispatchServiceDep,
) -> DispatchOutcomeResponse:
    outcome = await service.send_to_user(user_id, body.to_trigger())
    return DispatchOutcomeResponse.model_validate(outcome)


@router.post(
    "/dispatch/role/{role}",
    response_model=list[DispatchOutcomeResponse],
    summary="Dispatch to a role",
)
async def dispatch_to_role(
    role: str,
    body: TriggerRequest,
    service: DispatchServiceDep,
) -> list[DispatchOutcomeResponse]:
    outcomes = await service.send_to_role(role.upper(), body.to_trigger())
    return [DispatchOutcomeResponse.model_validate(outcome) for outcome in outcomes]


@router.post(
    "/dispatch/email",
    response_model=DispatchOutcomeResponse,
    summary="Dispatch to an email address",
    description="Send a trigger by email to an address that need not belong to a user. No record is created.",
)
async def dispatch_to_email(
    body: EmailDispatchRequest,
    service: DispatchServiceDep,
) -> DispatchOutcomeResponse:
    outcome = await service.send_to_email(str(body.email), body.trigger.to_trigger())
    return DispatchOutcomeResponse.model_validate(outcome)


@router.post(
    "/dispatch/template/{user_id}",
    response_model=DispatchOutcomeResponse,
    summary="Dispatch a stored template",
)
async def dispatch_template(
    user_id: str,
    body: TemplateDispatchRequest,
    service: DispatchServiceDep,
) -> DispatchOutcomeResponse:
    outcome = await service.send_from_template(user_id, body.template_name, body.variables)
    return DispatchOutcomeResponse.model_validate(outcome)


# ============================================================================
# Record Endpoints
# ============================================================================


@router.get(
    "/pending",
    response_model=list[NotificationResponse],
    summary="List pending notifications",
)
async def list_pending(service: DispatchServiceDep) -> list[NotificationResponse]:
    notifications = await service.get_pending_notifications()
    return [NotificationResponse.model_validate(notification) for notification in notifications]


@router.post(
    "/{notification_id}/mark-read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark notification as read",
    responses={404: {"description": "Notification not found"}},
)
async def mark_notification_read(
    notification_id: UUID,
    service: DispatchServiceDep,
) -> None:
    if not await service.mark_as_read(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )


# ============================================================================
# Queue Endpoints
# ============================================================================


@router.post(
    "/queue/email/bulk",
    response_model=BulkEnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a bulk email campaign",
    description="""
Split the recipients into batches (`QUEUE_EMAIL_BATCH_SIZE`) and queue one job per batch,
staggered by `QUEUE_EMAIL_DELAY_MS`.

Returns 503 when the email queue is disabled.
""",
)
async def queue_bulk_email(
    body: BulkEmailRequest,
    queue: NotificationQueueDep,
) -> BulkEnqueueResponse:
    result = await queue.enqueue_bulk_email(
        [str(recipient) for recipient in body.recipients],
        body.subject,
        body.message,
        campaign_id=body.campaign_id,
        sent_by=body.sent_by,
        attachments=[JobAttachment(**attachment.model_dump()) for attachment in body.attachments],
    )
    return BulkEnqueueResponse.model_validate(result)


@router.post(
    "/queue/sms/bulk",
    response_model=BulkEnqueueResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a bulk SMS campaign",
)
async def queue_bulk_sms(
    body: BulkSmsRequest,
    queue: NotificationQueueDep,
) -> BulkEnqueueResponse:
    result = await queue.enqueue_bulk_sms(
        body.recipients,
        body.message,
        campaign_id=body.campaign_id,
        distributor_id=body.distributor_id,
        sent_by=body.sent_by,
    )
    return BulkEnqueueResponse.model_validate(result)


@router.get(
    "/queue/status",
    summary="Queue and worker status",
)
async def queue_status(queue: NotificationQueueDep) -> dict[str, Any]:
    return await queue.get_worker_status()


@router.get(
    "/queue/jobs/{job_id}/progress",
    summary="Bulk campaign progress",
    description="""
Counts the ledger rows written so far for a bulk job id returned by a bulk enqueue.
Pass `total` (the `total_recipients` of the enqueue response) to get a percentage.
""",
)
async def bulk_job_progress(
    job_id: str,
    queue: NotificationQueueDep,
    total: int | None = Query(default=None, ge=1),
) -> dict[str, Any]:
    return await queue.get_bulk_job_progress(job_id, total)
