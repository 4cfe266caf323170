"""Typed triggers for common business events.

Each builder fixes the notification type, wording and channel set for one
event. ``SystemNotificationTriggers`` pairs a builder with its audience and
hands the trigger to the dispatch coordinator.

Example:
    triggers = SystemNotificationTriggers(get_notification_dispatch_service())
    await triggers.stock_low("Widget", current_stock=3, reorder_point=10)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dispatch_service.features.notifications.schemas import (
    Channel,
    NotificationTrigger,
    NotificationType,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dispatch_service.features.notifications.schemas import DispatchOutcome
    from dispatch_service.features.notifications.service import NotificationDispatchService

ALL_CHANNELS = [Channel.IN_APP, Channel.EMAIL, Channel.SMS]
IN_APP_AND_EMAIL = [Channel.IN_APP, Channel.EMAIL]
EMAIL_ONLY = [Channel.EMAIL]


def _money(amount: float) -> str:
    return f"${amount:,.2f}"


def stock_low_trigger(product_name: str, current_stock: int, reorder_point: int) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.STOCK_LOW,
        title="Low Stock Alert",
        message=(
            f"{product_name} is running low. Current stock: {current_stock}, "
            f"Reorder point: {reorder_point}"
        ),
        channels=ALL_CHANNELS,
        data={"product_name": product_name, "current_stock": current_stock, "reorder_point": reorder_point},
    )


def stock_out_trigger(product_name: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.STOCK_OUT,
        title="Out of Stock Alert",
        message=f"{product_name} is now out of stock and needs immediate attention.",
        channels=ALL_CHANNELS,
        data={"product_name": product_name, "stock_level": 0},
    )


def order_created_trigger(order_number: str, customer_name: str, total: float) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.ORDER_STATUS,
        title="New Order Created",
        message=f"Order {order_number} has been created for {customer_name} with a total of {_money(total)}",
        channels=IN_APP_AND_EMAIL,
        data={"order_number": order_number, "customer_name": customer_name, "total": total},
    )


def order_status_changed_trigger(order_number: str, new_status: str, customer_name: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.ORDER_STATUS,
        title="Order Status Updated",
        message=f"Order {order_number} for {customer_name} has been updated to {new_status}",
        channels=IN_APP_AND_EMAIL,
        data={"order_number": order_number, "new_status": new_status, "customer_name": customer_name},
    )


def payment_received_trigger(amount: float, customer_name: str, payment_method: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.PAYMENT_RECEIVED,
        title="Payment Received",
        message=f"Payment of {_money(amount)} received from {customer_name} via {payment_method}",
        channels=IN_APP_AND_EMAIL,
        data={"amount": amount, "customer_name": customer_name, "payment_method": payment_method},
    )


def user_invited_trigger(user_name: str, invited_by: str, company_name: str | None = None) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.USER_INVITED,
        title=f"Welcome to {company_name or 'Our System'}",
        message=f"You have been invited to join {company_name or 'our system'} by {invited_by}",
        channels=EMAIL_ONLY,
        data={"user_name": user_name, "invited_by": invited_by, "company_name": company_name or "Our System"},
    )


def password_reset_trigger(user_name: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.PASSWORD_RESET,
        title="Password Reset Request",
        message=f"A password reset has been requested for {user_name}'s account",
        channels=EMAIL_ONLY,
        data={"user_name": user_name},
    )


def security_alert_trigger(alert_type: str, description: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.SECURITY_ALERT,
        title="Security Alert",
        message=f"{alert_type}: {description}",
        channels=ALL_CHANNELS,
        data={"alert_type": alert_type, "description": description},
    )


def system_alert_trigger(alert_type: str, description: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.SYSTEM_ALERT,
        title="System Alert",
        message=f"{alert_type}: {description}",
        channels=IN_APP_AND_EMAIL,
        data={"alert_type": alert_type, "description": description},
    )


def lead_created_trigger(
    lead_name: str,
    lead_email: str,
    creator_name: str,
    assigned_to: Sequence[str] | None = None,
) -> NotificationTrigger:
    assigned = f" and assigned to {len(assigned_to)} user(s)" if assigned_to else ""
    return NotificationTrigger(
        type=NotificationType.LEAD_CREATED,
        title="New Lead Created",
        message=f'New lead "{lead_name}" has been created by {creator_name}{assigned}',
        channels=ALL_CHANNELS,
        data={
            "lead_name": lead_name,
            "lead_email": lead_email,
            "creator_name": creator_name,
            "assigned_to": list(assigned_to or []),
        },
    )


def lead_assigned_trigger(
    lead_name: str,
    lead_email: str | None,
    assigned_by_name: str,
    lead_source: str | None = None,
) -> NotificationTrigger:
    email_part = f" ({lead_email})" if lead_email else ""
    source_part = f" from {lead_source}" if lead_source else ""
    return NotificationTrigger(
        type=NotificationType.LEAD_ASSIGNED,
        title="Lead Assigned to You",
        message=f'You have been assigned to lead "{lead_name}"{email_part} by {assigned_by_name}{source_part}',
        channels=ALL_CHANNELS,
        data={
            "lead_name": lead_name,
            "lead_email": lead_email,
            "assigned_by_name": assigned_by_name,
            "lead_source": lead_source,
        },
    )


def lead_owner_notification_trigger(
    lead_name: str,
    lead_email: str | None,
    creator_name: str,
    lead_details: dict[str, Any] | None = None,
) -> NotificationTrigger:
    email_part = f" ({lead_email})" if lead_email else ""
    return NotificationTrigger(
        type=NotificationType.LEAD_OWNER_NOTIFICATION,
        title="Lead Added to Your Account",
        message=f'Lead "{lead_name}"{email_part} has been added to your account by {creator_name}',
        channels=IN_APP_AND_EMAIL,
        data={
            "lead_name": lead_name,
            "lead_email": lead_email,
            "creator_name": creator_name,
            "lead_details": lead_details or {},
        },
    )


def lead_welcome_trigger(
    lead_name: str,
    company_name: str,
    assigned_user_name: str | None = None,
) -> NotificationTrigger:
    contact = f" - your dedicated contact is {assigned_user_name}" if assigned_user_name else ""
    return NotificationTrigger(
        type=NotificationType.LEAD_WELCOME,
        title=f"Welcome to {company_name}",
        message=(
            f"Hello {lead_name}, thank you for your interest in our products. "
            f"We'll be in touch soon{contact}."
        ),
        channels=EMAIL_ONLY,
        data={"lead_name": lead_name, "company_name": company_name, "assigned_user_name": assigned_user_name},
    )


def task_comment_trigger(task_title: str, comment_preview: str, commenter_name: str) -> NotificationTrigger:
    return NotificationTrigger(
        type=NotificationType.TASK_COMMENT,
        title=f"New Comment on Task: {task_title}",
        message=f'{commenter_name} commented on "{task_title}": {comment_preview}',
        channels=ALL_CHANNELS,
        data={"task_title": task_title, "comment_preview": comment_preview, "commenter_name": commenter_name},
    )


class SystemNotificationTriggers:
    """Routes business events to their audience through the dispatcher."""

    def __init__(self, dispatcher: NotificationDispatchService) -> None:
        self._dispatcher = dispatcher

    async def _to_roles(self, roles: Sequence[str], trigger: NotificationTrigger) -> list[DispatchOutcome]:
        outcomes: list[DispatchOutcome] = []
        for role in roles:
            outcomes.extend(await self._dispatcher.send_to_role(role, trigger))
        return outcomes

    async def stock_low(self, product_name: str, current_stock: int, reorder_point: int) -> list[DispatchOutcome]:
        return await self._to_roles(
            ("INVENTORY_MANAGER", "ADMIN"),
            stock_low_trigger(product_name, current_stock, reorder_point),
        )

    async def stock_out(self, product_name: str) -> list[DispatchOutcome]:
        return await self._to_roles(("INVENTORY_MANAGER", "ADMIN"), stock_out_trigger(product_name))

    async def order_created(self, order_number: str, customer_name: str, total: float) -> list[DispatchOutcome]:
        return await self._dispatcher.send_to_sales_managers(
            order_created_trigger(order_number, customer_name, total)
        )

    async def order_status_changed(
        self, user_id: str, order_number: str, new_status: str, customer_name: str
    ) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(
            user_id, order_status_changed_trigger(order_number, new_status, customer_name)
        )

    async def payment_received(
        self, amount: float, customer_name: str, payment_method: str
    ) -> list[DispatchOutcome]:
        return await self._dispatcher.send_to_finance_officers(
            payment_received_trigger(amount, customer_name, payment_method)
        )

    async def user_invited(
        self, user_id: str, user_name: str, invited_by: str, company_name: str | None = None
    ) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(
            user_id, user_invited_trigger(user_name, invited_by, company_name)
        )

    async def password_reset(self, user_id: str, user_name: str) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(user_id, password_reset_trigger(user_name))

    async def security_alert(self, user_id: str, alert_type: str, description: str) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(user_id, security_alert_trigger(alert_type, description))

    async def system_alert(self, alert_type: str, description: str) -> list[DispatchOutcome]:
        return await self._dispatcher.send_to_super_admins(system_alert_trigger(alert_type, description))

    async def lead_created(
        self,
        lead_name: str,
        lead_email: str,
        creator_name: str,
        assigned_to: Sequence[str] | None = None,
    ) -> list[DispatchOutcome]:
        return await self._to_roles(
            ("SALES_MANAGER", "ADMIN"),
            lead_created_trigger(lead_name, lead_email, creator_name, assigned_to),
        )

    async def lead_assigned(
        self,
        user_id: str,
        lead_name: str,
        lead_email: str | None,
        assigned_by_name: str,
        lead_source: str | None = None,
    ) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(
            user_id, lead_assigned_trigger(lead_name, lead_email, assigned_by_name, lead_source)
        )

    async def lead_owner_notification(
        self,
        user_id: str,
        lead_name: str,
        lead_email: str | None,
        creator_name: str,
        lead_details: dict[str, Any] | None = None,
    ) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(
            user_id, lead_owner_notification_trigger(lead_name, lead_email, creator_name, lead_details)
        )

    async def lead_welcome(
        self,
        email: str,
        lead_name: str,
        company_name: str,
        assigned_user_name: str | None = None,
    ) -> DispatchOutcome:
        return await self._dispatcher.send_to_email(
            email, lead_welcome_trigger(lead_name, company_name, assigned_user_name)
        )

    async def task_comment(
        self, user_id: str, task_title: str, comment_preview: str, commenter_name: str
    ) -> DispatchOutcome:
        return await self._dispatcher.send_to_user(
            user_id, task_comment_trigger(task_title, comment_preview, commenter_name)
        )
