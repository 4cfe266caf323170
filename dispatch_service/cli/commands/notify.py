"""One-off notification commands.

Send a trigger through the dispatch coordinator from the shell, e.g. to check
a user's preferences or the gateway credentials:

  dispatch-service notify user u_123 --type SYSTEM_ALERT --title "Test" --message "Hello" -c in_app -c email
  dispatch-service notify role ADMIN --type SYSTEM_ALERT --title "Deploy" --message "Done" -c in_app
  dispatch-service notify email ops@example.com --type SYSTEM_ALERT --title "Ping" --message "Hi"
  dispatch-service notify login u_123 --ip 10.0.0.1
"""

from typing import Any

import click

from dispatch_service.cli.utils import coro, error, header, info, success, warning

CHANNEL_CHOICES = click.Choice(["in_app", "email", "sms"], case_sensitive=False)


def _trigger_options(func: Any) -> Any:
    func = click.option(
        "--channel",
        "-c",
        "channels",
        multiple=True,
        type=CHANNEL_CHOICES,
        default=("in_app",),
        show_default=True,
        help="Channel to deliver on (repeatable)",
    )(func)
    func = click.option("--message", "-m", required=True, help="Notification body")(func)
    func = click.option("--title", "-t", required=True, help="Notification title")(func)
    func = click.option(
        "--type",
        "notification_type",
        default="SYSTEM_ALERT",
        show_default=True,
        help="Notification type, e.g. STOCK_LOW",
    )(func)
    return func


def _build_trigger(notification_type: str, title: str, message: str, channels: tuple[str, ...]) -> Any:
    from pydantic import ValidationError

    from dispatch_service.features.notifications.schemas import NotificationTrigger

    try:
        return NotificationTrigger(
            type=notification_type,
            title=title,
            message=message,
            channels=list(channels),
        )
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e


def _print_outcome(outcome: Any) -> None:
    label = outcome.user_id or outcome.recipient or "-"
    if outcome.ok:
        success(f"{label}: {outcome.status}")
    elif outcome.status == "suppressed":
        warning(f"{label}: suppressed ({outcome.reason})")
    else:
        error(f"{label}: {outcome.status} {outcome.error or ''}".rstrip())
    for channel in outcome.channels:
        detail = channel.provider_message_id or channel.error or ""
        click.echo(f"    {channel.channel:<7} {channel.status:<8} {detail}")


@click.group(name="notify")
def notify() -> None:
    """Send one-off notifications through the dispatch coordinator."""


@notify.command(name="user")
@click.argument("user_id")
@_trigger_options
@coro
async def notify_user(
    user_id: str, notification_type: str, title: str, message: str, channels: tuple[str, ...]
) -> None:
    """Send a trigger to one user, honouring their preferences."""
    from dispatch_service.features.notifications.service import get_notification_dispatch_service

    trigger = _build_trigger(notification_type, title, message, channels)
    outcome = await get_notification_dispatch_service().send_to_user(user_id, trigger)
    _print_outcome(outcome)


@notify.command(name="role")
@click.argument("role")
@_trigger_options
@coro
async def notify_role(
    role: str, notification_type: str, title: str, message: str, channels: tuple[str, ...]
) -> None:
    """Send a trigger to every active user with ROLE."""
    from dispatch_service.features.notifications.service import get_notification_dispatch_service

    trigger = _build_trigger(notification_type, title, message, channels)
    outcomes = await get_notification_dispatch_service().send_to_role(role.upper(), trigger)
    header(f"{role.upper()}: {len(outcomes)} recipient(s)")
    for outcome in outcomes:
        _print_outcome(outcome)


@notify.command(name="email")
@click.argument("address")
@click.option(
    "--type",
    "notification_type",
    default="SYSTEM_ALERT",
    show_default=True,
    help="Notification type used for the EMAIL_<TYPE> switch",
)
@click.option("--title", "-t", required=True, help="Email subject")
@click.option("--message", "-m", required=True, help="Email body")
@coro
async def notify_email(address: str, notification_type: str, title: str, message: str) -> None:
    """Email ADDRESS directly, bypassing preferences."""
    from dispatch_service.features.notifications.service import get_notification_dispatch_service

    trigger = _build_trigger(notification_type, title, message, ("email",))
    outcome = await get_notification_dispatch_service().send_to_email(address, trigger)
    _print_outcome(outcome)


@notify.command(name="login")
@click.argument("user_id")
@click.option("--ip", "ip_address", default=None, help="Sign-in IP address")
@click.option("--device", default=None, help="Device description")
@click.option("--location", default=None, help="Approximate location")
@coro
async def notify_login(
    user_id: str, ip_address: str | None, device: str | None, location: str | None
) -> None:
    """Send USER_ID's login alert by email and SMS, per their switches."""
    from dispatch_service.features.notifications.login import LoginDetails, LoginNotificationService
    from dispatch_service.features.notifications.service import get_notification_dispatch_service

    service = LoginNotificationService(get_notification_dispatch_service())
    outcomes = await service.send_login_notification(
        user_id, LoginDetails(ip_address=ip_address, device=device, location=location)
    )
    if not outcomes:
        info("No login alerts enabled for this user")
    for outcome in outcomes:
        click.echo(f"{outcome.channel:<7} {outcome.status:<8} {outcome.error or ''}")
