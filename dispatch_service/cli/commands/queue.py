"""Delivery queue inspection commands.

- status   - Queue names, concurrency, rates and availability per channel
- job      - Result of one queued job, or progress of a bulk campaign
"""

import json

import click

from dispatch_service.cli.utils import coro, header, info, success, warning


@click.group(name="queue")
def queue() -> None:
    """Inspect the email and SMS delivery queues."""


@queue.command(name="status")
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@coro
async def queue_status(as_json: bool) -> None:
    """Show worker and queue status for each channel."""
    from dispatch_service.workers.notifications.queue import get_notification_queue

    status = await get_notification_queue().get_worker_status()
    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    for channel, details in status.items():
        header(channel.upper())
        click.echo(f"  Queue:        {details['queue']}")
        click.echo(f"  Concurrency:  {details['concurrency']}")
        click.echo(f"  Rate:         {details['rate_per_second']}/s")
        if details["broker_available"] and details["enabled"]:
            success("Accepting jobs")
        elif details["broker_available"]:
            warning(f"Queue disabled in settings (QUEUE_{channel.upper()}_ENABLED)")
        else:
            warning("Broker not configured")


@queue.command(name="job")
@click.argument("channel", type=click.Choice(["email", "sms"]))
@click.argument("task_id")
@click.option("--total", type=int, default=None, help="Recipients in a bulk job, for a percentage")
@coro
async def job_status(channel: str, task_id: str, total: int | None) -> None:
    """Show the state of TASK_ID on CHANNEL's queue.

    A bulk job id (``bulk-<channel>-...``, as returned by a bulk enqueue)
    reports delivery progress from the ledger instead.
    """
    from dispatch_service.workers.notifications.queue import get_notification_queue

    queue_facade = get_notification_queue()
    if task_id.startswith("bulk-"):
        progress = await queue_facade.get_bulk_job_progress(task_id, total)
        info(f"{task_id}: {progress['state']}")
        if "error" in progress:
            click.echo(f"  Error: {progress['error']}")
            return
        click.echo(f"  Sent:       {progress['sent']}")
        click.echo(f"  Failed:     {progress['failed']}")
        if progress["progress"] is not None:
            click.echo(f"  Progress:   {progress['processed']}/{progress['total']} ({progress['progress']}%)")
        return

    status = await queue_facade.get_job_status(task_id, channel)
    info(f"{task_id}: {status['state']}")
    if "result" in status:
        click.echo(json.dumps(status["result"], indent=2, default=str))
    if "error" in status:
        click.echo(f"  Error: {status['error']}")
