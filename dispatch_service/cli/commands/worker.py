"""Delivery worker entry point.

Starting a worker is always explicit; importing the broker module never
starts consumers.

Examples:
  dispatch-service worker email              # 1 process, 5 concurrent email jobs
  dispatch-service worker sms --workers 2    # 2 processes, 3 concurrent SMS jobs each
"""

import subprocess
import sys

import click

from dispatch_service.cli.utils import error, info

TASKS_MODULE = "dispatch_service.workers.notifications.tasks"


def build_worker_command(channel: str, workers: int) -> list[str]:
    """The ``taskiq worker`` invocation for one channel's broker."""
    return [
        "taskiq",
        "worker",
        f"dispatch_service.infra.tasks.broker:{channel}_broker",
        TASKS_MODULE,
        "-w",
        str(workers),
    ]


@click.command(name="worker")
@click.argument("channel", type=click.Choice(["email", "sms"]))
@click.option(
    "--workers",
    "-w",
    default=1,
    type=click.IntRange(min=1),
    help="Number of worker processes (default: 1)",
)
def worker(channel: str, workers: int) -> None:
    """Start a Taskiq worker consuming CHANNEL's delivery queue."""
    from dispatch_service.core.settings import get_rabbit_settings

    if not get_rabbit_settings().is_configured:
        error("RabbitMQ is not configured; set RABBIT_ENABLED and the RABBIT_ connection settings")
        sys.exit(1)

    cmd = build_worker_command(channel, workers)
    info(f"Starting {channel} worker ({workers} process(es)): {' '.join(cmd)}")

    try:
        result = subprocess.run(cmd, check=False)
    except KeyboardInterrupt:
        info("Worker stopped")
        return
    except FileNotFoundError:
        error("taskiq command not found. Install with: pip install taskiq")
        sys.exit(1)
    sys.exit(result.returncode)
