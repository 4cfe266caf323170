"""CLI command modules."""

from dispatch_service.cli.commands import notify, queue, worker

__all__ = [
    "notify",
    "queue",
    "worker",
]
