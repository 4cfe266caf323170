"""Main CLI entry point for dispatch-service commands."""

import click

from dispatch_service.cli.commands import notify, queue, worker
from dispatch_service.infra.logging.config import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="dispatch-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Dispatch Service CLI - workers and one-off notifications.

    \b
    Command Groups:
      worker     Start an email or SMS delivery worker
      notify     Send a notification through the coordinator
      queue      Inspect the delivery queues

    \b
    Quick Start:
      dispatch-service worker email
      dispatch-service worker sms --workers 2
      dispatch-service queue status
    """
    ctx.ensure_object(dict)


cli.add_command(worker.worker)
cli.add_command(notify.notify)
cli.add_command(queue.queue)


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
