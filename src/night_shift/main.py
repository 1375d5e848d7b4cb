"""CLI entrypoint for night-shift."""

import logging
import os

import rich_click as click

from night_shift import __version__
from night_shift.orchestrator.controllers import (
    EnqueueCommand,
    HealthCommand,
    NightShiftCliController,
    RunCommand,
)

click.rich_click.USE_MARKDOWN = True
CONTROLLER = NightShiftCliController()
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="night-shift")
@click.option(
    "--continuous",
    "-c",
    is_flag=True,
    default=False,
    help="Keep polling the queue until SIGINT/SIGTERM.",
)
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    default=False,
    help="Preview pending tasks without executing or updating them.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Log level (defaults to NIGHT_SHIFT_LOG_LEVEL or INFO).",
)
@click.pass_context
def night_shift(
    ctx: click.Context,
    continuous: bool,
    dry_run: bool,
    log_level: str | None,
) -> None:
    """Night shift runner.

    Without a subcommand, drains all pending tasks once and prints the result
    as JSON. Exit code is 0 on success and 1 when the run itself failed.
    """

    _configure_logging(log_level)
    if ctx.invoked_subcommand is not None:
        return
    result = CONTROLLER.run(RunCommand(continuous=continuous, dry_run=dry_run))
    _emit_lines(result.lines)
    ctx.exit(result.exit_code)


@night_shift.command("enqueue")
@click.option("--type", "task_type", required=True, help="Task type, for example seo-analysis.")
@click.option(
    "--priority",
    type=click.IntRange(min=0),
    default=1,
    show_default=True,
    help="Higher priority tasks are fetched first.",
)
@click.option("--data", default=None, help="Task payload, usually a JSON object.")
def enqueue(task_type: str, priority: int, data: str | None) -> None:
    """Add one task to the night-shift queue."""

    _emit_lines(
        CONTROLLER.enqueue(EnqueueCommand(task_type=task_type, priority=priority, data=data)),
    )


@night_shift.command("health")
@click.option(
    "--shutting-down/--no-shutting-down",
    default=False,
    show_default=True,
    help="Report the fleet as shutting down regardless of agent states.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format.",
)
def health(shutting_down: bool, output_format: str) -> None:
    """Show fleet health rolled up from agent status snapshots."""

    _emit_lines(
        CONTROLLER.health(
            HealthCommand(shutting_down=shutting_down, output_format=output_format),
        ),
    )


@night_shift.command("handlers")
def handlers() -> None:
    """List registered task types."""

    _emit_lines(CONTROLLER.handlers())


def _configure_logging(log_level: str | None) -> None:
    level = (log_level or os.getenv("NIGHT_SHIFT_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=level if level in LOG_LEVELS else "INFO",
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    night_shift()
