# SPDX-License-Identifier: MIT
"""Command-line interface for inspecting and draining the offline queue."""

import asyncio
import functools
import json
import sys
import traceback
from collections.abc import Callable
from typing import Any, TypeVar

import click

from . import __version__
from .config import get_config_manager
from .engine import OfflineSyncEngine
from .enums import ActionType, SyncResultStatus
from .logging_config import get_status_logger, setup_logging


F = TypeVar("F", bound=Callable[..., Any])


def handle_cli_errors(func: F) -> F:
    """Decorator to handle common CLI error patterns.

    Logs the error through the status logger (with a traceback when
    ``verbose`` is set) and exits with status code 1.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        status_logger = get_status_logger()
        verbose = kwargs.get("verbose", False)

        try:
            return func(*args, **kwargs)
        except (ValueError, OSError, KeyError, RuntimeError) as e:
            if verbose:
                status_logger.error(f"Error in {func.__name__}: {e}")
                traceback.print_exc()
            else:
                status_logger.error(f"Error: {e}")
            sys.exit(1)

    return wrapper  # type: ignore


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit if requested."""
    if value:
        setup_logging()
        get_status_logger().info(f"offline-sync version {__version__}")
        ctx.exit(0)


@click.group()
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version information and exit",
)
def main() -> None:
    """offline-sync - Inspect and synchronize queued offline changes."""
    detail_logger, _ = setup_logging()
    detail_logger.debug("CLI initialized")


async def _async_status(output_format: str) -> None:
    async with OfflineSyncEngine() as engine:
        actions = engine.pending_actions()
        if output_format == "json":
            print(
                json.dumps(
                    [action.model_dump(mode="json") for action in actions], indent=2
                )
            )
            return

        print(f"Pending actions: {len(actions)}")
        for action in actions:
            print(
                f"  {action.id}  {action.type.value:<6}  {action.resource}  "
                f"retries={action.retry_count}  queued={action.enqueued_at.isoformat()}"
            )


@main.command()
@click.option(
    "--format",
    "output_format",
    default="text",
    type=click.Choice(["text", "json"]),
    help="Output format",
)
@handle_cli_errors
def status(output_format: str) -> None:
    """Show the actions waiting to be synchronized."""
    asyncio.run(_async_status(output_format))


async def _async_enqueue(action_type: str, resource: str, payload: Any) -> str:
    async with OfflineSyncEngine() as engine:
        return await engine.enqueue(action_type, resource, payload)


@main.command()
@click.argument(
    "action_type", type=click.Choice([t.value for t in ActionType])
)
@click.argument("resource")
@click.argument("payload", required=False, default="null")
@handle_cli_errors
def enqueue(action_type: str, resource: str, payload: str) -> None:
    """Queue a change for the next sync pass.

    PAYLOAD is a JSON document, e.g. '{"id": 7, "name": "A"}'.
    """
    action_id = asyncio.run(_async_enqueue(action_type, resource, json.loads(payload)))
    print(action_id)


async def _async_sync() -> bool:
    async with OfflineSyncEngine() as engine:
        result = await engine.sync_now()
        status_logger = get_status_logger()
        if result.status == SyncResultStatus.SKIPPED:
            status_logger.warning(f"Sync skipped: {result.reason}")
            return False
        status_logger.info(
            f"{result.succeeded} synced, {result.retrying} to retry, "
            f"{result.dropped_exhausted + result.dropped_terminal} discarded, "
            f"{engine.state.pending_count} pending"
        )
        return result.dropped_terminal == 0 and result.dropped_exhausted == 0


@main.command()
@handle_cli_errors
def sync() -> None:
    """Run one sync pass against the configured backend."""
    if not asyncio.run(_async_sync()):
        sys.exit(1)


async def _async_clear() -> int:
    async with OfflineSyncEngine() as engine:
        return await engine.queue.clear()


@main.command()
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt")
@handle_cli_errors
def clear(confirm: bool) -> None:
    """Discard every pending action without sending it."""
    if not confirm:
        click.confirm(
            "This will discard all unsynchronized changes. Continue?", abort=True
        )
    dropped = asyncio.run(_async_clear())
    get_status_logger().info(f"Discarded {dropped} pending actions")


@main.command()
@handle_cli_errors
def config() -> None:
    """Show the complete current configuration."""
    print(get_config_manager().show_config())


if __name__ == "__main__":
    main()
