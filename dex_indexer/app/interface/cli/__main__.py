import asyncio
import inspect
import logging
from typing import Any, Awaitable, Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from dex_indexer.app.domain.errors import ConfigurationError
from dex_indexer.app.interface.tasks import TASKS
from dex_indexer.app.interface.tasks._common import list_exchange_keys

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

logger = logging.getLogger(__name__)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for syncing DEX pairs and swaps.")
app.add_typer(indexer_app, name="indexer")


def parse_block(value: str) -> int | str:
    value = value.strip()
    return int(value) if value.isdigit() else value


def parse_pair_ids(value: str) -> list[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise typer.BadParameter(f"Expected comma separated pair ids, got {value!r}")


def _run(coro: Awaitable[Any]) -> Any:
    try:
        return asyncio.run(coro)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1)


@indexer_app.command("pairs-sync")
def pairs_sync(
    exchange_key: str = typer.Argument(..., help="Exchange key, e.g. uniswap_v2"),
    from_block: int = typer.Option(0, "--from-block", min=0),
    to_block: str = typer.Option("latest", "--to-block"),
    unprocessed_only: bool = typer.Option(False, "--unprocessed-only"),
    multiworker: bool = typer.Option(False, "--multiworker"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1),
) -> None:
    _run(
        TASKS["pairs_sync_task"](
            exchange_key=exchange_key,
            from_block=from_block,
            to_block=parse_block(to_block),
            unprocessed_only=unprocessed_only,
            multiworker=multiworker,
            workers=workers,
        )
    )


@indexer_app.command("swaps-sync")
def swaps_sync(
    exchange_key: str = typer.Argument(..., help="Exchange key, e.g. pancakeswap_v2"),
    pair_ids: str = typer.Option(..., "--pair-ids", help="Comma separated, e.g. 1,2,3"),
    from_block: int = typer.Option(0, "--from-block", min=0),
    to_block: str = typer.Option("latest", "--to-block"),
    unprocessed_only: bool = typer.Option(False, "--unprocessed-only"),
    multiworker: bool = typer.Option(False, "--multiworker"),
    workers: Optional[int] = typer.Option(None, "--workers", min=1),
) -> None:
    _run(
        TASKS["swaps_sync_task"](
            exchange_key=exchange_key,
            pair_ids=parse_pair_ids(pair_ids),
            from_block=from_block,
            to_block=parse_block(to_block),
            unprocessed_only=unprocessed_only,
            multiworker=multiworker,
            workers=workers,
        )
    )


@indexer_app.command("db-rebuild")
def db_rebuild(
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt"),
) -> None:
    if not yes:
        typer.confirm("This drops every table and all synced data. Continue?", abort=True)
    _run(TASKS["database_rebuild_task"]())


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]
    params = inspect.signature(task).parameters
    kwargs: dict[str, object] = {}

    if "exchange_key" in params:
        keys = asyncio.run(list_exchange_keys())
        if keys:
            kwargs["exchange_key"] = inquirer.select(
                message="Exchange:",
                choices=keys,
                pointer="❯",
            ).execute()
        else:
            kwargs["exchange_key"] = inquirer.text(
                message="Exchange key (e.g. uniswap_v2):",
                default="uniswap_v2",
            ).execute()
    if "pair_ids" in params:
        kwargs["pair_ids"] = parse_pair_ids(
            inquirer.text(message="Pair ids (comma separated):").execute()
        )
    if "from_block" in params:
        kwargs["from_block"] = int(
            inquirer.text(message="From block (inclusive):", default="0").execute()
        )
    if "to_block" in params:
        kwargs["to_block"] = parse_block(
            inquirer.text(message="To block (inclusive):", default="latest").execute()
        )
    if "unprocessed_only" in params:
        kwargs["unprocessed_only"] = inquirer.confirm(
            message="Only the first unprocessed range?", default=False
        ).execute()
    if "multiworker" in params:
        kwargs["multiworker"] = inquirer.confirm(
            message="Spread the range over a worker pool?", default=False
        ).execute()
    if task_name == "database_rebuild_task" and not inquirer.confirm(
        message="This drops every table and all synced data. Continue?", default=False
    ).execute():
        raise typer.Abort()

    _run(task(**kwargs))


if __name__ == "__main__":
    typer.echo("--- DEX Indexer CLI ---")
    app()
