"""Command line front end for the Dune execution API."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import typer
from loguru import logger
from pydantic import BaseModel, ValidationError

from dune_query_client.client import DuneClient
from dune_query_client.dataframe import fetch_as_dataframe
from dune_query_client.errors import DuneRequestError
from dune_query_client.logging import setup_logging
from dune_query_client.parameters import Parameter

T = TypeVar("T")

app: typer.Typer = typer.Typer(help="Execute Dune queries and fetch their results", no_args_is_help=True)


def _split_assignment(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition("=")
    if not sep or not name:
        raise typer.BadParameter(f"Expected name=value, got {raw!r}")
    return name, value


def build_parameters(
    *,
    text: list[str] | None = None,
    number: list[str] | None = None,
    date: list[str] | None = None,
    enum: list[str] | None = None,
) -> list[Parameter]:
    """Turn repeated ``name=value`` options into query parameters."""
    params: list[Parameter] = []
    for raw in text or []:
        params.append(Parameter.text(*_split_assignment(raw)))
    for raw in number or []:
        params.append(Parameter.number(*_split_assignment(raw)))
    for raw in date or []:
        name, value = _split_assignment(raw)
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as e:
            raise typer.BadParameter(f"Invalid ISO date for {name}: {value!r}") from e
        params.append(Parameter.date(name, parsed))
    for raw in enum or []:
        params.append(Parameter.list(*_split_assignment(raw)))

    seen: set[str] = set()
    for param in params:
        if param.key in seen:
            raise typer.BadParameter(f"Parameter {param.key!r} given more than once")
        seen.add(param.key)
    return params


def _make_client(ctx: typer.Context) -> DuneClient:
    api_key: str | None = ctx.obj.get("api_key") if ctx.obj else None
    return DuneClient.from_env(api_key=api_key)


def _run(ctx: typer.Context, action: Callable[[DuneClient], Awaitable[T]]) -> T:
    async def runner() -> T:
        async with _make_client(ctx) as client:
            return await action(client)

    try:
        return asyncio.run(runner())
    except (DuneRequestError, ValidationError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        raise typer.Exit(code=1) from e


def _echo_model(model: BaseModel) -> None:
    typer.echo(model.model_dump_json(indent=2))


@app.callback()
def main(
    ctx: typer.Context,
    api_key: str = typer.Option(
        None, "--api-key", help="Dune API key (defaults to DUNE_API_KEY)", show_default=False
    ),
    log_level: str = typer.Option(None, "--log-level", help="Log level (defaults to LOG_LEVEL)"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit serialized JSON logs"),
) -> None:
    setup_logging(level=log_level, json=json_logs or None)
    ctx.obj = {"api_key": api_key}


@app.command()
def execute(
    ctx: typer.Context,
    query_id: int = typer.Argument(..., help="Query id from the end of the query URL"),
    param: list[str] = typer.Option(None, "--param", "-p", help="Text parameter name=value"),
    number: list[str] = typer.Option(None, "--number", help="Number parameter name=value"),
    date: list[str] = typer.Option(None, "--date", help="Date parameter name=ISO-datetime"),
    enum: list[str] = typer.Option(None, "--enum", help="List/enum parameter name=value"),
) -> None:
    """Submit a query execution and print its handle."""
    params = build_parameters(text=param, number=number, date=date, enum=enum)
    _echo_model(_run(ctx, lambda client: client.execute_query(query_id=query_id, params=params)))


@app.command()
def status(ctx: typer.Context, job_id: str = typer.Argument(..., help="Execution id")) -> None:
    """Print the status of an execution."""
    _echo_model(_run(ctx, lambda client: client.get_status(job_id=job_id)))


@app.command()
def results(ctx: typer.Context, job_id: str = typer.Argument(..., help="Execution id")) -> None:
    """Print the results of an execution."""
    _echo_model(_run(ctx, lambda client: client.get_results(job_id=job_id)))


@app.command()
def cancel(ctx: typer.Context, job_id: str = typer.Argument(..., help="Execution id")) -> None:
    """Cancel an execution."""
    _echo_model(_run(ctx, lambda client: client.cancel_execution(job_id=job_id)))


@app.command()
def refresh(
    ctx: typer.Context,
    query_id: int = typer.Argument(..., help="Query id from the end of the query URL"),
    param: list[str] = typer.Option(None, "--param", "-p", help="Text parameter name=value"),
    number: list[str] = typer.Option(None, "--number", help="Number parameter name=value"),
    date: list[str] = typer.Option(None, "--date", help="Date parameter name=ISO-datetime"),
    enum: list[str] = typer.Option(None, "--enum", help="List/enum parameter name=value"),
    ping_frequency: float = typer.Option(
        None, "--ping-frequency", help="Seconds between status checks", show_default=False
    ),
    csv: Path = typer.Option(None, "--csv", help="Write rows to this CSV file instead"),
) -> None:
    """Execute a query, wait for it to finish and print its results."""
    params = build_parameters(text=param, number=number, date=date, enum=enum)

    if csv is not None:
        df = _run(
            ctx,
            lambda client: fetch_as_dataframe(
                client, query_id=query_id, params=params, ping_frequency=ping_frequency
            ),
        )
        df.write_csv(csv)
        logger.info(f"Wrote {df.height} rows to {csv}")
        return

    response: Any = _run(
        ctx,
        lambda client: client.refresh(
            query_id=query_id, params=params, ping_frequency=ping_frequency
        ),
    )
    _echo_model(response)


if __name__ == "__main__":
    app()
