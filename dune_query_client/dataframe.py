"""Polars conversion of refreshed query results."""

import dataclasses
from collections.abc import Iterable, Mapping
from typing import Any

import polars as pl
from loguru import logger
from pydantic import BaseModel

from dune_query_client.client import DEFAULT_ROW_TYPE, DuneClient
from dune_query_client.errors import DuneDecodeError
from dune_query_client.models import GetResultResponse
from dune_query_client.parameters import Parameter


def _row_to_record(row: Any) -> dict[str, Any]:
    if isinstance(row, BaseModel):
        return row.model_dump()
    if isinstance(row, Mapping):
        return dict(row)
    if dataclasses.is_dataclass(row) and not isinstance(row, type):
        return dataclasses.asdict(row)
    raise DuneDecodeError(msg=f"Cannot convert row of type {type(row).__name__} to a record")


def results_to_dataframe(results: GetResultResponse[Any]) -> pl.DataFrame:
    """Build a DataFrame from a result body, keeping the reported column order.

    Args:
        results: Result body as returned by ``get_results`` or ``refresh``

    Returns:
        DataFrame with one row per result row; empty results keep their columns

    Raises:
        DuneDecodeError: If rows cannot be converted into a frame
    """
    column_names: list[str] = results.result.metadata.column_names
    records: list[dict[str, Any]] = [_row_to_record(row) for row in results.get_rows()]

    if not records:
        return pl.DataFrame(schema=column_names)

    try:
        df: pl.DataFrame = pl.DataFrame(records, infer_schema_length=None)
    except (pl.exceptions.PolarsError, TypeError, ValueError) as e:
        raise DuneDecodeError(msg=f"Failed to build DataFrame: {e}", exception=e) from e

    ordered: list[str] = [name for name in column_names if name in df.columns]
    ordered += [name for name in df.columns if name not in ordered]
    return df.select(ordered)


async def fetch_as_dataframe(
    client: DuneClient,
    *,
    query_id: int,
    params: Iterable[Parameter] | None = None,
    ping_frequency: float | None = None,
    row_type: Any = DEFAULT_ROW_TYPE,
) -> pl.DataFrame:
    """Refresh a query and return its rows as a polars DataFrame."""
    results = await client.refresh(
        query_id=query_id, params=params, ping_frequency=ping_frequency, row_type=row_type
    )
    df = results_to_dataframe(results)
    logger.debug(f"Built DataFrame for query {query_id} - shape={df.shape}")
    return df
