"""Async client for the Dune Analytics query execution API."""

from loguru import logger

from dune_query_client.client import DuneClient
from dune_query_client.config import DuneClientConfig
from dune_query_client.dataframe import fetch_as_dataframe, results_to_dataframe
from dune_query_client.errors import (
    DuneAPIError,
    DuneDecodeError,
    DuneRequestError,
    DuneTransportError,
    MissingConfigError,
)
from dune_query_client.models import (
    CancellationResponse,
    ExecutionResponse,
    ExecutionResult,
    ExecutionStatus,
    ExecutionTimes,
    GetResultResponse,
    GetStatusResponse,
    ResultMetadata,
)
from dune_query_client.parameters import Parameter, ParameterType
from dune_query_client.parse_utils import (
    DuneDatetime,
    OptionalDuneDatetime,
    StrFloat,
    date_parse,
    datetime_from_str,
    dune_date,
    f64_from_str,
)

logger.disable(__name__)

__all__ = [
    "CancellationResponse",
    "DuneAPIError",
    "DuneClient",
    "DuneClientConfig",
    "DuneDatetime",
    "DuneDecodeError",
    "DuneRequestError",
    "DuneTransportError",
    "ExecutionResponse",
    "ExecutionResult",
    "ExecutionStatus",
    "ExecutionTimes",
    "GetResultResponse",
    "GetStatusResponse",
    "MissingConfigError",
    "OptionalDuneDatetime",
    "Parameter",
    "ParameterType",
    "ResultMetadata",
    "StrFloat",
    "date_parse",
    "datetime_from_str",
    "dune_date",
    "f64_from_str",
    "fetch_as_dataframe",
    "results_to_dataframe",
]
