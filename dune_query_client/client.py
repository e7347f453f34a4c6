"""Async client for the Dune Analytics execution API.

Official documentation: https://dune.com/docs/api/

Elementary routes, one HTTP request each:

- POST ``query/{query_id}/execute``  -> :meth:`DuneClient.execute_query`
- POST ``execution/{job_id}/cancel`` -> :meth:`DuneClient.cancel_execution`
- GET ``execution/{job_id}/status``  -> :meth:`DuneClient.get_status`
- GET ``execution/{job_id}/results`` -> :meth:`DuneClient.get_results`

:meth:`DuneClient.refresh` combines them: execute the query, poll the status
until it is terminal, then fetch and return the results.
"""

from asyncio import sleep
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final, TypeVar

import aiohttp
from aiohttp import ClientSession, ClientTimeout
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError
from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_never, wait_fixed

from dune_query_client.config import DuneClientConfig, PingFrequency
from dune_query_client.errors import (
    DuneAPIError,
    DuneDecodeError,
    DuneTransportError,
    MissingConfigError,
)
from dune_query_client.models import (
    CancellationResponse,
    DuneErrorBody,
    ExecutionResponse,
    ExecutionStatus,
    GetResultResponse,
    GetStatusResponse,
    results_model,
)
from dune_query_client.parameters import Parameter, encode_parameters

ModelT = TypeVar("ModelT", bound=BaseModel)

DEFAULT_ROW_TYPE: Final[Any] = dict[str, Any]
_PING_FREQUENCY_ADAPTER: Final[TypeAdapter[float]] = TypeAdapter(PingFrequency)


class LogMessages(StrEnum):
    """Log messages used throughout the client."""

    POST_REQUEST = "POST to {route} with parameters {params}"
    GET_REQUEST = "GET from {url}"
    REQUEST_ERROR = "Dune request error - http_status={status}, error={error}"
    REFRESHING = "Refreshing {query_id} Execution ID {job_id}"
    WAITING = "Waiting for query execution {job_id} to complete: {state}"
    FAILED_STATE = "{state} Perhaps your query took too long to run! execution_id={job_id}"
    CANCELLATION_REQUESTED = "Cancellation requested - execution_id={job_id}, success={success}"
    SESSION_CLOSED = "Dune client session closed"


@dataclass(frozen=True)
class RawResponse:
    """Status and body of one HTTP exchange."""

    status: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _is_running(status: GetStatusResponse) -> bool:
    return not status.state.is_terminal()


def _enum_literal(error: ValidationError) -> str | None:
    for detail in error.errors():
        if detail.get("type") == "enum" and isinstance(detail.get("input"), str):
            return str(detail["input"])
    return None


class DuneClient:
    """Interface to the Dune Analytics execution API.

    Args:
        api_key: Value sent in the API key header on every request
        config: Full client configuration; ``api_key`` overrides its key
        session: Externally managed aiohttp session; not closed by the client
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        config: DuneClientConfig | None = None,
        session: ClientSession | None = None,
    ) -> None:
        if config is None:
            if api_key is None:
                raise MissingConfigError(config_key_name="api_key")
            config = DuneClientConfig(api_key=api_key)
        elif api_key is not None:
            config = config.model_copy(update={"api_key": api_key})

        self._config: DuneClientConfig = config
        self._session: ClientSession | None = session
        self._owns_session: bool = session is None

    @classmethod
    def from_env(cls, *, dotenv: bool = True, api_key: str | None = None) -> "DuneClient":
        """Build a client from ``DUNE_API_KEY`` (and optional overrides)."""
        return cls(config=DuneClientConfig.from_env(dotenv=dotenv, api_key=api_key))

    @property
    def config(self) -> DuneClientConfig:
        return self._config

    async def __aenter__(self) -> "DuneClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_session(self) -> ClientSession:
        """Create the HTTP session on first use."""
        if self._session is None:
            timeout = ClientTimeout(
                total=self._config.request_timeout,
                connect=self._config.connect_timeout,
            )
            self._session = ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug(LogMessages.SESSION_CLOSED)
        self._session = None

    def _headers(self) -> dict[str, str]:
        return {self._config.api_key_header: self._config.api_key}

    async def _send(self, method: str, url: str, *, json: Any | None = None) -> RawResponse:
        session = self._ensure_session()
        try:
            async with session.request(method, url, headers=self._headers(), json=json) as resp:
                return RawResponse(status=resp.status, body=await resp.read())
        except (aiohttp.ClientError, TimeoutError) as e:
            raise DuneTransportError(exception=e) from e

    async def _post(
        self, *, route: str, params: Iterable[Parameter] | None = None
    ) -> RawResponse:
        """Internal POST request handler."""
        body: dict[str, Any] = encode_parameters(params)
        logger.debug(LogMessages.POST_REQUEST.format(route=route, params=body))
        return await self._send("POST", f"{self._config.base_url}/{route}", json=body)

    async def _get(self, *, job_id: str, command: str) -> RawResponse:
        """Internal GET request handler."""
        url: str = f"{self._config.base_url}/execution/{job_id}/{command}"
        logger.debug(LogMessages.GET_REQUEST.format(url=url))
        return await self._send("GET", url)

    @staticmethod
    def _parse_response(*, response: RawResponse, model: type[ModelT]) -> ModelT:
        """Deserialize a response body into ``model``.

        Non-success responses carry an ``{"error": ...}`` body, which is raised
        as :class:`DuneAPIError`.

        Raises:
            DuneAPIError: If the service reported an error
            DuneDecodeError: If either body does not match its schema
        """
        if response.ok:
            try:
                return model.model_validate_json(response.body)
            except ValidationError as e:
                raise DuneDecodeError(
                    msg=f"Failed to decode {model.__name__}: {e}",
                    literal=_enum_literal(e),
                    exception=e,
                ) from e

        try:
            err: DuneErrorBody = DuneErrorBody.model_validate_json(response.body)
        except ValidationError as e:
            raise DuneDecodeError(
                msg=f"Failed to decode error body of HTTP {response.status} response: {e}",
                exception=e,
            ) from e
        logger.error(LogMessages.REQUEST_ERROR.format(status=response.status, error=err.error))
        raise DuneAPIError(message=err.error)

    async def execute_query(
        self, *, query_id: int, params: Iterable[Parameter] | None = None
    ) -> ExecutionResponse:
        """Execute a query, with or without parameters.

        cf. https://dune.com/docs/api/api-reference/execute-queries/execute-query-id/

        Args:
            query_id: Numeric id found at the end of a query URL
            params: Query parameters for this invocation

        Returns:
            Execution handle and its initial state
        """
        response = await self._post(route=f"query/{query_id}/execute", params=params)
        return self._parse_response(response=response, model=ExecutionResponse)

    async def cancel_execution(self, *, job_id: str) -> CancellationResponse:
        """Cancel a query execution.

        cf. https://dune.com/docs/api/api-reference/execute-queries/cancel-execution/
        """
        response = await self._post(route=f"execution/{job_id}/cancel")
        cancellation = self._parse_response(response=response, model=CancellationResponse)
        logger.info(
            LogMessages.CANCELLATION_REQUESTED.format(job_id=job_id, success=cancellation.success)
        )
        return cancellation

    async def get_status(self, *, job_id: str) -> GetStatusResponse:
        """Get the status of a query execution.

        cf. https://dune.com/docs/api/api-reference/get-results/execution-status/
        """
        response = await self._get(job_id=job_id, command="status")
        return self._parse_response(response=response, model=GetStatusResponse)

    async def get_results(
        self, *, job_id: str, row_type: Any = DEFAULT_ROW_TYPE
    ) -> GetResultResponse[Any]:
        """Get the results of a query execution.

        cf. https://dune.com/docs/api/api-reference/get-results/execution-results/

        Args:
            job_id: Execution id
            row_type: Type every row is validated as, e.g. a pydantic model

        Returns:
            Result body with rows decoded as ``row_type``
        """
        response = await self._get(job_id=job_id, command="results")
        return self._parse_response(response=response, model=results_model(row_type))

    async def refresh(
        self,
        *,
        query_id: int,
        params: Iterable[Parameter] | None = None,
        ping_frequency: float | None = None,
        row_type: Any = DEFAULT_ROW_TYPE,
    ) -> GetResultResponse[Any]:
        """Execute a query, wait for a terminal state and return its results.

        There is no deadline: an execution that never finishes is polled until
        the caller cancels the surrounding task. Results are fetched whatever
        the terminal state, so a failed execution surfaces whatever the
        results endpoint returns.

        Args:
            query_id: Numeric id found at the end of a query URL
            params: Query parameters for this invocation
            ping_frequency: Seconds between status checks; defaults to the
                configured value (5s). Polling too often can hit rate limits
                when many queries run in parallel.
            row_type: Type every row is validated as

        Returns:
            Result body with rows decoded as ``row_type``

        Raises:
            DuneRequestError: The first error from any request
            ValidationError: If ``ping_frequency`` is outside 0 to 3600 seconds
        """
        interval: float = (
            self._config.ping_frequency
            if ping_frequency is None
            else _PING_FREQUENCY_ADAPTER.validate_python(ping_frequency)
        )

        job_id: str = (await self.execute_query(query_id=query_id, params=params)).execution_id
        logger.info(LogMessages.REFRESHING.format(query_id=query_id, job_id=job_id))

        def log_wait(retry_state: RetryCallState) -> None:
            if retry_state.outcome is not None and not retry_state.outcome.failed:
                state: ExecutionStatus = retry_state.outcome.result().state
                logger.info(LogMessages.WAITING.format(job_id=job_id, state=state.name))

        poller: AsyncRetrying = AsyncRetrying(
            retry=retry_if_result(_is_running),
            wait=wait_fixed(interval),
            stop=stop_never,
            sleep=sleep,
            before_sleep=log_wait,
            reraise=True,
        )
        status: GetStatusResponse = await poller(self.get_status, job_id=job_id)

        if status.state == ExecutionStatus.FAILED:
            logger.warning(LogMessages.FAILED_STATE.format(state=status.state.name, job_id=job_id))
        return await self.get_results(job_id=job_id, row_type=row_type)
