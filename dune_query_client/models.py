"""Execution states and typed response bodies of the Dune execution API."""

from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

from dune_query_client.errors import DuneDecodeError
from dune_query_client.parse_utils import DuneDatetime, OptionalDuneDatetime

RowT = TypeVar("RowT")


class ExecutionStatus(StrEnum):
    """Dune query execution states."""

    COMPLETE = "QUERY_STATE_COMPLETED"
    EXECUTING = "QUERY_STATE_EXECUTING"
    PENDING = "QUERY_STATE_PENDING"
    CANCELLED = "QUERY_STATE_CANCELLED"
    FAILED = "QUERY_STATE_FAILED"

    def is_terminal(self) -> bool:
        """Whether no further state transition can occur."""
        return self in _TERMINAL_STATES

    @classmethod
    def parse(cls, literal: str) -> "ExecutionStatus":
        """Map a wire value onto a state by exact match.

        Raises:
            DuneDecodeError: If the literal is not a known state
        """
        try:
            return cls(literal)
        except ValueError as e:
            raise DuneDecodeError(
                msg=f"Unknown execution state: {literal}", literal=literal, exception=e
            ) from e


_TERMINAL_STATES: frozenset[ExecutionStatus] = frozenset(
    {ExecutionStatus.COMPLETE, ExecutionStatus.CANCELLED, ExecutionStatus.FAILED}
)


class DuneModel(BaseModel):
    """Base for response bodies: immutable, unknown fields ignored."""

    model_config = ConfigDict(frozen=True, extra="ignore")


class DuneErrorBody(DuneModel):
    """Error envelope returned with non-success HTTP statuses."""

    error: str


class ExecutionResponse(DuneModel):
    """Handle returned when a query execution is submitted."""

    execution_id: str
    state: ExecutionStatus


class CancellationResponse(DuneModel):
    success: bool


class ResultMetadata(DuneModel):
    """Shape and cost of an execution result."""

    column_names: list[str]
    column_types: list[str] | None = None
    row_count: int | None = None
    result_set_bytes: int
    total_row_count: int
    datapoint_count: int
    pending_time_millis: int | None = None
    execution_time_millis: int


class ExecutionTimes(DuneModel):
    """Execution timestamps, reported at the top level of status and result bodies."""

    submitted_at: DuneDatetime
    expires_at: OptionalDuneDatetime = None
    execution_started_at: OptionalDuneDatetime = None
    execution_ended_at: OptionalDuneDatetime = None
    cancelled_at: OptionalDuneDatetime = None

    @property
    def times(self) -> "ExecutionTimes":
        """The timestamps alone, detached from the rest of the body."""
        return ExecutionTimes.model_validate(
            self.model_dump(include=set(ExecutionTimes.model_fields))
        )


class GetStatusResponse(ExecutionTimes):
    """Body of ``GET /execution/{id}/status``."""

    execution_id: str
    query_id: int
    state: ExecutionStatus
    queue_position: int | None = None
    result_metadata: ResultMetadata | None = None


class ExecutionResult(DuneModel, Generic[RowT]):
    rows: list[RowT]
    metadata: ResultMetadata


class GetResultResponse(ExecutionTimes, Generic[RowT]):
    """Body of ``GET /execution/{id}/results`` with rows decoded as ``RowT``."""

    execution_id: str
    query_id: int
    state: ExecutionStatus
    result: ExecutionResult[RowT]

    def get_rows(self) -> list[RowT]:
        return self.result.rows


def results_model(row_type: Any) -> type[GetResultResponse[Any]]:
    """Parametrize the result body for a caller-supplied row type."""
    return GetResultResponse[row_type]  # type: ignore[valid-type]
