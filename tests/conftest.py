"""Pytest fixtures: an in-process fake of the Dune execution API."""

from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Final

import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from dune_query_client import DuneClient, DuneClientConfig

VALID_KEY: Final[str] = "test-api-key"
UNKNOWN_QUERY_ID: Final[int] = 4294967295
SUBMITTED_AT: Final[str] = "2024-01-02T03:04:05.123456789Z"
ENDED_AT: Final[str] = "2024-01-02T03:04:09.5Z"

SAMPLE_ROWS: Final[list[dict[str, Any]]] = [
    {
        "text_field": "Plain Text",
        "number_field": "3.141592653589793",
        "date_field": "2022-05-04 00:00:00.000",
        "list_field": "Option 1",
    },
    {
        "text_field": "Other Text",
        "number_field": "2.5",
        "date_field": "2022-05-05 12:30:00.000",
        "list_field": "Option 2",
    },
]
SAMPLE_COLUMNS: Final[list[str]] = ["text_field", "number_field", "date_field", "list_field"]


@dataclass
class FakeExecution:
    query_id: int
    states: deque[str]
    state: str = "QUERY_STATE_PENDING"
    cancelled: bool = False


@dataclass
class FakeDune:
    """Scriptable stand-in for the Dune API.

    ``scripts`` maps a query id to the states successive status checks report.
    """

    scripts: dict[int, list[str]] = field(default_factory=dict)
    rows: list[dict[str, Any]] = field(default_factory=lambda: list(SAMPLE_ROWS))
    executions: dict[str, FakeExecution] = field(default_factory=dict)
    requests: list[tuple[str, str, Any]] = field(default_factory=list)
    base_url: str = ""
    broken_status_body: bool = False

    def build_app(self) -> web.Application:
        app = web.Application()
        app.add_routes(
            [
                web.post("/api/v1/query/{query_id}/execute", self.execute),
                web.post("/api/v1/execution/{job_id}/cancel", self.cancel),
                web.get("/api/v1/execution/{job_id}/status", self.status),
                web.get("/api/v1/execution/{job_id}/results", self.results),
            ]
        )
        return app

    def _unauthorized(self, request: web.Request) -> web.Response | None:
        if request.headers.get("x-dune-api-key") != VALID_KEY:
            return web.json_response({"error": "invalid API Key"}, status=401)
        return None

    def _lookup(self, request: web.Request) -> FakeExecution | web.Response:
        job_id = request.match_info["job_id"]
        execution = self.executions.get(job_id)
        if execution is None:
            return web.json_response(
                {"error": f"The requested execution ID (ID: {job_id}) is invalid."}, status=400
            )
        return execution

    def _times(self, execution: FakeExecution) -> dict[str, Any]:
        times: dict[str, Any] = {"submitted_at": SUBMITTED_AT}
        if execution.state != "QUERY_STATE_PENDING":
            times["execution_started_at"] = SUBMITTED_AT
        if execution.state in ("QUERY_STATE_COMPLETED", "QUERY_STATE_FAILED"):
            times["execution_ended_at"] = ENDED_AT
            times["expires_at"] = ENDED_AT
        if execution.state == "QUERY_STATE_CANCELLED":
            times["cancelled_at"] = ENDED_AT
        return times

    def _metadata(self, rows: list[dict[str, Any]]) -> dict[str, Any]:
        return {
            "column_names": SAMPLE_COLUMNS,
            "result_set_bytes": 512,
            "total_row_count": len(rows),
            "datapoint_count": len(rows) * len(SAMPLE_COLUMNS),
            "pending_time_millis": 12,
            "execution_time_millis": 345,
        }

    async def execute(self, request: web.Request) -> web.Response:
        if (denied := self._unauthorized(request)) is not None:
            return denied
        body = await request.json()
        query_id = int(request.match_info["query_id"])
        self.requests.append(("execute", str(query_id), body))
        if query_id == UNKNOWN_QUERY_ID:
            return web.json_response({"error": "Query not found"}, status=404)

        job_id = f"01JOB{len(self.executions):04d}"
        script = self.scripts.get(query_id, ["QUERY_STATE_EXECUTING", "QUERY_STATE_COMPLETED"])
        self.executions[job_id] = FakeExecution(query_id=query_id, states=deque(script))
        return web.json_response({"execution_id": job_id, "state": "QUERY_STATE_PENDING"})

    async def cancel(self, request: web.Request) -> web.Response:
        if (denied := self._unauthorized(request)) is not None:
            return denied
        self.requests.append(("cancel", request.match_info["job_id"], await request.json()))
        execution = self._lookup(request)
        if isinstance(execution, web.Response):
            return execution
        execution.cancelled = True
        return web.json_response({"success": True})

    async def status(self, request: web.Request) -> web.Response:
        if (denied := self._unauthorized(request)) is not None:
            return denied
        self.requests.append(("status", request.match_info["job_id"], None))
        execution = self._lookup(request)
        if isinstance(execution, web.Response):
            return execution
        if self.broken_status_body:
            return web.Response(text="<html>oops</html>", status=502)

        if execution.cancelled:
            execution.state = "QUERY_STATE_CANCELLED"
        elif execution.states:
            execution.state = execution.states.popleft()
        body: dict[str, Any] = {
            "execution_id": request.match_info["job_id"],
            "query_id": execution.query_id,
            "state": execution.state,
            **self._times(execution),
        }
        if execution.state == "QUERY_STATE_PENDING":
            body["queue_position"] = 1
        if execution.state == "QUERY_STATE_COMPLETED":
            body["result_metadata"] = self._metadata(self.rows)
        return web.json_response(body)

    async def results(self, request: web.Request) -> web.Response:
        if (denied := self._unauthorized(request)) is not None:
            return denied
        self.requests.append(("results", request.match_info["job_id"], None))
        execution = self._lookup(request)
        if isinstance(execution, web.Response):
            return execution

        body: dict[str, Any] = {
            "execution_id": request.match_info["job_id"],
            "query_id": execution.query_id,
            "state": execution.state,
            **self._times(execution),
        }
        if execution.state == "QUERY_STATE_FAILED":
            body["error"] = {"type": "FAILED_TYPE_EXECUTION_FAILED", "message": "timeout"}
            return web.json_response(body)

        rows = self.rows if execution.state == "QUERY_STATE_COMPLETED" else []
        body["result"] = {"rows": rows, "metadata": self._metadata(rows)}
        return web.json_response(body)

    def calls(self, kind: str) -> list[tuple[str, str, Any]]:
        return [call for call in self.requests if call[0] == kind]


@pytest_asyncio.fixture
async def fake_dune() -> AsyncIterator[FakeDune]:
    """Start the fake API on a local port."""
    fake = FakeDune()
    server = TestServer(fake.build_app())
    await server.start_server()
    fake.base_url = str(server.make_url("/api/v1"))
    try:
        yield fake
    finally:
        await server.close()


@pytest_asyncio.fixture
async def dune(fake_dune: FakeDune) -> AsyncIterator[DuneClient]:
    """Client pointed at the fake API, polling without delay."""
    config = DuneClientConfig(api_key=VALID_KEY, base_url=fake_dune.base_url, ping_frequency=0)
    async with DuneClient(config=config) as client:
        yield client
