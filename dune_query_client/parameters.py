"""Query parameters and their wire encoding."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Final

from dune_query_client.parse_utils import format_parameter_date

QUERY_PARAMETERS_KEY: Final[str] = "query_parameters"


class ParameterType(StrEnum):
    """Types of parameter a Dune query can declare."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    ENUM = "enum"


@dataclass(frozen=True)
class Parameter:
    """A named query parameter; ``value`` is always the string sent over the wire."""

    key: str
    ptype: ParameterType
    value: str

    @classmethod
    def text(cls, name: str, value: str) -> "Parameter":
        return cls(key=name, ptype=ParameterType.TEXT, value=str(value))

    @classmethod
    def number(cls, name: str, value: str | int | float) -> "Parameter":
        return cls(key=name, ptype=ParameterType.NUMBER, value=str(value))

    @classmethod
    def list(cls, name: str, value: str) -> "Parameter":
        """Constructor for List/Enum type parameters."""
        return cls(key=name, ptype=ParameterType.ENUM, value=str(value))

    @classmethod
    def date(cls, name: str, value: datetime) -> "Parameter":
        """Constructor for Date type parameters.

        Dune only accepts second precision, so any fraction is dropped.
        """
        return cls(key=name, ptype=ParameterType.DATE, value=format_parameter_date(value))


def encode_parameters(params: Iterable[Parameter] | None) -> dict[str, Any]:
    """Build the JSON body for an execute or cancel request.

    Args:
        params: Parameters for one query invocation, or None

    Returns:
        ``{"query_parameters": {name: value, ...}}``

    Raises:
        ValueError: If two parameters share a key
    """
    encoded: dict[str, str] = {}
    for param in params or ():
        if param.key in encoded:
            raise ValueError(f"Duplicate query parameter: {param.key}")
        encoded[param.key] = param.value
    return {QUERY_PARAMETERS_KEY: encoded}
