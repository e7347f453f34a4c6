import os
from typing import Annotated, Final

from dotenv import find_dotenv, load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from dune_query_client.errors import MissingConfigError

DEFAULT_BASE_URL: Final[str] = "https://api.dune.com/api/v1"
DEFAULT_API_KEY_HEADER: Final[str] = "x-dune-api-key"
DEFAULT_PING_FREQUENCY: Final[float] = 5.0
DEFAULT_REQUEST_TIMEOUT: Final[float] = 30.0
DEFAULT_CONNECT_TIMEOUT: Final[float] = 10.0

PingFrequency = Annotated[float, Field(ge=0, le=3600)]

API_KEY_ENV: Final[str] = "DUNE_API_KEY"
BASE_URL_ENV: Final[str] = "DUNE_API_BASE_URL"
PING_FREQUENCY_ENV: Final[str] = "DUNE_PING_FREQUENCY"
REQUEST_TIMEOUT_ENV: Final[str] = "DUNE_REQUEST_TIMEOUT"


class DuneClientConfig(BaseModel):
    """Configuration for the Dune client."""

    api_key: str = Field(min_length=1, repr=False, description="Value of the API key header")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Root of the Dune API")
    api_key_header: str = Field(default=DEFAULT_API_KEY_HEADER)
    ping_frequency: PingFrequency = DEFAULT_PING_FREQUENCY
    request_timeout: Annotated[float, Field(gt=0)] = DEFAULT_REQUEST_TIMEOUT
    connect_timeout: Annotated[float, Field(gt=0)] = DEFAULT_CONNECT_TIMEOUT

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must include protocol (http:// or https://)")
        return v.rstrip("/")

    @classmethod
    def from_env(cls, *, dotenv: bool = True, api_key: str | None = None) -> "DuneClientConfig":
        """Build configuration from environment variables.

        Args:
            dotenv: Load a ``.env`` file into the environment first
            api_key: Key to use instead of ``DUNE_API_KEY``

        Returns:
            Client configuration

        Raises:
            MissingConfigError: If no key is given and ``DUNE_API_KEY`` is not set
        """
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        api_key = api_key or os.getenv(API_KEY_ENV)
        if not api_key:
            raise MissingConfigError(config_key_name=API_KEY_ENV)

        overrides: dict[str, str] = {}
        for env_name, field_name in (
            (BASE_URL_ENV, "base_url"),
            (PING_FREQUENCY_ENV, "ping_frequency"),
            (REQUEST_TIMEOUT_ENV, "request_timeout"),
        ):
            value = os.getenv(env_name)
            if value:
                overrides[field_name] = value

        if overrides:
            logger.debug(f"Dune config overrides from environment: {sorted(overrides)}")
        return cls.model_validate({"api_key": api_key, **overrides})
