"""Distinguished errors raised by the Dune client."""


class DuneRequestError(Exception):
    """Root class for all errors raised by this library.

    Args:
        msg: Error message
        retryable: Whether the operation that caused this error can be retried
    """

    def __init__(self, *, msg: str, retryable: bool = False) -> None:
        super().__init__(msg)
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        """Whether this error indicates a retryable operation."""
        return self._retryable


class DuneAPIError(DuneRequestError):
    """Error reported by the Dune API itself in an ``{"error": ...}`` body.

    Known messages include "invalid API Key", "Query not found" and
    "The requested execution ID (ID: ...) is invalid.".

    Args:
        message: Error message returned by the service
    """

    def __init__(self, *, message: str) -> None:
        super().__init__(msg=message, retryable=False)
        self._message = message

    @property
    def message(self) -> str:
        """The error text returned by the service."""
        return self._message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DuneAPIError):
            return NotImplemented
        return self._message == other._message

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._message))

    def __repr__(self) -> str:
        return f"DuneAPIError(message={self._message!r})"


class DuneTransportError(DuneRequestError):
    """Connection, timeout or other HTTP-layer failure.

    Args:
        exception: The original exception being wrapped
    """

    def __init__(self, *, exception: BaseException) -> None:
        super().__init__(msg=f"{type(self).__name__}: {exception}", retryable=True)
        self._details = exception

    @property
    def details(self) -> BaseException:
        """The original exception that was wrapped."""
        return self._details


class DuneDecodeError(DuneRequestError):
    """Response body did not match the expected schema.

    Args:
        msg: Error message
        literal: Offending literal, when a single value could not be decoded
        exception: Underlying validation or JSON error, if any
    """

    def __init__(
        self,
        *,
        msg: str,
        literal: str | None = None,
        exception: Exception | None = None,
    ) -> None:
        super().__init__(msg=msg, retryable=False)
        self._literal = literal
        self._details = exception

    @property
    def literal(self) -> str | None:
        """The literal that could not be decoded, if known."""
        return self._literal

    @property
    def details(self) -> Exception | None:
        """The underlying validation or JSON error, if any."""
        return self._details


class MissingConfigError(DuneRequestError):
    """Error for missing required configuration keys.

    Args:
        config_key_name: Name of the missing configuration key
    """

    def __init__(self, *, config_key_name: str) -> None:
        super().__init__(msg=f"Missing required config key: {config_key_name}", retryable=False)
        self._config_key_name = config_key_name

    @property
    def config_key_name(self) -> str:
        return self._config_key_name
