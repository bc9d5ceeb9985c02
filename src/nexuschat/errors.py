"""Error taxonomy for nexuschat.

Every failure that can occur during an exchange derives from ChatError.
Whether an error is worth another attempt is decided by the error itself
through is_retryable(), so the retry policy never has to know about
transports or HTTP status codes.
"""


class ChatError(Exception):
    """Base class for chat errors."""

    def is_retryable(self) -> bool:
        """Override in subclasses to control retry behavior."""
        return False


class TransportFailure(ChatError):
    """Network, connection or service error from a single attempt."""

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        status_code: int | None = None
    ):
        super().__init__(f"Transport failure: {message}")
        self.retryable = retryable
        self.status_code = status_code

    def is_retryable(self) -> bool:
        return self.retryable


class MalformedResponse(ChatError):
    """The service answered but the reply lacked the expected shape (non-retryable)."""

    def __init__(self, message: str):
        super().__init__(f"Malformed response: {message}")


class EmptyReply(MalformedResponse):
    """The service answered without a reply text."""

    def __init__(self, message: str = "no reply text in response"):
        super().__init__(message)


class RetryExhausted(ChatError):
    """Every attempt of a retried operation failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class InvalidInput(ChatError):
    """Empty submission, or submission while an exchange is in flight."""

    def __init__(self, message: str):
        super().__init__(f"Invalid input: {message}")


class ConfigError(ChatError, ValueError):
    """Invalid or incomplete configuration."""
