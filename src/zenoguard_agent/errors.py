"""
Agent error taxonomy.

Collection errors stay inside a single collector, submission errors are
retried by the reporter, and only an authentication failure ends the process.
"""


class AgentError(Exception):
    """Base class for all agent errors."""


class ConfigError(AgentError):
    """Configuration is missing or invalid."""


class CollectionError(AgentError):
    """A collector could not produce its result."""

    def __init__(self, collector: str, message: str):
        super().__init__(f"{collector}: {message}")
        self.collector = collector


class SubmissionError(AgentError):
    """A report could not be delivered."""


class TransientSubmissionError(SubmissionError):
    """Network failure, timeout or non-200 answer. Retryable."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class EncodingError(TransientSubmissionError):
    """The server answered 200 with a body we could not parse."""


class UnauthorizedError(SubmissionError):
    """The server rejected the bearer token (HTTP 401)."""


class AgentAuthError(AgentError):
    """Raised by the reporter once the auth grace period has passed."""
