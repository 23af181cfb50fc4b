class MockServerError(Exception):
    """Base error for the mock server."""

    status = 500
    error_type = "server_error"


class ConfigError(MockServerError, ValueError):
    """Invalid server configuration."""


class BadRequest(MockServerError):
    """Request body could not be read or parsed."""

    status = 400
    error_type = "invalid_request_error"


class EncodingError(MockServerError):
    """A chunk payload could not be serialized."""


class StreamIOError(MockServerError):
    """Writing to the response failed, usually because the client went away."""
