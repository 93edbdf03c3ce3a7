from typing import Any


class UCPRequestError(Exception):
    """A merchant call relayed through the proxy failed (transport or non-2xx status)."""

    def __init__(self, message: str, status: int | None = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class OrchestratorError(Exception):
    """The tool-calling loop could not produce a reply."""
