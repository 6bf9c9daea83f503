from __future__ import annotations


class CreativeEngineError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(CreativeEngineError):
    """A project or pipeline item does not exist."""

    status_code = 404


class ValidationError(CreativeEngineError):
    """Input rejected before any mutation took place."""

    status_code = 400


class UpstreamGenerationError(CreativeEngineError):
    """The text or image provider failed, or is not configured."""

    status_code = 502

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
