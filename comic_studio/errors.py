# comic_studio/errors.py
from typing import Optional


class ComicStudioError(Exception):
    """Base class for generation errors."""


class ConfigurationError(ComicStudioError):
    """A run cannot start, e.g. a required credential is missing."""


class BackendError(ComicStudioError):
    """A single backend call failed (network, status, content type or payload)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PanelRenderError(ComicStudioError):
    """All attempts to render one panel failed."""

    def __init__(self, message: str, *, attempts: int, last_error: str, final_prompt: Optional[str] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.final_prompt = final_prompt


class RunCancelled(ComicStudioError):
    """The run's cancel token was set."""


class RetriesExhausted(ComicStudioError):
    """Every attempt of a retried call failed."""

    def __init__(self, label: str, *, attempts: int, last_error: Exception):
        super().__init__(f"{label} failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
