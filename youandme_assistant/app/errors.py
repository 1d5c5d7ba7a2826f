"""Classified failures raised by the assistant core.

Every public operation either returns a well-formed result or raises one of
these. ``kind`` is stable and used by the HTTP layer to choose a status code.
"""
from typing import Optional


class AssistantError(Exception):
    kind: str = "internal"

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        # logged only, never returned to callers
        self.detail = detail


class ValidationError(AssistantError):
    """Client-caused condition; reported immediately and never retried."""
    kind = "validation"


class EmptyQueryError(ValidationError):
    def __init__(self):
        super().__init__("Query text must not be empty")


class InvalidReportRequestError(ValidationError):
    pass


class ExternalFetchError(AssistantError):
    """A collaborator was unavailable or did not answer in time."""
    kind = "external_fetch"


class MissingResourceError(AssistantError):
    """A locale key is missing even in English; a configuration defect."""
    kind = "resource_gap"

    def __init__(self, key: str, language: str):
        super().__init__(f"Missing locale resource '{key}'", detail=f"language={language}")
        self.key = key
        self.language = language


class ReportGenerationError(AssistantError):
    kind = "internal"
