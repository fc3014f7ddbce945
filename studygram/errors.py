# studygram/errors.py
"""
Error taxonomy shared by services and routes.

Services raise these; `main.create_app` registers a handler that renders
them as `{"error": message}` (plus `details` when present) with the
matching status code.
"""
from __future__ import annotations

from typing import Optional


class StudyGramError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequest(StudyGramError):
    """A required field is missing or invalid."""

    status_code = 400


class NotFound(StudyGramError):
    status_code = 404


class ServiceMisconfigured(StudyGramError):
    """An upstream credential is missing or rejected."""

    status_code = 500


class UpstreamFailure(StudyGramError):
    """Any other failure from a third-party API."""

    status_code = 500
