"""Failures the console reports to the user.

Every exception carries the message shown to the user as its first argument;
`main` maps each class onto an HTTP status once.
"""

from typing import Optional

from schemas import ErrorMap


class ConsoleError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordValidationError(ConsoleError):
    """The record failed client-side validation. Nothing was sent."""
    status_code = 422

    def __init__(self, errors: ErrorMap, message: str = "Please correct the errors in the form."):
        super().__init__(message)
        self.errors = dict(errors)


class MissingCredentialsError(ConsoleError):
    status_code = 401

    def __init__(self, message: str = "No token found. Please log in."):
        super().__init__(message)


class ApiError(ConsoleError):
    """The school API could not be reached or answered with an error."""
    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        # client errors from upstream are passed through, everything else is a bad gateway
        if upstream_status is not None and 400 <= upstream_status < 500:
            self.status_code = upstream_status


class ConfirmationRequiredError(ConsoleError):
    status_code = 409


class RequestInFlightError(ConsoleError):
    status_code = 409


class RecordNotFoundError(ConsoleError):
    status_code = 404
