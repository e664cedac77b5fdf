"""Errors raised by the duty generator and lifecycle manager.

Each carries the user-facing message and the HTTP status the API answers with.
"""


class RosterError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RosterError):
    status_code = 422


class AuthorizationError(RosterError):
    status_code = 403


class TimingError(RosterError):
    status_code = 409


class NotFoundError(RosterError):
    status_code = 404
