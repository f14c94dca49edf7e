from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class AuthorizationError(AppError):
    pass


class ValidationError(AppError):
    pass


class Unavailable(AppError):
    """Store or channel could not be reached, timed out, or failed server-side."""


class SessionClosedError(AppError):
    pass


class SendFailedError(AppError):
    """A send was rolled back; ``draft`` holds the text to restore."""

    def __init__(self, draft: str, cause: BaseException) -> None:
        self.draft = draft
        self.cause = cause
        super().__init__(getattr(cause, "detail", "") or str(cause) or type(cause).__name__)
