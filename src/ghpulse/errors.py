from __future__ import annotations


class GhPulseError(Exception):
    """Base class for every error ghpulse reports to the user."""


class ApiError(GhPulseError):
    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AuthError(ApiError):
    pass


class RepoNotFoundError(ApiError):
    pass


class RateLimitError(ApiError):
    pass


class NetworkError(GhPulseError):
    pass
