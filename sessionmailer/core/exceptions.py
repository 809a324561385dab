"""Exception hierarchy.

Only ``ValidationError`` ever reaches the caller as a failed request.
``FetchError`` is per-URL and is turned into a fallback session by the
orchestrator. ``ComposeError`` signals a programming defect.
"""

from enum import Enum


class SessionMailerError(Exception):
    """Base exception for sessionmailer."""


class ValidationError(SessionMailerError):
    """The request itself is unusable (no URLs, foreign domain, malformed URL)."""

    status_code = 400


class FetchErrorKind(str, Enum):
    TIMEOUT = "timeout"
    NAVIGATION_ERROR = "navigation_error"
    HTTP_ERROR = "http_error"


class FetchError(SessionMailerError):
    """Retrieving or rendering a single URL failed."""

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind = FetchErrorKind.NAVIGATION_ERROR,
        url: str = "",
        status_code: int = 0,
    ):
        super().__init__(message)
        self.kind = kind
        self.url = url
        self.status_code = status_code


class BrowserPoolExhaustedError(FetchError):
    """No browser slot became free in time."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message, kind=FetchErrorKind.TIMEOUT, url=url)


class ComposeError(SessionMailerError):
    """Template composition received input outside its documented domain."""
