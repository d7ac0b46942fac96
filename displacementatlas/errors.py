"""Typed failure taxonomy for Displacement Atlas.

Only failures that a caller must react to are raised. Data-shape problems
(missing fields, placeholder numbers, unmapped country codes) never raise;
the normalizer degrades them to zero or the unknown sentinel instead.
"""

from __future__ import annotations

from typing import Optional


class AtlasError(RuntimeError):
    """Base class for every error raised by Displacement Atlas."""


class SourceFetchError(AtlasError):
    """A live fetch from an upstream source failed.

    Args:
        source: Source name ("unhcr", "unrwa", "iom", "acled").
        message: Human-readable failure description.
        status_code: HTTP status code, when the failure was an HTTP response.
    """

    def __init__(self, source: str, message: str, status_code: Optional[int] = None) -> None:
        self.source = source
        self.status_code = status_code
        suffix = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"{source}: {message}{suffix}")


class AuthenticationError(SourceFetchError):
    """Credentials were rejected, or login and refresh both failed."""


class RateLimitError(SourceFetchError):
    """The upstream signalled a rate limit and nothing had been fetched yet."""
