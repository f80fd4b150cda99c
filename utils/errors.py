#!/usr/bin/env python3

"""Error Types Module.

Exceptions raised while resolving a play against the recording search service.

Outcomes seen by callers:
    - SkipSignal: the pre-check found nothing worth resolving. Not a failure.
    - NoMatchError: the search ran but no candidate cleared the score gate or
      survived release filtering.
    - UpstreamError (and subclasses): a host failed. Host-level failures are
      absorbed by the host pool's failover and only surface once every host
      has been tried, or when a host returns a malformed response.
    - ConfigError: stage or application configuration is invalid. Raised at
      setup time, before any network call.
"""

from __future__ import annotations

from typing import Any


class ResolutionError(Exception):
    """Base class for every resolution outcome that is not an enriched play."""


class SkipSignal(ResolutionError):
    """Raised when no desired metadata is missing and searching is not forced."""


class NoMatchError(ResolutionError):
    """Raised when the search completed without an acceptable candidate."""

    def __init__(self, reason: str, best_score: int | None = None):
        super().__init__(reason)
        self.reason = reason
        self.best_score = best_score


class UpstreamError(ResolutionError):
    """Raised when a search host fails.

    ``show_stopper`` marks a host that is fundamentally broken (bad credentials,
    wrong URL) as opposed to a transient failure such as a timeout or a 5xx.
    """

    def __init__(
        self,
        message: str,
        *,
        host: str | None = None,
        status: int | None = None,
        show_stopper: bool = False,
        response_body: Any = None,
    ):
        super().__init__(message)
        self.host = host
        self.status = status
        self.show_stopper = show_stopper
        self.response_body = response_body

    def __str__(self) -> str:
        message = super().__str__()
        if self.host:
            message = f"[{self.host}] {message}"
        if self.status is not None:
            message = f"{message} (status {self.status})"
        return message


class MalformedResponseError(UpstreamError):
    """Raised when a host answers with a body that cannot be used. Never retried."""


class AllHostsFailedError(UpstreamError):
    """Raised once every configured host has been tried and failed."""

    def __init__(self, errors: dict[str, Exception]):
        super().__init__("All hosts failed")
        self.errors = errors


class ConfigError(ValueError):
    """Raised for malformed configuration."""
