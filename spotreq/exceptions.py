"""Spotreq exceptions."""

from __future__ import annotations

SPOT_CONSOLE_URL = "https://console.aws.amazon.com/ec2sp/v1/spot/home"


class SpotReqError(Exception):
    """Base class for every fatal spotreq failure."""


class ConfigError(SpotReqError, ValueError):
    """A configuration value is unusable (bad regex, non-positive multiplier...)."""


class GatewayError(SpotReqError):
    """A provider call failed or returned output that could not be parsed.

    Attributes:
        operation: Provider operation name, e.g. ``describe-images``.
        detail: Raw stderr, exit status or parser message.
    """

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class NoRecordsAvailableError(SpotReqError):
    """The account has no images, key pairs or security groups at all."""

    def __init__(self, what: str):
        super().__init__(
            f"No {what} available, please logon to AWS and create one"
        )
        self.what = what


class AmbiguousMatchError(SpotReqError):
    """A filter pattern matched zero or several records where one was required.

    Attributes:
        what: Kind of record being resolved.
        pattern: The pattern that failed to resolve.
        candidates: Names listed to the operator so the pattern can be fixed.
        matched: How many records matched.
    """

    def __init__(self, what: str, pattern: str, candidates: list[str], matched: int):
        listing = ", ".join(candidates) if candidates else "(none)"
        super().__init__(
            f"No unique match for {what} {pattern!r} ({matched} matched), "
            f"please choose one of: {listing} and set the {what} pattern accordingly"
        )
        self.what = what
        self.pattern = pattern
        self.candidates = candidates
        self.matched = matched


class EmptyCandidateSetError(SpotReqError):
    """No instance types matched, or no spot price history was returned.

    Attributes:
        choices: Valid choices the operator can pick from, if any.
    """

    def __init__(self, message: str, choices: list[str] | None = None):
        super().__init__(message)
        self.choices = choices or []


class SubmissionError(SpotReqError):
    """The spot request itself failed; follow up manually in the console."""

    def __init__(self, detail: str):
        super().__init__(
            f"Error requesting spot instance ({detail}), please go to: {SPOT_CONSOLE_URL}"
        )
        self.detail = detail
