"""spotreq -- Request an AWS spot instance from your latest AMI."""

from spotreq.config import Config
from spotreq.exceptions import (
    AmbiguousMatchError,
    ConfigError,
    EmptyCandidateSetError,
    GatewayError,
    NoRecordsAvailableError,
    SpotReqError,
    SubmissionError,
)
from spotreq.pricing import rank_offers
from spotreq.workflow import SpotRequestWorkflow

__all__ = [
    "AmbiguousMatchError",
    "Config",
    "ConfigError",
    "EmptyCandidateSetError",
    "GatewayError",
    "NoRecordsAvailableError",
    "SpotReqError",
    "SpotRequestWorkflow",
    "SubmissionError",
    "rank_offers",
]
