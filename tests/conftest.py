"""Shared fixtures for spotreq tests."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from spotreq.config import Config
from spotreq.exceptions import GatewayError
from spotreq.models import (
    Image,
    KeyPair,
    PriceSample,
    SecurityGroup,
    SpotRequestStatus,
)

NOW = datetime(2016, 11, 12, 20, 0, 0, tzinfo=timezone.utc)

PENDING = SpotRequestStatus(
    request_id="sir-6rgg45ij",
    state="open",
    code="pending-evaluation",
    message="Your Spot request has been submitted for review, and is pending evaluation.",
)


class FakeGateway:
    """In-memory gateway that records every call."""

    def __init__(
        self,
        images=None,
        key_pairs=None,
        groups=None,
        samples=None,
        status=PENDING,
        submit_error=None,
    ):
        self.images = images if images is not None else [
            Image("ami-f0a6bd97", "2015-05-21T08:11:43.000Z", "Ubuntu 2015-05-21"),
            Image("ami-f0a6bd98", "2015-05-22T08:11:43.000Z", "Ubuntu 2015-05-22"),
        ]
        self.key_pairs = key_pairs if key_pairs is not None else [
            KeyPair("AmazonKeyPair", "b5:b6:f2"),
        ]
        self.groups = groups if groups is not None else [
            SecurityGroup("sg-67d7cb0f", "AWS-OpsWorks-Blank-Server",
                          "AWS OpsWorks blank server - do not change or delete"),
            SecurityGroup("sg-915543f9", "open", "open access"),
        ]
        self.samples = samples if samples is not None else [
            PriceSample("m1.xlarge", "us-east-1b", 0.0332),
            PriceSample("m1.xlarge", "us-east-1b", 0.0330),
            PriceSample("t1.micro", "us-east-1c", 0.0037),
            PriceSample("t1.micro", "us-east-1b", 0.0041),
            PriceSample("m3.medium", "us-east-1e", 0.0143),
        ]
        self.status = status
        self.submit_error = submit_error
        self.calls: list[tuple] = []
        self.submitted = []

    def describe_images(self):
        self.calls.append(("describe_images",))
        return list(self.images)

    def describe_key_pairs(self):
        self.calls.append(("describe_key_pairs",))
        return list(self.key_pairs)

    def describe_security_groups(self):
        self.calls.append(("describe_security_groups",))
        return list(self.groups)

    def describe_spot_price_history(self, instance_types, start, end, product_description):
        self.calls.append(
            ("describe_spot_price_history", tuple(instance_types), start, end, product_description)
        )
        wanted = set(instance_types)
        return [s for s in self.samples if s.instance_type in wanted]

    def request_spot_instance(self, spec):
        self.calls.append(("request_spot_instance", spec))
        self.submitted.append(spec)
        if self.submit_error is not None:
            raise self.submit_error
        return self.status


class Answers:
    """Scripted replies for the selection prompt."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts: list[str] = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def config(tmp_path):
    return Config(log_file=tmp_path / "diagnostics.log")


@pytest.fixture
def gateway_error():
    return GatewayError("request-spot-instances", "An error occurred (MaxSpotInstanceCountExceeded)")
