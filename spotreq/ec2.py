"""EC2 provider gateway: protocol, response parsing and the boto3 backend."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from rich.pretty import pretty_repr

from spotreq.exceptions import GatewayError
from spotreq.models import (
    Image,
    KeyPair,
    LaunchSpec,
    PriceSample,
    SecurityGroup,
    SpotRequestStatus,
)
from spotreq.pricing import format_price

logger = logging.getLogger("spotreq.ec2")


class Gateway(Protocol):
    """Read-only queries plus the one billable call against EC2."""

    def describe_images(self) -> list[Image]: ...

    def describe_key_pairs(self) -> list[KeyPair]: ...

    def describe_security_groups(self) -> list[SecurityGroup]: ...

    def describe_spot_price_history(
        self,
        instance_types: list[str],
        start: datetime,
        end: datetime,
        product_description: str,
    ) -> list[PriceSample]: ...

    def request_spot_instance(self, spec: LaunchSpec) -> SpotRequestStatus: ...


# -- Response parsing (identical shapes from the aws CLI and boto3) --


def _records(operation: str, doc: Any, field: str) -> list[dict]:
    if not isinstance(doc, dict) or not isinstance(doc.get(field), list):
        raise GatewayError(operation, f"response has no {field} list")
    return doc[field]


def parse_images(doc: Any) -> list[Image]:
    try:
        return [
            Image(
                image_id=i["ImageId"],
                created=str(i["CreationDate"]),
                description=i.get("Description") or "",
            )
            for i in _records("describe-images", doc, "Images")
        ]
    except (KeyError, TypeError) as e:
        raise GatewayError("describe-images", f"malformed image record: {e}") from e


def parse_key_pairs(doc: Any) -> list[KeyPair]:
    try:
        return [
            KeyPair(name=k["KeyName"], fingerprint=k.get("KeyFingerprint") or "")
            for k in _records("describe-key-pairs", doc, "KeyPairs")
        ]
    except (KeyError, TypeError) as e:
        raise GatewayError("describe-key-pairs", f"malformed key pair record: {e}") from e


def parse_security_groups(doc: Any) -> list[SecurityGroup]:
    try:
        return [
            SecurityGroup(
                group_id=g["GroupId"],
                name=g.get("GroupName") or "",
                description=g.get("Description") or "",
            )
            for g in _records("describe-security-groups", doc, "SecurityGroups")
        ]
    except (KeyError, TypeError) as e:
        raise GatewayError(
            "describe-security-groups", f"malformed security group record: {e}",
        ) from e


def parse_spot_price_history(doc: Any) -> list[PriceSample]:
    try:
        return [
            PriceSample(
                instance_type=p["InstanceType"],
                zone=p["AvailabilityZone"],
                price=float(p["SpotPrice"]),
                timestamp=str(p.get("Timestamp", "")),
            )
            for p in _records("describe-spot-price-history", doc, "SpotPriceHistory")
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise GatewayError(
            "describe-spot-price-history", f"malformed price record: {e}",
        ) from e


def parse_spot_request(doc: Any) -> SpotRequestStatus:
    requests = _records("request-spot-instances", doc, "SpotInstanceRequests")
    if not requests:
        raise GatewayError("request-spot-instances", "no spot instance request returned")
    try:
        req = requests[0]
        status = req.get("Status") or {}
        return SpotRequestStatus(
            request_id=req.get("SpotInstanceRequestId", ""),
            state=req.get("State", ""),
            code=status.get("Code", ""),
            message=status["Message"],
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise GatewayError("request-spot-instances", f"malformed spot request: {e}") from e


def log_call(operation: str, params: Any, result: Any) -> None:
    """Record a provider call and its raw result before interpretation."""
    logger.debug("%s %s -> %s", operation, pretty_repr(params), pretty_repr(result))


# -- boto3 backend --


class Boto3Gateway:
    """Gateway backed by a boto3 EC2 client."""

    def __init__(self, region: str | None = None, client: Any = None) -> None:
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        self.client = client or boto3.client("ec2", region_name=self.region)

    def _call(self, operation: str, method: str, **kwargs: Any) -> dict:
        try:
            resp = getattr(self.client, method)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            log_call(operation, kwargs, repr(e))
            raise GatewayError(operation, str(e)) from e
        resp = dict(resp)
        resp.pop("ResponseMetadata", None)
        log_call(operation, kwargs, resp)
        return resp

    def describe_images(self) -> list[Image]:
        return parse_images(self._call("describe-images", "describe_images", Owners=["self"]))

    def describe_key_pairs(self) -> list[KeyPair]:
        return parse_key_pairs(self._call("describe-key-pairs", "describe_key_pairs"))

    def describe_security_groups(self) -> list[SecurityGroup]:
        return parse_security_groups(
            self._call("describe-security-groups", "describe_security_groups")
        )

    def describe_spot_price_history(
        self,
        instance_types: list[str],
        start: datetime,
        end: datetime,
        product_description: str,
    ) -> list[PriceSample]:
        kwargs = dict(
            InstanceTypes=instance_types,
            StartTime=start,
            EndTime=end,
            ProductDescriptions=[product_description],
        )
        history: list[dict] = []
        try:
            paginator = self.client.get_paginator("describe_spot_price_history")
            for page in paginator.paginate(**kwargs):
                history.extend(page.get("SpotPriceHistory", []))
        except (ClientError, BotoCoreError) as e:
            log_call("describe-spot-price-history", kwargs, repr(e))
            raise GatewayError("describe-spot-price-history", str(e)) from e
        doc = {"SpotPriceHistory": history}
        log_call("describe-spot-price-history", kwargs, doc)
        return parse_spot_price_history(doc)

    def request_spot_instance(self, spec: LaunchSpec) -> SpotRequestStatus:
        resp = self._call(
            "request-spot-instances",
            "request_spot_instances",
            SpotPrice=format_price(spec.bid_price),
            InstanceCount=1,
            Type="one-time",
            LaunchSpecification=spec.to_launch_specification(),
        )
        return parse_spot_request(resp)
