"""Records exchanged between the gateway, selector, ranker and workflow."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Image:
    """A machine image owned by the caller."""

    image_id: str
    created: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class KeyPair:
    name: str
    fingerprint: str = ""


@dataclass(frozen=True, slots=True)
class SecurityGroup:
    group_id: str
    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class PriceSample:
    """One spot price observation."""

    instance_type: str
    zone: str
    price: float
    timestamp: str = ""


@dataclass(frozen=True, slots=True)
class RankedOffer:
    """Cheapest zone (and its averaged price) for one instance type."""

    instance_type: str
    zone: str
    price: float


@dataclass(frozen=True, slots=True)
class LaunchSpec:
    """Fully resolved one-time spot request."""

    image_id: str
    key_name: str
    security_group_id: str
    instance_type: str
    zone: str
    bid_price: float

    def to_launch_specification(self) -> dict:
        """Render the provider's ``LaunchSpecification`` document."""
        return {
            "ImageId": self.image_id,
            "KeyName": self.key_name,
            "SecurityGroupIds": [self.security_group_id],
            "InstanceType": self.instance_type,
            "Placement": {"AvailabilityZone": self.zone},
        }


@dataclass(frozen=True, slots=True)
class SpotRequestStatus:
    """What the provider said about a submitted spot request."""

    request_id: str
    state: str
    code: str
    message: str
