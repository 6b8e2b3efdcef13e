"""Provider gateway that replays recorded EC2 responses.

Used for dry runs: nothing is sent to AWS, and the spot request returns the
recorded ``pending-evaluation`` answer.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from spotreq.ec2 import (
    log_call,
    parse_images,
    parse_key_pairs,
    parse_security_groups,
    parse_spot_price_history,
    parse_spot_request,
)
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

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


class ReplayGateway:
    """Gateway answering every operation from ``<operation>.json`` fixtures."""

    def __init__(self, fixtures_dir: Path = FIXTURES_DIR) -> None:
        self.fixtures_dir = Path(fixtures_dir)

    def _load(self, operation: str, params: Any = None) -> Any:
        path = self.fixtures_dir / f"{operation}.json"
        try:
            doc = json.loads(path.read_text())
        except OSError as e:
            raise GatewayError(operation, f"no recorded response: {e}") from e
        except json.JSONDecodeError as e:
            raise GatewayError(operation, f"recorded response is not JSON: {e}") from e
        log_call(f"{operation} (replay)", params, doc)
        return doc

    def describe_images(self) -> list[Image]:
        return parse_images(self._load("describe-images", {"Owners": ["self"]}))

    def describe_key_pairs(self) -> list[KeyPair]:
        return parse_key_pairs(self._load("describe-key-pairs"))

    def describe_security_groups(self) -> list[SecurityGroup]:
        return parse_security_groups(self._load("describe-security-groups"))

    def describe_spot_price_history(
        self,
        instance_types: list[str],
        start: datetime,
        end: datetime,
        product_description: str,
    ) -> list[PriceSample]:
        params = {
            "InstanceTypes": instance_types,
            "StartTime": start.isoformat(),
            "EndTime": end.isoformat(),
            "ProductDescriptions": [product_description],
        }
        samples = parse_spot_price_history(self._load("describe-spot-price-history", params))
        # The recording spans many types; answer only what was asked for
        wanted = set(instance_types)
        return [s for s in samples if s.instance_type in wanted]

    def request_spot_instance(self, spec: LaunchSpec) -> SpotRequestStatus:
        params = {
            "SpotPrice": format_price(spec.bid_price),
            "Type": "one-time",
            "LaunchSpecification": spec.to_launch_specification(),
        }
        return parse_spot_request(self._load("request-spot-instances", params))
