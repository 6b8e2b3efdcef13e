"""Instance type catalog, spot price ranking and bid computation."""

from __future__ import annotations

import logging
import math
import re
from collections import defaultdict

from rich.pretty import pretty_repr

from spotreq.exceptions import EmptyCandidateSetError
from spotreq.models import PriceSample, RankedOffer

logger = logging.getLogger("spotreq.pricing")

INSTANCE_TYPES: tuple[str, ...] = (
    # general purpose
    "t1.micro",
    "t2.nano", "t2.micro", "t2.small", "t2.medium", "t2.large",
    "t3.nano", "t3.micro", "t3.small", "t3.medium", "t3.large",
    "t4g.medium",
    "m1.small", "m1.medium", "m1.large", "m1.xlarge",
    "m3.medium", "m3.large", "m3.xlarge", "m3.2xlarge",
    "m4.large", "m4.xlarge", "m4.2xlarge", "m4.4xlarge", "m4.10xlarge", "m4.16xlarge",
    "m5.large", "m5.xlarge", "m5.2xlarge", "m5.4xlarge", "m5.8xlarge",
    # memory optimised
    "m2.xlarge", "m2.2xlarge", "m2.4xlarge",
    "cr1.8xlarge",
    "r3.large", "r3.xlarge", "r3.2xlarge", "r3.4xlarge", "r3.8xlarge",
    "r5.large", "r5.xlarge", "r5.2xlarge", "r5.4xlarge", "r5.8xlarge",
    "x1.16xlarge", "x1.32xlarge",
    # storage optimised
    "i2.xlarge", "i2.2xlarge", "i2.4xlarge", "i2.8xlarge",
    "hi1.4xlarge", "hs1.8xlarge",
    "d2.xlarge", "d2.2xlarge", "d2.4xlarge", "d2.8xlarge",
    # compute optimised
    "c1.medium", "c1.xlarge",
    "c3.large", "c3.xlarge", "c3.2xlarge", "c3.4xlarge", "c3.8xlarge",
    "c4.large", "c4.xlarge", "c4.2xlarge", "c4.4xlarge", "c4.8xlarge",
    "c6a.xlarge", "c6a.2xlarge", "c6a.4xlarge", "c6a.8xlarge", "c6a.12xlarge", "c6a.16xlarge",
    "c6g.xlarge", "c6g.2xlarge", "c6g.4xlarge", "c6g.8xlarge", "c6g.12xlarge", "c6g.16xlarge",
    "c7g.8xlarge",
    "cc1.4xlarge", "cc2.8xlarge",
    # accelerated
    "g2.2xlarge", "g2.8xlarge",
    "cg1.4xlarge",
    "p2.xlarge", "p2.8xlarge", "p2.16xlarge",
)


def candidate_instance_types(pattern: re.Pattern[str] | str) -> list[str]:
    """Catalog entries matching *pattern*, in catalog order.

    Raises EmptyCandidateSetError (listing the whole catalog) if none match.
    """
    if isinstance(pattern, str):
        pattern = re.compile(pattern, re.IGNORECASE)
    types = [t for t in INSTANCE_TYPES if pattern.search(t)]
    logger.debug("candidate_instance_types %s", pretty_repr(types))
    if not types:
        raise EmptyCandidateSetError(
            f"No instance type matches {pattern.pattern!r}, please choose from: "
            + " ".join(INSTANCE_TYPES),
            choices=list(INSTANCE_TYPES),
        )
    return types


def truncate_price(price: float) -> float:
    """Truncate (not round) to 4 decimal places."""
    # round away binary noise first so 0.0029 stays 0.0029
    return math.floor(round(price * 1e4, 6)) / 1e4


def average_prices(samples: list[PriceSample]) -> dict[str, dict[str, float]]:
    """Average price per instance type and zone, truncated to 4 decimals."""
    grouped: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    for sample in samples:
        grouped[sample.instance_type][sample.zone].append(sample.price)
    logger.debug("spot prices by type and zone %s", pretty_repr(grouped))

    averages = {
        itype: {
            zone: truncate_price(sum(prices) / len(prices))
            for zone, prices in zones.items()
        }
        for itype, zones in grouped.items()
    }
    logger.debug("average spot prices %s", pretty_repr(averages))
    return averages


def rank_offers(samples: list[PriceSample]) -> list[RankedOffer]:
    """Cheapest zone per instance type, ordered by price then type name.

    Zones with equal averaged prices resolve to the lexicographically first.
    """
    if not samples:
        raise EmptyCandidateSetError("No spot history available")

    offers = []
    for itype, zones in average_prices(samples).items():
        zone, price = min(zones.items(), key=lambda zp: (zp[1], zp[0]))
        offers.append(RankedOffer(itype, zone, price))
    offers.sort(key=lambda o: (o.price, o.instance_type))
    logger.debug("ranked offers %s", pretty_repr(offers))
    return offers


def bid_price(
    offer: RankedOffer, multiplier: float, test_price: float | None = None
) -> float:
    """Price to bid for *offer*: ``multiplier * offer.price`` unless *test_price* is given."""
    if test_price is not None:
        return test_price
    return multiplier * offer.price


def format_price(price: float) -> str:
    """Render a bid the way the provider expects it (decimal dollars)."""
    return f"{price:.6f}"
