"""Run configuration, fixed before the workflow starts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from spotreq.exceptions import ConfigError

SPOTREQ_DIR = Path.home() / ".spotreq"

DEFAULT_KEY_PAIR = "AmazonKeyPair"
DEFAULT_SECURITY_GROUP = "open"
DEFAULT_INSTANCE_TYPES = r"\A[mt]\d\."
DEFAULT_PRODUCT = "Linux/UNIX"
DEFAULT_BID_MULTIPLIER = 1.25
# Low enough to be rejected for any spot request yet still syntactically valid
DEFAULT_TEST_PRICE = 0.001
DEFAULT_LOG_FILE = SPOTREQ_DIR / "diagnostics.log"

BACKENDS = ("cli", "sdk")


def _compile(name: str, pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ConfigError(f"Invalid {name} pattern {pattern!r}: {e}") from e


@dataclass(frozen=True)
class Config:
    """Immutable settings for one spotreq run.

    Patterns are regular expressions searched case-insensitively:
    ``key_pair_pattern`` against key pair names, ``security_group_pattern``
    against group id, name and description, ``instance_type_pattern`` against
    the instance type catalog.
    """

    key_pair_pattern: str = DEFAULT_KEY_PAIR
    security_group_pattern: str = DEFAULT_SECURITY_GROUP
    instance_type_pattern: str = DEFAULT_INSTANCE_TYPES
    product_description: str = DEFAULT_PRODUCT
    bid_multiplier: float = DEFAULT_BID_MULTIPLIER
    replay: bool = False
    use_test_price: bool = False
    test_price: float = DEFAULT_TEST_PRICE
    backend: str = "cli"
    region: str | None = None
    price_window: timedelta = timedelta(hours=1)
    log_file: Path = DEFAULT_LOG_FILE
    key_pair_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    security_group_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    instance_type_re: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.bid_multiplier <= 0:
            raise ConfigError(f"bid multiplier must be > 0, got {self.bid_multiplier}")
        if self.test_price <= 0:
            raise ConfigError(f"test price must be > 0, got {self.test_price}")
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"backend must be one of {', '.join(BACKENDS)}, got {self.backend!r}"
            )
        # frozen: compiled patterns are derived once here
        object.__setattr__(self, "key_pair_re", _compile("key pair", self.key_pair_pattern))
        object.__setattr__(
            self, "security_group_re",
            _compile("security group", self.security_group_pattern),
        )
        object.__setattr__(
            self, "instance_type_re",
            _compile("instance type", self.instance_type_pattern),
        )
        object.__setattr__(self, "log_file", Path(self.log_file).expanduser())

    @property
    def fixed_bid(self) -> float | None:
        """Bid to use regardless of spot price, or None for the computed bid."""
        return self.test_price if self.use_test_price else None
