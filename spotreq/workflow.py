"""SpotRequestWorkflow -- resolve, rank, ask, then request one spot instance."""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from spotreq.config import Config
from spotreq.ec2 import Gateway
from spotreq.exceptions import GatewayError, SubmissionError
from spotreq.models import (
    Image,
    KeyPair,
    LaunchSpec,
    RankedOffer,
    SecurityGroup,
    SpotRequestStatus,
)
from spotreq.pricing import bid_price, candidate_instance_types, format_price, rank_offers
from spotreq.selector import latest_image, select_key_pair, select_security_group

console = Console()
logger = logging.getLogger("spotreq.workflow")

PROMPT = "Enter number of instance type to request (above) or just hit enter to abort: "
OFFER_HEADER = "Number  Type                    Price   Zone"

_NUMBER_RE = re.compile(r"\d+")


class Stage(enum.Enum):
    INIT = "init"
    RESOLVED_IMAGE = "resolved-image"
    RESOLVED_KEY_PAIR = "resolved-key-pair"
    RESOLVED_SECURITY_GROUP = "resolved-security-group"
    RANKED_OFFERS = "ranked-offers"
    AWAITING_SELECTION = "awaiting-selection"
    ABORTED = "aborted"
    SUBMITTING = "submitting"
    REPORTED = "reported"
    FAILED = "failed"


_NEXT: dict[Stage, tuple[Stage, ...]] = {
    Stage.INIT: (Stage.RESOLVED_IMAGE,),
    Stage.RESOLVED_IMAGE: (Stage.RESOLVED_KEY_PAIR,),
    Stage.RESOLVED_KEY_PAIR: (Stage.RESOLVED_SECURITY_GROUP,),
    Stage.RESOLVED_SECURITY_GROUP: (Stage.RANKED_OFFERS,),
    Stage.RANKED_OFFERS: (Stage.AWAITING_SELECTION,),
    Stage.AWAITING_SELECTION: (Stage.ABORTED, Stage.SUBMITTING),
    Stage.SUBMITTING: (Stage.REPORTED,),
    Stage.ABORTED: (),
    Stage.REPORTED: (),
    Stage.FAILED: (),
}


@dataclass
class WorkflowResult:
    """Outcome of a run that did not fail."""

    stage: Stage
    offers: list[RankedOffer] = field(default_factory=list)
    launch_spec: LaunchSpec | None = None
    status: SpotRequestStatus | None = None

    @property
    def aborted(self) -> bool:
        return self.stage is Stage.ABORTED


def parse_selection(answer: str | None, count: int) -> int | None:
    """1-based menu index from the operator's answer, or None to abort.

    Anything but a whole number in ``[1, count]`` aborts, including end of input.
    """
    if answer is None:
        return None
    answer = answer.strip()
    if not _NUMBER_RE.fullmatch(answer):
        return None
    number = int(answer)
    if 1 <= number <= count:
        return number
    return None


def format_offer_row(number: int, offer: RankedOffer) -> str:
    """Fixed-width plain text menu row, as written to the diagnostics log."""
    return f"{number:03d}     {offer.instance_type:<20.20}  {offer.price:8.4f}  {offer.zone:.16}"


def price_window(config: Config, now: datetime | None = None) -> tuple[datetime, datetime]:
    end = now or datetime.now(timezone.utc)
    return end - config.price_window, end


def rank(config: Config, gateway: Gateway, now: datetime | None = None) -> list[RankedOffer]:
    """Ranked offers for the configured instance types over the trailing price window."""
    types = candidate_instance_types(config.instance_type_re)
    start, end = price_window(config, now)
    samples = gateway.describe_spot_price_history(
        types, start, end, config.product_description,
    )
    return rank_offers(samples)


def show_offers(offers: list[RankedOffer], title: str = "Spot Prices") -> None:
    """Print the numbered offer menu and copy it to the diagnostics log."""
    table = Table(title=title, show_header=True)
    table.add_column("Number", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Zone")
    logger.info(OFFER_HEADER)
    for number, offer in enumerate(offers, start=1):
        table.add_row(
            f"{number:03d}",
            offer.instance_type[:20],
            f"{offer.price:8.4f}",
            offer.zone[:16],
        )
        logger.info(format_offer_row(number, offer))
    console.print(table)


def _console_ask(prompt: str) -> str:
    return console.input(f"[yellow bold]{escape(prompt)}[/yellow bold]")


class SpotRequestWorkflow:
    """Request a one-time spot instance running the caller's latest AMI.

    Each stage happens once; a workflow object cannot be run twice, so the
    spot request is submitted at most once per confirmed selection.
    """

    def __init__(
        self,
        config: Config,
        gateway: Gateway,
        ask: Callable[[str], str] | None = None,
        now: datetime | None = None,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.ask = ask or _console_ask
        self.now = now
        self.stage = Stage.INIT

    def run(self) -> WorkflowResult:
        if self.stage is not Stage.INIT:
            raise RuntimeError(f"workflow already ran (stage {self.stage.value})")
        try:
            return self._run()
        except Exception:
            self.stage = Stage.FAILED
            raise

    # -- Internal --

    def _advance(self, stage: Stage) -> None:
        if stage not in _NEXT[self.stage]:
            raise RuntimeError(f"invalid transition {self.stage.value} -> {stage.value}")
        logger.debug("stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _say(self, label: str, value: str, detail: str = "") -> None:
        logger.info("%s%s%s", label, value, detail)
        console.print(f"{label}[green bold]{escape(value)}[/green bold]{escape(detail)}")

    def _run(self) -> WorkflowResult:
        image = self._resolve_image()
        key_pair = self._resolve_key_pair()
        group = self._resolve_security_group()

        offers = rank(self.config, self.gateway, self.now)
        self._advance(Stage.RANKED_OFFERS)
        show_offers(offers)

        self._advance(Stage.AWAITING_SELECTION)
        number = parse_selection(self._prompt(), len(offers))
        if number is None:
            self._advance(Stage.ABORTED)
            logger.info("No spot instance requested")
            console.print("[red bold]No spot instance requested[/red bold]")
            return WorkflowResult(Stage.ABORTED, offers=offers)

        offer = offers[number - 1]
        spec = LaunchSpec(
            image_id=image.image_id,
            key_name=key_pair.name,
            security_group_id=group.group_id,
            instance_type=offer.instance_type,
            zone=offer.zone,
            bid_price=bid_price(offer, self.config.bid_multiplier, self.config.fixed_bid),
        )
        logger.debug("launch spec %r", spec)

        self._advance(Stage.SUBMITTING)
        status = self._submit(spec)
        self._advance(Stage.REPORTED)
        logger.info("%s", status.message)
        console.print(f"[yellow bold]{escape(status.message)}[/yellow bold]")
        return WorkflowResult(Stage.REPORTED, offers=offers, launch_spec=spec, status=status)

    def _resolve_image(self) -> Image:
        image = latest_image(self.gateway.describe_images())
        self._advance(Stage.RESOLVED_IMAGE)
        self._say(
            "Image         : ", image.image_id,
            f" created at {image.created} - {image.description}",
        )
        return image

    def _resolve_key_pair(self) -> KeyPair:
        key_pair = select_key_pair(self.gateway.describe_key_pairs(), self.config.key_pair_re)
        self._advance(Stage.RESOLVED_KEY_PAIR)
        self._say("Key pair      : ", key_pair.name)
        return key_pair

    def _resolve_security_group(self) -> SecurityGroup:
        group = select_security_group(
            self.gateway.describe_security_groups(), self.config.security_group_re,
        )
        self._advance(Stage.RESOLVED_SECURITY_GROUP)
        self._say("Security group: ", group.group_id, f" - {group.description}")
        return group

    def _prompt(self) -> str | None:
        try:
            answer = self.ask(PROMPT)
        except (EOFError, KeyboardInterrupt):
            answer = None
        logger.info("selection %r", answer)
        return answer

    def _submit(self, spec: LaunchSpec) -> SpotRequestStatus:
        bid = format_price(spec.bid_price)
        with console.status(
            f"Requesting [bold]{spec.instance_type}[/bold] in {spec.zone} at ${bid}/hr..."
        ):
            try:
                return self.gateway.request_spot_instance(spec)
            except GatewayError as e:
                raise SubmissionError(str(e)) from e
