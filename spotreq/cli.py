"""spotreq CLI -- powered by Typer."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from spotreq.awscli import AwsCliGateway
from spotreq.config import (
    DEFAULT_BID_MULTIPLIER,
    DEFAULT_INSTANCE_TYPES,
    DEFAULT_KEY_PAIR,
    DEFAULT_LOG_FILE,
    DEFAULT_PRODUCT,
    DEFAULT_SECURITY_GROUP,
    Config,
)
from spotreq.diagnostics import Diagnostics
from spotreq.ec2 import Boto3Gateway, Gateway
from spotreq.exceptions import SPOT_CONSOLE_URL, ConfigError
from spotreq.pricing import INSTANCE_TYPES
from spotreq.replay import ReplayGateway
from spotreq.workflow import SpotRequestWorkflow, rank, show_offers

app = typer.Typer(
    name="spotreq",
    help="Request an AWS spot instance running your latest AMI, picked from a price-ranked menu.",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


def make_gateway(config: Config) -> Gateway:
    """Gateway for the configured backend; replay mode never touches AWS."""
    if config.replay:
        return ReplayGateway()
    if config.backend == "sdk":
        return Boto3Gateway(region=config.region)
    gateway = AwsCliGateway(region=config.region)
    gateway.check_version()
    return gateway


def _build_config(**kwargs) -> Config:
    try:
        return Config(**kwargs)
    except ConfigError as e:
        raise typer.BadParameter(str(e)) from e


def _enable_verbose() -> None:
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setLevel(logging.DEBUG)
    logger = logging.getLogger("spotreq")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def _run_logged(config: Config, func: Callable[[], T]) -> T:
    """Run *func* with a diagnostics file that survives only a failure."""
    try:
        diag = Diagnostics.open(config.log_file)
    except OSError as e:
        console.print(f"[red bold]Error:[/red bold] cannot write diagnostics file: {escape(str(e))}")
        raise typer.Exit(code=1)

    with diag:
        try:
            return func()
        except Exception as e:
            logging.getLogger("spotreq").exception("run failed")
            console.print(f"[red bold]Error:[/red bold] {escape(str(e))}")
            console.print(f"[red bold]Please keep the diagnostics file:[/red bold] {diag.path}")
            raise typer.Exit(code=1)


@app.command()
def request(
    key_pair: str = typer.Option(DEFAULT_KEY_PAIR, "--key-pair", "-k", envvar="SPOTREQ_KEY_PAIR", help="Regex matching exactly one key pair name"),
    security_group: str = typer.Option(DEFAULT_SECURITY_GROUP, "--security-group", "-g", envvar="SPOTREQ_SECURITY_GROUP", help="Regex matching exactly one security group id, name or description"),
    instance_types: str = typer.Option(DEFAULT_INSTANCE_TYPES, "--instance-types", "-t", envvar="SPOTREQ_INSTANCE_TYPES", help="Regex selecting the instance types to price"),
    product: str = typer.Option(DEFAULT_PRODUCT, "--product", envvar="SPOTREQ_PRODUCT", help="Product description, e.g. Linux/UNIX or Windows"),
    multiplier: float = typer.Option(DEFAULT_BID_MULTIPLIER, "--multiplier", "-m", envvar="SPOTREQ_BID_MULTIPLIER", help="Bid price = multiplier x average spot price"),
    backend: str = typer.Option("cli", "--backend", envvar="SPOTREQ_BACKEND", help="cli (aws command) or sdk (boto3)"),
    region: Optional[str] = typer.Option(None, "--region", envvar="AWS_REGION", help="AWS region (default: aws configuration)"),
    replay: bool = typer.Option(False, "--replay", envvar="SPOTREQ_REPLAY", help="Replay recorded responses instead of calling AWS"),
    test_price: bool = typer.Option(False, "--test-price", envvar="SPOTREQ_TEST_PRICE", help="Bid a price too low to ever be fulfilled"),
    log_file: Path = typer.Option(DEFAULT_LOG_FILE, "--log-file", envvar="SPOTREQ_LOG_FILE", help="Diagnostics file, kept only on failure"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo diagnostics to stderr"),
) -> None:
    """Pick an instance type from the price-ranked menu and request a spot instance."""
    config = _build_config(
        key_pair_pattern=key_pair,
        security_group_pattern=security_group,
        instance_type_pattern=instance_types,
        product_description=product,
        bid_multiplier=multiplier,
        backend=backend,
        region=region,
        replay=replay,
        use_test_price=test_price,
        log_file=log_file,
    )
    if verbose:
        _enable_verbose()

    result = _run_logged(
        config, lambda: SpotRequestWorkflow(config, make_gateway(config)).run(),
    )
    if not result.aborted:
        console.print(
            f"[dim]Cancel unwanted spot requests promptly at: {SPOT_CONSOLE_URL}[/dim]"
        )


@app.command()
def prices(
    instance_types: str = typer.Option(DEFAULT_INSTANCE_TYPES, "--instance-types", "-t", envvar="SPOTREQ_INSTANCE_TYPES", help="Regex selecting the instance types to price"),
    product: str = typer.Option(DEFAULT_PRODUCT, "--product", envvar="SPOTREQ_PRODUCT", help="Product description, e.g. Linux/UNIX or Windows"),
    backend: str = typer.Option("cli", "--backend", envvar="SPOTREQ_BACKEND", help="cli (aws command) or sdk (boto3)"),
    region: Optional[str] = typer.Option(None, "--region", envvar="AWS_REGION", help="AWS region (default: aws configuration)"),
    replay: bool = typer.Option(False, "--replay", envvar="SPOTREQ_REPLAY", help="Replay recorded responses instead of calling AWS"),
    log_file: Path = typer.Option(DEFAULT_LOG_FILE, "--log-file", envvar="SPOTREQ_LOG_FILE", help="Diagnostics file, kept only on failure"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Echo diagnostics to stderr"),
) -> None:
    """Show the cheapest zone and price per instance type over the last hour."""
    config = _build_config(
        instance_type_pattern=instance_types,
        product_description=product,
        backend=backend,
        region=region,
        replay=replay,
        log_file=log_file,
    )
    if verbose:
        _enable_verbose()

    with console.status("Checking spot price history..."):
        offers = _run_logged(config, lambda: rank(config, make_gateway(config)))
    show_offers(offers, title=f"Spot Prices ({config.product_description})")


@app.command()
def types(
    instance_types: str = typer.Option(DEFAULT_INSTANCE_TYPES, "--instance-types", "-t", envvar="SPOTREQ_INSTANCE_TYPES", help="Regex selecting the instance types to price"),
) -> None:
    """List known instance types, marking those the pattern selects."""
    config = _build_config(instance_type_pattern=instance_types)
    table = Table(title="Instance Types", show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("", style="bold yellow")
    selected = 0
    for itype in INSTANCE_TYPES:
        match = bool(config.instance_type_re.search(itype))
        selected += match
        table.add_row(itype, "<-- selected" if match else "")
    console.print(table)
    console.print(
        f"[bold]{selected}[/bold] of {len(INSTANCE_TYPES)} types match "
        f"[bold]{escape(config.instance_type_pattern)}[/bold]"
    )


if __name__ == "__main__":
    app()
