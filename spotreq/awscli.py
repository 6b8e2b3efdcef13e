"""Provider gateway that drives the ``aws`` command-line tool."""

from __future__ import annotations

import json
import re
import shlex
import subprocess
from datetime import datetime, timezone
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

MIN_AWS_CLI_VERSION = (1, 10)
AWS_CLI_INSTALL_URL = "https://docs.aws.amazon.com/cli/latest/userguide/getting-started-install.html"

# aws --version prints e.g. "aws-cli/2.15.30 Python/3.11.8 Linux/6.5.0 ..."
_VERSION_RE = re.compile(r"aws-cli/(\d+)\.(\d+)")


def _timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class AwsCliGateway:
    """Gateway backed by ``aws ec2 ... --output json`` subprocesses.

    Each operation is a single blocking subprocess. A non-zero exit, empty
    output or output that is not a JSON document raises GatewayError; nothing
    is partially parsed.
    """

    def __init__(self, region: str | None = None, executable: str = "aws") -> None:
        self.region = region
        self.executable = executable

    def _command(self, operation: str, *args: str) -> list[str]:
        cmd = [self.executable, "ec2", operation, *args, "--output", "json"]
        if self.region:
            cmd.extend(["--region", self.region])
        return cmd

    def _run(self, operation: str, *args: str) -> Any:
        cmd = self._command(operation, *args)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            log_call(operation, shlex.join(cmd), repr(e))
            raise GatewayError(operation, f"cannot run {self.executable}: {e}") from e

        log_call(
            operation,
            shlex.join(cmd),
            {"returncode": result.returncode, "stdout": result.stdout, "stderr": result.stderr},
        )
        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit status {result.returncode}"
            raise GatewayError(operation, detail)
        if not result.stdout.strip():
            raise GatewayError(operation, "empty output")
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise GatewayError(operation, f"output is not JSON: {e}") from e

    def check_version(self) -> tuple[int, int]:
        """Fail unless the installed aws CLI is recent enough. Returns (major, minor)."""
        cmd = [self.executable, "--version"]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise GatewayError(
                "version", f"aws CLI not found, please install it from: {AWS_CLI_INSTALL_URL}"
            ) from e
        # aws CLI v1 printed its version on stderr
        output = f"{result.stdout} {result.stderr}"
        log_call("version", shlex.join(cmd), output)
        m = _VERSION_RE.search(output)
        if result.returncode != 0 or not m:
            raise GatewayError("version", f"cannot determine aws CLI version from {output.strip()!r}")
        version = (int(m.group(1)), int(m.group(2)))
        if version < MIN_AWS_CLI_VERSION:
            raise GatewayError(
                "version",
                f"aws CLI {version[0]}.{version[1]} is too old, "
                f"please reinstall from: {AWS_CLI_INSTALL_URL}",
            )
        return version

    def describe_images(self) -> list[Image]:
        return parse_images(self._run("describe-images", "--owners", "self"))

    def describe_key_pairs(self) -> list[KeyPair]:
        return parse_key_pairs(self._run("describe-key-pairs"))

    def describe_security_groups(self) -> list[SecurityGroup]:
        return parse_security_groups(self._run("describe-security-groups"))

    def describe_spot_price_history(
        self,
        instance_types: list[str],
        start: datetime,
        end: datetime,
        product_description: str,
    ) -> list[PriceSample]:
        doc = self._run(
            "describe-spot-price-history",
            "--instance-types", *instance_types,
            "--start-time", _timestamp(start),
            "--end-time", _timestamp(end),
            "--product-descriptions", product_description,
        )
        return parse_spot_price_history(doc)

    def request_spot_instance(self, spec: LaunchSpec) -> SpotRequestStatus:
        doc = self._run(
            "request-spot-instances",
            "--spot-price", format_price(spec.bid_price),
            "--instance-count", "1",
            "--type", "one-time",
            "--launch-specification", json.dumps(spec.to_launch_specification()),
        )
        return parse_spot_request(doc)
