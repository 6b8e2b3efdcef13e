"""Tests for the aws CLI gateway (subprocess mocked)."""

from __future__ import annotations

import json
import subprocess
from unittest.mock import patch

import pytest

from spotreq.awscli import AwsCliGateway
from spotreq.exceptions import GatewayError
from spotreq.models import KeyPair, LaunchSpec

from tests.conftest import NOW


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestCommands:
    def test_describe_key_pairs(self):
        doc = {"KeyPairs": [{"KeyName": "AmazonKeyPair", "KeyFingerprint": "b5"}]}
        with patch("spotreq.awscli.subprocess.run", return_value=_completed(json.dumps(doc))) as run:
            assert AwsCliGateway().describe_key_pairs() == [KeyPair("AmazonKeyPair", "b5")]
        run.assert_called_once_with(
            ["aws", "ec2", "describe-key-pairs", "--output", "json"],
            capture_output=True, text=True,
        )

    def test_region_is_passed(self):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed('{"Images": []}')) as run:
            AwsCliGateway(region="eu-west-1").describe_images()
        cmd = run.call_args.args[0]
        assert cmd[:5] == ["aws", "ec2", "describe-images", "--owners", "self"]
        assert cmd[-2:] == ["--region", "eu-west-1"]

    def test_price_history_window_and_types(self):
        doc = {"SpotPriceHistory": [
            {"InstanceType": "t1.micro", "AvailabilityZone": "us-east-1c", "SpotPrice": "0.003700"},
        ]}
        start = NOW.replace(hour=19)
        with patch("spotreq.awscli.subprocess.run", return_value=_completed(json.dumps(doc))) as run:
            samples = AwsCliGateway().describe_spot_price_history(
                ["t1.micro", "m1.small"], start, NOW, "Linux/UNIX",
            )
        assert samples[0].price == 0.0037
        cmd = run.call_args.args[0]
        assert cmd == [
            "aws", "ec2", "describe-spot-price-history",
            "--instance-types", "t1.micro", "m1.small",
            "--start-time", "2016-11-12T19:00:00Z",
            "--end-time", "2016-11-12T20:00:00Z",
            "--product-descriptions", "Linux/UNIX",
            "--output", "json",
        ]

    def test_request_spot_instance_embeds_identifiers(self):
        doc = {"SpotInstanceRequests": [{
            "SpotInstanceRequestId": "sir-6rgg45ij",
            "State": "open",
            "Status": {"Code": "pending-evaluation", "Message": "pending evaluation."},
        }]}
        spec = LaunchSpec("ami-f0a6bd98", "AmazonKeyPair", "sg-915543f9", "t1.micro", "us-east-1c", 0.025)
        with patch("spotreq.awscli.subprocess.run", return_value=_completed(json.dumps(doc))) as run:
            status = AwsCliGateway().request_spot_instance(spec)

        assert status.message == "pending evaluation."
        cmd = run.call_args.args[0]
        assert cmd[cmd.index("--spot-price") + 1] == "0.025000"
        assert cmd[cmd.index("--type") + 1] == "one-time"
        launch = json.loads(cmd[cmd.index("--launch-specification") + 1])
        assert launch == {
            "ImageId": "ami-f0a6bd98",
            "KeyName": "AmazonKeyPair",
            "SecurityGroupIds": ["sg-915543f9"],
            "InstanceType": "t1.micro",
            "Placement": {"AvailabilityZone": "us-east-1c"},
        }


class TestFailures:
    def test_non_zero_exit(self):
        result = _completed(stderr="An error occurred (AuthFailure)", returncode=255)
        with patch("spotreq.awscli.subprocess.run", return_value=result):
            with pytest.raises(GatewayError, match="AuthFailure") as exc_info:
                AwsCliGateway().describe_images()
        assert exc_info.value.operation == "describe-images"

    def test_non_zero_exit_without_stderr(self):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed(returncode=2)):
            with pytest.raises(GatewayError, match="exit status 2"):
                AwsCliGateway().describe_images()

    def test_empty_output(self):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed("  \n")):
            with pytest.raises(GatewayError, match="empty output"):
                AwsCliGateway().describe_key_pairs()

    def test_malformed_output(self):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed("Images: none")):
            with pytest.raises(GatewayError, match="not JSON"):
                AwsCliGateway().describe_images()

    def test_wrong_document(self):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed('{"KeyPairs": []}')):
            with pytest.raises(GatewayError, match="no SecurityGroups list"):
                AwsCliGateway().describe_security_groups()

    def test_missing_executable(self):
        with patch("spotreq.awscli.subprocess.run", side_effect=FileNotFoundError("aws")):
            with pytest.raises(GatewayError, match="cannot run aws"):
                AwsCliGateway().describe_images()


class TestCheckVersion:
    @pytest.mark.parametrize("output,expected", [
        ("aws-cli/2.15.30 Python/3.11.8 Linux/6.5.0 exe/x86_64", (2, 15)),
        ("aws-cli/1.10.1 Python/2.7.12 Linux/4.4.0 botocore/1.4.1", (1, 10)),
    ])
    def test_recent_enough(self, output, expected):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed(output)):
            assert AwsCliGateway().check_version() == expected

    def test_version_on_stderr(self):
        with patch("spotreq.awscli.subprocess.run",
                   return_value=_completed(stderr="aws-cli/1.16.0 Python/2.7")):
            assert AwsCliGateway().check_version() == (1, 16)

    def test_too_old(self):
        with patch("spotreq.awscli.subprocess.run",
                   return_value=_completed("aws-cli/1.9.20 Python/2.7.10")):
            with pytest.raises(GatewayError, match="too old"):
                AwsCliGateway().check_version()

    def test_not_installed(self):
        with patch("spotreq.awscli.subprocess.run", side_effect=FileNotFoundError("aws")):
            with pytest.raises(GatewayError, match="not found"):
                AwsCliGateway().check_version()

    def test_unrecognised_output(self):
        with patch("spotreq.awscli.subprocess.run", return_value=_completed("hello")):
            with pytest.raises(GatewayError, match="cannot determine"):
                AwsCliGateway().check_version()
