"""Region validation and log stream naming."""

from __future__ import annotations

import os
import socket
from datetime import datetime, timezone

VALID_REGIONS = frozenset(
    {
        "us-east-1",
        "us-east-2",
        "us-west-1",
        "us-west-2",
        "af-south-1",
        "ap-east-1",
        "ap-south-1",
        "ap-northeast-1",
        "ap-northeast-2",
        "ap-northeast-3",
        "ap-southeast-1",
        "ap-southeast-2",
        "ca-central-1",
        "eu-central-1",
        "eu-west-1",
        "eu-west-2",
        "eu-west-3",
        "eu-north-1",
        "me-south-1",
        "sa-east-1",
    }
)


def is_valid_region(region: str) -> bool:
    """Return True if ``region`` is a known AWS region name."""
    return region in VALID_REGIONS


def make_stream_name() -> str:
    """Return the Lambda log stream name, or a UTC timestamp joined with the host name."""
    name = os.environ.get("AWS_LAMBDA_LOG_STREAM_NAME", "")
    if name:
        return name
    try:
        host = socket.gethostname()
    except OSError:
        host = ""
    now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y/%m/%d/%H/%M/%S") + f".{now.microsecond // 1000:03d}"
    return f"{stamp}-{host}"