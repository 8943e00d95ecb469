"""Job that reports network interface usage against the regional quota."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from geras.jobmanager import Context
from geras.logger import Logger, NoopLogger
from geras.types import CloudWatchMetric, StandardUnit

NETWORK_INTERFACE_JOB_PREFIX = "networkInterfaces"
CLOUDWATCH_METRIC_NAME = "networkInterfaces"
QUOTA_CODE = "L-DF5E4CA3"
SERVICE_CODE = "vpc"


def _region_of(client: Any) -> str:
    region = getattr(client, "region", None)
    if region is None:
        region = getattr(getattr(client, "meta", None), "region_name", None)
    return region or ""


def _percent(count: float, quota: float) -> float:
    if quota == 0:
        return math.nan if count == 0 else math.copysign(math.inf, count)
    return count / quota * 100


class NetworkInterfaceJob:
    """Counts every network interface in the region and reports it as a percentage of the quota."""

    def __init__(self, ec2_client: Any, service_quotas_client: Any, logger: Logger | None = None) -> None:
        self._ec2 = ec2_client
        self._quotas = service_quotas_client
        self.logger = logger if logger is not None else NoopLogger()
        self.region = _region_of(ec2_client)
        self.job_name = f"{NETWORK_INTERFACE_JOB_PREFIX}-{self.region}"

    def _count_interfaces(self) -> int:
        total = 0
        token = None
        while True:
            request = {"NextToken": token} if token else {}
            page = self._ec2.describe_network_interfaces(**request)
            total += len(page.get("NetworkInterfaces") or ())
            token = page.get("NextToken")
            if not token:
                return total

    def execute(self, ctx: Context | None = None) -> list[CloudWatchMetric]:
        """Return one metric holding the interface utilisation in percent."""
        total = self._count_interfaces()
        self.logger.debug("%s total count : %v", self.job_name, total)

        response = self._quotas.get_service_quota(QuotaCode=QUOTA_CODE, ServiceCode=SERVICE_CODE)
        quota = float(response["Quota"]["Value"])
        self.logger.debug("%s quota value : %v", self.job_name, quota)
        utilisation = _percent(float(total), quota)
        self.logger.debug("%s utilization %.2f%%", self.job_name, utilisation)

        return [
            CloudWatchMetric(
                name=CLOUDWATCH_METRIC_NAME,
                value=utilisation,
                unit=StandardUnit.PERCENT,
                timestamp=datetime.now(timezone.utc),
                metadata=None,
            )
        ]