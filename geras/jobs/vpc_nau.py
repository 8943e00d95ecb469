"""Job that reports Network Address Usage utilisation for each VPC."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Protocol

from geras.jobmanager import Context
from geras.logger import Logger, NoopLogger
from geras.types import CloudWatchMetric, StandardUnit

VPC_NAU_JOB_PREFIX = "vpcNAU"
CLOUDWATCH_METRIC_NAME = "vpcNAU"
QUOTA_CODE = "L-BB24F6E5"
SERVICE_CODE = "vpc"


class _Calculator(Protocol):
    region: str

    def calculate_vpc_nau(self) -> dict[str, int]: ...


def _ratio(units: float, quota: float) -> float:
    if quota == 0:
        if units == 0:
            return math.nan
        return math.copysign(math.inf, units)
    return units / quota


class VPCNAUJob:
    """Emits one metric per VPC: its NAU total divided by the regional NAU quota."""

    def __init__(self, nau_calculator: _Calculator, service_quotas_client: Any, logger: Logger | None = None) -> None:
        self._calculator = nau_calculator
        self._quotas = service_quotas_client
        self.logger = logger if logger is not None else NoopLogger()
        self.region = nau_calculator.region
        self.job_name = f"{VPC_NAU_JOB_PREFIX}-{self.region}"

    def execute(self, ctx: Context | None = None) -> list[CloudWatchMetric]:
        """Compute the per-VPC utilisation metrics, ordered by VPC id."""
        usage = self._calculator.calculate_vpc_nau()
        now = datetime.now(timezone.utc)
        response = self._quotas.get_service_quota(QuotaCode=QUOTA_CODE, ServiceCode=SERVICE_CODE)
        quota = float(response["Quota"]["Value"])

        metrics = []
        for vpc_id in sorted(usage):
            units = usage[vpc_id]
            self.logger.debug("%s : vpc %s units %d, quota value %v", self.job_name, vpc_id, units, quota)
            utilisation = _ratio(float(units), quota)
            metrics.append(
                CloudWatchMetric(
                    name=CLOUDWATCH_METRIC_NAME,
                    value=utilisation,
                    unit=StandardUnit.PERCENT,
                    timestamp=now,
                    metadata={"vpc": vpc_id},
                )
            )
            self.logger.debug("%s : added metric for VPC=%s → nau utilization=%v", self.job_name, vpc_id, utilisation)
        return metrics