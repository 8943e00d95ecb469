"""Job that reports the number of EKS clusters against the regional quota."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from geras.jobmanager import Context
from geras.logger import Logger, NoopLogger
from geras.types import CloudWatchMetric, StandardUnit

LIST_CLUSTER_JOB_PREFIX = "listCluster"
CLOUDWATCH_METRIC_NAME = "totalEksClusters"
QUOTA_CODE = "L-1194D53C"
SERVICE_CODE = "eks"


def _region_of(client: Any) -> str:
    region = getattr(client, "region", None)
    if region is None:
        region = getattr(getattr(client, "meta", None), "region_name", None)
    return region or ""


def _percent(count: float, quota: float) -> float:
    if quota == 0:
        return math.nan if count == 0 else math.copysign(math.inf, count)
    return count / quota * 100


class ListClusterJob:
    """Counts the EKS clusters in the region and reports it as a percentage of the quota."""

    def __init__(self, eks_client: Any, service_quotas_client: Any, logger: Logger | None = None) -> None:
        self._eks = eks_client
        self._quotas = service_quotas_client
        self.logger = logger if logger is not None else NoopLogger()
        self.region = _region_of(eks_client)
        self.job_name = f"{LIST_CLUSTER_JOB_PREFIX}-{self.region}"

    def _count_clusters(self) -> int:
        total = 0
        token = None
        while True:
            request = {"nextToken": token} if token else {}
            page = self._eks.list_clusters(**request)
            total += len(page.get("clusters") or ())
            token = page.get("nextToken")
            if not token:
                return total

    def execute(self, ctx: Context | None = None) -> list[CloudWatchMetric]:
        """Return one metric holding the cluster utilisation in percent."""
        total = self._count_clusters()
        self.logger.debug("%s total : %d", self.job_name, total)

        response = self._quotas.get_service_quota(QuotaCode=QUOTA_CODE, ServiceCode=SERVICE_CODE)
        quota = float(response["Quota"]["Value"])
        self.logger.debug("%s quota value : %f", self.job_name, quota)
        utilisation = _percent(float(total), quota)
        self.logger.debug("%s utilization : %f", self.job_name, utilisation)

        return [
            CloudWatchMetric(
                name=CLOUDWATCH_METRIC_NAME,
                value=utilisation,
                unit=StandardUnit.PERCENT,
                timestamp=datetime.now(timezone.utc),
                metadata=None,
            )
        ]