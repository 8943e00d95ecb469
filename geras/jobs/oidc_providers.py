"""Job that reports the number of IAM OIDC providers against the account quota."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from geras.jobmanager import Context
from geras.logger import Logger, NoopLogger
from geras.types import CloudWatchMetric, StandardUnit

OIDC_PROVIDERS_JOB_PREFIX = "oidcProviders"
CLOUDWATCH_METRIC_NAME = "oidcProviders"
SERVICE_QUOTA_CODE = "L-858F3967"
SERVICE_CODE = "iam"


def _region_of(client: Any) -> str:
    region = getattr(client, "region", None)
    if region is None:
        region = getattr(getattr(client, "meta", None), "region_name", None)
    return region or ""


def _percent(count: float, quota: float) -> float:
    if quota == 0:
        return math.nan if count == 0 else math.copysign(math.inf, count)
    return count / quota * 100


class OIDCProviderJob:
    """Counts the OpenID Connect providers and reports it as a percentage of the quota."""

    def __init__(self, iam_client: Any, service_quotas_client: Any, logger: Logger | None = None) -> None:
        self._iam = iam_client
        self._quotas = service_quotas_client
        self.logger = logger if logger is not None else NoopLogger()
        self.job_name = f"{OIDC_PROVIDERS_JOB_PREFIX}-{_region_of(iam_client)}"
        self.region = _region_of(service_quotas_client)

    def execute(self, ctx: Context | None = None) -> list[CloudWatchMetric]:
        """Return one metric holding the OIDC provider utilisation in percent."""
        response = self._iam.list_open_id_connect_providers()
        total = len(response.get("OpenIDConnectProviderList") or ())
        self.logger.debug("%s total : %d", self.job_name, total)

        quota_response = self._quotas.get_service_quota(QuotaCode=SERVICE_QUOTA_CODE, ServiceCode=SERVICE_CODE)
        quota = float(quota_response["Quota"]["Value"])
        self.logger.debug("%s quota : %v", self.job_name, quota)
        utilisation = _percent(float(total), quota)
        self.logger.info("%s utilization: %.2f%%", self.job_name, utilisation)

        return [
            CloudWatchMetric(
                name=CLOUDWATCH_METRIC_NAME,
                value=utilisation,
                unit=StandardUnit.PERCENT,
                timestamp=datetime.now(timezone.utc),
                metadata=None,
            )
        ]