"""Job that refreshes the Trusted Advisor check for gp3 storage usage."""

from __future__ import annotations

from typing import Any

from geras.jobmanager import Context
from geras.logger import Logger, NoopLogger
from geras.types import CloudWatchMetric

GP3_STORAGE_CHECK_ID = "dH7RR0l6J3"
GP3_JOB_PREFIX = "gp3Storage"


def _region_of(client: Any) -> str:
    region = getattr(client, "region", None)
    if region is None:
        region = getattr(getattr(client, "meta", None), "region_name", None)
    return region or ""


class Gp3StorageJob:
    """Asks Trusted Advisor to refresh its gp3 storage quota check; emits no metrics."""

    def __init__(self, support_client: Any, logger: Logger | None = None) -> None:
        self._support = support_client
        self.logger = logger if logger is not None else NoopLogger()
        self.region = _region_of(support_client)
        self.job_name = f"{GP3_JOB_PREFIX}-{self.region}"

    def execute(self, ctx: Context | None = None) -> list[CloudWatchMetric]:
        """Trigger the refresh and return no metrics."""
        response = self._support.refresh_trusted_advisor_check(checkId=GP3_STORAGE_CHECK_ID)
        status = (response or {}).get("status")
        self.logger.debug("%s refresh trusted advisor check status: %v", self.job_name, status)
        return []