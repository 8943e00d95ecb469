"""Event handlers: batching CloudTrail events from SQS and finishing scheduled quota runs."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol

from geras.logger import Logger, get as get_logger
from geras.types import CloudTrailEvent

CLOUDTRAIL_EMF_FILE_BATCHER_NIL_MSG = "cloudtrail emf file batcher is nil"
NAMESPACE_NOT_SET_MSG = "namespace is not set"

CLIENT_FACTORY_NIL_MSG = "client factory is nil"
CLOUDWATCH_LOG_GROUP_NOT_SET_MSG = "cloudwatch log group is not set"
CLOUDWATCH_LOG_STREAM_NOT_SET_MSG = "cloudwatch log stream is not set"
METRIC_NAMESPACE_NOT_SET_MSG = "metric namespace is not set"
REGIONAL_METRIC_BATCHERS_NIL_MSG = "regional cloudwatch metric batchers is nil"
JOB_MANAGER_NIL_MSG = "job manager is nil"
SERVICE_CONFIG_NIL_MSG = "service config is nil"


class HandlerConfigError(ValueError):
    """A handler was given an incomplete configuration."""


class EventHandler(Protocol):
    """Anything that handles one incoming event."""

    def handle_event(self, ctx: Any, event: Any) -> Any: ...


@dataclass
class SQSMessage:
    message_id: str = ""
    body: str = ""


@dataclass
class SQSEvent:
    records: list[SQSMessage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SQSEvent:
        """Build an event from the Lambda payload shape ``{"Records": [...]}``."""
        records = data.get("Records") or []
        return cls(
            records=[SQSMessage(message_id=r.get("messageId", ""), body=r.get("body", "")) for r in records]
        )


@dataclass(frozen=True)
class SQSBatchItemFailure:
    item_identifier: str


def log_and_return_error(err: BaseException, logger: Logger) -> BaseException:
    """Log ``err`` and hand it back so the caller can raise it."""
    logger.error("Handler error: %v", str(err))
    return err


class RateLimitHandler:
    """Feeds CloudTrail events arriving through SQS into a per-region EMF file batcher."""

    def __init__(self, cloudtrail_emf_file_batcher: Any, namespace: str, logger: Logger | None = None) -> None:
        log = logger if logger is not None else get_logger()
        if cloudtrail_emf_file_batcher is None:
            raise log_and_return_error(HandlerConfigError(CLOUDTRAIL_EMF_FILE_BATCHER_NIL_MSG), log)
        if not namespace:
            raise log_and_return_error(HandlerConfigError(NAMESPACE_NOT_SET_MSG), log)
        self.cloudtrail_emf_file_batcher = cloudtrail_emf_file_batcher
        self.namespace = namespace
        self.logger = log
        self.logger.info("RateLimitHandler initialized")

    def handle_event(self, ctx: Any, event: SQSEvent) -> list[SQSBatchItemFailure]:
        """Batch every decodable record; return the messages that failed to decode."""
        self.logger.info("Received %d records from SQS event", len(event.records))
        failures: list[SQSBatchItemFailure] = []
        for message in event.records:
            try:
                cloudtrail_event = CloudTrailEvent.from_json(message.body)
            except ValueError as err:
                self.logger.error("failed to unmarshal SQS message %s: %v", message.message_id, err)
                failures.append(SQSBatchItemFailure(item_identifier=message.message_id))
                continue
            self.cloudtrail_emf_file_batcher.add(ctx, cloudtrail_event.aws_region, cloudtrail_event)
            self.logger.debug(
                "added CloudTrail event to file batcher for region %s, message %s",
                cloudtrail_event.aws_region,
                message.message_id,
            )
        return failures


class ResourceQuotaHandler:
    """Handles the scheduled event by waiting for all jobs and metric batchers to finish."""

    def __init__(
        self,
        client_factory: Any,
        cloudwatch_log_group: str,
        cloudwatch_log_stream: str,
        namespace: str,
        regional_metric_batchers: Mapping[str, Any] | None,
        job_manager: Any,
        service_config: Any,
        logger: Logger | None = None,
    ) -> None:
        if client_factory is None:
            raise HandlerConfigError(CLIENT_FACTORY_NIL_MSG)
        if not cloudwatch_log_stream:
            raise HandlerConfigError(CLOUDWATCH_LOG_STREAM_NOT_SET_MSG)
        if not cloudwatch_log_group:
            raise HandlerConfigError(CLOUDWATCH_LOG_GROUP_NOT_SET_MSG)
        if not namespace:
            raise HandlerConfigError(METRIC_NAMESPACE_NOT_SET_MSG)
        if regional_metric_batchers is None:
            raise HandlerConfigError(REGIONAL_METRIC_BATCHERS_NIL_MSG)
        if job_manager is None:
            raise HandlerConfigError(JOB_MANAGER_NIL_MSG)
        if service_config is None:
            raise HandlerConfigError(SERVICE_CONFIG_NIL_MSG)
        self.client_factory = client_factory
        self.cloudwatch_log_group = cloudwatch_log_group
        self.cloudwatch_log_stream = cloudwatch_log_stream
        self.namespace = namespace
        self.regional_metric_batchers = regional_metric_batchers
        self.job_manager = job_manager
        self.service_config = service_config
        self.logger = logger if logger is not None else get_logger()

    def handle_event(self, ctx: Any, event: Any) -> None:
        self.logger.info("resource handler handling event %v", event)
        self.job_manager.wait()
        self.logger.info("all jobs completed")
        self.logger.info("waiting for cloudwatch metric batchers to complete")
        for metric_batcher in self.regional_metric_batchers.values():
            metric_batcher.batcher.wait()
        self.logger.info("cloudwatch metric emf batchers completed in all regions")
        self.logger.info("resource handler completed")


def handle_init_error(logger: Logger, err: BaseException) -> None:
    """Log a fatal start-up error and exit with status 1."""
    logger.error("error initializing service: %v", err)
    sys.exit(1)