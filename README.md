# geras

geras measures how much of a cloud account's service quotas is in use and
turns the result into metric records. It is a library: you supply the cloud
clients, it runs the jobs and hands back `CloudWatchMetric` values.

## Modules

- `geras.logger`: a levelled logger. `init(level, out)` configures the
  process-wide `StdLogger` (only the first call counts), `get()` returns it
  and `reset()` forgets it. Messages use printf-style verbs such as `%v`,
  `%d`, `%s`, `%q` and `%.2f`. `NoopLogger` writes nothing.
- `geras.types`: `CloudTrailEvent` (with `from_json`, `from_dict`,
  `to_dict`, `to_json`), `CloudWatchMetric`, `StandardUnit`,
  `ScheduledEvent`, `ErrorRecord` and `EMFRecord`.
- `geras.utils`: `is_valid_region(region)` and `make_stream_name()`, which
  returns `AWS_LAMBDA_LOG_STREAM_NAME` if set, otherwise a UTC timestamp
  joined with the host name.
- `geras.serviceconfig`: `TopLevelServiceConfig` and `ServiceConfig`,
  `load_config_from_file(path, logger)`, `load_config_from_s3(bucket, key,
  client)` and the validators `validate_quota_metric_config` and
  `validate_rate_limit_config`. Unreadable or malformed configuration raises
  `ConfigLoadError`; unsupported names raise a subclass of
  `InvalidMetricError`.
- `geras.jobmanager`: `Context`, a cancellation signal with optional
  deadline, and `JobManager`, a fixed pool of worker threads. Each job runs
  with its own timeout context; its metrics go to the `queue.Queue`
  registered for the job's region. Job failures are logged, not raised.
  Cancelling the parent context stops the workers and drops new jobs.
- `geras.nau`: `NAUCalculator` sums network address usage units per VPC
  (interfaces, addresses, prefixes, NAT gateways, VPC endpoints, load
  balancers, transit gateway attachments, EFS mount targets) using the
  weights in `WeightTable`. Listing failures raise `NAUError` or the
  client's own exception.
- `geras.jobs`: `VPCNAUJob`, `NetworkInterfaceJob`, `ListClusterJob`,
  `OIDCProviderJob`, `Gp3StorageJob` and `IamRoleJob`. Each has `job_name`,
  `region` and `execute(ctx)`. The two Trusted Advisor jobs only request a
  check refresh and return no metrics.
- `geras.handlers`: `RateLimitHandler` decodes CloudTrail events from an
  `SQSEvent`, passes each to its batcher's `add(ctx, region, event)` and
  returns an `SQSBatchItemFailure` for every message that would not decode.
  `ResourceQuotaHandler` waits for the job manager and then for every
  regional batcher (`batcher.wait()`). Missing settings raise
  `HandlerConfigError`.

## Clients

Clients are duck-typed objects with boto3-style keyword methods returning
dicts, for example `describe_network_interfaces(NextToken=...)`,
`list_clusters(nextToken=...)`, `get_service_quota(QuotaCode=...,
ServiceCode=...)` returning `{"Quota": {"Value": ...}}`, and
`refresh_trusted_advisor_check(checkId=...)`. A job's region is taken from
the client's `region` attribute, or from `meta.region_name`.

## Example

```python
import queue

from geras import logger
from geras.jobmanager import Context, JobManager
from geras.serviceconfig import load_config_from_file, validate_quota_metric_config

logger.init(logger.LogLevel.INFO, None)
log = logger.get()

cfg = load_config_from_file("config.json", log)
validate_quota_metric_config(cfg, log)

metrics = {region: queue.Queue() for region in cfg.regions}
manager = JobManager(Context(), 4, 30.0, metrics, log)
# manager.add_job(job) for each job to run
manager.wait()
```

A configuration file:

```json
{
  "services": {
    "ec2": {"quotaMetrics": [{"name": "networkInterfaces"}]},
    "sts": {"rateLimitAPIs": [{"name": "assumeRole"}]}
  },
  "regions": ["us-east-1"]
}
```

## What it does not do

geras has no command-line entry point or function runtime wiring, creates no
cloud clients of its own, and does not publish metrics anywhere: the EMF
batchers that `RateLimitHandler` and `ResourceQuotaHandler` drive are
supplied by the caller, and metrics are left in the per-region queues.

## Installation and tests

```
pip install .[test]
pytest
```