"""Service configuration: loading from a file or S3 and validating metric names."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from geras.logger import Logger, NoopLogger


class ConfigLoadError(Exception):
    """The configuration could not be read or decoded."""


class InvalidMetricError(ValueError):
    """A configured metric or API name is not supported."""

    description = "invalid metric"

    def __init__(self, name: str) -> None:
        super().__init__(f"{self.description}: {name}")
        self.name = name


class InvalidEC2MetricError(InvalidMetricError):
    description = "invalid EC2 quota metric"


class InvalidEKSMetricError(InvalidMetricError):
    description = "invalid EKS quota metric"


class InvalidIAMMetricError(InvalidMetricError):
    description = "invalid IAM quota metric"


class InvalidEBSMetricError(InvalidMetricError):
    description = "invalid EBS quota metric"


class InvalidVPCMetricError(InvalidMetricError):
    description = "invalid VPC quota metric"


class InvalidSTSApiError(InvalidMetricError):
    description = "invalid STS api"


class _S3Client(Protocol):
    def get_object(self, *, Bucket: str, Key: str) -> Any: ...


@dataclass(frozen=True)
class QuotaMetric:
    name: str


@dataclass(frozen=True)
class RateLimitAPI:
    name: str


def _named_entries(data: dict[str, Any], key: str) -> list[str]:
    entries = data.get(key)
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ValueError(f"field {key!r} must be a list")
    names = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError(f"entries of {key!r} must be objects")
        name = entry.get("name")
        if name is None:
            name = ""
        if not isinstance(name, str):
            raise ValueError(f"'name' in {key!r} must be a string")
        names.append(name)
    return names


@dataclass
class ServiceConfig:
    """Quota metrics and rate-limited APIs tracked for one service."""

    quota_metrics: list[QuotaMetric] = field(default_factory=list)
    rate_limit_apis: list[RateLimitAPI] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ServiceConfig:
        if not isinstance(data, dict):
            raise ValueError("service config must be an object")
        return cls(
            quota_metrics=[QuotaMetric(n) for n in _named_entries(data, "quotaMetrics")],
            rate_limit_apis=[RateLimitAPI(n) for n in _named_entries(data, "rateLimitAPIs")],
        )


@dataclass
class TopLevelServiceConfig:
    """All configured services and the regions to monitor."""

    services: dict[str, ServiceConfig] = field(default_factory=dict)
    regions: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopLevelServiceConfig:
        if not isinstance(data, dict):
            raise ValueError("configuration must be an object")
        raw_services = data.get("services")
        if raw_services is None:
            raw_services = {}
        if not isinstance(raw_services, dict):
            raise ValueError("field 'services' must be an object")
        regions = data.get("regions")
        if regions is None:
            regions = []
        if not isinstance(regions, list) or not all(isinstance(r, str) for r in regions):
            raise ValueError("field 'regions' must be a list of strings")
        services = {
            name: ServiceConfig.from_dict(cfg if cfg is not None else {})
            for name, cfg in raw_services.items()
        }
        return cls(services=services, regions=list(regions))

    @classmethod
    def from_json(cls, text: str | bytes) -> TopLevelServiceConfig:
        return cls.from_dict(json.loads(text))


def load_config_from_file(file_path: str, logger: Logger | None = None) -> TopLevelServiceConfig:
    """Read and decode the configuration file at ``file_path``."""
    log = logger if logger is not None else NoopLogger()
    quoted = json.dumps(str(file_path))
    try:
        with open(file_path, "rb") as handle:
            data = handle.read()
    except OSError as err:
        log.error("failed to read config file %q: %v", str(file_path), err)
        raise ConfigLoadError(f"failed to read config file {quoted}: {err}") from err
    try:
        return TopLevelServiceConfig.from_json(data)
    except ValueError as err:
        log.error("failed to unmarshal config file %q: %v", str(file_path), err)
        raise ConfigLoadError(f"failed to unmarshal config file {quoted}: {err}") from err


def load_config_from_s3(bucket: str, key: str, client: _S3Client) -> TopLevelServiceConfig:
    """Fetch the configuration object ``key`` from ``bucket`` and decode it."""
    quoted = json.dumps(key)
    try:
        response = client.get_object(Bucket=bucket, Key=key)
        data = response["Body"].read()
    except Exception as err:
        raise ConfigLoadError(f"failed to read config file {quoted}: {err}") from err
    try:
        return TopLevelServiceConfig.from_json(data)
    except ValueError as err:
        raise ConfigLoadError(f"failed to unmarshal config file {quoted}: {err}") from err


def _check_names(names, valid: frozenset[str], error: type[InvalidMetricError]) -> None:
    for name in names:
        if name not in valid:
            raise error(name)


def validate_ec2_quota_metrics(service: ServiceConfig) -> None:
    _check_names((m.name for m in service.quota_metrics), frozenset({"networkInterfaces"}), InvalidEC2MetricError)


def validate_eks_quota_metrics(service: ServiceConfig) -> None:
    _check_names((m.name for m in service.quota_metrics), frozenset({"listClusters"}), InvalidEKSMetricError)


def validate_iam_quota_metrics(service: ServiceConfig) -> None:
    _check_names(
        (m.name for m in service.quota_metrics), frozenset({"iamRoles", "oidcProviders"}), InvalidIAMMetricError
    )


def validate_ebs_quota_metrics(service: ServiceConfig) -> None:
    _check_names((m.name for m in service.quota_metrics), frozenset({"gp3storage"}), InvalidEBSMetricError)


def validate_vpc_quota_metrics(service: ServiceConfig) -> None:
    _check_names((m.name for m in service.quota_metrics), frozenset({"nau"}), InvalidVPCMetricError)


def validate_sts_rate_limit_apis(service: ServiceConfig) -> None:
    _check_names(
        (a.name for a in service.rate_limit_apis),
        frozenset({"assumeRole", "assumeRoleWithWebIdentity"}),
        InvalidSTSApiError,
    )


def validate_rate_limit_config(cfg: TopLevelServiceConfig, logger: Logger | None = None) -> None:
    """Check the rate-limit APIs of every service that supports them."""
    log = logger if logger is not None else NoopLogger()
    for name, service in cfg.services.items():
        if name == "sts":
            log.info("validating sts rate limit config")
            try:
                validate_sts_rate_limit_apis(service)
            except InvalidMetricError as err:
                log.error("invalid sts rate limit config : %v", err)
                raise
        else:
            log.warn("no rate limit config for service %s", name)
    log.info("rate limit config validated")


_QUOTA_VALIDATORS: dict[str, Callable[[ServiceConfig], None]] = {
    "ec2": validate_ec2_quota_metrics,
    "eks": validate_eks_quota_metrics,
    "iam": validate_iam_quota_metrics,
    "ebs": validate_ebs_quota_metrics,
    "vpc": validate_vpc_quota_metrics,
}


def validate_quota_metric_config(cfg: TopLevelServiceConfig, logger: Logger | None = None) -> None:
    """Check the quota metrics of every known service."""
    log = logger if logger is not None else NoopLogger()
    for name, service in cfg.services.items():
        validator = _QUOTA_VALIDATORS.get(name)
        if validator is None:
            log.warn("no quota config for service %s", name)
            continue
        try:
            validator(service)
        except InvalidMetricError as err:
            log.error("invalid %s quota config : %v", name, err)
            raise
    log.debug("quota metric config validated")