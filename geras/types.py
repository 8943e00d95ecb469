"""Shared data types: CloudTrail events, CloudWatch metrics and event envelopes."""

from __future__ import annotations

import enum
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?([Zz]|[+-]\d{2}:\d{2})"
)


class StandardUnit(str, enum.Enum):
    """CloudWatch standard metric units."""

    SECONDS = "Seconds"
    MICROSECONDS = "Microseconds"
    MILLISECONDS = "Milliseconds"
    BYTES = "Bytes"
    KILOBYTES = "Kilobytes"
    MEGABYTES = "Megabytes"
    GIGABYTES = "Gigabytes"
    TERABYTES = "Terabytes"
    BITS = "Bits"
    KILOBITS = "Kilobits"
    MEGABITS = "Megabits"
    GIGABITS = "Gigabits"
    TERABITS = "Terabits"
    PERCENT = "Percent"
    COUNT = "Count"
    BYTES_PER_SECOND = "Bytes/Second"
    KILOBYTES_PER_SECOND = "Kilobytes/Second"
    MEGABYTES_PER_SECOND = "Megabytes/Second"
    GIGABYTES_PER_SECOND = "Gigabytes/Second"
    TERABYTES_PER_SECOND = "Terabytes/Second"
    BITS_PER_SECOND = "Bits/Second"
    KILOBITS_PER_SECOND = "Kilobits/Second"
    MEGABITS_PER_SECOND = "Megabits/Second"
    GIGABITS_PER_SECOND = "Gigabits/Second"
    TERABITS_PER_SECOND = "Terabits/Second"
    COUNT_PER_SECOND = "Count/Second"
    NONE = "None"


def parse_time(text: str) -> datetime:
    """Parse an RFC 3339 timestamp, keeping microsecond precision."""
    match = _RFC3339.fullmatch(text)
    if not match:
        raise ValueError(f"invalid RFC 3339 time {text!r}")
    year, month, day, hour, minute, second = (int(match[i]) for i in range(1, 7))
    micros = int((match[7] or "").ljust(6, "0")[:6])
    zone = match[8]
    if zone in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if zone[0] == "-" else 1
        offset = timedelta(hours=int(zone[1:3]), minutes=int(zone[4:6]))
        tz = timezone(sign * offset)
    return datetime(year, month, day, hour, minute, second, micros, tzinfo=tz)


def format_time(moment: datetime) -> str:
    """Render a datetime as RFC 3339 with trailing fractional zeros dropped."""
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    fraction = f"{moment.microsecond:06d}".rstrip("0")
    if fraction:
        text += "." + fraction
    offset = moment.utcoffset()
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _string(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _object(text: str | bytes) -> dict[str, Any]:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


@dataclass
class UserIdentityDetail:
    """The nested userIdentity block of a CloudTrail event."""

    type: str = ""
    principal_id: str = ""
    arn: str = ""


@dataclass
class CloudTrailEvent:
    """A single CloudTrail event."""

    event_version: str = ""
    user_identity: UserIdentityDetail = field(default_factory=UserIdentityDetail)
    event_time: datetime = ZERO_TIME
    event_source: str = ""
    event_name: str = ""
    aws_region: str = ""
    source_ip: str = ""
    user_agent: str = ""
    request_id: str = ""
    event_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CloudTrailEvent:
        """Build an event from its decoded JSON form; raises ValueError on bad fields."""
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")
        identity = data.get("userIdentity")
        if identity is None:
            identity = {}
        if not isinstance(identity, dict):
            raise ValueError("field 'userIdentity' must be an object")
        raw_time = data.get("eventTime")
        if raw_time is None:
            event_time = ZERO_TIME
        elif isinstance(raw_time, str):
            event_time = parse_time(raw_time)
        else:
            raise ValueError("field 'eventTime' must be a string")
        return cls(
            event_version=_string(data, "eventVersion"),
            user_identity=UserIdentityDetail(
                type=_string(identity, "type"),
                principal_id=_string(identity, "principalId"),
                arn=_string(identity, "arn"),
            ),
            event_time=event_time,
            event_source=_string(data, "eventSource"),
            event_name=_string(data, "eventName"),
            aws_region=_string(data, "awsRegion"),
            source_ip=_string(data, "sourceIPAddress"),
            user_agent=_string(data, "userAgent"),
            request_id=_string(data, "requestID"),
            event_id=_string(data, "eventID"),
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> CloudTrailEvent:
        """Decode an event from JSON text; raises ValueError on malformed input."""
        return cls.from_dict(_object(text))

    def to_dict(self) -> dict[str, Any]:
        return {
            "eventVersion": self.event_version,
            "userIdentity": {
                "type": self.user_identity.type,
                "principalId": self.user_identity.principal_id,
                "arn": self.user_identity.arn,
            },
            "eventTime": format_time(self.event_time),
            "eventSource": self.event_source,
            "eventName": self.event_name,
            "awsRegion": self.aws_region,
            "sourceIPAddress": self.source_ip,
            "userAgent": self.user_agent,
            "requestID": self.request_id,
            "eventID": self.event_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class CloudWatchMetric:
    """A metric value with its unit, time and dimensions."""

    name: str = ""
    value: float = 0.0
    unit: StandardUnit | None = None
    timestamp: datetime = ZERO_TIME
    metadata: dict[str, str] | None = None


@dataclass
class ScheduledEvent:
    """A scheduled event delivered by CloudWatch or EventBridge."""

    version: str = ""
    id: str = ""
    detail_type: str = ""
    source: str = ""
    account: str = ""
    time: str = ""
    region: str = ""
    resources: list[str] = field(default_factory=list)
    detail: Any = None

    @classmethod
    def from_json(cls, text: str | bytes) -> ScheduledEvent:
        """Decode a scheduled event; raises ValueError on malformed input."""
        data = _object(text)
        resources = data.get("resources")
        if resources is None:
            resources = []
        if not isinstance(resources, list) or not all(isinstance(r, str) for r in resources):
            raise ValueError("field 'resources' must be a list of strings")
        return cls(
            version=_string(data, "version"),
            id=_string(data, "id"),
            detail_type=_string(data, "detail-type"),
            source=_string(data, "source"),
            account=_string(data, "account"),
            time=_string(data, "time"),
            region=_string(data, "region"),
            resources=list(resources),
            detail=data.get("detail"),
        )


class ErrorRecord(Exception):
    """An error together with the moment it happened."""

    def __init__(self, err: BaseException, timestamp: datetime | None = None) -> None:
        super().__init__(str(err))
        self.err = err
        self.timestamp = timestamp if timestamp is not None else datetime.now(timezone.utc)

    def __str__(self) -> str:
        return str(self.err)


@dataclass(frozen=True)
class EMFRecord:
    """An embedded-metric-format payload and its timestamp in milliseconds."""

    payload: bytes
    timestamp: int