from datetime import datetime, timezone

import pytest

from geras.jobs.vpc_nau import VPCNAUJob
from geras.logger import NoopLogger
from geras.types import StandardUnit


class FakeCalc:
    def __init__(self, out=None, err=None, region="r1"):
        self.out = out if out is not None else {}
        self.err = err
        self.region = region

    def calculate_vpc_nau(self):
        if self.err is not None:
            raise self.err
        return self.out


class FakeQuotaClient:
    def __init__(self, value=0.0, err=None):
        self.value = value
        self.err = err
        self.calls = []

    def get_service_quota(self, **kwargs):
        self.calls.append(kwargs)
        if self.err is not None:
            raise self.err
        return {"Quota": {"Value": self.value}}


def test_job_name_and_region():
    job = VPCNAUJob(FakeCalc(region="us-test-1"), FakeQuotaClient(), None)
    assert job.job_name == "vpcNAU-us-test-1"
    assert job.region == "us-test-1"


def test_execute_success():
    before = datetime.now(timezone.utc)
    quota = FakeQuotaClient(value=100)
    job = VPCNAUJob(FakeCalc({"vpc-B": 0, "vpc-A": 5}, region="eu-west-1"), quota, NoopLogger())
    metrics = job.execute(None)

    assert [m.metadata["vpc"] for m in metrics] == ["vpc-A", "vpc-B"]
    assert [m.value for m in metrics] == [0.05, 0.0]
    assert all(m.name == "vpcNAU" for m in metrics)
    assert all(m.unit is StandardUnit.PERCENT for m in metrics)
    assert metrics[0].timestamp == metrics[1].timestamp
    assert metrics[0].timestamp >= before
    assert quota.calls == [{"QuotaCode": "L-BB24F6E5", "ServiceCode": "vpc"}]


def test_execute_with_no_vpcs():
    quota = FakeQuotaClient(value=10)
    assert VPCNAUJob(FakeCalc({}), quota).execute() == []
    assert len(quota.calls) == 1


def test_execute_zero_quota_gives_infinity():
    metrics = VPCNAUJob(FakeCalc({"vpc-1": 3}), FakeQuotaClient(value=0)).execute()
    assert len(metrics) == 1
    assert metrics[0].value == float("inf")
    assert metrics[0].metadata == {"vpc": "vpc-1"}


def test_execute_calculator_error_propagates():
    want = RuntimeError("calculator failure")
    quota = FakeQuotaClient(value=100)
    job = VPCNAUJob(FakeCalc(err=want, region="ap-south-1"), quota, NoopLogger())
    with pytest.raises(RuntimeError) as excinfo:
        job.execute(None)
    assert excinfo.value is want
    assert quota.calls == []


def test_execute_quota_error_propagates():
    job = VPCNAUJob(FakeCalc({"vpc-1": 1}), FakeQuotaClient(err=RuntimeError("quota boom")))
    with pytest.raises(RuntimeError, match="quota boom"):
        job.execute(None)