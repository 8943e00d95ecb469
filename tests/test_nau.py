import pytest

from geras.logger import NoopLogger
from geras.nau import NAUCalculator, NAUError, ResourceKey, WeightTable


class FakeAPIError(Exception):
    pass


class PagedOp:
    """A fake API operation serving pages in order, failing at a chosen page."""

    def __init__(self, result_key, pages=None, message="api error", err_on=-1, token_in="NextToken",
                 token_out="NextToken"):
        self.result_key = result_key
        self.pages = pages if pages else [[]]
        self.message = message
        self.err_on = err_on
        self.token_in = token_in
        self.token_out = token_out
        self.calls = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        index = int(kwargs.get(self.token_in, 0))
        if index == self.err_on:
            raise FakeAPIError(self.message)
        page = {self.result_key: list(self.pages[index])}
        if index + 1 < len(self.pages):
            page[self.token_out] = str(index + 1)
        return page


class FakeEC2:
    def __init__(self, vpcs=None, enis=None, nat_gateways=(), endpoints=(), subnets=(), tgw=None,
                 err_vpcs=-1, err_eni=-1, err_nat=False, err_endpoint=False, err_subnets=False,
                 err_tgw=-1, region="r1"):
        self.region = region
        self.describe_vpcs = PagedOp("Vpcs", vpcs, "ec2 describevpcs error", err_vpcs)
        self.describe_network_interfaces = PagedOp(
            "NetworkInterfaces", enis, "ec2 describenetworkinterfaces error", err_eni)
        self.describe_nat_gateways = PagedOp(
            "NatGateways", [list(nat_gateways)], "ec2 describenatgateways error", 0 if err_nat else -1)
        self.describe_vpc_endpoints = PagedOp(
            "VpcEndpoints", [list(endpoints)], "ec2 describevpcendpoints error", 0 if err_endpoint else -1)
        self.describe_subnets = PagedOp(
            "Subnets", [list(subnets)], "ec2 describesubnets error", 0 if err_subnets else -1)
        self.describe_transit_gateway_vpc_attachments = PagedOp(
            "TransitGatewayVpcAttachments", tgw, "ec2 describetgwvpcattachments error", err_tgw)


class FakeEFS:
    def __init__(self, file_systems=None, mount_targets=None, err_fs=-1, err_mt=-1, region="r1"):
        self.region = region
        self.describe_file_systems = PagedOp(
            "FileSystems", file_systems, "efs describefilesystems error", err_fs, "Marker", "NextMarker")
        self.describe_mount_targets = PagedOp(
            "MountTargets", mount_targets, "efs describemounttargets error", err_mt, "Marker", "NextMarker")


class FakeELB:
    def __init__(self, balancers=None, err_on=-1, region="r1"):
        self.region = region
        self.describe_load_balancers = PagedOp(
            "LoadBalancers", balancers, "elbv2 describeloadbalancers error", err_on, "Marker", "NextMarker")


def build(ec2=None, efs=None, elb=None):
    return NAUCalculator(ec2 or FakeEC2(), efs or FakeEFS(), elb or FakeELB(), NoopLogger())


def test_weight_table_values():
    table = WeightTable()
    assert table.get(ResourceKey.NAT_GATEWAY) == 6
    assert table.get(ResourceKey.ENI) == 1
    assert table.get(ResourceKey.EFS_MOUNT_TARGET) == 6
    assert table.get("eni") == 1
    assert table.get("unknown") == 0


def test_region_comes_from_ec2_client():
    assert build(ec2=FakeEC2(region="r9")).region == "r9"


def test_eni_nau_counts_addresses_and_prefixes():
    eni = {
        "NetworkInterfaceId": "eni-1",
        "InterfaceType": "interface",
        "PrivateIpAddresses": [{"Association": {"PublicIp": "1.2.3.4"}}],
        "Ipv6Addresses": [{"Ipv6Address": "::1"}],
        "Ipv6Prefixes": [{"Ipv6Prefix": "fd00::/64"}],
        "Ipv4Prefixes": [{"Ipv4Prefix": "10.0.0.0/24"}],
    }
    ec2 = FakeEC2(enis=[[eni]])
    assert build(ec2=ec2).eni_nau("vpc-1") == 6
    assert ec2.describe_network_interfaces.calls[0]["Filters"] == [{"Name": "vpc-id", "Values": ["vpc-1"]}]


def test_lambda_eni_nau():
    calc = build(ec2=FakeEC2(enis=[[{"InterfaceType": "lambda"}]]))
    assert calc.eni_nau("vpc-1") == calc.weights.get(ResourceKey.LAMBDA_FUNCTION)


def test_lambda_eni_ignores_addresses():
    eni = {"InterfaceType": "lambda", "PrivateIpAddresses": [{}, {}], "Ipv6Addresses": [{}]}
    assert build(ec2=FakeEC2(enis=[[eni]])).eni_nau("vpc-1") == 6


@pytest.mark.parametrize(
    "kind, key",
    [
        ("lambda", ResourceKey.LAMBDA_FUNCTION),
        ("efa", ResourceKey.EFA_INTERFACE),
        ("efa-only", ResourceKey.EFA_INTERFACE),
        ("branch", ResourceKey.EKS_POD),
    ],
)
def test_eni_interface_type_weights(kind, key):
    calc = build(ec2=FakeEC2(enis=[[{"InterfaceType": kind}]]))
    assert calc.eni_nau("vpc-1") == WeightTable().get(key)


def test_eni_nau_spans_pages():
    ec2 = FakeEC2(enis=[[{"InterfaceType": "interface"}], [{"InterfaceType": "interface"}]])
    assert build(ec2=ec2).eni_nau("vpc-1") == 2


def test_eni_nau_error():
    with pytest.raises(FakeAPIError):
        build(ec2=FakeEC2(err_eni=0)).eni_nau("vpc-1")


def test_nat_gateway_nau():
    calc = build(ec2=FakeEC2(nat_gateways=[{}]))
    assert calc.nat_gateway_nau("vpc-1") == calc.weights.get(ResourceKey.NAT_GATEWAY)


def test_nat_gateway_nau_error():
    with pytest.raises(FakeAPIError):
        build(ec2=FakeEC2(err_nat=True)).nat_gateway_nau("vpc-1")


def test_vpc_endpoints_nau_fallback():
    calc = build(ec2=FakeEC2(endpoints=[{}]))
    assert calc.vpc_endpoints_nau("vpc-1") == calc.weights.get(ResourceKey.VPC_ENDPOINT_PER_AZ)


def test_vpc_endpoints_nau_counts_subnets_then_route_tables():
    endpoints = [
        {"SubnetIds": ["s1", "s2"], "RouteTableIds": ["rt1"]},
        {"RouteTableIds": ["rt1", "rt2", "rt3"]},
    ]
    assert build(ec2=FakeEC2(endpoints=endpoints)).vpc_endpoints_nau("vpc-1") == 30


def test_vpc_endpoints_nau_error():
    with pytest.raises(FakeAPIError):
        build(ec2=FakeEC2(err_endpoint=True)).vpc_endpoints_nau("vpc-1")


def test_load_balancers_nau():
    balancers = [
        {"Type": "network", "LoadBalancerArn": "test-arn", "VpcId": "vpc-1",
         "AvailabilityZones": [{"ZoneName": "us-west-2a"}]},
        {"Type": "gateway", "LoadBalancerArn": "test-arn2", "VpcId": "vpc-1",
         "AvailabilityZones": [{"ZoneName": "us-west-2b"}, {"ZoneName": "us-west-2c"}]},
    ]
    assert build(elb=FakeELB(balancers=[balancers])).load_balancers_nau("vpc-1") == 18


def test_load_balancers_in_other_vpc_are_skipped():
    balancers = [{"Type": "network", "VpcId": "vpc-2", "AvailabilityZones": [{}, {}]}]
    assert build(elb=FakeELB(balancers=[balancers])).load_balancers_nau("vpc-1") == 0


def test_load_balancers_nau_error():
    with pytest.raises(FakeAPIError):
        build(elb=FakeELB(err_on=0)).load_balancers_nau("vpc-1")


def test_transit_gateway_attachments_nau_across_pages():
    ec2 = FakeEC2(tgw=[[{}], [{}, {}]])
    assert build(ec2=ec2).transit_gateway_attachments_nau("vpc-1") == 18


def test_transit_gateway_attachments_nau_error():
    with pytest.raises(NAUError, match="count TGW-VPC attachments for vpc-1"):
        build(ec2=FakeEC2(err_tgw=0)).transit_gateway_attachments_nau("vpc-1")


def test_efs_mount_targets_subnet_error():
    with pytest.raises(NAUError, match="listing subnets in vpc-1"):
        build(ec2=FakeEC2(err_subnets=True)).efs_mount_targets_nau("vpc-1")


@pytest.mark.parametrize(
    "efs, message",
    [
        (
            FakeEFS(file_systems=[[{"FileSystemId": "fs-1"}]], mount_targets=[[{"SubnetId": "subnet-1"}]], err_fs=0),
            "listing filesystems: efs describefilesystems error",
        ),
        (
            FakeEFS(file_systems=[[{"FileSystemId": "fs-1"}]], mount_targets=[[{"SubnetId": "subnet-1"}]], err_mt=0),
            "listing mount targets for fs-1: efs describemounttargets error",
        ),
    ],
)
def test_efs_mount_targets_error_messages(efs, message):
    calc = build(ec2=FakeEC2(subnets=[{"SubnetId": "subnet-1"}]), efs=efs)
    with pytest.raises(NAUError) as excinfo:
        calc.efs_mount_targets_nau("vpc-1")
    assert message in str(excinfo.value)


@pytest.mark.parametrize(
    "subnets, mount_targets, expected",
    [
        (["s1"], [[{"FileSystemId": "fs-1", "SubnetId": "s1"}]], 6),
        (
            ["s1", "s2"],
            [
                [{"FileSystemId": "fs-1", "SubnetId": "s1"}, {"FileSystemId": "fs-1", "SubnetId": "x"}],
                [{"FileSystemId": "fs-1", "SubnetId": "s2"}],
            ],
            12,
        ),
    ],
)
def test_efs_mount_targets_nau(subnets, mount_targets, expected):
    ec2 = FakeEC2(subnets=[{"SubnetId": s} for s in subnets])
    efs = FakeEFS(file_systems=[[{"FileSystemId": "fs-1"}]], mount_targets=mount_targets)
    calc = build(ec2=ec2, efs=efs)
    assert calc.efs_mount_targets_nau("vpc-1") == expected
    assert efs.describe_mount_targets.calls[0]["FileSystemId"] == "fs-1"


def test_calculate_vpc_nau_happy():
    ec2 = FakeEC2(
        vpcs=[[{"VpcId": "vpc-1"}]],
        enis=[[{"InterfaceType": "interface"}]],
        nat_gateways=[{}],
        endpoints=[{}],
        subnets=[{"SubnetId": "subnet-1"}],
    )
    elb = FakeELB(balancers=[[{"Type": "network", "LoadBalancerArn": "test-arn", "VpcId": "vpc-1",
                               "AvailabilityZones": [{"ZoneName": "a"}]}]])
    calc = NAUCalculator(ec2, FakeEFS(), elb, NoopLogger())
    assert calc.calculate_vpc_nau() == {"vpc-1": 19}


def test_calculate_vpc_nau_without_logger():
    calc = NAUCalculator(FakeEC2(vpcs=[[{"VpcId": "vpc-1"}, {"VpcId": "vpc-2"}]]), FakeEFS(), FakeELB(), None)
    assert calc.calculate_vpc_nau() == {"vpc-1": 0, "vpc-2": 0}


def test_calculate_vpc_nau_vpc_error():
    with pytest.raises(NAUError, match="listing VPCs: ec2 describevpcs error"):
        build(ec2=FakeEC2(err_vpcs=0)).calculate_vpc_nau()


@pytest.mark.parametrize(
    "ec2_opts, elb_opts, efs_opts, expected",
    [
        ({"err_vpcs": 0}, {}, {}, NAUError),
        ({"err_eni": 0}, {}, {}, FakeAPIError),
        ({"err_nat": True}, {}, {}, FakeAPIError),
        ({"err_endpoint": True}, {}, {}, FakeAPIError),
        ({}, {"err_on": 0}, {}, FakeAPIError),
        ({"err_tgw": 0}, {}, {}, NAUError),
        ({"err_subnets": True}, {}, {}, NAUError),
        ({}, {}, {"err_fs": 0}, NAUError),
        ({}, {}, {"err_mt": 0}, NAUError),
    ],
)
def test_calculate_vpc_nau_error_branches(ec2_opts, elb_opts, efs_opts, expected):
    ec2_args = {
        "vpcs": [[{"VpcId": "vpc-1"}]],
        "enis": [[]],
        "nat_gateways": [{}],
        "endpoints": [{}],
        "subnets": [{"SubnetId": "subnet-1"}],
        "tgw": [[{}]],
    }
    ec2_args.update(ec2_opts)
    elb_args = {"balancers": [[{"Type": "network", "VpcId": "vpc-1", "AvailabilityZones": [{"ZoneName": "a"}]}]]}
    elb_args.update(elb_opts)
    efs_args = {"file_systems": [[{"FileSystemId": "fs-1"}]], "mount_targets": [[{"SubnetId": "subnet-1"}]]}
    efs_args.update(efs_opts)
    calc = NAUCalculator(FakeEC2(**ec2_args), FakeEFS(**efs_args), FakeELB(**elb_args), NoopLogger())
    with pytest.raises(expected):
        calc.calculate_vpc_nau()