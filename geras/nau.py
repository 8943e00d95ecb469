"""Network Address Usage (NAU) accounting for every VPC in a region."""

from __future__ import annotations

import enum
from typing import Any, Callable, Iterator

from geras.logger import Logger, NoopLogger


class NAUError(Exception):
    """Listing a resource needed for the NAU calculation failed."""


class ResourceKey(str, enum.Enum):
    """Resource kinds that consume network address units."""

    IPV4_IPV6_ADDRESS = "ipv4-ipv6-address"
    ENI = "eni"
    PREFIX_ASSIGNED_TO_ENI = "prefix-assigned-to-eni"
    NETWORK_LOAD_BALANCER_PER_AZ = "network-load-balancer-per-az"
    GATEWAY_LOAD_BALANCER_PER_AZ = "gateway-load-balancer-per-az"
    VPC_ENDPOINT_PER_AZ = "vpc-endpoint-per-az"
    TRANSIT_GATEWAY_ATTACHMENT = "transit-gateway-attachment"
    LAMBDA_FUNCTION = "lambda-function"
    NAT_GATEWAY = "nat-gateway"
    EFS_MOUNT_TARGET = "efs-mount-target"
    EFA_INTERFACE = "efa-interface"
    EKS_POD = "eks-pod"


_DOCUMENTED_WEIGHTS = {
    ResourceKey.IPV4_IPV6_ADDRESS: 1,
    ResourceKey.ENI: 1,
    ResourceKey.PREFIX_ASSIGNED_TO_ENI: 1,
    ResourceKey.NETWORK_LOAD_BALANCER_PER_AZ: 6,
    ResourceKey.GATEWAY_LOAD_BALANCER_PER_AZ: 6,
    ResourceKey.VPC_ENDPOINT_PER_AZ: 6,
    ResourceKey.TRANSIT_GATEWAY_ATTACHMENT: 6,
    ResourceKey.LAMBDA_FUNCTION: 6,
    ResourceKey.NAT_GATEWAY: 6,
    ResourceKey.EFS_MOUNT_TARGET: 6,
    ResourceKey.EFA_INTERFACE: 1,
    ResourceKey.EKS_POD: 1,
}


class WeightTable:
    """Maps each resource kind to the number of units it consumes."""

    def __init__(self) -> None:
        self._table: dict[ResourceKey, int] = dict(_DOCUMENTED_WEIGHTS)

    def get(self, key: ResourceKey | str) -> int:
        """Return the weight for ``key``, or 0 if it is unknown."""
        return self._table.get(key, 0)


def _region_of(client: Any) -> str:
    region = getattr(client, "region", None)
    if region is None:
        region = getattr(getattr(client, "meta", None), "region_name", None)
    return region or ""


def _vpc_filter(vpc_id: str) -> list[dict[str, Any]]:
    return [{"Name": "vpc-id", "Values": [vpc_id]}]


def _pages(
    method: Callable[..., dict[str, Any]],
    result_key: str,
    token_in: str = "NextToken",
    token_out: str = "NextToken",
    failure: str | None = None,
    **params: Any,
) -> Iterator[Any]:
    """Yield every item of ``result_key`` across all pages of ``method``.

    Errors are re-raised as NAUError prefixed with ``failure`` when it is given.
    """
    token = None
    while True:
        request = dict(params)
        if token:
            request[token_in] = token
        try:
            page = method(**request)
        except Exception as err:
            if failure is None:
                raise
            raise NAUError(f"{failure}: {err}") from err
        yield from page.get(result_key) or ()
        token = page.get(token_out)
        if not token:
            return


class NAUCalculator:
    """Sums the weighted network address units of every VPC in one region."""

    def __init__(self, ec2_client: Any, efs_client: Any, elb_client: Any, logger: Logger | None = None) -> None:
        self._ec2 = ec2_client
        self._efs = efs_client
        self._elb = elb_client
        self._logger = logger if logger is not None else NoopLogger()
        self.weights = WeightTable()
        self.region = _region_of(ec2_client)

    def calculate_vpc_nau(self) -> dict[str, int]:
        """Return the total NAU for every VPC, keyed by VPC id."""
        out: dict[str, int] = {}
        self._logger.info("starting VPC discovery for vpc nau's")
        parts = (
            ("ENI", self.eni_nau),
            ("NAT", self.nat_gateway_nau),
            ("VPC Endpoint", self.vpc_endpoints_nau),
            ("LB", self.load_balancers_nau),
            ("TGW-VPC Attach", self.transit_gateway_attachments_nau),
            ("EFS-in-VPC", self.efs_mount_targets_nau),
        )
        for vpc in _pages(self._ec2.describe_vpcs, "Vpcs", failure="listing VPCs"):
            vpc_id = vpc.get("VpcId") or ""
            self._logger.debug("calculating VPC %s nau's", vpc_id)
            total = 0
            for label, part in parts:
                units = part(vpc_id)
                self._logger.debug("vpcId=%s %s NAU=%d", vpc_id, label, units)
                total += units
            self._logger.info("vpcId %s total NAU=%d", vpc_id, total)
            out[vpc_id] = total
        return out

    def eni_nau(self, vpc_id: str) -> int:
        """Units for network interfaces and the addresses and prefixes they carry."""
        self._logger.debug("calculating ENI NAU for vpc %s", vpc_id)
        weight = self.weights.get
        total = 0
        interfaces = _pages(
            self._ec2.describe_network_interfaces, "NetworkInterfaces", Filters=_vpc_filter(vpc_id)
        )
        for eni in interfaces:
            eni_id = eni.get("NetworkInterfaceId") or ""
            kind = eni.get("InterfaceType")
            if kind == "lambda":
                total += weight(ResourceKey.LAMBDA_FUNCTION)
                self._logger.debug("vpcId [%s] found lambda function %s, total eni naus %d", vpc_id, eni_id, total)
                continue
            if kind in ("efa", "efa-only"):
                total += weight(ResourceKey.EFA_INTERFACE)
            elif kind == "branch":
                total += weight(ResourceKey.EKS_POD)
            else:
                total += weight(ResourceKey.ENI)
            self._logger.debug("vpcId [%s] found %v interface %s, total eni naus %d", vpc_id, kind, eni_id, total)

            for address in eni.get("PrivateIpAddresses") or ():
                total += weight(ResourceKey.IPV4_IPV6_ADDRESS)
                association = address.get("Association") or {}
                if association.get("PublicIp") is not None:
                    total += weight(ResourceKey.IPV4_IPV6_ADDRESS)
            ipv6_count = len(eni.get("Ipv6Addresses") or ())
            total += ipv6_count * weight(ResourceKey.IPV4_IPV6_ADDRESS)
            prefix_count = len(eni.get("Ipv6Prefixes") or ()) + len(eni.get("Ipv4Prefixes") or ())
            total += prefix_count * weight(ResourceKey.PREFIX_ASSIGNED_TO_ENI)
            self._logger.debug(
                "vpcId [%s] found %d ipv6 addresses and %d prefixes, total eni naus %d",
                vpc_id,
                ipv6_count,
                prefix_count,
                total,
            )
        return total

    def nat_gateway_nau(self, vpc_id: str) -> int:
        """Units for the NAT gateways in the VPC."""
        response = self._ec2.describe_nat_gateways(Filter=_vpc_filter(vpc_id))
        count = len(response.get("NatGateways") or ())
        units = self.weights.get(ResourceKey.NAT_GATEWAY) * count
        self._logger.debug("vpcId [%s] found %d nat gateways nau %d", vpc_id, count, units)
        return units

    def vpc_endpoints_nau(self, vpc_id: str) -> int:
        """Units for VPC endpoints, counted once per availability zone."""
        response = self._ec2.describe_vpc_endpoints(Filters=_vpc_filter(vpc_id))
        weight = self.weights.get(ResourceKey.VPC_ENDPOINT_PER_AZ)
        total = 0
        for endpoint in response.get("VpcEndpoints") or ():
            subnets = endpoint.get("SubnetIds") or ()
            route_tables = endpoint.get("RouteTableIds") or ()
            if subnets:
                az_count = len(subnets)
            elif route_tables:
                az_count = len(route_tables)
            else:
                az_count = 1
            total += az_count * weight
            self._logger.debug(
                "vpcId [%s] found %v vpc endpoint in %d az's, nau %d",
                vpc_id,
                endpoint.get("VpcEndpointType"),
                az_count,
                total,
            )
        return total

    def load_balancers_nau(self, vpc_id: str) -> int:
        """Units for network and gateway load balancers, counted per availability zone."""
        total = 0
        balancers = _pages(self._elb.describe_load_balancers, "LoadBalancers", "Marker", "NextMarker")
        for balancer in balancers:
            arn = balancer.get("LoadBalancerArn") or ""
            if balancer.get("VpcId") != vpc_id:
                self._logger.debug(
                    "vpcId [%s] found lb %s in %s, skipping", vpc_id, arn, balancer.get("VpcId")
                )
                continue
            if balancer.get("Type") == "gateway":
                weight = self.weights.get(ResourceKey.GATEWAY_LOAD_BALANCER_PER_AZ)
            else:
                weight = self.weights.get(ResourceKey.NETWORK_LOAD_BALANCER_PER_AZ)
            total += len(balancer.get("AvailabilityZones") or ()) * weight
            self._logger.debug(
                "vpcId [%s] found load balancer %v, %s, total lb naus %d", vpc_id, balancer.get("Type"), arn, total
            )
        return total

    def transit_gateway_attachments_nau(self, vpc_id: str) -> int:
        """Units for transit gateway attachments of the VPC."""
        weight = self.weights.get(ResourceKey.TRANSIT_GATEWAY_ATTACHMENT)
        attachments = _pages(
            self._ec2.describe_transit_gateway_vpc_attachments,
            "TransitGatewayVpcAttachments",
            failure=f"count TGW-VPC attachments for {vpc_id}",
            Filters=_vpc_filter(vpc_id),
        )
        total = sum(weight for _ in attachments)
        self._logger.debug("vpcId [%s] total tgw-vpc attachments naus %d", vpc_id, total)
        return total

    def efs_mount_targets_nau(self, vpc_id: str) -> int:
        """Units for EFS mount targets placed in the VPC's subnets."""
        try:
            response = self._ec2.describe_subnets(Filters=_vpc_filter(vpc_id))
        except Exception as err:
            raise NAUError(f"listing subnets in {vpc_id}: {err}") from err
        subnets = {subnet.get("SubnetId") or "" for subnet in response.get("Subnets") or ()}

        weight = self.weights.get(ResourceKey.EFS_MOUNT_TARGET)
        total = 0
        file_systems = _pages(
            self._efs.describe_file_systems, "FileSystems", "Marker", "NextMarker", failure="listing filesystems"
        )
        for file_system in file_systems:
            fs_id = file_system.get("FileSystemId") or ""
            mount_targets = _pages(
                self._efs.describe_mount_targets,
                "MountTargets",
                "Marker",
                "NextMarker",
                failure=f"listing mount targets for {fs_id}",
                FileSystemId=fs_id,
            )
            for target in mount_targets:
                if (target.get("SubnetId") or "") in subnets:
                    total += weight
                    self._logger.debug(
                        "vpcId [%s] found efs mount target %s, total efs naus %v",
                        vpc_id,
                        target.get("MountTargetId") or "",
                        total,
                    )
        self._logger.debug("vpcId [%s] total efs mount targets naus %v", vpc_id, total)
        return total