"""VPC networking: networks, subnets, internet gateways and route tables."""

from __future__ import annotations

from typing import Any, Iterator, Optional, Sequence

from lifecycle_orchestrator.domain.base.exceptions import (
    DomainException,
    ResourceNotFoundError,
)
from lifecycle_orchestrator.domain.base.value_objects import (
    LifecycleState,
    ResourceHandle,
    ResourceKind,
    ResourceQuery,
    ResourceSnapshot,
)
from lifecycle_orchestrator.domain.resource.rules import (
    RULES_ATTRIBUTE,
    RuleDestinationType,
    RuleEntry,
    RuleSet,
)
from lifecycle_orchestrator.domain.resource.specs import (
    InternetGatewaySpec,
    NetworkSpec,
    ResourceSpec,
    SubnetSpec,
)
from lifecycle_orchestrator.providers.aws.infrastructure.handlers.base_handler import (
    NAME_TAG,
    AWSHandler,
)

NETWORK_STATES: dict[str, LifecycleState] = {
    "pending": LifecycleState.PROVISIONING,
    "available": LifecycleState.AVAILABLE,
}

GATEWAY_ATTACHMENT_STATES: dict[str, LifecycleState] = {
    "attaching": LifecycleState.PROVISIONING,
    "attached": LifecycleState.AVAILABLE,
    "available": LifecycleState.AVAILABLE,
    "detaching": LifecycleState.TERMINATING,
    "detached": LifecycleState.AVAILABLE,
}

LOCAL_TARGET = "local"

_DESTINATION_FIELDS: dict[RuleDestinationType, str] = {
    RuleDestinationType.CIDR_BLOCK: "DestinationCidrBlock",
    RuleDestinationType.IPV6_CIDR_BLOCK: "DestinationIpv6CidrBlock",
    RuleDestinationType.PREFIX_LIST: "DestinationPrefixListId",
}

# Route target parameter by resource id prefix. Anything else is passed as GatewayId.
_TARGET_FIELDS: dict[str, str] = {
    "igw-": "GatewayId",
    "vgw-": "GatewayId",
    "eigw-": "EgressOnlyInternetGatewayId",
    "nat-": "NatGatewayId",
    "tgw-": "TransitGatewayId",
    "pcx-": "VpcPeeringConnectionId",
    "eni-": "NetworkInterfaceId",
    "i-": "InstanceId",
    "vpce-": "VpcEndpointId",
}

_ROUTE_TARGET_KEYS = (
    "GatewayId",
    "EgressOnlyInternetGatewayId",
    "NatGatewayId",
    "TransitGatewayId",
    "VpcPeeringConnectionId",
    "NetworkInterfaceId",
    "InstanceId",
    "VpcEndpointId",
)


def target_field(target_id: str) -> str:
    for prefix, field in _TARGET_FIELDS.items():
        if target_id.startswith(prefix):
            return field
    return "GatewayId"


def route_to_rule(route: dict[str, Any]) -> Optional[RuleEntry]:
    """Convert an EC2 route to a rule entry, or None for the implicit local route."""
    target_id = next((route[key] for key in _ROUTE_TARGET_KEYS if route.get(key)), None)
    if target_id is None or target_id == LOCAL_TARGET:
        return None
    for destination_type, field in _DESTINATION_FIELDS.items():
        if route.get(field):
            return RuleEntry(destination_type=destination_type, destination=route[field], target_id=target_id)
    return None


class NetworkHandler(AWSHandler):
    """
    VPCs and the resources scoped to them.

    Subnets, gateways and route tables use the VPC id as their parent. Route
    tables are collection-valued: their routes are exposed as the ``rules``
    attribute and ``update`` replaces the whole set. EC2 has no replace call,
    so the replacement is applied as deletes then creates against the
    currently described routes. The implicit local route is never touched.
    """

    kinds = (
        ResourceKind.NETWORK,
        ResourceKind.SUBNET,
        ResourceKind.INTERNET_GATEWAY,
        ResourceKind.ROUTE_TABLE,
    )

    @property
    def _client(self):
        return self.aws_client.ec2_client

    # ------------------------------------------------------------------
    # dispatch
    # ------------------------------------------------------------------

    def get(self, handle: ResourceHandle) -> ResourceSnapshot:
        if handle.kind == ResourceKind.NETWORK:
            return self._get_vpc(handle)
        if handle.kind == ResourceKind.SUBNET:
            return self._get_subnet(handle)
        if handle.kind == ResourceKind.INTERNET_GATEWAY:
            return self._get_gateway(handle)
        return self._get_route_table(handle)

    def list(self, parent_id: Optional[str], query: ResourceQuery) -> Iterator[ResourceSnapshot]:
        if query.kind == ResourceKind.NETWORK:
            filters = self._scope_filters(parent_id, query)
            filters += self._state_filter("state", query.states, NETWORK_STATES)
            for vpc in self._paginate(self._client, "describe_vpcs", "Vpcs", **self._filter_kwargs(filters)):
                yield self._from_vpc(vpc)
        elif query.kind == ResourceKind.SUBNET:
            filters = self._vpc_filters("vpc-id", parent_id, query)
            filters += self._state_filter("state", query.states, NETWORK_STATES)
            for subnet in self._paginate(self._client, "describe_subnets", "Subnets", **self._filter_kwargs(filters)):
                yield self._from_subnet(subnet)
        elif query.kind == ResourceKind.INTERNET_GATEWAY:
            filters = self._vpc_filters("attachment.vpc-id", parent_id, query)
            for gateway in self._paginate(
                self._client, "describe_internet_gateways", "InternetGateways", **self._filter_kwargs(filters)
            ):
                yield self._from_gateway(gateway, parent_id)
        else:
            filters = self._vpc_filters("vpc-id", parent_id, query)
            for table in self._paginate(
                self._client, "describe_route_tables", "RouteTables", **self._filter_kwargs(filters)
            ):
                yield self._from_route_table(table)

    def create(self, spec: ResourceSpec) -> ResourceHandle:
        if isinstance(spec, NetworkSpec):
            return self._create_vpc(spec)
        if isinstance(spec, SubnetSpec):
            return self._create_subnet(spec)
        if isinstance(spec, InternetGatewaySpec):
            return self._create_gateway(spec)
        raise TypeError(f"NetworkHandler cannot create {type(spec).__name__}")

    def delete(self, handle: ResourceHandle) -> None:
        if handle.kind == ResourceKind.NETWORK:
            self._call(self._client.delete_vpc, VpcId=handle.resource_id)
        elif handle.kind == ResourceKind.SUBNET:
            self._call(self._client.delete_subnet, SubnetId=handle.resource_id)
        elif handle.kind == ResourceKind.INTERNET_GATEWAY:
            self._delete_gateway(handle)
        else:
            self._call(self._client.delete_route_table, RouteTableId=handle.resource_id)
        self._logger.info("Deleted %s", handle)

    def update(self, handle: ResourceHandle, rules: Sequence[RuleEntry]) -> None:
        if handle.kind != ResourceKind.ROUTE_TABLE:
            super().update(handle, rules)
            return
        current = RuleSet(self._get_route_table(handle).attribute(RULES_ATTRIBUTE, ()))
        desired = RuleSet(rules)

        removed = [entry for entry in current if entry.key not in desired]
        added = [entry for entry in desired if entry.key not in current]
        self._logger.info(
            "Replacing routes of %s: %d removed, %d added",
            handle.resource_id,
            len(removed),
            len(added),
        )
        for entry in removed:
            self._call(
                self._client.delete_route,
                RouteTableId=handle.resource_id,
                **{_DESTINATION_FIELDS[entry.destination_type]: entry.destination},
            )
        for entry in added:
            self._call(
                self._client.create_route,
                RouteTableId=handle.resource_id,
                **{
                    _DESTINATION_FIELDS[entry.destination_type]: entry.destination,
                    target_field(entry.target_id): entry.target_id,
                },
            )

    # ------------------------------------------------------------------
    # networks
    # ------------------------------------------------------------------

    def _get_vpc(self, handle: ResourceHandle) -> ResourceSnapshot:
        vpcs = self._call(self._client.describe_vpcs, VpcIds=[handle.resource_id]).get("Vpcs", [])
        if not vpcs:
            raise ResourceNotFoundError(f"VPC {handle.resource_id} not found", {"handle": str(handle)})
        return self._from_vpc(vpcs[0], default_route_table_id=self._main_route_table_id(handle.resource_id))

    def _main_route_table_id(self, vpc_id: str) -> Optional[str]:
        tables = self._call(
            self._client.describe_route_tables,
            Filters=[
                {"Name": "vpc-id", "Values": [vpc_id]},
                {"Name": "association.main", "Values": ["true"]},
            ],
        ).get("RouteTables", [])
        return tables[0]["RouteTableId"] if tables else None

    def _create_vpc(self, spec: NetworkSpec) -> ResourceHandle:
        response = self._call(
            self._client.create_vpc,
            CidrBlock=spec.cidr_block,
            TagSpecifications=self._tag_specifications("vpc", spec, spec.parent_id),
        )
        vpc_id = response["Vpc"]["VpcId"]
        self._logger.info("Creating VPC %s (%s, %s)", vpc_id, spec.name, spec.cidr_block)
        return ResourceHandle(resource_id=vpc_id, kind=ResourceKind.NETWORK, parent_id=spec.parent_id)

    def _from_vpc(self, vpc: dict[str, Any], default_route_table_id: Optional[str] = None) -> ResourceSnapshot:
        raw_state = vpc.get("State")
        return self._snapshot(
            vpc["VpcId"],
            ResourceKind.NETWORK,
            self._map_state(raw_state, NETWORK_STATES),
            tags=self._tags_to_dict(vpc.get("Tags")),
            raw_state=raw_state,
            cidr_block=vpc.get("CidrBlock"),
            is_default=vpc.get("IsDefault", False),
            default_route_table_id=default_route_table_id,
        )

    # ------------------------------------------------------------------
    # subnets
    # ------------------------------------------------------------------

    def _get_subnet(self, handle: ResourceHandle) -> ResourceSnapshot:
        subnets = self._call(self._client.describe_subnets, SubnetIds=[handle.resource_id]).get("Subnets", [])
        if not subnets:
            raise ResourceNotFoundError(f"Subnet {handle.resource_id} not found", {"handle": str(handle)})
        return self._from_subnet(subnets[0])

    def _create_subnet(self, spec: SubnetSpec) -> ResourceHandle:
        params: dict[str, Any] = {
            "VpcId": spec.parent_id,
            "CidrBlock": spec.cidr_block,
            "TagSpecifications": self._tag_specifications("subnet", spec),
        }
        if spec.availability_zone:
            params["AvailabilityZone"] = spec.availability_zone
        subnet_id = self._call(self._client.create_subnet, **params)["Subnet"]["SubnetId"]
        self._logger.info("Creating subnet %s (%s) in %s", subnet_id, spec.name, spec.parent_id)
        return ResourceHandle(resource_id=subnet_id, kind=ResourceKind.SUBNET, parent_id=spec.parent_id)

    def _from_subnet(self, subnet: dict[str, Any]) -> ResourceSnapshot:
        raw_state = subnet.get("State")
        return self._snapshot(
            subnet["SubnetId"],
            ResourceKind.SUBNET,
            self._map_state(raw_state, NETWORK_STATES),
            tags=self._tags_to_dict(subnet.get("Tags")),
            parent_id=subnet.get("VpcId"),
            raw_state=raw_state,
            cidr_block=subnet.get("CidrBlock"),
            availability_zone=subnet.get("AvailabilityZone"),
        )

    # ------------------------------------------------------------------
    # internet gateways
    # ------------------------------------------------------------------

    def _get_gateway(self, handle: ResourceHandle) -> ResourceSnapshot:
        gateways = self._call(
            self._client.describe_internet_gateways, InternetGatewayIds=[handle.resource_id]
        ).get("InternetGateways", [])
        if not gateways:
            raise ResourceNotFoundError(
                f"Internet gateway {handle.resource_id} not found", {"handle": str(handle)}
            )
        return self._from_gateway(gateways[0], handle.parent_id)

    def _create_gateway(self, spec: InternetGatewaySpec) -> ResourceHandle:
        response = self._call(
            self._client.create_internet_gateway,
            TagSpecifications=self._tag_specifications("internet-gateway", spec, spec.parent_id),
        )
        gateway_id = response["InternetGateway"]["InternetGatewayId"]
        try:
            self._call(self._client.attach_internet_gateway, InternetGatewayId=gateway_id, VpcId=spec.parent_id)
        except DomainException:
            self._logger.warning("Attaching %s to %s failed, deleting the gateway", gateway_id, spec.parent_id)
            self._call(self._client.delete_internet_gateway, InternetGatewayId=gateway_id)
            raise
        self._logger.info("Created internet gateway %s (%s) on %s", gateway_id, spec.name, spec.parent_id)
        return ResourceHandle(
            resource_id=gateway_id, kind=ResourceKind.INTERNET_GATEWAY, parent_id=spec.parent_id
        )

    def _delete_gateway(self, handle: ResourceHandle) -> None:
        gateway = self._get_gateway(handle)
        for vpc_id in gateway.attribute("attached_vpc_ids", ()):
            self._call(
                self._client.detach_internet_gateway,
                InternetGatewayId=handle.resource_id,
                VpcId=vpc_id,
            )
        self._call(self._client.delete_internet_gateway, InternetGatewayId=handle.resource_id)

    def _from_gateway(self, gateway: dict[str, Any], parent_id: Optional[str]) -> ResourceSnapshot:
        attachments = gateway.get("Attachments", [])
        attached = [a["VpcId"] for a in attachments if a.get("VpcId")]
        if attachments:
            state = self._map_state(attachments[0].get("State"), GATEWAY_ATTACHMENT_STATES)
        else:
            state = LifecycleState.AVAILABLE
        tags = self._tags_to_dict(gateway.get("Tags"))
        return self._snapshot(
            gateway["InternetGatewayId"],
            ResourceKind.INTERNET_GATEWAY,
            state,
            tags=tags,
            parent_id=parent_id or (attached[0] if attached else tags.get(self.parent_tag_key)),
            attached_vpc_ids=tuple(attached),
        )

    # ------------------------------------------------------------------
    # route tables
    # ------------------------------------------------------------------

    def _get_route_table(self, handle: ResourceHandle) -> ResourceSnapshot:
        tables = self._call(
            self._client.describe_route_tables, RouteTableIds=[handle.resource_id]
        ).get("RouteTables", [])
        if not tables:
            raise ResourceNotFoundError(f"Route table {handle.resource_id} not found", {"handle": str(handle)})
        return self._from_route_table(tables[0])

    def _from_route_table(self, table: dict[str, Any]) -> ResourceSnapshot:
        rules = tuple(rule for rule in map(route_to_rule, table.get("Routes", [])) if rule is not None)
        associations = table.get("Associations", [])
        return self._snapshot(
            table["RouteTableId"],
            ResourceKind.ROUTE_TABLE,
            LifecycleState.AVAILABLE,
            tags=self._tags_to_dict(table.get("Tags")),
            parent_id=table.get("VpcId"),
            main=any(a.get("Main") for a in associations),
            **{RULES_ATTRIBUTE: rules},
        )

    def _vpc_filters(self, vpc_filter: str, parent_id: Optional[str], query: ResourceQuery) -> list[dict[str, Any]]:
        filters: list[dict[str, Any]] = []
        if parent_id:
            filters.append({"Name": vpc_filter, "Values": [parent_id]})
        if query.name:
            filters.append({"Name": f"tag:{NAME_TAG}", "Values": [query.name]})
        return filters

    @staticmethod
    def _filter_kwargs(filters: list[dict[str, Any]]) -> dict[str, Any]:
        return {"Filters": filters} if filters else {}
