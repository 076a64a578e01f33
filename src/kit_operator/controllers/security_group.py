"""Security groups of a substrate, one per control plane component."""

from __future__ import annotations

from ..apis.v1alpha1 import Substrate
from ..constants import APISERVER_PORT, ETCD_CLIENT_PORT, ETCD_PEER_PORT
from ..errors import NotReadyError
from ..services.base import CloudProvider

MASTER = "master"
ETCD = "etcd"
COMPONENTS = (MASTER, ETCD)

ANYWHERE = "0.0.0.0/0"


def ingress_for(component: str, vpc_cidr: str) -> list[tuple[int, str]]:
    """Ports opened for a component and the CIDR allowed to reach them."""
    if component == MASTER:
        return [(APISERVER_PORT, ANYWHERE)]
    return [(ETCD_CLIENT_PORT, vpc_cidr), (ETCD_PEER_PORT, vpc_cidr)]


class SecurityGroupController:
    def __init__(self, cloud: CloudProvider) -> None:
        self.cloud = cloud

    def reconcile(self, substrate: Substrate) -> None:
        vpc_id = substrate.status.get("vpcId")
        if not vpc_id:
            raise NotReadyError("VPC id is not recorded yet")
        groups = {}
        for component in COMPONENTS:
            name = substrate.resource_name(component)
            group_id = self.cloud.ensure_security_group(
                name, vpc_id, f"{component} of {substrate.name}", owner=substrate.uid
            )
            for port, cidr in ingress_for(component, substrate.vpc_cidr):
                self.cloud.ensure_ingress(group_id, port, cidr)
            groups[component] = group_id
        substrate.status["securityGroups"] = groups
        substrate.status["securityGroupId"] = groups[MASTER]

    def finalize(self, substrate: Substrate) -> None:
        for component in reversed(COMPONENTS):
            self.cloud.delete_security_group(substrate.resource_name(component))
        substrate.status.pop("securityGroups", None)
        substrate.status.pop("securityGroupId", None)
