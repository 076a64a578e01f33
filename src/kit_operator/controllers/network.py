"""VPC of a substrate."""

from __future__ import annotations

import logging

from ..apis.v1alpha1 import Substrate
from ..services.base import CloudProvider

logger = logging.getLogger(__name__)


class NetworkController:
    def __init__(self, cloud: CloudProvider) -> None:
        self.cloud = cloud

    def reconcile(self, substrate: Substrate) -> None:
        substrate.status["vpcId"] = self.cloud.ensure_vpc(
            substrate.resource_name(), substrate.vpc_cidr, owner=substrate.uid
        )

    def finalize(self, substrate: Substrate) -> None:
        if self.cloud.delete_vpc(substrate.resource_name()):
            logger.info(f"Released VPC of substrate {substrate.namespace}/{substrate.name}")
        substrate.status.pop("vpcId", None)
