"""Elastic IP the substrate's API server is reached on."""

from __future__ import annotations

from ..apis.v1alpha1 import Substrate
from ..services.base import CloudProvider


class AddressController:
    def __init__(self, cloud: CloudProvider) -> None:
        self.cloud = cloud

    def reconcile(self, substrate: Substrate) -> None:
        found = self.cloud.ensure_address(substrate.resource_name(), owner=substrate.uid)
        substrate.cluster_status["address"] = found["address"]
        substrate.cluster_status["allocationId"] = found["allocationId"]

    def finalize(self, substrate: Substrate) -> None:
        self.cloud.release_address(substrate.resource_name())
        substrate.cluster_status.pop("address", None)
        substrate.cluster_status.pop("allocationId", None)
