"""Cloud provider interface consumed by the controllers."""

from __future__ import annotations

from typing import Protocol


class CloudProvider(Protocol):
    """Protocol defining the cloud operations the controllers rely on."""

    def account_id(self) -> str:
        """Return the account the operator runs as."""
        ...

    def ensure_bucket(self, name: str) -> bool:
        """Create a bucket or adopt an owned one."""
        ...

    def upload_directory(self, bucket: str, directory: str) -> int:
        """Upload a directory tree, stopping on the first error."""
        ...

    def delete_bucket(self, name: str) -> bool:
        """Delete all objects and then the bucket; absent is not an error."""
        ...

    def ensure_vpc(self, name: str, cidr: str, owner: str | None = None) -> str:
        """Create or adopt the VPC tagged with name."""
        ...

    def delete_vpc(self, name: str) -> bool:
        """Delete the VPC tagged with name."""
        ...

    def ensure_security_group(self, name: str, vpc_id: str, description: str, owner: str | None = None) -> str:
        """Create or adopt a named security group."""
        ...

    def ensure_ingress(self, group_id: str, port: int, cidr: str = "0.0.0.0/0", protocol: str = "tcp") -> None:
        """Authorize an ingress rule; an existing rule is not an error."""
        ...

    def delete_security_group(self, name: str) -> bool:
        """Delete a named security group."""
        ...

    def ensure_address(self, name: str, owner: str | None = None) -> dict[str, str]:
        """Allocate or adopt the Elastic IP tagged with name."""
        ...

    def release_address(self, name: str) -> bool:
        """Release the Elastic IP tagged with name."""
        ...
