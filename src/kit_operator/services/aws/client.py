"""AWS client implementation used by the Substrate and ControlPlane controllers."""

from __future__ import annotations

import logging
import time
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ... import metrics
from ...constants import TAG_NAME, TAG_OWNER
from ...errors import aws_error_code
from .sync import DirectoryIterator, upload_with_iterator

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most 1000 keys per request
DELETE_BATCH_SIZE = 1000


def _tags(name: str, owner: str | None) -> list[dict[str, str]]:
    tags = [{"Key": TAG_NAME, "Value": name}]
    if owner:
        tags.append({"Key": TAG_OWNER, "Value": owner})
    return tags


class AWSProvider:
    """Create-or-adopt wrappers over the S3, STS and EC2 APIs.

    Every resource is addressed by a deterministic name (bucket name, Name
    tag, group name) so a retried call finds what an earlier attempt created.
    """

    def __init__(
        self,
        region: str | None = None,
        session: boto3.session.Session | None = None,
    ) -> None:
        """Initialize AWS clients.

        Args:
            region: AWS region; falls back to the default credential chain
            session: Optional boto3 session (mainly for tests)
        """
        session = session or boto3.session.Session(region_name=region)
        config = Config(retries={"max_attempts": 3, "mode": "standard"})
        self.region = region or session.region_name
        self.s3 = session.client("s3", config=config)
        self.sts = session.client("sts", config=config)
        self.ec2 = session.client("ec2", config=config)

    def _call(self, api_type: str, operation: str, fn: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            response = fn(**kwargs)
            metrics.api_call_total.labels(api_type=api_type, operation=operation, result="success").inc()
            return response
        except Exception:
            metrics.api_call_total.labels(api_type=api_type, operation=operation, result="error").inc()
            raise
        finally:
            metrics.api_call_duration_seconds.labels(api_type=api_type, operation=operation).observe(
                time.time() - start_time
            )

    # Identity

    def account_id(self) -> str:
        """Return the AWS account the operator runs as."""
        return self._call("sts", "get_caller_identity", self.sts.get_caller_identity)["Account"]

    # S3

    def ensure_bucket(self, name: str) -> bool:
        """Create a bucket, adopting one we already own.

        Returns:
            True if the bucket was created, False if it already existed
        """
        params: dict[str, Any] = {"Bucket": name}
        # us-east-1 rejects an explicit LocationConstraint
        if self.region and self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self._call("s3", "create_bucket", self.s3.create_bucket, **params)
        except ClientError as e:
            if aws_error_code(e) == "BucketAlreadyOwnedByYou":
                logger.info(f"Found s3 bucket {name}")
                return False
            logger.error(f"Failed to create bucket {name}: {e}")
            raise
        logger.info(f"Created s3 bucket {name}")
        return True

    def upload_directory(self, bucket: str, directory: str) -> int:
        """Upload every file under directory, keyed by its relative path."""
        return upload_with_iterator(self.s3, DirectoryIterator(bucket, directory))

    def delete_bucket(self, name: str) -> bool:
        """Delete every object in a bucket and then the bucket itself.

        Returns:
            True if the bucket was deleted, False if it did not exist
        """
        try:
            paginator = self.s3.get_paginator("list_objects_v2")
            batch: list[dict[str, str]] = []
            for page in paginator.paginate(Bucket=name):
                for obj in page.get("Contents", []):
                    batch.append({"Key": obj["Key"]})
                    if len(batch) == DELETE_BATCH_SIZE:
                        self._delete_objects(name, batch)
                        batch = []
            if batch:
                self._delete_objects(name, batch)
            self._call("s3", "delete_bucket", self.s3.delete_bucket, Bucket=name)
        except ClientError as e:
            if aws_error_code(e) == "NoSuchBucket":
                return False
            logger.error(f"Failed to delete bucket {name}: {e}")
            raise
        logger.info(f"Deleted S3 bucket {name}")
        return True

    def _delete_objects(self, bucket: str, objects: list[dict[str, str]]) -> None:
        response = self._call(
            "s3",
            "delete_objects",
            self.s3.delete_objects,
            Bucket=bucket,
            Delete={"Objects": objects, "Quiet": True},
        )
        errors = response.get("Errors", [])
        if errors:
            first = errors[0]
            raise RuntimeError(
                f"deleting {len(errors)} objects from {bucket} failed, first: "
                f"{first.get('Key')} {first.get('Code')} {first.get('Message')}"
            )

    # VPC

    def find_vpc(self, name: str) -> str | None:
        response = self._call(
            "ec2",
            "describe_vpcs",
            self.ec2.describe_vpcs,
            Filters=[{"Name": f"tag:{TAG_NAME}", "Values": [name]}],
        )
        vpcs = response.get("Vpcs", [])
        return vpcs[0]["VpcId"] if vpcs else None

    def ensure_vpc(self, name: str, cidr: str, owner: str | None = None) -> str:
        """Return the id of the VPC tagged with name, creating it if needed."""
        vpc_id = self.find_vpc(name)
        if vpc_id:
            return vpc_id
        response = self._call(
            "ec2",
            "create_vpc",
            self.ec2.create_vpc,
            CidrBlock=cidr,
            TagSpecifications=[{"ResourceType": "vpc", "Tags": _tags(name, owner)}],
        )
        vpc_id = response["Vpc"]["VpcId"]
        logger.info(f"Created VPC {name} ({vpc_id})")
        return vpc_id

    def delete_vpc(self, name: str) -> bool:
        vpc_id = self.find_vpc(name)
        if vpc_id is None:
            return False
        try:
            self._call("ec2", "delete_vpc", self.ec2.delete_vpc, VpcId=vpc_id)
        except ClientError as e:
            if aws_error_code(e) == "InvalidVpcID.NotFound":
                return False
            raise
        logger.info(f"Deleted VPC {name} ({vpc_id})")
        return True

    # Security groups

    def find_security_group(self, name: str, vpc_id: str | None = None) -> str | None:
        filters = [{"Name": "group-name", "Values": [name]}]
        if vpc_id:
            filters.append({"Name": "vpc-id", "Values": [vpc_id]})
        response = self._call(
            "ec2", "describe_security_groups", self.ec2.describe_security_groups, Filters=filters
        )
        groups = response.get("SecurityGroups", [])
        return groups[0]["GroupId"] if groups else None

    def ensure_security_group(self, name: str, vpc_id: str, description: str, owner: str | None = None) -> str:
        """Return the id of the named security group in vpc_id, creating it if needed."""
        group_id = self.find_security_group(name, vpc_id)
        if group_id:
            return group_id
        try:
            response = self._call(
                "ec2",
                "create_security_group",
                self.ec2.create_security_group,
                GroupName=name,
                Description=description,
                VpcId=vpc_id,
                TagSpecifications=[{"ResourceType": "security-group", "Tags": _tags(name, owner)}],
            )
        except ClientError as e:
            if aws_error_code(e) == "InvalidGroup.Duplicate":
                group_id = self.find_security_group(name, vpc_id)
                if group_id:
                    return group_id
            raise
        logger.info(f"Created security group {name} ({response['GroupId']})")
        return response["GroupId"]

    def ensure_ingress(self, group_id: str, port: int, cidr: str = "0.0.0.0/0", protocol: str = "tcp") -> None:
        try:
            self._call(
                "ec2",
                "authorize_security_group_ingress",
                self.ec2.authorize_security_group_ingress,
                GroupId=group_id,
                IpPermissions=[
                    {
                        "IpProtocol": protocol,
                        "FromPort": port,
                        "ToPort": port,
                        "IpRanges": [{"CidrIp": cidr}],
                    }
                ],
            )
        except ClientError as e:
            if aws_error_code(e) != "InvalidPermission.Duplicate":
                raise

    def delete_security_group(self, name: str) -> bool:
        group_id = self.find_security_group(name)
        if group_id is None:
            return False
        try:
            self._call("ec2", "delete_security_group", self.ec2.delete_security_group, GroupId=group_id)
        except ClientError as e:
            if aws_error_code(e) == "InvalidGroup.NotFound":
                return False
            raise
        logger.info(f"Deleted security group {name} ({group_id})")
        return True

    # Elastic IPs

    def find_address(self, name: str) -> dict[str, str] | None:
        response = self._call(
            "ec2",
            "describe_addresses",
            self.ec2.describe_addresses,
            Filters=[{"Name": f"tag:{TAG_NAME}", "Values": [name]}],
        )
        addresses = response.get("Addresses", [])
        if not addresses:
            return None
        return {"allocationId": addresses[0]["AllocationId"], "address": addresses[0]["PublicIp"]}

    def ensure_address(self, name: str, owner: str | None = None) -> dict[str, str]:
        """Return the Elastic IP tagged with name, allocating one if needed."""
        found = self.find_address(name)
        if found:
            return found
        response = self._call(
            "ec2",
            "allocate_address",
            self.ec2.allocate_address,
            Domain="vpc",
            TagSpecifications=[{"ResourceType": "elastic-ip", "Tags": _tags(name, owner)}],
        )
        logger.info(f"Allocated elastic IP {name} ({response['PublicIp']})")
        return {"allocationId": response["AllocationId"], "address": response["PublicIp"]}

    def release_address(self, name: str) -> bool:
        found = self.find_address(name)
        if found is None:
            return False
        try:
            self._call(
                "ec2", "release_address", self.ec2.release_address, AllocationId=found["allocationId"]
            )
        except ClientError as e:
            if aws_error_code(e) == "InvalidAllocationID.NotFound":
                return False
            raise
        logger.info(f"Released elastic IP {name} ({found['address']})")
        return True
