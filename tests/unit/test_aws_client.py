"""Unit tests for the AWS client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from kit_operator.services.aws.client import AWSProvider


def client_error(code: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def clients():
    return {"s3": MagicMock(), "sts": MagicMock(), "ec2": MagicMock()}


def make_provider(clients, region="us-west-2") -> AWSProvider:
    session = MagicMock()
    session.region_name = region
    session.client.side_effect = lambda name, config=None: clients[name]
    return AWSProvider(region=region, session=session)


class TestIdentity:
    """Test account lookup."""

    def test_account_id(self, clients) -> None:
        """The account comes from STS."""
        clients["sts"].get_caller_identity.return_value = {"Account": "123456789012"}
        assert make_provider(clients).account_id() == "123456789012"


class TestBuckets:
    """Test S3 bucket operations."""

    def test_create_bucket_with_location(self, clients) -> None:
        """Regions other than us-east-1 pass a location constraint."""
        assert make_provider(clients).ensure_bucket("kit-sub") is True
        clients["s3"].create_bucket.assert_called_once_with(
            Bucket="kit-sub", CreateBucketConfiguration={"LocationConstraint": "us-west-2"}
        )

    def test_create_bucket_us_east_1(self, clients) -> None:
        """us-east-1 takes no location constraint."""
        make_provider(clients, region="us-east-1").ensure_bucket("kit-sub")
        clients["s3"].create_bucket.assert_called_once_with(Bucket="kit-sub")

    def test_adopt_owned_bucket(self, clients) -> None:
        """A bucket we already own is adopted."""
        clients["s3"].create_bucket.side_effect = client_error("BucketAlreadyOwnedByYou")
        assert make_provider(clients).ensure_bucket("kit-sub") is False

    def test_bucket_owned_by_someone_else(self, clients) -> None:
        """A name taken by another account is an error."""
        clients["s3"].create_bucket.side_effect = client_error("BucketAlreadyExists")
        with pytest.raises(ClientError):
            make_provider(clients).ensure_bucket("kit-sub")

    def test_delete_bucket_empties_first(self, clients) -> None:
        """Objects are deleted before the bucket."""
        paginator = MagicMock()
        paginator.paginate.return_value = [{"Contents": [{"Key": "a"}, {"Key": "b"}]}, {}]
        clients["s3"].get_paginator.return_value = paginator
        clients["s3"].delete_objects.return_value = {}

        assert make_provider(clients).delete_bucket("kit-sub") is True

        clients["s3"].delete_objects.assert_called_once_with(
            Bucket="kit-sub", Delete={"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": True}
        )
        clients["s3"].delete_bucket.assert_called_once_with(Bucket="kit-sub")

    def test_delete_missing_bucket(self, clients) -> None:
        """A missing bucket is already deleted."""
        paginator = MagicMock()
        paginator.paginate.side_effect = client_error("NoSuchBucket")
        clients["s3"].get_paginator.return_value = paginator

        assert make_provider(clients).delete_bucket("kit-sub") is False

    def test_delete_objects_errors(self, clients) -> None:
        """Per-object delete errors fail the call."""
        paginator = MagicMock()
        paginator.paginate.return_value = [{"Contents": [{"Key": "a"}]}]
        clients["s3"].get_paginator.return_value = paginator
        clients["s3"].delete_objects.return_value = {"Errors": [{"Key": "a", "Code": "AccessDenied"}]}

        with pytest.raises(RuntimeError):
            make_provider(clients).delete_bucket("kit-sub")
        clients["s3"].delete_bucket.assert_not_called()

    def test_upload_directory(self, clients, tmp_path) -> None:
        """Files are uploaded under their relative path."""
        (tmp_path / "etc").mkdir()
        (tmp_path / "etc" / "a.conf").write_text("a")

        assert make_provider(clients).upload_directory("kit-sub", str(tmp_path)) == 1
        assert clients["s3"].upload_fileobj.call_args.args[1:] == ("kit-sub", "etc/a.conf")


class TestNetworkResources:
    """Test VPC, security group and address operations."""

    def test_adopt_existing_vpc(self, clients) -> None:
        """A VPC tagged with the name is reused."""
        clients["ec2"].describe_vpcs.return_value = {"Vpcs": [{"VpcId": "vpc-1"}]}

        assert make_provider(clients).ensure_vpc("kit-sub", "10.0.0.0/16") == "vpc-1"
        clients["ec2"].create_vpc.assert_not_called()

    def test_create_vpc(self, clients) -> None:
        """A missing VPC is created with name and owner tags."""
        clients["ec2"].describe_vpcs.return_value = {"Vpcs": []}
        clients["ec2"].create_vpc.return_value = {"Vpc": {"VpcId": "vpc-2"}}

        assert make_provider(clients).ensure_vpc("kit-sub", "10.0.0.0/16", owner="uid") == "vpc-2"
        tags = clients["ec2"].create_vpc.call_args.kwargs["TagSpecifications"][0]["Tags"]
        assert {"Key": "Name", "Value": "kit-sub"} in tags
        assert {"Key": "kit.sh/owner", "Value": "uid"} in tags

    def test_delete_missing_vpc(self, clients) -> None:
        """Deleting an unknown VPC is a no-op."""
        clients["ec2"].describe_vpcs.return_value = {"Vpcs": []}
        assert make_provider(clients).delete_vpc("kit-sub") is False

    def test_security_group_race(self, clients) -> None:
        """A group created concurrently is adopted."""
        clients["ec2"].describe_security_groups.side_effect = [
            {"SecurityGroups": []},
            {"SecurityGroups": [{"GroupId": "sg-1"}]},
        ]
        clients["ec2"].create_security_group.side_effect = client_error("InvalidGroup.Duplicate")

        assert make_provider(clients).ensure_security_group("kit-sub-master", "vpc-1", "master") == "sg-1"

    def test_duplicate_ingress_ignored(self, clients) -> None:
        """An existing rule is not an error."""
        clients["ec2"].authorize_security_group_ingress.side_effect = client_error("InvalidPermission.Duplicate")
        make_provider(clients).ensure_ingress("sg-1", 443)

    def test_ingress_error_propagates(self, clients) -> None:
        """Other authorization errors surface."""
        clients["ec2"].authorize_security_group_ingress.side_effect = client_error("UnauthorizedOperation")
        with pytest.raises(ClientError):
            make_provider(clients).ensure_ingress("sg-1", 443)

    def test_allocate_address(self, clients) -> None:
        """A missing address is allocated."""
        clients["ec2"].describe_addresses.return_value = {"Addresses": []}
        clients["ec2"].allocate_address.return_value = {"AllocationId": "eipalloc-1", "PublicIp": "203.0.113.1"}

        assert make_provider(clients).ensure_address("kit-sub") == {
            "allocationId": "eipalloc-1",
            "address": "203.0.113.1",
        }

    def test_release_address(self, clients) -> None:
        """An allocated address is released by allocation id."""
        clients["ec2"].describe_addresses.return_value = {
            "Addresses": [{"AllocationId": "eipalloc-1", "PublicIp": "203.0.113.1"}]
        }

        assert make_provider(clients).release_address("kit-sub") is True
        clients["ec2"].release_address.assert_called_once_with(AllocationId="eipalloc-1")
