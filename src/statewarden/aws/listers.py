"""Enumerate account resources through an explicit registry of listers.

Each lister is a plain function taking a boto3 session and returning the
resources of one type. The registry is assembled once at startup from a
list of ``(type name, lister)`` pairs.
"""

import json
from typing import Callable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from statewarden.errors import TransientFetchError
from statewarden.models import DiscoveredResource

Lister = Callable[[boto3.session.Session], list[DiscoveredResource]]


def list_ec2_instances(session: boto3.session.Session) -> list[DiscoveredResource]:
    client = session.client("ec2")
    resources = []
    for page in client.get_paginator("describe_instances").paginate():
        for reservation in page["Reservations"]:
            for instance in reservation["Instances"]:
                resources.append(
                    DiscoveredResource(
                        resource_type="EC2Instance",
                        resource_id=instance["InstanceId"],
                        details=json.dumps(instance, default=str, indent=2, sort_keys=True),
                    )
                )
    return resources


def list_ec2_security_groups(session: boto3.session.Session) -> list[DiscoveredResource]:
    client = session.client("ec2")
    resources = []
    for page in client.get_paginator("describe_security_groups").paginate():
        for group in page["SecurityGroups"]:
            resources.append(
                DiscoveredResource(
                    resource_type="EC2SecurityGroup",
                    resource_id=group["GroupId"],
                    details=f"Name: {group.get('GroupName', '')}\n"
                    f"Description: {group.get('Description', '')}\n"
                    f"VPC: {group.get('VpcId', '')}\n",
                )
            )
    return resources


def list_s3_buckets(session: boto3.session.Session) -> list[DiscoveredResource]:
    client = session.client("s3")
    resources = []
    for bucket in client.list_buckets()["Buckets"]:
        name = bucket["Name"]
        try:
            tags = client.get_bucket_tagging(Bucket=name)["TagSet"]
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") != "NoSuchTagSet":
                continue
            tags = []

        lines = ["Tags:"]
        lines.extend(f"#{i}: {t['Key']} => {t['Value']}" for i, t in enumerate(tags))
        resources.append(
            DiscoveredResource(
                resource_type="S3Bucket",
                resource_id=name,
                details="\n".join(lines) + "\n",
            )
        )
    return resources


def default_listers() -> list[tuple[str, Lister]]:
    return [
        ("EC2Instance", list_ec2_instances),
        ("EC2SecurityGroup", list_ec2_security_groups),
        ("S3Bucket", list_s3_buckets),
    ]


class ResourceRegistry:
    """Runs every registered lister against one boto3 session."""

    def __init__(self, listers: list[tuple[str, Lister]], session: boto3.session.Session):
        names = [name for name, _ in listers]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"duplicate resource listers: {sorted(duplicates)}")
        self._listers = listers
        self._session = session

    @property
    def resource_types(self) -> list[str]:
        return [name for name, _ in self._listers]

    def list_all(self) -> list[DiscoveredResource]:
        """Return every resource of every registered type.

        Raises:
            TransientFetchError: any lister failed; no partial list is returned.
        """
        result: list[DiscoveredResource] = []
        for resource_type, lister in self._listers:
            try:
                result.extend(lister(self._session))
            except (ClientError, BotoCoreError) as e:
                raise TransientFetchError(
                    f"fetch failed for resource type {resource_type}: {e}"
                ) from e
        return result
