"""
tests/conftest.py - shared pytest fixtures

Provides an in-memory stand-in for the boto3 ``eks`` client so the addon
lifecycle can be exercised end to end without AWS.

Usage:
    def test_something(eks_api, service):
        # eks_api: FakeEksApi holding addons in a dict
        # service: AddonResourceService wired to eks_api and a temp database
        pass
"""

import os
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from eks_addons.database import Database
from eks_addons.services.addon_resource import AddonResourceService
from eks_addons.services.eks_client import EksAddonClient
from eks_addons.tags import TagPolicy

REGION = "us-west-2"
ACCOUNT_ID = "123456789012"


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Test environment variables"""
    os.environ.setdefault("AWS_DEFAULT_REGION", REGION)
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    yield


def client_error(code: str, operation: str = "DescribeAddon") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakePaginator:
    def __init__(self, pages_fn):
        self._pages_fn = pages_fn

    def paginate(self, **kwargs):
        return self._pages_fn(**kwargs)


class FakeEksApi:
    """Minimal boto3 ``eks`` client backed by a dict of addons."""

    def __init__(self):
        self.addons: dict[tuple[str, str], dict] = {}
        self.clusters: list[str] = []
        self.calls: list[tuple[str, dict]] = []
        self.waiter = MagicMock()

    def _arn(self, cluster_name: str, addon_name: str) -> str:
        return f"arn:aws:eks:{REGION}:{ACCOUNT_ID}:addon/{cluster_name}/{addon_name}/abcd1234"

    def _get(self, cluster_name: str, addon_name: str, operation: str) -> dict:
        addon = self.addons.get((cluster_name, addon_name))
        if addon is None:
            raise client_error("ResourceNotFoundException", operation)
        return addon

    def _by_arn(self, resource_arn: str) -> dict:
        for addon in self.addons.values():
            if addon["addonArn"] == resource_arn:
                return addon
        raise client_error("ResourceNotFoundException", "TagResource")

    def put_addon(self, cluster_name: str, addon_name: str, **fields) -> dict:
        """Seed an addon as if it had been created outside the service."""
        if cluster_name not in self.clusters:
            self.clusters.append(cluster_name)
        addon = {
            "clusterName": cluster_name,
            "addonName": addon_name,
            "addonArn": self._arn(cluster_name, addon_name),
            "addonVersion": "v1.8.0-eksbuild.1",
            "status": "ACTIVE",
            "tags": {},
            "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
            "modifiedAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }
        addon.update(fields)
        self.addons[(cluster_name, addon_name)] = addon
        return addon

    def describe_addon(self, clusterName, addonName):
        self.calls.append(("describe_addon", {"clusterName": clusterName, "addonName": addonName}))
        addon = self._get(clusterName, addonName, "DescribeAddon")
        return {"addon": {**addon, "tags": dict(addon["tags"])}}

    def create_addon(self, clusterName, addonName, **kwargs):
        self.calls.append(("create_addon", {"clusterName": clusterName, "addonName": addonName, **kwargs}))
        if (clusterName, addonName) in self.addons:
            raise client_error("ResourceInUseException", "CreateAddon")
        fields = {"tags": dict(kwargs.get("tags", {}))}
        if "addonVersion" in kwargs:
            fields["addonVersion"] = kwargs["addonVersion"]
        if "serviceAccountRoleArn" in kwargs:
            fields["serviceAccountRoleArn"] = kwargs["serviceAccountRoleArn"]
        if "configurationValues" in kwargs:
            fields["configurationValues"] = kwargs["configurationValues"]
        addon = self.put_addon(clusterName, addonName, **fields)
        return {"addon": dict(addon)}

    def update_addon(self, clusterName, addonName, **kwargs):
        self.calls.append(("update_addon", {"clusterName": clusterName, "addonName": addonName, **kwargs}))
        addon = self._get(clusterName, addonName, "UpdateAddon")
        if "addonVersion" in kwargs:
            addon["addonVersion"] = kwargs["addonVersion"]
        if "serviceAccountRoleArn" in kwargs:
            addon["serviceAccountRoleArn"] = kwargs["serviceAccountRoleArn"] or None
        if "configurationValues" in kwargs:
            addon["configurationValues"] = kwargs["configurationValues"]
        return {"update": {"id": "update-1", "status": "InProgress"}}

    def delete_addon(self, clusterName, addonName):
        self.calls.append(("delete_addon", {"clusterName": clusterName, "addonName": addonName}))
        addon = self._get(clusterName, addonName, "DeleteAddon")
        del self.addons[(clusterName, addonName)]
        return {"addon": addon}

    def tag_resource(self, resourceArn, tags):
        self.calls.append(("tag_resource", {"resourceArn": resourceArn, "tags": dict(tags)}))
        self._by_arn(resourceArn)["tags"].update(tags)
        return {}

    def untag_resource(self, resourceArn, tagKeys):
        self.calls.append(("untag_resource", {"resourceArn": resourceArn, "tagKeys": list(tagKeys)}))
        addon_tags = self._by_arn(resourceArn)["tags"]
        for key in tagKeys:
            addon_tags.pop(key, None)
        return {}

    def get_waiter(self, name):
        self.calls.append(("get_waiter", {"name": name}))
        return self.waiter

    def get_paginator(self, name):
        if name == "list_clusters":
            return FakePaginator(lambda: [{"clusters": list(self.clusters)}])
        if name == "list_addons":
            return FakePaginator(
                lambda clusterName: [
                    {"addons": [a for (c, a) in self.addons if c == clusterName]}
                ]
            )
        raise KeyError(name)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def eks_api() -> FakeEksApi:
    return FakeEksApi()


@pytest.fixture
def eks_client(eks_api) -> EksAddonClient:
    return EksAddonClient(eks_api)


@pytest.fixture
def database(tmp_path) -> Database:
    return Database(f"sqlite:///{tmp_path / 'state.db'}")


@pytest.fixture
def tag_policy() -> TagPolicy:
    return TagPolicy()


@pytest.fixture
def service(eks_client, database, tag_policy) -> AddonResourceService:
    return AddonResourceService(
        client=eks_client,
        database=database,
        tag_policy=tag_policy,
        wait_for_completion=True,
    )
