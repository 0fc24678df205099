import logging
from abc import ABC, abstractmethod
from typing import Iterator, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from eks_addons.models import RemoteAddon, ResolveConflicts
from eks_addons.settings import Settings
from eks_addons.tags import RemoteTaggingError, TaggingClient

logger = logging.getLogger(__name__)


class AddonNotFoundError(LookupError):
    """Raised when an addon does not exist remotely."""

    def __init__(self, cluster_name: str, addon_name: str):
        self.cluster_name = cluster_name
        self.addon_name = addon_name
        super().__init__(f"EKS Add-On ({cluster_name}:{addon_name}) not found")


class LookupClient(ABC):

    @abstractmethod
    def find_addon(self, cluster_name: str, addon_name: str) -> RemoteAddon:
        """Describe an addon, raising AddonNotFoundError when it is absent."""
        pass


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


def create_eks_client(settings: Settings):
    """Build a boto3 EKS client, assuming the configured role if there is one."""
    if not settings.aws_role_arn:
        return boto3.client("eks", region_name=settings.aws_region)

    try:
        sts = boto3.client("sts", region_name=settings.aws_region)
        assume_args = {
            "RoleArn": settings.aws_role_arn,
            "RoleSessionName": "eks-addons",
            "DurationSeconds": 900,
        }
        if settings.aws_external_id:
            assume_args["ExternalId"] = settings.aws_external_id
        assumed = sts.assume_role(**assume_args)
    except NoCredentialsError as e:
        raise ValueError(
            f"Failed to locate AWS credentials: {e}. "
            "Use env vars, IAM role (EC2/IRSA), or other default provider chain."
        ) from e
    except ClientError as e:
        raise ValueError(f"Failed to assume role {settings.aws_role_arn}: {e}") from e

    creds = assumed["Credentials"]
    return boto3.client(
        "eks",
        region_name=settings.aws_region,
        aws_access_key_id=creds["AccessKeyId"],
        aws_secret_access_key=creds["SecretAccessKey"],
        aws_session_token=creds["SessionToken"],
    )


class EksAddonClient(LookupClient, TaggingClient):
    """EKS addon operations on top of a boto3 ``eks`` client."""

    def __init__(self, client):
        self._client = client

    def find_addon(self, cluster_name: str, addon_name: str) -> RemoteAddon:
        try:
            response = self._client.describe_addon(
                clusterName=cluster_name, addonName=addon_name
            )
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                raise AddonNotFoundError(cluster_name, addon_name) from e
            raise
        return RemoteAddon.from_api(response["addon"])

    def create_addon(
        self,
        cluster_name: str,
        addon_name: str,
        addon_version: Optional[str] = None,
        resolve_conflicts: Optional[ResolveConflicts] = None,
        service_account_role_arn: Optional[str] = None,
        configuration_values: Optional[str] = None,
        tags: Optional[dict[str, str]] = None,
    ) -> RemoteAddon:
        params: dict = {"clusterName": cluster_name, "addonName": addon_name}
        if addon_version:
            params["addonVersion"] = addon_version
        if resolve_conflicts:
            params["resolveConflicts"] = resolve_conflicts.value
        if service_account_role_arn:
            params["serviceAccountRoleArn"] = service_account_role_arn
        if configuration_values:
            params["configurationValues"] = configuration_values
        if tags:
            params["tags"] = tags

        logger.info("Creating EKS Add-On %s on cluster %s", addon_name, cluster_name)
        response = self._client.create_addon(**params)
        return RemoteAddon.from_api(response["addon"])

    def update_addon(
        self,
        cluster_name: str,
        addon_name: str,
        addon_version: Optional[str] = None,
        resolve_conflicts: Optional[ResolveConflicts] = None,
        service_account_role_arn: Optional[str] = None,
        configuration_values: Optional[str] = None,
    ) -> Optional[str]:
        """Start an addon update and return its update ID."""
        params: dict = {"clusterName": cluster_name, "addonName": addon_name}
        if addon_version:
            params["addonVersion"] = addon_version
        if resolve_conflicts:
            params["resolveConflicts"] = resolve_conflicts.value
        # An empty role ARN clears the binding on the EKS side.
        if service_account_role_arn is not None:
            params["serviceAccountRoleArn"] = service_account_role_arn
        if configuration_values is not None:
            params["configurationValues"] = configuration_values

        logger.info("Updating EKS Add-On %s on cluster %s", addon_name, cluster_name)
        response = self._client.update_addon(**params)
        return response.get("update", {}).get("id")

    def delete_addon(self, cluster_name: str, addon_name: str) -> bool:
        """Delete an addon. Returns False if it was already gone."""
        logger.info("Deleting EKS Add-On %s on cluster %s", addon_name, cluster_name)
        try:
            self._client.delete_addon(clusterName=cluster_name, addonName=addon_name)
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                return False
            raise
        return True

    def wait_until_active(self, cluster_name: str, addon_name: str) -> None:
        self._client.get_waiter("addon_active").wait(
            clusterName=cluster_name, addonName=addon_name
        )

    def wait_until_deleted(self, cluster_name: str, addon_name: str) -> None:
        self._client.get_waiter("addon_deleted").wait(
            clusterName=cluster_name, addonName=addon_name
        )

    def iter_clusters(self) -> Iterator[str]:
        """Yield every cluster name in the region, one page at a time."""
        for page in self._client.get_paginator("list_clusters").paginate():
            yield from page.get("clusters", [])

    def iter_addons(self, cluster_name: str) -> Iterator[str]:
        """Yield every addon name installed on a cluster."""
        paginator = self._client.get_paginator("list_addons")
        for page in paginator.paginate(clusterName=cluster_name):
            yield from page.get("addons", [])

    def tag_resource(self, resource_arn: str, tags: dict[str, str]) -> None:
        try:
            self._client.tag_resource(resourceArn=resource_arn, tags=tags)
        except (ClientError, BotoCoreError) as e:
            raise RemoteTaggingError(resource_arn, "TagResource", str(e)) from e

    def untag_resource(self, resource_arn: str, keys: list[str]) -> None:
        try:
            self._client.untag_resource(resourceArn=resource_arn, tagKeys=keys)
        except (ClientError, BotoCoreError) as e:
            raise RemoteTaggingError(resource_arn, "UntagResource", str(e)) from e
