"""Remove every EKS addon in a region.

Used to clean up after test runs that left addons behind.
"""

import logging

from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError

from eks_addons.models import SweepResult
from eks_addons.resource_id import decode, encode
from eks_addons.services.eks_client import EksAddonClient

logger = logging.getLogger(__name__)

# Error codes meaning the region or account can't be swept at all
SKIPPABLE_ERROR_CODES = {
    "AccessDeniedException",
    "InvalidClientTokenId",
    "UnrecognizedClientException",
    "UnsupportedOperation",
    "UnknownOperationException",
}


def is_skippable(error: Exception) -> bool:
    if isinstance(error, EndpointConnectionError):
        return True
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "") in SKIPPABLE_ERROR_CODES
    return False


class AddonSweeper:
    """Delete addons across all clusters of a region."""

    def __init__(
        self,
        client: EksAddonClient,
        region: str,
        dry_run: bool = False,
        wait: bool = False,
    ):
        self.client = client
        self.region = region
        self.dry_run = dry_run
        self.wait = wait

    def _collect(self, result: SweepResult) -> list[str]:
        resource_ids: list[str] = []
        for cluster_name in self.client.iter_clusters():
            result.clusters_scanned += 1
            try:
                for addon_name in self.client.iter_addons(cluster_name):
                    resource_ids.append(encode(cluster_name, addon_name))
            except ClientError as e:
                if is_skippable(e):
                    continue
                result.errors.append(f"error listing EKS Add-Ons ({cluster_name}): {e}")
        return resource_ids

    def sweep(self) -> SweepResult:
        result = SweepResult(region=self.region, dry_run=self.dry_run)

        try:
            resource_ids = self._collect(result)
        except (ClientError, EndpointConnectionError) as e:
            if is_skippable(e):
                logger.warning("Skipping EKS Add-Ons sweep for %s: %s", self.region, e)
                result.skipped = str(e)
                return result
            result.errors.append(f"error listing EKS Clusters ({self.region}): {e}")
            return result

        for resource_id in resource_ids:
            if self.dry_run:
                logger.info("Would delete EKS Add-On %s", resource_id)
                result.swept.append(resource_id)
                continue

            cluster_name, addon_name = decode(resource_id)
            try:
                if self.client.delete_addon(cluster_name, addon_name) and self.wait:
                    self.client.wait_until_deleted(cluster_name, addon_name)
            except (ClientError, BotoCoreError) as e:
                logger.exception("Failed to sweep EKS Add-On %s", resource_id)
                result.errors.append(f"error sweeping EKS Add-On ({resource_id}): {e}")
                continue
            result.swept.append(resource_id)

        return result
