import logging
from typing import Optional

from eks_addons.database import Database
from eks_addons.models import (
    AddonInput,
    AddonPlanResponse,
    AddonState,
    RemoteAddon,
    ResolveConflicts,
    ValidationErrorDetail,
)
from eks_addons.resource_id import decode, encode
from eks_addons.services.eks_client import AddonNotFoundError, EksAddonClient
from eks_addons.tags import TagPolicy, apply, split_remote_tags
from eks_addons.validation import ConfigValidationError, validate_addon_input

logger = logging.getLogger(__name__)


class AddonAlreadyExistsError(Exception):
    """Raised when a resource ID is already tracked in state."""

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"EKS Add-On ({resource_id}) is already managed")


class AddonNotManagedError(LookupError):
    """Raised when a resource ID is not tracked in state."""

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(f"EKS Add-On ({resource_id}) is not managed")


class AddonResourceService:
    """Lifecycle of a single EKS addon: create, read, update, delete, import.

    The tag policy is passed in explicitly; nothing here reads provider-wide
    configuration on its own.
    """

    def __init__(
        self,
        client: EksAddonClient,
        database: Database,
        tag_policy: Optional[TagPolicy] = None,
        wait_for_completion: bool = True,
    ):
        self.client = client
        self.database = database
        self.tag_policy = tag_policy or TagPolicy()
        self.wait_for_completion = wait_for_completion

    def _refresh(
        self, resource_id: str, resolve_conflicts: Optional[ResolveConflicts]
    ) -> AddonState:
        """Read the addon from AWS and write the result to state."""
        cluster_name, addon_name = decode(resource_id)
        remote = self.client.find_addon(cluster_name, addon_name)
        return self._save(resource_id, remote, resolve_conflicts)

    def _save(
        self,
        resource_id: str,
        remote: RemoteAddon,
        resolve_conflicts: Optional[ResolveConflicts],
    ) -> AddonState:
        tags, tags_all = split_remote_tags(remote.tags, self.tag_policy)

        state = AddonState(
            id=resource_id,
            arn=remote.addon_arn,
            cluster_name=remote.cluster_name,
            addon_name=remote.addon_name,
            addon_version=remote.addon_version,
            resolve_conflicts=resolve_conflicts,
            service_account_role_arn=remote.service_account_role_arn,
            configuration_values=remote.configuration_values,
            status=remote.status,
            tags=tags,
            tags_all=tags_all,
            created_at=remote.created_at,
            modified_at=remote.modified_at,
        )
        return self.database.save_state(state)

    def plan(self, config: AddonInput) -> AddonPlanResponse:
        """Validate a configuration and report what would be applied."""
        tags_all = validate_addon_input(config, self.tag_policy)
        resource_id = encode(config.cluster_name, config.addon_name)
        return AddonPlanResponse(
            id=resource_id,
            tags_all=tags_all,
            exists=self.database.exists(resource_id),
        )

    def create(self, config: AddonInput) -> AddonState:
        tags_all = validate_addon_input(config, self.tag_policy)
        resource_id = encode(config.cluster_name, config.addon_name)
        if self.database.exists(resource_id):
            raise AddonAlreadyExistsError(resource_id)

        remote = self.client.create_addon(
            config.cluster_name,
            config.addon_name,
            addon_version=config.addon_version,
            resolve_conflicts=config.resolve_conflicts,
            service_account_role_arn=config.service_account_role_arn,
            configuration_values=config.configuration_values,
            tags=tags_all,
        )
        # Track the addon before waiting so a failed wait leaves it in state
        self._save(resource_id, remote, config.resolve_conflicts)
        if self.wait_for_completion:
            self.client.wait_until_active(config.cluster_name, config.addon_name)

        logger.info("EKS Add-On %s created", resource_id)
        return self._refresh(resource_id, config.resolve_conflicts)

    def read(self, resource_id: str) -> Optional[AddonState]:
        """Refresh state from AWS. Returns None if the addon has disappeared.

        Only managed addons can be read; use import_addon to adopt others.
        """
        decode(resource_id)
        existing = self.database.get_state(resource_id)
        if existing is None:
            raise AddonNotManagedError(resource_id)

        try:
            return self._refresh(resource_id, existing.resolve_conflicts)
        except AddonNotFoundError:
            logger.warning("EKS Add-On (%s) not found, removing from state", resource_id)
            self.database.delete_state(resource_id)
            return None

    def update(self, resource_id: str, config: AddonInput) -> AddonState:
        cluster_name, addon_name = decode(resource_id)
        if (config.cluster_name, config.addon_name) != (cluster_name, addon_name):
            raise ConfigValidationError(
                [
                    ValidationErrorDetail(
                        field="cluster_name/addon_name",
                        message="cluster_name and addon_name cannot be changed in place",
                        value=f"{config.cluster_name}:{config.addon_name}",
                    )
                ]
            )
        if not self.database.exists(resource_id):
            raise AddonNotManagedError(resource_id)

        tags_all = validate_addon_input(config, self.tag_policy)
        remote = self.client.find_addon(cluster_name, addon_name)

        version_changed = bool(config.addon_version) and config.addon_version != remote.addon_version
        role_changed = (config.service_account_role_arn or "") != (remote.service_account_role_arn or "")
        values_changed = (config.configuration_values or "") != (remote.configuration_values or "")

        if version_changed or role_changed or values_changed:
            self.client.update_addon(
                cluster_name,
                addon_name,
                addon_version=config.addon_version if version_changed else None,
                resolve_conflicts=config.resolve_conflicts,
                service_account_role_arn=(config.service_account_role_arn or "") if role_changed else None,
                configuration_values=(config.configuration_values or "") if values_changed else None,
            )
            if self.wait_for_completion:
                self.client.wait_until_active(cluster_name, addon_name)

        delta = self.tag_policy.diff(remote.tags, tags_all)
        if not delta.is_empty:
            logger.info(
                "Updating tags for EKS Add-On %s: +%d ~%d -%d",
                resource_id,
                len(delta.to_create),
                len(delta.to_update),
                len(delta.to_remove),
            )
            apply(self.client, remote.addon_arn, delta)

        return self._refresh(resource_id, config.resolve_conflicts)

    def delete(self, resource_id: str) -> bool:
        """Delete the addon and drop it from state.

        Returns False when there was nothing to delete, either remotely or in
        state.
        """
        cluster_name, addon_name = decode(resource_id)
        deleted = self.client.delete_addon(cluster_name, addon_name)
        if deleted and self.wait_for_completion:
            self.client.wait_until_deleted(cluster_name, addon_name)

        had_state = self.database.delete_state(resource_id)
        if deleted:
            logger.info("EKS Add-On %s deleted", resource_id)
        return deleted or had_state

    def import_addon(self, resource_id: str) -> AddonState:
        """Adopt an existing addon into state.

        resolve_conflicts is not reported by EKS, so it stays unset until the
        next update.
        """
        decode(resource_id)
        if self.database.exists(resource_id):
            raise AddonAlreadyExistsError(resource_id)

        state = self._refresh(resource_id, None)
        logger.info("EKS Add-On %s imported", resource_id)
        return state
