from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ResolveConflicts(str, Enum):
    """How EKS handles fields that conflict with existing cluster objects."""

    NONE = "NONE"
    OVERWRITE = "OVERWRITE"
    PRESERVE = "PRESERVE"


class AddonStatus(str, Enum):
    """Status reported by the EKS API for an addon."""

    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    CREATE_FAILED = "CREATE_FAILED"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    DELETE_FAILED = "DELETE_FAILED"
    DEGRADED = "DEGRADED"
    UPDATE_FAILED = "UPDATE_FAILED"


class AddonInput(BaseModel):
    """Desired configuration of a single EKS addon."""

    cluster_name: str = Field(
        ...,
        description="Name of the EKS cluster the addon belongs to",
        min_length=1,
        max_length=100,
    )
    addon_name: str = Field(
        ...,
        description="Addon name, e.g. vpc-cni",
        min_length=1,
    )
    addon_version: Optional[str] = Field(
        default=None,
        description="Addon version (None = EKS default for the cluster)",
    )
    resolve_conflicts: Optional[ResolveConflicts] = Field(
        default=None,
        description="Conflict resolution applied on create and update",
    )
    service_account_role_arn: Optional[str] = Field(
        default=None,
        description="IAM role ARN bound to the addon's service account",
    )
    configuration_values: Optional[str] = Field(
        default=None,
        description="JSON configuration values passed to the addon",
    )
    tags: dict[str, str] = Field(default_factory=dict)


class RemoteAddon(BaseModel):
    """Addon as described by the EKS API."""

    cluster_name: str
    addon_name: str
    addon_arn: str
    addon_version: Optional[str] = None
    status: Optional[AddonStatus] = None
    service_account_role_arn: Optional[str] = None
    configuration_values: Optional[str] = None
    tags: dict[str, str] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, addon: dict[str, Any]) -> "RemoteAddon":
        """Build from the ``addon`` object of a describe/create response."""
        return cls(
            cluster_name=addon["clusterName"],
            addon_name=addon["addonName"],
            addon_arn=addon["addonArn"],
            addon_version=addon.get("addonVersion"),
            status=addon.get("status"),
            service_account_role_arn=addon.get("serviceAccountRoleArn"),
            configuration_values=addon.get("configurationValues") or None,
            tags=addon.get("tags") or {},
            created_at=addon.get("createdAt"),
            modified_at=addon.get("modifiedAt"),
        )


class AddonState(BaseModel):
    """Persisted state of a managed addon."""

    id: str
    arn: str
    cluster_name: str
    addon_name: str
    addon_version: Optional[str] = None
    resolve_conflicts: Optional[ResolveConflicts] = None
    service_account_role_arn: Optional[str] = None
    configuration_values: Optional[str] = None
    status: Optional[AddonStatus] = None

    # tags: set on the resource itself; tags_all: including provider defaults
    tags: dict[str, str] = Field(default_factory=dict)
    tags_all: dict[str, str] = Field(default_factory=dict)

    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    refreshed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ImportRequest(BaseModel):
    """Request model for adopting an existing addon into state."""

    id: str = Field(..., description="Resource ID in the form cluster-name:addon-name")


class AddonPlanResponse(BaseModel):
    """Result of validating an addon configuration without applying it."""

    id: str
    tags_all: dict[str, str]
    exists: bool


class AddonListResponse(BaseModel):
    """Response model for listing managed addons."""

    addons: list[AddonState]
    total: int


class SweepResult(BaseModel):
    """Outcome of sweeping addons from a region."""

    region: str
    dry_run: bool = False
    clusters_scanned: int = 0
    swept: list[str] = Field(default_factory=list)
    skipped: Optional[str] = None
    errors: list[str] = Field(default_factory=list)


class ValidationErrorDetail(BaseModel):
    """Single validation error detail."""

    field: str
    message: str
    value: Optional[str] = None


class ValidationErrorResponse(BaseModel):
    """Structured validation error response."""

    error: str = "validation_error"
    message: str
    details: list[ValidationErrorDetail]
