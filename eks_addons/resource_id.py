"""Composite resource IDs for EKS addons.

An addon is addressed by the pair (cluster name, addon name). The pair is
persisted as a single string, ``"<cluster_name>:<addon_name>"``.
"""

from typing import NamedTuple

RESOURCE_ID_SEPARATOR = ":"


class InvalidInputError(ValueError):
    """Raised when an identifier part is empty or contains the separator."""


class MalformedIdError(ValueError):
    """Raised when a persisted resource ID cannot be parsed."""

    def __init__(self, resource_id: str):
        self.resource_id = resource_id
        super().__init__(
            f"unexpected format for ID ({resource_id!r}), "
            f"expected cluster-name{RESOURCE_ID_SEPARATOR}addon-name"
        )


class ResourceIdentifier(NamedTuple):
    cluster_name: str
    addon_name: str

    def encode(self) -> str:
        return encode(self.cluster_name, self.addon_name)

    @classmethod
    def decode(cls, resource_id: str) -> "ResourceIdentifier":
        return cls(*decode(resource_id))


def _check_part(field: str, value: str) -> None:
    if not value:
        raise InvalidInputError(f"{field} must not be empty")
    if RESOURCE_ID_SEPARATOR in value:
        raise InvalidInputError(
            f"{field} must not contain {RESOURCE_ID_SEPARATOR!r}: {value!r}"
        )


def encode(cluster_name: str, addon_name: str) -> str:
    """Build the resource ID for an addon."""
    _check_part("cluster_name", cluster_name)
    _check_part("addon_name", addon_name)
    return f"{cluster_name}{RESOURCE_ID_SEPARATOR}{addon_name}"


def decode(resource_id: str) -> tuple[str, str]:
    """Split a resource ID back into (cluster_name, addon_name)."""
    parts = (resource_id or "").split(RESOURCE_ID_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise MalformedIdError(resource_id)
    return parts[0], parts[1]
