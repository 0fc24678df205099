"""Tag reconciliation for managed addons.

Three tag sets meet here: tags configured on the resource, provider-wide
default tags, and the tags that actually exist on the remote resource.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Keys under this prefix are owned by AWS and can't be set or removed.
AWS_RESERVED_PREFIX = "aws:"


class AmbiguousTagError(ValueError):
    """Raised when a tag is declared with the same value at both levels."""

    def __init__(self, keys: Iterable[str]):
        self.keys = sorted(keys)
        super().__init__(
            '"tags" are identical to those in the "default_tags" configuration '
            f"block of the provider ({', '.join(self.keys)}): "
            "please de-duplicate and try again"
        )


class RemoteTaggingError(Exception):
    """Raised when the remote tagging API call fails."""

    def __init__(self, resource_arn: str, operation: str, reason: str):
        self.resource_arn = resource_arn
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed for {resource_arn}: {reason}")


class TaggingClient(ABC):

    @abstractmethod
    def tag_resource(self, resource_arn: str, tags: dict[str, str]) -> None:
        """Set (create or overwrite) tags on a resource."""
        pass

    @abstractmethod
    def untag_resource(self, resource_arn: str, keys: list[str]) -> None:
        """Remove tag keys from a resource."""
        pass


def is_aws_reserved(key: str) -> bool:
    """AWS matches its reserved prefix without regard to case."""
    return key.lower().startswith(AWS_RESERVED_PREFIX)


def _is_ignored(
    key: str, ignore_keys: Iterable[str], ignore_prefixes: Iterable[str]
) -> bool:
    if key in ignore_keys:
        return True
    return any(key.startswith(prefix) for prefix in ignore_prefixes)


def effective_tags(
    configured: Mapping[str, str],
    default: Mapping[str, str],
    ignore_keys: Iterable[str] = (),
    ignore_prefixes: Iterable[str] = (),
) -> dict[str, str]:
    """Resolve the tag set that should exist on the remote resource.

    Resource-level tags override provider defaults. A key declared at both
    levels with the same value is rejected rather than deduplicated.
    """
    duplicated = [k for k, v in configured.items() if k in default and default[k] == v]
    if duplicated:
        raise AmbiguousTagError(duplicated)

    ignore_keys = set(ignore_keys)
    ignore_prefixes = tuple(ignore_prefixes)

    merged = {**default, **configured}
    return {
        k: v for k, v in merged.items() if not _is_ignored(k, ignore_keys, ignore_prefixes)
    }


@dataclass
class TagDelta:
    """Tag mutations needed to move a remote tag set to the desired one."""

    to_create: dict[str, str] = field(default_factory=dict)
    to_update: dict[str, str] = field(default_factory=dict)
    to_remove: set[str] = field(default_factory=set)

    @property
    def upserts(self) -> dict[str, str]:
        return {**self.to_create, **self.to_update}

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_remove)


def diff(
    remote: Mapping[str, str],
    desired: Mapping[str, str],
    ignore_keys: Iterable[str] = (),
    ignore_prefixes: Iterable[str] = (),
) -> TagDelta:
    """Compute the delta that turns ``remote`` into ``desired``.

    Remote keys matching an ignore filter, and AWS-reserved keys, are never
    scheduled for removal.
    """
    ignore_keys = set(ignore_keys)
    ignore_prefixes = tuple(ignore_prefixes)

    delta = TagDelta()
    for key, value in desired.items():
        if key not in remote:
            delta.to_create[key] = value
        elif remote[key] != value:
            delta.to_update[key] = value

    for key in remote:
        if key in desired or is_aws_reserved(key):
            continue
        if not _is_ignored(key, ignore_keys, ignore_prefixes):
            delta.to_remove.add(key)

    return delta


def apply(client: TaggingClient, resource_arn: str, delta: TagDelta) -> None:
    """Push a delta to the remote resource.

    Removals go first, then every create/update is sent in one call.
    """
    if delta.to_remove:
        logger.debug("Removing tags %s from %s", sorted(delta.to_remove), resource_arn)
        client.untag_resource(resource_arn, sorted(delta.to_remove))

    upserts = delta.upserts
    if upserts:
        logger.debug("Setting tags %s on %s", sorted(upserts), resource_arn)
        client.tag_resource(resource_arn, upserts)


class TagPolicy(BaseModel):
    """Provider-level tag configuration shared by every managed resource."""

    default_tags: dict[str, str] = Field(default_factory=dict)
    ignore_keys: list[str] = Field(default_factory=list)
    ignore_key_prefixes: list[str] = Field(default_factory=list)

    def is_ignored(self, key: str) -> bool:
        return _is_ignored(key, self.ignore_keys, self.ignore_key_prefixes)

    def effective_tags(self, configured: Mapping[str, str]) -> dict[str, str]:
        return effective_tags(
            configured, self.default_tags, self.ignore_keys, self.ignore_key_prefixes
        )

    def diff(self, remote: Mapping[str, str], desired: Mapping[str, str]) -> TagDelta:
        return diff(remote, desired, self.ignore_keys, self.ignore_key_prefixes)


def split_remote_tags(
    remote: Mapping[str, str], policy: Optional[TagPolicy] = None
) -> tuple[dict[str, str], dict[str, str]]:
    """Split remote tags into (resource tags, all tags) for the state view.

    ``tags_all`` drops ignored and AWS-reserved keys. ``tags`` additionally
    drops keys whose value is inherited unchanged from the default tags.
    """
    policy = policy or TagPolicy()
    tags_all = {
        k: v
        for k, v in remote.items()
        if not is_aws_reserved(k) and not policy.is_ignored(k)
    }
    tags = {k: v for k, v in tags_all.items() if policy.default_tags.get(k) != v}
    return tags, tags_all
