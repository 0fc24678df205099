import json
import re
from typing import Optional

from eks_addons.models import (
    AddonInput,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from eks_addons.resource_id import RESOURCE_ID_SEPARATOR
from eks_addons.tags import (
    AWS_RESERVED_PREFIX,
    AmbiguousTagError,
    TagPolicy,
    is_aws_reserved,
)

CLUSTER_NAME_PATTERN = re.compile(r"^[0-9A-Za-z][A-Za-z0-9\-_]*$")
ROLE_ARN_PATTERN = re.compile(r"^arn:aws[a-zA-Z-]*:iam::\d{12}:role/.+$")

# EKS tagging limits
MAX_TAGS = 50
MAX_TAG_KEY_LENGTH = 128
MAX_TAG_VALUE_LENGTH = 256


class ConfigValidationError(Exception):
    """Exception raised when addon config validation fails."""

    def __init__(self, errors: list[ValidationErrorDetail]):
        self.errors = errors
        messages = [f"{e.field}: {e.message}" for e in errors]
        super().__init__(f"Configuration validation failed: {'; '.join(messages)}")

    def to_response(self) -> ValidationErrorResponse:
        """Convert to API response format."""
        return ValidationErrorResponse(
            error="validation_error",
            message=f"Configuration validation failed with {len(self.errors)} error(s)",
            details=self.errors,
        )


def validate_tags(tags: dict[str, str], field: str = "tags") -> list[ValidationErrorDetail]:
    """Check a tag map against the EKS tagging limits."""
    errors: list[ValidationErrorDetail] = []

    if len(tags) > MAX_TAGS:
        errors.append(
            ValidationErrorDetail(
                field=field,
                message=f"At most {MAX_TAGS} tags are allowed, got {len(tags)}",
            )
        )

    for key, value in tags.items():
        if not key or len(key) > MAX_TAG_KEY_LENGTH:
            errors.append(
                ValidationErrorDetail(
                    field=f"{field}.{key}",
                    message=f"Tag key must be 1-{MAX_TAG_KEY_LENGTH} characters",
                    value=key,
                )
            )
        if is_aws_reserved(key):
            errors.append(
                ValidationErrorDetail(
                    field=f"{field}.{key}",
                    message=f"Tag keys starting with '{AWS_RESERVED_PREFIX}' are reserved",
                    value=key,
                )
            )
        if len(value) > MAX_TAG_VALUE_LENGTH:
            errors.append(
                ValidationErrorDetail(
                    field=f"{field}.{key}",
                    message=f"Tag value must be at most {MAX_TAG_VALUE_LENGTH} characters",
                )
            )

    return errors


def validate_addon_input(
    config: AddonInput, policy: Optional[TagPolicy] = None
) -> dict[str, str]:
    """Validate an addon configuration and resolve its effective tags.

    Returns the effective tag set. Raises ConfigValidationError with every
    problem found.
    """
    policy = policy or TagPolicy()
    errors: list[ValidationErrorDetail] = []

    if not CLUSTER_NAME_PATTERN.match(config.cluster_name):
        errors.append(
            ValidationErrorDetail(
                field="cluster_name",
                message="Cluster name must start with an alphanumeric character and "
                "contain only alphanumerics, hyphens and underscores",
                value=config.cluster_name,
            )
        )

    if not config.addon_name.strip() or RESOURCE_ID_SEPARATOR in config.addon_name:
        errors.append(
            ValidationErrorDetail(
                field="addon_name",
                message=f"Addon name must be non-empty and must not contain "
                f"'{RESOURCE_ID_SEPARATOR}'",
                value=config.addon_name,
            )
        )

    if config.service_account_role_arn and not ROLE_ARN_PATTERN.match(
        config.service_account_role_arn
    ):
        errors.append(
            ValidationErrorDetail(
                field="service_account_role_arn",
                message="Must be an IAM role ARN",
                value=config.service_account_role_arn,
            )
        )

    if config.configuration_values:
        try:
            json.loads(config.configuration_values)
        except json.JSONDecodeError as e:
            errors.append(
                ValidationErrorDetail(
                    field="configuration_values",
                    message=f"Invalid JSON: {e}",
                )
            )

    errors.extend(validate_tags(config.tags))

    tags_all: dict[str, str] = {}
    try:
        tags_all = policy.effective_tags(config.tags)
    except AmbiguousTagError as e:
        errors.append(ValidationErrorDetail(field="tags", message=str(e)))

    # The limit applies to what is sent, defaults included
    if len(config.tags) <= MAX_TAGS < len(tags_all):
        errors.append(
            ValidationErrorDetail(
                field="tags_all",
                message=f"At most {MAX_TAGS} tags are allowed including default tags, "
                f"got {len(tags_all)}",
            )
        )

    if errors:
        raise ConfigValidationError(errors)

    return tags_all
