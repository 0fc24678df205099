"""EKS addon lifecycle endpoints."""

import asyncio
import logging
from typing import Union

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from eks_addons.database import get_database
from eks_addons.models import (
    AddonInput,
    AddonListResponse,
    AddonPlanResponse,
    AddonState,
    ImportRequest,
    ValidationErrorResponse,
)
from eks_addons.resource_id import InvalidInputError, MalformedIdError
from eks_addons.services.addon_resource import (
    AddonAlreadyExistsError,
    AddonNotManagedError,
    AddonResourceService,
)
from eks_addons.services.eks_client import (
    AddonNotFoundError,
    EksAddonClient,
    create_eks_client,
)
from eks_addons.settings import get_settings
from eks_addons.tags import RemoteTaggingError
from eks_addons.validation import ConfigValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/addons", tags=["addons"])


def get_addon_service() -> AddonResourceService:
    """Build the addon service from the current settings."""
    settings = get_settings()
    return AddonResourceService(
        client=EksAddonClient(create_eks_client(settings)),
        database=get_database(),
        tag_policy=settings.tag_policy(),
        wait_for_completion=settings.wait_for_completion,
    )


def _to_http_error(e: Exception, action: str) -> HTTPException:
    if isinstance(e, (MalformedIdError, InvalidInputError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, (AddonNotFoundError, AddonNotManagedError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, AddonAlreadyExistsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, (RemoteTaggingError, ClientError, BotoCoreError)):
        logger.exception("AWS call failed while trying to %s", action)
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to {action}: {e}",
        )
    logger.exception("Unexpected error while trying to %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {e}",
    )


@router.post(
    "/validate",
    response_model=AddonPlanResponse,
    summary="Validate addon configuration without applying",
    description="Resolve the resource ID and effective tags of a configuration. "
    "Tags declared identically at provider and resource level are rejected here.",
    responses={
        400: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def validate_addon(
    request: AddonInput,
    service: AddonResourceService = Depends(get_addon_service),
) -> Union[AddonPlanResponse, JSONResponse]:
    """Plan an addon without touching AWS."""
    try:
        return service.plan(request)
    except ConfigValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=e.to_response().model_dump(),
        )


@router.post(
    "",
    response_model=AddonState,
    status_code=status.HTTP_201_CREATED,
    summary="Create addon",
    responses={
        201: {"description": "Addon created"},
        400: {"model": ValidationErrorResponse, "description": "Validation error"},
        409: {"description": "Addon already managed"},
        502: {"description": "AWS call failed"},
    },
)
async def create_addon(
    request: AddonInput,
    service: AddonResourceService = Depends(get_addon_service),
) -> Union[AddonState, JSONResponse]:
    """Create an EKS addon and start tracking it."""
    try:
        return await asyncio.to_thread(service.create, request)
    except ConfigValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=e.to_response().model_dump(),
        )
    except Exception as e:
        raise _to_http_error(e, "create EKS Add-On") from e


@router.get(
    "",
    response_model=AddonListResponse,
    summary="List managed addons",
    description="List addons tracked in state. Does not call AWS.",
)
async def list_addons(
    cluster_name: str | None = Query(default=None, description="Filter by cluster"),
    service: AddonResourceService = Depends(get_addon_service),
) -> AddonListResponse:
    """List managed addons."""
    addons = service.database.list_states(cluster_name)
    return AddonListResponse(addons=addons, total=len(addons))


@router.post(
    "/import",
    response_model=AddonState,
    summary="Import existing addon",
    description="Adopt an addon that already exists in AWS, by ID cluster-name:addon-name.",
)
async def import_addon(
    request: ImportRequest,
    service: AddonResourceService = Depends(get_addon_service),
) -> AddonState:
    """Import an existing addon into state."""
    try:
        return await asyncio.to_thread(service.import_addon, request.id)
    except Exception as e:
        raise _to_http_error(e, "import EKS Add-On") from e


@router.get(
    "/{addon_id}",
    response_model=AddonState,
    summary="Read addon",
    description="Refresh an addon from AWS. An addon that no longer exists is "
    "dropped from state and reported as 404.",
)
async def read_addon(
    addon_id: str,
    service: AddonResourceService = Depends(get_addon_service),
) -> AddonState:
    """Read an addon by resource ID."""
    try:
        state = await asyncio.to_thread(service.read, addon_id)
    except Exception as e:
        raise _to_http_error(e, "read EKS Add-On") from e

    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"EKS Add-On ({addon_id}) not found",
        )
    return state


@router.put(
    "/{addon_id}",
    response_model=AddonState,
    summary="Update addon",
    responses={
        400: {"model": ValidationErrorResponse, "description": "Validation error"},
        404: {"description": "Addon not managed"},
        502: {"description": "AWS call failed"},
    },
)
async def update_addon(
    addon_id: str,
    request: AddonInput,
    service: AddonResourceService = Depends(get_addon_service),
) -> Union[AddonState, JSONResponse]:
    """Update version, role, configuration values and tags of an addon."""
    try:
        return await asyncio.to_thread(service.update, addon_id, request)
    except ConfigValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=e.to_response().model_dump(),
        )
    except Exception as e:
        raise _to_http_error(e, "update EKS Add-On") from e


@router.delete(
    "/{addon_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete addon",
)
async def delete_addon(
    addon_id: str,
    service: AddonResourceService = Depends(get_addon_service),
) -> None:
    """Delete an addon from AWS and state."""
    try:
        deleted = await asyncio.to_thread(service.delete, addon_id)
    except Exception as e:
        raise _to_http_error(e, "delete EKS Add-On") from e

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"EKS Add-On ({addon_id}) not found",
        )
