"""Registry API endpoints: publish, list, get and delete packages."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from artifact_registry.api.dependencies import (
    get_current_user,
    get_manifest_extractor,
    get_optional_user,
    get_package_store,
)
from artifact_registry.config import Settings, get_settings
from artifact_registry.exceptions import NotFoundError, RegistryError, StorageError
from artifact_registry.models.package import Package
from artifact_registry.models.user import User
from artifact_registry.schemas.package import PackageResponse, PublishResponse
from artifact_registry.services.manifest import ManifestExtractor
from artifact_registry.services.packages import PackageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["registry"])


def _internal_error(error: RegistryError) -> HTTPException:
    # Every publish failure shares one status; the code keeps the cause visible
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": "Internal", "code": error.code},
    )


def get_existing_package(store: PackageStore, package_id: str) -> Package:
    """Get a package or raise 404."""
    try:
        return store.get_package(package_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Package not found"
        ) from e


def _publish_artifact(
    artifact: bytes,
    extractor: ManifestExtractor,
    store: PackageStore,
    settings: Settings,
    owner: User | None,
) -> Package:
    if len(artifact) > settings.max_artifact_bytes:
        raise RegistryError(
            f"Artifact exceeds {settings.max_artifact_bytes} bytes", code="ARTIFACT_TOO_LARGE"
        )
    descriptor = extractor.extract(artifact)
    return store.publish(descriptor, artifact, owner=owner)


@router.post("/registry/publish", response_model=PublishResponse)
async def publish(
    request: Request,
    store: Annotated[PackageStore, Depends(get_package_store)],
    extractor: Annotated[ManifestExtractor, Depends(get_manifest_extractor)],
    settings: Annotated[Settings, Depends(get_settings)],
    owner: Annotated[User | None, Depends(get_optional_user)],
):
    """Publish an artifact sent as the raw request body."""
    artifact = await request.body()

    try:
        # Extraction, the database and the object store all block
        package = await run_in_threadpool(
            _publish_artifact, artifact, extractor, store, settings, owner
        )
    except RegistryError as e:
        logger.warning(f"Publish failed [{e.code}]: {e.message}")
        raise _internal_error(e) from e

    logger.info(f"Published {package.name} as {package.object_store_key}")
    return PublishResponse(result=True, package=PackageResponse.model_validate(package))


@router.get("/packages", response_model=list[PackageResponse])
def list_packages(
    store: Annotated[PackageStore, Depends(get_package_store)],
):
    """List all packages."""
    return store.list_packages()


@router.get("/packages/{package_id}", response_model=PackageResponse)
def get_package(
    package_id: str,
    store: Annotated[PackageStore, Depends(get_package_store)],
):
    """Get a specific package."""
    return get_existing_package(store, package_id)


@router.delete("/packages/{package_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_package(
    package_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    store: Annotated[PackageStore, Depends(get_package_store)],
):
    """Delete a package and its artifact."""
    package = get_existing_package(store, package_id)
    try:
        store.delete(package)
    except StorageError as e:
        logger.warning(f"Delete of {package_id} by {current_user.id} failed: {e.message}")
        raise _internal_error(e) from e
