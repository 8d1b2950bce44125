"""
HTTP API for the media store.

A thin REST surface over MediaRepository for browsing media, inspecting
versions and triggering snapshot rebuilds.

Endpoints:
    GET    /v1/health
    GET    /v1/media                               paged listing
    GET    /v1/media/{node_id}
    GET    /v1/media/{node_id}/versions
    DELETE /v1/media/{node_id}/versions/{version_id}
    GET    /v1/versions/{version_id}
    POST   /v1/admin/rebuild-snapshots

Invariants:
    - Missing media or versions map to 404, invalid arguments to 400
    - Structural integrity faults surface as 500 with their error code
    - JSON request/response format

How to change safely:
    - Version the API if breaking changes are needed
    - Keep handlers free of persistence logic; call the repository
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .._version import __version__
from ..errors import MediaStoreError
from ..models import Media
from ..repository import MediaQuery, MediaRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["Media"])


# =============================================================================
# Request/Response Models
# =============================================================================


class MediaResponse(BaseModel):
    """One media item at one version."""

    id: int
    key: str
    name: str
    parent_id: int
    path: str
    level: int
    sort_order: int
    trashed: bool
    content_type_id: int
    content_type_alias: str
    version: str
    create_date: int
    update_date: int
    properties: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_media(cls, media: Media) -> MediaResponse:
        return cls(
            id=media.id,
            key=media.key,
            name=media.name,
            parent_id=media.parent_id,
            path=media.path,
            level=media.level,
            sort_order=media.sort_order,
            trashed=media.trashed,
            content_type_id=media.content_type_id,
            content_type_alias=media.content_type.alias,
            version=media.version,
            create_date=media.create_date,
            update_date=media.update_date,
            properties=media.properties.to_dict(),
        )


class PagedMediaResponse(BaseModel):
    """One page of a media listing."""

    items: list[MediaResponse]
    total: int
    page_index: int
    page_size: int


class RebuildRequest(BaseModel):
    """Snapshot rebuild options."""

    group_size: int | None = Field(None, gt=0, description="Entities per group")
    content_type_ids: list[int] = Field(
        default_factory=list, description="Restrict to these media types"
    )


class SkippedItem(BaseModel):
    node_id: int
    cause: str | None = None


class RebuildResponse(BaseModel):
    """Outcome of a snapshot rebuild."""

    groups: int
    group_sizes: list[int]
    succeeded: int
    skipped: list[SkippedItem]


# =============================================================================
# Dependencies
# =============================================================================


def get_repository(request: Request) -> MediaRepository:
    """Get the media repository from app state."""
    return request.app.state.repository


# =============================================================================
# Endpoints
# =============================================================================


@router.get("/health")
def health(repository: MediaRepository = Depends(get_repository)) -> dict[str, Any]:
    return {
        "status": "healthy",
        "service": "mediadb",
        "version": __version__,
        "media_count": repository.count(),
    }


@router.get("/media", response_model=PagedMediaResponse)
def list_media(
    parent_id: int | None = None,
    content_type_id: list[int] | None = Query(None),
    level: int | None = None,
    trashed: bool | None = None,
    page_index: int = Query(0, ge=0),
    page_size: int = Query(100, gt=0, le=1000),
    order_by: str = "sort_order",
    direction: str = "asc",
    order_by_system_field: bool = True,
    filter: str = "",
    repository: MediaRepository = Depends(get_repository),
) -> PagedMediaResponse:
    query = MediaQuery(
        parent_id=parent_id,
        content_type_ids=tuple(content_type_id) if content_type_id else None,
        level=level,
        trashed=trashed,
    )
    try:
        items, total = repository.get_paged(
            query,
            page_index=page_index,
            page_size=page_size,
            order_by=order_by,
            direction=direction,
            order_by_system_field=order_by_system_field,
            filter_text=filter,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PagedMediaResponse(
        items=[MediaResponse.from_media(item) for item in items],
        total=total,
        page_index=page_index,
        page_size=page_size,
    )


@router.get("/media/{node_id}", response_model=MediaResponse)
def get_media(
    node_id: int, repository: MediaRepository = Depends(get_repository)
) -> MediaResponse:
    media = repository.get(node_id)
    if media is None:
        raise HTTPException(status_code=404, detail=f"Media {node_id} not found")
    return MediaResponse.from_media(media)


@router.get("/media/{node_id}/versions", response_model=list[MediaResponse])
def get_media_versions(
    node_id: int, repository: MediaRepository = Depends(get_repository)
) -> list[MediaResponse]:
    versions = repository.get_all_versions(node_id)
    if not versions:
        raise HTTPException(status_code=404, detail=f"Media {node_id} not found")
    return [MediaResponse.from_media(version) for version in versions]


@router.delete("/media/{node_id}/versions/{version_id}")
def delete_media_version(
    node_id: int,
    version_id: str,
    repository: MediaRepository = Depends(get_repository),
) -> dict[str, Any]:
    try:
        deleted = repository.delete_version(node_id, version_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(
            status_code=404, detail=f"Version {version_id} of media {node_id} not found"
        )
    return {"deleted": True, "node_id": node_id, "version_id": version_id}


@router.get("/versions/{version_id}", response_model=MediaResponse)
def get_version(
    version_id: str, repository: MediaRepository = Depends(get_repository)
) -> MediaResponse:
    media = repository.get_by_version(version_id)
    if media is None:
        raise HTTPException(status_code=404, detail=f"Version {version_id} not found")
    return MediaResponse.from_media(media)


@router.post("/admin/rebuild-snapshots", response_model=RebuildResponse)
def rebuild_snapshots(
    request: RebuildRequest,
    repository: MediaRepository = Depends(get_repository),
) -> RebuildResponse:
    result = repository.rebuild_snapshots(
        group_size=request.group_size,
        content_type_ids=request.content_type_ids or None,
    )
    return RebuildResponse(**result.to_dict())


# =============================================================================
# Application
# =============================================================================


def create_app(repository: MediaRepository) -> FastAPI:
    """Create the media store FastAPI app.

    Args:
        repository: Repository the handlers serve from

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Media Store",
        description="Versioned media tree persistence: browse media, versions and snapshots.",
        version=__version__,
    )
    app.state.repository = repository
    app.include_router(router)

    @app.exception_handler(MediaStoreError)
    async def media_store_error_handler(request: Request, exc: MediaStoreError) -> JSONResponse:
        logger.error(f"HTTP handler error: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": exc.message, "error_code": exc.code or "INTERNAL"},
        )

    return app
