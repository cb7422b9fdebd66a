"""Service catalog API routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import AdminActor
from src.schemas.service import (
    CategoryListResponse,
    ServiceCreate,
    ServiceListResponse,
    ServiceResponse,
    ServiceUpdate,
)
from src.services.catalog_service import ServiceCatalogService, get_catalog_service

router = APIRouter(prefix="/services", tags=["services"])


@router.get("", response_model=ServiceListResponse)
async def list_services(
    category: Annotated[str | None, Query(description="Filter by category")] = None,
    search: Annotated[str | None, Query(max_length=100, description="Name contains")] = None,
    include_inactive: Annotated[bool, Query(description="Also return inactive services")] = False,
    catalog_service: ServiceCatalogService = Depends(get_catalog_service),
) -> ServiceListResponse:
    """List catalog entries.

    The catalog is publicly readable.
    """
    services = await catalog_service.list_services(
        active_only=not include_inactive,
        category=category,
        search=search,
    )
    return ServiceListResponse(items=[ServiceResponse(**s) for s in services])


@router.get("/categories", response_model=CategoryListResponse)
async def list_categories(
    catalog_service: ServiceCatalogService = Depends(get_catalog_service),
) -> CategoryListResponse:
    """List distinct categories of active services."""
    return CategoryListResponse(categories=await catalog_service.get_categories())


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(
    service_id: UUID,
    catalog_service: ServiceCatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    """Get a catalog entry by ID."""
    service = await catalog_service.get_service(service_id)
    return ServiceResponse(**service)


@router.post("", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(
    data: ServiceCreate,
    actor: AdminActor,
    catalog_service: ServiceCatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    """Create a catalog entry. Admin only."""
    service = await catalog_service.create_service(data.model_dump())
    return ServiceResponse(**service)


@router.put("/{service_id}", response_model=ServiceResponse)
async def update_service(
    service_id: UUID,
    data: ServiceUpdate,
    actor: AdminActor,
    catalog_service: ServiceCatalogService = Depends(get_catalog_service),
) -> ServiceResponse:
    """Update a catalog entry. Admin only.

    Existing orders keep the values captured when their lines were created.
    """
    service = await catalog_service.update_service(service_id, data.model_dump(exclude_unset=True))
    return ServiceResponse(**service)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_service(
    service_id: UUID,
    actor: AdminActor,
    catalog_service: ServiceCatalogService = Depends(get_catalog_service),
) -> None:
    """Delete a catalog entry. Admin only."""
    await catalog_service.delete_service(service_id)
