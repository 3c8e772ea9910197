"""
Variant API endpoints: generation and admin management of product variants
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from variant_engine.core.errors import ErrorResponseModel
from variant_engine.dependencies.services import get_variant_service
from variant_engine.models.variant import (
    GenerateVariantsPreview,
    GenerateVariantsRequest,
    GenerateVariantsResponse,
    GenerationAudit,
    VariantConfiguration,
    VariantUpdate,
)
from variant_engine.services.variant_service import VariantService
from variant_engine.utils.correlation_id import get_correlation_id

router = APIRouter()


@router.post(
    "/products/{product_id}/variants/generate",
    response_model=GenerateVariantsResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponseModel},
        409: {"model": ErrorResponseModel},
        500: {"model": ErrorResponseModel},
    },
    summary="Generate product variants",
    description="Enumerate, price and persist every valid combination of the selected attribute values",
)
async def generate_variants(
    product_id: str,
    request: GenerateVariantsRequest,
    service: VariantService = Depends(get_variant_service),
):
    """
    Generate variants for a product.

    - Combinations disallowed by compatibility rules are never created
    - Existing configurations are skipped, so the call can be repeated safely
    - Every new variant gets an inventory record in the same transaction
    """
    return await service.generate(product_id, request, get_correlation_id())


@router.post(
    "/products/{product_id}/variants/preview",
    response_model=GenerateVariantsPreview,
    responses={400: {"model": ErrorResponseModel}},
    summary="Preview variant generation",
    description="Enumerate, price and assign SKUs without writing anything",
)
async def preview_variants(
    product_id: str,
    request: GenerateVariantsRequest,
    service: VariantService = Depends(get_variant_service),
):
    """Existing configurations are listed with ``exists`` set and no SKU."""
    return await service.preview(product_id, request, get_correlation_id())


@router.get(
    "/products/{product_id}/variants/audits",
    response_model=List[GenerationAudit],
    responses={400: {"model": ErrorResponseModel}},
    summary="Generation history of a product",
)
async def list_generation_audits(
    product_id: str,
    limit: int = Query(50, ge=1, le=500),
    service: VariantService = Depends(get_variant_service),
):
    return await service.list_audits(product_id, limit, get_correlation_id())


@router.get(
    "/products/{product_id}/variants",
    response_model=List[VariantConfiguration],
    responses={400: {"model": ErrorResponseModel}},
)
async def list_variants(
    product_id: str,
    include_deleted: bool = Query(False, description="Include soft-deleted variants"),
    service: VariantService = Depends(get_variant_service),
):
    return await service.list_variants(product_id, include_deleted, get_correlation_id())


@router.get(
    "/variants/{variant_id}",
    response_model=VariantConfiguration,
    responses={404: {"model": ErrorResponseModel}},
)
async def get_variant(
    variant_id: str,
    service: VariantService = Depends(get_variant_service),
):
    return await service.get_variant(variant_id, get_correlation_id())


@router.patch(
    "/variants/{variant_id}",
    response_model=VariantConfiguration,
    responses={400: {"model": ErrorResponseModel}, 404: {"model": ErrorResponseModel}},
    summary="Edit a variant",
)
async def update_variant(
    variant_id: str,
    update: VariantUpdate,
    service: VariantService = Depends(get_variant_service),
):
    """Admin edit of price or status. Regeneration never overwrites these edits."""
    return await service.update_variant(variant_id, update, get_correlation_id())


@router.delete(
    "/variants/{variant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponseModel}},
)
async def delete_variant(
    variant_id: str,
    deleted_by: Optional[str] = Query(None, description="Acting user"),
    service: VariantService = Depends(get_variant_service),
):
    """Soft delete; the document is kept for historical orders."""
    await service.delete_variant(variant_id, deleted_by, get_correlation_id())
    return Response(status_code=status.HTTP_204_NO_CONTENT)
