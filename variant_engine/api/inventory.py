"""
Inventory API endpoints: stock reservation, fulfilment, corrections and audit
"""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query

from variant_engine.core.config import config
from variant_engine.core.errors import ErrorResponseModel
from variant_engine.dependencies.services import get_inventory_ledger
from variant_engine.models.inventory import (
    AdjustStockRequest,
    InventoryRecord,
    InventoryTransaction,
    LedgerVerification,
    ReservationSweepResult,
    ReserveStockRequest,
    RestockRequest,
    StockQuantityRequest,
    TransferRequest,
)
from variant_engine.services.inventory_ledger import InventoryLedger
from variant_engine.utils.correlation_id import get_correlation_id

router = APIRouter()

_MUTATION_RESPONSES = {
    400: {"model": ErrorResponseModel},
    404: {"model": ErrorResponseModel},
    409: {"model": ErrorResponseModel},
}


@router.post(
    "/reservations/expire",
    response_model=ReservationSweepResult,
    summary="Release expired reservations now",
)
async def expire_reservations(
    limit: Optional[int] = Query(None, ge=1, le=5000, description="Maximum holds to expire in this run"),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """Runs the same sweep as the background worker."""
    return await ledger.expire_reservations(limit=limit, correlation_id=get_correlation_id())


@router.post(
    "/{variant_id}/reserve",
    response_model=InventoryRecord,
    responses=_MUTATION_RESPONSES,
    summary="Reserve stock for an order",
)
async def reserve_stock(
    variant_id: str,
    request: ReserveStockRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """Fails with 409 when available stock is short or the variant is discontinued."""
    return await ledger.reserve(
        variant_id,
        request.quantity,
        reference_id=request.reference_id,
        performed_by=request.performed_by,
        expires_at=request.expires_at,
        correlation_id=get_correlation_id(),
    )


@router.post(
    "/{variant_id}/commit",
    response_model=InventoryRecord,
    responses=_MUTATION_RESPONSES,
    summary="Ship reserved stock",
)
async def commit_stock(
    variant_id: str,
    request: StockQuantityRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.commit(
        variant_id, request.quantity, request.reference_id, request.performed_by, get_correlation_id()
    )


@router.post(
    "/{variant_id}/release",
    response_model=InventoryRecord,
    responses=_MUTATION_RESPONSES,
    summary="Release a reservation",
)
async def release_stock(
    variant_id: str,
    request: StockQuantityRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.release(
        variant_id, request.quantity, request.reference_id, request.performed_by, get_correlation_id()
    )


@router.post(
    "/{variant_id}/adjust",
    response_model=InventoryRecord,
    responses=_MUTATION_RESPONSES,
    summary="Correct total stock",
)
async def adjust_stock(
    variant_id: str,
    request: AdjustStockRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.adjust(
        variant_id, request.delta, request.reason, request.performed_by, get_correlation_id()
    )


@router.post(
    "/{variant_id}/restock",
    response_model=InventoryRecord,
    responses=_MUTATION_RESPONSES,
    summary="Receive stock from a purchase or return",
)
async def restock(
    variant_id: str,
    request: RestockRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.restock(
        variant_id,
        request.quantity,
        reference_type=request.reference_type,
        reference_id=request.reference_id,
        warehouse=request.warehouse,
        performed_by=request.performed_by,
        correlation_id=get_correlation_id(),
    )


@router.post(
    "/{variant_id}/transfer",
    response_model=InventoryRecord,
    responses=_MUTATION_RESPONSES,
    summary="Move allocated stock between warehouses",
)
async def transfer_stock(
    variant_id: str,
    request: TransferRequest,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.transfer(
        variant_id,
        request.from_warehouse,
        request.to_warehouse,
        request.quantity,
        performed_by=request.performed_by,
        correlation_id=get_correlation_id(),
    )


@router.post(
    "/{variant_id}/discontinue",
    response_model=InventoryRecord,
    responses={404: {"model": ErrorResponseModel}},
)
async def discontinue(
    variant_id: str,
    performed_by: Optional[str] = Body(None, embed=True),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    """New reservations are refused afterwards; commits, releases and adjustments still apply."""
    return await ledger.discontinue(variant_id, performed_by, get_correlation_id())


@router.get(
    "/{variant_id}",
    response_model=InventoryRecord,
    responses={404: {"model": ErrorResponseModel}},
)
async def get_inventory(
    variant_id: str,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.get_record(variant_id, get_correlation_id())


@router.get(
    "/{variant_id}/history",
    response_model=List[InventoryTransaction],
    responses={404: {"model": ErrorResponseModel}},
)
async def get_history(
    variant_id: str,
    limit: int = Query(
        config.history_default_limit,
        ge=1,
        le=config.history_max_limit,
        description="Number of most recent ledger rows, newest first",
    ),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.history(variant_id, limit, get_correlation_id())


@router.get(
    "/{variant_id}/verify",
    response_model=LedgerVerification,
    responses={404: {"model": ErrorResponseModel}},
    summary="Reconcile counters against the ledger",
)
async def verify_ledger(
    variant_id: str,
    ledger: InventoryLedger = Depends(get_inventory_ledger),
):
    return await ledger.verify(variant_id, get_correlation_id())
