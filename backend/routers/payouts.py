"""
Router payouts: vendor balance statistics, payout history and requests, admin decisions.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from config import settings
from core.dependencies import get_current_user, require_admin, ensure_self_or_admin, ensure_vendor_access
from core.rate_limit import limiter
from models.cash_out_request import (
    CashOutRequestCreate, PayoutEnvelope, PayoutHistory, PayoutStats, PayoutStatusUpdate,
)
from models.common import CashOutStatus
from services import payout_service

router = APIRouter()


@router.get("/vendor/{vendor_id}/stats", response_model=PayoutStats, summary="Vendor payout statistics")
async def vendor_payout_stats(
    vendor_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    await ensure_vendor_access(current_user, vendor_id)
    stats = await payout_service.get_vendor_payout_stats(vendor_id)
    return {"message": "Payout statistics retrieved successfully", **stats}


@router.get("/vendor/{vendor_id}/history", response_model=PayoutHistory, summary="Vendor payout history")
async def vendor_payout_history(
    vendor_id: int = Path(..., gt=0),
    page:   int = Query(1, ge=1),
    limit:  int = Query(settings.PAYOUT_HISTORY_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    status: Optional[CashOutStatus] = None,
    current_user: dict = Depends(get_current_user),
):
    await ensure_vendor_access(current_user, vendor_id)
    payouts, pagination = await payout_service.get_vendor_payout_history(
        vendor_id, page=page, limit=limit, status=status,
    )
    return {
        "message":    "Payout history retrieved successfully",
        "payouts":    payouts,
        "pagination": pagination,
    }


@router.post(
    "/vendor/{vendor_id}/request",
    status_code=status.HTTP_201_CREATED,
    response_model=PayoutEnvelope,
    summary="Request a vendor payout",
)
@limiter.limit(settings.CASHOUT_RATE_LIMIT)
async def create_payout_request(
    request: Request,
    body: CashOutRequestCreate,
    vendor_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    await ensure_vendor_access(current_user, vendor_id)
    payout = await payout_service.create_payout_request(vendor_id, body.amount, body.reason)
    return {"message": "Payout request created successfully", "payout_request": payout}


@router.get("/{payout_id}", response_model=PayoutEnvelope, summary="Payout request detail")
async def get_payout_request(
    payout_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    payout = await payout_service.get_payout_request(payout_id)
    ensure_self_or_admin(current_user, payout["user_id"])
    return {"message": "Payout request retrieved successfully", "payout_request": payout}


@router.patch("/{payout_id}/status", response_model=PayoutEnvelope, summary="Approve or reject (admin)")
async def update_payout_status(
    body: PayoutStatusUpdate,
    payout_id: int = Path(..., gt=0),
    _admin=Depends(require_admin),
):
    payout = await payout_service.update_payout_status(payout_id, body.status, body.reason)
    return {"message": "Payout request status updated successfully", "payout_request": payout}
