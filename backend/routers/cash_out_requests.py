"""
Router cashout requests: withdrawal requests of clients, vendors, drivers and employees.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from config import settings
from core.dependencies import get_current_user, require_admin, ensure_self_or_admin
from core.rate_limit import limiter
from models.cash_out_request import (
    ApprovalResult, CashOutRequestCreate, CashOutRequestEnvelope, CashOutRequestPage,
    CashOutRequestReject,
)
from models.common import CashOutStatus
from services import cash_out_request_service as engine

router = APIRouter()


@router.post(
    "/{user_id}",
    status_code=status.HTTP_201_CREATED,
    response_model=CashOutRequestEnvelope,
    summary="Create a cashout request",
)
@limiter.limit(settings.CASHOUT_RATE_LIMIT)
async def create_cash_out_request(
    request: Request,
    body: CashOutRequestCreate,
    user_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    ensure_self_or_admin(current_user, user_id)
    created = await engine.create_request(user_id, body.amount, body.reason)
    return {"message": "Cashout request created successfully", "cash_out_request": created}


@router.get("", response_model=CashOutRequestPage, summary="All cashout requests (admin)")
async def list_cash_out_requests(
    page:   int = Query(1, ge=1),
    limit:  int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    status: Optional[CashOutStatus] = None,
    _admin=Depends(require_admin),
):
    items, pagination = await engine.list_requests(status=status, page=page, limit=limit)
    return {"cash_out_requests": items, "pagination": pagination}


@router.get("/user/{user_id}", response_model=CashOutRequestPage, summary="Cashout requests of a user")
async def list_user_cash_out_requests(
    user_id: int = Path(..., gt=0),
    page:    int = Query(1, ge=1),
    limit:   int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    status:  Optional[CashOutStatus] = None,
    current_user: dict = Depends(get_current_user),
):
    ensure_self_or_admin(current_user, user_id)
    items, pagination = await engine.list_requests(user_id=user_id, status=status, page=page, limit=limit)
    return {"cash_out_requests": items, "pagination": pagination}


@router.get("/{request_id}", response_model=CashOutRequestEnvelope, summary="Cashout request detail")
async def get_cash_out_request(
    request_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    found = await engine.get_request(request_id)
    ensure_self_or_admin(current_user, found["user_id"])
    return {"cash_out_request": found}


@router.patch("/{request_id}/approve", response_model=ApprovalResult, summary="Approve (admin)")
async def approve_cash_out_request(
    request_id: int = Path(..., gt=0),
    _admin=Depends(require_admin),
):
    result = await engine.approve_request(request_id)
    return {
        "message":          "Cashout request approved successfully",
        "cash_out_request": result["request"],
        "wallet":           result["wallet"],
        "transaction":      result["transaction"],
    }


@router.patch("/{request_id}/reject", response_model=CashOutRequestEnvelope, summary="Reject (admin)")
async def reject_cash_out_request(
    body: Optional[CashOutRequestReject] = None,
    request_id: int = Path(..., gt=0),
    _admin=Depends(require_admin),
):
    rejected = await engine.reject_request(request_id, body.reason if body else None)
    return {"message": "Cashout request rejected successfully", "cash_out_request": rejected}
