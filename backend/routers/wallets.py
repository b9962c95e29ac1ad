"""
Router wallets: wallet store and transaction ledger.
"""
from fastapi import APIRouter, Depends, Path, Query, status

from config import settings
from core.dependencies import get_current_user, require_admin, ensure_self_or_admin, is_admin
from core.exceptions import forbidden_exception
from models.wallet import (
    FundsRequest, FundsResult, TransactionEnvelope, TransactionPage, WalletBalance, WalletEnvelope,
)
from services import wallet_service

router = APIRouter()


@router.get("/transaction/{transaction_id}", response_model=TransactionEnvelope, summary="Transaction detail")
async def get_transaction(
    transaction_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    tx = await wallet_service.get_transaction(transaction_id)
    if not is_admin(current_user):
        wallet = await wallet_service.get_wallet(tx["wallet_id"])
        if not wallet or wallet["user_id"] != current_user["id"]:
            raise forbidden_exception()
    return {"transaction": tx}


@router.post(
    "/{user_id}",
    status_code=status.HTTP_201_CREATED,
    response_model=WalletEnvelope,
    summary="Create a wallet",
)
async def create_wallet(
    user_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    ensure_self_or_admin(current_user, user_id)
    wallet = await wallet_service.create_wallet(user_id)
    return {"message": "Wallet created successfully", "wallet": wallet}


@router.get("/{user_id}", response_model=WalletEnvelope, summary="Wallet with recent transactions")
async def get_wallet(
    user_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    ensure_self_or_admin(current_user, user_id)
    return {"wallet": await wallet_service.get_wallet_detail(user_id)}


@router.get("/{user_id}/balance", response_model=WalletBalance, summary="Wallet balance")
async def get_balance(
    user_id: int = Path(..., gt=0),
    current_user: dict = Depends(get_current_user),
):
    ensure_self_or_admin(current_user, user_id)
    return await wallet_service.get_balance(user_id)


@router.get("/{user_id}/transactions", response_model=TransactionPage, summary="Transaction history")
async def list_transactions(
    user_id: int = Path(..., gt=0),
    page:  int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
    current_user: dict = Depends(get_current_user),
):
    ensure_self_or_admin(current_user, user_id)
    transactions, pagination = await wallet_service.list_transactions(user_id, page, limit)
    return {"transactions": transactions, "pagination": pagination}


@router.post("/{user_id}/add-funds", response_model=FundsResult, summary="Credit a wallet (admin)")
async def add_funds(
    body: FundsRequest,
    user_id: int = Path(..., gt=0),
    _admin=Depends(require_admin),
):
    result = await wallet_service.credit_wallet(user_id, body.amount, body.reason)
    return {"message": "Funds added successfully", **result}


@router.post("/{user_id}/deduct-funds", response_model=FundsResult, summary="Debit a wallet (admin)")
async def deduct_funds(
    body: FundsRequest,
    user_id: int = Path(..., gt=0),
    _admin=Depends(require_admin),
):
    result = await wallet_service.debit_wallet(user_id, body.amount, body.reason)
    return {"message": "Funds deducted successfully", **result}
