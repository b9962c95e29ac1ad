"""
Vendor payouts: statistics, history, vendor-initiated requests and the admin status update.
Requests live in the same collection and go through the same engine as cashout requests.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from core.exceptions import (
    DuplicatePendingRequest, InsufficientBalance, InvalidInput, VendorNotFound, WalletNotFound,
)
from core.utils import to_amount
from database import db
from models.common import CashOutStatus, OrderStatus
from services import cash_out_request_service as engine
from services.wallet_service import get_wallet_by_user

logger = logging.getLogger(__name__)

ALLOWED_STATUS_UPDATES = (CashOutStatus.APPROVED.value, CashOutStatus.REJECTED.value)


async def _vendor_with_wallet(vendor_id: int) -> tuple[dict, dict]:
    vendor = await db.vendors.find_one({"id": vendor_id}, {"_id": 0})
    if not vendor:
        raise VendorNotFound()
    wallet = await get_wallet_by_user(vendor["user_id"])
    if not wallet:
        raise WalletNotFound("Vendor wallet not found")
    return vendor, wallet


async def _pending_payout(vendor_id: int) -> Optional[dict]:
    return await db.cash_out_requests.find_one(
        {"vendor_id": vendor_id, "status": CashOutStatus.PENDING.value},
        {"_id": 0, "id": 1},
    )


async def _sum(collection, match: dict, field: str) -> float:
    pipeline = [
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": f"${field}"}}},
    ]
    result = await collection.aggregate(pipeline).to_list(length=1)
    return to_amount(result[0]["total"]) if result else 0.0


async def get_vendor_payout_stats(vendor_id: int) -> dict:
    """Point-in-time snapshot, no locking."""
    _vendor, wallet = await _vendor_with_wallet(vendor_id)

    total_earnings = await _sum(
        db.orders, {"vendor_id": vendor_id, "status": OrderStatus.COMPLETED.value}, "total_amount",
    )
    total_withdrawn = await _sum(
        db.cash_out_requests, {"vendor_id": vendor_id, "status": CashOutStatus.APPROVED.value}, "amount",
    )
    pending_payouts = await _sum(
        db.cash_out_requests, {"vendor_id": vendor_id, "status": CashOutStatus.PENDING.value}, "amount",
    )

    now = datetime.now(timezone.utc)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    this_month = await db.cash_out_requests.count_documents(
        {"vendor_id": vendor_id, "created_at": {"$gte": month_start}}
    )

    return {
        "available_balance":  wallet["balance"],
        "total_earnings":     total_earnings,
        "total_withdrawn":    total_withdrawn,
        "pending_payouts":    pending_payouts,
        "this_month_payouts": this_month,
        "wallet":             wallet,
    }


async def get_vendor_payout_history(
    vendor_id: int,
    page: int = 1,
    limit: int = 10,
    status: Optional[CashOutStatus] = None,
) -> tuple[list, dict]:
    return await engine.list_requests(vendor_id=vendor_id, status=status, page=page, limit=limit)


async def create_payout_request(vendor_id: int, amount: float, reason: Optional[str] = None) -> dict:
    """Vendor-initiated request; a vendor may only have one pending payout at a time."""
    vendor, wallet = await _vendor_with_wallet(vendor_id)

    amount = to_amount(amount)
    if amount <= 0:
        raise InvalidInput("Amount must be greater than 0")
    balance = to_amount(wallet["balance"])
    if amount > balance:
        raise InsufficientBalance(balance, amount)

    pending = await _pending_payout(vendor_id)
    if pending:
        raise DuplicatePendingRequest(pending_request_id=pending["id"])

    # Two racing requests can both pass the check above; the unique index on
    # pending vendor requests lets only one insert through.
    request = await engine.insert_request(vendor["user_id"], vendor_id, amount, reason)
    return await engine.get_request(request["id"])


async def get_payout_request(payout_id: int) -> dict:
    return await engine.get_request(payout_id)


async def update_payout_status(payout_id: int, status: str, reason: Optional[str] = None) -> dict:
    """Admin decision on a pending payout, routed through the cashout engine."""
    if status not in ALLOWED_STATUS_UPDATES:
        raise InvalidInput(f"Invalid status. Must be one of: {', '.join(ALLOWED_STATUS_UPDATES)}")

    if status == CashOutStatus.REJECTED.value:
        return await engine.reject_request(payout_id, reason)

    # An approved request keeps the reason it was filed with
    result = await engine.approve_request(payout_id)
    return result["request"]
