"""
Cashout request engine: lifecycle of withdrawal requests and the atomic debit on approval.

State machine:
    pending ──► approved   (terminal, debits the wallet and writes one ledger entry)
        └─────► rejected   (terminal, no wallet effect)

Balance is checked when a request is admitted, but nothing is reserved: several
pending requests may together exceed the balance. The binding check happens
again at approval, inside the same conditional update that debits the wallet.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import DuplicateKeyError

from core.exceptions import (
    DuplicatePendingRequest, InsufficientBalance, InvalidInput, InvalidStateTransition, NotFound,
    UserNotFound, WalletNotFound,
)
from core.unit_of_work import UnitOfWork
from core.utils import paginate, to_amount
from database import db, next_id
from models.common import CashOutStatus, TransactionType, UserType
from models.user import UserSummary, VendorSummary
from services.wallet_service import (
    adjust_balance, debit_balance, discard_transaction, get_wallet_by_user,
    record_transaction,
)

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Cashout request"

_USER_FIELDS   = {"_id": 0, **{field: 1 for field in UserSummary.model_fields}}
_VENDOR_FIELDS = {"_id": 0, **{field: 1 for field in VendorSummary.model_fields}}


# ── Response shaping ──────────────────────────────────────────────────────────
async def _attach_summaries(requests: list[dict], user: bool = True, vendor: bool = False) -> list[dict]:
    """Adds requester (and vendor) summaries to each request, one query per collection."""
    if user:
        ids = list({r["user_id"] for r in requests})
        users = await db.users.find({"id": {"$in": ids}}, _USER_FIELDS).to_list(length=len(ids) or 1)
        by_id = {u["id"]: u for u in users}
        for r in requests:
            r["user"] = by_id.get(r["user_id"])
    if vendor:
        ids = list({r["vendor_id"] for r in requests if r.get("vendor_id") is not None})
        vendors = await db.vendors.find({"id": {"$in": ids}}, _VENDOR_FIELDS).to_list(length=len(ids) or 1)
        by_id = {v["id"]: v for v in vendors}
        for r in requests:
            r["vendor"] = by_id.get(r.get("vendor_id"))
    return requests


async def _find_request(request_id: int) -> dict:
    request = await db.cash_out_requests.find_one({"id": request_id}, {"_id": 0})
    if not request:
        raise NotFound("Cashout request not found")
    return request


async def insert_request(user_id: int, vendor_id: Optional[int], amount: float, reason: Optional[str]) -> dict:
    now = datetime.now(timezone.utc)
    request = {
        "id":         await next_id("cash_out_requests"),
        "user_id":    user_id,
        "vendor_id":  vendor_id,
        "amount":     amount,
        "reason":     reason,
        "status":     CashOutStatus.PENDING.value,
        "created_at": now,
        "updated_at": now,
    }
    try:
        await db.cash_out_requests.insert_one(request)
    except DuplicateKeyError:
        # Unique partial index: one pending request per vendor
        pending = await db.cash_out_requests.find_one(
            {"vendor_id": vendor_id, "status": CashOutStatus.PENDING.value},
            {"_id": 0, "id": 1},
        )
        raise DuplicatePendingRequest(pending_request_id=pending["id"] if pending else None)
    logger.info(f"Cashout request created: id={request['id']} user={user_id} vendor={vendor_id} amount={amount}")
    return {k: v for k, v in request.items() if k != "_id"}


# ── Operations ────────────────────────────────────────────────────────────────
async def create_request(user_id: int, amount: float, reason: Optional[str] = None) -> dict:
    """
    Admits a withdrawal request after checking the balance (no hold is placed).
    Vendor owners get their vendor attached to the request.
    """
    if amount is None or to_amount(amount) <= 0:
        raise InvalidInput("Invalid amount")
    amount = to_amount(amount)

    user = await db.users.find_one({"id": user_id}, {"_id": 0})
    if not user:
        raise UserNotFound()

    wallet = await get_wallet_by_user(user_id)
    if not wallet:
        raise WalletNotFound("Wallet not found. Please create a wallet first.", status_code=400)

    balance = to_amount(wallet["balance"])
    if balance < amount:
        raise InsufficientBalance(balance, amount)

    vendor_id = None
    if user.get("type") == UserType.VENDOR_OWNER.value:
        vendor = await db.vendors.find_one({"user_id": user_id}, {"_id": 0, "id": 1})
        if vendor:
            vendor_id = vendor["id"]

    request = await insert_request(user_id, vendor_id, amount, reason or DEFAULT_REASON)
    return (await _attach_summaries([request]))[0]


async def approve_request(request_id: int) -> dict:
    """
    pending → approved, debiting the requester's wallet and writing one debit entry.
    The three writes form one unit: any failure restores the request to pending,
    the balance to its previous value and drops the ledger entry.
    """
    request = await _find_request(request_id)
    if request["status"] != CashOutStatus.PENDING.value:
        raise InvalidStateTransition(
            request["status"],
            f"Cashout request cannot be approved. Current status: {request['status']}",
        )

    wallet = await get_wallet_by_user(request["user_id"])
    if not wallet:
        raise WalletNotFound("User wallet not found", status_code=400)

    amount = to_amount(request["amount"])
    balance = to_amount(wallet["balance"])
    if balance < amount:
        raise InsufficientBalance(
            balance, amount, detail="Insufficient balance in user wallet",
        )

    async with UnitOfWork(f"cashout:{request_id}:approve") as uow:
        # The status flip only matches a pending request, so two concurrent
        # approvals cannot both get past this point.
        claimed = await db.cash_out_requests.update_one(
            {"id": request_id, "status": CashOutStatus.PENDING.value},
            {"$set": {"status": CashOutStatus.APPROVED.value, "updated_at": datetime.now(timezone.utc)}},
        )
        if claimed.matched_count == 0:
            current = await _find_request(request_id)
            raise InvalidStateTransition(
                current["status"],
                f"Cashout request cannot be approved. Current status: {current['status']}",
            )
        uow.on_rollback("restore pending status", lambda: db.cash_out_requests.update_one(
            {"id": request_id},
            {"$set": {"status": CashOutStatus.PENDING.value, "updated_at": request["updated_at"]}},
        ))

        try:
            updated_wallet = await debit_balance(wallet["id"], amount)
        except InsufficientBalance as exc:
            raise InsufficientBalance(
                exc.current_balance, amount, detail="Insufficient balance in user wallet",
            ) from exc
        uow.on_rollback("restore balance", lambda: adjust_balance(wallet["id"], amount))

        transaction = await record_transaction(
            wallet["id"],
            TransactionType.DEBIT,
            amount,
            f"Cashout request approved - {request.get('reason') or 'Cashout'}",
        )
        uow.on_rollback("discard ledger entry", lambda: discard_transaction(transaction["id"]))

    logger.info(
        f"Cashout request approved: id={request_id} wallet={wallet['id']} "
        f"amount={amount} balance={updated_wallet['balance']}"
    )
    approved = await _find_request(request_id)
    return {
        "request":     (await _attach_summaries([approved], vendor=True))[0],
        "wallet":      updated_wallet,
        "transaction": transaction,
    }


async def reject_request(request_id: int, reason: Optional[str] = None) -> dict:
    """pending → rejected. A supplied reason replaces the stored one."""
    request = await _find_request(request_id)
    if request["status"] != CashOutStatus.PENDING.value:
        raise InvalidStateTransition(
            request["status"],
            f"Cashout request cannot be rejected. Current status: {request['status']}",
        )

    result = await db.cash_out_requests.update_one(
        {"id": request_id, "status": CashOutStatus.PENDING.value},
        {"$set": {
            "status":     CashOutStatus.REJECTED.value,
            "reason":     reason or request.get("reason"),
            "updated_at": datetime.now(timezone.utc),
        }},
    )
    if result.matched_count == 0:
        current = await _find_request(request_id)
        raise InvalidStateTransition(
            current["status"],
            f"Cashout request cannot be rejected. Current status: {current['status']}",
        )

    logger.info(f"Cashout request rejected: id={request_id}")
    rejected = await _find_request(request_id)
    return (await _attach_summaries([rejected], vendor=True))[0]


async def get_request(request_id: int) -> dict:
    request = await _find_request(request_id)
    return (await _attach_summaries([request], vendor=True))[0]


async def list_requests(
    user_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
    status: Optional[CashOutStatus] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list, dict]:
    """Newest first; ties broken by id so paging is stable."""
    query: dict = {}
    if user_id is not None:
        query["user_id"] = user_id
    if vendor_id is not None:
        query["vendor_id"] = vendor_id
    if status:
        query["status"] = CashOutStatus(status).value

    requests, pagination = await paginate(
        db.cash_out_requests, query, page, limit,
        sort=[("created_at", -1), ("id", -1)],
    )
    # Listing by requester shows the vendor, other listings show the requester
    if user_id is not None:
        await _attach_summaries(requests, user=False, vendor=True)
    else:
        await _attach_summaries(requests)
    return requests, pagination
