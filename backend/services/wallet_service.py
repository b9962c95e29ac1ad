"""
Wallet service: wallet store, balance adjustments and the transaction ledger.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from config import settings
from core.exceptions import (
    InsufficientBalance, InvalidInput, ServiceError, UserNotFound, WalletBusy, WalletNotFound,
)
from core.unit_of_work import UnitOfWork
from core.utils import paginate, to_amount
from database import db, next_id
from models.common import TransactionType, TransactionStatus, WalletStatus

logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 10
BALANCE_WRITE_ATTEMPTS = 5


async def get_wallet_by_user(user_id: int) -> Optional[dict]:
    return await db.wallets.find_one({"user_id": user_id}, {"_id": 0})


async def get_wallet(wallet_id: int) -> Optional[dict]:
    return await db.wallets.find_one({"id": wallet_id}, {"_id": 0})


async def _insert_wallet(user_id: int) -> dict:
    now = datetime.now(timezone.utc)
    wallet = {
        "id":         await next_id("wallets"),
        "user_id":    user_id,
        "balance":    0.0,
        "status":     WalletStatus.ACTIVE.value,
        "currency":   settings.CURRENCY,
        "created_at": now,
        "updated_at": now,
    }
    await db.wallets.insert_one(wallet)
    return {k: v for k, v in wallet.items() if k != "_id"}


async def get_or_create_wallet(user_id: int) -> dict:
    wallet = await get_wallet_by_user(user_id)
    if wallet:
        return wallet
    try:
        return await _insert_wallet(user_id)
    except DuplicateKeyError:
        # Another request created it first (unique index on user_id)
        return await get_wallet_by_user(user_id)


async def create_wallet(user_id: int) -> dict:
    user = await db.users.find_one({"id": user_id}, {"_id": 0, "id": 1})
    if not user:
        raise UserNotFound()
    if await get_wallet_by_user(user_id):
        raise ServiceError("Wallet already exists for this user")
    try:
        wallet = await _insert_wallet(user_id)
    except DuplicateKeyError:
        raise ServiceError("Wallet already exists for this user")
    logger.info(f"Wallet created: user={user_id} wallet={wallet['id']}")
    return wallet


async def get_wallet_detail(user_id: int) -> dict:
    """Wallet with its most recent ledger entries."""
    wallet = await get_wallet_by_user(user_id)
    if not wallet:
        raise WalletNotFound()
    cursor = db.transactions.find(
        {"wallet_id": wallet["id"]},
        {"_id": 0},
    ).sort([("created_at", -1), ("id", -1)]).limit(RECENT_TRANSACTIONS)
    wallet["transactions"] = await cursor.to_list(length=RECENT_TRANSACTIONS)
    return wallet


async def get_balance(user_id: int) -> dict:
    wallet = await get_wallet_by_user(user_id)
    if not wallet:
        raise WalletNotFound()
    return {
        "user_id":  user_id,
        "balance":  wallet["balance"],
        "currency": wallet.get("currency", settings.CURRENCY),
    }


# ── Balance primitive ─────────────────────────────────────────────────────────
async def adjust_balance(wallet_id: int, delta: float) -> Optional[dict]:
    """
    Applies `delta` to a wallet balance, storing the result rounded to cents.

    The write is a compare-and-set on the balance that was read, so a concurrent
    change makes it miss and the adjustment is recomputed from the fresh value.
    A debit that would take the balance below zero is refused. Returns the
    updated wallet, or None when the wallet is missing or would be overdrawn.
    """
    delta = to_amount(delta)
    for _ in range(BALANCE_WRITE_ATTEMPTS):
        wallet = await get_wallet(wallet_id)
        if not wallet:
            return None
        new_balance = to_amount(wallet["balance"] + delta)
        if new_balance < 0:
            return None
        updated = await db.wallets.find_one_and_update(
            {"id": wallet_id, "balance": wallet["balance"]},
            {"$set": {"balance": new_balance, "updated_at": datetime.now(timezone.utc)}},
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER,
        )
        if updated:
            return updated
    logger.warning(f"Wallet {wallet_id} kept changing, gave up after {BALANCE_WRITE_ATTEMPTS} attempts")
    raise WalletBusy()


async def debit_balance(wallet_id: int, amount: float) -> dict:
    wallet = await adjust_balance(wallet_id, -amount)
    if wallet is None:
        current = await get_wallet(wallet_id)
        if not current:
            raise WalletNotFound()
        raise InsufficientBalance(to_amount(current["balance"]), to_amount(amount))
    return wallet


# ── Ledger ────────────────────────────────────────────────────────────────────
async def record_transaction(
    wallet_id: int,
    tx_type: TransactionType,
    amount: float,
    reason: str,
) -> dict:
    """Appends a completed entry to the ledger. Entries are never updated."""
    tx = {
        "id":         await next_id("transactions"),
        "wallet_id":  wallet_id,
        "type":       tx_type.value,
        "amount":     amount,
        "reason":     reason,
        "status":     TransactionStatus.COMPLETED.value,
        "created_at": datetime.now(timezone.utc),
    }
    await db.transactions.insert_one(tx)
    return {k: v for k, v in tx.items() if k != "_id"}


async def discard_transaction(tx_id: int) -> None:
    """Only used to undo an entry of a unit of work that did not commit."""
    await db.transactions.delete_one({"id": tx_id})


async def list_transactions(user_id: int, page: int, limit: int) -> tuple[list, dict]:
    wallet = await get_wallet_by_user(user_id)
    query = {"wallet_id": wallet["id"]} if wallet else {"wallet_id": None}
    return await paginate(
        db.transactions, query, page, limit,
        sort=[("created_at", -1), ("id", -1)],
    )


async def get_transaction(tx_id: int) -> dict:
    tx = await db.transactions.find_one({"id": tx_id}, {"_id": 0})
    if not tx:
        raise ServiceError("Transaction not found", status_code=404)
    return tx


# ── Admin credit / debit ──────────────────────────────────────────────────────
async def credit_wallet(user_id: int, amount: float, reason: Optional[str] = None) -> dict:
    amount = to_amount(amount)
    if amount <= 0:
        raise InvalidInput("Invalid amount")
    if not await db.users.find_one({"id": user_id}, {"_id": 0, "id": 1}):
        raise UserNotFound()

    wallet = await get_or_create_wallet(user_id)

    async with UnitOfWork(f"wallet:{wallet['id']}:credit") as uow:
        updated = await adjust_balance(wallet["id"], amount)
        if updated is None:
            raise WalletNotFound()
        uow.on_rollback("restore balance", lambda: adjust_balance(wallet["id"], -amount))
        tx = await record_transaction(
            wallet["id"], TransactionType.CREDIT, amount, reason or "Funds added to wallet",
        )

    logger.info(f"Wallet credited: user={user_id} amount={amount}")
    return {"wallet": updated, "transaction": tx}


async def debit_wallet(user_id: int, amount: float, reason: Optional[str] = None) -> dict:
    amount = to_amount(amount)
    if amount <= 0:
        raise InvalidInput("Invalid amount")
    wallet = await get_wallet_by_user(user_id)
    if not wallet:
        raise WalletNotFound()
    if to_amount(wallet["balance"]) < amount:
        raise InsufficientBalance(to_amount(wallet["balance"]), amount, detail="Insufficient funds")

    async with UnitOfWork(f"wallet:{wallet['id']}:debit") as uow:
        updated = await debit_balance(wallet["id"], amount)
        uow.on_rollback("restore balance", lambda: adjust_balance(wallet["id"], amount))
        tx = await record_transaction(
            wallet["id"], TransactionType.DEBIT, amount, reason or "Funds deducted from wallet",
        )

    logger.info(f"Wallet debited: user={user_id} amount={amount}")
    return {"wallet": updated, "transaction": tx}
