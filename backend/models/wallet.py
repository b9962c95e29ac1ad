from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from config import settings
from models.common import TransactionType, TransactionStatus, WalletStatus, Pagination


class Wallet(BaseModel):
    id:         int
    user_id:    int
    balance:    float = 0.0           # never negative
    status:     WalletStatus = WalletStatus.ACTIVE
    currency:   str = settings.CURRENCY
    created_at: datetime
    updated_at: datetime


class Transaction(BaseModel):
    """Immutable ledger entry."""
    id:         int
    wallet_id:  int
    type:       TransactionType
    amount:     float
    reason:     Optional[str] = None
    status:     TransactionStatus = TransactionStatus.COMPLETED
    created_at: datetime


class FundsRequest(BaseModel):
    amount: float = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=settings.MAX_REASON_LENGTH)


# ── Response envelopes ────────────────────────────────────────────────────────
class WalletDetail(Wallet):
    transactions: list[Transaction] = []   # most recent first


class WalletEnvelope(BaseModel):
    message: Optional[str] = None
    wallet:  WalletDetail


class WalletBalance(BaseModel):
    user_id:  int
    balance:  float
    currency: str


class TransactionPage(BaseModel):
    transactions: list[Transaction]
    pagination:   Pagination


class TransactionEnvelope(BaseModel):
    transaction: Transaction


class FundsResult(BaseModel):
    message:     str
    wallet:      Wallet
    transaction: Transaction
