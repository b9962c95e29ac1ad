from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from config import settings
from models.common import CashOutStatus, Pagination
from models.user import UserSummary, VendorSummary
from models.wallet import Wallet, Transaction


class CashOutRequest(BaseModel):
    id:         int
    user_id:    int
    vendor_id:  Optional[int] = None     # set only for vendor owners
    amount:     float
    reason:     Optional[str] = None
    status:     CashOutStatus = CashOutStatus.PENDING
    created_at: datetime
    updated_at: datetime
    user:       Optional[UserSummary]   = None
    vendor:     Optional[VendorSummary] = None


class CashOutRequestCreate(BaseModel):
    amount: float = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=settings.MAX_REASON_LENGTH)


class CashOutRequestReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=settings.MAX_REASON_LENGTH)


class PayoutStatusUpdate(BaseModel):
    status: str   # "approved" | "rejected", checked by the service
    reason: Optional[str] = Field(None, max_length=settings.MAX_REASON_LENGTH)


# ── Response envelopes ────────────────────────────────────────────────────────
class CashOutRequestEnvelope(BaseModel):
    message:          Optional[str] = None
    cash_out_request: CashOutRequest


class CashOutRequestPage(BaseModel):
    cash_out_requests: list[CashOutRequest]
    pagination:        Pagination


class ApprovalResult(BaseModel):
    message:          str
    cash_out_request: CashOutRequest
    wallet:           Wallet
    transaction:      Transaction


class PayoutEnvelope(BaseModel):
    message:        Optional[str] = None
    payout_request: CashOutRequest


class PayoutHistory(BaseModel):
    message:    str
    payouts:    list[CashOutRequest]
    pagination: Pagination


class PayoutStats(BaseModel):
    message:            str
    available_balance:  float
    total_earnings:     float
    total_withdrawn:    float
    pending_payouts:    float
    this_month_payouts: int
    wallet:             Wallet
