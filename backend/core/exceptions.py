from typing import Optional

from fastapi import HTTPException, status


def credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden_exception(detail: str = "Access denied") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=detail,
    )


# ── Domain errors ─────────────────────────────────────────────────────────────
# Raised by the services, turned into JSON responses by the handler in main.py.

class ServiceError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Bad request"

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None, **extra):
        self.detail = detail or self.default_detail
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, **self.extra}


class InvalidInput(ServiceError):
    default_detail = "Invalid input"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class UserNotFound(NotFound):
    default_detail = "User not found"


class WalletNotFound(NotFound):
    default_detail = "Wallet not found"


class VendorNotFound(NotFound):
    default_detail = "Vendor not found"


class InsufficientBalance(ServiceError):
    default_detail = "Insufficient balance"

    def __init__(self, current_balance: float, requested_amount: float, detail: Optional[str] = None):
        super().__init__(
            detail,
            current_balance=current_balance,
            requested_amount=requested_amount,
        )
        self.current_balance = current_balance
        self.requested_amount = requested_amount


class InvalidStateTransition(ServiceError):
    """A terminal request was targeted by approve / reject."""

    def __init__(self, current_status: str, detail: Optional[str] = None):
        super().__init__(
            detail or f"Request is not pending. Current status: {current_status}",
            current_status=current_status,
        )
        self.current_status = current_status


class DuplicatePendingRequest(ServiceError):
    default_detail = "You already have a pending payout request"


class WalletBusy(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Wallet is being updated, please retry"
