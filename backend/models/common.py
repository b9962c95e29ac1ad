from enum import Enum
from pydantic import BaseModel


class UserType(str, Enum):
    CLIENT       = "client"
    VENDOR_OWNER = "vendor_owner"
    DRIVER       = "driver"
    EMPLOYEE     = "employee"
    ADMIN        = "admin"


class CashOutStatus(str, Enum):
    PENDING  = "pending"
    APPROVED = "approved"    # terminal
    REJECTED = "rejected"    # terminal


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT  = "debit"


class TransactionStatus(str, Enum):
    COMPLETED = "completed"


class WalletStatus(str, Enum):
    ACTIVE   = "active"
    INACTIVE = "inactive"


class OrderStatus(str, Enum):
    PENDING   = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Pagination(BaseModel):
    page:  int
    limit: int
    total: int
    pages: int
