from typing import Optional
from pydantic import BaseModel
from models.common import UserType

# Users and vendors are owned by other services; only the fields shown
# alongside cashout requests are modelled here.


class UserSummary(BaseModel):
    """Requester fields attached to cashout requests."""
    id:           int
    name:         str
    phone_number: Optional[str] = None
    email:        Optional[str] = None
    type:         Optional[UserType] = None


class VendorSummary(BaseModel):
    id:   int
    name: str
    type: Optional[str] = None   # "shop", "restaurant", ...
