import datetime as dt
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

TransactionKind = Literal["income", "expense"]
ActivityType = Literal["income", "expense", "transfer"]


class AccountCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Display name of the wallet")
    currency: Optional[str] = Field(
        default=None,
        min_length=3,
        max_length=3,
        description="ISO currency code; falls back to the configured default",
    )
    opening_balance: int = Field(default=0, description="Starting balance in minor units")

class AccountResponse(BaseModel):
    id: UUID
    name: str
    currency: str
    organization_id: Optional[str] = None
    opening_balance: int
    balance: int = Field(..., description="Balance in minor units (e.g. cents)")
    created_at: dt.datetime

class ReconciliationResponse(BaseModel):
    account_id: UUID
    opening_balance: int
    income_total: int
    expense_total: int
    transfers_in: int
    transfers_out: int
    computed_balance: int
    balance: int
    drift: int

class TransactionCreate(BaseModel):
    account_id: UUID
    kind: TransactionKind
    amount: int = Field(..., ge=1, description="Amount in minor units (must be >= 1)")
    category_id: Optional[UUID] = None
    reason: Optional[str] = Field(default=None, description="Narrative shown in the feed")
    date: dt.date

class TransactionUpdate(BaseModel):
    account_id: Optional[UUID] = None
    kind: Optional[TransactionKind] = None
    amount: Optional[int] = Field(default=None, ge=1)
    category_id: Optional[UUID] = None
    reason: Optional[str] = None
    date: Optional[dt.date] = None

class TransactionResponse(BaseModel):
    id: UUID
    account_id: UUID
    kind: TransactionKind
    amount: int
    category_id: Optional[UUID] = None
    reason: Optional[str] = None
    date: dt.date
    created_at: dt.datetime
    updated_at: dt.datetime

class TransferCreate(BaseModel):
    from_account_id: UUID
    to_account_id: UUID
    amount: int = Field(..., ge=1)
    date: dt.date
    description: Optional[str] = None

class TransferUpdate(BaseModel):
    from_account_id: Optional[UUID] = None
    to_account_id: Optional[UUID] = None
    amount: Optional[int] = Field(default=None, ge=1)
    date: Optional[dt.date] = None
    description: Optional[str] = None

class TransferResponse(BaseModel):
    id: UUID
    from_account_id: UUID
    to_account_id: UUID
    amount: int
    date: dt.date
    description: Optional[str] = None
    status: Literal["completed"]
    created_at: dt.datetime
    updated_at: dt.datetime

class CategoryLabel(BaseModel):
    id: Optional[UUID] = None
    name: str
    color: str

class ActivityFilters(BaseModel):
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    account_id: Optional[UUID] = None
    category_id: Optional[UUID] = None
    item_type: Optional[ActivityType] = None

class ActivityItem(BaseModel):
    item_type: Literal["transaction", "transfer"]
    id: UUID
    date: dt.date
    created_at: dt.datetime
    amount: int
    direction: Literal["+", "-", ""]
    kind: ActivityType
    label: str
    description: Optional[str] = None
    account_id: Optional[UUID] = None
    account_name: Optional[str] = None
    from_account_id: Optional[UUID] = None
    from_account_name: Optional[str] = None
    to_account_id: Optional[UUID] = None
    to_account_name: Optional[str] = None
    category: Optional[CategoryLabel] = None

class ActivityPage(BaseModel):
    items: list[ActivityItem]
    total: int
    page: int
    page_size: int
    has_more: bool
