from __future__ import annotations
import datetime as dt
from typing import Optional
from uuid import UUID, uuid4
from sqlmodel import Field, SQLModel


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.UTC)


class Account(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    name: str
    owner_id: str = Field(index=True)
    organization_id: Optional[str] = Field(default=None, index=True)
    currency: str = Field(max_length=3)
    opening_balance: int = 0
    balance: int = 0
    version: int = 0
    created_at: dt.datetime = Field(default_factory=utcnow)

class Transaction(SQLModel, table=True):
    __tablename__ = "transaction_record"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    account_id: UUID = Field(foreign_key="account.id", index=True)
    kind: str
    amount: int
    category_id: Optional[UUID] = Field(default=None, index=True)
    reason: Optional[str] = None
    date: dt.date = Field(index=True)
    created_at: dt.datetime = Field(default_factory=utcnow, index=True)
    updated_at: dt.datetime = Field(default_factory=utcnow)
    version: int = 0

class Transfer(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    from_account_id: UUID = Field(foreign_key="account.id", index=True)
    to_account_id: UUID = Field(foreign_key="account.id", index=True)
    amount: int
    date: dt.date = Field(index=True)
    description: Optional[str] = None
    status: str = "completed"
    created_at: dt.datetime = Field(default_factory=utcnow, index=True)
    updated_at: dt.datetime = Field(default_factory=utcnow)
    version: int = 0

class Category(SQLModel, table=True):
    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    name: str
    color: str = "#6B7280"
    owner_id: Optional[str] = Field(default=None, index=True)

class IdempotencyRecord(SQLModel, table=True):
    route: str = Field(primary_key=True)
    key: str = Field(primary_key=True)
    request_signature: str
    response_payload: str
