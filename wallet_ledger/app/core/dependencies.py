from typing import Optional

from fastapi import Depends, Header
from sqlmodel import Session

from ..services import (
    AccountService,
    ActivityAggregator,
    LedgerRepository,
    TransactionLedger,
    TransferLedger,
)
from .db import get_session
from .scope import LedgerScope

def get_scope(
    user_id: str = Header(..., alias="X-User-Id", min_length=1),
    organization_id: Optional[str] = Header(default=None, alias="X-Organization-Id"),
) -> LedgerScope:
    # The authentication layer in front of this service sets both headers.
    return LedgerScope(owner_id=user_id, organization_id=organization_id or None)

def get_account_service(session: Session = Depends(get_session)) -> AccountService:
    return AccountService(session, LedgerRepository(session))

def get_transaction_ledger(session: Session = Depends(get_session)) -> TransactionLedger:
    return TransactionLedger(session, LedgerRepository(session))

def get_transfer_ledger(session: Session = Depends(get_session)) -> TransferLedger:
    return TransferLedger(session, LedgerRepository(session))

def get_activity_aggregator(session: Session = Depends(get_session)) -> ActivityAggregator:
    return ActivityAggregator(LedgerRepository(session))
