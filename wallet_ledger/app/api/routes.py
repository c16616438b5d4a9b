import datetime as dt
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response, status

from ..core.dependencies import (
    get_account_service,
    get_activity_aggregator,
    get_scope,
    get_transaction_ledger,
    get_transfer_ledger,
)
from ..core.scope import LedgerScope
from ..models import (
    AccountCreate,
    AccountResponse,
    ActivityFilters,
    ActivityPage,
    ReconciliationResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    TransferCreate,
    TransferResponse,
    TransferUpdate,
)
from ..services import (
    AccountService,
    ActivityAggregator,
    TransactionLedger,
    TransferLedger,
)


router = APIRouter(prefix="/accounts", tags=["accounts"])

@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    scope: LedgerScope = Depends(get_scope),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.create_account(scope, payload)

@router.get("", response_model=list[AccountResponse])
def list_accounts(
    scope: LedgerScope = Depends(get_scope),
    service: AccountService = Depends(get_account_service),
) -> list[AccountResponse]:
    return service.list_accounts(scope)

@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: UUID,
    scope: LedgerScope = Depends(get_scope),
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.get_account(scope, account_id)

@router.get("/{account_id}/reconciliation", response_model=ReconciliationResponse)
def reconcile_account(
    account_id: UUID,
    scope: LedgerScope = Depends(get_scope),
    service: AccountService = Depends(get_account_service),
) -> ReconciliationResponse:
    return service.reconcile(scope, account_id)

transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])

@transaction_router.post(
    "", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED
)
def create_transaction(
    payload: TransactionCreate,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransactionLedger = Depends(get_transaction_ledger),
    idempotency_key: str = Header(..., convert_underscores=False, alias="Idempotency-Key"),
) -> TransactionResponse:
    return ledger.create(scope, payload, idempotency_key)

@transaction_router.get("", response_model=list[TransactionResponse])
def list_transactions(
    scope: LedgerScope = Depends(get_scope),
    ledger: TransactionLedger = Depends(get_transaction_ledger),
) -> list[TransactionResponse]:
    return ledger.list(scope)

@transaction_router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: UUID,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransactionLedger = Depends(get_transaction_ledger),
) -> TransactionResponse:
    return ledger.get(scope, transaction_id)

@transaction_router.patch("/{transaction_id}", response_model=TransactionResponse)
def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransactionLedger = Depends(get_transaction_ledger),
) -> TransactionResponse:
    return ledger.update(scope, transaction_id, payload)

@transaction_router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: UUID,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransactionLedger = Depends(get_transaction_ledger),
) -> Response:
    ledger.delete(scope, transaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

transfer_router = APIRouter(prefix="/transfers", tags=["transfers"])

@transfer_router.post("", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def create_transfer(
    payload: TransferCreate,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransferLedger = Depends(get_transfer_ledger),
    idempotency_key: str = Header(..., convert_underscores=False, alias="Idempotency-Key"),
) -> TransferResponse:
    return ledger.create(scope, payload, idempotency_key)

@transfer_router.get("", response_model=list[TransferResponse])
def list_transfers(
    scope: LedgerScope = Depends(get_scope),
    ledger: TransferLedger = Depends(get_transfer_ledger),
) -> list[TransferResponse]:
    return ledger.list(scope)

@transfer_router.get("/{transfer_id}", response_model=TransferResponse)
def get_transfer(
    transfer_id: UUID,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransferLedger = Depends(get_transfer_ledger),
) -> TransferResponse:
    return ledger.get(scope, transfer_id)

@transfer_router.patch("/{transfer_id}", response_model=TransferResponse)
def update_transfer(
    transfer_id: UUID,
    payload: TransferUpdate,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransferLedger = Depends(get_transfer_ledger),
) -> TransferResponse:
    return ledger.update(scope, transfer_id, payload)

@transfer_router.delete("/{transfer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transfer(
    transfer_id: UUID,
    scope: LedgerScope = Depends(get_scope),
    ledger: TransferLedger = Depends(get_transfer_ledger),
) -> Response:
    ledger.delete(scope, transfer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

activity_router = APIRouter(prefix="/activity", tags=["activity"])

@activity_router.get("", response_model=ActivityPage)
def list_activity(
    page: int = Query(default=1, ge=1),
    page_size: Optional[int] = Query(default=None, ge=1),
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    account_id: Optional[UUID] = None,
    category_id: Optional[UUID] = None,
    item_type: Optional[Literal["income", "expense", "transfer"]] = None,
    scope: LedgerScope = Depends(get_scope),
    aggregator: ActivityAggregator = Depends(get_activity_aggregator),
) -> ActivityPage:
    filters = ActivityFilters(
        date_from=date_from,
        date_to=date_to,
        account_id=account_id,
        category_id=category_id,
        item_type=item_type,
    )
    return aggregator.list(scope, filters, page=page, page_size=page_size)

__all__ = ["router", "transaction_router", "transfer_router", "activity_router"]
