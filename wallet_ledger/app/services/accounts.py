from __future__ import annotations

import logging
from uuid import UUID

from ..core.errors import AccountNotFoundError
from ..core.scope import LedgerScope
from ..models import (
    AccountCreate,
    AccountModel,
    AccountResponse,
    ReconciliationResponse,
)
from .ledger import LedgerService


logger = logging.getLogger(__name__)


class AccountService(LedgerService):
    def _get_account(self, scope: LedgerScope, account_id: UUID) -> AccountModel:
        account = self.repository.get_account(scope, account_id)
        if account is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return account

    def _account_to_response(self, account: AccountModel) -> AccountResponse:
        return AccountResponse(
            id=account.id,
            name=account.name,
            currency=account.currency,
            organization_id=account.organization_id,
            opening_balance=account.opening_balance,
            balance=account.balance,
            created_at=account.created_at,
        )

    def create_account(self, scope: LedgerScope, payload: AccountCreate) -> AccountResponse:
        currency = (payload.currency or self.settings.default_currency).upper()
        with self._unit_of_work("account.create"):
            account = self.repository.add_account(
                scope=scope,
                name=payload.name,
                currency=currency,
                opening_balance=payload.opening_balance,
            )
            response = self._account_to_response(account)
        logger.info(
            "account.created",
            extra={
                "account_id": str(response.id),
                "owner_id": scope.owner_id,
                "organization_id": scope.organization_id,
                "opening_balance": response.opening_balance,
            },
        )
        return response

    def get_account(self, scope: LedgerScope, account_id: UUID) -> AccountResponse:
        return self._account_to_response(self._get_account(scope, account_id))

    def list_accounts(self, scope: LedgerScope) -> list[AccountResponse]:
        return [self._account_to_response(a) for a in self.repository.list_accounts(scope)]

    def reconcile(self, scope: LedgerScope, account_id: UUID) -> ReconciliationResponse:
        """Recompute the balance from record history and report any drift."""
        account = self._get_account(scope, account_id)
        income = self.repository.sum_transactions(account.id, "income")
        expense = self.repository.sum_transactions(account.id, "expense")
        transfers_in = self.repository.sum_transfers_in(account.id)
        transfers_out = self.repository.sum_transfers_out(account.id)
        computed = account.opening_balance + income - expense + transfers_in - transfers_out
        drift = account.balance - computed
        if drift:
            logger.error(
                "account.reconciliation.drift",
                extra={"account_id": str(account.id), "drift": drift},
            )
        return ReconciliationResponse(
            account_id=account.id,
            opening_balance=account.opening_balance,
            income_total=income,
            expense_total=expense,
            transfers_in=transfers_in,
            transfers_out=transfers_out,
            computed_balance=computed,
            balance=account.balance,
            drift=drift,
        )
