from __future__ import annotations

import json
import logging
from typing import Any, Tuple
from uuid import UUID

from ..core.errors import (
    ConcurrentModificationError,
    LedgerValidationError,
    TransactionNotFoundError,
)
from ..core.scope import LedgerScope
from ..models import (
    TransactionCreate,
    TransactionModel,
    TransactionResponse,
    TransactionUpdate,
)
from ..models.db import utcnow
from .ledger import LedgerService


logger = logging.getLogger(__name__)

TRANSACTION_KINDS = ("income", "expense")
REQUIRED_FIELDS = ("account_id", "kind", "amount", "date")


def signed_delta(kind: str, amount: int) -> int:
    if kind == "income":
        return amount
    if kind == "expense":
        return -amount
    raise LedgerValidationError(f"Unknown transaction kind: {kind}")


class TransactionLedger(LedgerService):
    """Income and expense records, each moving one account's balance."""

    def _to_response(self, transaction: TransactionModel) -> TransactionResponse:
        return TransactionResponse(
            id=transaction.id,
            account_id=transaction.account_id,
            kind=transaction.kind,
            amount=transaction.amount,
            category_id=transaction.category_id,
            reason=transaction.reason,
            date=transaction.date,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )

    def _get_transaction(self, scope: LedgerScope, transaction_id: UUID) -> TransactionModel:
        transaction = self.repository.get_transaction(scope, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def _lock_transaction(self, scope: LedgerScope, transaction_id: UUID) -> TransactionModel:
        transaction = self.repository.lock_transaction(scope, transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def _claim(self, transaction_id: UUID, rowcount: int) -> None:
        """Check the row count of a version-guarded write to a transaction.

        The guarded write comes first in every edit or delete, so anything
        committed since the record was read surfaces here as a conflict and
        the unit is retried against a fresh read.
        """
        if rowcount == 1:
            return
        if not self.repository.transaction_exists(transaction_id):
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        logger.warning("transaction.conflict", extra={"transaction_id": str(transaction_id)})
        raise ConcurrentModificationError(
            f"Transaction {transaction_id} was modified concurrently"
        )

    def _validate_kind(self, kind: Any) -> None:
        if kind not in TRANSACTION_KINDS:
            raise LedgerValidationError(f"Unknown transaction kind: {kind}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def create(
        self,
        scope: LedgerScope,
        payload: TransactionCreate,
        idempotency_key: str,
    ) -> TransactionResponse:
        self._validate_amount(payload.amount)
        self._validate_kind(payload.kind)
        request_signature = (
            "transaction",
            scope.owner_id,
            scope.organization_id,
            str(payload.account_id),
            payload.kind,
            payload.amount,
            str(payload.category_id) if payload.category_id else None,
            payload.reason,
            payload.date.isoformat(),
        )
        response = self._run(
            "transaction.create",
            self._create,
            scope,
            payload,
            idempotency_key,
            request_signature,
        )
        logger.info(
            "transaction.created",
            extra={
                "transaction_id": str(response.id),
                "account_id": str(response.account_id),
                "kind": response.kind,
                "amount": response.amount,
            },
        )
        return response

    def _create(
        self,
        scope: LedgerScope,
        payload: TransactionCreate,
        idempotency_key: str,
        request_signature: Tuple[Any, ...],
    ) -> TransactionResponse:
        cached = self._check_idempotency("transaction", idempotency_key, request_signature)
        if cached is not None:
            logger.info(
                "idempotent.transaction.hit",
                extra={"account_id": str(payload.account_id), "idempotency_key": idempotency_key},
            )
            return TransactionResponse.model_validate(json.loads(cached))

        self.store.lock_accounts(scope, [payload.account_id])
        self.store.adjust_balance(payload.account_id, signed_delta(payload.kind, payload.amount))

        transaction = self.repository.add_transaction(
            TransactionModel(
                account_id=payload.account_id,
                kind=payload.kind,
                amount=payload.amount,
                category_id=payload.category_id,
                reason=payload.reason,
                date=payload.date,
            )
        )
        response = self._to_response(transaction)
        self._record_idempotent("transaction", idempotency_key, request_signature, response)
        return response

    def update(
        self,
        scope: LedgerScope,
        transaction_id: UUID,
        changes: TransactionUpdate,
    ) -> TransactionResponse:
        updates = changes.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in updates and updates[field] is None:
                raise LedgerValidationError(f"Field '{field}' cannot be cleared")
        if "amount" in updates:
            self._validate_amount(updates["amount"])
        if "kind" in updates:
            self._validate_kind(updates["kind"])

        response = self._run("transaction.update", self._update, scope, transaction_id, updates)
        logger.info(
            "transaction.updated",
            extra={
                "transaction_id": str(transaction_id),
                "fields": sorted(updates),
                "amount": response.amount,
            },
        )
        return response

    def _update(
        self,
        scope: LedgerScope,
        transaction_id: UUID,
        updates: dict[str, Any],
    ) -> TransactionResponse:
        transaction = self._lock_transaction(scope, transaction_id)
        old_account_id = transaction.account_id
        old_delta = signed_delta(transaction.kind, transaction.amount)

        new_account_id = updates.get("account_id", old_account_id)
        new_delta = signed_delta(
            updates.get("kind", transaction.kind),
            updates.get("amount", transaction.amount),
        )

        self.store.lock_accounts(scope, [old_account_id, new_account_id])
        self._claim(
            transaction_id,
            self.repository.rewrite_transaction(
                transaction_id, transaction.version, {**updates, "updated_at": utcnow()}
            ),
        )
        self.store.adjust_balance(old_account_id, -old_delta)
        self.store.adjust_balance(new_account_id, new_delta)

        self.session.refresh(transaction)
        return self._to_response(transaction)

    def delete(self, scope: LedgerScope, transaction_id: UUID) -> None:
        self._run("transaction.delete", self._delete, scope, transaction_id)
        logger.info("transaction.deleted", extra={"transaction_id": str(transaction_id)})

    def _delete(self, scope: LedgerScope, transaction_id: UUID) -> None:
        transaction = self._lock_transaction(scope, transaction_id)
        account_id = transaction.account_id
        delta = signed_delta(transaction.kind, transaction.amount)

        self.store.lock_accounts(scope, [account_id])
        self._claim(
            transaction_id,
            self.repository.remove_transaction(transaction_id, transaction.version),
        )
        self.session.expunge(transaction)
        self.store.adjust_balance(account_id, -delta)

    def get(self, scope: LedgerScope, transaction_id: UUID) -> TransactionResponse:
        return self._to_response(self._get_transaction(scope, transaction_id))

    def list(self, scope: LedgerScope) -> list[TransactionResponse]:
        return [
            self._to_response(transaction)
            for transaction in self.repository.list_transactions(scope)
        ]
