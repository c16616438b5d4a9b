from __future__ import annotations

import json
import logging
from typing import Any, Optional, Tuple
from uuid import UUID

from ..core.errors import (
    ConcurrentModificationError,
    InsufficientFundsError,
    LedgerValidationError,
    TransferNotFoundError,
)
from ..core.scope import LedgerScope
from ..models import (
    AccountModel,
    TransferCreate,
    TransferModel,
    TransferResponse,
    TransferUpdate,
)
from ..models.db import utcnow
from .ledger import LedgerService


logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("from_account_id", "to_account_id", "amount", "date")


class TransferLedger(LedgerService):
    """Money moved between two accounts of the same scope.

    A stored transfer is always fully applied: ``-amount`` on the source and
    ``+amount`` on the destination. Edits and deletes undo exactly what was
    stored before anything new is applied.
    """

    def _to_response(self, transfer: TransferModel) -> TransferResponse:
        return TransferResponse(
            id=transfer.id,
            from_account_id=transfer.from_account_id,
            to_account_id=transfer.to_account_id,
            amount=transfer.amount,
            date=transfer.date,
            description=transfer.description,
            status=transfer.status,
            created_at=transfer.created_at,
            updated_at=transfer.updated_at,
        )

    def _get_transfer(self, scope: LedgerScope, transfer_id: UUID) -> TransferModel:
        transfer = self.repository.get_transfer(scope, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(f"Transfer {transfer_id} not found")
        return transfer

    def _lock_transfer(self, scope: LedgerScope, transfer_id: UUID) -> TransferModel:
        transfer = self.repository.lock_transfer(scope, transfer_id)
        if transfer is None:
            raise TransferNotFoundError(f"Transfer {transfer_id} not found")
        return transfer

    def _claim(self, transfer_id: UUID, rowcount: int) -> None:
        """Check the row count of a version-guarded write to a transfer."""
        if rowcount == 1:
            return
        if not self.repository.transfer_exists(transfer_id):
            raise TransferNotFoundError(f"Transfer {transfer_id} not found")
        logger.warning("transfer.conflict", extra={"transfer_id": str(transfer_id)})
        raise ConcurrentModificationError(f"Transfer {transfer_id} was modified concurrently")

    def _validate_endpoints(self, from_account_id: UUID, to_account_id: UUID) -> None:
        if from_account_id == to_account_id:
            raise LedgerValidationError("Cannot transfer to the same account")

    def _check_currency(self, source: AccountModel, dest: AccountModel) -> None:
        if source.currency != dest.currency:
            raise LedgerValidationError(
                f"Cannot transfer between {source.currency} and {dest.currency} accounts"
            )

    def _ensure_funds(self, account_id: UUID, available: int, amount: int) -> None:
        if available < amount:
            logger.info(
                "transfer.insufficient_funds",
                extra={"account_id": str(account_id), "available": available, "amount": amount},
            )
            raise InsufficientFundsError("Insufficient funds for transfer")

    def _apply(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: int,
        source_version: Optional[int],
    ) -> None:
        # The debit only lands on the balance that passed the funds check.
        self.store.adjust_balance(from_account_id, -amount, expected_version=source_version)
        self.store.adjust_balance(to_account_id, amount)

    def _reverse(self, from_account_id: UUID, to_account_id: UUID, amount: int) -> None:
        self.store.adjust_balance(from_account_id, amount)
        self.store.adjust_balance(to_account_id, -amount)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def create(
        self,
        scope: LedgerScope,
        payload: TransferCreate,
        idempotency_key: str,
    ) -> TransferResponse:
        self._validate_endpoints(payload.from_account_id, payload.to_account_id)
        self._validate_amount(payload.amount)
        request_signature = (
            "transfer",
            scope.owner_id,
            scope.organization_id,
            str(payload.from_account_id),
            str(payload.to_account_id),
            payload.amount,
            payload.date.isoformat(),
            payload.description,
        )
        response = self._run(
            "transfer.create",
            self._create,
            scope,
            payload,
            idempotency_key,
            request_signature,
        )
        logger.info(
            "transfer.created",
            extra={
                "transfer_id": str(response.id),
                "from_account_id": str(response.from_account_id),
                "to_account_id": str(response.to_account_id),
                "amount": response.amount,
            },
        )
        return response

    def _create(
        self,
        scope: LedgerScope,
        payload: TransferCreate,
        idempotency_key: str,
        request_signature: Tuple[Any, ...],
    ) -> TransferResponse:
        cached = self._check_idempotency("transfer", idempotency_key, request_signature)
        if cached is not None:
            logger.info(
                "idempotent.transfer.hit",
                extra={
                    "from_account_id": str(payload.from_account_id),
                    "to_account_id": str(payload.to_account_id),
                    "idempotency_key": idempotency_key,
                },
            )
            return TransferResponse.model_validate(json.loads(cached))

        accounts = self.store.lock_accounts(
            scope, [payload.from_account_id, payload.to_account_id]
        )
        source = accounts[payload.from_account_id]
        dest = accounts[payload.to_account_id]
        self._check_currency(source, dest)
        self._ensure_funds(source.id, source.balance, payload.amount)

        self._apply(source.id, dest.id, payload.amount, source.version)

        transfer = self.repository.add_transfer(
            TransferModel(
                from_account_id=source.id,
                to_account_id=dest.id,
                amount=payload.amount,
                date=payload.date,
                description=payload.description,
                status="completed",
            )
        )
        response = self._to_response(transfer)
        self._record_idempotent("transfer", idempotency_key, request_signature, response)
        return response

    def update(
        self,
        scope: LedgerScope,
        transfer_id: UUID,
        changes: TransferUpdate,
    ) -> TransferResponse:
        updates = changes.model_dump(exclude_unset=True)
        for field in REQUIRED_FIELDS:
            if field in updates and updates[field] is None:
                raise LedgerValidationError(f"Field '{field}' cannot be cleared")
        if "amount" in updates:
            self._validate_amount(updates["amount"])

        response = self._run("transfer.update", self._update, scope, transfer_id, updates)
        logger.info(
            "transfer.updated",
            extra={
                "transfer_id": str(transfer_id),
                "fields": sorted(updates),
                "amount": response.amount,
            },
        )
        return response

    def _update(
        self,
        scope: LedgerScope,
        transfer_id: UUID,
        updates: dict[str, Any],
    ) -> TransferResponse:
        transfer = self._lock_transfer(scope, transfer_id)
        old_from = transfer.from_account_id
        old_to = transfer.to_account_id
        old_amount = transfer.amount
        new_from = updates.get("from_account_id", old_from)
        new_to = updates.get("to_account_id", old_to)
        new_amount = updates.get("amount", old_amount)
        self._validate_endpoints(new_from, new_to)

        accounts = self.store.lock_accounts(scope, [old_from, old_to, new_from, new_to])
        self._check_currency(accounts[new_from], accounts[new_to])

        # The version-guarded write is the first one in the unit, so anything
        # committed since the record was read surfaces here as a conflict.
        self._claim(
            transfer_id,
            self.repository.rewrite_transfer(
                transfer_id, transfer.version, {**updates, "updated_at": utcnow()}
            ),
        )
        self._reverse(old_from, old_to, old_amount)

        # Funds are checked against the source as it stands after the reversal;
        # a rejection here rolls the reversal back with the rest of the unit.
        available, version = self.store.get_snapshot(new_from)
        self._ensure_funds(new_from, available, new_amount)
        self._apply(new_from, new_to, new_amount, version)

        self.session.refresh(transfer)
        return self._to_response(transfer)

    def delete(self, scope: LedgerScope, transfer_id: UUID) -> None:
        self._run("transfer.delete", self._delete, scope, transfer_id)
        logger.info("transfer.deleted", extra={"transfer_id": str(transfer_id)})

    def _delete(self, scope: LedgerScope, transfer_id: UUID) -> None:
        transfer = self._lock_transfer(scope, transfer_id)
        from_account_id = transfer.from_account_id
        to_account_id = transfer.to_account_id
        amount = transfer.amount

        self.store.lock_accounts(scope, [from_account_id, to_account_id])
        self._claim(transfer_id, self.repository.remove_transfer(transfer_id, transfer.version))
        self.session.expunge(transfer)
        self._reverse(from_account_id, to_account_id, amount)

    def get(self, scope: LedgerScope, transfer_id: UUID) -> TransferResponse:
        return self._to_response(self._get_transfer(scope, transfer_id))

    def list(self, scope: LedgerScope) -> list[TransferResponse]:
        return [self._to_response(transfer) for transfer in self.repository.list_transfers(scope)]
