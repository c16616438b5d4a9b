from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, update
from sqlmodel import Session, select

from ..core.scope import LedgerScope
from ..models import (
    AccountModel,
    CategoryModel,
    IdempotencyRecordModel,
    TransactionModel,
    TransferModel,
)


def in_scope(statement: Any, scope: LedgerScope) -> Any:
    """Restrict a statement selecting from or joined to ``account``."""
    statement = statement.where(AccountModel.owner_id == scope.owner_id)
    if scope.is_personal:
        return statement.where(AccountModel.organization_id.is_(None))
    return statement.where(AccountModel.organization_id == scope.organization_id)


class LedgerRepository:
    """Thin data access layer around the SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # Account operations -------------------------------------------------
    def add_account(
        self,
        *,
        scope: LedgerScope,
        name: str,
        currency: str,
        opening_balance: int,
    ) -> AccountModel:
        account = AccountModel(
            name=name,
            owner_id=scope.owner_id,
            organization_id=scope.organization_id,
            currency=currency,
            opening_balance=opening_balance,
            balance=opening_balance,
        )
        self.session.add(account)
        self.session.flush()
        self.session.refresh(account)
        return account

    def get_account(self, scope: LedgerScope, account_id: UUID) -> Optional[AccountModel]:
        stmt = in_scope(select(AccountModel).where(AccountModel.id == account_id), scope)
        return self.session.exec(stmt).first()

    def list_accounts(self, scope: LedgerScope) -> list[AccountModel]:
        stmt = in_scope(select(AccountModel), scope).order_by(AccountModel.created_at.desc())
        return list(self.session.exec(stmt))

    def account_names(self, account_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = set(account_ids)
        if not ids:
            return {}
        stmt = select(AccountModel.id, AccountModel.name).where(AccountModel.id.in_(ids))
        return {account_id: name for account_id, name in self.session.exec(stmt)}

    # Transactions -------------------------------------------------------
    def add_transaction(self, transaction: TransactionModel) -> TransactionModel:
        self.session.add(transaction)
        self.session.flush()
        self.session.refresh(transaction)
        return transaction

    def get_transaction(
        self, scope: LedgerScope, transaction_id: UUID
    ) -> Optional[TransactionModel]:
        stmt = in_scope(
            select(TransactionModel)
            .join(AccountModel, AccountModel.id == TransactionModel.account_id)
            .where(TransactionModel.id == transaction_id),
            scope,
        )
        return self.session.exec(stmt).first()

    def list_transactions(
        self,
        scope: LedgerScope,
        *,
        account_id: Optional[UUID] = None,
        category_id: Optional[UUID] = None,
        kind: Optional[str] = None,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> list[TransactionModel]:
        stmt = in_scope(
            select(TransactionModel).join(
                AccountModel, AccountModel.id == TransactionModel.account_id
            ),
            scope,
        )
        if account_id is not None:
            stmt = stmt.where(TransactionModel.account_id == account_id)
        if category_id is not None:
            stmt = stmt.where(TransactionModel.category_id == category_id)
        if kind is not None:
            stmt = stmt.where(TransactionModel.kind == kind)
        if date_from is not None:
            stmt = stmt.where(TransactionModel.date >= date_from)
        if date_to is not None:
            stmt = stmt.where(TransactionModel.date <= date_to)
        stmt = stmt.order_by(TransactionModel.date.desc(), TransactionModel.created_at.desc())
        return list(self.session.exec(stmt))

    def lock_transaction(
        self, scope: LedgerScope, transaction_id: UUID
    ) -> Optional[TransactionModel]:
        """Re-read a transaction from storage and row-lock it for this unit."""
        stmt = (
            in_scope(
                select(TransactionModel)
                .join(AccountModel, AccountModel.id == TransactionModel.account_id)
                .where(TransactionModel.id == transaction_id),
                scope,
            )
            .with_for_update(of=TransactionModel)
            .execution_options(populate_existing=True)
        )
        return self.session.exec(stmt).first()

    def rewrite_transaction(
        self, transaction_id: UUID, expected_version: int, values: dict[str, Any]
    ) -> int:
        stmt = (
            update(TransactionModel)
            .where(TransactionModel.id == transaction_id)
            .where(TransactionModel.version == expected_version)
            .values(version=TransactionModel.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def remove_transaction(self, transaction_id: UUID, expected_version: int) -> int:
        stmt = (
            delete(TransactionModel)
            .where(TransactionModel.id == transaction_id)
            .where(TransactionModel.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def transaction_exists(self, transaction_id: UUID) -> bool:
        stmt = select(TransactionModel.id).where(TransactionModel.id == transaction_id)
        return self.session.exec(stmt).first() is not None

    # Transfers ----------------------------------------------------------
    def add_transfer(self, transfer: TransferModel) -> TransferModel:
        self.session.add(transfer)
        self.session.flush()
        self.session.refresh(transfer)
        return transfer

    def get_transfer(self, scope: LedgerScope, transfer_id: UUID) -> Optional[TransferModel]:
        stmt = in_scope(
            select(TransferModel)
            .join(AccountModel, AccountModel.id == TransferModel.from_account_id)
            .where(TransferModel.id == transfer_id),
            scope,
        )
        return self.session.exec(stmt).first()

    def list_transfers(
        self,
        scope: LedgerScope,
        *,
        account_id: Optional[UUID] = None,
        date_from: Optional[dt.date] = None,
        date_to: Optional[dt.date] = None,
    ) -> list[TransferModel]:
        stmt = in_scope(
            select(TransferModel).join(
                AccountModel, AccountModel.id == TransferModel.from_account_id
            ),
            scope,
        )
        if account_id is not None:
            stmt = stmt.where(
                or_(
                    TransferModel.from_account_id == account_id,
                    TransferModel.to_account_id == account_id,
                )
            )
        if date_from is not None:
            stmt = stmt.where(TransferModel.date >= date_from)
        if date_to is not None:
            stmt = stmt.where(TransferModel.date <= date_to)
        stmt = stmt.order_by(TransferModel.date.desc(), TransferModel.created_at.desc())
        return list(self.session.exec(stmt))

    def lock_transfer(self, scope: LedgerScope, transfer_id: UUID) -> Optional[TransferModel]:
        """Re-read a transfer from storage and row-lock it for this unit."""
        stmt = (
            in_scope(
                select(TransferModel)
                .join(AccountModel, AccountModel.id == TransferModel.from_account_id)
                .where(TransferModel.id == transfer_id),
                scope,
            )
            .with_for_update(of=TransferModel)
            .execution_options(populate_existing=True)
        )
        return self.session.exec(stmt).first()

    def rewrite_transfer(
        self, transfer_id: UUID, expected_version: int, values: dict[str, Any]
    ) -> int:
        stmt = (
            update(TransferModel)
            .where(TransferModel.id == transfer_id)
            .where(TransferModel.version == expected_version)
            .values(version=TransferModel.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def remove_transfer(self, transfer_id: UUID, expected_version: int) -> int:
        stmt = (
            delete(TransferModel)
            .where(TransferModel.id == transfer_id)
            .where(TransferModel.version == expected_version)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def transfer_exists(self, transfer_id: UUID) -> bool:
        stmt = select(TransferModel.id).where(TransferModel.id == transfer_id)
        return self.session.exec(stmt).first() is not None

    # Aggregates ---------------------------------------------------------
    def sum_transactions(self, account_id: UUID, kind: str) -> int:
        stmt = select(func.coalesce(func.sum(TransactionModel.amount), 0)).where(
            TransactionModel.account_id == account_id,
            TransactionModel.kind == kind,
        )
        return int(self.session.exec(stmt).one())

    def sum_transfers_in(self, account_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(TransferModel.amount), 0)).where(
            TransferModel.to_account_id == account_id
        )
        return int(self.session.exec(stmt).one())

    def sum_transfers_out(self, account_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(TransferModel.amount), 0)).where(
            TransferModel.from_account_id == account_id
        )
        return int(self.session.exec(stmt).one())

    # Categories ---------------------------------------------------------
    def categories_by_id(self, category_ids: Iterable[UUID]) -> dict[UUID, CategoryModel]:
        ids = set(category_ids)
        if not ids:
            return {}
        stmt = select(CategoryModel).where(CategoryModel.id.in_(ids))
        return {category.id: category for category in self.session.exec(stmt)}

    # Idempotency store --------------------------------------------------
    def fetch_idempotency(
        self, route: str, key: str
    ) -> Optional[IdempotencyRecordModel]:
        stmt = (
            select(IdempotencyRecordModel)
            .where(IdempotencyRecordModel.route == route)
            .where(IdempotencyRecordModel.key == key)
        )
        return self.session.exec(stmt).first()

    def save_idempotency(
        self,
        *,
        route: str,
        key: str,
        signature: str,
        payload: str,
    ) -> None:
        record = IdempotencyRecordModel(
            route=route,
            key=key,
            request_signature=signature,
            response_payload=payload,
        )
        self.session.add(record)
