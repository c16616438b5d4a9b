from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlmodel import Session, select

from ..core.errors import AccountNotFoundError, ConcurrentModificationError
from ..core.scope import LedgerScope
from ..models import AccountModel
from .repository import in_scope


logger = logging.getLogger(__name__)


class AccountStore:
    """Sole writer of account balances.

    Every change is a single ``UPDATE ... SET balance = balance + :delta``
    so concurrent adjustments never lose each other. Callers own the
    surrounding database transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def lock_accounts(
        self, scope: LedgerScope, account_ids: Iterable[UUID]
    ) -> dict[UUID, AccountModel]:
        """Load and row-lock the given accounts in ascending id order.

        Two mutations touching the same pair of accounts always lock them in
        the same order, whichever one is the source.
        """
        ordered = sorted(set(account_ids))
        stmt = (
            in_scope(select(AccountModel).where(AccountModel.id.in_(ordered)), scope)
            .order_by(AccountModel.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        accounts = {account.id: account for account in self.session.exec(stmt)}
        for account_id in ordered:
            if account_id not in accounts:
                raise AccountNotFoundError(f"Account {account_id} not found")
        return accounts

    def _read(self, account_id: UUID) -> Optional[Tuple[int, int]]:
        stmt = select(AccountModel.balance, AccountModel.version).where(
            AccountModel.id == account_id
        )
        row = self.session.exec(stmt).first()
        if row is None:
            return None
        balance, version = row
        return balance, version

    def get_snapshot(self, account_id: UUID) -> Tuple[int, int]:
        """Return the current ``(balance, version)`` of an account."""
        snapshot = self._read(account_id)
        if snapshot is None:
            raise AccountNotFoundError(f"Account {account_id} not found")
        return snapshot

    def get_balance(self, account_id: UUID) -> int:
        return self.get_snapshot(account_id)[0]

    def adjust_balance(
        self,
        account_id: UUID,
        delta: int,
        *,
        expected_version: Optional[int] = None,
    ) -> int:
        """Add ``delta`` to the balance and return the new balance.

        With ``expected_version`` the write only lands if nobody adjusted the
        account since that version was read.
        """
        stmt = (
            update(AccountModel)
            .where(AccountModel.id == account_id)
            .values(
                balance=AccountModel.balance + delta,
                version=AccountModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(AccountModel.version == expected_version)

        result = self.session.exec(stmt)
        if result.rowcount == 0:
            if self._read(account_id) is None:
                raise AccountNotFoundError(f"Account {account_id} not found")
            logger.warning(
                "account.adjust.conflict",
                extra={
                    "account_id": str(account_id),
                    "expected_version": expected_version,
                },
            )
            raise ConcurrentModificationError(
                f"Account {account_id} was modified concurrently"
            )

        balance = self.get_balance(account_id)
        logger.debug(
            "account.adjusted",
            extra={"account_id": str(account_id), "delta": delta, "balance": balance},
        )
        return balance
