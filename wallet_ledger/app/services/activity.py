from __future__ import annotations

import logging
from typing import Any, Optional, Union
from uuid import UUID

from ..core.config import Settings, get_settings
from ..core.errors import LedgerValidationError
from ..core.scope import LedgerScope
from ..models import (
    ActivityFilters,
    ActivityItem,
    ActivityPage,
    CategoryLabel,
    TransactionModel,
    TransferModel,
)
from .lookups import (
    AccountLookup,
    CategoryLookup,
    RepositoryAccountLookup,
    RepositoryCategoryLookup,
)
from .repository import LedgerRepository


logger = logging.getLogger(__name__)

UNKNOWN_ACCOUNT_LABEL = "Unknown Wallet"
UNKNOWN_CATEGORY_LABEL = "No Category"
DEFAULT_CATEGORY_COLOR = "#6B7280"

_DIRECTIONS = {"income": "+", "expense": "-"}


def _feed_key(item: ActivityItem) -> tuple[Any, ...]:
    return (item.date, item.created_at, item.item_type, str(item.id))


class ActivityAggregator:
    """Read-only feed merging transactions and transfers, newest first."""

    def __init__(
        self,
        repository: LedgerRepository,
        category_lookup: Optional[CategoryLookup] = None,
        account_lookup: Optional[AccountLookup] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.repository = repository
        self.category_lookup = category_lookup or RepositoryCategoryLookup(repository)
        self.account_lookup = account_lookup or RepositoryAccountLookup(repository)
        self.settings = settings or get_settings()

    def _fetch(
        self, scope: LedgerScope, filters: ActivityFilters
    ) -> tuple[list[TransactionModel], list[TransferModel]]:
        transactions: list[TransactionModel] = []
        transfers: list[TransferModel] = []

        if filters.item_type != "transfer":
            transactions = self.repository.list_transactions(
                scope,
                account_id=filters.account_id,
                category_id=filters.category_id,
                kind=filters.item_type,
                date_from=filters.date_from,
                date_to=filters.date_to,
            )
        # Transfers carry no category, so a category filter excludes them.
        if filters.item_type in (None, "transfer") and filters.category_id is None:
            transfers = self.repository.list_transfers(
                scope,
                account_id=filters.account_id,
                date_from=filters.date_from,
                date_to=filters.date_to,
            )
        return transactions, transfers

    def _category_label(
        self, category_id: Optional[UUID], categories: dict[UUID, CategoryLabel]
    ) -> Optional[CategoryLabel]:
        if category_id is None:
            return None
        label = categories.get(category_id)
        if label is None:
            return CategoryLabel(
                id=category_id,
                name=UNKNOWN_CATEGORY_LABEL,
                color=DEFAULT_CATEGORY_COLOR,
            )
        return label

    def _from_transaction(
        self,
        transaction: TransactionModel,
        names: dict[UUID, str],
        categories: dict[UUID, CategoryLabel],
    ) -> ActivityItem:
        category = self._category_label(transaction.category_id, categories)
        label = transaction.reason or (
            category.name if category is not None else transaction.kind.capitalize()
        )
        return ActivityItem(
            item_type="transaction",
            id=transaction.id,
            date=transaction.date,
            created_at=transaction.created_at,
            amount=transaction.amount,
            direction=_DIRECTIONS.get(transaction.kind, ""),
            kind=transaction.kind,
            label=label,
            description=transaction.reason,
            account_id=transaction.account_id,
            account_name=names.get(transaction.account_id, UNKNOWN_ACCOUNT_LABEL),
            category=category,
        )

    def _from_transfer(self, transfer: TransferModel, names: dict[UUID, str]) -> ActivityItem:
        from_name = names.get(transfer.from_account_id, UNKNOWN_ACCOUNT_LABEL)
        to_name = names.get(transfer.to_account_id, UNKNOWN_ACCOUNT_LABEL)
        return ActivityItem(
            item_type="transfer",
            id=transfer.id,
            date=transfer.date,
            created_at=transfer.created_at,
            amount=transfer.amount,
            direction="",
            kind="transfer",
            label=f"{from_name} → {to_name}",
            description=transfer.description or "Transfer",
            from_account_id=transfer.from_account_id,
            from_account_name=from_name,
            to_account_id=transfer.to_account_id,
            to_account_name=to_name,
        )

    def _to_item(
        self,
        record: Union[TransactionModel, TransferModel],
        names: dict[UUID, str],
        categories: dict[UUID, CategoryLabel],
    ) -> Optional[ActivityItem]:
        try:
            if isinstance(record, TransferModel):
                return self._from_transfer(record, names)
            return self._from_transaction(record, names, categories)
        except ValueError:
            # pydantic's ValidationError is a ValueError; one bad row must not
            # take down the whole feed.
            logger.warning(
                "activity.item.skipped",
                extra={"record_id": str(record.id)},
                exc_info=True,
            )
            return None

    def list(
        self,
        scope: LedgerScope,
        filters: Optional[ActivityFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> ActivityPage:
        filters = filters or ActivityFilters()
        page_size = page_size or self.settings.default_page_size
        if page < 1:
            raise LedgerValidationError("Page must be 1 or greater")
        if not 1 <= page_size <= self.settings.max_page_size:
            raise LedgerValidationError(
                f"Page size must be between 1 and {self.settings.max_page_size}"
            )
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise LedgerValidationError("date_from must not be after date_to")

        transactions, transfers = self._fetch(scope, filters)

        account_ids = {t.account_id for t in transactions}
        for transfer in transfers:
            account_ids.update((transfer.from_account_id, transfer.to_account_id))
        names = self.account_lookup.account_names(account_ids)
        categories = self.category_lookup.categories(
            t.category_id for t in transactions if t.category_id is not None
        )

        records: list[Union[TransactionModel, TransferModel]] = [*transactions, *transfers]
        items = [
            item
            for item in (self._to_item(record, names, categories) for record in records)
            if item is not None
        ]
        items.sort(key=_feed_key, reverse=True)

        start = (page - 1) * page_size
        end = start + page_size
        return ActivityPage(
            items=items[start:end],
            total=len(items),
            page=page,
            page_size=page_size,
            has_more=end < len(items),
        )
