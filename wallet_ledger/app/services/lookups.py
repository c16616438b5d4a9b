from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from ..models import CategoryLabel
from .repository import LedgerRepository


class CategoryLookup(Protocol):
    def categories(self, category_ids: Iterable[UUID]) -> dict[UUID, CategoryLabel]: ...


class AccountLookup(Protocol):
    def account_names(self, account_ids: Iterable[UUID]) -> dict[UUID, str]: ...


class RepositoryCategoryLookup:
    """Display labels for categories owned by the category service's table."""

    def __init__(self, repository: LedgerRepository) -> None:
        self.repository = repository

    def categories(self, category_ids: Iterable[UUID]) -> dict[UUID, CategoryLabel]:
        return {
            category_id: CategoryLabel(id=category.id, name=category.name, color=category.color)
            for category_id, category in self.repository.categories_by_id(category_ids).items()
        }


class RepositoryAccountLookup:
    def __init__(self, repository: LedgerRepository) -> None:
        self.repository = repository

    def account_names(self, account_ids: Iterable[UUID]) -> dict[UUID, str]:
        return self.repository.account_names(account_ids)
