from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class LedgerScope:
    """The set of accounts a caller may see and mutate.

    ``organization_id`` of ``None`` is personal mode: only the owner's
    accounts that belong to no organization are visible.
    """

    owner_id: str
    organization_id: Optional[str] = None

    @property
    def is_personal(self) -> bool:
        return self.organization_id is None
