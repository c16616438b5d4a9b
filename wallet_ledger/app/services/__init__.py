from .account_store import AccountStore
from .accounts import AccountService
from .activity import ActivityAggregator
from .ledger import LedgerService
from .lookups import AccountLookup, CategoryLookup
from .repository import LedgerRepository
from .transactions import TransactionLedger
from .transfers import TransferLedger

__all__ = [
    "AccountLookup",
    "AccountService",
    "AccountStore",
    "ActivityAggregator",
    "CategoryLookup",
    "LedgerRepository",
    "LedgerService",
    "TransactionLedger",
    "TransferLedger",
]
