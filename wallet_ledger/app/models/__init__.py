from .db import Account as AccountModel
from .db import Category as CategoryModel
from .db import IdempotencyRecord as IdempotencyRecordModel
from .db import Transaction as TransactionModel
from .db import Transfer as TransferModel
from .schemas import (
    AccountCreate,
    AccountResponse,
    ActivityFilters,
    ActivityItem,
    ActivityPage,
    CategoryLabel,
    ReconciliationResponse,
    TransactionCreate,
    TransactionResponse,
    TransactionUpdate,
    TransferCreate,
    TransferResponse,
    TransferUpdate,
)

__all__ = [
    "AccountCreate",
    "AccountResponse",
    "ActivityFilters",
    "ActivityItem",
    "ActivityPage",
    "CategoryLabel",
    "ReconciliationResponse",
    "TransactionCreate",
    "TransactionResponse",
    "TransactionUpdate",
    "TransferCreate",
    "TransferResponse",
    "TransferUpdate",
    "AccountModel",
    "CategoryModel",
    "IdempotencyRecordModel",
    "TransactionModel",
    "TransferModel",
]
