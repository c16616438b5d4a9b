from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Optional, Tuple, TypeVar
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session

from ..core.config import Settings, get_settings
from ..core.errors import (
    ConcurrentModificationError,
    DuplicateIdempotencyKeyError,
    LedgerValidationError,
    PartialApplicationFailureError,
)
from .account_store import AccountStore
from .repository import LedgerRepository


logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerService:
    """Plumbing shared by the ledgers: units of work, retries and idempotency."""

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        store: Optional[AccountStore] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.store = store or AccountStore(session)
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _json_default(self, value: Any) -> Any:
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, UUID):
            return str(value)
        return value

    def _serialize(self, payload: Any) -> str:
        if hasattr(payload, "model_dump"):
            data = payload.model_dump(mode="json")
        else:
            data = payload
        return json.dumps(data, default=self._json_default, sort_keys=True)

    def _encode_signature(self, signature: Tuple[Any, ...]) -> str:
        return json.dumps(signature, default=self._json_default, sort_keys=True)

    def _validate_amount(self, amount: int) -> None:
        if amount <= 0:
            raise LedgerValidationError("Amount must be greater than zero")

    def _check_idempotency(
        self,
        route: str,
        idempotency_key: str,
        request_signature: Tuple[Any, ...],
    ) -> Optional[str]:
        record = self.repository.fetch_idempotency(route, idempotency_key)
        if record is None:
            return None

        signature = self._encode_signature(request_signature)
        if record.request_signature != signature:
            raise DuplicateIdempotencyKeyError(
                "Idempotency key was previously used with different parameters"
            )

        return record.response_payload

    def _record_idempotent(
        self,
        route: str,
        idempotency_key: str,
        request_signature: Tuple[Any, ...],
        response_payload: Any,
    ) -> None:
        signature = self._encode_signature(request_signature)
        serialized_payload = self._serialize(response_payload)
        self.repository.save_idempotency(
            route=route,
            key=idempotency_key,
            signature=signature,
            payload=serialized_payload,
        )
        try:
            self.session.flush()
        except IntegrityError as exc:
            # Another request holding the same key committed first.
            raise ConcurrentModificationError(
                f"Idempotency key {idempotency_key} is already in use"
            ) from exc

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------
    def _rollback(self, operation: str) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError as exc:
            logger.critical(
                "ledger.rollback.failed",
                extra={"operation": operation},
                exc_info=True,
            )
            raise PartialApplicationFailureError(
                f"Could not roll back {operation}; balances need reconciliation"
            ) from exc

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[None]:
        """Commit everything done inside the block, or nothing.

        Rolling back is what compensates a debit whose credit never landed.
        """
        try:
            yield
            self.session.commit()
        except OperationalError as exc:
            self._rollback(operation)
            raise ConcurrentModificationError(
                f"Storage conflict during {operation}"
            ) from exc
        except Exception:
            self._rollback(operation)
            raise

    def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        """Run ``func`` in a unit of work, retrying on concurrent modification."""
        attempts = max(1, self.settings.max_conflict_retries)
        attempt = 1
        while True:
            try:
                with self._unit_of_work(operation):
                    return func(*args)
            except ConcurrentModificationError:
                if attempt >= attempts:
                    logger.error(
                        "ledger.conflict.exhausted",
                        extra={"operation": operation, "attempts": attempts},
                    )
                    raise
                logger.warning(
                    "ledger.conflict.retry",
                    extra={"operation": operation, "attempt": attempt},
                )
                attempt += 1
