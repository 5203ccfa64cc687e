from decimal import Decimal, localcontext
from typing import Dict, Optional, Set

from models import LEDGER_CONTEXT, ApplyOutcome, DisputeState, TransactionRecord, TransactionType


class Account:
    """Balance state and transaction history of a single client.

    Records are applied one at a time through ``apply``, which either
    performs the whole transition or leaves the account untouched and
    returns the reason. ``total`` is always derived from ``available`` and
    ``held``. Once a chargeback locks the account nothing changes anymore.
    """

    def __init__(self, client_id: int):
        self.client_id = client_id
        self.available = Decimal("0")
        self.held = Decimal("0")
        self.locked = False
        # Only deposits and withdrawals are recorded; never pruned.
        self._history: Dict[int, TransactionRecord] = {}
        self._disputed: Set[int] = set()
        self._charged_back: Set[int] = set()

    @property
    def total(self) -> Decimal:
        return self.available + self.held

    def __repr__(self) -> str:
        return (
            f"Account(client_id={self.client_id}, available={self.available}, "
            f"held={self.held}, total={self.total}, locked={self.locked})"
        )

    def has_transaction(self, tx_id: int) -> bool:
        return tx_id in self._history

    def is_disputed(self, tx_id: int) -> bool:
        return tx_id in self._disputed

    def dispute_state(self, tx_id: int) -> Optional[DisputeState]:
        """Lifecycle state of a recorded transaction, or None if unknown."""
        if tx_id not in self._history:
            return None
        if tx_id in self._charged_back:
            return DisputeState.charged_back
        if tx_id in self._disputed:
            return DisputeState.disputed
        return DisputeState.normal

    def apply(self, record: TransactionRecord) -> ApplyOutcome:
        if record.client != self.client_id:
            raise ValueError(
                f"Record for client {record.client} applied to account {self.client_id}"
            )

        if self.locked:
            return ApplyOutcome.account_locked

        with localcontext(LEDGER_CONTEXT):
            if record.type == TransactionType.deposit:
                return self._deposit(record)
            elif record.type == TransactionType.withdrawal:
                return self._withdraw(record)
            elif record.type == TransactionType.dispute:
                return self._dispute(record)
            elif record.type == TransactionType.resolve:
                return self._resolve(record)
            elif record.type == TransactionType.chargeback:
                return self._chargeback(record)

        raise ValueError(f"Unsupported transaction type: {record.type!r}")

    def _deposit(self, record: TransactionRecord) -> ApplyOutcome:
        if record.tx in self._history:
            return ApplyOutcome.duplicate_transaction

        self.available += record.amount
        self._history[record.tx] = record
        return ApplyOutcome.applied

    def _withdraw(self, record: TransactionRecord) -> ApplyOutcome:
        if record.tx in self._history:
            return ApplyOutcome.duplicate_transaction

        if self.available < record.amount:
            return ApplyOutcome.insufficient_funds

        self.available -= record.amount
        self._history[record.tx] = record
        return ApplyOutcome.applied

    def _dispute(self, record: TransactionRecord) -> ApplyOutcome:
        referenced = self._history.get(record.tx)
        if referenced is None:
            return ApplyOutcome.unknown_reference

        if not referenced.is_disputable:
            return ApplyOutcome.not_disputable

        if record.tx in self._disputed:
            return ApplyOutcome.already_disputed

        available = self.available - referenced.amount
        held = self.held + referenced.amount
        self.available, self.held = available, held
        self._disputed.add(record.tx)
        return ApplyOutcome.applied

    def _resolve(self, record: TransactionRecord) -> ApplyOutcome:
        referenced = self._history.get(record.tx)
        if referenced is None:
            return ApplyOutcome.unknown_reference

        if record.tx not in self._disputed:
            return ApplyOutcome.not_disputed

        available = self.available + referenced.amount
        held = self.held - referenced.amount
        self.available, self.held = available, held
        self._disputed.discard(record.tx)
        return ApplyOutcome.applied

    def _chargeback(self, record: TransactionRecord) -> ApplyOutcome:
        referenced = self._history.get(record.tx)
        if referenced is None:
            return ApplyOutcome.unknown_reference

        if record.tx not in self._disputed:
            return ApplyOutcome.not_disputed

        self.held -= referenced.amount
        self._disputed.discard(record.tx)
        self._charged_back.add(record.tx)
        self.locked = True
        return ApplyOutcome.applied
