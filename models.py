from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum
from typing import Dict, Iterable, List, Optional
from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    Inexact,
    InvalidOperation,
    Overflow,
    ROUND_HALF_EVEN,
    localcontext,
)


# 16 integer digits per amount, summed over every u32 tx id, stays below 40 digits.
MAX_AMOUNT_DIGITS = 20
LEDGER_PRECISION = 40

# Balance arithmetic must be exact: any rounding raises.
LEDGER_CONTEXT = Context(
    prec=LEDGER_PRECISION,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)

# Presentation rounding is allowed.
SNAPSHOT_CONTEXT = Context(
    prec=LEDGER_PRECISION,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


FUNDING_TYPES = frozenset({TransactionType.deposit, TransactionType.withdrawal})


class TransactionRecord(BaseModel):
    """A single parsed input event.

    Deposits and withdrawals carry an amount; disputes, resolves and
    chargebacks reference an earlier record of the same client by ``tx``.
    """

    model_config = ConfigDict(frozen=True)

    type: TransactionType = Field(..., description="Transaction type")
    client: int = Field(..., ge=0, le=65535, description="Client identifier (u16)")
    tx: int = Field(..., ge=0, le=4294967295, description="Transaction identifier (u32)")
    amount: Optional[Decimal] = Field(
        None,
        max_digits=MAX_AMOUNT_DIGITS,
        decimal_places=4,
        description="Amount for deposits and withdrawals, absent otherwise"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def validate_amount_input(cls, v):
        if v is None:
            return None
        if isinstance(v, float):
            raise ValueError('Amount must be given as a decimal string, not a float')
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v is not None and not v.is_finite():
            raise ValueError('Amount must be a finite number')
        if v is not None and v <= 0:
            raise ValueError('Amount must be positive')
        return v

    @model_validator(mode='after')
    def validate_amount_type_consistency(self):
        if self.type in FUNDING_TYPES and self.amount is None:
            raise ValueError(f'{self.type.value} transactions require an amount')
        if self.type not in FUNDING_TYPES and self.amount is not None:
            raise ValueError(f'{self.type.value} transactions must not carry an amount')
        return self

    @property
    def is_disputable(self) -> bool:
        return self.type in FUNDING_TYPES

    def __str__(self) -> str:
        return f"{self.type.value}(client={self.client}, tx={self.tx}, amount={self.amount})"


class ApplyOutcome(str, Enum):
    """Result of applying one record to an account."""

    applied = "applied"

    # Silent no-ops: state untouched, not an error
    duplicate_transaction = "duplicate_transaction"
    unknown_reference = "unknown_reference"
    already_disputed = "already_disputed"
    not_disputed = "not_disputed"

    # Rejections: state untouched, reported
    insufficient_funds = "insufficient_funds"
    not_disputable = "not_disputable"
    account_locked = "account_locked"

    @property
    def is_rejection(self) -> bool:
        return self in _REJECTIONS

    @property
    def is_noop(self) -> bool:
        return self in _NOOPS


_REJECTIONS = frozenset({
    ApplyOutcome.insufficient_funds,
    ApplyOutcome.not_disputable,
    ApplyOutcome.account_locked,
})

_NOOPS = frozenset({
    ApplyOutcome.duplicate_transaction,
    ApplyOutcome.unknown_reference,
    ApplyOutcome.already_disputed,
    ApplyOutcome.not_disputed,
})


class DisputeState(str, Enum):
    normal = "normal"
    disputed = "disputed"
    charged_back = "charged_back"


class AccountSnapshot(BaseModel):
    """Presentation row for one account, rounded to a fixed precision."""

    model_config = ConfigDict(frozen=True)

    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Spendable funds")
    held: Decimal = Field(..., description="Funds held by open disputes")
    total: Decimal = Field(..., description="available + held")
    locked: bool = Field(..., description="Frozen by a chargeback")

    @classmethod
    def from_account(cls, account, places: int = 4, rounding: str = ROUND_HALF_EVEN) -> "AccountSnapshot":
        with localcontext(SNAPSHOT_CONTEXT):
            quantum = Decimal(1).scaleb(-places)
            return cls(
                client=account.client_id,
                available=account.available.quantize(quantum, rounding=rounding),
                held=account.held.quantize(quantum, rounding=rounding),
                total=account.total.quantize(quantum, rounding=rounding),
                locked=account.locked,
            )

    def as_row(self) -> List[str]:
        return [
            str(self.client),
            f"{self.available:f}",
            f"{self.held:f}",
            f"{self.total:f}",
            "true" if self.locked else "false",
        ]


class RejectedRecord(BaseModel):
    record: TransactionRecord
    outcome: ApplyOutcome


class ProcessingReport(BaseModel):
    """Tally of outcomes for one processing run."""

    records_processed: int = Field(0, description="Number of records routed")
    counts: Dict[ApplyOutcome, int] = Field(default_factory=dict, description="Records per outcome")
    rejections: List[RejectedRecord] = Field(default_factory=list, description="Rejected records, in arrival order")

    def record(self, record: TransactionRecord, outcome: ApplyOutcome, keep_rejection: bool = True) -> None:
        self.records_processed += 1
        self.counts[outcome] = self.counts.get(outcome, 0) + 1
        if keep_rejection and outcome.is_rejection:
            self.rejections.append(RejectedRecord(record=record, outcome=outcome))

    @property
    def applied(self) -> int:
        return self.counts.get(ApplyOutcome.applied, 0)

    @property
    def rejected(self) -> int:
        return sum(n for outcome, n in self.counts.items() if outcome.is_rejection)

    @property
    def ignored(self) -> int:
        return sum(n for outcome, n in self.counts.items() if outcome.is_noop)

    @classmethod
    def merge(cls, reports: Iterable["ProcessingReport"]) -> "ProcessingReport":
        merged = cls()
        for report in reports:
            merged.records_processed += report.records_processed
            for outcome, n in report.counts.items():
                merged.counts[outcome] = merged.counts.get(outcome, 0) + n
            merged.rejections.extend(report.rejections)
        return merged
