"""In-process reward ledger accounts, one per kid."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from .models import utcnow
from .money import AmountLike, ZERO, require_positive, to_decimal


class TransactionType(str, Enum):
    """Enumerates the supported types of ledger entries."""

    REWARD = "reward"


class EventCategory(str, Enum):
    """High level categories used for reporting and filtering entries."""

    CHORE = "chore"


@dataclass(slots=True)
class Transaction:
    """Represents a single ledger entry for an :class:`Account`."""

    amount: Decimal
    type: TransactionType
    description: str
    balance_after: Decimal
    category: EventCategory | None = None
    metadata: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.amount = to_decimal(self.amount)
        self.balance_after = to_decimal(self.balance_after)


class Account:
    """Running balance of rewards credited to one kid."""

    __slots__ = ("kid_id", "_balance", "_transactions")

    def __init__(self, kid_id: str, *, starting_balance: AmountLike = 0) -> None:
        self.kid_id = kid_id
        starting_value = to_decimal(starting_balance)
        require_positive(starting_value, allow_zero=True)
        self._balance: Decimal = starting_value
        self._transactions: list[Transaction] = []

    @property
    def balance(self) -> Decimal:
        return self._balance

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        """Return an immutable view of the transaction history."""

        return tuple(self._transactions)

    def credit_reward(
        self,
        amount: AmountLike,
        description: str,
        *,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> Transaction:
        """Add a chore reward to the balance."""

        value = to_decimal(amount)
        require_positive(value)
        self._balance += value
        transaction = Transaction(
            amount=value,
            type=TransactionType.REWARD,
            description=description,
            balance_after=self._balance,
            category=EventCategory.CHORE,
            metadata=dict(metadata or {}),
        )
        self._transactions.append(transaction)
        return transaction

    def total_rewards(self) -> Decimal:
        return sum(
            (tx.amount for tx in self._transactions if tx.type is TransactionType.REWARD),
            ZERO,
        )


__all__ = ["Account", "EventCategory", "Transaction", "TransactionType"]
