"""Reward side effect fired when an occurrence becomes complete."""

from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple

from .account import Account
from .models import ChoreDefinition, ChoreInstance
from .money import is_creditable
from .ops import StructuredLogger


class Ledger(Protocol):
    """External ledger that receives chore rewards."""

    def credit_reward(self, kid_id: str, amount: Decimal, label: str) -> None:
        ...


class NullLedger:
    """Ledger that ignores every credit."""

    def credit_reward(self, kid_id: str, amount: Decimal, label: str) -> None:
        return None


class AccountLedger:
    """Ledger keeping an :class:`~chorematrix.account.Account` per kid in memory."""

    def __init__(self) -> None:
        self._accounts: Dict[str, Account] = {}

    def account(self, kid_id: str) -> Account:
        if kid_id not in self._accounts:
            self._accounts[kid_id] = Account(kid_id)
        return self._accounts[kid_id]

    def accounts(self) -> Tuple[Account, ...]:
        return tuple(self._accounts.values())

    def credit_reward(self, kid_id: str, amount: Decimal, label: str) -> None:
        self.account(kid_id).credit_reward(amount, label, metadata={"source": "chore"})


def reward_label(definition: ChoreDefinition, instance: ChoreInstance) -> str:
    return f"{definition.title} ({instance.instance_date.isoformat()})"


class RewardDispatcher:
    """Credit the assigned kid once per verified completion transition.

    Callers invoke :meth:`dispatch` only on a false to true change of
    ``is_complete``. Ledger failures are logged and never undo the completion.
    """

    def __init__(self, ledger: Optional[Ledger] = None, *, logger: Optional[StructuredLogger] = None) -> None:
        self._ledger: Ledger = ledger if ledger is not None else NullLedger()
        self._logger = logger or StructuredLogger()

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    def dispatch(self, instance: ChoreInstance, definition: ChoreDefinition) -> bool:
        amount = instance.effective_reward(definition)
        kid_id = definition.assigned_kid_id
        if not kid_id or not is_creditable(amount):
            return False
        label = reward_label(definition, instance)
        try:
            self._ledger.credit_reward(kid_id, amount, label)
        except Exception as exc:
            self._logger.error(
                "reward_dispatch_failed",
                instance=instance.id,
                kid=kid_id,
                amount=str(amount),
                error=repr(exc),
            )
            return False
        self._logger.log("reward_credited", instance=instance.id, kid=kid_id, amount=str(amount), label=label)
        return True


__all__ = ["AccountLedger", "Ledger", "NullLedger", "RewardDispatcher", "reward_label"]
