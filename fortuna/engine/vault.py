"""
Value-transfer capability the ledger drives but does not own.

The ledger only ever tells a Vault *what* to move. A production deployment
plugs in whatever actually holds the settlement asset; ``InMemoryVault`` is
the reference implementation used by the service layer and the tests.
"""
import logging
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .errors import ledger_error

logger = logging.getLogger(__name__)

# (destination, amount)
Leg = Tuple[str, int]


@runtime_checkable
class Vault(Protocol):
    def deposit(self, source: str, pool: str, amount: int) -> None:
        """Debit ``source`` and credit ``pool``. Fails with no effect if funds are short."""
        ...

    def deposit_batch(self, source: str, legs: List[Leg]) -> None:
        """Debit ``source`` once per leg; either every leg lands or none does."""
        ...

    def withdraw(self, pool: str, destination: str, amount: int, authorization: str) -> None:
        """Move ``amount`` out of ``pool``; ``authorization`` must be the pool's authority."""
        ...


class InMemoryVault:
    """
    Balance map keyed by account identifier.

    Pools opened with ``open_pool`` only release funds to their registered
    authority; plain accounts (bettors, treasury, fee wallets) can only be
    debited through ``deposit``.
    """

    def __init__(self) -> None:
        self.balances: Dict[str, int] = {}
        self.pool_authorities: Dict[str, str] = {}
        self._balance_journal: Optional[Dict[str, Optional[int]]] = None
        self._authority_journal: Optional[Dict[str, Optional[str]]] = None

    def _touch(self, account: str) -> None:
        if self._balance_journal is not None and account not in self._balance_journal:
            self._balance_journal[account] = self.balances.get(account)

    def credit(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ledger_error('Overflow', "cannot credit a negative amount")
        self._touch(account)
        self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def open_pool(self, pool: str, authority: str) -> None:
        if self._authority_journal is not None and pool not in self._authority_journal:
            self._authority_journal[pool] = self.pool_authorities.get(pool)
        self._touch(pool)
        self.pool_authorities[pool] = authority
        self.balances.setdefault(pool, 0)

    def deposit(self, source: str, pool: str, amount: int) -> None:
        self.deposit_batch(source, [(pool, amount)])

    def deposit_batch(self, source: str, legs: List[Leg]) -> None:
        if any(amount < 0 for _, amount in legs):
            raise ledger_error('Overflow', "negative transfer amount")
        required = sum(amount for _, amount in legs)
        available = self.balance_of(source)
        if available < required:
            raise ledger_error('InsufficientFunds', f"{source} holds {available}, needs {required}")
        self._touch(source)
        self.balances[source] = available - required
        for destination, amount in legs:
            self._touch(destination)
            self.balances[destination] = self.balances.get(destination, 0) + amount

    def withdraw(self, pool: str, destination: str, amount: int, authorization: str) -> None:
        if self.pool_authorities.get(pool) != authorization:
            raise ledger_error('Unauthorized', f"{authorization} cannot release funds from {pool}")
        if amount < 0:
            raise ledger_error('Overflow', "negative transfer amount")
        available = self.balance_of(pool)
        if available < amount:
            raise ledger_error('InsufficientFunds', f"{pool} holds {available}, needs {amount}")
        self._touch(pool)
        self._touch(destination)
        self.balances[pool] = available - amount
        self.balances[destination] = self.balances.get(destination, 0) + amount

    def begin(self) -> None:
        """Start journaling the prior state of every account touched until commit or rollback."""
        self._balance_journal = {}
        self._authority_journal = {}

    def commit(self) -> None:
        self._balance_journal = None
        self._authority_journal = None

    def rollback(self) -> None:
        for account, balance in (self._balance_journal or {}).items():
            if balance is None:
                self.balances.pop(account, None)
            else:
                self.balances[account] = balance
        for pool, authority in (self._authority_journal or {}).items():
            if authority is None:
                self.pool_authorities.pop(pool, None)
            else:
                self.pool_authorities[pool] = authority
        logger.debug("Vault rolled back %d accounts", len(self._balance_journal or {}))
        self.commit()


def split_stake(source: str, vault: Vault, legs: List[Leg]) -> None:
    """
    Issue a multi-destination debit from one source as a single vault call.

    Zero-amount legs are dropped; an all-zero split is a no-op.
    """
    legs = [(destination, amount) for destination, amount in legs if amount > 0]
    if not legs:
        return
    vault.deposit_batch(source, legs)
