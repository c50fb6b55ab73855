"""
Fungible token collaborator.

Custody moves funds only through ``TokenContract``. The interface mirrors a
standard ERC-20 ``transfer``/``transferFrom`` pair with the calling account
passed explicitly, plus ``checkpoint``/``rollback`` so a failed custody call
can undo every balance change it made.
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

from eth_utils import to_checksum_address

from ..logging import get_logger

logger = get_logger(__name__)


class TokenContract(ABC):
    """Standard transfer capability of an external fungible token."""

    def __init__(self, address: str):
        self.address = to_checksum_address(address)

    @abstractmethod
    def balance_of(self, owner: str) -> int:
        """Balance held by ``owner``."""

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int:
        """Amount ``spender`` may still pull from ``owner``."""

    @abstractmethod
    def approve(self, sender: str, spender: str, amount: int) -> bool:
        """Let ``spender`` pull up to ``amount`` from ``sender``."""

    @abstractmethod
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``to``."""

    @abstractmethod
    def transfer_from(self, sender: str, owner: str, to: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` to ``to`` using ``sender``'s allowance."""

    @abstractmethod
    def checkpoint(self) -> Any:
        """Opaque snapshot of all balances and allowances."""

    @abstractmethod
    def rollback(self, checkpoint: Any) -> None:
        """Restore a snapshot taken with ``checkpoint``."""


class ERC20Token(TokenContract):
    """In-memory ERC-20 ledger."""

    def __init__(self, address: str, symbol: str = "TOKEN"):
        super().__init__(address)
        self.symbol = symbol
        self.total_supply = 0
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._lock = threading.RLock()

    def mint(self, to: str, amount: int) -> None:
        """Create ``amount`` new tokens for ``to``."""
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        to = to_checksum_address(to)
        with self._lock:
            self._balances[to] = self._balances.get(to, 0) + amount
            self.total_supply += amount

    def balance_of(self, owner: str) -> int:
        with self._lock:
            return self._balances.get(to_checksum_address(owner), 0)

    def allowance(self, owner: str, spender: str) -> int:
        key = (to_checksum_address(owner), to_checksum_address(spender))
        with self._lock:
            return self._allowances.get(key, 0)

    def approve(self, sender: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        key = (to_checksum_address(sender), to_checksum_address(spender))
        with self._lock:
            self._allowances[key] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        with self._lock:
            return self._move(to_checksum_address(sender), to_checksum_address(to), amount)

    def transfer_from(self, sender: str, owner: str, to: str, amount: int) -> bool:
        owner = to_checksum_address(owner)
        key = (owner, to_checksum_address(sender))
        with self._lock:
            allowed = self._allowances.get(key, 0)
            if allowed < amount:
                logger.debug(
                    f"{self.symbol}: allowance {allowed} below {amount} for {key[1]}"
                )
                return False
            if not self._move(owner, to_checksum_address(to), amount):
                return False
            self._allowances[key] = allowed - amount
            return True

    def _move(self, source: str, destination: str, amount: int) -> bool:
        if amount < 0:
            return False
        balance = self._balances.get(source, 0)
        if balance < amount:
            logger.debug(f"{self.symbol}: balance {balance} below {amount} for {source}")
            return False
        self._balances[source] = balance - amount
        self._balances[destination] = self._balances.get(destination, 0) + amount
        return True

    def checkpoint(self) -> Any:
        with self._lock:
            return (
                copy.copy(self._balances),
                copy.copy(self._allowances),
                self.total_supply,
            )

    def rollback(self, checkpoint: Any) -> None:
        balances, allowances, total_supply = checkpoint
        with self._lock:
            self._balances = copy.copy(balances)
            self._allowances = copy.copy(allowances)
            self.total_supply = total_supply
