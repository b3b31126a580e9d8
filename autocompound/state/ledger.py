"""
Per-account token balances owed by the engine.

Implements BalanceLedger[Account, Token] -> Amount
"""

from __future__ import annotations

from typing import Callable, Dict, Tuple

from autocompound.core.errors import InsufficientBalance
from autocompound.core.fixed_point import checked_add, checked_sub


# Type aliases
Account = str
Token = str
Amount = int  # Non-negative integer bounded by uint256

Payout = Callable[[Token, Account, Amount], None]


class BalanceLedger:
    """
    Balance ledger mapping (account, token) -> amount.

    Entries hold leftovers and bonus credits that were never redeposited into a
    position. Balances only change through ``credit`` and ``debit``; neither
    can make a balance negative or push it past uint256.

    Note: zero balances are removed so the table stays sparse. Callers that
    need a stable order should sort keys explicitly.
    """

    def __init__(self) -> None:
        self._balances: Dict[Tuple[Account, Token], Amount] = {}

    def balance(self, account: Account, token: Token) -> Amount:
        """Balance of (account, token). Returns 0 if not found."""
        return self._balances.get((account, token), 0)

    def _store(self, account: Account, token: Token, amount: Amount) -> None:
        if amount == 0:
            self._balances.pop((account, token), None)
        else:
            self._balances[(account, token)] = amount

    def credit(self, account: Account, token: Token, amount: Amount) -> None:
        """
        Add ``amount`` to a balance.

        Raises:
            ArithmeticOverflow: if the new balance would exceed uint256
            ArithmeticUnderflow: if ``amount`` is negative
        """
        self._store(account, token, checked_add(self.balance(account, token), amount))

    def debit(self, account: Account, token: Token, amount: Amount) -> None:
        """
        Remove ``amount`` from a balance.

        Raises:
            InsufficientBalance: if ``amount`` exceeds the balance
        """
        current = self.balance(account, token)
        if amount > current:
            raise InsufficientBalance(account, token, current, amount)
        self._store(account, token, checked_sub(current, amount))

    def sweep_both(
        self,
        account: Account,
        token_a: Token,
        token_b: Token,
        recipient: Account,
        pay: Payout,
    ) -> Tuple[Amount, Amount]:
        """
        Debit the full balance of two tokens and hand each to ``pay``.

        A token with a zero balance is skipped. Returns the swept amounts.
        """
        swept = []
        for token in (token_a, token_b):
            amount = self.balance(account, token)
            if amount > 0:
                self.debit(account, token, amount)
                pay(token, recipient, amount)
            swept.append(amount)
        return swept[0], swept[1]

    def balances_of(self, account: Account) -> Dict[Token, Amount]:
        return {token: amount for (acct, token), amount in self._balances.items() if acct == account}

    def get_all_balances(self) -> Dict[Tuple[Account, Token], Amount]:
        return dict(self._balances)

    def total_of(self, token: Token) -> Amount:
        return sum(amount for (_acct, t), amount in self._balances.items() if t == token)

    def verify_non_negative(self) -> bool:
        return all(amount >= 0 for amount in self._balances.values())

    def snapshot(self) -> Dict[Tuple[Account, Token], Amount]:
        return dict(self._balances)

    def restore(self, snapshot: Dict[Tuple[Account, Token], Amount]) -> None:
        self._balances = dict(snapshot)

    def __repr__(self) -> str:
        return f"BalanceLedger({len(self._balances)} entries)"
