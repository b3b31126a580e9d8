"""
Position registry: which account owns each custodied position.

Two views are kept in lockstep:
- position_id -> owner
- owner -> list of position ids (bounded by ``max_positions``; order is irrelevant)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from autocompound.core.errors import CapacityExceeded, PositionAlreadyRegistered, RegistryDesync, UnknownPosition
from autocompound.core.params import MAX_POSITIONS_PER_ACCOUNT
from autocompound.state.ledger import Account


PositionId = int

RegistrySnapshot = Tuple[Dict[PositionId, Account], Dict[Account, List[PositionId]]]


@dataclass
class PositionRegistry:
    """
    Mutable registry of custodied positions.

    This is intentionally similar in spirit to `BalanceLedger`: a small, explicit
    state table with snapshot/restore for all-or-nothing callers.
    """

    max_positions: int = MAX_POSITIONS_PER_ACCOUNT
    _owners: Dict[PositionId, Account] = field(default_factory=dict)
    _positions: Dict[Account, List[PositionId]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.max_positions, int) or isinstance(self.max_positions, bool):
            raise TypeError("max_positions must be an int")
        if self.max_positions <= 0:
            raise ValueError(f"max_positions must be positive: {self.max_positions}")

    def owner_of(self, position_id: PositionId) -> Optional[Account]:
        return self._owners.get(position_id)

    def require_owner(self, position_id: PositionId) -> Account:
        owner = self._owners.get(position_id)
        if owner is None:
            raise UnknownPosition(position_id)
        return owner

    def positions_of(self, owner: Account) -> Tuple[PositionId, ...]:
        return tuple(self._positions.get(owner, ()))

    def register(self, position_id: PositionId, owner: Account) -> None:
        """Append ``position_id`` to ``owner``'s list."""
        if position_id in self._owners:
            raise PositionAlreadyRegistered(position_id)
        ids = self._positions.get(owner, [])
        if len(ids) >= self.max_positions:
            raise CapacityExceeded(owner, self.max_positions)
        self._positions[owner] = ids + [position_id]
        self._owners[position_id] = owner

    def deregister(self, owner: Account, position_id: PositionId) -> None:
        """Swap-remove ``position_id`` from ``owner``'s list and clear its owner record.

        Raises:
            RegistryDesync: if the two views disagree; this is an engine bug.
        """
        ids = self._positions.get(owner, [])
        index = -1
        for i, pid in enumerate(ids):
            if pid == position_id:
                index = i
                break
        if index < 0:
            raise RegistryDesync(f"position {position_id} not in position list of {owner}")
        if self._owners.get(position_id) != owner:
            raise RegistryDesync(
                f"position {position_id} listed under {owner} but recorded for {self._owners.get(position_id)}"
            )

        last = len(ids) - 1
        ids = list(ids)
        if index != last:
            ids[index] = ids[last]
        ids.pop()
        if ids:
            self._positions[owner] = ids
        else:
            self._positions.pop(owner, None)
        del self._owners[position_id]

    def check_consistency(self) -> List[str]:
        """Return the names of violated registry invariants (empty when consistent)."""
        violations: List[str] = []
        listed: Dict[PositionId, Account] = {}
        for owner, ids in self._positions.items():
            if len(ids) > self.max_positions:
                violations.append(f"capacity_exceeded:{owner}")
            if len(set(ids)) != len(ids):
                violations.append(f"duplicate_listing:{owner}")
            for pid in ids:
                if pid in listed and listed[pid] != owner:
                    violations.append(f"listed_twice:{pid}")
                listed[pid] = owner
        for pid, owner in self._owners.items():
            if listed.get(pid) != owner:
                violations.append(f"unlisted_owner_record:{pid}")
        for pid in listed:
            if pid not in self._owners:
                violations.append(f"listed_without_owner:{pid}")
        return violations

    def snapshot(self) -> RegistrySnapshot:
        return dict(self._owners), {owner: list(ids) for owner, ids in self._positions.items()}

    def restore(self, snapshot: RegistrySnapshot) -> None:
        owners, positions = snapshot
        self._owners = dict(owners)
        self._positions = {owner: list(ids) for owner, ids in positions.items()}

    def __len__(self) -> int:
        return len(self._owners)
