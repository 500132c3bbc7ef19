"""
Auxiliary State References

An operation must declare every piece of auxiliary on-ledger state it
touches beyond its own sender and target:

  - BoxRef:       a keyed storage slot owned by a contract
  - ContractRef:  a foreign contract
  - AssetRef:     a foreign fungible asset
  - AccountRef:   a foreign account

The ledger caps the declarations of one operation at
MAX_OPERATION_REFERENCES, counted across all four kinds.  Inside an atomic
batch every declaration is shared: an operation may access anything any
other operation of the batch declared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, List, Union

from ..constants import MAX_OPERATION_REFERENCES


class ReferenceKind(str, Enum):
    BOX = "box"
    CONTRACT = "contract"
    ASSET = "asset"
    ACCOUNT = "account"


@dataclass(frozen=True)
class BoxRef:
    """Storage slot ``name`` owned by contract ``owner``."""
    owner: int
    name: bytes

    kind = ReferenceKind.BOX

    def __repr__(self) -> str:
        return f"Box({self.owner}, {self.name.hex() or '-'})"


@dataclass(frozen=True)
class ContractRef:
    contract_id: int

    kind = ReferenceKind.CONTRACT

    def __repr__(self) -> str:
        return f"Contract({self.contract_id})"


@dataclass(frozen=True)
class AssetRef:
    asset_id: int

    kind = ReferenceKind.ASSET

    def __repr__(self) -> str:
        return f"Asset({self.asset_id})"


@dataclass(frozen=True)
class AccountRef:
    address: str

    kind = ReferenceKind.ACCOUNT

    def __repr__(self) -> str:
        return f"Account({self.address[:8]}…)" if len(self.address) > 12 else f"Account({self.address})"


Reference = Union[BoxRef, ContractRef, AssetRef, AccountRef]


@dataclass
class ReferenceSet:
    """
    Ordered, duplicate-free declarations of a single operation.

    Order is meaningful: later boxes are the lowest priority when an
    operation has to be trimmed back under budget.
    """
    boxes: List[BoxRef] = field(default_factory=list)
    contracts: List[int] = field(default_factory=list)
    assets: List[int] = field(default_factory=list)
    accounts: List[str] = field(default_factory=list)

    # -- Counting -----------------------------------------------------------

    @property
    def count(self) -> int:
        return len(self.boxes) + len(self.contracts) + len(self.assets) + len(self.accounts)

    def room(self, budget: int = MAX_OPERATION_REFERENCES) -> int:
        return budget - self.count

    def within_budget(self, budget: int = MAX_OPERATION_REFERENCES) -> bool:
        return self.count <= budget

    def cost_of(self, ref: Reference, implied_contracts: Iterable[int] = ()) -> int:
        """
        Marginal number of declarations needed to add *ref* here.

        A box whose owner is neither declared here nor in
        *implied_contracts* costs an extra slot for the owner contract.
        """
        if ref in self:
            return 0
        if isinstance(ref, BoxRef):
            if ref.owner in self.contracts or ref.owner in set(implied_contracts):
                return 1
            return 2
        return 1

    # -- Membership ---------------------------------------------------------

    def __contains__(self, ref: object) -> bool:
        if isinstance(ref, BoxRef):
            return ref in self.boxes
        if isinstance(ref, ContractRef):
            return ref.contract_id in self.contracts
        if isinstance(ref, AssetRef):
            return ref.asset_id in self.assets
        if isinstance(ref, AccountRef):
            return ref.address in self.accounts
        return False

    def __iter__(self) -> Iterator[Reference]:
        yield from self.boxes
        for contract_id in self.contracts:
            yield ContractRef(contract_id)
        for asset_id in self.assets:
            yield AssetRef(asset_id)
        for address in self.accounts:
            yield AccountRef(address)

    def __len__(self) -> int:
        return self.count

    # -- Mutation -----------------------------------------------------------

    def add(self, ref: Reference) -> bool:
        """Declare *ref*; returns False if it was already declared."""
        if ref in self:
            return False
        if isinstance(ref, BoxRef):
            self.boxes.append(ref)
        elif isinstance(ref, ContractRef):
            self.contracts.append(ref.contract_id)
        elif isinstance(ref, AssetRef):
            self.assets.append(ref.asset_id)
        elif isinstance(ref, AccountRef):
            self.accounts.append(ref.address)
        else:
            raise TypeError(f"Not a reference: {ref!r}")
        return True

    def discard(self, ref: Reference) -> bool:
        if ref not in self:
            return False
        if isinstance(ref, BoxRef):
            self.boxes.remove(ref)
        elif isinstance(ref, ContractRef):
            self.contracts.remove(ref.contract_id)
        elif isinstance(ref, AssetRef):
            self.assets.remove(ref.asset_id)
        else:
            self.accounts.remove(ref.address)
        return True

    def copy(self) -> "ReferenceSet":
        return ReferenceSet(
            boxes=list(self.boxes),
            contracts=list(self.contracts),
            assets=list(self.assets),
            accounts=list(self.accounts),
        )

    @classmethod
    def of(cls, refs: Iterable[Reference]) -> "ReferenceSet":
        result = cls()
        for ref in refs:
            result.add(ref)
        return result

    def to_dict(self) -> dict:
        return {
            "boxes": [{"app": b.owner, "name": b.name.hex()} for b in self.boxes],
            "apps": list(self.contracts),
            "assets": list(self.assets),
            "accounts": list(self.accounts),
        }
