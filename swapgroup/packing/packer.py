"""
Reference packing.

Redistributes discovered references over the contract calls of a batch so
every call stays within the per-operation reference budget, then reprices
the calls it touched and reseals the group.

Placement is first-fit in batch order with an affinity order:

  1. box groups, by owner contract (whole group on one call if possible,
     the owner contract alongside when it is not yet available)
  2. contracts, preferring calls that target a contract which needed them
  3. assets
  4. accounts, preferring calls that declare or target the contract the
     account serves

Anything already available to the batch (declared by any operation, or
implicit as a sender, receiver, call target or transferred asset) is
skipped.  References discovered by a partial simulation are only placed,
and only checked for availability, within their index range.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..constants import MAX_OPERATION_REFERENCES
from ..discovery.extractor import DiscoverySet
from ..discovery.report import Scope
from ..exceptions import PackingInfeasible
from ..ledger.batch import Batch, FeeSchedule
from ..ledger.operations import Operation
from ..ledger.references import AccountRef, AssetRef, BoxRef, ContractRef, Reference
from ..logger import get_logger
from ..network.client import LedgerParams

logger = get_logger(__name__)


@dataclass
class PackResult:
    batch: Batch
    group_id: bytes
    dropped: List[Reference] = field(default_factory=list)
    modified: List[int] = field(default_factory=list)
    placed: List[Tuple[Reference, int]] = field(default_factory=list)


class ReferencePacker:

    def __init__(self, fees: Optional[FeeSchedule] = None, max_references: int = MAX_OPERATION_REFERENCES):
        self.fees = fees or FeeSchedule()
        self.max_references = max_references

    def pack(
        self,
        operations: Iterable[Operation],
        discovery: Optional[DiscoverySet] = None,
        params: Optional[LedgerParams] = None,
    ) -> PackResult:
        """
        Place *discovery* onto copies of *operations* and seal the result.

        Raises:
            PackingInfeasible: the budget cannot hold a contract call's
                minimum reference set, or the batch is empty or too long
        """
        ops = [op.copy() for op in operations]
        if self.max_references < 1 and any(op.is_call for op in ops):
            raise PackingInfeasible(f"Reference budget {self.max_references} is below the minimum of 1")

        state = _PackState(Batch(ops), self.max_references)

        for index, op in enumerate(ops):
            if not op.references.within_budget(self.max_references):
                state.trim(index)

        if discovery is not None and not discovery.is_empty:
            self._place_boxes(state, discovery)
            self._place_contracts(state, discovery)
            self._place_assets(state, discovery)
            self._place_accounts(state, discovery)

        for index, op in enumerate(ops):
            if not op.references.within_budget(self.max_references):
                state.trim(index)

        fees = self.fees.with_min_fee(params.min_fee) if params else self.fees
        for index in sorted(state.modified):
            op = ops[index]
            op.fee = fees.operation_fee(op)

        group_id = state.batch.seal()
        if state.dropped:
            logger.warning(f"{len(state.dropped)} reference(s) could not be placed: {state.dropped}")
        return PackResult(
            batch=state.batch,
            group_id=group_id,
            dropped=state.dropped,
            modified=sorted(state.modified),
            placed=state.placed,
        )

    # -- Placement passes ---------------------------------------------------

    def _place_boxes(self, state: "_PackState", discovery: DiscoverySet) -> None:
        groups: Dict[Tuple[int, Optional[Scope]], List[BoxRef]] = {}
        for box in discovery.boxes:
            for scope in discovery.scopes_of(box):
                groups.setdefault((box.owner, scope), []).append(box)

        for (owner, scope), boxes in groups.items():
            available = state.available(scope)
            pending = [box for box in boxes if box not in available]
            if not pending:
                continue
            owner_ref = ContractRef(owner)
            needed = len(pending) + (0 if owner_ref in available else 1)

            target = next((i for i in state.candidates(scope) if state.room(i) >= needed), None)
            if target is not None:
                if owner_ref not in available:
                    state.place(owner_ref, target)
                for box in pending:
                    state.place(box, target)
                continue

            for box in pending:
                available = state.available(scope)
                implied = [ref.contract_id for ref in available if isinstance(ref, ContractRef)]
                target = next(
                    (i for i in state.candidates(scope)
                     if state.room(i) >= state.ops[i].references.cost_of(box, implied)),
                    None,
                )
                if target is None:
                    state.drop(box)
                    continue
                if owner_ref not in available:
                    state.place(owner_ref, target)
                state.place(box, target)

    def _place_contracts(self, state: "_PackState", discovery: DiscoverySet) -> None:
        for contract_id in discovery.contracts:
            ref = ContractRef(contract_id)
            callers = discovery.contract_hints.get(contract_id, [])
            for scope in discovery.scopes_of(ref):
                if ref in state.available(scope):
                    continue
                candidates = state.candidates(scope)
                preferred = [i for i in candidates if state.ops[i].contract_id in callers]
                ordered = preferred + [i for i in candidates if i not in preferred]
                target = next((i for i in ordered if state.room(i) >= 1), None)
                if target is None:
                    state.drop(ref)
                else:
                    state.place(ref, target)

    def _place_assets(self, state: "_PackState", discovery: DiscoverySet) -> None:
        for asset_id in discovery.assets:
            ref = AssetRef(asset_id)
            for scope in discovery.scopes_of(ref):
                state.place_first_fit(ref, scope)

    def _place_accounts(self, state: "_PackState", discovery: DiscoverySet) -> None:
        for address in discovery.accounts:
            ref = AccountRef(address)
            hint = discovery.account_hints.get(address)
            for scope in discovery.scopes_of(ref):
                if ref in state.available(scope):
                    continue
                candidates = state.candidates(scope)

                if hint is not None:
                    serving = [
                        i for i in candidates
                        if state.ops[i].contract_id == hint or hint in state.ops[i].references.contracts
                    ]
                    target = next((i for i in serving if state.room(i) >= 1), None)
                    if target is not None:
                        state.place(ref, target)
                        continue

                target = next((i for i in candidates if state.room(i) >= 1), None)
                if target is None:
                    state.drop(ref)
                    continue
                state.place(ref, target)
                if hint is not None and state.room(target) >= 1:
                    contract_ref = ContractRef(hint)
                    if contract_ref not in state.available(scope):
                        state.place(contract_ref, target)


class _PackState:
    """Mutable bookkeeping for one pack() call."""

    def __init__(self, batch: Batch, budget: int):
        self.batch = batch
        self.ops: List[Operation] = batch.operations
        self.budget = budget
        self.dropped: List[Reference] = []
        self.modified: Set[int] = set()
        self.placed: List[Tuple[Reference, int]] = []

    def indices(self, scope: Optional[Scope]) -> Sequence[int]:
        if scope is None:
            return range(len(self.ops))
        start, end = scope
        return range(max(0, start), min(end, len(self.ops)))

    def available(self, scope: Optional[Scope]) -> Set[Reference]:
        return self.batch.available_references(self.indices(scope))

    def candidates(self, scope: Optional[Scope]) -> List[int]:
        return [i for i in self.indices(scope) if self.ops[i].is_call]

    def room(self, index: int) -> int:
        return self.ops[index].references.room(self.budget)

    def place(self, ref: Reference, index: int) -> None:
        if self.ops[index].references.add(ref):
            self.modified.add(index)
            self.placed.append((ref, index))
            logger.debug(f"Placed {ref!r} on operation {index} ({self.ops[index].tag})")

    def place_first_fit(self, ref: Reference, scope: Optional[Scope]) -> None:
        if ref in self.available(scope):
            return
        target = next((i for i in self.candidates(scope) if self.room(i) >= 1), None)
        if target is None:
            self.drop(ref)
        else:
            self.place(ref, target)

    def drop(self, ref: Reference) -> None:
        logger.warning(f"No operation has room for {ref!r}")
        self.dropped.append(ref)

    def box_owners(self, index: int) -> Set[int]:
        """Owners of boxes elsewhere in the batch that only operation *index* makes available."""
        others = self.batch.available_references([i for i in range(len(self.ops)) if i != index])
        return {
            box.owner
            for i, op in enumerate(self.ops) if i != index
            for box in op.references.boxes
            if ContractRef(box.owner) not in others
        }

    def trim(self, index: int) -> None:
        """
        Bring one operation back under budget: last boxes first, then
        contracts that are neither its own target nor a box owner, then
        trailing accounts, then assets, then remaining box owners.
        """
        op = self.ops[index]
        refs = op.references
        while not refs.within_budget(self.budget):
            if refs.boxes:
                removed: Reference = refs.boxes.pop()
            else:
                others = [c for c in refs.contracts if c != op.contract_id]
                owners = self.box_owners(index)
                spare = [c for c in others if c not in owners]
                if spare:
                    refs.contracts.remove(spare[-1])
                    removed = ContractRef(spare[-1])
                elif refs.accounts:
                    removed = AccountRef(refs.accounts.pop())
                elif refs.assets:
                    removed = AssetRef(refs.assets.pop())
                elif others:
                    refs.contracts.remove(others[-1])
                    removed = ContractRef(others[-1])
                else:
                    raise PackingInfeasible(
                        f"Operation {index} ({op.tag}) cannot fit its references in {self.budget}"
                    )
            logger.warning(f"Trimmed {removed!r} from operation {index} ({op.tag})")
            self.dropped.append(removed)
            self.modified.add(index)
