"""
Atomic batches.

A batch is an ordered list of operations that execute together or not at
all.  Its group identifier is a digest over the ids of its operations with
their group fields cleared, so it must be recomputed after any operation
is replaced or has its references changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Set, Tuple

import rlp

from ..constants import (
    BASE_FEE,
    BOX_REFERENCE_FEE,
    INNER_TRANSFER_SURCHARGE,
    MAX_BATCH_SIZE,
    MIN_FEE,
)
from ..exceptions import PackingInfeasible, StaleGroupError
from .address import digest32
from .operations import Operation, OperationKind, TX_DOMAIN
from .references import AccountRef, AssetRef, ContractRef, Reference


GROUP_DOMAIN = b"TG"


def compute_group_id(operations: Iterable[Operation]) -> bytes:
    """Group id over the ungrouped ids of *operations*, in order."""
    ids = [digest32(TX_DOMAIN + op.encode_ungrouped()) for op in operations]
    return digest32(GROUP_DOMAIN + rlp.encode(ids))


class Batch:
    """
    Ordered operations sharing one group identifier.

    The batch owns its operations until they are handed out for signing.
    """

    def __init__(self, operations: Optional[Iterable[Operation]] = None):
        self.operations: List[Operation] = list(operations or [])

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __getitem__(self, index: int) -> Operation:
        return self.operations[index]

    # -- Grouping -----------------------------------------------------------

    def clear_group(self) -> None:
        for op in self.operations:
            op.group = None

    def seal(self) -> bytes:
        """Clear every group field, then assign one fresh group id."""
        if not self.operations:
            raise PackingInfeasible("Cannot seal an empty batch")
        if len(self.operations) > MAX_BATCH_SIZE:
            raise PackingInfeasible(
                f"Batch has {len(self.operations)} operations; the ledger allows {MAX_BATCH_SIZE}"
            )
        self.clear_group()
        group_id = compute_group_id(self.operations)
        for op in self.operations:
            op.group = group_id
        return group_id

    @property
    def group_id(self) -> Optional[bytes]:
        return self.operations[0].group if self.operations else None

    def verify_sealed(self) -> bytes:
        """
        Confirm every operation carries the group id of the current list.

        Raises:
            StaleGroupError: on any missing or stale group id
        """
        expected = compute_group_id(self.operations)
        for index, op in enumerate(self.operations):
            if op.group != expected:
                raise StaleGroupError(f"Operation {index} ({op.tag or op.kind.value}) has a stale group id")
        return expected

    # -- Shared references --------------------------------------------------

    def available_references(self, indices: Optional[Iterable[int]] = None) -> Set[Reference]:
        """
        Everything the operations at *indices* make available to each other:
        declared references plus senders, receivers, call targets and
        transferred assets.
        """
        ops = self.operations if indices is None else [self.operations[i] for i in indices]
        available: Set[Reference] = set()
        for op in ops:
            available.update(op.references)
            available.add(AccountRef(op.sender))
            if op.receiver:
                available.add(AccountRef(op.receiver))
            if op.kind == OperationKind.CONTRACT_CALL:
                available.add(ContractRef(op.contract_id))
            elif op.kind == OperationKind.ASSET_TRANSFER:
                available.add(AssetRef(op.asset_id))
        return available

    # -- Output -------------------------------------------------------------

    def encoded(self) -> List[str]:
        return [op.to_base64() for op in self.operations]

    def total_fees(self) -> int:
        return sum(op.fee for op in self.operations)


@dataclass
class FeeSchedule:
    """
    Per-operation fee rule applied to operations whose references changed:

        fee = base_fee + boxes * box_fee (+ inner_transfer_surcharge)

    floored at the network minimum.
    """
    base_fee: int = BASE_FEE
    box_fee: int = BOX_REFERENCE_FEE
    inner_transfer_surcharge: int = INNER_TRANSFER_SURCHARGE
    min_fee: int = MIN_FEE

    def operation_fee(self, op: Operation) -> int:
        fee = self.base_fee + len(op.references.boxes) * self.box_fee
        if op.inner_transfer:
            fee += self.inner_transfer_surcharge
        return max(fee, self.min_fee, op.fee_floor)

    def with_min_fee(self, min_fee: int) -> "FeeSchedule":
        return FeeSchedule(
            base_fee=self.base_fee,
            box_fee=self.box_fee,
            inner_transfer_surcharge=self.inner_transfer_surcharge,
            min_fee=max(self.min_fee, min_fee),
        )

    def network_fee(self, operations: Iterable[Operation], excluded: Set[Tuple[int, str]]) -> int:
        """
        Total cost to the sender beyond the swap itself: every operation
        fee, plus payments that are not swap principal or fee remittance
        (balance box deposits and similar).
        """
        total = 0
        for op in operations:
            total += op.fee
            if op.kind == OperationKind.PAYMENT and op.amount and (op.amount, op.receiver) not in excluded:
                total += op.amount
        return total
