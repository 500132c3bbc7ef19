"""
swapgroup Operation Types

Defines the unsigned operation envelope assembled into atomic batches.

Operation Kinds:
  - PAYMENT:         native value transfer
  - ASSET_TRANSFER:  fungible asset transfer
  - CONTRACT_CALL:   contract method call

Every operation carries its own ReferenceSet.  The canonical encoding is
RLP over a fixed field order; the group field is part of the encoding, so
an operation's id changes whenever it is (re)grouped.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

import rlp

from ..constants import MIN_FEE
from .address import digest32
from .references import BoxRef, ReferenceSet

TX_DOMAIN = b"TX"


class OperationKind(str, Enum):
    """Values are part of the canonical encoding."""
    PAYMENT = "pay"
    ASSET_TRANSFER = "axfer"
    CONTRACT_CALL = "appl"


@dataclass
class Operation:
    """
    Unsigned ledger operation.

    Fields up to ``references`` are serialized; ``tag``, ``inner_transfer``
    and ``fee_floor`` are local metadata used while building the batch.
    ``fee_floor`` is the lowest fee the venue accepts for the operation.
    """
    kind: OperationKind
    sender: str
    fee: int = MIN_FEE
    first_valid: int = 0
    last_valid: int = 0
    genesis_id: str = ""
    genesis_hash: bytes = b""
    note: bytes = b""
    group: Optional[bytes] = None

    # PAYMENT / ASSET_TRANSFER
    receiver: str = ""
    amount: int = 0
    asset_id: int = 0

    # CONTRACT_CALL
    contract_id: int = 0
    method: bytes = b""
    args: List[bytes] = field(default_factory=list)

    references: ReferenceSet = field(default_factory=ReferenceSet)

    tag: str = ""
    inner_transfer: bool = False
    fee_floor: int = 0

    def __post_init__(self):
        if self.fee < 0:
            raise ValueError("Fee cannot be negative")
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if self.kind == OperationKind.CONTRACT_CALL and self.contract_id <= 0:
            raise ValueError("Contract call requires a target contract id")
        if self.kind == OperationKind.ASSET_TRANSFER and self.asset_id <= 0:
            raise ValueError("Asset transfer requires an asset id")

    # -- Convenience constructors -------------------------------------------

    @classmethod
    def payment(cls, sender: str, receiver: str, amount: int, **kwargs) -> Operation:
        return cls(OperationKind.PAYMENT, sender, receiver=receiver, amount=amount, **kwargs)

    @classmethod
    def asset_transfer(cls, sender: str, receiver: str, asset_id: int, amount: int, **kwargs) -> Operation:
        return cls(
            OperationKind.ASSET_TRANSFER, sender,
            receiver=receiver, asset_id=asset_id, amount=amount, **kwargs,
        )

    @classmethod
    def contract_call(
        cls,
        sender: str,
        contract_id: int,
        method: bytes,
        args: Optional[List[bytes]] = None,
        references: Optional[ReferenceSet] = None,
        **kwargs,
    ) -> Operation:
        return cls(
            OperationKind.CONTRACT_CALL, sender,
            contract_id=contract_id, method=method, args=list(args or []),
            references=references or ReferenceSet(), **kwargs,
        )

    # -- Properties ---------------------------------------------------------

    @property
    def is_call(self) -> bool:
        return self.kind == OperationKind.CONTRACT_CALL

    def copy(self) -> Operation:
        return replace(self, args=list(self.args), references=self.references.copy())

    # -- Encoding -----------------------------------------------------------

    def _fields(self, group: Optional[bytes]) -> list:
        refs = self.references
        return [
            self.kind.value.encode("ascii"),
            self.sender.encode("utf-8"),
            self.fee,
            self.first_valid,
            self.last_valid,
            self.genesis_id.encode("utf-8"),
            self.genesis_hash,
            self.note,
            group or b"",
            self.receiver.encode("utf-8"),
            self.amount,
            self.asset_id,
            self.contract_id,
            self.method,
            list(self.args),
            [[box.owner, box.name] for box in refs.boxes],
            list(refs.contracts),
            list(refs.assets),
            [a.encode("utf-8") for a in refs.accounts],
        ]

    def encode(self) -> bytes:
        """Canonical bytes (consensus-critical field order)."""
        return rlp.encode(self._fields(self.group))

    def encode_ungrouped(self) -> bytes:
        return rlp.encode(self._fields(None))

    def op_id(self) -> bytes:
        """Deterministic 32-byte operation id, group field included."""
        return digest32(TX_DOMAIN + self.encode())

    def to_base64(self) -> str:
        return base64.b64encode(self.encode()).decode("ascii")

    @classmethod
    def decode(cls, data: bytes) -> Operation:
        """Inverse of :meth:`encode`."""
        try:
            items = rlp.decode(data)
        except rlp.DecodingError as e:
            raise ValueError(f"Malformed operation encoding: {e}") from e
        if not isinstance(items, list) or len(items) != 19:
            raise ValueError("Malformed operation encoding: wrong field count")

        (kind, sender, fee, first_valid, last_valid, genesis_id, genesis_hash,
         note, group, receiver, amount, asset_id, contract_id, method, args,
         boxes, contracts, assets, accounts) = items

        references = ReferenceSet(
            boxes=[BoxRef(_int(owner), bytes(name)) for owner, name in boxes],
            contracts=[_int(c) for c in contracts],
            assets=[_int(a) for a in assets],
            accounts=[a.decode("utf-8") for a in accounts],
        )
        return cls(
            kind=OperationKind(kind.decode("ascii")),
            sender=sender.decode("utf-8"),
            fee=_int(fee),
            first_valid=_int(first_valid),
            last_valid=_int(last_valid),
            genesis_id=genesis_id.decode("utf-8"),
            genesis_hash=bytes(genesis_hash),
            note=bytes(note),
            group=bytes(group) or None,
            receiver=receiver.decode("utf-8"),
            amount=_int(amount),
            asset_id=_int(asset_id),
            contract_id=_int(contract_id),
            method=bytes(method),
            args=[bytes(a) for a in args],
            references=references,
        )

    @classmethod
    def from_base64(cls, data: str) -> Operation:
        return cls.decode(base64.b64decode(data))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe summary for logging and API responses."""
        result: Dict[str, Any] = {
            "type": self.kind.value,
            "sender": self.sender,
            "fee": self.fee,
            "group": base64.b64encode(self.group).decode("ascii") if self.group else None,
            "tag": self.tag,
        }
        if self.kind == OperationKind.CONTRACT_CALL:
            result["contract_id"] = self.contract_id
            result["method"] = self.method.hex()
            result["references"] = self.references.to_dict()
        else:
            result["receiver"] = self.receiver
            result["amount"] = self.amount
            if self.kind == OperationKind.ASSET_TRANSFER:
                result["asset_id"] = self.asset_id
        return result


def _int(raw: bytes) -> int:
    return int.from_bytes(raw, "big")
