"""
Route data model.

A route is an ordered list of hops, each bound to one pool.  Quoting and
route search happen upstream; the assembler receives the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple


class TokenKind(str, Enum):
    NATIVE = "native"
    ASSET = "asset"        # ledger-native fungible asset
    CONTRACT = "contract"  # token implemented by a contract

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["TokenKind"]:
        """Accepts the names pool listings use ("VOI", "ASA", "ARC200", ...)."""
        if value is None:
            return None
        lowered = str(value).strip().lower()
        aliases = {
            "native": cls.NATIVE,
            "voi": cls.NATIVE,
            "asset": cls.ASSET,
            "asa": cls.ASSET,
            "contract": cls.CONTRACT,
            "arc200": cls.CONTRACT,
        }
        return aliases.get(lowered)


@dataclass
class Hop:
    """One venue-bound leg of a swap."""
    pool_id: int
    input_token: int
    output_token: int
    amount: int
    min_output: int

    def __post_init__(self):
        if self.amount <= 0:
            raise ValueError("Hop amount must be positive")
        if self.min_output < 0:
            raise ValueError("Minimum output cannot be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Hop:
        return cls(
            pool_id=int(data["poolId"] if "poolId" in data else data["pool_id"]),
            input_token=int(data.get("inputToken", data.get("input_token"))),
            output_token=int(data.get("outputToken", data.get("output_token"))),
            amount=int(data.get("inputAmount", data.get("amount"))),
            min_output=int(data.get("minimumOutputAmount", data.get("min_output", 0))),
        )


@dataclass
class PlatformFee:
    amount: int = 0
    recipient: Optional[str] = None

    @property
    def applies(self) -> bool:
        return self.amount > 0 and bool(self.recipient)

    @classmethod
    def from_bps(cls, output_amount: int, bps: int, recipient: Optional[str]) -> "PlatformFee":
        """Fee of *bps* basis points on *output_amount*, rounded down."""
        return cls(amount=output_amount * bps // 10000, recipient=recipient or None)


@dataclass
class HopPlan:
    """Hop state: the hop plus its resolved venue and wrapping decisions."""
    index: int
    hop: Hop
    family: str
    input_kind: Optional[TokenKind]
    output_kind: Optional[TokenKind]
    input_wrapped: Optional[int]
    output_wrapped: Optional[int]
    skip_deposit: bool = False
    skip_withdraw: bool = False


@dataclass
class ValueFlows:
    """
    Value moving through the batch that is not network fee: swap principal
    paid into venues or wrapper contracts, and the platform-fee remittance.
    """
    principal: Set[Tuple[int, str]] = field(default_factory=set)
    remittance: Optional[Tuple[int, str]] = None

    def add_principal(self, amount: int, recipient: str) -> None:
        self.principal.add((amount, recipient))

    def excluded(self) -> Set[Tuple[int, str]]:
        excluded = set(self.principal)
        if self.remittance:
            excluded.add(self.remittance)
        return excluded


Route = List[Hop]
