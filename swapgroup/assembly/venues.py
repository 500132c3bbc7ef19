"""
Venue builders.

A venue builder turns one hop into the unsigned operations that execute it
on one venue family.  Builders only know their own venue; cross-hop
continuity is decided by the assembler and passed in through the
``skip_deposit`` / ``skip_withdraw`` flags.

Two families ship with the package:

  - WrappedVenueBuilder: pools trade wrapper-contract tokens.  Native value
    and ledger assets are deposited into their wrapper first and withdrawn
    after the swap.
  - DirectVenueBuilder:  pools trade the underlying tokens.  Input is sent
    straight to the pool address before the swap call.

Builders may leave references undeclared; discovery fills them in.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from ..constants import BALANCE_BOX_COST, DIRECT_FACTORY_CONTRACT_ID, SWAP_CALL_FEE
from ..exceptions import InvalidRoute
from ..ledger.abi import encode_args, method_selector
from ..ledger.address import contract_address
from ..ledger.operations import Operation
from ..ledger.references import ReferenceSet
from .registry import DIRECT_FAMILY, WRAPPED_FAMILY, PoolConfig
from .route import TokenKind

logger = logging.getLogger(__name__)


DEPOSIT = method_selector("deposit(uint64)uint256")
WITHDRAW = method_selector("withdraw(uint64)uint256")
APPROVE = method_selector("arc200_approve(address,uint256)bool")
TRANSFER = method_selector("arc200_transfer(address,uint256)bool")
SWAP_A_FOR_B = method_selector("Trader_swapAForB(byte,uint256,uint256)(uint256,uint256)")
SWAP_B_FOR_A = method_selector("Trader_swapBForA(byte,uint256,uint256)(uint256,uint256)")
DIRECT_SWAP = method_selector("swap")


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass
class VenueRequest:
    """Everything a builder needs for one hop."""
    sender: str
    pool: PoolConfig
    input_token: int
    output_token: int
    input_kind: Optional[TokenKind]
    output_kind: Optional[TokenKind]
    amount: int
    min_output: int
    input_wrapped: Optional[int] = None
    output_wrapped: Optional[int] = None
    skip_deposit: bool = False
    skip_withdraw: bool = False


@dataclass
class VenueOperations:
    """
    Builder output: operations (or their canonical encodings) in execution
    order, plus the ``(amount, recipient)`` pairs that are swap principal.
    """
    operations: List[Union[Operation, bytes]] = field(default_factory=list)
    principal: List[Tuple[int, str]] = field(default_factory=list)


def transfer_operation(
    sender: str,
    receiver: str,
    token_id: int,
    kind: Optional[TokenKind],
    amount: int,
) -> Operation:
    """
    The operation moving *amount* of *token_id* from *sender* to *receiver*.

    Raises:
        ValueError: if the token kind is unknown
    """
    if kind == TokenKind.NATIVE:
        return Operation.payment(sender, receiver, amount)
    if kind == TokenKind.ASSET:
        return Operation.asset_transfer(sender, receiver, token_id, amount)
    if kind == TokenKind.CONTRACT:
        return Operation.contract_call(
            sender, token_id, TRANSFER,
            args=encode_args(("address", "uint256"), (receiver, amount)),
            references=ReferenceSet(accounts=[receiver]),
        )
    raise ValueError(f"No transfer operation for token {token_id} of kind {kind}")


# ---------------------------------------------------------------------------
# Builder interface
# ---------------------------------------------------------------------------

class VenueBuilder(ABC):
    """Abstract interface for one venue family."""

    @property
    @abstractmethod
    def family(self) -> str:
        """Venue family this builder serves."""
        ...

    def wrapped_identity(self, pool: PoolConfig, token_id: int) -> Optional[int]:
        """
        Venue-native identity of *token_id* in *pool*; None if the family
        has no wrapped representation.
        """
        return None

    @abstractmethod
    def build(self, request: VenueRequest) -> VenueOperations:
        """
        Build the operations executing one hop.

        Args:
            request: hop parameters and continuity flags

        Returns:
            VenueOperations in execution order
        """
        ...


class WrappedVenueBuilder(VenueBuilder):
    """Pools over wrapper-contract tokens (deposit, approve, swap, withdraw)."""

    @property
    def family(self) -> str:
        return WRAPPED_FAMILY

    def wrapped_identity(self, pool: PoolConfig, token_id: int) -> Optional[int]:
        return pool.wrapped_id(token_id)

    def build(self, request: VenueRequest) -> VenueOperations:
        pool = request.pool
        sender = request.sender
        in_wrapper = request.input_wrapped
        out_wrapper = request.output_wrapped
        if in_wrapper is None or out_wrapper is None:
            raise InvalidRoute(f"Pool {pool.pool_id} has no wrapper for tokens "
                               f"{request.input_token}/{request.output_token}")

        result = VenueOperations()
        ops = result.operations
        pool_address = contract_address(pool.pool_id)

        # Deposit into the input wrapper
        needs_deposit = in_wrapper != request.input_token and request.input_kind != TokenKind.CONTRACT
        if needs_deposit and not request.skip_deposit:
            wrapper_address = contract_address(in_wrapper)
            transfer = transfer_operation(
                sender, wrapper_address, request.input_token, request.input_kind, request.amount,
            )
            transfer.tag = "deposit-transfer"
            ops.append(transfer)
            result.principal.append((request.amount, wrapper_address))

            deposit_refs = ReferenceSet()
            if request.input_kind == TokenKind.ASSET:
                deposit_refs.assets.append(request.input_token)
            ops.append(Operation.contract_call(
                sender, in_wrapper, DEPOSIT,
                args=encode_args(("uint64",), (request.amount,)),
                references=deposit_refs,
                tag="deposit",
            ))

        # Approve the pool to pull the input; the wrapper wants its
        # balance-box deposit paid alongside
        ops.append(Operation.payment(
            sender, contract_address(in_wrapper), BALANCE_BOX_COST, tag="balance-box",
        ))
        ops.append(Operation.contract_call(
            sender, in_wrapper, APPROVE,
            args=encode_args(("address", "uint256"), (pool_address, request.amount)),
            tag="approve",
        ))

        a_to_b = in_wrapper == pool.token_a
        ops.append(Operation.contract_call(
            sender, pool.pool_id, SWAP_A_FOR_B if a_to_b else SWAP_B_FOR_A,
            args=encode_args(("byte", "uint256", "uint256"), (0, request.amount, request.min_output)),
            references=ReferenceSet(contracts=[pool.token_a, pool.token_b]),
            fee=SWAP_CALL_FEE,
            tag="swap",
            inner_transfer=True,
        ))

        # Withdraw from the output wrapper
        has_underlying = out_wrapper != request.output_token and request.output_kind != TokenKind.CONTRACT
        if has_underlying and not request.skip_withdraw:
            withdraw_refs = ReferenceSet()
            if request.output_kind == TokenKind.ASSET:
                withdraw_refs.assets.append(request.output_token)
            ops.append(Operation.contract_call(
                sender, out_wrapper, WITHDRAW,
                args=encode_args(("uint64",), (request.min_output,)),
                references=withdraw_refs,
                tag="withdraw",
                inner_transfer=True,
            ))

        logger.debug(f"Pool {pool.pool_id}: {len(ops)} operations ({'A->B' if a_to_b else 'B->A'})")
        return result


class DirectVenueBuilder(VenueBuilder):
    """Pools over underlying tokens (transfer to pool, swap)."""

    def __init__(self, factory_contract_id: int = DIRECT_FACTORY_CONTRACT_ID):
        self.factory_contract_id = factory_contract_id

    @property
    def family(self) -> str:
        return DIRECT_FAMILY

    def build(self, request: VenueRequest) -> VenueOperations:
        pool = request.pool
        pool_address = contract_address(pool.pool_id)
        result = VenueOperations()

        try:
            transfer = transfer_operation(
                request.sender, pool_address, request.input_token, request.input_kind, request.amount,
            )
        except ValueError as e:
            raise InvalidRoute(f"Pool {pool.pool_id}: {e}") from e
        transfer.tag = "transfer"
        result.operations.append(transfer)
        result.principal.append((request.amount, pool_address))

        refs = ReferenceSet(contracts=[self.factory_contract_id])
        for token_id, kind in ((request.input_token, request.input_kind),
                               (request.output_token, request.output_kind)):
            if kind == TokenKind.ASSET and token_id not in refs.assets:
                refs.assets.append(token_id)
            elif kind == TokenKind.CONTRACT and token_id not in refs.contracts:
                refs.contracts.append(token_id)

        direction = 1 if pool.is_a_to_b(request.input_token) else 0
        result.operations.append(Operation.contract_call(
            request.sender, pool.pool_id, DIRECT_SWAP,
            args=encode_args(("uint64", "uint64", "uint64"), (request.amount, request.min_output, direction)),
            references=refs,
            tag="swap",
            inner_transfer=True,
        ))
        return result


class VenueBuilderRegistry:
    """Builders keyed by venue family."""

    def __init__(self, builders: Optional[List[VenueBuilder]] = None):
        self._builders: Dict[str, VenueBuilder] = {}
        for builder in builders or []:
            self.register(builder)

    @classmethod
    def default(cls, factory_contract_id: int = DIRECT_FACTORY_CONTRACT_ID) -> "VenueBuilderRegistry":
        return cls([WrappedVenueBuilder(), DirectVenueBuilder(factory_contract_id)])

    def register(self, builder: VenueBuilder) -> None:
        self._builders[builder.family] = builder

    def get(self, family: str) -> Optional[VenueBuilder]:
        return self._builders.get(family)

    def __contains__(self, family: str) -> bool:
        return family in self._builders
