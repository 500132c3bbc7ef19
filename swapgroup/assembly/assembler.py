"""
Batch assembler.

Turns a route into the ordered, unsigned operations of one atomic batch:

  1. resolve each hop's pool and venue builder
  2. plan wrapped continuity between adjacent hops of the same family
  3. build each hop and normalise the resulting operations
  4. append the platform-fee remittance, if any

Assembled operations carry no group id and may lack references; discovery
and packing complete them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import InvalidRoute, UnsupportedFeeToken
from ..ledger.abi import encode_args
from ..ledger.operations import Operation
from ..ledger.references import ReferenceSet
from ..network.client import LedgerParams
from .registry import PoolRegistry
from .route import Hop, HopPlan, PlatformFee, TokenKind, ValueFlows
from .venues import WITHDRAW, VenueBuilderRegistry, VenueRequest, transfer_operation

logger = logging.getLogger(__name__)


@dataclass
class AssembledBatch:
    operations: List[Operation] = field(default_factory=list)
    flows: ValueFlows = field(default_factory=ValueFlows)
    hops: List[HopPlan] = field(default_factory=list)


class BatchAssembler:
    """Route to unsigned operations, using the registered venue builders."""

    def __init__(self, registry: PoolRegistry, venues: Optional[VenueBuilderRegistry] = None):
        self.registry = registry
        self.venues = venues or VenueBuilderRegistry.default()

    # -- Planning -----------------------------------------------------------

    def plan(self, route: Sequence[Hop]) -> List[HopPlan]:
        """
        Resolve venues and token kinds for every hop, then mark the
        conversions adjacent hops can skip.

        Raises:
            InvalidRoute: empty route, unknown pool, pool not trading the
                hop's pair, or no builder for the pool's family
        """
        if not route:
            raise InvalidRoute("Route has no hops")

        plans = []
        for index, hop in enumerate(route):
            pool = self.registry.get_pool(hop.pool_id)
            if pool is None:
                raise InvalidRoute(f"Hop {index}: unknown pool {hop.pool_id}")
            builder = self.venues.get(pool.family)
            if builder is None:
                raise InvalidRoute(f"Hop {index}: no venue builder for family {pool.family!r}")
            if not pool.trades(hop.input_token, hop.output_token):
                raise InvalidRoute(
                    f"Hop {index}: pool {pool.pool_id} does not trade {hop.input_token} -> {hop.output_token}"
                )
            plans.append(HopPlan(
                index=index,
                hop=hop,
                family=pool.family,
                input_kind=self.registry.token_kind(hop.input_token, pool),
                output_kind=self.registry.token_kind(hop.output_token, pool),
                input_wrapped=builder.wrapped_identity(pool, hop.input_token),
                output_wrapped=builder.wrapped_identity(pool, hop.output_token),
            ))

        for prev, nxt in zip(plans, plans[1:]):
            if prev.family != nxt.family:
                continue
            if prev.output_wrapped is None or nxt.input_wrapped is None:
                continue
            if prev.output_wrapped == nxt.input_wrapped:
                prev.skip_withdraw = True
                nxt.skip_deposit = True
                logger.debug(f"Hops {prev.index}/{nxt.index}: value stays wrapped as {prev.output_wrapped}")
        return plans

    # -- Assembly -----------------------------------------------------------

    def assemble(
        self,
        route: Sequence[Hop],
        sender: str,
        params: LedgerParams,
        platform_fee: Optional[PlatformFee] = None,
    ) -> AssembledBatch:
        """
        Build the unsigned operations for *route*.

        Raises:
            InvalidRoute: see :meth:`plan`; also a builder rejecting its hop
            UnsupportedFeeToken: platform fee in a token of unknown kind
        """
        plans = self.plan(route)
        result = AssembledBatch(hops=plans)

        for plan in plans:
            pool = self.registry.get_pool(plan.hop.pool_id)
            builder = self.venues.get(plan.family)
            request = VenueRequest(
                sender=sender,
                pool=pool,
                input_token=plan.hop.input_token,
                output_token=plan.hop.output_token,
                input_kind=plan.input_kind,
                output_kind=plan.output_kind,
                amount=plan.hop.amount,
                min_output=plan.hop.min_output,
                input_wrapped=plan.input_wrapped,
                output_wrapped=plan.output_wrapped,
                skip_deposit=plan.skip_deposit,
                skip_withdraw=plan.skip_withdraw,
            )
            try:
                built = builder.build(request)
            except ValueError as e:
                raise InvalidRoute(f"Hop {plan.index}: {e}") from e

            result.operations.extend(self.normalize(built.operations, params, f"hop{plan.index}"))
            for amount, recipient in built.principal:
                result.flows.add_principal(amount, recipient)

        if platform_fee is not None and platform_fee.applies:
            last = plans[-1]
            remittance = self.remittance(sender, platform_fee, last.hop.output_token, last.output_kind)
            result.operations.extend(self.normalize([remittance], params, "fee"))
            result.flows.remittance = (platform_fee.amount, platform_fee.recipient)

        logger.info(f"Assembled {len(result.operations)} operations for {len(plans)} hop(s)")
        return result

    def assemble_unwrap(
        self,
        sender: str,
        items: Iterable[Tuple[int, int]],
        params: LedgerParams,
    ) -> AssembledBatch:
        """
        One ``withdraw`` call per ``(wrapper contract, amount)`` item,
        converting wrapped balances back to their underlying tokens.

        Raises:
            InvalidRoute: no items, an unrecognised wrapper or a
                non-positive amount
        """
        result = AssembledBatch()
        ops = []
        for wrapped_id, amount in items:
            underlying = self.registry.underlying_of(wrapped_id)
            if underlying is None:
                raise InvalidRoute(f"Wrapped token {wrapped_id} not recognized")
            if amount <= 0:
                raise InvalidRoute(f"Unwrap amount for {wrapped_id} must be positive")
            refs = ReferenceSet()
            if self.registry.token_kind(underlying) == TokenKind.ASSET:
                refs.assets.append(underlying)
            ops.append(Operation.contract_call(
                sender, wrapped_id, WITHDRAW,
                args=encode_args(("uint64",), (amount,)),
                references=refs,
                inner_transfer=True,
            ))
        if not ops:
            raise InvalidRoute("Unwrap request has no items")
        result.operations = self.normalize(ops, params, "unwrap")
        return result

    # -- Helpers ------------------------------------------------------------

    @staticmethod
    def remittance(sender: str, fee: PlatformFee, token_id: int, kind: Optional[TokenKind]) -> Operation:
        if kind is None:
            raise UnsupportedFeeToken(f"Cannot remit platform fee in token {token_id} of unknown kind")
        op = transfer_operation(sender, fee.recipient, token_id, kind, fee.amount)
        op.tag = "remit"
        return op

    @staticmethod
    def normalize(
        operations: Iterable[Union[Operation, bytes, str]],
        params: LedgerParams,
        prefix: str,
    ) -> List[Operation]:
        """
        Decode encoded operations, drop any group id, stamp validity and
        genesis, keep the requested fee as the operation's floor, raise fees to
        the network minimum and tag by position.
        """
        normalized = []
        for n, item in enumerate(operations):
            if isinstance(item, str):
                op = Operation.from_base64(item)
            elif isinstance(item, (bytes, bytearray)):
                op = Operation.decode(bytes(item))
            else:
                op = item
            op.group = None
            op.first_valid = params.first_valid
            op.last_valid = params.last_valid
            op.genesis_id = params.genesis_id
            op.genesis_hash = params.genesis_hash
            op.fee_floor = max(op.fee_floor, op.fee)
            op.fee = max(op.fee, params.min_fee)
            op.tag = f"{prefix}:{op.tag or n}"
            normalized.append(op)
        return normalized
