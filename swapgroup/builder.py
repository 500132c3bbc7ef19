"""
swapgroup batch builder

End-to-end construction of a signable batch:

    parameters → assemble → (simulate → extract → resolve creators → pack)*
               → verify seal → BuiltBatch

A round that places nothing new ends discovery early.  Recoverable
failures (oversized payloads, failed simulations, failed lookups) never
abort construction; the batch is returned flagged ``degraded`` with the
errors attached.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .assembly.assembler import AssembledBatch, BatchAssembler
from .assembly.registry import PoolRegistry
from .assembly.route import Hop, PlatformFee
from .assembly.venues import VenueBuilderRegistry
from .config.loader import SwapGroupConfig
from .constants import DEFAULT_CHUNK_SIZE, DEFAULT_DISCOVERY_ROUNDS
from .discovery.chunked import ChunkedSimulator
from .discovery.executor import SpeculativeExecutor
from .discovery.extractor import DiscoveryExtractor, resolve_creators
from .discovery.report import DiscoveryReport, ExecutionError
from .exceptions import PayloadTooLarge, SimulationFailed
from .ledger.batch import Batch, FeeSchedule
from .ledger.operations import Operation
from .ledger.references import Reference
from .logger import get_logger
from .network.client import LedgerClient, LedgerParams
from .packing.packer import ReferencePacker

logger = get_logger(__name__)


@dataclass
class BuiltBatch:
    """A resource-complete, fee-annotated, unsigned batch."""
    transactions: List[str]
    network_fee: int
    group_id: bytes
    operations: List[Operation] = field(default_factory=list)
    dropped: List[Reference] = field(default_factory=list)
    errors: List[ExecutionError] = field(default_factory=list)
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactions": self.transactions,
            "networkFee": self.network_fee,
            "groupId": base64.b64encode(self.group_id).decode("ascii"),
            "degraded": self.degraded,
            "dropped": [repr(ref) for ref in self.dropped],
            "errors": [error.to_dict() for error in self.errors],
        }


class SwapBatchBuilder:

    def __init__(
        self,
        client: LedgerClient,
        assembler: BatchAssembler,
        packer: Optional[ReferencePacker] = None,
        extractor: Optional[DiscoveryExtractor] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_rounds: int = DEFAULT_DISCOVERY_ROUNDS,
        fee_recipient: Optional[str] = None,
        fee_bps: int = 0,
    ):
        self.client = client
        self.assembler = assembler
        self.packer = packer or ReferencePacker()
        self.extractor = extractor or DiscoveryExtractor()
        self.executor = SpeculativeExecutor(client)
        self.chunked = ChunkedSimulator(self.executor, chunk_size)
        self.max_rounds = max_rounds
        self.fee_recipient = fee_recipient
        self.fee_bps = fee_bps

    @classmethod
    def from_config(
        cls,
        config: SwapGroupConfig,
        client: LedgerClient,
        registry: Optional[PoolRegistry] = None,
    ) -> "SwapBatchBuilder":
        if registry is None:
            registry = PoolRegistry.from_files(config.registry.pools_path, config.registry.tokens_path)
        venues = VenueBuilderRegistry.default(config.venues.direct_factory_contract_id)
        fees = FeeSchedule(
            base_fee=config.fees.base_fee,
            box_fee=config.fees.box_fee,
            inner_transfer_surcharge=config.fees.inner_transfer_surcharge,
        )
        return cls(
            client,
            BatchAssembler(registry, venues),
            packer=ReferencePacker(fees, config.packing.max_references),
            chunk_size=config.packing.chunk_size,
            max_rounds=config.packing.max_rounds,
            fee_recipient=config.platform_fee.recipient or None,
            fee_bps=config.platform_fee.bps,
        )

    # -- Entry points -------------------------------------------------------

    async def build_swap(
        self,
        route: Sequence[Hop],
        sender: str,
        platform_fee: Optional[PlatformFee] = None,
    ) -> BuiltBatch:
        """
        Build the batch executing *route* for *sender*.

        Without an explicit *platform_fee*, the configured basis points are
        charged on the last hop's minimum output.

        Raises:
            InvalidRoute, UnsupportedFeeToken, PackingInfeasible: the batch
                cannot be constructed
            NetworkError: transaction parameters could not be fetched
        """
        if platform_fee is None and self.fee_bps and self.fee_recipient and route:
            platform_fee = PlatformFee.from_bps(route[-1].min_output, self.fee_bps, self.fee_recipient)

        params = await self.client.get_params()
        assembled = self.assembler.assemble(route, sender, params, platform_fee)
        return await self.complete(assembled, params)

    async def build_unwrap(self, sender: str, items: Iterable[Tuple[int, int]]) -> BuiltBatch:
        """Build the batch converting ``(wrapper contract, amount)`` items back to their underlying tokens."""
        params = await self.client.get_params()
        assembled = self.assembler.assemble_unwrap(sender, items, params)
        return await self.complete(assembled, params)

    # -- Pipeline -----------------------------------------------------------

    async def complete(self, assembled: AssembledBatch, params: LedgerParams) -> BuiltBatch:
        """Discover and pack references for an assembled batch."""
        result = self.packer.pack(assembled.operations, None, params)
        batch = result.batch
        dropped: List[Reference] = list(result.dropped)
        errors: List[ExecutionError] = []

        for round_number in range(1, self.max_rounds + 1):
            reports = await self.simulate(batch)
            discovery = self.extractor.extract(reports)
            await resolve_creators(discovery, self.client)
            errors = list(discovery.errors)
            if discovery.is_empty:
                logger.debug(f"Round {round_number}: nothing discovered")
                break

            result = self.packer.pack(batch.operations, discovery, params)
            for ref in result.dropped:
                if ref not in dropped:
                    dropped.append(ref)
            if not result.placed:
                logger.debug(f"Round {round_number}: nothing new to place")
                break
            batch = result.batch
            logger.info(f"Round {round_number}: placed {len(result.placed)} reference(s) "
                        f"on {len(result.modified)} operation(s)")

        group_id = batch.verify_sealed()
        network_fee = self.packer.fees.network_fee(batch.operations, assembled.flows.excluded())
        degraded = bool(errors or dropped)
        if degraded:
            logger.warning(f"Returning degraded batch: {len(errors)} error(s), {len(dropped)} dropped reference(s)")

        return BuiltBatch(
            transactions=batch.encoded(),
            network_fee=network_fee,
            group_id=group_id,
            operations=list(batch.operations),
            dropped=dropped,
            errors=errors,
            degraded=degraded,
        )

    async def simulate(self, batch: Batch) -> List[DiscoveryReport]:
        """
        Whole-batch simulation, falling back to chunks on a size rejection.
        A failed simulation still yields a report carrying its message.
        """
        try:
            return [await self.executor.simulate(batch.operations)]
        except PayloadTooLarge as e:
            logger.info(f"Batch too large to simulate whole ({e}); simulating in chunks")
            return await self.chunked.simulate(batch.operations)
        except SimulationFailed as e:
            logger.warning(f"Simulation failed: {e.message}")
            return [DiscoveryReport.failed(batch.operations, e.message)]
