"""
Speculative executor.

Submits a batch for simulation exactly as it stands (group ids are never
re-derived here) and parses the outcome into a DiscoveryReport.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..ledger.operations import Operation
from ..logger import get_logger
from ..network.client import LedgerClient
from .report import DiscoveryReport, Scope

logger = get_logger(__name__)


class SpeculativeExecutor:

    def __init__(self, client: LedgerClient):
        self.client = client

    async def simulate(
        self,
        operations: Sequence[Operation],
        offset: int = 0,
        scope: Optional[Scope] = None,
    ) -> DiscoveryReport:
        """
        Simulate *operations* as one group.

        Args:
            operations: encoded as-is, existing group ids preserved
            offset: batch position of the first operation
            scope: index range the results apply to, for partial batches

        Raises:
            PayloadTooLarge: the request was rejected on size alone
            SimulationFailed: any other failure, with the raw message
        """
        encoded = [op.to_base64() for op in operations]
        response = await self.client.simulate(encoded)
        report = DiscoveryReport.from_response(response, operations, offset, scope)
        if report.failure_message:
            logger.info(f"Simulation of {len(operations)} operations failed at "
                        f"{report.failed_at}: {report.failure_message}")
        return report
