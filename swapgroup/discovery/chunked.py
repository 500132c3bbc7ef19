"""
Chunked simulation fallback.

Used when a whole batch is too large to simulate in one request.  The batch
is simulated in consecutive slices; a slice rejected on size is retried at
half the size until it fits or cannot shrink further:

    TRYING ──size rejection──> SHRINKING ──(size 1 rejected)──> EXHAUSTED
      ^                            │                                │
      └──────── slice done ────────┴──────── advance ───────────────┘

Each slice is simulated on copies regrouped under a slice-local group id,
so the batch's own operations are never touched.  Results come back with
batch-global indices and the slice range as their scope: references shared
inside one slice are not assumed reachable from another.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Sequence, Tuple

from ..constants import DEFAULT_CHUNK_SIZE
from ..exceptions import PayloadTooLarge, SimulationFailed
from ..ledger.batch import Batch
from ..ledger.operations import Operation
from ..logger import get_logger
from .executor import SpeculativeExecutor
from .report import DiscoveryReport

logger = get_logger(__name__)


class ChunkState(str, Enum):
    TRYING = "trying"
    SHRINKING = "shrinking"
    EXHAUSTED = "exhausted"


class ChunkedSimulator:

    def __init__(self, executor: SpeculativeExecutor, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("Chunk size must be at least 1")
        self.executor = executor
        self.chunk_size = chunk_size
        self.state = ChunkState.TRYING
        self.transitions: List[ChunkState] = []
        self.exhausted: List[Tuple[int, int]] = []

    async def simulate(self, operations: Sequence[Operation]) -> List[DiscoveryReport]:
        """
        Simulate *operations* slice by slice.

        Returns one report per slice, in order; together they cover every
        index of the batch exactly once.  Failed slices are reported with
        their error instead of raising.
        """
        reports: List[DiscoveryReport] = []
        total = len(operations)
        start = 0
        size = self.chunk_size
        rejection = ""
        self.state = ChunkState.TRYING
        self.transitions = [ChunkState.TRYING]
        self.exhausted = []

        while start < total:
            end = min(start + size, total)
            chunk = [op.copy() for op in operations[start:end]]

            if self.state is ChunkState.SHRINKING:
                size = max(1, size // 2)
                logger.info(f"Slice [{start}, {end}) too large, retrying with {size} operations")
                self._enter(ChunkState.TRYING)
                continue

            if self.state is ChunkState.EXHAUSTED:
                self.exhausted.append((start, end))
                logger.warning(f"Operation {start} is too large to simulate alone: {rejection}")
                reports.append(DiscoveryReport.failed(chunk, rejection, start, (start, end)))
                start = end
                self._enter(ChunkState.TRYING)
                continue

            Batch(chunk).seal()
            try:
                report = await self.executor.simulate(chunk, offset=start, scope=(start, end))
            except PayloadTooLarge as e:
                rejection = str(e)
                self._enter(ChunkState.SHRINKING if size > 1 else ChunkState.EXHAUSTED)
                continue
            except SimulationFailed as e:
                logger.warning(f"Slice [{start}, {end}) failed: {e.message}")
                report = DiscoveryReport.failed(chunk, e.message, start, (start, end))
            reports.append(report)
            start = end

        logger.info(f"Simulated {total} operations in {len(reports)} slice(s)")
        return reports

    def _enter(self, state: ChunkState) -> None:
        logger.debug(f"Chunked simulation: {self.state.value} -> {state.value}")
        self.state = state
        self.transitions.append(state)
