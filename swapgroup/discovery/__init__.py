"""
swapgroup discovery

Speculative execution of a batch and extraction of the auxiliary state
references it touched without declaring them.
"""

from .report import AccessedResources, DiscoveryReport, ExecutionError, OperationReport
from .executor import SpeculativeExecutor
from .chunked import ChunkedSimulator, ChunkState
from .extractor import DiscoveryExtractor, DiscoverySet, extract_text, resolve_creators

__all__ = [
    "AccessedResources",
    "DiscoveryReport",
    "ExecutionError",
    "OperationReport",
    "SpeculativeExecutor",
    "ChunkedSimulator",
    "ChunkState",
    "DiscoveryExtractor",
    "DiscoverySet",
    "extract_text",
    "resolve_creators",
]
