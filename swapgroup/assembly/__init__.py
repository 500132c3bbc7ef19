"""
swapgroup assembly

Routes, the pool registry, venue builders and the batch assembler.
"""

from .route import Hop, HopPlan, PlatformFee, Route, TokenKind, ValueFlows
from .registry import DIRECT_FAMILY, WRAPPED_FAMILY, PoolConfig, PoolRegistry
from .venues import (
    DirectVenueBuilder,
    VenueBuilder,
    VenueBuilderRegistry,
    VenueOperations,
    VenueRequest,
    WrappedVenueBuilder,
)
from .assembler import AssembledBatch, BatchAssembler

__all__ = [
    "Hop",
    "HopPlan",
    "PlatformFee",
    "Route",
    "TokenKind",
    "ValueFlows",
    "DIRECT_FAMILY",
    "WRAPPED_FAMILY",
    "PoolConfig",
    "PoolRegistry",
    "DirectVenueBuilder",
    "VenueBuilder",
    "VenueBuilderRegistry",
    "VenueOperations",
    "VenueRequest",
    "WrappedVenueBuilder",
    "AssembledBatch",
    "BatchAssembler",
]
