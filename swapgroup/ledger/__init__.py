"""
swapgroup ledger model

Operations, their auxiliary state references, and atomic batches.
"""

from .references import (
    AccountRef,
    AssetRef,
    BoxRef,
    ContractRef,
    Reference,
    ReferenceKind,
    ReferenceSet,
)
from .operations import Operation, OperationKind
from .batch import Batch, FeeSchedule, compute_group_id
from .address import contract_address, decode_address, encode_address, is_valid_address

__all__ = [
    "AccountRef",
    "AssetRef",
    "BoxRef",
    "ContractRef",
    "Reference",
    "ReferenceKind",
    "ReferenceSet",
    "Operation",
    "OperationKind",
    "Batch",
    "FeeSchedule",
    "compute_group_id",
    "contract_address",
    "decode_address",
    "encode_address",
    "is_valid_address",
]
