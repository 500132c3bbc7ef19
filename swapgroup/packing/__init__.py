"""
swapgroup packing

First-fit placement of discovered references under the per-operation
budget.
"""

from .packer import PackResult, ReferencePacker

__all__ = ["PackResult", "ReferencePacker"]
