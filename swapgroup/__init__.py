"""
swapgroup - atomic swap batch construction

Core imports are lazily loaded so that importing a submodule does not pull
in the network stack.  For direct module access, import from submodules:

    from swapgroup.builder import SwapBatchBuilder
    from swapgroup.ledger import Operation, ReferenceSet
    from swapgroup.packing import ReferencePacker
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading."""
    if name == 'SwapBatchBuilder':
        from .builder import SwapBatchBuilder
        return SwapBatchBuilder
    elif name == 'BuiltBatch':
        from .builder import BuiltBatch
        return BuiltBatch
    elif name == 'LedgerClient':
        from .network import LedgerClient
        return LedgerClient
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'swapgroup' has no attribute {name!r}")


__all__ = ['SwapBatchBuilder', 'BuiltBatch', 'LedgerClient', 'load_config']
