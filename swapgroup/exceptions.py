"""
swapgroup Exceptions

Custom exception classes for batch construction.

Fatal errors (propagate to the caller):
    InvalidRoute, UnsupportedFeeToken, PackingInfeasible, NetworkError

Recoverable errors (absorbed at the component that detects them):
    PayloadTooLarge, SimulationFailed, LookupFailed
"""


class SwapGroupException(Exception):
    """Base exception for swapgroup."""
    pass


class InvalidRoute(SwapGroupException):
    """A hop's venue could not be resolved or the route is empty."""
    pass


class UnsupportedFeeToken(SwapGroupException):
    """The output token kind cannot be mapped to a transfer operation."""
    pass


class PackingInfeasible(SwapGroupException):
    """An operation's minimum required reference set exceeds the budget."""
    pass


class PayloadTooLarge(SwapGroupException):
    """The transport rejected a simulation request purely on size."""
    pass


class SimulationFailed(SwapGroupException):
    """
    Simulation failed for a non-size reason.

    The raw transport or ledger message is kept on ``message`` so the
    discovery extractor can still mine it for resource hints.
    """

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class LookupFailed(SwapGroupException):
    """Contract or asset lookup failed."""
    pass


class NetworkError(SwapGroupException):
    """Network communication error."""
    pass


class StaleGroupError(SwapGroupException):
    """An operation carries a group identifier that does not match its batch."""
    pass


class ConfigurationError(SwapGroupException):
    """Configuration error."""
    pass
