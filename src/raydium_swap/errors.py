"""
Exception hierarchy for discovery, state reads, quoting, assembly and submission.

Every failure the library raises derives from RaydiumSwapError so callers can
catch broadly, while the subclasses separate bad input, stale or insufficient
data, and external failures.
"""

from typing import Optional


class RaydiumSwapError(Exception):
    """Base exception for the swap client."""
    pass


class DiscoveryError(RaydiumSwapError):
    """Raised when the pool directory lookup fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class StateReadError(RaydiumSwapError):
    """Raised when an address does not resolve to an account of the expected layout."""

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message)
        self.address = address


class SubmissionError(RaydiumSwapError):
    """Raised when the transaction submission boundary rejects a plan."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class QuoteError(RaydiumSwapError):
    pass


class InsufficientLiquidityData(QuoteError):
    """The tick walk needs tick arrays beyond the loaded window."""

    def __init__(self, message: str, tick: Optional[int] = None, remaining: int = 0):
        super().__init__(message)
        self.tick = tick
        self.remaining = remaining


class InsufficientLiquidity(QuoteError):
    """The pool itself cannot fill the trade."""
    pass


class InvalidSlippage(QuoteError, ValueError):
    def __init__(self, slippage):
        super().__init__(f"Slippage must be in [0, 1), got {slippage}")
        self.slippage = slippage


class AssemblyError(RaydiumSwapError):
    pass


class MissingPoolKeys(AssemblyError):
    pass


class StalePoolKeys(MissingPoolKeys):
    """Pool keys no longer match the on-chain pool state."""
    pass


class UnsupportedMintPair(AssemblyError):
    def __init__(self, message: str, mint_in: Optional[str] = None, mint_out: Optional[str] = None):
        super().__init__(message)
        self.mint_in = mint_in
        self.mint_out = mint_out


class PlanTooLarge(AssemblyError):
    def __init__(self, message: str, size: int, limit: int):
        super().__init__(message)
        self.size = size
        self.limit = limit
