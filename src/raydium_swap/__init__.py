from .amm_math import (
    apply_slippage,
    calculate_price_impact,
    calculate_swap_input,
    calculate_swap_output,
)
from .assembler import assemble_swap, build_swap_plan, resolve_existing_accounts
from .cache import PoolCache
from .client import RaydiumSwapClient, SwapResult
from .config import SwapConfig
from .errors import (
    AssemblyError,
    DiscoveryError,
    InsufficientLiquidity,
    InsufficientLiquidityData,
    InvalidSlippage,
    MissingPoolKeys,
    PlanTooLarge,
    QuoteError,
    RaydiumSwapError,
    StalePoolKeys,
    StateReadError,
    SubmissionError,
    UnsupportedMintPair,
)
from .models import (
    ComputeBudget,
    ConcentratedPoolKeys,
    OperationKind,
    PoolSummary,
    PoolType,
    Quote,
    ReserveState,
    StandardPoolKeys,
    SwapPlan,
    Tick,
    TickArray,
    TickState,
    TransferFee,
)
from .pool_api import PoolDirectory, PoolSortField
from .quote import compute_quote
from .state_reader import read_pool_state, read_reserve_state, read_tick_state

__all__ = [
    "apply_slippage",
    "calculate_price_impact",
    "calculate_swap_input",
    "calculate_swap_output",
    "assemble_swap",
    "build_swap_plan",
    "resolve_existing_accounts",
    "PoolCache",
    "RaydiumSwapClient",
    "SwapResult",
    "SwapConfig",
    "AssemblyError",
    "DiscoveryError",
    "InsufficientLiquidity",
    "InsufficientLiquidityData",
    "InvalidSlippage",
    "MissingPoolKeys",
    "PlanTooLarge",
    "QuoteError",
    "RaydiumSwapError",
    "StalePoolKeys",
    "StateReadError",
    "SubmissionError",
    "UnsupportedMintPair",
    "ComputeBudget",
    "ConcentratedPoolKeys",
    "OperationKind",
    "PoolSummary",
    "PoolType",
    "Quote",
    "ReserveState",
    "StandardPoolKeys",
    "SwapPlan",
    "Tick",
    "TickArray",
    "TickState",
    "TransferFee",
    "PoolDirectory",
    "PoolSortField",
    "compute_quote",
    "read_pool_state",
    "read_reserve_state",
    "read_tick_state",
]
