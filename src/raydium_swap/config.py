from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import Optional

from raydium_swap.consts import RAYDIUM_API_URL
from raydium_swap.models import ComputeBudget


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    return int(value) if value else default


@dataclass(frozen=True)
class SwapConfig:
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    api_url: str = RAYDIUM_API_URL
    http_timeout_seconds: float = 10.0
    default_slippage_bps: int = 50
    priority_fee_microlamports: int = 0
    compute_unit_limit: int = 0
    tick_array_window: int = 5
    # 0 disables the price impact guard
    max_price_impact_bps: int = 0
    dry_run: bool = False
    skip_preflight: bool = False

    def __post_init__(self):
        if not 0 <= self.default_slippage_bps < 10_000:
            raise ValueError(f"DEFAULT_SLIPPAGE_BPS must be in [0, 10000), got {self.default_slippage_bps}")
        if self.tick_array_window < 0:
            raise ValueError(f"TICK_ARRAY_WINDOW must be non-negative, got {self.tick_array_window}")
        if self.max_price_impact_bps < 0:
            raise ValueError(f"MAX_PRICE_IMPACT_BPS must be non-negative, got {self.max_price_impact_bps}")

    @classmethod
    def from_env(cls) -> "SwapConfig":
        return cls(
            rpc_url=os.getenv("SOLANA_RPC_URL", cls.rpc_url),
            api_url=os.getenv("RAYDIUM_API_URL", cls.api_url),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", str(cls.http_timeout_seconds))),
            default_slippage_bps=_env_int("DEFAULT_SLIPPAGE_BPS", cls.default_slippage_bps),
            priority_fee_microlamports=_env_int("PRIORITY_FEE_MICROLAMPORTS", cls.priority_fee_microlamports),
            compute_unit_limit=_env_int("COMPUTE_UNIT_LIMIT", cls.compute_unit_limit),
            tick_array_window=_env_int("TICK_ARRAY_WINDOW", cls.tick_array_window),
            max_price_impact_bps=_env_int("MAX_PRICE_IMPACT_BPS", cls.max_price_impact_bps),
            dry_run=_env_bool("RAYDIUM_DRY_RUN", False),
            skip_preflight=_env_bool("SKIP_PREFLIGHT", False),
        )

    def compute_budget(self) -> Optional[ComputeBudget]:
        limit = self.compute_unit_limit or None
        price = self.priority_fee_microlamports or None
        if limit is None and price is None:
            return None
        return ComputeBudget(unit_limit=limit, unit_price_microlamports=price)

    def to_dict(self) -> dict:
        return asdict(self)
