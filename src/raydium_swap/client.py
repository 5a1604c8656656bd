from __future__ import annotations

import base64
import dataclasses
import logging
from dataclasses import asdict, dataclass
from time import perf_counter
from typing import List, Optional, Tuple

from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed, Processed
from solana.rpc.core import RPCException
from solana.rpc.models import TxOpts
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from raydium_swap.amm_math import amount_with_slippage_bps
from raydium_swap.assembler import assemble_swap
from raydium_swap.cache import PoolCache
from raydium_swap.clmm_math import price_to_sqrt_price_x64
from raydium_swap.config import SwapConfig
from raydium_swap.errors import MissingPoolKeys, SubmissionError
from raydium_swap.models import (
    ConcentratedPoolKeys,
    PoolKeys,
    PoolState,
    PoolSummary,
    PoolType,
    Quote,
    SwapPlan,
    TickState,
)
from raydium_swap.pool_api import PoolDirectory
from raydium_swap.quote import compute_quote
from raydium_swap.state_reader import (
    fetch_tick_array_addresses,
    get_tick_array_bitmap_address,
    read_pool_state,
)

logger = logging.getLogger(__name__)


@dataclass
class SwapResult:
    success: bool
    error: Optional[str]
    pool_id: str
    pool_type: str
    input_mint: str
    output_mint: str
    amount_in: int
    expected_out: int
    min_out: int
    fee_amount: int
    price_impact_bps: int
    dry_run: bool
    transfer_fee_amount: int = 0
    operations: List[str] = dataclasses.field(default_factory=list)
    tx_size_bytes: int = 0
    accounts_count: int = 0
    signature: Optional[str] = None
    serialized_tx_base64: Optional[str] = None
    keys_cache_hit: bool = False
    load_ms: float = 0.0
    quote_ms: float = 0.0
    build_ms: float = 0.0
    submit_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class RaydiumSwapClient:
    """
    Wires the directory, state reader, quote engine and assembler together for one wallet.

    Holds no pool state between calls; pass a PoolCache to reuse pool keys.
    """

    def __init__(
        self,
        rpc: AsyncClient,
        directory: PoolDirectory,
        keypair: Optional[Keypair] = None,
        config: Optional[SwapConfig] = None,
        cache: Optional[PoolCache] = None,
    ):
        self.rpc = rpc
        self.directory = directory
        self.keypair = keypair
        self.config = config or SwapConfig()
        self.cache = cache

    @property
    def owner(self) -> Pubkey:
        if self.keypair is None:
            raise SubmissionError("No wallet keypair loaded", reason="no_keypair")
        return self.keypair.pubkey()

    async def find_pools(self, mint_a, mint_b, pool_type: Optional[PoolType] = None, limit: Optional[int] = None, **kwargs) -> List[PoolSummary]:
        return await self.directory.fetch_pools(mint_a, mint_b, pool_type, limit=limit, **kwargs)

    async def _fetch_keys(self, pool_id: str) -> PoolKeys:
        keys = await self.directory.fetch_pool_keys([pool_id])
        if not keys:
            raise MissingPoolKeys(f"No pool keys published for {pool_id}")
        return keys[0]

    async def load_keys(self, pool_id) -> Tuple[PoolKeys, bool]:
        """Returns (keys, cache_hit)."""
        pool_id = str(pool_id)
        if self.cache is not None:
            cached = self.cache.get(pool_id)
            if cached is not None:
                return cached, True
            keys = await self._fetch_keys(pool_id)
            self.cache.set(pool_id, keys)
            return keys, False
        return await self._fetch_keys(pool_id), False

    async def load_pool(self, pool_id, mint_in: Optional[Pubkey] = None) -> Tuple[PoolKeys, PoolState, bool]:
        """
        Fetch keys and a fresh state snapshot; Concentrated keys get the tick arrays the swap will walk.
        """
        keys, cache_hit = await self.load_keys(pool_id)
        if isinstance(keys, ConcentratedPoolKeys):
            zero_for_one = mint_in is None or mint_in == keys.mint_a
            state = await read_pool_state(
                self.rpc,
                keys.id,
                PoolType.CONCENTRATED,
                zero_for_one=zero_for_one,
                window=self.config.tick_array_window,
                program_id=keys.program_id,
            )
            keys = dataclasses.replace(
                keys,
                ex_bitmap=keys.ex_bitmap or get_tick_array_bitmap_address(keys.id, keys.program_id),
                tick_arrays=tuple(fetch_tick_array_addresses(state, zero_for_one)),
            )
        else:
            state = await read_pool_state(self.rpc, keys.id, PoolType.STANDARD, program_id=keys.program_id)
        return keys, state, cache_hit

    def quote(
        self,
        state: PoolState,
        amount_in: int,
        slippage: Optional[float] = None,
        mint_in: Optional[Pubkey] = None,
        limit_price: Optional[float] = None,
    ) -> Quote:
        """
        Without slippage the configured DEFAULT_SLIPPAGE_BPS floors the output.

        limit_price is token B per token A in UI units and only applies to concentrated pools.
        """
        sqrt_limit = None
        if limit_price is not None:
            if not isinstance(state, TickState):
                raise ValueError("limit_price is only supported for concentrated pools")
            sqrt_limit = price_to_sqrt_price_x64(limit_price, state.decimals_a, state.decimals_b)
        if slippage is not None:
            return compute_quote(state, amount_in, slippage, mint_in=mint_in, sqrt_price_limit_x64=sqrt_limit)
        quote = compute_quote(state, amount_in, 0, mint_in=mint_in, sqrt_price_limit_x64=sqrt_limit)
        min_out = amount_with_slippage_bps(quote.amount_out, self.config.default_slippage_bps, round_up=False)
        return dataclasses.replace(quote, min_amount_out=min_out)

    async def build_swap(self, keys: PoolKeys, quote: Quote, state: Optional[PoolState] = None) -> SwapPlan:
        return await assemble_swap(
            self.rpc,
            keys,
            self.owner,
            quote.mint_in,
            quote.mint_out,
            quote.amount_in,
            quote.min_amount_out,
            compute_budget=self.config.compute_budget(),
            pool_state=state,
            sqrt_price_limit_x64=quote.sqrt_price_limit_x64,
        )

    async def sign(self, plan: SwapPlan) -> Transaction:
        if self.keypair is None:
            raise SubmissionError("No wallet keypair loaded", reason="no_keypair")
        blockhash_resp = await self.rpc.get_latest_blockhash(commitment=Confirmed)
        return plan.sign([self.keypair], blockhash_resp.value.blockhash)

    async def submit(self, plan: SwapPlan) -> str:
        """
        Single best-effort send. Any rejection surfaces as SubmissionError.
        """
        tx = await self.sign(plan)
        try:
            resp = await self.rpc.send_raw_transaction(
                bytes(tx),
                opts=TxOpts(skip_preflight=self.config.skip_preflight, preflight_commitment=Confirmed),
            )
        except (RPCException, SolanaRpcException) as e:
            raise SubmissionError(f"Transaction rejected: {e}", reason=str(e)) from e
        signature = str(resp.value)
        logger.info(f"Submitted swap {signature}")
        return signature

    async def simulate(self, plan: SwapPlan) -> dict:
        """
        Run the plan through simulateTransaction without landing it.
        """
        tx = await self.sign(plan)
        try:
            resp = await self.rpc.simulate_transaction(tx, sig_verify=False, commitment=Processed)
        except (RPCException, SolanaRpcException) as e:
            raise SubmissionError(f"Simulation failed: {e}", reason=str(e)) from e
        value = resp.value
        return {
            "success": value.err is None,
            "error": str(value.err) if value.err else None,
            "logs": value.logs,
            "units_consumed": value.units_consumed,
        }

    async def swap(
        self,
        pool_id,
        mint_in: Pubkey,
        amount_in: int,
        slippage: Optional[float] = None,
        dry_run: Optional[bool] = None,
        limit_price: Optional[float] = None,
    ) -> SwapResult:
        """
        One-shot: load pool, quote, guard price impact, assemble, then dry-run or submit.
        """
        dry_run = self.config.dry_run if dry_run is None else dry_run

        load_t0 = perf_counter()
        keys, state, cache_hit = await self.load_pool(pool_id, mint_in=mint_in)
        load_ms = (perf_counter() - load_t0) * 1000

        quote_t0 = perf_counter()
        quote = self.quote(state, amount_in, slippage, mint_in=mint_in, limit_price=limit_price)
        quote_ms = (perf_counter() - quote_t0) * 1000

        result = SwapResult(
            success=False,
            error=None,
            pool_id=str(keys.id),
            pool_type=quote.pool_type.value,
            input_mint=str(quote.mint_in),
            output_mint=str(quote.mint_out),
            amount_in=quote.amount_in,
            expected_out=quote.amount_out,
            min_out=quote.min_amount_out,
            fee_amount=quote.fee_amount,
            price_impact_bps=quote.price_impact_bps,
            dry_run=dry_run,
            transfer_fee_amount=quote.transfer_fee_amount,
            keys_cache_hit=cache_hit,
            load_ms=load_ms,
            quote_ms=quote_ms,
        )

        max_impact = self.config.max_price_impact_bps
        if max_impact and quote.price_impact_bps > max_impact:
            logger.warning(
                f"Price impact {quote.price_impact_bps} bps exceeds max {max_impact}; aborting swap on {keys.id}"
            )
            result.error = f"price impact {quote.price_impact_bps} bps exceeds max {max_impact}"
            return result

        build_t0 = perf_counter()
        plan = await self.build_swap(keys, quote, state)
        tx = await self.sign(plan)
        tx_bytes = bytes(tx)
        result.build_ms = (perf_counter() - build_t0) * 1000
        result.operations = [k.value for k in plan.kinds()]
        result.tx_size_bytes = len(tx_bytes)
        result.accounts_count = len(tx.message.account_keys)
        result.serialized_tx_base64 = base64.b64encode(tx_bytes).decode()

        if dry_run:
            result.success = True
            self._log_dry_run(result)
            return result

        submit_t0 = perf_counter()
        result.signature = await self.submit(plan)
        result.submit_ms = (perf_counter() - submit_t0) * 1000
        result.success = True
        return result

    def _log_dry_run(self, result: SwapResult):
        logger.info(
            f"Dry-run pool={result.pool_id} type={result.pool_type} "
            f"in={result.amount_in} expected_out={result.expected_out} min_out={result.min_out} "
            f"impact={result.price_impact_bps/100:.2f}% tx_size={result.tx_size_bytes} "
            f"accounts={result.accounts_count} ops={','.join(result.operations)}"
        )
