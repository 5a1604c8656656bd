"""
Quote engine: pure functions from a pool snapshot to a fee- and slippage-adjusted quote.

Nothing here performs I/O; callers hand in a ReserveState or TickState read
by raydium_swap.state_reader (or built by hand) and get a Quote back.
"""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import List, Optional

from solders.pubkey import Pubkey

from raydium_swap import amm_math, clmm_math
from raydium_swap.errors import (
    InsufficientLiquidity,
    InsufficientLiquidityData,
    UnsupportedMintPair,
)
from raydium_swap.models import PoolState, PoolType, Quote, ReserveState, Tick, TickState

logger = logging.getLogger(__name__)


def _check_amount(amount_in: int):
    if isinstance(amount_in, bool) or not isinstance(amount_in, int):
        raise TypeError(f"amount_in must be an int, got {type(amount_in).__name__}")
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative, got {amount_in}")
    if amount_in > clmm_math.U64_MAX:
        raise ValueError(f"amount_in {amount_in} does not fit in a u64")


def compute_quote(
    state: PoolState,
    amount_in: int,
    slippage,
    mint_in: Optional[Pubkey] = None,
    sqrt_price_limit_x64: Optional[int] = None,
) -> Quote:
    """
    Quote an exact-input swap of amount_in against a pool snapshot.

    mint_in picks the direction and defaults to side A of the pool.
    sqrt_price_limit_x64 only applies to concentrated pools.
    """
    _check_amount(amount_in)
    if isinstance(state, ReserveState):
        if sqrt_price_limit_x64 is not None:
            raise ValueError("sqrt_price_limit_x64 is only supported for concentrated pools")
        return quote_standard(state, amount_in, slippage, mint_in)
    if isinstance(state, TickState):
        return quote_concentrated(state, amount_in, slippage, mint_in, sqrt_price_limit_x64)
    raise TypeError(f"Unsupported pool state: {type(state).__name__}")


def _resolve_direction(mint_a: Pubkey, mint_b: Pubkey, mint_in: Optional[Pubkey]):
    if mint_in is None or mint_in == mint_a:
        return True, mint_a, mint_b
    if mint_in == mint_b:
        return False, mint_b, mint_a
    raise UnsupportedMintPair(
        f"Mint {mint_in} is not part of pool pair {mint_a}/{mint_b}",
        mint_in=str(mint_in),
    )


def quote_standard(state: ReserveState, amount_in: int, slippage, mint_in: Optional[Pubkey] = None) -> Quote:
    _check_amount(amount_in)
    _, resolved_in, resolved_out = _resolve_direction(state.mint_a, state.mint_b, mint_in)
    reserve_in, reserve_out, _ = state.oriented(resolved_in)
    if not state.is_tradable:
        raise InsufficientLiquidity(f"Pool {state.pool_id} has an empty reserve")

    fee = amm_math.calculate_fee(amount_in, state.fee_numerator, state.fee_denominator)
    amount_out = amm_math.calculate_swap_output(
        amount_in, reserve_in, reserve_out, state.fee_numerator, state.fee_denominator
    )
    impact_bps = amm_math.calculate_price_impact_bps(amount_in, amount_out, reserve_in, reserve_out)
    min_out = amm_math.apply_slippage(amount_out, slippage)

    logger.debug(
        f"Standard quote {state.pool_id}: in={amount_in} reserves=({reserve_in}, {reserve_out}) "
        f"fee={fee} out={amount_out} min_out={min_out} impact={impact_bps}bps"
    )
    return Quote(
        pool_type=PoolType.STANDARD,
        mint_in=resolved_in,
        mint_out=resolved_out,
        amount_in=amount_in,
        amount_out=amount_out,
        min_amount_out=min_out,
        fee_amount=fee,
        price_impact_bps=impact_bps,
    )


def _next_tick(ticks: List[Tick], tick: int, zero_for_one: bool, lower: int, upper: int) -> Optional[Tick]:
    if zero_for_one:
        for t in reversed(ticks):
            if lower <= t.tick <= tick:
                return t
        return None
    for t in ticks:
        if tick < t.tick < upper:
            return t
    return None


def _concentrated_impact_bps(amount_in: int, amount_out: int, sqrt_price_x64: int, zero_for_one: bool) -> int:
    if amount_in == 0:
        return 0
    price = Fraction(sqrt_price_x64 * sqrt_price_x64, 1 << 128)
    ideal_out = amount_in * price if zero_for_one else amount_in / price
    if ideal_out == 0:
        return 0
    impact = (ideal_out - amount_out) * amm_math.BPS_DENOMINATOR / ideal_out
    return max(0, impact.numerator // impact.denominator)


def _resolve_sqrt_limit(state: TickState, zero_for_one: bool, sqrt_price_limit_x64: Optional[int]) -> int:
    if sqrt_price_limit_x64 is None:
        return clmm_math.MIN_SQRT_PRICE_X64 + 1 if zero_for_one else clmm_math.MAX_SQRT_PRICE_X64 - 1
    if zero_for_one:
        valid = clmm_math.MIN_SQRT_PRICE_X64 < sqrt_price_limit_x64 < state.sqrt_price_x64
    else:
        valid = state.sqrt_price_x64 < sqrt_price_limit_x64 < clmm_math.MAX_SQRT_PRICE_X64
    if not valid:
        side = "below" if zero_for_one else "above"
        raise ValueError(
            f"sqrt_price_limit_x64 {sqrt_price_limit_x64} must be {side} the current sqrt price "
            f"{state.sqrt_price_x64} and inside the tick bounds"
        )
    return sqrt_price_limit_x64


def quote_concentrated(
    state: TickState,
    amount_in: int,
    slippage,
    mint_in: Optional[Pubkey] = None,
    sqrt_price_limit_x64: Optional[int] = None,
) -> Quote:
    """
    Walk the loaded tick arrays from tick_current until amount_in is consumed.

    Liquidity outside the loaded window is never guessed: running off the edge
    of the window raises InsufficientLiquidityData. Token-2022 transfer fees are
    taken off the input before the walk and off the output after it, so
    amount_out is what the wallet receives.
    """
    _check_amount(amount_in)
    zero_for_one, resolved_in, resolved_out = _resolve_direction(state.mint_a, state.mint_b, mint_in)
    # Validate slippage before walking
    amm_math.apply_slippage(0, slippage)
    sqrt_limit = _resolve_sqrt_limit(state, zero_for_one, sqrt_price_limit_x64)

    fee_in = state.transfer_fee_a if zero_for_one else state.transfer_fee_b
    fee_out = state.transfer_fee_b if zero_for_one else state.transfer_fee_a
    transfer_fee_in = fee_in.calculate(amount_in) if fee_in is not None else 0
    pool_amount_in = amount_in - transfer_fee_in

    if pool_amount_in == 0:
        return Quote(
            pool_type=PoolType.CONCENTRATED,
            mint_in=resolved_in,
            mint_out=resolved_out,
            amount_in=amount_in,
            amount_out=0,
            min_amount_out=0,
            fee_amount=0,
            price_impact_bps=0,
            tick_arrays_crossed=(),
            sqrt_price_after_x64=state.sqrt_price_x64,
            transfer_fee_amount=transfer_fee_in,
            sqrt_price_limit_x64=sqrt_price_limit_x64 or 0,
        )

    window = state.loaded_window()
    if window is None:
        raise InsufficientLiquidityData(
            f"Current tick {state.tick_current} is not covered by the loaded tick arrays",
            tick=state.tick_current,
            remaining=pool_amount_in,
        )
    lower, upper = window
    ticks = state.initialized_ticks()

    if state.liquidity == 0 and _next_tick(ticks, state.tick_current, zero_for_one, lower, upper) is None:
        raise InsufficientLiquidity(f"Pool {state.pool_id} has no liquidity in the loaded range")

    remaining = pool_amount_in
    gross_out = 0
    fee_total = 0
    sqrt_price = state.sqrt_price_x64
    tick = state.tick_current
    liquidity = state.liquidity
    crossed: List[int] = []

    while remaining > 0:
        start_index = clmm_math.tick_array_start_index(tick, state.tick_spacing)
        if start_index not in crossed:
            crossed.append(start_index)

        next_tick = _next_tick(ticks, tick, zero_for_one, lower, upper)
        if next_tick is not None:
            tick_next = next_tick.tick
        else:
            tick_next = lower if zero_for_one else upper
        tick_next = min(max(tick_next, clmm_math.MIN_TICK), clmm_math.MAX_TICK)

        sqrt_next = clmm_math.get_sqrt_price_at_tick(tick_next)
        if (zero_for_one and sqrt_next < sqrt_limit) or (not zero_for_one and sqrt_next > sqrt_limit):
            target = sqrt_limit
        else:
            target = sqrt_next

        sqrt_start = sqrt_price
        step = clmm_math.compute_swap_step(sqrt_price, target, liquidity, remaining, state.trade_fee_rate, zero_for_one)
        sqrt_price = step.sqrt_price_next_x64
        remaining -= step.amount_in + step.fee_amount
        gross_out += step.amount_out
        fee_total += step.fee_amount

        if sqrt_price == sqrt_next:
            if next_tick is not None:
                net = -next_tick.liquidity_net if zero_for_one else next_tick.liquidity_net
                liquidity = clmm_math.add_delta(liquidity, net)
                logger.debug(f"Crossed tick {tick_next}, liquidity now {liquidity}")
            tick = tick_next - 1 if zero_for_one else tick_next
        elif sqrt_price != sqrt_start:
            tick = clmm_math.get_tick_at_sqrt_price(sqrt_price)

        if remaining == 0:
            break
        if sqrt_price == sqrt_limit or tick <= clmm_math.MIN_TICK or tick >= clmm_math.MAX_TICK:
            raise InsufficientLiquidity(
                f"Pool {state.pool_id} hit the price bound with {remaining} input left"
            )
        if not lower <= tick < upper:
            raise InsufficientLiquidityData(
                f"Swap needs tick arrays beyond [{lower}, {upper}) with {remaining} input left",
                tick=tick,
                remaining=remaining,
            )

    transfer_fee_out = fee_out.calculate(gross_out) if fee_out is not None else 0
    amount_out = gross_out - transfer_fee_out
    impact_bps = _concentrated_impact_bps(pool_amount_in, gross_out, state.sqrt_price_x64, zero_for_one)
    min_out = amm_math.apply_slippage(amount_out, slippage)

    logger.debug(
        f"Concentrated quote {state.pool_id}: in={amount_in} out={amount_out} fee={fee_total} "
        f"transfer_fees=({transfer_fee_in}, {transfer_fee_out}) arrays={crossed} sqrt_after={sqrt_price}"
    )
    return Quote(
        pool_type=PoolType.CONCENTRATED,
        mint_in=resolved_in,
        mint_out=resolved_out,
        amount_in=amount_in,
        amount_out=amount_out,
        min_amount_out=min_out,
        fee_amount=fee_total,
        price_impact_bps=impact_bps,
        tick_arrays_crossed=tuple(crossed),
        sqrt_price_after_x64=sqrt_price,
        transfer_fee_amount=transfer_fee_in + transfer_fee_out,
        sqrt_price_limit_x64=sqrt_price_limit_x64 or 0,
    )
