"""
Q64.64 fixed-point helpers for Raydium concentrated-liquidity pools.

Mirrors the on-chain tick_math / sqrt_price_math / swap_math libraries. Python
integers never overflow, so the u128/U256 width checks reduce to the range
guards that the program itself would hit.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from raydium_swap.consts import FEE_RATE_DENOMINATOR, TICK_ARRAY_SIZE

Q64 = 1 << 64
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1

MIN_TICK = -443636
MAX_TICK = -MIN_TICK
MIN_SQRT_PRICE_X64 = 4295048016
MAX_SQRT_PRICE_X64 = 79226673521066979257578248091

# sqrt(1.0001^-(2^i)) in Q64.64 for bit i of |tick|
_TICK_RATIOS = (
    (0x2, 0xFFF97272373D4000),
    (0x4, 0xFFF2E50F5F657000),
    (0x8, 0xFFE5CACA7E10F000),
    (0x10, 0xFFCB9843D60F7000),
    (0x20, 0xFF973B41FA98E800),
    (0x40, 0xFF2EA16466C9B000),
    (0x80, 0xFE5DEE046A9A3800),
    (0x100, 0xFCBE86C7900BB000),
    (0x200, 0xF987A7253AC65800),
    (0x400, 0xF3392B0822BB6000),
    (0x800, 0xE7159475A2CAF000),
    (0x1000, 0xD097F3BDFD2F2000),
    (0x2000, 0xA9F746462D9F8000),
    (0x4000, 0x70D869A156F31C00),
    (0x8000, 0x31BE135F97ED3200),
    (0x10000, 0x9AA508B5B85A500),
    (0x20000, 0x5D6AF8DEDC582C),
    (0x40000, 0x2216E584F5FA),
)


def mul_div_floor(a: int, b: int, denominator: int) -> int:
    return a * b // denominator


def mul_div_ceil(a: int, b: int, denominator: int) -> int:
    return -(-(a * b) // denominator)


def div_rounding_up(a: int, b: int) -> int:
    return -(-a // b)


def get_sqrt_price_at_tick(tick: int) -> int:
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")
    abs_tick = abs(tick)

    ratio = 0xFFFCB933BD6FB800 if abs_tick & 0x1 else Q64
    for bit, multiplier in _TICK_RATIOS:
        if abs_tick & bit:
            ratio = (ratio * multiplier) >> 64

    if tick > 0:
        ratio = U128_MAX // ratio
    return ratio


def get_tick_at_sqrt_price(sqrt_price_x64: int) -> int:
    """
    Greatest tick whose sqrt price is <= sqrt_price_x64.
    """
    if sqrt_price_x64 < MIN_SQRT_PRICE_X64 or sqrt_price_x64 >= MAX_SQRT_PRICE_X64:
        raise ValueError(f"sqrt price {sqrt_price_x64} outside the supported range")

    lower, upper = MIN_TICK, MAX_TICK
    while upper - lower > 1:
        mid = (lower + upper) // 2
        if get_sqrt_price_at_tick(mid) <= sqrt_price_x64:
            lower = mid
        else:
            upper = mid
    return upper if get_sqrt_price_at_tick(upper) <= sqrt_price_x64 else lower


def tick_with_spacing(tick: int, tick_spacing: int) -> int:
    """Round tick down to a multiple of tick_spacing, toward negative infinity."""
    return (tick // tick_spacing) * tick_spacing


def tick_array_start_index(tick: int, tick_spacing: int) -> int:
    return tick_with_spacing(tick, tick_spacing * TICK_ARRAY_SIZE)


def add_delta(liquidity: int, delta: int) -> int:
    result = liquidity + delta
    if result < 0 or result > U128_MAX:
        raise ValueError(f"liquidity {liquidity} + {delta} out of u128 range")
    return result


def get_delta_amount_0_unsigned(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    numerator_1 = liquidity << 64
    numerator_2 = sqrt_b - sqrt_a
    if round_up:
        return div_rounding_up(mul_div_ceil(numerator_1, numerator_2, sqrt_b), sqrt_a)
    return mul_div_floor(numerator_1, numerator_2, sqrt_b) // sqrt_a


def get_delta_amount_1_unsigned(sqrt_a: int, sqrt_b: int, liquidity: int, round_up: bool) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    if round_up:
        return mul_div_ceil(liquidity, sqrt_b - sqrt_a, Q64)
    return mul_div_floor(liquidity, sqrt_b - sqrt_a, Q64)


def get_next_sqrt_price_from_input(sqrt_price_x64: int, liquidity: int, amount_in: int, zero_for_one: bool) -> int:
    if sqrt_price_x64 <= 0 or liquidity <= 0:
        raise ValueError("sqrt price and liquidity must be positive")
    if amount_in == 0:
        return sqrt_price_x64
    if zero_for_one:
        # Token 0 in pushes the price down, round up so the price never overshoots
        numerator = liquidity << 64
        return mul_div_ceil(numerator, sqrt_price_x64, numerator + amount_in * sqrt_price_x64)
    return sqrt_price_x64 + (amount_in << 64) // liquidity


@dataclass(frozen=True)
class SwapStep:
    sqrt_price_next_x64: int
    amount_in: int
    amount_out: int
    fee_amount: int


def _amount_in_range(sqrt_current: int, sqrt_target: int, liquidity: int, zero_for_one: bool) -> Optional[int]:
    if zero_for_one:
        amount = get_delta_amount_0_unsigned(sqrt_target, sqrt_current, liquidity, True)
    else:
        amount = get_delta_amount_1_unsigned(sqrt_current, sqrt_target, liquidity, True)
    # The program treats a u64 overflow as "the whole range cannot be reached"
    return amount if amount <= U64_MAX else None


def compute_swap_step(
    sqrt_price_current_x64: int,
    sqrt_price_target_x64: int,
    liquidity: int,
    amount_remaining: int,
    fee_rate: int,
    zero_for_one: bool,
) -> SwapStep:
    """
    One exact-input step inside a single liquidity range.

    The fee is charged inside the step: a step that stops short of the target
    keeps everything it did not swap as fee, a step that reaches the target pays
    ceil(amount_in * fee_rate / (1e6 - fee_rate)).
    """
    remaining_less_fee = mul_div_floor(amount_remaining, FEE_RATE_DENOMINATOR - fee_rate, FEE_RATE_DENOMINATOR)

    amount_in = _amount_in_range(sqrt_price_current_x64, sqrt_price_target_x64, liquidity, zero_for_one)
    if amount_in is not None and remaining_less_fee >= amount_in:
        sqrt_price_next = sqrt_price_target_x64
    else:
        sqrt_price_next = get_next_sqrt_price_from_input(sqrt_price_current_x64, liquidity, remaining_less_fee, zero_for_one)

    reached_target = sqrt_price_next == sqrt_price_target_x64
    if zero_for_one:
        if not reached_target:
            amount_in = get_delta_amount_0_unsigned(sqrt_price_next, sqrt_price_current_x64, liquidity, True)
        amount_out = get_delta_amount_1_unsigned(sqrt_price_next, sqrt_price_current_x64, liquidity, False)
    else:
        if not reached_target:
            amount_in = get_delta_amount_1_unsigned(sqrt_price_current_x64, sqrt_price_next, liquidity, True)
        amount_out = get_delta_amount_0_unsigned(sqrt_price_current_x64, sqrt_price_next, liquidity, False)

    if not reached_target:
        fee_amount = amount_remaining - amount_in
    else:
        fee_amount = mul_div_ceil(amount_in, fee_rate, FEE_RATE_DENOMINATOR - fee_rate)

    return SwapStep(
        sqrt_price_next_x64=sqrt_price_next,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_amount=fee_amount,
    )


def price_to_sqrt_price_x64(price: float, decimals_0: int, decimals_1: int) -> int:
    price_with_decimals = price * 10 ** decimals_1 / 10 ** decimals_0
    return int(math.sqrt(price_with_decimals) * Q64)


def sqrt_price_x64_to_price(sqrt_price_x64: int, decimals_0: int, decimals_1: int) -> float:
    return (sqrt_price_x64 / Q64) ** 2 * 10 ** decimals_0 / 10 ** decimals_1
