from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal
from fractions import Fraction

from raydium_swap.consts import LIQUIDITY_FEES_DENOMINATOR, LIQUIDITY_FEES_NUMERATOR
from raydium_swap.errors import InvalidSlippage

BPS_DENOMINATOR = 10_000


def calculate_fee(amount_in: int, fee_numerator: int = LIQUIDITY_FEES_NUMERATOR, fee_denominator: int = LIQUIDITY_FEES_DENOMINATOR) -> int:
    return amount_in * fee_numerator // fee_denominator


def calculate_swap_output(amount_in: int, reserve_in: int, reserve_out: int, fee_numerator: int = LIQUIDITY_FEES_NUMERATOR, fee_denominator: int = LIQUIDITY_FEES_DENOMINATOR) -> int:
    """
    Standard x*y=k with the fee taken off the input first, truncating at every division.
    """
    fee = calculate_fee(amount_in, fee_numerator, fee_denominator)
    amount_in_after_fee = amount_in - fee
    denominator = reserve_in + amount_in_after_fee
    return reserve_out * amount_in_after_fee // denominator if denominator else 0


def calculate_swap_input(amount_out: int, reserve_in: int, reserve_out: int, fee_numerator: int = LIQUIDITY_FEES_NUMERATOR, fee_denominator: int = LIQUIDITY_FEES_DENOMINATOR) -> int:
    """
    Inverse: smallest input whose output is at least amount_out.
    """
    if amount_out <= 0:
        return 0
    if amount_out >= reserve_out:
        raise ValueError(f"amount_out {amount_out} must be below reserve_out {reserve_out}")
    # Input needed after the fee, rounded up
    numerator = reserve_in * amount_out
    denominator = reserve_out - amount_out
    after_fee = -(-numerator // denominator)
    # Gross up by the fee, then nudge until the truncated fee leaves exactly enough
    amount_in = -(-after_fee * fee_denominator // (fee_denominator - fee_numerator))
    while amount_in - calculate_fee(amount_in, fee_numerator, fee_denominator) < after_fee:
        amount_in += 1
    while amount_in > 1 and (amount_in - 1) - calculate_fee(amount_in - 1, fee_numerator, fee_denominator) >= after_fee:
        amount_in -= 1
    return amount_in


def calculate_price_impact_bps(amount_in: int, amount_out: int, reserve_in: int, reserve_out: int) -> int:
    """
    Shortfall of amount_out against the output at the pre-trade marginal price, in bps.
    """
    if reserve_in == 0 or reserve_out == 0 or amount_in == 0:
        return 0
    ideal_out = Fraction(amount_in * reserve_out, reserve_in)
    impact = (ideal_out - amount_out) * BPS_DENOMINATOR / ideal_out
    return max(0, impact.numerator // impact.denominator)


def calculate_price_impact(amount_in: int, reserve_in: int, reserve_out: int, fee_numerator: int = LIQUIDITY_FEES_NUMERATOR, fee_denominator: int = LIQUIDITY_FEES_DENOMINATOR) -> float:
    """
    Returns price impact as decimal (0.01 = 1%).
    """
    output = calculate_swap_output(amount_in, reserve_in, reserve_out, fee_numerator, fee_denominator)
    return calculate_price_impact_bps(amount_in, output, reserve_in, reserve_out) / BPS_DENOMINATOR


def apply_slippage(amount_out: int, slippage) -> int:
    """
    floor(amount_out * (1 - slippage)) with slippage a fraction in [0, 1).

    Floats are converted through their repr so 0.005 means exactly 0.005.
    """
    try:
        s = Decimal(str(slippage))
    except ArithmeticError:
        raise InvalidSlippage(slippage)
    if not s.is_finite() or s < 0 or s >= 1:
        raise InvalidSlippage(slippage)
    return int((Decimal(amount_out) * (1 - s)).to_integral_value(rounding=ROUND_FLOOR))


def amount_with_slippage_bps(amount: int, slippage_bps: int, round_up: bool) -> int:
    """
    Bps flavour used for exact-in floors (round_up=False) and exact-out ceilings.
    """
    if round_up:
        return -(-amount * (BPS_DENOMINATOR + slippage_bps) // BPS_DENOMINATOR)
    if not 0 <= slippage_bps < BPS_DENOMINATOR:
        raise InvalidSlippage(slippage_bps / BPS_DENOMINATOR)
    return amount * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR
