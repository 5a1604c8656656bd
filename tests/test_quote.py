import pytest
from solders.pubkey import Pubkey

from raydium_swap.clmm_math import compute_swap_step, get_sqrt_price_at_tick
from raydium_swap.errors import (
    InsufficientLiquidity,
    InsufficientLiquidityData,
    InvalidSlippage,
    QuoteError,
    UnsupportedMintPair,
)
from raydium_swap.models import PoolType, ReserveState, Tick, TickArray, TickState, TransferFee
from raydium_swap.quote import compute_quote, quote_concentrated, quote_standard

POOL = Pubkey.new_unique()
MINT_A = Pubkey.new_unique()
MINT_B = Pubkey.new_unique()
FEE_RATE = 3000
LIQUIDITY = 10**12


def reserve_state(reserve_a=1_000_000, reserve_b=500_000, num=3, den=1000):
    return ReserveState(POOL, MINT_A, MINT_B, reserve_a, reserve_b, num, den)


def tick_state(tick_current=30, liquidity=LIQUIDITY, arrays=(TickArray(0),), **kwargs):
    return TickState(
        pool_id=POOL,
        mint_a=MINT_A,
        mint_b=MINT_B,
        sqrt_price_x64=get_sqrt_price_at_tick(tick_current),
        tick_current=tick_current,
        liquidity=liquidity,
        tick_spacing=1,
        trade_fee_rate=FEE_RATE,
        tick_arrays=tuple(arrays),
        **kwargs,
    )


class TestStandardQuote:
    """Constant-product quotes."""

    def test_reference_quote(self):
        """Test the 0.3% example: 498 out, 495 min, 3 fee, 40 bps impact."""
        quote = compute_quote(reserve_state(), 1000, 0.005)
        assert quote.pool_type == PoolType.STANDARD
        assert quote.mint_in == MINT_A
        assert quote.mint_out == MINT_B
        assert quote.amount_out == 498
        assert quote.min_amount_out == 495
        assert quote.fee_amount == 3
        assert quote.price_impact_bps == 40

    def test_reverse_direction(self):
        """Test paying side B swaps the reserves."""
        quote = compute_quote(reserve_state(), 1000, 0, mint_in=MINT_B)
        assert quote.mint_in == MINT_B
        assert quote.mint_out == MINT_A
        assert quote.amount_out == 1990
        assert quote.min_amount_out == 1990

    def test_zero_input(self):
        """Test a zero-size quote is all zeros."""
        quote = compute_quote(reserve_state(), 0, 0.01)
        assert (quote.amount_out, quote.min_amount_out, quote.fee_amount, quote.price_impact_bps) == (0, 0, 0, 0)

    def test_invariants_hold_over_sizes(self):
        """Test min_out <= out < reserve_out for a spread of sizes."""
        state = reserve_state()
        for amount in (1, 999, 10**5, 10**9, 10**15):
            quote = quote_standard(state, amount, 0.01)
            assert quote.min_amount_out <= quote.amount_out < state.reserve_b

    def test_empty_reserve(self):
        """Test an empty side raises InsufficientLiquidity."""
        with pytest.raises(InsufficientLiquidity):
            compute_quote(reserve_state(reserve_b=0), 1000, 0.005)

    def test_unknown_mint(self):
        """Test a mint outside the pair is rejected."""
        with pytest.raises(UnsupportedMintPair):
            compute_quote(reserve_state(), 1000, 0.005, mint_in=Pubkey.new_unique())

    def test_invalid_slippage(self):
        """Test slippage >= 1 is rejected."""
        with pytest.raises(InvalidSlippage):
            compute_quote(reserve_state(), 1000, 1)

    def test_bad_amounts(self):
        """Test negative and non-integer amounts are rejected."""
        with pytest.raises(ValueError):
            compute_quote(reserve_state(), -1, 0.005)
        with pytest.raises(TypeError):
            compute_quote(reserve_state(), 1.5, 0.005)

    def test_amount_above_u64(self):
        """Test amounts that cannot be encoded in a swap instruction are rejected."""
        with pytest.raises(ValueError):
            compute_quote(reserve_state(), 2**64, 0.005)
        with pytest.raises(ValueError):
            compute_quote(tick_state(), 2**64, 0.005)

    def test_price_limit_rejected(self):
        """Test a sqrt price limit cannot be applied to a constant-product pool."""
        with pytest.raises(ValueError):
            compute_quote(reserve_state(), 1000, 0.005, sqrt_price_limit_x64=get_sqrt_price_at_tick(0))

    def test_invalid_fee_fraction(self):
        """Test a fee of 100% cannot be expressed."""
        with pytest.raises(ValueError):
            reserve_state(num=1000, den=1000)

    def test_unknown_state_type(self):
        """Test dispatch rejects anything that is not a pool state."""
        with pytest.raises(TypeError):
            compute_quote(object(), 1000, 0.005)

    def test_to_dict(self):
        """Test the quote serializes mints as base58."""
        d = compute_quote(reserve_state(), 1000, 0.005).to_dict()
        assert d["pool_type"] == "standard"
        assert d["mint_in"] == str(MINT_A)
        assert d["amount_out"] == 498


class TestConcentratedQuote:
    """Tick-walking quotes over a loaded window."""

    def test_zero_input(self):
        """Test zero input returns a zero quote at the current price."""
        state = tick_state()
        quote = compute_quote(state, 0, 0.005)
        assert quote.pool_type == PoolType.CONCENTRATED
        assert quote.amount_out == 0
        assert quote.fee_amount == 0
        assert quote.min_amount_out == 0
        assert quote.sqrt_price_after_x64 == state.sqrt_price_x64

    def test_single_segment_matches_one_step(self):
        """Test a trade inside one range equals a single swap step."""
        state = tick_state()
        amount = 1_000_000
        quote = compute_quote(state, amount, 0)
        step = compute_swap_step(
            state.sqrt_price_x64, get_sqrt_price_at_tick(0), LIQUIDITY, amount, FEE_RATE, True
        )
        assert quote.amount_out == step.amount_out
        assert quote.fee_amount == step.fee_amount
        assert quote.min_amount_out == quote.amount_out
        assert quote.sqrt_price_after_x64 == step.sqrt_price_next_x64
        assert quote.tick_arrays_crossed == (0,)
        assert quote.mint_out == MINT_B

    def test_one_for_zero_segment(self):
        """Test paying token 1 walks upward toward the window's upper edge."""
        state = tick_state()
        amount = 1_000_000
        quote = compute_quote(state, amount, 0.01, mint_in=MINT_B)
        step = compute_swap_step(
            state.sqrt_price_x64, get_sqrt_price_at_tick(60), LIQUIDITY, amount, FEE_RATE, False
        )
        assert quote.mint_in == MINT_B
        assert quote.amount_out == step.amount_out
        assert quote.sqrt_price_after_x64 > state.sqrt_price_x64

    def test_crossing_removes_liquidity_downward(self):
        """Test crossing an initialized tick downward subtracts its liquidity_net."""
        net = 5 * 10**11
        arrays = (
            TickArray(-60, ticks=(Tick(-10, liquidity_net=net, liquidity_gross=net),)),
            TickArray(0),
        )
        state = tick_state(arrays=arrays)
        amount = 3 * 10**9

        first = compute_swap_step(
            state.sqrt_price_x64, get_sqrt_price_at_tick(-10), LIQUIDITY, amount, FEE_RATE, True
        )
        assert first.sqrt_price_next_x64 == get_sqrt_price_at_tick(-10)
        left = amount - first.amount_in - first.fee_amount
        second = compute_swap_step(
            get_sqrt_price_at_tick(-10), get_sqrt_price_at_tick(-60), LIQUIDITY - net, left, FEE_RATE, True
        )
        assert second.sqrt_price_next_x64 != get_sqrt_price_at_tick(-60)

        quote = quote_concentrated(state, amount, 0.005)
        assert quote.amount_out == first.amount_out + second.amount_out
        assert quote.fee_amount == first.fee_amount + second.fee_amount
        assert quote.tick_arrays_crossed == (0, -60)
        assert quote.price_impact_bps > 0
        assert quote.min_amount_out <= quote.amount_out

    def test_walk_beyond_window(self):
        """Test running off the loaded arrays raises InsufficientLiquidityData."""
        with pytest.raises(InsufficientLiquidityData) as exc_info:
            compute_quote(tick_state(), 10**15, 0.005)
        assert exc_info.value.remaining > 0

    def test_current_tick_not_loaded(self):
        """Test a window that misses tick_current raises InsufficientLiquidityData."""
        with pytest.raises(InsufficientLiquidityData):
            compute_quote(tick_state(tick_current=100), 1000, 0.005)

    def test_no_liquidity(self):
        """Test a pool with no liquidity anywhere in the window cannot quote."""
        with pytest.raises(InsufficientLiquidity):
            compute_quote(tick_state(liquidity=0), 1000, 0.005)

    def test_errors_share_base(self):
        """Test both liquidity errors are QuoteErrors."""
        assert issubclass(InsufficientLiquidity, QuoteError)
        assert issubclass(InsufficientLiquidityData, QuoteError)

    def test_invalid_slippage(self):
        """Test slippage is validated before the walk."""
        with pytest.raises(InvalidSlippage):
            compute_quote(tick_state(), 1000, -0.1)

    def test_unordered_arrays_rejected(self):
        """Test tick arrays must be sorted by start index."""
        with pytest.raises(ValueError):
            tick_state(arrays=(TickArray(0), TickArray(-60)))

    def test_loaded_window(self):
        """Test the window spans contiguous arrays around the current tick."""
        state = tick_state(arrays=(TickArray(-120), TickArray(-60), TickArray(0), TickArray(120)))
        assert state.loaded_window() == (-120, 60)


class TestConcentratedTransferFees:
    """Token-2022 transfer fees around the tick walk."""

    def test_input_fee_taken_before_walk(self):
        """Test the pool only swaps what arrives after the input transfer fee."""
        state = tick_state(transfer_fee_a=TransferFee(basis_points=100, maximum_fee=10**9))
        quote = compute_quote(state, 1_000_000, 0)
        step = compute_swap_step(
            state.sqrt_price_x64, get_sqrt_price_at_tick(0), LIQUIDITY, 990_000, FEE_RATE, True
        )
        assert quote.amount_in == 1_000_000
        assert quote.amount_out == step.amount_out
        assert quote.fee_amount == step.fee_amount
        assert quote.transfer_fee_amount == 10_000

    def test_output_fee_taken_after_walk(self):
        """Test amount_out and the slippage floor are net of the output transfer fee."""
        state = tick_state(transfer_fee_b=TransferFee(basis_points=100, maximum_fee=5))
        plain = compute_quote(tick_state(), 1_000_000, 0.01)
        quote = compute_quote(state, 1_000_000, 0.01)
        assert quote.amount_out == plain.amount_out - 5
        assert quote.min_amount_out <= quote.amount_out
        assert quote.min_amount_out < plain.min_amount_out
        assert quote.transfer_fee_amount == 5
        assert quote.price_impact_bps == plain.price_impact_bps

    def test_fee_follows_direction(self):
        """Test paying token 1 charges token 1's fee on the way in."""
        state = tick_state(
            transfer_fee_a=TransferFee(basis_points=100, maximum_fee=3),
            transfer_fee_b=TransferFee(basis_points=200, maximum_fee=10**9),
        )
        quote = compute_quote(state, 1_000_000, 0, mint_in=MINT_B)
        assert quote.transfer_fee_amount == 20_000 + 3

    def test_fee_consumes_whole_input(self):
        """Test an input eaten by the transfer fee quotes zero output."""
        state = tick_state(transfer_fee_a=TransferFee(basis_points=100, maximum_fee=10))
        quote = compute_quote(state, 1, 0.005)
        assert quote.amount_out == 0
        assert quote.min_amount_out == 0
        assert quote.fee_amount == 0
        assert quote.transfer_fee_amount == 1


class TestConcentratedPriceLimit:
    """Caller-supplied sqrt price limits."""

    def test_limit_not_reached(self):
        """Test a distant limit leaves the quote unchanged and is recorded."""
        limit = get_sqrt_price_at_tick(20)
        plain = compute_quote(tick_state(), 1_000_000, 0)
        quote = compute_quote(tick_state(), 1_000_000, 0, sqrt_price_limit_x64=limit)
        assert quote.amount_out == plain.amount_out
        assert quote.sqrt_price_limit_x64 == limit
        assert plain.sqrt_price_limit_x64 == 0

    def test_limit_reached(self):
        """Test input left over at the limit raises InsufficientLiquidity."""
        with pytest.raises(InsufficientLiquidity):
            compute_quote(tick_state(), 10**9, 0, sqrt_price_limit_x64=get_sqrt_price_at_tick(20))

    def test_limit_on_wrong_side(self):
        """Test a limit that does not bound the swap direction is rejected."""
        state = tick_state()
        with pytest.raises(ValueError):
            compute_quote(state, 1000, 0, sqrt_price_limit_x64=get_sqrt_price_at_tick(40))
        with pytest.raises(ValueError):
            compute_quote(state, 1000, 0, mint_in=MINT_B, sqrt_price_limit_x64=get_sqrt_price_at_tick(20))
        with pytest.raises(ValueError):
            compute_quote(state, 1000, 0, sqrt_price_limit_x64=state.sqrt_price_x64)
