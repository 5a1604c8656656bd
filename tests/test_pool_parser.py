import struct

import pytest
from solders.pubkey import Pubkey

from raydium_swap.errors import StateReadError
from raydium_swap.models import TransferFee
from raydium_swap.pool_parser import (
    LIQUIDITY_STATE_V4_LEN,
    TICK_ARRAY_LEN,
    anchor_discriminator,
    parse_amm_config_fee_rate,
    parse_amm_v4_pool,
    parse_clmm_pool,
    parse_tick_array,
    parse_token_account_amount,
    parse_transfer_fee_config,
)


class TestAmmV4Layout:
    """AMM v4 LiquidityStateV4 decoding."""

    def test_layout_size(self):
        """Test the layout matches the 752-byte account."""
        assert LIQUIDITY_STATE_V4_LEN == 752

    def test_parse_fields(self, amm_v4_pool_bytes):
        """Test fee, pnl, vault and mint offsets."""
        base_vault, quote_vault = Pubkey.new_unique(), Pubkey.new_unique()
        base_mint, quote_mint = Pubkey.new_unique(), Pubkey.new_unique()
        raw = amm_v4_pool_bytes(
            base_vault, quote_vault, base_mint, quote_mint,
            swap_fee_numerator=25, swap_fee_denominator=10_000,
            base_need_take_pnl=7, quote_need_take_pnl=11,
        )
        pool = parse_amm_v4_pool(raw, address="pool")
        assert pool.swap_fee_numerator == 25
        assert pool.swap_fee_denominator == 10_000
        assert pool.base_need_take_pnl == 7
        assert pool.quote_need_take_pnl == 11
        assert pool.base_vault == base_vault
        assert pool.quote_vault == quote_vault
        assert pool.base_mint == base_mint
        assert pool.quote_mint == quote_mint

    def test_wrong_size(self):
        """Test an account of the wrong size is rejected."""
        with pytest.raises(StateReadError) as exc_info:
            parse_amm_v4_pool(b"\x00" * 100, address="pool")
        assert exc_info.value.address == "pool"


class TestTokenAccount:
    """SPL token account amount decoding."""

    def test_amount(self, token_account_bytes):
        """Test the amount sits at offset 64."""
        raw = token_account_bytes(Pubkey.new_unique(), Pubkey.new_unique(), 123_456_789)
        assert parse_token_account_amount(raw) == 123_456_789

    def test_token_2022_extensions_ignored(self, token_account_bytes):
        """Test trailing extension bytes do not affect the amount."""
        raw = token_account_bytes(Pubkey.new_unique(), Pubkey.new_unique(), 42) + b"\x01" * 40
        assert parse_token_account_amount(raw) == 42

    def test_truncated(self):
        """Test a short account is not a token account."""
        with pytest.raises(StateReadError):
            parse_token_account_amount(b"\x00" * 64)


class TestClmmLayouts:
    """CLMM pool, config and tick array decoding."""

    def test_discriminator(self):
        """Test discriminators are 8 bytes and distinct per account type."""
        assert len(anchor_discriminator("PoolState")) == 8
        assert anchor_discriminator("PoolState") != anchor_discriminator("TickArrayState")

    def test_parse_pool(self, clmm_pool_bytes):
        """Test price, tick and liquidity offsets."""
        config, mint_0, mint_1 = Pubkey.new_unique(), Pubkey.new_unique(), Pubkey.new_unique()
        raw = clmm_pool_bytes(config, mint_0, mint_1, 10, 10**15, 2**64 + 12345, -887)
        pool = parse_clmm_pool(raw)
        assert pool.amm_config == config
        assert pool.token_mint_0 == mint_0
        assert pool.token_mint_1 == mint_1
        assert pool.mint_decimals_0 == 9
        assert pool.mint_decimals_1 == 6
        assert pool.tick_spacing == 10
        assert pool.liquidity == 10**15
        assert pool.sqrt_price_x64 == 2**64 + 12345
        assert pool.tick_current == -887

    def test_pool_wrong_discriminator(self, clmm_pool_bytes):
        """Test another account type is rejected."""
        raw = bytearray(clmm_pool_bytes(Pubkey.new_unique(), Pubkey.new_unique(), Pubkey.new_unique(), 1, 0, 2**64, 0))
        raw[0] ^= 0xFF
        with pytest.raises(StateReadError):
            parse_clmm_pool(bytes(raw), address="x")

    def test_amm_config_fee_rate(self, amm_config_bytes):
        """Test the trade fee rate offset."""
        assert parse_amm_config_fee_rate(amm_config_bytes(2500)) == 2500

    def test_tick_array(self, tick_array_bytes):
        """Test only initialized ticks are kept, sorted, with signed net liquidity."""
        pool_id = Pubkey.new_unique()
        address = Pubkey.new_unique()
        raw = tick_array_bytes(
            pool_id,
            -60,
            ticks=[(50, -10, 5 * 10**11, 5 * 10**11), (5, -55, -7, 7)],
        )
        assert len(raw) == TICK_ARRAY_LEN
        array = parse_tick_array(raw, address=address)
        assert array.start_tick_index == -60
        assert array.address == address
        assert [t.tick for t in array.ticks] == [-55, -10]
        assert array.ticks[0].liquidity_net == -7
        assert array.ticks[1].liquidity_net == 5 * 10**11

    def test_tick_array_truncated(self, tick_array_bytes):
        """Test a short tick array is rejected."""
        raw = tick_array_bytes(Pubkey.new_unique(), 0)[:1000]
        with pytest.raises(StateReadError):
            parse_tick_array(raw)


class TestTransferFeeConfig:
    """Token-2022 TransferFeeConfig extension decoding."""

    def test_plain_mint(self, mint_bytes):
        """Test a mint without extensions has no transfer fee."""
        assert parse_transfer_fee_config(mint_bytes(6)) is None

    def test_epoch_selection(self, mint_bytes):
        """Test the newer fee applies from its epoch onward."""
        config = parse_transfer_fee_config(mint_bytes(6, transfer_fee=((0, 10**9, 50), (20, 5000, 100))))
        assert config.older_epoch == 0
        assert config.newer_epoch == 20
        assert config.for_epoch(19) == TransferFee(basis_points=50, maximum_fee=10**9)
        assert config.for_epoch(20) == TransferFee(basis_points=100, maximum_fee=5000)

    def test_skips_other_extensions(self, mint_bytes):
        """Test extensions ahead of the fee config are stepped over."""
        raw = mint_bytes(6, transfer_fee=((0, 7, 25), (0, 7, 25)))
        other = struct.pack("<HH", 18, 4) + b"\x01\x02\x03\x04"
        raw = raw[:166] + other + raw[166:]
        assert parse_transfer_fee_config(raw).for_epoch(0) == TransferFee(basis_points=25, maximum_fee=7)

    def test_stops_at_uninitialized_entry(self, mint_bytes):
        """Test zeroed TLV space means no further extensions."""
        raw = mint_bytes(6) + bytes(165 - 82) + b"\x01" + bytes(8)
        assert parse_transfer_fee_config(raw) is None

    def test_not_a_mint(self, mint_bytes):
        """Test an extended account that is not a mint is rejected."""
        raw = bytearray(mint_bytes(6, transfer_fee=((0, 1, 1), (0, 1, 1))))
        raw[165] = 2
        with pytest.raises(StateReadError):
            parse_transfer_fee_config(bytes(raw))

    def test_truncated(self, mint_bytes):
        """Test a short mint or a cut-off extension is rejected."""
        with pytest.raises(StateReadError):
            parse_transfer_fee_config(b"\x00" * 40)
        raw = mint_bytes(6, transfer_fee=((0, 1, 1), (0, 1, 1)))
        with pytest.raises(StateReadError):
            parse_transfer_fee_config(raw[:-10])


class TestTransferFee:
    """Transfer fee arithmetic."""

    def test_rounds_up_and_caps(self):
        """Test the fee is ceil(amount * bps / 10000) capped at maximum_fee."""
        fee = TransferFee(basis_points=100, maximum_fee=5000)
        assert fee.calculate(1) == 1
        assert fee.calculate(1000) == 10
        assert fee.calculate(1001) == 11
        assert fee.calculate(10**9) == 5000

    def test_zero(self):
        """Test zero bps or a zero amount pays nothing."""
        assert TransferFee(basis_points=0, maximum_fee=100).calculate(10**6) == 0
        assert TransferFee(basis_points=100, maximum_fee=100).calculate(0) == 0
