import struct

import pytest
from solders.pubkey import Pubkey

from raydium_swap.pool_parser import (
    AMM_CONFIG_DISCRIMINATOR,
    POOL_STATE_DISCRIMINATOR,
    TICK_ARRAY_DISCRIMINATOR,
    TICK_ARRAY_LEN,
)

CLMM_POOL_LEN = 1544
AMM_CONFIG_LEN = 117
TICK_STATE_LEN = 168


def build_amm_v4_pool(
    base_vault: Pubkey,
    quote_vault: Pubkey,
    base_mint: Pubkey,
    quote_mint: Pubkey,
    swap_fee_numerator: int = 25,
    swap_fee_denominator: int = 10_000,
    base_need_take_pnl: int = 0,
    quote_need_take_pnl: int = 0,
) -> bytes:
    raw = bytearray(752)
    struct.pack_into("<QQQQ", raw, 176, swap_fee_numerator, swap_fee_denominator, base_need_take_pnl, quote_need_take_pnl)
    raw[336:368] = bytes(base_vault)
    raw[368:400] = bytes(quote_vault)
    raw[400:432] = bytes(base_mint)
    raw[432:464] = bytes(quote_mint)
    return bytes(raw)


def build_token_account(mint: Pubkey, owner: Pubkey, amount: int) -> bytes:
    raw = bytearray(165)
    raw[0:32] = bytes(mint)
    raw[32:64] = bytes(owner)
    struct.pack_into("<Q", raw, 64, amount)
    return bytes(raw)


def build_clmm_pool(
    amm_config: Pubkey,
    mint_0: Pubkey,
    mint_1: Pubkey,
    tick_spacing: int,
    liquidity: int,
    sqrt_price_x64: int,
    tick_current: int,
    vault_0: Pubkey = None,
    vault_1: Pubkey = None,
) -> bytes:
    raw = bytearray(CLMM_POOL_LEN)
    raw[0:8] = POOL_STATE_DISCRIMINATOR
    raw[9:41] = bytes(amm_config)
    raw[73:105] = bytes(mint_0)
    raw[105:137] = bytes(mint_1)
    raw[137:169] = bytes(vault_0 or Pubkey.new_unique())
    raw[169:201] = bytes(vault_1 or Pubkey.new_unique())
    raw[233] = 9
    raw[234] = 6
    struct.pack_into("<H", raw, 235, tick_spacing)
    raw[237:253] = liquidity.to_bytes(16, "little")
    raw[253:269] = sqrt_price_x64.to_bytes(16, "little")
    struct.pack_into("<i", raw, 269, tick_current)
    return bytes(raw)


def build_amm_config(trade_fee_rate: int) -> bytes:
    raw = bytearray(AMM_CONFIG_LEN)
    raw[0:8] = AMM_CONFIG_DISCRIMINATOR
    struct.pack_into("<I", raw, 47, trade_fee_rate)
    return bytes(raw)


def build_tick_array(pool_id: Pubkey, start_index: int, ticks=()) -> bytes:
    """ticks: iterable of (slot, tick, liquidity_net, liquidity_gross)."""
    raw = bytearray(TICK_ARRAY_LEN)
    raw[0:8] = TICK_ARRAY_DISCRIMINATOR
    raw[8:40] = bytes(pool_id)
    struct.pack_into("<i", raw, 40, start_index)
    for slot, tick, net, gross in ticks:
        offset = 44 + slot * TICK_STATE_LEN
        struct.pack_into("<i", raw, offset, tick)
        raw[offset + 4:offset + 20] = net.to_bytes(16, "little", signed=True)
        raw[offset + 20:offset + 36] = gross.to_bytes(16, "little")
    return bytes(raw)


def build_mint(decimals: int = 6, transfer_fee=None) -> bytes:
    """transfer_fee: ((epoch, maximum_fee, bps) older, (epoch, maximum_fee, bps) newer) for a Token-2022 mint."""
    raw = bytearray(82)
    raw[44] = decimals
    raw[45] = 1
    if transfer_fee is None:
        return bytes(raw)
    raw = raw + bytearray(165 - 82)
    raw += bytes([1])
    ext = bytearray(108)
    for offset, (epoch, maximum_fee, bps) in zip((72, 90), transfer_fee):
        struct.pack_into("<QQH", ext, offset, epoch, maximum_fee, bps)
    raw += struct.pack("<HH", 1, len(ext)) + ext
    return bytes(raw)


@pytest.fixture
def amm_v4_pool_bytes():
    return build_amm_v4_pool


@pytest.fixture
def token_account_bytes():
    return build_token_account


@pytest.fixture
def clmm_pool_bytes():
    return build_clmm_pool


@pytest.fixture
def amm_config_bytes():
    return build_amm_config


@pytest.fixture
def tick_array_bytes():
    return build_tick_array


@pytest.fixture
def mint_bytes():
    return build_mint
