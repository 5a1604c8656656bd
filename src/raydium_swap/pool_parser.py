from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Optional

from construct import (
    Array,
    Bytes,
    BytesInteger,
    ConstructError,
    GreedyBytes,
    Int8ul,
    Int16ul,
    Int32sl,
    Int32ul,
    Int64ul,
    Padding,
    Struct,
)
from solders.pubkey import Pubkey

from raydium_swap.consts import TICK_ARRAY_SIZE, TOKEN_ACCOUNT_LEN
from raydium_swap.errors import StateReadError
from raydium_swap.models import Tick, TickArray, TransferFee

PUBKEY = Bytes(32)
Int128ul = BytesInteger(16, signed=False, swapped=True)
Int128sl = BytesInteger(16, signed=True, swapped=True)


def anchor_discriminator(account_name: str) -> bytes:
    return hashlib.sha256(f"account:{account_name}".encode()).digest()[:8]


# Raydium Liquidity Pool V4 (AmmInfo), 752 bytes, no discriminator
LIQUIDITY_STATE_LAYOUT_V4 = Struct(
    "status" / Int64ul,
    "nonce" / Int64ul,
    "max_order" / Int64ul,
    "depth" / Int64ul,
    "base_decimal" / Int64ul,
    "quote_decimal" / Int64ul,
    "state" / Int64ul,
    "reset_flag" / Int64ul,
    "min_size" / Int64ul,
    "vol_max_cut_ratio" / Int64ul,
    "amount_wave_ratio" / Int64ul,
    "base_lot_size" / Int64ul,
    "quote_lot_size" / Int64ul,
    "min_price_multiplier" / Int64ul,
    "max_price_multiplier" / Int64ul,
    "system_decimal_value" / Int64ul,
    "min_separate_numerator" / Int64ul,
    "min_separate_denominator" / Int64ul,
    "trade_fee_numerator" / Int64ul,
    "trade_fee_denominator" / Int64ul,
    "pnl_numerator" / Int64ul,
    "pnl_denominator" / Int64ul,
    "swap_fee_numerator" / Int64ul,
    "swap_fee_denominator" / Int64ul,
    "base_need_take_pnl" / Int64ul,
    "quote_need_take_pnl" / Int64ul,
    "quote_total_pnl" / Int64ul,
    "base_total_pnl" / Int64ul,
    "pool_open_time" / Int64ul,
    "punish_pc_amount" / Int64ul,
    "punish_coin_amount" / Int64ul,
    "orderbook_to_init_time" / Int64ul,
    "swap_base_in_amount" / Int128ul,
    "swap_quote_out_amount" / Int128ul,
    "swap_base2quote_fee" / Int64ul,
    "swap_quote_in_amount" / Int128ul,
    "swap_base_out_amount" / Int128ul,
    "swap_quote2base_fee" / Int64ul,
    "base_vault" / PUBKEY,
    "quote_vault" / PUBKEY,
    "base_mint" / PUBKEY,
    "quote_mint" / PUBKEY,
    "lp_mint" / PUBKEY,
    "open_orders" / PUBKEY,
    "market_id" / PUBKEY,
    "market_program_id" / PUBKEY,
    "target_orders" / PUBKEY,
    "withdraw_queue" / PUBKEY,
    "lp_vault" / PUBKEY,
    "owner" / PUBKEY,
    "lp_reserve" / Int64ul,
    "padding" / Array(3, Int64ul),
)
LIQUIDITY_STATE_V4_LEN = LIQUIDITY_STATE_LAYOUT_V4.sizeof()

SPL_ACCOUNT_LAYOUT = Struct(
    "mint" / PUBKEY,
    "owner" / PUBKEY,
    "amount" / Int64ul,
    "rest" / Bytes(TOKEN_ACCOUNT_LEN - 72),
)

# Raydium CLMM PoolState, only the fields up to tick_current are decoded
CLMM_POOL_STATE_LAYOUT = Struct(
    "discriminator" / Bytes(8),
    "bump" / Int8ul,
    "amm_config" / PUBKEY,
    "owner" / PUBKEY,
    "token_mint_0" / PUBKEY,
    "token_mint_1" / PUBKEY,
    "token_vault_0" / PUBKEY,
    "token_vault_1" / PUBKEY,
    "observation_key" / PUBKEY,
    "mint_decimals_0" / Int8ul,
    "mint_decimals_1" / Int8ul,
    "tick_spacing" / Int16ul,
    "liquidity" / Int128ul,
    "sqrt_price_x64" / Int128ul,
    "tick_current" / Int32sl,
    "rest" / GreedyBytes,
)

CLMM_AMM_CONFIG_LAYOUT = Struct(
    "discriminator" / Bytes(8),
    "bump" / Int8ul,
    "index" / Int16ul,
    "owner" / PUBKEY,
    "protocol_fee_rate" / Int32ul,
    "trade_fee_rate" / Int32ul,
    "tick_spacing" / Int16ul,
    "fund_fee_rate" / Int32ul,
    "padding_u32" / Int32ul,
    "fund_owner" / PUBKEY,
    "padding" / Array(3, Int64ul),
)

TICK_STATE_LAYOUT = Struct(
    "tick" / Int32sl,
    "liquidity_net" / Int128sl,
    "liquidity_gross" / Int128ul,
    "fee_growth_outside_0_x64" / Int128ul,
    "fee_growth_outside_1_x64" / Int128ul,
    "reward_growths_outside_x64" / Array(3, Int128ul),
    Padding(4 * 13),
)

TICK_ARRAY_LAYOUT = Struct(
    "discriminator" / Bytes(8),
    "pool_id" / PUBKEY,
    "start_tick_index" / Int32sl,
    "ticks" / Array(TICK_ARRAY_SIZE, TICK_STATE_LAYOUT),
    "initialized_tick_count" / Int8ul,
    "recent_epoch" / Int64ul,
    Padding(107),
)
TICK_ARRAY_LEN = TICK_ARRAY_LAYOUT.sizeof()

# Token-2022 mint extensions: base Mint (82 bytes) padded to the token account
# length, one account-type byte, then (type u16, length u16) TLV entries
MINT_LEN = 82
ACCOUNT_TYPE_MINT = 1
EXTENSION_UNINITIALIZED = 0
EXTENSION_TRANSFER_FEE_CONFIG = 1

TLV_HEADER = Struct(
    "type" / Int16ul,
    "length" / Int16ul,
)
TLV_HEADER_LEN = TLV_HEADER.sizeof()

TRANSFER_FEE_LAYOUT = Struct(
    "epoch" / Int64ul,
    "maximum_fee" / Int64ul,
    "transfer_fee_basis_points" / Int16ul,
)

TRANSFER_FEE_CONFIG_LAYOUT = Struct(
    "transfer_fee_config_authority" / PUBKEY,
    "withdraw_withheld_authority" / PUBKEY,
    "withheld_amount" / Int64ul,
    "older_transfer_fee" / TRANSFER_FEE_LAYOUT,
    "newer_transfer_fee" / TRANSFER_FEE_LAYOUT,
)

POOL_STATE_DISCRIMINATOR = anchor_discriminator("PoolState")
AMM_CONFIG_DISCRIMINATOR = anchor_discriminator("AmmConfig")
TICK_ARRAY_DISCRIMINATOR = anchor_discriminator("TickArrayState")


@dataclass
class AmmV4PoolState:
    status: int
    base_decimal: int
    quote_decimal: int
    swap_fee_numerator: int
    swap_fee_denominator: int
    base_need_take_pnl: int
    quote_need_take_pnl: int
    base_vault: Pubkey
    quote_vault: Pubkey
    base_mint: Pubkey
    quote_mint: Pubkey
    lp_mint: Pubkey
    open_orders: Pubkey
    market_id: Pubkey
    market_program_id: Pubkey
    target_orders: Pubkey
    owner: Pubkey


@dataclass
class ClmmPoolState:
    amm_config: Pubkey
    token_mint_0: Pubkey
    token_mint_1: Pubkey
    token_vault_0: Pubkey
    token_vault_1: Pubkey
    observation_key: Pubkey
    mint_decimals_0: int
    mint_decimals_1: int
    tick_spacing: int
    liquidity: int
    sqrt_price_x64: int
    tick_current: int


@dataclass
class TransferFeeConfig:
    older_epoch: int
    older: TransferFee
    newer_epoch: int
    newer: TransferFee

    def for_epoch(self, epoch: int) -> TransferFee:
        return self.newer if epoch >= self.newer_epoch else self.older


def _parse(layout, raw: bytes, what: str, address: Optional[str]):
    try:
        return layout.parse(raw)
    except ConstructError as e:
        raise StateReadError(f"{what} layout mismatch at {address}: {e}", address=address) from e


def parse_amm_v4_pool(raw: bytes, address: Optional[str] = None) -> AmmV4PoolState:
    if len(raw) != LIQUIDITY_STATE_V4_LEN:
        raise StateReadError(
            f"Account {address} is {len(raw)} bytes, expected {LIQUIDITY_STATE_V4_LEN} for an AMM v4 pool",
            address=address,
        )
    parsed = _parse(LIQUIDITY_STATE_LAYOUT_V4, raw, "AMM v4 pool", address)
    return AmmV4PoolState(
        status=int(parsed.status),
        base_decimal=int(parsed.base_decimal),
        quote_decimal=int(parsed.quote_decimal),
        swap_fee_numerator=int(parsed.swap_fee_numerator),
        swap_fee_denominator=int(parsed.swap_fee_denominator),
        base_need_take_pnl=int(parsed.base_need_take_pnl),
        quote_need_take_pnl=int(parsed.quote_need_take_pnl),
        base_vault=Pubkey.from_bytes(parsed.base_vault),
        quote_vault=Pubkey.from_bytes(parsed.quote_vault),
        base_mint=Pubkey.from_bytes(parsed.base_mint),
        quote_mint=Pubkey.from_bytes(parsed.quote_mint),
        lp_mint=Pubkey.from_bytes(parsed.lp_mint),
        open_orders=Pubkey.from_bytes(parsed.open_orders),
        market_id=Pubkey.from_bytes(parsed.market_id),
        market_program_id=Pubkey.from_bytes(parsed.market_program_id),
        target_orders=Pubkey.from_bytes(parsed.target_orders),
        owner=Pubkey.from_bytes(parsed.owner),
    )


def parse_token_account_amount(raw: bytes, address: Optional[str] = None) -> int:
    # Token-2022 accounts carry extensions after the base 165 bytes
    if len(raw) < TOKEN_ACCOUNT_LEN:
        raise StateReadError(f"Account {address} is not a token account ({len(raw)} bytes)", address=address)
    parsed = _parse(SPL_ACCOUNT_LAYOUT, raw[:TOKEN_ACCOUNT_LEN], "token account", address)
    return int(parsed.amount)


def _check_discriminator(raw: bytes, expected: bytes, what: str, address: Optional[str]):
    if raw[:8] != expected:
        raise StateReadError(f"Account {address} is not a {what}", address=address)


def parse_clmm_pool(raw: bytes, address: Optional[str] = None) -> ClmmPoolState:
    _check_discriminator(raw, POOL_STATE_DISCRIMINATOR, "CLMM pool", address)
    parsed = _parse(CLMM_POOL_STATE_LAYOUT, raw, "CLMM pool", address)
    return ClmmPoolState(
        amm_config=Pubkey.from_bytes(parsed.amm_config),
        token_mint_0=Pubkey.from_bytes(parsed.token_mint_0),
        token_mint_1=Pubkey.from_bytes(parsed.token_mint_1),
        token_vault_0=Pubkey.from_bytes(parsed.token_vault_0),
        token_vault_1=Pubkey.from_bytes(parsed.token_vault_1),
        observation_key=Pubkey.from_bytes(parsed.observation_key),
        mint_decimals_0=int(parsed.mint_decimals_0),
        mint_decimals_1=int(parsed.mint_decimals_1),
        tick_spacing=int(parsed.tick_spacing),
        liquidity=int(parsed.liquidity),
        sqrt_price_x64=int(parsed.sqrt_price_x64),
        tick_current=int(parsed.tick_current),
    )


def parse_amm_config_fee_rate(raw: bytes, address: Optional[str] = None) -> int:
    _check_discriminator(raw, AMM_CONFIG_DISCRIMINATOR, "CLMM amm config", address)
    return int(_parse(CLMM_AMM_CONFIG_LAYOUT, raw, "CLMM amm config", address).trade_fee_rate)


def parse_tick_array(raw: bytes, address: Optional[Pubkey] = None) -> TickArray:
    """
    Decode a TickArrayState, keeping only initialized ticks in ascending order.
    """
    label = str(address) if address is not None else None
    _check_discriminator(raw, TICK_ARRAY_DISCRIMINATOR, "CLMM tick array", label)
    if len(raw) < TICK_ARRAY_LEN:
        raise StateReadError(f"Tick array {label} is truncated ({len(raw)} bytes)", address=label)
    parsed = _parse(TICK_ARRAY_LAYOUT, raw[:TICK_ARRAY_LEN], "CLMM tick array", label)
    ticks = tuple(
        Tick(tick=int(t.tick), liquidity_net=int(t.liquidity_net), liquidity_gross=int(t.liquidity_gross))
        for t in parsed.ticks
        if t.liquidity_gross != 0
    )
    return TickArray(
        start_tick_index=int(parsed.start_tick_index),
        ticks=tuple(sorted(ticks, key=lambda t: t.tick)),
        address=address,
    )


def parse_transfer_fee_config(raw: bytes, address: Optional[str] = None) -> Optional[TransferFeeConfig]:
    """
    TransferFeeConfig extension of a Token-2022 mint, or None when the mint has none.
    """
    if len(raw) < MINT_LEN:
        raise StateReadError(f"Account {address} is not a mint ({len(raw)} bytes)", address=address)
    if len(raw) <= TOKEN_ACCOUNT_LEN:
        return None
    if raw[TOKEN_ACCOUNT_LEN] != ACCOUNT_TYPE_MINT:
        raise StateReadError(f"Account {address} has account type {raw[TOKEN_ACCOUNT_LEN]}, expected a mint", address=address)

    offset = TOKEN_ACCOUNT_LEN + 1
    while offset + TLV_HEADER_LEN <= len(raw):
        header = _parse(TLV_HEADER, raw[offset:offset + TLV_HEADER_LEN], "mint extension header", address)
        if header.type == EXTENSION_UNINITIALIZED:
            break
        start = offset + TLV_HEADER_LEN
        if header.type == EXTENSION_TRANSFER_FEE_CONFIG:
            parsed = _parse(TRANSFER_FEE_CONFIG_LAYOUT, raw[start:start + header.length], "transfer fee config", address)
            older, newer = parsed.older_transfer_fee, parsed.newer_transfer_fee
            return TransferFeeConfig(
                older_epoch=int(older.epoch),
                older=TransferFee(int(older.transfer_fee_basis_points), int(older.maximum_fee)),
                newer_epoch=int(newer.epoch),
                newer=TransferFee(int(newer.transfer_fee_basis_points), int(newer.maximum_fee)),
            )
        offset = start + header.length
    return None
