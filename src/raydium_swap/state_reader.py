"""
On-chain state reader: turns a pool address into a ReserveState or TickState.

Address and layout problems raise StateReadError. Transport failures from the
RPC client propagate unchanged so callers can tell bad input from retry-later.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from raydium_swap.clmm_math import sqrt_price_x64_to_price, tick_array_start_index
from raydium_swap.consts import (
    RAYDIUM_AMM_V4,
    RAYDIUM_CLMM,
    TICK_ARRAY_BITMAP_SEED,
    TICK_ARRAY_SEED,
    TICK_ARRAY_SIZE,
    TOKEN_2022_PROGRAM,
    TOKEN_PROGRAM,
)
from raydium_swap.errors import StateReadError
from raydium_swap.models import PoolState, PoolType, ReserveState, TickArray, TickState
from raydium_swap.pool_parser import (
    parse_amm_config_fee_rate,
    parse_amm_v4_pool,
    parse_clmm_pool,
    parse_tick_array,
    parse_token_account_amount,
    parse_transfer_fee_config,
)

logger = logging.getLogger(__name__)

TOKEN_PROGRAMS = (TOKEN_PROGRAM, TOKEN_2022_PROGRAM)


def get_tick_array_address(pool_id: Pubkey, start_index: int, program_id: Pubkey = RAYDIUM_CLMM) -> Pubkey:
    seeds = [TICK_ARRAY_SEED, bytes(pool_id), start_index.to_bytes(4, "big", signed=True)]
    return Pubkey.find_program_address(seeds, program_id)[0]


def get_tick_array_bitmap_address(pool_id: Pubkey, program_id: Pubkey = RAYDIUM_CLMM) -> Pubkey:
    return Pubkey.find_program_address([TICK_ARRAY_BITMAP_SEED, bytes(pool_id)], program_id)[0]


def _check_owner(address: Pubkey, owner: Pubkey, expected: Sequence[Pubkey], what: str):
    if owner not in expected:
        raise StateReadError(
            f"{what} {address} is owned by {owner}, expected {', '.join(str(e) for e in expected)}",
            address=str(address),
        )


async def _get_account_data(rpc: AsyncClient, address: Pubkey, expected_owners: Sequence[Pubkey], what: str) -> bytes:
    resp = await rpc.get_account_info(address, commitment=Confirmed)
    account = resp.value
    if account is None:
        raise StateReadError(f"{what} {address} not found", address=str(address))
    _check_owner(address, account.owner, expected_owners, what)
    return bytes(account.data)


async def read_reserve_state(rpc: AsyncClient, pool_id: Pubkey, program_id: Pubkey = RAYDIUM_AMM_V4) -> ReserveState:
    """
    Read an AMM v4 pool and both of its vaults.

    Reserves exclude the PnL the pool still owes to the protocol.
    """
    raw = await _get_account_data(rpc, pool_id, (program_id,), "AMM v4 pool")
    pool = parse_amm_v4_pool(raw, address=str(pool_id))

    resp = await rpc.get_multiple_accounts([pool.base_vault, pool.quote_vault], commitment=Confirmed)
    vaults = resp.value
    amounts = []
    for vault, account in zip((pool.base_vault, pool.quote_vault), vaults):
        if account is None:
            raise StateReadError(f"Vault {vault} of pool {pool_id} not found", address=str(vault))
        _check_owner(vault, account.owner, TOKEN_PROGRAMS, "Vault")
        amounts.append(parse_token_account_amount(bytes(account.data), address=str(vault)))

    reserve_a = max(0, amounts[0] - pool.base_need_take_pnl)
    reserve_b = max(0, amounts[1] - pool.quote_need_take_pnl)
    logger.debug(
        f"AMM v4 {pool_id}: reserves base={reserve_a} quote={reserve_b} "
        f"fee={pool.swap_fee_numerator}/{pool.swap_fee_denominator}"
    )
    try:
        return ReserveState(
            pool_id=pool_id,
            mint_a=pool.base_mint,
            mint_b=pool.quote_mint,
            reserve_a=reserve_a,
            reserve_b=reserve_b,
            fee_numerator=pool.swap_fee_numerator,
            fee_denominator=pool.swap_fee_denominator,
        )
    except ValueError as e:
        raise StateReadError(f"Pool {pool_id} has invalid fee settings: {e}", address=str(pool_id)) from e


def _window_start_indices(tick_current: int, tick_spacing: int, zero_for_one: bool, window: int) -> List[int]:
    span = TICK_ARRAY_SIZE * tick_spacing
    first = tick_array_start_index(tick_current, tick_spacing)
    step = -span if zero_for_one else span
    return sorted(first + i * step for i in range(window + 1))


async def read_tick_state(
    rpc: AsyncClient,
    pool_id: Pubkey,
    zero_for_one: bool = True,
    window: int = 5,
    program_id: Pubkey = RAYDIUM_CLMM,
) -> TickState:
    """
    Read a CLMM pool, its fee config, both mints and the tick arrays the swap will walk.

    Loads the array holding the current tick plus `window` arrays in the swap
    direction. Arrays that do not exist on-chain are kept as empty entries.
    Token-2022 mints with a TransferFeeConfig get the fee in force this epoch.
    """
    if window < 0:
        raise ValueError(f"window must be non-negative, got {window}")
    raw = await _get_account_data(rpc, pool_id, (program_id,), "CLMM pool")
    pool = parse_clmm_pool(raw, address=str(pool_id))
    if pool.tick_spacing <= 0:
        raise StateReadError(f"Pool {pool_id} has tick spacing {pool.tick_spacing}", address=str(pool_id))

    starts = _window_start_indices(pool.tick_current, pool.tick_spacing, zero_for_one, window)
    addresses = [get_tick_array_address(pool_id, s, program_id) for s in starts]
    mints = (pool.token_mint_0, pool.token_mint_1)
    resp = await rpc.get_multiple_accounts([pool.amm_config, *mints] + addresses, commitment=Confirmed)
    config_account, mint_0_account, mint_1_account, *array_accounts = resp.value

    if config_account is None:
        raise StateReadError(f"AMM config {pool.amm_config} not found", address=str(pool.amm_config))
    _check_owner(pool.amm_config, config_account.owner, (program_id,), "AMM config")
    fee_rate = parse_amm_config_fee_rate(bytes(config_account.data), address=str(pool.amm_config))

    fee_configs = []
    for mint, account in zip(mints, (mint_0_account, mint_1_account)):
        if account is None:
            raise StateReadError(f"Mint {mint} of pool {pool_id} not found", address=str(mint))
        _check_owner(mint, account.owner, TOKEN_PROGRAMS, "Mint")
        if account.owner == TOKEN_2022_PROGRAM:
            fee_configs.append(parse_transfer_fee_config(bytes(account.data), address=str(mint)))
        else:
            fee_configs.append(None)

    transfer_fees = [None, None]
    if any(c is not None for c in fee_configs):
        epoch = (await rpc.get_epoch_info(commitment=Confirmed)).value.epoch
        transfer_fees = [c.for_epoch(epoch) if c is not None else None for c in fee_configs]
        logger.debug(f"CLMM {pool_id}: transfer fees at epoch {epoch}: {transfer_fees}")

    tick_arrays = []
    for start, address, account in zip(starts, addresses, array_accounts):
        if account is None:
            tick_arrays.append(TickArray(start_tick_index=start))
            continue
        _check_owner(address, account.owner, (program_id,), "Tick array")
        array = parse_tick_array(bytes(account.data), address=address)
        if array.start_tick_index != start:
            raise StateReadError(
                f"Tick array {address} starts at {array.start_tick_index}, expected {start}",
                address=str(address),
            )
        tick_arrays.append(array)

    logger.debug(
        f"CLMM {pool_id}: price={sqrt_price_x64_to_price(pool.sqrt_price_x64, pool.mint_decimals_0, pool.mint_decimals_1):.6g} "
        f"tick={pool.tick_current} liquidity={pool.liquidity} fee_rate={fee_rate} "
        f"arrays={[a.start_tick_index for a in tick_arrays if a.address is not None]}"
    )
    return TickState(
        pool_id=pool_id,
        mint_a=pool.token_mint_0,
        mint_b=pool.token_mint_1,
        sqrt_price_x64=pool.sqrt_price_x64,
        tick_current=pool.tick_current,
        liquidity=pool.liquidity,
        tick_spacing=pool.tick_spacing,
        trade_fee_rate=fee_rate,
        tick_arrays=tuple(tick_arrays),
        decimals_a=pool.mint_decimals_0,
        decimals_b=pool.mint_decimals_1,
        transfer_fee_a=transfer_fees[0],
        transfer_fee_b=transfer_fees[1],
    )


async def read_pool_state(rpc: AsyncClient, pool_id: Pubkey, pool_type: PoolType, **kwargs) -> PoolState:
    if pool_type is PoolType.STANDARD:
        return await read_reserve_state(rpc, pool_id, **kwargs)
    if pool_type is PoolType.CONCENTRATED:
        return await read_tick_state(rpc, pool_id, **kwargs)
    raise TypeError(f"Unsupported pool type: {pool_type!r}")


def fetch_tick_array_addresses(state: TickState, zero_for_one: bool, limit: Optional[int] = None) -> List[Pubkey]:
    """
    Existing tick arrays from the current one onward, in walk order.
    """
    current = tick_array_start_index(state.tick_current, state.tick_spacing)
    if zero_for_one:
        arrays = [a for a in reversed(state.tick_arrays) if a.start_tick_index <= current]
    else:
        arrays = [a for a in state.tick_arrays if a.start_tick_index >= current]
    addresses = [a.address for a in arrays if a.address is not None]
    return addresses[:limit] if limit is not None else addresses
