"""
Swap assembler: turns pool keys and a quote into an ordered, immutable SwapPlan.

build_swap_plan is pure; it never talks to the network. The async helpers
below only look up which user token accounts already exist.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set, Tuple

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.message import Message
from solders.pubkey import Pubkey

from raydium_swap import ix_builder
from raydium_swap.clmm_math import U64_MAX
from raydium_swap.consts import MAX_TX_ACCOUNTS, PACKET_DATA_SIZE, SOL_MINT, TOKEN_PROGRAM
from raydium_swap.errors import MissingPoolKeys, PlanTooLarge, StalePoolKeys, UnsupportedMintPair
from raydium_swap.models import (
    ComputeBudget,
    ConcentratedPoolKeys,
    OperationKind,
    PlanOperation,
    PoolKeys,
    PoolState,
    ReserveState,
    StandardPoolKeys,
    SwapPlan,
    TickState,
)

logger = logging.getLogger(__name__)

SIGNATURE_LEN = 64


def _token_programs(keys: PoolKeys) -> Tuple[Pubkey, Pubkey]:
    if isinstance(keys, ConcentratedPoolKeys):
        return keys.mint_program_a or TOKEN_PROGRAM, keys.mint_program_b or TOKEN_PROGRAM
    return TOKEN_PROGRAM, TOKEN_PROGRAM


def _check_keys(keys: PoolKeys):
    if isinstance(keys, StandardPoolKeys):
        return
    if isinstance(keys, ConcentratedPoolKeys):
        if not keys.tick_arrays:
            raise MissingPoolKeys(f"Concentrated pool {keys.id} has no tick array addresses")
        return
    raise MissingPoolKeys(f"Unsupported pool keys: {type(keys).__name__}")


def _check_mints(keys: PoolKeys, mint_in: Pubkey, mint_out: Pubkey) -> bool:
    """Returns True when mint_in is side A."""
    if mint_in == keys.mint_a and mint_out == keys.mint_b:
        return True
    if mint_in == keys.mint_b and mint_out == keys.mint_a:
        return False
    raise UnsupportedMintPair(
        f"Pool {keys.id} trades {keys.mint_a}/{keys.mint_b}, not {mint_in}->{mint_out}",
        mint_in=str(mint_in),
        mint_out=str(mint_out),
    )


def _check_fresh(keys: PoolKeys, state: PoolState):
    expected = StandardPoolKeys if isinstance(state, ReserveState) else ConcentratedPoolKeys
    if not isinstance(keys, expected):
        raise StalePoolKeys(f"Pool keys for {keys.id} are {type(keys).__name__}, pool state is {type(state).__name__}")
    if state.pool_id != keys.id or state.mint_a != keys.mint_a or state.mint_b != keys.mint_b:
        raise StalePoolKeys(f"Pool keys for {keys.id} do not match the pool state of {state.pool_id}")
    if isinstance(state, TickState):
        known = {a.address for a in state.tick_arrays if a.address is not None}
        unknown = [str(a) for a in keys.tick_arrays if a not in known]
        if unknown:
            raise StalePoolKeys(f"Tick arrays {unknown} are not in the loaded pool state of {keys.id}")


def user_token_accounts(keys: PoolKeys, owner: Pubkey, mint_in: Pubkey, mint_out: Pubkey) -> Tuple[Pubkey, Pubkey]:
    """
    Associated token accounts (source, destination) for this swap.
    """
    a_in = _check_mints(keys, mint_in, mint_out)
    program_a, program_b = _token_programs(keys)
    program_in, program_out = (program_a, program_b) if a_in else (program_b, program_a)
    return (
        ix_builder.get_associated_token_address(owner, mint_in, program_in),
        ix_builder.get_associated_token_address(owner, mint_out, program_out),
    )


def check_plan_size(plan: SwapPlan):
    message = Message(plan.instructions, plan.payer)
    num_signers = message.header.num_required_signatures
    # One-byte signature count prefix
    size = 1 + SIGNATURE_LEN * num_signers + len(bytes(message))
    if size > PACKET_DATA_SIZE:
        raise PlanTooLarge(f"Swap transaction is {size} bytes, limit is {PACKET_DATA_SIZE}", size=size, limit=PACKET_DATA_SIZE)
    num_accounts = len(message.account_keys)
    if num_accounts > MAX_TX_ACCOUNTS:
        raise PlanTooLarge(
            f"Swap transaction references {num_accounts} accounts, limit is {MAX_TX_ACCOUNTS}",
            size=num_accounts,
            limit=MAX_TX_ACCOUNTS,
        )


def build_swap_plan(
    keys: Optional[PoolKeys],
    owner: Pubkey,
    mint_in: Pubkey,
    mint_out: Pubkey,
    amount_in: int,
    min_amount_out: int,
    existing_accounts: Iterable[Pubkey] = (),
    compute_budget: Optional[ComputeBudget] = None,
    pool_state: Optional[PoolState] = None,
    wrap_native: bool = True,
    payer: Optional[Pubkey] = None,
    sqrt_price_limit_x64: int = 0,
) -> SwapPlan:
    """
    Build the ordered operations for one exact-input swap.

    Order: compute budget, account creation, wrap, swap, unwrap. The wrapped
    SOL account is only closed afterwards if this plan created it.
    sqrt_price_limit_x64 is forwarded to CLMM swaps; 0 means no limit.
    """
    if keys is None:
        raise MissingPoolKeys("No pool keys supplied")
    _check_keys(keys)
    zero_for_one = _check_mints(keys, mint_in, mint_out)
    if pool_state is not None:
        _check_fresh(keys, pool_state)
    if amount_in <= 0:
        raise ValueError(f"amount_in must be positive, got {amount_in}")
    if min_amount_out < 0:
        raise ValueError(f"min_amount_out must be non-negative, got {min_amount_out}")
    for name, value in (("amount_in", amount_in), ("min_amount_out", min_amount_out)):
        if value > U64_MAX:
            raise ValueError(f"{name} {value} does not fit in a u64")
    if sqrt_price_limit_x64 and isinstance(keys, StandardPoolKeys):
        raise ValueError("sqrt_price_limit_x64 is only supported for concentrated pools")

    payer = payer or owner
    existing: Set[Pubkey] = set(existing_accounts)
    source, destination = user_token_accounts(keys, owner, mint_in, mint_out)
    program_a, program_b = _token_programs(keys)
    program_in, program_out = (program_a, program_b) if zero_for_one else (program_b, program_a)

    operations: List[PlanOperation] = []
    budget_ixs = ix_builder.compute_budget_ixs(compute_budget)
    if budget_ixs:
        operations.append(PlanOperation(OperationKind.COMPUTE_BUDGET, tuple(budget_ixs), "compute budget"))

    created: Set[Pubkey] = set()
    for account, mint, program in ((source, mint_in, program_in), (destination, mint_out, program_out)):
        if account in existing:
            continue
        operations.append(
            PlanOperation(
                OperationKind.CREATE_ACCOUNT,
                (ix_builder.create_ata_idempotent_ix(payer, owner, mint, program),),
                f"create token account {account} for {mint}",
            )
        )
        created.add(account)

    native_in = wrap_native and mint_in == SOL_MINT
    native_out = wrap_native and mint_out == SOL_MINT
    if native_in:
        operations.append(
            PlanOperation(
                OperationKind.WRAP_NATIVE,
                tuple(ix_builder.wrap_native_ixs(owner, source, amount_in)),
                f"wrap {amount_in} lamports",
            )
        )

    if isinstance(keys, StandardPoolKeys):
        swap_ix = ix_builder.build_amm_v4_swap_ix(keys, owner, source, destination, amount_in, min_amount_out)
    else:
        swap_ix = ix_builder.build_clmm_swap_v2_ix(
            keys, owner, source, destination, zero_for_one, amount_in, min_amount_out, sqrt_price_limit_x64
        )
    operations.append(PlanOperation(OperationKind.SWAP, (swap_ix,), f"swap {amount_in} {mint_in} -> {mint_out}"))

    for account, native in ((source, native_in), (destination, native_out)):
        if native and account in created:
            operations.append(
                PlanOperation(
                    OperationKind.UNWRAP_NATIVE,
                    (ix_builder.close_account_ix(account, owner, owner),),
                    f"close wrapped SOL account {account}",
                )
            )

    signers = (payer,) if payer == owner else (payer, owner)
    plan = SwapPlan(
        payer=payer,
        operations=tuple(operations),
        signers=signers,
        source_account=source,
        destination_account=destination,
        amount_in=amount_in,
        min_amount_out=min_amount_out,
    )
    check_plan_size(plan)
    logger.info(
        f"Built swap plan for {keys.id}: {[k.value for k in plan.kinds()]} "
        f"in={amount_in} min_out={min_amount_out}"
    )
    return plan


async def resolve_existing_accounts(rpc: AsyncClient, addresses: Iterable[Pubkey]) -> Set[Pubkey]:
    addresses = list(dict.fromkeys(addresses))
    if not addresses:
        return set()
    resp = await rpc.get_multiple_accounts(addresses, commitment=Confirmed)
    return {address for address, account in zip(addresses, resp.value) if account is not None}


async def assemble_swap(
    rpc: AsyncClient,
    keys: Optional[PoolKeys],
    owner: Pubkey,
    mint_in: Pubkey,
    mint_out: Pubkey,
    amount_in: int,
    min_amount_out: int,
    **kwargs,
) -> SwapPlan:
    """
    Look up the owner's token accounts, then build the plan.
    """
    if keys is None:
        raise MissingPoolKeys("No pool keys supplied")
    source, destination = user_token_accounts(keys, owner, mint_in, mint_out)
    existing = await resolve_existing_accounts(rpc, [source, destination])
    return build_swap_plan(
        keys,
        owner,
        mint_in,
        mint_out,
        amount_in,
        min_amount_out,
        existing_accounts=existing,
        **kwargs,
    )
