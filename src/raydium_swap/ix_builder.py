from __future__ import annotations

import hashlib
import struct
from typing import List, Optional

from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from spl.token.instructions import close_account, sync_native
from spl.token.models import CloseAccountParams, SyncNativeParams

from raydium_swap.consts import (
    ASSOCIATED_TOKEN_PROGRAM,
    MEMO_PROGRAM,
    SYSTEM_PROGRAM,
    TOKEN_2022_PROGRAM,
    TOKEN_PROGRAM,
)
from raydium_swap.models import ComputeBudget, ConcentratedPoolKeys, StandardPoolKeys

SWAP_BASE_IN_IX = 9
CREATE_IDEMPOTENT_IX = 1
SWAP_V2_DISCRIMINATOR = hashlib.sha256(b"global:swap_v2").digest()[:8]


def get_associated_token_address(owner: Pubkey, mint: Pubkey, token_program: Pubkey = TOKEN_PROGRAM) -> Pubkey:
    seeds = [bytes(owner), bytes(token_program), bytes(mint)]
    ata, _ = Pubkey.find_program_address(seeds, ASSOCIATED_TOKEN_PROGRAM)
    return ata


def create_ata_idempotent_ix(payer: Pubkey, owner: Pubkey, mint: Pubkey, token_program: Pubkey = TOKEN_PROGRAM) -> Instruction:
    """
    CreateIdempotent: succeeds even if the account appeared between planning and landing.
    """
    ata = get_associated_token_address(owner, mint, token_program)
    accounts = [
        AccountMeta(pubkey=payer, is_signer=True, is_writable=True),
        AccountMeta(pubkey=ata, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner, is_signer=False, is_writable=False),
        AccountMeta(pubkey=mint, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSTEM_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(pubkey=token_program, is_signer=False, is_writable=False),
    ]
    return Instruction(
        program_id=ASSOCIATED_TOKEN_PROGRAM,
        accounts=accounts,
        data=bytes([CREATE_IDEMPOTENT_IX]),
    )


def wrap_native_ixs(owner: Pubkey, wrapped_account: Pubkey, lamports: int) -> List[Instruction]:
    return [
        transfer(TransferParams(from_pubkey=owner, to_pubkey=wrapped_account, lamports=lamports)),
        sync_native(SyncNativeParams(program_id=TOKEN_PROGRAM, account=wrapped_account)),
    ]


def close_account_ix(account: Pubkey, destination: Pubkey, owner: Pubkey, token_program: Pubkey = TOKEN_PROGRAM) -> Instruction:
    return close_account(
        CloseAccountParams(program_id=token_program, account=account, dest=destination, owner=owner, signers=[])
    )


def compute_budget_ixs(budget: Optional[ComputeBudget]) -> List[Instruction]:
    if budget is None:
        return []
    instructions: List[Instruction] = []
    if budget.unit_limit is not None:
        instructions.append(set_compute_unit_limit(budget.unit_limit))
    if budget.unit_price_microlamports is not None:
        instructions.append(set_compute_unit_price(budget.unit_price_microlamports))
    return instructions


def build_amm_v4_swap_ix(
    keys: StandardPoolKeys,
    owner: Pubkey,
    user_source: Pubkey,
    user_destination: Pubkey,
    amount_in: int,
    min_amount_out: int,
) -> Instruction:
    data = struct.pack("<BQQ", SWAP_BASE_IN_IX, amount_in, min_amount_out)
    accounts = [
        AccountMeta(TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(keys.id, is_signer=False, is_writable=True),
        AccountMeta(keys.authority, is_signer=False, is_writable=False),
        AccountMeta(keys.open_orders, is_signer=False, is_writable=True),
        AccountMeta(keys.vault_a, is_signer=False, is_writable=True),
        AccountMeta(keys.vault_b, is_signer=False, is_writable=True),
        AccountMeta(keys.market_program_id, is_signer=False, is_writable=False),
        AccountMeta(keys.market_id, is_signer=False, is_writable=True),
        AccountMeta(keys.market_bids, is_signer=False, is_writable=True),
        AccountMeta(keys.market_asks, is_signer=False, is_writable=True),
        AccountMeta(keys.market_event_queue, is_signer=False, is_writable=True),
        AccountMeta(keys.market_base_vault, is_signer=False, is_writable=True),
        AccountMeta(keys.market_quote_vault, is_signer=False, is_writable=True),
        AccountMeta(keys.market_authority, is_signer=False, is_writable=True),
        AccountMeta(user_source, is_signer=False, is_writable=True),
        AccountMeta(user_destination, is_signer=False, is_writable=True),
        AccountMeta(owner, is_signer=True, is_writable=False),
    ]
    return Instruction(program_id=keys.program_id, data=data, accounts=accounts)


def build_clmm_swap_v2_ix(
    keys: ConcentratedPoolKeys,
    owner: Pubkey,
    user_input: Pubkey,
    user_output: Pubkey,
    zero_for_one: bool,
    amount: int,
    other_amount_threshold: int,
    sqrt_price_limit_x64: int = 0,
    is_base_input: bool = True,
) -> Instruction:
    """
    Raydium CLMM swap_v2. Tick arrays and the bitmap extension ride as remaining accounts.
    """
    data = (
        SWAP_V2_DISCRIMINATOR
        + struct.pack("<QQ", amount, other_amount_threshold)
        + sqrt_price_limit_x64.to_bytes(16, "little")
        + struct.pack("<?", is_base_input)
    )
    if zero_for_one:
        input_vault, output_vault = keys.vault_a, keys.vault_b
        input_mint, output_mint = keys.mint_a, keys.mint_b
    else:
        input_vault, output_vault = keys.vault_b, keys.vault_a
        input_mint, output_mint = keys.mint_b, keys.mint_a

    accounts = [
        AccountMeta(owner, is_signer=True, is_writable=False),
        AccountMeta(keys.amm_config, is_signer=False, is_writable=False),
        AccountMeta(keys.id, is_signer=False, is_writable=True),
        AccountMeta(user_input, is_signer=False, is_writable=True),
        AccountMeta(user_output, is_signer=False, is_writable=True),
        AccountMeta(input_vault, is_signer=False, is_writable=True),
        AccountMeta(output_vault, is_signer=False, is_writable=True),
        AccountMeta(keys.observation_id, is_signer=False, is_writable=True),
        AccountMeta(TOKEN_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(TOKEN_2022_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(MEMO_PROGRAM, is_signer=False, is_writable=False),
        AccountMeta(input_mint, is_signer=False, is_writable=False),
        AccountMeta(output_mint, is_signer=False, is_writable=False),
    ]
    if keys.ex_bitmap is not None:
        accounts.append(AccountMeta(keys.ex_bitmap, is_signer=False, is_writable=True))
    accounts.extend(AccountMeta(a, is_signer=False, is_writable=True) for a in keys.tick_arrays)
    return Instruction(program_id=keys.program_id, data=data, accounts=accounts)
