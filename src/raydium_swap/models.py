"""
Value objects shared by the resolver, state reader, quote engine and assembler.

Everything here is plain immutable data with no network handles, so quotes and
plans can be logged, serialized or handed to another subsystem.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from raydium_swap.consts import TICK_ARRAY_SIZE


class PoolType(Enum):
    STANDARD = "standard"
    CONCENTRATED = "concentrated"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ReserveState:
    """Constant-product pool reserves as of the last confirmed read."""

    pool_id: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    reserve_a: int
    reserve_b: int
    fee_numerator: int
    fee_denominator: int

    def __post_init__(self):
        if self.fee_denominator <= 0:
            raise ValueError(f"fee_denominator must be positive, got {self.fee_denominator}")
        if not 0 <= self.fee_numerator < self.fee_denominator:
            raise ValueError(
                f"fee fraction {self.fee_numerator}/{self.fee_denominator} must be in [0, 1)"
            )
        if self.reserve_a < 0 or self.reserve_b < 0:
            raise ValueError("reserves must be non-negative")

    @property
    def pool_type(self) -> PoolType:
        return PoolType.STANDARD

    @property
    def is_tradable(self) -> bool:
        return self.reserve_a > 0 and self.reserve_b > 0

    def oriented(self, mint_in: Pubkey) -> Tuple[int, int, Pubkey]:
        """
        Returns (reserve_in, reserve_out, mint_out) for a swap paying mint_in.
        """
        if mint_in == self.mint_a:
            return self.reserve_a, self.reserve_b, self.mint_b
        if mint_in == self.mint_b:
            return self.reserve_b, self.reserve_a, self.mint_a
        raise KeyError(str(mint_in))


@dataclass(frozen=True)
class Tick:
    tick: int
    liquidity_net: int
    liquidity_gross: int = 0


@dataclass(frozen=True)
class TickArray:
    start_tick_index: int
    ticks: Tuple[Tick, ...] = ()
    address: Optional[Pubkey] = None

    def end_tick_index(self, tick_spacing: int) -> int:
        return self.start_tick_index + TICK_ARRAY_SIZE * tick_spacing


@dataclass(frozen=True)
class TransferFee:
    """Token-2022 transfer fee in force for the current epoch."""

    basis_points: int
    maximum_fee: int

    def calculate(self, amount: int) -> int:
        if self.basis_points == 0 or amount == 0:
            return 0
        fee = -(-amount * self.basis_points // 10_000)
        return min(fee, self.maximum_fee)


@dataclass(frozen=True)
class TickState:
    """Concentrated-liquidity pool snapshot plus the tick arrays loaded around it."""

    pool_id: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    sqrt_price_x64: int
    tick_current: int
    liquidity: int
    tick_spacing: int
    trade_fee_rate: int
    tick_arrays: Tuple[TickArray, ...] = ()
    decimals_a: int = 0
    decimals_b: int = 0
    # None for SPL Token mints or Token-2022 mints without a transfer fee
    transfer_fee_a: Optional[TransferFee] = None
    transfer_fee_b: Optional[TransferFee] = None

    def __post_init__(self):
        starts = [a.start_tick_index for a in self.tick_arrays]
        if starts != sorted(starts) or len(set(starts)) != len(starts):
            raise ValueError("tick_arrays must be ordered by start_tick_index ascending")
        if self.tick_spacing <= 0:
            raise ValueError(f"tick_spacing must be positive, got {self.tick_spacing}")

    @property
    def pool_type(self) -> PoolType:
        return PoolType.CONCENTRATED

    def loaded_window(self) -> Optional[Tuple[int, int]]:
        """
        Contiguous [lower, upper) tick range covered by loaded arrays around tick_current.
        """
        span = TICK_ARRAY_SIZE * self.tick_spacing
        index = None
        for i, array in enumerate(self.tick_arrays):
            if array.start_tick_index <= self.tick_current < array.start_tick_index + span:
                index = i
                break
        if index is None:
            return None

        lower = self.tick_arrays[index].start_tick_index
        upper = lower + span
        for array in reversed(self.tick_arrays[:index]):
            if array.start_tick_index + span != lower:
                break
            lower = array.start_tick_index
        for array in self.tick_arrays[index + 1:]:
            if array.start_tick_index != upper:
                break
            upper = array.start_tick_index + span
        return lower, upper

    def initialized_ticks(self) -> List[Tick]:
        ticks = [t for array in self.tick_arrays for t in array.ticks if t.liquidity_gross or t.liquidity_net]
        return sorted(ticks, key=lambda t: t.tick)


PoolState = Union[ReserveState, TickState]


@dataclass(frozen=True)
class StandardPoolKeys:
    program_id: Pubkey
    id: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    authority: Pubkey
    open_orders: Pubkey
    target_orders: Pubkey
    market_program_id: Pubkey
    market_id: Pubkey
    market_authority: Pubkey
    market_base_vault: Pubkey
    market_quote_vault: Pubkey
    market_bids: Pubkey
    market_asks: Pubkey
    market_event_queue: Pubkey

    @property
    def pool_type(self) -> PoolType:
        return PoolType.STANDARD


@dataclass(frozen=True)
class ConcentratedPoolKeys:
    program_id: Pubkey
    id: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    amm_config: Pubkey
    observation_id: Pubkey
    ex_bitmap: Optional[Pubkey] = None
    mint_program_a: Optional[Pubkey] = None
    mint_program_b: Optional[Pubkey] = None
    # Ordered in swap direction, starting with the array holding the current tick
    tick_arrays: Tuple[Pubkey, ...] = ()

    @property
    def pool_type(self) -> PoolType:
        return PoolType.CONCENTRATED


PoolKeys = Union[StandardPoolKeys, ConcentratedPoolKeys]


@dataclass(frozen=True)
class Quote:
    pool_type: PoolType
    mint_in: Pubkey
    mint_out: Pubkey
    amount_in: int
    amount_out: int
    min_amount_out: int
    fee_amount: int
    price_impact_bps: int
    tick_arrays_crossed: Tuple[int, ...] = ()
    sqrt_price_after_x64: Optional[int] = None
    # Token-2022 transfer fees withheld on the input and output legs
    transfer_fee_amount: int = 0
    sqrt_price_limit_x64: int = 0

    def to_dict(self) -> dict:
        d = asdict(self)
        d["pool_type"] = self.pool_type.value
        d["mint_in"] = str(self.mint_in)
        d["mint_out"] = str(self.mint_out)
        return d


@dataclass(frozen=True)
class PoolSummary:
    id: str
    pool_type: str
    program_id: str
    mint_a: str
    mint_b: str
    decimals_a: int
    decimals_b: int
    price: Optional[float] = None
    tvl: Optional[float] = None
    fee_rate: Optional[float] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class ComputeBudget:
    unit_limit: Optional[int] = None
    unit_price_microlamports: Optional[int] = None


class OperationKind(Enum):
    COMPUTE_BUDGET = "compute_budget"
    CREATE_ACCOUNT = "create_account"
    WRAP_NATIVE = "wrap_native"
    SWAP = "swap"
    UNWRAP_NATIVE = "unwrap_native"


@dataclass(frozen=True)
class PlanOperation:
    kind: OperationKind
    instructions: Tuple[Instruction, ...]
    description: str = ""


@dataclass(frozen=True)
class SwapPlan:
    """
    Ordered, immutable set of operations that must land in one transaction.
    """

    payer: Pubkey
    operations: Tuple[PlanOperation, ...]
    signers: Tuple[Pubkey, ...]
    source_account: Pubkey
    destination_account: Pubkey
    amount_in: int
    min_amount_out: int

    @property
    def instructions(self) -> List[Instruction]:
        return [ix for op in self.operations for ix in op.instructions]

    def kinds(self) -> List[OperationKind]:
        return [op.kind for op in self.operations]

    def message(self, recent_blockhash: Optional[Hash] = None) -> Message:
        if recent_blockhash is None:
            return Message(self.instructions, self.payer)
        return Message.new_with_blockhash(self.instructions, self.payer, recent_blockhash)

    def sign(self, keypairs: List[Keypair], recent_blockhash: Hash) -> Transaction:
        provided = {kp.pubkey() for kp in keypairs}
        missing = [str(s) for s in self.signers if s not in provided]
        if missing:
            raise ValueError(f"Missing signers for plan: {missing}")
        return Transaction(keypairs, self.message(recent_blockhash), recent_blockhash)

    def to_dict(self) -> dict:
        return {
            "payer": str(self.payer),
            "signers": [str(s) for s in self.signers],
            "source_account": str(self.source_account),
            "destination_account": str(self.destination_account),
            "amount_in": self.amount_in,
            "min_amount_out": self.min_amount_out,
            "operations": [
                {
                    "kind": op.kind.value,
                    "description": op.description,
                    "instructions": len(op.instructions),
                }
                for op in self.operations
            ],
        }
