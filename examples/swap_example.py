"""
Quote (and optionally submit) a swap against the deepest Raydium pool for a mint pair.

    SOLANA_RPC_URL=... WALLET_PRIVATE_KEY=... RAYDIUM_DRY_RUN=true \
        python examples/swap_example.py <input_mint> <output_mint> <amount_in_base_units>
"""

import asyncio
import json
import logging
import sys

from solana.rpc.async_api import AsyncClient
from solders.pubkey import Pubkey

from raydium_swap import PoolCache, PoolDirectory, PoolSortField, RaydiumSwapClient, SwapConfig
from raydium_swap.helpers import load_keypair_from_env
from raydium_swap.pool_api import SUPPORTED_PROGRAMS

logger = logging.getLogger("swap_example")


async def main(mint_in: str, mint_out: str, amount_in: int):
    config = SwapConfig.from_env()
    keypair = load_keypair_from_env()
    if keypair is None:
        raise SystemExit("Set WALLET_PRIVATE_KEY or WALLET_KEYPAIR_PATH")

    async with AsyncClient(config.rpc_url) as rpc, PoolDirectory(config.api_url, timeout_seconds=config.http_timeout_seconds) as directory:
        client = RaydiumSwapClient(rpc, directory, keypair=keypair, config=config, cache=PoolCache())
        pools = await client.find_pools(mint_in, mint_out, limit=5, sort_field=PoolSortField.LIQUIDITY, require_match=True)
        for pool in pools:
            logger.info(f"Candidate {pool.pool_type} pool {pool.id} tvl={pool.tvl} fee={pool.fee_rate}")

        supported = [p for p in pools if Pubkey.from_string(p.program_id) in SUPPORTED_PROGRAMS]
        if not supported:
            raise SystemExit("No AMM v4 or CLMM pool for this pair")
        result = await client.swap(supported[0].id, Pubkey.from_string(mint_in), amount_in)
        print(json.dumps({k: v for k, v in result.to_dict().items() if k != "serialized_tx_base64"}, indent=2))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) != 4:
        raise SystemExit(__doc__)
    asyncio.run(main(sys.argv[1], sys.argv[2], int(sys.argv[3])))
