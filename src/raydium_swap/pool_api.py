"""
Pool directory resolver backed by the Raydium v3 HTTP API.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Union

import aiohttp
from solders.pubkey import Pubkey

from raydium_swap.consts import RAYDIUM_AMM_V4, RAYDIUM_API_URL, RAYDIUM_CLMM
from raydium_swap.errors import DiscoveryError
from raydium_swap.models import (
    ConcentratedPoolKeys,
    PoolKeys,
    PoolSummary,
    PoolType,
    StandardPoolKeys,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
MAX_PAGE_SIZE = 1000

# Pool programs whose keys and state this library can decode
SUPPORTED_PROGRAMS = (RAYDIUM_AMM_V4, RAYDIUM_CLMM)


class PoolSortField(Enum):
    DEFAULT = "default"
    LIQUIDITY = "liquidity"
    VOLUME_24H = "volume24h"
    VOLUME_7D = "volume7d"
    VOLUME_30D = "volume30d"
    FEE_24H = "fee24h"
    FEE_7D = "fee7d"
    FEE_30D = "fee30d"
    APR_24H = "apr24h"
    APR_7D = "apr7d"
    APR_30D = "apr30d"

    def __str__(self) -> str:
        return self.value


def _pubkey(value: Any, field: str) -> Pubkey:
    try:
        return Pubkey.from_string(value)
    except (TypeError, ValueError) as e:
        raise DiscoveryError(f"Malformed address for {field}: {value!r}") from e


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_pool_summary(item: Dict[str, Any]) -> PoolSummary:
    try:
        mint_a = item["mintA"]
        mint_b = item["mintB"]
        return PoolSummary(
            id=item["id"],
            pool_type=str(item.get("type", "")).lower(),
            program_id=item["programId"],
            mint_a=mint_a["address"],
            mint_b=mint_b["address"],
            decimals_a=int(mint_a.get("decimals", 0)),
            decimals_b=int(mint_b.get("decimals", 0)),
            price=_optional_float(item.get("price")),
            tvl=_optional_float(item.get("tvl")),
            fee_rate=_optional_float(item.get("feeRate")),
            raw=item,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise DiscoveryError(f"Malformed pool entry: {e}") from e


def parse_pool_keys(item: Dict[str, Any]) -> PoolKeys:
    """
    Build Standard or Concentrated keys from one /pools/key/ids entry.

    The pool program decides the shape; CPMM and other programs are rejected.
    """
    try:
        program_id = _pubkey(item["programId"], "programId")
        if program_id not in SUPPORTED_PROGRAMS:
            raise DiscoveryError(f"Pool {item.get('id')} belongs to unsupported program {program_id}")
        vault = item["vault"]
        if program_id == RAYDIUM_CLMM:
            ex_bitmap = item.get("exBitmapAccount")
            return ConcentratedPoolKeys(
                program_id=program_id,
                id=_pubkey(item["id"], "id"),
                mint_a=_pubkey(item["mintA"]["address"], "mintA"),
                mint_b=_pubkey(item["mintB"]["address"], "mintB"),
                vault_a=_pubkey(vault["A"], "vault.A"),
                vault_b=_pubkey(vault["B"], "vault.B"),
                amm_config=_pubkey(item["config"]["id"], "config.id"),
                observation_id=_pubkey(item["observationId"], "observationId"),
                ex_bitmap=_pubkey(ex_bitmap, "exBitmapAccount") if ex_bitmap else None,
                mint_program_a=_pubkey(item["mintA"]["programId"], "mintA.programId") if item["mintA"].get("programId") else None,
                mint_program_b=_pubkey(item["mintB"]["programId"], "mintB.programId") if item["mintB"].get("programId") else None,
            )
        return StandardPoolKeys(
            program_id=program_id,
            id=_pubkey(item["id"], "id"),
            mint_a=_pubkey(item["mintA"]["address"], "mintA"),
            mint_b=_pubkey(item["mintB"]["address"], "mintB"),
            vault_a=_pubkey(vault["A"], "vault.A"),
            vault_b=_pubkey(vault["B"], "vault.B"),
            authority=_pubkey(item["authority"], "authority"),
            open_orders=_pubkey(item["openOrders"], "openOrders"),
            target_orders=_pubkey(item["targetOrders"], "targetOrders"),
            market_program_id=_pubkey(item["marketProgramId"], "marketProgramId"),
            market_id=_pubkey(item["marketId"], "marketId"),
            market_authority=_pubkey(item["marketAuthority"], "marketAuthority"),
            market_base_vault=_pubkey(item["marketBaseVault"], "marketBaseVault"),
            market_quote_vault=_pubkey(item["marketQuoteVault"], "marketQuoteVault"),
            market_bids=_pubkey(item["marketBids"], "marketBids"),
            market_asks=_pubkey(item["marketAsks"], "marketAsks"),
            market_event_queue=_pubkey(item["marketEventQueue"], "marketEventQueue"),
        )
    except (KeyError, TypeError) as e:
        raise DiscoveryError(f"Malformed pool keys entry: missing {e}") from e


class PoolDirectory:
    """
    Thin async client over the Raydium pool catalog.

    Pass an aiohttp session to share it (the caller then owns its lifetime);
    otherwise use the directory as an async context manager.
    """

    def __init__(
        self,
        base_url: str = RAYDIUM_API_URL,
        session: Optional[aiohttp.ClientSession] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "PoolDirectory":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None:
            raise RuntimeError("PoolDirectory has no session; use 'async with' or pass one in")
        url = f"{self.base_url}{path}"
        try:
            async with self._session.get(url, params=params, timeout=self.timeout) as resp:
                if resp.status != 200:
                    raise DiscoveryError(f"Raydium API returned {resp.status} for {path}", status=resp.status)
                payload = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            raise DiscoveryError(f"Raydium API request to {path} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise DiscoveryError(f"Raydium API request to {path} timed out") from e

        if not isinstance(payload, dict) or not payload.get("success"):
            raise DiscoveryError(f"Raydium API reported failure for {path}: {payload!r:.200}")
        return payload

    async def iter_pools(
        self,
        mint_a: Union[str, Pubkey],
        mint_b: Union[str, Pubkey],
        pool_type: Optional[PoolType] = None,
        limit: Optional[int] = None,
        page: int = 1,
        sort_field: PoolSortField = PoolSortField.DEFAULT,
        sort_type: str = "desc",
        page_size: int = 100,
        require_match: bool = False,
    ) -> AsyncIterator[PoolSummary]:
        """
        Yield pools for a mint pair, fetching pages lazily in the API's ranking order.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be in [1, {MAX_PAGE_SIZE}], got {page_size}")
        if sort_type not in ("desc", "asc"):
            raise ValueError(f"sort_type must be 'asc' or 'desc', got {sort_type!r}")

        yielded = 0
        while limit is None or yielded < limit:
            params = {
                "mint1": str(mint_a),
                "mint2": str(mint_b),
                "poolType": pool_type.value if pool_type is not None else "all",
                "poolSortField": sort_field.value,
                "sortType": sort_type,
                "pageSize": page_size,
                "page": page,
            }
            payload = await self._get("/pools/info/mint", params)
            body = payload.get("data")
            if not isinstance(body, dict) or not isinstance(body.get("data"), list):
                raise DiscoveryError("Raydium API returned a malformed pool page")

            items = body["data"]
            logger.debug(f"Pool page {page} for {mint_a}/{mint_b}: {len(items)} entries")
            if not items and yielded == 0 and require_match:
                raise DiscoveryError(f"No {pool_type or 'any'} pools found for {mint_a}/{mint_b}")

            for item in items:
                yield parse_pool_summary(item)
                yielded += 1
                if limit is not None and yielded >= limit:
                    return

            if not body.get("hasNextPage") or not items:
                return
            page += 1

    async def fetch_pools(self, mint_a, mint_b, pool_type: Optional[PoolType] = None, **kwargs) -> List[PoolSummary]:
        return [p async for p in self.iter_pools(mint_a, mint_b, pool_type, **kwargs)]

    async def _fetch_by_ids(self, path: str, ids: Iterable[Union[str, Pubkey]]) -> List[Dict[str, Any]]:
        id_list = [str(i) for i in ids]
        if not id_list:
            return []
        payload = await self._get(path, {"ids": ",".join(id_list)})
        data = payload.get("data")
        if not isinstance(data, list):
            raise DiscoveryError(f"Raydium API returned a malformed list for {path}")
        # Unknown ids come back as null entries
        return [item for item in data if item]

    async def fetch_pool_info(self, ids: Iterable[Union[str, Pubkey]]) -> List[PoolSummary]:
        return [parse_pool_summary(item) for item in await self._fetch_by_ids("/pools/info/ids", ids)]

    async def fetch_pool_keys(self, ids: Iterable[Union[str, Pubkey]]) -> List[PoolKeys]:
        return [parse_pool_keys(item) for item in await self._fetch_by_ids("/pools/key/ids", ids)]
