"""
Optional, caller-owned cache for pool keys.

Nothing in the library consults a cache on its own; pass a PoolCache to
RaydiumSwapClient when keys should be reused across swaps.
"""

import time
from typing import Dict, Optional, Tuple

from raydium_swap.models import PoolKeys


class PoolCache:
    def __init__(self, ttl_ms: int = 30000, max_size: int = 256):
        self.ttl_ms = ttl_ms
        self.max_size = max_size
        self._cache: Dict[str, Tuple[float, PoolKeys]] = {}  # pool id -> (expires_at, keys)

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, pool_id) -> bool:
        return self.get(str(pool_id)) is not None

    def get(self, pool_id: str) -> Optional[PoolKeys]:
        entry = self._cache.get(str(pool_id))
        if not entry:
            return None
        expires_at, keys = entry
        if time.monotonic() * 1000 > expires_at:
            self._cache.pop(str(pool_id), None)
            return None
        return keys

    def set(self, pool_id: str, keys: PoolKeys):
        pool_id = str(pool_id)
        if pool_id not in self._cache and len(self._cache) >= self.max_size:
            # evict the entry closest to expiry
            oldest = min(self._cache.items(), key=lambda kv: kv[1][0])[0]
            self._cache.pop(oldest, None)
        self._cache[pool_id] = (time.monotonic() * 1000 + self.ttl_ms, keys)

    def invalidate(self, pool_id: str):
        self._cache.pop(str(pool_id), None)

    def clear(self):
        self._cache.clear()

