from __future__ import annotations

import json
import logging
import os
from typing import Optional

from base58 import b58decode
from solders.keypair import Keypair

logger = logging.getLogger(__name__)


def keypair_from_secret(secret: str) -> Keypair:
    """
    Accepts a base58 secret key or a JSON byte array as written by solana-keygen.
    """
    secret = secret.strip()
    if secret.startswith("["):
        secret_bytes = bytes(json.loads(secret))
    else:
        secret_bytes = b58decode(secret)
    if len(secret_bytes) != 64:
        raise ValueError(f"Invalid key length {len(secret_bytes)}; expected 64-byte secret key")
    return Keypair.from_bytes(secret_bytes)


def load_keypair_from_env() -> Optional[Keypair]:
    """
    Load a Keypair from WALLET_PRIVATE_KEY, falling back to the file at WALLET_KEYPAIR_PATH.
    """
    secret = os.getenv("WALLET_PRIVATE_KEY", "").strip()
    if not secret:
        path = os.getenv("WALLET_KEYPAIR_PATH", "").strip()
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                secret = f.read().strip()
    if not secret:
        return None
    keypair = keypair_from_secret(secret)
    logger.info(f"Loaded wallet {keypair.pubkey()}")
    return keypair
