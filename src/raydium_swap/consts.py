from solders.pubkey import Pubkey

# Program IDs
RAYDIUM_AMM_V4 = Pubkey.from_string("675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8")
RAYDIUM_CLMM = Pubkey.from_string("CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK")
TOKEN_PROGRAM = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
TOKEN_2022_PROGRAM = Pubkey.from_string("TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb")
ASSOCIATED_TOKEN_PROGRAM = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")
MEMO_PROGRAM = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")
SYSTEM_PROGRAM = Pubkey.from_string("11111111111111111111111111111111")

# Wrapped SOL
SOL_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")

# Raydium AMM v4 default swap fee (0.25%)
LIQUIDITY_FEES_NUMERATOR = 25
LIQUIDITY_FEES_DENOMINATOR = 10_000

RAYDIUM_API_URL = "https://api-v3.raydium.io"

# Legacy transaction limits
PACKET_DATA_SIZE = 1232
MAX_TX_ACCOUNTS = 64

# SPL token account size, used for rent and layout checks
TOKEN_ACCOUNT_LEN = 165

# Raydium CLMM
TICK_ARRAY_SIZE = 60
TICK_ARRAY_SEED = b"tick_array"
TICK_ARRAY_BITMAP_SEED = b"pool_tick_array_bitmap_extension"
FEE_RATE_DENOMINATOR = 1_000_000
