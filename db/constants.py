"""
Database constants and storage layouts for the chain store.

These definitions describe the on-disk layout of a KhetCoin node's block
files and LMDB indexes, which the bootstrap exporter reads from. They are
internal-only and must not be configurable or user-visible.
"""


# =============================================================================
# BLOCKCHAIN .DAT STORAGE FORMAT
# =============================================================================
# At the beginning of each block:
#
#   - block_magic        : 4B   (b"MEOW")
#   - full_block_size    : 4B
#   - block_header       : 80B
#   - tx_count           : VarInt
#   - transactions       : Tx1, Tx2, ... TxN
#

BLOCK_MAGIC = b"MEOW" 
DAT_PREFIX_SIZE = 8  # block_magic + full_block_size


# =============================================================================
# FILESYSTEM / STORAGE LIMITS
# =============================================================================

MAP_SIZE = 1 << 30        # LMDB map size: 1 GiB
DAT_SIZE = 10 * (1 << 20) # Max .dat file size: 10 MiB
MAX_DBS = 10


def dat_file_name(dat_no: int) -> str:
    return f"blk{dat_no:08}.dat"


# =============================================================================
# LMDB DATABASE SCHEMAS
# =============================================================================

# ---------------------
# BLOCKS DB
# ---------------------
# Key   : Block Hash (32B)
# Value :
#   - data_file_no      : 4B
#   - data_offset       : 4B
#   - full_block_size   : 4B
#   - timestamp         : 4B
#   - tx_count          : 4B
#   - total_sent        : 8B
#   - fee               : 8B
#   - height            : 8B
BLOCKS_DB_NAME = b"blocks"


# ---------------------
# INDEX DB
# ---------------------
# Key   : Block Hash (32B)
# Value:
#   - block_hash        : 32B
#   - prev_hash         : 32B
#   - height            : 8B
#   - chainwork         : 32B
#   - flags             : 1B
INDEX_DB_NAME = b"index"


# ---------------------
# HEIGHT DB
# ---------------------
# Key   : Block Height (8B)
# Value : 
#    - Block Hash       : 32B
HEIGHT_DB_NAME = b"height"


# ---------------------
# TX DB
# ---------------------
# Key   : Tx Hash (32B)
# Value :
#   - data_file_no      : 4B
#   - data_offset       : 4B
#   - full_tx_size      : 4B
#   - position in block : 4B
#   - block_height      : 8B
TX_DB_NAME = b"transaction"
