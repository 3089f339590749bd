# NOTE: Do not modify any constants defined over here!
# These are hard coded to support the consensus mechanism of KhetCoin
# Blocks exported with different values will not match the network's chain


# Genesis Block
GENESIS_BLOCK_BYTES = bytes.fromhex(
    "000000010000000000000000000000000000000000000000000000000000000000000000fc4cc459b5ac88b58c8943156a03b7c9eb440e06494a7ba2731920d2fd91a05a694d4d3900ffff1d3b3fee980100000001010000000000000000000000000000000000000000000000000000000000000000ffffffff510800000000000000004000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000062f4b6865742fffffffff01000000012a05f2001976a914cd228666a327389937cae12328bb1af3021af80588ac00000000"
)
"""`bytes` The byte representation of the genesis block."""

KTC = 100_000_000
"""`int` 1 KTC = 100_000_000 khets. khet is the lowest indivisible currecny unit in KhetCoin."""


INITIAL_BLOCK_REWARD = 50 * KTC
"""`int` The block reward (khets) for the first block; used to calculated subsequent block rewards after halving."""


MAX_KTC = 1_000_000 
"""`int` The maximum number of Khetcoins (in KTCs) designed to be in circulation."""


MAX_KHETS = MAX_KTC * KTC
"""`int` The maximum number of Khetcoins (in khets) designed to be in circulation. """


HALVING_INTERVAL = MAX_KHETS // (2 * INITIAL_BLOCK_REWARD)
"""`int` The number of blocks between each halving event."""


HIGHEST_BITS = bytes.fromhex("00ffff1d")
"""`bytes` Compact form of the highest target, 0xFFFF * 256 ** 26. Used for the first blocks in KhetCoin."""
