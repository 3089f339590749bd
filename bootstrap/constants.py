"""
Bootstrap file layout constants.

  offset 0      : magic           4B
  offset 4      : file_info       4B size + { major 4B, minor 4B, header_size 4B }
  offset 20     : blocks_info     4B size + { first_height 8B, last_height_hint 8B, reserved 8B }
  offset 48     : zero padding up to HEADER_SIZE
  offset 1024   : chunk[0]        { length 4B, payload }
  offset ...    : chunk[1..n]     back-to-back, no inter-chunk padding

All integers are big-endian, same as the rest of the KhetCoin wire format.
"""

BOOTSTRAP_MAGIC = 0x28721586
HEADER_SIZE = 1024

FILE_MAJOR_VERSION = 1
FILE_MINOR_VERSION = 0

# Size prefix in front of every record (file_info, blocks_info, block packages)
RECORD_SIZE_BYTES = 4
CHUNK_LENGTH_BYTES = 4

NUM_BLOCKS_PER_CHUNK = 100
PROGRESS_INTERVAL = 100

# Only a sizing hint for readers; larger chunks are still written
MAX_CHUNK_SIZE = 16 * (1 << 20)

# BlockPackage optional field flags
FLAG_BLOCK_WEIGHT = 0x01
FLAG_CUMULATIVE_DIFFICULTY = 0x02
FLAG_COINS_GENERATED = 0x04
KNOWN_FLAGS = FLAG_BLOCK_WEIGHT | FLAG_CUMULATIVE_DIFFICULTY | FLAG_COINS_GENERATED
