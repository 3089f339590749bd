"""
Records stored in a bootstrap file.

Every record is framed as `size (4B) | blob`. Readers take the fields they know
from the front of the blob and ignore anything after them, so a later minor
version may append fields without breaking older readers.
"""

import logging

from dataclasses import dataclass, field
from io import BytesIO
from typing import BinaryIO, ClassVar, List

from blockchain.block import Block
from blockchain.header import Header
from blockchain.transaction import Transaction
from bootstrap.constants import (
    FILE_MAJOR_VERSION,
    FILE_MINOR_VERSION,
    FLAG_BLOCK_WEIGHT,
    FLAG_COINS_GENERATED,
    FLAG_CUMULATIVE_DIFFICULTY,
    HEADER_SIZE,
    KNOWN_FLAGS,
    RECORD_SIZE_BYTES,
)
from bootstrap.errors import FormatError
from utils.helper import bytes_to_int, encode_varint, int_to_bytes, read_exact, read_varint

log = logging.getLogger(__name__)


def frame_record(blob: bytes) -> bytes:
    """Prefixes a blob with its 4 byte size."""
    return int_to_bytes(len(blob), RECORD_SIZE_BYTES) + blob


def read_record(stream: BinaryIO) -> bytes:
    """Reads one `size | blob` record. Raises EOFError if the stream ends early."""
    size = bytes_to_int(read_exact(stream, RECORD_SIZE_BYTES))
    return read_exact(stream, size)


@dataclass
class FileInfo:
    major_version: int = FILE_MAJOR_VERSION
    minor_version: int = FILE_MINOR_VERSION
    header_size: int = HEADER_SIZE

    SIZE: ClassVar[int] = 12

    @classmethod
    def parse(cls, blob: bytes) -> 'FileInfo':
        if len(blob) < cls.SIZE:
            raise FormatError(f"file_info record is {len(blob)} bytes, expected at least {cls.SIZE}")
        return cls(
            major_version = bytes_to_int(blob[0:4]),
            minor_version = bytes_to_int(blob[4:8]),
            header_size   = bytes_to_int(blob[8:12]),
        )

    def serialize(self) -> bytes:
        result = int_to_bytes(self.major_version)
        result += int_to_bytes(self.minor_version)
        result += int_to_bytes(self.header_size)
        return result


@dataclass
class BlocksInfo:
    """
    `first_height` is the height of the first block in the file.
    `last_height_hint` is the stop height the file was created for; more or fewer blocks may follow.
    `reserved` is always written as 0 and never interpreted.
    """
    first_height: int
    last_height_hint: int
    reserved: int = 0

    SIZE: ClassVar[int] = 24

    @classmethod
    def parse(cls, blob: bytes) -> 'BlocksInfo':
        if len(blob) < cls.SIZE:
            raise FormatError(f"blocks_info record is {len(blob)} bytes, expected at least {cls.SIZE}")
        return cls(
            first_height     = bytes_to_int(blob[0:8]),
            last_height_hint = bytes_to_int(blob[8:16]),
            reserved         = bytes_to_int(blob[16:24]),
        )

    def serialize(self) -> bytes:
        result = int_to_bytes(self.first_height, 8)
        result += int_to_bytes(self.last_height_hint, 8)
        result += int_to_bytes(self.reserved, 8)
        return result


@dataclass
class BlockPackage:
    """
    A block together with its fully resolved transactions and optional chain metadata.

    Blob layout:
        header            80B
        tx hash count     varint
        tx hashes         32B each
        tx count          varint
        transactions      serialized, in block order
        flags             1B
        block_weight          8B   if flags & FLAG_BLOCK_WEIGHT
        cumulative_difficulty 32B  if flags & FLAG_CUMULATIVE_DIFFICULTY
        coins_generated       8B   if flags & FLAG_COINS_GENERATED
    """
    block: Block
    txs: List[Transaction] = field(default_factory=list)
    block_weight: int | None = None
    cumulative_difficulty: int | None = None
    coins_generated: int | None = None

    @property
    def height(self) -> int | None:
        return self.block.get_height()

    def has_extra_block_data(self) -> bool:
        return self.block_weight is not None or self.cumulative_difficulty is not None or self.coins_generated is not None

    def serialize(self) -> bytes:
        tx_hashes = self.block.get_tx_hashes()
        if [tx.hash() for tx in self.txs] != tx_hashes:
            raise ValueError(f"Transactions do not match the hashes listed by block {self.block.hash().hex()}")

        result = self.block.get_header().serialize()
        result += encode_varint(len(tx_hashes))
        result += b"".join(tx_hashes)
        result += encode_varint(len(self.txs))
        result += b"".join(tx.serialize() for tx in self.txs)

        flags = 0
        extra = b""
        if self.block_weight is not None:
            flags |= FLAG_BLOCK_WEIGHT
            extra += int_to_bytes(self.block_weight, 8)
        if self.cumulative_difficulty is not None:
            flags |= FLAG_CUMULATIVE_DIFFICULTY
            extra += int_to_bytes(self.cumulative_difficulty, 32)
        if self.coins_generated is not None:
            flags |= FLAG_COINS_GENERATED
            extra += int_to_bytes(self.coins_generated, 8)

        return result + bytes([flags]) + extra

    @classmethod
    def parse(cls, stream: BinaryIO | bytes) -> 'BlockPackage':
        """
        Parses a block package blob.
        \nRaises ValueError or EOFError on malformed input, including transactions that do not
        hash to the listed tx hashes or to the header's merkle root.
        """
        if isinstance(stream, bytes):
            stream = BytesIO(stream)

        header = Header.parse(stream)
        tx_hashes = [read_exact(stream, 32) for _ in range(read_varint(stream))]
        txs = [Transaction.parse(stream) for _ in range(read_varint(stream))]

        if [tx.hash() for tx in txs] != tx_hashes:
            raise ValueError(f"Transactions do not match the hashes listed by block {header.hash().hex()}")
        block = Block.from_header(header, txs)

        flags = read_exact(stream, 1)[0]
        if flags & ~KNOWN_FLAGS:
            raise ValueError(f"Unknown block package flags 0x{flags:02x}")

        package = cls(block, txs)
        if flags & FLAG_BLOCK_WEIGHT:
            package.block_weight = bytes_to_int(read_exact(stream, 8))
        if flags & FLAG_CUMULATIVE_DIFFICULTY:
            package.cumulative_difficulty = bytes_to_int(read_exact(stream, 32))
        if flags & FLAG_COINS_GENERATED:
            package.coins_generated = bytes_to_int(read_exact(stream, 8))

        return package
