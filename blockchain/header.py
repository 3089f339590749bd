from io import BytesIO
from typing import BinaryIO

from crypto.hashing import HASH256
from utils.helper import bytes_to_int, int_to_bytes, read_exact

HEADER_SIZE = 80


class Header:
    def __init__(
        self,
        version: int,
        prev_block: bytes,
        merkle_root: bytes,
        timestamp: int,
        bits: bytes,
        nonce: int,
    ):
        self.version: int = version
        self.prev_block: bytes = prev_block
        self.merkle_root: bytes = merkle_root
        self.timestamp: int = timestamp
        self.bits: bytes = bits
        self.nonce: int = nonce
    
    def __str__(self) -> str:
        result = f"Block Hash: {self.hash().hex()}\n"
        result += f"Version {self.version}\n"
        result += f"Previous Block: {self.prev_block.hex()}\n"
        result += f"Merkle Root: {self.merkle_root.hex()}\n"
        result += f"Timestamp: {self.timestamp}\n"
        result += f"Bits: {self.bits.hex()}\n"
        result += f"Nonce: {self.nonce}\n"
        
        return result

    @classmethod
    def parse(cls, stream: BinaryIO | bytes) -> 'Header':
        if isinstance(stream, bytes):
            stream = BytesIO(stream)
            
        version = bytes_to_int(read_exact(stream, 4))
        prev_block = read_exact(stream, 32)
        merkle_root = read_exact(stream, 32)
        timestamp = bytes_to_int(read_exact(stream, 4))
        bits = read_exact(stream, 4)
        nonce = bytes_to_int(read_exact(stream, 4))

        return cls(version, prev_block, merkle_root, timestamp, bits, nonce)
    
    def serialize(self) -> bytes:
        result: bytes = int_to_bytes(self.version)
        result += self.prev_block
        result += self.merkle_root
        result += int_to_bytes(self.timestamp)
        result += self.bits
        result += int_to_bytes(self.nonce)

        return result

    def hash(self) -> bytes:
        return HASH256(self.serialize())
    