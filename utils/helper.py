from typing import BinaryIO
from io import BytesIO


def bytes_to_int(be: bytes) -> int:
    """Big-endian bytes to integer."""
    return int.from_bytes(be, 'big')

def int_to_bytes(i: int, num_bytes: int = 4) -> bytes:
    """Integer to big-endian bytes."""
    return i.to_bytes(num_bytes, 'big')


def read_exact(stream: BinaryIO, n: int) -> bytes:
    """Reads exactly `n` bytes from the stream or raises EOFError."""
    data = stream.read(n)
    if len(data) != n:
        raise EOFError(f"Expected {n} bytes, got {len(data)}")
    return data


def read_varint(stream: BinaryIO) -> int:
    """Reads a variable integer from the stream."""
    if isinstance(stream, bytes):
        stream = BytesIO(stream)
        
    i = read_exact(stream, 1)[0]
    match i:
        case 0xfd:
            return bytes_to_int(read_exact(stream, 2))
        case 0xfe:
            return bytes_to_int(read_exact(stream, 4))
        case 0xff:
            return bytes_to_int(read_exact(stream, 8))
        case _:
            return i

def encode_varint(i: int) -> bytes:
    """Encodes an integer as a Bitcoin-style variable integer."""
    if i < 0xfd:
        return bytes([i])
    elif i <= 0xffff:
        return b'\xfd' + int_to_bytes(i, 2)  # 2 bytes
    elif i <= 0xffffffff:
        return b'\xfe' + int_to_bytes(i, 4)  # 4 bytes
    else:  # i <= 0xffffffffffffffff
        return b'\xff' + int_to_bytes(i, 8)  # 8 bytes


def bits_to_target(bits: bytes):
    return bytes_to_int(bits[:3]) * pow(256, bits[3] - 3)

