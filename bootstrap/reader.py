"""
Reading side of the bootstrap file.

`count_blocks` is what a writer calls before appending: it walks chunk length
and record size fields only, never decoding blocks, and stops at the last
complete chunk. A chunk that runs past end-of-file is treated as "not written
yet" there, while `iter_chunks`/`read_blocks` report it as corruption unless
asked to tolerate a partial tail.
"""

import logging
import os

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, List, Tuple

from bootstrap.constants import (
    BOOTSTRAP_MAGIC,
    CHUNK_LENGTH_BYTES,
    FILE_MAJOR_VERSION,
    HEADER_SIZE,
    RECORD_SIZE_BYTES,
)
from bootstrap.errors import CorruptionError, FormatError, OpenError, VersionError
from bootstrap.records import BlockPackage, BlocksInfo, FileInfo
from utils.helper import bytes_to_int

log = logging.getLogger(__name__)


@dataclass
class ChunkView:
    """Decoded chunk. `end_offset` is where the next chunk starts; pass it back to resume reading."""
    offset: int
    end_offset: int
    packages: List[BlockPackage]


def _file_size(stream: BinaryIO) -> int:
    return os.fstat(stream.fileno()).st_size


def _read_header_record(stream: BinaryIO) -> bytes:
    offset = stream.tell()
    raw_size = stream.read(RECORD_SIZE_BYTES)
    if len(raw_size) < RECORD_SIZE_BYTES:
        raise FormatError("Header record size field is truncated", offset=offset)

    size = bytes_to_int(raw_size)
    if offset + RECORD_SIZE_BYTES + size > HEADER_SIZE:
        raise FormatError(f"Header record of {size} bytes overruns the {HEADER_SIZE} byte header", offset=offset)
    return stream.read(size)


def read_header(stream: BinaryIO) -> Tuple[FileInfo, BlocksInfo]:
    """Validates magic and both header records. Leaves the stream positioned at the first chunk."""
    size = _file_size(stream)
    if size < HEADER_SIZE:
        raise FormatError(f"File is {size} bytes, shorter than the {HEADER_SIZE} byte header")

    stream.seek(0)
    magic = bytes_to_int(stream.read(4))
    if magic != BOOTSTRAP_MAGIC:
        raise FormatError(f"Bad magic 0x{magic:08x}, expected 0x{BOOTSTRAP_MAGIC:08x}", offset=0)

    file_info = FileInfo.parse(_read_header_record(stream))
    if file_info.major_version != FILE_MAJOR_VERSION:
        raise VersionError(
            f"Unsupported bootstrap file version {file_info.major_version}.{file_info.minor_version}, "
            f"this reader understands major version {FILE_MAJOR_VERSION}"
        )
    if file_info.header_size != HEADER_SIZE:
        raise FormatError(f"Header size {file_info.header_size}, expected {HEADER_SIZE}")

    blocks_info = BlocksInfo.parse(_read_header_record(stream))

    stream.seek(HEADER_SIZE)
    return file_info, blocks_info


def decode_chunk(payload: bytes, chunk_offset: int) -> List[BlockPackage]:
    """Splits a chunk payload into block packages. Any malformed record raises CorruptionError."""
    packages = []
    base = chunk_offset + CHUNK_LENGTH_BYTES
    pos = 0
    while pos < len(payload):
        if len(payload) - pos < RECORD_SIZE_BYTES:
            raise CorruptionError("Record size field overruns its chunk", offset=base + pos)

        size = bytes_to_int(payload[pos:pos + RECORD_SIZE_BYTES])
        record_offset = base + pos
        pos += RECORD_SIZE_BYTES
        if size > len(payload) - pos:
            raise CorruptionError(f"Record of {size} bytes overruns its chunk", offset=record_offset)

        try:
            packages.append(BlockPackage.parse(payload[pos:pos + size]))
        except (ValueError, EOFError) as e:
            raise CorruptionError(f"Malformed block package: {e}", offset=record_offset) from e
        pos += size

    return packages


class BootstrapReader:
    """
    Opens a bootstrap file and validates its header.

    Usage:
        with BootstrapReader.open_for_read(path) as reader:
            for package in reader.read_blocks():
                ...
    """
    def __init__(self, path: Path | str):
        self.path = Path(path)
        try:
            self._file: BinaryIO = open(self.path, "rb")
        except OSError as e:
            raise OpenError(f"Unable to open bootstrap file {self.path}: {e}") from e

        try:
            self.file_info, self.blocks_info = read_header(self._file)
        except BaseException:
            self._file.close()
            raise

    @classmethod
    def open_for_read(cls, path: Path | str) -> 'BootstrapReader':
        return cls(path)

    @property
    def first_height(self) -> int:
        return self.blocks_info.first_height

    def close(self):
        self._file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def count_blocks(self) -> Tuple[int, int, int]:
        """
        Returns `(num_blocks, end_offset, first_height)` where `end_offset` is the
        byte just past the last complete chunk. A partially written tail chunk is
        neither counted nor included in `end_offset`.
        """
        file_size = _file_size(self._file)
        offset = HEADER_SIZE
        num_blocks = 0

        while True:
            self._file.seek(offset)
            raw_length = self._file.read(CHUNK_LENGTH_BYTES)
            if len(raw_length) < CHUNK_LENGTH_BYTES:
                if raw_length:
                    log.warning(f"Truncated chunk length at offset {offset} in {self.path}")
                break

            length = bytes_to_int(raw_length)
            end = offset + CHUNK_LENGTH_BYTES + length
            if end > file_size:
                log.warning(
                    f"Incomplete chunk at offset {offset} in {self.path}: "
                    f"{length} bytes declared, {file_size - offset - CHUNK_LENGTH_BYTES} present"
                )
                break

            num_blocks += self._count_records(offset, length)
            offset = end

        log.debug(f"Counted {num_blocks} blocks in {self.path}, end offset {offset}")
        return num_blocks, offset, self.first_height

    def _count_records(self, chunk_offset: int, length: int) -> int:
        self._file.seek(chunk_offset + CHUNK_LENGTH_BYTES)
        pos = 0
        count = 0
        while pos < length:
            record_offset = chunk_offset + CHUNK_LENGTH_BYTES + pos
            if length - pos < RECORD_SIZE_BYTES:
                raise CorruptionError("Record size field overruns its chunk", offset=record_offset)

            size = bytes_to_int(self._file.read(RECORD_SIZE_BYTES))
            pos += RECORD_SIZE_BYTES
            if size > length - pos:
                raise CorruptionError(f"Record of {size} bytes overruns its chunk", offset=record_offset)

            self._file.seek(size, os.SEEK_CUR)
            pos += size
            count += 1
        return count

    def iter_chunks(self, start_offset: int | None = None, allow_partial_tail: bool = False) -> Iterator[ChunkView]:
        """
        Yields every complete chunk from `start_offset` (default: the first chunk).
        `start_offset` must be a chunk boundary, e.g. a previous `ChunkView.end_offset`.

        A chunk running past end-of-file raises CorruptionError, or ends iteration
        when `allow_partial_tail` is set (a writer may still be flushing it).
        """
        offset = HEADER_SIZE if start_offset is None else start_offset
        if offset < HEADER_SIZE:
            raise ValueError(f"Start offset {offset} lies inside the {HEADER_SIZE} byte header")

        while True:
            self._file.seek(offset)
            raw_length = self._file.read(CHUNK_LENGTH_BYTES)
            if not raw_length:
                return

            length = bytes_to_int(raw_length) if len(raw_length) == CHUNK_LENGTH_BYTES else None
            available = _file_size(self._file) - offset - CHUNK_LENGTH_BYTES
            if length is None or length > available:
                if allow_partial_tail:
                    log.info(f"Stopping at incomplete chunk at offset {offset} in {self.path}")
                    return
                raise CorruptionError("Chunk is truncated", offset=offset)

            payload = self._file.read(length)
            if len(payload) != length:
                raise CorruptionError("Chunk is truncated", offset=offset)

            end = offset + CHUNK_LENGTH_BYTES + length
            yield ChunkView(offset, end, decode_chunk(payload, offset))
            offset = end

    def read_blocks(self, start_offset: int | None = None, allow_partial_tail: bool = False) -> Iterator[BlockPackage]:
        for chunk in self.iter_chunks(start_offset, allow_partial_tail):
            yield from chunk.packages


def count_blocks(path: Path | str) -> Tuple[int, int, int]:
    """Returns `(num_blocks, end_offset, first_height)` for the bootstrap file at `path`."""
    with BootstrapReader(path) as reader:
        return reader.count_blocks()
