"""
Append-only writer for bootstrap files.

Blocks are buffered into a chunk and committed as `length | payload` every
`blocks_per_chunk` blocks and on close. Reopening an existing file resumes at
the height after its last complete chunk.
"""

import logging
import os
import tempfile

from pathlib import Path
from typing import BinaryIO

from bootstrap.buffer import ChunkBuffer
from bootstrap.constants import (
    BOOTSTRAP_MAGIC,
    CHUNK_LENGTH_BYTES,
    MAX_CHUNK_SIZE,
    HEADER_SIZE,
    NUM_BLOCKS_PER_CHUNK,
)
from bootstrap.errors import BootstrapIOError, CreateError, HeightOrderError, OpenError
from bootstrap.reader import count_blocks
from bootstrap.records import BlockPackage, BlocksInfo, FileInfo, frame_record
from utils.config import APP_CONFIG
from utils.helper import int_to_bytes

log = logging.getLogger(__name__)


class BootstrapWriter:
    def __init__(self, blocks_per_chunk: int | None = None):
        if blocks_per_chunk is None:
            blocks_per_chunk = APP_CONFIG.get("export", "blocks_per_chunk", NUM_BLOCKS_PER_CHUNK)
        if blocks_per_chunk < 1:
            raise ValueError(f"blocks_per_chunk must be at least 1, got {blocks_per_chunk}")

        self.blocks_per_chunk: int = blocks_per_chunk
        self.path: Path | None = None
        self.first_height: int | None = None
        self.next_height: int | None = None

        self.failed = False
        self.max_chunk = 0
        self.chunks_written = 0
        self.blocks_written = 0

        self._file: BinaryIO | None = None
        self._buffer = ChunkBuffer()

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open_for_append(self, path: Path | str, requested_first_height: int, requested_last_height: int) -> int:
        """
        Opens `path` for appending, creating it (and its directory) when missing.
        Returns the height of the next block to append: `requested_first_height`
        for a new file, the height after the last complete chunk otherwise.
        """
        if self.is_open:
            raise RuntimeError(f"Writer already open on {self.path}")
        if requested_first_height < 0 or requested_last_height < 0:
            raise ValueError("Requested heights must not be negative")

        path = Path(path)
        dir_path = path.parent
        if dir_path.exists() and not dir_path.is_dir():
            raise CreateError(f"Export directory path is a file: {dir_path}")
        try:
            dir_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CreateError(f"Failed to create directory {dir_path}: {e}") from e

        # An empty file holds no committed data, same as a missing one
        if path.exists() and path.stat().st_size > 0:
            num_blocks, end_offset, first_height = count_blocks(path)
            resume_height = first_height + num_blocks
            if requested_first_height != resume_height:
                log.info(f"{path} already holds heights {first_height}..{resume_height - 1}, resuming at {resume_height}")

            self._file = self._open(path)
            file_size = self._file.seek(0, os.SEEK_END)
            if file_size > end_offset:
                log.warning(f"Discarding {file_size - end_offset} bytes of incomplete chunk at offset {end_offset} in {path}")
                try:
                    self._file.truncate(end_offset)
                except OSError as e:
                    self._abandon()
                    raise BootstrapIOError(f"Unable to truncate {path}: {e}", offset=end_offset) from e
            self._file.seek(end_offset)
        else:
            log.info(f"Creating bootstrap file {path}")
            first_height = resume_height = requested_first_height
            self._create(path, requested_first_height, requested_last_height)
            self._file = self._open(path)
            self._file.seek(HEADER_SIZE)

        self.path = path
        self.failed = False
        self.first_height = first_height
        self.next_height = resume_height
        self._buffer.reset()
        return resume_height

    def _open(self, path: Path) -> BinaryIO:
        # Unbuffered: nothing is held back in a Python-side buffer
        try:
            return open(path, "r+b", buffering=0)
        except OSError as e:
            raise OpenError(f"Unable to open {path} for writing: {e}") from e

    def _create(self, path: Path, first_height: int, last_height: int):
        """Writes the header to a temporary file and moves it into place, so `path` is either absent or complete."""
        header = int_to_bytes(BOOTSTRAP_MAGIC)
        header += frame_record(FileInfo().serialize())
        header += frame_record(BlocksInfo(first_height, last_height).serialize())
        header += bytes(HEADER_SIZE - len(header))

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(header)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise CreateError(f"Unable to create bootstrap file {path}: {e}") from e

    def _write(self, *parts):
        """
        Writes `parts` at the current position. On failure the file is truncated
        back to where the write started and the writer is marked failed.
        """
        if self.failed:
            raise BootstrapIOError(f"Writer for {self.path} failed earlier, reopen it to resume")

        offset = self._file.tell()
        expected = sum(len(part) for part in parts)
        try:
            for part in parts:
                done = 0
                while done < len(part):
                    done += self._file.write(part[done:])
        except OSError as e:
            self._rollback(offset)
            raise BootstrapIOError(f"Error writing to {self.path}: {e}", offset=offset) from e

        written = self._file.tell() - offset
        if written != expected:
            self._rollback(offset)
            raise BootstrapIOError(f"Wrote {written} of {expected} bytes to {self.path}", offset=offset)

    def _rollback(self, offset: int):
        self.failed = True
        try:
            self._file.truncate(offset)
            self._file.seek(offset)
        except OSError as e:
            log.error(f"Unable to truncate {self.path} back to offset {offset}: {e}")

    def append_block(self, package: BlockPackage):
        """Buffers a block package. Its coinbase height must be exactly the next height."""
        if not self.is_open:
            raise RuntimeError("Writer is not open")

        height = package.height
        if height is None:
            raise HeightOrderError("Block has no coinbase height", height=self.next_height)
        if height != self.next_height:
            raise HeightOrderError(f"Expected block at height {self.next_height}, got block at height {height}", height=height)

        self._buffer.write_record(package.serialize())
        self.next_height += 1

        if self._buffer.records >= self.blocks_per_chunk:
            self.flush()

    def flush(self) -> int:
        """Commits buffered blocks as one chunk. Returns the chunk size, 0 when nothing was buffered."""
        if not self.is_open:
            raise RuntimeError("Writer is not open")

        chunk_size = len(self._buffer)
        if chunk_size == 0:
            return 0
        if chunk_size > MAX_CHUNK_SIZE:
            log.warning(f"Chunk of {chunk_size} bytes exceeds the {MAX_CHUNK_SIZE} byte sizing hint")

        with self._buffer.getbuffer() as payload:
            self._write(int_to_bytes(chunk_size, CHUNK_LENGTH_BYTES), payload)

        self.max_chunk = max(self.max_chunk, chunk_size)
        self.chunks_written += 1
        self.blocks_written += self._buffer.records
        log.debug(f"Flushed chunk of {self._buffer.records} blocks, chunk_size: {chunk_size}")

        self._buffer.reset()
        return chunk_size

    def close(self):
        """
        Flushes any buffered blocks and closes the file. Safe to call twice.
        A failed writer closes without writing anything further.
        """
        if not self.is_open:
            return
        if self.failed:
            self.discard()
            return
        try:
            self.flush()
        finally:
            self._abandon()

    def discard(self):
        """Closes the file without committing buffered blocks."""
        if not self.is_open:
            return
        if self._buffer.records:
            log.warning(f"Discarding {self._buffer.records} buffered blocks not yet written to {self.path}")
            self.next_height -= self._buffer.records
        self._buffer.reset()
        self._abandon()

    def _abandon(self):
        try:
            self._file.close()
        except OSError as e:
            raise BootstrapIOError(f"Error closing {self.path}: {e}") from e
        finally:
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            self.discard()
