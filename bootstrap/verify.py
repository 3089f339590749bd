import logging

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from blockchain.checkpoints import Checkpoints
from bootstrap.constants import CHUNK_LENGTH_BYTES
from bootstrap.errors import CorruptionError
from bootstrap.reader import BootstrapReader

log = logging.getLogger(__name__)


@dataclass
class VerifyReport:
    path: Path
    first_height: int
    num_blocks: int = 0
    num_chunks: int = 0
    max_chunk: int = 0
    end_offset: int = 0
    checkpoints_passed: int = 0
    checkpoint_failures: List[Tuple[int, bytes]] = field(default_factory=list)

    @property
    def last_height(self) -> int | None:
        if self.num_blocks == 0:
            return None
        return self.first_height + self.num_blocks - 1

    @property
    def ok(self) -> bool:
        return not self.checkpoint_failures


def verify_bootstrap(path: Path | str, checkpoints: Checkpoints | None = None) -> VerifyReport:
    """
    Decodes every chunk of a bootstrap file and checks block heights run
    consecutively from the header's first height. Structural problems raise
    FormatError/VersionError/CorruptionError; checkpoint mismatches are
    collected in the report.
    """
    with BootstrapReader(path) as reader:
        report = VerifyReport(Path(path), reader.first_height, end_offset=reader.file_info.header_size)
        expected_height = reader.first_height

        for chunk in reader.iter_chunks():
            for package in chunk.packages:
                height = package.height
                if height != expected_height:
                    raise CorruptionError(f"Expected block at height {expected_height}, found {height}", offset=chunk.offset)

                if checkpoints is not None and checkpoints.is_checkpoint(height):
                    block_hash = package.block.hash()
                    passed = checkpoints.check_block(height, block_hash)
                    if passed and package.cumulative_difficulty is not None:
                        passed = checkpoints.check_difficulty(height, package.cumulative_difficulty)
                    if passed:
                        report.checkpoints_passed += 1
                    else:
                        report.checkpoint_failures.append((height, block_hash))

                expected_height += 1

            report.num_blocks += len(chunk.packages)
            report.num_chunks += 1
            report.max_chunk = max(report.max_chunk, chunk.end_offset - chunk.offset - CHUNK_LENGTH_BYTES)
            report.end_offset = chunk.end_offset

    log.info(f"Verified {report.num_blocks} blocks in {report.num_chunks} chunks from {path}")
    return report
