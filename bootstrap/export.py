"""
Export driver: walks the chain store from the resume height to the stop height
and feeds every block, with its resolved transactions, into a BootstrapWriter.
"""

import logging

from dataclasses import dataclass
from pathlib import Path
from typing import List

from blockchain.transaction import NULL_HASH, Transaction
from bootstrap.constants import NUM_BLOCKS_PER_CHUNK, PROGRESS_INTERVAL
from bootstrap.errors import ResolutionError
from bootstrap.records import BlockPackage
from bootstrap.writer import BootstrapWriter
from utils.config import APP_CONFIG

log = logging.getLogger(__name__)


@dataclass
class ExportResult:
    path: Path
    first_height: int
    """Height of the first block in the file"""
    resume_height: int
    """Height this run started writing at"""
    last_height: int
    """Height of the last block in the file, `first_height - 1` when it holds none"""
    blocks_written: int
    max_chunk: int


class BootstrapExporter:
    """
    `store` is anything that provides the chain store read interface:
    `current_height`, `block_id_at`, `block_by_id`, `tx_by_id`, and when extra
    block data is exported `block_weight`, `cumulative_difficulty` and `coins_generated`.
    """
    def __init__(
        self,
        store,
        blocks_per_chunk: int | None = None,
        include_extra_block_data: bool | None = None,
        progress_interval: int | None = None,
    ):
        self.store = store
        if blocks_per_chunk is None:
            blocks_per_chunk = APP_CONFIG.get("export", "blocks_per_chunk", NUM_BLOCKS_PER_CHUNK)
        if blocks_per_chunk < 1:
            raise ValueError(f"blocks_per_chunk must be at least 1, got {blocks_per_chunk}")
        self.blocks_per_chunk: int = blocks_per_chunk

        if include_extra_block_data is None:
            include_extra_block_data = APP_CONFIG.get("export", "include_extra_block_data", True)
        self.include_extra_block_data: bool = include_extra_block_data
        if progress_interval is None:
            progress_interval = APP_CONFIG.get("export", "progress_interval", PROGRESS_INTERVAL)
        if progress_interval < 1:
            raise ValueError(f"progress_interval must be at least 1, got {progress_interval}")
        self.progress_interval: int = progress_interval

    def determine_block_stop(self, requested_block_stop: int | None = None) -> int:
        """Tip height, or `requested_block_stop` when it is set and lower."""
        block_stop = self.store.current_height() - 1
        if requested_block_stop and requested_block_stop < block_stop:
            block_stop = requested_block_stop
            log.info(f"Using requested block height: {requested_block_stop}")
        return block_stop

    def export(self, path: Path | str, start_height: int = 0, stop_height: int | None = None) -> ExportResult:
        path = Path(path)
        block_stop = self.determine_block_stop(stop_height)
        log.info(f"Exporting blockchain to {path}, stop height {block_stop}")

        writer = BootstrapWriter(self.blocks_per_chunk)
        resume_height = writer.open_for_append(path, start_height, max(block_stop, start_height))
        with writer:
            if resume_height > block_stop:
                log.info(f"{path} already holds every block up to height {block_stop}")
            for height in range(resume_height, block_stop + 1):
                writer.append_block(self.package_block(height))
                if height % self.progress_interval == 0:
                    log.info(f"block {height}/{block_stop}")

        log.info(f"Number of blocks exported: {writer.blocks_written}")
        log.info(f"Largest chunk: {writer.max_chunk} bytes")

        return ExportResult(
            path           = path,
            first_height   = writer.first_height,
            resume_height  = resume_height,
            last_height    = writer.next_height - 1,
            blocks_written = writer.blocks_written,
            max_chunk      = writer.max_chunk,
        )

    def package_block(self, height: int) -> BlockPackage:
        block_hash = self.store.block_id_at(height)
        if block_hash is None or block_hash == NULL_HASH:
            raise ResolutionError("No block id in chain store", height=height)

        block = self.store.block_by_id(block_hash)
        if block is None:
            raise ResolutionError(f"Block {block_hash.hex()} not found in chain store", height=height)
        if block.get_height() != height:
            raise ResolutionError(f"Block {block_hash.hex()} carries coinbase height {block.get_height()}", height=height)

        package = BlockPackage(block, self.fetch_transactions(block.get_tx_hashes(), height))

        if self.include_extra_block_data:
            package.block_weight = self._require(self.store.block_weight(height), "block weight", height)
            package.cumulative_difficulty = self._require(self.store.cumulative_difficulty(height), "cumulative difficulty", height)
            package.coins_generated = self._require(self.store.coins_generated(height), "coins generated", height)

        return package

    def fetch_transactions(self, tx_hashes: List[bytes], height: int) -> List[Transaction]:
        txs = []
        for tx_hash in tx_hashes:
            if tx_hash == NULL_HASH:
                raise ResolutionError("Transaction id is null", height=height)

            tx = self.store.tx_by_id(tx_hash)
            if tx is None:
                raise ResolutionError(f"Transaction {tx_hash.hex()} not found in chain store", height=height)
            if tx.hash() != tx_hash:
                raise ResolutionError(f"Chain store returned a different transaction for {tx_hash.hex()}", height=height)
            txs.append(tx)
        return txs

    @staticmethod
    def _require(value, name: str, height: int):
        if value is None:
            raise ResolutionError(f"Missing {name} in chain store", height=height)
        return value
