"""
LMDB + blk*.dat backed chain store.

`ChainStore` is the block source the bootstrap exporter reads from. It exposes
the read side a node already has (heights, block hashes, full blocks,
transactions and per-block metadata) and the append path used to build a
store in the first place (`save_block`).
"""

import logging

from pathlib import Path

import lmdb

from blockchain.block import Block, calculate_coins_generated
from blockchain.header import HEADER_SIZE
from blockchain.transaction import NULL_HASH, Transaction
from db.block import BlockMetadata
from db.constants import (
    BLOCK_MAGIC,
    BLOCKS_DB_NAME,
    DAT_PREFIX_SIZE,
    DAT_SIZE,
    HEIGHT_DB_NAME,
    INDEX_DB_NAME,
    MAP_SIZE,
    MAX_DBS,
    TX_DB_NAME,
    dat_file_name,
)
from db.index import BlockIndex
from db.tx import TransactionMetadata
from utils.config import APP_CONFIG
from utils.helper import bytes_to_int, encode_varint, int_to_bytes

log = logging.getLogger(__name__)


class ChainStore:
    def __init__(
        self,
        lmdb_dir: Path | str | None = None,
        blockchain_dir: Path | str | None = None,
        readonly: bool = False,
        map_size: int = MAP_SIZE,
    ):
        self.lmdb_dir = Path(lmdb_dir) if lmdb_dir else APP_CONFIG.get("path", "lmdb")
        self.blockchain_dir = Path(blockchain_dir) if blockchain_dir else APP_CONFIG.get("path", "blockchain")
        if self.lmdb_dir is None or self.blockchain_dir is None:
            raise ValueError("Chain store directories are not configured")

        self.readonly = readonly
        if not readonly:
            self.lmdb_dir.mkdir(parents=True, exist_ok=True)
            self.blockchain_dir.mkdir(parents=True, exist_ok=True)

        self.env = lmdb.open(str(self.lmdb_dir), map_size=map_size, max_dbs=MAX_DBS, readonly=readonly)
        with self.env.begin(write=not readonly) as txn:
            self.blocks_db = self.env.open_db(BLOCKS_DB_NAME, txn=txn, create=not readonly)
            self.index_db  = self.env.open_db(INDEX_DB_NAME, txn=txn, create=not readonly)
            self.height_db = self.env.open_db(HEIGHT_DB_NAME, txn=txn, create=not readonly)
            self.tx_db     = self.env.open_db(TX_DB_NAME, txn=txn, create=not readonly)

        log.debug(f"Opened chain store at {self.lmdb_dir} (readonly={readonly})")

    def close(self):
        self.env.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # 1. Heights

    def get_blockchain_height(self) -> int:
        """Height of the latest block stored, -1 for an empty store."""
        with self.env.begin(db=self.height_db) as txn:
            with txn.cursor() as cur:
                if cur.last():
                    return bytes_to_int(cur.key())
                return -1

    def current_height(self) -> int:
        """Number of blocks in the active chain, i.e. the height the next block will get."""
        return self.get_blockchain_height() + 1

    def block_id_at(self, height: int) -> bytes | None:
        with self.env.begin(db=self.height_db) as txn:
            return txn.get(int_to_bytes(height, 8))

    # 2. Blocks

    def get_block_metadata(self, block_hash: bytes) -> BlockMetadata | None:
        with self.env.begin(db=self.blocks_db) as txn:
            value = txn.get(block_hash)
        if value is None:
            return None
        return BlockMetadata.parse(block_hash, value)

    def get_block_metadata_at_height(self, height: int) -> BlockMetadata | None:
        if block_hash := self.block_id_at(height):
            return self.get_block_metadata(block_hash)
        return None

    def get_block_index(self, block_hash: bytes) -> BlockIndex | None:
        with self.env.begin(db=self.index_db) as txn:
            if value := txn.get(block_hash):
                return BlockIndex.parse(value)
        return None

    def get_block_exists(self, block_hash: bytes) -> bool:
        with self.env.begin(db=self.blocks_db) as txn:
            return txn.get(block_hash) is not None

    def get_raw_block(self, block_hash: bytes) -> bytes | None:
        """Returns a FULL block in byte form"""
        meta = self.get_block_metadata(block_hash)
        if meta is None:
            return None

        dat_file = self.blockchain_dir / dat_file_name(meta.dat_no)
        try:
            with open(dat_file, "rb") as stream:
                stream.seek(meta.offset)
                magic = stream.read(4)
                if magic != BLOCK_MAGIC:
                    log.warning(f"Block magic not placed correctly in {dat_file} at offset {meta.offset}")
                    return None
                block_size = bytes_to_int(stream.read(4))
                raw = stream.read(block_size)
        except OSError as e:
            log.warning(f"Unable to read {dat_file}: {e}")
            return None

        if len(raw) != block_size or block_size != meta.full_block_size:
            log.warning(f"Block {block_hash.hex()} truncated in {dat_file}")
            return None
        return raw

    def block_by_id(self, block_hash: bytes) -> Block | None:
        raw = self.get_raw_block(block_hash)
        if raw is None:
            return None
        try:
            return Block.parse(raw)
        except (ValueError, EOFError) as e:
            log.warning(f"Stored block {block_hash.hex()} does not parse: {e}")
            return None

    def get_block_at_height(self, height: int) -> Block | None:
        if block_hash := self.block_id_at(height):
            return self.block_by_id(block_hash)
        return None

    # 3. Transactions

    def get_tx_metadata(self, tx_hash: bytes) -> TransactionMetadata | None:
        with self.env.begin(db=self.tx_db) as txn:
            value = txn.get(tx_hash)
        if value is None:
            return None
        return TransactionMetadata.parse(tx_hash, value)

    def get_raw_tx(self, tx_hash: bytes) -> bytes | None:
        """Returns the full serialized transaction corresponding to `tx_hash`"""
        meta = self.get_tx_metadata(tx_hash)
        if meta is None:
            return None

        dat_file = self.blockchain_dir / dat_file_name(meta.dat_no)
        try:
            with open(dat_file, "rb") as stream:
                stream.seek(meta.offset)
                raw = stream.read(meta.size)
        except OSError as e:
            log.warning(f"Unable to read {dat_file}: {e}")
            return None

        if len(raw) != meta.size:
            log.warning(f"Transaction {tx_hash.hex()} truncated in {dat_file}")
            return None
        return raw

    def tx_by_id(self, tx_hash: bytes) -> Transaction | None:
        raw = self.get_raw_tx(tx_hash)
        if raw is None:
            return None
        try:
            return Transaction.parse(raw)
        except (ValueError, EOFError) as e:
            log.warning(f"Stored transaction {tx_hash.hex()} does not parse: {e}")
            return None

    def get_tx_exists(self, tx_hash: bytes) -> bool:
        with self.env.begin(db=self.tx_db) as txn:
            return txn.get(tx_hash) is not None

    # 4. Per-height metadata carried in bootstrap files

    def block_weight(self, height: int) -> int | None:
        if meta := self.get_block_metadata_at_height(height):
            return meta.full_block_size
        return None

    def cumulative_difficulty(self, height: int) -> int | None:
        if block_hash := self.block_id_at(height):
            if index := self.get_block_index(block_hash):
                return index.chainwork
        return None

    def coins_generated(self, height: int) -> int | None:
        if self.block_id_at(height) is None:
            return None
        return calculate_coins_generated(height)

    # 5. Writing

    def get_block_dat_no(self) -> int:
        numbers = [int(f.stem[3:]) for f in self.blockchain_dir.glob("blk*.dat") if f.stem[3:].isdigit()]
        return max(numbers, default=0)

    def save_block(self, block: Block) -> BlockIndex:
        """
        Appends a full block to the block files and makes it the new chain tip.
        Block validation should be done outside this function.
        """
        if self.readonly:
            raise PermissionError("Chain store opened read-only")

        block_hash = block.hash()
        if self.get_block_exists(block_hash):
            raise ValueError(f"Block {block_hash.hex()} already exists in the store")

        # 1. Work out where the block goes in the chain
        height = self.current_height()
        if block.prev_block == NULL_HASH:
            if height != 0:
                raise ValueError("Store already has a genesis block")
            chainwork = block.work()
        else:
            prev_index = self.get_block_index(block.prev_block)
            if prev_index is None or prev_index.height != height - 1:
                raise ValueError(f"Block {block_hash.hex()} does not extend the chain tip at height {height - 1}")
            chainwork = prev_index.chainwork + block.work()

        if block.get_height() != height:
            raise ValueError(f"Coinbase height {block.get_height()} does not match chain height {height}")

        # 2. .dat file
        txs = block.get_transactions()
        block_raw = block.serialize()
        block_size = len(block_raw)

        dat_no = self.get_block_dat_no()
        dat_file = self.blockchain_dir / dat_file_name(dat_no)
        dat_file.touch(exist_ok=True)

        offset = dat_file.stat().st_size
        if offset and offset + DAT_PREFIX_SIZE + block_size > DAT_SIZE:
            dat_no += 1
            dat_file = self.blockchain_dir / dat_file_name(dat_no)
            dat_file.touch(exist_ok=True)
            offset = 0

        with open(dat_file, "ab") as dat:
            dat.write(BLOCK_MAGIC)
            dat.write(int_to_bytes(block_size))
            dat.write(block_raw)

        # 3. Indexes
        block_index = BlockIndex(block_hash, block.prev_block, height, chainwork)
        fees = self._block_fees(txs)
        with self.env.begin(write=True) as txn:
            block_meta = BlockMetadata(
                block_hash      = block_hash,
                dat_no          = dat_no,
                offset          = offset,
                full_block_size = block_size,
                timestamp       = block.timestamp,
                no_txs          = len(txs),
                total_sent      = sum(tx.output_value() for tx in txs),
                fee             = fees,
                height          = height,
            )
            txn.put(block_hash, block_meta.serialize(), db=self.blocks_db)
            txn.put(block_hash, block_index.serialize(), db=self.index_db)

            tx_offset = offset + DAT_PREFIX_SIZE + HEADER_SIZE + len(encode_varint(len(txs)))
            for i, tx in enumerate(txs):
                tx_raw = tx.serialize()
                tx_meta = TransactionMetadata(tx.hash(), dat_no, tx_offset, len(tx_raw), i, height)
                txn.put(tx_meta.tx_hash, tx_meta.serialize(), db=self.tx_db)
                tx_offset += len(tx_raw)

            txn.put(int_to_bytes(height, 8), block_hash, db=self.height_db)

        log.info(f"Saved block {block_hash.hex()} at height {height}")
        return block_index

    def _block_fees(self, txs: list[Transaction]) -> int:
        """Sum of input minus output value over non-coinbase txs. Inputs may spend earlier txs in the same block."""
        pending = {tx.hash(): tx for tx in txs}
        fees = 0
        for tx in txs:
            if tx.is_coinbase():
                continue
            input_value = 0
            for tx_in in tx.inputs:
                prev_tx = pending.get(tx_in.prev_tx_hash) or self.tx_by_id(tx_in.prev_tx_hash)
                if prev_tx is None or tx_in.prev_index >= len(prev_tx.outputs):
                    log.warning(f"Unable to value input of {tx.hash().hex()}; fee recorded as 0")
                    break
                input_value += prev_tx.outputs[tx_in.prev_index].value
            else:
                fees += max(input_value - tx.output_value(), 0)
        return fees
