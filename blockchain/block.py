from math import floor

import logging
from typing import List, BinaryIO
from io import BytesIO

from utils.helper import bits_to_target, bytes_to_int, read_varint, encode_varint
from blockchain.header import Header
from blockchain.transaction import Transaction
from blockchain.merkle_tree import MerkleTree

from ktc_constants import HALVING_INTERVAL, INITIAL_BLOCK_REWARD

log = logging.getLogger(__name__)

class Block:
    def __init__(
        self,
        version: int,
        prev_block: bytes,
        timestamp: int,
        bits: bytes,
        nonce: int,
        txs: List[Transaction] | None = None,
    ):
        self.version: int = version
        self.prev_block: bytes = prev_block
        self.timestamp: int = timestamp
        self.bits: bytes = bits
        self.nonce: int = nonce

        self._transactions: List[Transaction] = list(txs) if txs else []
        self._tx_hashes: List[bytes] = [tx.hash() for tx in self._transactions]        
        self.merkle_tree = MerkleTree(self._tx_hashes)
        self.target: int = bits_to_target(bits)
        
        self.header = Header(version, prev_block, self.merkle_tree.root(), timestamp, bits, nonce)
        
        
    def __str__(self):
        lines = [
            "========== BLOCK ==========",
            str(self.header),
            "",
            f"Transactions ({len(self._transactions)}):",
        ]

        for i, tx in enumerate(self._transactions):
            lines.append(f"\n--- Transaction {i} ---")
            lines.append(str(tx))

        lines.append("\n===========================")
        return "\n".join(lines)

    @classmethod
    def parse(cls, stream: BinaryIO | bytes) -> 'Block':
        """Parses a full block. Use `Header` class otherwise."""
        if isinstance(stream, bytes):
            stream = BytesIO(stream)
            
        header = Header.parse(stream)
        no_transactions = read_varint(stream)
        transactions = [Transaction.parse(stream) for _ in range(no_transactions)]
        
        return cls.from_header(header, transactions)

    @classmethod
    def from_header(cls, header: Header, transactions: List[Transaction]) -> 'Block':
        """Rebuilds a block around an existing header.
        \nRaises ValueError if the transactions do not hash to the header's merkle root."""
        block = cls(header.version, header.prev_block, header.timestamp, header.bits, header.nonce, transactions)
        if block.merkle_root != header.merkle_root:
            raise ValueError(
                f"Merkle root mismatch: header {header.merkle_root.hex()}, transactions {block.merkle_root.hex()}"
            )
        return block
         
    def get_transactions(self):
        return self._transactions
    
    def get_tx_hashes(self):
        return self._tx_hashes
    
    def get_header(self):
        return self.header
    
    def serialize(self) -> bytes:
        if not self._transactions:
            log.warning("Attempted to serialize empty block.")
        
        result = self.header.serialize()
        result += encode_varint(len(self._transactions))
        for tx in self._transactions:
            result += tx.serialize()
            
        return result

    def hash(self) -> bytes:
        return self.header.hash()

    def work(self) -> int:
        return floor((1 << 256) / (self.target + 1))

    def size(self):
        return len(self.serialize())
    
    def get_miner_tag(self) -> str | None:
        try:
            cb_script_sig = self._transactions[0].inputs[0].script_sig
            return cb_script_sig.commands[2].decode("utf-8")
        except (IndexError, AttributeError, UnicodeDecodeError):
            return None
    
    def get_height(self) -> int | None:
        "Determines block height from the coinbase script sig."
        if not self._transactions or not self._transactions[0].is_coinbase():
            return None
        
        commands = self._transactions[0].inputs[0].script_sig.commands
        if not commands or not isinstance(commands[0], bytes) or len(commands[0]) != 8:
            return None
        return bytes_to_int(commands[0])
            
    @property
    def merkle_root(self):
        return self.merkle_tree.root()
    
    def __hash__(self):
        return hash(self.hash())
    
    def __eq__(self, other):
        if not isinstance(other, Block):
            return NotImplemented
        return self.hash() == other.hash()

# Auxillary functions

def calculate_block_subsidy(height: int) -> int:
    return INITIAL_BLOCK_REWARD >> floor(height/HALVING_INTERVAL)


def calculate_coins_generated(height: int) -> int:
    """Total subsidy minted by blocks 0..`height` inclusive."""
    total = 0
    era_start = 0
    while era_start <= height:
        subsidy = calculate_block_subsidy(era_start)
        if subsidy == 0:
            break
        era_end = min(height, era_start + HALVING_INTERVAL - 1)
        total += subsidy * (era_end - era_start + 1)
        era_start += HALVING_INTERVAL
    return total
