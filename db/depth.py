"""
Minimum transaction depth: how many spend hops separate a transaction from the
nearest coinbase among its ancestors. A coinbase has depth 0, a transaction
spending one directly has depth 1, and so on.
"""

import logging
import statistics

from typing import Dict, List, Tuple

from bootstrap.errors import ResolutionError

log = logging.getLogger(__name__)


def min_tx_depth(store, tx_hash: bytes) -> int:
    """Breadth-first walk over input transactions until a level contains a coinbase."""
    depth = 0
    tx_hashes = [tx_hash]

    while True:
        log.debug(f"Considering {len(tx_hashes)} transaction(s) at depth {depth}")
        prev_hashes = []
        for current in tx_hashes:
            tx = store.tx_by_id(current)
            if tx is None:
                raise ResolutionError(f"Failed to get transaction {current.hex()} from chain store")
            if tx.is_coinbase():
                log.debug(f"Found coinbase {current.hex()} at depth {depth}")
                return depth
            prev_hashes.extend(tx_in.prev_tx_hash for tx_in in tx.inputs)

        if not prev_hashes:
            raise ResolutionError(f"Transactions at depth {depth} have no inputs to follow")

        tx_hashes = list(dict.fromkeys(prev_hashes))
        depth += 1


def depths_at_height(store, height: int, include_coinbase: bool = False) -> Dict[bytes, int]:
    """Minimum depth of every transaction in the block at `height`."""
    block = store.get_block_at_height(height)
    if block is None:
        raise ResolutionError("Block not found in chain store", height=height)

    depths = {}
    for tx in block.get_transactions():
        if tx.is_coinbase() and not include_coinbase:
            continue
        depths[tx.hash()] = min_tx_depth(store, tx.hash())
    return depths


def summarize_depths(depths: List[int]) -> Tuple[float, float]:
    """Returns `(average, median)`. Raises ValueError when `depths` is empty."""
    if not depths:
        raise ValueError("No depths to summarize")
    return statistics.mean(depths), statistics.median(depths)
