"""Small chains built in memory for the bootstrap tests."""

from blockchain.block import Block, calculate_block_subsidy
from blockchain.script import Script, coinbase_script_sig
from blockchain.transaction import COINBASE_INDEX, NULL_HASH, Transaction, TransactionInput, TransactionOutput
from bootstrap.records import BlockPackage
from ktc_constants import HIGHEST_BITS

FEE = 1000
BASE_TIMESTAMP = 1_700_000_000


def p2pkh(pubkey_hash: bytes = bytes(20)) -> Script:
    return Script([0x76, 0xa9, pubkey_hash, 0x88, 0xac])


def make_coinbase(height: int, tag: bytes = b"/Khet/") -> Transaction:
    tx_in = TransactionInput(NULL_HASH, COINBASE_INDEX, coinbase_script_sig(height, tag))
    tx_out = TransactionOutput(calculate_block_subsidy(height), p2pkh())
    return Transaction(1, [tx_in], [tx_out], 0)


def make_spend(prev_tx: Transaction, prev_index: int = 0) -> Transaction:
    tx_in = TransactionInput(prev_tx.hash(), prev_index, Script([bytes(71)]))
    tx_out = TransactionOutput(prev_tx.outputs[prev_index].value - FEE, p2pkh(bytes([1]) * 20))
    return Transaction(1, [tx_in], [tx_out], 0)


def make_block(height: int, prev_block: bytes = NULL_HASH, extra_txs: list[Transaction] | None = None) -> Block:
    txs = [make_coinbase(height)] + list(extra_txs or [])
    return Block(1, prev_block, BASE_TIMESTAMP + height, HIGHEST_BITS, height, txs)


def build_chain(num_blocks: int) -> list[Block]:
    """
    Linked blocks from height 0. Every block after genesis also carries a spend of
    the previous block's last transaction, so the spend in block `h` is `h` hops
    away from the genesis coinbase.
    """
    blocks = [make_block(0)]
    for height in range(1, num_blocks):
        prev = blocks[-1]
        spend = make_spend(prev.get_transactions()[-1])
        blocks.append(make_block(height, prev.hash(), [spend]))
    return blocks


def make_package(height: int, prev_block: bytes = NULL_HASH) -> BlockPackage:
    block = make_block(height, prev_block)
    return BlockPackage(block, list(block.get_transactions()))


def make_packages(first_height: int, count: int) -> list[BlockPackage]:
    packages = []
    prev_block = NULL_HASH
    for height in range(first_height, first_height + count):
        packages.append(make_package(height, prev_block))
        prev_block = packages[-1].block.hash()
    return packages
