from unittest import TestCase
from io import BytesIO

from blockchain.block import Block
from blockchain.header import Header
from blockchain.script import Script, coinbase_script_sig
from blockchain.transaction import *
from ktc_constants import GENESIS_BLOCK_BYTES
from utils.helper import read_varint

# Big-endian KhetCoin encoding of the transaction used in "Programming Bitcoin" by Jimmy Song
RAW_TX = bytes.fromhex(
    "00000001"
    "01"
    "d1c789a9c60383bf715f3f6ad9d14b91fe55f3deb369fe5d9280cb1a01793f81"
    "00000000"
    "0302abcd"
    "fffffffe"
    "02"
    "0000000001ef35a1"
    "1976a914bc3b654dca7e56b04dca18f2566cdaf02e8d9ada88ac"
    "000000000098c399"
    "1976a9141c4bc762dd5423e332166702cb75f40df79fea1288ac"
    "00064319"
)


class TxTest(TestCase):

    def test_parse_version(self):
        tx = Transaction.parse(BytesIO(RAW_TX))
        self.assertEqual(tx.version, 1)

    def test_parse_inputs(self):
        tx = Transaction.parse(BytesIO(RAW_TX))
        self.assertEqual(len(tx.inputs), 1)
        want = bytes.fromhex(
            "d1c789a9c60383bf715f3f6ad9d14b91fe55f3deb369fe5d9280cb1a01793f81"
        )
        self.assertEqual(tx.inputs[0].prev_tx_hash, want)
        self.assertEqual(tx.inputs[0].prev_index, 0)
        self.assertEqual(tx.inputs[0].script_sig.commands, [bytes.fromhex("abcd")])
        self.assertEqual(tx.inputs[0].sequence, 0xFFFFFFFE)

    def test_parse_outputs(self):
        tx = Transaction.parse(BytesIO(RAW_TX))
        self.assertEqual(len(tx.outputs), 2)
        self.assertEqual(tx.outputs[0].value, 32454049)
        want = bytes.fromhex("1976a914bc3b654dca7e56b04dca18f2566cdaf02e8d9ada88ac")
        self.assertEqual(tx.outputs[0].script_pubkey.serialize(), want)
        self.assertEqual(tx.outputs[1].value, 10011545)
        want = bytes.fromhex("1976a9141c4bc762dd5423e332166702cb75f40df79fea1288ac")
        self.assertEqual(tx.outputs[1].script_pubkey.serialize(), want)
        self.assertEqual(tx.output_value(), 32454049 + 10011545)

    def test_parse_locktime(self):
        tx = Transaction.parse(BytesIO(RAW_TX))
        self.assertEqual(tx.locktime, 410393)

    def test_serialize(self):
        tx = Transaction.parse(RAW_TX)
        self.assertEqual(tx.serialize(), RAW_TX)
        self.assertEqual(tx.size(), len(RAW_TX))

    def test_truncated_tx(self):
        with self.assertRaises(EOFError):
            Transaction.parse(RAW_TX[:-2])

    def test_is_coinbase(self):
        tx = Transaction.parse(RAW_TX)
        self.assertFalse(tx.is_coinbase())

        coinbase = Transaction(1, [TransactionInput(NULL_HASH, COINBASE_INDEX, coinbase_script_sig(7))], [], 0)
        self.assertTrue(coinbase.is_coinbase())

    def test_script_length_mismatch(self):
        # Declares 3 bytes but the push needs 4
        with self.assertRaises(ValueError):
            Script.parse(BytesIO(bytes.fromhex("0303aabbcc")))


class GenesisTest(TestCase):

    def setUp(self):
        stream = BytesIO(GENESIS_BLOCK_BYTES)
        self.header = Header.parse(stream)
        self.assertEqual(read_varint(stream), 1)
        self.coinbase = Transaction.parse(stream)

    def test_genesis_height(self):
        genesis = Block(self.header.version, self.header.prev_block, self.header.timestamp, self.header.bits, self.header.nonce, [self.coinbase])
        self.assertEqual(genesis.get_height(), 0)
        self.assertTrue(self.coinbase.is_coinbase())
        self.assertEqual(genesis.get_miner_tag(), "/Khet/")

    def test_genesis_serialize(self):
        self.assertEqual(self.header.serialize(), GENESIS_BLOCK_BYTES[:80])
        self.assertEqual(self.coinbase.serialize(), GENESIS_BLOCK_BYTES[81:])


if __name__ == "__main__":
    import unittest
    unittest.main()
