from unittest import TestCase
from io import BytesIO

from blockchain.transaction import Transaction, TransactionOutput
from bootstrap.constants import FILE_MAJOR_VERSION, FILE_MINOR_VERSION, HEADER_SIZE
from bootstrap.errors import FormatError
from bootstrap.records import BlockPackage, BlocksInfo, FileInfo, frame_record, read_record
from unittests.helpers import build_chain, make_package, p2pkh


class FileInfoTest(TestCase):

    def test_defaults(self):
        info = FileInfo()
        self.assertEqual(info.major_version, FILE_MAJOR_VERSION)
        self.assertEqual(info.minor_version, FILE_MINOR_VERSION)
        self.assertEqual(info.header_size, HEADER_SIZE)
        self.assertEqual(info.serialize(), bytes.fromhex("00000001" "00000000" "00000400"))

    def test_short_blob(self):
        with self.assertRaises(FormatError):
            FileInfo.parse(bytes(11))

    def test_trailing_fields_ignored(self):
        blob = FileInfo(1, 3).serialize() + b"future field"
        info = FileInfo.parse(blob)
        self.assertEqual(info, FileInfo(1, 3, HEADER_SIZE))


class BlocksInfoTest(TestCase):

    def test_serialize(self):
        info = BlocksInfo(100, 250)
        blob = info.serialize()
        self.assertEqual(len(blob), BlocksInfo.SIZE)
        self.assertEqual(blob[16:], bytes(8))
        self.assertEqual(BlocksInfo.parse(blob), info)

    def test_short_blob(self):
        with self.assertRaises(FormatError):
            BlocksInfo.parse(bytes(23))


class RecordFramingTest(TestCase):

    def test_frame(self):
        self.assertEqual(frame_record(b"abc"), bytes.fromhex("00000003") + b"abc")
        self.assertEqual(frame_record(b""), bytes(4))

    def test_read_record(self):
        stream = BytesIO(frame_record(b"first") + frame_record(b"second"))
        self.assertEqual(read_record(stream), b"first")
        self.assertEqual(read_record(stream), b"second")
        with self.assertRaises(EOFError):
            read_record(stream)

    def test_read_truncated_record(self):
        with self.assertRaises(EOFError):
            read_record(BytesIO(frame_record(b"second")[:-1]))


class BlockPackageTest(TestCase):

    def test_round_trip_without_extra_data(self):
        package = make_package(5)
        parsed = BlockPackage.parse(package.serialize())
        self.assertEqual(parsed.block, package.block)
        self.assertEqual(parsed.txs, package.txs)
        self.assertEqual(parsed.height, 5)
        self.assertFalse(parsed.has_extra_block_data())
        # flags byte closes the blob
        self.assertEqual(package.serialize()[-1], 0)

    def test_round_trip_with_extra_data(self):
        block = build_chain(3)[2]
        package = BlockPackage(block, list(block.get_transactions()), 512, (1 << 200) + 7, 15_000_000_000)
        parsed = BlockPackage.parse(package.serialize())
        self.assertEqual(parsed.height, 2)
        self.assertEqual(len(parsed.txs), 2)
        self.assertEqual(parsed.block_weight, 512)
        self.assertEqual(parsed.cumulative_difficulty, (1 << 200) + 7)
        self.assertEqual(parsed.coins_generated, 15_000_000_000)

    def test_partial_extra_data(self):
        package = make_package(1)
        package.coins_generated = 42
        parsed = BlockPackage.parse(package.serialize())
        self.assertIsNone(parsed.block_weight)
        self.assertIsNone(parsed.cumulative_difficulty)
        self.assertEqual(parsed.coins_generated, 42)

    def test_mismatched_transactions(self):
        package = make_package(3)
        package.txs = [Transaction(1, [], [TransactionOutput(1, p2pkh())], 0)]
        with self.assertRaises(ValueError):
            package.serialize()

    def test_tampered_transaction(self):
        blob = bytearray(make_package(3).serialize())
        # Last byte before the flags is the coinbase locktime
        blob[-2] ^= 0xff
        with self.assertRaises(ValueError):
            BlockPackage.parse(bytes(blob))

    def test_unknown_flags(self):
        blob = bytearray(make_package(3).serialize())
        blob[-1] = 0x80
        with self.assertRaises(ValueError):
            BlockPackage.parse(bytes(blob))

    def test_truncated(self):
        blob = make_package(3).serialize()
        with self.assertRaises(EOFError):
            BlockPackage.parse(blob[:-1])
