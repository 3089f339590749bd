import os
import tempfile

from pathlib import Path
from unittest import TestCase
from unittest.mock import patch

from bootstrap.constants import BOOTSTRAP_MAGIC, HEADER_SIZE
from bootstrap.errors import BootstrapIOError, CorruptionError, CreateError, FormatError, HeightOrderError, OpenError, VersionError
from bootstrap.reader import BootstrapReader, count_blocks
from bootstrap.records import FileInfo, frame_record
from bootstrap.writer import BootstrapWriter
from utils.helper import int_to_bytes
from unittests.helpers import make_package, make_packages


def write_file(path: Path, packages, blocks_per_chunk: int = 100, first_height: int | None = None) -> BootstrapWriter:
    first_height = packages[0].height if first_height is None else first_height
    writer = BootstrapWriter(blocks_per_chunk)
    writer.open_for_append(path, first_height, first_height + len(packages) - 1)
    with writer:
        for package in packages:
            writer.append_block(package)
    return writer


def read_hashes(path: Path) -> list[bytes]:
    with BootstrapReader.open_for_read(path) as reader:
        return [package.block.hash() for package in reader.read_blocks()]


class DiskFullFile:
    """Wraps a file so that a large write stores half of its bytes and then fails."""

    def __init__(self, file):
        self._file = file

    def write(self, data):
        if len(data) > 100:
            self._file.write(data[:len(data) // 2])
            raise OSError(28, "No space left on device")
        return self._file.write(data)

    def __getattr__(self, name):
        return getattr(self._file, name)


class WriterReaderTest(TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "export" / "blockchain.raw"

    def tearDown(self):
        self.tmp.cleanup()

    def test_header_layout(self):
        write_file(self.path, make_packages(0, 1))
        raw = self.path.read_bytes()
        self.assertEqual(raw[:4], int_to_bytes(BOOTSTRAP_MAGIC))
        self.assertEqual(raw[4:20], frame_record(FileInfo().serialize()))
        self.assertEqual(raw[20:24], int_to_bytes(24))
        self.assertEqual(raw[48:HEADER_SIZE], bytes(HEADER_SIZE - 48))

        with BootstrapReader(self.path) as reader:
            self.assertEqual(reader.file_info, FileInfo())
            self.assertEqual(reader.blocks_info.first_height, 0)
            self.assertEqual(reader.blocks_info.last_height_hint, 0)
            self.assertEqual(reader.blocks_info.reserved, 0)

    def test_round_trip(self):
        packages = make_packages(0, 25)
        write_file(self.path, packages, blocks_per_chunk=10)

        with BootstrapReader(self.path) as reader:
            parsed = list(reader.read_blocks())
        self.assertEqual([p.height for p in parsed], list(range(25)))
        self.assertEqual([p.block for p in parsed], [p.block for p in packages])
        self.assertEqual([p.txs for p in parsed], [p.txs for p in packages])

    def test_chunking(self):
        writer = write_file(self.path, make_packages(0, 25), blocks_per_chunk=10)
        self.assertEqual(writer.chunks_written, 3)
        self.assertEqual(writer.blocks_written, 25)

        with BootstrapReader(self.path) as reader:
            chunks = list(reader.iter_chunks())
        self.assertEqual([len(c.packages) for c in chunks], [10, 10, 5])
        self.assertEqual(chunks[0].offset, HEADER_SIZE)
        self.assertEqual(chunks[1].offset, chunks[0].end_offset)
        self.assertEqual(chunks[-1].end_offset, self.path.stat().st_size)
        self.assertEqual(writer.max_chunk, max(c.end_offset - c.offset - 4 for c in chunks))

    def test_resume_from_chunk_offset(self):
        write_file(self.path, make_packages(0, 25), blocks_per_chunk=10)
        with BootstrapReader(self.path) as reader:
            second = list(reader.iter_chunks())[1]
            heights = [p.height for p in reader.read_blocks(second.offset)]
        self.assertEqual(heights, list(range(10, 25)))

    def test_start_offset_inside_header(self):
        write_file(self.path, make_packages(0, 2))
        with BootstrapReader(self.path) as reader:
            with self.assertRaises(ValueError):
                list(reader.read_blocks(HEADER_SIZE - 1))

    def test_chunk_interval_independence(self):
        packages = make_packages(0, 12)
        other = Path(self.tmp.name) / "other.raw"
        write_file(self.path, packages, blocks_per_chunk=1)
        write_file(other, packages, blocks_per_chunk=100)

        self.assertEqual(read_hashes(self.path), read_hashes(other))
        self.assertNotEqual(self.path.read_bytes(), other.read_bytes())
        self.assertEqual(count_blocks(self.path)[0], count_blocks(other)[0])

    def test_resume(self):
        packages = make_packages(0, 10)
        write_file(self.path, packages[:6], blocks_per_chunk=4, first_height=0)

        writer = BootstrapWriter(4)
        resume_height = writer.open_for_append(self.path, 0, 9)
        self.assertEqual(resume_height, 6)
        with writer:
            for package in packages[6:]:
                writer.append_block(package)

        self.assertEqual(read_hashes(self.path), [p.block.hash() for p in packages])
        with BootstrapReader(self.path) as reader:
            # header is never rewritten
            self.assertEqual(reader.blocks_info.last_height_hint, 5)

    def test_resume_overrides_requested_start(self):
        write_file(self.path, make_packages(0, 3))
        writer = BootstrapWriter()
        self.assertEqual(writer.open_for_append(self.path, 50, 60), 3)
        writer.close()

    def test_new_file_starts_at_requested_height(self):
        writer = BootstrapWriter()
        self.assertEqual(writer.open_for_append(self.path, 7, 20), 7)
        writer.close()
        self.assertEqual(count_blocks(self.path), (0, HEADER_SIZE, 7))
        self.assertEqual(self.path.stat().st_size, HEADER_SIZE)

    def test_scenario_100_101_102(self):
        write_file(self.path, make_packages(100, 3))
        num_blocks, end_offset, first_height = count_blocks(self.path)
        self.assertEqual((num_blocks, first_height), (3, 100))
        self.assertEqual(end_offset, self.path.stat().st_size)

    def test_empty_flush_writes_nothing(self):
        writer = BootstrapWriter()
        writer.open_for_append(self.path, 0, 0)
        self.assertEqual(writer.flush(), 0)
        writer.append_block(make_package(0))
        self.assertGreater(writer.flush(), 0)
        size = self.path.stat().st_size
        self.assertEqual(writer.flush(), 0)
        writer.close()
        writer.close()
        self.assertEqual(self.path.stat().st_size, size)

    def test_buffered_blocks_not_on_disk(self):
        writer = BootstrapWriter(10)
        writer.open_for_append(self.path, 0, 9)
        for package in make_packages(0, 3):
            writer.append_block(package)
        self.assertEqual(self.path.stat().st_size, HEADER_SIZE)
        writer.close()
        self.assertEqual(count_blocks(self.path)[0], 3)

    def test_height_order(self):
        packages = make_packages(0, 3)
        writer = BootstrapWriter()
        writer.open_for_append(self.path, 0, 2)
        with writer:
            writer.append_block(packages[0])
            with self.assertRaises(HeightOrderError):
                writer.append_block(packages[2])
            with self.assertRaises(HeightOrderError):
                writer.append_block(packages[0])
            writer.append_block(packages[1])
        self.assertEqual(count_blocks(self.path)[0], 2)

    def test_append_requires_open(self):
        with self.assertRaises(RuntimeError):
            BootstrapWriter().append_block(make_package(0))

    def test_invalid_chunk_interval(self):
        with self.assertRaises(ValueError):
            BootstrapWriter(0)

    def test_directory_is_a_file(self):
        blocker = Path(self.tmp.name) / "export"
        blocker.write_bytes(b"not a directory")
        with self.assertRaises(CreateError):
            BootstrapWriter().open_for_append(blocker / "blockchain.raw", 0, 0)

    def test_existing_empty_file_is_new(self):
        self.path.parent.mkdir(parents=True)
        self.path.touch()
        writer = BootstrapWriter()
        self.assertEqual(writer.open_for_append(self.path, 7, 9), 7)
        writer.close()
        self.assertEqual(count_blocks(self.path), (0, HEADER_SIZE, 7))

    def test_failed_create_leaves_nothing(self):
        with patch("bootstrap.writer.os.replace", side_effect=OSError(28, "No space left on device")):
            writer = BootstrapWriter()
            with self.assertRaises(CreateError):
                writer.open_for_append(self.path, 0, 0)
        self.assertFalse(writer.is_open)
        self.assertFalse(self.path.exists())
        self.assertEqual(list(self.path.parent.iterdir()), [])

    def test_partial_write_is_rolled_back(self):
        packages = make_packages(0, 9)
        writer = BootstrapWriter(3)
        writer.open_for_append(self.path, 0, 8)
        for package in packages[:3]:
            writer.append_block(package)
        committed = self.path.stat().st_size

        writer._file = DiskFullFile(writer._file)
        with self.assertRaises(BootstrapIOError):
            with writer:
                for package in packages[3:6]:
                    writer.append_block(package)

        self.assertTrue(writer.failed)
        self.assertFalse(writer.is_open)
        self.assertEqual(writer.next_height, 3)
        self.assertEqual(self.path.stat().st_size, committed)
        self.assertEqual(count_blocks(self.path), (3, committed, 0))

        writer = BootstrapWriter(3)
        self.assertEqual(writer.open_for_append(self.path, 0, 8), 3)
        with writer:
            for package in packages[3:]:
                writer.append_block(package)
        self.assertEqual(read_hashes(self.path), [p.block.hash() for p in packages])

    def test_failed_writer_refuses_writes(self):
        packages = make_packages(0, 3)
        writer = BootstrapWriter(3)
        writer.open_for_append(self.path, 0, 2)
        writer._file = DiskFullFile(writer._file)
        writer.append_block(packages[0])
        writer.append_block(packages[1])
        with self.assertRaises(BootstrapIOError):
            writer.append_block(packages[2])
        with self.assertRaises(BootstrapIOError):
            writer.flush()
        writer.close()
        self.assertFalse(writer.is_open)
        self.assertEqual(self.path.stat().st_size, HEADER_SIZE)

    def test_exception_discards_buffered_blocks(self):
        writer = BootstrapWriter(10)
        writer.open_for_append(self.path, 0, 9)
        with self.assertRaises(KeyError):
            with writer:
                for package in make_packages(0, 2):
                    writer.append_block(package)
                raise KeyError("missing block")
        self.assertFalse(writer.is_open)
        self.assertEqual(writer.next_height, 0)
        self.assertEqual(count_blocks(self.path), (0, HEADER_SIZE, 0))


class DamagedFileTest(TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "blockchain.raw"
        self.packages = make_packages(0, 10)
        write_file(self.path, self.packages, blocks_per_chunk=4)
        with BootstrapReader(self.path) as reader:
            self.chunks = list(reader.iter_chunks())

    def tearDown(self):
        self.tmp.cleanup()

    def truncate(self, size: int):
        with open(self.path, "r+b") as f:
            f.truncate(size)

    def test_truncated_at_chunk_boundary(self):
        self.truncate(self.chunks[1].end_offset)
        self.assertEqual(count_blocks(self.path), (8, self.chunks[1].end_offset, 0))
        self.assertEqual(len(read_hashes(self.path)), 8)

    def test_truncated_mid_chunk(self):
        self.truncate(self.chunks[2].offset + 30)
        self.assertEqual(count_blocks(self.path), (8, self.chunks[2].offset, 0))

        with BootstrapReader(self.path) as reader:
            with self.assertRaises(CorruptionError) as ctx:
                list(reader.read_blocks())
            self.assertEqual(ctx.exception.offset, self.chunks[2].offset)
            self.assertEqual(len(list(reader.read_blocks(allow_partial_tail=True))), 8)

    def test_truncated_length_field(self):
        self.truncate(self.chunks[2].offset + 2)
        self.assertEqual(count_blocks(self.path)[:2], (8, self.chunks[2].offset))
        with BootstrapReader(self.path) as reader:
            with self.assertRaises(CorruptionError):
                list(reader.read_blocks())

    def test_resume_after_truncation(self):
        self.truncate(self.chunks[2].offset + 30)
        writer = BootstrapWriter(4)
        self.assertEqual(writer.open_for_append(self.path, 0, 9), 8)
        with writer:
            for package in self.packages[8:]:
                writer.append_block(package)
        self.assertEqual(read_hashes(self.path), [p.block.hash() for p in self.packages])

    def test_garbage_inside_chunk(self):
        with open(self.path, "r+b") as f:
            # First record's header, inside the first chunk
            f.seek(self.chunks[0].offset + 8 + 40)
            f.write(b"\xff" * 8)
        with BootstrapReader(self.path) as reader:
            with self.assertRaises(CorruptionError) as ctx:
                list(reader.read_blocks())
            self.assertEqual(ctx.exception.offset, self.chunks[0].offset + 4)

    def test_record_overruns_chunk(self):
        with open(self.path, "r+b") as f:
            f.seek(self.chunks[0].offset + 4)
            f.write(int_to_bytes(0xffffff))
        with self.assertRaises(CorruptionError):
            count_blocks(self.path)

    def test_bad_magic(self):
        with open(self.path, "r+b") as f:
            f.write(b"KHET")
        with self.assertRaises(FormatError):
            BootstrapReader(self.path)
        with self.assertRaises(FormatError):
            count_blocks(self.path)

    def test_bad_major_version(self):
        with open(self.path, "r+b") as f:
            f.seek(8)
            f.write(int_to_bytes(2))
        with self.assertRaises(VersionError):
            BootstrapReader(self.path)

    def test_unknown_minor_version(self):
        with open(self.path, "r+b") as f:
            f.seek(12)
            f.write(int_to_bytes(9))
        with BootstrapReader(self.path) as reader:
            self.assertEqual(reader.file_info.minor_version, 9)
            self.assertEqual(len(list(reader.read_blocks())), 10)

    def test_bad_header_size(self):
        with open(self.path, "r+b") as f:
            f.seek(16)
            f.write(int_to_bytes(2048))
        with self.assertRaises(FormatError):
            BootstrapReader(self.path)

    def test_short_header(self):
        self.truncate(HEADER_SIZE - 1)
        with self.assertRaises(FormatError):
            count_blocks(self.path)

    def test_missing_file(self):
        os.remove(self.path)
        with self.assertRaises(OpenError):
            BootstrapReader(self.path)
