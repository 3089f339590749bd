"""
Bootstrap files: a portable, append-only container of serialized blocks used to
seed a new node without syncing from peers.
"""

from bootstrap.errors import (
    BootstrapError,
    BootstrapIOError,
    CorruptionError,
    CreateError,
    FormatError,
    HeightOrderError,
    OpenError,
    ResolutionError,
    VersionError,
)
from bootstrap.export import BootstrapExporter, ExportResult
from bootstrap.reader import BootstrapReader, ChunkView, count_blocks
from bootstrap.records import BlockPackage, BlocksInfo, FileInfo
from bootstrap.verify import VerifyReport, verify_bootstrap
from bootstrap.writer import BootstrapWriter
