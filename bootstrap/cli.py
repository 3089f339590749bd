"""
ktc-bootstrap: export a chain store to a bootstrap file and inspect the result.

    ktc-bootstrap export --output-file blockchain.raw --block-stop 5000
    ktc-bootstrap verify blockchain.raw --checkpoints checkpoints.json
    ktc-bootstrap info blockchain.raw
    ktc-bootstrap depth --height 120
"""

import argparse
import json
import logging

from pathlib import Path

import lmdb

from blockchain.checkpoints import Checkpoints
from bootstrap.errors import BootstrapError
from bootstrap.export import BootstrapExporter
from bootstrap.reader import BootstrapReader
from bootstrap.verify import verify_bootstrap
from db.depth import depths_at_height, min_tx_depth, summarize_depths
from db.store import ChainStore
from utils.config import APP_CONFIG
from utils.fmt import format_bytes
from utils.setup import configure_logging

log = logging.getLogger(__name__)


def _default_export_path() -> Path | None:
    return APP_CONFIG.get("path", "export")


def _txid(value: str) -> bytes:
    try:
        tx_hash = bytes.fromhex(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a hex transaction hash: {value!r}")
    if len(tx_hash) != 32:
        raise argparse.ArgumentTypeError(f"transaction hash must be 32 bytes, got {len(tx_hash)}")
    return tx_hash


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {number}")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _open_store(args: argparse.Namespace) -> ChainStore:
    return ChainStore(args.lmdb_dir, args.blockchain_dir, readonly=True)


def _bootstrap_path(args: argparse.Namespace) -> Path:
    path = args.file or _default_export_path()
    if path is None:
        raise SystemExit("No bootstrap file given and path.export is not configured")
    return Path(path)


def cmd_export(args: argparse.Namespace) -> None:
    output_file = Path(args.output_file) if args.output_file else _default_export_path()
    if output_file is None:
        raise SystemExit("No output file given and path.export is not configured")

    with _open_store(args) as store:
        exporter = BootstrapExporter(
            store,
            blocks_per_chunk=args.blocks_per_chunk,
            include_extra_block_data=False if args.no_extra_block_data else None,
        )
        result = exporter.export(output_file, args.block_start, args.block_stop)

    print(
        json.dumps(
            {
                "file": str(result.path),
                "first_height": result.first_height,
                "resume_height": result.resume_height,
                "last_height": result.last_height,
                "blocks_written": result.blocks_written,
                "largest_chunk": format_bytes(result.max_chunk),
            },
            indent=2,
        )
    )


def cmd_verify(args: argparse.Namespace) -> None:
    checkpoints = None
    checkpoints_file = Path(args.checkpoints) if args.checkpoints else APP_CONFIG.get("path", "checkpoints")
    if checkpoints_file is not None:
        checkpoints = Checkpoints()
        if not checkpoints.load_from_json(checkpoints_file):
            raise SystemExit(f"Unable to load checkpoints from {checkpoints_file}")

    report = verify_bootstrap(_bootstrap_path(args), checkpoints)
    print(
        json.dumps(
            {
                "file": str(report.path),
                "first_height": report.first_height,
                "last_height": report.last_height,
                "blocks": report.num_blocks,
                "chunks": report.num_chunks,
                "largest_chunk": format_bytes(report.max_chunk),
                "checkpoints_passed": report.checkpoints_passed,
                "checkpoint_failures": [{"height": h, "hash": block_hash.hex()} for h, block_hash in report.checkpoint_failures],
            },
            indent=2,
        )
    )
    if not report.ok:
        raise SystemExit(1)


def cmd_info(args: argparse.Namespace) -> None:
    with BootstrapReader.open_for_read(_bootstrap_path(args)) as reader:
        num_blocks, end_offset, first_height = reader.count_blocks()
        print(
            json.dumps(
                {
                    "file": str(reader.path),
                    "version": f"{reader.file_info.major_version}.{reader.file_info.minor_version}",
                    "header_size": reader.file_info.header_size,
                    "first_height": first_height,
                    "last_height_hint": reader.blocks_info.last_height_hint,
                    "blocks": num_blocks,
                    "end_offset": end_offset,
                },
                indent=2,
            )
        )


def cmd_depth(args: argparse.Namespace) -> None:
    with _open_store(args) as store:
        if args.txid:
            depths = {args.txid: min_tx_depth(store, args.txid)}
        else:
            depths = depths_at_height(store, args.height, args.include_coinbase)

    if not depths:
        raise SystemExit(f"No transactions to check at height {args.height}")

    average, median = summarize_depths(list(depths.values()))
    print(
        json.dumps(
            {
                "depths": {tx_hash.hex(): depth for tx_hash, depth in depths.items()},
                "average": average,
                "median": median,
            },
            indent=2,
        )
    )


def _add_store_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--lmdb-dir", help="LMDB index directory (default: path.lmdb from config.json)")
    parser.add_argument("--blockchain-dir", help="Directory of blk*.dat files (default: path.blockchain from config.json)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ktc-bootstrap",
        description="Export the KhetCoin chain to a portable bootstrap file.",
    )
    parser.add_argument("--log-level", help="Logging level (default: log.level from config.json)")
    parser.add_argument("--quiet", action="store_true", help="Only log to the log file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    export = subparsers.add_parser("export", help="Export blocks to a bootstrap file, resuming an existing one")
    export.add_argument("--output-file", help="Bootstrap file (default: path.export from config.json)")
    export.add_argument("--block-start", type=_non_negative_int, default=0, help="First height of a new file")
    export.add_argument("--block-stop", type=_non_negative_int, default=0, help="Stop at this height (default: chain tip)")
    export.add_argument("--blocks-per-chunk", type=_positive_int, help="Blocks per chunk (default: export.blocks_per_chunk)")
    export.add_argument("--no-extra-block-data", action="store_true", help="Leave out weight, difficulty and coins generated")
    _add_store_args(export)
    export.set_defaults(func=cmd_export)

    verify = subparsers.add_parser("verify", help="Decode every block and check heights and checkpoints")
    verify.add_argument("file", nargs="?", help="Bootstrap file (default: path.export)")
    verify.add_argument("--checkpoints", help="Checkpoints JSON (default: path.checkpoints)")
    verify.set_defaults(func=cmd_verify)

    info = subparsers.add_parser("info", help="Show the header and block count of a bootstrap file")
    info.add_argument("file", nargs="?", help="Bootstrap file (default: path.export)")
    info.set_defaults(func=cmd_info)

    depth = subparsers.add_parser("depth", help="Minimum number of hops back to a coinbase")
    target = depth.add_mutually_exclusive_group(required=True)
    target.add_argument("--txid", type=_txid, help="Transaction hash in hex")
    target.add_argument("--height", type=_non_negative_int, help="Check every transaction in the block at this height")
    depth.add_argument("--include-coinbase", action="store_true", help="Include the coinbase when checking a height")
    _add_store_args(depth)
    depth.set_defaults(func=cmd_depth)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level, console=False if args.quiet else None)

    try:
        args.func(args)
    except BootstrapError as exc:
        log.error(exc)
        print(f"Error: {exc}")
        raise SystemExit(1) from exc
    except lmdb.Error as exc:
        log.error(f"Chain store error: {exc}")
        print(f"Chain store error: {exc}")
        raise SystemExit(1) from exc
    except ValueError as exc:
        log.error(exc)
        print(f"Error: {exc}")
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
