"""
Static table of known block hashes by height, optionally with the cumulative
difficulty expected at that height. Loaded from a JSON file shaped like:

    {"hashlines": [{"height": 0, "hash": "<64 hex chars>", "difficulty": "0x..."}]}

`difficulty` is optional per entry.
"""

import json
import logging

from pathlib import Path
from typing import Dict

log = logging.getLogger(__name__)


class Checkpoints:
    def __init__(self):
        self._points: Dict[int, bytes] = {}
        self._difficulty_points: Dict[int, int] = {}

    @property
    def points(self) -> Dict[int, bytes]:
        return dict(sorted(self._points.items()))

    @property
    def difficulty_points(self) -> Dict[int, int]:
        return dict(sorted(self._difficulty_points.items()))

    @property
    def max_height(self) -> int:
        return max(self._points, default=0)

    def __len__(self) -> int:
        return len(self._points)

    def add_checkpoint(self, height: int, hash_hex: str, difficulty: int | str | None = None) -> bool:
        """Returns False if `height` already has a different hash or difficulty, or the input is malformed."""
        try:
            block_hash = bytes.fromhex(hash_hex)
        except ValueError:
            log.error(f"Failed to parse checkpoint hash at height {height}: {hash_hex!r}")
            return False
        if len(block_hash) != 32:
            log.error(f"Checkpoint hash at height {height} is {len(block_hash)} bytes, expected 32")
            return False

        existing = self._points.get(height)
        if existing is not None and existing != block_hash:
            log.error(f"Conflicting checkpoint at height {height}: {existing.hex()} vs {hash_hex}")
            return False

        if difficulty is not None:
            try:
                difficulty = int(difficulty, 0) if isinstance(difficulty, str) else int(difficulty)
            except ValueError:
                log.error(f"Failed to parse checkpoint difficulty at height {height}: {difficulty!r}")
                return False
            existing_difficulty = self._difficulty_points.get(height)
            if existing_difficulty is not None and existing_difficulty != difficulty:
                log.error(f"Conflicting checkpoint difficulty at height {height}")
                return False
            self._difficulty_points[height] = difficulty

        self._points[height] = block_hash
        return True

    def is_checkpoint(self, height: int) -> bool:
        return height in self._points

    def is_in_checkpoint_zone(self, height: int) -> bool:
        return bool(self._points) and height <= self.max_height

    def check_block(self, height: int, block_hash: bytes) -> bool:
        """True if `height` is not a checkpoint or `block_hash` matches it."""
        expected = self._points.get(height)
        if expected is None:
            return True

        if expected == block_hash:
            log.info(f"CHECKPOINT PASSED FOR HEIGHT {height} {block_hash.hex()}")
            return True

        log.warning(f"CHECKPOINT FAILED FOR HEIGHT {height}. EXPECTED HASH: {expected.hex()}, FETCHED HASH: {block_hash.hex()}")
        return False

    def check_difficulty(self, height: int, cumulative_difficulty: int) -> bool:
        expected = self._difficulty_points.get(height)
        if expected is None or expected == cumulative_difficulty:
            return True
        log.warning(f"DIFFICULTY CHECKPOINT FAILED FOR HEIGHT {height}. EXPECTED: {expected}, FETCHED: {cumulative_difficulty}")
        return False

    def is_alternative_block_allowed(self, blockchain_height: int, block_height: int) -> bool:
        """An alternative block may not replace anything at or below the newest checkpoint under the chain tip."""
        if block_height == 0:
            return False

        below_tip = [h for h in self._points if h <= blockchain_height]
        if not below_tip:
            return True
        return max(below_tip) < block_height

    def check_for_conflicts(self, other: 'Checkpoints') -> bool:
        """True if every height both tables know carries the same hash."""
        for height, block_hash in other.points.items():
            mine = self._points.get(height)
            if mine is not None and mine != block_hash:
                log.error(f"Checkpoint tables disagree at height {height}")
                return False
        return True

    def load_from_json(self, json_path: Path | str) -> bool:
        """
        Adds every entry from `json_path` whose height is above the current
        `max_height`. A missing file is not an error. Returns False if the file
        cannot be parsed or holds a conflicting entry.
        """
        json_path = Path(json_path)
        if not json_path.exists():
            log.debug(f"Checkpoints file {json_path} not found")
            return True

        try:
            with open(json_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error(f"Error loading checkpoints from {json_path}: {e}")
            return False

        prev_max_height = self.max_height if self._points else -1
        for line in data.get("hashlines", []):
            try:
                height = int(line["height"])
                hash_hex = line["hash"]
            except (KeyError, TypeError, ValueError):
                log.error(f"Malformed checkpoint entry in {json_path}: {line!r}")
                return False

            if height <= prev_max_height:
                log.debug(f"Ignoring checkpoint height {height}")
                continue
            if not self.add_checkpoint(height, hash_hex, line.get("difficulty")):
                return False

        log.info(f"Loaded {len(self._points)} checkpoints from {json_path}")
        return True
