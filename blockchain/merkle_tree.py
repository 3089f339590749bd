import logging

from crypto.hashing import HASH256

log = logging.getLogger(__name__)


class MerkleTree:
    def __init__(self, leaves: list[bytes]):
        if not leaves:  # Allow temporary storage of empty merkle trees for convenience
            self.levels = []
            return
            
        cur = leaves[:]  

        self.levels = [cur]  # levels[0] = leaves
        
        # Build all levels
        while len(cur) > 1:
            if len(cur) % 2 == 1:
                cur = cur + [cur[-1]]   # duplicate last element
            
            parent_level = [
                HASH256(cur[i] + cur[i+1])
                for i in range(0, len(cur), 2)
            ]

            self.levels.append(parent_level)
            cur = parent_level


    def root(self) -> bytes:
        if not self.levels:
            return bytes(32)
        return self.levels[-1][0]
