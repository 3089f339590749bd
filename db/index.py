from io import BytesIO

from utils.helper import bytes_to_int, int_to_bytes, read_exact


class BlockIndex:
    def __init__(self, 
            block_hash: bytes, 
            prev_hash: bytes, 
            height: int, 
            chainwork: int, 
            flag=bytes(1)
        ):
        self.hash = block_hash
        self.prev_hash = prev_hash
        self.height = height
        self.chainwork = chainwork
        self.flag = flag
        
    def __str__(self):
        return (
            f"BlockIndex("
            f"height={self.height}, "
            f"hash={self.hash.hex()}, "
            f"prev={self.prev_hash.hex()}, "
            f"chainwork={self.chainwork}"
            f")"
        )
        
    @classmethod
    def parse(cls, stream):
        if isinstance(stream, bytes):
            stream = BytesIO(stream)
        
        block_hash = read_exact(stream, 32)
        prev_hash = read_exact(stream, 32)
        height = bytes_to_int(read_exact(stream, 8))
        chainwork = bytes_to_int(read_exact(stream, 32))
        flag = read_exact(stream, 1)
        
        return cls(block_hash, prev_hash, height, chainwork, flag)
            
    def serialize(self):
        result =  self.hash
        result += self.prev_hash
        result += int_to_bytes(self.height, 8)
        result += int_to_bytes(self.chainwork, 32)
        result += self.flag
        return result
    
    def __eq__(self, other):
        if not isinstance(other, BlockIndex):
            return NotImplemented
        return self.hash == other.hash
