from dataclasses import dataclass

from utils.helper import bytes_to_int, int_to_bytes


@dataclass
class BlockMetadata:
    block_hash: bytes
    dat_no: int 
    offset: int
    full_block_size: int 
    timestamp: int 
    no_txs: int
    total_sent: int  
    fee: int 
    height: int  

    @classmethod
    def parse(cls, block_hash: bytes, value: bytes) -> 'BlockMetadata':
        return cls(
            block_hash      = block_hash,
            dat_no          = bytes_to_int(value[0:4]),
            offset          = bytes_to_int(value[4:8]),
            full_block_size = bytes_to_int(value[8:12]),
            timestamp       = bytes_to_int(value[12:16]),
            no_txs          = bytes_to_int(value[16:20]),
            total_sent      = bytes_to_int(value[20:28]),
            fee             = bytes_to_int(value[28:36]),
            height          = bytes_to_int(value[36:44]),
        )

    def serialize(self) -> bytes:
        return (
            int_to_bytes(self.dat_no)
            + int_to_bytes(self.offset)
            + int_to_bytes(self.full_block_size)
            + int_to_bytes(self.timestamp)
            + int_to_bytes(self.no_txs)
            + int_to_bytes(self.total_sent, 8)
            + int_to_bytes(self.fee, 8)
            + int_to_bytes(self.height, 8)
        )
