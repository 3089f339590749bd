from dataclasses import dataclass

from utils.helper import bytes_to_int, int_to_bytes


@dataclass
class TransactionMetadata:
    tx_hash: bytes
    dat_no: int
    offset: int
    size: int
    pos: int
    height: int

    @classmethod
    def parse(cls, tx_hash: bytes, value: bytes) -> 'TransactionMetadata':
        return cls(
            tx_hash = tx_hash,
            dat_no  = bytes_to_int(value[0:4]),
            offset  = bytes_to_int(value[4:8]),
            size    = bytes_to_int(value[8:12]),
            pos     = bytes_to_int(value[12:16]),
            height  = bytes_to_int(value[16:24]),
        )

    def serialize(self) -> bytes:
        return (
            int_to_bytes(self.dat_no)
            + int_to_bytes(self.offset)
            + int_to_bytes(self.size)
            + int_to_bytes(self.pos)
            + int_to_bytes(self.height, 8)
        )


# Why isn't there a 'save_transaction' function? Because transactions must be saved
# together as a block (ChainStore.save_block), otherwise they never reach the TX DB.
