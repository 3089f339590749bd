from utils.helper import int_to_bytes
from bootstrap.constants import RECORD_SIZE_BYTES

INITIAL_CAPACITY = 1 << 16


class ChunkBuffer:
    """
    Growable byte buffer that collects one chunk's worth of framed block packages.

    `reset()` only rewinds the write position, so the allocation is reused for
    every chunk of an export run.
    """
    def __init__(self, capacity: int = INITIAL_CAPACITY):
        self._data = bytearray(capacity)
        self._size = 0
        self.records = 0

    def __len__(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return len(self._data)

    def write(self, data: bytes) -> int:
        end = self._size + len(data)
        if end > len(self._data):
            self._grow(end)
        self._data[self._size:end] = data
        self._size = end
        return len(data)

    def write_record(self, blob: bytes) -> int:
        """Appends `size | blob`. Returns the number of bytes added."""
        written = self.write(int_to_bytes(len(blob), RECORD_SIZE_BYTES))
        written += self.write(blob)
        self.records += 1
        return written

    def getbuffer(self) -> memoryview:
        """View over the written bytes. Release it before writing to the buffer again."""
        return memoryview(self._data)[:self._size]

    def getvalue(self) -> bytes:
        return bytes(self._data[:self._size])

    def reset(self):
        self._size = 0
        self.records = 0

    def _grow(self, needed: int):
        new_capacity = max(needed, 2 * len(self._data))
        self._data.extend(bytes(new_capacity - len(self._data)))
