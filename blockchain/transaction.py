import logging

from io import BytesIO
from typing import BinaryIO

from blockchain.script import Script
from crypto.hashing import HASH256
from utils.helper import bytes_to_int, encode_varint, int_to_bytes, read_exact, read_varint


log = logging.getLogger(__name__)

NULL_HASH = bytes(32)
COINBASE_INDEX = 0xffffffff


class TransactionInput:
    """Represents a transaction input.
    
    Attributes:
        prev_tx_hash: 32 bytes
        prev_index: 4 bytes
        script_sig: variable length
        sequence: 4 bytes
    """
    def __init__(
        self,
        prev_hash: bytes,
        prev_index: int,     
        script_sig: Script | None = None,     
        sequence: int = 0xffffffff,          
    ):
        self.prev_tx_hash = prev_hash    
        self.prev_index = prev_index 
        self.script_sig = script_sig if script_sig is not None else Script()
        self.sequence = sequence            

    def __str__(self):
        return (
            f"      Prev Tx Hash : {self.prev_tx_hash.hex()}\n"
            f"      Prev Index   : {self.prev_index}\n"
            f"      Script Sig   : {self.script_sig}\n"
            f"      Sequence     : {self.sequence}"
        )

    @classmethod
    def parse(cls, stream: BinaryIO | bytes) -> 'TransactionInput':
        if isinstance(stream, bytes):
            stream = BytesIO(stream)
            
        prev_hash = read_exact(stream, 32)
        prev_index = bytes_to_int(read_exact(stream, 4))
        script_sig = Script.parse(stream) 
        sequence = bytes_to_int(read_exact(stream, 4))
        return cls(prev_hash, prev_index, script_sig, sequence)

    def serialize(self) -> bytes:
        result: bytes = self.prev_tx_hash
        result += int_to_bytes(self.prev_index)
        result += self.script_sig.serialize()
        result += int_to_bytes(self.sequence)
        return result


class TransactionOutput:
    """Represents a transaction output.
    
    Attributes:
        value: 8 bytes
        script_pubkey: variable length
    """
    def __init__(self, value: int, script_pubkey: Script):
        self.value = value
        self.script_pubkey = script_pubkey
    
    def __str__(self):
        return (
            f"      Value        : {self.value}\n"
            f"      ScriptPubKey : {self.script_pubkey}"
        )

    @classmethod
    def parse(cls, stream: BinaryIO | bytes) -> 'TransactionOutput':
        if isinstance(stream, bytes):
            stream = BytesIO(stream)
            
        value = bytes_to_int(read_exact(stream, 8))
        script_pubkey = Script.parse(stream)
        return cls(value, script_pubkey)
    
    def serialize(self) -> bytes:
        result: bytes = int_to_bytes(self.value, 8)
        result += self.script_pubkey.serialize()
        return result


class Transaction:
    """
    Represents a transaction.
    `Transaction` objects should be used as immutable

    Attributes:
        version: 4 bytes
        inputs: List[TransactionInput]
        outputs: List[TransactionOutput]
        locktime: 4 bytes
    """
    def __init__(
        self,
        version: int,
        inputs: list[TransactionInput],
        outputs: list[TransactionOutput],
        locktime: int,
    ):
        self.version = version
        self.inputs = inputs
        self.outputs = outputs
        self.locktime = locktime

    def __str__(self):
        lines = [
            f"Transaction {self.hash().hex()}",
            f"  Version: {self.version}",
            "",
            f"  Inputs ({len(self.inputs)}):",
        ]

        for i, tx_in in enumerate(self.inputs):
            lines.append(f"    [{i}]")
            lines.append(str(tx_in))

        lines.append("")
        lines.append(f"  Outputs ({len(self.outputs)}):")

        for i, tx_out in enumerate(self.outputs):
            lines.append(f"    [{i}]")
            lines.append(str(tx_out))

        lines.append(f"\n  Locktime: {self.locktime}")
        return "\n".join(lines)
    
    @classmethod
    def parse(cls, stream: BinaryIO | bytes) -> 'Transaction':
        """Parses a transaction from a Binary I/O or bytes"""
        if isinstance(stream, bytes):
            stream = BytesIO(stream)
            
        version = bytes_to_int(read_exact(stream, 4))

        no_inputs = read_varint(stream)
        inputs = [TransactionInput.parse(stream) for _ in range(no_inputs)]

        no_outputs = read_varint(stream)
        outputs = [TransactionOutput.parse(stream) for _ in range(no_outputs)]

        locktime = bytes_to_int(read_exact(stream, 4))

        return cls(version, inputs, outputs, locktime)

    def serialize(self) -> bytes:
        result: bytes = int_to_bytes(self.version)

        result += encode_varint(len(self.inputs))
        result += b''.join([tx_in.serialize() for tx_in in self.inputs])

        result += encode_varint(len(self.outputs))
        result += b''.join([tx_out.serialize() for tx_out in self.outputs])

        result += int_to_bytes(self.locktime)

        return result

    def is_coinbase(self) -> bool:
        if len(self.inputs) != 1:
            return False

        coinbase_input = self.inputs[0]
        if coinbase_input.prev_tx_hash != NULL_HASH:
            return False

        if coinbase_input.prev_index != COINBASE_INDEX:
            return False

        return True 

    def hash(self) -> bytes:
        return HASH256(self.serialize())

    def output_value(self) -> int:
        return sum(tx_out.value for tx_out in self.outputs)
    
    def size(self):
        return len(self.serialize())

    def __hash__(self):
        return hash(self.hash())

    def __eq__(self, other):
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.hash() == other.hash()
